"""
Tests for repair orders, line items, canned services and PDF export

The seeded shop charges 8% parts tax, no labor tax and a 4% card fee.
"""
import pytest


def _ro_url(repair_order, suffix=''):
    return f"/api/auto/repair-orders/{repair_order['id']}{suffix}"


def _add_line(client, repair_order, **fields):
    payload = {'type': 'parts', 'description': 'Brake pads', 'quantity': 2, 'unitPriceCash': 50}
    payload.update(fields)
    return client.post(_ro_url(repair_order, '/line-items'), json=payload)


@pytest.mark.integration
class TestRepairOrderCrud:
    """Tests for /api/auto/repair-orders"""

    def test_create_defaults(self, repair_order, seeded):
        """Test a new RO starts as a numbered estimate with an approval token"""
        assert repair_order['roNumber'] == 'RO-00001'
        assert repair_order['status'] == 'estimate'
        assert repair_order['customerConcern'] == 'Brakes squeal'
        assert repair_order['serviceAdvisorId'] == seeded['owner_id']
        assert len(repair_order['approvalToken']) == 64
        assert repair_order['totalCash'] == 0

    def test_numbers_are_sequential(self, owner_client, repair_order, customer_vehicle):
        """Test RO numbers count up per shop"""
        customer, vehicle = customer_vehicle
        second = owner_client.post('/api/auto/repair-orders', json={
            'customerId': customer['id'], 'vehicleId': vehicle['id'],
        }).get_json()['repairOrder']
        assert second['roNumber'] == 'RO-00002'

    def test_create_requires_customer_and_vehicle(self, owner_client, customer_vehicle):
        """Test missing ids are rejected"""
        customer, _ = customer_vehicle
        response = owner_client.post('/api/auto/repair-orders', json={'customerId': customer['id']})
        assert response.status_code == 400

    def test_create_unknown_customer(self, owner_client, customer_vehicle):
        """Test an unknown customer is a 404"""
        _, vehicle = customer_vehicle
        response = owner_client.post('/api/auto/repair-orders', json={
            'customerId': 999, 'vehicleId': vehicle['id'],
        })
        assert response.status_code == 404
        assert response.get_json()['error'] == 'Customer not found'

    def test_requires_shop_login(self, client):
        """Test anonymous callers are rejected"""
        assert client.get('/api/auto/repair-orders').status_code == 401

    def test_list_with_briefs(self, advisor_client, repair_order):
        """Test the list carries customer and vehicle briefs"""
        data = advisor_client.get('/api/auto/repair-orders').get_json()

        assert data['total'] == 1
        assert data['page'] == 1
        row = data['repairOrders'][0]
        assert row['customer']['firstName'] == 'Carl'
        assert row['vehicle']['make'] == 'Honda'

    def test_list_status_filter(self, owner_client, repair_order):
        """Test filtering by status"""
        assert owner_client.get('/api/auto/repair-orders?status=estimate').get_json()['total'] == 1
        assert owner_client.get('/api/auto/repair-orders?status=paid').get_json()['total'] == 0

    def test_list_bad_paging(self, owner_client, repair_order):
        """Test non-integer paging is a 400"""
        assert owner_client.get('/api/auto/repair-orders?page=abc').status_code == 400

    def test_detail(self, owner_client, repair_order):
        """Test the detail view bundles related records"""
        data = owner_client.get(_ro_url(repair_order)).get_json()

        assert data['repairOrder']['id'] == repair_order['id']
        assert data['customer']['email'] == 'carl@example.com'
        assert data['vehicle']['model'] == 'Civic'
        assert data['lineItems'] == []
        assert data['payments'] == []
        assert data['inspections'] == []
        assert data['serviceAdvisor'] is not None
        assert data['technician'] is None

    def test_detail_unknown(self, owner_client, seeded):
        """Test unknown ROs are 404"""
        assert owner_client.get('/api/auto/repair-orders/999').status_code == 404

    def test_patch_fields(self, owner_client, repair_order, seeded):
        """Test assigning a technician and notes"""
        response = owner_client.patch(_ro_url(repair_order), json={
            'technicianId': seeded['tech_id'],
            'internalNotes': 'Check rotors too',
            'mileageIn': 45210,
        })
        ro = response.get_json()['repairOrder']
        assert ro['technicianId'] == seeded['tech_id']
        assert ro['internalNotes'] == 'Check rotors too'
        assert ro['mileageIn'] == 45210


@pytest.mark.integration
class TestStatusTransitions:
    """Tests for repair order status changes"""

    def test_walk_to_invoiced(self, owner_client, repair_order):
        """Test each status stamps its timestamp and invoicing numbers the RO"""
        approved = owner_client.patch(_ro_url(repair_order), json={'status': 'approved'}).get_json()['repairOrder']
        assert approved['approvedAt'] is not None

        completed = owner_client.patch(_ro_url(repair_order), json={'status': 'completed'}).get_json()['repairOrder']
        assert completed['completedAt'] is not None

        invoiced = owner_client.patch(_ro_url(repair_order), json={'status': 'invoiced'}).get_json()['repairOrder']
        assert invoiced['status'] == 'invoiced'
        assert invoiced['invoiceNumber'] == 'INV-00001'
        assert invoiced['invoicedAt'] is not None

    def test_invoicing_queues_accounting_sync(self, owner_client, repair_order, db_session):
        """Test invoicing queues one pending invoice push"""
        from database.auto_models import AutoQboSyncLog

        owner_client.patch(_ro_url(repair_order), json={'status': 'invoiced'})

        rows = db_session.query(AutoQboSyncLog).filter(AutoQboSyncLog.entity_type == 'invoice').all()
        assert len(rows) == 1
        assert rows[0].entity_id == repair_order['id']
        assert rows[0].status == 'pending'

    def test_invalid_status(self, owner_client, repair_order):
        """Test unknown statuses are rejected with the field name"""
        response = owner_client.patch(_ro_url(repair_order), json={'status': 'teleported'})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'status'

    def test_status_change_is_logged(self, owner_client, repair_order):
        """Test the activity feed records the transition"""
        owner_client.patch(_ro_url(repair_order), json={'status': 'approved'})

        feed = owner_client.get('/api/auto/dashboard/activity').get_json()['activity']
        actions = [entry['action'] for entry in feed]
        assert 'status_changed' in actions


@pytest.mark.integration
class TestLineItems:
    """Tests for line items and the totals they drive"""

    def test_add_parts_line(self, owner_client, repair_order):
        """Test card prices carry the fee and parts are taxed"""
        response = _add_line(owner_client, repair_order)

        assert response.status_code == 201
        data = response.get_json()
        line = data['lineItem']
        assert line['unitPriceCash'] == 50.0
        assert line['unitPriceCard'] == 52.0
        assert line['totalCash'] == 100.0
        assert line['totalCard'] == 104.0
        assert line['status'] == 'pending'
        assert line['sortOrder'] == 1

        ro = data['repairOrder']
        assert ro['subtotalCash'] == 100.0
        assert ro['subtotalCard'] == 104.0
        assert ro['taxAmount'] == 8.0
        assert ro['totalCash'] == 108.0
        assert ro['totalCard'] == 112.0
        assert ro['feeAmount'] == 4.0

    def test_labor_is_untaxed(self, owner_client, repair_order):
        """Test labor adds to subtotals but not to tax"""
        _add_line(owner_client, repair_order)
        ro = _add_line(owner_client, repair_order, type='labor', description='Replace pads',
                       quantity=1.5, unitPriceCash=100).get_json()['repairOrder']

        assert ro['subtotalCash'] == 250.0
        assert ro['subtotalCard'] == 260.0
        assert ro['taxAmount'] == 8.0
        assert ro['totalCash'] == 258.0
        assert ro['totalCard'] == 268.0

    def test_ntnf_line_has_no_card_fee(self, owner_client, repair_order):
        """Test NTNF lines cost the same on card"""
        line = _add_line(owner_client, repair_order, type='fee', description='Disposal',
                         quantity=1, unitPriceCash=20, isNtnf=True).get_json()['lineItem']
        assert line['unitPriceCard'] == 20.0
        assert line['isNtnf'] is True

    def test_line_discount_percent(self, owner_client, repair_order):
        """Test a discount percent reduces both price columns"""
        data = _add_line(owner_client, repair_order, discountPercent=0.1).get_json()

        assert data['lineItem']['discountAmountCash'] == 10.0
        assert data['lineItem']['discountAmountCard'] == 10.4
        assert data['repairOrder']['subtotalCash'] == 90.0
        assert data['repairOrder']['taxAmount'] == 7.2

    def test_invalid_line(self, owner_client, repair_order):
        """Test type and numeric validation"""
        assert _add_line(owner_client, repair_order, type='bogus').status_code == 400
        assert _add_line(owner_client, repair_order, quantity=-1).status_code == 400
        assert _add_line(owner_client, repair_order, discountPercent=5).status_code == 400
        assert owner_client.post(_ro_url(repair_order, '/line-items'), json={'type': 'parts'}).status_code == 400

    def test_update_line_reprices(self, owner_client, repair_order):
        """Test changing the quantity recalculates the line and the RO"""
        line = _add_line(owner_client, repair_order).get_json()['lineItem']

        data = owner_client.patch(_ro_url(repair_order, f"/line-items/{line['id']}"),
                                  json={'quantity': 3}).get_json()
        assert data['lineItem']['totalCash'] == 150.0
        assert data['lineItem']['totalCard'] == 156.0
        assert data['repairOrder']['totalCash'] == 162.0

    def test_update_description_keeps_prices(self, owner_client, repair_order):
        """Test non-price edits leave prices alone"""
        line = _add_line(owner_client, repair_order, unitPriceCard=55).get_json()['lineItem']

        data = owner_client.patch(_ro_url(repair_order, f"/line-items/{line['id']}"),
                                  json={'description': 'Ceramic pads'}).get_json()
        assert data['lineItem']['description'] == 'Ceramic pads'
        assert data['lineItem']['unitPriceCard'] == 55.0

    def test_declined_line_leaves_totals(self, owner_client, repair_order):
        """Test voided lines drop out of the totals"""
        line = _add_line(owner_client, repair_order).get_json()['lineItem']

        ro = owner_client.patch(_ro_url(repair_order, f"/line-items/{line['id']}"),
                                json={'status': 'voided'}).get_json()['repairOrder']
        assert ro['totalCash'] == 0

    def test_delete_line(self, owner_client, repair_order):
        """Test deleting a line recalculates the RO"""
        line = _add_line(owner_client, repair_order).get_json()['lineItem']

        response = owner_client.delete(_ro_url(repair_order, f"/line-items/{line['id']}"))
        assert response.status_code == 200
        assert response.get_json()['repairOrder']['totalCash'] == 0

        missing = owner_client.delete(_ro_url(repair_order, f"/line-items/{line['id']}"))
        assert missing.status_code == 404

    def test_line_item_by_id(self, owner_client, repair_order):
        """Test lines can be edited and deleted without the RO in the path"""
        line = _add_line(owner_client, repair_order).get_json()['lineItem']
        url = f"/api/auto/line-items/{line['id']}"

        data = owner_client.patch(url, json={'quantity': 3}).get_json()
        assert data['lineItem']['totalCash'] == 150.0
        assert data['repairOrder']['id'] == repair_order['id']

        assert owner_client.delete(url).status_code == 200
        assert owner_client.delete(url).status_code == 404
        assert owner_client.patch('/api/auto/line-items/999', json={'quantity': 1}).status_code == 404

    def test_line_on_unknown_ro(self, owner_client, seeded):
        """Test adding to an unknown RO is a 404"""
        response = owner_client.post('/api/auto/repair-orders/999/line-items', json={
            'type': 'parts', 'description': 'Pads',
        })
        assert response.status_code == 404


@pytest.mark.integration
class TestShopSupplies:
    """Tests for the generated shop supplies line"""

    def test_supply_line_follows_subtotal(self, owner_client, repair_order):
        """Test the supply fee is added, taxed and removed with the work"""
        owner_client.patch('/api/auto/shop/settings', json={
            'shopSupplyEnabled': True, 'shopSupplyRatePct': 0.1, 'shopSupplyMaxAmount': 20,
        })
        line = _add_line(owner_client, repair_order).get_json()['lineItem']

        detail = owner_client.get(_ro_url(repair_order)).get_json()
        supply = [i for i in detail['lineItems'] if i['isShopSupply']]
        assert len(supply) == 1
        assert supply[0]['description'] == 'Shop Supplies'
        assert supply[0]['totalCash'] == 10.0
        assert supply[0]['totalCard'] == 10.4
        assert detail['lineItems'][-1]['isShopSupply'] is True

        ro = detail['repairOrder']
        assert ro['shopSupplyAmountCash'] == 10.0
        assert ro['subtotalCash'] == 110.0
        assert ro['taxAmount'] == 8.8
        assert ro['totalCash'] == 118.8

        owner_client.delete(_ro_url(repair_order, f"/line-items/{line['id']}"))
        detail = owner_client.get(_ro_url(repair_order)).get_json()
        assert detail['lineItems'] == []
        assert detail['repairOrder']['totalCash'] == 0

    def test_supply_is_capped(self, owner_client, repair_order):
        """Test the supply fee never exceeds the shop maximum"""
        owner_client.patch('/api/auto/shop/settings', json={
            'shopSupplyEnabled': True, 'shopSupplyRatePct': 0.1, 'shopSupplyMaxAmount': 5,
        })
        ro = _add_line(owner_client, repair_order).get_json()['repairOrder']
        assert ro['shopSupplyAmountCash'] == 5.0

    def test_recalculate_endpoint(self, owner_client, repair_order):
        """Test recalculating picks up changed shop settings"""
        _add_line(owner_client, repair_order)
        owner_client.patch('/api/auto/shop/settings', json={'taxRate': 0.1})

        ro = owner_client.post(_ro_url(repair_order, '/recalculate')).get_json()['repairOrder']
        assert ro['taxAmount'] == 10.0
        assert ro['totalCash'] == 110.0


@pytest.mark.integration
class TestCannedServices:
    """Tests for applying canned services to an RO"""

    def _service(self, client):
        return client.post('/api/auto/canned-services', json={
            'name': 'Front Brakes',
            'items': [
                {'type': 'labor', 'description': 'Replace pads', 'unitPriceCash': 150},
                {'type': 'parts', 'description': 'Brake pads', 'quantity': 2, 'unitPriceCash': 60},
            ],
        }).get_json()['cannedService']

    def test_apply(self, owner_client, repair_order):
        """Test each item becomes a priced pending line"""
        service = self._service(owner_client)
        _add_line(owner_client, repair_order, description='Wipers', quantity=1, unitPriceCash=10)

        data = owner_client.post(_ro_url(repair_order, '/apply-canned-service'),
                                 json={'cannedServiceId': service['id']}).get_json()

        lines = data['lineItems']
        assert [line['description'] for line in lines] == ['Wipers', 'Replace pads', 'Brake pads']
        assert [line['sortOrder'] for line in lines] == [1, 2, 3]
        assert all(line['status'] == 'pending' for line in lines)
        assert lines[2]['totalCard'] == 124.8

        ro = data['repairOrder']
        assert ro['subtotalCash'] == 280.0
        assert ro['taxAmount'] == 10.4

    def test_apply_by_path(self, owner_client, repair_order):
        """Test the canned service can be named in the URL"""
        service = self._service(owner_client)

        response = owner_client.post(_ro_url(repair_order, f"/apply-canned-service/{service['id']}"))

        assert response.status_code == 200
        assert len(response.get_json()['lineItems']) == 2
        assert owner_client.post(_ro_url(repair_order, '/apply-canned-service/999')).status_code == 404

    def test_requires_service_id(self, owner_client, repair_order):
        """Test the body must name a canned service"""
        response = owner_client.post(_ro_url(repair_order, '/apply-canned-service'), json={})
        assert response.status_code == 400

    def test_unknown_service(self, owner_client, repair_order):
        """Test an unknown canned service is a 404"""
        response = owner_client.post(_ro_url(repair_order, '/apply-canned-service'),
                                     json={'cannedServiceId': 999})
        assert response.status_code == 404


@pytest.mark.integration
class TestPdfExport:
    """Tests for estimate, work order and invoice PDFs"""

    @pytest.mark.parametrize('pdf_type', ['estimate', 'work_order', 'invoice'])
    def test_export(self, owner_client, repair_order, pdf_type):
        """Test each document renders as a PDF attachment"""
        _add_line(owner_client, repair_order)

        response = owner_client.get(_ro_url(repair_order, f'/pdf?type={pdf_type}'))

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')
        assert f'RO-00001-{pdf_type}.pdf' in response.headers['Content-Disposition']

    def test_bad_type(self, owner_client, repair_order):
        """Test unknown document types are rejected"""
        assert owner_client.get(_ro_url(repair_order, '/pdf?type=receipt')).status_code == 400

    def test_unknown_ro(self, owner_client, seeded):
        """Test exporting an unknown RO is a 404"""
        assert owner_client.get('/api/auto/repair-orders/999/pdf').status_code == 404
