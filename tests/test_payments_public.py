"""
Tests for repair order payments and the customer-facing estimate and
payment links
"""
import pytest


def _ro_url(repair_order, suffix=''):
    return f"/api/auto/repair-orders/{repair_order['id']}{suffix}"


def _add_line(client, repair_order, **fields):
    payload = {'type': 'parts', 'description': 'Brake pads', 'quantity': 2, 'unitPriceCash': 50}
    payload.update(fields)
    return client.post(_ro_url(repair_order, '/line-items'), json=payload).get_json()['lineItem']


def _pay(client, repair_order, amount, method='cash', **fields):
    payload = {'amount': amount, 'method': method}
    payload.update(fields)
    return client.post(_ro_url(repair_order, '/payments'), json=payload)


@pytest.fixture
def priced_order(owner_client, repair_order):
    """The repair order with one parts line: 108.00 cash, 112.00 card"""
    _add_line(owner_client, repair_order)
    return repair_order


@pytest.mark.integration
class TestPayments:
    """Tests for /api/auto/repair-orders/<id>/payments"""

    def test_partial_payment(self, owner_client, priced_order):
        """Test a partial payment leaves the RO open with a balance"""
        response = _pay(owner_client, priced_order, 50, method='card', referenceNumber='TX-1', tipAmount='5')

        assert response.status_code == 201
        data = response.get_json()
        assert data['payment']['status'] == 'completed'
        assert data['payment']['transactionId'] == 'TX-1'
        assert data['payment']['tipAmount'] == 5.0
        assert len(data['payment']['paymentToken']) == 64
        assert data['totalPaid'] == 50.0
        assert data['balanceDue'] == 58.0

        ro = owner_client.get(_ro_url(priced_order)).get_json()['repairOrder']
        assert ro['status'] == 'estimate'
        assert ro['paidAmount'] == 50.0

    def test_paid_in_full(self, owner_client, priced_order):
        """Test covering the cash total marks the RO paid"""
        _pay(owner_client, priced_order, 50)
        data = _pay(owner_client, priced_order, 58).get_json()
        assert data['balanceDue'] == 0

        ro = owner_client.get(_ro_url(priced_order)).get_json()['repairOrder']
        assert ro['status'] == 'paid'
        assert ro['paidAt'] is not None

    def test_invalid_payments(self, owner_client, priced_order):
        """Test amount and method validation"""
        assert _pay(owner_client, priced_order, 10, method='barter').status_code == 400
        assert _pay(owner_client, priced_order, 0).status_code == 400
        assert _pay(owner_client, priced_order, 'lots').status_code == 400
        response = owner_client.post(_ro_url(priced_order, '/payments'), json={'method': 'cash'})
        assert response.get_json()['error'] == 'Amount and method are required'

    def test_list(self, advisor_client, owner_client, priced_order):
        """Test the payment list carries the running summary"""
        _pay(owner_client, priced_order, 20)
        _pay(owner_client, priced_order, 30, method='check')

        data = advisor_client.get(_ro_url(priced_order, '/payments')).get_json()
        assert len(data['payments']) == 2
        assert data['totalPaid'] == 50.0
        assert data['totalCash'] == 108.0
        assert data['totalCard'] == 112.0

    def test_payment_queues_accounting_sync(self, owner_client, priced_order, db_session):
        """Test each payment queues a QuickBooks push"""
        from database.auto_models import AutoQboSyncLog

        payment = _pay(owner_client, priced_order, 20).get_json()['payment']

        row = db_session.query(AutoQboSyncLog).filter(AutoQboSyncLog.entity_type == 'payment').one()
        assert row.entity_id == payment['id']

    def test_unknown_ro(self, owner_client, seeded):
        """Test paying an unknown RO is a 404"""
        response = owner_client.post('/api/auto/repair-orders/999/payments',
                                     json={'amount': 10, 'method': 'cash'})
        assert response.status_code == 404


@pytest.mark.integration
class TestVoidPayments:
    """Tests for voiding payments"""

    def test_void_reopens_paid_order(self, owner_client, priced_order):
        """Test voiding drops a paid RO back to invoiced"""
        _pay(owner_client, priced_order, 50)
        payment = _pay(owner_client, priced_order, 58).get_json()['payment']

        response = owner_client.post(_ro_url(priced_order, f"/payments/{payment['id']}/void"))

        assert response.status_code == 200
        data = response.get_json()
        assert data['payment']['status'] == 'voided'
        assert data['payment']['voidedAt'] is not None
        assert data['totalPaid'] == 50.0

        ro = owner_client.get(_ro_url(priced_order)).get_json()['repairOrder']
        assert ro['status'] == 'invoiced'
        assert ro['paidAt'] is None

    def test_void_twice(self, owner_client, priced_order):
        """Test a voided payment cannot be voided again"""
        payment = _pay(owner_client, priced_order, 20).get_json()['payment']
        owner_client.post(_ro_url(priced_order, f"/payments/{payment['id']}/void"))

        response = owner_client.post(_ro_url(priced_order, f"/payments/{payment['id']}/void"))
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Payment already voided'

    def test_void_requires_manager(self, owner_client, advisor_client, priced_order):
        """Test advisors cannot void payments"""
        payment = _pay(owner_client, priced_order, 20).get_json()['payment']

        response = advisor_client.post(_ro_url(priced_order, f"/payments/{payment['id']}/void"))
        assert response.status_code == 403

    def test_void_unknown(self, owner_client, priced_order):
        """Test voiding an unknown payment is a 404"""
        assert owner_client.post(_ro_url(priced_order, '/payments/999/void')).status_code == 404

    def test_void_by_payment_id(self, owner_client, advisor_client, priced_order):
        """Test payments can be voided by id alone"""
        payment = _pay(owner_client, priced_order, 20).get_json()['payment']
        url = f"/api/auto/payments/{payment['id']}/void"

        assert advisor_client.post(url).status_code == 403

        response = owner_client.post(url)
        assert response.status_code == 200
        assert response.get_json()['payment']['status'] == 'voided'
        assert response.get_json()['totalPaid'] == 0

        assert owner_client.post('/api/auto/payments/999/void').status_code == 404


@pytest.mark.integration
class TestPublicEstimate:
    """Tests for /api/auto/public/estimate/<token>"""

    def _url(self, repair_order, suffix=''):
        return f"/api/auto/public/estimate/{repair_order['approvalToken']}{suffix}"

    def test_view(self, client, priced_order):
        """Test the estimate is visible without logging in"""
        data = client.get(self._url(priced_order)).get_json()

        assert data['repairOrder']['roNumber'] == 'RO-00001'
        assert data['shop']['name'] == 'Main Street Auto'
        assert data['customer']['firstName'] == 'Carl'
        assert data['vehicle']['model'] == 'Civic'
        assert len(data['lineItems']) == 1

    def test_unknown_token(self, client, seeded):
        """Test an unknown token is a 404"""
        response = client.get('/api/auto/public/estimate/not-a-token')
        assert response.status_code == 404
        assert response.get_json()['error'] == 'Estimate not found'

    def test_lines_hide_voided(self, client, owner_client, priced_order):
        """Test the lines view only lists pending and approved work"""
        extra = _add_line(owner_client, priced_order, description='Rotors')
        owner_client.patch(_ro_url(priced_order, f"/line-items/{extra['id']}"), json={'status': 'voided'})

        lines = client.get(self._url(priced_order, '/lines')).get_json()['lineItems']
        assert [line['description'] for line in lines] == ['Brake pads']

    def test_approve(self, client, priced_order):
        """Test approving the whole estimate records the customer's name"""
        data = client.post(self._url(priced_order, '/approve'), json={'customerName': 'Carl Customer'}).get_json()

        assert data['success'] is True
        assert data['repairOrder']['status'] == 'approved'
        assert data['repairOrder']['approvedBy'] == 'Carl Customer'
        assert data['repairOrder']['approvedAt'] is not None

    def test_approve_legacy_approver_field(self, client, priced_order):
        """Test approvedBy is still accepted when no customer name is sent"""
        data = client.post(self._url(priced_order, '/approve'), json={'approvedBy': 'Carl'}).get_json()
        assert data['repairOrder']['approvedBy'] == 'Carl'

    def test_approve_ignores_malformed_item_ids(self, client, owner_client, priced_order):
        """Test unparseable approvedItemIds do not break the approval"""
        lines = owner_client.get(_ro_url(priced_order)).get_json()['lineItems']

        response = client.post(self._url(priced_order, '/approve'),
                               json={'approvedItemIds': ['abc', None, lines[0]['id']]})

        assert response.status_code == 200
        detail = owner_client.get(_ro_url(priced_order)).get_json()
        assert detail['lineItems'][0]['status'] == 'approved'

    def test_estimate_pdf(self, client, priced_order):
        """Test the customer can download the estimate PDF by token"""
        response = client.get(self._url(priced_order, '/pdf'))

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')
        assert 'RO-00001-estimate.pdf' in response.headers['Content-Disposition']

    def test_estimate_pdf_unknown_token(self, client, seeded):
        """Test an unknown token has no PDF"""
        assert client.get('/api/auto/public/estimate/not-a-token/pdf').status_code == 404

    def test_approve_twice(self, client, priced_order):
        """Test an approved estimate cannot be approved again"""
        client.post(self._url(priced_order, '/approve'), json={})

        response = client.post(self._url(priced_order, '/approve'), json={})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'This estimate has already been approved'

    def test_approve_selected_items(self, client, owner_client, priced_order):
        """Test approving only some lines"""
        lines = owner_client.get(_ro_url(priced_order)).get_json()['lineItems']
        extra = _add_line(owner_client, priced_order, description='Rotors')

        data = client.post(self._url(priced_order, '/approve'),
                           json={'approvedItemIds': [lines[0]['id']]}).get_json()
        assert data['repairOrder']['approvedBy'] == 'Online'

        detail = owner_client.get(_ro_url(priced_order)).get_json()
        statuses = {line['id']: line['status'] for line in detail['lineItems']}
        assert statuses[lines[0]['id']] == 'approved'
        assert statuses[extra['id']] == 'pending'

    def test_decline(self, client, priced_order):
        """Test declining records the reason and keeps the estimate open"""
        data = client.post(self._url(priced_order, '/decline'), json={'reason': 'Too expensive'}).get_json()

        assert data['repairOrder']['status'] == 'estimate'
        assert data['repairOrder']['approvalDeclinedReason'] == 'Too expensive'
        assert data['repairOrder']['approvalDeclinedAt'] is not None

    def test_decline_after_approval(self, client, priced_order):
        """Test approved estimates cannot be declined"""
        client.post(self._url(priced_order, '/approve'), json={})
        assert client.post(self._url(priced_order, '/decline'), json={}).status_code == 400

    def test_question(self, client, owner_client, priced_order):
        """Test customer questions are stored on the RO"""
        response = client.post(self._url(priced_order, '/question'), json={'question': ' Is this urgent? '})
        assert response.get_json()['success'] is True

        ro = owner_client.get(_ro_url(priced_order)).get_json()['repairOrder']
        assert ro['approvalQuestion'] == 'Is this urgent?'
        assert ro['approvalQuestionAt'] is not None

    def test_empty_question(self, client, priced_order):
        """Test a blank question is rejected"""
        response = client.post(self._url(priced_order, '/question'), json={'question': '  '})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'question'

    def test_line_approval(self, client, owner_client, priced_order):
        """Test per-line decisions approve some work and void the rest"""
        pads = owner_client.get(_ro_url(priced_order)).get_json()['lineItems'][0]
        labor = _add_line(owner_client, priced_order, type='labor', description='Install',
                          quantity=1, unitPriceCash=80)

        data = client.post(self._url(priced_order, '/line-approval'), json={
            'lineItems': [
                {'id': pads['id'], 'approved': True},
                {'id': labor['id'], 'approved': False, 'declinedReason': 'Will do it myself'},
            ],
            'customerName': 'Carl',
        }).get_json()

        ro = data['repairOrder']
        assert ro['status'] == 'approved'
        assert ro['approvedBy'] == 'Carl'
        assert ro['totalCash'] == 108.0

        detail = owner_client.get(_ro_url(priced_order)).get_json()
        by_id = {line['id']: line for line in detail['lineItems']}
        assert by_id[pads['id']]['approvalStatus'] == 'approved'
        assert by_id[labor['id']]['status'] == 'voided'
        assert by_id[labor['id']]['declinedReason'] == 'Will do it myself'

    def test_line_approval_all_declined(self, client, owner_client, priced_order):
        """Test declining every line declines the estimate"""
        pads = owner_client.get(_ro_url(priced_order)).get_json()['lineItems'][0]

        data = client.post(self._url(priced_order, '/line-approval'), json={
            'lineItems': [{'id': pads['id'], 'approved': False}],
        }).get_json()

        assert data['repairOrder']['status'] == 'declined'
        assert data['repairOrder']['totalCash'] == 0

    def test_line_approval_requires_list(self, client, priced_order):
        """Test the body must carry a lineItems array"""
        response = client.post(self._url(priced_order, '/line-approval'), json={'lineItems': 'all'})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'lineItems'

    def test_line_approval_requires_decisions(self, client, priced_order):
        """Test an empty lineItems array is rejected"""
        response = client.post(self._url(priced_order, '/line-approval'), json={'lineItems': []})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'lineItems'

    def test_line_approval_skips_unknown_ids(self, client, owner_client, priced_order):
        """Test malformed or foreign line ids are ignored instead of failing"""
        pads = owner_client.get(_ro_url(priced_order)).get_json()['lineItems'][0]

        response = client.post(self._url(priced_order, '/line-approval'), json={
            'lineItems': [
                {'id': 'abc', 'approved': True},
                {'id': None, 'approved': False},
                'not-a-decision',
                {'id': 99999, 'approved': True},
                {'id': str(pads['id']), 'approved': True},
            ],
        })

        assert response.status_code == 200
        ro = response.get_json()['repairOrder']
        assert ro['status'] == 'approved'
        assert ro['approvedBy'] == 'Online'

    def test_line_approval_after_approval(self, client, priced_order):
        """Test decisions are refused once the estimate is approved"""
        client.post(self._url(priced_order, '/approve'), json={})
        response = client.post(self._url(priced_order, '/line-approval'),
                               json={'lineItems': [{'id': 1, 'approved': True}]})
        assert response.status_code == 400


@pytest.mark.integration
class TestPublicPaymentLink:
    """Tests for /api/auto/public/pay/<token>"""

    def test_view(self, client, owner_client, priced_order):
        """Test the payment link shows the payment, RO summary and shop"""
        payment = _pay(owner_client, priced_order, 20).get_json()['payment']

        data = client.get(f"/api/auto/public/pay/{payment['paymentToken']}").get_json()

        assert data['payment']['amount'] == 20.0
        assert data['repairOrder']['roNumber'] == 'RO-00001'
        assert data['repairOrder']['totalCard'] == 112.0
        assert data['shop']['name'] == 'Main Street Auto'

    def test_unknown_token(self, client, seeded):
        """Test an unknown payment token is a 404"""
        assert client.get('/api/auto/public/pay/nope').status_code == 404
