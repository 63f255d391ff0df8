"""
Tests for digital vehicle inspections
"""
import pytest
from types import SimpleNamespace
from services.dvi_repository import (
    STANDARD_TEMPLATE_CATEGORIES, condition_counts, standard_template_categories
)

STANDARD_ITEM_COUNT = sum(len(items) for _, items in STANDARD_TEMPLATE_CATEGORIES)


@pytest.mark.unit
class TestTemplateHelpers:
    """Tests for the standard template and condition tallies"""

    def test_standard_categories_shape(self):
        """Test categories and items are numbered from one"""
        categories = standard_template_categories()

        assert [c['name'] for c in categories][:2] == ['Under Hood', 'Under Vehicle']
        assert categories[0]['sortOrder'] == 1
        assert categories[0]['items'][0] == {'name': 'Engine Oil Level & Condition', 'sortOrder': 1}
        assert sum(len(c['items']) for c in categories) == STANDARD_ITEM_COUNT

    def test_condition_counts(self):
        """Test unknown conditions count as not inspected"""
        items = [
            SimpleNamespace(condition='good'),
            SimpleNamespace(condition='poor'),
            {'condition': 'fair'},
            {'condition': None},
            SimpleNamespace(condition='mystery'),
        ]
        counts = condition_counts(items)

        assert counts == {'good': 1, 'fair': 1, 'poor': 1, 'not_inspected': 2, 'total': 5}


@pytest.fixture
def template(tech_client):
    return tech_client.get('/api/auto/dvi/templates').get_json()['templates'][0]


@pytest.fixture
def inspection(tech_client, repair_order, template):
    response = tech_client.post('/api/auto/dvi/inspections', json={
        'repairOrderId': repair_order['id'],
        'templateId': template['id'],
        'vehicleMileage': 45210,
    })
    return response.get_json()['inspection']


@pytest.mark.integration
class TestInspections:
    """Tests for /api/auto/dvi"""

    def test_new_shop_has_standard_template(self, template):
        """Test shops are provisioned with the default checklist"""
        assert template['name'] == 'Standard Multi-Point Inspection'
        assert template['isDefault'] is True
        assert len(template['categories']) == len(STANDARD_TEMPLATE_CATEGORIES)

    def test_create_from_template(self, tech_client, inspection, repair_order, seeded):
        """Test the checklist is copied as good items"""
        assert inspection['status'] == 'in_progress'
        assert inspection['technicianId'] == seeded['tech_id']
        assert inspection['customerId'] == repair_order['customerId']
        assert inspection['vehicleMileage'] == 45210
        assert len(inspection['publicToken']) == 64

        detail = tech_client.get(f"/api/auto/dvi/inspections/{inspection['id']}").get_json()
        assert len(detail['items']) == STANDARD_ITEM_COUNT
        assert all(item['condition'] == 'good' for item in detail['items'])
        assert detail['conditionCounts']['good'] == STANDARD_ITEM_COUNT

    def test_create_without_template(self, tech_client, repair_order):
        """Test an inspection can start with an empty checklist"""
        response = tech_client.post('/api/auto/dvi/inspections', json={'repairOrderId': repair_order['id']})
        assert response.status_code == 201

        detail = tech_client.get(f"/api/auto/dvi/inspections/{response.get_json()['inspection']['id']}").get_json()
        assert detail['items'] == []

    def test_create_unknown_references(self, tech_client, repair_order):
        """Test unknown ROs and templates are 404s"""
        assert tech_client.post('/api/auto/dvi/inspections', json={'repairOrderId': 999}).status_code == 404
        response = tech_client.post('/api/auto/dvi/inspections', json={
            'repairOrderId': repair_order['id'], 'templateId': 999,
        })
        assert response.status_code == 404

    def test_list(self, advisor_client, inspection):
        """Test the list carries RO, customer, vehicle and technician"""
        rows = advisor_client.get('/api/auto/dvi/inspections').get_json()['inspections']

        assert len(rows) == 1
        assert rows[0]['repairOrder']['roNumber'] == 'RO-00001'
        assert rows[0]['customer']['firstName'] == 'Carl'
        assert rows[0]['vehicle']['make'] == 'Honda'
        assert rows[0]['technician']['firstName'] == 'Tom'
        assert rows[0]['conditionCounts']['total'] == STANDARD_ITEM_COUNT

    def test_ro_detail_lists_inspections(self, owner_client, inspection, repair_order):
        """Test inspections show up on the repair order"""
        detail = owner_client.get(f"/api/auto/repair-orders/{repair_order['id']}").get_json()
        assert [i['id'] for i in detail['inspections']] == [inspection['id']]

    def test_update_item(self, tech_client, inspection):
        """Test recording a condition, notes and photos"""
        items = tech_client.get(f"/api/auto/dvi/inspections/{inspection['id']}").get_json()['items']

        response = tech_client.patch(f"/api/auto/dvi/items/{items[0]['id']}", json={
            'condition': 'poor',
            'notes': 'Oil is black',
            'photoUrls': ['https://photos.example/oil.jpg'],
        })
        item = response.get_json()['item']
        assert item['condition'] == 'poor'
        assert item['notes'] == 'Oil is black'
        assert item['photoUrls'] == ['https://photos.example/oil.jpg']

        counts = tech_client.get(f"/api/auto/dvi/inspections/{inspection['id']}").get_json()['conditionCounts']
        assert counts['poor'] == 1

    def test_update_item_validation(self, tech_client, inspection):
        """Test blank conditions and non-list photos are rejected"""
        items = tech_client.get(f"/api/auto/dvi/inspections/{inspection['id']}").get_json()['items']
        url = f"/api/auto/dvi/items/{items[0]['id']}"

        assert tech_client.patch(url, json={'condition': ''}).get_json()['field'] == 'condition'
        assert tech_client.patch(url, json={'photoUrls': 'oil.jpg'}).status_code == 400
        assert tech_client.patch('/api/auto/dvi/items/99999', json={'notes': 'x'}).status_code == 404

    def test_complete_and_send(self, tech_client, inspection):
        """Test status moves to completed then sent"""
        completed = tech_client.post(f"/api/auto/dvi/inspections/{inspection['id']}/complete").get_json()
        assert completed['inspection']['status'] == 'completed'
        assert completed['inspection']['completedAt'] is not None

        sent = tech_client.post(f"/api/auto/dvi/inspections/{inspection['id']}/send").get_json()
        assert sent['inspection']['status'] == 'sent'
        assert sent['inspection']['sentToCustomerAt'] is not None

    def test_unknown_inspection(self, tech_client, seeded):
        """Test unknown inspections are 404s"""
        assert tech_client.get('/api/auto/dvi/inspections/999').status_code == 404
        assert tech_client.post('/api/auto/dvi/inspections/999/complete').status_code == 404
        assert tech_client.post('/api/auto/dvi/inspections/999/send').status_code == 404
        assert tech_client.get('/api/auto/dvi/inspections/999/pdf').status_code == 404

    def test_pdf(self, tech_client, inspection):
        """Test the inspection report renders as a PDF"""
        response = tech_client.get(f"/api/auto/dvi/inspections/{inspection['id']}/pdf")

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')
        assert f"inspection-{inspection['id']}.pdf" in response.headers['Content-Disposition']


@pytest.mark.integration
class TestPublicInspection:
    """Tests for /api/auto/public/dvi/<token>"""

    def test_view_records_first_visit(self, client, tech_client, inspection):
        """Test the customer view is public and stamps the first view only"""
        url = f"/api/auto/public/dvi/{inspection['publicToken']}"

        first = client.get(url).get_json()
        assert first['shop']['name'] == 'Main Street Auto'
        assert first['customer'] == {'firstName': 'Carl'}
        assert first['vehicle']['model'] == 'Civic'
        assert first['technician']['lastName'] == 'Staff'
        assert first['repairOrder']['roNumber'] == 'RO-00001'
        assert len(first['items']) == STANDARD_ITEM_COUNT
        viewed_at = first['inspection']['customerViewedAt']
        assert viewed_at is not None

        second = client.get(url).get_json()
        assert second['inspection']['customerViewedAt'] == viewed_at

    def test_unknown_token(self, client, seeded):
        """Test an unknown token is a 404"""
        assert client.get('/api/auto/public/dvi/nope').status_code == 404

    def test_alternate_view_path(self, client, inspection):
        """Test the report is also served under /dvi/public/<token>"""
        data = client.get(f"/api/auto/dvi/public/{inspection['publicToken']}").get_json()
        assert data['inspection']['id'] == inspection['id']

    def test_public_pdf(self, client, inspection):
        """Test the customer can download the report PDF by token"""
        response = client.get(f"/api/auto/dvi/public/{inspection['publicToken']}/pdf")

        assert response.status_code == 200
        assert response.data.startswith(b'%PDF')
        assert f"inspection-{inspection['id']}.pdf" in response.headers['Content-Disposition']
        assert client.get('/api/auto/dvi/public/nope/pdf').status_code == 404
