"""
Tests for shop customers, vehicles, VIN decoding and the communication log
"""
import pytest
import requests
from unittest.mock import Mock, patch
from services.vin_decoder import decode_vin, parse_vpic_results, VinDecodeError
from validators import ValidationError

VIN = '1HGCM82633A004352'

VPIC_RESULTS = [
    {'VariableId': 29, 'Value': '2003'},
    {'VariableId': 26, 'Value': 'HONDA'},
    {'VariableId': 28, 'Value': 'Accord'},
    {'VariableId': 37, 'Value': 'Manual/Standard'},
    {'VariableId': 38, 'Value': 'Not Applicable'},
    {'VariableId': 999, 'Value': 'ignored'},
]


@pytest.mark.unit
class TestVinDecoder:
    """Tests for vPIC result parsing and lookups"""

    def test_parse_results(self):
        """Test known variables map to vehicle fields"""
        decoded = parse_vpic_results(VPIC_RESULTS)
        assert decoded['year'] == 2003
        assert decoded['make'] == 'HONDA'
        assert decoded['model'] == 'Accord'
        assert decoded['transmission'] == 'manual'
        assert decoded['trim'] is None

    def test_parse_empty_results(self):
        """Test missing results give all-None fields"""
        decoded = parse_vpic_results(None)
        assert decoded['make'] is None

    @patch('services.vin_decoder.requests.get')
    def test_decode_vin(self, mock_get):
        """Test a lookup uppercases the VIN and fills the URL template"""
        mock_get.return_value = Mock(json=Mock(return_value={'Results': VPIC_RESULTS}))

        decoded = decode_vin(VIN.lower(), 'https://vpic.example/{vin}')

        assert decoded['vin'] == VIN
        assert decoded['model'] == 'Accord'
        assert mock_get.call_args.args[0] == f'https://vpic.example/{VIN}'

    def test_decode_rejects_bad_vin(self):
        """Test malformed VINs never hit the network"""
        with pytest.raises(ValidationError):
            decode_vin('SHORT')

    @patch('services.vin_decoder.requests.get')
    def test_decode_network_failure(self, mock_get):
        """Test network errors surface as VinDecodeError"""
        mock_get.side_effect = requests.ConnectionError('down')
        with pytest.raises(VinDecodeError):
            decode_vin(VIN)


@pytest.mark.integration
class TestVinDecodeRoute:
    """Tests for /api/auto/vehicles/vin-decode/<vin>"""

    @patch('services.vin_decoder.requests.get')
    def test_decode(self, mock_get, advisor_client):
        """Test the decoded vehicle is returned under both paths"""
        mock_get.return_value = Mock(json=Mock(return_value={'Results': VPIC_RESULTS}))

        for path in ('vin-decode', 'decode-vin'):
            data = advisor_client.get(f'/api/auto/vehicles/{path}/{VIN}').get_json()
            assert data['vehicle']['make'] == 'HONDA'

    @patch('services.vin_decoder.requests.get')
    def test_upstream_failure(self, mock_get, advisor_client):
        """Test a failed lookup is a 502"""
        mock_get.side_effect = requests.ConnectionError('down')
        assert advisor_client.get(f'/api/auto/vehicles/vin-decode/{VIN}').status_code == 502

    def test_requires_login(self, client):
        """Test anonymous callers are rejected"""
        assert client.get(f'/api/auto/vehicles/vin-decode/{VIN}').status_code == 401


@pytest.mark.integration
class TestCustomers:
    """Tests for /api/auto/customers"""

    def test_create_customer_normalizes_email(self, advisor_client):
        """Test emails are stored lowercase"""
        response = advisor_client.post('/api/auto/customers', json={
            'firstName': 'Dana', 'lastName': 'Driver', 'email': 'Dana@Example.COM'
        })
        assert response.status_code == 201
        assert response.get_json()['customer']['email'] == 'dana@example.com'

    def test_create_customer_requires_names(self, advisor_client):
        """Test first and last names are required"""
        response = advisor_client.post('/api/auto/customers', json={'firstName': 'Dana'})
        assert response.status_code == 400

    def test_create_customer_rejects_bad_contact(self, advisor_client):
        """Test email and phone formats are checked"""
        bad_email = advisor_client.post('/api/auto/customers', json={
            'firstName': 'A', 'lastName': 'B', 'email': 'not-an-email'
        })
        assert bad_email.status_code == 400
        assert bad_email.get_json()['field'] == 'email'
        bad_phone = advisor_client.post('/api/auto/customers', json={
            'firstName': 'A', 'lastName': 'B', 'phone': 'call me'
        })
        assert bad_phone.get_json()['field'] == 'phone'

    def test_search_and_paging(self, advisor_client, customer_vehicle):
        """Test search by name and the page envelope"""
        advisor_client.post('/api/auto/customers', json={'firstName': 'Zed', 'lastName': 'Zulu'})

        data = advisor_client.get('/api/auto/customers?search=carl').get_json()
        assert data['total'] == 1
        assert data['page'] == 1
        assert data['customers'][0]['firstName'] == 'Carl'

        page_two = advisor_client.get('/api/auto/customers?limit=1&page=2').get_json()
        assert page_two['total'] == 2
        assert len(page_two['customers']) == 1

    def test_customer_detail(self, advisor_client, repair_order, customer_vehicle):
        """Test the detail includes vehicles and repair orders"""
        customer, vehicle = customer_vehicle
        data = advisor_client.get(f"/api/auto/customers/{customer['id']}").get_json()
        assert [v['id'] for v in data['vehicles']] == [vehicle['id']]
        assert [r['id'] for r in data['repairOrders']] == [repair_order['id']]

    def test_update_customer(self, advisor_client, customer_vehicle):
        """Test patching a customer"""
        customer, _ = customer_vehicle
        response = advisor_client.patch(f"/api/auto/customers/{customer['id']}", json={'notes': 'Prefers texts'})
        assert response.get_json()['customer']['notes'] == 'Prefers texts'

    def test_other_shop_customer_is_404(self, app, customer_vehicle, db_session):
        """Test customers are scoped to the caller's shop"""
        from services.shop_repository import create_shop
        other = create_shop(db_session, {
            'name': 'Other', 'slug': 'other', 'ownerEmail': 'o@other.com',
            'ownerPassword': 'password123', 'ownerFirstName': 'O', 'ownerLastName': 'O',
        })
        db_session.commit()
        other_client = app.test_client()
        with other_client.session_transaction() as sess:
            sess['auto_user_id'] = other['owner']['id']
            sess['auto_shop_id'] = other['shop']['id']
            sess['auto_role'] = 'owner'

        customer, _ = customer_vehicle
        assert other_client.get(f"/api/auto/customers/{customer['id']}").status_code == 404


@pytest.mark.integration
class TestVehicles:
    """Tests for /api/auto/vehicles"""

    def test_vehicle_requires_known_customer(self, advisor_client, seeded):
        """Test vehicles need an existing customer"""
        assert advisor_client.post('/api/auto/vehicles', json={'make': 'Ford'}).status_code == 400
        assert advisor_client.post('/api/auto/vehicles', json={'customerId': 999}).status_code == 404

    def test_vehicle_values_normalized(self, advisor_client, customer_vehicle):
        """Test VINs are uppercased and years parsed"""
        customer, _ = customer_vehicle
        vehicle = advisor_client.post('/api/auto/vehicles', json={
            'customerId': customer['id'], 'year': '2020', 'vin': VIN.lower(), 'make': 'Toyota'
        }).get_json()['vehicle']
        assert vehicle['year'] == 2020
        assert vehicle['vin'] == VIN

        vehicles = advisor_client.get(f"/api/auto/vehicles?customerId={customer['id']}").get_json()['vehicles']
        assert len(vehicles) == 2

    def test_bad_year(self, advisor_client, customer_vehicle):
        """Test non-numeric years are a 400"""
        customer, _ = customer_vehicle
        response = advisor_client.post('/api/auto/vehicles', json={'customerId': customer['id'], 'year': 'old'})
        assert response.status_code == 400

    def test_update_vehicle(self, advisor_client, customer_vehicle):
        """Test patching mileage"""
        _, vehicle = customer_vehicle
        response = advisor_client.patch(f"/api/auto/vehicles/{vehicle['id']}", json={'mileage': '45210'})
        assert response.get_json()['vehicle']['mileage'] == 45210
        assert advisor_client.patch('/api/auto/vehicles/999', json={}).status_code == 404

    @patch('services.vin_decoder.requests.get')
    def test_decode_vin_route(self, mock_get, advisor_client):
        """Test the VIN route returns decoded fields"""
        mock_get.return_value = Mock(json=Mock(return_value={'Results': VPIC_RESULTS}))
        data = advisor_client.get(f'/api/auto/vehicles/decode-vin/{VIN}').get_json()
        assert data['vehicle']['make'] == 'HONDA'

    @patch('services.vin_decoder.requests.get')
    def test_decode_vin_route_upstream_failure(self, mock_get, advisor_client):
        """Test an upstream failure is a 502"""
        mock_get.side_effect = requests.Timeout('slow')
        assert advisor_client.get(f'/api/auto/vehicles/decode-vin/{VIN}').status_code == 502

    def test_decode_vin_route_bad_vin(self, advisor_client):
        """Test a malformed VIN is a 400"""
        assert advisor_client.get('/api/auto/vehicles/decode-vin/ABC').status_code == 400


@pytest.mark.integration
class TestCommunicationLog:
    """Tests for the outbound message log"""

    def test_log_and_history(self, advisor_client, customer_vehicle):
        """Test entries are stored with a preview and the sender's name"""
        customer, _ = customer_vehicle
        response = advisor_client.post('/api/auto/communication/log', json={
            'customerId': customer['id'],
            'channel': 'sms',
            'body': 'x' * 500,
            'recipientPhone': '5551234567',
        })
        assert response.status_code == 201
        assert len(response.get_json()['communication']['bodyPreview']) == 200

        history = advisor_client.get(f"/api/auto/communication/customer/{customer['id']}").get_json()
        assert history['communications'][0]['userName'] == 'Ada Staff'

    def test_log_rejects_unknown_channel(self, advisor_client, customer_vehicle):
        """Test only sms, email and phone are accepted"""
        customer, _ = customer_vehicle
        response = advisor_client.post('/api/auto/communication/log', json={
            'customerId': customer['id'], 'channel': 'fax'
        })
        assert response.status_code == 400
