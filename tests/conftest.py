"""
Pytest configuration and shared fixtures
"""
import os
import sys
import pytest
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

os.environ.setdefault('FLASK_ENV', 'testing')

TEST_PASSWORD = 'password123'


@pytest.fixture
def app_config():
    """Fixture providing test configuration"""
    from config import TestingConfig
    return TestingConfig


@pytest.fixture
def test_env_vars():
    """Fixture providing test environment variables"""
    original_env = os.environ.copy()

    os.environ['FLASK_ENV'] = 'testing'
    os.environ['SECRET_KEY'] = 'test-secret-key-minimum-32-chars-long-for-security'
    os.environ['ANTHROPIC_API_KEY'] = 'test-anthropic-key'
    os.environ['OPENAI_API_KEY'] = 'test-openai-key'

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ============================================================================
# APP & DATABASE
# ============================================================================

@pytest.fixture
def app():
    """Flask app bound to a fresh in-memory SQLite database"""
    from app_init import create_app
    from database.connection import drop_db, init_db

    flask_app = create_app('testing')
    drop_db()
    init_db()

    yield flask_app

    drop_db()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    """A session on the test database, committed by the test as needed"""
    from database.connection import get_session_factory

    session = get_session_factory()()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# SEEDED DATA
# ============================================================================

@pytest.fixture
def seeded(db_session):
    """
    One organization with a master admin, a relationship manager and two
    agents, plus one shop with an owner, an advisor and a technician.
    """
    from auth import safe_generate_password_hash
    from database.models import Organization, User
    from database.auto_models import AutoUser
    from services.shop_repository import create_shop

    org = Organization(name='Test Org', slug='test-org', settings={})
    db_session.add(org)
    db_session.flush()

    password_hash = safe_generate_password_hash(TEST_PASSWORD)
    users = {}
    for username, role in (
        ('admin', 'master_admin'),
        ('manager', 'relationship_manager'),
        ('agent', 'agent'),
        ('agent2', 'agent'),
    ):
        user = User(
            organization_id=org.id,
            email=f'{username}@example.com',
            username=username,
            password_hash=password_hash,
            display_name=username.title(),
            role=role,
            is_active=True
        )
        db_session.add(user)
        users[username] = user
    db_session.flush()

    result = create_shop(db_session, {
        'name': 'Main Street Auto',
        'slug': 'main-street-auto',
        'ownerEmail': 'owner@mainstreet.com',
        'ownerPassword': TEST_PASSWORD,
        'ownerFirstName': 'Olive',
        'ownerLastName': 'Owner',
        'taxRate': 0.08,
        'laborRate': 100,
        'cardFeePercent': 0.04,
    })
    shop_id = result['shop']['id']
    owner_id = result['owner']['id']

    staff = {}
    for first, role in (('Ada', 'advisor'), ('Tom', 'technician'), ('Tina', 'technician')):
        member = AutoUser(
            shop_id=shop_id,
            email=f'{first.lower()}@mainstreet.com',
            password_hash=password_hash,
            first_name=first,
            last_name='Staff',
            role=role
        )
        db_session.add(member)
        staff[first.lower()] = member
    db_session.commit()

    return {
        'org_id': org.id,
        'admin_id': users['admin'].id,
        'manager_id': users['manager'].id,
        'agent_id': users['agent'].id,
        'agent2_id': users['agent2'].id,
        'shop_id': shop_id,
        'owner_id': owner_id,
        'advisor_id': staff['ada'].id,
        'tech_id': staff['tom'].id,
        'tech2_id': staff['tina'].id,
    }


# ============================================================================
# LOGGED IN CLIENTS
# ============================================================================

def _pipeline_client(app, seeded, user_key, role):
    test_client = app.test_client()
    with test_client.session_transaction() as sess:
        sess['user_id'] = seeded[user_key]
        sess['organization_id'] = seeded['org_id']
        sess['user_name'] = user_key.replace('_id', '')
        sess['user_role'] = role
    return test_client


def _auto_client(app, seeded, user_key, role):
    test_client = app.test_client()
    with test_client.session_transaction() as sess:
        sess['auto_user_id'] = seeded[user_key]
        sess['auto_shop_id'] = seeded['shop_id']
        sess['auto_role'] = role
    return test_client


@pytest.fixture
def agent_client(app, seeded):
    return _pipeline_client(app, seeded, 'agent_id', 'agent')


@pytest.fixture
def agent2_client(app, seeded):
    return _pipeline_client(app, seeded, 'agent2_id', 'agent')


@pytest.fixture
def manager_client(app, seeded):
    return _pipeline_client(app, seeded, 'manager_id', 'relationship_manager')


@pytest.fixture
def admin_client(app, seeded):
    return _pipeline_client(app, seeded, 'admin_id', 'master_admin')


@pytest.fixture
def owner_client(app, seeded):
    return _auto_client(app, seeded, 'owner_id', 'owner')


@pytest.fixture
def advisor_client(app, seeded):
    return _auto_client(app, seeded, 'advisor_id', 'advisor')


@pytest.fixture
def tech_client(app, seeded):
    return _auto_client(app, seeded, 'tech_id', 'technician')


@pytest.fixture
def tech2_client(app, seeded):
    return _auto_client(app, seeded, 'tech2_id', 'technician')


# ============================================================================
# AUTO SHOP HELPERS
# ============================================================================

@pytest.fixture
def customer_vehicle(owner_client):
    """A customer with one vehicle, created through the API"""
    customer = owner_client.post('/api/auto/customers', json={
        'firstName': 'Carl',
        'lastName': 'Customer',
        'phone': '5551234567',
        'email': 'carl@example.com',
    }).get_json()['customer']
    vehicle = owner_client.post('/api/auto/vehicles', json={
        'customerId': customer['id'],
        'year': 2018,
        'make': 'Honda',
        'model': 'Civic',
    }).get_json()['vehicle']
    return customer, vehicle


@pytest.fixture
def repair_order(owner_client, customer_vehicle):
    """An estimate-status repair order with no lines"""
    customer, vehicle = customer_vehicle
    response = owner_client.post('/api/auto/repair-orders', json={
        'customerId': customer['id'],
        'vehicleId': vehicle['id'],
        'customerConcern': 'Brakes squeal',
    })
    return response.get_json()['repairOrder']


@pytest.fixture
def mock_ai_response():
    """Fixture providing a canned AI completion"""
    return 'This is a test response from the AI'
