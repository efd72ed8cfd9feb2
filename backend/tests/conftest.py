"""
Pytest fixtures for the POS cloud backend tests.

Provides the test database, two tenants with owner-app users, and helpers
for the session and override-key headers.
"""

import pytest

from poscloud import create_app
from poscloud.extensions import db
from poscloud.models import Company
from poscloud.services.auth_service import create_user


OVERRIDE_KEY = "test-override-key"
PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'OVERRIDE_API_KEY': OVERRIDE_KEY,
        'ALLOW_PUBLIC_CLOUD': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def company_a(db_session):
    """Company A (first tenant)."""
    company = Company(name="Colmado A", rnc="131123456", cloud_company_id="FP-A", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def company_b(db_session):
    """Company B (second tenant)."""
    company = Company(name="Farmacia B", rnc="101999888", cloud_company_id="FP-B", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def owner_a(db_session, company_a):
    return create_user(company_a.id, "owner_a", PASSWORD, role="owner", rounds=4)


@pytest.fixture(scope='function')
def owner_b(db_session, company_b):
    return create_user(company_b.id, "owner_b", PASSWORD, role="owner", rounds=4)


@pytest.fixture(scope='function')
def cashier_a(db_session, company_a):
    return create_user(company_a.id, "cashier_a", PASSWORD, role="cashier", rounds=4)


def get_auth_token(client, company_id: int, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'companyId': company_id,
        'username': username,
        'password': password,
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def key_headers(key: str = OVERRIDE_KEY) -> dict:
    """Headers a POS terminal sends."""
    return {'X-Override-Key': key}


@pytest.fixture(scope='function')
def owner_a_headers(client, owner_a):
    return auth_headers(get_auth_token(client, owner_a.company_id, owner_a.username))


@pytest.fixture(scope='function')
def owner_b_headers(client, owner_b):
    return auth_headers(get_auth_token(client, owner_b.company_id, owner_b.username))


@pytest.fixture(scope='function')
def cashier_a_headers(client, cashier_a):
    return auth_headers(get_auth_token(client, cashier_a.company_id, cashier_a.username))
