import pytest
from datetime import date

from segvenc import create_app
from segvenc import database
from segvenc.database import create_schema, drop_schema, get_session
from segvenc.models import Company, InternalUser, NotificationEmail, UserRole


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite)."""
    app = create_app('config.TestConfig')
    # Fixture objects stay readable after a request removes the session
    database.db_session.configure(expire_on_commit=False)
    return app


@pytest.fixture(scope='function')
def client(app, session):
    """Create test client (on a fresh schema)."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Fresh schema and database session for each test."""
    database.db_session.remove()
    drop_schema()
    create_schema()
    session = get_session()
    yield session
    session.rollback()
    database.db_session.remove()


@pytest.fixture
def today():
    return date(2025, 1, 3)


@pytest.fixture(scope='function')
def company1(session):
    """Create first test company."""
    company = Company(name='Metalúrgica Alfa', notification_email='alertas@alfa.com.br')
    session.add(company)
    session.commit()
    return company


@pytest.fixture(scope='function')
def company2(session):
    """Create second test company for isolation tests."""
    company = Company(name='Transportes Beta', notification_email='rh@beta.com.br')
    session.add(company)
    session.commit()
    return company


@pytest.fixture(scope='function')
def admin1(session, company1):
    """Admin user of company1, already linked to an identity."""
    user = InternalUser(
        company_id=company1.id,
        auth_user_id='auth-admin-1',
        email='admin@alfa.com.br',
        name='Ana Admin',
        role=UserRole.ADMIN.value,
        active=True,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def member1(session, company1):
    """Regular user of company1."""
    user = InternalUser(
        company_id=company1.id,
        auth_user_id='auth-member-1',
        email='bruno@alfa.com.br',
        name='Bruno',
        role=UserRole.USER.value,
        active=True,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin2(session, company2):
    """Admin user of company2."""
    user = InternalUser(
        company_id=company2.id,
        auth_user_id='auth-admin-2',
        email='admin@beta.com.br',
        name='Carla',
        role=UserRole.ADMIN.value,
        active=True,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def recipients1(session, company1):
    """Active digest recipient for company1."""
    row = NotificationEmail(company_id=company1.id, email='alertas@alfa.com.br', name='SESMT', active=True)
    session.add(row)
    session.commit()
    return row


@pytest.fixture(scope='function')
def login_as(client):
    """Store an authenticated identity in the Flask session."""
    def _login(user):
        with client.session_transaction() as sess:
            sess['auth_user_id'] = user.auth_user_id
            sess['email'] = user.email
            sess['name'] = user.name
        return client
    return _login


@pytest.fixture(scope='function')
def authenticated_client(login_as, admin1):
    """Create authenticated client for company1's admin."""
    return login_as(admin1)
