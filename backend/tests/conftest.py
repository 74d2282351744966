"""
TrainCRM - Test Configuration and Fixtures
"""
import os
import tempfile
from typing import AsyncGenerator, Callable
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment before the settings object is built
os.environ['TESTING'] = 'true'
os.environ['ENVIRONMENT'] = 'test'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test_traincrm.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['SENDGRID_API_KEY'] = ''
os.environ['SMTP_HOST'] = ''
os.environ['CERTIFICATE_STORAGE_PATH'] = tempfile.mkdtemp(prefix='traincrm-certs-')

from traincrm.main import app
from traincrm.core.database import Base, get_db
from traincrm.core.roles import UserRole
from traincrm.core.security import get_password_hash, create_access_token, token_claims
from traincrm.models.user import User
import traincrm.models  # noqa: F401

fake = Faker()

TEST_PASSWORD = 'testpassword123'

# Test database setup
TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test_traincrm.db'
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    """Factory: ``await make_user(UserRole.AP)`` creates and persists a user"""
    async def _make(role: UserRole = UserRole.IN, **overrides) -> User:
        fields = {
            'email': fake.unique.email(),
            'hashed_password': get_password_hash(TEST_PASSWORD),
            'full_name': fake.name(),
            'role': role,
            'is_active': True,
            'is_verified': True,
        }
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
async def system_admin(make_user) -> User:
    return await make_user(UserRole.SA)


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user(UserRole.AD)


@pytest.fixture
async def provider_user(make_user) -> User:
    return await make_user(UserRole.AP)


@pytest.fixture
async def instructor_user(make_user) -> User:
    return await make_user(UserRole.IC)


@pytest.fixture
async def test_user(make_user) -> User:
    """Lowest-privilege account (Instructor New)"""
    return await make_user(UserRole.IN)


def headers_for(user: User) -> dict:
    """Bearer headers for ``user``"""
    token = create_access_token(token_claims(user))
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def auth_headers_for() -> Callable:
    return headers_for


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return headers_for(test_user)


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def sa_auth_headers(system_admin: User) -> dict:
    return headers_for(system_admin)


@pytest.fixture
def provider_auth_headers(provider_user: User) -> dict:
    return headers_for(provider_user)


@pytest.fixture
def instructor_auth_headers(instructor_user: User) -> dict:
    return headers_for(instructor_user)
