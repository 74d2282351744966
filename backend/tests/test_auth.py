import pytest
from httpx import AsyncClient


TEST_PASSWORD = "testpassword123"


@pytest.fixture
def registration_data():
    return {
        "email": "new.instructor@example.com",
        "password": "Training2024",
        "full_name": "New Instructor",
        "organization": "Prairie Rail Safety",
    }


@pytest.mark.asyncio
async def test_register_user(client: AsyncClient, registration_data):
    """Self-registration always starts at the lowest role"""
    response = await client.post("/api/v1/auth/register", json={**registration_data, "role": "SA"})

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == registration_data["email"]
    assert data["role"] == "IN"
    assert data["role_name"] == "Instructor New"
    assert "id" in data


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, registration_data):
    await client.post("/api/v1/auth/register", json=registration_data)

    response = await client.post(
        "/api/v1/auth/register",
        json={**registration_data, "email": registration_data["email"].upper()}
    )

    assert response.status_code == 400
    assert "already registered" in response.json()["detail"]


@pytest.mark.asyncio
async def test_register_weak_password(client: AsyncClient, registration_data):
    response = await client.post("/api/v1/auth/register", json={**registration_data, "password": "password"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, instructor_user):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": instructor_user.email, "password": TEST_PASSWORD}
    )

    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert "refresh_token" in data
    assert data["token_type"] == "bearer"
    assert data["user"]["role"] == "IC"
    assert data["user"]["last_login"] is not None


@pytest.mark.asyncio
async def test_login_invalid_credentials(client: AsyncClient, instructor_user):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": instructor_user.email, "password": "wrongpassword1"}
    )

    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_FAILED"


@pytest.mark.asyncio
async def test_login_inactive_account(client: AsyncClient, make_user):
    user = await make_user(is_active=False)

    response = await client.post("/api/v1/auth/login", json={"email": user.email, "password": TEST_PASSWORD})

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_refresh_token(client: AsyncClient, instructor_user):
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": instructor_user.email, "password": TEST_PASSWORD}
    )
    tokens = login.json()

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    assert "access_token" in response.json()

    # an access token is not accepted as a refresh token
    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_current_user(client: AsyncClient, auth_headers, test_user):
    response = await client.get("/api/v1/auth/me", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["email"] == test_user.email
    assert data["role"] == "IN"


@pytest.mark.asyncio
async def test_unauthorized_access(client: AsyncClient):
    response = await client.get("/api/v1/auth/me")

    # HTTPBearer answers 403 on older FastAPI releases and 401 on newer ones
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_garbage_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401
