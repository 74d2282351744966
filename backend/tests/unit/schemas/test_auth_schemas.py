"""
Unit Tests for Auth Schemas
Tests for: registration rules, role normalisation, response serialization
"""
import pytest
from pydantic import ValidationError
from datetime import datetime
from types import SimpleNamespace
from uuid import uuid4

from traincrm.core.roles import UserRole
from traincrm.schemas.auth import (
    UserRegister,
    UserLogin,
    UserResponse,
    LoginResponse,
    AdminUserCreate,
    RoleUpdate,
    Token,
)


class TestUserRegister:
    """Test UserRegister schema"""

    def test_valid_registration(self):
        user = UserRegister(
            email="instructor@example.com",
            password="Training2024",
            full_name="Pat Instructor",
            organization="Northern Safety Ltd",
        )

        assert user.email == "instructor@example.com"
        assert user.organization == "Northern Safety Ltd"

    def test_short_password_fails(self):
        with pytest.raises(ValidationError):
            UserRegister(email="a@example.com", password="abc1")

    def test_password_needs_letter_and_digit(self):
        with pytest.raises(ValidationError) as exc_info:
            UserRegister(email="a@example.com", password="onlyletters")

        assert "letter and one digit" in str(exc_info.value)

        with pytest.raises(ValidationError):
            UserRegister(email="a@example.com", password="12345678")

    def test_invalid_email_fails(self):
        with pytest.raises(ValidationError):
            UserRegister(email="not-an-email", password="Training2024")

    def test_registration_has_no_role_field(self):
        """Self-registration cannot pick a role"""
        user = UserRegister(email="a@example.com", password="Training2024", role="SA")

        assert not hasattr(user, "role")


class TestAdminSchemas:

    def test_admin_create_defaults_to_new_instructor(self):
        user = AdminUserCreate(email="b@example.com", password="Training2024")

        assert user.role == UserRole.IN

    def test_role_is_normalised(self):
        assert AdminUserCreate(email="b@example.com", password="Training2024", role="ap").role == UserRole.AP
        assert RoleUpdate(role="ic").role == UserRole.IC

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            RoleUpdate(role="student")

        assert "Unknown role" in str(exc_info.value)


class TestResponses:

    def _user(self, **overrides):
        fields = dict(
            id=str(uuid4()),
            email="c@example.com",
            full_name="Casey",
            phone=None,
            organization=None,
            role=UserRole.AP,
            role_name="Authorized Provider",
            is_active=True,
            is_verified=False,
            created_at=datetime.utcnow(),
            last_login=None,
        )
        fields.update(overrides)
        return SimpleNamespace(**fields)

    def test_user_response_from_attributes(self):
        response = UserResponse.model_validate(self._user())

        assert response.role == UserRole.AP
        assert response.role_name == "Authorized Provider"
        assert response.model_dump(mode="json")["role"] == "AP"

    def test_login_response(self):
        response = LoginResponse(
            access_token="a",
            refresh_token="r",
            user=UserResponse.model_validate(self._user()),
        )

        assert response.token_type == "bearer"
        assert response.user.email == "c@example.com"

    def test_token_defaults(self):
        assert Token(access_token="a", refresh_token="r").token_type == "bearer"

    def test_login_requires_password(self):
        with pytest.raises(ValidationError):
            UserLogin(email="c@example.com")
