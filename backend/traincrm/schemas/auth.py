from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime

from traincrm.core.roles import UserRole, coerce_role


class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    organization: Optional[str] = Field(None, max_length=255)

    @field_validator('password')
    @classmethod
    def password_has_letter_and_digit(cls, v: str) -> str:
        if not any(c.isalpha() for c in v) or not any(c.isdigit() for c in v):
            raise ValueError('Password must contain at least one letter and one digit')
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    organization: Optional[str] = None
    role: UserRole
    role_name: str
    is_active: bool
    is_verified: bool
    created_at: datetime
    last_login: Optional[datetime] = None


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse


# ============================================
# Admin user management
# ============================================

class AdminUserCreate(UserRegister):
    """Accounts created by an administrator may start above IN"""
    role: UserRole = UserRole.IN

    @field_validator('role', mode='before')
    @classmethod
    def normalise_role(cls, v):
        parsed = coerce_role(v)
        if parsed is None:
            raise ValueError(f"Unknown role: {v}")
        return parsed


class RoleUpdate(BaseModel):
    role: UserRole
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator('role', mode='before')
    @classmethod
    def normalise_role(cls, v):
        parsed = coerce_role(v)
        if parsed is None:
            raise ValueError(f"Unknown role: {v}")
        return parsed


class UserStatusUpdate(BaseModel):
    is_active: bool
    reason: Optional[str] = Field(None, max_length=500)


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
    page: int
    page_size: int
