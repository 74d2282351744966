from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum
from datetime import datetime

from traincrm.core.database import Base
from traincrm.core.roles import UserRole, ROLE_NAMES
from traincrm.core.types import GUID, generate_uuid


class User(Base):
    """Staff account: administrators, providers and instructors"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=True)

    role = Column(SQLEnum(UserRole), default=UserRole.IN, nullable=False)
    is_active = Column(Boolean, default=True)
    is_verified = Column(Boolean, default=False)

    # Profile fields
    phone = Column(String(20), nullable=True)
    organization = Column(String(255), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    @property
    def role_name(self) -> str:
        return ROLE_NAMES.get(self.role, str(self.role))

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
