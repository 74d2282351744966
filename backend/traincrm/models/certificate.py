"""
Certificate Models

CertificateRequest is what an instructor submits after a course; an
approved request produces exactly one Certificate.
"""

from sqlalchemy import Column, String, DateTime, Date, Float, Text, ForeignKey, Enum as SQLEnum, Index
from datetime import datetime, date
import enum

from traincrm.core.database import Base
from traincrm.core.types import GUID, generate_uuid


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"


class AssessmentStatus(str, enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class CertificateStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class CertificateRequest(Base):
    __tablename__ = "certificate_requests"

    __table_args__ = (
        Index('ix_certificate_requests_status', 'status'),
        Index('ix_certificate_requests_batch', 'batch_id'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    roster_id = Column(GUID, ForeignKey("rosters.id", ondelete="SET NULL"), nullable=True)
    training_session_id = Column(GUID, ForeignKey("training_sessions.id", ondelete="SET NULL"), nullable=True)
    batch_id = Column(String(36), nullable=True)

    recipient_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    course_name = Column(String(255), nullable=False)
    location_name = Column(String(255), nullable=True)
    instructor_name = Column(String(255), nullable=True)
    course_date = Column(Date, nullable=True)

    assessment_status = Column(SQLEnum(AssessmentStatus), nullable=True)
    practical_score = Column(Float, nullable=True)
    written_score = Column(Float, nullable=True)
    total_score = Column(Float, nullable=True)

    status = Column(SQLEnum(RequestStatus), default=RequestStatus.PENDING, nullable=False)
    rejection_reason = Column(Text, nullable=True)
    reviewer_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    submitted_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<CertificateRequest {self.recipient_name} {self.status}>"


class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    request_id = Column(GUID, ForeignKey("certificate_requests.id", ondelete="SET NULL"), nullable=True, unique=True)

    recipient_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    course_name = Column(String(255), nullable=False)
    location_name = Column(String(255), nullable=True)
    instructor_name = Column(String(255), nullable=True)

    issue_date = Column(Date, default=date.today, nullable=False)
    expiry_date = Column(Date, nullable=True)
    verification_code = Column(String(40), unique=True, nullable=False, index=True)
    status = Column(SQLEnum(CertificateStatus), default=CertificateStatus.ACTIVE, nullable=False)
    file_path = Column(String(500), nullable=True)

    issued_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    revoked_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    revoked_at = Column(DateTime, nullable=True)
    revocation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Certificate {self.verification_code}>"
