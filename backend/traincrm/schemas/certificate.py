"""
Certificate Schemas
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from typing import Optional, List, Dict
from datetime import date, datetime

from traincrm.models.certificate import AssessmentStatus, RequestStatus, CertificateStatus


class CertificateRequestCreate(BaseModel):
    recipient_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    course_name: str = Field(..., min_length=1, max_length=255)
    location_name: Optional[str] = None
    instructor_name: Optional[str] = None
    course_date: Optional[date] = None
    roster_id: Optional[str] = None
    training_session_id: Optional[str] = None
    assessment_status: Optional[AssessmentStatus] = None
    practical_score: Optional[float] = Field(None, ge=0, le=100)
    written_score: Optional[float] = Field(None, ge=0, le=100)
    total_score: Optional[float] = Field(None, ge=0, le=100)

    @model_validator(mode="after")
    def fill_total_score(self):
        if self.total_score is None and self.practical_score is not None and self.written_score is not None:
            self.total_score = round((self.practical_score + self.written_score) / 2, 2)
        return self


class BatchCertificateRequestCreate(BaseModel):
    requests: List[CertificateRequestCreate] = Field(..., min_length=1)


class CertificateRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    batch_id: Optional[str] = None
    recipient_name: str
    email: str
    course_name: str
    location_name: Optional[str] = None
    instructor_name: Optional[str] = None
    course_date: Optional[date] = None
    assessment_status: Optional[AssessmentStatus] = None
    practical_score: Optional[float] = None
    written_score: Optional[float] = None
    total_score: Optional[float] = None
    status: RequestStatus
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime


class ApproveRequests(BaseModel):
    request_ids: List[str] = Field(..., min_length=1)


class RejectRequests(BaseModel):
    request_ids: List[str] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)


class RequestActionFailure(BaseModel):
    request_id: str
    error: str


class RequestActionResult(BaseModel):
    processed: List[str] = []
    failed: List[RequestActionFailure] = []
    certificates: List[str] = []


class CertificateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    request_id: Optional[str] = None
    recipient_name: str
    email: str
    course_name: str
    location_name: Optional[str] = None
    instructor_name: Optional[str] = None
    issue_date: date
    expiry_date: Optional[date] = None
    verification_code: str
    status: CertificateStatus
    revocation_reason: Optional[str] = None
    created_at: datetime


class RevokeRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class VerificationResult(BaseModel):
    valid: bool
    verification_code: str
    status: Optional[CertificateStatus] = None
    recipient_name: Optional[str] = None
    course_name: Optional[str] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    message: Optional[str] = None


class CertificateMetrics(BaseModel):
    requests_by_status: Dict[str, int]
    certificates_by_status: Dict[str, int]
    total_requests: int
    total_certificates: int
    approval_rate: float


class ScoreStatistics(BaseModel):
    count: int
    average: Optional[float] = None
    median: Optional[float] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    pass_count: int = 0


class CertificateRequestListResponse(BaseModel):
    requests: List[CertificateRequestResponse]
    total: int
    page: int
    page_size: int


class CertificateListResponse(BaseModel):
    certificates: List[CertificateResponse]
    total: int
    page: int
    page_size: int
