"""
Certificate Service - certificate requests, issuance and public verification

Instructors submit requests after a course; providers approve or reject
them. Each approval issues one certificate with a verification code,
renders it to PDF and emails the recipient.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime, date
from typing import Optional, List, Dict, Any, Iterable, Tuple
import statistics
import uuid

from traincrm.core.config import settings
from traincrm.core.exceptions import (
    InsufficientRoleError,
    InvalidStateTransitionError,
    ResourceNotFoundError,
    ValidationError,
)
from traincrm.core.logging_config import get_logger
from traincrm.core.roles import UserRole, has_minimum_role
from traincrm.core.security import generate_verification_suffix
from traincrm.models.certificate import (
    Certificate,
    CertificateRequest,
    CertificateStatus,
    RequestStatus,
    AssessmentStatus,
)
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import scope_query
from traincrm.schemas.certificate import (
    CertificateRequestCreate,
    RequestActionResult,
    RequestActionFailure,
    VerificationResult,
    CertificateMetrics,
    ScoreStatistics,
)
from traincrm.services.audit_service import record_audit
from traincrm.services.certificate_pdf import render_certificate_pdf, save_certificate_pdf
from traincrm.services.email_service import email_service

logger = get_logger(__name__)


def generate_verification_code(issued_on: Optional[date] = None) -> str:
    """Verification code in the form TC-YYYYMMDD-XXXXXXXX"""
    issued_on = issued_on or date.today()
    return f"TC-{issued_on.strftime('%Y%m%d')}-{generate_verification_suffix(8)}"


def add_years(start: date, years: int) -> date:
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        # 29 February in a non-leap target year
        return start.replace(year=start.year + years, day=28)


def is_expired(certificate: Certificate, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return certificate.expiry_date is not None and certificate.expiry_date < today


def calculate_score_statistics(requests: Iterable[Any]) -> ScoreStatistics:
    """Average, median, min and max over non-null total scores, plus pass count"""
    requests = list(requests)
    scores = [r.total_score for r in requests if r.total_score is not None]
    pass_count = sum(1 for r in requests if r.assessment_status == AssessmentStatus.PASS)

    if not scores:
        return ScoreStatistics(count=0, pass_count=pass_count)

    return ScoreStatistics(
        count=len(scores),
        average=round(sum(scores) / len(scores), 2),
        median=round(statistics.median(scores), 2),
        minimum=min(scores),
        maximum=max(scores),
        pass_count=pass_count,
    )


class CertificateService:
    """Service for certificate requests and issued certificates"""

    # ==================== REQUESTS ====================

    async def submit_request(
        self,
        db: AsyncSession,
        data: CertificateRequestCreate,
        submitted_by: User,
        batch_id: Optional[str] = None,
        commit: bool = True,
    ) -> CertificateRequest:
        request = CertificateRequest(
            **data.model_dump(),
            batch_id=batch_id,
            status=RequestStatus.PENDING,
            submitted_by=str(submitted_by.id),
        )
        db.add(request)
        if commit:
            await db.commit()
            await db.refresh(request)
            logger.log_domain_event("CertificateRequest", "submitted", str(request.id))
        return request

    async def submit_batch(
        self, db: AsyncSession, items: List[CertificateRequestCreate], submitted_by: User
    ) -> List[CertificateRequest]:
        """Submit several requests under one shared batch id"""
        batch_id = str(uuid.uuid4())
        requests = [
            await self.submit_request(db, item, submitted_by, batch_id=batch_id, commit=False)
            for item in items
        ]
        await db.commit()
        for request in requests:
            await db.refresh(request)
        logger.log_domain_event("CertificateRequest", "batch_submitted", batch_id, count=len(requests))
        return requests

    async def get_request(self, db: AsyncSession, request_id: str) -> CertificateRequest:
        request = await db.get(CertificateRequest, request_id)
        if not request:
            raise ResourceNotFoundError("Certificate request", request_id)
        return request

    async def list_requests(
        self,
        db: AsyncSession,
        user: User,
        status: Optional[RequestStatus] = None,
        batch_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[CertificateRequest], int]:
        query = scope_query(select(CertificateRequest), CertificateRequest, user)
        count_query = scope_query(select(func.count(CertificateRequest.id)), CertificateRequest, user)
        if status:
            query = query.where(CertificateRequest.status == status)
            count_query = count_query.where(CertificateRequest.status == status)
        if batch_id:
            query = query.where(CertificateRequest.batch_id == batch_id)
            count_query = count_query.where(CertificateRequest.batch_id == batch_id)

        total = (await db.execute(count_query)).scalar() or 0
        query = query.order_by(CertificateRequest.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    def _require(self, user: User, minimum: UserRole, action: str) -> None:
        if not has_minimum_role(user.role, minimum):
            raise InsufficientRoleError(f"Insufficient permissions to {action}", minimum.value)

    def _check_approvable(self, request: CertificateRequest) -> None:
        if request.status != RequestStatus.PENDING:
            raise InvalidStateTransitionError(
                f"Request is {request.status.value} and cannot be approved", request.status.value
            )
        if request.assessment_status == AssessmentStatus.FAIL:
            raise InvalidStateTransitionError(
                "Request has a failing assessment and cannot be approved", request.status.value
            )

    def _issue(self, db: AsyncSession, request: CertificateRequest, issued_by: User) -> Certificate:
        issue_date = date.today()
        certificate = Certificate(
            request_id=request.id,
            recipient_name=request.recipient_name,
            email=request.email,
            course_name=request.course_name,
            location_name=request.location_name,
            instructor_name=request.instructor_name,
            issue_date=issue_date,
            expiry_date=add_years(issue_date, settings.CERTIFICATE_VALIDITY_YEARS),
            verification_code=generate_verification_code(issue_date),
            status=CertificateStatus.ACTIVE,
            issued_by=str(issued_by.id),
        )

        try:
            pdf_bytes = render_certificate_pdf(
                recipient_name=certificate.recipient_name,
                course_name=certificate.course_name,
                verification_code=certificate.verification_code,
                issue_date=certificate.issue_date,
                expiry_date=certificate.expiry_date,
                location_name=certificate.location_name,
                instructor_name=certificate.instructor_name,
            )
            certificate.file_path = str(save_certificate_pdf(pdf_bytes, certificate.verification_code))
        except Exception as e:
            logger.error(f"[CertificateService] PDF generation failed for {certificate.verification_code}: {e}", exc_info=True)

        db.add(certificate)
        return certificate

    async def approve_requests(
        self, db: AsyncSession, request_ids: List[str], reviewer: User
    ) -> RequestActionResult:
        """
        Approve pending requests and issue their certificates.

        Requests that are missing, not pending or failed are reported in
        ``failed`` and do not stop the rest of the batch.
        """
        self._require(reviewer, UserRole.AP, "approve certificate requests")
        result = RequestActionResult()
        issued: List[Certificate] = []
        now = datetime.utcnow()

        for request_id in request_ids:
            request = await db.get(CertificateRequest, request_id)
            if not request:
                result.failed.append(RequestActionFailure(request_id=request_id, error="Request not found"))
                continue
            try:
                self._check_approvable(request)
            except InvalidStateTransitionError as e:
                result.failed.append(RequestActionFailure(request_id=request_id, error=e.message))
                continue

            request.status = RequestStatus.APPROVED
            request.reviewer_id = str(reviewer.id)
            request.reviewed_at = now
            issued.append(self._issue(db, request, reviewer))
            result.processed.append(request_id)

        if result.processed:
            record_audit(
                db, str(reviewer.id), "certificate_requests_approved", "certificate_request",
                details={"request_ids": result.processed},
            )
        await db.commit()

        for certificate in issued:
            result.certificates.append(str(certificate.id))
            sent = await email_service.send_certificate_issued_email(
                certificate.email, certificate.recipient_name, certificate.course_name, certificate.verification_code
            )
            if not sent:
                logger.warning(f"[CertificateService] Certificate email not sent for {certificate.verification_code}")

        logger.log_domain_event(
            "CertificateRequest", "approved", None,
            approved=len(result.processed), failed=len(result.failed),
        )
        return result

    async def reject_requests(
        self, db: AsyncSession, request_ids: List[str], reason: str, reviewer: User
    ) -> RequestActionResult:
        self._require(reviewer, UserRole.AP, "reject certificate requests")
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required", field="reason")

        result = RequestActionResult()
        now = datetime.utcnow()
        for request_id in request_ids:
            request = await db.get(CertificateRequest, request_id)
            if not request:
                result.failed.append(RequestActionFailure(request_id=request_id, error="Request not found"))
                continue
            if request.status != RequestStatus.PENDING:
                result.failed.append(RequestActionFailure(
                    request_id=request_id,
                    error=f"Request is {request.status.value} and cannot be rejected",
                ))
                continue

            request.status = RequestStatus.REJECTED
            request.rejection_reason = reason.strip()
            request.reviewer_id = str(reviewer.id)
            request.reviewed_at = now
            result.processed.append(request_id)

        if result.processed:
            record_audit(
                db, str(reviewer.id), "certificate_requests_rejected", "certificate_request",
                details={"request_ids": result.processed, "reason": reason.strip()},
            )
        await db.commit()
        return result

    async def archive_request(self, db: AsyncSession, request_id: str, user: User) -> CertificateRequest:
        self._require(user, UserRole.AP, "archive certificate requests")
        request = await self.get_request(db, request_id)
        if request.status not in (RequestStatus.APPROVED, RequestStatus.REJECTED):
            raise InvalidStateTransitionError(
                "Only approved or rejected requests can be archived", request.status.value
            )
        request.status = RequestStatus.ARCHIVED
        await db.commit()
        await db.refresh(request)
        return request

    # ==================== CERTIFICATES ====================

    async def get_certificate(self, db: AsyncSession, certificate_id: str) -> Certificate:
        certificate = await db.get(Certificate, certificate_id)
        if not certificate:
            raise ResourceNotFoundError("Certificate", certificate_id)
        return certificate

    async def list_certificates(
        self,
        db: AsyncSession,
        user: User,
        status: Optional[CertificateStatus] = None,
        email: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[Certificate], int]:
        query = scope_query(select(Certificate), Certificate, user)
        count_query = scope_query(select(func.count(Certificate.id)), Certificate, user)
        if status:
            query = query.where(Certificate.status == status)
            count_query = count_query.where(Certificate.status == status)
        if email:
            query = query.where(Certificate.email == email)
            count_query = count_query.where(Certificate.email == email)

        total = (await db.execute(count_query)).scalar() or 0
        query = query.order_by(Certificate.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def verify_certificate(self, db: AsyncSession, verification_code: str) -> VerificationResult:
        """Public lookup by verification code"""
        code = verification_code.strip().upper()
        result = await db.execute(select(Certificate).where(Certificate.verification_code == code))
        certificate = result.scalar_one_or_none()
        if not certificate:
            return VerificationResult(valid=False, verification_code=code, message="Certificate not found")

        if certificate.status == CertificateStatus.ACTIVE and is_expired(certificate):
            certificate.status = CertificateStatus.EXPIRED
            await db.commit()

        valid = certificate.status == CertificateStatus.ACTIVE
        message = None
        if certificate.status == CertificateStatus.EXPIRED:
            message = "Certificate has expired"
        elif certificate.status == CertificateStatus.REVOKED:
            message = "Certificate has been revoked"

        return VerificationResult(
            valid=valid,
            verification_code=code,
            status=certificate.status,
            recipient_name=certificate.recipient_name,
            course_name=certificate.course_name,
            issue_date=certificate.issue_date,
            expiry_date=certificate.expiry_date,
            message=message,
        )

    async def revoke_certificate(
        self, db: AsyncSession, certificate_id: str, reason: str, revoked_by: User
    ) -> Certificate:
        self._require(revoked_by, UserRole.AD, "revoke certificates")
        certificate = await self.get_certificate(db, certificate_id)
        if certificate.status == CertificateStatus.REVOKED:
            raise InvalidStateTransitionError("Certificate is already revoked", certificate.status.value)

        certificate.status = CertificateStatus.REVOKED
        certificate.revoked_by = str(revoked_by.id)
        certificate.revoked_at = datetime.utcnow()
        certificate.revocation_reason = reason
        record_audit(
            db, str(revoked_by.id), "certificate_revoked", "certificate", certificate.id,
            details={"verification_code": certificate.verification_code, "reason": reason},
        )
        await db.commit()
        await db.refresh(certificate)
        logger.log_domain_event("Certificate", "revoked", str(certificate.id))
        return certificate

    # ==================== METRICS ====================

    async def get_certificate_metrics(self, db: AsyncSession) -> CertificateMetrics:
        request_rows = await db.execute(
            select(CertificateRequest.status, func.count(CertificateRequest.id)).group_by(CertificateRequest.status)
        )
        requests_by_status: Dict[str, int] = {s.value: 0 for s in RequestStatus}
        for status, count in request_rows.all():
            requests_by_status[status.value] = count

        certificate_rows = await db.execute(
            select(Certificate.status, func.count(Certificate.id)).group_by(Certificate.status)
        )
        certificates_by_status: Dict[str, int] = {s.value: 0 for s in CertificateStatus}
        for status, count in certificate_rows.all():
            certificates_by_status[status.value] = count

        approved = requests_by_status[RequestStatus.APPROVED.value]
        reviewed = approved + requests_by_status[RequestStatus.REJECTED.value]
        return CertificateMetrics(
            requests_by_status=requests_by_status,
            certificates_by_status=certificates_by_status,
            total_requests=sum(requests_by_status.values()),
            total_certificates=sum(certificates_by_status.values()),
            approval_rate=round(approved / reviewed * 100, 2) if reviewed else 0.0,
        )

    async def get_score_statistics(
        self, db: AsyncSession, batch_id: Optional[str] = None
    ) -> ScoreStatistics:
        query = select(CertificateRequest)
        if batch_id:
            query = query.where(CertificateRequest.batch_id == batch_id)
        result = await db.execute(query)
        return calculate_score_statistics(result.scalars().all())


certificate_service = CertificateService()
