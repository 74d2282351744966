"""
Unit Tests for the Certificate Service
Tests for: approval and issuance, rejection, verification, revocation, metrics
"""
import pytest
import re
from datetime import date, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from traincrm.core.exceptions import InsufficientRoleError, InvalidStateTransitionError, ValidationError
from traincrm.models.certificate import AssessmentStatus, CertificateStatus, RequestStatus
from traincrm.schemas.certificate import CertificateRequestCreate
from traincrm.services.certificate_pdf import render_certificate_pdf
from traincrm.services.certificate_service import (
    certificate_service,
    add_years,
    calculate_score_statistics,
    generate_verification_code,
)


def _request_data(**overrides):
    fields = dict(
        recipient_name="Jordan Lee",
        email="jordan@example.com",
        course_name="Standard First Aid",
        assessment_status=AssessmentStatus.PASS,
        practical_score=90,
        written_score=80,
    )
    fields.update(overrides)
    return CertificateRequestCreate(**fields)


@pytest.fixture(autouse=True)
def no_email():
    with patch(
        "traincrm.services.certificate_service.email_service.send_certificate_issued_email",
        new=AsyncMock(return_value=True),
    ) as mocked:
        yield mocked


class TestHelpers:

    def test_verification_code_format(self):
        code = generate_verification_code(date(2030, 3, 15))

        assert re.fullmatch(r"TC-20300315-[0-9A-F]{8}", code)

    def test_add_years_leap_day(self):
        assert add_years(date(2028, 2, 29), 2) == date(2030, 2, 28)
        assert add_years(date(2030, 6, 1), 2) == date(2032, 6, 1)

    def test_total_score_is_average_of_parts(self):
        assert _request_data().total_score == 85.0

    def test_score_statistics(self):
        rows = [
            SimpleNamespace(total_score=70, assessment_status=AssessmentStatus.PASS),
            SimpleNamespace(total_score=90, assessment_status=AssessmentStatus.PASS),
            SimpleNamespace(total_score=50, assessment_status=AssessmentStatus.FAIL),
            SimpleNamespace(total_score=None, assessment_status=None),
        ]

        stats = calculate_score_statistics(rows)

        assert stats.count == 3
        assert stats.average == 70.0
        assert stats.median == 70.0
        assert stats.minimum == 50
        assert stats.maximum == 90
        assert stats.pass_count == 2

    def test_score_statistics_empty(self):
        stats = calculate_score_statistics([])

        assert stats.count == 0
        assert stats.average is None

    def test_pdf_rendering(self):
        pdf = render_certificate_pdf(
            recipient_name="Jordan Lee",
            course_name="Standard First Aid",
            verification_code="TC-20300315-ABCDEF12",
            issue_date=date(2030, 3, 15),
            expiry_date=date(2032, 3, 15),
        )

        assert pdf.startswith(b"%PDF")


class TestApproval:
    """Approving requests issues certificates"""

    @pytest.mark.asyncio
    async def test_approve_issues_certificate(self, db_session, provider_user, instructor_user, no_email):
        request = await certificate_service.submit_request(db_session, _request_data(), instructor_user)

        result = await certificate_service.approve_requests(db_session, [request.id], provider_user)
        certificate = await certificate_service.get_certificate(db_session, result.certificates[0])

        assert result.processed == [request.id]
        assert request.status == RequestStatus.APPROVED
        assert certificate.status == CertificateStatus.ACTIVE
        assert certificate.verification_code.startswith("TC-")
        assert certificate.file_path is not None
        no_email.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_assessment_not_approvable(self, db_session, provider_user, instructor_user):
        passed = await certificate_service.submit_request(db_session, _request_data(), instructor_user)
        failed = await certificate_service.submit_request(
            db_session, _request_data(assessment_status=AssessmentStatus.FAIL), instructor_user
        )

        result = await certificate_service.approve_requests(
            db_session, [passed.id, failed.id, "missing"], provider_user
        )

        assert result.processed == [passed.id]
        assert {f.request_id for f in result.failed} == {failed.id, "missing"}

    @pytest.mark.asyncio
    async def test_instructor_cannot_approve(self, db_session, instructor_user):
        request = await certificate_service.submit_request(db_session, _request_data(), instructor_user)

        with pytest.raises(InsufficientRoleError):
            await certificate_service.approve_requests(db_session, [request.id], instructor_user)

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, db_session, provider_user, instructor_user):
        request = await certificate_service.submit_request(db_session, _request_data(), instructor_user)

        with pytest.raises(ValidationError):
            await certificate_service.reject_requests(db_session, [request.id], "  ", provider_user)

    @pytest.mark.asyncio
    async def test_reject_then_archive(self, db_session, provider_user, instructor_user):
        request = await certificate_service.submit_request(db_session, _request_data(), instructor_user)

        result = await certificate_service.reject_requests(
            db_session, [request.id], "Missing written test", provider_user
        )
        archived = await certificate_service.archive_request(db_session, request.id, provider_user)

        assert result.processed == [request.id]
        assert request.rejection_reason == "Missing written test"
        assert archived.status == RequestStatus.ARCHIVED

    @pytest.mark.asyncio
    async def test_pending_request_cannot_be_archived(self, db_session, provider_user, instructor_user):
        request = await certificate_service.submit_request(db_session, _request_data(), instructor_user)

        with pytest.raises(InvalidStateTransitionError):
            await certificate_service.archive_request(db_session, request.id, provider_user)

    @pytest.mark.asyncio
    async def test_batch_shares_batch_id(self, db_session, instructor_user):
        requests = await certificate_service.submit_batch(
            db_session, [_request_data(), _request_data(recipient_name="Sam Roe")], instructor_user
        )

        assert len({r.batch_id for r in requests}) == 1
        assert requests[0].batch_id is not None


class TestVerification:

    async def _issue(self, db, provider, instructor):
        request = await certificate_service.submit_request(db, _request_data(), instructor)
        result = await certificate_service.approve_requests(db, [request.id], provider)
        return await certificate_service.get_certificate(db, result.certificates[0])

    @pytest.mark.asyncio
    async def test_verify_active_is_case_insensitive(self, db_session, provider_user, instructor_user):
        certificate = await self._issue(db_session, provider_user, instructor_user)

        result = await certificate_service.verify_certificate(db_session, certificate.verification_code.lower())

        assert result.valid is True
        assert result.recipient_name == "Jordan Lee"

    @pytest.mark.asyncio
    async def test_verify_unknown_code(self, db_session):
        result = await certificate_service.verify_certificate(db_session, "TC-00000000-NOPE")

        assert result.valid is False
        assert result.message == "Certificate not found"

    @pytest.mark.asyncio
    async def test_expired_certificate_is_marked(self, db_session, provider_user, instructor_user):
        certificate = await self._issue(db_session, provider_user, instructor_user)
        certificate.expiry_date = date.today() - timedelta(days=1)
        await db_session.commit()

        result = await certificate_service.verify_certificate(db_session, certificate.verification_code)

        assert result.valid is False
        assert result.status == CertificateStatus.EXPIRED
        assert certificate.status == CertificateStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_revocation(self, db_session, admin_user, provider_user, instructor_user):
        certificate = await self._issue(db_session, provider_user, instructor_user)

        with pytest.raises(InsufficientRoleError):
            await certificate_service.revoke_certificate(db_session, certificate.id, "Fraud", provider_user)

        await certificate_service.revoke_certificate(db_session, certificate.id, "Fraud", admin_user)
        result = await certificate_service.verify_certificate(db_session, certificate.verification_code)

        assert result.valid is False
        assert result.message == "Certificate has been revoked"
        with pytest.raises(InvalidStateTransitionError):
            await certificate_service.revoke_certificate(db_session, certificate.id, "Again", admin_user)


class TestMetrics:

    @pytest.mark.asyncio
    async def test_approval_rate(self, db_session, provider_user, instructor_user):
        ids = [
            (await certificate_service.submit_request(db_session, _request_data(), instructor_user)).id
            for _ in range(4)
        ]
        await certificate_service.approve_requests(db_session, ids[:3], provider_user)
        await certificate_service.reject_requests(db_session, ids[3:], "Incomplete", provider_user)

        metrics = await certificate_service.get_certificate_metrics(db_session)

        assert metrics.total_requests == 4
        assert metrics.requests_by_status["APPROVED"] == 3
        assert metrics.certificates_by_status["ACTIVE"] == 3
        assert metrics.approval_rate == 75.0
