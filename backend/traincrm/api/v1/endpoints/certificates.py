"""
Certificate requests, approval, issued certificates and public verification
"""
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from pathlib import Path

from traincrm.core.database import get_db
from traincrm.core.rate_limiter import limiter
from traincrm.models.certificate import RequestStatus, CertificateStatus
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_user, get_current_provider
from traincrm.schemas.certificate import (
    CertificateRequestCreate,
    BatchCertificateRequestCreate,
    CertificateRequestResponse,
    CertificateRequestListResponse,
    ApproveRequests,
    RejectRequests,
    RequestActionResult,
    CertificateResponse,
    CertificateListResponse,
    RevokeRequest,
    VerificationResult,
    CertificateMetrics,
    ScoreStatistics,
)
from traincrm.services.certificate_pdf import render_certificate_pdf
from traincrm.services.certificate_service import certificate_service

router = APIRouter()


# ==================== Requests ====================

@router.post("/requests", response_model=CertificateRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_request(
    data: CertificateRequestCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await certificate_service.submit_request(db, data, current_user)


@router.post(
    "/requests/batch",
    response_model=List[CertificateRequestResponse],
    status_code=status.HTTP_201_CREATED,
)
async def submit_batch(
    data: BatchCertificateRequestCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Submit a class worth of requests under one batch id"""
    return await certificate_service.submit_batch(db, data.requests, current_user)


@router.get("/requests", response_model=CertificateRequestListResponse)
async def list_requests(
    request_status: Optional[RequestStatus] = Query(None, alias="status"),
    batch_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    requests, total = await certificate_service.list_requests(
        db, current_user, status=request_status, batch_id=batch_id, page=page, page_size=page_size
    )
    return CertificateRequestListResponse(
        requests=[CertificateRequestResponse.model_validate(r) for r in requests],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/requests/{request_id}", response_model=CertificateRequestResponse)
async def get_request(
    request_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await certificate_service.get_request(db, request_id)


@router.post("/requests/approve", response_model=RequestActionResult)
async def approve_requests(
    data: ApproveRequests,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    """Approve pending requests and issue their certificates"""
    return await certificate_service.approve_requests(db, data.request_ids, current_user)


@router.post("/requests/reject", response_model=RequestActionResult)
async def reject_requests(
    data: RejectRequests,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await certificate_service.reject_requests(db, data.request_ids, data.reason, current_user)


@router.post("/requests/{request_id}/archive", response_model=CertificateRequestResponse)
async def archive_request(
    request_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await certificate_service.archive_request(db, request_id, current_user)


# ==================== Reports ====================

@router.get("/metrics", response_model=CertificateMetrics)
async def get_metrics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await certificate_service.get_certificate_metrics(db)


@router.get("/score-statistics", response_model=ScoreStatistics)
async def get_score_statistics(
    batch_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await certificate_service.get_score_statistics(db, batch_id)


# ==================== Public verification ====================

@router.get("/verify/{verification_code}", response_model=VerificationResult)
@limiter.limit("30/minute")
async def verify_certificate(
    request: Request,
    verification_code: str,
    db: AsyncSession = Depends(get_db)
):
    """Public lookup of a certificate by its verification code (no login)"""
    return await certificate_service.verify_certificate(db, verification_code)


# ==================== Certificates ====================

@router.get("", response_model=CertificateListResponse)
async def list_certificates(
    certificate_status: Optional[CertificateStatus] = Query(None, alias="status"),
    email: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    certificates, total = await certificate_service.list_certificates(
        db, current_user, status=certificate_status, email=email, page=page, page_size=page_size
    )
    return CertificateListResponse(
        certificates=[CertificateResponse.model_validate(c) for c in certificates],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{certificate_id}", response_model=CertificateResponse)
async def get_certificate(
    certificate_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await certificate_service.get_certificate(db, certificate_id)


@router.get("/{certificate_id}/pdf")
async def download_certificate(
    certificate_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Stored PDF when present, otherwise rendered on demand"""
    certificate = await certificate_service.get_certificate(db, certificate_id)

    if certificate.file_path and Path(certificate.file_path).exists():
        content = Path(certificate.file_path).read_bytes()
    else:
        content = render_certificate_pdf(
            recipient_name=certificate.recipient_name,
            course_name=certificate.course_name,
            verification_code=certificate.verification_code,
            issue_date=certificate.issue_date,
            expiry_date=certificate.expiry_date,
            location_name=certificate.location_name,
            instructor_name=certificate.instructor_name,
        )

    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={certificate.verification_code}.pdf"}
    )


@router.post("/{certificate_id}/revoke", response_model=CertificateResponse)
async def revoke_certificate(
    certificate_id: str,
    data: RevokeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Revoke an issued certificate (AD or above, checked by the service)"""
    return await certificate_service.revoke_certificate(db, certificate_id, data.reason, current_user)
