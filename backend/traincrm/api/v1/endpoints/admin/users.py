"""
Admin user management: list, create, role changes and activation.

AD may manage everyone except System Administrators and may not grant SA.
Every change writes an audit log row.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from typing import Optional
from datetime import datetime

from traincrm.core.database import get_db
from traincrm.core.exceptions import InsufficientRoleError, UserNotFoundError
from traincrm.core.logging_config import get_logger
from traincrm.core.roles import UserRole, coerce_role
from traincrm.core.security import get_password_hash
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_admin
from traincrm.schemas.auth import (
    AdminUserCreate,
    RoleUpdate,
    UserStatusUpdate,
    UserResponse,
    UserListResponse,
)
from traincrm.services.audit_service import record_audit

logger = get_logger(__name__)

router = APIRouter()


def _audit(db: AsyncSession, admin: User, action: str, user: User, details: dict, request: Request) -> None:
    record_audit(
        db,
        actor_id=str(admin.id),
        action=action,
        target_type="user",
        target_id=str(user.id),
        details=details,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def _guard_system_admin(admin: User, target_role: Optional[UserRole]) -> None:
    if target_role == UserRole.SA and admin.role != UserRole.SA:
        raise InsufficientRoleError(
            "Only a System Administrator can grant or modify the SA role",
            required_role=UserRole.SA.value,
        )


async def _get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise UserNotFoundError(user_id)
    return user


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search by name, email or organization"),
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """List users with filtering and pagination"""
    conditions = []
    if search:
        term = f"%{search}%"
        conditions.append(or_(
            User.full_name.ilike(term),
            User.email.ilike(term),
            User.organization.ilike(term),
        ))
    if role:
        parsed = coerce_role(role)
        if parsed is None:
            raise HTTPException(status_code=400, detail=f"Invalid role: {role}")
        conditions.append(User.role == parsed)
    if is_active is not None:
        conditions.append(User.is_active == is_active)

    total = await db.scalar(select(func.count(User.id)).where(*conditions))
    result = await db.execute(
        select(User).where(*conditions)
        .order_by(User.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in result.scalars().all()],
        total=total or 0,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: AdminUserCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Create an account with any role the caller may grant"""
    _guard_system_admin(current_admin, user_data.role)

    email = user_data.email.lower()
    existing = await db.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=email,
        hashed_password=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        phone=user_data.phone,
        organization=user_data.organization,
        role=user_data.role,
        is_verified=True,
    )
    db.add(user)
    await db.flush()
    _audit(db, current_admin, "user_created", user, {"email": email, "role": user.role.value}, request)
    await db.commit()
    await db.refresh(user)

    logger.info(f"[Admin] {current_admin.email} created {email} as {user.role.value}")
    return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return await _get_user(db, user_id)


@router.patch("/{user_id}/role", response_model=UserResponse)
async def change_role(
    user_id: str,
    update: RoleUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Change a user's role"""
    user = await _get_user(db, user_id)
    _guard_system_admin(current_admin, user.role)
    _guard_system_admin(current_admin, update.role)

    if str(user.id) == str(current_admin.id):
        raise HTTPException(status_code=400, detail="Cannot change your own role")

    if update.role != user.role:
        old_role = user.role
        user.role = update.role
        user.updated_at = datetime.utcnow()
        _audit(db, current_admin, "user_role_changed", user, {
            "old": old_role.value,
            "new": update.role.value,
            "reason": update.reason,
        }, request)
        await db.commit()
        await db.refresh(user)
        logger.info(f"[Admin] {user.email} role {old_role.value} -> {update.role.value}")

    return user


@router.patch("/{user_id}/status", response_model=UserResponse)
async def change_status(
    user_id: str,
    update: UserStatusUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Activate or deactivate an account"""
    user = await _get_user(db, user_id)
    _guard_system_admin(current_admin, user.role)

    if str(user.id) == str(current_admin.id) and not update.is_active:
        raise HTTPException(status_code=400, detail="Cannot deactivate yourself")

    if update.is_active != user.is_active:
        user.is_active = update.is_active
        user.updated_at = datetime.utcnow()
        _audit(
            db, current_admin,
            "user_activated" if update.is_active else "user_deactivated",
            user, {"email": user.email, "reason": update.reason}, request,
        )
        await db.commit()
        await db.refresh(user)

    return user
