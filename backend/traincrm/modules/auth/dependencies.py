from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, false
from typing import Union
import uuid

from traincrm.core.database import get_db
from traincrm.core.exceptions import AuthenticationError, AuthorizationError, InsufficientRoleError
from traincrm.core.logging_config import set_user_id
from traincrm.core.roles import UserRole, has_minimum_role, role_level
from traincrm.core.security import decode_token, ACCESS_TOKEN
from traincrm.models.user import User

security = HTTPBearer()

# Ownership columns checked by scope_query, in priority order
PROVIDER_OWNER_COLUMNS = ("instructor_id", "created_by", "issued_by", "submitted_by")
INSTRUCTOR_OWNER_COLUMNS = ("instructor_id", "user_id", "assigned_to")
LEARNER_OWNER_COLUMNS = ("student_id", "user_id")


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""

    payload = decode_token(credentials.credentials, ACCESS_TOKEN)

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    try:
        uuid.UUID(user_id)
    except ValueError:
        raise AuthenticationError("Invalid user ID format")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthorizationError("User account is inactive")

    # Picked up by the rate limiter key and by log formatters
    request.state.user_id = str(user.id)
    set_user_id(str(user.id))

    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """Get current active user"""
    if not current_user.is_active:
        raise AuthorizationError("Inactive user")
    return current_user


def require_role(minimum: Union[UserRole, str]):
    """
    Dependency factory: the caller's role must be at or above ``minimum``.

    Usage:
        @router.post("/rosters")
        async def create_roster(current_user: User = Depends(require_role(UserRole.AP))):
            ...
    """
    async def role_checker(current_user: User = Depends(get_current_active_user)) -> User:
        if not has_minimum_role(current_user.role, minimum):
            raise InsufficientRoleError(
                f"Requires role {UserRole(minimum).value} or higher", UserRole(minimum).value
            )
        return current_user

    return role_checker


async def get_current_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Get current admin user (AD or SA)"""
    if not has_minimum_role(current_user.role, UserRole.AD):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


# Authorized Provider and above
get_current_provider = require_role(UserRole.AP)


def _ownership_clause(model, user: User, columns):
    clauses = [getattr(model, col) == str(user.id) for col in columns if hasattr(model, col)]
    if not clauses:
        return None
    return or_(*clauses)


def scope_query(stmt, model, user: User):
    """
    Restrict a select() to the rows ``user`` may see.

    SA and AD see everything. AP sees rows they teach, created or issued.
    IC and IP see rows they teach or are assigned to. IT and IN see only
    rows where they are the student or the user. Models without any
    ownership column are left unfiltered for SA/AD and return nothing for
    everyone else.
    """
    level = role_level(user.role)
    if level >= role_level(UserRole.AD):
        return stmt

    if level >= role_level(UserRole.AP):
        columns = PROVIDER_OWNER_COLUMNS
    elif level >= role_level(UserRole.IP):
        columns = INSTRUCTOR_OWNER_COLUMNS
    else:
        columns = LEARNER_OWNER_COLUMNS

    clause = _ownership_clause(model, user, columns)
    if clause is None:
        return stmt.where(false())
    return stmt.where(clause)
