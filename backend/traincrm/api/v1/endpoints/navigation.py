"""
Navigation visibility per role.

Every signed-in user can read the config for their own role; only
administrators can read or change other roles.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from traincrm.core.database import get_db
from traincrm.core.exceptions import ValidationError
from traincrm.core.roles import coerce_role
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_user, get_current_admin
from traincrm.schemas.settings import NavigationConfigResponse, NavigationConfigUpdate, NavigationHealth
from traincrm.services.navigation_service import navigation_service, get_configuration_health

router = APIRouter()


def _role_code(role: str) -> str:
    parsed = coerce_role(role)
    if parsed is None:
        raise ValidationError(f"Unknown role: {role}", field="role")
    return parsed.value


@router.get("/me", response_model=NavigationConfigResponse)
async def get_my_navigation(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    role = current_user.role.value
    config, source = await navigation_service.get_navigation_config(db, role)
    return NavigationConfigResponse(role=role, config=config, source=source)


@router.get("/{role}", response_model=NavigationConfigResponse)
async def get_role_navigation(
    role: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    code = _role_code(role)
    config, source = await navigation_service.get_navigation_config(db, code)
    return NavigationConfigResponse(role=code, config=config, source=source)


@router.put("/{role}", response_model=NavigationConfigResponse)
async def update_role_navigation(
    role: str,
    update: NavigationConfigUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    code = _role_code(role)
    config = await navigation_service.update_navigation_config(db, code, update.config, current_user)
    return NavigationConfigResponse(role=code, config=config, source="stored")


@router.post("/{role}/restore", response_model=NavigationConfigResponse)
async def restore_role_navigation(
    role: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Reset a role's navigation to its defaults"""
    code = _role_code(role)
    config = await navigation_service.emergency_restore_navigation(db, code, current_user)
    return NavigationConfigResponse(role=code, config=config, source="stored")


@router.get("/{role}/health", response_model=NavigationHealth)
async def get_role_navigation_health(
    role: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    config, _ = await navigation_service.get_navigation_config(db, _role_code(role))
    return get_configuration_health(config)
