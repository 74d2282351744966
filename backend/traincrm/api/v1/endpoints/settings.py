"""
System settings: categorized key/value configuration with change history
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from traincrm.core.database import get_db
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_admin
from traincrm.schemas.settings import (
    ConfigurationResponse,
    ConfigurationUpdate,
    ConfigurationChangeResponse,
)
from traincrm.services.settings_service import settings_service

router = APIRouter()


@router.get("", response_model=List[ConfigurationResponse])
async def list_settings(
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """All settings, optionally for one category. Missing defaults are seeded."""
    return await settings_service.list_configurations(db, category)


@router.get("/{category}/{key}", response_model=ConfigurationResponse)
async def get_setting(
    category: str,
    key: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await settings_service.get_configuration(db, category, key)


@router.put("/{category}/{key}", response_model=ConfigurationResponse)
async def update_setting(
    category: str,
    key: str,
    update: ConfigurationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await settings_service.update_configuration(
        db, category, key, update.value, current_user,
        reason=update.reason, description=update.description,
    )


@router.get("/{category}/{key}/history", response_model=List[ConfigurationChangeResponse])
async def get_setting_history(
    category: str,
    key: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await settings_service.get_configuration_history(db, category, key)
