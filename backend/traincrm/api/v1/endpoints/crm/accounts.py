from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from traincrm.core.database import get_db
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_admin
from traincrm.schemas.crm import AccountCreate, AccountUpdate, AccountResponse, AccountListResponse
from traincrm.services.contact_service import contact_service

router = APIRouter()


@router.get("", response_model=AccountListResponse)
async def list_accounts(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    accounts, total = await contact_service.list_accounts(db, search, page, limit)
    return AccountListResponse(
        accounts=[AccountResponse.model_validate(a) for a in accounts],
        total=total,
        page=page,
        limit=limit,
        has_more=page * limit < total,
    )


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    data: AccountCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await contact_service.create_account(db, data, current_user)


@router.get("/{account_id}", response_model=AccountResponse)
async def get_account(
    account_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await contact_service.get_account(db, account_id)


@router.patch("/{account_id}", response_model=AccountResponse)
async def update_account(
    account_id: str,
    data: AccountUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await contact_service.update_account(db, account_id, data)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    await contact_service.delete_account(db, account_id)
