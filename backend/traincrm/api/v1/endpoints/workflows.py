"""
Governance workflows: definitions, submissions and step decisions
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from traincrm.core.database import get_db
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_user, get_current_admin
from traincrm.schemas.workflow import (
    WorkflowDefinitionCreate,
    WorkflowDefinitionUpdate,
    WorkflowDefinitionResponse,
    WorkflowSubmit,
    WorkflowDecision,
    WorkflowApprovalResponse,
    WorkflowInstanceResponse,
    WorkflowStats,
)
from traincrm.services.workflow_service import workflow_service

router = APIRouter()


# ==================== Definitions ====================

@router.get("/definitions", response_model=List[WorkflowDefinitionResponse])
async def list_definitions(
    active_only: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await workflow_service.list_definitions(db, active_only)


@router.post("/definitions", response_model=WorkflowDefinitionResponse, status_code=status.HTTP_201_CREATED)
async def create_definition(
    data: WorkflowDefinitionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await workflow_service.create_definition(db, data, current_user)


@router.get("/definitions/{definition_id}", response_model=WorkflowDefinitionResponse)
async def get_definition(
    definition_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await workflow_service.get_definition(db, definition_id)


@router.patch("/definitions/{definition_id}", response_model=WorkflowDefinitionResponse)
async def update_definition(
    definition_id: str,
    data: WorkflowDefinitionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Changing the steps bumps the definition version"""
    return await workflow_service.update_definition(db, definition_id, data, current_user)


# ==================== Instances ====================

@router.post("", response_model=WorkflowInstanceResponse, status_code=status.HTTP_201_CREATED)
async def submit_workflow(
    data: WorkflowSubmit,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await workflow_service.submit_workflow(
        db, data.workflow_type, data.entity_type, data.entity_id, data.request_data, current_user
    )


@router.get("/pending", response_model=List[WorkflowInstanceResponse])
async def get_pending_for_me(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Pending workflows whose current step the caller may decide"""
    return await workflow_service.get_pending_for_user(db, current_user)


@router.get("/stats", response_model=WorkflowStats)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await workflow_service.get_workflow_stats(db)


@router.post("/escalate", response_model=List[WorkflowInstanceResponse])
async def escalate_overdue(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Flag pending workflows past their SLA deadline"""
    return await workflow_service.escalate_overdue(db)


@router.get("/{instance_id}", response_model=WorkflowInstanceResponse)
async def get_instance(
    instance_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await workflow_service.get_instance(db, instance_id)


@router.get("/{instance_id}/approvals", response_model=List[WorkflowApprovalResponse])
async def list_approvals(
    instance_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await workflow_service.list_approvals(db, instance_id)


@router.post("/{instance_id}/approve", response_model=WorkflowInstanceResponse)
async def approve_step(
    instance_id: str,
    decision: WorkflowDecision,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await workflow_service.approve_step(db, instance_id, current_user, decision.comments)


@router.post("/{instance_id}/reject", response_model=WorkflowInstanceResponse)
async def reject_workflow(
    instance_id: str,
    decision: WorkflowDecision,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await workflow_service.reject_workflow(db, instance_id, current_user, decision.comments)


@router.post("/{instance_id}/cancel", response_model=WorkflowInstanceResponse)
async def cancel_workflow(
    instance_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await workflow_service.cancel_workflow(db, instance_id, current_user)
