"""
Workflow Schemas - governance approval definitions and instances
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from traincrm.core.roles import UserRole
from traincrm.models.workflow import WorkflowStatus, ApprovalDecision
from traincrm.schemas import reject_null


class WorkflowStep(BaseModel):
    approver_role: UserRole
    required: bool = True
    name: Optional[str] = None


class WorkflowDefinitionCreate(BaseModel):
    workflow_name: str = Field(..., min_length=1, max_length=255)
    workflow_type: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    steps: List[WorkflowStep] = Field(..., min_length=1)
    escalation_timeout_hours: Optional[int] = Field(None, ge=1)
    sla_hours: Optional[int] = Field(None, ge=1)

    @field_validator("workflow_type")
    @classmethod
    def normalise_type(cls, v: str) -> str:
        return v.strip().lower()


class WorkflowDefinitionUpdate(BaseModel):
    workflow_name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    steps: Optional[List[WorkflowStep]] = Field(None, min_length=1)
    escalation_timeout_hours: Optional[int] = Field(None, ge=1)
    sla_hours: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None

    @field_validator("workflow_name", "steps", "is_active")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class WorkflowDefinitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workflow_name: str
    workflow_type: str
    description: Optional[str] = None
    steps: List[Dict[str, Any]]
    escalation_timeout_hours: Optional[int] = None
    sla_hours: Optional[int] = None
    is_active: bool
    version: int
    created_at: datetime


class WorkflowSubmit(BaseModel):
    workflow_type: str
    entity_type: str = Field(..., min_length=1, max_length=100)
    entity_id: Optional[str] = None
    request_data: Dict[str, Any] = {}


class WorkflowDecision(BaseModel):
    comments: Optional[str] = None


class WorkflowApprovalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    step_index: int
    approver_id: str
    decision: ApprovalDecision
    comments: Optional[str] = None
    decided_at: datetime


class WorkflowInstanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    definition_id: str
    definition_version: int
    entity_type: str
    entity_id: Optional[str] = None
    request_data: Optional[Dict[str, Any]] = None
    status: WorkflowStatus
    current_step: int
    sla_deadline: Optional[datetime] = None
    escalated: bool
    initiated_by: str
    created_at: datetime
    completed_at: Optional[datetime] = None


class WorkflowStats(BaseModel):
    by_status: Dict[str, int]
    total: int
    escalated: int
