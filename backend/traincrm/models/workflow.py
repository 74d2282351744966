"""
Governance workflow models

A WorkflowDefinition lists ordered approval steps, each naming the minimum
role that may decide it. A WorkflowInstance walks those steps for one
request; every decision is kept as a WorkflowApproval row.
"""

from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, ForeignKey, Enum as SQLEnum, Index
from datetime import datetime
import enum

from traincrm.core.database import Base
from traincrm.core.types import GUID, generate_uuid, JSONType


class WorkflowStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ApprovalDecision(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkflowDefinition(Base):
    __tablename__ = "workflow_definitions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    workflow_name = Column(String(255), nullable=False)
    workflow_type = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    steps = Column(JSONType, nullable=False)  # [{"approver_role": "AD", "required": true, "name": "..."}]
    escalation_timeout_hours = Column(Integer, nullable=True)
    sla_hours = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    version = Column(Integer, default=1, nullable=False)

    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<WorkflowDefinition {self.workflow_type} v{self.version}>"


class WorkflowInstance(Base):
    __tablename__ = "workflow_instances"

    __table_args__ = (
        Index('ix_workflow_instances_status', 'status'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    definition_id = Column(GUID, ForeignKey("workflow_definitions.id"), nullable=False)
    definition_version = Column(Integer, nullable=False, default=1)
    entity_type = Column(String(100), nullable=False)
    entity_id = Column(String(100), nullable=True)
    request_data = Column(JSONType, nullable=True)

    status = Column(SQLEnum(WorkflowStatus), default=WorkflowStatus.PENDING, nullable=False)
    current_step = Column(Integer, default=0, nullable=False)
    sla_deadline = Column(DateTime, nullable=True)
    escalated = Column(Boolean, default=False, nullable=False)
    escalated_at = Column(DateTime, nullable=True)

    initiated_by = Column(GUID, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<WorkflowInstance {self.entity_type}:{self.entity_id} {self.status}>"


class WorkflowApproval(Base):
    __tablename__ = "workflow_approvals"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    instance_id = Column(GUID, ForeignKey("workflow_instances.id", ondelete="CASCADE"), nullable=False, index=True)
    step_index = Column(Integer, nullable=False)
    approver_id = Column(GUID, ForeignKey("users.id"), nullable=False)
    decision = Column(SQLEnum(ApprovalDecision), nullable=False)
    comments = Column(Text, nullable=True)
    decided_at = Column(DateTime, default=datetime.utcnow, nullable=False)
