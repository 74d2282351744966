"""
Workflow Service - multi-step governance approvals

Each definition holds ordered steps ``{"approver_role", "required"}``.
An instance starts at step 0; approving a step moves to the next required
step and the instance is approved once no required step remains.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from traincrm.core.config import settings
from traincrm.core.exceptions import (
    AuthorizationError,
    InsufficientRoleError,
    InvalidStateTransitionError,
    ValidationError,
    WorkflowNotFoundError,
    ResourceNotFoundError,
)
from traincrm.core.logging_config import get_logger
from traincrm.core.roles import UserRole, coerce_role, has_minimum_role
from traincrm.models.user import User
from traincrm.models.workflow import (
    WorkflowDefinition,
    WorkflowInstance,
    WorkflowApproval,
    WorkflowStatus,
    ApprovalDecision,
)
from traincrm.schemas.workflow import WorkflowDefinitionCreate, WorkflowDefinitionUpdate, WorkflowStats
from traincrm.services.audit_service import record_audit, notify

logger = get_logger(__name__)


def validate_steps(steps: Any) -> List[Dict[str, Any]]:
    """Normalise step dicts; raises ValidationError for empty lists or unknown roles"""
    if not isinstance(steps, list) or not steps:
        raise ValidationError("Workflow must have at least one step", field="steps")

    normalised = []
    for index, step in enumerate(steps):
        if hasattr(step, "model_dump"):
            step = step.model_dump(mode="json")
        if not isinstance(step, dict):
            raise ValidationError(f"Step {index} must be an object", field="steps")
        role = coerce_role(step.get("approver_role"))
        if role is None:
            raise ValidationError(f"Step {index} has unknown approver role '{step.get('approver_role')}'", field="steps")
        normalised.append({
            "approver_role": role.value,
            "required": bool(step.get("required", True)),
            "name": step.get("name"),
        })
    return normalised


def next_required_step(steps: List[Dict[str, Any]], after: int) -> Optional[int]:
    """Index of the first required step after ``after``, or None when finished"""
    for index in range(after + 1, len(steps)):
        if steps[index].get("required", True):
            return index
    return None


def can_decide(user: User, instance: WorkflowInstance, steps: List[Dict[str, Any]]) -> bool:
    if instance.current_step >= len(steps):
        return False
    return has_minimum_role(user.role, steps[instance.current_step]["approver_role"])


class WorkflowService:
    """Service for governance approval workflows"""

    # ==================== DEFINITIONS ====================

    def _require_admin(self, user: User) -> None:
        if not has_minimum_role(user.role, UserRole.AD):
            raise InsufficientRoleError("Insufficient permissions to manage workflows", UserRole.AD.value)

    async def _active_definition(self, db: AsyncSession, workflow_type: str) -> Optional[WorkflowDefinition]:
        result = await db.execute(
            select(WorkflowDefinition).where(
                and_(
                    WorkflowDefinition.workflow_type == workflow_type.strip().lower(),
                    WorkflowDefinition.is_active == True,  # noqa: E712
                )
            )
        )
        return result.scalars().first()

    async def create_definition(
        self, db: AsyncSession, data: WorkflowDefinitionCreate, user: User
    ) -> WorkflowDefinition:
        self._require_admin(user)
        if await self._active_definition(db, data.workflow_type):
            raise ValidationError(
                f"An active workflow of type '{data.workflow_type}' already exists", field="workflow_type"
            )

        definition = WorkflowDefinition(
            workflow_name=data.workflow_name,
            workflow_type=data.workflow_type,
            description=data.description,
            steps=validate_steps(data.steps),
            escalation_timeout_hours=data.escalation_timeout_hours,
            sla_hours=data.sla_hours or settings.WORKFLOW_DEFAULT_SLA_HOURS,
            is_active=True,
            version=1,
            created_by=str(user.id),
        )
        db.add(definition)
        record_audit(db, str(user.id), "workflow_definition_created", "workflow_definition",
                     details={"workflow_type": data.workflow_type})
        await db.commit()
        await db.refresh(definition)
        return definition

    async def list_definitions(self, db: AsyncSession, active_only: bool = False) -> List[WorkflowDefinition]:
        query = select(WorkflowDefinition)
        if active_only:
            query = query.where(WorkflowDefinition.is_active == True)  # noqa: E712
        result = await db.execute(query.order_by(WorkflowDefinition.workflow_type))
        return list(result.scalars().all())

    async def get_definition(self, db: AsyncSession, definition_id: str) -> WorkflowDefinition:
        definition = await db.get(WorkflowDefinition, definition_id)
        if not definition:
            raise ResourceNotFoundError("Workflow definition", definition_id)
        return definition

    async def update_definition(
        self, db: AsyncSession, definition_id: str, data: WorkflowDefinitionUpdate, user: User
    ) -> WorkflowDefinition:
        self._require_admin(user)
        definition = await self.get_definition(db, definition_id)
        updates = data.model_dump(exclude_unset=True, exclude={"steps"})

        if updates.get("is_active") and not definition.is_active:
            other = await self._active_definition(db, definition.workflow_type)
            if other and other.id != definition.id:
                raise ValidationError(
                    f"An active workflow of type '{definition.workflow_type}' already exists", field="is_active"
                )

        for field, value in updates.items():
            setattr(definition, field, value)
        if data.steps is not None:
            definition.steps = validate_steps(data.steps)
            definition.version = (definition.version or 1) + 1

        record_audit(db, str(user.id), "workflow_definition_updated", "workflow_definition", definition.id,
                     details={"fields": sorted(data.model_dump(exclude_unset=True))})
        await db.commit()
        await db.refresh(definition)
        return definition

    # ==================== INSTANCES ====================

    async def get_instance(self, db: AsyncSession, instance_id: str) -> WorkflowInstance:
        instance = await db.get(WorkflowInstance, instance_id)
        if not instance:
            raise WorkflowNotFoundError(instance_id)
        return instance

    async def submit_workflow(
        self,
        db: AsyncSession,
        workflow_type: str,
        entity_type: str,
        entity_id: Optional[str],
        request_data: Optional[Dict[str, Any]],
        user: User,
    ) -> WorkflowInstance:
        definition = await self._active_definition(db, workflow_type)
        if not definition:
            raise ValidationError(f"No active workflow for type '{workflow_type}'", field="workflow_type")

        now = datetime.utcnow()
        sla_hours = definition.sla_hours or settings.WORKFLOW_DEFAULT_SLA_HOURS
        first_step = next_required_step(definition.steps or [], -1)
        instance = WorkflowInstance(
            definition_id=definition.id,
            definition_version=definition.version,
            entity_type=entity_type,
            entity_id=entity_id,
            request_data=request_data or {},
            status=WorkflowStatus.PENDING if first_step is not None else WorkflowStatus.APPROVED,
            current_step=first_step or 0,
            sla_deadline=now + timedelta(hours=sla_hours),
            escalated=False,
            initiated_by=str(user.id),
            created_at=now,
            completed_at=None if first_step is not None else now,
        )
        db.add(instance)
        await db.commit()
        await db.refresh(instance)

        logger.log_domain_event("Workflow", "submitted", str(instance.id), workflow_type=definition.workflow_type,
                                status=instance.status.value)
        return instance

    async def _decide(
        self, db: AsyncSession, instance_id: str, user: User, decision: ApprovalDecision, comments: Optional[str]
    ) -> WorkflowInstance:
        instance = await self.get_instance(db, instance_id)
        if instance.status != WorkflowStatus.PENDING:
            raise InvalidStateTransitionError(
                f"Workflow is {instance.status.value} and cannot be decided", instance.status.value
            )

        definition = await self.get_definition(db, instance.definition_id)
        steps = definition.steps or []
        if not can_decide(user, instance, steps):
            raise InsufficientRoleError(
                "Your role cannot decide this approval step",
                steps[instance.current_step]["approver_role"] if instance.current_step < len(steps) else None,
            )
        if str(instance.initiated_by) == str(user.id) and coerce_role(user.role) != UserRole.SA:
            raise AuthorizationError("You cannot decide a workflow you submitted")

        now = datetime.utcnow()
        db.add(WorkflowApproval(
            instance_id=instance.id,
            step_index=instance.current_step,
            approver_id=str(user.id),
            decision=decision,
            comments=comments,
            decided_at=now,
        ))

        if decision == ApprovalDecision.REJECTED:
            instance.status = WorkflowStatus.REJECTED
            instance.completed_at = now
        else:
            following = next_required_step(steps, instance.current_step)
            if following is None:
                instance.status = WorkflowStatus.APPROVED
                instance.completed_at = now
            else:
                instance.current_step = following

        if instance.status != WorkflowStatus.PENDING:
            notify(
                db,
                title=f"Request {instance.status.value}",
                message=f"Your {instance.entity_type} request was {instance.status.value}.",
                user_id=str(instance.initiated_by),
                category="workflow",
                notification_type="success" if instance.status == WorkflowStatus.APPROVED else "warning",
            )
        record_audit(
            db, str(user.id), f"workflow_{decision.value}", "workflow_instance", instance.id,
            details={"step": instance.current_step, "comments": comments},
        )
        await db.commit()
        await db.refresh(instance)

        logger.log_domain_event("Workflow", decision.value, str(instance.id), status=instance.status.value)
        return instance

    async def approve_step(
        self, db: AsyncSession, instance_id: str, user: User, comments: Optional[str] = None
    ) -> WorkflowInstance:
        return await self._decide(db, instance_id, user, ApprovalDecision.APPROVED, comments)

    async def reject_workflow(
        self, db: AsyncSession, instance_id: str, user: User, comments: Optional[str] = None
    ) -> WorkflowInstance:
        return await self._decide(db, instance_id, user, ApprovalDecision.REJECTED, comments)

    async def cancel_workflow(self, db: AsyncSession, instance_id: str, user: User) -> WorkflowInstance:
        instance = await self.get_instance(db, instance_id)
        if str(instance.initiated_by) != str(user.id):
            raise AuthorizationError("Only the submitter can cancel a workflow")
        if instance.status != WorkflowStatus.PENDING:
            raise InvalidStateTransitionError(
                f"Workflow is {instance.status.value} and cannot be cancelled", instance.status.value
            )
        instance.status = WorkflowStatus.CANCELLED
        instance.completed_at = datetime.utcnow()
        await db.commit()
        await db.refresh(instance)
        return instance

    async def list_approvals(self, db: AsyncSession, instance_id: str) -> List[WorkflowApproval]:
        await self.get_instance(db, instance_id)
        result = await db.execute(
            select(WorkflowApproval)
            .where(WorkflowApproval.instance_id == instance_id)
            .order_by(WorkflowApproval.decided_at)
        )
        return list(result.scalars().all())

    async def escalate_overdue(self, db: AsyncSession, now: Optional[datetime] = None) -> List[WorkflowInstance]:
        """Flag pending instances whose SLA deadline has passed"""
        now = now or datetime.utcnow()
        result = await db.execute(
            select(WorkflowInstance).where(
                and_(
                    WorkflowInstance.status == WorkflowStatus.PENDING,
                    WorkflowInstance.escalated == False,  # noqa: E712
                    WorkflowInstance.sla_deadline.is_not(None),
                    WorkflowInstance.sla_deadline < now,
                )
            )
        )
        overdue = list(result.scalars().all())
        for instance in overdue:
            instance.escalated = True
            instance.escalated_at = now
        if overdue:
            await db.commit()
            logger.warning(f"[Workflow] Escalated {len(overdue)} overdue workflow(s)")
        return overdue

    async def get_pending_for_user(self, db: AsyncSession, user: User) -> List[WorkflowInstance]:
        """Pending instances whose current step this user's role may decide"""
        result = await db.execute(
            select(WorkflowInstance, WorkflowDefinition)
            .join(WorkflowDefinition, WorkflowDefinition.id == WorkflowInstance.definition_id)
            .where(WorkflowInstance.status == WorkflowStatus.PENDING)
            .order_by(WorkflowInstance.sla_deadline)
        )
        return [
            instance
            for instance, definition in result.all()
            if can_decide(user, instance, definition.steps or [])
        ]

    async def get_workflow_stats(self, db: AsyncSession) -> WorkflowStats:
        rows = await db.execute(
            select(WorkflowInstance.status, func.count(WorkflowInstance.id)).group_by(WorkflowInstance.status)
        )
        by_status = {s.value: 0 for s in WorkflowStatus}
        for status, count in rows.all():
            by_status[status.value] = count

        escalated = (await db.execute(
            select(func.count(WorkflowInstance.id)).where(WorkflowInstance.escalated == True)  # noqa: E712
        )).scalar() or 0

        return WorkflowStats(by_status=by_status, total=sum(by_status.values()), escalated=escalated)


workflow_service = WorkflowService()
