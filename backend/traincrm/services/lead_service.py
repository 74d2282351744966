"""
Lead Service - lead CRUD, scoring and conversion

Lead score = base weights (source, type, participants, urgency, company,
job title) + points from matching active scoring rules, clamped to 0-100.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from datetime import datetime
from typing import Optional, List, Any, Iterable, Tuple

from traincrm.core.exceptions import (
    InvalidStateTransitionError,
    LeadNotFoundError,
    ResourceNotFoundError,
)
from traincrm.core.logging_config import get_logger
from traincrm.models.crm import (
    Lead,
    LeadScoringRule,
    LeadStatus,
    LeadSource,
    LeadType,
    TrainingUrgency,
    ScoringOperator,
    Account,
    Contact,
    Opportunity,
    OpportunityStage,
    OpportunityStatus,
)
from traincrm.models.user import User
from traincrm.schemas.crm import LeadCreate, LeadUpdate, ScoringRuleCreate, ScoringRuleUpdate, LeadConversionResult
from traincrm.services.opportunity_service import STAGE_PROBABILITY

logger = get_logger(__name__)

SOURCE_POINTS = {
    LeadSource.REFERRAL: 20,
    LeadSource.TRADE_SHOW: 15,
    LeadSource.WEBSITE: 15,
    LeadSource.EMAIL: 10,
    LeadSource.SOCIAL_MEDIA: 10,
    LeadSource.COLD_CALL: 5,
    LeadSource.OTHER: 5,
}

URGENCY_POINTS = {
    TrainingUrgency.IMMEDIATE: 20,
    TrainingUrgency.WITHIN_MONTH: 15,
    TrainingUrgency.WITHIN_QUARTER: 10,
    TrainingUrgency.PLANNING: 5,
}

CORPORATE_POINTS = 15
COMPANY_POINTS = 5
JOB_TITLE_POINTS = 5

# (minimum participants, points), highest tier first
PARTICIPANT_TIERS = ((50, 20), (20, 15), (10, 10), (1, 5))


def _field_text(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "value"):
        value = value.value
    return str(value).strip().lower()


def _to_number(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def rule_matches(lead: Any, rule: Any) -> bool:
    """Evaluate one scoring rule against a lead's field"""
    raw = getattr(lead, rule.field_name, None)
    if raw is None:
        return False

    operator = ScoringOperator(rule.operator)
    if operator in (ScoringOperator.GREATER_THAN, ScoringOperator.LESS_THAN):
        left, right = _to_number(raw), _to_number(rule.field_value)
        if left is None or right is None:
            return False
        return left > right if operator == ScoringOperator.GREATER_THAN else left < right

    actual = _field_text(raw)
    expected = _field_text(rule.field_value)
    if operator == ScoringOperator.EQUALS:
        return actual == expected
    if operator == ScoringOperator.CONTAINS:
        return expected in actual
    # IN_LIST
    options = {part.strip() for part in expected.split(",") if part.strip()}
    return actual in options


def calculate_lead_score(lead: Any, rules: Iterable[Any] = ()) -> int:
    score = 0

    if lead.lead_source:
        score += SOURCE_POINTS.get(LeadSource(lead.lead_source), 0)
    if lead.lead_type and LeadType(lead.lead_type) == LeadType.CORPORATE:
        score += CORPORATE_POINTS

    participants = lead.estimated_participant_count or 0
    for minimum, points in PARTICIPANT_TIERS:
        if participants >= minimum:
            score += points
            break

    if lead.training_urgency:
        score += URGENCY_POINTS.get(TrainingUrgency(lead.training_urgency), 0)
    if lead.company_name:
        score += COMPANY_POINTS
    if lead.job_title:
        score += JOB_TITLE_POINTS

    for rule in rules:
        if getattr(rule, "is_active", True) and rule_matches(lead, rule):
            score += rule.score_points

    return max(0, min(100, score))


class LeadService:
    """Service for leads and scoring rules"""

    async def _active_rules(self, db: AsyncSession) -> List[LeadScoringRule]:
        result = await db.execute(
            select(LeadScoringRule)
            .where(LeadScoringRule.is_active == True)  # noqa: E712
            .order_by(LeadScoringRule.priority.desc())
        )
        return list(result.scalars().all())

    async def create_lead(self, db: AsyncSession, data: LeadCreate, created_by: User) -> Lead:
        lead = Lead(
            **data.model_dump(exclude={"assigned_to"}),
            assigned_to=data.assigned_to or str(created_by.id),
            lead_status=LeadStatus.NEW,
            created_by=str(created_by.id),
        )
        lead.lead_score = calculate_lead_score(lead, await self._active_rules(db))
        db.add(lead)
        await db.commit()
        await db.refresh(lead)
        logger.log_domain_event("Lead", "created", str(lead.id), score=lead.lead_score)
        return lead

    async def get_lead(self, db: AsyncSession, lead_id: str) -> Lead:
        lead = await db.get(Lead, lead_id)
        if not lead:
            raise LeadNotFoundError(lead_id)
        return lead

    async def list_leads(
        self,
        db: AsyncSession,
        status: Optional[LeadStatus] = None,
        source: Optional[LeadSource] = None,
        assigned_to: Optional[str] = None,
        min_score: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Lead], int]:
        conditions = []
        if status:
            conditions.append(Lead.lead_status == status)
        if source:
            conditions.append(Lead.lead_source == source)
        if assigned_to:
            conditions.append(Lead.assigned_to == assigned_to)
        if min_score is not None:
            conditions.append(Lead.lead_score >= min_score)
        if search:
            term = f"%{search}%"
            conditions.append(or_(
                Lead.first_name.ilike(term),
                Lead.last_name.ilike(term),
                Lead.email.ilike(term),
                Lead.company_name.ilike(term),
            ))

        query = select(Lead).where(*conditions)
        total = (await db.execute(select(func.count(Lead.id)).where(*conditions))).scalar() or 0
        result = await db.execute(
            query.order_by(Lead.lead_score.desc(), Lead.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def update_lead(self, db: AsyncSession, lead_id: str, data: LeadUpdate) -> Lead:
        lead = await self.get_lead(db, lead_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(lead, field, value)
        lead.lead_score = calculate_lead_score(lead, await self._active_rules(db))
        lead.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(lead)
        return lead

    async def delete_lead(self, db: AsyncSession, lead_id: str) -> None:
        lead = await self.get_lead(db, lead_id)
        await db.delete(lead)
        await db.commit()

    async def recalculate_lead_score(self, db: AsyncSession, lead_id: str) -> Lead:
        lead = await self.get_lead(db, lead_id)
        lead.lead_score = calculate_lead_score(lead, await self._active_rules(db))
        await db.commit()
        await db.refresh(lead)
        return lead

    async def convert_lead(
        self,
        db: AsyncSession,
        lead_id: str,
        user: User,
        create_account: bool = False,
        create_opportunity: bool = False,
        opportunity_value: Optional[float] = None,
        opportunity_name: Optional[str] = None,
    ) -> LeadConversionResult:
        """
        Convert a lead into a contact, optionally with an account and an
        opportunity. A lead can only be converted once.
        """
        lead = await self.get_lead(db, lead_id)
        if lead.lead_status == LeadStatus.CONVERTED:
            raise InvalidStateTransitionError("Lead has already been converted", lead.lead_status.value)

        account = None
        if create_account and lead.company_name:
            account = Account(
                account_name=lead.company_name,
                account_type="corporate" if lead.lead_type == LeadType.CORPORATE else "individual",
                industry=lead.industry,
                company_size=lead.company_size,
                phone=lead.phone,
                province=lead.province,
                city=lead.city,
                assigned_to=lead.assigned_to,
                created_by=str(user.id),
            )
            db.add(account)
            await db.flush()

        contact = Contact(
            first_name=lead.first_name,
            last_name=lead.last_name,
            email=lead.email,
            phone=lead.phone,
            job_title=lead.job_title,
            account_id=account.id if account else None,
            converted_from_lead_id=lead.id,
            assigned_to=lead.assigned_to,
            created_by=str(user.id),
        )
        db.add(contact)
        await db.flush()

        opportunity = None
        if create_opportunity:
            opportunity = Opportunity(
                opportunity_name=opportunity_name or f"{lead.company_name or lead.full_name} - Training",
                opportunity_type=lead.lead_type.value,
                account_id=account.id if account else None,
                contact_id=contact.id,
                lead_id=lead.id,
                estimated_value=opportunity_value or 0.0,
                stage=OpportunityStage.PROSPECT,
                probability=STAGE_PROBABILITY[OpportunityStage.PROSPECT],
                status=OpportunityStatus.OPEN,
                lead_source=lead.lead_source.value,
                campaign_id=lead.campaign_id,
                assigned_to=lead.assigned_to or str(user.id),
                created_by=str(user.id),
            )
            db.add(opportunity)
            await db.flush()

        lead.lead_status = LeadStatus.CONVERTED
        lead.conversion_date = datetime.utcnow()
        await db.commit()

        logger.log_domain_event(
            "Lead", "converted", str(lead.id),
            account=bool(account), opportunity=bool(opportunity),
        )
        return LeadConversionResult(
            lead_id=str(lead.id),
            contact_id=str(contact.id),
            account_id=str(account.id) if account else None,
            opportunity_id=str(opportunity.id) if opportunity else None,
        )

    # ==================== SCORING RULES ====================

    async def create_scoring_rule(self, db: AsyncSession, data: ScoringRuleCreate, user: User) -> LeadScoringRule:
        rule = LeadScoringRule(**data.model_dump(), created_by=str(user.id))
        db.add(rule)
        await db.commit()
        await db.refresh(rule)
        return rule

    async def list_scoring_rules(self, db: AsyncSession, active_only: bool = False) -> List[LeadScoringRule]:
        query = select(LeadScoringRule)
        if active_only:
            query = query.where(LeadScoringRule.is_active == True)  # noqa: E712
        result = await db.execute(query.order_by(LeadScoringRule.priority.desc(), LeadScoringRule.rule_name))
        return list(result.scalars().all())

    async def update_scoring_rule(self, db: AsyncSession, rule_id: str, data: ScoringRuleUpdate) -> LeadScoringRule:
        rule = await db.get(LeadScoringRule, rule_id)
        if not rule:
            raise ResourceNotFoundError("Scoring rule", rule_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(rule, field, value)
        await db.commit()
        await db.refresh(rule)
        return rule

    async def delete_scoring_rule(self, db: AsyncSession, rule_id: str) -> None:
        rule = await db.get(LeadScoringRule, rule_id)
        if not rule:
            raise ResourceNotFoundError("Scoring rule", rule_id)
        await db.delete(rule)
        await db.commit()


lead_service = LeadService()
