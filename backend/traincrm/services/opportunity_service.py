"""
Opportunity Service - sales pipeline

Stage changes keep probability and status in step: closed_won is always
100% / closed_won, closed_lost 0% / closed_lost, and closed opportunities
do not move again.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from datetime import datetime, date
from typing import Optional, List, Tuple
import calendar

from traincrm.core.config import settings
from traincrm.core.exceptions import (
    InvalidStateTransitionError,
    OpportunityNotFoundError,
    ValidationError,
)
from traincrm.core.logging_config import get_logger
from traincrm.models.crm import (
    Activity,
    ActivityType,
    Lead,
    LeadStatus,
    Opportunity,
    OpportunityStage,
    OpportunityStatus,
    RevenueRecord,
    RevenueType,
)
from traincrm.models.user import User
from traincrm.schemas.crm import (
    OpportunityCreate,
    OpportunityUpdate,
    OpportunityFilters,
    PipelineValue,
    Forecast,
    StageConversion,
)

logger = get_logger(__name__)

STAGE_PROBABILITY = {
    OpportunityStage.PROSPECT: 10,
    OpportunityStage.PROPOSAL: 50,
    OpportunityStage.NEGOTIATION: 75,
    OpportunityStage.CLOSED_WON: 100,
    OpportunityStage.CLOSED_LOST: 0,
}

FORECAST_MONTHS = {"month": 1, "quarter": 3, "year": 12}
OPEN_STAGES = (OpportunityStage.PROSPECT, OpportunityStage.PROPOSAL, OpportunityStage.NEGOTIATION)


def add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def forecast_confidence(probabilities: List[int]) -> float:
    """Average probability scaled by 0.8, kept within 10-90"""
    if not probabilities:
        return 10.0
    average = sum(probabilities) / len(probabilities)
    return round(max(10.0, min(90.0, average * 0.8)), 2)


def _status_for_stage(stage: OpportunityStage) -> OpportunityStatus:
    if stage == OpportunityStage.CLOSED_WON:
        return OpportunityStatus.CLOSED_WON
    if stage == OpportunityStage.CLOSED_LOST:
        return OpportunityStatus.CLOSED_LOST
    return OpportunityStatus.OPEN


class OpportunityService:
    """Service for opportunities and pipeline analytics"""

    def _log_activity(self, db: AsyncSession, opportunity: Opportunity, subject: str, user: Optional[User],
                      description: Optional[str] = None) -> None:
        db.add(Activity(
            activity_type=ActivityType.NOTE,
            subject=subject,
            description=description,
            activity_date=datetime.utcnow(),
            completed=True,
            opportunity_id=opportunity.id,
            lead_id=opportunity.lead_id,
            account_id=opportunity.account_id,
            assigned_to=opportunity.assigned_to,
            created_by=str(user.id) if user else None,
        ))

    async def create_opportunity(self, db: AsyncSession, data: OpportunityCreate, user: User) -> Opportunity:
        if data.stage in (OpportunityStage.CLOSED_WON, OpportunityStage.CLOSED_LOST):
            raise ValidationError("New opportunities cannot start in a closed stage", field="stage")

        lead = None
        if data.lead_id:
            lead = await db.get(Lead, data.lead_id)

        opportunity = Opportunity(
            **data.model_dump(exclude={"probability", "assigned_to", "lead_source"}),
            probability=data.probability if data.probability is not None else STAGE_PROBABILITY[data.stage],
            status=OpportunityStatus.OPEN,
            lead_source=data.lead_source or (lead.lead_source.value if lead else None),
            assigned_to=data.assigned_to or str(user.id),
            created_by=str(user.id),
        )
        db.add(opportunity)
        await db.flush()

        if lead and lead.lead_status != LeadStatus.CONVERTED:
            lead.lead_status = LeadStatus.CONVERTED
            lead.conversion_date = datetime.utcnow()

        self._log_activity(db, opportunity, "Opportunity Created", user,
                           f"Estimated value {opportunity.estimated_value:.2f}")
        await db.commit()
        await db.refresh(opportunity)

        logger.log_domain_event("Opportunity", "created", str(opportunity.id), value=opportunity.estimated_value)
        return opportunity

    async def get_opportunity(self, db: AsyncSession, opportunity_id: str) -> Opportunity:
        opportunity = await db.get(Opportunity, opportunity_id)
        if not opportunity:
            raise OpportunityNotFoundError(opportunity_id)
        return opportunity

    async def list_opportunities(
        self,
        db: AsyncSession,
        filters: Optional[OpportunityFilters] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Opportunity], int]:
        filters = filters or OpportunityFilters()
        conditions = []
        if filters.stage:
            conditions.append(Opportunity.stage == filters.stage)
        if filters.status:
            conditions.append(Opportunity.status == filters.status)
        if filters.assigned_to:
            conditions.append(Opportunity.assigned_to == filters.assigned_to)
        if filters.min_value is not None:
            conditions.append(Opportunity.estimated_value >= filters.min_value)
        if filters.max_value is not None:
            conditions.append(Opportunity.estimated_value <= filters.max_value)
        if filters.min_probability is not None:
            conditions.append(Opportunity.probability >= filters.min_probability)
        if filters.max_probability is not None:
            conditions.append(Opportunity.probability <= filters.max_probability)
        if filters.close_date_from:
            conditions.append(Opportunity.expected_close_date >= filters.close_date_from)
        if filters.close_date_to:
            conditions.append(Opportunity.expected_close_date <= filters.close_date_to)

        total = (await db.execute(select(func.count(Opportunity.id)).where(*conditions))).scalar() or 0
        result = await db.execute(
            select(Opportunity).where(*conditions)
            .order_by(Opportunity.estimated_value.desc(), Opportunity.created_at.desc())
            .offset((page - 1) * limit).limit(limit)
        )
        return list(result.scalars().all()), total

    async def update_opportunity(self, db: AsyncSession, opportunity_id: str, data: OpportunityUpdate) -> Opportunity:
        opportunity = await self.get_opportunity(db, opportunity_id)
        if opportunity.status != OpportunityStatus.OPEN:
            raise InvalidStateTransitionError("Closed opportunities cannot be edited", opportunity.status.value)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(opportunity, field, value)
        await db.commit()
        await db.refresh(opportunity)
        return opportunity

    async def update_stage(
        self,
        db: AsyncSession,
        opportunity_id: str,
        stage: OpportunityStage,
        user: Optional[User] = None,
        notes: Optional[str] = None,
    ) -> Opportunity:
        opportunity = await self.get_opportunity(db, opportunity_id)
        if opportunity.status != OpportunityStatus.OPEN:
            raise InvalidStateTransitionError(
                "Closed opportunities cannot change stage", opportunity.status.value
            )

        opportunity.stage = stage
        opportunity.probability = STAGE_PROBABILITY[stage]
        opportunity.status = _status_for_stage(stage)
        if opportunity.status != OpportunityStatus.OPEN:
            opportunity.actual_close_date = date.today()
            opportunity.close_notes = notes
            if opportunity.status == OpportunityStatus.CLOSED_WON:
                self._record_won_revenue(db, opportunity, user)

        self._log_activity(db, opportunity, f"Stage Changed to {stage.value}", user, notes)
        await db.commit()
        await db.refresh(opportunity)

        logger.log_domain_event("Opportunity", "stage_changed", str(opportunity.id), stage=stage.value)
        return opportunity

    def _record_won_revenue(self, db: AsyncSession, opportunity: Opportunity, user: Optional[User]) -> None:
        if not opportunity.estimated_value or opportunity.estimated_value <= 0:
            return
        db.add(RevenueRecord(
            opportunity_id=opportunity.id,
            revenue_type=RevenueType.CORPORATE_CONTRACT,
            amount=opportunity.estimated_value,
            currency=settings.DEFAULT_CURRENCY,
            revenue_date=date.today(),
            sales_rep_id=opportunity.assigned_to,
            campaign_id=opportunity.campaign_id,
            created_by=str(user.id) if user else None,
        ))

    async def close_opportunity(
        self,
        db: AsyncSession,
        opportunity_id: str,
        outcome: str,
        user: Optional[User] = None,
        notes: Optional[str] = None,
    ) -> Opportunity:
        """Close as ``won`` or ``lost``; a won deal with value books a revenue record"""
        if outcome not in ("won", "lost"):
            raise ValidationError("Outcome must be 'won' or 'lost'", field="outcome")
        stage = OpportunityStage.CLOSED_WON if outcome == "won" else OpportunityStage.CLOSED_LOST
        return await self.update_stage(db, opportunity_id, stage, user, notes)

    async def delete_opportunity(self, db: AsyncSession, opportunity_id: str) -> None:
        opportunity = await self.get_opportunity(db, opportunity_id)
        await db.delete(opportunity)
        await db.commit()

    # ==================== ANALYTICS ====================

    async def calculate_pipeline_value(self, db: AsyncSession) -> PipelineValue:
        result = await db.execute(
            select(Opportunity.estimated_value, Opportunity.probability)
            .where(Opportunity.status == OpportunityStatus.OPEN)
        )
        rows = result.all()
        total = sum(value or 0 for value, _ in rows)
        weighted = sum((value or 0) * (probability or 0) / 100 for value, probability in rows)
        count = len(rows)
        return PipelineValue(
            total_value=round(total, 2),
            weighted_value=round(weighted, 2),
            opportunity_count=count,
            average_deal_size=round(total / count, 2) if count else 0.0,
        )

    async def get_forecast(self, db: AsyncSession, period: str = "month", today: Optional[date] = None) -> Forecast:
        if period not in FORECAST_MONTHS:
            raise ValidationError("Period must be month, quarter or year", field="period")
        start = today or date.today()
        end = add_months(start, FORECAST_MONTHS[period])

        result = await db.execute(
            select(Opportunity.estimated_value, Opportunity.probability).where(
                and_(
                    Opportunity.status == OpportunityStatus.OPEN,
                    Opportunity.expected_close_date >= start,
                    Opportunity.expected_close_date <= end,
                )
            )
        )
        rows = result.all()
        forecasted = sum((value or 0) * (probability or 0) / 100 for value, probability in rows)
        return Forecast(
            period=period,
            start_date=start,
            end_date=end,
            forecasted_revenue=round(forecasted, 2),
            opportunity_count=len(rows),
            confidence=forecast_confidence([probability or 0 for _, probability in rows]),
        )

    async def get_conversion_rates(self, db: AsyncSession) -> List[StageConversion]:
        result = await db.execute(
            select(Opportunity.stage, Opportunity.status).where(Opportunity.stage.in_(OPEN_STAGES))
        )
        groups = {stage: [0, 0] for stage in OPEN_STAGES}
        for stage, status in result.all():
            groups[stage][0] += 1
            if status == OpportunityStatus.OPEN:
                groups[stage][1] += 1

        return [
            StageConversion(
                stage=stage,
                total=total,
                progressed=progressed,
                conversion_rate=round(progressed / total * 100, 2) if total else 0.0,
            )
            for stage, (total, progressed) in groups.items()
        ]


opportunity_service = OpportunityService()
