"""
Revenue Service - revenue records, commissions and attribution reports
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from datetime import date
from typing import Optional, List, Dict, Tuple
from collections import defaultdict

from traincrm.core.config import settings
from traincrm.core.exceptions import ResourceNotFoundError
from traincrm.core.logging_config import get_logger
from traincrm.models.crm import RevenueRecord, RevenueType, Opportunity
from traincrm.models.training import Location
from traincrm.models.user import User
from traincrm.schemas.crm import (
    RevenueCreate,
    RevenueMetrics,
    CommissionSummary,
    RevenueByAP,
    RevenueBySource,
    RevenueTrendPoint,
)

logger = get_logger(__name__)


def calculate_commission(amount: float, rate: Optional[float]) -> Optional[float]:
    if rate is None:
        return None
    return round(amount * rate / 100, 2)


def _date_conditions(start: Optional[date], end: Optional[date]) -> list:
    conditions = []
    if start:
        conditions.append(RevenueRecord.revenue_date >= start)
    if end:
        conditions.append(RevenueRecord.revenue_date <= end)
    return conditions


class RevenueService:
    """Service for revenue records and reports"""

    async def create_revenue_record(self, db: AsyncSession, data: RevenueCreate, user: User) -> RevenueRecord:
        record = RevenueRecord(
            **data.model_dump(exclude={"currency", "revenue_date", "sales_rep_id"}),
            currency=(data.currency or settings.DEFAULT_CURRENCY).upper(),
            revenue_date=data.revenue_date or date.today(),
            sales_rep_id=data.sales_rep_id or str(user.id),
            commission_amount=calculate_commission(data.amount, data.commission_rate),
            created_by=str(user.id),
        )
        db.add(record)
        await db.commit()
        await db.refresh(record)
        logger.log_domain_event("Revenue", "recorded", str(record.id), amount=record.amount)
        return record

    async def get_revenue_record(self, db: AsyncSession, record_id: str) -> RevenueRecord:
        record = await db.get(RevenueRecord, record_id)
        if not record:
            raise ResourceNotFoundError("Revenue record", record_id)
        return record

    async def list_revenue_records(
        self,
        db: AsyncSession,
        revenue_type: Optional[RevenueType] = None,
        sales_rep_id: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[RevenueRecord], int]:
        conditions = _date_conditions(start, end)
        if revenue_type:
            conditions.append(RevenueRecord.revenue_type == revenue_type)
        if sales_rep_id:
            conditions.append(RevenueRecord.sales_rep_id == sales_rep_id)

        total = (await db.execute(select(func.count(RevenueRecord.id)).where(*conditions))).scalar() or 0
        result = await db.execute(
            select(RevenueRecord).where(*conditions)
            .order_by(RevenueRecord.revenue_date.desc(), RevenueRecord.amount.desc())
            .offset((page - 1) * limit).limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_revenue_metrics(
        self,
        db: AsyncSession,
        start: Optional[date] = None,
        end: Optional[date] = None,
        sales_rep_id: Optional[str] = None,
    ) -> RevenueMetrics:
        conditions = _date_conditions(start, end)
        if sales_rep_id:
            conditions.append(RevenueRecord.sales_rep_id == sales_rep_id)

        result = await db.execute(
            select(RevenueRecord.revenue_type, func.sum(RevenueRecord.amount), func.count(RevenueRecord.id))
            .where(*conditions)
            .group_by(RevenueRecord.revenue_type)
        )
        by_type = {t.value: 0.0 for t in RevenueType}
        count = 0
        for revenue_type, amount, rows in result.all():
            by_type[revenue_type.value] = round(amount or 0.0, 2)
            count += rows

        return RevenueMetrics(
            total_revenue=round(sum(by_type.values()), 2),
            by_type=by_type,
            transaction_count=count,
        )

    async def get_commission_summary(
        self,
        db: AsyncSession,
        sales_rep_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> CommissionSummary:
        conditions = _date_conditions(start, end)
        conditions.append(RevenueRecord.sales_rep_id == sales_rep_id)
        result = await db.execute(select(RevenueRecord).where(and_(*conditions)))
        records = list(result.scalars().all())

        by_type: Dict[str, float] = defaultdict(float)
        for record in records:
            by_type[record.revenue_type.value] += record.commission_amount or 0.0
        rates = [r.commission_rate for r in records if r.commission_rate and r.commission_rate > 0]

        return CommissionSummary(
            sales_rep_id=sales_rep_id,
            total_commission=round(sum(r.commission_amount or 0.0 for r in records), 2),
            total_sales=round(sum(r.amount for r in records), 2),
            average_commission_rate=round(sum(rates) / len(rates), 2) if rates else 0.0,
            record_count=len(records),
            commission_by_type={k: round(v, 2) for k, v in by_type.items()},
        )

    async def get_revenue_by_ap(
        self, db: AsyncSession, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[RevenueByAP]:
        conditions = _date_conditions(start, end)
        conditions.append(RevenueRecord.ap_location_id.is_not(None))
        result = await db.execute(
            select(
                RevenueRecord.ap_location_id,
                Location.name,
                func.sum(RevenueRecord.amount),
                func.count(RevenueRecord.id),
                func.sum(func.coalesce(RevenueRecord.certificate_count, 0)),
            )
            .outerjoin(Location, Location.id == RevenueRecord.ap_location_id)
            .where(*conditions)
            .group_by(RevenueRecord.ap_location_id, Location.name)
        )
        rows = [
            RevenueByAP(
                ap_location_id=str(location_id),
                location_name=name,
                total_revenue=round(amount or 0.0, 2),
                transaction_count=count,
                certificate_count=int(certificates or 0),
            )
            for location_id, name, amount, count, certificates in result.all()
        ]
        return sorted(rows, key=lambda r: r.total_revenue, reverse=True)

    async def get_revenue_by_source(
        self, db: AsyncSession, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[RevenueBySource]:
        """Revenue grouped by the lead source of the linked opportunity"""
        result = await db.execute(
            select(RevenueRecord.amount, Opportunity.lead_source)
            .outerjoin(Opportunity, Opportunity.id == RevenueRecord.opportunity_id)
            .where(*_date_conditions(start, end))
        )
        totals: Dict[str, float] = defaultdict(float)
        for amount, source in result.all():
            totals[source or "unknown"] += amount or 0.0

        grand_total = sum(totals.values())
        rows = [
            RevenueBySource(
                source=source,
                revenue=round(amount, 2),
                percentage=round(amount / grand_total * 100, 2) if grand_total else 0.0,
            )
            for source, amount in totals.items()
        ]
        return sorted(rows, key=lambda r: r.revenue, reverse=True)

    async def get_revenue_trends(
        self, db: AsyncSession, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[RevenueTrendPoint]:
        result = await db.execute(
            select(RevenueRecord.revenue_date, RevenueRecord.amount).where(*_date_conditions(start, end))
        )
        buckets: Dict[str, List[float]] = defaultdict(list)
        for revenue_date, amount in result.all():
            buckets[revenue_date.strftime("%Y-%m")].append(amount or 0.0)

        return [
            RevenueTrendPoint(period=period, revenue=round(sum(amounts), 2), transaction_count=len(amounts))
            for period, amounts in sorted(buckets.items())
        ]


revenue_service = RevenueService()
