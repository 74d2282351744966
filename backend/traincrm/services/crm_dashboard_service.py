"""
CRM Dashboard Service - headline numbers and cross-entity search
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_

from traincrm.models.crm import (
    Lead,
    LeadStatus,
    Contact,
    Account,
    Opportunity,
    OpportunityStatus,
    Activity,
)
from traincrm.schemas.crm import CRMStats, SearchHit, GlobalSearchResult


class CRMDashboardService:

    async def _count(self, db: AsyncSession, column, *conditions) -> int:
        return (await db.execute(select(func.count(column)).where(*conditions))).scalar() or 0

    async def get_crm_stats(self, db: AsyncSession) -> CRMStats:
        total_leads = await self._count(db, Lead.id)
        converted_leads = await self._count(db, Lead.id, Lead.lead_status == LeadStatus.CONVERTED)
        total_opportunities = await self._count(db, Opportunity.id)
        total_activities = await self._count(db, Activity.id)

        won = await self._count(db, Opportunity.id, Opportunity.status == OpportunityStatus.CLOSED_WON)
        lost = await self._count(db, Opportunity.id, Opportunity.status == OpportunityStatus.CLOSED_LOST)

        pipeline = (await db.execute(
            select(func.sum(Opportunity.estimated_value)).where(Opportunity.status == OpportunityStatus.OPEN)
        )).scalar() or 0.0
        won_average = (await db.execute(
            select(func.avg(Opportunity.estimated_value)).where(Opportunity.status == OpportunityStatus.CLOSED_WON)
        )).scalar() or 0.0

        return CRMStats(
            total_leads=total_leads,
            total_opportunities=total_opportunities,
            total_pipeline_value=round(float(pipeline), 2),
            total_activities=total_activities,
            conversion_rate=round(converted_leads / total_leads * 100, 2) if total_leads else 0.0,
            win_rate=round(won / (won + lost) * 100, 2) if (won + lost) else 0.0,
            average_deal_size=round(float(won_average), 2),
        )

    async def global_search(self, db: AsyncSession, term: str, limit: int = 10) -> GlobalSearchResult:
        """Case-insensitive search across leads, contacts, accounts and opportunities"""
        pattern = f"%{term.strip()}%"
        hits = []

        leads = await db.execute(
            select(Lead).where(or_(
                Lead.first_name.ilike(pattern),
                Lead.last_name.ilike(pattern),
                Lead.email.ilike(pattern),
                Lead.company_name.ilike(pattern),
            )).limit(limit)
        )
        hits += [
            SearchHit(entity_type="lead", id=str(lead.id), title=lead.full_name, subtitle=lead.company_name or lead.email)
            for lead in leads.scalars().all()
        ]

        contacts = await db.execute(
            select(Contact).where(or_(
                Contact.first_name.ilike(pattern),
                Contact.last_name.ilike(pattern),
                Contact.email.ilike(pattern),
            )).limit(limit)
        )
        hits += [
            SearchHit(entity_type="contact", id=str(c.id), title=c.full_name, subtitle=c.email)
            for c in contacts.scalars().all()
        ]

        accounts = await db.execute(
            select(Account).where(or_(Account.account_name.ilike(pattern), Account.industry.ilike(pattern))).limit(limit)
        )
        hits += [
            SearchHit(entity_type="account", id=str(a.id), title=a.account_name, subtitle=a.industry)
            for a in accounts.scalars().all()
        ]

        opportunities = await db.execute(
            select(Opportunity).where(Opportunity.opportunity_name.ilike(pattern)).limit(limit)
        )
        hits += [
            SearchHit(entity_type="opportunity", id=str(o.id), title=o.opportunity_name, subtitle=o.stage.value)
            for o in opportunities.scalars().all()
        ]

        return GlobalSearchResult(term=term, results=hits, total=len(hits))


crm_dashboard_service = CRMDashboardService()
