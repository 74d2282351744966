"""
Campaign Service - targeted email campaigns to leads

Recipients are the leads matching a campaign's audience, province and
industry filters. Sends go through the email service and the delivered /
bounced counters come from its results. Engagement (open, click,
unsubscribe) counts once per recipient.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from datetime import datetime, timedelta
from typing import Optional, List, Iterable

from traincrm.core.exceptions import (
    CampaignNotFoundError,
    InvalidStateTransitionError,
    ResourceNotFoundError,
    ValidationError,
)
from traincrm.core.logging_config import get_logger
from traincrm.models.crm import (
    Activity,
    ActivityType,
    CampaignRecipient,
    CampaignStatus,
    CampaignType,
    EmailCampaign,
    EmailTemplate,
    Lead,
    LeadStatus,
    LeadType,
    RecipientStatus,
    TargetAudience,
)
from traincrm.models.user import User
from traincrm.schemas.crm import (
    CampaignCreate,
    CampaignUpdate,
    CampaignSendResult,
    CampaignMetrics,
    CampaignPerformanceSummary,
    EmailTemplateCreate,
    EmailTemplateUpdate,
)
from traincrm.services.email_service import email_service

logger = get_logger(__name__)

EDITABLE_STATUSES = (CampaignStatus.DRAFT, CampaignStatus.SCHEDULED, CampaignStatus.PAUSED)
POTENTIAL_AP_SEGMENT = "potential_ap"
POTENTIAL_AP_INDUSTRY = "training"


def _lower_set(values: Optional[Iterable[str]]) -> set:
    return {str(v).strip().lower() for v in (values or []) if str(v).strip()}


def lead_matches_campaign(lead: Lead, campaign: EmailCampaign) -> bool:
    """Audience, province and industry filters for one lead"""
    audience = TargetAudience(campaign.target_audience)
    if audience == TargetAudience.INDIVIDUALS and lead.lead_type != LeadType.INDIVIDUAL:
        return False
    if audience == TargetAudience.CORPORATE and lead.lead_type != LeadType.CORPORATE:
        return False
    if audience == TargetAudience.POTENTIAL_APS:
        segments = _lower_set(lead.segments)
        if POTENTIAL_AP_SEGMENT not in segments and (lead.industry or "").strip().lower() != POTENTIAL_AP_INDUSTRY:
            return False

    provinces = _lower_set(campaign.geographic_targeting)
    if provinces and (lead.province or "").strip().lower() not in provinces:
        return False

    industries = _lower_set(campaign.industry_targeting)
    if industries and (lead.industry or "").strip().lower() not in industries:
        return False

    return True


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def compute_campaign_metrics(campaign: EmailCampaign) -> CampaignMetrics:
    delivered = campaign.delivered_count or 0
    opens_base = delivered or (campaign.total_recipients or 0)
    cost = campaign.campaign_cost or 0.0
    revenue = campaign.revenue_attributed or 0.0

    return CampaignMetrics(
        campaign_id=str(campaign.id),
        total_recipients=campaign.total_recipients or 0,
        delivered=delivered,
        opened=campaign.opened_count or 0,
        clicked=campaign.clicked_count or 0,
        bounced=campaign.bounced_count or 0,
        unsubscribed=campaign.unsubscribed_count or 0,
        open_rate=_percent(campaign.opened_count or 0, opens_base),
        click_rate=_percent(campaign.clicked_count or 0, campaign.opened_count or 0),
        conversion_rate=_percent(campaign.leads_generated or 0, campaign.total_recipients or 0),
        roi=round((revenue - cost) / cost * 100, 2) if cost > 0 else 0.0,
    )


class CampaignService:
    """Service for email campaigns and templates"""

    # ==================== CAMPAIGNS ====================

    async def create_campaign(self, db: AsyncSession, data: CampaignCreate, user: User) -> EmailCampaign:
        campaign = EmailCampaign(
            **data.model_dump(),
            status=CampaignStatus.DRAFT,
            total_recipients=0,
            delivered_count=0,
            opened_count=0,
            clicked_count=0,
            bounced_count=0,
            unsubscribed_count=0,
            leads_generated=0,
            opportunities_created=0,
            revenue_attributed=0.0,
            created_by=str(user.id),
        )
        db.add(campaign)
        await db.commit()
        await db.refresh(campaign)
        return campaign

    async def get_campaign(self, db: AsyncSession, campaign_id: str) -> EmailCampaign:
        campaign = await db.get(EmailCampaign, campaign_id)
        if not campaign:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    async def list_campaigns(
        self, db: AsyncSession, status: Optional[CampaignStatus] = None
    ) -> List[EmailCampaign]:
        query = select(EmailCampaign)
        if status:
            query = query.where(EmailCampaign.status == status)
        result = await db.execute(query.order_by(EmailCampaign.created_at.desc()))
        return list(result.scalars().all())

    async def update_campaign(self, db: AsyncSession, campaign_id: str, data: CampaignUpdate) -> EmailCampaign:
        campaign = await self.get_campaign(db, campaign_id)
        if campaign.status not in EDITABLE_STATUSES:
            raise InvalidStateTransitionError(
                f"Campaign is {campaign.status.value} and can no longer be edited", campaign.status.value
            )
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(campaign, field, value)
        await db.commit()
        await db.refresh(campaign)
        return campaign

    async def get_targeted_recipients(self, db: AsyncSession, campaign: EmailCampaign) -> List[Lead]:
        result = await db.execute(
            select(Lead).where(
                and_(
                    Lead.lead_status != LeadStatus.LOST,
                    Lead.email.is_not(None),
                    Lead.email != "",
                )
            )
        )
        seen = set()
        recipients = []
        for lead in result.scalars().all():
            key = lead.email.lower()
            if key in seen or not lead_matches_campaign(lead, campaign):
                continue
            seen.add(key)
            recipients.append(lead)
        return recipients

    async def schedule_campaign(
        self, db: AsyncSession, campaign_id: str, scheduled_date: datetime, now: Optional[datetime] = None
    ) -> EmailCampaign:
        campaign = await self.get_campaign(db, campaign_id)
        if campaign.status not in EDITABLE_STATUSES:
            raise InvalidStateTransitionError(
                f"Campaign is {campaign.status.value} and cannot be scheduled", campaign.status.value
            )
        if scheduled_date.tzinfo is not None:
            scheduled_date = scheduled_date.replace(tzinfo=None) - (scheduled_date.utcoffset() or timedelta())
        if scheduled_date <= (now or datetime.utcnow()):
            raise ValidationError("Scheduled date must be in the future", field="scheduled_date")

        campaign.scheduled_date = scheduled_date
        campaign.status = CampaignStatus.SCHEDULED
        campaign.total_recipients = len(await self.get_targeted_recipients(db, campaign))
        await db.commit()
        await db.refresh(campaign)
        return campaign

    async def send_campaign(
        self, db: AsyncSession, campaign_id: str, throttle_seconds: float = 0.1
    ) -> CampaignSendResult:
        campaign = await self.get_campaign(db, campaign_id)
        if campaign.status not in EDITABLE_STATUSES:
            raise InvalidStateTransitionError(
                f"Campaign is {campaign.status.value} and cannot be sent", campaign.status.value
            )

        leads = await self.get_targeted_recipients(db, campaign)
        if not leads:
            raise ValidationError("No recipients found for campaign targeting")

        campaign.status = CampaignStatus.SENDING
        await db.commit()

        send_result = await email_service.send_bulk_email(
            [{"email": lead.email, "name": lead.first_name} for lead in leads],
            campaign.subject_line,
            campaign.email_content,
            throttle_seconds=throttle_seconds,
        )
        delivered = {e.lower() for e in send_result["sent_emails"]}

        now = datetime.utcnow()
        for lead in leads:
            db.add(CampaignRecipient(
                campaign_id=campaign.id,
                lead_id=lead.id,
                email=lead.email.lower(),
                status=RecipientStatus.DELIVERED if lead.email.lower() in delivered else RecipientStatus.BOUNCED,
                sent_at=now,
            ))
            lead.campaign_id = lead.campaign_id or campaign.id

        campaign.total_recipients = len(leads)
        campaign.delivered_count = send_result["success_count"]
        campaign.bounced_count = send_result["failed_count"]
        campaign.status = CampaignStatus.SENT
        campaign.sent_date = now
        await db.commit()

        logger.log_domain_event(
            "Campaign", "sent", str(campaign.id),
            recipients=len(leads), delivered=campaign.delivered_count, bounced=campaign.bounced_count,
        )
        return CampaignSendResult(
            campaign_id=str(campaign.id),
            total_recipients=len(leads),
            delivered=campaign.delivered_count,
            bounced=campaign.bounced_count,
        )

    async def track_engagement(
        self, db: AsyncSession, campaign_id: str, event_type: str, email: str
    ) -> CampaignRecipient:
        """Record an open, click or unsubscribe; repeats of the same event are ignored"""
        if event_type not in ("open", "click", "unsubscribe"):
            raise ValidationError("Event type must be open, click or unsubscribe", field="event_type")

        campaign = await self.get_campaign(db, campaign_id)
        result = await db.execute(
            select(CampaignRecipient).where(
                and_(
                    CampaignRecipient.campaign_id == campaign_id,
                    CampaignRecipient.email == email.strip().lower(),
                )
            )
        )
        recipient = result.scalar_one_or_none()
        if recipient is None:
            raise ResourceNotFoundError("Campaign recipient", email)

        now = datetime.utcnow()
        if event_type == "open" and recipient.opened_at is None:
            recipient.opened_at = now
            campaign.opened_count = (campaign.opened_count or 0) + 1
        elif event_type == "click" and recipient.clicked_at is None:
            recipient.clicked_at = now
            campaign.clicked_count = (campaign.clicked_count or 0) + 1
            if recipient.lead_id:
                db.add(Activity(
                    activity_type=ActivityType.EMAIL,
                    subject=f"Clicked campaign email: {campaign.campaign_name}",
                    activity_date=now,
                    completed=True,
                    lead_id=recipient.lead_id,
                ))
        elif event_type == "unsubscribe" and recipient.unsubscribed_at is None:
            recipient.unsubscribed_at = now
            campaign.unsubscribed_count = (campaign.unsubscribed_count or 0) + 1

        await db.commit()
        await db.refresh(recipient)
        return recipient

    async def get_campaign_metrics(self, db: AsyncSession, campaign_id: str) -> CampaignMetrics:
        return compute_campaign_metrics(await self.get_campaign(db, campaign_id))

    async def get_campaign_performance_summary(self, db: AsyncSession) -> CampaignPerformanceSummary:
        campaigns = await self.list_campaigns(db, CampaignStatus.SENT)
        metrics = [compute_campaign_metrics(c) for c in campaigns]
        count = len(campaigns)

        return CampaignPerformanceSummary(
            campaign_count=count,
            total_recipients=sum(c.total_recipients or 0 for c in campaigns),
            total_delivered=sum(c.delivered_count or 0 for c in campaigns),
            total_opened=sum(c.opened_count or 0 for c in campaigns),
            total_clicked=sum(c.clicked_count or 0 for c in campaigns),
            total_revenue=round(sum(c.revenue_attributed or 0.0 for c in campaigns), 2),
            total_cost=round(sum(c.campaign_cost or 0.0 for c in campaigns), 2),
            average_open_rate=round(sum(m.open_rate for m in metrics) / count, 2) if count else 0.0,
            average_click_rate=round(sum(m.click_rate for m in metrics) / count, 2) if count else 0.0,
        )

    async def create_nurture_sequence(
        self,
        db: AsyncSession,
        sequence_name: str,
        target_audience: TargetAudience,
        template_ids: List[str],
        day_intervals: List[int],
        user: User,
        start_date: Optional[datetime] = None,
    ) -> List[EmailCampaign]:
        """One scheduled lead_nurture campaign per template, spaced by ``day_intervals``"""
        if len(template_ids) != len(day_intervals):
            raise ValidationError("Each template needs a matching day interval", field="day_intervals")

        base = start_date or datetime.utcnow()
        campaigns = []
        for index, (template_id, days) in enumerate(zip(template_ids, day_intervals), start=1):
            template = await self.get_template(db, template_id)
            campaign = EmailCampaign(
                campaign_name=f"{sequence_name} - Email {index}",
                campaign_type=CampaignType.LEAD_NURTURE,
                target_audience=target_audience,
                status=CampaignStatus.SCHEDULED,
                subject_line=template.subject_line,
                email_content=template.email_content,
                template_id=template.id,
                target_segments=[],
                geographic_targeting=[],
                industry_targeting=[],
                scheduled_date=base + timedelta(days=days),
                created_by=str(user.id),
            )
            db.add(campaign)
            campaigns.append(campaign)

        await db.flush()
        for campaign in campaigns:
            campaign.total_recipients = len(await self.get_targeted_recipients(db, campaign))
        await db.commit()
        for campaign in campaigns:
            await db.refresh(campaign)

        logger.log_domain_event("Campaign", "nurture_sequence_created", None, sequence_name=sequence_name, steps=len(campaigns))
        return campaigns

    # ==================== TEMPLATES ====================

    async def create_template(self, db: AsyncSession, data: EmailTemplateCreate, user: User) -> EmailTemplate:
        template = EmailTemplate(
            **data.model_dump(exclude={"template_type"}),
            template_type=data.template_type.value,
            created_by=str(user.id),
        )
        db.add(template)
        await db.commit()
        await db.refresh(template)
        return template

    async def get_template(self, db: AsyncSession, template_id: str) -> EmailTemplate:
        template = await db.get(EmailTemplate, template_id)
        if not template:
            raise ResourceNotFoundError("Email template", template_id)
        return template

    async def list_templates(
        self, db: AsyncSession, template_type: Optional[str] = None, active_only: bool = True
    ) -> List[EmailTemplate]:
        query = select(EmailTemplate)
        if template_type:
            query = query.where(EmailTemplate.template_type == template_type)
        if active_only:
            query = query.where(EmailTemplate.is_active == True)  # noqa: E712
        result = await db.execute(query.order_by(EmailTemplate.template_name))
        return list(result.scalars().all())

    async def update_template(self, db: AsyncSession, template_id: str, data: EmailTemplateUpdate) -> EmailTemplate:
        template = await self.get_template(db, template_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(template, field, value)
        await db.commit()
        await db.refresh(template)
        return template

    async def delete_template(self, db: AsyncSession, template_id: str) -> None:
        template = await self.get_template(db, template_id)
        await db.delete(template)
        await db.commit()


campaign_service = CampaignService()
