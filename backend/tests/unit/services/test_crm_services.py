"""
Unit Tests for CRM Services
Tests for: opportunity pipeline, revenue reports, campaigns, dashboard
"""
import pytest
from datetime import date, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from traincrm.core.exceptions import InvalidStateTransitionError, ValidationError
from traincrm.models.crm import (
    ActivityType,
    CampaignStatus,
    CampaignType,
    LeadSource,
    LeadType,
    OpportunityStage,
    OpportunityStatus,
    RecipientStatus,
    RevenueRecord,
    RevenueType,
    TargetAudience,
)
from traincrm.models.training import Location
from sqlalchemy import select
from traincrm.schemas.crm import (
    ActivityCreate,
    CampaignCreate,
    EmailTemplateCreate,
    LeadCreate,
    OpportunityCreate,
    OpportunityFilters,
    RevenueCreate,
)
from traincrm.services.campaign_service import campaign_service, compute_campaign_metrics, lead_matches_campaign
from traincrm.services.contact_service import contact_service
from traincrm.services.crm_dashboard_service import crm_dashboard_service
from traincrm.services.lead_service import lead_service
from traincrm.services.opportunity_service import opportunity_service, add_months, forecast_confidence
from traincrm.services.revenue_service import revenue_service, calculate_commission


async def _opportunity(db, user, name="Fleet safety", value=10000.0, **kwargs):
    return await opportunity_service.create_opportunity(
        db, OpportunityCreate(opportunity_name=name, estimated_value=value, **kwargs), user
    )


class TestOpportunityHelpers:

    def test_add_months_clamps_day(self):
        assert add_months(date(2031, 1, 31), 1) == date(2031, 2, 28)
        assert add_months(date(2031, 11, 15), 3) == date(2032, 2, 15)

    def test_forecast_confidence_bounds(self):
        assert forecast_confidence([]) == 10.0
        assert forecast_confidence([10]) == 10.0
        assert forecast_confidence([50, 75]) == 50.0
        assert forecast_confidence([100]) == 80.0


class TestOpportunityPipeline:

    @pytest.mark.asyncio
    async def test_new_opportunity_gets_stage_probability(self, db_session, admin_user):
        opportunity = await _opportunity(db_session, admin_user, stage=OpportunityStage.PROPOSAL)

        assert opportunity.probability == 50
        assert opportunity.status == OpportunityStatus.OPEN

    @pytest.mark.asyncio
    async def test_cannot_start_closed(self, db_session, admin_user):
        with pytest.raises(ValidationError):
            await _opportunity(db_session, admin_user, stage=OpportunityStage.CLOSED_WON)

    @pytest.mark.asyncio
    async def test_closing_won_books_revenue(self, db_session, admin_user):
        opportunity = await _opportunity(db_session, admin_user, value=8000)

        closed = await opportunity_service.close_opportunity(db_session, opportunity.id, "won", admin_user, "Signed")
        records = (await db_session.execute(
            select(RevenueRecord).where(RevenueRecord.opportunity_id == opportunity.id)
        )).scalars().all()

        assert closed.stage == OpportunityStage.CLOSED_WON
        assert closed.status == OpportunityStatus.CLOSED_WON
        assert closed.probability == 100
        assert closed.actual_close_date == date.today()
        assert len(records) == 1
        assert records[0].revenue_type == RevenueType.CORPORATE_CONTRACT
        assert records[0].amount == 8000

    @pytest.mark.asyncio
    async def test_closed_opportunities_are_frozen(self, db_session, admin_user):
        opportunity = await _opportunity(db_session, admin_user)
        await opportunity_service.close_opportunity(db_session, opportunity.id, "lost", admin_user)

        with pytest.raises(InvalidStateTransitionError):
            await opportunity_service.update_stage(db_session, opportunity.id, OpportunityStage.PROPOSAL)

    @pytest.mark.asyncio
    async def test_bad_outcome(self, db_session, admin_user):
        opportunity = await _opportunity(db_session, admin_user)

        with pytest.raises(ValidationError):
            await opportunity_service.close_opportunity(db_session, opportunity.id, "maybe")

    @pytest.mark.asyncio
    async def test_pipeline_counts_open_only(self, db_session, admin_user):
        await _opportunity(db_session, admin_user, value=1000)
        await _opportunity(db_session, admin_user, value=3000, stage=OpportunityStage.NEGOTIATION)
        lost = await _opportunity(db_session, admin_user, value=99999)
        await opportunity_service.close_opportunity(db_session, lost.id, "lost")

        pipeline = await opportunity_service.calculate_pipeline_value(db_session)

        assert pipeline.opportunity_count == 2
        assert pipeline.total_value == 4000
        assert pipeline.weighted_value == 100 + 2250
        assert pipeline.average_deal_size == 2000

    @pytest.mark.asyncio
    async def test_forecast_window(self, db_session, admin_user):
        today = date(2031, 3, 1)
        await _opportunity(db_session, admin_user, value=1000, stage=OpportunityStage.NEGOTIATION,
                           expected_close_date=date(2031, 3, 20))
        await _opportunity(db_session, admin_user, value=5000, expected_close_date=date(2031, 5, 20))

        month = await opportunity_service.get_forecast(db_session, "month", today=today)
        quarter = await opportunity_service.get_forecast(db_session, "quarter", today=today)

        assert month.end_date == date(2031, 4, 1)
        assert month.opportunity_count == 1
        assert month.forecasted_revenue == 750
        assert month.confidence == 60.0
        assert quarter.opportunity_count == 2
        assert quarter.forecasted_revenue == 1250

        with pytest.raises(ValidationError):
            await opportunity_service.get_forecast(db_session, "decade")

    @pytest.mark.asyncio
    async def test_list_filters(self, db_session, admin_user):
        await _opportunity(db_session, admin_user, value=500)
        await _opportunity(db_session, admin_user, value=50000)

        opportunities, total = await opportunity_service.list_opportunities(
            db_session, OpportunityFilters(min_value=1000)
        )

        assert total == 1
        assert opportunities[0].estimated_value == 50000

    @pytest.mark.asyncio
    async def test_conversion_rates_per_open_stage(self, db_session, admin_user):
        await _opportunity(db_session, admin_user)
        await _opportunity(db_session, admin_user)
        await _opportunity(db_session, admin_user, stage=OpportunityStage.PROPOSAL)
        lost = await _opportunity(db_session, admin_user)
        await opportunity_service.close_opportunity(db_session, lost.id, "lost")

        rates = await opportunity_service.get_conversion_rates(db_session)

        assert [(r.stage, r.total, r.progressed) for r in rates] == [
            (OpportunityStage.PROSPECT, 2, 2),
            (OpportunityStage.PROPOSAL, 1, 1),
            (OpportunityStage.NEGOTIATION, 0, 0),
        ]
        assert rates[0].conversion_rate == 100.0
        assert rates[2].conversion_rate == 0.0


class TestRevenue:

    def test_commission(self):
        assert calculate_commission(1234.5, 10) == 123.45
        assert calculate_commission(1000, None) is None

    @pytest.mark.asyncio
    async def test_metrics_and_commissions(self, db_session, admin_user):
        await revenue_service.create_revenue_record(
            db_session,
            RevenueCreate(revenue_type=RevenueType.CERTIFICATE_SALE, amount=200, commission_rate=10,
                          revenue_date=date(2031, 1, 15)),
            admin_user,
        )
        await revenue_service.create_revenue_record(
            db_session,
            RevenueCreate(revenue_type=RevenueType.AP_SETUP_FEE, amount=1000, commission_rate=5,
                          currency="usd", revenue_date=date(2031, 2, 3)),
            admin_user,
        )

        metrics = await revenue_service.get_revenue_metrics(db_session)
        summary = await revenue_service.get_commission_summary(db_session, str(admin_user.id))
        trends = await revenue_service.get_revenue_trends(db_session)
        records, total = await revenue_service.list_revenue_records(db_session, revenue_type=RevenueType.AP_SETUP_FEE)

        assert metrics.total_revenue == 1200
        assert metrics.by_type["certificate_sale"] == 200
        assert metrics.by_type["recurring_revenue"] == 0.0
        assert metrics.transaction_count == 2
        assert summary.total_commission == 70
        assert summary.average_commission_rate == 7.5
        assert summary.commission_by_type == {"certificate_sale": 20.0, "ap_setup_fee": 50.0}
        assert [(p.period, p.revenue) for p in trends] == [("2031-01", 200.0), ("2031-02", 1000.0)]
        assert total == 1
        assert records[0].currency == "USD"

    @pytest.mark.asyncio
    async def test_revenue_by_source_follows_opportunity(self, db_session, admin_user):
        opportunity = await _opportunity(db_session, admin_user, value=3000, lead_source="referral")
        await opportunity_service.close_opportunity(db_session, opportunity.id, "won", admin_user)
        await revenue_service.create_revenue_record(
            db_session, RevenueCreate(revenue_type=RevenueType.CERTIFICATE_SALE, amount=1000), admin_user
        )

        sources = await revenue_service.get_revenue_by_source(db_session)

        assert [(s.source, s.percentage) for s in sources] == [("referral", 75.0), ("unknown", 25.0)]

    @pytest.mark.asyncio
    async def test_revenue_by_ap_grouped_and_sorted(self, db_session, admin_user):
        depot = Location(name="Winnipeg Depot")
        yard = Location(name="Regina Yard")
        db_session.add_all([depot, yard])
        await db_session.commit()

        for location, amount, certificates in (
            (depot, 300, 3),
            (depot, 200, None),
            (yard, 1200, 10),
            (None, 999, 4),
        ):
            await revenue_service.create_revenue_record(
                db_session,
                RevenueCreate(revenue_type=RevenueType.CERTIFICATE_SALE, amount=amount,
                              ap_location_id=str(location.id) if location else None,
                              certificate_count=certificates),
                admin_user,
            )

        rows = await revenue_service.get_revenue_by_ap(db_session)

        assert [(r.location_name, r.total_revenue, r.transaction_count, r.certificate_count) for r in rows] == [
            ("Regina Yard", 1200.0, 1, 10),
            ("Winnipeg Depot", 500.0, 2, 3),
        ]
        assert rows[0].ap_location_id == str(yard.id)


def _campaign(**overrides):
    fields = {
        "target_audience": TargetAudience.ALL,
        "geographic_targeting": [],
        "industry_targeting": [],
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _targeting_lead(**overrides):
    fields = {"lead_type": LeadType.INDIVIDUAL, "segments": [], "industry": None, "province": None}
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestCampaignTargeting:

    def test_audience_filters(self):
        corporate = _targeting_lead(lead_type=LeadType.CORPORATE)

        assert lead_matches_campaign(corporate, _campaign(target_audience=TargetAudience.CORPORATE))
        assert not lead_matches_campaign(corporate, _campaign(target_audience=TargetAudience.INDIVIDUALS))

    def test_potential_aps_by_segment_or_industry(self):
        audience = _campaign(target_audience=TargetAudience.POTENTIAL_APS)

        assert lead_matches_campaign(_targeting_lead(segments=["Potential_AP"]), audience)
        assert lead_matches_campaign(_targeting_lead(industry="Training"), audience)
        assert not lead_matches_campaign(_targeting_lead(industry="Mining"), audience)

    def test_province_filter(self):
        campaign = _campaign(geographic_targeting=["Ontario"])

        assert lead_matches_campaign(_targeting_lead(province="ontario"), campaign)
        assert not lead_matches_campaign(_targeting_lead(province="Alberta"), campaign)
        assert not lead_matches_campaign(_targeting_lead(), campaign)

    def test_metrics_formulae(self):
        campaign = SimpleNamespace(
            id="c1", total_recipients=200, delivered_count=100, opened_count=40, clicked_count=10,
            bounced_count=100, unsubscribed_count=2, leads_generated=5,
            revenue_attributed=1500.0, campaign_cost=500.0,
        )

        metrics = compute_campaign_metrics(campaign)

        assert metrics.open_rate == 40.0
        assert metrics.click_rate == 25.0
        assert metrics.conversion_rate == 2.5
        assert metrics.roi == 200.0

    def test_metrics_without_cost_or_delivery(self):
        campaign = SimpleNamespace(
            id="c2", total_recipients=10, delivered_count=0, opened_count=2, clicked_count=0,
            bounced_count=0, unsubscribed_count=0, leads_generated=0,
            revenue_attributed=0.0, campaign_cost=0.0,
        )

        metrics = compute_campaign_metrics(campaign)

        assert metrics.open_rate == 20.0
        assert metrics.roi == 0.0


class TestCampaigns:

    async def _leads(self, db, user):
        for first, email, lead_type in (
            ("Fay", "fay@corp.example.com", LeadType.CORPORATE),
            ("Gus", "gus@corp.example.com", LeadType.CORPORATE),
            ("Hal", "hal@home.example.com", LeadType.INDIVIDUAL),
        ):
            await lead_service.create_lead(
                db, LeadCreate(first_name=first, last_name="Test", email=email, lead_type=lead_type), user
            )

    async def _corporate_campaign(self, db, user):
        return await campaign_service.create_campaign(
            db,
            CampaignCreate(
                campaign_name="Spring corporate",
                campaign_type=CampaignType.PROMOTIONAL,
                target_audience=TargetAudience.CORPORATE,
                subject_line="Safety training for your team",
                email_content="<p>Hi {{name}}</p>",
            ),
            user,
        )

    @pytest.mark.asyncio
    async def test_send_counts_delivered_and_bounced(self, db_session, admin_user):
        await self._leads(db_session, admin_user)
        campaign = await self._corporate_campaign(db_session, admin_user)

        async def fake_send(to_email, subject, html_content, text_content=None):
            return not to_email.startswith("gus")

        with patch("traincrm.services.campaign_service.email_service.send_email",
                   new=AsyncMock(side_effect=fake_send)) as send:
            result = await campaign_service.send_campaign(db_session, campaign.id, throttle_seconds=0)

        refreshed = await campaign_service.get_campaign(db_session, campaign.id)
        assert send.await_count == 2
        assert result.total_recipients == 2
        assert result.delivered == 1
        assert result.bounced == 1
        assert refreshed.status == CampaignStatus.SENT
        assert refreshed.sent_date is not None

    @pytest.mark.asyncio
    async def test_sent_campaign_cannot_be_resent(self, db_session, admin_user):
        await self._leads(db_session, admin_user)
        campaign = await self._corporate_campaign(db_session, admin_user)
        with patch("traincrm.services.campaign_service.email_service.send_email",
                   new=AsyncMock(return_value=True)):
            await campaign_service.send_campaign(db_session, campaign.id, throttle_seconds=0)

            with pytest.raises(InvalidStateTransitionError):
                await campaign_service.send_campaign(db_session, campaign.id, throttle_seconds=0)

    @pytest.mark.asyncio
    async def test_send_without_recipients(self, db_session, admin_user):
        campaign = await self._corporate_campaign(db_session, admin_user)

        with pytest.raises(ValidationError):
            await campaign_service.send_campaign(db_session, campaign.id, throttle_seconds=0)

    @pytest.mark.asyncio
    async def test_engagement_counts_once(self, db_session, admin_user):
        await self._leads(db_session, admin_user)
        campaign = await self._corporate_campaign(db_session, admin_user)
        with patch("traincrm.services.campaign_service.email_service.send_email",
                   new=AsyncMock(return_value=True)):
            await campaign_service.send_campaign(db_session, campaign.id, throttle_seconds=0)

        await campaign_service.track_engagement(db_session, campaign.id, "open", "FAY@corp.example.com")
        await campaign_service.track_engagement(db_session, campaign.id, "open", "fay@corp.example.com")
        recipient = await campaign_service.track_engagement(db_session, campaign.id, "click", "fay@corp.example.com")
        metrics = await campaign_service.get_campaign_metrics(db_session, campaign.id)

        assert recipient.status == RecipientStatus.DELIVERED
        assert metrics.opened == 1
        assert metrics.clicked == 1
        assert metrics.open_rate == 50.0
        assert metrics.click_rate == 100.0

        with pytest.raises(ValidationError):
            await campaign_service.track_engagement(db_session, campaign.id, "forward", "fay@corp.example.com")

    @pytest.mark.asyncio
    async def test_schedule_must_be_future(self, db_session, admin_user):
        campaign = await self._corporate_campaign(db_session, admin_user)
        now = datetime(2031, 6, 1, 12, 0)

        with pytest.raises(ValidationError):
            await campaign_service.schedule_campaign(db_session, campaign.id, now - timedelta(hours=1), now=now)

        scheduled = await campaign_service.schedule_campaign(db_session, campaign.id, now + timedelta(days=1), now=now)
        assert scheduled.status == CampaignStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_nurture_sequence(self, db_session, admin_user):
        templates = [
            await campaign_service.create_template(
                db_session,
                EmailTemplateCreate(template_name=f"Step {n}", template_type=CampaignType.LEAD_NURTURE,
                                    subject_line=f"Subject {n}", email_content="Body"),
                admin_user,
            )
            for n in (1, 2)
        ]
        start = datetime(2031, 1, 1, 9, 0)

        campaigns = await campaign_service.create_nurture_sequence(
            db_session, "Welcome", TargetAudience.ALL, [t.id for t in templates], [0, 7], admin_user, start
        )

        assert [c.campaign_name for c in campaigns] == ["Welcome - Email 1", "Welcome - Email 2"]
        assert campaigns[1].scheduled_date == start + timedelta(days=7)
        assert all(c.campaign_type == CampaignType.LEAD_NURTURE for c in campaigns)

        with pytest.raises(ValidationError):
            await campaign_service.create_nurture_sequence(
                db_session, "Broken", TargetAudience.ALL, [templates[0].id], [0, 3], admin_user
            )

    @pytest.mark.asyncio
    async def test_performance_summary_covers_sent_campaigns(self, db_session, admin_user):
        await self._leads(db_session, admin_user)
        corporate = await self._corporate_campaign(db_session, admin_user)
        individuals = await campaign_service.create_campaign(
            db_session,
            CampaignCreate(
                campaign_name="Home first aid",
                campaign_type=CampaignType.PROMOTIONAL,
                target_audience=TargetAudience.INDIVIDUALS,
                subject_line="First aid at home",
                email_content="<p>Hi {{name}}</p>",
                campaign_cost=250,
            ),
            admin_user,
        )
        await self._corporate_campaign(db_session, admin_user)  # stays a draft

        with patch("traincrm.services.campaign_service.email_service.send_email",
                   new=AsyncMock(return_value=True)):
            await campaign_service.send_campaign(db_session, corporate.id, throttle_seconds=0)
            await campaign_service.send_campaign(db_session, individuals.id, throttle_seconds=0)
        await campaign_service.track_engagement(db_session, corporate.id, "open", "fay@corp.example.com")

        summary = await campaign_service.get_campaign_performance_summary(db_session)

        assert summary.campaign_count == 2
        assert summary.total_recipients == 3
        assert summary.total_delivered == 3
        assert summary.total_opened == 1
        assert summary.total_cost == 250
        assert summary.average_open_rate == 25.0
        assert summary.average_click_rate == 0.0

    @pytest.mark.asyncio
    async def test_performance_summary_without_sent_campaigns(self, db_session, admin_user):
        await self._corporate_campaign(db_session, admin_user)

        summary = await campaign_service.get_campaign_performance_summary(db_session)

        assert summary.campaign_count == 0
        assert summary.average_open_rate == 0.0

class TestActivities:

    @pytest.mark.asyncio
    async def test_upcoming_tasks_from_now_in_due_order(self, db_session, admin_user, instructor_user):
        now = datetime(2031, 6, 1, 9, 0)
        for subject, activity_type, due, extra in (
            ("Later", ActivityType.TASK, now + timedelta(days=2), {}),
            ("Soon", ActivityType.TASK, now + timedelta(hours=1), {}),
            ("Overdue", ActivityType.TASK, now - timedelta(days=1), {}),
            ("Done", ActivityType.TASK, now + timedelta(days=1), {"completed": True}),
            ("Call back", ActivityType.CALL, now + timedelta(days=1), {}),
            ("Not mine", ActivityType.TASK, now + timedelta(days=1), {"assigned_to": str(instructor_user.id)}),
        ):
            await contact_service.create_activity(
                db_session,
                ActivityCreate(activity_type=activity_type, subject=subject, due_date=due, **extra),
                admin_user,
            )

        tasks = await contact_service.get_upcoming_tasks(db_session, admin_user, now=now)

        assert [t.subject for t in tasks] == ["Soon", "Later"]



class TestCRMDashboard:

    @pytest.mark.asyncio
    async def test_stats(self, db_session, admin_user):
        lead = await lead_service.create_lead(db_session, LeadCreate(first_name="Ivy", last_name="Holt"), admin_user)
        await lead_service.create_lead(db_session, LeadCreate(first_name="Jon", last_name="Park"), admin_user)
        await lead_service.convert_lead(db_session, lead.id, admin_user)
        won = await _opportunity(db_session, admin_user, value=4000)
        lost = await _opportunity(db_session, admin_user, value=1000)
        await _opportunity(db_session, admin_user, value=2500)
        await opportunity_service.close_opportunity(db_session, won.id, "won")
        await opportunity_service.close_opportunity(db_session, lost.id, "lost")

        stats = await crm_dashboard_service.get_crm_stats(db_session)

        assert stats.total_leads == 2
        assert stats.conversion_rate == 50.0
        assert stats.total_opportunities == 3
        assert stats.total_pipeline_value == 2500
        assert stats.win_rate == 50.0
        assert stats.average_deal_size == 4000

    @pytest.mark.asyncio
    async def test_global_search(self, db_session, admin_user):
        await lead_service.create_lead(
            db_session,
            LeadCreate(first_name="Kim", last_name="Lowe", company_name="Harbour Freight",
                       lead_source=LeadSource.REFERRAL),
            admin_user,
        )
        await _opportunity(db_session, admin_user, name="Harbour Freight renewal")

        result = await crm_dashboard_service.global_search(db_session, "harbour")

        assert result.total == 2
        assert {hit.entity_type for hit in result.results} == {"lead", "opportunity"}
