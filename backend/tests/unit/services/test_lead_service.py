"""
Unit Tests for the Lead Service
Tests for: scoring weights, scoring rules, lead conversion
"""
import pytest
from types import SimpleNamespace

from traincrm.core.exceptions import InvalidStateTransitionError, ResourceNotFoundError
from traincrm.models.crm import (
    Account,
    Contact,
    LeadSource,
    LeadStatus,
    LeadType,
    Opportunity,
    OpportunityStage,
    ScoringOperator,
    ScoringRuleType,
    TrainingUrgency,
)
from traincrm.schemas.crm import LeadCreate, LeadUpdate, ScoringRuleCreate
from traincrm.services.lead_service import lead_service, calculate_lead_score, rule_matches


def _lead(**overrides):
    fields = {
        "lead_source": None,
        "lead_type": None,
        "estimated_participant_count": None,
        "training_urgency": None,
        "company_name": None,
        "job_title": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _rule(field_name, operator, field_value, score_points=10, is_active=True):
    return SimpleNamespace(
        field_name=field_name,
        operator=operator,
        field_value=field_value,
        score_points=score_points,
        is_active=is_active,
    )


class TestLeadScoring:

    def test_empty_lead_scores_zero(self):
        assert calculate_lead_score(_lead()) == 0

    def test_base_weights_add_up(self):
        lead = _lead(
            lead_source=LeadSource.REFERRAL,
            lead_type=LeadType.CORPORATE,
            estimated_participant_count=25,
            training_urgency=TrainingUrgency.WITHIN_MONTH,
            company_name="Northern Rail",
            job_title="Safety Manager",
        )

        # 20 + 15 + 15 + 15 + 5 + 5
        assert calculate_lead_score(lead) == 75

    def test_participant_tiers(self):
        assert calculate_lead_score(_lead(estimated_participant_count=1)) == 5
        assert calculate_lead_score(_lead(estimated_participant_count=10)) == 10
        assert calculate_lead_score(_lead(estimated_participant_count=49)) == 15
        assert calculate_lead_score(_lead(estimated_participant_count=50)) == 20

    def test_score_is_clamped(self):
        lead = _lead(lead_source=LeadSource.REFERRAL)
        bonus = _rule("lead_source", ScoringOperator.EQUALS, "referral", score_points=100)
        penalty = _rule("lead_source", ScoringOperator.EQUALS, "referral", score_points=-100)

        assert calculate_lead_score(lead, [bonus]) == 100
        assert calculate_lead_score(lead, [penalty]) == 0

    def test_inactive_rules_are_ignored(self):
        lead = _lead(company_name="Acme")
        rule = _rule("company_name", ScoringOperator.CONTAINS, "acm", is_active=False)

        assert calculate_lead_score(lead, [rule]) == 5


class TestRuleMatching:

    def test_equals_ignores_case_and_enum_wrapping(self):
        lead = _lead(lead_source=LeadSource.TRADE_SHOW)

        assert rule_matches(lead, _rule("lead_source", ScoringOperator.EQUALS, "Trade_Show"))

    def test_numeric_comparisons(self):
        lead = _lead(estimated_participant_count=30)

        assert rule_matches(lead, _rule("estimated_participant_count", ScoringOperator.GREATER_THAN, "20"))
        assert not rule_matches(lead, _rule("estimated_participant_count", ScoringOperator.LESS_THAN, "20"))
        assert not rule_matches(lead, _rule("estimated_participant_count", ScoringOperator.GREATER_THAN, "many"))

    def test_in_list(self):
        lead = _lead(province="Ontario")

        assert rule_matches(lead, _rule("province", ScoringOperator.IN_LIST, "Quebec, Ontario"))
        assert not rule_matches(lead, _rule("province", ScoringOperator.IN_LIST, "Quebec,Alberta"))

    def test_missing_field_never_matches(self):
        assert not rule_matches(_lead(), _rule("industry", ScoringOperator.CONTAINS, "rail"))


class TestLeadLifecycle:

    @pytest.mark.asyncio
    async def test_create_scores_and_assigns_creator(self, db_session, admin_user):
        lead = await lead_service.create_lead(
            db_session,
            LeadCreate(first_name="Ada", last_name="Moss", lead_source=LeadSource.WEBSITE, company_name="Moss Co"),
            admin_user,
        )

        assert lead.lead_status == LeadStatus.NEW
        assert lead.lead_score == 20
        assert str(lead.assigned_to) == str(admin_user.id)

    @pytest.mark.asyncio
    async def test_active_rules_apply_on_update(self, db_session, admin_user):
        await lead_service.create_scoring_rule(
            db_session,
            ScoringRuleCreate(
                rule_name="Rail industry",
                rule_type=ScoringRuleType.FIRMOGRAPHIC,
                field_name="industry",
                operator=ScoringOperator.EQUALS,
                field_value="rail",
                score_points=30,
            ),
            admin_user,
        )
        lead = await lead_service.create_lead(db_session, LeadCreate(first_name="Ben", last_name="Orr"), admin_user)
        assert lead.lead_score == 5

        lead = await lead_service.update_lead(db_session, lead.id, LeadUpdate(industry="Rail"))

        assert lead.lead_score == 35

    @pytest.mark.asyncio
    async def test_missing_lead(self, db_session):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            await lead_service.get_lead(db_session, "00000000-0000-0000-0000-000000000000")

        assert exc_info.value.code == "LEAD_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_list_filters_by_min_score(self, db_session, admin_user):
        await lead_service.create_lead(db_session, LeadCreate(first_name="Low", last_name="Score"), admin_user)
        await lead_service.create_lead(
            db_session,
            LeadCreate(first_name="High", last_name="Score", lead_source=LeadSource.REFERRAL,
                       lead_type=LeadType.CORPORATE),
            admin_user,
        )

        leads, total = await lead_service.list_leads(db_session, min_score=20)

        assert total == 1
        assert leads[0].first_name == "High"


class TestLeadConversion:

    @pytest.mark.asyncio
    async def test_full_conversion(self, db_session, admin_user):
        lead = await lead_service.create_lead(
            db_session,
            LeadCreate(
                first_name="Cara",
                last_name="Vance",
                email="cara@vance-logistics.example.com",
                company_name="Vance Logistics",
                lead_type=LeadType.CORPORATE,
                lead_source=LeadSource.TRADE_SHOW,
            ),
            admin_user,
        )

        result = await lead_service.convert_lead(
            db_session, lead.id, admin_user,
            create_account=True, create_opportunity=True, opportunity_value=12000,
        )

        account = await db_session.get(Account, result.account_id)
        contact = await db_session.get(Contact, result.contact_id)
        opportunity = await db_session.get(Opportunity, result.opportunity_id)
        refreshed = await lead_service.get_lead(db_session, lead.id)

        assert account.account_name == "Vance Logistics"
        assert str(contact.account_id) == str(account.id)
        assert str(contact.converted_from_lead_id) == str(lead.id)
        assert opportunity.stage == OpportunityStage.PROSPECT
        assert opportunity.probability == 10
        assert opportunity.estimated_value == 12000
        assert opportunity.lead_source == "trade_show"
        assert refreshed.lead_status == LeadStatus.CONVERTED
        assert refreshed.conversion_date is not None

    @pytest.mark.asyncio
    async def test_contact_only_conversion(self, db_session, admin_user):
        lead = await lead_service.create_lead(db_session, LeadCreate(first_name="Dev", last_name="Lin"), admin_user)

        result = await lead_service.convert_lead(db_session, lead.id, admin_user, create_account=True)

        # no company name means no account
        assert result.account_id is None
        assert result.opportunity_id is None

    @pytest.mark.asyncio
    async def test_cannot_convert_twice(self, db_session, admin_user):
        lead = await lead_service.create_lead(db_session, LeadCreate(first_name="Eve", last_name="Ng"), admin_user)
        await lead_service.convert_lead(db_session, lead.id, admin_user)

        with pytest.raises(InvalidStateTransitionError):
            await lead_service.convert_lead(db_session, lead.id, admin_user)
