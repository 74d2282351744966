"""
Unit Tests for Domain Schemas
Tests for: time ordering, score defaults, nurture sequences, workflow types
"""
import pytest
from pydantic import ValidationError
from datetime import date, time

from traincrm.schemas.certificate import CertificateRequestCreate
from traincrm.schemas.crm import CloseOpportunity, LeadUpdate, NurtureSequenceCreate, TrackEngagement
from traincrm.schemas.roster import RosterUpdate
from traincrm.schemas.scheduling import AvailabilityCreate, BookingCreate, ExceptionCreate
from traincrm.schemas.workflow import WorkflowDefinitionCreate


class TestSchedulingSchemas:

    def test_availability_end_after_start(self):
        with pytest.raises(ValidationError):
            AvailabilityCreate(day_of_week=1, start_time=time(12, 0), end_time=time(9, 0))

    def test_day_of_week_range(self):
        with pytest.raises(ValidationError):
            AvailabilityCreate(day_of_week=7, start_time=time(9, 0), end_time=time(12, 0))

    def test_all_day_exception(self):
        exception = ExceptionCreate(exception_date=date(2031, 5, 1))

        assert exception.start_time is None

    def test_exception_needs_both_times(self):
        with pytest.raises(ValidationError):
            ExceptionCreate(exception_date=date(2031, 5, 1), start_time=time(9, 0))

    def test_booking_end_after_start(self):
        with pytest.raises(ValidationError):
            BookingCreate(booking_date=date(2031, 5, 1), start_time=time(10, 0), end_time=time(10, 0), title="Prep")


class TestCertificateRequestSchema:

    def test_total_score_is_average(self):
        request = CertificateRequestCreate(
            recipient_name="Lee", email="lee@example.com", course_name="Track Safety",
            practical_score=90, written_score=75,
        )

        assert request.total_score == 82.5

    def test_explicit_total_kept(self):
        request = CertificateRequestCreate(
            recipient_name="Lee", email="lee@example.com", course_name="Track Safety",
            practical_score=90, written_score=75, total_score=80,
        )

        assert request.total_score == 80

    def test_scores_bounded(self):
        with pytest.raises(ValidationError):
            CertificateRequestCreate(
                recipient_name="Lee", email="lee@example.com", course_name="Track Safety", practical_score=120,
            )


class TestCRMSchemas:

    def test_nurture_lengths_must_match(self):
        with pytest.raises(ValidationError):
            NurtureSequenceCreate(sequence_name="Welcome", template_ids=["a", "b"], day_intervals=[0])

    def test_nurture_intervals_not_negative(self):
        with pytest.raises(ValidationError):
            NurtureSequenceCreate(sequence_name="Welcome", template_ids=["a"], day_intervals=[-1])

    def test_close_outcome(self):
        assert CloseOpportunity(outcome="won").outcome == "won"
        with pytest.raises(ValidationError):
            CloseOpportunity(outcome="pending")

    def test_engagement_event(self):
        with pytest.raises(ValidationError):
            TrackEngagement(event_type="forward", email="x@example.com")

    def test_lead_update_rejects_null_for_required_columns(self):
        for field in ("first_name", "lead_status", "lead_source", "lead_type"):
            with pytest.raises(ValidationError):
                LeadUpdate(**{field: None})

    def test_lead_update_allows_clearing_optional_columns(self):
        update = LeadUpdate(email=None, notes=None)

        assert update.model_dump(exclude_unset=True) == {"email": None, "notes": None}

    def test_omitted_fields_are_not_validated(self):
        assert LeadUpdate().model_dump(exclude_unset=True) == {}

    def test_roster_capacity_may_be_cleared(self):
        assert RosterUpdate(max_capacity=None).max_capacity is None
        with pytest.raises(ValidationError):
            RosterUpdate(roster_name=None)


class TestWorkflowSchema:

    def test_type_is_normalised(self):
        definition = WorkflowDefinitionCreate(
            workflow_name="AP onboarding",
            workflow_type="  AP_Onboarding ",
            steps=[{"approver_role": "AD"}],
        )

        assert definition.workflow_type == "ap_onboarding"

    def test_steps_required(self):
        with pytest.raises(ValidationError):
            WorkflowDefinitionCreate(workflow_name="Empty", workflow_type="x", steps=[])
