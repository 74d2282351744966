"""
CRM Schemas - leads, contacts, accounts, activities, opportunities,
revenue and campaigns
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime

from traincrm.models.crm import (
    LeadStatus,
    LeadSource,
    LeadType,
    TrainingUrgency,
    ScoringRuleType,
    ScoringOperator,
    ActivityType,
    OpportunityStage,
    OpportunityStatus,
    RevenueType,
    CampaignType,
    TargetAudience,
    CampaignStatus,
)
from traincrm.schemas import reject_null


# ============== Leads ==============

class LeadBase(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    company_name: Optional[str] = Field(None, max_length=255)
    job_title: Optional[str] = Field(None, max_length=255)
    lead_source: LeadSource = LeadSource.OTHER
    lead_type: LeadType = LeadType.INDIVIDUAL
    training_urgency: Optional[TrainingUrgency] = None
    estimated_participant_count: Optional[int] = Field(None, ge=0)
    preferred_training_format: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    segments: List[str] = []
    notes: Optional[str] = None
    assigned_to: Optional[str] = None


class LeadCreate(LeadBase):
    pass


class LeadUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    job_title: Optional[str] = None
    lead_status: Optional[LeadStatus] = None
    lead_source: Optional[LeadSource] = None
    lead_type: Optional[LeadType] = None
    training_urgency: Optional[TrainingUrgency] = None
    estimated_participant_count: Optional[int] = Field(None, ge=0)
    preferred_training_format: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    segments: Optional[List[str]] = None
    notes: Optional[str] = None
    assigned_to: Optional[str] = None
    last_contact_date: Optional[datetime] = None

    @field_validator("first_name", "last_name", "lead_status", "lead_source", "lead_type")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class LeadResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    job_title: Optional[str] = None
    lead_status: LeadStatus
    lead_source: LeadSource
    lead_type: LeadType
    lead_score: int
    training_urgency: Optional[TrainingUrgency] = None
    estimated_participant_count: Optional[int] = None
    industry: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    segments: Optional[List[str]] = None
    assigned_to: Optional[str] = None
    last_contact_date: Optional[datetime] = None
    conversion_date: Optional[datetime] = None
    created_at: datetime


class LeadListResponse(BaseModel):
    leads: List[LeadResponse]
    total: int
    page: int
    limit: int
    has_more: bool


class LeadConversionRequest(BaseModel):
    create_account: bool = False
    create_opportunity: bool = False
    opportunity_value: Optional[float] = Field(None, ge=0)
    opportunity_name: Optional[str] = None


class LeadConversionResult(BaseModel):
    lead_id: str
    contact_id: str
    account_id: Optional[str] = None
    opportunity_id: Optional[str] = None


class ScoringRuleCreate(BaseModel):
    rule_name: str = Field(..., min_length=1, max_length=255)
    rule_type: ScoringRuleType
    field_name: str = Field(..., min_length=1, max_length=100)
    operator: ScoringOperator
    field_value: str = Field(..., min_length=1, max_length=500)
    score_points: int = Field(..., ge=-100, le=100)
    priority: int = 0
    is_active: bool = True


class ScoringRuleUpdate(BaseModel):
    rule_name: Optional[str] = None
    field_value: Optional[str] = None
    score_points: Optional[int] = Field(None, ge=-100, le=100)
    priority: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("rule_name", "field_value", "score_points", "priority", "is_active")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class ScoringRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    rule_name: str
    rule_type: ScoringRuleType
    field_name: str
    operator: ScoringOperator
    field_value: str
    score_points: int
    priority: int
    is_active: bool


# ============== Contacts / Accounts ==============

class AccountCreate(BaseModel):
    account_name: str = Field(..., min_length=1, max_length=255)
    account_type: str = "corporate"
    industry: Optional[str] = None
    company_size: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    notes: Optional[str] = None
    assigned_to: Optional[str] = None


class AccountUpdate(BaseModel):
    account_name: Optional[str] = Field(None, max_length=255)
    account_type: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    notes: Optional[str] = None
    assigned_to: Optional[str] = None

    @field_validator("account_name")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account_name: str
    account_type: Optional[str] = None
    industry: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    assigned_to: Optional[str] = None
    created_at: datetime


class ContactCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    account_id: Optional[str] = None
    notes: Optional[str] = None
    assigned_to: Optional[str] = None


class ContactUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    account_id: Optional[str] = None
    notes: Optional[str] = None
    assigned_to: Optional[str] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class ContactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    account_id: Optional[str] = None
    converted_from_lead_id: Optional[str] = None
    assigned_to: Optional[str] = None
    created_at: datetime


# ============== Activities ==============

class ActivityCreate(BaseModel):
    activity_type: ActivityType
    subject: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    activity_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    completed: bool = False
    outcome: Optional[str] = None
    lead_id: Optional[str] = None
    opportunity_id: Optional[str] = None
    contact_id: Optional[str] = None
    account_id: Optional[str] = None
    assigned_to: Optional[str] = None


class ActivityUpdate(BaseModel):
    subject: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None
    outcome: Optional[str] = None
    assigned_to: Optional[str] = None

    @field_validator("subject", "completed")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    activity_type: ActivityType
    subject: str
    description: Optional[str] = None
    activity_date: datetime
    due_date: Optional[datetime] = None
    completed: bool
    outcome: Optional[str] = None
    lead_id: Optional[str] = None
    opportunity_id: Optional[str] = None
    contact_id: Optional[str] = None
    account_id: Optional[str] = None
    assigned_to: Optional[str] = None


# ============== Opportunities ==============

class OpportunityCreate(BaseModel):
    opportunity_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    opportunity_type: Optional[str] = None
    account_id: Optional[str] = None
    contact_id: Optional[str] = None
    lead_id: Optional[str] = None
    estimated_value: float = Field(0.0, ge=0)
    stage: OpportunityStage = OpportunityStage.PROSPECT
    probability: Optional[int] = Field(None, ge=0, le=100)
    expected_close_date: Optional[date] = None
    lead_source: Optional[str] = None
    campaign_id: Optional[str] = None
    assigned_to: Optional[str] = None


class OpportunityUpdate(BaseModel):
    opportunity_name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    estimated_value: Optional[float] = Field(None, ge=0)
    probability: Optional[int] = Field(None, ge=0, le=100)
    expected_close_date: Optional[date] = None
    assigned_to: Optional[str] = None

    @field_validator("opportunity_name", "estimated_value", "probability")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class OpportunityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    opportunity_name: str
    description: Optional[str] = None
    opportunity_type: Optional[str] = None
    account_id: Optional[str] = None
    contact_id: Optional[str] = None
    lead_id: Optional[str] = None
    estimated_value: float
    stage: OpportunityStage
    probability: int
    expected_close_date: Optional[date] = None
    actual_close_date: Optional[date] = None
    status: OpportunityStatus
    close_notes: Optional[str] = None
    lead_source: Optional[str] = None
    campaign_id: Optional[str] = None
    assigned_to: Optional[str] = None
    created_at: datetime


class OpportunityFilters(BaseModel):
    stage: Optional[OpportunityStage] = None
    status: Optional[OpportunityStatus] = None
    assigned_to: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    min_probability: Optional[int] = None
    max_probability: Optional[int] = None
    close_date_from: Optional[date] = None
    close_date_to: Optional[date] = None


class OpportunityListResponse(BaseModel):
    opportunities: List[OpportunityResponse]
    total: int
    page: int
    limit: int
    has_more: bool


class StageUpdate(BaseModel):
    stage: OpportunityStage
    notes: Optional[str] = None


class CloseOpportunity(BaseModel):
    outcome: str = Field(..., pattern="^(won|lost)$")
    notes: Optional[str] = None


class PipelineValue(BaseModel):
    total_value: float
    weighted_value: float
    opportunity_count: int
    average_deal_size: float


class Forecast(BaseModel):
    period: str
    start_date: date
    end_date: date
    forecasted_revenue: float
    opportunity_count: int
    confidence: float


class StageConversion(BaseModel):
    stage: OpportunityStage
    total: int
    progressed: int
    conversion_rate: float


# ============== Revenue ==============

class RevenueCreate(BaseModel):
    opportunity_id: Optional[str] = None
    revenue_type: RevenueType
    amount: float = Field(..., gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    revenue_date: Optional[date] = None
    ap_location_id: Optional[str] = None
    certificate_count: Optional[int] = Field(None, ge=0)
    participant_count: Optional[int] = Field(None, ge=0)
    sales_rep_id: Optional[str] = None
    commission_rate: Optional[float] = Field(None, ge=0, le=100)
    invoice_reference: Optional[str] = None
    campaign_id: Optional[str] = None
    notes: Optional[str] = None


class RevenueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    opportunity_id: Optional[str] = None
    revenue_type: RevenueType
    amount: float
    currency: str
    revenue_date: date
    ap_location_id: Optional[str] = None
    certificate_count: Optional[int] = None
    participant_count: Optional[int] = None
    sales_rep_id: Optional[str] = None
    commission_rate: Optional[float] = None
    commission_amount: Optional[float] = None
    invoice_reference: Optional[str] = None
    campaign_id: Optional[str] = None


class RevenueListResponse(BaseModel):
    records: List[RevenueResponse]
    total: int
    page: int
    limit: int
    has_more: bool


class RevenueMetrics(BaseModel):
    total_revenue: float
    by_type: Dict[str, float]
    transaction_count: int


class CommissionSummary(BaseModel):
    sales_rep_id: Optional[str] = None
    total_commission: float
    total_sales: float
    average_commission_rate: float
    record_count: int
    commission_by_type: Dict[str, float]


class RevenueByAP(BaseModel):
    ap_location_id: str
    location_name: Optional[str] = None
    total_revenue: float
    transaction_count: int
    certificate_count: int


class RevenueBySource(BaseModel):
    source: str
    revenue: float
    percentage: float


class RevenueTrendPoint(BaseModel):
    period: str
    revenue: float
    transaction_count: int


# ============== Campaigns ==============

class EmailTemplateCreate(BaseModel):
    template_name: str = Field(..., min_length=1, max_length=255)
    template_type: CampaignType
    subject_line: str = Field(..., min_length=1, max_length=255)
    email_content: str = Field(..., min_length=1)
    is_active: bool = True


class EmailTemplateUpdate(BaseModel):
    template_name: Optional[str] = None
    subject_line: Optional[str] = None
    email_content: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("template_name", "subject_line", "email_content", "is_active")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class EmailTemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    template_name: str
    template_type: str
    subject_line: str
    email_content: str
    is_active: bool


class CampaignCreate(BaseModel):
    campaign_name: str = Field(..., min_length=1, max_length=255)
    campaign_type: CampaignType
    target_audience: TargetAudience = TargetAudience.ALL
    subject_line: str = Field(..., min_length=1, max_length=255)
    email_content: str = Field(..., min_length=1)
    template_id: Optional[str] = None
    target_segments: List[str] = []
    geographic_targeting: List[str] = []
    industry_targeting: List[str] = []
    campaign_cost: float = Field(0.0, ge=0)


class CampaignUpdate(BaseModel):
    campaign_name: Optional[str] = Field(None, max_length=255)
    target_audience: Optional[TargetAudience] = None
    subject_line: Optional[str] = None
    email_content: Optional[str] = None
    target_segments: Optional[List[str]] = None
    geographic_targeting: Optional[List[str]] = None
    industry_targeting: Optional[List[str]] = None
    campaign_cost: Optional[float] = Field(None, ge=0)
    status: Optional[CampaignStatus] = None

    @field_validator("campaign_name", "target_audience", "subject_line", "email_content",
                     "campaign_cost", "status")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class CampaignResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    campaign_name: str
    campaign_type: CampaignType
    target_audience: TargetAudience
    status: CampaignStatus
    subject_line: str
    email_content: str
    template_id: Optional[str] = None
    target_segments: Optional[List[str]] = None
    geographic_targeting: Optional[List[str]] = None
    industry_targeting: Optional[List[str]] = None
    scheduled_date: Optional[datetime] = None
    sent_date: Optional[datetime] = None
    total_recipients: int
    delivered_count: int
    opened_count: int
    clicked_count: int
    bounced_count: int
    unsubscribed_count: int
    leads_generated: int
    opportunities_created: int
    revenue_attributed: float
    campaign_cost: float
    created_at: datetime


class ScheduleCampaign(BaseModel):
    scheduled_date: datetime


class TrackEngagement(BaseModel):
    event_type: str = Field(..., pattern="^(open|click|unsubscribe)$")
    email: EmailStr


class CampaignSendResult(BaseModel):
    campaign_id: str
    total_recipients: int
    delivered: int
    bounced: int


class CampaignMetrics(BaseModel):
    campaign_id: str
    total_recipients: int
    delivered: int
    opened: int
    clicked: int
    bounced: int
    unsubscribed: int
    open_rate: float
    click_rate: float
    conversion_rate: float
    roi: float


class CampaignPerformanceSummary(BaseModel):
    campaign_count: int
    total_recipients: int
    total_delivered: int
    total_opened: int
    total_clicked: int
    total_revenue: float
    total_cost: float
    average_open_rate: float
    average_click_rate: float


class NurtureSequenceCreate(BaseModel):
    sequence_name: str = Field(..., min_length=1, max_length=200)
    target_audience: TargetAudience = TargetAudience.ALL
    template_ids: List[str] = Field(..., min_length=1)
    day_intervals: List[int] = Field(..., min_length=1)
    start_date: Optional[datetime] = None

    @model_validator(mode="after")
    def lengths_match(self):
        if len(self.template_ids) != len(self.day_intervals):
            raise ValueError("template_ids and day_intervals must have the same length")
        if any(days < 0 for days in self.day_intervals):
            raise ValueError("day_intervals must not be negative")
        return self


# ============== Dashboard ==============

class CRMStats(BaseModel):
    total_leads: int
    total_opportunities: int
    total_pipeline_value: float
    total_activities: int
    conversion_rate: float
    win_rate: float
    average_deal_size: float


class SearchHit(BaseModel):
    entity_type: str
    id: str
    title: str
    subtitle: Optional[str] = None


class GlobalSearchResult(BaseModel):
    term: str
    results: List[SearchHit]
    total: int


# ============== Paged lists ==============

class AccountListResponse(BaseModel):
    accounts: List[AccountResponse]
    total: int
    page: int
    limit: int
    has_more: bool


class ContactListResponse(BaseModel):
    contacts: List[ContactResponse]
    total: int
    page: int
    limit: int
    has_more: bool


class ActivityListResponse(BaseModel):
    activities: List[ActivityResponse]
    total: int
    page: int
    limit: int
    has_more: bool
