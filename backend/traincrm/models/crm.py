"""
CRM Models - leads, contacts, accounts, opportunities, activities,
revenue attribution and email campaigns
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, Integer, Float, Text,
    ForeignKey, Enum as SQLEnum, Index, UniqueConstraint,
)
from datetime import datetime, date
import enum

from traincrm.core.database import Base
from traincrm.core.types import GUID, generate_uuid, JSONType


# ==================== ENUMS ====================

class LeadStatus(str, enum.Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    LOST = "lost"


class LeadSource(str, enum.Enum):
    WEBSITE = "website"
    REFERRAL = "referral"
    COLD_CALL = "cold_call"
    EMAIL = "email"
    SOCIAL_MEDIA = "social_media"
    TRADE_SHOW = "trade_show"
    OTHER = "other"


class LeadType(str, enum.Enum):
    INDIVIDUAL = "individual"
    CORPORATE = "corporate"


class TrainingUrgency(str, enum.Enum):
    IMMEDIATE = "immediate"
    WITHIN_MONTH = "within_month"
    WITHIN_QUARTER = "within_quarter"
    PLANNING = "planning"


class ScoringRuleType(str, enum.Enum):
    DEMOGRAPHIC = "demographic"
    BEHAVIORAL = "behavioral"
    FIRMOGRAPHIC = "firmographic"


class ScoringOperator(str, enum.Enum):
    EQUALS = "equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN_LIST = "in_list"


class ActivityType(str, enum.Enum):
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    TASK = "task"
    NOTE = "note"


class OpportunityStage(str, enum.Enum):
    PROSPECT = "prospect"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class OpportunityStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class RevenueType(str, enum.Enum):
    CERTIFICATE_SALE = "certificate_sale"
    CORPORATE_CONTRACT = "corporate_contract"
    AP_SETUP_FEE = "ap_setup_fee"
    RECURRING_REVENUE = "recurring_revenue"


class CampaignType(str, enum.Enum):
    LEAD_NURTURE = "lead_nurture"
    PROMOTIONAL = "promotional"
    EDUCATIONAL = "educational"
    FOLLOW_UP = "follow_up"


class TargetAudience(str, enum.Enum):
    INDIVIDUALS = "individuals"
    CORPORATE = "corporate"
    POTENTIAL_APS = "potential_aps"
    ALL = "all"


class CampaignStatus(str, enum.Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class RecipientStatus(str, enum.Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    BOUNCED = "bounced"


# ==================== LEADS ====================

class Lead(Base):
    __tablename__ = "crm_leads"

    __table_args__ = (
        Index('ix_crm_leads_status', 'lead_status'),
        Index('ix_crm_leads_assigned', 'assigned_to'),
        Index('ix_crm_leads_score', 'lead_score'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(30), nullable=True)
    company_name = Column(String(255), nullable=True)
    job_title = Column(String(255), nullable=True)

    lead_status = Column(SQLEnum(LeadStatus), default=LeadStatus.NEW, nullable=False)
    lead_source = Column(SQLEnum(LeadSource), default=LeadSource.OTHER, nullable=False)
    lead_type = Column(SQLEnum(LeadType), default=LeadType.INDIVIDUAL, nullable=False)
    lead_score = Column(Integer, default=0, nullable=False)

    training_urgency = Column(SQLEnum(TrainingUrgency), nullable=True)
    estimated_participant_count = Column(Integer, nullable=True)
    preferred_training_format = Column(String(50), nullable=True)  # in_person, online, blended
    industry = Column(String(100), nullable=True)
    company_size = Column(String(50), nullable=True)
    province = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    segments = Column(JSONType, default=list)  # free-form tags, e.g. ["potential_ap"]
    notes = Column(Text, nullable=True)

    assigned_to = Column(GUID, ForeignKey("users.id"), nullable=True)
    campaign_id = Column(GUID, ForeignKey("crm_email_campaigns.id", ondelete="SET NULL"), nullable=True)
    last_contact_date = Column(DateTime, nullable=True)
    conversion_date = Column(DateTime, nullable=True)

    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<Lead {self.full_name} ({self.lead_status})>"


class LeadScoringRule(Base):
    __tablename__ = "crm_lead_scoring_rules"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    rule_name = Column(String(255), nullable=False)
    rule_type = Column(SQLEnum(ScoringRuleType), nullable=False)
    field_name = Column(String(100), nullable=False)
    operator = Column(SQLEnum(ScoringOperator), nullable=False)
    field_value = Column(String(500), nullable=False)
    score_points = Column(Integer, nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


# ==================== CONTACTS / ACCOUNTS ====================

class Account(Base):
    __tablename__ = "crm_accounts"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    account_name = Column(String(255), nullable=False, index=True)
    account_type = Column(String(50), default="corporate")  # corporate, training_provider, partner
    industry = Column(String(100), nullable=True)
    company_size = Column(String(50), nullable=True)
    website = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    province = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    assigned_to = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Contact(Base):
    __tablename__ = "crm_contacts"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(30), nullable=True)
    job_title = Column(String(255), nullable=True)
    account_id = Column(GUID, ForeignKey("crm_accounts.id", ondelete="SET NULL"), nullable=True)
    converted_from_lead_id = Column(GUID, ForeignKey("crm_leads.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)

    assigned_to = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ==================== OPPORTUNITIES ====================

class Opportunity(Base):
    __tablename__ = "crm_opportunities"

    __table_args__ = (
        Index('ix_crm_opportunities_stage', 'stage'),
        Index('ix_crm_opportunities_status', 'status'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    opportunity_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    opportunity_type = Column(String(50), nullable=True)  # individual, corporate, ap_program
    account_id = Column(GUID, ForeignKey("crm_accounts.id", ondelete="SET NULL"), nullable=True)
    contact_id = Column(GUID, ForeignKey("crm_contacts.id", ondelete="SET NULL"), nullable=True)
    lead_id = Column(GUID, ForeignKey("crm_leads.id", ondelete="SET NULL"), nullable=True)

    estimated_value = Column(Float, default=0.0, nullable=False)
    stage = Column(SQLEnum(OpportunityStage), default=OpportunityStage.PROSPECT, nullable=False)
    probability = Column(Integer, default=10, nullable=False)
    expected_close_date = Column(Date, nullable=True)
    actual_close_date = Column(Date, nullable=True)
    status = Column(SQLEnum(OpportunityStatus), default=OpportunityStatus.OPEN, nullable=False)
    close_notes = Column(Text, nullable=True)

    lead_source = Column(String(50), nullable=True)
    campaign_id = Column(GUID, ForeignKey("crm_email_campaigns.id", ondelete="SET NULL"), nullable=True)
    assigned_to = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Opportunity {self.opportunity_name} {self.stage}>"


class Activity(Base):
    __tablename__ = "crm_activities"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    activity_type = Column(SQLEnum(ActivityType), nullable=False)
    subject = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    activity_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    due_date = Column(DateTime, nullable=True)
    completed = Column(Boolean, default=False, nullable=False)
    outcome = Column(String(255), nullable=True)

    lead_id = Column(GUID, ForeignKey("crm_leads.id", ondelete="CASCADE"), nullable=True, index=True)
    opportunity_id = Column(GUID, ForeignKey("crm_opportunities.id", ondelete="CASCADE"), nullable=True, index=True)
    contact_id = Column(GUID, ForeignKey("crm_contacts.id", ondelete="CASCADE"), nullable=True)
    account_id = Column(GUID, ForeignKey("crm_accounts.id", ondelete="CASCADE"), nullable=True)

    assigned_to = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


# ==================== REVENUE ====================

class RevenueRecord(Base):
    __tablename__ = "crm_revenue_records"

    __table_args__ = (
        Index('ix_crm_revenue_date', 'revenue_date'),
        Index('ix_crm_revenue_sales_rep', 'sales_rep_id'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    opportunity_id = Column(GUID, ForeignKey("crm_opportunities.id", ondelete="SET NULL"), nullable=True)
    revenue_type = Column(SQLEnum(RevenueType), nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), default="CAD", nullable=False)
    revenue_date = Column(Date, default=date.today, nullable=False)

    ap_location_id = Column(GUID, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True)
    certificate_count = Column(Integer, nullable=True)
    participant_count = Column(Integer, nullable=True)
    sales_rep_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    commission_rate = Column(Float, nullable=True)  # percent
    commission_amount = Column(Float, nullable=True)
    invoice_reference = Column(String(100), nullable=True)
    campaign_id = Column(GUID, ForeignKey("crm_email_campaigns.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)

    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


# ==================== CAMPAIGNS ====================

class EmailTemplate(Base):
    __tablename__ = "crm_email_templates"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    template_name = Column(String(255), nullable=False)
    template_type = Column(String(50), nullable=False)  # matches CampaignType values
    subject_line = Column(String(255), nullable=False)
    email_content = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class EmailCampaign(Base):
    __tablename__ = "crm_email_campaigns"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    campaign_name = Column(String(255), nullable=False)
    campaign_type = Column(SQLEnum(CampaignType), nullable=False)
    target_audience = Column(SQLEnum(TargetAudience), default=TargetAudience.ALL, nullable=False)
    status = Column(SQLEnum(CampaignStatus), default=CampaignStatus.DRAFT, nullable=False)

    subject_line = Column(String(255), nullable=False)
    email_content = Column(Text, nullable=False)
    template_id = Column(GUID, ForeignKey("crm_email_templates.id", ondelete="SET NULL"), nullable=True)
    target_segments = Column(JSONType, default=list)
    geographic_targeting = Column(JSONType, default=list)  # provinces
    industry_targeting = Column(JSONType, default=list)

    scheduled_date = Column(DateTime, nullable=True)
    sent_date = Column(DateTime, nullable=True)

    total_recipients = Column(Integer, default=0, nullable=False)
    delivered_count = Column(Integer, default=0, nullable=False)
    opened_count = Column(Integer, default=0, nullable=False)
    clicked_count = Column(Integer, default=0, nullable=False)
    bounced_count = Column(Integer, default=0, nullable=False)
    unsubscribed_count = Column(Integer, default=0, nullable=False)
    leads_generated = Column(Integer, default=0, nullable=False)
    opportunities_created = Column(Integer, default=0, nullable=False)
    revenue_attributed = Column(Float, default=0.0, nullable=False)
    campaign_cost = Column(Float, default=0.0, nullable=False)

    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<EmailCampaign {self.campaign_name} {self.status}>"


class CampaignRecipient(Base):
    __tablename__ = "crm_campaign_recipients"

    __table_args__ = (
        UniqueConstraint('campaign_id', 'email', name='uq_campaign_recipient_email'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    campaign_id = Column(GUID, ForeignKey("crm_email_campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    lead_id = Column(GUID, ForeignKey("crm_leads.id", ondelete="SET NULL"), nullable=True)
    email = Column(String(255), nullable=False)
    status = Column(SQLEnum(RecipientStatus), default=RecipientStatus.PENDING, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    opened_at = Column(DateTime, nullable=True)
    clicked_at = Column(DateTime, nullable=True)
    unsubscribed_at = Column(DateTime, nullable=True)
