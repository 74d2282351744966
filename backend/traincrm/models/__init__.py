# Re-export all models for convenient imports
from traincrm.models.user import User, UserRole
from traincrm.models.audit_log import AuditLog
from traincrm.models.notification import Notification
from traincrm.models.scheduling import (
    UserAvailability,
    AvailabilityException,
    AvailabilityBooking,
    AvailabilityType,
    BookingType,
    BookingStatus,
)
from traincrm.models.training import (
    Course,
    Location,
    InstructorProfile,
    TrainingSession,
    SessionEnrollment,
    SessionStatus,
    AttendanceStatus,
    CompletionStatus,
)
from traincrm.models.roster import (
    StudentProfile,
    StudentRoster,
    StudentRosterMember,
    RosterStatus,
    MemberStatus,
)
from traincrm.models.certificate import (
    CertificateRequest,
    Certificate,
    RequestStatus,
    AssessmentStatus,
    CertificateStatus,
)
from traincrm.models.system_configuration import SystemConfiguration, ConfigurationChange
from traincrm.models.workflow import (
    WorkflowDefinition,
    WorkflowInstance,
    WorkflowApproval,
    WorkflowStatus,
    ApprovalDecision,
)
from traincrm.models.crm import (
    Lead,
    LeadScoringRule,
    Account,
    Contact,
    Opportunity,
    Activity,
    RevenueRecord,
    EmailTemplate,
    EmailCampaign,
    CampaignRecipient,
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
    RecipientStatus,
)

__all__ = [
    # Users
    "User",
    "UserRole",
    "AuditLog",
    "Notification",
    # Scheduling
    "UserAvailability",
    "AvailabilityException",
    "AvailabilityBooking",
    "AvailabilityType",
    "BookingType",
    "BookingStatus",
    # Training
    "Course",
    "Location",
    "InstructorProfile",
    "TrainingSession",
    "SessionEnrollment",
    "SessionStatus",
    "AttendanceStatus",
    "CompletionStatus",
    # Rosters
    "StudentProfile",
    "StudentRoster",
    "StudentRosterMember",
    "RosterStatus",
    "MemberStatus",
    # Certificates
    "CertificateRequest",
    "Certificate",
    "RequestStatus",
    "AssessmentStatus",
    "CertificateStatus",
    # Settings
    "SystemConfiguration",
    "ConfigurationChange",
    # Governance
    "WorkflowDefinition",
    "WorkflowInstance",
    "WorkflowApproval",
    "WorkflowStatus",
    "ApprovalDecision",
    # CRM
    "Lead",
    "LeadScoringRule",
    "Account",
    "Contact",
    "Opportunity",
    "Activity",
    "RevenueRecord",
    "EmailTemplate",
    "EmailCampaign",
    "CampaignRecipient",
    "LeadStatus",
    "LeadSource",
    "LeadType",
    "TrainingUrgency",
    "ScoringRuleType",
    "ScoringOperator",
    "ActivityType",
    "OpportunityStage",
    "OpportunityStatus",
    "RevenueType",
    "CampaignType",
    "TargetAudience",
    "CampaignStatus",
    "RecipientStatus",
]
