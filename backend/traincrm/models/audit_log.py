from sqlalchemy import Column, String, DateTime, Text, ForeignKey
from datetime import datetime

from traincrm.core.database import Base
from traincrm.core.types import GUID, generate_uuid, JSONType


class AuditLog(Base):
    """Audit log for tracking privileged actions"""
    __tablename__ = "audit_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    actor_id = Column(GUID, ForeignKey("users.id"), nullable=True, index=True)

    # Action details
    action = Column(String(100), nullable=False)  # e.g. 'user_role_changed', 'configuration_updated'
    target_type = Column(String(50), nullable=False)  # e.g. 'user', 'configuration', 'workflow'
    target_id = Column(String(100), nullable=True)

    # Change details
    details = Column(JSONType, nullable=True)

    # Request metadata
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.actor_id}>"
