"""
In-app notifications (enrollment confirmations, waitlist promotions,
workflow decisions). Recipients may be staff users or students who only
exist as roster profiles, so both links are optional.
"""

from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey
from datetime import datetime

from traincrm.core.database import Base
from traincrm.core.types import GUID, generate_uuid


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    student_id = Column(GUID, ForeignKey("student_profiles.id", ondelete="CASCADE"), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    notification_type = Column(String(50), default="info")  # info, success, warning, error
    category = Column(String(50), default="general")  # enrollment, workflow, certificate, general
    priority = Column(String(20), default="normal")  # low, normal, high
    is_read = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    read_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Notification {self.title}>"
