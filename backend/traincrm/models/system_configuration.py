from sqlalchemy import Column, String, DateTime, Text, ForeignKey, UniqueConstraint
from datetime import datetime

from traincrm.core.database import Base
from traincrm.core.types import GUID, generate_uuid, JSONType


class SystemConfiguration(Base):
    """Admin-editable configuration value, addressed by (category, key)"""
    __tablename__ = "system_configurations"

    __table_args__ = (
        UniqueConstraint('category', 'key', name='uq_system_configuration_category_key'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    category = Column(String(50), nullable=False, index=True)  # 'general', 'features', 'notifications', 'navigation'
    key = Column(String(100), nullable=False)
    value = Column(JSONType, nullable=True)
    description = Column(Text, nullable=True)

    updated_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<SystemConfiguration {self.category}.{self.key}>"


class ConfigurationChange(Base):
    """History row written on every configuration update"""
    __tablename__ = "configuration_changes"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    configuration_id = Column(GUID, ForeignKey("system_configurations.id", ondelete="CASCADE"), nullable=False, index=True)
    old_value = Column(JSONType, nullable=True)
    new_value = Column(JSONType, nullable=True)
    change_reason = Column(Text, nullable=True)
    changed_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    changed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
