"""
Settings Service - admin-editable configuration with change history
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from datetime import datetime
from typing import Optional, List, Any, Dict
import copy

from traincrm.core.exceptions import InsufficientRoleError, ResourceNotFoundError
from traincrm.core.logging_config import get_logger
from traincrm.core.roles import UserRole, has_minimum_role
from traincrm.models.system_configuration import SystemConfiguration, ConfigurationChange
from traincrm.models.user import User
from traincrm.services.audit_service import record_audit

logger = get_logger(__name__)


# Seeded the first time a category is read
DEFAULT_SETTINGS: Dict[str, Dict[str, Dict[str, Any]]] = {
    "general": {
        "organization_name": {"value": "TrainCRM Training Network", "description": "Name shown on certificates and emails"},
        "timezone": {"value": "America/Toronto", "description": "Default timezone for schedules"},
        "date_format": {"value": "YYYY-MM-DD", "description": "Display date format"},
    },
    "features": {
        "crm_enabled": {"value": True, "description": "Enable the CRM module"},
        "waitlist_enabled": {"value": True, "description": "Waitlist students when a roster is full"},
        "workflow_approvals_enabled": {"value": True, "description": "Route governance changes through approvals"},
    },
    "notifications": {
        "email_enabled": {"value": True, "description": "Send email notifications"},
        "certificate_issued_email": {"value": True, "description": "Email recipients when a certificate is issued"},
        "sla_escalation_alerts": {"value": True, "description": "Alert administrators when approvals pass their SLA"},
    },
}


class SettingsService:
    """Service for system configuration"""

    async def _find(self, db: AsyncSession, category: str, key: str) -> Optional[SystemConfiguration]:
        result = await db.execute(
            select(SystemConfiguration).where(
                and_(SystemConfiguration.category == category, SystemConfiguration.key == key)
            )
        )
        return result.scalar_one_or_none()

    async def ensure_defaults(self, db: AsyncSession, category: Optional[str] = None) -> int:
        """Insert default settings that are missing; returns how many were added"""
        categories = [category] if category else list(DEFAULT_SETTINGS)
        added = 0
        for cat in categories:
            for key, default in DEFAULT_SETTINGS.get(cat, {}).items():
                if await self._find(db, cat, key) is None:
                    db.add(SystemConfiguration(
                        category=cat,
                        key=key,
                        value=copy.deepcopy(default["value"]),
                        description=default["description"],
                    ))
                    added += 1
        if added:
            await db.commit()
            logger.info(f"[Settings] Seeded {added} default settings")
        return added

    async def list_configurations(
        self, db: AsyncSession, category: Optional[str] = None
    ) -> List[SystemConfiguration]:
        await self.ensure_defaults(db, category)
        query = select(SystemConfiguration)
        if category:
            query = query.where(SystemConfiguration.category == category)
        result = await db.execute(query.order_by(SystemConfiguration.category, SystemConfiguration.key))
        return list(result.scalars().all())

    async def get_configuration(self, db: AsyncSession, category: str, key: str) -> SystemConfiguration:
        config = await self._find(db, category, key)
        if config is None and key in DEFAULT_SETTINGS.get(category, {}):
            await self.ensure_defaults(db, category)
            config = await self._find(db, category, key)
        if config is None:
            raise ResourceNotFoundError("Configuration", f"{category}.{key}")
        return config

    async def get_value(self, db: AsyncSession, category: str, key: str, default: Any = None) -> Any:
        config = await self._find(db, category, key)
        if config is None:
            return DEFAULT_SETTINGS.get(category, {}).get(key, {}).get("value", default)
        return config.value

    async def update_configuration(
        self,
        db: AsyncSession,
        category: str,
        key: str,
        value: Any,
        user: User,
        reason: Optional[str] = None,
        description: Optional[str] = None,
    ) -> SystemConfiguration:
        """Upsert a setting, recording the change and an audit entry"""
        if not has_minimum_role(user.role, UserRole.AD):
            raise InsufficientRoleError("Insufficient permissions to change system settings", UserRole.AD.value)

        config = await self._find(db, category, key)
        old_value = None
        if config is None:
            config = SystemConfiguration(category=category, key=key, value=value, description=description)
            db.add(config)
            await db.flush()
        else:
            old_value = copy.deepcopy(config.value)
            config.value = value
            if description is not None:
                config.description = description
        config.updated_by = str(user.id)
        config.updated_at = datetime.utcnow()

        db.add(ConfigurationChange(
            configuration_id=config.id,
            old_value=old_value,
            new_value=value,
            change_reason=reason,
            changed_by=str(user.id),
        ))
        record_audit(
            db, str(user.id), "configuration_updated", "system_configuration", config.id,
            details={"category": category, "key": key, "reason": reason},
        )
        await db.commit()
        await db.refresh(config)

        logger.info(f"[Settings] {category}.{key} updated by {user.id}")
        return config

    async def get_configuration_history(
        self, db: AsyncSession, category: str, key: str, limit: int = 50
    ) -> List[ConfigurationChange]:
        config = await self._find(db, category, key)
        if config is None:
            raise ResourceNotFoundError("Configuration", f"{category}.{key}")
        result = await db.execute(
            select(ConfigurationChange)
            .where(ConfigurationChange.configuration_id == config.id)
            .order_by(ConfigurationChange.changed_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


settings_service = SettingsService()
