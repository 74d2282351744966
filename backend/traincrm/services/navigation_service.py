"""
Navigation Service - per-role menu visibility

A navigation config maps group name -> {"enabled": bool, "items": {item: bool}}.
Configs live in system settings under category ``navigation`` and key
``visibility_<ROLE>``. Dashboard is always reachable: a config without an
enabled Dashboard group is repaired on save and rejected by validation.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional, Tuple
import copy

from traincrm.core.exceptions import ConfigurationError
from traincrm.core.logging_config import get_logger
from traincrm.core.roles import UserRole, coerce_role
from traincrm.models.user import User
from traincrm.services.settings_service import settings_service

logger = get_logger(__name__)

NAVIGATION_CATEGORY = "navigation"
DASHBOARD_GROUP = "Dashboard"
ALWAYS_VISIBLE_ITEMS = frozenset({"Dashboard", "Profile"})

BASE_CONFIG: Dict[str, Dict[str, Any]] = {
    "Dashboard": {"enabled": True, "items": {"Dashboard": True, "Profile": True}},
}

_USER_MANAGEMENT_FULL = {"enabled": True, "items": {"Users": True, "Teams": True, "Role Management": True, "Supervision": True}}
_TRAINING_FULL = {"enabled": True, "items": {
    "Courses": True, "Course Scheduling": True, "Course Offerings": True, "Enrollments": True,
    "Enrollment Management": True, "Teaching Sessions": True, "Locations": True,
}}
_CERTIFICATES_FULL = {"enabled": True, "items": {"Certificates": True, "Certificate Analytics": True, "Rosters": True}}
_ANALYTICS_FULL = {"enabled": True, "items": {
    "Analytics": True, "Executive Dashboard": True, "Instructor Performance": True,
    "Report Scheduler": True, "Reports": True,
}}
_CRM_FULL = {"enabled": True, "items": {
    "Leads": True, "Opportunities": True, "Contacts": True, "Accounts": True,
    "Activities": True, "Campaigns": True, "Revenue": True,
}}

ROLE_DEFAULTS: Dict[UserRole, Dict[str, Dict[str, Any]]] = {
    UserRole.SA: {
        "User Management": _USER_MANAGEMENT_FULL,
        "Training Management": _TRAINING_FULL,
        "Certificates": _CERTIFICATES_FULL,
        "CRM": _CRM_FULL,
        "Analytics & Reports": _ANALYTICS_FULL,
        "Governance": {"enabled": True, "items": {"Workflows": True, "Approvals": True}},
        "System Administration": {"enabled": True, "items": {
            "Integrations": True, "Notifications": True, "System Monitoring": True, "Settings": True,
        }},
    },
    UserRole.AD: {
        "User Management": _USER_MANAGEMENT_FULL,
        "Training Management": _TRAINING_FULL,
        "Certificates": _CERTIFICATES_FULL,
        "CRM": _CRM_FULL,
        "Analytics & Reports": _ANALYTICS_FULL,
        "Governance": {"enabled": True, "items": {"Workflows": True, "Approvals": True}},
    },
    UserRole.AP: {
        "User Management": {"enabled": True, "items": {"Teams": True, "Supervision": True}},
        "Training Management": {"enabled": True, "items": {
            "Courses": True, "Course Scheduling": True, "Course Offerings": True,
            "Enrollments": True, "Teaching Sessions": True, "Locations": True,
        }},
        "Certificates": _CERTIFICATES_FULL,
        "Analytics & Reports": {"enabled": True, "items": {"Analytics": True, "Instructor Performance": True, "Reports": True}},
    },
    UserRole.IC: {
        "Training Management": {"enabled": True, "items": {"Courses": True, "Teaching Sessions": True}},
        "Certificates": {"enabled": True, "items": {"Certificates": True}},
    },
    UserRole.IP: {
        "Training Management": {"enabled": True, "items": {"Courses": True, "Course Scheduling": True, "Teaching Sessions": True}},
        "Certificates": {"enabled": True, "items": {"Certificates": True, "Rosters": True}},
    },
    UserRole.IT: {
        "Training Management": {"enabled": True, "items": {
            "Courses": True, "Course Scheduling": True, "Course Offerings": True, "Teaching Sessions": True,
        }},
        "Certificates": {"enabled": True, "items": {"Certificates": True, "Rosters": True}},
    },
    UserRole.IN: {
        "Training Management": {"enabled": True, "items": {"Courses": True, "Enrollments": True}},
        "Certificates": {"enabled": True, "items": {"Certificates": True}},
    },
}


def config_key(role: str) -> str:
    return f"visibility_{role}"


def get_default_navigation_config(role: Optional[str]) -> Dict[str, Dict[str, Any]]:
    """Fresh copy of the defaults for ``role``; unknown roles get Dashboard only"""
    config = copy.deepcopy(BASE_CONFIG)
    parsed = coerce_role(role)
    if parsed is not None:
        config.update(copy.deepcopy(ROLE_DEFAULTS[parsed]))
    return config


def validate_navigation_config(config: Any) -> List[str]:
    """Return the problems found in ``config``; an empty list means valid"""
    if not isinstance(config, dict):
        return ["Configuration must be a mapping of group name to group settings"]

    problems: List[str] = []
    for group_name, group in config.items():
        if not isinstance(group, dict):
            problems.append(f"Group '{group_name}' must be a mapping")
            continue
        if not isinstance(group.get("enabled"), bool):
            problems.append(f"Group '{group_name}' must have a boolean 'enabled'")
        items = group.get("items")
        if not isinstance(items, dict):
            problems.append(f"Group '{group_name}' must have an 'items' mapping")
            continue
        for item_name, visible in items.items():
            if not isinstance(visible, bool):
                problems.append(f"Item '{group_name}/{item_name}' must be true or false")

    if not any(isinstance(g, dict) and g.get("enabled") is True for g in config.values()):
        problems.append("At least one navigation group must be enabled")

    dashboard = config.get(DASHBOARD_GROUP)
    if not isinstance(dashboard, dict) or dashboard.get("enabled") is not True:
        problems.append("Dashboard group must be present and enabled")

    return problems


def ensure_dashboard(config: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``config`` with the Dashboard group forced on when missing or disabled"""
    repaired = copy.deepcopy(config)
    dashboard = repaired.get(DASHBOARD_GROUP)
    if not isinstance(dashboard, dict) or dashboard.get("enabled") is not True:
        repaired[DASHBOARD_GROUP] = copy.deepcopy(BASE_CONFIG[DASHBOARD_GROUP])
    return repaired


def merge_navigation_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Merge group by group; items merge key by key and new groups are added"""
    merged = copy.deepcopy(base)
    for group_name, group in (overrides or {}).items():
        if group_name not in merged or not isinstance(group, dict):
            merged[group_name] = copy.deepcopy(group)
            continue
        target = merged[group_name]
        if "enabled" in group:
            target["enabled"] = group["enabled"]
        items = dict(target.get("items") or {})
        items.update(group.get("items") or {})
        target["items"] = items
    return merged


def is_group_visible(config: Optional[Dict[str, Any]], group_name: str) -> bool:
    if group_name == DASHBOARD_GROUP:
        return True
    group = (config or {}).get(group_name)
    if not isinstance(group, dict):
        return False
    return bool(group.get("enabled", False))


def is_item_visible(config: Optional[Dict[str, Any]], group_name: str, item_name: str) -> bool:
    if item_name in ALWAYS_VISIBLE_ITEMS:
        return True
    if not is_group_visible(config, group_name):
        return False
    items = (config or {}).get(group_name, {}).get("items") or {}
    # Items not listed default to visible
    return bool(items.get(item_name, True))


def get_configuration_health(config: Optional[Dict[str, Any]]) -> Dict[str, str]:
    if not config:
        return {"status": "error", "message": "No configuration available"}
    if validate_navigation_config(config):
        return {"status": "error", "message": "Configuration validation failed"}
    if not any(group.get("enabled") for group in config.values()):
        return {"status": "error", "message": "No visible navigation groups"}
    return {"status": "healthy", "message": "Configuration is valid"}


class NavigationService:
    """Persisted navigation configs per role"""

    async def get_navigation_config(self, db: AsyncSession, role: str) -> Tuple[Dict[str, Any], str]:
        """Stored config when valid, else the role defaults; also returns which was used"""
        stored = await settings_service.get_value(db, NAVIGATION_CATEGORY, config_key(role))
        if stored is None:
            return get_default_navigation_config(role), "default"

        problems = validate_navigation_config(stored)
        if problems:
            logger.warning(f"[Navigation] Stored config for {role} is invalid, using defaults: {problems}")
            return get_default_navigation_config(role), "default"
        return stored, "stored"

    async def update_navigation_config(
        self, db: AsyncSession, role: str, config: Dict[str, Any], user: User
    ) -> Dict[str, Any]:
        repaired = ensure_dashboard(config) if isinstance(config, dict) else config
        problems = validate_navigation_config(repaired)
        if problems:
            raise ConfigurationError("Invalid navigation configuration", problems)

        saved = await settings_service.update_configuration(
            db,
            NAVIGATION_CATEGORY,
            config_key(role),
            repaired,
            user,
            reason=f"Updated navigation visibility settings for {role} role",
            description=f"Navigation visibility for {role}",
        )
        return saved.value

    async def emergency_restore_navigation(self, db: AsyncSession, role: str, user: User) -> Dict[str, Any]:
        defaults = get_default_navigation_config(role)
        logger.warning(f"[Navigation] Emergency restore of {role} navigation by {user.id}")
        saved = await settings_service.update_configuration(
            db,
            NAVIGATION_CATEGORY,
            config_key(role),
            defaults,
            user,
            reason=f"Emergency restore of navigation defaults for {role} role",
        )
        return saved.value


navigation_service = NavigationService()
