"""
Settings Schemas - system configuration and navigation visibility
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any
from datetime import datetime


class ConfigurationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category: str
    key: str
    value: Any = None
    description: Optional[str] = None
    updated_at: Optional[datetime] = None


class ConfigurationUpdate(BaseModel):
    value: Any
    reason: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None


class ConfigurationChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    configuration_id: str
    old_value: Any = None
    new_value: Any = None
    change_reason: Optional[str] = None
    changed_by: Optional[str] = None
    changed_at: datetime


class NavigationGroup(BaseModel):
    enabled: bool
    items: Dict[str, bool] = {}


class NavigationConfigUpdate(BaseModel):
    # Raw mapping; structure is checked by validate_navigation_config
    config: Dict[str, Any]


class NavigationConfigResponse(BaseModel):
    role: str
    config: Dict[str, NavigationGroup]
    source: str = "stored"


class NavigationHealth(BaseModel):
    status: str
    message: str
