from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class RoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    display_name: str
    description: Optional[str] = None
    permissions: dict[str, list[str]] = {}
    is_active: bool = True


class UserRoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    role_id: str
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    role: Optional[RoleResponse] = None


class RoleAssignRequest(BaseModel):
    role_name: str


class MenuResponse(BaseModel):
    roles: list[str]
    menus: list[str]
