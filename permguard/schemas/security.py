from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    org_id: str
    role_id: str | None
    manager_id: str | None


class ContextOut(BaseModel):
    user: UserOut
    org_id: str
    subordinates: list[str]
    cross_tenant: bool


class PermissionCheckIn(BaseModel):
    module: str = Field(min_length=1)
    resource: str | None = None
    # Omitted: module-level check (any grant in the module).
    action: str | None = Field(default=None, min_length=1)


class PermissionCheckOut(BaseModel):
    allowed: bool
    reason: str | None = None


class NavItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str
    href: str
    permission: str
    children: list[NavItemOut] = Field(default_factory=list)
