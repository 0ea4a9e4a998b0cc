"""
Role and navigation definitions loaded from YAML.

Expected shape (simplified):

    rbac:
      roles:
        admin:
          display_name: Administrator
          grants: ["*"]
        sales_rep:
          grants: [sales:leads:view, sales:leads:create]
        sales_manager:
          extends: sales_rep
          grants: [sales:leads:viewAll]

      navigation:
        - label: Vendors
          href: /dashboard/vendor
          permission: vendor:read
          children:
            - label: Purchase Orders
              href: /dashboard/vendor/purchase-orders
              permission: vendor:purchaseOrders:view

Grants are validated here, when the file is loaded, so a typo in a role
definition fails startup instead of silently denying at request time.
Role inheritance (``extends``) is resolved once; cycles are rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .grants import validate_grant_keys
from .navigation import NavItem

logger = logging.getLogger(__name__)


class RbacConfigError(ValueError):
    """Raised when the RBAC YAML configuration is invalid."""


class RoleModel(BaseModel):
    display_name: str | None = None
    description: str | None = None
    extends: str | None = None
    grants: list[str] = Field(default_factory=list)

    @field_validator("grants")
    @classmethod
    def _grants_parse(cls, value: list[str]) -> list[str]:
        return sorted(validate_grant_keys(value))

    @field_validator("extends")
    @classmethod
    def _strip_extends(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class NavItemModel(BaseModel):
    label: str
    href: str
    permission: str
    children: list[NavItemModel] = Field(default_factory=list)

    def to_nav_item(self) -> NavItem:
        return NavItem(
            label=self.label,
            href=self.href,
            permission=self.permission,
            children=tuple(child.to_nav_item() for child in self.children),
        )


class RbacConfigModel(BaseModel):
    roles: dict[str, RoleModel] = Field(default_factory=dict)
    navigation: list[NavItemModel] = Field(default_factory=list)


@dataclass(frozen=True)
class RoleDef:
    """Role after inheritance resolution."""

    id: str
    name: str
    grants: frozenset[str]
    description: str | None = None


@dataclass(frozen=True)
class RbacConfig:
    roles: Mapping[str, RoleDef]
    navigation: tuple[NavItem, ...]


def _resolve_inheritance(roles: Mapping[str, RoleModel]) -> dict[str, frozenset[str]]:
    """
    Compute effective grants per role (own grants plus every ancestor's).

    Raises RbacConfigError on unknown parents or cycles in ``extends``.
    """

    for name, role in roles.items():
        if role.extends and role.extends not in roles:
            raise RbacConfigError(f"role {name!r} extends unknown role {role.extends!r}")

    effective: dict[str, frozenset[str]] = {}
    visiting: set[str] = set()

    def dfs(role_name: str) -> frozenset[str]:
        if role_name in effective:
            return effective[role_name]
        if role_name in visiting:
            raise RbacConfigError(f"cycle detected in role inheritance at {role_name!r}")
        visiting.add(role_name)
        role = roles[role_name]
        grants = set(role.grants)
        if role.extends:
            grants.update(dfs(role.extends))
        result = frozenset(grants)
        effective[role_name] = result
        visiting.remove(role_name)
        return result

    for name in roles:
        dfs(name)
    return effective


def parse_rbac_config(raw: Mapping[str, Any]) -> RbacConfig:
    try:
        model = RbacConfigModel.model_validate(raw)
    except ValidationError as exc:
        raise RbacConfigError(str(exc)) from exc

    effective = _resolve_inheritance(model.roles)
    roles = {
        role_id: RoleDef(
            id=role_id,
            name=role.display_name or role_id,
            grants=effective[role_id],
            description=role.description,
        )
        for role_id, role in model.roles.items()
    }
    return RbacConfig(
        roles=roles,
        navigation=tuple(item.to_nav_item() for item in model.navigation),
    )


def load_rbac_config(path: Path) -> RbacConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "rbac" not in raw:
        raise RbacConfigError(f"Missing top-level 'rbac' key in config: {path}")

    config = parse_rbac_config(raw["rbac"] or {})
    logger.debug("Loaded %d roles and %d navigation entries from %s", len(config.roles), len(config.navigation), path)
    return config
