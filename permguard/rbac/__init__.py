"""
Pure permission-resolution building blocks.

This package has no dependency on FastAPI or the database layer: grant
parsing, permission maps, role stores, hierarchy traversal and navigation
filtering all work on plain values.
"""

from .config import RbacConfig, RbacConfigError, RoleDef, load_rbac_config, parse_rbac_config
from .grants import WILDCARD, GrantParseError, PermissionGrant, parse_grant, validate_grant_keys
from .hierarchy import MappingReportsSource, ReportsSource, SubordinateResolver
from .navigation import NavItem, filter_nav_items
from .permission_map import ALL_ALLOWED, DENY_ALL, PermissionMap, build_permission_map
from .store import CachedRoleStore, ConfigRoleStore, RolePermissionStore

__all__ = [
    "ALL_ALLOWED",
    "DENY_ALL",
    "WILDCARD",
    "CachedRoleStore",
    "ConfigRoleStore",
    "GrantParseError",
    "MappingReportsSource",
    "NavItem",
    "PermissionGrant",
    "PermissionMap",
    "RbacConfig",
    "RbacConfigError",
    "ReportsSource",
    "RoleDef",
    "RolePermissionStore",
    "SubordinateResolver",
    "build_permission_map",
    "filter_nav_items",
    "load_rbac_config",
    "parse_grant",
    "parse_rbac_config",
    "validate_grant_keys",
]
