"""
Request-scoped, queryable union of a caller's grants.

A ``PermissionMap`` is built once per request from the grant sets of every
contributing role and never mutated afterward. Lookups default to deny.
If any contributing set carries the wildcard, the map is "all-allowed":
every lookup returns True, including modules nobody has heard of yet, and
no key is ever enumerated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from .grants import GrantParseError, action_key, is_wildcard, normalize_resource, parse_grant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionMap:
    all_allowed: bool = False
    modules: Mapping[str, frozenset[str]] = field(default_factory=lambda: MappingProxyType({}))

    def __hash__(self) -> int:
        # MappingProxyType is unhashable; hash the frozen items instead.
        return hash((self.all_allowed, frozenset(self.modules.items())))

    def is_allowed(self, module: str, action: str, resource: str | None = None) -> bool:
        if self.all_allowed:
            return True
        allowed = self.modules.get(module)
        if not allowed:
            return False
        return action_key(action, normalize_resource(module, resource)) in allowed

    def allows_any_in(self, module: str) -> bool:
        """True if the map grants anything at all in ``module``."""
        return self.all_allowed or bool(self.modules.get(module))

    def to_dict(self) -> dict[str, dict[str, bool]]:
        """Nested ``{module: {action_key: True}}`` view, ``{"*": {"*": True}}`` when all-allowed."""
        if self.all_allowed:
            return {"*": {"*": True}}
        return {module: {key: True for key in sorted(keys)} for module, keys in sorted(self.modules.items())}


ALL_ALLOWED = PermissionMap(all_allowed=True)
DENY_ALL = PermissionMap()


def build_permission_map(grant_sets: Iterable[Iterable[str]]) -> PermissionMap:
    """
    Merge one or more grant sets into a ``PermissionMap``.

    - Any wildcard in any set: all-allowed.
    - Otherwise ``allowed(module, action)`` is the OR across all sets.
    - Malformed keys are skipped (logged), never fatal: a missing permission
      fails closed instead of failing the request.
    """

    collected: dict[str, set[str]] = {}
    for grants in grant_sets:
        for key in grants:
            if is_wildcard(key):
                return ALL_ALLOWED
            try:
                grant = parse_grant(key)
            except GrantParseError as exc:
                logger.warning("Skipping malformed grant %r: %s", key, exc)
                continue
            collected.setdefault(grant.module, set()).add(grant.action_key)

    frozen = {module: frozenset(keys) for module, keys in collected.items()}
    return PermissionMap(all_allowed=False, modules=MappingProxyType(frozen))
