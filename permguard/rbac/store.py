"""
Role-permission stores: role id -> grant keys.

Stores are pure lookups. ``None`` means "no such role", which the context
builder treats as an empty grant set (default deny).
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Mapping, Protocol

from .config import RbacConfig

logger = logging.getLogger(__name__)


class RolePermissionStore(Protocol):
    def grants_for_role(self, role_id: str) -> frozenset[str] | None: ...


class ConfigRoleStore:
    """Roles defined in the RBAC YAML file (inheritance already resolved)."""

    def __init__(self, config: RbacConfig) -> None:
        self._grants: Mapping[str, frozenset[str]] = {role_id: role.grants for role_id, role in config.roles.items()}

    def grants_for_role(self, role_id: str) -> frozenset[str] | None:
        return self._grants.get(role_id)


class CachedRoleStore:
    """
    TTL cache in front of another store.

    Keyed by role id only. User-specific data (org, subordinates) is never
    cached here, because it changes independently of role definitions.
    """

    def __init__(
        self,
        inner: RolePermissionStore,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._inner = inner
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, frozenset[str] | None]] = {}
        self._lock = threading.Lock()

    def grants_for_role(self, role_id: str) -> frozenset[str] | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(role_id)
            if entry is not None and (now - entry[0]) < self._ttl:
                return entry[1]

        grants = self._inner.grants_for_role(role_id)
        with self._lock:
            self._entries[role_id] = (self._clock(), grants)
        logger.debug("Role grants cache refreshed role_id=%s", role_id)
        return grants

    def invalidate(self, role_id: str | None = None) -> None:
        with self._lock:
            if role_id is None:
                self._entries.clear()
            else:
                self._entries.pop(role_id, None)
