"""
Compose a ``UserContext`` from the user record, role grants and the
subordinate set.

Lookups are blocking calls into external collaborators (database, identity
store). They run concurrently in worker threads and each one is bounded by
``lookup_timeout_seconds``. If any lookup fails or times out, no context is
built: a partial context is never returned.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Collection, Iterable, Protocol, TypeVar

from permguard.rbac import WILDCARD, RolePermissionStore, SubordinateResolver, build_permission_map

from .context import UserContext, UserRecord
from .session import SessionClaims

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UserDirectory(Protocol):
    def get_user(self, user_id: str) -> UserRecord | None: ...


class UserContextBuilder:
    def __init__(
        self,
        users: UserDirectory,
        roles: RolePermissionStore,
        subordinates: SubordinateResolver,
        *,
        lookup_timeout_seconds: float = 5.0,
        bootstrap_admin_emails: Iterable[str] = (),
        system_role_ids: Collection[str] = (),
    ) -> None:
        self._users = users
        self._roles = roles
        self._subordinates = subordinates
        self._timeout = lookup_timeout_seconds
        self._bootstrap_emails = frozenset(e.strip().lower() for e in bootstrap_admin_emails if e.strip())
        self._system_role_ids = frozenset(system_role_ids)

    async def _lookup(self, name: str, fn: Callable[[str], T], arg: str) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, arg), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise TimeoutError(f"{name} lookup timed out after {self._timeout}s") from exc

    async def _role_grants(self, role_id: str | None) -> frozenset[str]:
        if role_id is None:
            return frozenset()
        grants = await self._lookup("role grants", self._roles.grants_for_role, role_id)
        if grants is None:
            logger.warning("Unknown role_id=%s; treating as no grants", role_id)
            return frozenset()
        return frozenset(grants)

    async def build(self, user_id: str, role_id_hint: str | None = None) -> UserContext | None:
        """
        Build the context for ``user_id``, or return None if it cannot be built.

        ``role_id_hint`` (usually the role claimed by the session) lets the
        role lookup start alongside the user lookup. The hint is used only if
        it matches the role on the user record; otherwise the record's role
        is fetched.
        """

        lookups = [
            self._lookup("user", self._users.get_user, user_id),
            self._lookup("subordinates", self._subordinates.subordinates_of, user_id),
        ]
        if role_id_hint is not None:
            lookups.append(self._role_grants(role_id_hint))

        try:
            results = await asyncio.gather(*lookups)
            user: UserRecord | None = results[0]
            subordinates: frozenset[str] = results[1]

            if user is None or not user.is_active:
                logger.info("No active user record for user_id=%s", user_id)
                return None

            if role_id_hint is not None and role_id_hint == user.role_id:
                grants = results[2]
            else:
                if role_id_hint is not None:
                    logger.warning(
                        "Session role differs from user record user_id=%s claimed=%s actual=%s",
                        user_id,
                        role_id_hint,
                        user.role_id,
                    )
                grants = await self._role_grants(user.role_id)
        except Exception:
            logger.exception("Could not build user context for user_id=%s", user_id)
            return None

        # A role scoped to another organization contributes nothing.
        role_in_tenant = user.role_org_id is None or user.role_org_id == user.org_id
        if not role_in_tenant:
            logger.warning(
                "Role %s of user_id=%s belongs to org=%s, not org=%s; ignoring its grants",
                user.role_id,
                user.id,
                user.role_org_id,
                user.org_id,
            )
            grants = frozenset()

        grant_sets: list[frozenset[str]] = [grants]
        if user.email.strip().lower() in self._bootstrap_emails:
            logger.warning("Bootstrap administrator email matched user_id=%s; adding wildcard grant", user.id)
            grant_sets.append(frozenset({WILDCARD}))

        return UserContext(
            user=user,
            permissions=build_permission_map(grant_sets),
            subordinates=frozenset(subordinates),
            org_id=user.org_id,
            cross_tenant=role_in_tenant and user.role_id is not None and user.role_id in self._system_role_ids,
        )

    async def build_for_claims(self, claims: SessionClaims) -> UserContext | None:
        context = await self.build(claims.uid, role_id_hint=claims.role_id)
        if context is not None and claims.org_id is not None and claims.org_id != context.org_id:
            logger.warning(
                "Session org claim does not match user record user_id=%s claimed_org=%s actual_org=%s",
                claims.uid,
                claims.org_id,
                context.org_id,
            )
        return context
