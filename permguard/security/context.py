from __future__ import annotations

from dataclasses import dataclass

from permguard.rbac import PermissionMap


@dataclass(frozen=True)
class UserRecord:
    """
    Identity as stored by the provisioning flow. Read-only for the engine.
    """

    id: str
    email: str
    org_id: str
    role_id: str | None
    manager_id: str | None = None
    is_active: bool = True
    # Owning org of the assigned role; None for built-in roles shared by every tenant.
    role_org_id: str | None = None


@dataclass(frozen=True)
class UserContext:
    """
    Per-request authorization context.

    Built at the start of a server operation and threaded explicitly through
    every call that needs it; never cached or shared across requests.

    ``org_id`` always comes from the user record, never from session claims.
    """

    user: UserRecord
    permissions: PermissionMap
    subordinates: frozenset[str]
    org_id: str

    # Holders of a configured system role may cross tenant boundaries.
    cross_tenant: bool = False

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def team_ids(self) -> frozenset[str]:
        """The caller plus everyone reporting to them, transitively."""
        return self.subordinates | {self.user.id}

    def can_see_owner(self, owner_id: str) -> bool:
        return owner_id in self.team_ids
