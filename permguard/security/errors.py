"""
Authorization error taxonomy.

    AuthorizationError
    ├── NoSessionError          no valid credential (redirect to login / 401)
    ├── NoUserContextError      credential present, user missing or context unbuildable
    └── PermissionDeniedError   context resolved, (module, action) not granted
        └── TenantMismatchError record belongs to another organization

A hierarchy cycle is not an error: the subordinate resolver logs it and
terminates. Denials are always returned or raised to the immediate caller;
nothing in the engine logs a denial and carries on.
"""

from __future__ import annotations

from enum import Enum


class DenialKind(str, Enum):
    NO_SESSION = "no_session"
    NO_USER_CONTEXT = "no_user_context"
    PERMISSION_DENIED = "permission_denied"
    TENANT_MISMATCH = "tenant_mismatch"


class AuthorizationError(Exception):
    kind: DenialKind = DenialKind.PERMISSION_DENIED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NoSessionError(AuthorizationError):
    kind = DenialKind.NO_SESSION

    def __init__(self, message: str = "Unauthorized: no session found") -> None:
        super().__init__(message)


class NoUserContextError(AuthorizationError):
    kind = DenialKind.NO_USER_CONTEXT

    def __init__(self, message: str = "Authentication required: user context unavailable") -> None:
        super().__init__(message)


class PermissionDeniedError(AuthorizationError):
    kind = DenialKind.PERMISSION_DENIED

    def __init__(self, message: str, *, module: str | None = None, action: str | None = None) -> None:
        super().__init__(message)
        self.module = module
        self.action = action


class TenantMismatchError(PermissionDeniedError):
    """
    Access to a record owned by another organization.

    Audited as a denial; the user-visible message reads as "not found" so the
    record's existence is not confirmed.
    """

    kind = DenialKind.TENANT_MISMATCH

    def __init__(self, message: str = "Not found", *, module: str | None = None, action: str | None = None) -> None:
        super().__init__(message, module=module, action=action)
