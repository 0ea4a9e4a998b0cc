"""
Permission guard: the single place where allow/deny decisions are made.

Three call shapes:

- ``authorize(context, module, action)`` -> ``Allowed | Denied`` for code
  that already holds a ``UserContext``.
- ``check_action_permission(claims, module, resource, action)`` ->
  ``ActionGranted | ActionDenied`` for data-fetching paths. Callers branch on
  the result and must surface ``ActionDenied`` to the user.
- ``assert_permission(claims, module, action)`` -> ``UserContext`` or raises,
  for page-level entry points that turn errors into redirects.

There is no administrator branch. Administrators hold the wildcard grant,
which makes their permission map all-allowed; the decision rule is the same
for everyone.

Omitting ``action`` asks a module-level question: does the caller hold any
grant at all in ``module``? Page entry points for a whole module use it.

Async paths hand audit emission to a worker thread, since a sink may write
to the database.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from permguard.rbac import WILDCARD

from .audit import AuditEvent, AuditSink, LoggingAuditSink
from .context import UserContext, UserRecord
from .context_builder import UserContextBuilder
from .errors import (
    AuthorizationError,
    DenialKind,
    NoSessionError,
    NoUserContextError,
    PermissionDeniedError,
    TenantMismatchError,
)
from .session import SessionClaims

logger = logging.getLogger(__name__)


# ---- Decision results ------------------------------------------------------------------


@dataclass(frozen=True)
class Allowed:
    context: UserContext

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied:
    """Carries module/resource/action only, never record-level detail."""

    reason: str
    kind: DenialKind = DenialKind.PERMISSION_DENIED

    @property
    def allowed(self) -> bool:
        return False


Decision = Allowed | Denied


@dataclass(frozen=True)
class ActionGranted:
    user: UserRecord
    context: UserContext


@dataclass(frozen=True)
class ActionDenied:
    error: str
    kind: DenialKind


ActionResult = ActionGranted | ActionDenied


def describe_permission(module: str, action: str | None = None, resource: str | None = None) -> str:
    if action is None:
        return module
    if resource and resource != module:
        return f"{module}:{resource}:{action}"
    return f"{module}:{action}"


# ---- Guard -----------------------------------------------------------------------------


class PermissionGuard:
    def __init__(self, builder: UserContextBuilder, audit_sink: AuditSink | None = None) -> None:
        self._builder = builder
        self._audit = audit_sink or LoggingAuditSink()

    @staticmethod
    def _event(
        context: UserContext | None,
        module: str,
        action: str | None,
        *,
        allowed: bool,
        resource: str | None = None,
        target_id: str | None = None,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> AuditEvent:
        return AuditEvent(
            actor_id=context.user_id if context is not None else actor_id,
            org_id=context.org_id if context is not None else None,
            module=module,
            resource=resource,
            # Module-level checks are recorded as "any action".
            action=action if action is not None else WILDCARD,
            target_id=target_id,
            allowed=allowed,
            reason=reason,
        )

    async def _emit_off_loop(self, event: AuditEvent) -> None:
        await asyncio.to_thread(self._audit.emit, event)

    def _decide(
        self,
        context: UserContext,
        module: str,
        action: str | None,
        resource: str | None,
        target_id: str | None,
    ) -> tuple[Decision, AuditEvent]:
        permission = describe_permission(module, action, resource)
        if action is None:
            allowed = context.permissions.allows_any_in(module)
        else:
            allowed = context.permissions.is_allowed(module, action, resource)

        if allowed:
            logger.debug("Guard: allowed user_id=%s permission=%s", context.user_id, permission)
            event = self._event(context, module, action, allowed=True, resource=resource, target_id=target_id)
            return Allowed(context), event

        reason = f"Permission denied: {permission} required"
        logger.debug("Guard: denied user_id=%s permission=%s", context.user_id, permission)
        event = self._event(context, module, action, allowed=False, resource=resource, target_id=target_id, reason=reason)
        return Denied(reason), event

    def authorize(
        self,
        context: UserContext,
        module: str,
        action: str | None = None,
        resource: str | None = None,
        *,
        target_id: str | None = None,
    ) -> Decision:
        """
        Decide for a caller that already holds a context.

        Emits the audit event on the calling thread; call it from sync code
        (FastAPI runs sync endpoints in its threadpool).
        """

        decision, event = self._decide(context, module, action, resource, target_id)
        self._audit.emit(event)
        return decision

    def ensure_same_tenant(
        self,
        context: UserContext,
        record_org_id: str,
        *,
        module: str,
        action: str,
        resource: str | None = None,
        target_id: str | None = None,
    ) -> None:
        """
        Raise TenantMismatchError unless the record belongs to the caller's org.

        Holders of a system role (``context.cross_tenant``) may cross tenants.
        The mismatch is audited as a denial.
        """

        if record_org_id == context.org_id or context.cross_tenant:
            return

        logger.warning(
            "Tenant mismatch user_id=%s org=%s record_org=%s module=%s action=%s",
            context.user_id,
            context.org_id,
            record_org_id,
            module,
            action,
        )
        self._audit.emit(
            self._event(
                context,
                module,
                action,
                allowed=False,
                resource=resource,
                target_id=target_id,
                reason="tenant mismatch",
            )
        )
        raise TenantMismatchError(module=module, action=action)

    def ensure_owner_visible(
        self,
        context: UserContext,
        owner_id: str,
        *,
        module: str,
        action: str,
        resource: str | None = None,
        target_id: str | None = None,
    ) -> None:
        """
        Raise PermissionDeniedError unless ``owner_id`` is the caller or one of
        their subordinates. Audited as a denial.
        """

        if context.can_see_owner(owner_id):
            return

        reason = "Permission denied: record is outside your team"
        logger.info("Owner not visible user_id=%s owner_id=%s module=%s", context.user_id, owner_id, module)
        self._audit.emit(
            self._event(
                context,
                module,
                action,
                allowed=False,
                resource=resource,
                target_id=target_id,
                reason=reason,
            )
        )
        raise PermissionDeniedError(reason, module=module, action=action)

    async def resolve_context(self, claims: SessionClaims | None) -> UserContext:
        """Session claims -> context, raising NoSessionError / NoUserContextError."""
        if claims is None:
            raise NoSessionError()
        context = await self._builder.build_for_claims(claims)
        if context is None:
            raise NoUserContextError()
        return context

    async def assert_permission(
        self,
        claims: SessionClaims | None,
        module: str,
        action: str | None = None,
        resource: str | None = None,
    ) -> UserContext:
        """
        Raising variant for page-level entry points.

        Raises NoSessionError, NoUserContextError or PermissionDeniedError.
        """

        try:
            context = await self.resolve_context(claims)
        except NoUserContextError:
            await self._emit_off_loop(
                self._event(
                    None,
                    module,
                    action,
                    allowed=False,
                    resource=resource,
                    reason="no user context",
                    actor_id=claims.uid if claims is not None else None,
                )
            )
            raise

        decision, event = self._decide(context, module, action, resource, None)
        await self._emit_off_loop(event)
        if isinstance(decision, Denied):
            raise PermissionDeniedError(decision.reason, module=module, action=action)
        return context

    async def check_action_permission(
        self,
        claims: SessionClaims | None,
        module: str,
        resource: str | None = None,
        action: str | None = None,
    ) -> ActionResult:
        """
        Result-object variant for data-fetching paths.

        Never raises for a denial: returns ``ActionDenied`` carrying a message
        and the denial kind, so an empty result set and "you may not see this"
        stay distinguishable.
        """

        try:
            context = await self.assert_permission(claims, module, action, resource)
        except AuthorizationError as exc:
            return ActionDenied(error=exc.message, kind=exc.kind)
        return ActionGranted(user=context.user, context=context)
