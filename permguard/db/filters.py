from __future__ import annotations

from typing import TypeVar

from sqlalchemy import ColumnElement, event, select
from sqlalchemy.orm import Session, with_loader_criteria

from permguard.db.base import TenantScopedMixin
from permguard.db.session import USER_CONTEXT_KEY
from permguard.security.context import UserContext
from permguard.security.guard import PermissionGuard

ALL_TENANTS_OPTION = "include_all_tenants"

TenantModel = TypeVar("TenantModel", bound=TenantScopedMixin)


@event.listens_for(Session, "do_orm_execute")
def _apply_tenant_filter(execute_state) -> None:
    """
    Transparent tenant scoping.

    Every select through a session carrying a user context only sees rows of
    the caller's organization, unless the context is cross-tenant (system
    role) or the statement opts out with ``include_all_tenants``.
    """

    if not execute_state.is_select or execute_state.is_column_load or execute_state.is_relationship_load:
        return

    context: UserContext | None = execute_state.session.info.get(USER_CONTEXT_KEY)
    if context is None or context.cross_tenant:
        return
    if execute_state.execution_options.get(ALL_TENANTS_OPTION, False):
        return

    org_id = context.org_id
    execute_state.statement = execute_state.statement.options(
        with_loader_criteria(TenantScopedMixin, lambda cls: cls.org_id == org_id, include_aliases=True)
    )


def team_scope(model: type[TenantModel], context: UserContext) -> ColumnElement[bool]:
    """Rows owned by the caller or anyone reporting to them."""
    return model.owner_id.in_(sorted(context.team_ids))


def load_in_tenant(
    db: Session,
    model: type[TenantModel],
    record_id: int,
    *,
    guard: PermissionGuard,
    context: UserContext,
    module: str,
    action: str,
    resource: str | None = None,
) -> TenantModel | None:
    """
    Load a record by id and check it belongs to the caller's organization.

    Returns None when no such record exists anywhere. A record that exists in
    another organization raises TenantMismatchError instead of looking like a
    miss, so the attempt is audited as a denial.
    """

    stmt = select(model).where(model.id == record_id).execution_options(**{ALL_TENANTS_OPTION: True})
    record = db.scalars(stmt).first()
    if record is None:
        return None
    guard.ensure_same_tenant(
        context,
        record.org_id,
        module=module,
        action=action,
        resource=resource,
        target_id=str(record_id),
    )
    return record
