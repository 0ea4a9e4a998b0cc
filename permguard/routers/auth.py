from __future__ import annotations

from fastapi import APIRouter, Depends

from permguard.rbac import NavItem, filter_nav_items
from permguard.schemas.security import ContextOut, NavItemOut, PermissionCheckIn, PermissionCheckOut, UserOut
from permguard.security.context import UserContext
from permguard.security.dependencies import get_guard, get_navigation, get_optional_context, get_user_context
from permguard.security.guard import Denied, PermissionGuard

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=ContextOut)
def me(context: UserContext = Depends(get_user_context)) -> ContextOut:
    return ContextOut(
        user=UserOut.model_validate(context.user),
        org_id=context.org_id,
        subordinates=sorted(context.subordinates),
        cross_tenant=context.cross_tenant,
    )


@router.get("/permissions")
def permissions(context: UserContext = Depends(get_user_context)) -> dict[str, dict[str, bool]]:
    return context.permissions.to_dict()


@router.post("/check-permission", response_model=PermissionCheckOut)
def check_permission(
    body: PermissionCheckIn,
    context: UserContext = Depends(get_user_context),
    guard: PermissionGuard = Depends(get_guard),
) -> PermissionCheckOut:
    decision = guard.authorize(context, body.module, body.action, body.resource)
    if isinstance(decision, Denied):
        return PermissionCheckOut(allowed=False, reason=decision.reason)
    return PermissionCheckOut(allowed=True)


@router.get("/navigation", response_model=list[NavItemOut])
def navigation(
    context: UserContext | None = Depends(get_optional_context),
    items: tuple[NavItem, ...] = Depends(get_navigation),
) -> list[NavItemOut]:
    # Menu visibility only. Every linked operation is guarded on its own route.
    permissions = context.permissions if context is not None else None
    return [NavItemOut.model_validate(item.to_dict()) for item in filter_nav_items(items, permissions)]
