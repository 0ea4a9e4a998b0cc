from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from permguard.rbac import NavItem
from permguard.security.context import UserContext
from permguard.security.errors import AuthorizationError, DenialKind, NoSessionError, NoUserContextError
from permguard.security.guard import ActionDenied, PermissionGuard
from permguard.security.session import SessionClaims, SessionResolver
from permguard.settings import Settings

_STATUS_BY_KIND: dict[DenialKind, int] = {
    DenialKind.NO_SESSION: status.HTTP_401_UNAUTHORIZED,
    DenialKind.NO_USER_CONTEXT: status.HTTP_403_FORBIDDEN,
    DenialKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    DenialKind.TENANT_MISMATCH: status.HTTP_404_NOT_FOUND,
}


class PageRedirect(Exception):
    """Raised by page guards; turned into a redirect at the boundary."""

    def __init__(self, location: str) -> None:
        super().__init__(location)
        self.location = location


def _app_state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} not configured. Did app startup run?")
    return value


def get_app_settings(request: Request) -> Settings:
    return _app_state(request, "settings")


def get_guard(request: Request) -> PermissionGuard:
    return _app_state(request, "guard")


def get_navigation(request: Request) -> tuple[NavItem, ...]:
    return _app_state(request, "rbac_config").navigation


def get_session_claims(request: Request) -> SessionClaims | None:
    resolver: SessionResolver = _app_state(request, "session_resolver")
    return resolver.resolve(request)


async def get_optional_context(
    claims: SessionClaims | None = Depends(get_session_claims),
    guard: PermissionGuard = Depends(get_guard),
) -> UserContext | None:
    """Context for endpoints that also serve unauthenticated callers (navigation)."""
    if claims is None:
        return None
    try:
        return await guard.resolve_context(claims)
    except NoUserContextError:
        return None


async def get_user_context(
    claims: SessionClaims | None = Depends(get_session_claims),
    guard: PermissionGuard = Depends(get_guard),
) -> UserContext:
    """Authenticated context with no specific permission requirement."""
    return await guard.resolve_context(claims)


def require_permission(
    module: str,
    action: str | None = None,
    resource: str | None = None,
) -> Callable[..., Awaitable[UserContext]]:
    """
    Dependency factory for API endpoints.

    Returns the caller's ``UserContext`` when ``module[:resource]:action`` is
    granted; otherwise raises an HTTP error carrying the denial message.
    Without ``action`` any grant in ``module`` is enough.
    """

    async def check_permission(
        claims: SessionClaims | None = Depends(get_session_claims),
        guard: PermissionGuard = Depends(get_guard),
    ) -> UserContext:
        result = await guard.check_action_permission(claims, module, resource, action)
        if isinstance(result, ActionDenied):
            raise HTTPException(status_code=_STATUS_BY_KIND[result.kind], detail=result.error)
        return result.context

    return check_permission


def page_permission(
    module: str,
    action: str | None = None,
    resource: str | None = None,
) -> Callable[..., Awaitable[UserContext]]:
    """
    Dependency factory for page entry points.

    No session (or a session whose user is gone): redirect to login.
    Denied: redirect to the configured landing page.
    Without ``action`` any grant in ``module`` opens the page.
    """

    async def check_page(
        claims: SessionClaims | None = Depends(get_session_claims),
        guard: PermissionGuard = Depends(get_guard),
        settings: Settings = Depends(get_app_settings),
    ) -> UserContext:
        try:
            return await guard.assert_permission(claims, module, action, resource)
        except (NoSessionError, NoUserContextError) as exc:
            raise PageRedirect(settings.login_path) from exc
        except AuthorizationError as exc:
            raise PageRedirect(settings.denied_redirect_path) from exc

    return check_page


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthorizationError)
    async def _authorization_error(_request: Request, exc: AuthorizationError) -> JSONResponse:
        return JSONResponse(status_code=_STATUS_BY_KIND[exc.kind], content={"detail": exc.message})

    @app.exception_handler(PageRedirect)
    async def _page_redirect(_request: Request, exc: PageRedirect) -> RedirectResponse:
        return RedirectResponse(url=exc.location, status_code=status.HTTP_303_SEE_OTHER)
