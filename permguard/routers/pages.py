from __future__ import annotations

from fastapi import APIRouter, Depends

from permguard.security.context import UserContext
from permguard.security.dependencies import page_permission

router = APIRouter(prefix="/dashboard", tags=["pages"])


@router.get("/vendor")
def vendor_page(context: UserContext = Depends(page_permission("vendor", "read"))) -> dict[str, object]:
    """
    Page entry point. Unauthenticated callers are redirected to login and
    callers without ``vendor:read`` to the dashboard landing page.
    """
    return {"page": "vendor", "user_id": context.user_id, "org_id": context.org_id}


@router.get("/sales")
def sales_page(context: UserContext = Depends(page_permission("sales"))) -> dict[str, object]:
    # Module-level entry: any sales grant opens the section landing page.
    return {"page": "sales", "user_id": context.user_id, "org_id": context.org_id}
