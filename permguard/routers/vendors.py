from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from permguard.db.filters import load_in_tenant
from permguard.db.session import get_session_factory, tenant_session
from permguard.models.business import Vendor
from permguard.schemas.business import VendorIn, VendorOut
from permguard.security.context import UserContext
from permguard.security.dependencies import get_guard, require_permission
from permguard.security.guard import PermissionGuard

router = APIRouter(prefix="/vendors", tags=["vendors"])


@router.get("", response_model=list[VendorOut])
def list_vendors(
    context: UserContext = Depends(require_permission("vendor", "read")),
    factory: sessionmaker[Session] = Depends(get_session_factory),
) -> list[Vendor]:
    # Tenant scoping is applied transparently by permguard.db.filters.
    with tenant_session(factory, context) as db:
        return list(db.scalars(select(Vendor).order_by(Vendor.id)).all())


@router.post("", response_model=VendorOut, status_code=status.HTTP_201_CREATED)
def create_vendor(
    body: VendorIn,
    context: UserContext = Depends(require_permission("vendor", "create")),
    factory: sessionmaker[Session] = Depends(get_session_factory),
) -> Vendor:
    with tenant_session(factory, context) as db:
        vendor = Vendor(name=body.name, org_id=context.org_id, owner_id=context.user_id)
        db.add(vendor)
        db.commit()
        db.refresh(vendor)
        return vendor


@router.get("/{vendor_id}", response_model=VendorOut)
def get_vendor(
    vendor_id: int,
    context: UserContext = Depends(require_permission("vendor", "read")),
    factory: sessionmaker[Session] = Depends(get_session_factory),
    guard: PermissionGuard = Depends(get_guard),
) -> Vendor:
    with tenant_session(factory, context) as db:
        vendor = load_in_tenant(db, Vendor, vendor_id, guard=guard, context=context, module="vendor", action="read")
        if vendor is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
        return vendor


@router.delete("/{vendor_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_vendor(
    vendor_id: int,
    context: UserContext = Depends(require_permission("vendor", "delete")),
    factory: sessionmaker[Session] = Depends(get_session_factory),
    guard: PermissionGuard = Depends(get_guard),
) -> None:
    with tenant_session(factory, context) as db:
        vendor = load_in_tenant(db, Vendor, vendor_id, guard=guard, context=context, module="vendor", action="delete")
        if vendor is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
        db.delete(vendor)
        db.commit()
