from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from permguard.db.filters import load_in_tenant, team_scope
from permguard.db.session import get_session_factory, tenant_session
from permguard.models.business import Lead
from permguard.schemas.business import LeadIn, LeadOut
from permguard.security.context import UserContext
from permguard.security.dependencies import get_guard, require_permission
from permguard.security.guard import PermissionGuard

router = APIRouter(prefix="/leads", tags=["leads"])


@router.get("", response_model=list[LeadOut])
def list_leads(
    context: UserContext = Depends(require_permission("sales", "view", resource="leads")),
    factory: sessionmaker[Session] = Depends(get_session_factory),
) -> list[Lead]:
    stmt = select(Lead).order_by(Lead.id)
    if not context.permissions.is_allowed("sales", "viewAll", resource="leads"):
        # Own leads plus the whole reporting line below the caller.
        stmt = stmt.where(team_scope(Lead, context))
    with tenant_session(factory, context) as db:
        return list(db.scalars(stmt).all())


@router.post("", response_model=LeadOut, status_code=status.HTTP_201_CREATED)
def create_lead(
    body: LeadIn,
    context: UserContext = Depends(require_permission("sales", "create", resource="leads")),
    factory: sessionmaker[Session] = Depends(get_session_factory),
) -> Lead:
    with tenant_session(factory, context) as db:
        lead = Lead(name=body.name, org_id=context.org_id, owner_id=context.user_id)
        db.add(lead)
        db.commit()
        db.refresh(lead)
        return lead


@router.get("/{lead_id}", response_model=LeadOut)
def get_lead(
    lead_id: int,
    context: UserContext = Depends(require_permission("sales", "view", resource="leads")),
    factory: sessionmaker[Session] = Depends(get_session_factory),
    guard: PermissionGuard = Depends(get_guard),
) -> Lead:
    with tenant_session(factory, context) as db:
        lead = load_in_tenant(
            db, Lead, lead_id, guard=guard, context=context, module="sales", action="view", resource="leads"
        )
        if lead is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
        if not context.permissions.is_allowed("sales", "viewAll", resource="leads"):
            guard.ensure_owner_visible(
                context, lead.owner_id, module="sales", action="view", resource="leads", target_id=str(lead_id)
            )
        return lead
