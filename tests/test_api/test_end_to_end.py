"""
End-to-end tests through the FastAPI app against the seeded demo data.

Seeded org1 hierarchy: u-mgr -> (u-rep1 -> u-rep3, u-rep2). u-admin holds the
wildcard grant in org1; u-nw-admin holds it in org2.
"""
from __future__ import annotations

from sqlalchemy import select

from conftest import auth_headers
from permguard.models.security import AuditLog, Role, User


def _audit_rows(client, **filters):
    with client.app.state.session_factory() as db:
        stmt = select(AuditLog).filter_by(**filters).order_by(AuditLog.id)
        return db.scalars(stmt).all()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


# ---- Session and context ---------------------------------------------------------------


def test_no_session_is_401(client):
    resp = client.get("/vendors")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Unauthorized: no session found"


def test_invalid_credential_is_401(client):
    resp = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


def test_unknown_user_is_403(client):
    resp = client.get("/vendors", headers=auth_headers("u-deleted"))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Authentication required: user context unavailable"


def test_me_reports_tenant_from_record(client):
    resp = client.get("/auth/me", headers=auth_headers("u-mgr", org_id="org2", role_id="manager"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["org_id"] == "org1"
    assert body["user"]["email"] == "mona.manager@arcus.local"
    assert body["subordinates"] == ["u-rep1", "u-rep2", "u-rep3"]
    assert body["cross_tenant"] is False


def test_session_cookie_accepted(client):
    token = auth_headers("u-rep1")["Authorization"].split(" ", 1)[1]
    resp = client.get("/auth/me", headers={"Cookie": f"__session={token}"})
    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == "u-rep1"


def test_permissions_views(client):
    assert client.get("/auth/permissions", headers=auth_headers("u-admin")).json() == {"*": {"*": True}}
    rep = client.get("/auth/permissions", headers=auth_headers("u-rep1")).json()
    assert rep == {"dashboard": {"view": True}, "sales": {"leads:create": True, "leads:view": True}}


def test_check_permission_endpoint(client):
    headers = auth_headers("u-mgr")
    allowed = client.post(
        "/auth/check-permission",
        json={"module": "vendor", "resource": "purchaseOrders", "action": "view"},
        headers=headers,
    )
    assert allowed.json() == {"allowed": True, "reason": None}

    denied = client.post("/auth/check-permission", json={"module": "po", "action": "approve"}, headers=headers)
    assert denied.json() == {"allowed": False, "reason": "Permission denied: po:approve required"}


def test_forged_role_claim_grants_nothing(client):
    resp = client.delete("/vendors/2", headers=auth_headers("u-rep1", role_id="admin"))
    assert resp.status_code == 403


# ---- Vendors ---------------------------------------------------------------------------


def test_manager_lists_own_tenant_vendors(client):
    resp = client.get("/vendors", headers=auth_headers("u-mgr"))
    assert resp.status_code == 200
    assert [v["name"] for v in resp.json()] == ["Galaxy Fittings", "Solo Faucets"]


def test_manager_cannot_delete(client):
    resp = client.delete("/vendors/1", headers=auth_headers("u-mgr"))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Permission denied: vendor:delete required"

    rows = _audit_rows(client, actor_id="u-mgr", action="delete")
    assert [(r.module, r.allowed) for r in rows] == [("vendor", False)]


def test_admin_deletes_vendor(client):
    headers = auth_headers("u-admin")
    assert client.delete("/vendors/2", headers=headers).status_code == 204
    assert client.get("/vendors/2", headers=headers).status_code == 404


def test_rep_without_vendor_read_is_denied(client):
    resp = client.get("/vendors", headers=auth_headers("u-rep1"))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Permission denied: vendor:read required"


def test_create_vendor_lands_in_callers_tenant(client):
    resp = client.post("/vendors", json={"name": "Acme Tiles"}, headers=auth_headers("u-mgr"))
    assert resp.status_code == 201
    body = resp.json()
    assert (body["org_id"], body["owner_id"]) == ("org1", "u-mgr")

    other = client.get("/vendors", headers=auth_headers("u-nw-admin")).json()
    assert "Acme Tiles" not in [v["name"] for v in other]


def test_cross_tenant_read_is_not_found_and_audited(client):
    resp = client.get("/vendors/1", headers=auth_headers("u-nw-admin"))
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Not found"

    rows = _audit_rows(client, actor_id="u-nw-admin", target_id="1")
    assert len(rows) == 1
    assert rows[0].allowed is False
    assert rows[0].reason == "tenant mismatch"
    assert rows[0].org_id == "org2"


def test_missing_vendor_is_plain_not_found(client):
    resp = client.get("/vendors/999", headers=auth_headers("u-admin"))
    assert resp.status_code == 404
    assert _audit_rows(client, target_id="999") == []


# ---- Leads (team visibility) -----------------------------------------------------------


def _lead_owners(client, uid):
    resp = client.get("/leads", headers=auth_headers(uid))
    assert resp.status_code == 200
    return [lead["owner_id"] for lead in resp.json()]


def test_manager_sees_whole_reporting_line(client):
    assert _lead_owners(client, "u-mgr") == ["u-rep1", "u-rep2", "u-rep3"]


def test_rep_sees_own_and_reports(client):
    assert _lead_owners(client, "u-rep1") == ["u-rep1", "u-rep3"]
    assert _lead_owners(client, "u-rep2") == ["u-rep2"]


def test_view_all_sees_tenant(client):
    assert _lead_owners(client, "u-admin") == ["u-rep1", "u-rep2", "u-rep3", "u-admin"]
    assert _lead_owners(client, "u-nw-rep") == ["u-nw-rep"]


def test_clerk_cannot_see_leads(client):
    assert client.get("/leads", headers=auth_headers("u-clerk")).status_code == 403


def test_lead_detail_within_team(client):
    assert client.get("/leads/3", headers=auth_headers("u-mgr")).json()["owner_id"] == "u-rep3"
    assert client.get("/leads/3", headers=auth_headers("u-rep1")).status_code == 200
    assert client.get("/leads/2", headers=auth_headers("u-admin")).status_code == 200


def test_lead_detail_outside_team_is_denied(client):
    resp = client.get("/leads/1", headers=auth_headers("u-rep2"))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Permission denied: record is outside your team"

    rows = _audit_rows(client, actor_id="u-rep2", target_id="1")
    assert [(r.module, r.resource, r.allowed) for r in rows] == [("sales", "leads", False)]


def test_lead_detail_other_tenant_and_missing(client):
    assert client.get("/leads/1", headers=auth_headers("u-nw-rep")).status_code == 404
    assert client.get("/leads/999", headers=auth_headers("u-admin")).status_code == 404


def test_create_lead(client):
    resp = client.post("/leads", json={"name": "Airport lounge"}, headers=auth_headers("u-rep2"))
    assert resp.status_code == 201
    assert resp.json()["owner_id"] == "u-rep2"
    assert "u-rep2" in _lead_owners(client, "u-mgr")


# ---- Navigation ------------------------------------------------------------------------


def _labels(items):
    return [(item["label"], _labels(item["children"])) if item["children"] else item["label"] for item in items]


def test_navigation_unauthenticated_is_empty(client):
    assert client.get("/auth/navigation").json() == []


def test_navigation_for_rep(client):
    items = client.get("/auth/navigation", headers=auth_headers("u-rep1")).json()
    assert _labels(items) == ["Dashboard", ("Sales", ["Leads"])]


def test_navigation_for_clerk(client):
    items = client.get("/auth/navigation", headers=auth_headers("u-clerk")).json()
    assert _labels(items) == ["Dashboard", "Inventory", ("Store", ["POS Billing"])]


def test_navigation_for_admin_is_full_tree(client):
    items = client.get("/auth/navigation", headers=auth_headers("u-admin")).json()
    assert [item["label"] for item in items] == [
        "Dashboard",
        "Vendors",
        "Inventory",
        "Sales",
        "Store",
        "HRMS",
        "Users & Roles",
    ]
    assert [child["label"] for child in items[1]["children"]] == ["Purchase Orders", "Onboarding"]


# ---- Page guard ------------------------------------------------------------------------


def test_page_without_session_redirects_to_login(client):
    resp = client.get("/dashboard/vendor", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"


def test_page_denied_redirects_to_dashboard(client):
    resp = client.get("/dashboard/vendor", headers=auth_headers("u-clerk"), follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/dashboard"


def test_page_allowed(client):
    resp = client.get("/dashboard/vendor", headers=auth_headers("u-mgr"))
    assert resp.status_code == 200
    assert resp.json() == {"page": "vendor", "user_id": "u-mgr", "org_id": "org1"}


def test_module_level_page(client):
    assert client.get("/dashboard/sales", headers=auth_headers("u-rep1")).json()["page"] == "sales"

    resp = client.get("/dashboard/sales", headers=auth_headers("u-clerk"), follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/dashboard"


def test_module_level_check_permission(client):
    headers = auth_headers("u-clerk")
    assert client.post("/auth/check-permission", json={"module": "store"}, headers=headers).json() == {
        "allowed": True,
        "reason": None,
    }
    assert client.post("/auth/check-permission", json={"module": "vendor"}, headers=headers).json() == {
        "allowed": False,
        "reason": "Permission denied: vendor required",
    }


# ---- Role scoping ----------------------------------------------------------------------


def test_role_owned_by_another_org_grants_nothing(client):
    with client.app.state.session_factory() as db:
        db.add(Role(id="nw_buyer", name="Northwind Buyer", org_id="org2", grants=["vendor:read"]))
        db.add(User(id="u-borrower", email="borrower@arcus.local", org_id="org1", role_id="nw_buyer"))
        db.commit()

    resp = client.get("/vendors", headers=auth_headers("u-borrower"))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Permission denied: vendor:read required"
