"""Tests for UserContextBuilder with in-memory collaborators."""

import asyncio
import logging
import time

from permguard.rbac import ConfigRoleStore, MappingReportsSource, SubordinateResolver, parse_rbac_config
from permguard.security.context import UserRecord
from permguard.security.context_builder import UserContextBuilder
from permguard.security.session import SessionClaims

RBAC = parse_rbac_config(
    {
        "roles": {
            "admin": {"grants": ["*"]},
            "system": {"grants": ["*"]},
            "sales_rep": {"grants": ["sales:leads:view"]},
            "manager": {"extends": "sales_rep", "grants": ["vendor:read"]},
        }
    }
)

USERS = {
    "u-mgr": UserRecord(id="u-mgr", email="mgr@a.test", org_id="orgA", role_id="manager"),
    "u-rep": UserRecord(id="u-rep", email="rep@a.test", org_id="orgA", role_id="sales_rep", manager_id="u-mgr"),
    "u-boot": UserRecord(id="u-boot", email="Founder@A.test", org_id="orgA", role_id="sales_rep"),
    "u-ghost": UserRecord(id="u-ghost", email="ghost@a.test", org_id="orgA", role_id="no_such_role"),
    "u-gone": UserRecord(id="u-gone", email="gone@a.test", org_id="orgA", role_id="manager", is_active=False),
    "u-sys": UserRecord(id="u-sys", email="ops@platform.test", org_id="orgP", role_id="system"),
    "u-local-role": UserRecord(id="u-local-role", email="l@a.test", org_id="orgA", role_id="manager", role_org_id="orgA"),
    "u-foreign-role": UserRecord(id="u-foreign-role", email="f@a.test", org_id="orgA", role_id="manager", role_org_id="orgB"),
    "u-foreign-sys": UserRecord(id="u-foreign-sys", email="s@a.test", org_id="orgA", role_id="system", role_org_id="orgP"),
}


class FakeDirectory:
    def __init__(self, users, delay=0.0, fail=False):
        self.users = users
        self.delay = delay
        self.fail = fail

    def get_user(self, user_id):
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("directory unavailable")
        return self.users.get(user_id)


class RecordingRoles:
    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    def grants_for_role(self, role_id):
        self.calls.append(role_id)
        return self.inner.grants_for_role(role_id)


def _builder(directory=None, roles=None, **kwargs):
    return UserContextBuilder(
        users=directory or FakeDirectory(USERS),
        roles=roles or ConfigRoleStore(RBAC),
        subordinates=SubordinateResolver(
            MappingReportsSource.from_managers({uid: u.manager_id for uid, u in USERS.items()})
        ),
        **kwargs,
    )


def test_build_composes_context():
    context = asyncio.run(_builder().build("u-mgr"))
    assert context.user_id == "u-mgr"
    assert context.org_id == "orgA"
    assert context.subordinates == frozenset({"u-rep"})
    assert context.team_ids == frozenset({"u-mgr", "u-rep"})
    assert context.permissions.is_allowed("vendor", "read")
    assert context.permissions.is_allowed("sales", "view", resource="leads")
    assert not context.permissions.is_allowed("vendor", "delete")
    assert context.cross_tenant is False


def test_missing_user_has_no_context():
    assert asyncio.run(_builder().build("nobody")) is None


def test_inactive_user_has_no_context():
    assert asyncio.run(_builder().build("u-gone")) is None


def test_unknown_role_means_no_grants(caplog):
    with caplog.at_level(logging.WARNING):
        context = asyncio.run(_builder().build("u-ghost"))
    assert context is not None
    assert not context.permissions.is_allowed("vendor", "read")
    assert "Unknown role_id=no_such_role" in caplog.text


def test_lookup_failure_has_no_context():
    assert asyncio.run(_builder(FakeDirectory(USERS, fail=True)).build("u-mgr")) is None


def test_lookup_timeout_has_no_context():
    builder = _builder(FakeDirectory(USERS, delay=0.5), lookup_timeout_seconds=0.05)
    assert asyncio.run(builder.build("u-mgr")) is None


def test_tenant_comes_from_record_not_claims():
    claims = SessionClaims(uid="u-mgr", email=None, org_id="orgB", role_id="manager")
    context = asyncio.run(_builder().build_for_claims(claims))
    assert context.org_id == "orgA"


def test_matching_role_hint_is_reused():
    roles = RecordingRoles(ConfigRoleStore(RBAC))
    asyncio.run(_builder(roles=roles).build("u-mgr", role_id_hint="manager"))
    assert roles.calls == ["manager"]


def test_forged_role_hint_is_ignored():
    roles = RecordingRoles(ConfigRoleStore(RBAC))
    context = asyncio.run(_builder(roles=roles).build("u-rep", role_id_hint="admin"))
    assert not context.permissions.all_allowed
    assert not context.permissions.is_allowed("vendor", "read")
    assert roles.calls == ["admin", "sales_rep"]


def test_bootstrap_email_gets_wildcard():
    builder = _builder(bootstrap_admin_emails=["founder@a.test"])
    context = asyncio.run(builder.build("u-boot"))
    assert context.permissions.all_allowed
    assert context.permissions.is_allowed("hrms", "anything")


def test_bootstrap_list_empty_by_default():
    context = asyncio.run(_builder().build("u-boot"))
    assert not context.permissions.all_allowed


def test_system_role_crosses_tenants():
    builder = _builder(system_role_ids=["system"])
    assert asyncio.run(builder.build("u-sys")).cross_tenant is True
    assert asyncio.run(builder.build("u-mgr")).cross_tenant is False


def test_role_of_own_org_applies():
    context = asyncio.run(_builder().build("u-local-role"))
    assert context.permissions.is_allowed("vendor", "read")


def test_role_scoped_to_another_org_grants_nothing(caplog):
    with caplog.at_level(logging.WARNING):
        context = asyncio.run(_builder().build("u-foreign-role", role_id_hint="manager"))
    assert not context.permissions.is_allowed("vendor", "read")
    assert "belongs to org=orgB" in caplog.text


def test_foreign_system_role_does_not_cross_tenants():
    context = asyncio.run(_builder(system_role_ids=["system"]).build("u-foreign-sys"))
    assert context.cross_tenant is False
    assert not context.permissions.all_allowed
