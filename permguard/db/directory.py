"""
SQL-backed collaborators for the context builder.

Each lookup opens its own short-lived session, so lookups can run
concurrently in worker threads. None of these sessions carry a user
context: identity and role tables are not tenant-scoped rows.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased, sessionmaker

from permguard.models.security import Role, User
from permguard.security.context import UserRecord


def to_user_record(user: User) -> UserRecord:
    role = user.role
    return UserRecord(
        id=user.id,
        email=user.email,
        org_id=user.org_id,
        role_id=user.role_id,
        manager_id=user.manager_id,
        is_active=user.is_active,
        role_org_id=role.org_id if role is not None else None,
    )


class SqlUserDirectory:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get_user(self, user_id: str) -> UserRecord | None:
        with self._session_factory() as db:
            user = db.get(User, user_id)
            return to_user_record(user) if user is not None else None


class SqlReportsSource:
    """
    Direct reports of a user, restricted to the manager's own organization.

    A ``manager_id`` pointing across tenants is a data error; such edges are
    ignored rather than widening a manager's team into another org.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def direct_reports(self, user_id: str) -> list[str]:
        manager = aliased(User)
        stmt = (
            select(User.id)
            .join(manager, User.manager_id == manager.id)
            .where(manager.id == user_id, User.org_id == manager.org_id)
            .order_by(User.id)
        )
        with self._session_factory() as db:
            return list(db.scalars(stmt).all())


class SqlRoleStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def grants_for_role(self, role_id: str) -> frozenset[str] | None:
        with self._session_factory() as db:
            role = db.get(Role, role_id)
            if role is None:
                return None
            return frozenset(role.grants or ())
