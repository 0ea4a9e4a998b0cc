from __future__ import annotations

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class Base(DeclarativeBase):
    pass


class TenantScopedMixin:
    """
    Marks a business record as owned by one organization.

    Selects issued through a session carrying a user context are restricted
    to the caller's ``org_id`` (see ``permguard.db.filters``).
    """

    @declared_attr
    def org_id(cls) -> Mapped[str]:
        return mapped_column(String(64), ForeignKey("organizations.id"), nullable=False, index=True)
