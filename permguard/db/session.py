from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from permguard.security.context import UserContext

USER_CONTEXT_KEY = "user_context"


def build_engine(db_url: str) -> Engine:
    return create_engine(
        db_url,
        connect_args={"check_same_thread": False} if db_url.startswith("sqlite") else {},
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_session_factory(request: Request) -> sessionmaker[Session]:
    factory = getattr(request.app.state, "session_factory", None)
    if factory is None:
        raise RuntimeError("Session factory not configured. Did app startup run?")
    return factory


@contextmanager
def tenant_session(factory: sessionmaker[Session], context: UserContext) -> Iterator[Session]:
    """
    Open a session bound to one request's ``UserContext``.

    Existing query code (``db.scalars(select(Vendor))``) stays unchanged: the
    ``do_orm_execute`` listener in ``permguard.db.filters`` reads the context
    from ``Session.info`` and restricts tenant-scoped rows to its org.
    """

    db = factory()
    db.info[USER_CONTEXT_KEY] = context
    try:
        yield db
    finally:
        db.close()
