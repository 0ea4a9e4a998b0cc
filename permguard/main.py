from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from permguard.db import filters as _filters  # noqa: F401  (register SQLAlchemy tenant filter)
from permguard.db.directory import SqlReportsSource, SqlRoleStore, SqlUserDirectory
from permguard.db.init_db import init_db
from permguard.db.session import build_engine, build_session_factory
from permguard.logging_config import configure_app_logging
from permguard.rbac import CachedRoleStore, SubordinateResolver, load_rbac_config
from permguard.routers import auth, health, leads, pages, vendors
from permguard.security.audit import AuditSink, LoggingAuditSink, SqlAuditSink
from permguard.security.context_builder import UserContextBuilder
from permguard.security.dependencies import install_error_handlers
from permguard.security.guard import PermissionGuard
from permguard.security.session import SessionResolver
from permguard.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        resolved = settings or get_settings()
        configure_app_logging(resolved.log_level)
        logger.info("App startup beginning")

        rbac_path = resolved.resolved_rbac_config_path()
        rbac_config = load_rbac_config(rbac_path)
        logger.info("Loaded RBAC config: %s (%d roles)", rbac_path, len(rbac_config.roles))

        engine = build_engine(resolved.resolved_db_url())
        session_factory = build_session_factory(engine)
        init_db(engine, session_factory, rbac_config, seed_demo_data=resolved.seed_demo_data)
        logger.info("Database initialized (tables ensured, roles synced)")

        roles = SqlRoleStore(session_factory)
        role_store = CachedRoleStore(roles, resolved.role_cache_ttl_seconds) if resolved.role_cache_ttl_seconds > 0 else roles

        builder = UserContextBuilder(
            users=SqlUserDirectory(session_factory),
            roles=role_store,
            subordinates=SubordinateResolver(SqlReportsSource(session_factory)),
            lookup_timeout_seconds=resolved.lookup_timeout_seconds,
            bootstrap_admin_emails=resolved.bootstrap_admin_emails,
            system_role_ids=resolved.system_role_ids,
        )
        audit_sink: AuditSink = SqlAuditSink(session_factory) if resolved.audit_sink == "db" else LoggingAuditSink()

        app.state.settings = resolved
        app.state.rbac_config = rbac_config
        app.state.session_factory = session_factory
        app.state.session_resolver = SessionResolver(resolved)
        app.state.guard = PermissionGuard(builder, audit_sink)

        yield

        # Shutdown
        engine.dispose()

    app = FastAPI(lifespan=lifespan)
    install_error_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(vendors.router)
    app.include_router(leads.router)
    app.include_router(pages.router)

    return app


app = create_app()
