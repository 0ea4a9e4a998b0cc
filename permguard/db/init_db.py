from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session, sessionmaker

from permguard.db.base import Base
from permguard.models.business import Lead, Vendor
from permguard.models.security import Organization, Role, User
from permguard.rbac import RbacConfig

logger = logging.getLogger(__name__)


def init_db(engine: Engine, session_factory: sessionmaker[Session], rbac_config: RbacConfig, *, seed_demo_data: bool) -> None:
    """
    Create tables, sync config-defined roles, and optionally seed demo data.

    Config roles are upserted on every start so the YAML file stays the
    authoring source for built-in roles. Demo data is only inserted into an
    empty database.
    """

    Base.metadata.create_all(bind=engine)

    with session_factory() as db:
        _sync_roles(db, rbac_config)
        db.commit()
        if seed_demo_data and not _has_seed_data(db):
            _seed(db)
            logger.info("Seeded demo organizations, users and records")


def _sync_roles(db: Session, rbac_config: RbacConfig) -> None:
    for role_def in rbac_config.roles.values():
        role = db.get(Role, role_def.id)
        if role is None:
            role = Role(id=role_def.id, name=role_def.name)
            db.add(role)
        role.name = role_def.name
        role.description = role_def.description
        role.grants = sorted(role_def.grants)
    db.flush()


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Organization.id).limit(1)).first() is not None


def _seed(db: Session) -> None:
    arcus = Organization(id="org1", name="Arcus Retail")
    northwind = Organization(id="org2", name="Northwind Traders")
    db.add_all([arcus, northwind])
    db.flush()

    # Users (org1): admin, a sales manager with two reps, one rep with a report of their own.
    admin = User(id="u-admin", email="admin@arcus.local", org_id="org1", role_id="admin")
    manager = User(id="u-mgr", email="mona.manager@arcus.local", org_id="org1", role_id="manager")
    rep1 = User(id="u-rep1", email="ravi.rep@arcus.local", org_id="org1", role_id="sales_rep", manager_id="u-mgr")
    rep2 = User(id="u-rep2", email="sara.rep@arcus.local", org_id="org1", role_id="sales_rep", manager_id="u-mgr")
    rep3 = User(id="u-rep3", email="tom.trainee@arcus.local", org_id="org1", role_id="sales_rep", manager_id="u-rep1")
    clerk = User(id="u-clerk", email="cara.clerk@arcus.local", org_id="org1", role_id="store_clerk")

    # Users (org2)
    nw_admin = User(id="u-nw-admin", email="admin@northwind.local", org_id="org2", role_id="admin")
    nw_rep = User(id="u-nw-rep", email="nina.rep@northwind.local", org_id="org2", role_id="sales_rep")

    db.add_all([admin, manager, clerk, nw_admin, nw_rep])
    db.flush()
    db.add_all([rep1, rep2])
    db.flush()
    db.add(rep3)
    db.flush()

    db.add_all(
        [
            Vendor(name="Galaxy Fittings", org_id="org1", owner_id="u-mgr"),
            Vendor(name="Solo Faucets", org_id="org1", owner_id="u-admin"),
            Vendor(name="Northwind Supply", org_id="org2", owner_id="u-nw-admin"),
        ]
    )
    db.add_all(
        [
            Lead(name="Delhi showroom refit", org_id="org1", owner_id="u-rep1"),
            Lead(name="Mumbai hotel chain", org_id="org1", owner_id="u-rep2"),
            Lead(name="Pune builder", org_id="org1", owner_id="u-rep3"),
            Lead(name="Head office walk-in", org_id="org1", owner_id="u-admin"),
            Lead(name="Seattle cafe", org_id="org2", owner_id="u-nw-rep"),
        ]
    )
    db.commit()
