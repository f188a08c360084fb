"""
Database session management with SQLAlchemy.
"""
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from trademart.core.config import settings
from trademart.core.logging import get_logger

logger = get_logger(__name__)

MIN_BOOTSTRAP_PASSWORD_LENGTH = 10


def _engine_options() -> dict:
    if settings.is_sqlite:
        options = {"connect_args": {"check_same_thread": False}}
        # In-memory databases live as long as their one connection
        if settings.DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 1800,
    }


engine = create_engine(settings.DATABASE_URL, **_engine_options())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; routes and services commit explicitly."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Session for worker jobs and scripts: commits on success, rolls back on error."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db():
    """
    Startup tasks, run once from the application lifespan.

    The schema belongs to Alembic (`alembic upgrade head`). When tables are
    missing, DEBUG deployments create them from the models; otherwise startup
    stops here and requests fail until the migration runs. With the schema in
    place the bootstrap admin is created and, when SEED_DEMO is on, the demo
    marketplace is loaded.
    """
    from trademart.db import models  # noqa: F401  registers the tables on Base
    from trademart.db.preflight import run_db_preflight

    result = run_db_preflight(engine, Base.metadata.tables.keys())

    if not result.schema_ready:
        logger.warning(f"Database schema missing tables: {result.missing_tables}. Run 'alembic upgrade head'.")
        if not settings.DEBUG:
            return
        logger.warning("DEBUG=true: creating tables from the models")
        Base.metadata.create_all(bind=engine)
    else:
        logger.info(f"Database schema verified: {len(result.tables)} tables, revision {result.revision or 'unknown'}")

    bootstrap_admin()

    if settings.SEED_DEMO:
        from trademart.db.seed import seed_demo_data
        logger.info("SEED_DEMO=true: loading demo marketplace")
        seed_demo_data()


def bootstrap_admin():
    """
    Create the first admin from ADMIN_BOOTSTRAP_EMAIL/PASSWORD.

    Does nothing once any user exists, so it is safe on every startup.
    """
    from trademart.core.security import get_password_hash
    from trademart.db.models import User, UserRole

    email = settings.ADMIN_BOOTSTRAP_EMAIL
    password = settings.ADMIN_BOOTSTRAP_PASSWORD

    if not email or not password:
        logger.info("Admin bootstrap: ADMIN_BOOTSTRAP_EMAIL/PASSWORD not set. Skipping.")
        return
    if len(password) < MIN_BOOTSTRAP_PASSWORD_LENGTH:
        logger.warning(
            f"ADMIN_BOOTSTRAP_PASSWORD must be at least {MIN_BOOTSTRAP_PASSWORD_LENGTH} characters. Skipping."
        )
        return

    with get_db_context() as db:
        if db.query(User.id).first():
            logger.info("Admin bootstrap: users already exist. Skipping.")
            return
        db.add(User(
            email=email,
            hashed_password=get_password_hash(password),
            name="Administrator",
            role=UserRole.ADMIN,
            is_active=True,
        ))
    logger.info(f"Bootstrap admin created: {email}")
