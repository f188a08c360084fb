"""
Startup checks against the marketplace database.

``run_db_preflight`` waits for the database to accept connections and then
reports which marketplace tables are missing and which Alembic revision the
schema is on. An unreachable database or rejected credentials end the process.
"""
import sys
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from trademart.core.config import settings
from trademart.core.logging import get_logger

logger = get_logger("trademart.db.preflight")


@dataclass
class PreflightResult:
    tables: List[str] = field(default_factory=list)
    missing_tables: List[str] = field(default_factory=list)
    revision: Optional[str] = None

    @property
    def schema_ready(self) -> bool:
        return not self.missing_tables


def _display_url(url: str) -> str:
    # Host/database part only, never the credentials
    return url.rsplit("@", 1)[-1] if "@" in url else url.split("://", 1)[0] + "://"


def wait_for_database(engine: Engine, retries: int = 5, delay: float = 2) -> None:
    logger.info(f"Checking database at {_display_url(settings.DATABASE_URL)}")

    for attempt in range(1, retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection successful")
            return
        except OperationalError as e:
            message = str(e)
            if "password authentication failed" in message.lower():
                logger.error(
                    f"Database rejected credentials for user {settings.POSTGRES_USER} "
                    f"on {settings.POSTGRES_DB}; check the POSTGRES_* settings"
                )
                sys.exit(1)
            if attempt == retries:
                logger.error(f"Database unreachable after {retries} attempts: {message}")
                sys.exit(1)
            logger.warning(f"Database attempt {attempt}/{retries} failed, retrying in {delay}s")
            time.sleep(delay)


def read_revision(engine: Engine) -> Optional[str]:
    try:
        with engine.connect() as conn:
            return conn.execute(text("SELECT version_num FROM alembic_version")).scalar()
    except SQLAlchemyError as e:
        logger.warning(f"Could not read migration version: {e}")
        return None


def run_db_preflight(engine: Engine, required_tables: Iterable[str], retries: int = 5, delay: float = 2) -> PreflightResult:
    wait_for_database(engine, retries=retries, delay=delay)

    tables = inspect(engine).get_table_names()
    result = PreflightResult(
        tables=tables,
        missing_tables=sorted(set(required_tables) - set(tables)),
    )
    if "alembic_version" in tables:
        result.revision = read_revision(engine)
    return result
