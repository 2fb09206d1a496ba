"""
Database migration runner for Alembic migrations.
"""
import logging
import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text

from dotts_api.core.config import BillingSettings

logger = logging.getLogger(__name__)

ADVISORY_LOCK_ID = 746201935
CHECKOUT_ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


def find_alembic_ini() -> Path:
    """
    Locate alembic.ini: ALEMBIC_CONFIG if set, then the source checkout, then
    the working directory. A wheel install does not ship alembic.ini, so
    deployments run from the repository root or set ALEMBIC_CONFIG.
    """
    configured = os.getenv("ALEMBIC_CONFIG")
    if configured:
        return Path(configured).resolve()
    if CHECKOUT_ALEMBIC_INI.exists():
        return CHECKOUT_ALEMBIC_INI
    return Path.cwd() / "alembic.ini"


def run_migrations(settings: BillingSettings):
    """
    Run Alembic migrations to head revision.
    Uses a PostgreSQL advisory lock so concurrent instances do not race.
    """
    database_url = settings.database_url
    logger.info("RUN_MIGRATIONS=1 -> running alembic upgrade head")

    alembic_ini = find_alembic_ini()
    if not alembic_ini.exists():
        raise FileNotFoundError(f"alembic.ini not found at {alembic_ini}; set ALEMBIC_CONFIG")

    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.set_main_option("script_location", str(alembic_ini.parent / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)

    is_postgres = database_url.startswith("postgresql")
    engine = create_engine(database_url, pool_pre_ping=True)
    lock_conn = None

    try:
        if is_postgres:
            # Keep the connection open to hold the lock
            lock_conn = engine.connect()
            lock_conn.execute(text(f"SELECT pg_advisory_lock({ADVISORY_LOCK_ID})"))
            lock_conn.commit()
            logger.info("Migration lock acquired")

        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations complete")

    except Exception:
        logger.exception("Migration failed")
        raise
    finally:
        if lock_conn is not None:
            lock_conn.execute(text(f"SELECT pg_advisory_unlock({ADVISORY_LOCK_ID})"))
            lock_conn.commit()
            lock_conn.close()
        engine.dispose()
