"""Create tables directly from the models (local development only; production uses Alembic)."""
import logging

from dotts_api.db.base import Base
from dotts_api.db import models  # noqa: F401
from dotts_api.db.session import get_engine

logger = logging.getLogger(__name__)


def init_db(engine=None):
    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database tables ensured: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    init_db()
