"""Database initialization utilities."""
from typing import Optional

from sqlalchemy.engine import Engine

from smartmess.core.logging import get_logger
from smartmess.db.base import Base, import_models

logger = get_logger(__name__)


def init_db(bind: Optional[Engine] = None) -> None:
    """
    Create all tables that do not exist yet.

    Suitable for development and tests; production schemas are managed
    by migrations.
    """
    if bind is None:
        from smartmess.db.session import engine as bind

    import_models()
    Base.metadata.create_all(bind=bind)
    logger.info("Database tables ensured", extra={"table_count": len(Base.metadata.tables)})


def drop_db(bind: Optional[Engine] = None) -> None:
    """Drop all tables. Development and tests only."""
    if bind is None:
        from smartmess.db.session import engine as bind

    Base.metadata.drop_all(bind=bind)
    logger.warning("All database tables dropped")
