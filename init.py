"""Application startup orchestration helpers."""

from __future__ import annotations

import logging
from typing import Callable

from config import RUN_DB_MIGRATIONS
from db import utils as db_utils
from db.schema import create_schema

logger = logging.getLogger(__name__)


def initialize_app(
    *,
    connection_factory: Callable[[], db_utils.DatabaseEngine],
    run_migrations: bool = RUN_DB_MIGRATIONS,
) -> db_utils.DatabaseEngine:
    """Perform the core startup tasks required for the application.

    The initializer builds the long-lived engine (and its connection pool),
    creates the schema when migrations are requested or the database is a
    local SQLite file, and registers the engine as the fallback used by
    :func:`db.utils.get_db`.
    """

    engine = connection_factory()

    if run_migrations or engine.engine.dialect.name == "sqlite":
        try:
            create_schema(engine.engine)
        except Exception:
            logger.exception("Failed to create database schema during startup")
            raise

    db_utils.set_fallback_connection(engine)
    return engine


__all__ = ["initialize_app"]
