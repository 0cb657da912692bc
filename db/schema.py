"""Table definitions for the game store database."""

from __future__ import annotations

import logging

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
)
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

metadata = MetaData()

users_table = Table(
    "User",
    metadata,
    Column("uid", Integer, primary_key=True, autoincrement=True),
    Column("username", String(100), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", String(255), nullable=False),
    Column("imagepro", String(512), nullable=True),
    Column("role", String(20), nullable=False, server_default="user"),
)

categories_table = Table(
    "Categories",
    metadata,
    Column("category_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
)

games_table = Table(
    "Games",
    metadata,
    Column("game_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=True),
    Column("price", Numeric(10, 2), nullable=False),
    Column("category_id", Integer, ForeignKey("Categories.category_id"), nullable=False),
    Column("image_url", String(512), nullable=True),
)

# Referencing rows block game deletion.
user_library_table = Table(
    "UserLibrary",
    metadata,
    Column("library_id", Integer, primary_key=True, autoincrement=True),
    Column("uid", Integer, ForeignKey("User.uid"), nullable=False),
    Column("game_id", Integer, ForeignKey("Games.game_id"), nullable=False),
)


def create_schema(engine: Engine) -> None:
    """Create any missing tables."""

    metadata.create_all(engine, checkfirst=True)
    logger.info("Database schema ready (%s)", engine.dialect.name)


__all__ = [
    "categories_table",
    "create_schema",
    "games_table",
    "metadata",
    "user_library_table",
    "users_table",
]
