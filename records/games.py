"""Persistence for the ``Games`` table."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from db import utils as db_utils
from records.common import fetch_all, fetch_one, translate_db_errors
from records.merge import COALESCE, TRUTHY, TRUTHY_NUMERIC, MergeSpec, merge_update

logger = logging.getLogger(__name__)

_SELECT_WITH_CATEGORY = (
    "SELECT g.*, c.name AS category_name FROM Games g "
    "LEFT JOIN Categories c ON g.category_id = c.category_id"
)

# An empty name keeps the stored one; price and category_id also ignore "0".
# description is written whenever it is sent, even empty.
GAME_MERGE_SPEC = MergeSpec(
    table="Games",
    id_column="game_id",
    fields=(
        ("name", TRUTHY),
        ("description", COALESCE),
        ("price", TRUTHY_NUMERIC),
        ("category_id", TRUTHY_NUMERIC),
        ("image_url", COALESCE),
    ),
    not_found_message="Game not found",
)


def list_games(handle: db_utils.DatabaseHandle) -> list[dict[str, Any]]:
    return fetch_all(handle, f"{_SELECT_WITH_CATEGORY} ORDER BY g.game_id")


def get_game(handle: db_utils.DatabaseHandle, game_id: Any) -> dict[str, Any] | None:
    return fetch_one(handle, f"{_SELECT_WITH_CATEGORY} WHERE g.game_id = ?", (game_id,))


def create_game(
    handle: db_utils.DatabaseHandle,
    *,
    name: str,
    description: str | None,
    price: Any,
    category_id: Any,
    image_url: str | None,
) -> int:
    with translate_db_errors(duplicate_message="Game already exists"):
        with handle.transaction():
            cursor = handle.execute(
                "INSERT INTO Games (name, description, price, category_id, image_url) "
                "VALUES (?, ?, ?, ?, ?)",
                (name, description or None, price, category_id, image_url),
            )
            game_id = cursor.lastrowid
    logger.info("Created game %r as game_id=%s", name, game_id)
    return game_id


def update_game(
    handle: db_utils.DatabaseHandle, game_id: Any, patch: Mapping[str, Any]
) -> dict[str, Any]:
    return merge_update(handle, GAME_MERGE_SPEC, game_id, patch)


def delete_game(handle: db_utils.DatabaseHandle, game_id: Any) -> bool:
    """Delete a game; return ``False`` when no row matched.

    Raises :class:`ReferentialConstraintError` when other rows still point
    at the game.
    """
    with translate_db_errors(blocked_by_references=True):
        with handle.transaction():
            cursor = handle.execute("DELETE FROM Games WHERE game_id = ?", (game_id,))
            deleted = cursor.rowcount > 0
    if deleted:
        logger.info("Deleted game_id=%s", game_id)
    return deleted


__all__ = [
    "GAME_MERGE_SPEC",
    "create_game",
    "delete_game",
    "get_game",
    "list_games",
    "update_game",
]
