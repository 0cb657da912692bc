"""Persistence for the ``User`` table."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from db import utils as db_utils
from records.common import fetch_all, fetch_one, translate_db_errors
from records.merge import COALESCE, TRUTHY, MergeSpec, merge_update

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "user"

# Password is never part of a response payload.
PUBLIC_COLUMNS = "uid, username, email, imagepro, role"

USER_MERGE_SPEC = MergeSpec(
    table="User",
    id_column="uid",
    fields=(("username", TRUTHY), ("imagepro", COALESCE)),
    not_found_message="User not found",
)


def list_users(handle: db_utils.DatabaseHandle) -> list[dict[str, Any]]:
    return fetch_all(handle, f"SELECT {PUBLIC_COLUMNS} FROM User ORDER BY uid")


def get_user(handle: db_utils.DatabaseHandle, uid: Any) -> dict[str, Any] | None:
    return fetch_one(handle, f"SELECT {PUBLIC_COLUMNS} FROM User WHERE uid = ?", (uid,))


def find_by_username(handle: db_utils.DatabaseHandle, username: str) -> dict[str, Any] | None:
    """Return the full row, password included, for credential checks."""

    return fetch_one(
        handle,
        "SELECT uid, username, email, password, imagepro, role FROM User WHERE username = ?",
        (username,),
    )


def create_user(
    handle: db_utils.DatabaseHandle,
    *,
    username: str,
    email: str,
    password: str,
    imagepro: str | None,
) -> int:
    """Insert a user row and return its ``uid``.

    Any unique-key violation (email or username) surfaces as
    ``DuplicateError("Email already exists")``.
    """
    with translate_db_errors(duplicate_message="Email already exists"):
        with handle.transaction():
            cursor = handle.execute(
                "INSERT INTO User (username, email, password, imagepro, role) "
                "VALUES (?, ?, ?, ?, ?)",
                (username, email, password, imagepro, DEFAULT_ROLE),
            )
            uid = cursor.lastrowid
    logger.info("Registered user %s as uid=%s", username, uid)
    return uid


def update_user(
    handle: db_utils.DatabaseHandle, uid: Any, patch: Mapping[str, Any]
) -> dict[str, Any]:
    return merge_update(handle, USER_MERGE_SPEC, uid, patch)


__all__ = [
    "DEFAULT_ROLE",
    "USER_MERGE_SPEC",
    "create_user",
    "find_by_username",
    "get_user",
    "list_users",
    "update_user",
]
