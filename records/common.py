"""Query helpers shared by the user and game record modules."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from db import utils as db_utils
from errors import APIError, DatabaseError, DuplicateError, ReferentialConstraintError


def fetch_one(
    handle: db_utils.DatabaseHandle, sql: str, params: Sequence[Any] = ()
) -> dict[str, Any] | None:
    with translate_db_errors():
        row = handle.execute(sql, params).fetchone()
    if row is None:
        return None
    return db_utils.row_to_dict(row)


def fetch_all(
    handle: db_utils.DatabaseHandle, sql: str, params: Sequence[Any] = ()
) -> list[dict[str, Any]]:
    with translate_db_errors():
        rows = handle.execute(sql, params).fetchall()
    return [db_utils.row_to_dict(row) for row in rows]


@contextmanager
def translate_db_errors(
    *,
    duplicate_message: str | None = None,
    blocked_by_references: bool = False,
) -> Iterator[None]:
    """Re-raise driver exceptions as members of the API error taxonomy.

    Foreign-key failures only map to :class:`ReferentialConstraintError` when
    ``blocked_by_references`` is set; on inserts and updates they mean a bad
    reference value and surface as :class:`DatabaseError`.
    """

    try:
        yield
    except APIError:
        raise
    except Exception as exc:
        if db_utils.is_duplicate_key_error(exc):
            raise DuplicateError(duplicate_message) from exc
        if blocked_by_references and db_utils.is_row_referenced_error(exc):
            raise ReferentialConstraintError() from exc
        raise DatabaseError() from exc


__all__ = ["fetch_all", "fetch_one", "translate_db_errors"]
