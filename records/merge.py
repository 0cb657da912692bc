"""Fetch-merge-write updates for user and game rows.

A merge-update reads the stored row, overlays the fields present in the
patch and writes the complete merged field set back with one ``UPDATE``.
Which patch values count as "present" depends on the field's policy:

* ``TRUTHY``: ``None``, ``""`` and numeric zero fall back to the stored
  value. Any other string, ``"0"`` included, is written.
* ``TRUTHY_NUMERIC``: as ``TRUTHY``, but strings that parse as zero
  (``"0"``, ``"0.0"``) also fall back. Used for numeric form fields.
* ``COALESCE``: only ``None`` falls back; an empty string is written.

Concurrent updates of the same row are last-writer-wins.
"""

from __future__ import annotations

import logging
import numbers
from dataclasses import dataclass
from typing import Any, Mapping

from db import utils as db_utils
from errors import NotFoundError, ValidationError
from records.common import fetch_one, translate_db_errors

logger = logging.getLogger(__name__)

TRUTHY = "truthy"
TRUTHY_NUMERIC = "truthy_numeric"
COALESCE = "coalesce"


@dataclass(frozen=True)
class MergeSpec:
    table: str
    id_column: str
    fields: tuple[tuple[str, str], ...]
    not_found_message: str = "Resource not found."


def is_truthy(value: Any) -> bool:
    """Return ``False`` for ``None``, ``""`` and numbers equal to zero."""

    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, numbers.Number):
        return value != 0
    if isinstance(value, str):
        return value != ""
    return bool(value)


def is_truthy_numeric(value: Any) -> bool:
    """Like :func:`is_truthy`, but a string spelling zero is also falsy."""

    if isinstance(value, str) and value != "":
        try:
            return float(value) != 0
        except ValueError:
            return True
    return is_truthy(value)


def merge_fields(
    existing: Mapping[str, Any],
    patch: Mapping[str, Any],
    spec: MergeSpec,
) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for column, policy in spec.fields:
        candidate = patch.get(column)
        if policy == TRUTHY:
            use_patch = is_truthy(candidate)
        elif policy == TRUTHY_NUMERIC:
            use_patch = is_truthy_numeric(candidate)
        elif policy == COALESCE:
            use_patch = candidate is not None
        else:
            raise ValueError(f"Unknown merge policy {policy!r} for {column}")
        merged[column] = candidate if use_patch else existing.get(column)
    return merged


def fetch_record(
    handle: db_utils.DatabaseHandle, spec: MergeSpec, record_id: Any
) -> dict[str, Any] | None:
    return fetch_one(
        handle,
        f"SELECT * FROM {spec.table} WHERE {spec.id_column} = ?",
        (record_id,),
    )


def merge_update(
    handle: db_utils.DatabaseHandle,
    spec: MergeSpec,
    record_id: Any,
    patch: Mapping[str, Any],
) -> dict[str, Any]:
    """Apply ``patch`` to the row identified by ``record_id``.

    Returns the merged field set keyed by column, including the id column.
    Raises :class:`NotFoundError` when the row does not exist or disappears
    before the write lands.
    """
    if record_id is None or record_id == "":
        raise ValidationError(f"{spec.id_column} is required")

    existing = fetch_record(handle, spec, record_id)
    if existing is None:
        raise NotFoundError(spec.not_found_message)

    merged = merge_fields(existing, patch, spec)
    assignments = ", ".join(f"{column} = ?" for column in merged)
    params = (*merged.values(), existing[spec.id_column])

    with translate_db_errors():
        with handle.transaction():
            cursor = handle.execute(
                f"UPDATE {spec.table} SET {assignments} WHERE {spec.id_column} = ?",
                params,
            )
            if cursor.rowcount != 1:
                raise NotFoundError(spec.not_found_message)

    logger.info(
        "Merged update into %s %s=%s (fields: %s)",
        spec.table, spec.id_column, existing[spec.id_column], ", ".join(merged),
    )
    return {spec.id_column: existing[spec.id_column], **merged}


__all__ = [
    "COALESCE",
    "MergeSpec",
    "TRUTHY",
    "TRUTHY_NUMERIC",
    "fetch_record",
    "is_truthy",
    "is_truthy_numeric",
    "merge_fields",
    "merge_update",
]
