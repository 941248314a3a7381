"""Serialisation and staleness rules for stored cache entries.

Entries are stored as compact JSON objects (see :class:`StoredEntry`).
Decoding is strict: anything that is not a well-formed record raises
:class:`DecodeError`, which the provider treats exactly like a miss.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from src.models.cache import StoredEntry
from src.utils.errors import DecodeError


def encode_entry(
    payload: Any,
    write_time_ms: int,
    soft_stale_seconds: float,
    tags: list[str] | None = None,
) -> bytes:
    """Encode one entry into the byte form written to the store.

    Raises:
        ValueError: If the payload has no JSON representation.
    """
    entry = StoredEntry(
        value=payload,
        last_modified=write_time_ms,
        stale_age=soft_stale_seconds,
        tags=list(tags or []),
    )
    record = entry.model_dump(by_alias=True, mode="json")
    return json.dumps(record, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def decode_entry(raw: bytes | str) -> StoredEntry:
    """Decode bytes read from the store into a :class:`StoredEntry`.

    Raises:
        DecodeError: If the bytes are not UTF-8 JSON, or the JSON is not a
            complete entry record.
    """
    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        record = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"Stored record is not valid JSON: {exc}") from exc

    if not isinstance(record, dict):
        raise DecodeError(f"Stored record is a {type(record).__name__}, expected an object")

    try:
        return StoredEntry.model_validate(record)
    except ValidationError as exc:
        raise DecodeError(
            f"Stored record is incomplete ({exc.error_count()} validation errors)"
        ) from exc


def is_stale(entry: StoredEntry, now_ms: int) -> bool:
    """Return ``True`` once *now_ms* is past ``lastModified + staleAge``.

    The entry is still fresh at exactly the boundary.
    """
    stale_at_ms = entry.last_modified + entry.stale_age * 1000
    return now_ms > stale_at_ms
