"""
Pack Hashing

A pack's hash is the SHA-256 of its canonical JSON form: sorted keys,
compact separators, UTF-8. YAML may yield dates and datetimes, which are
written as ISO 8601 strings. Lists of ``id``-carrying entries are sorted
by id first, so moving a rule within the file does not change the hash.
"""
from __future__ import annotations

import hashlib
import json
from datetime import date, datetime
from typing import Any


def _iso(obj: Any) -> str:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"{type(obj).__name__} has no canonical JSON form")


def canonical_json(obj: Any) -> str:
    """
    >>> canonical_json({"b": 1, "a": [2, "x"]})
    '{"a":[2,"x"],"b":1}'
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=_iso, ensure_ascii=False)


def compute_pack_hash(data: dict[str, Any]) -> str:
    """Hex SHA-256 (64 characters) of a raw pack document."""
    normalized = {
        key: sorted(value, key=lambda v: str(v["id"])) if _is_keyed_list(value) else value
        for key, value in data.items()
    }
    return hashlib.sha256(canonical_json(normalized).encode("utf-8")).hexdigest()


def _is_keyed_list(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and all(isinstance(v, dict) and "id" in v for v in value)
