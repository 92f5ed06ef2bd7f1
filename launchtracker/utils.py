"""Shared utility functions used across launchtracker modules."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

_MISSING = object()


def json_parse(value: str | None, default: Any = _MISSING) -> Any:
    """Safely parse a JSON string, returning *default* on failure.

    If no default is given, returns ``[]`` on parse error (every JSON column
    in this project holds a list).
    """
    try:
        return json.loads(value or "")
    except (json.JSONDecodeError, TypeError):
        return [] if default is _MISSING else default


def json_dump(value: list | None) -> str:
    return json.dumps(value or [])


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
