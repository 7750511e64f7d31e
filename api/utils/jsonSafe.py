# utils/jsonSafe.py
from datetime import date, datetime
from typing import Any, Mapping
from uuid import UUID


def jsonSafe(value: Any) -> Any:
    """
    Recursively convert datetimes, dates and UUIDs into strings so standings
    payloads are JSON serializable. Row mappings become plain dicts.
    """
    if isinstance(value, datetime):
        # keep timezone info if present
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Mapping):
        return {k: jsonSafe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonSafe(v) for v in value]
    return value
