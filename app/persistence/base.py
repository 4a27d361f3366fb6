"""Row conversion helpers shared by repositories."""

import json
import uuid
from datetime import datetime
from typing import Any


def row_to_dict(row: Any) -> dict[str, Any]:
    """Convert a SQLAlchemy row to a dict, casting asyncpg types to plain Python values.

    asyncpg returns:
    - UUID columns as uuid.UUID objects → convert to str
    - JSONB columns as text when no codec is registered → decode to Python

    TIMESTAMPTZ columns stay ``datetime``: evidence checksums are recomputed
    from the stored timestamp, so it must not round-trip through a string.
    """
    d = dict(row._mapping)
    result = {}
    for k, v in d.items():
        if isinstance(v, uuid.UUID):
            result[k] = str(v)
        else:
            result[k] = v
    return result


def decode_json_column(value: Any, default: Any = None) -> Any:
    """Decode a JSON/JSONB column that may arrive as text or already decoded."""
    if value is None:
        return default
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def ensure_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
