"""Record id and timestamp generation.

The store never assigns ids. Callers generate the id and creation
timestamp before inserting, and these helpers keep the format in one place.

Record ids: UUID4 strings.
Timestamps: ISO 8601 in UTC, e.g. 2024-01-15T10:00:00.123456+00:00
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

MAX_ID_LENGTH = 100


def new_record_id() -> str:
    """Generate a new client-side record id."""
    return str(uuid.uuid4())


def utc_timestamp() -> str:
    """Return the current time as an ISO 8601 UTC string."""
    return datetime.now(UTC).isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp.

    Accepts a trailing ``Z`` as written by JavaScript clients.
    Raises ValueError on malformed input.
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)
