"""ISO-8601 timestamp helpers.

Documents store timestamps as UTC strings with millisecond precision and a
``Z`` suffix (``2025-01-01T09:30:00.000Z``), so string comparison and
parsed comparison agree for anything the store writes itself.
"""

from datetime import UTC, datetime

from beartype import beartype


@beartype
def to_iso(value: datetime) -> str:
    """Format a datetime as a UTC ISO-8601 string.

    Naive datetimes are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@beartype
def now_iso() -> str:
    """Current time as a UTC ISO-8601 string."""
    return to_iso(datetime.now(UTC))


@beartype
def parse_iso(value: object) -> datetime:
    """Parse an ISO-8601 date or datetime string into an aware datetime.

    Args:
        value: Value read from a document.

    Returns:
        Timezone-aware datetime (naive input is treated as UTC).

    Raises:
        ValueError: If value is not a string or not a valid ISO-8601 date.
    """
    if not isinstance(value, str):
        msg = f"Expected an ISO-8601 string, got {type(value).__name__}"
        raise ValueError(msg)
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
