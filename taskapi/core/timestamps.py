# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""UTC timestamp parsing/serialisation shared by the store and the services."""
from datetime import datetime, timezone
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

_DATETIME = TypeAdapter(datetime)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Columns are timezone-less and always hold UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_timestamp(value: Any) -> datetime:
    """Accept ISO-8601 dates/datetimes, Unix timestamps (s or ms) and datetimes.

    Raises ``ValueError`` when the value cannot be interpreted.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"invalid timestamp: {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("invalid timestamp: empty string")
    try:
        return to_utc_naive(_DATETIME.validate_python(value))
    except PydanticValidationError as exc:
        raise ValueError(f"invalid timestamp: {value!r}") from exc


def isoformat_utc(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()
