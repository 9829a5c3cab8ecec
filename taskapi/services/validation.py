# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Field-level checks shared by the user and task services."""
from datetime import datetime
from typing import Any, List

from taskapi.core.errors import ValidationError
from taskapi.core.timestamps import parse_timestamp


def require_text(value: Any, field: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required")
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip()


def optional_text(value: Any, field: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


def require_bool(value: Any, field: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be true or false")
    return value


def parse_deadline(value: Any) -> datetime:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("deadline is required")
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise ValidationError("deadline must be a valid date") from exc


def require_id_list(value: Any, field: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{field} must be a list of ids")
    return list(dict.fromkeys(value))
