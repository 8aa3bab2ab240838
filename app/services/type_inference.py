from __future__ import annotations

import json
import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

_NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$")
_ISO_DATE_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})?)?$",
    re.IGNORECASE,
)


def _safe_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list, tuple)):
        try:
            return json.dumps(value, default=str)
        except (TypeError, ValueError):
            return repr(value)
    return str(value)


def parse_iso_datetime(text: str) -> datetime:
    text = text.strip()
    if "T" not in text and " " not in text and len(text) == 10:
        return datetime.combine(date.fromisoformat(text), datetime.min.time())
    return datetime.fromisoformat(text.replace("Z", "+00:00").replace("z", "+00:00"))


def is_date_string(text: str) -> bool:
    if not _ISO_DATE_RE.fullmatch(text.strip()):
        return False
    try:
        parse_iso_datetime(text)
    except ValueError:
        return False
    return True


def infer_data_type(value: Any, enum_values: Optional[Iterable[str]] = None) -> str:
    """Guess the semantic type of a loosely typed filter value.

    The order of checks is fixed: enum match, null, array, date instance,
    numeric string, boolean string, JSON object/array, ISO date string,
    plain string. Numeric-looking strings therefore never become dates.
    """
    if enum_values:
        lowered = {v.lower() for v in enum_values}
        if _safe_str(value).lower() in lowered:
            return "enum"

    if value is None:
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, (datetime, date)):
        return "date"

    if not isinstance(value, str):
        if isinstance(value, bool):
            return "boolean"
        if isinstance(value, (int, float, Decimal)):
            return "number"
        if isinstance(value, dict):
            return "json"
        return "string"

    if _NUMERIC_RE.fullmatch(value.strip()):
        return "number"
    if value.lower() in {"true", "false"}:
        return "boolean"
    try:
        parsed = json.loads(value)
    except ValueError:
        if is_date_string(value):
            return "date"
        return "string"
    if isinstance(parsed, list):
        return "array"
    if isinstance(parsed, dict):
        return "json"
    return "string"


def to_number(value: Any) -> float | int:
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    text = str(value).strip().replace(",", ".")
    if not text:
        raise ValueError("Empty number")
    try:
        number = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}")
    if not number.is_finite():
        raise ValueError(f"Not a number: {value!r}")
    return int(number) if number == number.to_integral_value() and "." not in text else float(number)


def to_boolean(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    return parse_iso_datetime(str(value))


def to_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def to_array(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    if value is None:
        return []
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return [value]
        return parsed if isinstance(parsed, list) else [value]
    return [value]


def convert_value(value: Any, data_type: str, enum_values: Optional[Iterable[str]] = None) -> Any:
    """Convert ``value`` to ``data_type``; raises ValueError when it cannot."""
    if data_type == "enum":
        text = _safe_str(value)
        for candidate in enum_values or ():
            if candidate.lower() == text.lower():
                return candidate
        return text
    if data_type == "string":
        return _safe_str(value) if isinstance(value, (dict, list, tuple)) else str(value)
    if data_type == "number":
        return to_number(value)
    if data_type == "boolean":
        return to_boolean(value)
    if data_type == "date":
        parsed = to_datetime(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    if data_type == "json":
        parsed = to_json(value)
        if not isinstance(parsed, (dict, list)):
            raise ValueError(f"Not a JSON object: {value!r}")
        return parsed
    if data_type == "array":
        return to_array(value)
    return value
