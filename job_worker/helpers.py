"""Payload coercion helpers shared by the job worker services."""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import IntegrityError

from .errors import JobWorkerValidationError, UnauthorizedError

E = TypeVar("E", bound=Enum)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def camel_to_snake(value: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", value).lower()


def strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
    else:
        value = str(value).strip()
    return value or None


def parse_decimal(
    value: Any,
    field: str,
    errors: Dict[str, str],
    *,
    minimum: Optional[Decimal] = Decimal("0"),
    quantize: Optional[str] = None,
) -> Optional[Decimal]:
    """Return ``value`` as a :class:`Decimal`, recording a message in ``errors`` on failure.

    With ``quantize`` the number is rounded half-up to that step.
    """

    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        errors[field] = "Must be a number."
        return None
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        errors[field] = "Must be a number."
        return None
    if not number.is_finite():
        errors[field] = "Must be a number."
        return None
    if minimum is not None and number < minimum:
        errors[field] = f"Must be greater than or equal to {minimum}."
        return None
    if quantize:
        try:
            number = number.quantize(Decimal(quantize), rounding=ROUND_HALF_UP)
        except InvalidOperation:
            errors[field] = "Number is too large."
            return None
    return number


def parse_datetime(value: Any, field: str, errors: Dict[str, str]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).replace(tzinfo=None) if value.tzinfo else value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        errors[field] = "Invalid date. Use ISO 8601 (YYYY-MM-DD)."
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_enum(enum_cls: Type[E], value: Any, field: str, errors: Dict[str, str]) -> Optional[E]:
    if value is None or value == "":
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        errors[field] = f"Invalid value. Expected one of: {allowed}."
        return None


def parse_bool(value: Any) -> Optional[bool]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"true", "1", "yes", "y"}:
        return True
    if text in {"false", "0", "no", "n"}:
        return False
    return None


def parse_uuid(value: Any, field: str, errors: Dict[str, str]) -> Optional[uuid.UUID]:
    if value in (None, ""):
        errors[field] = "This field is required."
        return None
    try:
        return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        errors[field] = "Invalid identifier."
        return None


def parse_string_list(value: Any, field: str, errors: Dict[str, str]) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        value = [part for part in value.split(",")]
    if not isinstance(value, (list, tuple)):
        errors[field] = "Must be a list of strings."
        return []
    cleaned: list[str] = []
    for entry in value:
        text = strip_or_none(entry)
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def normalize_date_range(
    date_from: Any, date_to: Any
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Turn optional bounds into an inclusive ``[start, end]`` datetime range.

    Date-only bounds cover the whole day.
    """

    errors: Dict[str, str] = {}
    start = parse_datetime(date_from, "dateFrom", errors)
    end = parse_datetime(date_to, "dateTo", errors)
    if end is not None and _is_date_only(date_to):
        end = datetime.combine(end.date(), time.max)
    if not errors and start and end and start > end:
        errors["dateRange"] = "dateFrom must be on or before dateTo."
    if errors:
        raise JobWorkerValidationError(errors)
    return start, end


def _is_date_only(value: Any) -> bool:
    if isinstance(value, datetime):
        return False
    if isinstance(value, date):
        return True
    return isinstance(value, str) and len(value.strip()) == 10


def ensure_company_access(record: Any, company_id: Optional[int], label: str) -> None:
    if company_id is not None and record.company_id != company_id:
        raise UnauthorizedError(f"{label} does not belong to this company")


def is_unique_violation(exc: IntegrityError, *keywords: str) -> bool:
    """Return ``True`` if ``exc`` represents a unique constraint violation."""

    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None)
    message_detail = getattr(diag, "message_detail", None)

    haystacks: list[str] = []
    if constraint_name:
        haystacks.append(constraint_name.lower())
    if message_detail:
        haystacks.append(message_detail.lower())
    if orig is not None:
        haystacks.append(str(orig).lower())
    else:
        haystacks.append(str(exc).lower())

    lowered_keywords = [keyword.lower() for keyword in keywords]
    for haystack in haystacks:
        if haystack and all(keyword in haystack for keyword in lowered_keywords):
            return True
    return False


def next_sequence(values: list[Optional[str]], prefix: str) -> int:
    """Return one past the highest numeric suffix among codes starting with ``prefix``."""

    highest = 0
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$", re.IGNORECASE)
    for value in values:
        match = pattern.match((value or "").strip())
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1
