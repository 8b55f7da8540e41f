"""
Utility functions for field validation and content hashing
"""
import re
import json
import math
import hashlib
import uuid
from datetime import date, datetime
from typing import Any, List, Optional, Tuple

from ..models import FieldIssue, FieldType, FieldValidationResult, FormField

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+?[0-9]{7,15}$")
EARLIEST_PLAUSIBLE_YEAR = 1900

TEXT_LIKE_TYPES = {FieldType.TEXT, FieldType.EMAIL, FieldType.PHONE, FieldType.SELECT, FieldType.DOCUMENT}
NUMERIC_TYPES = {FieldType.NUMBER, FieldType.INTEGER}

# Namespace for deterministic application ids derived from idempotency keys
APPLICATION_NAMESPACE = uuid.UUID("6f1c1b7e-3d52-4a8e-9c1e-2b7f0d9a4e11")


class _CoercionFailed(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def is_empty(value: Any) -> bool:
    """
    Check whether a raw value counts as "not supplied"

    Args:
        value: Raw value from the caller

    Returns:
        True for None, blank strings and empty lists
    """
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, tuple)) and len(value) == 0:
        return True
    return False


def _coerce_number(value: Any) -> float:
    if isinstance(value, bool):
        raise _CoercionFailed("Must be a number")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise _CoercionFailed("Must be a finite number")
        return value
    if isinstance(value, str):
        try:
            parsed = float(value.strip().replace(",", ""))
        except ValueError:
            raise _CoercionFailed("Must be a number")
        if not math.isfinite(parsed):
            raise _CoercionFailed("Must be a finite number")
        return int(parsed) if parsed.is_integer() and "." not in value else parsed
    raise _CoercionFailed("Must be a number")


def _coerce_integer(value: Any) -> int:
    number = _coerce_number(value)
    if isinstance(number, float):
        if not number.is_integer():
            raise _CoercionFailed("Must be a whole number")
        return int(number)
    return number


def _coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise _CoercionFailed("Must be a date in YYYY-MM-DD format")
    raise _CoercionFailed("Must be a date in YYYY-MM-DD format")


def _coerce_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "y", "1"):
            return True
        if lowered in ("false", "no", "n", "0"):
            return False
    raise _CoercionFailed("Must be yes or no")


def _coerce_text(value: Any) -> str:
    if not isinstance(value, str):
        raise _CoercionFailed("Must be text")
    return value.strip()


def _coerce(field: FormField, value: Any) -> Any:
    """Convert a raw value into the field's type; raises _CoercionFailed"""
    field_type = field.type
    if field_type == FieldType.NUMBER:
        return _coerce_number(value)
    if field_type == FieldType.INTEGER:
        return _coerce_integer(value)
    if field_type == FieldType.DATE:
        return _coerce_date(value)
    if field_type == FieldType.BOOLEAN:
        return _coerce_boolean(value)
    if field_type == FieldType.MULTISELECT:
        items = [value] if isinstance(value, str) else value
        if not isinstance(items, (list, tuple)) or not all(isinstance(i, str) for i in items):
            raise _CoercionFailed("Must be a list of options")
        deduplicated = []
        for item in (i.strip() for i in items):
            if item not in deduplicated:
                deduplicated.append(item)
        return deduplicated
    if field_type == FieldType.EMAIL:
        text = _coerce_text(value)
        if not EMAIL_PATTERN.match(text):
            raise _CoercionFailed("Must be a valid email address")
        return text.lower()
    if field_type == FieldType.PHONE:
        text = re.sub(r"[\s\-().]", "", _coerce_text(value))
        if not PHONE_PATTERN.match(text):
            raise _CoercionFailed("Must be a valid phone number")
        return text
    return _coerce_text(value)


def _years_before(today: date, years: int) -> date:
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return today.replace(year=today.year - years, day=28)


def _check_range(field: FormField, value: Any) -> List[FieldIssue]:
    rules = field.rules
    if field.type not in NUMERIC_TYPES:
        return []
    if rules.min_value is not None and value < rules.min_value:
        return [FieldIssue(code="below_minimum", message=f"Must be at least {rules.min_value:g}")]
    if rules.max_value is not None and value > rules.max_value:
        return [FieldIssue(code="above_maximum", message=f"Must be at most {rules.max_value:g}")]
    return []


def _check_length(field: FormField, value: Any) -> List[FieldIssue]:
    rules = field.rules
    if field.type == FieldType.MULTISELECT:
        if rules.min_length is not None and len(value) < rules.min_length:
            return [FieldIssue(code="too_few", message=f"Choose at least {rules.min_length}")]
        if rules.max_length is not None and len(value) > rules.max_length:
            return [FieldIssue(code="too_many", message=f"Choose at most {rules.max_length}")]
        return []
    if field.type not in TEXT_LIKE_TYPES:
        return []
    if rules.min_length is not None and len(value) < rules.min_length:
        return [FieldIssue(code="too_short", message=f"Must be at least {rules.min_length} characters")]
    if rules.max_length is not None and len(value) > rules.max_length:
        return [FieldIssue(code="too_long", message=f"Must be at most {rules.max_length} characters")]
    return []


def _check_date(field: FormField, value: Any, today: date) -> List[FieldIssue]:
    if field.type != FieldType.DATE:
        return []
    rules = field.rules
    errors = []
    if value.year < EARLIEST_PLAUSIBLE_YEAR:
        errors.append(FieldIssue(code="date_implausible", message=f"Date before {EARLIEST_PLAUSIBLE_YEAR} is not plausible"))
    elif rules.max_years_ago is not None and value < _years_before(today, rules.max_years_ago):
        errors.append(FieldIssue(code="date_implausible", message=f"Date more than {rules.max_years_ago} years ago is not plausible"))
    if not rules.allow_future_dates and value > today:
        errors.append(FieldIssue(code="date_in_future", message="Date cannot be in the future"))
    if not rules.allow_past_dates and value < today:
        errors.append(FieldIssue(code="date_in_past", message="Date cannot be in the past"))
    return errors


def _check_pattern(field: FormField, value: Any) -> List[FieldIssue]:
    pattern = field.rules.pattern
    if pattern is None or field.type not in TEXT_LIKE_TYPES:
        return []
    if not re.fullmatch(pattern, value):
        return [FieldIssue(code="pattern_mismatch", message="Value has an invalid format")]
    return []


def _check_options(field: FormField, value: Any) -> List[FieldIssue]:
    if field.type == FieldType.SELECT and value not in field.options:
        return [FieldIssue(code="invalid_option", message=f"Must be one of: {', '.join(field.options)}")]
    if field.type == FieldType.MULTISELECT:
        invalid = [item for item in value if item not in field.options]
        if invalid:
            return [FieldIssue(code="invalid_option", message=f"Not allowed: {', '.join(invalid)}")]
    return []


def _soft_limit_warnings(field: FormField, value: Any) -> List[FieldIssue]:
    rules = field.rules
    if field.type not in NUMERIC_TYPES:
        return []
    warnings = []
    if rules.soft_min is not None and value < rules.soft_min:
        warnings.append(FieldIssue(code="below_typical", message=f"Unusually low; typical values are at least {rules.soft_min:g}"))
    if rules.soft_max is not None and value > rules.soft_max:
        warnings.append(FieldIssue(code="above_typical", message=f"Unusually high; typical values are at most {rules.soft_max:g}"))
    return warnings


def validate_field(field: FormField, raw_value: Any, today: Optional[date] = None) -> FieldValidationResult:
    """
    Validate one raw value against a form field

    Checks run in a fixed order (required, type, range, length, date,
    pattern, options) so error lists are deterministic. An empty required
    value yields only the 'required' error, and a value that cannot be
    converted to the field type yields only the 'invalid_type' error.

    Args:
        field: Form field definition
        raw_value: Value supplied by the user or an auto-fill source
        today: Reference date for date checks (defaults to today)

    Returns:
        FieldValidationResult; `value` holds the normalized value when valid
    """
    if is_empty(raw_value):
        if field.required:
            return FieldValidationResult(
                field_id=field.field_id,
                valid=False,
                errors=[FieldIssue(code="required", message="This field is required")]
            )
        return FieldValidationResult(field_id=field.field_id, valid=True, value=None)

    try:
        value = _coerce(field, raw_value)
    except _CoercionFailed as e:
        return FieldValidationResult(
            field_id=field.field_id,
            valid=False,
            errors=[FieldIssue(code="invalid_type", message=e.message)]
        )

    today = today or date.today()
    errors: List[FieldIssue] = []
    errors.extend(_check_range(field, value))
    errors.extend(_check_length(field, value))
    errors.extend(_check_date(field, value, today))
    errors.extend(_check_pattern(field, value))
    errors.extend(_check_options(field, value))
    warnings = _soft_limit_warnings(field, value)

    if isinstance(value, date):
        value = value.isoformat()

    if errors:
        return FieldValidationResult(field_id=field.field_id, valid=False, errors=errors, warnings=warnings)
    return FieldValidationResult(field_id=field.field_id, valid=True, warnings=warnings, value=value)


def compute_content_hash(field_values: dict) -> str:
    """
    Compute a SHA-256 hash of field values, independent of key order

    Args:
        field_values: Mapping of field id to normalized value

    Returns:
        Hex digest
    """
    canonical = json.dumps(field_values, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def build_idempotency_key(session_id: str, content_hash: str) -> Tuple[str, str]:
    """
    Build the submission idempotency key and the application id derived from it

    Returns:
        (idempotency_key, application_id)
    """
    key = f"{session_id}:{content_hash}"
    application_id = str(uuid.uuid5(APPLICATION_NAMESPACE, key))
    return key, application_id


def generate_session_id() -> str:
    """Generate a new random form session id"""
    return uuid.uuid4().hex
