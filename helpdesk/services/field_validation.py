"""
Field Validation Engine.

Given a FieldDefinition and a raw submitted value, decide validity and return
the normalized value. Validation is pure: no queries, no writes. Options for
choice fields are passed in already resolved, so the same rules give the same
outcome wherever they run (form preview, intake, correction).

Rules by field type:
    text / textarea   trimmed string; maxLength, minLength, pattern (full match)
    number            int/float or numeric string; min, max; NaN/Infinity and
                      magnitudes of 1e16 or more rejected
    date              ISO YYYY-MM-DD or DD.MM.YYYY → "YYYY-MM-DD"
    datetime          ISO-8601 → isoformat()
    dropdown / radio  single value that must be a resolved option value
    checkbox          set of selections, each a resolved option value

A missing, None or blank value is "empty": required fields fail with
``required``; optional fields normalize to None.

Usage:
    from helpdesk.services.field_validation import validate, validate_all

    value = validate(field_def, "  ATM-001 ")       # → "ATM-001"
    answers = validate_all(defs, submitted, source)  # raises ValidationFailedError
"""

import logging
import re
from decimal import Decimal, InvalidOperation

from helpdesk.core.exceptions import FieldError, ValidationFailedError
from helpdesk.models.catalog import CHOICE_FIELD_TYPES, FieldType
from helpdesk.utils.helpers import parse_date, parse_datetime

logger = logging.getLogger(__name__)

# Largest accepted magnitude is below 10**16
_MAX_EXPONENT = 15


class FieldValueError(Exception):
    """A single value failed its field's rules."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


def _is_empty(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def _rules(field_definition) -> dict:
    return field_definition.validation_rules or {}


def _option_values(options) -> list[str]:
    return [str(o["value"]) for o in (options or [])]


# ── Per-type validators ───────────────────────────────────────────────────────

def _validate_text(field_definition, value, options):
    if isinstance(value, (list, tuple, set, dict)):
        raise FieldValueError("invalid_format", "Expected a text value")
    text = str(value).strip()
    rules = _rules(field_definition)

    max_length = rules.get("maxLength")
    if max_length is not None and len(text) > int(max_length):
        raise FieldValueError("too_long", f"Must be at most {max_length} characters")

    min_length = rules.get("minLength")
    if min_length is not None and len(text) < int(min_length):
        raise FieldValueError("too_short", f"Must be at least {min_length} characters")

    pattern = rules.get("pattern")
    if pattern and not re.fullmatch(pattern, text):
        raise FieldValueError(
            "pattern_mismatch", rules.get("patternMessage") or "Value does not match the required format"
        )
    return text


def _validate_number(field_definition, value, options):
    if isinstance(value, bool) or isinstance(value, (list, tuple, set, dict)):
        raise FieldValueError("invalid_format", "Expected a number")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise FieldValueError("invalid_format", "Expected a number") from None
    if not number.is_finite():
        raise FieldValueError("invalid_format", "Expected a finite number")
    if number and number.adjusted() > _MAX_EXPONENT:
        raise FieldValueError("out_of_range", "Number is too large")

    rules = _rules(field_definition)
    if rules.get("min") is not None and number < Decimal(str(rules["min"])):
        raise FieldValueError("out_of_range", f"Must be at least {rules['min']}")
    if rules.get("max") is not None and number > Decimal(str(rules["max"])):
        raise FieldValueError("out_of_range", f"Must be at most {rules['max']}")

    if number == number.to_integral_value():
        return int(number)
    return float(number)


def _validate_date(field_definition, value, options):
    if isinstance(value, (list, tuple, set, dict)):
        raise FieldValueError("invalid_format", "Expected a date")
    parsed = parse_date(value)
    if parsed is None:
        raise FieldValueError("invalid_format", "Expected a date (YYYY-MM-DD or DD.MM.YYYY)")
    return parsed.isoformat()


def _validate_datetime(field_definition, value, options):
    if isinstance(value, (list, tuple, set, dict)):
        raise FieldValueError("invalid_format", "Expected a date and time")
    parsed = parse_datetime(value)
    if parsed is None:
        raise FieldValueError("invalid_format", "Expected an ISO-8601 date and time")
    return parsed.isoformat()


def _validate_single_choice(field_definition, value, options):
    if isinstance(value, (list, tuple, set, dict)):
        raise FieldValueError("invalid_format", "Expected a single selection")
    choice = str(value).strip()
    if choice not in _option_values(options):
        raise FieldValueError("invalid_option", f"'{choice}' is not an available option")
    return choice


def _validate_multi_choice(field_definition, value, options):
    if isinstance(value, dict):
        raise FieldValueError("invalid_format", "Expected a list of selections")
    if isinstance(value, (list, tuple, set, frozenset)):
        selections = [str(v).strip() for v in value]
    else:
        selections = [str(value).strip()]
    selections = [s for s in selections if s]
    if not selections:
        if field_definition.is_required:
            raise FieldValueError("required", "At least one option must be selected")
        return None

    allowed = _option_values(options)
    unknown = [s for s in selections if s not in allowed]
    if unknown:
        raise FieldValueError(
            "invalid_option", f"Not available option(s): {', '.join(sorted(set(unknown)))}"
        )
    chosen = set(selections)
    return [v for v in allowed if v in chosen]


_VALIDATORS = {
    FieldType.TEXT: _validate_text,
    FieldType.TEXTAREA: _validate_text,
    FieldType.NUMBER: _validate_number,
    FieldType.DATE: _validate_date,
    FieldType.DATETIME: _validate_datetime,
    FieldType.DROPDOWN: _validate_single_choice,
    FieldType.RADIO: _validate_single_choice,
    FieldType.CHECKBOX: _validate_multi_choice,
}

_unhandled = set(FieldType) - set(_VALIDATORS)
if _unhandled:
    raise RuntimeError(f"No validator registered for field types: {sorted(t.value for t in _unhandled)}")


# ── Public API ────────────────────────────────────────────────────────────────

def validate(field_definition, raw_value, options: list[dict] | None = None):
    """Validate and normalize one submitted value.

    Args:
        field_definition: FieldDefinition (or any object with field_type,
            is_required and validation_rules attributes).
        raw_value: Value as submitted by the client.
        options: Resolved ``[{value, label, isDefault}]`` for choice fields.

    Returns:
        The normalized value, or None for an empty optional field.

    Raises:
        FieldValueError: With one of the codes required, invalid_format,
            invalid_option, too_long, too_short, pattern_mismatch, out_of_range.
    """
    field_type = FieldType(field_definition.field_type)
    if _is_empty(raw_value):
        if field_definition.is_required:
            raise FieldValueError("required", "This field is required")
        return None
    return _VALIDATORS[field_type](field_definition, raw_value, options)


def validate_all(definitions, values: dict, source=None) -> list[tuple]:
    """Validate a whole submission against an ordered list of definitions.

    Every definition is checked, so the raised error lists all failures.
    Keys in ``values`` that match no definition are ignored.

    Args:
        definitions: Ordered FieldDefinition list (see catalog_service).
        values: Mapping of field_name → raw value.
        source: MasterDataSource for data_type-backed options.

    Returns:
        List of (field_definition, normalized_value) in definition order.

    Raises:
        ValidationFailedError: If one or more values are invalid.
    """
    from helpdesk.services.catalog_service import resolve_options

    values = values or {}
    errors: list[FieldError] = []
    results = []
    for fd in definitions:
        options = resolve_options(fd, source) if FieldType(fd.field_type) in CHOICE_FIELD_TYPES else None
        try:
            normalized = validate(fd, values.get(fd.field_name), options)
        except FieldValueError as exc:
            errors.append(FieldError(fd.field_name, exc.code, exc.message))
            continue
        results.append((fd, normalized))

    known = {fd.field_name for fd in definitions}
    ignored = sorted(k for k in values if k not in known)
    if ignored:
        logger.debug("Ignoring unknown field keys: %s", ", ".join(ignored))

    if errors:
        raise ValidationFailedError(errors)
    return results
