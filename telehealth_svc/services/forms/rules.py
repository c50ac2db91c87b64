"""
Rule primitives for the form validation engine.

- Value helpers: emptiness, truthiness, numeric and string coercion
- Conditional rules: evaluate_condition, should_show, should_require, should_disable
- Field checks: email, phone, number range, text length, date range, pattern,
  medical ids, dosage format, vital-sign range
- Cross-field checks: match_field, depends_on, excludes_with
- Named custom validators registered by the application

Every check returns True when the value passes. Empty values pass every check
except `required`; emptiness is handled by the engine before checks run.
"""
import logging
import math
import re
from typing import Any, Callable, Dict, Iterable, Optional, Union

from telehealth_svc.core.datetime_utils import parse_datetime_safe
from telehealth_svc.core.vital_registry import VitalDefinition, find_vital
from telehealth_svc.services.forms.schema import BaseField, ConditionalRule

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_PATTERN = re.compile(r'^\+?[1-9]\d{0,15}$')
PHONE_STRIP = re.compile(r'[\s\-()]')
DOSAGE_PATTERN = re.compile(r'^\d+(\.\d+)?\s*(mg|ml|g|tablet|capsule|unit)s?$', re.IGNORECASE)

MEDICAL_ID_PATTERNS = {
    "ssn": re.compile(r'^\d{3}-?\d{2}-?\d{4}$'),
    "npi": re.compile(r'^\d{10}$'),
    "dea": re.compile(r'^[A-Z]{2}\d{7}$'),
}


# =============================================================================
# VALUE HELPERS
# =============================================================================

def is_empty_value(value: Any) -> bool:
    """Missing, None, empty string or empty list."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def is_truthy(value: Any) -> bool:
    """Truthiness of a submitted value: None, False, 0, NaN and "" are falsy."""
    if value is None or value is False:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def to_number(value: Any) -> Optional[float]:
    """Numeric value of a submitted value, or None when it is not numeric."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    if isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return None if math.isnan(number) else number
    return None


def stringify(value: Any) -> str:
    """Text form of a value as shown to users: true/false, 5 not 5.0, lists comma-joined."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(v) for v in value)
    return str(value)


def format_number(value: float) -> str:
    return stringify(float(value))


def strict_equals(left: Any, right: Any) -> bool:
    """Equality that never treats True as 1."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    return left == right


# =============================================================================
# CONDITIONAL RULES
# =============================================================================

def evaluate_condition(rule: ConditionalRule, form_data: Dict[str, Any]) -> bool:
    """Evaluate `form_data[rule.field] <rule.operator> rule.value`. Unknown operators are False."""
    field_value = form_data.get(rule.field)
    operator = rule.operator

    if operator == "equals":
        return strict_equals(field_value, rule.value)
    if operator == "not_equals":
        return not strict_equals(field_value, rule.value)
    if operator in ("contains", "not_contains"):
        haystack = stringify(field_value).lower() if is_truthy(field_value) else ""
        found = stringify(rule.value).lower() in haystack
        return found if operator == "contains" else not found
    if operator in ("greater_than", "less_than"):
        left, right = to_number(field_value), to_number(rule.value)
        if left is None or right is None:
            return False
        return left > right if operator == "greater_than" else left < right
    if operator == "is_empty":
        return is_empty_value(field_value)
    if operator == "is_not_empty":
        return not is_empty_value(field_value)

    logger.debug("Unknown conditional operator", extra={"operator": operator, "field": rule.field})
    return False


def should_show(field: BaseField, form_data: Dict[str, Any]) -> bool:
    """Visible when there are no rules, or when any rule says so."""
    if not field.conditional_logic:
        return True

    def shows(rule: ConditionalRule) -> bool:
        if rule.action == "show":
            return evaluate_condition(rule, form_data)
        if rule.action == "hide":
            return not evaluate_condition(rule, form_data)
        return True

    return any(shows(rule) for rule in field.conditional_logic)


def should_require(field: BaseField, form_data: Dict[str, Any]) -> bool:
    if field.required:
        return True
    return any(
        rule.action == "require" and evaluate_condition(rule, form_data)
        for rule in field.conditional_logic
    )


def should_disable(field: BaseField, form_data: Dict[str, Any]) -> bool:
    if field.disabled:
        return True
    return any(
        rule.action == "disable" and evaluate_condition(rule, form_data)
        for rule in field.conditional_logic
    )


# =============================================================================
# FIELD CHECKS
# =============================================================================

def check_email(value: Any) -> bool:
    return bool(EMAIL_PATTERN.match(stringify(value)))


def check_phone(value: Any) -> bool:
    return bool(PHONE_PATTERN.match(PHONE_STRIP.sub("", stringify(value))))


def check_number_range(value: Any, minimum: Optional[float] = None, maximum: Optional[float] = None) -> bool:
    number = to_number(value)
    if number is None:
        return False
    if minimum is not None and number < minimum:
        return False
    if maximum is not None and number > maximum:
        return False
    return True


def number_range_message(minimum: Optional[float] = None, maximum: Optional[float] = None) -> str:
    message = "Please enter a number"
    if minimum is not None:
        message += f" between {format_number(minimum)}"
    if maximum is not None:
        message += f" and {format_number(maximum)}"
    return message


def check_text_length(value: Any, min_length: Optional[int] = None, max_length: Optional[int] = None) -> bool:
    length = len(stringify(value))
    if min_length is not None and length < min_length:
        return False
    if max_length is not None and length > max_length:
        return False
    return True


def text_length_message(min_length: Optional[int] = None, max_length: Optional[int] = None) -> str:
    message = "Text must be"
    if min_length:
        message += f" at least {min_length}"
    if max_length:
        message += f" at most {max_length}"
    return message + " characters"


def check_date_range(value: Any, min_date: Optional[str] = None, max_date: Optional[str] = None) -> bool:
    """Unparseable values fail; unparseable bounds are ignored."""
    parsed = parse_datetime_safe(value if not isinstance(value, (int, float)) else None)
    if parsed is None:
        return False
    lower = parse_datetime_safe(min_date) if min_date else None
    upper = parse_datetime_safe(max_date) if max_date else None
    if lower is not None and parsed < lower:
        return False
    if upper is not None and parsed > upper:
        return False
    return True


def check_pattern(value: Any, pattern: str) -> Optional[bool]:
    """Regex search. Returns None when the pattern itself does not compile."""
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        logger.warning("Invalid validation pattern", extra={"pattern": pattern, "error": str(e)})
        return None
    return bool(compiled.search(stringify(value)))


def check_medical_id(value: Any, id_type: str) -> bool:
    pattern = MEDICAL_ID_PATTERNS[id_type]
    return bool(pattern.match(re.sub(r'\s', '', stringify(value))))


def check_dosage(value: Any) -> bool:
    return bool(DOSAGE_PATTERN.match(stringify(value)))


def vital_for(field: BaseField) -> Optional[VitalDefinition]:
    return find_vital(field.custom_attributes.get("vitalType"))


def check_vital_range(value: Any, vital: VitalDefinition) -> bool:
    number = to_number(value)
    if number is None:
        return True
    return not vital.is_out_of_range(number)


# =============================================================================
# CROSS-FIELD CHECKS
# =============================================================================

def _field_ids(value: Union[str, Iterable[str], None]) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def check_match_field(value: Any, other_field_id: str, form_data: Dict[str, Any]) -> bool:
    return strict_equals(value, form_data.get(other_field_id))


def check_depends_on(required_fields: Union[str, Iterable[str]], form_data: Dict[str, Any]) -> bool:
    return all(is_truthy(form_data.get(fid)) for fid in _field_ids(required_fields))


def check_excludes_with(value: Any, excluded_fields: Union[str, Iterable[str]], form_data: Dict[str, Any]) -> bool:
    if not is_truthy(value):
        return True
    return not any(is_truthy(form_data.get(fid)) for fid in _field_ids(excluded_fields))


# =============================================================================
# CUSTOM VALIDATORS
# =============================================================================

# Signature: (value, form_data) -> True, "" (pass) or False / message (fail)
CustomValidator = Callable[[Any, Dict[str, Any]], Union[bool, str]]

_custom_validators: Dict[str, CustomValidator] = {}


def register_custom_validator(name: str, validator: CustomValidator) -> None:
    """Register a validator usable from schemas as {"type": "custom", "value": name}."""
    _custom_validators[name] = validator


def unregister_custom_validator(name: str) -> None:
    _custom_validators.pop(name, None)


def get_custom_validator(name: Any) -> Optional[CustomValidator]:
    if not isinstance(name, str):
        return None
    return _custom_validators.get(name)
