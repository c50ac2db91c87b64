"""
Field and cross-field validation engine for submitted form data.

FormValidator evaluates one FormSchema against one submission's data:

    validator = FormValidator(schema, {"email": "a@b.co", "hasAllergy": True})
    validator.field_states()            # visible / required / disabled per field
    validator.validate_all()            # List[FieldValidationError]
    validator.completion_percentage()   # 0..100

Results are advisory: callers decide whether errors block a submission.

Per field, in order:
    1. hidden fields produce nothing
    2. a failed required check produces one `required` error and stops
    3. allergy severity check (runs on empty values)
    4. empty, non-required values stop here
    5. type-driven checks (email, phone, number range, text length, date
       range, pattern, vital range, dosage)
    6. declared validation rules
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from telehealth_svc.services.forms import rules
from telehealth_svc.services.forms.schema import (
    BaseField,
    DateField,
    FormSchema,
    NumberField,
    TextField,
    ValidationRule,
)

logger = logging.getLogger(__name__)

REQUIRED_MESSAGE = "This field is required"
EMAIL_MESSAGE = "Please enter a valid email address"
PHONE_MESSAGE = "Please enter a valid phone number"
DATE_MESSAGE = "Please enter a valid date"
PATTERN_MESSAGE = "Invalid format"
DOSAGE_MESSAGE = 'Please enter a valid dosage (e.g., "10mg", "1 tablet")'
ALLERGY_MESSAGE = "Please specify the severity of the allergy"
MATCH_MESSAGE = "Fields must match"
DEPENDS_ON_MESSAGE = "Please fill in the required fields first"
EXCLUDES_MESSAGE = "This field cannot be used with other selected options"
CUSTOM_MESSAGE = "Validation failed"

_UNSET = object()


@dataclass(frozen=True)
class FieldValidationError:
    field_id: str
    field_label: str
    message: str
    severity: str = "error"
    type: str = "validation"

    def to_dict(self) -> Dict[str, str]:
        return {
            "fieldId": self.field_id,
            "fieldLabel": self.field_label,
            "message": self.message,
            "severity": self.severity,
            "type": self.type,
        }


@dataclass(frozen=True)
class FieldState:
    visible: bool
    required: bool
    disabled: bool

    def to_dict(self) -> Dict[str, bool]:
        return {"visible": self.visible, "required": self.required, "disabled": self.disabled}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class FormValidator:
    """Validates one submission's data against one form schema."""

    def __init__(self, schema: FormSchema, form_data: Optional[Dict[str, Any]] = None):
        self.schema = schema
        self.form_data: Dict[str, Any] = dict(form_data or {})

    # -------------------------------------------------------------------------
    # Field state
    # -------------------------------------------------------------------------

    def is_visible(self, field: BaseField) -> bool:
        return rules.should_show(field, self.form_data)

    def is_required(self, field: BaseField) -> bool:
        return rules.should_require(field, self.form_data)

    def is_disabled(self, field: BaseField) -> bool:
        return rules.should_disable(field, self.form_data)

    def field_states(self) -> Dict[str, FieldState]:
        return {
            field.id: FieldState(
                visible=self.is_visible(field),
                required=self.is_required(field),
                disabled=self.is_disabled(field),
            )
            for field in self.schema.iter_elements()
        }

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _error(self, field: BaseField, message: str, error_type: str, severity: str = "error") -> FieldValidationError:
        return FieldValidationError(
            field_id=field.id,
            field_label=field.label,
            message=message,
            severity=severity,
            type=error_type,
        )

    def validate_field(self, field: BaseField, value: Any = _UNSET) -> List[FieldValidationError]:
        """Validate one field. `value` defaults to the field's entry in form_data."""
        if value is _UNSET:
            value = self.form_data.get(field.id)

        if field.is_display or not self.is_visible(field):
            return []

        required = self.is_required(field)
        if required and rules.is_empty_value(value):
            return [self._error(field, REQUIRED_MESSAGE, "required")]

        errors: List[FieldValidationError] = []

        allergy_field = field.custom_attributes.get("allergyField")
        if allergy_field and rules.is_truthy(self.form_data.get(allergy_field)) and not rules.is_truthy(value):
            errors.append(self._error(field, ALLERGY_MESSAGE, "allergy_severity"))

        if rules.is_empty_value(value):
            return errors

        errors.extend(self._type_checks(field, value))
        for rule in field.validation:
            error = self._apply_rule(field, rule, value)
            if error is not None:
                errors.append(error)
        return errors

    def _type_checks(self, field: BaseField, value: Any) -> List[FieldValidationError]:
        errors: List[FieldValidationError] = []
        declared = {rule.type for rule in field.validation}

        if field.is_email and "email" not in declared and not rules.check_email(value):
            errors.append(self._error(field, EMAIL_MESSAGE, "email"))

        if field.is_phone and "phone" not in declared and not rules.check_phone(value):
            errors.append(self._error(field, PHONE_MESSAGE, "phone"))

        if isinstance(field, NumberField) and not rules.check_number_range(value, field.min, field.max):
            errors.append(self._error(field, rules.number_range_message(field.min, field.max), "number"))

        if isinstance(field, TextField) and (field.min_length is not None or field.max_length is not None):
            if not rules.check_text_length(value, field.min_length, field.max_length):
                errors.append(self._error(
                    field, rules.text_length_message(field.min_length, field.max_length), "length"
                ))

        if isinstance(field, DateField) and not rules.check_date_range(value, field.min_date, field.max_date):
            errors.append(self._error(field, DATE_MESSAGE, "date"))

        if field.pattern and "pattern" not in declared and rules.check_pattern(value, field.pattern) is False:
            errors.append(self._error(field, PATTERN_MESSAGE, "pattern"))

        vital = rules.vital_for(field)
        if vital is not None and not rules.check_vital_range(value, vital):
            errors.append(self._error(field, vital.range_message(), "vital_range", severity="warning"))

        if field.custom_attributes.get("medicationDosage") and "dosage" not in declared:
            if not rules.check_dosage(value):
                errors.append(self._error(field, DOSAGE_MESSAGE, "medication_dosage"))

        return errors

    def _apply_rule(self, field: BaseField, rule: ValidationRule, value: Any) -> Optional[FieldValidationError]:
        """Run one declared rule. Returns an error or None."""
        rule_type = rule.type
        default_message = CUSTOM_MESSAGE
        error_type = rule_type

        if rule_type == "required":
            # Handled through should_require
            return None
        elif rule_type == "email":
            passed, default_message = rules.check_email(value), EMAIL_MESSAGE
        elif rule_type == "phone":
            passed, default_message = rules.check_phone(value), PHONE_MESSAGE
        elif rule_type in ("min_length", "max_length"):
            bounds = (rule.value, None) if rule_type == "min_length" else (None, rule.value)
            passed = rules.check_text_length(value, *bounds)
            default_message = rules.text_length_message(*bounds)
        elif rule_type in ("min", "max"):
            bounds = (rules.to_number(rule.value), None) if rule_type == "min" else (None, rules.to_number(rule.value))
            passed = rules.check_number_range(value, *bounds)
            default_message = rules.number_range_message(*bounds)
        elif rule_type == "pattern":
            if not rule.value:
                return None
            result = rules.check_pattern(value, str(rule.value))
            if result is None:
                return None
            passed, default_message = result, PATTERN_MESSAGE
        elif rule_type in rules.MEDICAL_ID_PATTERNS or rule_type == "medical_id":
            id_type = rule_type if rule_type in rules.MEDICAL_ID_PATTERNS else str(rule.value or "").lower()
            if id_type not in rules.MEDICAL_ID_PATTERNS:
                logger.debug("Unknown medical id type", extra={"field_id": field.id, "id_type": rule.value})
                return None
            passed = rules.check_medical_id(value, id_type)
            default_message = f"Please enter a valid {id_type.upper()}"
            error_type = "medical_id"
        elif rule_type == "dosage":
            passed, default_message = rules.check_dosage(value), DOSAGE_MESSAGE
            error_type = "medication_dosage"
        elif rule_type == "match_field":
            passed = rules.check_match_field(value, rule.value, self.form_data)
            default_message = MATCH_MESSAGE
        elif rule_type == "depends_on":
            passed = rules.check_depends_on(rule.value, self.form_data)
            default_message = DEPENDS_ON_MESSAGE
        elif rule_type == "excludes_with":
            passed = rules.check_excludes_with(value, rule.value, self.form_data)
            default_message = EXCLUDES_MESSAGE
        elif rule_type == "custom":
            validator = rules.get_custom_validator(rule.value)
            if validator is None:
                logger.debug("Custom validator not registered", extra={"field_id": field.id, "name": rule.value})
                return None
            result = validator(value, self.form_data)
            passed = result is True or result == ""
            if isinstance(result, str) and result:
                default_message = result
        else:
            logger.debug("Unknown validation rule type", extra={"field_id": field.id, "rule_type": rule_type})
            return None

        if passed:
            return None
        return self._error(field, rule.message or default_message, error_type, severity=rule.severity)

    def validate_page(self, page_id: str) -> List[FieldValidationError]:
        """Validate every field on one page. Unknown pages produce no errors."""
        page = self.schema.get_page(page_id)
        if page is None:
            return []
        errors: List[FieldValidationError] = []
        for field in page.elements:
            errors.extend(self.validate_field(field))
        return errors

    def validate_all(self) -> List[FieldValidationError]:
        errors: List[FieldValidationError] = []
        for field in self.schema.iter_elements():
            errors.extend(self.validate_field(field))
        return errors

    def is_valid(self) -> bool:
        """True when no result has error severity; warnings and info do not count."""
        return not any(e.severity == "error" for e in self.validate_all())

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def completion_percentage(self) -> int:
        """Share of visible input fields holding a non-empty value, 0-100."""
        visible = [
            field for field in self.schema.iter_elements()
            if not field.is_display and self.is_visible(field)
        ]
        if not visible:
            return 0
        filled = sum(1 for field in visible if not rules.is_empty_value(self.form_data.get(field.id)))
        return round_half_up(filled * 100 / len(visible))
