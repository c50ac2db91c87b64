"""
Dynamic form schemas: structural validation, typed model and the
conditional-logic validation engine.
"""
from telehealth_svc.services.forms.engine import FieldState, FieldValidationError, FormValidator
from telehealth_svc.services.forms.rules import (
    evaluate_condition,
    register_custom_validator,
    should_disable,
    should_require,
    should_show,
    unregister_custom_validator,
)
from telehealth_svc.services.forms.schema import (
    BaseField,
    ChoiceField,
    ConditionalRule,
    FormPage,
    FormSchema,
    ValidationRule,
)
from telehealth_svc.services.forms.schema_validator import (
    FormSchemaValidationResult,
    SchemaError,
    validate_form_schema,
)

__all__ = [
    "BaseField",
    "ChoiceField",
    "ConditionalRule",
    "FieldState",
    "FieldValidationError",
    "FormPage",
    "FormSchema",
    "FormSchemaValidationResult",
    "FormValidator",
    "SchemaError",
    "ValidationRule",
    "evaluate_condition",
    "register_custom_validator",
    "should_disable",
    "should_require",
    "should_show",
    "unregister_custom_validator",
    "validate_form_schema",
]
