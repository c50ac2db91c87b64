"""
Structural validation of admin-authored form schemas.

validate_form_schema() takes a raw mapping (parsed JSON) and either returns the
typed FormSchema or a list of path-tagged errors. A schema is valid if and only
if it has zero errors. Warnings are advisory and never affect validity.

Paths use the form `pages[0].elements[2].options[1]`; `root` refers to the
whole document.
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import ValidationError

from telehealth_svc.services.forms.schema import FIELD_TAGS, FormSchema

logger = logging.getLogger(__name__)

CHOICE_TYPES = frozenset({"radio", "checkbox", "select", "multiselect"})

# Validation rule type -> (value check, message when the value does not fit)
RULE_VALUE_CHECKS = {
    "min_length": (lambda v: _is_int(v) and v >= 0, "a non-negative integer"),
    "max_length": (lambda v: _is_int(v) and v >= 0, "a non-negative integer"),
    "min": (lambda v: _is_number(v), "a number"),
    "max": (lambda v: _is_number(v), "a number"),
    "pattern": (lambda v: isinstance(v, str), "a string"),
    "match_field": (lambda v: isinstance(v, str) and bool(v), "a field id"),
    "depends_on": (lambda v: _is_field_ids(v), "a field id or a list of field ids"),
    "excludes_with": (lambda v: _is_field_ids(v), "a field id or a list of field ids"),
    "custom": (lambda v: isinstance(v, str) and bool(v), "a validator name"),
}


@dataclass(frozen=True)
class SchemaError:
    path: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "message": self.message}


@dataclass
class FormSchemaValidationResult:
    is_valid: bool
    errors: List[SchemaError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    form_schema: Optional[FormSchema] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": list(self.warnings),
            "formSchema": self.form_schema.to_dict() if self.form_schema else None,
        }


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value is False


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_field_ids(value: Any) -> bool:
    if isinstance(value, str):
        return bool(value)
    return isinstance(value, list) and bool(value) and all(isinstance(v, str) and v for v in value)


def _invalid(errors: List[SchemaError], warnings: List[str]) -> FormSchemaValidationResult:
    return FormSchemaValidationResult(is_valid=False, errors=errors, warnings=warnings)


def loc_to_path(loc: Tuple[Any, ...]) -> str:
    """Turn a pydantic error location into a `pages[0].elements[1].label` path."""
    path = ""
    for item in loc:
        if isinstance(item, int):
            path += f"[{item}]"
        elif item in FIELD_TAGS:
            continue
        else:
            path += f".{item}" if path else str(item)
    return path or "root"


def _check_options(element: Dict[str, Any], path: str, errors: List[SchemaError]) -> None:
    options = element.get("options")
    if not isinstance(options, list) or not options:
        errors.append(SchemaError(f"{path}.options", "Options array is required for this element type."))
        return
    for k, option in enumerate(options):
        opt_path = f"{path}.options[{k}]"
        if not isinstance(option, dict):
            errors.append(SchemaError(opt_path, "Option must be an object."))
            continue
        if option.get("value") is None or option.get("value") == "":
            errors.append(SchemaError(opt_path, "Option is missing a value."))
        if not option.get("label"):
            errors.append(SchemaError(opt_path, "Option is missing a label."))


def _check_validation_rules(element: Dict[str, Any], path: str, errors: List[SchemaError]) -> None:
    rule_list = element.get("validation")
    if not isinstance(rule_list, list):
        return
    for k, rule in enumerate(rule_list):
        rule_type = rule.get("type") if isinstance(rule, dict) else None
        if not isinstance(rule_type, str) or rule_type not in RULE_VALUE_CHECKS:
            continue
        fits, expected = RULE_VALUE_CHECKS[rule_type]
        if not fits(rule.get("value")):
            errors.append(SchemaError(
                f"{path}.validation[{k}]",
                f"Validation rule '{rule_type}' needs {expected} as its value.",
            ))


def _check_page(
    page: Any,
    i: int,
    seen_ids: Set[Any],
    reported_ids: Set[Any],
    errors: List[SchemaError],
    warnings: List[str],
) -> None:
    page_path = f"pages[{i}]"
    if not isinstance(page, dict):
        errors.append(SchemaError(page_path, "Page must be an object."))
        return

    if _is_blank(page.get("id")):
        errors.append(SchemaError(page_path, "Page is missing an id."))
    if _is_blank(page.get("title")):
        errors.append(SchemaError(page_path, "Page is missing a title."))

    elements = page.get("elements")
    if not isinstance(elements, list):
        errors.append(SchemaError(page_path, "Page elements must be an array."))
        return
    if not elements:
        warnings.append(f"{page_path} has no elements.")

    for j, element in enumerate(elements):
        path = f"{page_path}.elements[{j}]"
        if not isinstance(element, dict):
            errors.append(SchemaError(path, "Element must be an object."))
            continue

        element_id = element.get("id")
        if _is_blank(element_id):
            errors.append(SchemaError(path, "Element is missing an id."))
        if _is_blank(element.get("type")):
            errors.append(SchemaError(path, "Element is missing a type."))
        if _is_blank(element.get("label")):
            errors.append(SchemaError(path, "Element is missing a label."))

        if isinstance(element_id, (str, int)) and not _is_blank(element_id):
            if element_id in seen_ids:
                # One error per repeated id, at the first repeat
                if element_id not in reported_ids:
                    errors.append(SchemaError(path, f"Duplicate element id found: {element_id}"))
                    reported_ids.add(element_id)
            seen_ids.add(element_id)

        if element.get("type") in CHOICE_TYPES:
            _check_options(element, path, errors)
        _check_validation_rules(element, path, errors)


def _check_rule_references(schema: FormSchema, warnings: List[str]) -> None:
    """Warn about conditional rules pointing at fields that do not exist."""
    known = {e.id for e in schema.iter_elements()}
    for element in schema.iter_elements():
        for rule in element.conditional_logic:
            if rule.field not in known:
                warnings.append(
                    f"Conditional rule on '{element.id}' references unknown field '{rule.field}'."
                )


def validate_form_schema(raw: Any) -> FormSchemaValidationResult:
    """
    Validate a raw form schema mapping.

    Never mutates `raw`. On success `result.form_schema.to_dict()` equals `raw`.
    """
    errors: List[SchemaError] = []
    warnings: List[str] = []

    if raw is None:
        return _invalid([SchemaError("root", "JSON object cannot be null or undefined.")], warnings)
    if not isinstance(raw, dict):
        return _invalid([SchemaError("root", "Form schema must be a JSON object.")], warnings)

    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append(SchemaError("title", "Form must have a non-empty title."))
    pages = raw.get("pages")
    if not isinstance(pages, list) or not pages:
        errors.append(SchemaError("pages", "Form must have at least one page."))
    if errors:
        return _invalid(errors, warnings)

    description = raw.get("description")
    if description is not None and not isinstance(description, str):
        errors.append(SchemaError("description", "Form description must be a string."))

    seen_ids: Set[Any] = set()
    reported_ids: Set[Any] = set()
    for i, page in enumerate(pages):
        _check_page(page, i, seen_ids, reported_ids, errors, warnings)

    if errors:
        return _invalid(errors, warnings)

    try:
        schema = FormSchema.model_validate(copy.deepcopy(raw))
    except ValidationError as e:
        for err in e.errors():
            errors.append(SchemaError(loc_to_path(err["loc"]), err["msg"]))
        logger.debug("Form schema failed typed parsing", extra={"error_count": len(errors)})
        return _invalid(errors, warnings)

    if schema.to_dict() != raw:
        logger.debug("Form schema changed shape during typed parsing")
        return _invalid([SchemaError("root", "Form schema contains values that cannot be stored unchanged.")], warnings)

    _check_rule_references(schema, warnings)
    return FormSchemaValidationResult(is_valid=True, errors=[], warnings=warnings, form_schema=schema)
