"""
Tests for FormValidator: per-field validation, field states and completion.
"""
import pytest

from telehealth_svc.services.forms import FormSchema, FormValidator, rules


def build_schema(*elements, pages=None):
    return FormSchema.model_validate({
        "title": "Intake",
        "pages": pages or [{"id": "p1", "title": "Page 1", "elements": list(elements)}],
    })


def errors_for(schema, data):
    return [(e.field_id, e.type, e.message, e.severity) for e in FormValidator(schema, data).validate_all()]


# =============================================================================
# REQUIRED AND VISIBILITY
# =============================================================================

def test_required_field_missing():
    schema = build_schema({"id": "name", "type": "text", "label": "Name", "required": True})
    assert errors_for(schema, {}) == [("name", "required", "This field is required", "error")]


def test_required_stops_further_checks():
    schema = build_schema({
        "id": "email", "type": "email", "label": "Email", "required": True,
        "validation": [{"type": "min_length", "value": 50}],
    })
    assert len(errors_for(schema, {"email": ""})) == 1


def test_hidden_required_field_is_not_validated():
    schema = build_schema(
        {"id": "hasAllergy", "type": "boolean", "label": "Any allergies?"},
        {
            "id": "allergyList", "type": "text", "label": "Which ones?", "required": True,
            "conditionalLogic": [{"field": "hasAllergy", "operator": "equals", "value": True, "action": "show"}],
        },
    )
    assert errors_for(schema, {"hasAllergy": False}) == []
    assert errors_for(schema, {"hasAllergy": True}) == [
        ("allergyList", "required", "This field is required", "error")
    ]


def test_conditional_require():
    schema = build_schema(
        {"id": "insured", "type": "boolean", "label": "Insured?"},
        {
            "id": "policy", "type": "text", "label": "Policy",
            "conditionalLogic": [{"field": "insured", "operator": "equals", "value": True, "action": "require"}],
        },
    )
    assert errors_for(schema, {"insured": False}) == []
    assert errors_for(schema, {"insured": True})[0][1] == "required"


def test_display_elements_never_validate():
    schema = build_schema({"id": "intro", "type": "section-header", "label": "Welcome", "required": True})
    assert errors_for(schema, {}) == []


# =============================================================================
# TYPE-DRIVEN CHECKS
# =============================================================================

def test_email_and_phone_types():
    schema = build_schema(
        {"id": "email", "type": "email", "label": "Email"},
        {"id": "phone", "type": "tel", "label": "Phone"},
    )
    result = errors_for(schema, {"email": "nope", "phone": "abc"})
    assert ("email", "email", "Please enter a valid email address", "error") in result
    assert ("phone", "phone", "Please enter a valid phone number", "error") in result


def test_empty_optional_values_skip_checks():
    schema = build_schema(
        {"id": "email", "type": "email", "label": "Email"},
        {"id": "age", "type": "number", "label": "Age", "min": 0, "max": 120},
    )
    assert errors_for(schema, {"email": "", "age": None}) == []


def test_number_range():
    schema = build_schema({"id": "age", "type": "number", "label": "Age", "min": 0, "max": 120})
    assert errors_for(schema, {"age": 130}) == [
        ("age", "number", "Please enter a number between 0 and 120", "error")
    ]
    assert errors_for(schema, {"age": "45"}) == []


def test_text_length():
    schema = build_schema({"id": "bio", "type": "textarea", "label": "Bio", "minLength": 5})
    assert errors_for(schema, {"bio": "hi"}) == [
        ("bio", "length", "Text must be at least 5 characters", "error")
    ]


def test_date_bounds():
    schema = build_schema({"id": "dob", "type": "date", "label": "Date of birth", "maxDate": "2010-01-01"})
    assert errors_for(schema, {"dob": "2015-03-02"}) == [("dob", "date", "Please enter a valid date", "error")]
    assert errors_for(schema, {"dob": "1985-04-12"}) == []


def test_vital_out_of_range_is_warning():
    schema = build_schema({
        "id": "pulse", "type": "number", "label": "Pulse",
        "customAttributes": {"vitalType": "heart_rate"},
    })
    validator = FormValidator(schema, {"pulse": 250})
    errors = validator.validate_all()
    assert [(e.type, e.severity) for e in errors] == [("vital_range", "warning")]
    assert errors[0].message == "Value should be between 40 and 200 bpm"
    assert validator.is_valid()


def test_dosage_attribute():
    schema = build_schema({
        "id": "dose", "type": "text", "label": "Dose",
        "customAttributes": {"medicationDosage": True},
    })
    assert errors_for(schema, {"dose": "a handful"})[0][1] == "medication_dosage"
    assert errors_for(schema, {"dose": "20mg"}) == []


def test_allergy_severity_checked_even_when_empty():
    schema = build_schema(
        {"id": "hasAllergy", "type": "boolean", "label": "Allergic?"},
        {
            "id": "severity", "type": "select", "label": "Severity",
            "options": [{"value": "mild", "label": "Mild"}, {"value": "severe", "label": "Severe"}],
            "customAttributes": {"allergyField": "hasAllergy"},
        },
    )
    assert errors_for(schema, {"hasAllergy": True}) == [
        ("severity", "allergy_severity", "Please specify the severity of the allergy", "error")
    ]
    assert errors_for(schema, {"hasAllergy": True, "severity": "mild"}) == []
    assert errors_for(schema, {"hasAllergy": False}) == []


# =============================================================================
# DECLARED RULES
# =============================================================================

def test_rule_message_and_severity_override():
    schema = build_schema({
        "id": "username", "type": "text", "label": "Username",
        "validation": [{"type": "pattern", "value": "^[a-z]+$", "message": "Lowercase only", "severity": "warning"}],
    })
    validator = FormValidator(schema, {"username": "Jane"})
    errors = validator.validate_all()
    assert [(e.message, e.severity) for e in errors] == [("Lowercase only", "warning")]
    assert validator.is_valid()


def test_match_field_rule():
    schema = build_schema(
        {"id": "email", "type": "email", "label": "Email"},
        {"id": "confirm", "type": "email", "label": "Confirm", "validation": [{"type": "match_field", "value": "email"}]},
    )
    assert errors_for(schema, {"email": "a@b.co", "confirm": "c@d.co"}) == [
        ("confirm", "match_field", "Fields must match", "error")
    ]


def test_medical_id_rules():
    schema = build_schema(
        {"id": "npi", "type": "text", "label": "NPI", "validation": [{"type": "npi"}]},
        {"id": "ssn", "type": "text", "label": "SSN", "validation": [{"type": "medical_id", "value": "SSN"}]},
    )
    result = errors_for(schema, {"npi": "123", "ssn": "12-3"})
    assert ("npi", "medical_id", "Please enter a valid NPI", "error") in result
    assert ("ssn", "medical_id", "Please enter a valid SSN", "error") in result


def test_unknown_rule_types_are_ignored():
    schema = build_schema({
        "id": "a", "type": "text", "label": "A",
        "validation": [{"type": "telepathy"}, {"type": "custom", "value": "not-registered"}],
    })
    assert errors_for(schema, {"a": "x"}) == []


@pytest.fixture
def odd_validator():
    rules.register_custom_validator("odd", lambda value, data: int(value) % 2 == 1 or "Must be odd")
    yield
    rules.unregister_custom_validator("odd")


def test_custom_rule_message_from_validator(odd_validator):
    schema = build_schema({
        "id": "n", "type": "number", "label": "N",
        "validation": [{"type": "custom", "value": "odd"}],
    })
    assert errors_for(schema, {"n": 4}) == [("n", "custom", "Must be odd", "error")]
    assert errors_for(schema, {"n": 3}) == []


# =============================================================================
# PAGES, STATES AND COMPLETION
# =============================================================================

def test_validate_page_limits_scope():
    schema = build_schema(pages=[
        {"id": "p1", "title": "One", "elements": [{"id": "a", "type": "text", "label": "A", "required": True}]},
        {"id": "p2", "title": "Two", "elements": [{"id": "b", "type": "text", "label": "B", "required": True}]},
    ])
    validator = FormValidator(schema, {})
    assert [e.field_id for e in validator.validate_page("p2")] == ["b"]
    assert validator.validate_page("missing") == []


def test_field_states():
    schema = build_schema(
        {"id": "toggle", "type": "boolean", "label": "Toggle"},
        {
            "id": "extra", "type": "text", "label": "Extra",
            "conditionalLogic": [{"field": "toggle", "operator": "equals", "value": True, "action": "show"}],
        },
    )
    states = FormValidator(schema, {"toggle": True}).field_states()
    assert states["extra"].to_dict() == {"visible": True, "required": False, "disabled": False}
    assert not FormValidator(schema, {}).field_states()["extra"].visible


def test_completion_percentage_rounds_half_up():
    schema = build_schema(
        {"id": "intro", "type": "html-content", "label": "Intro"},
        {"id": "a", "type": "text", "label": "A"},
        {"id": "b", "type": "text", "label": "B"},
        {"id": "c", "type": "text", "label": "C"},
    )
    assert FormValidator(schema, {}).completion_percentage() == 0
    assert FormValidator(schema, {"a": "x", "b": "y"}).completion_percentage() == 67
    assert FormValidator(schema, {"a": "x", "b": "y", "c": "z"}).completion_percentage() == 100


def test_completion_ignores_hidden_fields():
    schema = build_schema(
        {"id": "a", "type": "text", "label": "A"},
        {
            "id": "b", "type": "text", "label": "B",
            "conditionalLogic": [{"field": "a", "operator": "equals", "value": "show-b", "action": "show"}],
        },
    )
    assert FormValidator(schema, {"a": "filled"}).completion_percentage() == 100


def test_completion_over_visible_fields_only():
    fields = [{"id": k, "type": "text", "label": k.upper()} for k in ("a", "b", "c")]
    fields.append({
        "id": "d", "type": "text", "label": "D",
        "conditionalLogic": [{"field": "a", "operator": "equals", "value": "more", "action": "show"}],
    })
    schema = build_schema(*fields)
    assert FormValidator(schema, {"a": "more", "b": "x"}).completion_percentage() == 50
    assert FormValidator(schema, {"a": "less", "b": "x"}).completion_percentage() == 67
