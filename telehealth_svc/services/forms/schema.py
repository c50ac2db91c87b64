"""
Typed form schema model.

A form is a tree of pages -> elements. Each element is one variant of a tagged
union keyed on its `type` string:

    TextField | TextareaField | EmailField | PhoneField | NumberField |
    DateField | ChoiceField | BooleanField | FileField | DisplayField

Types outside the known set parse as CustomField so admin-authored forms with
newer element types still load.

Models keep unknown keys (extra="allow"), accept camelCase keys only (a
snake_case key is kept as an unknown key) and use strict scalar types, so
`FormSchema.model_validate(raw).to_dict() == raw` for any input that parses.
"""
from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, StrictBool, StrictFloat, StrictInt, StrictStr, Tag
from pydantic.alias_generators import to_camel

Number = Union[StrictInt, StrictFloat]


class FormModel(BaseModel):
    """Base for all schema models: camelCase aliases, unknown keys preserved."""

    model_config = ConfigDict(
        extra="allow",
        alias_generator=to_camel,
    )

    def to_dict(self) -> Dict[str, Any]:
        """Dump back to the camelCase mapping this model was parsed from."""
        return self.model_dump(by_alias=True, exclude_unset=True)


# =============================================================================
# RULES AND OPTIONS
# =============================================================================

class ConditionalRule(FormModel):
    """`if data[field] <operator> value then <action>`."""
    field: str
    operator: str
    value: Any = None
    action: str


class ValidationRule(FormModel):
    type: str
    value: Any = None
    message: Optional[str] = None
    severity: Literal["error", "warning", "info"] = "error"


class FieldOption(FormModel):
    value: Any
    label: str
    id: Optional[str] = None
    disabled: Optional[StrictBool] = None
    description: Optional[str] = None


# =============================================================================
# FIELD VARIANTS
# =============================================================================

class BaseField(FormModel):
    """Attributes shared by every element type."""
    id: str
    type: str
    label: str
    required: StrictBool = False
    disabled: StrictBool = False
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    default_value: Any = None
    pattern: Optional[str] = None
    validation: List[ValidationRule] = Field(default_factory=list)
    conditional_logic: List[ConditionalRule] = Field(default_factory=list)
    custom_attributes: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_display(self) -> bool:
        """Display-only elements hold no value."""
        return False

    @property
    def is_email(self) -> bool:
        return False

    @property
    def is_phone(self) -> bool:
        return False


class TextField(BaseField):
    min_length: Optional[StrictInt] = None
    max_length: Optional[StrictInt] = None


class TextareaField(TextField):
    rows: Optional[StrictInt] = None


class EmailField(TextField):
    @property
    def is_email(self) -> bool:
        return True


class PhoneField(TextField):
    @property
    def is_phone(self) -> bool:
        return True


class NumberField(BaseField):
    min: Optional[Number] = None
    max: Optional[Number] = None
    step: Optional[Number] = None


class DateField(BaseField):
    min_date: Optional[StrictStr] = None
    max_date: Optional[StrictStr] = None


class ChoiceField(BaseField):
    options: List[FieldOption] = Field(default_factory=list)
    multiple: Optional[StrictBool] = None


class BooleanField(BaseField):
    pass


class FileField(BaseField):
    accept: Optional[str] = None
    multiple: Optional[StrictBool] = None


class DisplayField(BaseField):
    content: Optional[str] = None

    @property
    def is_display(self) -> bool:
        return True


class CustomField(BaseField):
    pass


# Element `type` string -> union tag
FIELD_KINDS: Dict[str, str] = {
    "text": "TextField",
    "password": "TextField",
    "url": "TextField",
    "hidden": "TextField",
    "color": "TextField",
    "time": "TextField",
    "signature": "TextField",
    "textarea": "TextareaField",
    "email": "EmailField",
    "tel": "PhoneField",
    "phone": "PhoneField",
    "number": "NumberField",
    "range": "NumberField",
    "rating": "NumberField",
    "weight": "NumberField",
    "progress-rating": "NumberField",
    "date": "DateField",
    "datetime-local": "DateField",
    "select": "ChoiceField",
    "multiselect": "ChoiceField",
    "radio": "ChoiceField",
    "checkbox": "ChoiceField",
    "boolean": "BooleanField",
    "switch": "BooleanField",
    "consent": "BooleanField",
    "file": "FileField",
    "progress-photo": "FileField",
    "lab-upload": "FileField",
    "section-header": "DisplayField",
    "divider": "DisplayField",
    "html-content": "DisplayField",
}

FIELD_TAGS = frozenset(FIELD_KINDS.values()) | {"CustomField"}


def field_kind(value: Any) -> str:
    """Discriminator: map an element's `type` to its union tag."""
    if isinstance(value, dict):
        field_type = value.get("type")
    else:
        field_type = getattr(value, "type", None)
    if not isinstance(field_type, str):
        return "CustomField"
    return FIELD_KINDS.get(field_type, "CustomField")


FormElement = Annotated[
    Union[
        Annotated[TextField, Tag("TextField")],
        Annotated[TextareaField, Tag("TextareaField")],
        Annotated[EmailField, Tag("EmailField")],
        Annotated[PhoneField, Tag("PhoneField")],
        Annotated[NumberField, Tag("NumberField")],
        Annotated[DateField, Tag("DateField")],
        Annotated[ChoiceField, Tag("ChoiceField")],
        Annotated[BooleanField, Tag("BooleanField")],
        Annotated[FileField, Tag("FileField")],
        Annotated[DisplayField, Tag("DisplayField")],
        Annotated[CustomField, Tag("CustomField")],
    ],
    Discriminator(field_kind),
]


# =============================================================================
# PAGES AND SCHEMA
# =============================================================================

class FormPage(FormModel):
    id: str
    title: str
    description: Optional[str] = None
    elements: List[FormElement]


class FormSchema(FormModel):
    title: str
    description: Optional[str] = None
    pages: List[FormPage]

    def iter_elements(self) -> Iterator[BaseField]:
        for page in self.pages:
            yield from page.elements

    def get_page(self, page_id: str) -> Optional[FormPage]:
        return next((p for p in self.pages if p.id == page_id), None)

    def get_element(self, element_id: str) -> Optional[BaseField]:
        return next((e for e in self.iter_elements() if e.id == element_id), None)
