"""
Pydantic schemas for patient documents.
"""
from datetime import date
from enum import Enum
from typing import ClassVar, FrozenSet, List, Optional

from pydantic import Field

from telehealth_svc.schemas.common import ApiModel, DocumentModel, DocumentUpdateModel

EMAIL_REGEX = r'^[^\s@]+@[^\s@]+\.[^\s@]+$'


class PatientStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class Address(ApiModel):
    street: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)


class PatientCreate(DocumentModel):
    """Schema for creating a new patient.

    Insurance is stored inline on the patient; `tags` holds tag document ids.
    """
    first_name: str = Field(..., min_length=1, max_length=100, examples=["Jane"])
    last_name: str = Field(..., min_length=1, max_length=100, examples=["Doe"])
    date_of_birth: Optional[date] = Field(None, description="ISO date", examples=["1985-04-12"])
    email: Optional[str] = Field(None, pattern=EMAIL_REGEX, examples=["jane@example.com"])
    phone: Optional[str] = Field(None, max_length=32)
    address: Optional[Address] = None
    insurance_provider: Optional[str] = None
    insurance_policy_number: Optional[str] = None
    insurance_group_number: Optional[str] = None
    tags: List[str] = Field(default_factory=list, description="Tag document ids")
    subscription_plan_id: Optional[str] = None
    provider_id: Optional[str] = Field(None, description="Assigned provider document id")
    status: PatientStatus = Field(PatientStatus.PENDING, description="active | inactive | pending")


class PatientUpdate(DocumentUpdateModel):
    """Partial patient update; only the fields sent are changed."""
    not_nullable: ClassVar[FrozenSet[str]] = frozenset({"first_name", "last_name", "tags", "status"})

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    email: Optional[str] = Field(None, pattern=EMAIL_REGEX)
    phone: Optional[str] = Field(None, max_length=32)
    address: Optional[Address] = None
    insurance_provider: Optional[str] = None
    insurance_policy_number: Optional[str] = None
    insurance_group_number: Optional[str] = None
    tags: Optional[List[str]] = None
    subscription_plan_id: Optional[str] = None
    provider_id: Optional[str] = None
    status: Optional[PatientStatus] = None
