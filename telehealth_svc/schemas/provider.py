"""
Pydantic schemas for provider documents.
"""
from enum import Enum
from typing import ClassVar, FrozenSet, List, Optional

from pydantic import Field, model_validator

from telehealth_svc.schemas.common import ApiModel, DocumentModel, DocumentUpdateModel
from telehealth_svc.schemas.patient import EMAIL_REGEX

TIME_REGEX = r'^([01]\d|2[0-3]):[0-5]\d$'


class ProviderStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class AvailabilitySlot(ApiModel):
    """A weekly availability window, `HH:MM` in 24-hour time."""
    day: Weekday
    start: str = Field(..., pattern=TIME_REGEX, examples=["09:00"])
    end: str = Field(..., pattern=TIME_REGEX, examples=["17:00"])

    @model_validator(mode="after")
    def check_order(self) -> "AvailabilitySlot":
        # Zero-padded HH:MM strings compare in time order
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class ProviderCreate(DocumentModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., pattern=EMAIL_REGEX)
    phone: Optional[str] = Field(None, max_length=32)
    specialty: Optional[str] = None
    license_number: Optional[str] = None
    credentials: Optional[str] = Field(None, examples=["MD"])
    availability: List[AvailabilitySlot] = Field(default_factory=list)
    status: ProviderStatus = ProviderStatus.ACTIVE


class ProviderUpdate(DocumentUpdateModel):
    not_nullable: ClassVar[FrozenSet[str]] = frozenset({"first_name", "last_name", "email", "availability", "status"})

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, pattern=EMAIL_REGEX)
    phone: Optional[str] = Field(None, max_length=32)
    specialty: Optional[str] = None
    license_number: Optional[str] = None
    credentials: Optional[str] = None
    availability: Optional[List[AvailabilitySlot]] = None
    status: Optional[ProviderStatus] = None
