"""
Pydantic schemas for consultation session and message documents.
"""
from datetime import datetime
from enum import Enum
from typing import ClassVar, FrozenSet, Optional

from pydantic import Field, field_serializer

from telehealth_svc.core.datetime_utils import format_iso
from telehealth_svc.schemas.common import DocumentModel, DocumentUpdateModel


class SessionType(str, Enum):
    VIDEO = "video"
    PHONE = "phone"
    CHAT = "chat"
    IN_PERSON = "in_person"


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class SessionCreate(DocumentModel):
    patient_id: str = Field(..., min_length=1)
    provider_id: str = Field(..., min_length=1)
    scheduled_at: datetime = Field(..., description="Start time; stored as UTC ISO-8601")
    duration_minutes: int = Field(30, ge=5, le=480)
    type: SessionType = SessionType.VIDEO
    status: SessionStatus = SessionStatus.SCHEDULED
    notes: Optional[str] = None

    @field_serializer("scheduled_at")
    def _serialize_scheduled_at(self, value: datetime) -> str:
        return format_iso(value)


class SessionUpdate(DocumentUpdateModel):
    not_nullable: ClassVar[FrozenSet[str]] = frozenset(
        {"provider_id", "scheduled_at", "duration_minutes", "type", "status"}
    )

    provider_id: Optional[str] = Field(None, min_length=1)
    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, ge=5, le=480)
    type: Optional[SessionType] = None
    status: Optional[SessionStatus] = None
    notes: Optional[str] = None

    @field_serializer("scheduled_at")
    def _serialize_scheduled_at(self, value: Optional[datetime]) -> Optional[str]:
        return format_iso(value) if value is not None else None


class MessageCreate(DocumentModel):
    conversation_id: str = Field(..., min_length=1)
    sender_id: str = Field(..., min_length=1)
    recipient_id: str = Field(..., min_length=1)
    subject: Optional[str] = Field(None, max_length=200)
    body: str = Field(..., min_length=1)
    read: bool = False


class MessageUpdate(DocumentUpdateModel):
    not_nullable: ClassVar[FrozenSet[str]] = frozenset({"body", "read"})

    subject: Optional[str] = Field(None, max_length=200)
    body: Optional[str] = Field(None, min_length=1)
    read: Optional[bool] = None
