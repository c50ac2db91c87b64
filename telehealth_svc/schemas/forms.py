"""
Pydantic schemas for form evaluation and submission requests.

Form schema bodies themselves are accepted as raw JSON and checked by
services.forms.validate_form_schema, which reports path-tagged errors instead
of pydantic's 422 detail.
"""
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from telehealth_svc.schemas.common import ApiModel


class SubmissionStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    ERROR = "error"


class SubmissionMetadata(ApiModel):
    completion_time: Optional[float] = Field(None, ge=0, description="Seconds the user spent on the form")
    partial_submission: bool = Field(False, description="Saved progress rather than a final submission")
    device_type: Optional[str] = None


class EvaluateRequest(ApiModel):
    """Current answers of a form being filled in."""
    data: Dict[str, Any] = Field(default_factory=dict, description="Field id -> value")
    page_id: Optional[str] = Field(None, description="Only validate this page")


class SubmissionCreate(ApiModel):
    data: Dict[str, Any] = Field(default_factory=dict, description="Field id -> value")
    metadata: SubmissionMetadata = Field(default_factory=SubmissionMetadata)
    patient_id: Optional[str] = None
