"""
Pydantic schemas for client-reported monitoring data.
"""
from typing import Any, Dict, Literal, Optional

from pydantic import Field

from telehealth_svc.schemas.common import ApiModel
from telehealth_svc.services.error_handler import ErrorSeverity, ErrorType


class ClientContext(ApiModel):
    """Where a report came from."""
    component: Optional[str] = Field(None, max_length=200)
    url: Optional[str] = Field(None, max_length=2000)
    user_agent: Optional[str] = Field(None, max_length=500)
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    def fields(self) -> Dict[str, Any]:
        """Context as keyword arguments for MonitoringService log calls."""
        return self.model_dump(include={"component", "url", "user_agent", "user_id", "session_id"}, exclude_none=True)


class EventRequest(ClientContext):
    level: Literal["error", "warning", "info"] = "info"
    message: str = Field(..., min_length=1, max_length=5000)
    stack: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class ErrorReport(ClientContext):
    """An error caught by the dashboard, classified server-side unless type/severity are given."""
    name: str = Field("Error", min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)
    stack: Optional[str] = None
    type: Optional[ErrorType] = None
    severity: Optional[ErrorSeverity] = None
    action: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class PerformanceRequest(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    value: float
    unit: Literal["ms", "bytes", "count"] = "ms"
    tags: Optional[Dict[str, Any]] = None


class ActionRequest(ApiModel):
    action: str = Field(..., min_length=1, max_length=200)
    component: str = Field(..., min_length=1, max_length=200)
    metadata: Optional[Dict[str, Any]] = None
    user_id: Optional[str] = None
