"""
Monitoring router - intake for events, errors, performance metrics and user
actions reported by the dashboard.

Reports are queued in the shared MonitoringService and flushed in batches;
POST /errors first runs the ErrorHandler (classification + rate limiting).
"""
import logging
from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, Query

from telehealth_svc.core.auth import require_authenticated
from telehealth_svc.core.dependencies import get_error_handler, get_monitoring_service
from telehealth_svc.schemas.monitoring import ActionRequest, ErrorReport, EventRequest, PerformanceRequest
from telehealth_svc.services.error_handler import ErrorHandler, create_app_error
from telehealth_svc.services.monitoring_service import (
    ACTIONS_COLLECTION,
    EVENTS_COLLECTION,
    PERFORMANCE_COLLECTION,
    MonitoringService,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/monitoring",
    tags=["Monitoring"],
    dependencies=[Depends(require_authenticated)],
)

_RECENT_COLLECTIONS = {
    "events": EVENTS_COLLECTION,
    "performance": PERFORMANCE_COLLECTION,
    "actions": ACTIONS_COLLECTION,
}


@router.post("/events", status_code=202, summary="Report an error, warning or info event")
async def report_event(
    body: EventRequest,
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    if body.level == "error":
        event = await monitoring.log_error(body.message, body.metadata, stack=body.stack, **body.fields())
    elif body.level == "warning":
        event = monitoring.log_warning(body.message, body.metadata, **body.fields())
    else:
        event = monitoring.log_info(body.message, body.metadata, **body.fields())
    return {"accepted": event is not None, "event": event}


@router.post("/errors", status_code=202, summary="Report a client error for classification")
async def report_error(
    body: ErrorReport,
    error_handler: ErrorHandler = Depends(get_error_handler),
) -> Dict[str, Any]:
    error = create_app_error(
        message=body.message,
        name=body.name,
        stack=body.stack,
        error_type=body.type,
        severity=body.severity,
        component=body.component,
        action=body.action,
        user_id=body.user_id,
        metadata=body.metadata,
    )
    handled = await error_handler.handle_error(error)
    return handled.to_dict()


@router.post("/performance", status_code=202, summary="Record a performance metric")
async def report_performance(
    body: PerformanceRequest,
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    return monitoring.record_performance(body.name, body.value, body.unit, body.tags)


@router.post("/actions", status_code=202, summary="Track a user action")
async def report_action(
    body: ActionRequest,
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    return monitoring.track_user_action(body.action, body.component, body.metadata, user_id=body.user_id)


@router.post("/flush", summary="Flush queued monitoring data now")
async def flush(monitoring: MonitoringService = Depends(get_monitoring_service)) -> Dict[str, Any]:
    result = await monitoring.flush()
    return result.to_dict()


@router.get("/stats", summary="Monitoring pipeline statistics")
async def stats(
    monitoring: MonitoringService = Depends(get_monitoring_service),
    error_handler: ErrorHandler = Depends(get_error_handler),
) -> Dict[str, Any]:
    return {**monitoring.stats(), "errorRateLimits": error_handler.stats()}


@router.get("/recent/{kind}", summary="Newest locally stored monitoring entries")
async def recent(
    kind: Literal["events", "performance", "actions"],
    limit: int = Query(25, ge=1, le=100),
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    return {"items": monitoring.recent(_RECENT_COLLECTIONS[kind], limit)}
