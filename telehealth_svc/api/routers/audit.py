"""
Audit log router - read-only access for administrators.

Audit entries are written by the services on every mutation; this router
only lists and fetches them. There are no write endpoints and the
repository behind it refuses updates and deletes.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from telehealth_svc.api.routers.params import get_query_options
from telehealth_svc.core.auth import Role, require_role
from telehealth_svc.core.dependencies import get_audit_service
from telehealth_svc.repositories import QueryOptions
from telehealth_svc.schemas.common import PageResponse
from telehealth_svc.services.audit_service import AuditService

router = APIRouter(
    prefix="/api/v1/audit-logs",
    tags=["Audit Logs"],
    dependencies=[Depends(require_role(Role.ADMIN))],
)


@router.get("", response_model=PageResponse, summary="List audit log entries")
async def list_audit_logs(
    options: QueryOptions = Depends(get_query_options),
    audit_service: AuditService = Depends(get_audit_service),
) -> PageResponse:
    return PageResponse.from_page(audit_service.list_entries(options))


@router.get("/{entry_id}", summary="Get one audit log entry")
async def get_audit_log(entry_id: str, audit_service: AuditService = Depends(get_audit_service)) -> Dict[str, Any]:
    return audit_service.get_entry(entry_id)
