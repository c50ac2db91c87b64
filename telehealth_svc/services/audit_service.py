"""
Service layer for audit logging.

Every mutating operation on a collection or form records who did what to
which document, with the document state before and after the change. Entries
go through AuditLogRepository, which is append-only.

A failing audit write never fails the operation being audited: the store
error is logged and the call returns None.
"""
import logging
from typing import Any, Dict, Optional

from telehealth_svc.core.auth import AuthSession
from telehealth_svc.core.datetime_utils import utc_now_iso
from telehealth_svc.core.exceptions import DataAccessError, DocumentNotFoundError
from telehealth_svc.repositories import AUDIT_LOG_COLLECTION, AuditLogRepository, Page, QueryOptions

logger = logging.getLogger(__name__)

AUDIT_ACTIONS = ("create", "update", "delete", "submit")


class AuditService:
    """Writes and reads audit log entries."""

    def __init__(self, audit_repository: AuditLogRepository):
        self._repo = audit_repository

    def log(
        self,
        action: str,
        actor: AuthSession,
        resource_type: str,
        resource_id: Optional[str],
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Record one audit entry.

        Args:
            action: What happened (create, update, delete, submit).
            actor: Session that performed the action.
            resource_type: Collection name of the affected document.
            resource_id: Id of the affected document.
            before: Document state before the change, if any.
            after: Document state after the change, if any.

        Returns:
            The stored entry, or None when the store rejected the write.
        """
        entry = {
            "action": action,
            "actor": actor.actor_id,
            "resourceType": resource_type,
            "resourceId": resource_id,
            "before": before,
            "after": after,
            "timestamp": utc_now_iso(),
        }
        try:
            stored = self._repo.create(entry)
        except DataAccessError as e:
            logger.error(
                "Failed to write audit log entry",
                extra={"action": action, "resource_type": resource_type, "resource_id": resource_id, "error": e.detail}
            )
            return None

        logger.info(
            "Audit entry recorded",
            extra={"action": action, "actor": actor.actor_id, "resource_type": resource_type, "resource_id": resource_id}
        )
        return stored

    def list_entries(self, options: Optional[QueryOptions] = None) -> Page:
        return self._repo.get_all(options)

    def get_entry(self, entry_id: str) -> Dict[str, Any]:
        entry = self._repo.get_by_id(entry_id)
        if entry is None:
            raise DocumentNotFoundError(collection=AUDIT_LOG_COLLECTION, document_id=entry_id)
        return entry
