"""
Append-only repository for audit log entries.

Audit logs can be created and read but never changed: update and delete
raise AuditLogImmutableError instead of touching the store.
"""
import logging
from typing import Any, Dict, Optional

from telehealth_svc.core.exceptions import AuditLogImmutableError
from telehealth_svc.repositories.base import Database
from telehealth_svc.repositories.cache import QueryCache
from telehealth_svc.repositories.document_repository import DocumentRepository

logger = logging.getLogger(__name__)

AUDIT_LOG_COLLECTION = "audit_logs"


class AuditLogRepository(DocumentRepository):
    """DocumentRepository for the audit_logs collection with writes limited to inserts."""

    def __init__(self, db: Database, cache: Optional[QueryCache] = None):
        super().__init__(db=db, collection=AUDIT_LOG_COLLECTION, cache=cache)

    def update(self, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        logger.warning("Rejected audit log update", extra={"document_id": doc_id})
        raise AuditLogImmutableError(document_id=doc_id)

    def delete(self, doc_id: str) -> None:
        logger.warning("Rejected audit log delete", extra={"document_id": doc_id})
        raise AuditLogImmutableError(document_id=doc_id)

    def retain_latest(self, limit: int) -> int:
        raise AuditLogImmutableError()
