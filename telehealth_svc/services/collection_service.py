"""
Service layer for generic collection CRUD.

One CollectionService instance serves one collection from the registry in
schemas.collections. Request bodies arrive already validated against the
collection's create/update models; the service stores them through a
Repository and records an audit entry for every mutation.

Architecture:
    API Layer (collections router) → CollectionService → DocumentRepository → Database
                                                ↘ AuditService → AuditLogRepository
"""
import logging
from typing import Any, Dict, Optional

from telehealth_svc.core.auth import AuthSession
from telehealth_svc.core.exceptions import DocumentNotFoundError
from telehealth_svc.repositories import Page, QueryOptions, Repository
from telehealth_svc.schemas.collections import CollectionSpec
from telehealth_svc.schemas.common import DocumentModel
from telehealth_svc.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class CollectionService:
    """CRUD for one document collection with audit logging."""

    def __init__(self, spec: CollectionSpec, repository: Repository, audit_service: AuditService):
        self.spec = spec
        self._repo = repository
        self._audit = audit_service

    @property
    def collection(self) -> str:
        return self.spec.collection

    def list(self, options: Optional[QueryOptions] = None) -> Page:
        return self._repo.get_all(options)

    def get(self, doc_id: str) -> Dict[str, Any]:
        """
        Raises:
            DocumentNotFoundError: If the id does not exist.
        """
        document = self._repo.get_by_id(doc_id)
        if document is None:
            raise DocumentNotFoundError(collection=self.collection, document_id=doc_id)
        return document

    def create(self, payload: DocumentModel, actor: AuthSession) -> Dict[str, Any]:
        created = self._repo.create(payload.to_document())
        logger.info(
            f"Created {self.collection} document",
            extra={"collection": self.collection, "document_id": created["id"], "actor": actor.actor_id}
        )
        self._audit.log("create", actor, self.collection, created["id"], before=None, after=created)
        return created

    def update(self, doc_id: str, payload: DocumentModel, actor: AuthSession) -> Dict[str, Any]:
        """
        Merge the fields the client sent into an existing document.

        Raises:
            DocumentNotFoundError: If the id does not exist.
        """
        changes = payload.to_document(partial=True)
        before = self.get(doc_id)
        updated = self._repo.update(doc_id, changes)
        logger.info(
            f"Updated {self.collection} document",
            extra={"collection": self.collection, "document_id": doc_id, "fields": sorted(changes)}
        )
        self._audit.log("update", actor, self.collection, doc_id, before=before, after=updated)
        return updated

    def delete(self, doc_id: str, actor: AuthSession) -> None:
        """
        Raises:
            DocumentNotFoundError: If the id does not exist.
        """
        before = self.get(doc_id)
        self._repo.delete(doc_id)
        logger.info(f"Deleted {self.collection} document", extra={"collection": self.collection, "document_id": doc_id})
        self._audit.log("delete", actor, self.collection, doc_id, before=before, after=None)
