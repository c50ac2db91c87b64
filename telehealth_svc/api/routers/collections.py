"""
Collection routers - CRUD endpoints for every registered document collection.

One router is built per entry of schemas.collections.COLLECTIONS:

    GET    /api/v1/{collection}          list (filter / sort / paginate)
    GET    /api/v1/{collection}/{id}     fetch one
    POST   /api/v1/{collection}          create
    PATCH  /api/v1/{collection}/{id}     merge fields
    DELETE /api/v1/{collection}/{id}     delete (admin only)

All endpoints require API key authentication. Mutations are audit-logged
with the session's actor.

Architecture:
    HTTP Request → Router (this file) → CollectionService → DocumentRepository → Database
"""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from telehealth_svc.api.routers.params import get_query_options
from telehealth_svc.core.auth import Authenticated, Role, require_authenticated, require_role
from telehealth_svc.core.dependencies import collection_service_dependency
from telehealth_svc.repositories import QueryOptions
from telehealth_svc.schemas.collections import COLLECTIONS, CollectionSpec
from telehealth_svc.schemas.common import DeletedResponse, PageResponse

logger = logging.getLogger(__name__)


def build_collection_router(spec: CollectionSpec) -> APIRouter:
    """Create the CRUD router for one collection."""
    router = APIRouter(
        prefix=f"/api/v1/{spec.path}",
        tags=[spec.title],
        dependencies=[Depends(require_authenticated)],
    )
    get_service = collection_service_dependency(spec.path)
    create_model = spec.create_model
    update_model = spec.update_model

    @router.get(
        "",
        response_model=PageResponse,
        summary=f"List {spec.path}",
    )
    async def list_documents(
        options: QueryOptions = Depends(get_query_options),
        service=Depends(get_service),
    ) -> PageResponse:
        return PageResponse.from_page(service.list(options))

    @router.get("/{doc_id}", summary=f"Get one of {spec.path}")
    async def get_document(doc_id: str, service=Depends(get_service)) -> Dict[str, Any]:
        return service.get(doc_id)

    @router.post("", status_code=201, summary=f"Create in {spec.path}")
    async def create_document(
        payload: create_model,
        session: Authenticated = Depends(require_authenticated),
        service=Depends(get_service),
    ) -> Dict[str, Any]:
        return service.create(payload, actor=session)

    @router.patch("/{doc_id}", summary=f"Update one of {spec.path}")
    async def update_document(
        doc_id: str,
        payload: update_model,
        session: Authenticated = Depends(require_authenticated),
        service=Depends(get_service),
    ) -> Dict[str, Any]:
        return service.update(doc_id, payload, actor=session)

    @router.delete("/{doc_id}", response_model=DeletedResponse, summary=f"Delete one of {spec.path}")
    async def delete_document(
        doc_id: str,
        session: Authenticated = Depends(require_role(Role.ADMIN)),
        service=Depends(get_service),
    ) -> DeletedResponse:
        service.delete(doc_id, actor=session)
        return DeletedResponse(id=doc_id)

    return router


collection_routers: List[APIRouter] = [build_collection_router(spec) for spec in COLLECTIONS.values()]
