"""
Forms router - dynamic form definitions, evaluation and submissions.

    POST   /api/v1/forms/validate               check a schema without storing it
    POST   /api/v1/forms                        create (422 with path errors if invalid)
    GET    /api/v1/forms                        list
    GET    /api/v1/forms/{id}                   fetch
    PUT    /api/v1/forms/{id}                   replace schema
    DELETE /api/v1/forms/{id}                   delete (admin only)
    POST   /api/v1/forms/{id}/evaluate          field states, errors, completion
    POST   /api/v1/forms/{id}/submissions       validate and store answers
    GET    /api/v1/forms/{id}/submissions       list submissions

Schema bodies are taken as raw JSON so structural problems come back as
`{path, message}` errors rather than pydantic's 422 detail.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from telehealth_svc.api.routers.params import get_query_options
from telehealth_svc.core.auth import Authenticated, Role, require_authenticated, require_role
from telehealth_svc.core.dependencies import get_form_service
from telehealth_svc.repositories import QueryOptions
from telehealth_svc.schemas.common import DeletedResponse, PageResponse
from telehealth_svc.schemas.forms import EvaluateRequest, SubmissionCreate
from telehealth_svc.services.form_service import FormService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/forms",
    tags=["Forms"],
    dependencies=[Depends(require_authenticated)],
)

SCHEMA_BODY = Body(
    None,
    description="Form schema: {title, description?, pages: [{id, title, elements: [...]}]}",
    examples=[{
        "title": "Patient intake",
        "pages": [{
            "id": "p1",
            "title": "Contact",
            "elements": [{"id": "email", "type": "email", "label": "Email", "required": True}],
        }],
    }],
)


@router.post(
    "/validate",
    summary="Validate a form schema",
    description="Returns {isValid, errors, warnings, formSchema}; never stores anything."
)
async def validate_schema(
    raw: Any = SCHEMA_BODY,
    form_service: FormService = Depends(get_form_service),
) -> Dict[str, Any]:
    return form_service.validate(raw).to_dict()


@router.post("", status_code=201, summary="Create a form")
async def create_form(
    raw: Any = SCHEMA_BODY,
    session: Authenticated = Depends(require_authenticated),
    form_service: FormService = Depends(get_form_service),
) -> Dict[str, Any]:
    """Raises FormSchemaInvalidError (422) with the path errors when the schema is invalid."""
    return form_service.create_form(raw, actor=session)


@router.get("", response_model=PageResponse, summary="List forms")
async def list_forms(
    options: QueryOptions = Depends(get_query_options),
    form_service: FormService = Depends(get_form_service),
) -> PageResponse:
    return PageResponse.from_page(form_service.list_forms(options))


@router.get("/{form_id}", summary="Get a form")
async def get_form(form_id: str, form_service: FormService = Depends(get_form_service)) -> Dict[str, Any]:
    return form_service.get_form(form_id)


@router.put("/{form_id}", summary="Replace a form's schema")
async def update_form(
    form_id: str,
    raw: Any = SCHEMA_BODY,
    session: Authenticated = Depends(require_authenticated),
    form_service: FormService = Depends(get_form_service),
) -> Dict[str, Any]:
    return form_service.update_form(form_id, raw, actor=session)


@router.delete("/{form_id}", response_model=DeletedResponse, summary="Delete a form")
async def delete_form(
    form_id: str,
    session: Authenticated = Depends(require_role(Role.ADMIN)),
    form_service: FormService = Depends(get_form_service),
) -> DeletedResponse:
    form_service.delete_form(form_id, actor=session)
    return DeletedResponse(id=form_id)


@router.post("/{form_id}/evaluate", summary="Evaluate answers against a form")
async def evaluate_form(
    form_id: str,
    body: EvaluateRequest,
    form_service: FormService = Depends(get_form_service),
) -> Dict[str, Any]:
    return form_service.evaluate(form_id, body.data, page_id=body.page_id)


@router.post("/{form_id}/submissions", status_code=201, summary="Submit answers")
async def submit_form(
    form_id: str,
    body: SubmissionCreate,
    session: Authenticated = Depends(require_authenticated),
    form_service: FormService = Depends(get_form_service),
) -> Dict[str, Any]:
    return form_service.submit(form_id, body, actor=session)


@router.get("/{form_id}/submissions", response_model=PageResponse, summary="List a form's submissions")
async def list_submissions(
    form_id: str,
    options: QueryOptions = Depends(get_query_options),
    form_service: FormService = Depends(get_form_service),
) -> PageResponse:
    return PageResponse.from_page(form_service.list_submissions(form_id, options))
