"""
Service layer for dynamic forms and their submissions.

Form definitions live in the `form_schemas` collection as

    {"title", "description", "schema": <FormSchema mapping>, "version", "createdBy"}

and submissions in `form_submissions`. Schemas are checked with
validate_form_schema before they are stored; submissions are run through the
FormValidator and stored together with their validation outcome.
"""
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from telehealth_svc.core.auth import AuthSession
from telehealth_svc.core.exceptions import DocumentNotFoundError, FormSchemaInvalidError
from telehealth_svc.repositories import Filter, Page, QueryOptions, Repository
from telehealth_svc.schemas.forms import SubmissionCreate, SubmissionStatus
from telehealth_svc.services.audit_service import AuditService
from telehealth_svc.services.forms import FormSchema, FormSchemaValidationResult, FormValidator, validate_form_schema

logger = logging.getLogger(__name__)

FORMS_COLLECTION = "form_schemas"
SUBMISSIONS_COLLECTION = "form_submissions"


def submission_status(errors: List[Any], partial: bool) -> SubmissionStatus:
    """completed with no error-severity results; otherwise pending for partial saves, error for final ones."""
    if not any(e.severity == "error" for e in errors):
        return SubmissionStatus.COMPLETED
    return SubmissionStatus.PENDING if partial else SubmissionStatus.ERROR


class FormService:
    """Form definition CRUD, evaluation and submission handling."""

    def __init__(
        self,
        form_repository: Repository,
        submission_repository: Repository,
        audit_service: AuditService,
    ):
        self._forms = form_repository
        self._submissions = submission_repository
        self._audit = audit_service

    # -------------------------------------------------------------------------
    # Form definitions
    # -------------------------------------------------------------------------

    def validate(self, raw: Any) -> FormSchemaValidationResult:
        return validate_form_schema(raw)

    def _validated(self, raw: Any) -> FormSchema:
        result = validate_form_schema(raw)
        if not result.is_valid:
            logger.warning("Rejected invalid form schema", extra={"error_count": len(result.errors)})
            raise FormSchemaInvalidError(
                errors=[e.to_dict() for e in result.errors],
                warnings=result.warnings or None,
            )
        return result.form_schema

    def create_form(self, raw: Any, actor: AuthSession) -> Dict[str, Any]:
        """
        Validate and store a form schema.

        Raises:
            FormSchemaInvalidError: With the path-tagged errors if the schema is invalid.
        """
        schema = self._validated(raw)
        created = self._forms.create({
            "title": schema.title,
            "description": schema.description,
            "schema": schema.to_dict(),
            "version": 1,
            "createdBy": actor.actor_id,
        })
        logger.info("Form created", extra={"form_id": created["id"], "title": schema.title})
        self._audit.log("create", actor, FORMS_COLLECTION, created["id"], after=created)
        return created

    def list_forms(self, options: Optional[QueryOptions] = None) -> Page:
        return self._forms.get_all(options)

    def get_form(self, form_id: str) -> Dict[str, Any]:
        form = self._forms.get_by_id(form_id)
        if form is None:
            raise DocumentNotFoundError(collection=FORMS_COLLECTION, document_id=form_id)
        return form

    def get_schema(self, form_id: str) -> FormSchema:
        return FormSchema.model_validate(self.get_form(form_id)["schema"])

    def update_form(self, form_id: str, raw: Any, actor: AuthSession) -> Dict[str, Any]:
        """
        Replace a form's schema and bump its version.

        Existing submissions keep the data they were validated with.
        """
        before = self.get_form(form_id)
        schema = self._validated(raw)
        updated = self._forms.update(form_id, {
            "title": schema.title,
            "description": schema.description,
            "schema": schema.to_dict(),
            "version": int(before.get("version") or 1) + 1,
        })
        logger.info("Form updated", extra={"form_id": form_id, "version": updated["version"]})
        self._audit.log("update", actor, FORMS_COLLECTION, form_id, before=before, after=updated)
        return updated

    def delete_form(self, form_id: str, actor: AuthSession) -> None:
        before = self.get_form(form_id)
        self._forms.delete(form_id)
        logger.info("Form deleted", extra={"form_id": form_id})
        self._audit.log("delete", actor, FORMS_COLLECTION, form_id, before=before)

    # -------------------------------------------------------------------------
    # Evaluation and submissions
    # -------------------------------------------------------------------------

    def evaluate(self, form_id: str, data: Dict[str, Any], page_id: Optional[str] = None) -> Dict[str, Any]:
        """Field states, validation results and completion for in-progress answers."""
        validator = FormValidator(self.get_schema(form_id), data)
        errors = validator.validate_page(page_id) if page_id else validator.validate_all()
        return {
            "formId": form_id,
            "fieldStates": {field_id: state.to_dict() for field_id, state in validator.field_states().items()},
            "errors": [e.to_dict() for e in errors],
            "isValid": not any(e.severity == "error" for e in errors),
            "completionPercentage": validator.completion_percentage(),
        }

    def submit(self, form_id: str, submission: SubmissionCreate, actor: AuthSession) -> Dict[str, Any]:
        """
        Validate answers against the form and store the submission.

        Invalid answers are stored too; the outcome is recorded in `status`
        and `validationErrors`.
        """
        form = self.get_form(form_id)
        validator = FormValidator(FormSchema.model_validate(form["schema"]), submission.data)
        errors = validator.validate_all()
        status = submission_status(errors, submission.metadata.partial_submission)

        document = {
            "formId": form_id,
            "formVersion": form.get("version", 1),
            "data": submission.data,
            "metadata": submission.metadata.model_dump(by_alias=True, exclude_none=True),
            "status": status.value,
            "completionPercentage": validator.completion_percentage(),
            "validationErrors": [e.to_dict() for e in errors],
            "submittedBy": actor.actor_id,
        }
        if submission.patient_id:
            document["patientId"] = submission.patient_id

        created = self._submissions.create(document)
        logger.info(
            "Form submission stored",
            extra={"form_id": form_id, "submission_id": created["id"], "status": status.value, "error_count": len(errors)}
        )
        self._audit.log("submit", actor, SUBMISSIONS_COLLECTION, created["id"], after=created)
        return created

    def list_submissions(self, form_id: str, options: Optional[QueryOptions] = None) -> Page:
        self.get_form(form_id)
        options = options or QueryOptions()
        scoped = replace(options, filters=list(options.filters) + [Filter("formId", "==", form_id)])
        return self._submissions.get_all(scoped)
