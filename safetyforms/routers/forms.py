"""Form builder and submission review endpoints."""

import logging
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from safetyforms.core.deps import (
    Identity,
    get_db,
    get_identity,
    require_admin,
    require_reviewer,
)
from safetyforms.core.structured_logging import build_log_context
from safetyforms.db.enums import Role, SubmissionStatus, ValidationRuleKind
from safetyforms.schemas.forms import (
    DraftSubmit,
    FieldOptionCreate,
    FieldReorderRequest,
    FormFieldCreate,
    FormFieldPatch,
    FormSubmission,
    FormTemplate,
    FormTemplateCreate,
    FormTemplateDetailsUpdate,
    SubmissionCreate,
    SubmissionDetailRead,
    SubmissionStatusUpdate,
    SystemTemplateSummary,
    TemplateEditResponse,
    ValidationRuleUpdate,
)
from safetyforms.services import (
    form_store,
    form_submission_service,
    form_template_library,
    form_template_service,
    submission_export_service,
)
from safetyforms.services.form_errors import (
    ConcurrentModificationError,
    FieldNotFoundError,
    FormServiceError,
    OptionNotFoundError,
    SubmissionNotFoundError,
    TemplateNotFoundError,
    ValidationFailedError,
)
from safetyforms.services.form_store import SubmissionFilter
from safetyforms.services.form_template_service import TemplateEditResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forms", tags=["forms"])

TemplateEdit = Callable[[FormTemplate], FormTemplate | TemplateEditResult]


def _http_error(exc: FormServiceError) -> HTTPException:
    if isinstance(
        exc, (TemplateNotFoundError, SubmissionNotFoundError, FieldNotFoundError, OptionNotFoundError)
    ):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConcurrentModificationError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValidationFailedError):
        return HTTPException(
            status_code=422,
            detail={"message": str(exc), "field_errors": exc.field_errors},
        )
    return HTTPException(status_code=400, detail=str(exc))


def _apply_template_edit(
    db: Session,
    identity: Identity,
    template_id: str,
    expected_version: int | None,
    edit: TemplateEdit,
) -> TemplateEditResponse:
    """Load, edit and save a template in one compare-and-swap step."""
    try:
        template = form_store.get_template_or_raise(db, identity.org_id, template_id)
        result = edit(template)
        if isinstance(result, TemplateEditResult):
            edited, warnings = result.template, result.warnings
        else:
            edited, warnings = result, []
        stored = form_store.save_template(
            db,
            identity.org_id,
            edited,
            expected_version=template.version if expected_version is None else expected_version,
        )
    except FormServiceError as exc:
        raise _http_error(exc) from exc
    if warnings:
        logger.info(
            "Template edit produced structural warnings",
            extra={
                **build_log_context(
                    user_id=identity.user_id, org_id=identity.org_id, template_id=template_id
                ),
                "warning_codes": [w.code for w in warnings],
            },
        )
    return TemplateEditResponse(template=stored, warnings=warnings)


def _get_submission(db: Session, identity: Identity, submission_id: str) -> FormSubmission:
    try:
        submission = form_store.get_submission_or_raise(db, identity.org_id, submission_id)
    except FormServiceError as exc:
        raise _http_error(exc) from exc
    if identity.role == Role.USER and submission.submitted_by != identity.user_id:
        raise HTTPException(status_code=404, detail=f"Submission not found: {submission_id}")
    return submission


# =============================================================================
# Templates
# =============================================================================


@router.get("/templates", response_model=list[FormTemplate])
def list_templates(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return form_store.list_templates(db, identity.org_id)


@router.post("/templates", response_model=FormTemplate, status_code=201)
def create_template(
    body: FormTemplateCreate,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    template = form_template_service.create_template(
        body.name,
        description=body.description,
        category=body.category,
        created_by=identity.user_id,
    )
    try:
        return form_store.save_template(db, identity.org_id, template)
    except FormServiceError as exc:
        raise _http_error(exc) from exc


@router.get("/system-templates", response_model=list[SystemTemplateSummary])
def list_system_templates(identity: Identity = Depends(get_identity)):
    return form_template_library.list_system_templates()


@router.post(
    "/templates/from-system/{system_key}", response_model=FormTemplate, status_code=201
)
def create_template_from_system(
    system_key: str,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        template = form_template_library.instantiate_system_template(
            system_key, created_by=identity.user_id
        )
        return form_store.save_template(db, identity.org_id, template)
    except FormServiceError as exc:
        raise _http_error(exc) from exc


@router.get("/templates/{template_id}", response_model=FormTemplate)
def get_template(
    template_id: str,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    try:
        return form_store.get_template_or_raise(db, identity.org_id, template_id)
    except FormServiceError as exc:
        raise _http_error(exc) from exc


@router.patch("/templates/{template_id}", response_model=TemplateEditResponse)
def update_template(
    template_id: str,
    body: FormTemplateDetailsUpdate,
    expected_version: int | None = Query(None),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    patch = body.model_dump(exclude_unset=True)
    return _apply_template_edit(
        db,
        identity,
        template_id,
        expected_version,
        lambda t: form_template_service.update_details(t, patch),
    )


# =============================================================================
# Fields
# =============================================================================


@router.post(
    "/templates/{template_id}/fields", response_model=TemplateEditResponse, status_code=201
)
def add_field(
    template_id: str,
    body: FormFieldCreate,
    expected_version: int | None = Query(None),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _apply_template_edit(
        db,
        identity,
        template_id,
        expected_version,
        lambda t: form_template_service.add_field(t, body.type, body.label),
    )


@router.post("/templates/{template_id}/fields/reorder", response_model=TemplateEditResponse)
def reorder_field(
    template_id: str,
    body: FieldReorderRequest,
    expected_version: int | None = Query(None),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _apply_template_edit(
        db,
        identity,
        template_id,
        expected_version,
        lambda t: form_template_service.reorder_field(t, body.from_index, body.to_index),
    )


@router.patch("/templates/{template_id}/fields/{field_id}", response_model=TemplateEditResponse)
def update_field(
    template_id: str,
    field_id: str,
    body: FormFieldPatch,
    expected_version: int | None = Query(None),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    patch = body.model_dump(exclude_unset=True)
    return _apply_template_edit(
        db,
        identity,
        template_id,
        expected_version,
        lambda t: form_template_service.update_field(t, field_id, patch),
    )


@router.delete("/templates/{template_id}/fields/{field_id}", response_model=TemplateEditResponse)
def remove_field(
    template_id: str,
    field_id: str,
    expected_version: int | None = Query(None),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _apply_template_edit(
        db,
        identity,
        template_id,
        expected_version,
        lambda t: form_template_service.remove_field(t, field_id),
    )


@router.post(
    "/templates/{template_id}/fields/{field_id}/duplicate",
    response_model=TemplateEditResponse,
    status_code=201,
)
def duplicate_field(
    template_id: str,
    field_id: str,
    expected_version: int | None = Query(None),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _apply_template_edit(
        db,
        identity,
        template_id,
        expected_version,
        lambda t: form_template_service.duplicate_field(t, field_id),
    )


@router.post(
    "/templates/{template_id}/fields/{field_id}/options",
    response_model=TemplateEditResponse,
    status_code=201,
)
def add_field_option(
    template_id: str,
    field_id: str,
    body: FieldOptionCreate,
    expected_version: int | None = Query(None),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _apply_template_edit(
        db,
        identity,
        template_id,
        expected_version,
        lambda t: form_template_service.add_field_option(t, field_id, body.label),
    )


@router.delete(
    "/templates/{template_id}/fields/{field_id}/options/{value}",
    response_model=TemplateEditResponse,
)
def remove_field_option(
    template_id: str,
    field_id: str,
    value: str,
    expected_version: int | None = Query(None),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _apply_template_edit(
        db,
        identity,
        template_id,
        expected_version,
        lambda t: form_template_service.remove_field_option(t, field_id, value),
    )


@router.put(
    "/templates/{template_id}/fields/{field_id}/validation/{kind}",
    response_model=TemplateEditResponse,
)
def set_field_validation_rule(
    template_id: str,
    field_id: str,
    kind: ValidationRuleKind,
    body: ValidationRuleUpdate,
    expected_version: int | None = Query(None),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _apply_template_edit(
        db,
        identity,
        template_id,
        expected_version,
        lambda t: form_template_service.set_field_validation_rule(t, field_id, kind, body.value),
    )


# =============================================================================
# Submissions
# =============================================================================


@router.post(
    "/templates/{template_id}/submissions", response_model=FormSubmission, status_code=201
)
def submit_form(
    template_id: str,
    body: SubmissionCreate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    try:
        template = form_store.get_template_or_raise(db, identity.org_id, template_id)
        submission = form_submission_service.submit(
            template,
            body.values,
            submitted_by=identity.user_id,
            submitted_by_name=body.submitted_by_name,
        )
        return form_store.save_submission(db, identity.org_id, submission)
    except FormServiceError as exc:
        raise _http_error(exc) from exc


@router.post("/templates/{template_id}/drafts", response_model=FormSubmission, status_code=201)
def save_draft(
    template_id: str,
    body: SubmissionCreate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    try:
        template = form_store.get_template_or_raise(db, identity.org_id, template_id)
        draft = form_submission_service.save_draft(
            template,
            body.values,
            submitted_by=identity.user_id,
            submitted_by_name=body.submitted_by_name,
        )
        return form_store.save_submission(db, identity.org_id, draft)
    except FormServiceError as exc:
        raise _http_error(exc) from exc


@router.get("/submissions", response_model=list[FormSubmission])
def list_submissions(
    form_template_id: str | None = Query(None),
    status: SubmissionStatus | None = Query(None),
    submitted_by: str | None = Query(None),
    search: str | None = Query(None),
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    if identity.role == Role.USER:
        submitted_by = identity.user_id
    filters = SubmissionFilter(
        form_template_id=form_template_id,
        status=status,
        submitted_by=submitted_by,
        search=search,
    )
    return form_store.list_submissions(db, identity.org_id, filters)


@router.get("/submissions/export")
def export_submissions(
    form_template_id: str | None = Query(None),
    status: SubmissionStatus | None = Query(None),
    search: str | None = Query(None),
    identity: Identity = Depends(require_reviewer),
    db: Session = Depends(get_db),
):
    filters = SubmissionFilter(form_template_id=form_template_id, status=status, search=search)
    submissions = form_store.list_submissions(db, identity.org_id, filters)
    templates = {t.id: t for t in form_store.list_templates(db, identity.org_id)}
    content = submission_export_service.build_submissions_csv(submissions, templates)
    logger.info(
        "Exported submissions",
        extra={
            **build_log_context(user_id=identity.user_id, org_id=identity.org_id),
            "row_count": len(submissions),
        },
    )
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="form_submissions.csv"'},
    )


@router.get("/submissions/{submission_id}", response_model=SubmissionDetailRead)
def get_submission(
    submission_id: str,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    submission = _get_submission(db, identity, submission_id)
    try:
        template = form_store.get_template_or_raise(
            db, identity.org_id, submission.form_template_id
        )
    except FormServiceError as exc:
        raise _http_error(exc) from exc
    return SubmissionDetailRead(
        submission=submission,
        status_label=form_submission_service.status_label(submission.status),
        answers=form_submission_service.render(submission, template),
    )


@router.post("/submissions/{submission_id}/submit", response_model=FormSubmission)
def submit_draft(
    submission_id: str,
    body: DraftSubmit,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    draft = _get_submission(db, identity, submission_id)
    if draft.submitted_by != identity.user_id:
        raise HTTPException(status_code=403, detail="Only the author can submit a draft")
    try:
        template = form_store.get_template_or_raise(db, identity.org_id, draft.form_template_id)
        submission = form_submission_service.submit_draft(template, draft, body.values)
        return form_store.save_submission(db, identity.org_id, submission)
    except FormServiceError as exc:
        raise _http_error(exc) from exc


@router.post("/submissions/{submission_id}/status", response_model=FormSubmission)
def update_submission_status(
    submission_id: str,
    body: SubmissionStatusUpdate,
    identity: Identity = Depends(require_reviewer),
    db: Session = Depends(get_db),
):
    submission = _get_submission(db, identity, submission_id)
    try:
        updated = form_submission_service.transition(
            submission,
            body.status,
            reviewer_id=identity.user_id,
            review_notes=body.review_notes,
        )
        return form_store.save_submission(db, identity.org_id, updated)
    except FormServiceError as exc:
        raise _http_error(exc) from exc
