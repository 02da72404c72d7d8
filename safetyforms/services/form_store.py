"""Persistence for form templates and submissions.

Templates are saved with compare-and-swap on `version`: a save names the
version it was edited from, and a mismatch raises ConcurrentModificationError
instead of silently overwriting another author's edits.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from safetyforms.core.structured_logging import build_log_context
from safetyforms.db.enums import SubmissionStatus
from safetyforms.db.models import FormSubmissionRecord, FormTemplateRecord
from safetyforms.schemas.forms import FormSubmission, FormTemplate
from safetyforms.services import (
    form_submission_service,
    form_template_service,
    submission_events,
)
from safetyforms.services.form_errors import (
    ConcurrentModificationError,
    FormServiceError,
    SubmissionNotFoundError,
    TemplateNotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionFilter:
    form_template_id: str | None = None
    status: SubmissionStatus | None = None
    submitted_by: str | None = None
    search: str | None = None


def check_version(current_version: int, expected_version: int) -> None:
    """
    Check if expected version matches current.

    Raises:
        ConcurrentModificationError if mismatch
    """
    if current_version != expected_version:
        raise ConcurrentModificationError(expected_version, current_version)


# =============================================================================
# Templates
# =============================================================================


def _template_from_record(record: FormTemplateRecord) -> FormTemplate:
    return FormTemplate.model_validate({**record.payload, "version": record.version})


def _get_template_record(db: Session, org_id: str, template_id: str) -> FormTemplateRecord | None:
    return (
        db.query(FormTemplateRecord)
        .filter(
            FormTemplateRecord.organization_id == org_id,
            FormTemplateRecord.id == template_id,
        )
        .first()
    )


def load_template(db: Session, org_id: str, template_id: str) -> FormTemplate | None:
    record = _get_template_record(db, org_id, template_id)
    if not record:
        return None
    return _template_from_record(record)


def get_template_or_raise(db: Session, org_id: str, template_id: str) -> FormTemplate:
    template = load_template(db, org_id, template_id)
    if template is None:
        raise TemplateNotFoundError(f"Template not found: {template_id}")
    return template


def list_templates(db: Session, org_id: str) -> list[FormTemplate]:
    records = (
        db.query(FormTemplateRecord)
        .filter(FormTemplateRecord.organization_id == org_id)
        .order_by(FormTemplateRecord.name.asc())
        .all()
    )
    return [_template_from_record(r) for r in records]


def save_template(
    db: Session,
    org_id: str,
    template: FormTemplate,
    expected_version: int | None = None,
) -> FormTemplate:
    """Persist a template and return the stored value.

    Saving freezes the type of every field and bumps `version`. When
    `expected_version` is omitted, the version carried by `template` is used.

    Raises:
        ConcurrentModificationError if the stored version moved on
    """
    expected = template.version if expected_version is None else expected_version
    record = _get_template_record(db, org_id, template.id)
    now = datetime.now(timezone.utc)

    if record is None:
        check_version(0, expected)
        stored = form_template_service.mark_persisted(template).model_copy(
            update={"version": 1, "updated_at": now}
        )
        db.add(
            FormTemplateRecord(
                id=stored.id,
                organization_id=org_id,
                name=stored.name,
                category=stored.category.value,
                version=stored.version,
                payload=stored.model_dump(mode="json"),
                created_at=stored.created_at,
                updated_at=stored.updated_at,
            )
        )
        db.commit()
        return stored

    stored = form_template_service.mark_persisted(template).model_copy(
        update={"version": expected + 1, "updated_at": now}
    )
    result = db.execute(
        update(FormTemplateRecord)
        .where(
            FormTemplateRecord.id == template.id,
            FormTemplateRecord.organization_id == org_id,
            FormTemplateRecord.version == expected,
        )
        .values(
            name=stored.name,
            category=stored.category.value,
            version=stored.version,
            payload=stored.model_dump(mode="json"),
            updated_at=now,
        )
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(record)
        logger.warning(
            "Template save rejected: stale version",
            extra=build_log_context(org_id=org_id, template_id=template.id),
        )
        raise ConcurrentModificationError(expected, record.version)
    db.commit()
    return stored


# =============================================================================
# Submissions
# =============================================================================


def _submission_from_record(record: FormSubmissionRecord) -> FormSubmission:
    return FormSubmission.model_validate(record.payload)


def _get_submission_record(
    db: Session, org_id: str, submission_id: str
) -> FormSubmissionRecord | None:
    return (
        db.query(FormSubmissionRecord)
        .filter(
            FormSubmissionRecord.organization_id == org_id,
            FormSubmissionRecord.id == submission_id,
        )
        .first()
    )


def load_submission(db: Session, org_id: str, submission_id: str) -> FormSubmission | None:
    record = _get_submission_record(db, org_id, submission_id)
    if not record:
        return None
    return _submission_from_record(record)


def get_submission_or_raise(db: Session, org_id: str, submission_id: str) -> FormSubmission:
    submission = load_submission(db, org_id, submission_id)
    if submission is None:
        raise SubmissionNotFoundError(f"Submission not found: {submission_id}")
    return submission


def save_submission(db: Session, org_id: str, submission: FormSubmission) -> FormSubmission:
    """Insert a submission, or store a status change on an existing one.

    Status-change listeners run only after the commit succeeds.

    Raises:
        FormServiceError if a non-draft submission's answers would change
    """
    record = _get_submission_record(db, org_id, submission.id)
    payload = submission.model_dump(mode="json")

    if record is None:
        if _get_template_record(db, org_id, submission.form_template_id) is None:
            raise TemplateNotFoundError(
                f"Template not found: {submission.form_template_id}"
            )
        db.add(
            FormSubmissionRecord(
                id=submission.id,
                organization_id=org_id,
                form_template_id=submission.form_template_id,
                status=submission.status.value,
                submitted_by=submission.submitted_by,
                submitted_by_name=submission.submitted_by_name,
                submitted_at=submission.submitted_at,
                payload=payload,
                created_at=submission.created_at,
                updated_at=submission.updated_at,
            )
        )
        db.commit()
        _publish_status_change(submission, None)
        return submission

    previous = _submission_from_record(record)
    if previous.status != SubmissionStatus.DRAFT and previous.values != submission.values:
        raise FormServiceError("Submitted answers cannot be changed")

    record.status = submission.status.value
    record.submitted_at = submission.submitted_at
    record.payload = payload
    record.updated_at = submission.updated_at
    db.commit()
    if previous.status != submission.status:
        _publish_status_change(submission, previous.status)
    return submission


def _publish_status_change(
    submission: FormSubmission, previous_status: SubmissionStatus | None
) -> None:
    if submission.status in form_submission_service.REVIEW_STATUSES:
        actor_id = submission.reviewed_by
    else:
        actor_id = submission.submitted_by
    submission_events.handle_status_changed(submission, previous_status, actor_id=actor_id)


def list_submissions(
    db: Session,
    org_id: str,
    filters: SubmissionFilter | None = None,
) -> list[FormSubmission]:
    filters = filters or SubmissionFilter()
    query = db.query(FormSubmissionRecord).filter(
        FormSubmissionRecord.organization_id == org_id
    )
    if filters.form_template_id:
        query = query.filter(FormSubmissionRecord.form_template_id == filters.form_template_id)
    if filters.status:
        query = query.filter(FormSubmissionRecord.status == SubmissionStatus(filters.status).value)
    if filters.submitted_by:
        query = query.filter(FormSubmissionRecord.submitted_by == filters.submitted_by)
    if filters.search and filters.search.strip():
        pattern = f"%{filters.search.strip().lower()}%"
        query = query.join(
            FormTemplateRecord, FormTemplateRecord.id == FormSubmissionRecord.form_template_id
        ).filter(
            or_(
                FormSubmissionRecord.submitted_by.ilike(pattern),
                FormSubmissionRecord.submitted_by_name.ilike(pattern),
                FormTemplateRecord.name.ilike(pattern),
            )
        )
    records = query.order_by(
        FormSubmissionRecord.created_at.desc(), FormSubmissionRecord.id.asc()
    ).all()
    return [_submission_from_record(r) for r in records]
