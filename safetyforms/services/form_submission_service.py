"""Form submission service for submit, drafts, review flow and rendering."""

import logging
import uuid
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any

from safetyforms.db.enums import FieldType, SubmissionStatus
from safetyforms.schemas.forms import (
    FormField,
    FormSubmission,
    FormTemplate,
    RenderedAnswer,
)
from safetyforms.services import form_template_service, form_validator
from safetyforms.services.form_errors import InvalidTransitionError, ValidationFailedError
from safetyforms.services.form_field_service import format_number

logger = logging.getLogger(__name__)

# Drafts leave draft only through submit_draft, which validates. Terminal review
# states may be corrected, but never sent back to draft/submitted.
ALLOWED_TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.DRAFT: frozenset(),
    SubmissionStatus.SUBMITTED: frozenset({SubmissionStatus.IN_REVIEW}),
    SubmissionStatus.IN_REVIEW: frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED}),
    SubmissionStatus.APPROVED: frozenset({SubmissionStatus.IN_REVIEW, SubmissionStatus.REJECTED}),
    SubmissionStatus.REJECTED: frozenset({SubmissionStatus.IN_REVIEW, SubmissionStatus.APPROVED}),
}

REVIEW_STATUSES = frozenset(
    {SubmissionStatus.IN_REVIEW, SubmissionStatus.APPROVED, SubmissionStatus.REJECTED}
)

STATUS_LABELS: dict[SubmissionStatus, str] = {
    SubmissionStatus.DRAFT: "Draft",
    SubmissionStatus.SUBMITTED: "Submitted",
    SubmissionStatus.IN_REVIEW: "In Review",
    SubmissionStatus.APPROVED: "Approved",
    SubmissionStatus.REJECTED: "Rejected",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def status_label(status: SubmissionStatus | str) -> str:
    try:
        return STATUS_LABELS[SubmissionStatus(status)]
    except ValueError:
        return str(status)


def allowed_targets(status: SubmissionStatus) -> frozenset[SubmissionStatus]:
    return ALLOWED_TRANSITIONS.get(status, frozenset())


def check_values(
    template: FormTemplate,
    values: Mapping[str, Any] | None,
    *,
    enforce_required_file_fields: bool | None = None,
) -> form_validator.ValidationResult:
    contract = form_validator.compile_contract(
        form_template_service.active_fields(template),
        enforce_required_file_fields=enforce_required_file_fields,
    )
    return contract.check(values)


def submit(
    template: FormTemplate,
    values: Mapping[str, Any] | None,
    *,
    submitted_by: str,
    submitted_by_name: str | None = None,
    enforce_required_file_fields: bool | None = None,
) -> FormSubmission:
    """Validate values and create a submitted record.

    Raises:
        ValidationFailedError with per-field messages; no record is created
    """
    result = check_values(
        template, values, enforce_required_file_fields=enforce_required_file_fields
    )
    if not result.ok:
        raise ValidationFailedError(result.field_errors)

    now = _now()
    submission = FormSubmission(
        id=str(uuid.uuid4()),
        form_template_id=template.id,
        form_template_version=template.version,
        submitted_by=submitted_by,
        submitted_by_name=submitted_by_name,
        submitted_at=now,
        status=SubmissionStatus.SUBMITTED,
        values=_restrict_to_active(template, values),
        created_at=now,
        updated_at=now,
    )
    logger.info(
        "Form submitted",
        extra={"template_id": template.id, "submission_id": submission.id},
    )
    return submission


def save_draft(
    template: FormTemplate,
    values: Mapping[str, Any] | None,
    *,
    submitted_by: str,
    submitted_by_name: str | None = None,
) -> FormSubmission:
    """Store partial answers without validation."""
    now = _now()
    return FormSubmission(
        id=str(uuid.uuid4()),
        form_template_id=template.id,
        form_template_version=template.version,
        submitted_by=submitted_by,
        submitted_by_name=submitted_by_name,
        status=SubmissionStatus.DRAFT,
        values=_restrict_to_active(template, values),
        created_at=now,
        updated_at=now,
    )


def submit_draft(
    template: FormTemplate,
    draft: FormSubmission,
    values: Mapping[str, Any] | None = None,
    *,
    enforce_required_file_fields: bool | None = None,
) -> FormSubmission:
    """Validate a draft (optionally with replacement values) and submit it.

    Raises:
        InvalidTransitionError if the record is not a draft
        ValidationFailedError if the values fail the current contract
    """
    if draft.status != SubmissionStatus.DRAFT:
        raise InvalidTransitionError(draft.status.value, SubmissionStatus.SUBMITTED.value)
    answers = draft.values if values is None else values
    result = check_values(
        template, answers, enforce_required_file_fields=enforce_required_file_fields
    )
    if not result.ok:
        raise ValidationFailedError(result.field_errors)

    now = _now()
    return draft.model_copy(
        update={
            "status": SubmissionStatus.SUBMITTED,
            "values": _restrict_to_active(template, answers),
            "form_template_version": template.version,
            "submitted_at": now,
            "updated_at": now,
        }
    )


def transition(
    submission: FormSubmission,
    new_status: SubmissionStatus | str,
    *,
    reviewer_id: str | None = None,
    review_notes: str | None = None,
) -> FormSubmission:
    """Move a submission along the review state machine.

    Raises:
        InvalidTransitionError if the target is not reachable from the current status
    """
    try:
        target = SubmissionStatus(new_status)
    except ValueError as exc:
        raise InvalidTransitionError(submission.status.value, str(new_status)) from exc

    if target not in allowed_targets(submission.status):
        raise InvalidTransitionError(submission.status.value, target.value)

    now = _now()
    updates: dict[str, Any] = {"status": target, "updated_at": now}
    if target in REVIEW_STATUSES:
        updates["reviewed_by"] = reviewer_id
        updates["reviewed_at"] = now
        if review_notes is not None:
            updates["review_notes"] = review_notes

    updated = submission.model_copy(update=updates)
    logger.info(
        "Submission status changed",
        extra={
            "submission_id": submission.id,
            "from_status": submission.status.value,
            "to_status": target.value,
        },
    )
    return updated


def render(
    submission: FormSubmission,
    template: FormTemplate,
    *,
    member_names: Mapping[str, str] | None = None,
) -> list[RenderedAnswer]:
    """Pair a submission's answers with field labels for display.

    Active fields come first in display order. Answers to fields deprecated
    since submission follow, labeled from the stored field definition.
    """
    answers: list[RenderedAnswer] = []
    values = submission.values
    active = form_template_service.active_fields(template)
    active_ids = {f.id for f in active}

    for field in active:
        answers.append(_rendered(field, values.get(field.id), member_names))

    retired = sorted(
        (f for f in template.fields if f.deprecated and f.id in values),
        key=lambda f: f.order,
    )
    for field in retired:
        answers.append(_rendered(field, values.get(field.id), member_names))

    known_ids = active_ids | {f.id for f in retired}
    for field_id, value in values.items():
        if field_id in known_ids:
            continue
        logger.warning(
            "Submission references a field missing from its template",
            extra={"submission_id": submission.id, "field_id": field_id},
        )
        answers.append(
            RenderedAnswer(
                field_id=field_id,
                label=field_id,
                type=FieldType.TEXT,
                value=value,
                display_value=_plain(value),
                deprecated=True,
            )
        )
    return answers


def format_display_value(
    field: FormField,
    value: Any,
    member_names: Mapping[str, str] | None = None,
) -> str:
    """Human-readable value; option labels resolve even for deprecated options."""
    if value is None or value == "" or value == []:
        return ""
    if field.type in (FieldType.SELECT, FieldType.RADIO):
        return _option_label(field, value)
    if field.type == FieldType.MULTISELECT:
        items = value if isinstance(value, (list, tuple)) else [value]
        return ", ".join(_option_label(field, item) for item in items)
    if field.type == FieldType.CHECKBOX:
        return "Yes" if value is True else "No" if value is False else str(value)
    if field.type == FieldType.DATE:
        return format_date(value)
    if field.type == FieldType.NUMBER:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return format_number(value)
        return str(value)
    if field.type == FieldType.EMPLOYEE_LIST:
        if member_names and isinstance(value, str):
            return member_names.get(value, value)
        return str(value)
    if field.type == FieldType.FILE:
        return _file_display(value)
    return _plain(value)


def format_date(value: Any) -> str:
    """Format as `MMM d, yyyy` (e.g. `Jul 4, 2025`)."""
    parsed: date | None = None
    if isinstance(value, datetime):
        parsed = value.date()
    elif isinstance(value, date):
        parsed = value
    elif isinstance(value, str):
        candidate = value.strip()
        try:
            parsed = date.fromisoformat(candidate)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(candidate.replace("Z", "+00:00")).date()
            except ValueError:
                return candidate
    if parsed is None:
        return str(value)
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def _rendered(
    field: FormField, value: Any, member_names: Mapping[str, str] | None
) -> RenderedAnswer:
    return RenderedAnswer(
        field_id=field.id,
        label=field.label or field.id,
        type=field.type,
        value=value,
        display_value=format_display_value(field, value, member_names),
        deprecated=field.deprecated,
    )


def _option_label(field: FormField, value: Any) -> str:
    option = field.get_option(value) if isinstance(value, str) else None
    if option is not None and option.label:
        return option.label
    return str(value)


def _file_display(value: Any) -> str:
    items = value if isinstance(value, (list, tuple)) else [value]
    names = []
    for item in items:
        if isinstance(item, Mapping):
            names.append(str(item.get("name") or item.get("filename") or item.get("url") or ""))
        else:
            names.append(str(item))
    return ", ".join(n for n in names if n)


def _plain(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _restrict_to_active(
    template: FormTemplate, values: Mapping[str, Any] | None
) -> dict[str, Any]:
    active_ids = {f.id for f in form_template_service.active_fields(template)}
    return {key: value for key, value in (values or {}).items() if key in active_ids}
