"""Tests for submitting, drafts, review transitions and rendering."""

import pytest

from safetyforms.db.enums import FieldType, SubmissionStatus
from safetyforms.services import form_submission_service, form_template_service
from safetyforms.services.form_errors import InvalidTransitionError, ValidationFailedError


def _fields(template):
    return {f.label: f for f in template.fields}


def _submit(template, values, user="worker-1"):
    return form_submission_service.submit(template, values, submitted_by=user)


def test_submit_valid_values(incident_template):
    f = _fields(incident_template)
    submission = _submit(incident_template, {f["Title"].id: "Fall from ladder", f["Severity"].id: "high"})
    assert submission.status == SubmissionStatus.SUBMITTED
    assert submission.submitted_at is not None
    assert submission.form_template_id == incident_template.id
    assert submission.values[f["Severity"].id] == "high"


def test_submit_invalid_values_raises_with_field_errors(incident_template):
    f = _fields(incident_template)
    with pytest.raises(ValidationFailedError) as exc_info:
        _submit(incident_template, {f["Workers Involved"].id: -1})
    errors = exc_info.value.field_errors
    assert set(errors) == {f["Title"].id, f["Workers Involved"].id}
    assert errors[f["Title"].id] == "Title is required"


def test_submit_drops_unknown_keys(incident_template):
    f = _fields(incident_template)
    submission = _submit(incident_template, {f["Title"].id: "x", "stray": "y"})
    assert "stray" not in submission.values


def test_draft_skips_validation_then_submits(incident_template):
    f = _fields(incident_template)
    draft = form_submission_service.save_draft(
        incident_template, {f["Severity"].id: "low"}, submitted_by="worker-1"
    )
    assert draft.status == SubmissionStatus.DRAFT
    assert draft.submitted_at is None

    with pytest.raises(ValidationFailedError):
        form_submission_service.submit_draft(incident_template, draft)

    submitted = form_submission_service.submit_draft(
        incident_template, draft, {f["Title"].id: "Dropped tool", f["Severity"].id: "low"}
    )
    assert submitted.id == draft.id
    assert submitted.status == SubmissionStatus.SUBMITTED
    assert submitted.submitted_at is not None


def test_submit_draft_requires_draft(incident_template):
    f = _fields(incident_template)
    submission = _submit(incident_template, {f["Title"].id: "x"})
    with pytest.raises(InvalidTransitionError):
        form_submission_service.submit_draft(incident_template, submission)


def test_review_transitions(incident_template):
    f = _fields(incident_template)
    submission = _submit(incident_template, {f["Title"].id: "x"})

    in_review = form_submission_service.transition(submission, "inReview", reviewer_id="analyst-1")
    assert in_review.status == SubmissionStatus.IN_REVIEW
    assert in_review.reviewed_by == "analyst-1"

    approved = form_submission_service.transition(
        in_review, SubmissionStatus.APPROVED, reviewer_id="analyst-1", review_notes="Looks good"
    )
    assert approved.status == SubmissionStatus.APPROVED
    assert approved.review_notes == "Looks good"
    assert approved.reviewed_at is not None
    assert approved.values == submission.values

    with pytest.raises(InvalidTransitionError):
        form_submission_service.transition(approved, SubmissionStatus.SUBMITTED)

    rejected = form_submission_service.transition(approved, SubmissionStatus.REJECTED)
    assert rejected.status == SubmissionStatus.REJECTED


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (SubmissionStatus.DRAFT, SubmissionStatus.SUBMITTED),
        (SubmissionStatus.DRAFT, SubmissionStatus.IN_REVIEW),
        (SubmissionStatus.SUBMITTED, SubmissionStatus.APPROVED),
        (SubmissionStatus.SUBMITTED, SubmissionStatus.SUBMITTED),
        (SubmissionStatus.IN_REVIEW, SubmissionStatus.DRAFT),
        (SubmissionStatus.REJECTED, SubmissionStatus.DRAFT),
    ],
)
def test_disallowed_transitions(incident_template, current, target):
    f = _fields(incident_template)
    submission = _submit(incident_template, {f["Title"].id: "x"}).model_copy(
        update={"status": current}
    )
    with pytest.raises(InvalidTransitionError):
        form_submission_service.transition(submission, target)


def test_unknown_status_is_invalid_transition(incident_template):
    f = _fields(incident_template)
    submission = _submit(incident_template, {f["Title"].id: "x"})
    with pytest.raises(InvalidTransitionError):
        form_submission_service.transition(submission, "archived")


def test_status_labels():
    assert form_submission_service.status_label(SubmissionStatus.IN_REVIEW) == "In Review"
    assert form_submission_service.status_label("approved") == "Approved"


def test_render_uses_deprecated_option_label(incident_template):
    f = _fields(incident_template)
    severity_id = f["Severity"].id
    template = form_template_service.mark_persisted(incident_template)
    submission = _submit(template, {f["Title"].id: "x", severity_id: "low"})

    template = form_template_service.remove_field_option(template, severity_id, "low").template
    answers = {a.field_id: a for a in form_submission_service.render(submission, template)}
    assert answers[severity_id].display_value == "Low"


def test_render_keeps_answers_of_deprecated_fields(incident_template):
    f = _fields(incident_template)
    template = form_template_service.mark_persisted(incident_template)
    submission = _submit(
        template, {f["Title"].id: "x", f["First Aid Given"].id: True, f["Workers Involved"].id: 3}
    )
    template = form_template_service.remove_field(template, f["First Aid Given"].id).template

    answers = form_submission_service.render(submission, template)
    labels = [a.label for a in answers]
    assert labels[:3] == ["Title", "Workers Involved", "Severity"]
    retired = answers[-1]
    assert retired.label == "First Aid Given"
    assert retired.deprecated is True
    assert retired.display_value == "Yes"


def test_render_unknown_key_falls_back_to_key(incident_template):
    f = _fields(incident_template)
    submission = _submit(incident_template, {f["Title"].id: "x"}).model_copy(
        update={"values": {f["Title"].id: "x", "legacy_key": "old"}}
    )
    answers = form_submission_service.render(submission, incident_template)
    assert answers[-1].label == "legacy_key"
    assert answers[-1].display_value == "old"


def test_format_display_value_for_types():
    template = form_template_service.create_template("T")
    for field_type in (FieldType.MULTISELECT, FieldType.DATE, FieldType.EMPLOYEE_LIST, FieldType.NUMBER):
        template = form_template_service.add_field(template, field_type, field_type.value)
    multi, date_field, employee, number = form_template_service.active_fields(template)
    template = form_template_service.add_field_option(template, multi.id, "Gloves")
    multi = template.get_field(multi.id)

    fmt = form_submission_service.format_display_value
    assert fmt(multi, ["option_1", "option_2"]) == "Option 1, Gloves"
    assert fmt(date_field, "2025-07-04") == "Jul 4, 2025"
    assert fmt(employee, "m-1", {"m-1": "Dana Ortiz"}) == "Dana Ortiz"
    assert fmt(number, 7.0) == "7"
    assert fmt(number, None) == ""
