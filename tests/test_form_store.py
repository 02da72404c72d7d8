"""Tests for template/submission persistence and optimistic locking."""

import pytest

from safetyforms.db.enums import FieldType, SubmissionStatus
from safetyforms.services import form_store, form_submission_service, form_template_service
from safetyforms.services.form_errors import (
    ConcurrentModificationError,
    FieldTypeImmutableError,
    FormServiceError,
    TemplateNotFoundError,
)
from safetyforms.services.form_store import SubmissionFilter


def test_first_save_sets_version_and_freezes_field_types(db, org_id, incident_template):
    stored = form_store.save_template(db, org_id, incident_template)
    assert stored.version == 1
    assert all(f.persisted for f in stored.fields)

    loaded = form_store.load_template(db, org_id, incident_template.id)
    assert loaded == stored
    with pytest.raises(FieldTypeImmutableError):
        form_template_service.update_field(loaded, loaded.fields[0].id, {"type": "number"})


def test_templates_are_scoped_to_organization(db, org_id, incident_template):
    form_store.save_template(db, org_id, incident_template)
    assert form_store.load_template(db, "other-org", incident_template.id) is None
    assert form_store.list_templates(db, "other-org") == []
    with pytest.raises(TemplateNotFoundError):
        form_store.get_template_or_raise(db, "other-org", incident_template.id)


def test_save_bumps_version(db, org_id, incident_template):
    stored = form_store.save_template(db, org_id, incident_template)
    edited = form_template_service.add_field(stored, FieldType.DATE, "When")
    saved_again = form_store.save_template(db, org_id, edited)
    assert saved_again.version == 2
    assert form_store.load_template(db, org_id, stored.id).version == 2


def test_concurrent_save_is_rejected(db, org_id, incident_template):
    form_store.save_template(db, org_id, incident_template)
    first = form_store.load_template(db, org_id, incident_template.id)
    second = form_store.load_template(db, org_id, incident_template.id)

    form_store.save_template(db, org_id, form_template_service.update_details(first, {"name": "A"}))
    with pytest.raises(ConcurrentModificationError) as exc_info:
        form_store.save_template(
            db, org_id, form_template_service.update_details(second, {"name": "B"})
        )
    assert exc_info.value.expected == 1
    assert exc_info.value.actual == 2
    assert form_store.load_template(db, org_id, incident_template.id).name == "A"


def test_explicit_expected_version_mismatch(db, org_id, incident_template):
    stored = form_store.save_template(db, org_id, incident_template)
    with pytest.raises(ConcurrentModificationError):
        form_store.save_template(db, org_id, stored, expected_version=5)


def test_new_template_with_nonzero_expected_version(db, org_id, incident_template):
    with pytest.raises(ConcurrentModificationError):
        form_store.save_template(db, org_id, incident_template, expected_version=3)


def _saved_submission(db, org_id, template, title="x", user="worker-1", name=None):
    title_id = template.fields[0].id
    submission = form_submission_service.submit(
        template, {title_id: title}, submitted_by=user, submitted_by_name=name
    )
    return form_store.save_submission(db, org_id, submission)


def test_save_and_load_submission(db, org_id, incident_template):
    template = form_store.save_template(db, org_id, incident_template)
    submission = _saved_submission(db, org_id, template)
    assert form_store.load_submission(db, org_id, submission.id) == submission


def test_submission_requires_existing_template(db, org_id, incident_template):
    submission = form_submission_service.submit(
        incident_template, {incident_template.fields[0].id: "x"}, submitted_by="u"
    )
    with pytest.raises(TemplateNotFoundError):
        form_store.save_submission(db, org_id, submission)


def test_status_change_is_stored(db, org_id, incident_template):
    template = form_store.save_template(db, org_id, incident_template)
    submission = _saved_submission(db, org_id, template)
    reviewed = form_submission_service.transition(submission, "inReview", reviewer_id="a1")
    form_store.save_submission(db, org_id, reviewed)
    loaded = form_store.load_submission(db, org_id, submission.id)
    assert loaded.status == SubmissionStatus.IN_REVIEW
    assert loaded.reviewed_by == "a1"


def test_submitted_answers_cannot_change(db, org_id, incident_template):
    template = form_store.save_template(db, org_id, incident_template)
    submission = _saved_submission(db, org_id, template)
    tampered = submission.model_copy(update={"values": {template.fields[0].id: "changed"}})
    with pytest.raises(FormServiceError):
        form_store.save_submission(db, org_id, tampered)


def test_list_submissions_filters(db, org_id, incident_template):
    template = form_store.save_template(db, org_id, incident_template)
    other = form_store.save_template(
        db, org_id, form_template_service.create_template("Heat Checklist")
    )
    a = _saved_submission(db, org_id, template, user="worker-1", name="Ana Lopez")
    b = _saved_submission(db, org_id, template, user="worker-2", name="Ben Cho")
    c = form_store.save_submission(
        db, org_id, form_submission_service.submit(other, {}, submitted_by="worker-1")
    )
    form_store.save_submission(
        db, org_id, form_submission_service.transition(b, "inReview", reviewer_id="r")
    )

    def ids(filters=None):
        return {s.id for s in form_store.list_submissions(db, org_id, filters)}

    assert ids() == {a.id, b.id, c.id}
    assert ids(SubmissionFilter(form_template_id=template.id)) == {a.id, b.id}
    assert ids(SubmissionFilter(status=SubmissionStatus.IN_REVIEW)) == {b.id}
    assert ids(SubmissionFilter(submitted_by="worker-1")) == {a.id, c.id}
    assert ids(SubmissionFilter(search="ana")) == {a.id}
    assert ids(SubmissionFilter(search="heat")) == {c.id}
    assert form_store.list_submissions(db, "other-org") == []
