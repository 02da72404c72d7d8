"""Tests for the built-in template library."""

import pytest

from safetyforms.db.enums import FieldType, FormCategory
from safetyforms.services import form_submission_service, form_template_library, form_template_service
from safetyforms.services.form_errors import TemplateNotFoundError


def test_list_system_templates():
    summaries = {s.system_key: s for s in form_template_library.list_system_templates()}
    assert summaries["incident-report-basic"].name == "Basic Incident Report"
    assert summaries["incident-report-basic"].category == FormCategory.INCIDENT
    assert summaries["heat-stress-prevention"].category == FormCategory.HEAT_PREVENTION
    assert summaries["incident-report-basic"].field_count == 7


def test_instantiate_gives_fresh_ids():
    first = form_template_library.instantiate_system_template("incident-report-basic", created_by="a")
    second = form_template_library.instantiate_system_template("incident-report-basic")
    assert first.id != second.id
    assert {f.id for f in first.fields}.isdisjoint({f.id for f in second.fields})
    assert first.system_key == "incident-report-basic"
    assert first.created_by == "a"
    assert [f.order for f in form_template_service.active_fields(first)] == list(range(7))
    assert not any(f.persisted for f in first.fields)


def test_heat_template_carries_numeric_bounds():
    template = form_template_library.instantiate_system_template("heat-stress-prevention")
    humidity = next(f for f in template.fields if f.label == "Humidity (%)")
    assert humidity.type == FieldType.NUMBER
    result = form_submission_service.check_values(template, {humidity.id: 120})
    assert result.field_errors[humidity.id] == "Value must be at most 100"


def test_unknown_system_template():
    with pytest.raises(TemplateNotFoundError):
        form_template_library.instantiate_system_template("missing")
