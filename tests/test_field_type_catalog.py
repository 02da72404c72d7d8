"""Tests for the field type catalog."""

import pytest

from safetyforms.db.enums import FieldType
from safetyforms.services import field_type_catalog
from safetyforms.services.form_errors import UnknownFieldTypeError


def test_every_field_type_has_a_configuration():
    configs = field_type_catalog.list_field_types()
    assert [c.field_type for c in configs] == list(FieldType)


@pytest.mark.parametrize("field_type", ["select", "multiselect", "radio"])
def test_choice_types_take_options_with_a_default(field_type):
    config = field_type_catalog.configuration_for(field_type)
    assert config.supports_options is True
    assert config.supports_numeric_validation is False
    assert [(o.value, o.label) for o in config.default_options] == [("option_1", "Option 1")]


def test_only_number_supports_numeric_validation():
    numeric = [c.field_type for c in field_type_catalog.list_field_types() if c.supports_numeric_validation]
    assert numeric == [FieldType.NUMBER]


def test_employee_list_takes_no_options():
    config = field_type_catalog.configuration_for(FieldType.EMPLOYEE_LIST)
    assert config.supports_options is False
    assert config.default_options == ()
    assert config.label == "Employee List"


def test_unknown_type_is_rejected():
    with pytest.raises(UnknownFieldTypeError) as exc_info:
        field_type_catalog.configuration_for("signature")
    assert exc_info.value.field_type == "signature"
