"""Catalog of supported field types and the configuration each accepts."""

from dataclasses import dataclass

from safetyforms.db.enums import FieldType
from safetyforms.schemas.forms import FieldOption
from safetyforms.services.form_errors import UnknownFieldTypeError


@dataclass(frozen=True)
class FieldTypeConfiguration:
    """What a field of a given type may carry."""

    field_type: FieldType
    label: str
    supports_options: bool
    supports_numeric_validation: bool
    default_options: tuple[FieldOption, ...] = ()


DEFAULT_CHOICE_OPTIONS: tuple[FieldOption, ...] = (
    FieldOption(value="option_1", label="Option 1"),
)

_CATALOG: dict[FieldType, FieldTypeConfiguration] = {
    FieldType.TEXT: FieldTypeConfiguration(FieldType.TEXT, "Short Text", False, False),
    FieldType.TEXTAREA: FieldTypeConfiguration(FieldType.TEXTAREA, "Long Text", False, False),
    FieldType.NUMBER: FieldTypeConfiguration(FieldType.NUMBER, "Number", False, True),
    FieldType.DATE: FieldTypeConfiguration(FieldType.DATE, "Date", False, False),
    FieldType.SELECT: FieldTypeConfiguration(
        FieldType.SELECT, "Dropdown Select", True, False, DEFAULT_CHOICE_OPTIONS
    ),
    FieldType.MULTISELECT: FieldTypeConfiguration(
        FieldType.MULTISELECT, "Multi-Select", True, False, DEFAULT_CHOICE_OPTIONS
    ),
    FieldType.CHECKBOX: FieldTypeConfiguration(FieldType.CHECKBOX, "Checkbox", False, False),
    FieldType.RADIO: FieldTypeConfiguration(
        FieldType.RADIO, "Radio Buttons", True, False, DEFAULT_CHOICE_OPTIONS
    ),
    FieldType.FILE: FieldTypeConfiguration(FieldType.FILE, "File Upload", False, False),
    # Member choices come from the organization roster at render time.
    FieldType.EMPLOYEE_LIST: FieldTypeConfiguration(
        FieldType.EMPLOYEE_LIST, "Employee List", False, False
    ),
}


def coerce_field_type(value: FieldType | str) -> FieldType:
    if isinstance(value, FieldType):
        return value
    try:
        return FieldType(value)
    except ValueError as exc:
        raise UnknownFieldTypeError(value) from exc


def configuration_for(field_type: FieldType | str) -> FieldTypeConfiguration:
    """Look up the configuration for a field type.

    Raises:
        UnknownFieldTypeError if the type is outside the catalog
    """
    resolved = coerce_field_type(field_type)
    config = _CATALOG.get(resolved)
    if config is None:
        raise UnknownFieldTypeError(field_type)
    return config


def list_field_types() -> list[FieldTypeConfiguration]:
    return [_CATALOG[field_type] for field_type in FieldType]
