"""Compile active form fields into an executable validation contract.

Rules are keyed by field id (labels are not unique). Deprecated fields never
enter a contract. Every field type in the catalog maps to exactly one rule
builder; a missing builder fails at import time.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field as dataclass_field
from datetime import date, datetime
from typing import Any, Callable

from safetyforms.core.config import settings
from safetyforms.db.enums import FieldType, ValidationRuleKind
from safetyforms.schemas.forms import FormField
from safetyforms.services.field_type_catalog import configuration_for
from safetyforms.services.form_errors import FormServiceError

FieldRule = Callable[[Any], str | None]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of checking submission values against a contract."""

    ok: bool
    field_errors: dict[str, str] = dataclass_field(default_factory=dict)


@dataclass(frozen=True)
class ValidationContract:
    """Per-field rules compiled from an active field list."""

    rules: tuple[tuple[str, FieldRule], ...]

    @property
    def field_ids(self) -> list[str]:
        return [field_id for field_id, _ in self.rules]

    def check(self, values: Mapping[str, Any] | None) -> ValidationResult:
        if values is None:
            values = {}
        if not isinstance(values, Mapping):
            raise FormServiceError("Values must be an object")
        errors: dict[str, str] = {}
        for field_id, rule in self.rules:
            message = rule(values.get(field_id))
            if message:
                errors[field_id] = message
        return ValidationResult(ok=not errors, field_errors=errors)


def compile_contract(
    fields: Iterable[FormField],
    *,
    enforce_required_file_fields: bool | None = None,
) -> ValidationContract:
    """Build a contract for the given active fields.

    Deprecated fields passed in by mistake are skipped.
    """
    enforce_files = (
        settings.ENFORCE_REQUIRED_FILE_FIELDS
        if enforce_required_file_fields is None
        else enforce_required_file_fields
    )
    rules: list[tuple[str, FieldRule]] = []
    for field in fields:
        if field.deprecated:
            continue
        rules.append((field.id, synthesize_rule(field, enforce_required_file_fields=enforce_files)))
    return ValidationContract(rules=tuple(rules))


def synthesize_rule(field: FormField, *, enforce_required_file_fields: bool = False) -> FieldRule:
    config = configuration_for(field.type)
    if config.field_type == FieldType.FILE:
        return _file_rule(field, enforce_required_file_fields)
    return _RULE_BUILDERS[config.field_type](field)


# =============================================================================
# Helpers
# =============================================================================


def _display_name(field: FormField) -> str:
    return field.label or field.id


def _required_message(field: FormField) -> str:
    return f"{_display_name(field)} is required"


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def _known_option_values(field: FormField) -> set[str]:
    # Deprecated options still validate so legacy drafts re-check cleanly.
    return {o.value for o in field.options or ()}


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            numeric = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            numeric = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(numeric) or math.isinf(numeric):
        return None
    return numeric


def _is_date_value(value: Any) -> bool:
    if isinstance(value, (date, datetime)):
        return True
    if isinstance(value, str):
        candidate = value.strip()
        try:
            date.fromisoformat(candidate)
            return True
        except ValueError:
            pass
        try:
            datetime.fromisoformat(candidate.replace("Z", "+00:00"))
            return True
        except ValueError:
            return False
    return False


# =============================================================================
# Rule builders
# =============================================================================


def _text_rule(field: FormField) -> FieldRule:
    def rule(value: Any) -> str | None:
        if _is_blank(value):
            return _required_message(field) if field.required else None
        if not isinstance(value, str):
            return f"{_display_name(field)} must be text"
        return None

    return rule


def _number_rule(field: FormField) -> FieldRule:
    bounds = [
        rule
        for rule in field.validation or ()
        if rule.kind in (ValidationRuleKind.MIN, ValidationRuleKind.MAX)
    ]

    def rule(value: Any) -> str | None:
        if _is_blank(value):
            return _required_message(field) if field.required else None
        numeric = _as_number(value)
        if numeric is None:
            return f"{_display_name(field)} must be a number"
        messages = []
        for bound in bounds:
            if bound.kind == ValidationRuleKind.MIN and numeric < bound.value:
                messages.append(bound.message)
            if bound.kind == ValidationRuleKind.MAX and numeric > bound.value:
                messages.append(bound.message)
        return "; ".join(messages) or None

    return rule


def _date_rule(field: FormField) -> FieldRule:
    def rule(value: Any) -> str | None:
        if _is_blank(value):
            return _required_message(field) if field.required else None
        if not _is_date_value(value):
            return f"{_display_name(field)} must be a date (YYYY-MM-DD)"
        return None

    return rule


def _single_choice_rule(field: FormField) -> FieldRule:
    allowed = _known_option_values(field)

    def rule(value: Any) -> str | None:
        if _is_blank(value):
            return _required_message(field) if field.required else None
        if not isinstance(value, str):
            return f"{_display_name(field)} must be a single choice"
        if value not in allowed:
            return f"Invalid option for {_display_name(field)}"
        return None

    return rule


def _multi_choice_rule(field: FormField) -> FieldRule:
    allowed = _known_option_values(field)

    def rule(value: Any) -> str | None:
        if value is None:
            value = []
        if not isinstance(value, (list, tuple)):
            return f"{_display_name(field)} must be a list of choices"
        if any(not isinstance(item, str) for item in value):
            return f"{_display_name(field)} must be a list of choices"
        if field.required and not value:
            return _required_message(field)
        if any(item not in allowed for item in value):
            return f"Invalid option for {_display_name(field)}"
        return None

    return rule


def _checkbox_rule(field: FormField) -> FieldRule:
    # Required-ness is presentational; False is a valid answer.
    def rule(value: Any) -> str | None:
        if value is None or isinstance(value, bool):
            return None
        return f"{_display_name(field)} must be true or false"

    return rule


def _file_rule(field: FormField, enforce_required: bool = False) -> FieldRule:
    # Attachment presence is enforced by the upload layer unless configured.
    def rule(value: Any) -> str | None:
        if enforce_required and field.required and (value is None or value == "" or value == []):
            return _required_message(field)
        return None

    return rule


def _employee_rule(field: FormField) -> FieldRule:
    def rule(value: Any) -> str | None:
        if _is_blank(value):
            return _required_message(field) if field.required else None
        if not isinstance(value, str):
            return f"{_display_name(field)} must identify one member"
        return None

    return rule


_RULE_BUILDERS: dict[FieldType, Callable[[FormField], FieldRule]] = {
    FieldType.TEXT: _text_rule,
    FieldType.TEXTAREA: _text_rule,
    FieldType.NUMBER: _number_rule,
    FieldType.DATE: _date_rule,
    FieldType.SELECT: _single_choice_rule,
    FieldType.RADIO: _single_choice_rule,
    FieldType.MULTISELECT: _multi_choice_rule,
    FieldType.CHECKBOX: _checkbox_rule,
    FieldType.FILE: _file_rule,
    FieldType.EMPLOYEE_LIST: _employee_rule,
}

_missing_builders = set(FieldType) - set(_RULE_BUILDERS)
if _missing_builders:
    raise RuntimeError(
        f"No validation rule for field types: {sorted(t.value for t in _missing_builders)}"
    )
