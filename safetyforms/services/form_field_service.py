"""Form field operations.

Fields move through new (type mutable) -> persisted (type frozen) ->
deprecated (terminal). Options of a persisted field are never removed; they
are deprecated so historical answers stay readable.
"""

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field as dataclass_field
from typing import Any

from pydantic import BaseModel

from safetyforms.core.config import settings
from safetyforms.db.enums import FieldType, ValidationRuleKind
from safetyforms.schemas.forms import (
    FieldOption,
    FormField,
    StructuralWarning,
    ValidationRule,
)
from safetyforms.services.field_type_catalog import coerce_field_type, configuration_for
from safetyforms.services.form_errors import (
    EmptyOptionSetError,
    FieldTypeImmutableError,
    FormServiceError,
    OptionNotFoundError,
)

logger = logging.getLogger(__name__)

PATCHABLE_FIELD_PROPERTIES = frozenset(
    {"type", "label", "placeholder", "help_text", "required", "options", "validation"}
)


@dataclass(frozen=True)
class FieldEditResult:
    """New field value plus any structural warnings the edit produced."""

    field: FormField
    warnings: list[StructuralWarning] = dataclass_field(default_factory=list)


def new_field_id() -> str:
    return str(uuid.uuid4())


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def default_rule_message(kind: ValidationRuleKind, value: float) -> str:
    if kind == ValidationRuleKind.MIN:
        return f"Value must be at least {format_number(value)}"
    return f"Value must be at most {format_number(value)}"


def create_field(
    field_type: FieldType | str,
    label: str = "",
    *,
    order: int = 0,
    placeholder: str | None = None,
    help_text: str | None = None,
    required: bool = False,
    field_id: str | None = None,
) -> FormField:
    """Create a new, not yet persisted field.

    Choice types are seeded with a default option so the field renders.
    """
    config = configuration_for(field_type)
    return FormField(
        id=field_id or new_field_id(),
        type=config.field_type,
        label=label,
        placeholder=placeholder,
        help_text=help_text,
        required=required,
        order=order,
        options=config.default_options if config.supports_options else None,
    )


def update_field(
    field: FormField,
    patch: Mapping[str, Any],
    *,
    allow_empty_option_set: bool | None = None,
) -> FieldEditResult:
    """Apply a partial change to a field.

    Replacing the options of a persisted field deprecates the ones left out
    and reports each in `warnings`.

    Raises:
        FieldTypeImmutableError if the patch changes the type of a persisted field
        FormServiceError for properties that cannot be patched
    """
    unknown = set(patch) - PATCHABLE_FIELD_PROPERTIES
    if unknown:
        raise FormServiceError(
            f"Field properties cannot be patched: {', '.join(sorted(unknown))}"
        )

    new_type = field.type
    if patch.get("type") is not None:
        new_type = coerce_field_type(patch["type"])
        if new_type != field.type and field.persisted:
            raise FieldTypeImmutableError(field.id)
    config = configuration_for(new_type)

    warnings: list[StructuralWarning] = []
    updates: dict[str, Any] = {}
    if "label" in patch:
        updates["label"] = patch["label"] or ""
    if "placeholder" in patch:
        updates["placeholder"] = patch["placeholder"]
    if "help_text" in patch:
        updates["help_text"] = patch["help_text"]
    if patch.get("required") is not None:
        updates["required"] = bool(patch["required"])

    if "options" in patch:
        incoming = _coerce_options(patch["options"] or [])
        if not config.supports_options:
            if incoming:
                raise FormServiceError(f"Field type {new_type.value} does not take options")
            updates["options"] = None
        elif field.persisted:
            updates["options"], warnings = _merge_persisted_options(
                field, incoming, allow_empty_option_set=allow_empty_option_set
            )
        else:
            updates["options"] = incoming

    if "validation" in patch:
        rules = _coerce_rules(patch["validation"] or [])
        if rules and not config.supports_numeric_validation:
            raise FormServiceError(
                f"Validation rules are only supported on number fields, not {new_type.value}"
            )
        updates["validation"] = rules or None

    if new_type != field.type:
        updates["type"] = new_type
        if not config.supports_options:
            updates["options"] = None
        elif not updates.get("options") and not field.options:
            updates["options"] = config.default_options
        if not config.supports_numeric_validation:
            updates["validation"] = None

    return FieldEditResult(field=field.model_copy(update=updates), warnings=warnings)


def duplicate_field(field: FormField, *, order: int) -> FormField:
    """Copy a field's configuration under a new id.

    The copy starts out new, so its type stays editable until first save.
    Deprecated options are history of the source field and are not copied.
    """
    options = None
    if field.options is not None:
        options = tuple(
            FieldOption(value=o.value, label=o.label) for o in field.options if not o.deprecated
        )
    validation = None
    if field.validation is not None:
        validation = tuple(rule.model_copy() for rule in field.validation)
    return field.model_copy(
        update={
            "id": new_field_id(),
            "label": f"{field.label} (Copy)",
            "order": order,
            "options": options,
            "validation": validation,
            "deprecated": False,
            "persisted": False,
        }
    )


def add_option(field: FormField, label: str = "") -> FormField:
    config = configuration_for(field.type)
    if not config.supports_options:
        raise FormServiceError(f"Field type {field.type.value} does not take options")
    existing = field.options or ()
    option = FieldOption(value=_next_option_value(existing), label=label)
    return field.model_copy(update={"options": (*existing, option)})


def remove_option(
    field: FormField,
    option_value: str,
    *,
    is_persisted_field: bool | None = None,
    allow_empty_option_set: bool | None = None,
) -> FieldEditResult:
    """Remove an option, or deprecate it when the field is already persisted.

    Raises:
        OptionNotFoundError if the value is not on the field
        EmptyOptionSetError if a persisted field would lose its last active option
            and the empty-option-set policy is off
    """
    persisted = field.persisted if is_persisted_field is None else is_persisted_field
    allow_empty = (
        settings.ALLOW_EMPTY_OPTION_SET if allow_empty_option_set is None else allow_empty_option_set
    )
    target = field.get_option(option_value)
    if target is None:
        raise OptionNotFoundError(field.id, option_value)

    options = field.options or ()
    if not persisted:
        remaining = tuple(o for o in options if o.value != option_value)
        return FieldEditResult(field=field.model_copy(update={"options": remaining}))

    if target.deprecated:
        return FieldEditResult(field=field)

    remaining_active = [o for o in options if not o.deprecated and o.value != option_value]
    if not remaining_active and not allow_empty:
        raise EmptyOptionSetError(field.id)

    updated = tuple(
        o.model_copy(update={"deprecated": True}) if o.value == option_value else o
        for o in options
    )
    warnings = [_option_deprecated_warning(field, target)]
    if not remaining_active:
        warnings.append(_empty_option_set_warning(field))
    return FieldEditResult(field=field.model_copy(update={"options": updated}), warnings=warnings)


def set_validation_rule(
    field: FormField,
    kind: ValidationRuleKind | str,
    value: float | str | None = None,
    message: str | None = None,
) -> FormField:
    """Upsert the rule of `kind`, or remove it when value is empty."""
    config = configuration_for(field.type)
    if not config.supports_numeric_validation:
        raise FormServiceError(
            f"Validation rules are only supported on number fields, not {field.type.value}"
        )
    try:
        rule_kind = ValidationRuleKind(kind)
    except ValueError as exc:
        raise FormServiceError(f"Unknown validation rule kind: {kind}") from exc

    rules = [rule for rule in field.validation or () if rule.kind != rule_kind]
    if value is not None and value != "":
        try:
            numeric = float(value)
        except (TypeError, ValueError) as exc:
            raise FormServiceError(f"Validation value must be a number: {value!r}") from exc
        rules.append(
            ValidationRule(
                kind=rule_kind,
                value=numeric,
                message=message or default_rule_message(rule_kind, numeric),
            )
        )
    return field.model_copy(update={"validation": tuple(rules) or None})


def set_deprecated(field: FormField) -> FormField:
    """One-way transition to deprecated."""
    if field.deprecated:
        return field
    return field.model_copy(update={"deprecated": True})


def mark_persisted(field: FormField) -> FormField:
    if field.persisted:
        return field
    return field.model_copy(update={"persisted": True})


def _next_option_value(options: Iterable[FieldOption]) -> str:
    used = {o.value for o in options}
    index = len(used) + 1
    while f"option_{index}" in used:
        index += 1
    return f"option_{index}"


def _coerce_options(raw: Iterable[Any]) -> tuple[FieldOption, ...]:
    options: list[FieldOption] = []
    seen: set[str] = set()
    for item in raw:
        if isinstance(item, FieldOption):
            option = item
        elif isinstance(item, BaseModel):
            option = FieldOption.model_validate(item.model_dump())
        else:
            option = FieldOption.model_validate(item)
        if option.value in seen:
            raise FormServiceError(f"Duplicate option value: {option.value}")
        seen.add(option.value)
        options.append(option)
    return tuple(options)


def _coerce_rules(raw: Iterable[Any]) -> tuple[ValidationRule, ...]:
    by_kind: dict[ValidationRuleKind, ValidationRule] = {}
    for item in raw:
        if isinstance(item, ValidationRule):
            rule = item
        else:
            data = item.model_dump() if isinstance(item, BaseModel) else dict(item)
            if not data.get("message") and data.get("kind") and data.get("value") is not None:
                data["message"] = default_rule_message(
                    ValidationRuleKind(data["kind"]), float(data["value"])
                )
            rule = ValidationRule.model_validate(data)
        by_kind[rule.kind] = rule
    return tuple(by_kind.values())


def _merge_persisted_options(
    field: FormField,
    incoming: tuple[FieldOption, ...],
    *,
    allow_empty_option_set: bool | None,
) -> tuple[tuple[FieldOption, ...], list[StructuralWarning]]:
    """Reconcile a full option list against a persisted field.

    Options missing from `incoming` are kept as deprecated, and deprecated
    options stay deprecated. Every option that stops being active yields an
    `option_deprecated` warning.
    """
    allow_empty = (
        settings.ALLOW_EMPTY_OPTION_SET if allow_empty_option_set is None else allow_empty_option_set
    )
    existing = {o.value: o for o in field.options or ()}
    merged: list[FieldOption] = []
    for option in incoming:
        previous = existing.get(option.value)
        if previous is not None and previous.deprecated and not option.deprecated:
            option = option.model_copy(update={"deprecated": True})
        merged.append(option)
    incoming_values = {o.value for o in incoming}
    for value, option in existing.items():
        if value not in incoming_values:
            merged.append(option.model_copy(update={"deprecated": True}))

    has_active = any(not o.deprecated for o in merged)
    if existing and not has_active and not allow_empty:
        raise EmptyOptionSetError(field.id)

    now_deprecated = {o.value for o in merged if o.deprecated}
    warnings = [
        _option_deprecated_warning(field, option)
        for option in field.options or ()
        if not option.deprecated and option.value in now_deprecated
    ]
    if warnings and not has_active:
        warnings.append(_empty_option_set_warning(field))
    return tuple(merged), warnings


def _option_deprecated_warning(field: FormField, option: FieldOption) -> StructuralWarning:
    return StructuralWarning(
        code="option_deprecated",
        field_id=field.id,
        option_value=option.value,
        message=(
            f"Option {option.label or option.value!r} is kept as deprecated because "
            "existing submissions may reference it"
        ),
    )


def _empty_option_set_warning(field: FormField) -> StructuralWarning:
    logger.warning("Choice field left without active options", extra={"field_id": field.id})
    return StructuralWarning(
        code="empty_option_set",
        field_id=field.id,
        message=f"Field {field.label or field.id!r} has no active options left",
    )
