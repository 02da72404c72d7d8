"""Form template service - ordered field schema with safe evolution.

- Field ids are unique for the template's whole lifetime
- `order` is dense (0..n-1) over active fields only
- Persisted fields are deprecated, never deleted
- Every operation returns a new template value
"""

import logging
import uuid
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field as dataclass_field
from datetime import datetime, timezone
from typing import Any, Callable

from safetyforms.db.enums import FieldType, FormCategory, ValidationRuleKind
from safetyforms.schemas.forms import FormField, FormTemplate, StructuralWarning
from safetyforms.services import form_field_service
from safetyforms.services.form_errors import (
    FieldDeprecatedError,
    FieldNotFoundError,
    FormServiceError,
)

logger = logging.getLogger(__name__)

EDITABLE_TEMPLATE_DETAILS = frozenset({"name", "description", "category"})


@dataclass(frozen=True)
class TemplateEditResult:
    """New template value plus any structural warnings the edit produced."""

    template: FormTemplate
    warnings: list[StructuralWarning] = dataclass_field(default_factory=list)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_template(
    name: str,
    *,
    description: str | None = None,
    category: FormCategory | str = FormCategory.OTHER,
    created_by: str | None = None,
    fields: Iterable[FormField] = (),
    template_id: str | None = None,
    system_key: str | None = None,
) -> FormTemplate:
    field_list = tuple(fields)
    _assert_unique_field_ids(field_list)
    now = _now()
    return FormTemplate(
        id=template_id or str(uuid.uuid4()),
        name=name,
        description=description,
        category=FormCategory(category),
        fields=_renumber_active(field_list),
        created_by=created_by,
        created_at=now,
        updated_at=now,
        system_key=system_key,
    )


def update_details(template: FormTemplate, patch: Mapping[str, Any]) -> FormTemplate:
    """Change name, description or category."""
    unknown = set(patch) - EDITABLE_TEMPLATE_DETAILS
    if unknown:
        raise FormServiceError(
            f"Template properties cannot be patched: {', '.join(sorted(unknown))}"
        )
    updates: dict[str, Any] = {}
    if patch.get("name") is not None:
        name = str(patch["name"]).strip()
        if not name:
            raise FormServiceError("Template name cannot be empty")
        updates["name"] = name
    if "description" in patch:
        updates["description"] = patch["description"]
    if patch.get("category") is not None:
        updates["category"] = FormCategory(patch["category"])
    if not updates:
        return template
    return template.model_copy(update={**updates, "updated_at": _now()})


def active_fields(template: FormTemplate) -> list[FormField]:
    """Non-deprecated fields sorted by order; the only view respondents see."""
    return sorted((f for f in template.fields if not f.deprecated), key=lambda f: f.order)


def get_field_or_raise(template: FormTemplate, field_id: str) -> FormField:
    field = template.get_field(field_id)
    if field is None:
        raise FieldNotFoundError(field_id)
    return field


def add_field(
    template: FormTemplate,
    field_type: FieldType | str,
    label: str = "",
) -> FormTemplate:
    field = form_field_service.create_field(
        field_type, label, order=len(active_fields(template))
    )
    return _with_fields(template, (*template.fields, field))


def update_field(
    template: FormTemplate,
    field_id: str,
    patch: Mapping[str, Any],
    *,
    allow_empty_option_set: bool | None = None,
) -> TemplateEditResult:
    """Patch one field.

    Raises:
        FieldNotFoundError if no field has `field_id`
        FieldDeprecatedError if the field is deprecated
        FieldTypeImmutableError if the patch changes a persisted field's type
    """
    field = _get_editable_field(template, field_id)
    result = form_field_service.update_field(
        field, patch, allow_empty_option_set=allow_empty_option_set
    )
    if result.warnings:
        logger.info(
            "Deprecated options left out of a saved field's option list",
            extra={"template_id": template.id, "field_id": field_id},
        )
    return TemplateEditResult(
        template=_replace_field(template, result.field), warnings=result.warnings
    )


def duplicate_field(template: FormTemplate, field_id: str) -> FormTemplate:
    source = get_field_or_raise(template, field_id)
    copy = form_field_service.duplicate_field(source, order=len(active_fields(template)))
    return _with_fields(template, (*template.fields, copy))


def add_field_option(template: FormTemplate, field_id: str, label: str = "") -> FormTemplate:
    return _edit_field(template, field_id, lambda f: form_field_service.add_option(f, label))


def remove_field_option(
    template: FormTemplate,
    field_id: str,
    option_value: str,
    *,
    new_field_ids: Collection[str] | None = None,
    allow_empty_option_set: bool | None = None,
) -> TemplateEditResult:
    field = _get_editable_field(template, field_id)
    result = form_field_service.remove_option(
        field,
        option_value,
        is_persisted_field=not _is_new(field, new_field_ids),
        allow_empty_option_set=allow_empty_option_set,
    )
    if result.warnings:
        logger.info(
            "Deprecated option instead of removing it",
            extra={"template_id": template.id, "field_id": field_id},
        )
    return TemplateEditResult(
        template=_replace_field(template, result.field), warnings=result.warnings
    )


def set_field_validation_rule(
    template: FormTemplate,
    field_id: str,
    kind: ValidationRuleKind | str,
    value: float | str | None = None,
) -> FormTemplate:
    return _edit_field(
        template,
        field_id,
        lambda f: form_field_service.set_validation_rule(f, kind, value),
    )


def remove_field(
    template: FormTemplate,
    field_id: str,
    *,
    new_field_ids: Collection[str] | None = None,
) -> TemplateEditResult:
    """Delete a new field, or deprecate a persisted one.

    `new_field_ids` lets an editing session name its unsaved fields
    explicitly; without it the field's own `persisted` flag decides.
    """
    field = get_field_or_raise(template, field_id)

    if _is_new(field, new_field_ids):
        remaining = tuple(f for f in template.fields if f.id != field_id)
        return TemplateEditResult(template=_with_fields(template, remaining))

    if field.deprecated:
        return TemplateEditResult(template=template)

    deprecated = form_field_service.set_deprecated(field)
    fields = tuple(deprecated if f.id == field_id else f for f in template.fields)
    warning = StructuralWarning(
        code="field_deprecated",
        field_id=field_id,
        message=(
            f"Field {field.label or field_id!r} is part of a saved form. It was hidden "
            "instead of deleted so existing submissions keep their answers."
        ),
    )
    logger.info(
        "Deprecated persisted field instead of deleting it",
        extra={"template_id": template.id, "field_id": field_id},
    )
    return TemplateEditResult(template=_with_fields(template, fields), warnings=[warning])


def reorder_field(template: FormTemplate, from_index: int, to_index: int) -> FormTemplate:
    """Move a field within the active ordering and renumber the active set."""
    ordered = active_fields(template)
    if not (0 <= from_index < len(ordered)) or not (0 <= to_index < len(ordered)):
        raise FormServiceError(
            f"Field index out of range: {from_index} -> {to_index} ({len(ordered)} active fields)"
        )
    if from_index == to_index:
        return template
    moved = ordered.pop(from_index)
    ordered.insert(to_index, moved)
    new_order = {f.id: i for i, f in enumerate(ordered)}
    fields = tuple(
        f.model_copy(update={"order": new_order[f.id]})
        if f.id in new_order and f.order != new_order[f.id]
        else f
        for f in template.fields
    )
    return template.model_copy(update={"fields": fields, "updated_at": _now()})


def mark_persisted(template: FormTemplate) -> FormTemplate:
    """Freeze field types; called when the template is saved."""
    if all(f.persisted for f in template.fields):
        return template
    fields = tuple(form_field_service.mark_persisted(f) for f in template.fields)
    return template.model_copy(update={"fields": fields})


def _is_new(field: FormField, new_field_ids: Collection[str] | None) -> bool:
    if new_field_ids is not None:
        return field.id in new_field_ids
    return not field.persisted


def _get_editable_field(template: FormTemplate, field_id: str) -> FormField:
    field = get_field_or_raise(template, field_id)
    if field.deprecated:
        raise FieldDeprecatedError(field_id)
    return field


def _edit_field(
    template: FormTemplate,
    field_id: str,
    edit: Callable[[FormField], FormField],
) -> FormTemplate:
    field = _get_editable_field(template, field_id)
    return _replace_field(template, edit(field))


def _replace_field(template: FormTemplate, updated: FormField) -> FormTemplate:
    fields = tuple(updated if f.id == updated.id else f for f in template.fields)
    return template.model_copy(update={"fields": fields, "updated_at": _now()})


def _with_fields(template: FormTemplate, fields: tuple[FormField, ...]) -> FormTemplate:
    _assert_unique_field_ids(fields)
    return template.model_copy(
        update={"fields": _renumber_active(fields), "updated_at": _now()}
    )


def _renumber_active(fields: tuple[FormField, ...]) -> tuple[FormField, ...]:
    positions = {f.id: i for i, f in enumerate(fields)}
    active = sorted(
        (f for f in fields if not f.deprecated), key=lambda f: (f.order, positions[f.id])
    )
    new_order = {f.id: i for i, f in enumerate(active)}
    return tuple(
        f.model_copy(update={"order": new_order[f.id]})
        if f.id in new_order and f.order != new_order[f.id]
        else f
        for f in fields
    )


def _assert_unique_field_ids(fields: Iterable[FormField]) -> None:
    seen: set[str] = set()
    for field in fields:
        if field.id in seen:
            raise FormServiceError(f"Duplicate field id: {field.id}")
        seen.add(field.id)
