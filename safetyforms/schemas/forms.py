"""Schemas for form templates, fields and submissions.

Domain values are frozen: every service operation returns a new value
instead of mutating the one it was given.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from safetyforms.db.enums import (
    FieldType,
    FormCategory,
    SubmissionStatus,
    ValidationRuleKind,
)


class FieldOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: str = ""
    deprecated: bool = False


class ValidationRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ValidationRuleKind
    value: float
    message: str


class FormField(BaseModel):
    """Single field definition inside a template.

    `persisted` flips to True once the field has been saved as part of a
    template; from then on its `type` is frozen.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: FieldType
    label: str = ""
    placeholder: str | None = None
    help_text: str | None = None
    required: bool = False
    order: int = 0
    options: tuple[FieldOption, ...] | None = None
    validation: tuple[ValidationRule, ...] | None = None
    deprecated: bool = False
    persisted: bool = False

    def get_option(self, value: str) -> FieldOption | None:
        for option in self.options or ():
            if option.value == value:
                return option
        return None

    @property
    def active_options(self) -> tuple[FieldOption, ...]:
        return tuple(o for o in self.options or () if not o.deprecated)


class FormTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str | None = None
    category: FormCategory = FormCategory.OTHER
    fields: tuple[FormField, ...] = ()
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime
    version: int = 0
    system_key: str | None = None

    def get_field(self, field_id: str) -> FormField | None:
        for field in self.fields:
            if field.id == field_id:
                return field
        return None


class FormSubmission(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    form_template_id: str
    form_template_version: int = 0
    submitted_by: str
    submitted_by_name: str | None = None
    submitted_at: datetime | None = None
    status: SubmissionStatus
    values: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None


class StructuralWarning(BaseModel):
    """Non-fatal notice that an edit touched data historical submissions rely on."""

    model_config = ConfigDict(frozen=True)

    code: str
    field_id: str
    option_value: str | None = None
    message: str


# =============================================================================
# API payloads
# =============================================================================


class FormTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: str | None = None
    category: FormCategory = FormCategory.OTHER


class FormTemplateDetailsUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=150)
    description: str | None = None
    category: FormCategory | None = None


class FormFieldCreate(BaseModel):
    type: str
    label: str = Field("", max_length=200)


class FieldOptionInput(BaseModel):
    value: str = Field(..., min_length=1, max_length=100)
    label: str = Field("", max_length=200)
    deprecated: bool = False


class FieldOptionCreate(BaseModel):
    label: str = Field("", max_length=200)


class FormFieldPatch(BaseModel):
    type: str | None = None
    label: str | None = Field(None, max_length=200)
    placeholder: str | None = None
    help_text: str | None = None
    required: bool | None = None
    options: list[FieldOptionInput] | None = None


class FieldReorderRequest(BaseModel):
    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)


class ValidationRuleUpdate(BaseModel):
    value: float | None = None


class TemplateEditResponse(BaseModel):
    template: FormTemplate
    warnings: list[StructuralWarning] = Field(default_factory=list)


class SystemTemplateSummary(BaseModel):
    system_key: str
    name: str
    description: str | None
    category: FormCategory
    field_count: int


class SubmissionCreate(BaseModel):
    values: dict[str, Any] = Field(default_factory=dict)
    submitted_by_name: str | None = Field(None, max_length=200)


class DraftSubmit(BaseModel):
    values: dict[str, Any] | None = None


class SubmissionStatusUpdate(BaseModel):
    status: SubmissionStatus
    review_notes: str | None = None


class RenderedAnswer(BaseModel):
    field_id: str
    label: str
    type: FieldType
    value: Any = None
    display_value: str
    deprecated: bool = False


class SubmissionDetailRead(BaseModel):
    submission: FormSubmission
    status_label: str
    answers: list[RenderedAnswer]


class ValidationErrorRead(BaseModel):
    detail: str
    field_errors: dict[str, str]
