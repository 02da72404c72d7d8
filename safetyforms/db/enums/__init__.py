"""Enum definitions for application constants."""

from safetyforms.db.enums.auth import Role
from safetyforms.db.enums.forms import (
    FieldType,
    FormCategory,
    SubmissionStatus,
    ValidationRuleKind,
)

__all__ = [
    "FieldType",
    "FormCategory",
    "Role",
    "SubmissionStatus",
    "ValidationRuleKind",
]
