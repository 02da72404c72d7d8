"""Exceptions raised by the form services."""


class FormServiceError(ValueError):
    """Base exception for form service errors."""

    pass


class UnknownFieldTypeError(FormServiceError):
    """Field type outside the supported catalog."""

    def __init__(self, field_type: object):
        self.field_type = field_type
        super().__init__(f"Unknown field type: {field_type}")


class FieldTypeImmutableError(FormServiceError):
    """Type change requested on a field that is already persisted."""

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(f"Field {field_id} has been saved; its type can no longer change")


class FieldNotFoundError(FormServiceError):
    """Field id not present in the template."""

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(f"Field not found: {field_id}")


class OptionNotFoundError(FormServiceError):
    """Option value not present on the field."""

    def __init__(self, field_id: str, value: str):
        self.field_id = field_id
        self.value = value
        super().__init__(f"Option {value!r} not found on field {field_id}")


class EmptyOptionSetError(FormServiceError):
    """Removal would leave a persisted choice field with no active option."""

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(f"Field {field_id} must keep at least one active option")


class ValidationFailedError(FormServiceError):
    """Submission values failed the field contract."""

    def __init__(self, field_errors: dict[str, str]):
        self.field_errors = dict(field_errors)
        super().__init__(f"Submission failed validation for {len(field_errors)} field(s)")


class InvalidTransitionError(FormServiceError):
    """Requested submission status change is not allowed."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot change submission status from {current} to {target}")


class ConcurrentModificationError(FormServiceError):
    """Raised when expected_version doesn't match the stored version."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Version conflict: expected {expected}, got {actual}")


class TemplateNotFoundError(FormServiceError):
    """Template not found in the organization."""

    pass


class SubmissionNotFoundError(FormServiceError):
    """Submission not found in the organization."""

    pass


class FieldDeprecatedError(FormServiceError):
    """Edit addressed a deprecated field, whose configuration is frozen."""

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(f"Field {field_id} is deprecated and can no longer be edited")
