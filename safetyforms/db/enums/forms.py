"""Form-related enums."""

from enum import Enum


class FieldType(str, Enum):
    """Closed set of supported form field kinds."""

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    MULTISELECT = "multiselect"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    FILE = "file"
    EMPLOYEE_LIST = "employeeList"


class FormCategory(str, Enum):
    """Grouping shown in the template picker."""

    INCIDENT = "incident"
    RECOGNITION = "recognition"
    HEAT_PREVENTION = "heatPrevention"
    OTHER = "other"


class SubmissionStatus(str, Enum):
    """Review status of a form submission."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    IN_REVIEW = "inReview"
    APPROVED = "approved"
    REJECTED = "rejected"


class ValidationRuleKind(str, Enum):
    """Numeric bound kinds attachable to number fields."""

    MIN = "min"
    MAX = "max"
