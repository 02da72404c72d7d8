"""SQLAlchemy ORM models."""

from safetyforms.db.models.forms import FormSubmissionRecord, FormTemplateRecord

__all__ = ["FormSubmissionRecord", "FormTemplateRecord"]
