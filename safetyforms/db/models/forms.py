"""SQLAlchemy ORM models for form templates and submissions.

Domain values are stored whole in `payload`; the scalar columns are
denormalized copies used for filtering and optimistic locking.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from safetyforms.db.base import Base
from safetyforms.db.enums import FormCategory, SubmissionStatus


class FormTemplateRecord(Base):
    """Stored form template, versioned for compare-and-swap saves."""

    __tablename__ = "form_templates"
    __table_args__ = (Index("idx_form_templates_org", "organization_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    category: Mapped[str] = mapped_column(
        String(30),
        server_default=text(f"'{FormCategory.OTHER.value}'"),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)


class FormSubmissionRecord(Base):
    """Stored form submission."""

    __tablename__ = "form_submissions"
    __table_args__ = (
        Index("idx_form_submissions_org", "organization_id"),
        Index("idx_form_submissions_org_status", "organization_id", "status"),
        Index("idx_form_submissions_template", "form_template_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    form_template_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("form_templates.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20),
        server_default=text(f"'{SubmissionStatus.DRAFT.value}'"),
        nullable=False,
    )
    submitted_by: Mapped[str] = mapped_column(String(128), nullable=False)
    submitted_by_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
