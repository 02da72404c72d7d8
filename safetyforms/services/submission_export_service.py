"""Tabular (CSV) export of form submissions."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from safetyforms.schemas.forms import FormField, FormSubmission, FormTemplate
from safetyforms.services import form_submission_service, form_template_service

CSV_DANGEROUS_PREFIXES = ("=", "+", "-", "@")
BASE_HEADERS = ["ID", "Form", "Submitted By", "Submitted At", "Status"]


def _csv_safe(value: str) -> str:
    if value and value.startswith(CSV_DANGEROUS_PREFIXES):
        return f"'{value}"
    return value


def _format_timestamp(value: datetime | None) -> str:
    if value is None:
        return ""
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{form_submission_service.format_date(value)} {hour}:{value.minute:02d} {meridiem}"


def _field_header(field: FormField) -> str:
    return f"Field_{field.label or field.id}"


def export_columns(templates: Iterable[FormTemplate]) -> list[tuple[str, FormField]]:
    """One column per active field, deduplicated by field id across templates."""
    columns: list[tuple[str, FormField]] = []
    seen: set[str] = set()
    for template in templates:
        for field in form_template_service.active_fields(template):
            if field.id in seen:
                continue
            seen.add(field.id)
            columns.append((_field_header(field), field))
    return columns


def build_export_rows(
    submissions: Sequence[FormSubmission],
    templates: Mapping[str, FormTemplate],
    *,
    member_names: Mapping[str, str] | None = None,
) -> tuple[list[str], list[list[str]]]:
    columns = export_columns(
        templates[t_id]
        for t_id in dict.fromkeys(s.form_template_id for s in submissions)
        if t_id in templates
    )
    headers = BASE_HEADERS + [header for header, _ in columns]
    rows: list[list[str]] = []
    for submission in submissions:
        template = templates.get(submission.form_template_id)
        row = [
            submission.id,
            template.name if template else "Unknown Form",
            submission.submitted_by_name or submission.submitted_by,
            _format_timestamp(submission.submitted_at),
            form_submission_service.status_label(submission.status),
        ]
        for _, field in columns:
            if template is None or template.get_field(field.id) is None:
                row.append("")
                continue
            row.append(
                form_submission_service.format_display_value(
                    field, submission.values.get(field.id), member_names
                )
            )
        rows.append(row)
    return headers, rows


def build_submissions_csv(
    submissions: Sequence[FormSubmission],
    templates: Mapping[str, FormTemplate],
    *,
    member_names: Mapping[str, str] | None = None,
) -> str:
    headers, rows = build_export_rows(submissions, templates, member_names=member_names)
    return _write_csv(headers, rows)


def _write_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_csv_safe("" if value is None else str(value)) for value in row])
    return output.getvalue()
