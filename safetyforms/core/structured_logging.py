"""Structured logging helpers."""

from typing import Any


def build_log_context(
    *,
    user_id: str | None = None,
    org_id: str | None = None,
    template_id: str | None = None,
    submission_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict with only the provided identifiers."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if org_id:
        context["org_id"] = org_id
    if template_id:
        context["template_id"] = template_id
    if submission_id:
        context["submission_id"] = submission_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
