"""Submission domain events for side effects (notifications, digests)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from safetyforms.db.enums import SubmissionStatus
from safetyforms.schemas.forms import FormSubmission

logger = logging.getLogger(__name__)

NOTIFIABLE_STATUSES = frozenset(
    {SubmissionStatus.SUBMITTED, SubmissionStatus.APPROVED, SubmissionStatus.REJECTED}
)


@dataclass(frozen=True)
class SubmissionStatusChanged:
    submission: FormSubmission
    previous_status: SubmissionStatus | None
    actor_id: str | None = None

    @property
    def status(self) -> SubmissionStatus:
        return self.submission.status


StatusListener = Callable[[SubmissionStatusChanged], None]

_listeners: list[StatusListener] = []


def register_listener(listener: StatusListener) -> Callable[[], None]:
    """Subscribe to notifiable status changes; returns an unsubscribe callable."""
    _listeners.append(listener)

    def unregister() -> None:
        if listener in _listeners:
            _listeners.remove(listener)

    return unregister


def clear_listeners() -> None:
    _listeners.clear()


def handle_status_changed(
    submission: FormSubmission,
    previous_status: SubmissionStatus | None,
    actor_id: str | None = None,
) -> None:
    """Dispatch a status change to listeners.

    A failing listener is logged; the transition itself stands.
    """
    if submission.status not in NOTIFIABLE_STATUSES:
        return
    event = SubmissionStatusChanged(
        submission=submission, previous_status=previous_status, actor_id=actor_id
    )
    for listener in list(_listeners):
        try:
            listener(event)
        except Exception:
            logger.exception(
                "Submission status listener failed",
                extra={"submission_id": submission.id, "status": submission.status.value},
            )
