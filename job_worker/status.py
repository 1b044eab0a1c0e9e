"""Assignment lifecycle.

Any status may follow any other; the machine only decides which timestamps
a transition stamps. ``start_date`` and ``actual_completion_date`` are set the
first time the assignment enters ``in_progress`` and ``completed``
respectively and are never overwritten afterwards.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from models import AssignmentStatus

from .errors import JobWorkerValidationError


def coerce_status(value: Any) -> AssignmentStatus:
    if isinstance(value, AssignmentStatus):
        return value
    try:
        return AssignmentStatus(str(value).strip())
    except (TypeError, ValueError):
        allowed = ", ".join(member.value for member in AssignmentStatus)
        raise JobWorkerValidationError(
            {"status": f"Invalid status. Expected one of: {allowed}."}
        ) from None


def apply_transition(assignment: Any, status: Any, *, now: Optional[datetime] = None) -> AssignmentStatus:
    """Move ``assignment`` to ``status`` and stamp first-entry dates."""

    target = coerce_status(status)
    now = now or datetime.utcnow()

    if target == AssignmentStatus.IN_PROGRESS and assignment.start_date is None:
        assignment.start_date = now
    if target == AssignmentStatus.COMPLETED and assignment.actual_completion_date is None:
        assignment.actual_completion_date = now

    assignment.status = target
    return target
