from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from job_worker import JobWorkerValidationError
from job_worker.status import apply_transition, coerce_status
from models import AssignmentStatus


def _assignment(status=AssignmentStatus.ASSIGNED):
    return SimpleNamespace(status=status, start_date=None, actual_completion_date=None)


def test_entering_in_progress_twice_keeps_first_start_date():
    assignment = _assignment()
    first = datetime(2024, 3, 1, 9, 0)
    apply_transition(assignment, "in_progress", now=first)
    apply_transition(assignment, AssignmentStatus.ON_HOLD, now=first + timedelta(hours=1))
    apply_transition(assignment, "in_progress", now=first + timedelta(days=1))

    assert assignment.status == AssignmentStatus.IN_PROGRESS
    assert assignment.start_date == first


def test_completion_is_stamped_once():
    assignment = _assignment()
    start = datetime(2024, 3, 1, 9, 0)
    done = datetime(2024, 3, 5, 17, 0)
    apply_transition(assignment, "in_progress", now=start)
    apply_transition(assignment, "completed", now=done)
    apply_transition(assignment, "in_progress", now=done + timedelta(days=1))
    apply_transition(assignment, "completed", now=done + timedelta(days=2))

    assert assignment.actual_completion_date == done
    assert assignment.actual_completion_date >= assignment.start_date


@pytest.mark.parametrize("source", list(AssignmentStatus))
@pytest.mark.parametrize("target", list(AssignmentStatus))
def test_every_transition_is_allowed(source, target):
    assignment = _assignment(source)
    assert apply_transition(assignment, target) == target
    assert assignment.status == target


def test_completing_without_starting_leaves_start_date_empty():
    assignment = _assignment()
    apply_transition(assignment, "completed", now=datetime(2024, 1, 1))
    assert assignment.start_date is None
    assert assignment.actual_completion_date == datetime(2024, 1, 1)


@pytest.mark.parametrize("value", ["archived", "", None, "IN_PROGRESS"])
def test_coerce_status_rejects_unknown_values(value):
    with pytest.raises(JobWorkerValidationError) as excinfo:
        coerce_status(value)
    assert "status" in excinfo.value.errors
