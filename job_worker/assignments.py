"""Service layer for job worker assignments and their material ledger."""

from __future__ import annotations

import time
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from extensions import db
from models import (
    AssignmentMaterial,
    AssignmentStatus,
    JobType,
    JobWorkerAssignment,
    OutputQuality,
    WorkerStatus,
)

from .errors import BusinessRuleError, ConflictError, JobWorkerValidationError, NotFoundError
from .helpers import (
    ensure_company_access,
    is_unique_violation,
    next_sequence,
    normalize_date_range,
    parse_datetime,
    parse_decimal,
    parse_enum,
    parse_string_list,
    strip_or_none,
)
from .status import apply_transition, coerce_status
from .tracking import (
    MATERIAL_FIELDS,
    MONEY_SCALE,
    QUANTITY_SCALE,
    clean_material,
    compute_payment,
    recompute_material,
)
from .workers import get_worker

MAX_NUMBER_ATTEMPTS = 5

DATE_FIELDS = ("assigned_date", "expected_completion_date", "payment_date")
TEXT_FIELDS = ("job_description", "output_unit", "output_notes", "quality_notes", "remarks")
AMOUNT_FIELDS = {
    "job_rate": MONEY_SCALE,
    "total_amount": MONEY_SCALE,
    "advance_paid": MONEY_SCALE,
    "output_quantity": QUANTITY_SCALE,
}
JOB_DESCRIPTION_MAX_LENGTH = 1000
NEWEST_FIRST = (JobWorkerAssignment.assigned_date.desc(), JobWorkerAssignment.created_at.desc())


def _number_prefix() -> str:
    return current_app.config.get("ASSIGNMENT_NUMBER_PREFIX", "JWA")


def _fallback_assignment_number() -> str:
    return f"{_number_prefix()}{str(int(time.time() * 1000))[-8:]}"


def _existing_assignment_numbers() -> List[Optional[str]]:
    return [value for (value,) in db.session.query(JobWorkerAssignment.assignment_number).all()]


def get_next_assignment_number() -> str:
    prefix = _number_prefix()
    try:
        numbers = _existing_assignment_numbers()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning(
            "Assignment number sequence lookup failed; using timestamp number.", exc_info=True
        )
        return _fallback_assignment_number()
    return f"{prefix}{next_sequence(numbers, prefix):06d}"


def _material_rows(entries: Any, errors: Dict[str, str]) -> List[AssignmentMaterial]:
    if not isinstance(entries, (list, tuple)):
        errors["materials"] = "Materials must be a list."
        return []
    rows: List[AssignmentMaterial] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            errors[f"materials.{index}"] = "Material must be an object."
            continue
        cleaned = clean_material(entry, errors, prefix=f"materials.{index}.")
        rows.append(AssignmentMaterial(**recompute_material(cleaned)))
    return rows


def _clean_assignment_fields(payload: Dict[str, Any], errors: Dict[str, str]) -> Dict[str, Any]:
    """Return the writable scalar fields present in ``payload``."""

    values: Dict[str, Any] = {}
    for field in TEXT_FIELDS:
        if field in payload:
            values[field] = strip_or_none(payload.get(field))
    description = values.get("job_description")
    if description and len(description) > JOB_DESCRIPTION_MAX_LENGTH:
        errors["job_description"] = f"Must be at most {JOB_DESCRIPTION_MAX_LENGTH} characters."

    for field in DATE_FIELDS:
        if field in payload:
            values[field] = parse_datetime(payload.get(field), field, errors)
    if "assigned_date" in values and values["assigned_date"] is None and "assigned_date" not in errors:
        errors["assigned_date"] = "Assigned date cannot be blank."

    for field, scale in AMOUNT_FIELDS.items():
        if field in payload:
            values[field] = parse_decimal(payload.get(field), field, errors, quantize=scale)
    if "advance_paid" in values and values["advance_paid"] is None:
        values["advance_paid"] = Decimal("0")

    if "job_type" in payload:
        values["job_type"] = parse_enum(JobType, payload.get("job_type"), "job_type", errors)
        if values["job_type"] is None and "job_type" not in errors:
            errors["job_type"] = "Job type is required."
    if "output_quality" in payload:
        values["output_quality"] = parse_enum(OutputQuality, payload.get("output_quality"), "output_quality", errors)

    if "quality_rating" in payload:
        rating = payload.get("quality_rating")
        if rating in (None, ""):
            values["quality_rating"] = None
        else:
            try:
                rating_value = int(rating)
            except (TypeError, ValueError):
                rating_value = None
            if rating_value is None or isinstance(rating, bool) or not 1 <= rating_value <= 5:
                errors["quality_rating"] = "Quality rating must be a whole number between 1 and 5."
            else:
                values["quality_rating"] = rating_value

    if "issues" in payload:
        values["issues"] = parse_string_list(payload.get("issues"), "issues", errors)
    return values


def _apply_financials(assignment: JobWorkerAssignment) -> None:
    balance, status = compute_payment(assignment.total_amount, assignment.advance_paid)
    assignment.balance_amount = balance
    assignment.payment_status = status


def _check_version(assignment: JobWorkerAssignment, expected: Any) -> None:
    if expected in (None, ""):
        return
    try:
        expected_version = int(expected)
    except (TypeError, ValueError):
        raise JobWorkerValidationError({"version": "Version must be a whole number."}) from None
    if expected_version != assignment.version:
        raise ConflictError(
            "Assignment was modified by another request. Reload and try again.",
            {"version": f"Current version is {assignment.version}."},
        )


def _commit_assignment(assignment: JobWorkerAssignment) -> None:
    """Commit, turning a lost optimistic-lock race into a conflict."""

    try:
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError(
            "Assignment was modified by another request. Reload and try again."
        ) from exc
    except IntegrityError as exc:
        db.session.rollback()
        if is_unique_violation(exc, "assignment_number"):
            raise ConflictError(
                "Assignment number already exists",
                {"assignment_number": "Assignment number already exists."},
            ) from exc
        raise


def create_assignment(payload: Dict[str, Any], *, company_id: int, actor_id: int) -> JobWorkerAssignment:
    errors: Dict[str, str] = {}
    worker_id = payload.get("worker_id")
    if worker_id in (None, ""):
        raise JobWorkerValidationError({"worker_id": "Worker is required."})
    worker = get_worker(worker_id, company_id=company_id)
    if worker.status != WorkerStatus.ACTIVE or not worker.is_active:
        raise BusinessRuleError(f"Worker {worker.worker_code} is {worker.status.value} and cannot take new assignments")

    values = _clean_assignment_fields(payload, errors)
    if "job_type" not in payload:
        errors["job_type"] = "Job type is required."
    materials = _material_rows(payload.get("materials") or [], errors)

    number = strip_or_none(payload.get("assignment_number"))
    if errors:
        raise JobWorkerValidationError(errors)

    if number:
        number = number.upper()
        if JobWorkerAssignment.query.filter(JobWorkerAssignment.assignment_number == number).first():
            raise ConflictError(
                "Assignment number already exists",
                {"assignment_number": "Assignment number already exists."},
            )
    generated_number = number is None

    assignment = JobWorkerAssignment(
        company_id=company_id,
        worker_id=worker.id,
        worker_name=worker.name,
        worker_code=worker.worker_code,
        assignment_number=number or get_next_assignment_number(),
        status=AssignmentStatus.ASSIGNED,
        created_by_id=actor_id,
        **values,
    )
    if assignment.advance_paid is None:
        assignment.advance_paid = Decimal("0")
    assignment.materials = materials
    assignment.materials.reorder()
    _apply_financials(assignment)
    db.session.add(assignment)

    attempts = 0
    while True:
        try:
            _commit_assignment(assignment)
            break
        except ConflictError:
            if not generated_number or attempts >= MAX_NUMBER_ATTEMPTS:
                raise
            attempts += 1
            assignment.assignment_number = (
                get_next_assignment_number() if attempts < MAX_NUMBER_ATTEMPTS - 1 else _fallback_assignment_number()
            )
            db.session.add(assignment)

    current_app.logger.info(
        {
            "event": "job_worker_assignment_created",
            "assignment_id": str(assignment.id),
            "assignment_number": assignment.assignment_number,
            "worker_id": str(worker.id),
            "created_by": actor_id,
        }
    )
    return assignment


def get_assignment(assignment_id: Any, *, company_id: Optional[int] = None) -> JobWorkerAssignment:
    try:
        key = assignment_id if isinstance(assignment_id, uuid.UUID) else uuid.UUID(str(assignment_id))
    except (TypeError, ValueError):
        raise NotFoundError("Assignment not found") from None
    assignment = db.session.get(JobWorkerAssignment, key)
    if assignment is None:
        raise NotFoundError("Assignment not found")
    ensure_company_access(assignment, company_id, "Assignment")
    return assignment


def update_assignment(
    assignment_id: Any, payload: Dict[str, Any], *, actor_id: int, company_id: Optional[int] = None
) -> JobWorkerAssignment:
    """Apply a general update.

    Worker references and derived fields are not writable. A ``materials``
    list replaces every existing line; a ``status`` goes through the state
    machine.
    """

    assignment = get_assignment(assignment_id, company_id=company_id)
    _check_version(assignment, payload.get("version"))

    errors: Dict[str, str] = {}
    values = _clean_assignment_fields(payload, errors)
    materials = _material_rows(payload["materials"], errors) if "materials" in payload else None
    status = None
    if "status" in payload:
        try:
            status = coerce_status(payload.get("status"))
        except JobWorkerValidationError as exc:
            errors.update(exc.errors)
    if errors:
        raise JobWorkerValidationError(errors)

    for field, value in values.items():
        if getattr(assignment, field) != value:
            setattr(assignment, field, value)
    if materials is not None:
        assignment.materials = materials
        assignment.materials.reorder()
    if status is not None:
        apply_transition(assignment, status)
    _apply_financials(assignment)
    assignment.touch(actor_id)
    _commit_assignment(assignment)

    current_app.logger.info(
        {"event": "job_worker_assignment_updated", "assignment_id": str(assignment.id), "updated_by": actor_id}
    )
    return assignment


def add_material(
    assignment_id: Any, entry: Dict[str, Any], *, actor_id: int, company_id: Optional[int] = None
) -> JobWorkerAssignment:
    assignment = get_assignment(assignment_id, company_id=company_id)
    _check_version(assignment, entry.get("version"))

    errors: Dict[str, str] = {}
    cleaned = clean_material(entry, errors)
    if errors:
        raise JobWorkerValidationError(errors)

    assignment.materials.append(AssignmentMaterial(**recompute_material(cleaned)))
    assignment.touch(actor_id)
    _commit_assignment(assignment)

    current_app.logger.info(
        {
            "event": "job_worker_material_added",
            "assignment_id": str(assignment.id),
            "item_id": cleaned["item_id"],
            "updated_by": actor_id,
        }
    )
    return assignment


def _material_values(material: AssignmentMaterial) -> Dict[str, Any]:
    return {field: getattr(material, field) for field in MATERIAL_FIELDS}


def update_material_tracking(
    assignment_id: Any,
    index: Any,
    patch: Dict[str, Any],
    *,
    actor_id: int,
    company_id: Optional[int] = None,
) -> JobWorkerAssignment:
    """Merge ``patch`` onto the material line at ``index`` and recompute it."""

    assignment = get_assignment(assignment_id, company_id=company_id)
    _check_version(assignment, patch.get("version"))

    try:
        position = int(index)
    except (TypeError, ValueError):
        raise JobWorkerValidationError({"index": "Invalid material index"}) from None
    if isinstance(index, bool) or position < 0 or position >= len(assignment.materials):
        raise JobWorkerValidationError({"index": "Invalid material index"})

    material = assignment.materials[position]
    merged = _material_values(material)
    merged.update({key: value for key, value in patch.items() if key in MATERIAL_FIELDS})

    errors: Dict[str, str] = {}
    cleaned = clean_material(merged, errors)
    if errors:
        raise JobWorkerValidationError(errors)

    for field, value in recompute_material(cleaned).items():
        setattr(material, field, value)
    assignment.touch(actor_id)
    _commit_assignment(assignment)

    current_app.logger.info(
        {
            "event": "job_worker_material_updated",
            "assignment_id": str(assignment.id),
            "material_index": position,
            "updated_by": actor_id,
        }
    )
    return assignment


def update_status(
    assignment_id: Any, status: Any, *, actor_id: int, company_id: Optional[int] = None,
    version: Any = None,
) -> JobWorkerAssignment:
    target = coerce_status(status)
    assignment = get_assignment(assignment_id, company_id=company_id)
    _check_version(assignment, version)

    previous = assignment.status
    apply_transition(assignment, target)
    assignment.touch(actor_id)
    _commit_assignment(assignment)

    current_app.logger.info(
        {
            "event": "job_worker_assignment_status_changed",
            "assignment_id": str(assignment.id),
            "from": previous.value if previous else None,
            "to": target.value,
            "updated_by": actor_id,
        }
    )
    return assignment


def _filtered_query(
    *,
    company_id: Optional[int] = None,
    worker_id: Any = None,
    status: Optional[str] = None,
    job_type: Optional[str] = None,
    date_from: Any = None,
    date_to: Any = None,
):
    errors: Dict[str, str] = {}
    status_value = parse_enum(AssignmentStatus, status, "status", errors)
    job_type_value = parse_enum(JobType, job_type, "jobType", errors)
    worker_key = None
    if worker_id not in (None, ""):
        try:
            worker_key = worker_id if isinstance(worker_id, uuid.UUID) else uuid.UUID(str(worker_id))
        except (TypeError, ValueError):
            errors["workerId"] = "Invalid identifier."
    if errors:
        raise JobWorkerValidationError(errors)
    start, end = normalize_date_range(date_from, date_to)

    query = JobWorkerAssignment.query.options(selectinload(JobWorkerAssignment.materials))
    if company_id is not None:
        query = query.filter(JobWorkerAssignment.company_id == company_id)
    if worker_key is not None:
        query = query.filter(JobWorkerAssignment.worker_id == worker_key)
    if status_value is not None:
        query = query.filter(JobWorkerAssignment.status == status_value)
    if job_type_value is not None:
        query = query.filter(JobWorkerAssignment.job_type == job_type_value)
    if start is not None:
        query = query.filter(JobWorkerAssignment.assigned_date >= start)
    if end is not None:
        query = query.filter(JobWorkerAssignment.assigned_date <= end)
    return query


def list_assignments(
    company_id: int,
    *,
    worker_id: Any = None,
    status: Optional[str] = None,
    job_type: Optional[str] = None,
    date_from: Any = None,
    date_to: Any = None,
    search: Optional[str] = None,
) -> Tuple[List[JobWorkerAssignment], int]:
    query = _filtered_query(
        company_id=company_id,
        worker_id=worker_id,
        status=status,
        job_type=job_type,
        date_from=date_from,
        date_to=date_to,
    )
    if search and search.strip():
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                JobWorkerAssignment.assignment_number.ilike(like),
                JobWorkerAssignment.worker_name.ilike(like),
                JobWorkerAssignment.worker_code.ilike(like),
                JobWorkerAssignment.job_description.ilike(like),
            )
        )
    items = query.order_by(*NEWEST_FIRST).all()
    return items, len(items)


def list_assignments_by_worker(
    worker_id: Any,
    *,
    company_id: Optional[int] = None,
    status: Optional[str] = None,
    job_type: Optional[str] = None,
    date_from: Any = None,
    date_to: Any = None,
) -> Tuple[List[JobWorkerAssignment], int]:
    worker = get_worker(worker_id, company_id=company_id)
    query = _filtered_query(
        worker_id=worker.id,
        status=status,
        job_type=job_type,
        date_from=date_from,
        date_to=date_to,
    )
    items = query.order_by(*NEWEST_FIRST).all()
    return items, len(items)
