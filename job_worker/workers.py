"""Service layer for the job worker registry."""

from __future__ import annotations

import math
import time
import uuid
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy import String, cast, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import AssignmentStatus, JobWorker, JobWorkerAssignment, SkillLevel, WorkerStatus

from .errors import BusinessRuleError, ConflictError, JobWorkerValidationError, NotFoundError
from .helpers import (
    camel_to_snake,
    ensure_company_access,
    is_unique_violation,
    next_sequence,
    parse_bool,
    parse_decimal,
    parse_enum,
    parse_string_list,
    strip_or_none,
)

DEFAULT_PAGE_SIZE = 20

ADDRESS_KEYS = ("street", "city", "state", "pincode", "country", "fullAddress")
BANK_DETAIL_KEYS = ("accountNumber", "ifscCode", "bankName", "branchName")

WORKER_TEXT_FIELDS = (
    "alternate_phone_number",
    "email",
    "aadhar_number",
    "pan_number",
    "gst_number",
    "notes",
)

SORTABLE_FIELDS = {
    "name": JobWorker.name,
    "worker_code": JobWorker.worker_code,
    "phone_number": JobWorker.phone_number,
    "email": JobWorker.email,
    "status": JobWorker.status,
    "is_active": JobWorker.is_active,
    "skill_level": JobWorker.skill_level,
    "experience": JobWorker.experience,
    "hourly_rate": JobWorker.hourly_rate,
    "daily_rate": JobWorker.daily_rate,
    "created_at": JobWorker.created_at,
    "updated_at": JobWorker.updated_at,
}

MAX_CODE_ATTEMPTS = 5


def _code_prefix() -> str:
    return current_app.config.get("WORKER_CODE_PREFIX", "WRK")


def _fallback_worker_code() -> str:
    return f"{_code_prefix()}{str(int(time.time() * 1000))[-8:]}"


def _existing_worker_codes(company_id: int) -> list[Optional[str]]:
    return [
        code
        for (code,) in db.session.query(JobWorker.worker_code)
        .filter(JobWorker.company_id == company_id)
        .all()
    ]


def get_next_worker_code(company_id: int) -> str:
    """Return ``WRK`` plus the next zero-padded sequence number for the company.

    When the sequence cannot be read a timestamp-derived code is returned so
    a worker is never saved without one.
    """

    prefix = _code_prefix()
    try:
        codes = _existing_worker_codes(company_id)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning(
            "Worker code sequence lookup failed for company %s; using timestamp code.",
            company_id,
            exc_info=True,
        )
        return _fallback_worker_code()
    return f"{prefix}{next_sequence(codes, prefix):04d}"


def _clean_mapping(value: Any, keys: tuple[str, ...], field: str, errors: Dict[str, str]) -> Optional[dict]:
    if value is None or value == "":
        return None
    if not isinstance(value, dict):
        errors[field] = "Must be an object."
        return None
    cleaned = {}
    for key in keys:
        text = strip_or_none(value.get(key, value.get(camel_to_snake(key))))
        if text:
            cleaned[key] = text
    return cleaned or None


def _clean_worker_payload(payload: Dict[str, Any], *, partial: bool) -> tuple[Dict[str, Any], Dict[str, str]]:
    """Normalize a worker payload; with ``partial`` only supplied keys are returned."""

    errors: Dict[str, str] = {}
    values: Dict[str, Any] = {}

    def supplied(key: str) -> bool:
        return not partial or key in payload

    if supplied("name"):
        name = strip_or_none(payload.get("name"))
        if not name:
            errors["name"] = "Name is required."
        values["name"] = name
    if supplied("phone_number"):
        phone = strip_or_none(payload.get("phone_number"))
        if not phone:
            errors["phone_number"] = "Phone number is required."
        values["phone_number"] = phone
    if "worker_code" in payload:
        code = strip_or_none(payload.get("worker_code"))
        if code:
            values["worker_code"] = code.upper()
        elif partial:
            errors["worker_code"] = "Worker code cannot be blank."

    for field in WORKER_TEXT_FIELDS:
        if supplied(field):
            values[field] = strip_or_none(payload.get(field))

    if supplied("address"):
        values["address"] = _clean_mapping(payload.get("address"), ADDRESS_KEYS, "address", errors)
    if supplied("bank_details"):
        values["bank_details"] = _clean_mapping(payload.get("bank_details"), BANK_DETAIL_KEYS, "bank_details", errors)
    if supplied("specialization"):
        values["specialization"] = parse_string_list(payload.get("specialization"), "specialization", errors)
    if supplied("tags"):
        values["tags"] = parse_string_list(payload.get("tags"), "tags", errors)

    for field, scale in (("experience", "0.1"), ("hourly_rate", "0.01"), ("daily_rate", "0.01")):
        if supplied(field):
            values[field] = parse_decimal(payload.get(field), field, errors, quantize=scale)

    if supplied("skill_level"):
        values["skill_level"] = parse_enum(SkillLevel, payload.get("skill_level"), "skill_level", errors)

    status = parse_enum(WorkerStatus, payload.get("status"), "status", errors) if "status" in payload else None
    is_active = parse_bool(payload.get("is_active")) if "is_active" in payload else None
    if "is_active" in payload and is_active is None:
        errors["is_active"] = "Must be true or false."

    if status is not None:
        values["status"] = status
        values["is_active"] = status != WorkerStatus.INACTIVE if is_active is None else is_active
    elif is_active is not None:
        values["is_active"] = is_active
        values["status"] = WorkerStatus.ACTIVE if is_active else WorkerStatus.INACTIVE
    elif not partial:
        values["status"] = WorkerStatus.ACTIVE
        values["is_active"] = True

    if values.get("status") == WorkerStatus.INACTIVE and values.get("is_active"):
        errors["is_active"] = "An inactive worker cannot be flagged active."
    elif values.get("status") == WorkerStatus.ACTIVE and values.get("is_active") is False:
        errors["is_active"] = "An active worker cannot be flagged inactive."

    return values, errors


def _ensure_unique(company_id: int, *, phone_number: Optional[str] = None,
                   worker_code: Optional[str] = None, exclude_id: Optional[uuid.UUID] = None) -> None:
    if phone_number:
        query = JobWorker.query.filter(
            JobWorker.company_id == company_id,
            JobWorker.phone_number == phone_number,
        )
        if exclude_id is not None:
            query = query.filter(JobWorker.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(
                "Worker with this phone number already exists",
                {"phone_number": "Worker with this phone number already exists."},
            )
    if worker_code:
        query = JobWorker.query.filter(
            JobWorker.company_id == company_id,
            func.upper(JobWorker.worker_code) == worker_code.upper(),
        )
        if exclude_id is not None:
            query = query.filter(JobWorker.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(
                "Worker with this code already exists",
                {"worker_code": "Worker with this code already exists."},
            )


def _conflict_from_integrity(exc: IntegrityError) -> Optional[ConflictError]:
    if is_unique_violation(exc, "phone"):
        return ConflictError(
            "Worker with this phone number already exists",
            {"phone_number": "Worker with this phone number already exists."},
        )
    if is_unique_violation(exc, "worker_code"):
        return ConflictError(
            "Worker with this code already exists",
            {"worker_code": "Worker with this code already exists."},
        )
    return None


def create_worker(payload: Dict[str, Any], *, company_id: int, actor_id: int) -> JobWorker:
    values, errors = _clean_worker_payload(payload, partial=False)
    if errors:
        raise JobWorkerValidationError(errors)

    _ensure_unique(company_id, phone_number=values["phone_number"], worker_code=values.get("worker_code"))

    generated_code = "worker_code" not in values
    if generated_code:
        values["worker_code"] = get_next_worker_code(company_id)

    worker = JobWorker(company_id=company_id, created_by_id=actor_id, **values)
    db.session.add(worker)
    attempts = 0
    while True:
        try:
            db.session.commit()
            break
        except IntegrityError as exc:
            db.session.rollback()
            conflict = _conflict_from_integrity(exc)
            if conflict is None:
                raise
            if generated_code and "worker_code" in conflict.errors and attempts < MAX_CODE_ATTEMPTS:
                attempts += 1
                worker.worker_code = (
                    get_next_worker_code(company_id) if attempts < MAX_CODE_ATTEMPTS - 1 else _fallback_worker_code()
                )
                db.session.add(worker)
                continue
            raise conflict from exc

    current_app.logger.info(
        {
            "event": "job_worker_created",
            "worker_id": str(worker.id),
            "worker_code": worker.worker_code,
            "company_id": company_id,
            "created_by": actor_id,
        }
    )
    return worker


def get_worker(worker_id: Any, *, company_id: Optional[int] = None) -> JobWorker:
    try:
        key = worker_id if isinstance(worker_id, uuid.UUID) else uuid.UUID(str(worker_id))
    except (TypeError, ValueError):
        raise NotFoundError("Worker not found") from None
    worker = db.session.get(JobWorker, key)
    if worker is None:
        raise NotFoundError("Worker not found")
    ensure_company_access(worker, company_id, "Worker")
    return worker


def update_worker(
    worker_id: Any, payload: Dict[str, Any], *, actor_id: int, company_id: Optional[int] = None
) -> JobWorker:
    worker = get_worker(worker_id, company_id=company_id)
    values, errors = _clean_worker_payload(payload, partial=True)
    if errors:
        raise JobWorkerValidationError(errors)

    new_phone = values.get("phone_number")
    new_code = values.get("worker_code")
    _ensure_unique(
        worker.company_id,
        phone_number=new_phone if new_phone and new_phone != worker.phone_number else None,
        worker_code=new_code if new_code and new_code != worker.worker_code else None,
        exclude_id=worker.id,
    )

    for field, value in values.items():
        if getattr(worker, field) != value:
            setattr(worker, field, value)
    worker.updated_by_id = actor_id

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        conflict = _conflict_from_integrity(exc)
        if conflict is None:
            raise
        raise conflict from exc

    current_app.logger.info(
        {"event": "job_worker_updated", "worker_id": str(worker.id), "updated_by": actor_id}
    )
    return worker


def list_workers(
    company_id: int,
    *,
    status: Optional[str] = None,
    is_active: Optional[bool] = None,
    specialization: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> Dict[str, Any]:
    errors: Dict[str, str] = {}
    status_value = parse_enum(WorkerStatus, status, "status", errors)

    sort_key = camel_to_snake((sort_by or "name").strip())
    sort_column = SORTABLE_FIELDS.get(sort_key)
    if sort_column is None:
        errors["sortBy"] = "Unsupported sort field."
    direction = (sort_order or "asc").strip().lower()
    if direction not in {"asc", "desc"}:
        errors["sortOrder"] = "Sort order must be asc or desc."
    if errors:
        raise JobWorkerValidationError(errors)

    max_limit = current_app.config.get("WORKER_LIST_MAX_LIMIT", 200)
    page = max(1, page or 1)
    limit = max(1, min(limit or DEFAULT_PAGE_SIZE, max_limit))

    query = JobWorker.query.filter(JobWorker.company_id == company_id)
    if status_value is not None:
        query = query.filter(JobWorker.status == status_value)
    if is_active is not None:
        query = query.filter(JobWorker.is_active.is_(is_active))
    if specialization:
        # specialization is a JSON list; match the quoted element in its text form
        query = query.filter(
            cast(JobWorker.specialization, String).ilike(f'%"{specialization.strip()}"%')
        )
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                JobWorker.name.ilike(like),
                JobWorker.worker_code.ilike(like),
                JobWorker.phone_number.ilike(like),
            )
        )

    total = query.count()
    ordering = sort_column.desc() if direction == "desc" else sort_column.asc()
    items = query.order_by(ordering, JobWorker.id).offset((page - 1) * limit).limit(limit).all()

    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
    }


def count_open_assignments(worker_id: uuid.UUID) -> int:
    return (
        JobWorkerAssignment.query.filter(
            JobWorkerAssignment.worker_id == worker_id,
            JobWorkerAssignment.status.in_(AssignmentStatus.open_statuses()),
        ).count()
    )


def delete_worker(worker_id: Any, *, actor_id: int, company_id: Optional[int] = None) -> JobWorker:
    """Soft-delete a worker that has no open assignments."""

    worker = get_worker(worker_id, company_id=company_id)
    open_count = count_open_assignments(worker.id)
    if open_count > 0:
        raise BusinessRuleError(
            f"Cannot delete worker. There are {open_count} active assignment(s)"
        )

    worker.is_active = False
    worker.status = WorkerStatus.INACTIVE
    worker.updated_by_id = actor_id
    db.session.commit()

    current_app.logger.info(
        {"event": "job_worker_deleted", "worker_id": str(worker.id), "deleted_by": actor_id}
    )
    return worker
