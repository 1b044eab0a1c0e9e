"""Aggregations over the material ledger of many assignments."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func

from extensions import db
from models import AssignmentMaterial, AssignmentStatus, JobWorkerAssignment, PaymentStatus

from .assignments import get_assignment
from .helpers import normalize_date_range
from .workers import get_worker

ZERO = Decimal("0")

REPORT_SUM_COLUMNS = {
    "total_given": AssignmentMaterial.quantity_given,
    "total_used": AssignmentMaterial.quantity_used,
    "total_returned": AssignmentMaterial.quantity_returned,
    "total_remaining": AssignmentMaterial.quantity_remaining,
    "total_wasted": AssignmentMaterial.quantity_wasted,
    "total_value": AssignmentMaterial.total_value,
}


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def summarize_materials(materials: Iterable[AssignmentMaterial]) -> Dict[str, Any]:
    summary: Dict[str, Any] = {
        "total_materials": 0,
        "total_given": ZERO,
        "total_used": ZERO,
        "total_returned": ZERO,
        "total_remaining": ZERO,
        "total_wasted": ZERO,
        "total_value": ZERO,
    }
    for material in materials:
        summary["total_materials"] += 1
        summary["total_given"] += _to_decimal(material.quantity_given)
        summary["total_used"] += _to_decimal(material.quantity_used)
        summary["total_returned"] += _to_decimal(material.quantity_returned)
        summary["total_remaining"] += _to_decimal(material.quantity_remaining)
        summary["total_wasted"] += _to_decimal(material.quantity_wasted)
        summary["total_value"] += _to_decimal(material.total_value)
    return summary


def get_assignment_with_summary(assignment_id: Any, *, company_id: Optional[int] = None) -> Dict[str, Any]:
    assignment = get_assignment(assignment_id, company_id=company_id)
    return {"assignment": assignment, "summary": summarize_materials(assignment.materials)}


def get_worker_with_summary(worker_id: Any, *, company_id: Optional[int] = None) -> Dict[str, Any]:
    """Return the worker with counters folded from every one of their assignments."""

    worker = get_worker(worker_id, company_id=company_id)

    by_status = {status.value: 0 for status in AssignmentStatus}
    rows = (
        db.session.query(JobWorkerAssignment.status, func.count(JobWorkerAssignment.id))
        .filter(JobWorkerAssignment.worker_id == worker.id)
        .group_by(JobWorkerAssignment.status)
        .all()
    )
    for status, count in rows:
        by_status[AssignmentStatus(status).value] = count

    material_totals = (
        db.session.query(
            func.coalesce(func.sum(AssignmentMaterial.quantity_given), 0),
            func.coalesce(func.sum(AssignmentMaterial.quantity_used), 0),
            func.coalesce(func.sum(AssignmentMaterial.quantity_returned), 0),
            func.coalesce(func.sum(AssignmentMaterial.quantity_wasted), 0),
            func.coalesce(func.sum(AssignmentMaterial.quantity_remaining), 0),
        )
        .join(JobWorkerAssignment, AssignmentMaterial.assignment_id == JobWorkerAssignment.id)
        .filter(JobWorkerAssignment.worker_id == worker.id)
        .one()
    )
    given, used, returned, wasted, remaining = (_to_decimal(value) for value in material_totals)

    earned = ZERO
    pending = ZERO
    amounts = (
        db.session.query(
            JobWorkerAssignment.total_amount,
            JobWorkerAssignment.balance_amount,
            JobWorkerAssignment.payment_status,
        )
        .filter(
            JobWorkerAssignment.worker_id == worker.id,
            JobWorkerAssignment.total_amount.isnot(None),
        )
        .all()
    )
    for total_amount, balance_amount, payment_status in amounts:
        if PaymentStatus(payment_status) == PaymentStatus.PAID:
            earned += _to_decimal(total_amount)
        else:
            pending += _to_decimal(balance_amount if balance_amount is not None else total_amount)

    summary = {
        "total_assignments": sum(by_status.values()),
        "active_assignments": sum(by_status[status.value] for status in AssignmentStatus.open_statuses()),
        "completed_assignments": by_status[AssignmentStatus.COMPLETED.value],
        "assignments_by_status": by_status,
        "total_materials_given": given,
        "total_materials_used": used,
        "total_materials_returned": returned,
        "total_materials_wasted": wasted,
        "total_materials_remaining": remaining,
        "total_amount_earned": earned,
        "total_amount_pending": pending,
    }
    return {"worker": worker, "summary": summary}


def material_tracking_report(
    worker_id: Any,
    *,
    company_id: Optional[int] = None,
    date_from: Any = None,
    date_to: Any = None,
) -> List[Dict[str, Any]]:
    """Per-item totals of every material line issued to a worker.

    Only assignments whose ``assigned_date`` falls within the optional bounds
    are included. Row order is not significant.
    """

    worker = get_worker(worker_id, company_id=company_id)
    start, end = normalize_date_range(date_from, date_to)

    sums = [
        func.coalesce(func.sum(column), 0).label(label) for label, column in REPORT_SUM_COLUMNS.items()
    ]
    query = (
        db.session.query(
            AssignmentMaterial.item_id,
            func.max(AssignmentMaterial.item_name).label("item_name"),
            func.max(AssignmentMaterial.item_code).label("item_code"),
            func.max(AssignmentMaterial.unit).label("unit"),
            *sums,
        )
        .join(JobWorkerAssignment, AssignmentMaterial.assignment_id == JobWorkerAssignment.id)
        .filter(JobWorkerAssignment.worker_id == worker.id)
    )
    if start is not None:
        query = query.filter(JobWorkerAssignment.assigned_date >= start)
    if end is not None:
        query = query.filter(JobWorkerAssignment.assigned_date <= end)

    report: List[Dict[str, Any]] = []
    for row in query.group_by(AssignmentMaterial.item_id).all():
        entry = {
            "item_id": row.item_id,
            "item_name": row.item_name,
            "item_code": row.item_code,
            "unit": row.unit,
        }
        for label in REPORT_SUM_COLUMNS:
            entry[label] = _to_decimal(getattr(row, label))
        report.append(entry)
    return report
