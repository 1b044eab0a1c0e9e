"""Job worker registry API routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from job_worker import (
    create_worker,
    delete_worker,
    get_worker,
    get_worker_with_summary,
    list_assignments_by_worker,
    list_workers,
    material_tracking_report,
    update_worker,
)
from job_worker.helpers import parse_bool
from job_worker.workers import DEFAULT_PAGE_SIZE
from schemas import (
    JobWorkerAssignmentSchema,
    JobWorkerPayloadSchema,
    JobWorkerSchema,
    JobWorkerWithSummarySchema,
    MaterialReportRowSchema,
)

from .common import current_actor_id, load_payload, query_int, register_error_handlers, resolve_company_id

bp = Blueprint("job_workers", __name__, url_prefix="/api/workers")
register_error_handlers(bp)

worker_schema = JobWorkerSchema()
workers_schema = JobWorkerSchema(many=True)
worker_summary_schema = JobWorkerWithSummarySchema()
worker_payload_schema = JobWorkerPayloadSchema()
assignments_schema = JobWorkerAssignmentSchema(many=True)
report_schema = MaterialReportRowSchema(many=True)


@bp.post("")
@jwt_required()
def create():
    actor_id = current_actor_id()
    payload = load_payload(worker_payload_schema)
    company_id = resolve_company_id(payload.pop("company_id", None))
    worker = create_worker(payload, company_id=company_id, actor_id=actor_id)
    return (
        jsonify({"success": True, "message": "Job worker created successfully", "data": worker_schema.dump(worker)}),
        201,
    )


@bp.get("")
@jwt_required()
def index():
    company_id = resolve_company_id(request.args.get("companyId"))
    result = list_workers(
        company_id,
        status=request.args.get("status"),
        is_active=parse_bool(request.args.get("isActive")),
        specialization=request.args.get("specialization"),
        search=request.args.get("search"),
        page=query_int("page", 1),
        limit=query_int("limit", DEFAULT_PAGE_SIZE),
        sort_by=request.args.get("sortBy"),
        sort_order=request.args.get("sortOrder"),
    )
    return jsonify(
        {
            "success": True,
            "data": workers_schema.dump(result["items"]),
            "total": result["total"],
            "page": result["page"],
            "limit": result["limit"],
            "totalPages": result["total_pages"],
        }
    )


@bp.get("/<string:worker_id>")
@jwt_required()
def detail(worker_id: str):
    company_id = resolve_company_id(request.args.get("companyId"), required=False)
    if parse_bool(request.args.get("includeSummary")):
        result = get_worker_with_summary(worker_id, company_id=company_id)
        return jsonify({"success": True, "data": worker_summary_schema.dump(result)})
    worker = get_worker(worker_id, company_id=company_id)
    return jsonify({"success": True, "data": worker_schema.dump(worker)})


@bp.put("/<string:worker_id>")
@jwt_required()
def update(worker_id: str):
    actor_id = current_actor_id()
    payload = load_payload(worker_payload_schema)
    company_id = resolve_company_id(payload.pop("company_id", None), required=False)
    worker = update_worker(worker_id, payload, actor_id=actor_id, company_id=company_id)
    return jsonify({"success": True, "message": "Job worker updated successfully", "data": worker_schema.dump(worker)})


@bp.delete("/<string:worker_id>")
@jwt_required()
def delete(worker_id: str):
    actor_id = current_actor_id()
    company_id = resolve_company_id(request.args.get("companyId"), required=False)
    worker = delete_worker(worker_id, actor_id=actor_id, company_id=company_id)
    return jsonify({"success": True, "message": "Job worker deleted successfully", "data": worker_schema.dump(worker)})


@bp.get("/<string:worker_id>/assignments")
@jwt_required()
def worker_assignments(worker_id: str):
    company_id = resolve_company_id(request.args.get("companyId"), required=False)
    items, total = list_assignments_by_worker(
        worker_id,
        company_id=company_id,
        status=request.args.get("status"),
        job_type=request.args.get("jobType"),
        date_from=request.args.get("dateFrom"),
        date_to=request.args.get("dateTo"),
    )
    return jsonify({"success": True, "data": assignments_schema.dump(items), "total": total})


@bp.get("/<string:worker_id>/material-report")
@jwt_required()
def material_report(worker_id: str):
    company_id = resolve_company_id(request.args.get("companyId"), required=False)
    rows = material_tracking_report(
        worker_id,
        company_id=company_id,
        date_from=request.args.get("dateFrom"),
        date_to=request.args.get("dateTo"),
    )
    return jsonify({"success": True, "data": report_schema.dump(rows)})
