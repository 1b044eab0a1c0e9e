"""Job worker assignment API routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from job_worker import (
    add_material,
    create_assignment,
    get_assignment,
    get_assignment_with_summary,
    list_assignments,
    update_assignment,
    update_material_tracking,
    update_status,
)
from job_worker.helpers import parse_bool
from schemas import (
    AssignmentPayloadSchema,
    AssignmentWithSummarySchema,
    JobWorkerAssignmentSchema,
    MaterialPayloadSchema,
    StatusPayloadSchema,
)

from .common import current_actor_id, load_payload, register_error_handlers, resolve_company_id

bp = Blueprint("assignments", __name__, url_prefix="/api/assignments")
register_error_handlers(bp)

assignment_schema = JobWorkerAssignmentSchema()
assignments_schema = JobWorkerAssignmentSchema(many=True)
assignment_summary_schema = AssignmentWithSummarySchema()
assignment_payload_schema = AssignmentPayloadSchema()
material_payload_schema = MaterialPayloadSchema()
status_payload_schema = StatusPayloadSchema()


def _mutation(message: str, assignment, status: int = 200):
    return jsonify({"success": True, "message": message, "data": assignment_schema.dump(assignment)}), status


@bp.post("")
@jwt_required()
def create():
    actor_id = current_actor_id()
    payload = load_payload(assignment_payload_schema)
    company_id = resolve_company_id(payload.pop("company_id", None))
    assignment = create_assignment(payload, company_id=company_id, actor_id=actor_id)
    return _mutation("Assignment created successfully", assignment, 201)


@bp.get("")
@jwt_required()
def index():
    company_id = resolve_company_id(request.args.get("companyId"))
    items, total = list_assignments(
        company_id,
        worker_id=request.args.get("workerId"),
        status=request.args.get("status"),
        job_type=request.args.get("jobType"),
        date_from=request.args.get("dateFrom"),
        date_to=request.args.get("dateTo"),
        search=request.args.get("search"),
    )
    return jsonify({"success": True, "data": assignments_schema.dump(items), "total": total})


@bp.get("/<string:assignment_id>")
@jwt_required()
def detail(assignment_id: str):
    company_id = resolve_company_id(request.args.get("companyId"), required=False)
    if parse_bool(request.args.get("includeSummary")):
        result = get_assignment_with_summary(assignment_id, company_id=company_id)
        return jsonify({"success": True, "data": assignment_summary_schema.dump(result)})
    assignment = get_assignment(assignment_id, company_id=company_id)
    return jsonify({"success": True, "data": assignment_schema.dump(assignment)})


@bp.put("/<string:assignment_id>")
@jwt_required()
def update(assignment_id: str):
    actor_id = current_actor_id()
    payload = load_payload(assignment_payload_schema)
    company_id = resolve_company_id(payload.pop("company_id", None), required=False)
    assignment = update_assignment(assignment_id, payload, actor_id=actor_id, company_id=company_id)
    return _mutation("Assignment updated successfully", assignment)


@bp.patch("/<string:assignment_id>/status")
@jwt_required()
def change_status(assignment_id: str):
    actor_id = current_actor_id()
    payload = load_payload(status_payload_schema)
    company_id = resolve_company_id(request.args.get("companyId"), required=False)
    assignment = update_status(
        assignment_id,
        payload.get("status"),
        actor_id=actor_id,
        company_id=company_id,
        version=payload.get("version"),
    )
    return _mutation("Assignment status updated successfully", assignment)


@bp.post("/<string:assignment_id>/materials")
@jwt_required()
def append_material(assignment_id: str):
    actor_id = current_actor_id()
    entry = load_payload(material_payload_schema)
    company_id = resolve_company_id(request.args.get("companyId"), required=False)
    assignment = add_material(assignment_id, entry, actor_id=actor_id, company_id=company_id)
    return _mutation("Material added successfully", assignment, 201)


@bp.patch("/<string:assignment_id>/materials/<string:index>")
@jwt_required()
def patch_material(assignment_id: str, index: str):
    actor_id = current_actor_id()
    patch = load_payload(material_payload_schema)
    company_id = resolve_company_id(request.args.get("companyId"), required=False)
    assignment = update_material_tracking(
        assignment_id, index, patch, actor_id=actor_id, company_id=company_id
    )
    return _mutation("Material tracking updated successfully", assignment)
