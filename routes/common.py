"""Request helpers shared by the job worker blueprints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt, get_jwt_identity
from marshmallow import Schema, ValidationError as SchemaValidationError
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from job_worker import JobWorkerError, JobWorkerValidationError, UnauthenticatedError, UnauthorizedError
from models import Company, RoleEnum


def current_actor_id() -> int:
    identity = get_jwt_identity()
    try:
        return int(identity)
    except (TypeError, ValueError):
        raise UnauthenticatedError("User not authenticated") from None


def _actor_role() -> Optional[RoleEnum]:
    try:
        return RoleEnum(get_jwt().get("role"))
    except (ValueError, TypeError):
        return None


def resolve_company_id(explicit: Any = None, *, required: bool = True) -> Optional[int]:
    """Return the company the request acts on.

    An explicit ``companyId`` wins; otherwise the company linked to the
    actor's ``company_key`` claim is used. Only admins may act on a company
    other than their own. With ``required=False`` an admin without a company
    gets ``None`` (no tenant filter) for lookups by id.
    """

    claims = get_jwt()
    company_key = claims.get("company_key")
    own_company = Company.query.filter_by(key=company_key).first() if company_key else None

    if explicit not in (None, ""):
        try:
            company_id = int(explicit)
        except (TypeError, ValueError):
            raise JobWorkerValidationError({"companyId": "Invalid company identifier."}) from None
        if db.session.get(Company, company_id) is None:
            raise JobWorkerValidationError({"companyId": "Company not found."})
        if _actor_role() != RoleEnum.admin and (own_company is None or own_company.id != company_id):
            raise UnauthorizedError("You do not have access to this company")
        return company_id

    if own_company is None:
        if not required and _actor_role() == RoleEnum.admin:
            return None
        raise JobWorkerValidationError({"companyId": "Company ID is required"})
    return own_company.id


def load_payload(schema: Schema) -> Dict[str, Any]:
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise JobWorkerValidationError({"body": "Request body must be a JSON object."})
    return schema.load(payload)


def query_int(name: str, default: int) -> int:
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


def _flatten_messages(messages: Any, prefix: str = "") -> Dict[str, str]:
    flat: Dict[str, str] = {}
    if isinstance(messages, dict):
        for key, value in messages.items():
            flat.update(_flatten_messages(value, f"{prefix}{key}."))
    elif isinstance(messages, list) and messages and all(isinstance(item, str) for item in messages):
        flat[prefix.rstrip(".")] = " ".join(messages)
    elif isinstance(messages, list):
        for index, value in enumerate(messages):
            flat.update(_flatten_messages(value, f"{prefix}{index}."))
    else:
        flat[prefix.rstrip(".") or "body"] = str(messages)
    return flat


def _request_actor() -> Optional[str]:
    try:
        return get_jwt_identity()
    except RuntimeError:
        return None


def _log_context() -> Dict[str, Any]:
    return {
        "method": request.method,
        "path": request.path,
        "ids": dict(request.view_args or {}),
        "actor": _request_actor(),
    }


def register_error_handlers(bp: Blueprint) -> None:
    """Turn service errors raised inside ``bp`` into the standard error envelope."""

    @bp.errorhandler(JobWorkerError)
    def handle_job_worker_error(exc: JobWorkerError):
        current_app.logger.warning(
            {"event": "job_worker_request_failed", "kind": exc.kind, "message": exc.message, **_log_context()}
        )
        return jsonify(exc.to_dict()), exc.status_code

    @bp.errorhandler(SchemaValidationError)
    def handle_schema_error(exc: SchemaValidationError):
        error = JobWorkerValidationError(_flatten_messages(exc.messages))
        current_app.logger.warning(
            {"event": "job_worker_request_invalid", "errors": error.errors, **_log_context()}
        )
        return jsonify(error.to_dict()), error.status_code

    @bp.errorhandler(SQLAlchemyError)
    def handle_storage_error(exc: SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception(
            {"event": "job_worker_storage_error", "error_type": type(exc).__name__, **_log_context()}
        )
        return jsonify({"success": False, "message": "Unexpected storage error", "kind": "error"}), 500
