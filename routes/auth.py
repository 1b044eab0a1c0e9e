from flask import Blueprint, current_app, request, jsonify
from extensions import db
from job_worker import ConflictError, JobWorkerValidationError, UnauthenticatedError, UnauthorizedError
from models import Company, User, RoleEnum
from flask_jwt_extended import (
    create_access_token,
    get_jwt,
    jwt_required,
    set_access_cookies,
    unset_jwt_cookies,
)
from sqlalchemy import func

from schemas import UserSchema

from .common import register_error_handlers

bp = Blueprint("auth", __name__, url_prefix="/api/auth")
register_error_handlers(bp)

user_schema = UserSchema()


@bp.post("/register")
@jwt_required()  # only admins can register
def register():
    claims = get_jwt()
    try:
        requester_role = RoleEnum(claims.get("role"))
    except (ValueError, TypeError):
        raise UnauthorizedError("Admins only") from None

    if requester_role != RoleEnum.admin:
        raise UnauthorizedError("Admins only")

    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    name = (data.get("name") or "").strip()
    role = data.get("role")
    password = data.get("password")
    company_key = (data.get("companyKey") or data.get("company_key") or "").strip() or None

    if not email or not name or not role or not password:
        raise JobWorkerValidationError(
            {"body": "Name, email, role, and password are required"},
            "Name, email, role, and password are required",
        )

    try:
        role_enum = RoleEnum(role)
    except ValueError:
        raise JobWorkerValidationError({"role": "Invalid role"}) from None

    if company_key and Company.query.filter_by(key=company_key).first() is None:
        raise JobWorkerValidationError({"companyKey": "Invalid company key"})

    if User.query.filter(func.lower(User.email) == email).first() is not None:
        raise ConflictError("Email already registered", {"email": "Email already registered"})

    u = User(name=name, email=email, role=role_enum, company_key=company_key)
    u.set_password(password)
    db.session.add(u)
    db.session.commit()
    current_app.logger.info({"event": "user_registered", "user_id": u.id, "role": role_enum.value})
    return jsonify({"success": True, "message": "User registered successfully", "data": user_schema.dump(u)}), 201


@bp.post("/login")
def login():
    payload = request.get_json(silent=True)
    if not payload:
        payload = request.form.to_dict() if request.form else {}

    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        raise JobWorkerValidationError(
            {"body": "Email and password are required"}, "Email and password are required"
        )

    u = User.query.filter(func.lower(User.email) == email).first()
    if not u or not u.check_password(password) or not u.active:
        raise UnauthenticatedError("Invalid email or password")

    claims = {"role": u.role.value}
    if u.company_key:
        claims["company_key"] = u.company_key

    token = create_access_token(identity=str(u.id), additional_claims=claims)
    response = jsonify(success=True, access_token=token, user=user_schema.dump(u))
    set_access_cookies(response, token)
    return response


@bp.post("/logout")
def logout():
    response = jsonify({"success": True, "message": "Logged out"})
    unset_jwt_cookies(response)
    return response
