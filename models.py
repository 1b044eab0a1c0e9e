import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.types import CHAR, TypeDecorator

from extensions import db
from werkzeug.security import generate_password_hash, check_password_hash


class GUID(TypeDecorator):
    """Platform-independent GUID type."""

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):  # pragma: no cover - SQLAlchemy hook
        # Bind as CHAR(36) on every backend so PostgreSQL does not coerce
        # parameters to ``::UUID`` against VARCHAR columns.
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):  # pragma: no cover - SQLAlchemy hook
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):  # pragma: no cover - SQLAlchemy hook
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class RoleEnum(str, Enum):
    admin = "admin"
    production_manager = "production_manager"
    store_manager = "store_manager"


class Company(db.Model):
    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"<Company {self.key}>"


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.Enum(RoleEnum), nullable=False, default=RoleEnum.production_manager)
    active = db.Column(db.Boolean, default=True)
    company_key = db.Column(db.String(64), nullable=True, index=True)

    def set_password(self, pw): self.password_hash = generate_password_hash(pw)
    def check_password(self, pw): return check_password_hash(self.password_hash, pw)


class WorkerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class AssignmentStatus(str, Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"

    @classmethod
    def open_statuses(cls) -> tuple["AssignmentStatus", ...]:
        return (cls.ASSIGNED, cls.IN_PROGRESS)


class JobType(str, Enum):
    PRINTING = "printing"
    DYEING = "dyeing"
    WASHING = "washing"
    FINISHING = "finishing"
    CUTTING = "cutting"
    PACKING = "packing"
    STITCHING = "stitching"
    QUALITY_CHECK = "quality_check"
    OTHER = "other"


class OutputQuality(str, Enum):
    A_PLUS = "A+"
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C = "C"
    REJECT = "Reject"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class JobWorker(db.Model):
    """An external party that material is sent to for processing.

    ``is_active`` mirrors ``status`` and is only kept so list screens can
    filter on a boolean; services keep the two in step.
    """

    __tablename__ = "job_workers"

    id = db.Column(GUID(), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    worker_code = db.Column(db.String(40), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    phone_number = db.Column(db.String(40), nullable=False)
    alternate_phone_number = db.Column(db.String(40))
    email = db.Column(db.String(255))
    address = db.Column(db.JSON)
    aadhar_number = db.Column(db.String(40))
    pan_number = db.Column(db.String(40))
    gst_number = db.Column(db.String(40))
    bank_details = db.Column(db.JSON)
    specialization = db.Column(db.JSON, nullable=False, default=list)
    experience = db.Column(db.Numeric(5, 1))
    skill_level = db.Column(
        db.Enum(SkillLevel, values_callable=_enum_values, name="jobworkerskilllevel", validate_strings=True),
    )
    hourly_rate = db.Column(db.Numeric(12, 2))
    daily_rate = db.Column(db.Numeric(12, 2))
    status = db.Column(
        db.Enum(WorkerStatus, values_callable=_enum_values, name="jobworkerstatus", validate_strings=True),
        nullable=False,
        default=WorkerStatus.ACTIVE,
        index=True,
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    notes = db.Column(db.Text)
    tags = db.Column(db.JSON, nullable=False, default=list)
    created_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    updated_by_id = db.Column(db.Integer, db.ForeignKey("user.id"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    company = db.relationship("Company")
    assignments = db.relationship("JobWorkerAssignment", back_populates="worker", lazy="dynamic")

    __table_args__ = (
        UniqueConstraint("company_id", "worker_code", name="uq_job_worker_company_code"),
        UniqueConstraint("company_id", "phone_number", name="uq_job_worker_company_phone"),
        CheckConstraint("hourly_rate IS NULL OR hourly_rate >= 0", name="ck_job_worker_hourly_rate_non_negative"),
        CheckConstraint("daily_rate IS NULL OR daily_rate >= 0", name="ck_job_worker_daily_rate_non_negative"),
    )

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"<JobWorker {self.worker_code}>"


class JobWorkerAssignment(db.Model):
    """One unit of outsourced work issued to a job worker.

    ``worker_name`` and ``worker_code`` are copied from the worker when the
    assignment is created and are never refreshed, so renaming a worker does
    not rewrite the history of jobs already issued to them.
    """

    __tablename__ = "job_worker_assignments"

    id = db.Column(GUID(), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    worker_id = db.Column(GUID(), db.ForeignKey("job_workers.id"), nullable=False, index=True)
    worker_name = db.Column(db.String(200), nullable=False)
    worker_code = db.Column(db.String(40), nullable=False)
    assignment_number = db.Column(db.String(40), nullable=False, unique=True)
    job_type = db.Column(
        db.Enum(JobType, values_callable=_enum_values, name="jobworkerjobtype", validate_strings=True),
        nullable=False,
        index=True,
    )
    job_description = db.Column(db.String(1000))
    status = db.Column(
        db.Enum(AssignmentStatus, values_callable=_enum_values, name="jobworkerassignmentstatus", validate_strings=True),
        nullable=False,
        default=AssignmentStatus.ASSIGNED,
        index=True,
    )
    assigned_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    expected_completion_date = db.Column(db.DateTime)
    actual_completion_date = db.Column(db.DateTime)
    start_date = db.Column(db.DateTime)

    output_quantity = db.Column(db.Numeric(14, 3))
    output_unit = db.Column(db.String(40))
    output_quality = db.Column(
        db.Enum(OutputQuality, values_callable=_enum_values, name="jobworkeroutputquality", validate_strings=True),
    )
    output_notes = db.Column(db.Text)

    job_rate = db.Column(db.Numeric(14, 2))
    total_amount = db.Column(db.Numeric(14, 2))
    advance_paid = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0"))
    balance_amount = db.Column(db.Numeric(14, 2))
    payment_status = db.Column(
        db.Enum(PaymentStatus, values_callable=_enum_values, name="jobworkerpaymentstatus", validate_strings=True),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    payment_date = db.Column(db.DateTime)

    quality_rating = db.Column(db.Integer)
    quality_notes = db.Column(db.Text)
    remarks = db.Column(db.Text)
    issues = db.Column(db.JSON, nullable=False, default=list)

    created_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    updated_by_id = db.Column(db.Integer, db.ForeignKey("user.id"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    version = db.Column(db.Integer, nullable=False)

    worker = db.relationship("JobWorker", back_populates="assignments")
    materials = db.relationship(
        "AssignmentMaterial",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="AssignmentMaterial.position",
        collection_class=ordering_list("position"),
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.Index("ix_job_worker_assignment_company_worker", "company_id", "worker_id"),
        db.Index("ix_job_worker_assignment_worker_status", "worker_id", "status"),
        CheckConstraint("advance_paid >= 0", name="ck_job_worker_assignment_advance_non_negative"),
        CheckConstraint("total_amount IS NULL OR total_amount >= 0", name="ck_job_worker_assignment_total_non_negative"),
        CheckConstraint("balance_amount IS NULL OR balance_amount >= 0", name="ck_job_worker_assignment_balance_non_negative"),
        CheckConstraint(
            "quality_rating IS NULL OR (quality_rating >= 1 AND quality_rating <= 5)",
            name="ck_job_worker_assignment_quality_rating_range",
        ),
    )

    def touch(self, actor_id: int) -> None:
        """Mark the row dirty so the version check runs even for child-only edits."""

        self.updated_by_id = actor_id
        self.updated_at = datetime.utcnow()
        flag_modified(self, "updated_at")

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"<JobWorkerAssignment {self.assignment_number}>"


class AssignmentMaterial(db.Model):
    __tablename__ = "job_worker_assignment_materials"

    id = db.Column(db.Integer, primary_key=True)
    assignment_id = db.Column(
        GUID(), db.ForeignKey("job_worker_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = db.Column(db.Integer, nullable=False)
    item_id = db.Column(db.String(64), nullable=False, index=True)
    item_name = db.Column(db.String(255), nullable=False)
    item_code = db.Column(db.String(80))
    category_id = db.Column(db.String(64))
    category_name = db.Column(db.String(120))
    unit = db.Column(db.String(40), nullable=False)
    quantity_given = db.Column(db.Numeric(14, 3), nullable=False, default=Decimal("0"))
    quantity_used = db.Column(db.Numeric(14, 3), nullable=False, default=Decimal("0"))
    quantity_returned = db.Column(db.Numeric(14, 3), nullable=False, default=Decimal("0"))
    quantity_wasted = db.Column(db.Numeric(14, 3), nullable=False, default=Decimal("0"))
    quantity_remaining = db.Column(db.Numeric(14, 3), nullable=False, default=Decimal("0"))
    rate = db.Column(db.Numeric(14, 2))
    total_value = db.Column(db.Numeric(16, 2))
    notes = db.Column(db.Text)

    assignment = db.relationship("JobWorkerAssignment", back_populates="materials")

    __table_args__ = (
        CheckConstraint("quantity_given >= 0", name="ck_jw_material_given_non_negative"),
        CheckConstraint("quantity_used >= 0", name="ck_jw_material_used_non_negative"),
        CheckConstraint("quantity_returned >= 0", name="ck_jw_material_returned_non_negative"),
        CheckConstraint("quantity_wasted >= 0", name="ck_jw_material_wasted_non_negative"),
        CheckConstraint("quantity_remaining >= 0", name="ck_jw_material_remaining_non_negative"),
        CheckConstraint("rate IS NULL OR rate >= 0", name="ck_jw_material_rate_non_negative"),
    )
