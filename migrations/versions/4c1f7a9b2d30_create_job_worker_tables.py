"""Create companies, users and the job worker ledger tables

Revision ID: 4c1f7a9b2d30
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "4c1f7a9b2d30"
down_revision = None
branch_labels = None
depends_on = None


ROLE_ENUM = sa.Enum("admin", "production_manager", "store_manager", name="roleenum")
WORKER_STATUS_ENUM = sa.Enum("active", "inactive", "suspended", name="jobworkerstatus")
SKILL_LEVEL_ENUM = sa.Enum("beginner", "intermediate", "advanced", "expert", name="jobworkerskilllevel")
JOB_TYPE_ENUM = sa.Enum(
    "printing",
    "dyeing",
    "washing",
    "finishing",
    "cutting",
    "packing",
    "stitching",
    "quality_check",
    "other",
    name="jobworkerjobtype",
)
ASSIGNMENT_STATUS_ENUM = sa.Enum(
    "assigned", "in_progress", "completed", "on_hold", "cancelled", name="jobworkerassignmentstatus"
)
OUTPUT_QUALITY_ENUM = sa.Enum("A+", "A", "B+", "B", "C", "Reject", name="jobworkeroutputquality")
PAYMENT_STATUS_ENUM = sa.Enum("pending", "partial", "paid", name="jobworkerpaymentstatus")


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key"),
    )

    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("password_hash", sa.String(length=256), nullable=False),
        sa.Column("role", ROLE_ENUM, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column("company_key", sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_user_company_key", "user", ["company_key"])

    op.create_table(
        "job_workers",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("worker_code", sa.String(length=40), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("phone_number", sa.String(length=40), nullable=False),
        sa.Column("alternate_phone_number", sa.String(length=40), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("address", sa.JSON(), nullable=True),
        sa.Column("aadhar_number", sa.String(length=40), nullable=True),
        sa.Column("pan_number", sa.String(length=40), nullable=True),
        sa.Column("gst_number", sa.String(length=40), nullable=True),
        sa.Column("bank_details", sa.JSON(), nullable=True),
        sa.Column("specialization", sa.JSON(), nullable=False),
        sa.Column("experience", sa.Numeric(5, 1), nullable=True),
        sa.Column("skill_level", SKILL_LEVEL_ENUM, nullable=True),
        sa.Column("hourly_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("daily_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("status", WORKER_STATUS_ENUM, nullable=False, server_default="active"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column("updated_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ),
        sa.ForeignKeyConstraint(["created_by_id"], ["user.id"], ),
        sa.ForeignKeyConstraint(["updated_by_id"], ["user.id"], ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "worker_code", name="uq_job_worker_company_code"),
        sa.UniqueConstraint("company_id", "phone_number", name="uq_job_worker_company_phone"),
        sa.CheckConstraint("hourly_rate IS NULL OR hourly_rate >= 0", name="ck_job_worker_hourly_rate_non_negative"),
        sa.CheckConstraint("daily_rate IS NULL OR daily_rate >= 0", name="ck_job_worker_daily_rate_non_negative"),
    )
    op.create_index("ix_job_workers_company_id", "job_workers", ["company_id"])
    op.create_index("ix_job_workers_status", "job_workers", ["status"])
    op.create_index("ix_job_workers_is_active", "job_workers", ["is_active"])

    op.create_table(
        "job_worker_assignments",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("worker_id", sa.String(length=36), nullable=False),
        sa.Column("worker_name", sa.String(length=200), nullable=False),
        sa.Column("worker_code", sa.String(length=40), nullable=False),
        sa.Column("assignment_number", sa.String(length=40), nullable=False),
        sa.Column("job_type", JOB_TYPE_ENUM, nullable=False),
        sa.Column("job_description", sa.String(length=1000), nullable=True),
        sa.Column("status", ASSIGNMENT_STATUS_ENUM, nullable=False, server_default="assigned"),
        sa.Column("assigned_date", sa.DateTime(), nullable=False),
        sa.Column("expected_completion_date", sa.DateTime(), nullable=True),
        sa.Column("actual_completion_date", sa.DateTime(), nullable=True),
        sa.Column("start_date", sa.DateTime(), nullable=True),
        sa.Column("output_quantity", sa.Numeric(14, 3), nullable=True),
        sa.Column("output_unit", sa.String(length=40), nullable=True),
        sa.Column("output_quality", OUTPUT_QUALITY_ENUM, nullable=True),
        sa.Column("output_notes", sa.Text(), nullable=True),
        sa.Column("job_rate", sa.Numeric(14, 2), nullable=True),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("advance_paid", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("balance_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("payment_status", PAYMENT_STATUS_ENUM, nullable=False, server_default="pending"),
        sa.Column("payment_date", sa.DateTime(), nullable=True),
        sa.Column("quality_rating", sa.Integer(), nullable=True),
        sa.Column("quality_notes", sa.Text(), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("issues", sa.JSON(), nullable=False),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column("updated_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ),
        sa.ForeignKeyConstraint(["worker_id"], ["job_workers.id"], ),
        sa.ForeignKeyConstraint(["created_by_id"], ["user.id"], ),
        sa.ForeignKeyConstraint(["updated_by_id"], ["user.id"], ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("assignment_number"),
        sa.CheckConstraint("advance_paid >= 0", name="ck_job_worker_assignment_advance_non_negative"),
        sa.CheckConstraint(
            "total_amount IS NULL OR total_amount >= 0", name="ck_job_worker_assignment_total_non_negative"
        ),
        sa.CheckConstraint(
            "balance_amount IS NULL OR balance_amount >= 0", name="ck_job_worker_assignment_balance_non_negative"
        ),
        sa.CheckConstraint(
            "quality_rating IS NULL OR (quality_rating >= 1 AND quality_rating <= 5)",
            name="ck_job_worker_assignment_quality_rating_range",
        ),
    )
    op.create_index("ix_job_worker_assignments_company_id", "job_worker_assignments", ["company_id"])
    op.create_index("ix_job_worker_assignments_worker_id", "job_worker_assignments", ["worker_id"])
    op.create_index("ix_job_worker_assignments_job_type", "job_worker_assignments", ["job_type"])
    op.create_index("ix_job_worker_assignments_status", "job_worker_assignments", ["status"])
    op.create_index("ix_job_worker_assignments_assigned_date", "job_worker_assignments", ["assigned_date"])
    op.create_index(
        "ix_job_worker_assignment_company_worker", "job_worker_assignments", ["company_id", "worker_id"]
    )
    op.create_index("ix_job_worker_assignment_worker_status", "job_worker_assignments", ["worker_id", "status"])

    op.create_table(
        "job_worker_assignment_materials",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("assignment_id", sa.String(length=36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("item_name", sa.String(length=255), nullable=False),
        sa.Column("item_code", sa.String(length=80), nullable=True),
        sa.Column("category_id", sa.String(length=64), nullable=True),
        sa.Column("category_name", sa.String(length=120), nullable=True),
        sa.Column("unit", sa.String(length=40), nullable=False),
        sa.Column("quantity_given", sa.Numeric(14, 3), nullable=False, server_default="0"),
        sa.Column("quantity_used", sa.Numeric(14, 3), nullable=False, server_default="0"),
        sa.Column("quantity_returned", sa.Numeric(14, 3), nullable=False, server_default="0"),
        sa.Column("quantity_wasted", sa.Numeric(14, 3), nullable=False, server_default="0"),
        sa.Column("quantity_remaining", sa.Numeric(14, 3), nullable=False, server_default="0"),
        sa.Column("rate", sa.Numeric(14, 2), nullable=True),
        sa.Column("total_value", sa.Numeric(16, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["assignment_id"], ["job_worker_assignments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity_given >= 0", name="ck_jw_material_given_non_negative"),
        sa.CheckConstraint("quantity_used >= 0", name="ck_jw_material_used_non_negative"),
        sa.CheckConstraint("quantity_returned >= 0", name="ck_jw_material_returned_non_negative"),
        sa.CheckConstraint("quantity_wasted >= 0", name="ck_jw_material_wasted_non_negative"),
        sa.CheckConstraint("quantity_remaining >= 0", name="ck_jw_material_remaining_non_negative"),
        sa.CheckConstraint("rate IS NULL OR rate >= 0", name="ck_jw_material_rate_non_negative"),
    )
    op.create_index(
        "ix_job_worker_assignment_materials_assignment_id", "job_worker_assignment_materials", ["assignment_id"]
    )
    op.create_index("ix_job_worker_assignment_materials_item_id", "job_worker_assignment_materials", ["item_id"])


def downgrade() -> None:
    op.drop_index("ix_job_worker_assignment_materials_item_id", table_name="job_worker_assignment_materials")
    op.drop_index("ix_job_worker_assignment_materials_assignment_id", table_name="job_worker_assignment_materials")
    op.drop_table("job_worker_assignment_materials")

    for index_name in (
        "ix_job_worker_assignment_worker_status",
        "ix_job_worker_assignment_company_worker",
        "ix_job_worker_assignments_assigned_date",
        "ix_job_worker_assignments_status",
        "ix_job_worker_assignments_job_type",
        "ix_job_worker_assignments_worker_id",
        "ix_job_worker_assignments_company_id",
    ):
        op.drop_index(index_name, table_name="job_worker_assignments")
    op.drop_table("job_worker_assignments")

    op.drop_index("ix_job_workers_is_active", table_name="job_workers")
    op.drop_index("ix_job_workers_status", table_name="job_workers")
    op.drop_index("ix_job_workers_company_id", table_name="job_workers")
    op.drop_table("job_workers")

    op.drop_index("ix_user_company_key", table_name="user")
    op.drop_table("user")
    op.drop_table("companies")

    bind = op.get_bind()
    for enum in (
        PAYMENT_STATUS_ENUM,
        OUTPUT_QUALITY_ENUM,
        ASSIGNMENT_STATUS_ENUM,
        JOB_TYPE_ENUM,
        SKILL_LEVEL_ENUM,
        WORKER_STATUS_ENUM,
        ROLE_ENUM,
    ):
        enum.drop(bind, checkfirst=True)
