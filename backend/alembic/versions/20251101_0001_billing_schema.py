"""Create users, classes, enrollments and monthly class bills."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "20251101_0001"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_type():
    bind = op.get_bind()
    if bind is not None and bind.dialect.name == "postgresql":
        return postgresql.UUID(as_uuid=True)
    return sa.CHAR(length=36)


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    uuid_type = _uuid_type()

    op.create_table(
        "users",
        sa.Column("id", uuid_type, primary_key=True),
        sa.Column(
            "role",
            _enum("user_role_enum", "student", "parent", "tutor", "admin"),
            nullable=False,
        ),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True, unique=True),
        sa.Column("student_profile", sa.JSON(), nullable=True),
        sa.Column("parent_profile", sa.JSON(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index("users_role_idx", "users", ["role"])

    op.create_table(
        "classes",
        sa.Column("id", uuid_type, primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "tutor_id", uuid_type, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column(
            "schedule_type",
            _enum("class_schedule_type_enum", "one-time", "weekly-recurring"),
            nullable=False,
        ),
        sa.Column("class_date", sa.Date(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("recurring_days", sa.JSON(), nullable=True),
        sa.Column("start_time", sa.String(length=5), nullable=False, server_default="00:00"),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="35"),
        sa.Column(
            "status",
            _enum("class_status_enum", "scheduled", "completed", "cancelled"),
            nullable=False,
        ),
        sa.Column(
            "payment_status",
            _enum("class_payment_status_enum", "unpaid", "paid", "democlass"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint("amount >= 0", name="ck_classes_amount_non_negative"),
        sa.CheckConstraint("duration_minutes > 0", name="ck_classes_duration_positive"),
    )
    op.create_index("classes_status_idx", "classes", ["status"])

    op.create_table(
        "class_enrollments",
        sa.Column(
            "class_id",
            uuid_type,
            sa.ForeignKey("classes.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "student_id",
            uuid_type,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_index("class_enrollments_student_idx", "class_enrollments", ["student_id"])

    op.create_table(
        "class_billing",
        sa.Column("id", uuid_type, primary_key=True),
        sa.Column(
            "student_id", uuid_type, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "parent_id", uuid_type, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("month_year", sa.String(length=7), nullable=False),
        sa.Column("total_classes_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column(
            "status",
            _enum("class_bill_status_enum", "unpaid", "paid", "cancelled"),
            nullable=False,
            server_default="unpaid",
        ),
        sa.Column(
            "billing_generated_date",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.UniqueConstraint(
            "student_id", "parent_id", "month_year", name="class_billing_natural_key"
        ),
        sa.CheckConstraint("amount >= 0", name="ck_class_billing_amount_non_negative"),
        sa.CheckConstraint(
            "total_classes_count >= 0", name="ck_class_billing_count_non_negative"
        ),
    )
    op.create_index(
        "class_billing_parent_month_idx", "class_billing", ["parent_id", "month_year"]
    )
    op.create_index("class_billing_status_idx", "class_billing", ["status"])

    op.create_table(
        "class_billing_items",
        sa.Column("id", uuid_type, primary_key=True),
        sa.Column(
            "bill_id",
            uuid_type,
            sa.ForeignKey("class_billing.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("class_id", uuid_type, nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("class_billing_items_class_idx", "class_billing_items", ["class_id"])
    op.create_index("class_billing_items_bill_idx", "class_billing_items", ["bill_id"])


def downgrade() -> None:
    op.drop_index("class_billing_items_bill_idx", table_name="class_billing_items")
    op.drop_index("class_billing_items_class_idx", table_name="class_billing_items")
    op.drop_table("class_billing_items")
    op.drop_index("class_billing_status_idx", table_name="class_billing")
    op.drop_index("class_billing_parent_month_idx", table_name="class_billing")
    op.drop_table("class_billing")
    op.drop_index("class_enrollments_student_idx", table_name="class_enrollments")
    op.drop_table("class_enrollments")
    op.drop_index("classes_status_idx", table_name="classes")
    op.drop_table("classes")
    op.drop_index("users_role_idx", table_name="users")
    op.drop_table("users")
