"""Initial attendance sync schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CLOCK_TYPES = (
    "morning_in",
    "morning_out",
    "afternoon_in",
    "afternoon_out",
    "evening_in",
    "evening_out",
    "overtime_in",
    "overtime_out",
)

attendance_clock_type = postgresql.ENUM(
    *CLOCK_TYPES,
    name="attendance_clock_type",
    create_type=False,
)


def _clock_type_column_type(bind) -> sa.types.TypeEngine:  # type: ignore[no-untyped-def]
    if bind.dialect.name == "postgresql":
        return attendance_clock_type
    return sa.Enum(*CLOCK_TYPES, name="attendance_clock_type")


def _summary_timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=True)


def _zero_float(name: str) -> sa.Column:
    return sa.Column(name, sa.Float(), nullable=False, server_default=sa.text("0"))


def _zero_int(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), nullable=False, server_default=sa.text("0"))


def _false_flag(name: str) -> sa.Column:
    return sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.text("false"))


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        attendance_clock_type.create(bind, checkfirst=True)

    op.create_table(
        "emp_list",
        sa.Column("uid", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("middle_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("position", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("id_number", sa.String(length=64), nullable=True),
        sa.Column("id_barcode", sa.String(length=128), nullable=True),
        sa.Column("hire_date", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default=sa.text("'Active'")),
    )

    op.create_table(
        "attendance",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_uid", sa.Integer(), nullable=False),
        sa.Column("id_number", sa.String(length=64), nullable=True),
        sa.Column("clock_type", _clock_type_column_type(bind), nullable=False),
        sa.Column("clock_time", sa.DateTime(timezone=True), nullable=False),
        _zero_float("regular_hours"),
        _zero_float("overtime_hours"),
        sa.Column("date", sa.Date(), nullable=False),
        _false_flag("is_synced"),
        _false_flag("is_late"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=128), nullable=True),
        sa.Column("device_info", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["employee_uid"], ["emp_list.uid"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "employee_uid",
            "clock_time",
            "date",
            "clock_type",
            name="uq_attendance_employee_clock",
        ),
    )
    op.create_index("ix_attendance_clock_time", "attendance", ["clock_time"], unique=False)
    op.create_index("ix_attendance_date", "attendance", ["date"], unique=False)
    op.create_index("ix_attendance_employee_uid_date", "attendance", ["employee_uid", "date"], unique=False)

    op.create_table(
        "daily_attendance_summary",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_uid", sa.Integer(), nullable=False),
        sa.Column("id_number", sa.String(length=64), nullable=True),
        sa.Column("id_barcode", sa.String(length=128), nullable=True),
        sa.Column("employee_name", sa.String(length=512), nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        _summary_timestamp("first_clock_in"),
        _summary_timestamp("last_clock_out"),
        _summary_timestamp("morning_in"),
        _summary_timestamp("morning_out"),
        _summary_timestamp("afternoon_in"),
        _summary_timestamp("afternoon_out"),
        _summary_timestamp("evening_in"),
        _summary_timestamp("evening_out"),
        _summary_timestamp("overtime_in"),
        _summary_timestamp("overtime_out"),
        _zero_float("regular_hours"),
        _zero_float("overtime_hours"),
        _zero_float("total_hours"),
        _zero_float("morning_hours"),
        _zero_float("afternoon_hours"),
        _zero_float("evening_hours"),
        _zero_float("overtime_session_hours"),
        _false_flag("is_incomplete"),
        _false_flag("has_late_entry"),
        _false_flag("has_overtime"),
        _false_flag("has_evening_session"),
        _zero_int("total_sessions"),
        _zero_int("completed_sessions"),
        _zero_int("pending_sessions"),
        _zero_int("total_minutes_worked"),
        _zero_int("break_time_minutes"),
        _summary_timestamp("last_updated"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["employee_uid"], ["emp_list.uid"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_uid", "date", name="uq_daily_attendance_summary_employee_date"),
    )
    op.create_index(
        "ix_daily_attendance_summary_employee_uid",
        "daily_attendance_summary",
        ["employee_uid"],
        unique=False,
    )
    op.create_index("ix_daily_attendance_summary_date", "daily_attendance_summary", ["date"], unique=False)
    op.create_index(
        "ix_daily_attendance_summary_department",
        "daily_attendance_summary",
        ["department"],
        unique=False,
    )
    op.create_index(
        "ix_daily_attendance_summary_last_updated",
        "daily_attendance_summary",
        ["last_updated"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_daily_attendance_summary_last_updated", table_name="daily_attendance_summary")
    op.drop_index("ix_daily_attendance_summary_department", table_name="daily_attendance_summary")
    op.drop_index("ix_daily_attendance_summary_date", table_name="daily_attendance_summary")
    op.drop_index("ix_daily_attendance_summary_employee_uid", table_name="daily_attendance_summary")
    op.drop_table("daily_attendance_summary")
    op.drop_index("ix_attendance_employee_uid_date", table_name="attendance")
    op.drop_index("ix_attendance_date", table_name="attendance")
    op.drop_index("ix_attendance_clock_time", table_name="attendance")
    op.drop_table("attendance")
    op.drop_table("emp_list")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        attendance_clock_type.drop(bind, checkfirst=True)
