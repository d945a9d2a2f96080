from __future__ import annotations

import enum
import datetime as dt
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_sync.db import Base


class ClockType(str, enum.Enum):
    MORNING_IN = "morning_in"
    MORNING_OUT = "morning_out"
    AFTERNOON_IN = "afternoon_in"
    AFTERNOON_OUT = "afternoon_out"
    EVENING_IN = "evening_in"
    EVENING_OUT = "evening_out"
    OVERTIME_IN = "overtime_in"
    OVERTIME_OUT = "overtime_out"

    @property
    def session(self) -> str:
        return self.value.rsplit("_", 1)[0]

    @property
    def is_in(self) -> bool:
        return self.value.endswith("_in")

    @property
    def is_out(self) -> bool:
        return self.value.endswith("_out")


SESSION_NAMES: tuple[str, ...] = ("morning", "afternoon", "evening", "overtime")


class Employee(Base):
    __tablename__ = "emp_list"

    uid: Mapped[int] = mapped_column(Integer, primary_key=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    middle_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    position: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    id_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    id_barcode: Mapped[str | None] = mapped_column(String(128), nullable=True)
    hire_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="Active",
        server_default=text("'Active'"),
    )

    attendance_events: Mapped[list[AttendanceEvent]] = relationship(back_populates="employee")


class AttendanceEvent(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint(
            "employee_uid",
            "clock_time",
            "date",
            "clock_type",
            name="uq_attendance_employee_clock",
        ),
        Index("ix_attendance_employee_uid_date", "employee_uid", "date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_uid: Mapped[int] = mapped_column(
        ForeignKey("emp_list.uid", ondelete="CASCADE"),
        nullable=False,
    )
    id_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    clock_type: Mapped[ClockType] = mapped_column(
        Enum(
            ClockType,
            name="attendance_clock_type",
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
    )
    clock_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    regular_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    overtime_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    is_synced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    is_late: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(128), nullable=True)
    device_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    employee: Mapped[Employee | None] = relationship(back_populates="attendance_events")


class DailyAttendanceSummary(Base):
    __tablename__ = "daily_attendance_summary"
    __table_args__ = (
        UniqueConstraint("employee_uid", "date", name="uq_daily_attendance_summary_employee_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_uid: Mapped[int] = mapped_column(
        ForeignKey("emp_list.uid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    id_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    id_barcode: Mapped[str | None] = mapped_column(String(128), nullable=True)
    employee_name: Mapped[str] = mapped_column(String(512), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    first_clock_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_clock_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    morning_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    morning_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    afternoon_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    afternoon_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    evening_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    evening_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    overtime_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    overtime_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    regular_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    overtime_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    total_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    morning_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    afternoon_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    evening_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    overtime_session_hours: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )
    is_incomplete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    has_late_entry: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    has_overtime: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    has_evening_session: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    total_sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    completed_sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    pending_sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    total_minutes_worked: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    break_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )


# Columns an external summary push may write; id and created_at stay store-managed.
SUMMARY_PAYLOAD_COLUMNS: tuple[str, ...] = (
    "employee_uid",
    "id_number",
    "id_barcode",
    "employee_name",
    "first_name",
    "last_name",
    "department",
    "date",
    "first_clock_in",
    "last_clock_out",
    "morning_in",
    "morning_out",
    "afternoon_in",
    "afternoon_out",
    "evening_in",
    "evening_out",
    "overtime_in",
    "overtime_out",
    "regular_hours",
    "overtime_hours",
    "total_hours",
    "morning_hours",
    "afternoon_hours",
    "evening_hours",
    "overtime_session_hours",
    "is_incomplete",
    "has_late_entry",
    "has_overtime",
    "has_evening_session",
    "total_sessions",
    "completed_sessions",
    "pending_sessions",
    "total_minutes_worked",
    "break_time_minutes",
    "last_updated",
)

# Columns a synced event carries from the client; is_synced and timestamps are set by the store.
EVENT_PAYLOAD_COLUMNS: tuple[str, ...] = (
    "employee_uid",
    "id_number",
    "clock_type",
    "clock_time",
    "regular_hours",
    "overtime_hours",
    "date",
    "is_late",
    "notes",
    "location",
    "ip_address",
    "device_info",
)
