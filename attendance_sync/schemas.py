import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from attendance_sync.models import ClockType

HOURS_TOLERANCE = 1e-6
# Upper bound of the INTEGER key columns.
MAX_EMPLOYEE_UID = 2**31 - 1


class AttendanceEventPayload(BaseModel):
    """One clock event as submitted by a client (batch sync or single create)."""

    employee_uid: int = Field(ge=1, le=MAX_EMPLOYEE_UID)
    id_number: str | None = Field(default=None, max_length=64)
    clock_type: ClockType
    clock_time: dt.datetime
    date: dt.date
    regular_hours: float = Field(default=0.0, ge=0)
    overtime_hours: float = Field(default=0.0, ge=0)
    is_late: bool = False
    notes: str | None = None
    location: str | None = None
    ip_address: str | None = Field(default=None, max_length=128)
    device_info: str | None = None
    created_at: dt.datetime | None = None

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    @field_validator("regular_hours", "overtime_hours", mode="before")
    @classmethod
    def _none_hours_to_zero(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @field_validator("is_late", mode="before")
    @classmethod
    def _none_flag_to_false(cls, value: Any) -> Any:
        return False if value is None else value


class DailySummaryPayload(BaseModel):
    """Externally computed daily summary pushed by an offline client."""

    employee_uid: int = Field(ge=1, le=MAX_EMPLOYEE_UID)
    id_number: str | None = Field(default=None, max_length=64)
    id_barcode: str | None = Field(default=None, max_length=128)
    employee_name: str = Field(min_length=1, max_length=512)
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    department: str | None = Field(default=None, max_length=255)
    date: dt.date
    first_clock_in: dt.datetime | None = None
    last_clock_out: dt.datetime | None = None
    morning_in: dt.datetime | None = None
    morning_out: dt.datetime | None = None
    afternoon_in: dt.datetime | None = None
    afternoon_out: dt.datetime | None = None
    evening_in: dt.datetime | None = None
    evening_out: dt.datetime | None = None
    overtime_in: dt.datetime | None = None
    overtime_out: dt.datetime | None = None
    regular_hours: float = Field(default=0.0, ge=0)
    overtime_hours: float = Field(default=0.0, ge=0)
    total_hours: float = Field(default=0.0, ge=0)
    morning_hours: float = Field(default=0.0, ge=0)
    afternoon_hours: float = Field(default=0.0, ge=0)
    evening_hours: float = Field(default=0.0, ge=0)
    overtime_session_hours: float = Field(default=0.0, ge=0)
    is_incomplete: bool = False
    has_late_entry: bool = False
    has_overtime: bool = False
    has_evening_session: bool = False
    total_sessions: int = Field(default=0, ge=0)
    completed_sessions: int = Field(default=0, ge=0)
    pending_sessions: int = Field(default=0, ge=0)
    total_minutes_worked: int = Field(default=0, ge=0)
    break_time_minutes: int = Field(default=0, ge=0)
    last_updated: dt.datetime | None = None
    created_at: dt.datetime | None = None

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    @field_validator(
        "regular_hours",
        "overtime_hours",
        "total_hours",
        "morning_hours",
        "afternoon_hours",
        "evening_hours",
        "overtime_session_hours",
        "total_sessions",
        "completed_sessions",
        "pending_sessions",
        "total_minutes_worked",
        "break_time_minutes",
        mode="before",
    )
    @classmethod
    def _none_number_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator(
        "is_incomplete",
        "has_late_entry",
        "has_overtime",
        "has_evening_session",
        mode="before",
    )
    @classmethod
    def _none_flag_to_false(cls, value: Any) -> Any:
        return False if value is None else value

    @model_validator(mode="after")
    def _check_invariants(self) -> "DailySummaryPayload":
        expected_total = self.regular_hours + self.overtime_hours
        if "total_hours" not in self.model_fields_set:
            self.total_hours = expected_total
        elif abs(self.total_hours - expected_total) > HOURS_TOLERANCE:
            raise ValueError("total_hours must equal regular_hours + overtime_hours")

        expected_incomplete = self.pending_sessions > 0
        if "is_incomplete" not in self.model_fields_set:
            self.is_incomplete = expected_incomplete
        elif self.is_incomplete != expected_incomplete:
            raise ValueError("is_incomplete must be true exactly when pending_sessions > 0")
        return self


class BatchSyncResponse(BaseModel):
    success: bool = True
    message: str
    processed_count: int
    duplicate_count: int = 0
    error_count: int = 0
    total_submitted: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)


class PaginationRead(BaseModel):
    total: int
    limit: int
    offset: int
    pages: int | None = None


class AttendanceEventRead(BaseModel):
    id: int
    employee_uid: int
    id_number: str | None = None
    clock_type: ClockType
    clock_time: dt.datetime
    date: dt.date
    regular_hours: float
    overtime_hours: float
    is_late: bool
    is_synced: bool
    notes: str | None = None
    location: str | None = None
    ip_address: str | None = None
    device_info: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceEventDetailRead(AttendanceEventRead):
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    department: str | None = None
    position: str | None = None
    email: str | None = None


class AttendanceEventResponse(BaseModel):
    success: bool = True
    message: str | None = None
    data: AttendanceEventDetailRead


class AttendanceEventListResponse(BaseModel):
    success: bool = True
    data: list[AttendanceEventDetailRead]
    pagination: PaginationRead


class UnsyncedEventsResponse(BaseModel):
    success: bool = True
    data: list[AttendanceEventDetailRead]
    total_unsynced: int


class MarkSyncedRequest(BaseModel):
    record_ids: list[int] = Field(min_length=1)


class MarkSyncedResponse(BaseModel):
    success: bool = True
    message: str
    updated_count: int


class AttendanceDayStatsRead(BaseModel):
    total_records: int = 0
    unique_employees: int = 0
    total_regular_hours: float = 0.0
    total_overtime_hours: float = 0.0
    late_count: int = 0
    clock_ins: int = 0
    clock_outs: int = 0


class RecentAttendanceActivityRead(BaseModel):
    clock_time: dt.datetime
    clock_type: ClockType
    employee_uid: int
    first_name: str | None = None
    last_name: str | None = None


class AttendanceStatsData(BaseModel):
    date: dt.date
    statistics: AttendanceDayStatsRead
    unsynced_count: int
    recent_activity: list[RecentAttendanceActivityRead] = Field(default_factory=list)


class AttendanceStatsResponse(BaseModel):
    success: bool = True
    data: AttendanceStatsData


class EmployeeAttendanceAggregateRead(BaseModel):
    total_records: int = 0
    total_regular_hours: float = 0.0
    total_overtime_hours: float = 0.0
    late_count: int = 0
    days_worked: int = 0


class ClockTypeCountRead(BaseModel):
    clock_type: ClockType
    count: int


class EmployeeAttendanceSummaryData(BaseModel):
    summary: EmployeeAttendanceAggregateRead
    clock_type_breakdown: list[ClockTypeCountRead] = Field(default_factory=list)


class EmployeeAttendanceSummaryResponse(BaseModel):
    success: bool = True
    data: EmployeeAttendanceSummaryData


class DailySummaryRead(BaseModel):
    id: int
    employee_uid: int
    id_number: str | None = None
    id_barcode: str | None = None
    employee_name: str
    first_name: str | None = None
    last_name: str | None = None
    department: str | None = None
    date: dt.date
    first_clock_in: dt.datetime | None = None
    last_clock_out: dt.datetime | None = None
    morning_in: dt.datetime | None = None
    morning_out: dt.datetime | None = None
    afternoon_in: dt.datetime | None = None
    afternoon_out: dt.datetime | None = None
    evening_in: dt.datetime | None = None
    evening_out: dt.datetime | None = None
    overtime_in: dt.datetime | None = None
    overtime_out: dt.datetime | None = None
    regular_hours: float
    overtime_hours: float
    total_hours: float
    morning_hours: float
    afternoon_hours: float
    evening_hours: float
    overtime_session_hours: float
    is_incomplete: bool
    has_late_entry: bool
    has_overtime: bool
    has_evening_session: bool
    total_sessions: int
    completed_sessions: int
    pending_sessions: int
    total_minutes_worked: int
    break_time_minutes: int
    last_updated: dt.datetime | None = None
    created_at: dt.datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class DailySummaryDetailRead(DailySummaryRead):
    email: str | None = None
    position: str | None = None
    hire_date: str | None = None
    employee_status: str | None = None


class DailySummaryResponse(BaseModel):
    success: bool = True
    data: DailySummaryDetailRead


class DailySummaryListResponse(BaseModel):
    success: bool = True
    data: list[DailySummaryDetailRead]
    pagination: PaginationRead


class EmployeeDailySummaryAggregateRead(BaseModel):
    total_days: int = 0
    total_regular_hours: float = 0.0
    total_overtime_hours: float = 0.0
    grand_total_hours: float = 0.0
    avg_daily_hours: float | None = None
    days_with_overtime: int = 0
    days_with_late_entry: int = 0
    incomplete_days: int = 0


class EmployeeDailySummaryData(BaseModel):
    records: list[DailySummaryDetailRead]
    summary: EmployeeDailySummaryAggregateRead
    pagination: PaginationRead


class EmployeeDailySummaryResponse(BaseModel):
    success: bool = True
    data: EmployeeDailySummaryData


class DailySummaryOverallStatsRead(BaseModel):
    total_records: int = 0
    unique_employees: int = 0
    departments_count: int = 0
    total_regular_hours: float = 0.0
    total_overtime_hours: float = 0.0
    grand_total_hours: float = 0.0
    avg_hours_per_employee: float | None = None
    employees_with_overtime: int = 0
    incomplete_records: int = 0
    employees_with_late_entry: int = 0


class DepartmentHoursRead(BaseModel):
    department: str | None = None
    employee_count: int
    total_regular_hours: float
    total_overtime_hours: float
    total_hours: float
    avg_hours: float | None = None


class OvertimeLeaderRead(BaseModel):
    employee_name: str
    department: str | None = None
    date: dt.date
    overtime_hours: float
    total_hours: float


class RecentSummaryActivityRead(BaseModel):
    employee_name: str
    department: str | None = None
    date: dt.date
    total_hours: float
    is_incomplete: bool
    has_late_entry: bool
    has_overtime: bool
    last_updated: dt.datetime | None = None


class DailySummaryStatsData(BaseModel):
    date_range: dict[str, dt.date]
    summary: DailySummaryOverallStatsRead
    by_department: list[DepartmentHoursRead] = Field(default_factory=list)
    overtime_leaders: list[OvertimeLeaderRead] = Field(default_factory=list)
    recent_activity: list[RecentSummaryActivityRead] = Field(default_factory=list)


class DailySummaryStatsResponse(BaseModel):
    success: bool = True
    data: DailySummaryStatsData


class RebuildRequest(BaseModel):
    start_date: dt.date
    end_date: dt.date


class RebuildResponse(BaseModel):
    success: bool = True
    message: str
    processed_count: int
    success_count: int
    fail_count: int
    date_range: dict[str, dt.date]


class DeleteResponse(BaseModel):
    success: bool = True
    message: str
    id: int
