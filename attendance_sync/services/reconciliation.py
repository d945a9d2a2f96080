from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
import math
from typing import Any, Iterable, Protocol

from attendance_sync.models import SESSION_NAMES, ClockType
from attendance_sync.services.identity import EmployeeIdentity

LUNCH_BREAK_MINUTES = 60
EVENING_OVERTIME_SHARE = 0.7
OVERTIME_SESSION_SHARE = 0.3


class ClockEvent(Protocol):
    clock_type: ClockType | str
    clock_time: datetime
    regular_hours: float | None
    overtime_hours: float | None
    is_late: bool | None


@dataclass(frozen=True, slots=True)
class DailySummaryComputation:
    """Derived content of one employee-day summary row.

    Carries no timestamps of its own; ``last_updated`` is stamped by the
    summary store only when this content differs from what is stored.
    """

    employee_uid: int
    id_number: str | None
    id_barcode: str | None
    employee_name: str
    first_name: str | None
    last_name: str | None
    department: str | None
    date: date
    first_clock_in: datetime | None
    last_clock_out: datetime | None
    morning_in: datetime | None
    morning_out: datetime | None
    afternoon_in: datetime | None
    afternoon_out: datetime | None
    evening_in: datetime | None
    evening_out: datetime | None
    overtime_in: datetime | None
    overtime_out: datetime | None
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

    def as_column_values(self) -> dict[str, Any]:
        return asdict(self)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _clock_type(event: ClockEvent) -> ClockType:
    return ClockType(event.clock_type)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def reconcile(
    employee: EmployeeIdentity,
    summary_date: date,
    events: Iterable[ClockEvent],
) -> DailySummaryComputation:
    """Fold every clock event of one employee-day into its daily summary.

    Pure: the same events produce the same summary regardless of the order
    they are passed in. Events are ordered by (clock_time, clock_type) first.
    """
    ordered = sorted(
        ((as_utc(event.clock_time), _clock_type(event), event) for event in events),
        key=lambda item: (item[0], item[1].value),
    )

    session_times: dict[str, datetime | None] = {}
    for session in SESSION_NAMES:
        session_times[f"{session}_in"] = None
        session_times[f"{session}_out"] = None

    regular_hours = 0.0
    overtime_hours = 0.0
    total_sessions = 0
    completed_sessions = 0
    has_late_entry = False
    has_overtime = False
    has_evening_session = False

    for clock_time, clock_type, event in ordered:
        session_times[clock_type.value] = clock_time
        regular_hours += float(event.regular_hours or 0)
        overtime_hours += float(event.overtime_hours or 0)

        if clock_type.is_in:
            total_sessions += 1
            if any(
                other_type.is_out and other_type.session == clock_type.session and other_time > clock_time
                for other_time, other_type, _ in ordered
            ):
                completed_sessions += 1

        if event.is_late:
            has_late_entry = True
        if clock_type.session in {"overtime", "evening"}:
            has_overtime = True
        if clock_type.session == "evening":
            has_evening_session = True

    pending_sessions = total_sessions - completed_sessions

    complete = {
        session: session_times[f"{session}_in"] is not None and session_times[f"{session}_out"] is not None
        for session in SESSION_NAMES
    }

    morning_hours = 0.0
    afternoon_hours = 0.0
    regular_session_count = int(complete["morning"]) + int(complete["afternoon"])
    if regular_session_count:
        share = regular_hours / regular_session_count
        if complete["morning"]:
            morning_hours = share
        if complete["afternoon"]:
            afternoon_hours = share

    evening_hours = overtime_hours * EVENING_OVERTIME_SHARE if complete["evening"] else 0.0
    overtime_session_hours = overtime_hours * OVERTIME_SESSION_SHARE if complete["overtime"] else 0.0

    first_clock_in = next((clock_time for clock_time, clock_type, _ in ordered if clock_type.is_in), None)
    last_clock_out = next(
        (clock_time for clock_time, clock_type, _ in reversed(ordered) if clock_type.is_out),
        None,
    )

    lunch_break = complete["morning"] and complete["afternoon"]
    total_minutes_worked = 0
    if first_clock_in is not None and last_clock_out is not None:
        span_minutes = _round_half_up((last_clock_out - first_clock_in).total_seconds() / 60)
        if lunch_break:
            span_minutes -= LUNCH_BREAK_MINUTES
        total_minutes_worked = max(0, span_minutes)

    return DailySummaryComputation(
        employee_uid=employee.uid,
        id_number=employee.id_number,
        id_barcode=employee.id_barcode,
        employee_name=employee.name,
        first_name=employee.first_name,
        last_name=employee.last_name,
        department=employee.department,
        date=summary_date,
        first_clock_in=first_clock_in,
        last_clock_out=last_clock_out,
        morning_in=session_times["morning_in"],
        morning_out=session_times["morning_out"],
        afternoon_in=session_times["afternoon_in"],
        afternoon_out=session_times["afternoon_out"],
        evening_in=session_times["evening_in"],
        evening_out=session_times["evening_out"],
        overtime_in=session_times["overtime_in"],
        overtime_out=session_times["overtime_out"],
        regular_hours=regular_hours,
        overtime_hours=overtime_hours,
        total_hours=regular_hours + overtime_hours,
        morning_hours=morning_hours,
        afternoon_hours=afternoon_hours,
        evening_hours=evening_hours,
        overtime_session_hours=overtime_session_hours,
        is_incomplete=pending_sessions > 0,
        has_late_entry=has_late_entry,
        has_overtime=has_overtime,
        has_evening_session=has_evening_session,
        total_sessions=total_sessions,
        completed_sessions=completed_sessions,
        pending_sessions=pending_sessions,
        total_minutes_worked=total_minutes_worked,
        break_time_minutes=LUNCH_BREAK_MINUTES if lunch_break else 0,
    )
