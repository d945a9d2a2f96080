from __future__ import annotations

from datetime import date, datetime
import math
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import case, distinct, func, select
from sqlalchemy.orm import Session

from attendance_sync.errors import ApiError
from attendance_sync.models import AttendanceEvent, ClockType, Employee
from attendance_sync.schemas import (
    AttendanceDayStatsRead,
    AttendanceEventDetailRead,
    AttendanceStatsData,
    ClockTypeCountRead,
    EmployeeAttendanceAggregateRead,
    EmployeeAttendanceSummaryData,
    PaginationRead,
    RecentAttendanceActivityRead,
)
from attendance_sync.services.event_store import EventStore
from attendance_sync.settings import get_settings

EVENT_SORT_COLUMNS = {
    "clock_time": AttendanceEvent.clock_time,
    "date": AttendanceEvent.date,
    "employee_uid": AttendanceEvent.employee_uid,
    "id_number": AttendanceEvent.id_number,
    "clock_type": AttendanceEvent.clock_type,
    "created_at": AttendanceEvent.created_at,
}
IN_CLOCK_TYPES = [clock_type for clock_type in ClockType if clock_type.is_in]
OUT_CLOCK_TYPES = [clock_type for clock_type in ClockType if clock_type.is_out]


def build_pagination(total: int, limit: int, offset: int) -> PaginationRead:
    pages = math.ceil(total / limit) if limit > 0 else None
    return PaginationRead(total=total, limit=limit, offset=offset, pages=pages)


def resolve_sort(columns: dict[str, Any], sort_by: str | None, sort_order: str | None, default: str) -> Any:
    column = columns.get((sort_by or "").strip(), columns[default])
    if (sort_order or "").strip().upper() == "ASC":
        return column.asc()
    return column.desc()


def local_today() -> date:
    tz_name = (get_settings().attendance_timezone or "").strip() or "UTC"
    try:
        tz = ZoneInfo(tz_name)
    except ZoneInfoNotFoundError:
        tz = ZoneInfo("UTC")
    return datetime.now(tz).date()


def event_detail(event: AttendanceEvent, employee: Employee | None) -> AttendanceEventDetailRead:
    detail = AttendanceEventDetailRead.model_validate(event)
    if employee is None:
        return detail
    return detail.model_copy(
        update={
            "first_name": employee.first_name,
            "middle_name": employee.middle_name,
            "last_name": employee.last_name,
            "department": employee.department,
            "position": employee.position,
            "email": employee.email,
        }
    )


def _event_filters(
    *,
    employee_uid: int | None = None,
    id_number: str | None = None,
    event_date: date | None = None,
    clock_type: ClockType | None = None,
    is_late: bool | None = None,
    is_synced: bool | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[Any]:
    conditions: list[Any] = []
    if employee_uid is not None:
        conditions.append(AttendanceEvent.employee_uid == employee_uid)
    if id_number:
        conditions.append(AttendanceEvent.id_number == id_number)
    if event_date is not None:
        conditions.append(AttendanceEvent.date == event_date)
    if clock_type is not None:
        conditions.append(AttendanceEvent.clock_type == clock_type)
    if is_late is not None:
        conditions.append(AttendanceEvent.is_late.is_(is_late))
    if is_synced is not None:
        conditions.append(AttendanceEvent.is_synced.is_(is_synced))
    if start_date is not None:
        conditions.append(AttendanceEvent.date >= start_date)
    if end_date is not None:
        conditions.append(AttendanceEvent.date <= end_date)
    return conditions


def _detail_rows(db: Session, stmt: Any) -> list[AttendanceEventDetailRead]:
    return [event_detail(event, employee) for event, employee in db.execute(stmt).all()]


def list_events(
    db: Session,
    *,
    employee_uid: int | None = None,
    id_number: str | None = None,
    event_date: date | None = None,
    clock_type: ClockType | None = None,
    is_late: bool | None = None,
    is_synced: bool | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    sort_by: str | None = "clock_time",
    sort_order: str | None = "DESC",
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[AttendanceEventDetailRead], PaginationRead]:
    conditions = _event_filters(
        employee_uid=employee_uid,
        id_number=id_number,
        event_date=event_date,
        clock_type=clock_type,
        is_late=is_late,
        is_synced=is_synced,
        start_date=start_date,
        end_date=end_date,
    )
    total = int(db.scalar(select(func.count(AttendanceEvent.id)).where(*conditions)) or 0)
    stmt = (
        select(AttendanceEvent, Employee)
        .outerjoin(Employee, Employee.uid == AttendanceEvent.employee_uid)
        .where(*conditions)
        .order_by(resolve_sort(EVENT_SORT_COLUMNS, sort_by, sort_order, "clock_time"), AttendanceEvent.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return _detail_rows(db, stmt), build_pagination(total, limit, offset)


def get_event(db: Session, event_id: int) -> AttendanceEventDetailRead:
    row = db.execute(
        select(AttendanceEvent, Employee)
        .outerjoin(Employee, Employee.uid == AttendanceEvent.employee_uid)
        .where(AttendanceEvent.id == event_id)
    ).first()
    if row is None:
        raise ApiError(status_code=404, code="ATTENDANCE_NOT_FOUND", message="Attendance record not found.")
    event, employee = row
    return event_detail(event, employee)


def list_employee_events(
    db: Session,
    employee_uid: int,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[AttendanceEventDetailRead], PaginationRead]:
    return list_events(
        db,
        employee_uid=employee_uid,
        start_date=start_date,
        end_date=end_date,
        sort_by="clock_time",
        sort_order="DESC",
        limit=limit,
        offset=offset,
    )


def employee_attendance_summary(
    db: Session,
    employee_uid: int,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
) -> EmployeeAttendanceSummaryData:
    conditions = _event_filters(employee_uid=employee_uid, start_date=start_date, end_date=end_date)
    totals = db.execute(
        select(
            func.count(AttendanceEvent.id),
            func.coalesce(func.sum(AttendanceEvent.regular_hours), 0.0),
            func.coalesce(func.sum(AttendanceEvent.overtime_hours), 0.0),
            func.coalesce(func.sum(case((AttendanceEvent.is_late.is_(True), 1), else_=0)), 0),
            func.count(distinct(AttendanceEvent.date)),
        ).where(*conditions)
    ).one()
    breakdown_rows = db.execute(
        select(AttendanceEvent.clock_type, func.count(AttendanceEvent.id))
        .where(*conditions)
        .group_by(AttendanceEvent.clock_type)
        .order_by(AttendanceEvent.clock_type.asc())
    ).all()
    return EmployeeAttendanceSummaryData(
        summary=EmployeeAttendanceAggregateRead(
            total_records=int(totals[0] or 0),
            total_regular_hours=float(totals[1] or 0),
            total_overtime_hours=float(totals[2] or 0),
            late_count=int(totals[3] or 0),
            days_worked=int(totals[4] or 0),
        ),
        clock_type_breakdown=[
            ClockTypeCountRead(clock_type=clock_type, count=int(count)) for clock_type, count in breakdown_rows
        ],
    )


def list_unsynced(db: Session, *, limit: int = 100) -> tuple[list[AttendanceEventDetailRead], int]:
    stmt = (
        select(AttendanceEvent, Employee)
        .outerjoin(Employee, Employee.uid == AttendanceEvent.employee_uid)
        .where(AttendanceEvent.is_synced.is_(False))
        .order_by(AttendanceEvent.created_at.desc(), AttendanceEvent.id.desc())
        .limit(limit)
    )
    return _detail_rows(db, stmt), EventStore(db).count_unsynced()


def attendance_stats(db: Session, *, stats_date: date | None = None) -> AttendanceStatsData:
    target_date = stats_date or local_today()
    totals = db.execute(
        select(
            func.count(AttendanceEvent.id),
            func.count(distinct(AttendanceEvent.employee_uid)),
            func.coalesce(func.sum(AttendanceEvent.regular_hours), 0.0),
            func.coalesce(func.sum(AttendanceEvent.overtime_hours), 0.0),
            func.coalesce(func.sum(case((AttendanceEvent.is_late.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(case((AttendanceEvent.clock_type.in_(IN_CLOCK_TYPES), 1), else_=0)), 0),
            func.coalesce(func.sum(case((AttendanceEvent.clock_type.in_(OUT_CLOCK_TYPES), 1), else_=0)), 0),
        ).where(AttendanceEvent.date == target_date)
    ).one()

    recent_rows = db.execute(
        select(AttendanceEvent, Employee)
        .outerjoin(Employee, Employee.uid == AttendanceEvent.employee_uid)
        .order_by(AttendanceEvent.created_at.desc(), AttendanceEvent.id.desc())
        .limit(10)
    ).all()

    return AttendanceStatsData(
        date=target_date,
        statistics=AttendanceDayStatsRead(
            total_records=int(totals[0] or 0),
            unique_employees=int(totals[1] or 0),
            total_regular_hours=float(totals[2] or 0),
            total_overtime_hours=float(totals[3] or 0),
            late_count=int(totals[4] or 0),
            clock_ins=int(totals[5] or 0),
            clock_outs=int(totals[6] or 0),
        ),
        unsynced_count=EventStore(db).count_unsynced(),
        recent_activity=[
            RecentAttendanceActivityRead(
                clock_time=event.clock_time,
                clock_type=event.clock_type,
                employee_uid=event.employee_uid,
                first_name=employee.first_name if employee is not None else None,
                last_name=employee.last_name if employee is not None else None,
            )
            for event, employee in recent_rows
        ],
    )
