from __future__ import annotations

from datetime import date
import logging
from typing import Any

from sqlalchemy import case, distinct, func, select
from sqlalchemy.orm import Session

from attendance_sync.errors import ApiError
from attendance_sync.models import DailyAttendanceSummary, Employee
from attendance_sync.schemas import (
    DailySummaryDetailRead,
    DailySummaryOverallStatsRead,
    DailySummaryStatsData,
    DepartmentHoursRead,
    EmployeeDailySummaryAggregateRead,
    EmployeeDailySummaryData,
    OvertimeLeaderRead,
    PaginationRead,
    RecentSummaryActivityRead,
)
from attendance_sync.services.attendance_queries import build_pagination, local_today, resolve_sort
from attendance_sync.services.notifications import DAILY_SUMMARY_DELETED, NotificationRelay, publish_safely
from attendance_sync.services.transactions import BatchTransaction

logger = logging.getLogger("attendance_sync.daily_summary")

SUMMARY_SORT_COLUMNS = {
    "date": DailyAttendanceSummary.date,
    "employee_name": DailyAttendanceSummary.employee_name,
    "department": DailyAttendanceSummary.department,
    "total_hours": DailyAttendanceSummary.total_hours,
    "regular_hours": DailyAttendanceSummary.regular_hours,
    "overtime_hours": DailyAttendanceSummary.overtime_hours,
    "last_updated": DailyAttendanceSummary.last_updated,
}


def _true_count(column: Any) -> Any:
    return func.coalesce(func.sum(case((column.is_(True), 1), else_=0)), 0)


def summary_detail(row: DailyAttendanceSummary, employee: Employee | None) -> DailySummaryDetailRead:
    detail = DailySummaryDetailRead.model_validate(row)
    if employee is None:
        return detail
    return detail.model_copy(
        update={
            "email": employee.email,
            "position": employee.position,
            "hire_date": employee.hire_date,
            "employee_status": employee.status,
        }
    )


def _detail_select() -> Any:
    return select(DailyAttendanceSummary, Employee).outerjoin(
        Employee, Employee.uid == DailyAttendanceSummary.employee_uid
    )


def list_summaries(
    db: Session,
    *,
    employee_uid: int | None = None,
    id_number: str | None = None,
    summary_date: date | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    department: str | None = None,
    has_overtime: bool | None = None,
    is_incomplete: bool | None = None,
    has_late_entry: bool | None = None,
    sort_by: str | None = "date",
    sort_order: str | None = "DESC",
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[DailySummaryDetailRead], PaginationRead]:
    conditions: list[Any] = []
    if employee_uid is not None:
        conditions.append(DailyAttendanceSummary.employee_uid == employee_uid)
    if id_number:
        conditions.append(DailyAttendanceSummary.id_number == id_number)
    if summary_date is not None:
        conditions.append(DailyAttendanceSummary.date == summary_date)
    if start_date is not None:
        conditions.append(DailyAttendanceSummary.date >= start_date)
    if end_date is not None:
        conditions.append(DailyAttendanceSummary.date <= end_date)
    if department:
        conditions.append(DailyAttendanceSummary.department == department)
    if has_overtime is not None:
        conditions.append(DailyAttendanceSummary.has_overtime.is_(has_overtime))
    if is_incomplete is not None:
        conditions.append(DailyAttendanceSummary.is_incomplete.is_(is_incomplete))
    if has_late_entry is not None:
        conditions.append(DailyAttendanceSummary.has_late_entry.is_(has_late_entry))

    total = int(db.scalar(select(func.count(DailyAttendanceSummary.id)).where(*conditions)) or 0)
    rows = db.execute(
        _detail_select()
        .where(*conditions)
        .order_by(
            resolve_sort(SUMMARY_SORT_COLUMNS, sort_by, sort_order, "date"),
            DailyAttendanceSummary.employee_name.asc(),
            DailyAttendanceSummary.id.asc(),
        )
        .limit(limit)
        .offset(offset)
    ).all()
    return [summary_detail(row, employee) for row, employee in rows], build_pagination(total, limit, offset)


def get_summary(db: Session, summary_id: int) -> DailySummaryDetailRead:
    row = db.execute(_detail_select().where(DailyAttendanceSummary.id == summary_id)).first()
    if row is None:
        raise ApiError(status_code=404, code="DAILY_SUMMARY_NOT_FOUND", message="Daily summary record not found.")
    summary, employee = row
    return summary_detail(summary, employee)


def employee_summaries(
    db: Session,
    employee_uid: int,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> EmployeeDailySummaryData:
    records, pagination = list_summaries(
        db,
        employee_uid=employee_uid,
        start_date=start_date,
        end_date=end_date,
        sort_by="date",
        sort_order="DESC",
        limit=limit,
        offset=offset,
    )

    conditions: list[Any] = [DailyAttendanceSummary.employee_uid == employee_uid]
    if start_date is not None:
        conditions.append(DailyAttendanceSummary.date >= start_date)
    if end_date is not None:
        conditions.append(DailyAttendanceSummary.date <= end_date)
    totals = db.execute(
        select(
            func.count(DailyAttendanceSummary.id),
            func.coalesce(func.sum(DailyAttendanceSummary.regular_hours), 0.0),
            func.coalesce(func.sum(DailyAttendanceSummary.overtime_hours), 0.0),
            func.coalesce(func.sum(DailyAttendanceSummary.total_hours), 0.0),
            func.avg(DailyAttendanceSummary.total_hours),
            _true_count(DailyAttendanceSummary.has_overtime),
            _true_count(DailyAttendanceSummary.has_late_entry),
            _true_count(DailyAttendanceSummary.is_incomplete),
        ).where(*conditions)
    ).one()

    return EmployeeDailySummaryData(
        records=records,
        summary=EmployeeDailySummaryAggregateRead(
            total_days=int(totals[0] or 0),
            total_regular_hours=float(totals[1] or 0),
            total_overtime_hours=float(totals[2] or 0),
            grand_total_hours=float(totals[3] or 0),
            avg_daily_hours=float(totals[4]) if totals[4] is not None else None,
            days_with_overtime=int(totals[5] or 0),
            days_with_late_entry=int(totals[6] or 0),
            incomplete_days=int(totals[7] or 0),
        ),
        pagination=pagination,
    )


def summary_stats(
    db: Session,
    *,
    stats_date: date | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> DailySummaryStatsData:
    if start_date is not None and end_date is not None:
        date_filter = DailyAttendanceSummary.date.between(start_date, end_date)
        date_range = {"start_date": start_date, "end_date": end_date}
    else:
        target_date = stats_date or local_today()
        date_filter = DailyAttendanceSummary.date == target_date
        date_range = {"date": target_date}

    totals = db.execute(
        select(
            func.count(DailyAttendanceSummary.id),
            func.count(distinct(DailyAttendanceSummary.employee_uid)),
            func.count(distinct(DailyAttendanceSummary.department)),
            func.coalesce(func.sum(DailyAttendanceSummary.regular_hours), 0.0),
            func.coalesce(func.sum(DailyAttendanceSummary.overtime_hours), 0.0),
            func.coalesce(func.sum(DailyAttendanceSummary.total_hours), 0.0),
            func.avg(DailyAttendanceSummary.total_hours),
            _true_count(DailyAttendanceSummary.has_overtime),
            _true_count(DailyAttendanceSummary.is_incomplete),
            _true_count(DailyAttendanceSummary.has_late_entry),
        ).where(date_filter)
    ).one()

    department_total = func.sum(DailyAttendanceSummary.total_hours)
    department_rows = db.execute(
        select(
            DailyAttendanceSummary.department,
            func.count(DailyAttendanceSummary.id),
            func.sum(DailyAttendanceSummary.regular_hours),
            func.sum(DailyAttendanceSummary.overtime_hours),
            department_total,
            func.avg(DailyAttendanceSummary.total_hours),
        )
        .where(date_filter)
        .group_by(DailyAttendanceSummary.department)
        .order_by(department_total.desc())
    ).all()

    leaders = db.scalars(
        select(DailyAttendanceSummary)
        .where(date_filter, DailyAttendanceSummary.overtime_hours > 0)
        .order_by(DailyAttendanceSummary.overtime_hours.desc(), DailyAttendanceSummary.id.asc())
        .limit(10)
    ).all()

    recent = db.scalars(
        select(DailyAttendanceSummary)
        .order_by(DailyAttendanceSummary.last_updated.desc(), DailyAttendanceSummary.id.desc())
        .limit(10)
    ).all()

    return DailySummaryStatsData(
        date_range=date_range,
        summary=DailySummaryOverallStatsRead(
            total_records=int(totals[0] or 0),
            unique_employees=int(totals[1] or 0),
            departments_count=int(totals[2] or 0),
            total_regular_hours=float(totals[3] or 0),
            total_overtime_hours=float(totals[4] or 0),
            grand_total_hours=float(totals[5] or 0),
            avg_hours_per_employee=float(totals[6]) if totals[6] is not None else None,
            employees_with_overtime=int(totals[7] or 0),
            incomplete_records=int(totals[8] or 0),
            employees_with_late_entry=int(totals[9] or 0),
        ),
        by_department=[
            DepartmentHoursRead(
                department=department,
                employee_count=int(count or 0),
                total_regular_hours=float(regular or 0),
                total_overtime_hours=float(overtime or 0),
                total_hours=float(total or 0),
                avg_hours=float(average) if average is not None else None,
            )
            for department, count, regular, overtime, total, average in department_rows
        ],
        overtime_leaders=[
            OvertimeLeaderRead(
                employee_name=row.employee_name,
                department=row.department,
                date=row.date,
                overtime_hours=row.overtime_hours,
                total_hours=row.total_hours,
            )
            for row in leaders
        ],
        recent_activity=[
            RecentSummaryActivityRead(
                employee_name=row.employee_name,
                department=row.department,
                date=row.date,
                total_hours=row.total_hours,
                is_incomplete=row.is_incomplete,
                has_late_entry=row.has_late_entry,
                has_overtime=row.has_overtime,
                last_updated=row.last_updated,
            )
            for row in recent
        ],
    )


def delete_summary(db: Session, relay: NotificationRelay, summary_id: int) -> int:
    with BatchTransaction(db, operation="daily_summary_delete"):
        row = db.get(DailyAttendanceSummary, summary_id)
        if row is None:
            raise ApiError(status_code=404, code="DAILY_SUMMARY_NOT_FOUND", message="Daily summary record not found.")
        db.delete(row)
        db.flush()

    logger.info("daily_summary_deleted", extra={"summary_id": summary_id})
    publish_safely(relay, DAILY_SUMMARY_DELETED, {"id": summary_id})
    return summary_id
