from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from attendance_sync.models import EVENT_PAYLOAD_COLUMNS, AttendanceEvent, ClockType


class EventStore:
    """Flushes but never commits; the caller owns the transaction."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def find_duplicate_id(
        self,
        *,
        employee_uid: int,
        clock_time: datetime,
        event_date: date,
        clock_type: ClockType,
    ) -> int | None:
        return self._db.scalar(
            select(AttendanceEvent.id)
            .where(
                AttendanceEvent.employee_uid == employee_uid,
                AttendanceEvent.clock_time == clock_time,
                AttendanceEvent.date == event_date,
                AttendanceEvent.clock_type == clock_type,
            )
            .limit(1)
        )

    def add(self, values: dict[str, Any], *, is_synced: bool) -> AttendanceEvent:
        event = AttendanceEvent(
            **{column: values[column] for column in EVENT_PAYLOAD_COLUMNS if column in values},
            is_synced=is_synced,
        )
        if values.get("created_at") is not None:
            event.created_at = values["created_at"]
        self._db.add(event)
        self._db.flush()
        return event

    def list_for_employee_day(self, employee_uid: int, event_date: date) -> list[AttendanceEvent]:
        return list(
            self._db.scalars(
                select(AttendanceEvent)
                .where(
                    AttendanceEvent.employee_uid == employee_uid,
                    AttendanceEvent.date == event_date,
                )
                .order_by(AttendanceEvent.clock_time.asc(), AttendanceEvent.id.asc())
            ).all()
        )

    def distinct_employee_days(self, start_date: date, end_date: date) -> list[tuple[int, date]]:
        rows = self._db.execute(
            select(AttendanceEvent.employee_uid, AttendanceEvent.date)
            .where(
                AttendanceEvent.date >= start_date,
                AttendanceEvent.date <= end_date,
            )
            .group_by(AttendanceEvent.employee_uid, AttendanceEvent.date)
            .order_by(AttendanceEvent.date.asc(), AttendanceEvent.employee_uid.asc())
        ).all()
        return [(int(employee_uid), day) for employee_uid, day in rows]

    def count_unsynced(self) -> int:
        return int(
            self._db.scalar(
                select(func.count(AttendanceEvent.id)).where(AttendanceEvent.is_synced.is_(False))
            )
            or 0
        )

    def mark_synced(self, record_ids: list[int]) -> int:
        unique_ids = sorted({int(record_id) for record_id in record_ids})
        if not unique_ids:
            return 0
        result = self._db.execute(
            update(AttendanceEvent)
            .where(AttendanceEvent.id.in_(unique_ids))
            .values(is_synced=True)
            .execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)

