from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_sync.models import SUMMARY_PAYLOAD_COLUMNS, DailyAttendanceSummary
from attendance_sync.schemas import DailySummaryPayload
from attendance_sync.services.reconciliation import DailySummaryComputation, as_utc

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value)
    return value


def conflict_clock(value: datetime | None) -> datetime:
    """Timestamp used for last-writer-wins; a missing value sorts as the epoch."""
    if value is None:
        return EPOCH
    return as_utc(value)


class SummaryStore:
    """One row per (employee_uid, date) in ``daily_attendance_summary``.

    Reads used ahead of a write take a row lock so a rebuild and a merge on
    the same key serialize. Flushes only; the caller commits.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_for_update(self, employee_uid: int, summary_date: date) -> DailyAttendanceSummary | None:
        return self._db.scalar(
            select(DailyAttendanceSummary)
            .where(
                DailyAttendanceSummary.employee_uid == employee_uid,
                DailyAttendanceSummary.date == summary_date,
            )
            .with_for_update()
        )

    def upsert_derived(
        self,
        computation: DailySummaryComputation,
        *,
        now: datetime | None = None,
    ) -> tuple[DailyAttendanceSummary, bool]:
        """Insert or overwrite the derived summary; returns (row, changed)."""
        values = {column: _normalize(value) for column, value in computation.as_column_values().items()}
        row = self.get_for_update(computation.employee_uid, computation.date)
        if row is None:
            row = DailyAttendanceSummary(**values, last_updated=now or _utcnow())
            self._db.add(row)
            self._db.flush()
            return row, True

        changed = [column for column, value in values.items() if _normalize(getattr(row, column)) != value]
        if not changed:
            return row, False

        for column, value in values.items():
            setattr(row, column, value)
        row.last_updated = now or _utcnow()
        self._db.flush()
        return row, True

    def insert_payload(self, payload: DailySummaryPayload, *, now: datetime | None = None) -> DailyAttendanceSummary:
        values = self._payload_values(payload)
        if values["last_updated"] is None:
            values["last_updated"] = now or _utcnow()
        row = DailyAttendanceSummary(**values)
        if payload.created_at is not None:
            row.created_at = as_utc(payload.created_at)
        self._db.add(row)
        self._db.flush()
        return row

    def overwrite_with_payload(self, row: DailyAttendanceSummary, payload: DailySummaryPayload) -> DailyAttendanceSummary:
        for column, value in self._payload_values(payload).items():
            setattr(row, column, value)
        self._db.flush()
        return row

    @staticmethod
    def _payload_values(payload: DailySummaryPayload) -> dict[str, Any]:
        return {column: _normalize(getattr(payload, column)) for column in SUMMARY_PAYLOAD_COLUMNS}
