from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging

from sqlalchemy.orm import Session

from attendance_sync.errors import ApiError
from attendance_sync.services.event_store import EventStore
from attendance_sync.services.identity import IdentityLookup
from attendance_sync.services.notifications import DAILY_SUMMARY_REBUILT, NotificationRelay, publish_safely
from attendance_sync.services.reconciliation import reconcile
from attendance_sync.services.summary_store import SummaryStore
from attendance_sync.services.transactions import BatchTransaction

logger = logging.getLogger("attendance_sync.rebuild")


class EmployeeDayRejected(Exception):
    pass


@dataclass(slots=True)
class RebuildOutcome:
    start_date: date
    end_date: date
    processed_count: int = 0
    success_count: int = 0
    fail_count: int = 0
    changed_count: int = 0

    @property
    def date_range(self) -> dict[str, date]:
        return {"start_date": self.start_date, "end_date": self.end_date}


class RebuildOrchestrator:
    def __init__(self, db: Session, identity: IdentityLookup, relay: NotificationRelay) -> None:
        self._db = db
        self._identity = identity
        self._relay = relay
        self._events = EventStore(db)
        self._summaries = SummaryStore(db)

    def rebuild(self, start_date: date, end_date: date) -> RebuildOutcome:
        if start_date > end_date:
            raise ApiError(
                status_code=422,
                code="INVALID_DATE_RANGE",
                message="start_date must be on or before end_date.",
            )

        outcome = RebuildOutcome(start_date=start_date, end_date=end_date)
        with BatchTransaction(self._db, operation="daily_summary_rebuild"):
            for employee_uid, day in self._events.distinct_employee_days(start_date, end_date):
                outcome.processed_count += 1
                try:
                    with self._db.begin_nested():
                        changed = self._rebuild_day(employee_uid, day)
                except EmployeeDayRejected as exc:
                    logger.warning(
                        "daily_summary_rebuild_day_skipped",
                        extra={"employee_uid": employee_uid, "date": day.isoformat(), "reason": str(exc)},
                    )
                    outcome.fail_count += 1
                    continue
                except Exception:
                    logger.exception(
                        "daily_summary_rebuild_day_failed",
                        extra={"employee_uid": employee_uid, "date": day.isoformat()},
                    )
                    outcome.fail_count += 1
                    continue
                outcome.success_count += 1
                if changed:
                    outcome.changed_count += 1

        logger.info(
            "daily_summary_rebuild_completed",
            extra={
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "processed_count": outcome.processed_count,
                "success_count": outcome.success_count,
                "fail_count": outcome.fail_count,
                "changed_count": outcome.changed_count,
            },
        )
        publish_safely(
            self._relay,
            DAILY_SUMMARY_REBUILT,
            {
                "processed_count": outcome.processed_count,
                "success_count": outcome.success_count,
                "fail_count": outcome.fail_count,
                "date_range": {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            },
        )
        return outcome

    def _rebuild_day(self, employee_uid: int, day: date) -> bool:
        employee = self._identity.resolve(employee_uid)
        if employee is None:
            raise EmployeeDayRejected(f"Employee with UID {employee_uid} not found")

        events = self._events.list_for_employee_day(employee_uid, day)
        if not events:
            raise EmployeeDayRejected(f"No attendance events for employee {employee_uid} on {day.isoformat()}")

        _, changed = self._summaries.upsert_derived(reconcile(employee, day, events))
        return changed
