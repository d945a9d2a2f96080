from __future__ import annotations

from datetime import date, datetime, timezone
import unittest
from unittest.mock import patch

from sqlalchemy import select

from attendance_sync.db import Base, build_engine, build_session_factory
from attendance_sync.errors import ApiError
from attendance_sync.models import AttendanceEvent, ClockType, DailyAttendanceSummary, Employee
from attendance_sync.services.identity import EmployeeIdentity, SqlIdentityLookup
from attendance_sync.services.rebuild import RebuildOrchestrator
from attendance_sync.services.summary_store import SummaryStore

DAY = date(2025, 9, 4)


class _RecordingRelay:
    def __init__(self) -> None:
        self.published: list[tuple[str, dict]] = []

    def publish(self, topic: str, payload: dict) -> None:
        self.published.append((topic, payload))


def _at(hour: int, day: int = 4) -> datetime:
    return datetime(2025, 9, day, hour, 0, tzinfo=timezone.utc)


def _event(employee_uid: int, clock_type: ClockType, clock_time: datetime, **extra) -> AttendanceEvent:  # type: ignore[no-untyped-def]
    return AttendanceEvent(
        employee_uid=employee_uid,
        clock_type=clock_type,
        clock_time=clock_time,
        date=clock_time.date(),
        is_synced=True,
        **extra,
    )


class RebuildOrchestratorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = build_engine("sqlite://")
        Base.metadata.create_all(self.engine)
        self.db = build_session_factory(self.engine)()
        self.db.add_all(
            [
                Employee(uid=1, first_name="Ana", last_name="Reyes", department="Assembly", id_number="E-001"),
                Employee(uid=2, first_name="Ben", last_name="Cruz", department="Packing", id_number="E-002"),
            ]
        )
        self.db.flush()
        self.db.add_all(
            [
                _event(1, ClockType.MORNING_IN, _at(8)),
                _event(1, ClockType.MORNING_OUT, _at(12), regular_hours=4.0),
                _event(1, ClockType.AFTERNOON_IN, _at(13)),
                _event(1, ClockType.AFTERNOON_OUT, _at(17), regular_hours=4.0),
                _event(2, ClockType.MORNING_IN, _at(9)),
                _event(2, ClockType.MORNING_IN, _at(9, day=5)),
            ]
        )
        self.db.commit()
        self.relay = _RecordingRelay()
        self.orchestrator = RebuildOrchestrator(self.db, SqlIdentityLookup(self.db), self.relay)

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def _summary(self, employee_uid: int, day: date) -> DailyAttendanceSummary | None:
        return self.db.scalars(
            select(DailyAttendanceSummary).where(
                DailyAttendanceSummary.employee_uid == employee_uid,
                DailyAttendanceSummary.date == day,
            )
        ).one_or_none()

    def test_rebuild_derives_one_summary_per_employee_day(self) -> None:
        outcome = self.orchestrator.rebuild(DAY, DAY)

        self.assertEqual((outcome.processed_count, outcome.success_count, outcome.fail_count), (2, 2, 0))
        ana = self._summary(1, DAY)
        ben = self._summary(2, DAY)
        self.assertIsNotNone(ana)
        self.assertIsNotNone(ben)
        self.assertEqual(ana.total_hours, 8.0)
        self.assertEqual(ana.employee_name, "Ana Reyes")
        self.assertFalse(ana.is_incomplete)
        self.assertTrue(ben.is_incomplete)
        self.assertIsNone(self._summary(2, date(2025, 9, 5)))
        self.assertEqual(self.relay.published[0][0], "daily_summary_rebuilt")
        self.assertEqual(self.relay.published[0][1]["success_count"], 2)

    def test_second_rebuild_changes_nothing(self) -> None:
        self.orchestrator.rebuild(DAY, date(2025, 9, 5))
        self.db.expire_all()
        first_stamp = self._summary(1, DAY).last_updated

        second = self.orchestrator.rebuild(DAY, date(2025, 9, 5))

        self.db.expire_all()
        self.assertEqual(second.changed_count, 0)
        self.assertEqual(second.success_count, 3)
        self.assertEqual(self._summary(1, DAY).last_updated, first_stamp)

    def test_new_event_changes_only_its_day(self) -> None:
        self.orchestrator.rebuild(DAY, DAY)
        self.db.add(_event(2, ClockType.MORNING_OUT, _at(12), regular_hours=3.0))
        self.db.commit()

        outcome = self.orchestrator.rebuild(DAY, DAY)

        self.assertEqual(outcome.changed_count, 1)
        self.assertFalse(self._summary(2, DAY).is_incomplete)

    def test_unknown_employee_is_counted_as_failure(self) -> None:
        class _OnlyAnaLookup:
            def exists(self, employee_uid: int) -> bool:
                return employee_uid == 1

            def resolve(self, employee_uid: int) -> EmployeeIdentity | None:
                if employee_uid != 1:
                    return None
                return EmployeeIdentity(uid=1, first_name="Ana", last_name="Reyes")

        orchestrator = RebuildOrchestrator(self.db, _OnlyAnaLookup(), self.relay)

        outcome = orchestrator.rebuild(DAY, DAY)

        self.assertEqual((outcome.processed_count, outcome.success_count, outcome.fail_count), (2, 1, 1))
        self.assertIsNotNone(self._summary(1, DAY))
        self.assertIsNone(self._summary(2, DAY))

    def test_storage_error_on_one_day_does_not_abort_others(self) -> None:
        original_upsert = SummaryStore.upsert_derived

        def flaky_upsert(store, computation, **kwargs):  # type: ignore[no-untyped-def]
            if computation.employee_uid == 2:
                raise RuntimeError("row write failed")
            return original_upsert(store, computation, **kwargs)

        with patch.object(SummaryStore, "upsert_derived", autospec=True, side_effect=flaky_upsert):
            outcome = self.orchestrator.rebuild(DAY, DAY)

        self.assertEqual((outcome.success_count, outcome.fail_count), (1, 1))
        self.assertIsNotNone(self._summary(1, DAY))
        self.assertIsNone(self._summary(2, DAY))

    def test_reversed_range_is_rejected(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            self.orchestrator.rebuild(date(2025, 9, 5), DAY)

        self.assertEqual(ctx.exception.status_code, 422)
        self.assertEqual(ctx.exception.code, "INVALID_DATE_RANGE")
        self.assertEqual(self.relay.published, [])

    def test_empty_range_processes_nothing(self) -> None:
        outcome = self.orchestrator.rebuild(date(2025, 1, 1), date(2025, 1, 31))

        self.assertEqual((outcome.processed_count, outcome.success_count, outcome.fail_count), (0, 0, 0))
        self.assertEqual(outcome.date_range, {"start_date": date(2025, 1, 1), "end_date": date(2025, 1, 31)})


if __name__ == "__main__":
    unittest.main()
