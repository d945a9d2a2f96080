from __future__ import annotations

from datetime import date, datetime, timezone
import unittest
from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.exc import DataError, OperationalError

from attendance_sync.db import Base, build_engine, build_session_factory
from attendance_sync.errors import TransactionFault
from attendance_sync.models import DailyAttendanceSummary, Employee
from attendance_sync.services.identity import SqlIdentityLookup
from attendance_sync.services.summary_store import SummaryStore
from attendance_sync.services.summary_sync import SummarySyncMerger

T0 = "2025-09-04T17:00:00Z"
T1 = "2025-09-04T18:00:00Z"


class _RecordingRelay:
    def __init__(self) -> None:
        self.published: list[tuple[str, dict]] = []

    def publish(self, topic: str, payload: dict) -> None:
        self.published.append((topic, payload))


def _summary(**overrides) -> dict:  # type: ignore[no-untyped-def]
    record = {
        "employee_uid": 1,
        "employee_name": "Ana Reyes",
        "first_name": "Ana",
        "last_name": "Reyes",
        "department": "Assembly",
        "date": "2025-09-04",
        "morning_in": "2025-09-04T08:00:00Z",
        "morning_out": "2025-09-04T12:00:00Z",
        "regular_hours": 4,
        "overtime_hours": 0,
        "total_hours": 4,
        "morning_hours": 4,
        "total_sessions": 1,
        "completed_sessions": 1,
        "pending_sessions": 0,
        "is_incomplete": False,
        "total_minutes_worked": 240,
        "last_updated": T1,
    }
    record.update(overrides)
    return record


class SummarySyncMergerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = build_engine("sqlite://")
        Base.metadata.create_all(self.engine)
        self.db = build_session_factory(self.engine)()
        self.db.add(Employee(uid=1, first_name="Ana", last_name="Reyes", department="Assembly"))
        self.db.commit()
        self.relay = _RecordingRelay()
        self.merger = SummarySyncMerger(self.db, SqlIdentityLookup(self.db), self.relay)

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def _stored(self) -> DailyAttendanceSummary:
        self.db.expire_all()
        return self.db.scalars(
            select(DailyAttendanceSummary).where(
                DailyAttendanceSummary.employee_uid == 1,
                DailyAttendanceSummary.date == date(2025, 9, 4),
            )
        ).one()

    def test_older_push_leaves_newer_row_untouched(self) -> None:
        self.merger.merge_batch([_summary(last_updated=T1, regular_hours=4, total_hours=4)])

        outcome = self.merger.merge_batch(
            [_summary(last_updated=T0, regular_hours=2, total_hours=2, employee_name="Stale Name")]
        )

        self.assertEqual(outcome.processed_count, 0)
        self.assertEqual(outcome.duplicate_count, 1)
        stored = self._stored()
        self.assertEqual(stored.regular_hours, 4)
        self.assertEqual(stored.employee_name, "Ana Reyes")

    def test_equal_timestamp_is_a_duplicate(self) -> None:
        self.merger.merge_batch([_summary()])

        outcome = self.merger.merge_batch([_summary(department="Changed")])

        self.assertEqual(outcome.duplicate_count, 1)
        self.assertEqual(self._stored().department, "Assembly")

    def test_strictly_newer_push_overwrites_every_field(self) -> None:
        self.merger.merge_batch([_summary(last_updated=T0)])

        outcome = self.merger.merge_batch(
            [
                _summary(
                    last_updated=T1,
                    department="Packing",
                    regular_hours=3,
                    overtime_hours=1.5,
                    total_hours=4.5,
                    morning_out=None,
                    pending_sessions=1,
                    completed_sessions=0,
                    is_incomplete=True,
                )
            ]
        )

        self.assertEqual(outcome.processed_count, 1)
        stored = self._stored()
        self.assertEqual(stored.department, "Packing")
        self.assertEqual(stored.overtime_hours, 1.5)
        self.assertEqual(stored.total_hours, 4.5)
        self.assertIsNone(stored.morning_out)
        self.assertTrue(stored.is_incomplete)
        self.assertEqual(stored.last_updated.replace(tzinfo=timezone.utc), datetime(2025, 9, 4, 18, 0, tzinfo=timezone.utc))

    def test_stored_row_without_timestamp_loses_to_any_timestamped_push(self) -> None:
        self.merger.merge_batch([_summary(last_updated=None)])
        stored = self._stored()
        stored.last_updated = None
        self.db.commit()

        outcome = self.merger.merge_batch([_summary(last_updated="1999-01-01T00:00:00Z", department="Packing")])

        self.assertEqual(outcome.processed_count, 1)
        self.assertEqual(self._stored().department, "Packing")

    def test_insert_without_timestamp_is_stamped(self) -> None:
        self.merger.merge_batch([_summary(last_updated=None)])

        self.assertIsNotNone(self._stored().last_updated)

    def test_record_level_errors(self) -> None:
        outcome = self.merger.merge_batch(
            [
                _summary(employee_name=""),
                _summary(employee_uid=404),
                _summary(total_hours=9),
                _summary(pending_sessions=2, is_incomplete=False),
                _summary(date="2025-09-05"),
            ]
        )

        self.assertEqual(
            [(error.index, error.code) for error in outcome.errors],
            [
                (0, "MISSING_REQUIRED_FIELDS"),
                (1, "EMPLOYEE_NOT_FOUND"),
                (2, "INVALID_FIELD"),
                (3, "INVALID_FIELD"),
            ],
        )
        self.assertEqual(outcome.processed_count, 1)
        self.assertEqual(self.relay.published, [("daily_summary_synced", {"synced_count": 1})])

    def test_out_of_range_uid_rejects_only_that_record(self) -> None:
        outcome = self.merger.merge_batch(
            [_summary(), {"employee_uid": 2**70, "date": "2025-09-04", "employee_name": "X"}]
        )

        self.assertEqual((outcome.processed_count, outcome.error_count), (1, 1))
        self.assertEqual(outcome.errors[0].index, 1)
        self.assertEqual(outcome.errors[0].code, "INVALID_FIELD")
        self.assertEqual(self._stored().employee_name, "Ana Reyes")

    def test_oversized_department_rejects_only_that_record(self) -> None:
        outcome = self.merger.merge_batch([_summary(), _summary(date="2025-09-05", department="D" * 300)])

        self.assertEqual((outcome.processed_count, outcome.error_count), (1, 1))
        self.assertEqual(outcome.errors[0].code, "INVALID_FIELD")

    def test_database_data_error_rejects_only_that_record(self) -> None:
        original_insert = SummaryStore.insert_payload

        def strict_insert(store, payload, **kwargs):  # type: ignore[no-untyped-def]
            if payload.date == date(2025, 9, 5):
                raise DataError(
                    "INSERT INTO daily_attendance_summary",
                    {},
                    Exception("value too long for type character varying(128)"),
                )
            return original_insert(store, payload, **kwargs)

        with patch.object(SummaryStore, "insert_payload", autospec=True, side_effect=strict_insert):
            outcome = self.merger.merge_batch([_summary(), _summary(date="2025-09-05")])

        self.assertEqual((outcome.processed_count, outcome.error_count), (1, 1))
        self.assertEqual(outcome.errors[0].index, 1)
        self.assertEqual(outcome.errors[0].code, "RECORD_WRITE_FAILED")
        self.assertEqual(outcome.errors[0].to_dict()["date"], "2025-09-05")
        self.assertEqual(self._stored().department, "Assembly")
        self.assertEqual(self.relay.published, [("daily_summary_synced", {"synced_count": 1})])

    def test_storage_fault_rolls_back_the_whole_batch(self) -> None:
        original_insert = SummaryStore.insert_payload

        def failing_insert(store, payload, **kwargs):  # type: ignore[no-untyped-def]
            if payload.date == date(2025, 9, 5):
                raise OperationalError("INSERT INTO daily_attendance_summary", {}, Exception("disk I/O error"))
            return original_insert(store, payload, **kwargs)

        with patch.object(SummaryStore, "insert_payload", autospec=True, side_effect=failing_insert):
            with self.assertRaises(TransactionFault):
                self.merger.merge_batch([_summary(), _summary(date="2025-09-05")])

        self.db.expire_all()
        self.assertIsNone(self.db.scalars(select(DailyAttendanceSummary)).first())
        self.assertEqual(self.relay.published, [])

    def test_derived_fields_are_filled_when_omitted(self) -> None:
        record = _summary(regular_hours=6, overtime_hours=2, pending_sessions=1)
        del record["total_hours"]
        del record["is_incomplete"]

        self.merger.merge_batch([record])

        stored = self._stored()
        self.assertEqual(stored.total_hours, 8)
        self.assertTrue(stored.is_incomplete)


if __name__ == "__main__":
    unittest.main()
