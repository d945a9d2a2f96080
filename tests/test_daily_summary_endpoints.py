from __future__ import annotations

from collections.abc import Generator
import unittest

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from attendance_sync.db import Base, build_engine, build_session_factory, get_db
from attendance_sync.dependencies import get_notification_relay
from attendance_sync.main import app
from attendance_sync.models import Employee


class _RecordingRelay:
    def __init__(self) -> None:
        self.published: list[tuple[str, dict]] = []

    def publish(self, topic: str, payload: dict) -> None:
        self.published.append((topic, payload))


def _override_get_db(db: Session):  # type: ignore[no-untyped-def]
    def _override() -> Generator[Session, None, None]:
        yield db

    return _override


def _clock(uid: int, clock_type: str, hhmm: str, day: str = "2025-09-04", **extra) -> dict:  # type: ignore[no-untyped-def]
    record = {
        "employee_uid": uid,
        "clock_type": clock_type,
        "clock_time": f"{day}T{hhmm}:00Z",
        "date": day,
    }
    record.update(extra)
    return record


def _pushed_summary(**overrides) -> dict:  # type: ignore[no-untyped-def]
    record = {
        "employee_uid": 1,
        "employee_name": "Ana Reyes",
        "department": "Assembly",
        "date": "2025-09-04",
        "regular_hours": 8,
        "overtime_hours": 0,
        "total_hours": 8,
        "total_sessions": 2,
        "completed_sessions": 2,
        "pending_sessions": 0,
        "last_updated": "2025-09-04T18:00:00Z",
    }
    record.update(overrides)
    return record


class DailySummaryEndpointsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = build_engine("sqlite://")
        Base.metadata.create_all(self.engine)
        self.db = build_session_factory(self.engine)()
        self.db.add_all(
            [
                Employee(uid=1, first_name="Ana", last_name="Reyes", department="Assembly", email="ana@example.com"),
                Employee(uid=2, first_name="Ben", last_name="Cruz", department="Packing", status="Active"),
            ]
        )
        self.db.commit()
        self.relay = _RecordingRelay()
        app.dependency_overrides[get_db] = _override_get_db(self.db)
        app.dependency_overrides[get_notification_relay] = lambda: self.relay
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.db.close()
        self.engine.dispose()

    def _seed_events(self) -> None:
        response = self.client.post(
            "/api/attendance",
            json={
                "attendance_data": [
                    _clock(1, "morning_in", "08:00"),
                    _clock(1, "morning_out", "12:00", regular_hours=4),
                    _clock(1, "afternoon_in", "13:00"),
                    _clock(1, "afternoon_out", "17:00", regular_hours=4),
                    _clock(1, "evening_in", "18:00"),
                    _clock(1, "evening_out", "20:00", overtime_hours=2),
                    _clock(2, "morning_in", "08:30", is_late=True),
                ]
            },
        )
        self.assertEqual(response.json()["processed_count"], 7)

    def _rebuild(self, start: str = "2025-09-04", end: str = "2025-09-04"):  # type: ignore[no-untyped-def]
        return self.client.post("/api/daily-summary/rebuild", json={"start_date": start, "end_date": end})

    def test_rebuild_then_read_back(self) -> None:
        self._seed_events()

        rebuilt = self._rebuild()
        listing = self.client.get("/api/daily-summary", params={"date": "2025-09-04", "sort_by": "employee_name", "sort_order": "ASC"})

        self.assertEqual(rebuilt.status_code, 200)
        body = rebuilt.json()
        self.assertEqual(body["processed_count"], 2)
        self.assertEqual(body["success_count"], 2)
        self.assertEqual(body["fail_count"], 0)
        self.assertEqual(body["date_range"], {"start_date": "2025-09-04", "end_date": "2025-09-04"})

        rows = listing.json()["data"]
        self.assertEqual([row["employee_name"] for row in rows], ["Ana Reyes", "Ben Cruz"])
        ana = rows[0]
        self.assertEqual(ana["total_hours"], 10.0)
        self.assertAlmostEqual(ana["evening_hours"], 1.4)
        self.assertTrue(ana["has_overtime"])
        self.assertTrue(ana["has_evening_session"])
        self.assertEqual(ana["email"], "ana@example.com")
        self.assertTrue(rows[1]["is_incomplete"])
        self.assertTrue(rows[1]["has_late_entry"])

    def test_rebuild_rejects_reversed_range(self) -> None:
        response = self._rebuild(start="2025-09-05", end="2025-09-04")

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "INVALID_DATE_RANGE")

    def test_summary_sync_last_writer_wins(self) -> None:
        first = self.client.post("/api/daily-summary", json={"daily_summary_data": [_pushed_summary()]})
        stale = self.client.post(
            "/api/daily-summary",
            json={"daily_summary_data": _pushed_summary(last_updated="2025-09-04T17:00:00Z", department="Old")},
        )

        self.assertEqual(first.json()["processed_count"], 1)
        self.assertEqual(stale.json()["processed_count"], 0)
        self.assertEqual(stale.json()["duplicate_count"], 1)
        rows = self.client.get("/api/daily-summary", params={"employee_uid": 1}).json()["data"]
        self.assertEqual(rows[0]["department"], "Assembly")
        self.assertEqual(self.relay.published, [("daily_summary_synced", {"synced_count": 1})])

    def test_summary_sync_reports_invariant_violations(self) -> None:
        response = self.client.post(
            "/api/daily-summary",
            json=[_pushed_summary(total_hours=3), _pushed_summary(employee_uid=404)],
        )

        body = response.json()
        self.assertEqual(body["error_count"], 2)
        self.assertEqual(body["errors"][0]["code"], "INVALID_FIELD")
        self.assertEqual(body["errors"][1]["code"], "EMPLOYEE_NOT_FOUND")

    def test_filters_by_flags_and_department(self) -> None:
        self._seed_events()
        self._rebuild()

        overtime = self.client.get("/api/daily-summary", params={"has_overtime": "true"}).json()
        packing = self.client.get("/api/daily-summary", params={"department": "Packing"}).json()

        self.assertEqual(overtime["pagination"]["total"], 1)
        self.assertEqual(overtime["data"][0]["employee_uid"], 1)
        self.assertEqual(packing["pagination"]["total"], 1)
        self.assertEqual(packing["data"][0]["employee_uid"], 2)

    def test_employee_view_aggregates_days(self) -> None:
        self.client.post(
            "/api/daily-summary",
            json={
                "daily_summary_data": [
                    _pushed_summary(),
                    _pushed_summary(date="2025-09-05", regular_hours=6, total_hours=8, overtime_hours=2, has_overtime=True),
                ]
            },
        )

        data = self.client.get("/api/daily-summary/employee/1").json()["data"]

        self.assertEqual(len(data["records"]), 2)
        self.assertEqual(data["records"][0]["date"], "2025-09-05")
        self.assertEqual(data["summary"]["total_days"], 2)
        self.assertEqual(data["summary"]["grand_total_hours"], 16.0)
        self.assertEqual(data["summary"]["days_with_overtime"], 1)
        self.assertEqual(data["summary"]["avg_daily_hours"], 8.0)

    def test_stats_by_department_and_overtime_leaders(self) -> None:
        self._seed_events()
        self._rebuild()

        data = self.client.get("/api/daily-summary/stats", params={"date": "2025-09-04"}).json()["data"]

        self.assertEqual(data["date_range"], {"date": "2025-09-04"})
        self.assertEqual(data["summary"]["total_records"], 2)
        self.assertEqual(data["summary"]["departments_count"], 2)
        self.assertEqual(data["summary"]["incomplete_records"], 1)
        self.assertEqual(data["by_department"][0]["department"], "Assembly")
        self.assertEqual(len(data["overtime_leaders"]), 1)
        self.assertEqual(data["overtime_leaders"][0]["employee_name"], "Ana Reyes")
        self.assertEqual(len(data["recent_activity"]), 2)

    def test_get_and_delete(self) -> None:
        self.client.post("/api/daily-summary", json=[_pushed_summary()])
        summary_id = self.client.get("/api/daily-summary").json()["data"][0]["id"]

        found = self.client.get(f"/api/daily-summary/{summary_id}")
        deleted = self.client.delete(f"/api/daily-summary/{summary_id}")
        missing = self.client.get(f"/api/daily-summary/{summary_id}")
        deleted_again = self.client.delete(f"/api/daily-summary/{summary_id}")

        self.assertEqual(found.json()["data"]["employee_status"], "Active")
        self.assertEqual(deleted.json(), {"success": True, "message": "Daily summary record deleted successfully", "id": summary_id})
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["error"]["code"], "DAILY_SUMMARY_NOT_FOUND")
        self.assertEqual(deleted_again.status_code, 404)
        self.assertIn(("daily_summary_deleted", {"id": summary_id}), self.relay.published)


if __name__ == "__main__":
    unittest.main()
