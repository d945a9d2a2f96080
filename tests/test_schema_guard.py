from __future__ import annotations

import unittest
from unittest.mock import patch

from attendance_sync.db import Base, build_engine
from attendance_sync.models import SUMMARY_PAYLOAD_COLUMNS, ClockType
from attendance_sync.services.schema_guard import EXPECTED_ALEMBIC_HEAD, verify_runtime_schema


class _FakeResult:
    def __init__(self, value):
        self._value = value

    def scalar(self):  # type: ignore[no-untyped-def]
        return self._value


class _FakeConnection:
    def __init__(self, version_value):
        self._version_value = version_value

    def __enter__(self):  # type: ignore[no-untyped-def]
        return self

    def __exit__(self, exc_type, exc, tb):  # type: ignore[no-untyped-def]
        return False

    def execute(self, _statement):  # type: ignore[no-untyped-def]
        return _FakeResult(self._version_value)


class _FakeEngine:
    def __init__(self, version_value):
        self._version_value = version_value

    def connect(self):  # type: ignore[no-untyped-def]
        return _FakeConnection(self._version_value)


class _FakeInspector:
    def __init__(self, *, columns_by_table: dict[str, set[str]], enums: list[dict[str, object]]):
        self._columns_by_table = columns_by_table
        self._enums = enums

    def get_columns(self, table_name: str):  # type: ignore[no-untyped-def]
        columns = self._columns_by_table[table_name]
        return [{"name": item} for item in columns]

    def get_enums(self):  # type: ignore[no-untyped-def]
        return self._enums


def _complete_columns() -> dict[str, set[str]]:
    return {
        "emp_list": {"uid", "first_name", "last_name", "department", "id_number", "id_barcode", "email"},
        "attendance": {
            "id",
            "employee_uid",
            "clock_type",
            "clock_time",
            "date",
            "regular_hours",
            "overtime_hours",
            "is_late",
            "is_synced",
        },
        "daily_attendance_summary": {"id", "created_at", *SUMMARY_PAYLOAD_COLUMNS},
        "alembic_version": {"version_num"},
    }


ALL_CLOCK_TYPES = [clock_type.value for clock_type in ClockType]


class SchemaGuardTests(unittest.TestCase):
    def test_ok_when_required_columns_and_enum_values_exist(self) -> None:
        fake_inspector = _FakeInspector(
            columns_by_table=_complete_columns(),
            enums=[{"name": "attendance_clock_type", "labels": ALL_CLOCK_TYPES}],
        )

        with patch("attendance_sync.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(_FakeEngine(EXPECTED_ALEMBIC_HEAD))  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.issues, [])
        self.assertEqual(result.warnings, [])
        self.assertEqual(result.alembic_version, EXPECTED_ALEMBIC_HEAD)
        self.assertEqual(result.to_dict()["issue_count"], 0)

    def test_reports_missing_columns_enum_values_and_empty_version(self) -> None:
        columns = _complete_columns()
        columns["attendance"].discard("is_synced")
        columns["daily_attendance_summary"].discard("pending_sessions")
        fake_inspector = _FakeInspector(
            columns_by_table=columns,
            enums=[{"name": "attendance_clock_type", "labels": ["morning_in", "morning_out"]}],
        )

        with patch("attendance_sync.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(_FakeEngine(""))  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertIn("MISSING_COLUMNS:attendance:is_synced", result.issues)
        self.assertIn("MISSING_COLUMNS:daily_attendance_summary:pending_sessions", result.issues)
        self.assertTrue(
            any(item.startswith("MISSING_ENUM_VALUES:attendance_clock_type:afternoon_in") for item in result.issues)
        )
        self.assertIn("ALEMBIC_VERSION_EMPTY", result.issues)
        self.assertIsNone(result.alembic_version)

    def test_older_revision_is_a_warning(self) -> None:
        fake_inspector = _FakeInspector(
            columns_by_table=_complete_columns(),
            enums=[{"name": "attendance_clock_type", "labels": ALL_CLOCK_TYPES}],
        )

        with patch("attendance_sync.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(_FakeEngine("0000_base"))  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.warnings, [f"ALEMBIC_VERSION_MISMATCH:0000_base:{EXPECTED_ALEMBIC_HEAD}"])

    def test_sqlite_without_alembic_table_fails(self) -> None:
        engine = build_engine("sqlite://")
        Base.metadata.create_all(engine)
        try:
            result = verify_runtime_schema(engine)
        finally:
            engine.dispose()

        self.assertFalse(result.ok)
        self.assertTrue(any(item.startswith("TABLE_UNREADABLE:alembic_version") or item.startswith("MISSING_COLUMNS:alembic_version") for item in result.issues))
        self.assertTrue(any(item.startswith("ALEMBIC_VERSION_CHECK_FAILED") for item in result.issues))


if __name__ == "__main__":
    unittest.main()
