#!/usr/bin/env python
from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine

from attendance_sync.services.schema_guard import EXPECTED_ALEMBIC_HEAD
from attendance_sync.settings import get_settings

HOURS_TOLERANCE = 1e-6


def run(engine: Engine | None = None) -> dict:
    if engine is None:
        engine = create_engine(get_settings().database_url)

    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "database_url": engine.url.render_as_string(hide_password=True),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append(
            {
                "name": name,
                "status": status,
                "details": details,
            }
        )

    tables = set(inspect(engine).get_table_names())

    with engine.connect() as conn:
        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [
                row[0]
                for row in conn.execute(text("select version_num from alembic_version")).fetchall()
            ]
        add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_ALEMBIC_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_ALEMBIC_HEAD, "current": current_versions},
        )

        missing_tables = sorted(
            table for table in ("emp_list", "attendance", "daily_attendance_summary") if table not in tables
        )
        add("missing_tables", "fail" if missing_tables else "ok", {"tables": missing_tables})

        if "attendance" in tables:
            duplicate_event_keys = conn.execute(
                text(
                    """
                    select employee_uid, clock_time, date, clock_type, count(*)
                    from attendance
                    group by employee_uid, clock_time, date, clock_type
                    having count(*) > 1
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "duplicate_attendance_keys",
                "fail" if duplicate_event_keys else "ok",
                {"rows": [[str(value) for value in row] for row in duplicate_event_keys]},
            )

        if "attendance" in tables and "emp_list" in tables:
            orphan_events = conn.execute(
                text(
                    """
                    select a.id
                    from attendance a
                    left join emp_list e on e.uid = a.employee_uid
                    where e.uid is null
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "attendance_orphan_employee",
                "fail" if orphan_events else "ok",
                {"sample_ids": [row[0] for row in orphan_events]},
            )

        if "daily_attendance_summary" in tables:
            broken_hours = conn.execute(
                text(
                    """
                    select id
                    from daily_attendance_summary
                    where abs(total_hours - (regular_hours + overtime_hours)) > :tolerance
                    limit 20
                    """
                ),
                {"tolerance": HOURS_TOLERANCE},
            ).fetchall()
            add(
                "summary_hours_invariant",
                "fail" if broken_hours else "ok",
                {"sample_ids": [row[0] for row in broken_hours]},
            )

            broken_incomplete_flag = conn.execute(
                text(
                    """
                    select id
                    from daily_attendance_summary
                    where (is_incomplete = true and pending_sessions = 0)
                       or (is_incomplete = false and pending_sessions > 0)
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "summary_incomplete_flag_invariant",
                "fail" if broken_incomplete_flag else "ok",
                {"sample_ids": [row[0] for row in broken_incomplete_flag]},
            )

        if "attendance" in tables and "daily_attendance_summary" in tables:
            missing_summaries = conn.execute(
                text(
                    """
                    select a.employee_uid, a.date
                    from attendance a
                    left join daily_attendance_summary s
                      on s.employee_uid = a.employee_uid and s.date = a.date
                    where s.id is null
                    group by a.employee_uid, a.date
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "employee_days_without_summary",
                "warn" if missing_summaries else "ok",
                {"rows": [[str(value) for value in row] for row in missing_summaries]},
            )

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
