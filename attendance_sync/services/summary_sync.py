from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from attendance_sync.errors import (
    EMPLOYEE_NOT_FOUND,
    INVALID_FIELD,
    MISSING_REQUIRED_FIELDS,
    RECORD_WRITE_FAILED,
    RecordError,
    RecordRejected,
)
from attendance_sync.schemas import DailySummaryPayload
from attendance_sync.services.identity import IdentityLookup
from attendance_sync.services.ingestion import BatchOutcome, describe_validation_error, missing_fields
from attendance_sync.services.notifications import DAILY_SUMMARY_SYNCED, NotificationRelay, publish_safely
from attendance_sync.services.summary_store import SummaryStore, conflict_clock
from attendance_sync.services.transactions import BatchTransaction

logger = logging.getLogger("attendance_sync.summary_sync")

REQUIRED_SUMMARY_FIELDS = ("employee_uid", "date", "employee_name")


def parse_summary_record(record: Any) -> DailySummaryPayload:
    if not isinstance(record, dict):
        raise RecordRejected(INVALID_FIELD, "Daily summary record must be an object.")

    employee_uid = record.get("employee_uid")
    missing = missing_fields(record, REQUIRED_SUMMARY_FIELDS)
    if missing:
        raise RecordRejected(
            MISSING_REQUIRED_FIELDS,
            f"Missing required fields: {', '.join(missing)}",
            employee_uid=employee_uid,
            date=record.get("date"),
        )

    try:
        return DailySummaryPayload.model_validate(record)
    except ValidationError as exc:
        raise RecordRejected(
            INVALID_FIELD,
            describe_validation_error(exc),
            employee_uid=employee_uid,
            date=record.get("date"),
        ) from exc


class SummarySyncMerger:
    """Last-writer-wins on ``last_updated``; ties and older pushes are duplicates."""

    def __init__(self, db: Session, identity: IdentityLookup, relay: NotificationRelay) -> None:
        self._db = db
        self._identity = identity
        self._relay = relay
        self._summaries = SummaryStore(db)

    def merge_batch(self, records: list[Any]) -> BatchOutcome:
        outcome = BatchOutcome(total_submitted=len(records))
        if not records:
            return outcome

        with BatchTransaction(self._db, operation="daily_summary_sync"):
            for index, record in enumerate(records):
                try:
                    self._merge_record(record, outcome)
                except RecordRejected as exc:
                    outcome.errors.append(RecordError(index=index, code=exc.code, error=exc.message, context=exc.context))

        logger.info(
            "daily_summary_batch_merged",
            extra={
                "total_submitted": outcome.total_submitted,
                "processed_count": outcome.processed_count,
                "duplicate_count": outcome.duplicate_count,
                "error_count": outcome.error_count,
            },
        )
        if outcome.processed_count > 0:
            publish_safely(self._relay, DAILY_SUMMARY_SYNCED, {"synced_count": outcome.processed_count})
        return outcome

    def _merge_record(self, record: Any, outcome: BatchOutcome) -> None:
        payload = parse_summary_record(record)

        try:
            with self._db.begin_nested():
                written = self._write_record(payload)
        except IntegrityError:
            # Lost an insert race on (employee_uid, date); the other writer's row stands.
            outcome.duplicate_count += 1
            return
        except DataError as exc:
            raise RecordRejected(
                RECORD_WRITE_FAILED,
                f"Daily summary rejected by the database: {exc.orig}",
                employee_uid=payload.employee_uid,
                date=payload.date.isoformat(),
            ) from exc

        if written:
            outcome.processed_count += 1
        else:
            outcome.duplicate_count += 1

    def _write_record(self, payload: DailySummaryPayload) -> bool:
        if not self._identity.exists(payload.employee_uid):
            raise RecordRejected(
                EMPLOYEE_NOT_FOUND,
                f"Employee with UID {payload.employee_uid} not found",
                employee_uid=payload.employee_uid,
                date=payload.date.isoformat(),
            )

        existing = self._summaries.get_for_update(payload.employee_uid, payload.date)
        if existing is None:
            self._summaries.insert_payload(payload)
            return True
        if conflict_clock(payload.last_updated) > conflict_clock(existing.last_updated):
            self._summaries.overwrite_with_payload(existing, payload)
            return True
        return False
