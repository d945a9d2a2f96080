from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from attendance_sync.errors import (
    EMPLOYEE_NOT_FOUND,
    INVALID_CLOCK_TYPE,
    INVALID_FIELD,
    MISSING_REQUIRED_FIELDS,
    RECORD_WRITE_FAILED,
    ApiError,
    RecordError,
    RecordRejected,
)
from attendance_sync.models import ClockType, Employee
from attendance_sync.schemas import AttendanceEventDetailRead, AttendanceEventPayload
from attendance_sync.services.attendance_queries import event_detail
from attendance_sync.services.event_store import EventStore
from attendance_sync.services.identity import IdentityLookup
from attendance_sync.services.notifications import (
    ATTENDANCE_CREATED,
    ATTENDANCE_SYNCED,
    NotificationRelay,
    publish_safely,
)
from attendance_sync.services.reconciliation import as_utc
from attendance_sync.services.transactions import BatchTransaction

logger = logging.getLogger("attendance_sync.ingestion")

REQUIRED_EVENT_FIELDS = ("employee_uid", "clock_type", "clock_time", "date")
VALID_CLOCK_TYPES = frozenset(clock_type.value for clock_type in ClockType)


@dataclass(slots=True)
class BatchOutcome:
    total_submitted: int = 0
    processed_count: int = 0
    duplicate_count: int = 0
    errors: list[RecordError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def to_response(self, message: str) -> dict[str, Any]:
        return {
            "success": True,
            "message": message,
            "processed_count": self.processed_count,
            "duplicate_count": self.duplicate_count,
            "error_count": self.error_count,
            "total_submitted": self.total_submitted,
            "errors": [error.to_dict() for error in self.errors],
        }


def extract_batch_records(payload: Any, key: str) -> list[Any]:
    """Accept ``{key: record | [records]}``, a bare list, or a single record object."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if key in payload:
            data = payload[key]
            if data is None:
                return []
            return data if isinstance(data, list) else [data]
        return [payload] if payload else []
    raise ApiError(
        status_code=400,
        code="INVALID_BATCH_PAYLOAD",
        message=f"Request body must be an object with '{key}' or an array of records.",
    )


def missing_fields(record: dict[str, Any], required: tuple[str, ...]) -> list[str]:
    return [name for name in required if record.get(name) is None or record.get(name) == ""]


def describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "record"
    return f"{location}: {first.get('msg', 'invalid value')}"


def parse_event_record(record: Any) -> AttendanceEventPayload:
    if not isinstance(record, dict):
        raise RecordRejected(INVALID_FIELD, "Attendance record must be an object.")

    employee_uid = record.get("employee_uid")
    missing = missing_fields(record, REQUIRED_EVENT_FIELDS)
    if missing:
        raise RecordRejected(
            MISSING_REQUIRED_FIELDS,
            f"Missing required fields: {', '.join(missing)}",
            employee_uid=employee_uid,
        )

    if str(record["clock_type"]) not in VALID_CLOCK_TYPES:
        raise RecordRejected(
            INVALID_CLOCK_TYPE,
            f"Invalid clock_type: {record['clock_type']}",
            employee_uid=employee_uid,
        )

    try:
        payload = AttendanceEventPayload.model_validate(record)
    except ValidationError as exc:
        raise RecordRejected(INVALID_FIELD, describe_validation_error(exc), employee_uid=employee_uid) from exc
    return payload.model_copy(update={"clock_time": as_utc(payload.clock_time)})


def _event_values(payload: AttendanceEventPayload) -> dict[str, Any]:
    values = payload.model_dump()
    if payload.created_at is not None:
        values["created_at"] = as_utc(payload.created_at)
    return values


class IngestionPipeline:
    def __init__(self, db: Session, identity: IdentityLookup, relay: NotificationRelay) -> None:
        self._db = db
        self._identity = identity
        self._relay = relay
        self._events = EventStore(db)

    def ingest_batch(self, records: list[Any]) -> BatchOutcome:
        outcome = BatchOutcome(total_submitted=len(records))
        if not records:
            return outcome

        with BatchTransaction(self._db, operation="attendance_sync"):
            for index, record in enumerate(records):
                try:
                    self._ingest_record(record, outcome)
                except RecordRejected as exc:
                    outcome.errors.append(RecordError(index=index, code=exc.code, error=exc.message, context=exc.context))

        logger.info(
            "attendance_batch_processed",
            extra={
                "total_submitted": outcome.total_submitted,
                "processed_count": outcome.processed_count,
                "duplicate_count": outcome.duplicate_count,
                "error_count": outcome.error_count,
            },
        )
        if outcome.processed_count > 0:
            publish_safely(self._relay, ATTENDANCE_SYNCED, {"synced_count": outcome.processed_count})
        return outcome

    def _ingest_record(self, record: Any, outcome: BatchOutcome) -> None:
        payload = parse_event_record(record)

        try:
            with self._db.begin_nested():
                inserted = self._store_record(payload)
        except IntegrityError:
            outcome.duplicate_count += 1
            return
        except DataError as exc:
            raise RecordRejected(
                RECORD_WRITE_FAILED,
                f"Attendance record rejected by the database: {exc.orig}",
                employee_uid=payload.employee_uid,
            ) from exc

        if inserted:
            outcome.processed_count += 1
        else:
            outcome.duplicate_count += 1

    def _store_record(self, payload: AttendanceEventPayload) -> bool:
        existing_id = self._events.find_duplicate_id(
            employee_uid=payload.employee_uid,
            clock_time=payload.clock_time,
            event_date=payload.date,
            clock_type=payload.clock_type,
        )
        if existing_id is not None:
            return False

        if not self._identity.exists(payload.employee_uid):
            raise RecordRejected(
                EMPLOYEE_NOT_FOUND,
                f"Employee with UID {payload.employee_uid} not found",
                employee_uid=payload.employee_uid,
            )

        self._events.add(_event_values(payload), is_synced=True)
        return True

    def create_event(self, record: Any) -> AttendanceEventDetailRead:
        try:
            payload = parse_event_record(record)
        except RecordRejected as exc:
            raise ApiError(status_code=400, code=exc.code, message=exc.message) from exc

        with BatchTransaction(self._db, operation="attendance_create"):
            if not self._identity.exists(payload.employee_uid):
                raise ApiError(
                    status_code=400,
                    code=EMPLOYEE_NOT_FOUND,
                    message=f"Employee with UID {payload.employee_uid} not found",
                )
            existing_id = self._events.find_duplicate_id(
                employee_uid=payload.employee_uid,
                clock_time=payload.clock_time,
                event_date=payload.date,
                clock_type=payload.clock_type,
            )
            if existing_id is not None:
                raise ApiError(
                    status_code=409,
                    code="DUPLICATE_ATTENDANCE_RECORD",
                    message="Attendance record already exists for this employee, time and clock type.",
                    details={"existing_id": existing_id},
                )
            event = self._events.add(_event_values(payload), is_synced=False)
            detail = event_detail(event, self._db.get(Employee, payload.employee_uid))

        logger.info(
            "attendance_record_created",
            extra={"attendance_id": detail.id, "employee_uid": detail.employee_uid, "clock_type": detail.clock_type.value},
        )
        publish_safely(self._relay, ATTENDANCE_CREATED, detail.model_dump(mode="json"))
        return detail

    def mark_synced(self, record_ids: list[int]) -> int:
        with BatchTransaction(self._db, operation="attendance_mark_synced"):
            updated_count = self._events.mark_synced(record_ids)

        logger.info("attendance_marked_synced", extra={"updated_count": updated_count})
        if updated_count > 0:
            publish_safely(self._relay, ATTENDANCE_SYNCED, {"synced_count": updated_count})
        return updated_count
