from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlalchemy.orm import Session

from attendance_sync.db import get_db
from attendance_sync.dependencies import get_ingestion_pipeline
from attendance_sync.models import ClockType
from attendance_sync.schemas import (
    AttendanceEventListResponse,
    AttendanceEventResponse,
    AttendanceStatsResponse,
    BatchSyncResponse,
    EmployeeAttendanceSummaryResponse,
    MarkSyncedRequest,
    MarkSyncedResponse,
    UnsyncedEventsResponse,
)
from attendance_sync.services import attendance_queries
from attendance_sync.services.ingestion import IngestionPipeline, extract_batch_records

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


@router.post("", response_model=BatchSyncResponse)
def sync_attendance_batch(
    request: Request,
    payload: Any = Body(default=None),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
) -> BatchSyncResponse:
    records = extract_batch_records(payload, "attendance_data")
    outcome = pipeline.ingest_batch(records)
    request.state.processed_count = outcome.processed_count
    return BatchSyncResponse(**outcome.to_response(f"Processed {outcome.processed_count} attendance records"))


@router.get("", response_model=AttendanceEventListResponse)
def list_attendance(
    employee_uid: int | None = Query(default=None, ge=1),
    id_number: str | None = Query(default=None, min_length=1),
    event_date: date | None = Query(default=None, alias="date"),
    clock_type: ClockType | None = Query(default=None),
    is_late: bool | None = Query(default=None),
    is_synced: bool | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    sort_by: str = Query(default="clock_time"),
    sort_order: str = Query(default="DESC"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> AttendanceEventListResponse:
    rows, pagination = attendance_queries.list_events(
        db,
        employee_uid=employee_uid,
        id_number=id_number,
        event_date=event_date,
        clock_type=clock_type,
        is_late=is_late,
        is_synced=is_synced,
        start_date=start_date,
        end_date=end_date,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    return AttendanceEventListResponse(data=rows, pagination=pagination)


@router.post("/record", response_model=AttendanceEventResponse, status_code=status.HTTP_201_CREATED)
def create_attendance_record(
    request: Request,
    payload: dict[str, Any] = Body(...),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
) -> AttendanceEventResponse:
    detail = pipeline.create_event(payload)
    request.state.employee_uid = detail.employee_uid
    request.state.attendance_id = detail.id
    return AttendanceEventResponse(message="Attendance record created successfully", data=detail)


@router.get("/unsynced", response_model=UnsyncedEventsResponse)
def list_unsynced_attendance(
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> UnsyncedEventsResponse:
    rows, total_unsynced = attendance_queries.list_unsynced(db, limit=limit)
    return UnsyncedEventsResponse(data=rows, total_unsynced=total_unsynced)


@router.post("/mark-synced", response_model=MarkSyncedResponse)
def mark_attendance_synced(
    payload: MarkSyncedRequest,
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
) -> MarkSyncedResponse:
    updated_count = pipeline.mark_synced(payload.record_ids)
    return MarkSyncedResponse(
        message=f"Marked {updated_count} records as synced",
        updated_count=updated_count,
    )


@router.get("/stats", response_model=AttendanceStatsResponse)
def attendance_stats(
    stats_date: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
) -> AttendanceStatsResponse:
    return AttendanceStatsResponse(data=attendance_queries.attendance_stats(db, stats_date=stats_date))


@router.get("/employee/{employee_uid}", response_model=AttendanceEventListResponse)
def list_employee_attendance(
    employee_uid: int,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> AttendanceEventListResponse:
    rows, pagination = attendance_queries.list_employee_events(
        db,
        employee_uid,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return AttendanceEventListResponse(data=rows, pagination=pagination)


@router.get("/summary/{employee_uid}", response_model=EmployeeAttendanceSummaryResponse)
def employee_attendance_summary(
    employee_uid: int,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> EmployeeAttendanceSummaryResponse:
    return EmployeeAttendanceSummaryResponse(
        data=attendance_queries.employee_attendance_summary(
            db,
            employee_uid,
            start_date=start_date,
            end_date=end_date,
        )
    )


@router.get("/{attendance_id}", response_model=AttendanceEventResponse)
def get_attendance(attendance_id: int, db: Session = Depends(get_db)) -> AttendanceEventResponse:
    return AttendanceEventResponse(data=attendance_queries.get_event(db, attendance_id))
