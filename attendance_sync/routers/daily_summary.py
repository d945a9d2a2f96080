from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from attendance_sync.db import get_db
from attendance_sync.dependencies import get_notification_relay, get_rebuild_orchestrator, get_summary_merger
from attendance_sync.schemas import (
    BatchSyncResponse,
    DailySummaryListResponse,
    DailySummaryResponse,
    DailySummaryStatsResponse,
    DeleteResponse,
    EmployeeDailySummaryResponse,
    RebuildRequest,
    RebuildResponse,
)
from attendance_sync.services import daily_summary_queries
from attendance_sync.services.ingestion import extract_batch_records
from attendance_sync.services.notifications import NotificationRelay
from attendance_sync.services.rebuild import RebuildOrchestrator
from attendance_sync.services.summary_sync import SummarySyncMerger

router = APIRouter(prefix="/api/daily-summary", tags=["daily-summary"])


@router.post("", response_model=BatchSyncResponse)
def sync_daily_summary_batch(
    request: Request,
    payload: Any = Body(default=None),
    merger: SummarySyncMerger = Depends(get_summary_merger),
) -> BatchSyncResponse:
    records = extract_batch_records(payload, "daily_summary_data")
    outcome = merger.merge_batch(records)
    request.state.processed_count = outcome.processed_count
    return BatchSyncResponse(**outcome.to_response(f"Processed {outcome.processed_count} daily summary records"))


@router.post("/rebuild", response_model=RebuildResponse)
def rebuild_daily_summary(
    payload: RebuildRequest,
    orchestrator: RebuildOrchestrator = Depends(get_rebuild_orchestrator),
) -> RebuildResponse:
    outcome = orchestrator.rebuild(payload.start_date, payload.end_date)
    return RebuildResponse(
        message=f"Rebuilt daily summary for {outcome.success_count} employee-days",
        processed_count=outcome.processed_count,
        success_count=outcome.success_count,
        fail_count=outcome.fail_count,
        date_range=outcome.date_range,
    )


@router.get("", response_model=DailySummaryListResponse)
def list_daily_summaries(
    employee_uid: int | None = Query(default=None, ge=1),
    id_number: str | None = Query(default=None, min_length=1),
    summary_date: date | None = Query(default=None, alias="date"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    department: str | None = Query(default=None, min_length=1),
    has_overtime: bool | None = Query(default=None),
    is_incomplete: bool | None = Query(default=None),
    has_late_entry: bool | None = Query(default=None),
    sort_by: str = Query(default="date"),
    sort_order: str = Query(default="DESC"),
    limit: int = Query(default=50, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> DailySummaryListResponse:
    rows, pagination = daily_summary_queries.list_summaries(
        db,
        employee_uid=employee_uid,
        id_number=id_number,
        summary_date=summary_date,
        start_date=start_date,
        end_date=end_date,
        department=department,
        has_overtime=has_overtime,
        is_incomplete=is_incomplete,
        has_late_entry=has_late_entry,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    return DailySummaryListResponse(data=rows, pagination=pagination)


@router.get("/stats", response_model=DailySummaryStatsResponse)
def daily_summary_stats(
    stats_date: date | None = Query(default=None, alias="date"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> DailySummaryStatsResponse:
    return DailySummaryStatsResponse(
        data=daily_summary_queries.summary_stats(
            db,
            stats_date=stats_date,
            start_date=start_date,
            end_date=end_date,
        )
    )


@router.get("/employee/{employee_uid}", response_model=EmployeeDailySummaryResponse)
def list_employee_daily_summaries(
    employee_uid: int,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> EmployeeDailySummaryResponse:
    return EmployeeDailySummaryResponse(
        data=daily_summary_queries.employee_summaries(
            db,
            employee_uid,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
    )


@router.get("/{summary_id}", response_model=DailySummaryResponse)
def get_daily_summary(summary_id: int, db: Session = Depends(get_db)) -> DailySummaryResponse:
    return DailySummaryResponse(data=daily_summary_queries.get_summary(db, summary_id))


@router.delete("/{summary_id}", response_model=DeleteResponse)
def delete_daily_summary(
    summary_id: int,
    db: Session = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
) -> DeleteResponse:
    deleted_id = daily_summary_queries.delete_summary(db, relay, summary_id)
    return DeleteResponse(message="Daily summary record deleted successfully", id=deleted_id)
