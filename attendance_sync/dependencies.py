from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from attendance_sync.db import get_db
from attendance_sync.services.identity import IdentityLookup, SqlIdentityLookup
from attendance_sync.services.ingestion import IngestionPipeline
from attendance_sync.services.notifications import (
    DisabledNotificationRelay,
    LoggingNotificationRelay,
    NotificationRelay,
)
from attendance_sync.services.rebuild import RebuildOrchestrator
from attendance_sync.services.summary_sync import SummarySyncMerger
from attendance_sync.settings import get_settings


def get_notification_relay() -> NotificationRelay:
    if get_settings().notification_relay_enabled:
        return LoggingNotificationRelay()
    return DisabledNotificationRelay()


def get_identity_lookup(db: Session = Depends(get_db)) -> IdentityLookup:
    return SqlIdentityLookup(db)


def get_ingestion_pipeline(
    db: Session = Depends(get_db),
    identity: IdentityLookup = Depends(get_identity_lookup),
    relay: NotificationRelay = Depends(get_notification_relay),
) -> IngestionPipeline:
    return IngestionPipeline(db, identity, relay)


def get_summary_merger(
    db: Session = Depends(get_db),
    identity: IdentityLookup = Depends(get_identity_lookup),
    relay: NotificationRelay = Depends(get_notification_relay),
) -> SummarySyncMerger:
    return SummarySyncMerger(db, identity, relay)


def get_rebuild_orchestrator(
    db: Session = Depends(get_db),
    identity: IdentityLookup = Depends(get_identity_lookup),
    relay: NotificationRelay = Depends(get_notification_relay),
) -> RebuildOrchestrator:
    return RebuildOrchestrator(db, identity, relay)
