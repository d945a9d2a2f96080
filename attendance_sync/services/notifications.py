from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

logger = logging.getLogger("attendance_sync.notifications")

ATTENDANCE_CREATED = "attendance_created"
ATTENDANCE_SYNCED = "attendance_synced"
DAILY_SUMMARY_SYNCED = "daily_summary_synced"
DAILY_SUMMARY_REBUILT = "daily_summary_rebuilt"
DAILY_SUMMARY_DELETED = "daily_summary_deleted"


class NotificationRelay(Protocol):
    def publish(self, topic: str, payload: dict[str, Any]) -> None: ...


class LoggingNotificationRelay:
    """Relay that records every publication in the structured log.

    Observers (dashboards, sockets) live outside this service and tail the
    log stream or replace this relay at the dependency seam.
    """

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        logger.info(
            "notification_published",
            extra={
                "topic": topic,
                "payload": payload,
                "published_at_utc": datetime.now(timezone.utc).isoformat(),
            },
        )


class DisabledNotificationRelay:
    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        return None


def publish_safely(relay: NotificationRelay, topic: str, payload: dict[str, Any]) -> bool:
    try:
        relay.publish(topic, payload)
    except Exception:
        logger.exception(
            "notification_publish_failed",
            extra={"topic": topic},
        )
        return False
    return True
