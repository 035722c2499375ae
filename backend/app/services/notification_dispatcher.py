"""
Freight notification dispatcher.

Publishes typed freight events for the delivery layer (push, in-app,
payments triggers). Dispatch is fire-and-forget: callers never await
delivery before committing their own state change.
"""

import asyncio
import enum
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from backend.app.core.config import settings
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.services.alerts import AlertSink, LoggingAlertSink


logger = logging.getLogger(__name__)


class FreightEventType(str, enum.Enum):
    FREIGHT_ACCEPTED = "FREIGHT_ACCEPTED"
    STATUS_CHANGED = "STATUS_CHANGED"
    PROPOSAL_SUBMITTED = "PROPOSAL_SUBMITTED"
    PROPOSAL_REJECTED = "PROPOSAL_REJECTED"
    CANCELLATION_REQUESTED = "CANCELLATION_REQUESTED"
    CANCELLATION_DENIED = "CANCELLATION_DENIED"
    FREIGHT_CANCELLED = "FREIGHT_CANCELLED"
    FREIGHT_EXPIRED = "FREIGHT_EXPIRED"
    FREIGHT_REOPENED = "FREIGHT_REOPENED"
    DRIVER_RELEASED = "DRIVER_RELEASED"
    DRIVER_WITHDREW = "DRIVER_WITHDREW"
    DELIVERY_REPORTED = "DELIVERY_REPORTED"
    FREIGHT_DELIVERED = "FREIGHT_DELIVERED"  # Payments/fiscal integration trigger
    FREIGHT_COMPLETED = "FREIGHT_COMPLETED"


class FreightEvent(BaseModel):
    """Event envelope published to the delivery layer."""
    type: FreightEventType
    freight_id: int
    recipient_ids: List[int] = []
    actor_id: Optional[int] = None
    status: Optional[str] = None
    payload: Dict[str, Any] = {}
    occurred_at: datetime = Field(default_factory=datetime.utcnow)


class NotificationDispatcher:
    """Interface: accept an event and return immediately."""

    def dispatch(self, event: FreightEvent) -> None:
        raise NotImplementedError

    async def drain(self) -> None:
        """Wait for in-flight deliveries, if the implementation has any."""


class NullNotificationDispatcher(NotificationDispatcher):
    """Used when notifications are disabled."""

    def dispatch(self, event: FreightEvent) -> None:
        logger.debug("Notification dropped", extra={"event_type": event.type.value, "freight_id": event.freight_id})


class RedisNotificationDispatcher(NotificationDispatcher):
    """
    Publishes events on a Redis channel.

    Each dispatch schedules a background publish guarded by a circuit
    breaker, so a Redis outage degrades to dropped notifications instead of
    slow freight operations.
    """

    def __init__(
        self,
        redis,
        channel: str,
        breaker: Optional[CircuitBreaker] = None,
        alerts: Optional[AlertSink] = None,
    ):
        self.redis = redis
        self.channel = channel
        self.breaker = breaker or CircuitBreaker()
        self.alerts = alerts or LoggingAlertSink()
        self._pending: Set[asyncio.Task] = set()

    def dispatch(self, event: FreightEvent) -> None:
        task = asyncio.get_running_loop().create_task(self._publish(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, event: FreightEvent) -> None:
        try:
            await self.breaker.call(self.redis.publish, self.channel, event.model_dump_json())
        except CircuitOpenError:
            logger.warning(
                "Notification circuit open, event dropped",
                extra={"event_type": event.type.value, "freight_id": event.freight_id},
            )
        except Exception as exc:
            self.alerts.record_failure(
                "notification.publish",
                exc,
                {"event_type": event.type.value, "freight_id": event.freight_id},
            )

    async def drain(self) -> None:
        """Wait for in-flight publishes (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_notification_dispatcher(redis, alerts: Optional[AlertSink] = None) -> NotificationDispatcher:
    """Dispatcher configured from settings."""
    if not settings.notifications_enabled:
        return NullNotificationDispatcher()
    breaker = CircuitBreaker(
        failure_threshold=settings.notification_breaker_threshold,
        reset_timeout=settings.notification_breaker_reset_seconds,
    )
    return RedisNotificationDispatcher(redis, settings.notification_channel, breaker=breaker, alerts=alerts)
