"""
Shared plumbing for mutating freight operations.

A mutating operation commits its conditional write first, then runs its
side writes (assignments, proposals, history) in a second transaction.
A failed side write is rolled back and reported; the freight row keeps
the state the conditional write gave it.
"""

import logging
from typing import Awaitable, Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.services.alerts import AlertSink, LoggingAlertSink
from backend.app.services.notification_dispatcher import (
    FreightEvent, FreightEventType, NotificationDispatcher, NullNotificationDispatcher
)


logger = logging.getLogger(__name__)


class FreightOperations:
    """Base for services that mutate freights."""

    def __init__(
        self,
        notifications: Optional[NotificationDispatcher] = None,
        alerts: Optional[AlertSink] = None,
    ):
        self.notifications = notifications or NullNotificationDispatcher()
        self.alerts = alerts or LoggingAlertSink()

    async def _side_writes(
        self,
        db: AsyncSession,
        operation: str,
        freight_id: int,
        writer: Callable[[], Awaitable[None]],
    ) -> Optional[SQLAlchemyError]:
        """
        Run best-effort writes that follow a committed transition.

        Returns:
            None if the writes were committed, otherwise the error they were
            rolled back on
        """
        try:
            await writer()
            await db.commit()
            return None
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error(
                "Side write failed after freight transition",
                extra={"operation": operation, "freight_id": freight_id},
            )
            self.alerts.record_failure(operation, exc, {"freight_id": freight_id})
            return exc

    def _notify(
        self,
        event_type: FreightEventType,
        freight_id: int,
        recipient_ids: Iterable[Optional[int]],
        actor_id: Optional[int] = None,
        status=None,
        **payload,
    ) -> None:
        recipients = sorted({r for r in recipient_ids if r is not None and r != actor_id})
        event = FreightEvent(
            type=event_type,
            freight_id=freight_id,
            recipient_ids=recipients,
            actor_id=actor_id,
            status=status.value if status is not None else None,
            payload={k: v for k, v in payload.items() if v is not None},
        )
        self.notifications.dispatch(event)
