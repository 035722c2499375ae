"""
Freight expiration sweep.

Auto-cancels open freights whose category TTL has lapsed. Run periodically
(cron or a scheduler):

    python -m backend.app.jobs.expiration_runner
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.domain.freight.lifecycle import FreightLifecycleService
from backend.app.services import freight_store


logger = logging.getLogger(__name__)


async def run_expiration_sweep(
    db: AsyncSession,
    service: FreightLifecycleService,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> dict:
    """
    Expire every lapsed, uncommitted freight in one pass.

    Args:
        db: Database session
        service: Lifecycle service (carries notifications and alerts)
        now: Reference time, defaults to utcnow
        limit: Maximum candidates to examine

    Returns:
        Counters for the pass
    """
    now = now or datetime.utcnow()
    candidates = await freight_store.find_expiry_candidates(db, now, limit or settings.expiration_sweep_limit)

    # Re-read each row: a failed side write rolls back and expires the batch
    candidate_ids = [freight.id for freight in candidates]

    processed = 0
    expired = 0
    for freight_id in candidate_ids:
        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        if freight is None:
            continue
        processed += 1
        if await service.expire_freight(db, freight, now):
            expired += 1

    summary = {"processed": processed, "expired": expired, "skipped": processed - expired}
    logger.info("Expiration sweep finished", extra=summary)
    return summary


async def main() -> dict:
    from backend.app.core.redis_client import redis_client
    from backend.app.db.session import AsyncSessionLocal
    from backend.app.services.notification_dispatcher import build_notification_dispatcher

    dispatcher = build_notification_dispatcher(redis_client)
    service = FreightLifecycleService(notifications=dispatcher)
    async with AsyncSessionLocal() as db:
        summary = await run_expiration_sweep(db, service)
    await dispatcher.drain()
    return summary


if __name__ == "__main__":
    from backend.app.core.observability import configure_logging

    configure_logging(settings.log_level)
    asyncio.run(main())
