"""
ARQ background task: reconcile workflow intents left pending by a crash or a
failed compensation.

Scheduled every 15 minutes. Run the worker with:

    arq app.tasks.reconcile_intents.WorkerSettings
"""

from __future__ import annotations

from datetime import timedelta

import structlog
from arq import cron
from arq.connections import RedisSettings

from app.core.config import get_settings
from app.core.database import get_session_context
from app.core.storage import get_storage
from app.services.intents import reconcile_intents

log = structlog.get_logger()
settings = get_settings()


async def reconcile_pending_intents(ctx: dict) -> dict[str, int]:
    """Finish or undo stale intents. Returns the sweep's counters."""
    async with get_session_context() as session:
        stats = await reconcile_intents(
            session,
            get_storage(),
            older_than=timedelta(minutes=settings.intent_stale_minutes),
        )

    if stats["examined"]:
        log.info("intent_sweep.finished", **stats)
    return stats


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    functions = [reconcile_pending_intents]
    cron_jobs = [
        cron(reconcile_pending_intents, minute={0, 15, 30, 45}),
    ]
