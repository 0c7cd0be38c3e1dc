"""Background job tasks"""

import asyncio
import structlog

from callsync.jobs.celery_app import celery_app

logger = structlog.get_logger()


def run_async(coro):
    """Helper to run async functions in sync context"""
    return asyncio.run(coro)


@celery_app.task(name="sync_provider_calls")
def sync_provider_calls():
    """Reconcile recent calls for every active provider configuration"""
    logger.info("Starting provider call sweep")

    async def _sweep():
        from callsync.database import SessionLocal, engine
        from callsync.sync.sweep import run_sweep

        try:
            return await run_sweep(SessionLocal)
        finally:
            # Pooled connections are bound to this task's event loop
            await engine.dispose()

    results = run_async(_sweep())
    return [result.as_dict() for result in results]
