"""
Periodic reconciliation sweep over every active provider configuration.

Each configuration is swept in its own session and its outcome is reported in
its own ``SweepResult``; one configuration failing (bad credentials, provider
down) never stops the others. Every listed call goes through the same
``CallSyncService.apply`` path as webhook callbacks.
"""

import asyncio
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from callsync.config import settings
from callsync.errors import ProviderError
from callsync.models.provider import ProviderSettings
from callsync.providers.exotel import ExotelClient
from callsync.sync.normalizer import from_poll
from callsync.sync.service import CallSyncService

logger = structlog.get_logger()

ClientFactory = Callable[[ProviderSettings], ExotelClient]


@dataclass
class SweepResult:
    """Outcome of sweeping one provider configuration"""
    org_id: Optional[str]
    settings_id: str
    status: str  # success, error
    synced_count: int = 0
    error_count: int = 0
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return asdict(self)


async def sweep_configuration(
    db: AsyncSession,
    provider_settings: ProviderSettings,
    now: Optional[datetime] = None,
    client_factory: ClientFactory = ExotelClient,
) -> SweepResult:
    """Pull the trailing window of calls for one configuration and reconcile each"""
    now = now or datetime.utcnow()
    since = now - timedelta(hours=settings.sync_window_hours)

    # Rollbacks below expire ORM state; keep plain copies
    org_id = provider_settings.org_id
    settings_id = provider_settings.id

    client = client_factory(provider_settings)
    service = CallSyncService(db)
    synced_count = 0
    error_count = 0
    first_error = None

    logger.info(
        "Sweeping provider configuration",
        org_id=str(org_id),
        settings_id=str(settings_id),
        since=since.isoformat(),
    )

    try:
        async for call in client.list_calls(since, now):
            try:
                update = from_poll(call)
                await service.apply(update, org_id=org_id)
                synced_count += 1
            except Exception as e:
                error_count += 1
                first_error = first_error or f"{call.get('Sid')}: {type(e).__name__}: {e}"
                logger.exception(
                    "Failed to sync call",
                    org_id=str(org_id),
                    call_sid=call.get("Sid"),
                    error=str(e),
                )
    except ProviderError as e:
        logger.error(
            "Provider configuration sweep failed",
            org_id=str(org_id),
            settings_id=str(settings_id),
            error=str(e),
            synced_count=synced_count,
        )
        await _record_outcome(db, settings_id, now, last_error=str(e), advance=False)
        return SweepResult(
            org_id=str(org_id),
            settings_id=str(settings_id),
            status="error",
            synced_count=synced_count,
            error_count=error_count,
            error=str(e),
        )

    last_error = None
    if error_count:
        last_error = f"Sync completed with {error_count} error(s). Example: {first_error}"
    await _record_outcome(db, settings_id, now, last_error=last_error, advance=True)

    logger.info(
        "Provider configuration swept",
        org_id=str(org_id),
        settings_id=str(settings_id),
        synced_count=synced_count,
        error_count=error_count,
    )
    return SweepResult(
        org_id=str(org_id),
        settings_id=str(settings_id),
        status="success",
        synced_count=synced_count,
        error_count=error_count,
    )


async def _record_outcome(
    db: AsyncSession,
    settings_id: UUID,
    now: datetime,
    last_error: Optional[str],
    advance: bool,
) -> None:
    provider_settings = await db.get(ProviderSettings, settings_id, populate_existing=True)
    if provider_settings is None:
        return
    if advance:
        provider_settings.last_sync_at = now
    provider_settings.last_error = last_error
    await db.commit()


async def run_sweep(
    session_factory: async_sessionmaker,
    now: Optional[datetime] = None,
    client_factory: ClientFactory = ExotelClient,
    concurrency: Optional[int] = None,
) -> List[SweepResult]:
    """Sweep every active configuration; returns one result per configuration"""
    async with session_factory() as db:
        result = await db.execute(
            select(ProviderSettings.id).where(ProviderSettings.is_active == True)
        )
        settings_ids = list(result.scalars().all())

    if not settings_ids:
        logger.info("No active provider configurations")
        return []

    semaphore = asyncio.Semaphore(concurrency or settings.sync_concurrency)

    async def _sweep_one(settings_id: UUID) -> SweepResult:
        async with semaphore:
            async with session_factory() as db:
                org_id = None
                try:
                    provider_settings = await db.get(ProviderSettings, settings_id)
                    if provider_settings is None:
                        # Deleted after the sweep listed it
                        logger.warning("Provider configuration disappeared", settings_id=str(settings_id))
                        return SweepResult(
                            org_id=None,
                            settings_id=str(settings_id),
                            status="error",
                            error="Provider configuration not found",
                        )
                    org_id = provider_settings.org_id
                    return await sweep_configuration(db, provider_settings, now, client_factory)
                except Exception as e:
                    logger.exception(
                        "Unexpected sweep failure",
                        settings_id=str(settings_id),
                        error=str(e),
                    )
                    return SweepResult(
                        org_id=str(org_id) if org_id else None,
                        settings_id=str(settings_id),
                        status="error",
                        error=str(e),
                    )

    results = await asyncio.gather(*(_sweep_one(settings_id) for settings_id in settings_ids))

    logger.info(
        "Sweep complete",
        configurations=len(results),
        failed=sum(1 for r in results if r.status == "error"),
        synced=sum(r.synced_count for r in results),
    )
    return list(results)
