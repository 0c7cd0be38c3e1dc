"""Exotel webhook handlers"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from callsync.database import get_db
from callsync.errors import PayloadError
from callsync.sync.normalizer import from_webhook
from callsync.sync.service import CallSyncService

router = APIRouter()
logger = structlog.get_logger()


@router.post("/status")
async def handle_status_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Handle call status callbacks from Exotel.

    Delivery is at-least-once, so the same event may arrive repeatedly and in
    any order relative to the polling sweep; the merge makes replays harmless.
    Only a payload without a call id is rejected.
    """
    form = await request.form()
    payload = {key: value for key, value in form.items() if isinstance(value, str)}

    logger.info(
        "Exotel status callback",
        call_sid=payload.get("CallSid"),
        status=payload.get("CallStatus") or payload.get("Status"),
    )

    try:
        update = from_webhook(payload)
    except PayloadError as e:
        logger.warning("Rejected status callback", error=str(e))
        return JSONResponse(status_code=400, content={"status": "error", "error": str(e)})

    service = CallSyncService(db)

    try:
        org_id = None
        if await service.get(update.provider_call_id) is None:
            provider_settings = await service.find_provider_settings(update)
            if provider_settings is None:
                # Configuration errors do not fix themselves; acknowledge so the provider stops retrying
                logger.warning(
                    "No provider configuration for call, discarding",
                    call_sid=update.provider_call_id,
                    account_sid=payload.get("AccountSid"),
                    to_number=payload.get("To"),
                )
                return {"status": "ignored", "call_sid": update.provider_call_id}
            org_id = provider_settings.org_id

        result = await service.apply(update, org_id=org_id)
    except Exception as e:
        logger.exception(
            "Failed to apply status callback",
            call_sid=update.provider_call_id,
            error=str(e),
        )
        return {"status": "deferred", "call_sid": update.provider_call_id}

    return {
        "status": "ok",
        "call_sid": update.provider_call_id,
        "call_status": result.status,
        "activity_created": result.activity_created,
    }
