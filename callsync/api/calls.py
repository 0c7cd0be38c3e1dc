"""Call history, recording and click-to-call API endpoints"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from callsync.config import settings
from callsync.database import get_db
from callsync.errors import ProviderError
from callsync.models.call import CallRecord, AgentCallSession
from callsync.models.organization import Contact
from callsync.models.provider import ProviderSettings
from callsync.providers.exotel import get_exotel_client_factory
from callsync.schemas.call import (
    CallRecordResponse,
    CallListResponse,
    CallInitiateRequest,
    CallInitiateResponse,
)
from callsync.sync.normalizer import (
    CallUpdate,
    SOURCE_API,
    normalize_status,
    parse_timestamp,
    is_observed,
)
from callsync.sync.service import CallSyncService

router = APIRouter()
logger = structlog.get_logger()


async def get_org_provider_settings(db: AsyncSession, org_id: UUID) -> Optional[ProviderSettings]:
    result = await db.execute(
        select(ProviderSettings)
        .where(ProviderSettings.org_id == org_id)
        .order_by(ProviderSettings.is_active.desc(), ProviderSettings.created_at)
        .limit(1)
    )
    return result.scalar_one_or_none()


@router.get("", response_model=CallListResponse)
async def list_calls(
    org_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    direction: Optional[str] = None,
    contact_id: Optional[UUID] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    db: AsyncSession = Depends(get_db),
):
    """List calls for an organization with pagination and filtering"""
    filters = [CallRecord.org_id == org_id]

    if status:
        filters.append(CallRecord.status == status)
    if direction:
        filters.append(CallRecord.direction == direction)
    if contact_id:
        filters.append(CallRecord.contact_id == contact_id)
    if from_date:
        filters.append(CallRecord.started_at >= from_date)
    if to_date:
        filters.append(CallRecord.started_at <= to_date)

    # Get total count
    total_result = await db.execute(select(func.count(CallRecord.id)).where(*filters))
    total = total_result.scalar()

    # Get paginated results
    offset = (page - 1) * page_size
    result = await db.execute(
        select(CallRecord)
        .where(*filters)
        .order_by(CallRecord.created_at.desc())
        .offset(offset)
        .limit(page_size)
    )
    calls = result.scalars().all()

    return CallListResponse(
        items=calls,
        total=total,
        page=page,
        page_size=page_size,
        pages=(total + page_size - 1) // page_size,
    )


@router.get("/{call_id}", response_model=CallRecordResponse)
async def get_call(
    org_id: UUID,
    call_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get call details"""
    result = await db.execute(
        select(CallRecord).where(CallRecord.id == call_id, CallRecord.org_id == org_id)
    )
    call = result.scalar_one_or_none()

    if not call:
        raise HTTPException(status_code=404, detail="Call not found")

    return call


@router.get("/{call_id}/recording")
async def get_call_recording(
    org_id: UUID,
    call_id: UUID,
    db: AsyncSession = Depends(get_db),
    client_factory=Depends(get_exotel_client_factory),
):
    """Proxy the call recording using the organization's provider credentials"""
    result = await db.execute(
        select(CallRecord).where(CallRecord.id == call_id, CallRecord.org_id == org_id)
    )
    call = result.scalar_one_or_none()

    if not call:
        raise HTTPException(status_code=404, detail="Call not found")
    if not call.recording_url:
        raise HTTPException(status_code=404, detail="Recording not available")

    provider_settings = await get_org_provider_settings(db, org_id)
    if not provider_settings:
        raise HTTPException(status_code=404, detail="Provider settings not found")

    try:
        content, content_type = await client_factory(provider_settings).fetch_recording(call.recording_url)
    except ProviderError as e:
        logger.error(
            "Failed to fetch recording",
            call_id=str(call_id),
            provider_call_id=call.provider_call_id,
            error=str(e),
        )
        raise HTTPException(status_code=502, detail="Failed to fetch recording")

    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="call-recording-{call_id}.mp3"'},
    )


@router.post("", response_model=CallInitiateResponse, status_code=201)
async def initiate_call(
    org_id: UUID,
    request: CallInitiateRequest,
    db: AsyncSession = Depends(get_db),
    client_factory=Depends(get_exotel_client_factory),
):
    """Place an outbound call from an agent's phone to a contact"""
    result = await db.execute(
        select(Contact).where(Contact.id == request.contact_id, Contact.org_id == org_id)
    )
    contact = result.scalar_one_or_none()

    if not contact or not contact.phone:
        raise HTTPException(status_code=404, detail="Contact phone number not found")

    result = await db.execute(
        select(ProviderSettings).where(
            ProviderSettings.org_id == org_id,
            ProviderSettings.is_active == True,
        )
    )
    provider_settings = result.scalars().first()

    if not provider_settings:
        raise HTTPException(status_code=400, detail="Calling is not configured for this organization")

    try:
        provider_call = await client_factory(provider_settings).connect_call(
            from_number=request.agent_phone_number,
            to_number=contact.phone,
            status_callback=settings.status_callback_url,
        )
    except ProviderError as e:
        logger.error("Failed to initiate call", org_id=str(org_id), error=str(e))
        raise HTTPException(status_code=502, detail="Failed to initiate call")

    started_at = parse_timestamp(provider_call.get("StartTime"))
    call_status = normalize_status(provider_call.get("Status"))
    update = CallUpdate(
        provider_call_id=str(provider_call["Sid"]),
        source=SOURCE_API,
        raw_payload=provider_call,
        conversation_id=provider_call.get("ConversationUuid") or None,
        direction="outbound",
        from_number=request.agent_phone_number,
        to_number=contact.phone,
        status=call_status if is_observed(call_status) else "queued",
        started_at=started_at if is_observed(started_at) else datetime.utcnow(),
    )

    applied = await CallSyncService(db).apply(
        update,
        org_id=org_id,
        agent_id=request.agent_id,
        contact_id=contact.id,
    )

    session_result = await db.execute(
        select(AgentCallSession).where(AgentCallSession.provider_call_id == update.provider_call_id)
    )

    logger.info(
        "Outbound call initiated",
        org_id=str(org_id),
        provider_call_id=update.provider_call_id,
        agent_id=str(request.agent_id),
    )

    return CallInitiateResponse(
        call=applied.record,
        session=session_result.scalar_one_or_none(),
    )
