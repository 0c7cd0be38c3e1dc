"""On-demand reconciliation sweep"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from callsync.database import get_session_factory
from callsync.providers.exotel import get_exotel_client_factory
from callsync.schemas.sync import SweepResponse
from callsync.sync.sweep import run_sweep

router = APIRouter()


@router.post("/calls", response_model=SweepResponse)
async def sync_calls(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    client_factory=Depends(get_exotel_client_factory),
):
    """Sweep every active provider configuration now; one result per configuration"""
    results = await run_sweep(session_factory, client_factory=client_factory)
    return SweepResponse(
        success=True,
        results=[result.as_dict() for result in results],
    )
