"""Pydantic schemas for request/response validation"""

from callsync.schemas.call import (
    AgentCallSessionResponse,
    CallRecordResponse,
    CallListResponse,
    CallInitiateRequest,
    CallInitiateResponse,
)
from callsync.schemas.sync import (
    SweepResultResponse,
    SweepResponse,
)

__all__ = [
    "AgentCallSessionResponse",
    "CallRecordResponse",
    "CallListResponse",
    "CallInitiateRequest",
    "CallInitiateResponse",
    "SweepResultResponse",
    "SweepResponse",
]
