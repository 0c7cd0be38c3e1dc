"""Call schemas"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field


class AgentCallSessionResponse(BaseModel):
    """Agent session for a call"""
    id: UUID
    agent_id: UUID
    provider_call_id: str
    status: str
    started_at: Optional[datetime]
    ended_at: Optional[datetime]

    class Config:
        from_attributes = True


class CallRecordResponse(BaseModel):
    """Call detail response"""
    id: UUID
    org_id: UUID
    contact_id: Optional[UUID]
    agent_id: Optional[UUID]
    provider_call_id: str
    conversation_id: Optional[str]
    direction: Optional[str]
    from_number: Optional[str]
    to_number: Optional[str]
    status: str
    started_at: Optional[datetime]
    answered_at: Optional[datetime]
    ended_at: Optional[datetime]
    call_duration_sec: Optional[int]
    conversation_duration_sec: Optional[int]
    ring_duration_sec: Optional[int]
    recording_url: Optional[str]
    recording_duration_sec: Optional[int]
    activity_id: Optional[UUID]
    last_source: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CallListResponse(BaseModel):
    """Paginated call list response"""
    items: List[CallRecordResponse]
    total: int
    page: int
    page_size: int
    pages: int


class CallInitiateRequest(BaseModel):
    """Click-to-call request: bridge an agent's phone to a contact"""
    contact_id: UUID
    agent_id: UUID
    agent_phone_number: str = Field(..., min_length=6, max_length=32)


class CallInitiateResponse(BaseModel):
    """Initiated call"""
    call: CallRecordResponse
    session: Optional[AgentCallSessionResponse] = None
