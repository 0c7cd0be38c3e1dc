"""Call-related models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Text, Integer
from sqlalchemy.dialects.postgresql import UUID

from callsync.database import Base


class CallRecord(Base):
    """One row per distinct provider call attempt"""
    __tablename__ = "call_records"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True)
    contact_id = Column(UUID(as_uuid=True), ForeignKey("contacts.id"))
    agent_id = Column(UUID(as_uuid=True))

    # Provider identifiers
    provider_call_id = Column(String(64), unique=True, nullable=False)
    conversation_id = Column(String(64))

    # Call details
    direction = Column(String(20), default="outbound")  # inbound/outbound
    from_number = Column(String(32))
    to_number = Column(String(32))
    status = Column(String(20), default="unknown")

    # Timing
    started_at = Column(DateTime, index=True)
    answered_at = Column(DateTime)
    ended_at = Column(DateTime)
    call_duration_sec = Column(Integer)
    conversation_duration_sec = Column(Integer)
    ring_duration_sec = Column(Integer)

    # Recording
    recording_url = Column(String(1000))
    recording_duration_sec = Column(Integer)

    # Last payload seen from either ingress path
    raw_provider_payload = Column(JSON, default=dict)
    last_source = Column(String(20))  # webhook, poll, api

    # Set once, on the first terminal transition
    activity_id = Column(UUID(as_uuid=True))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AgentCallSession(Base):
    """Durable per-call agent session, tracks what an agent is currently on"""
    __tablename__ = "agent_call_sessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False)
    agent_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    contact_id = Column(UUID(as_uuid=True), ForeignKey("contacts.id"))
    provider_call_id = Column(String(64), unique=True, nullable=False)

    status = Column(String(20), default="initiating")  # initiating, ringing, connected, ended
    started_at = Column(DateTime, default=datetime.utcnow)
    ended_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ContactActivity(Base):
    """CRM activity derived from a finished call"""
    __tablename__ = "contact_activities"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False)
    contact_id = Column(UUID(as_uuid=True), ForeignKey("contacts.id"))
    call_record_id = Column(UUID(as_uuid=True), ForeignKey("call_records.id"), unique=True, nullable=False)

    activity_type = Column(String(50), default="call")
    subject = Column(String(255))
    description = Column(Text)
    created_by = Column(UUID(as_uuid=True))
    completed_at = Column(DateTime)
    call_duration_sec = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow)
