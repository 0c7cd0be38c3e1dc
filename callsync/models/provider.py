"""Voice provider configuration model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from callsync.database import Base


class ProviderSettings(Base):
    """Per-organization Exotel credentials"""
    __tablename__ = "provider_settings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True)

    # Credentials
    api_key = Column(String(255), nullable=False)
    api_token = Column(String(255), nullable=False)
    subdomain = Column(String(255), default="api.exotel.com")
    account_sid = Column(String(255), nullable=False, index=True)

    # Calling
    caller_id = Column(String(32))  # ExoPhone used as caller id
    call_recording_enabled = Column(Boolean, default=True)

    # Polling participation
    is_active = Column(Boolean, default=True)
    last_sync_at = Column(DateTime)
    last_error = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    organization = relationship("Organization", back_populates="provider_settings")
