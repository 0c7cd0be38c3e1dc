"""Database models"""

from callsync.models.organization import Organization, Contact
from callsync.models.provider import ProviderSettings
from callsync.models.call import CallRecord, AgentCallSession, ContactActivity

__all__ = [
    "Organization",
    "Contact",
    "ProviderSettings",
    "CallRecord",
    "AgentCallSession",
    "ContactActivity",
]
