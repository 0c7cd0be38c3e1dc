"""Sweep schemas"""

from typing import Optional, List
from pydantic import BaseModel


class SweepResultResponse(BaseModel):
    """Outcome for one provider configuration"""
    org_id: Optional[str]
    settings_id: str
    status: str
    synced_count: int = 0
    error_count: int = 0
    error: Optional[str] = None


class SweepResponse(BaseModel):
    """Outcome of a sweep across all active configurations"""
    success: bool
    results: List[SweepResultResponse] = []
