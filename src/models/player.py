"""Player aggregate"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class Player(BaseModel):
    """Player progression state"""
    id: str
    total_xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    debuff_active_until: Optional[datetime] = None
    timezone: str = "UTC"  # IANA timezone (e.g., "America/New_York")
    created_at: datetime
