"""XP ledger and level progress models"""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4
from pydantic import BaseModel, Field


class XPSource(str, Enum):
    """What produced an XP change"""
    QUEST_COMPLETION = "QUEST_COMPLETION"
    QUEST_RESET = "QUEST_RESET"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"


class ModifierType(str, Enum):
    """Multipliers applied to a base XP amount"""
    DEBUFF_PENALTY = "DEBUFF_PENALTY"


class XPModifier(BaseModel):
    """One multiplier applied to an award"""
    type: ModifierType
    multiplier: float
    description: str
    order: int = 0


class XPEvent(BaseModel):
    """Append-only, hash-chained record of one XP change"""
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    source: XPSource
    source_id: Optional[str] = None
    base_amount: int
    final_amount: int
    modifiers: List[XPModifier] = Field(default_factory=list)
    level_before: int
    level_after: int
    total_xp_before: int
    total_xp_after: int
    description: str
    created_at: datetime
    hash: str
    previous_hash: Optional[str] = None


class LevelProgress(BaseModel):
    """Where a total XP sits on the level curve"""
    current_level: int
    xp_for_current_level: int
    xp_for_next_level: int
    xp_progress: int
    xp_needed: int
    progress_percent: int = Field(..., ge=0, le=100)


class LevelThresholdEntry(BaseModel):
    """One row of the level table"""
    level: int
    total_xp: int
    xp_to_next: int
