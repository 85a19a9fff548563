"""Pydantic models for progression API responses"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime

from src.models.quest import QuestInstance
from src.models.xp import LevelThresholdEntry, XPEvent


class LevelProgressResponse(BaseModel):
    """Response with XP total and level progress"""
    user_id: str
    total_xp: int
    current_level: int
    xp_for_current_level: int
    xp_for_next_level: int
    xp_progress: int
    xp_needed: int
    progress_percent: int = Field(..., ge=0, le=100)


class DebuffStatusResponse(BaseModel):
    """Response with debuff status"""
    user_id: str
    is_active: bool
    expires_at: Optional[datetime] = None
    hours_remaining: Optional[int] = None
    penalty_percent: int = 0


class QuestMutationResponse(BaseModel):
    """Result of completing, resetting or removing a quest"""
    quest: QuestInstance
    xp_awarded: int = Field(0, description="XP awarded (negative when a reset removed XP)")
    leveled_up: bool = False
    new_level: int
    message: Optional[str] = None


class TodayQuestsResponse(BaseModel):
    """Response with the day's quests"""
    user_id: str
    date: str
    core_quests: List[QuestInstance]
    rotating_quest: Optional[QuestInstance] = None
    bonus_quests: List[QuestInstance] = Field(default_factory=list)


class RotatingUnlockStatusResponse(BaseModel):
    """Response with rotating quest unlock progress"""
    user_id: str
    unlocked: bool
    current_day: int
    unlock_day: int
    days_remaining: int


class LevelThresholdsResponse(BaseModel):
    """Response with the level curve"""
    thresholds: List[LevelThresholdEntry]


class XPTimelineResponse(BaseModel):
    """Response with a page of XP ledger events"""
    user_id: str
    events: List[XPEvent]
    chain_valid: bool
    limit: int
    offset: int


class ErrorResponse(BaseModel):
    """Error response model (ProgressionError.to_dict())"""
    error: str = Field(..., description="Error class name")
    code: str = Field(..., description="Stable error code")
    message: str = Field(..., description="Error message")
    user_message: Optional[str] = Field(None, description="User-facing message")
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)
    context: Dict[str, Any] = Field(default_factory=dict)
