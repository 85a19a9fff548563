"""Quest catalog and quest instance models"""
from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


class QuestType(str, Enum):
    """Quest cadence; only DAILY quests take part in the daily lifecycle"""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    DUNGEON = "DUNGEON"
    BOSS = "BOSS"


class QuestCategory(str, Enum):
    """Quest categories"""
    MOVEMENT = "MOVEMENT"
    STRENGTH = "STRENGTH"
    RECOVERY = "RECOVERY"
    NUTRITION = "NUTRITION"
    DISCIPLINE = "DISCIPLINE"


class StatType(str, Enum):
    """Player stats a quest feeds into"""
    STR = "STR"
    AGI = "AGI"
    VIT = "VIT"
    DISC = "DISC"


class QuestStatus(str, Enum):
    """Quest instance status"""
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


# ==========================================
# Requirement variants
# ==========================================

class NumericThreshold(BaseModel):
    """Metric compared against a target (e.g. steps >= 10000)"""
    type: Literal["numeric"] = "numeric"
    metric: str
    operator: Literal["gte", "gt", "eq", "lte", "lt"] = "gte"
    value: float = Field(..., gt=0)


class BooleanFlag(BaseModel):
    """Metric that must match a flag (e.g. no_alcohol is True)"""
    type: Literal["boolean"] = "boolean"
    metric: str
    expected: bool = True


class CompoundRequirement(BaseModel):
    """All (and) or any (or) of the nested requirements"""
    type: Literal["compound"] = "compound"
    operator: Literal["and", "or"] = "and"
    requirements: List["Requirement"] = Field(..., min_length=1)


Requirement = Annotated[
    Union[NumericThreshold, BooleanFlag, CompoundRequirement],
    Field(discriminator="type"),
]

CompoundRequirement.model_rebuild()


def target_value_for(requirement: Requirement) -> float:
    """Target value a quest instance tracks for this requirement"""
    if isinstance(requirement, NumericThreshold):
        return requirement.value
    if isinstance(requirement, CompoundRequirement):
        return 100.0
    return 1.0


# ==========================================
# Catalog and instances
# ==========================================

class QuestTemplate(BaseModel):
    """Immutable quest catalog entry"""
    model_config = {"frozen": True}

    id: str
    name: str
    description: str = ""
    type: QuestType = QuestType.DAILY
    category: QuestCategory = QuestCategory.MOVEMENT
    requirement: Requirement
    base_xp: int = Field(..., ge=0)
    stat_type: StatType = StatType.VIT
    stat_bonus: int = 0
    allow_partial: bool = False
    min_partial_percent: Optional[int] = Field(default=None, ge=0, le=100)
    is_core: bool = False
    is_rotating: bool = False
    is_active: bool = True
    min_level: int = 1  # eligibility: rotating pool only

    @model_validator(mode="after")
    def _partial_needs_threshold(self) -> "QuestTemplate":
        if self.allow_partial and self.min_partial_percent is None:
            raise ValueError("min_partial_percent is required when allow_partial is set")
        return self


class QuestInstance(BaseModel):
    """A template assigned to a player for one quest date"""
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    template_id: str
    name: str
    quest_type: QuestType = QuestType.DAILY
    is_core: bool
    is_rotating: bool = False
    base_xp: int
    requirement: Requirement
    target_value: float
    current_value: float = 0.0
    completion_percent: int = 0
    allow_partial: bool = False
    min_partial_percent: Optional[int] = None
    status: QuestStatus = QuestStatus.ACTIVE
    xp_awarded: Optional[int] = None
    completed_at: Optional[datetime] = None
    quest_date: str  # YYYY-MM-DD in the player's timezone

    @classmethod
    def from_template(cls, template: QuestTemplate, user_id: str, quest_date: str) -> "QuestInstance":
        return cls(
            user_id=user_id,
            template_id=template.id,
            name=template.name,
            quest_type=template.type,
            is_core=template.is_core,
            is_rotating=template.is_rotating,
            base_xp=template.base_xp,
            requirement=template.requirement,
            target_value=target_value_for(template.requirement),
            allow_partial=template.allow_partial,
            min_partial_percent=template.min_partial_percent,
            quest_date=quest_date,
        )


class DailyComplianceRecord(BaseModel):
    """Per-player, per-day quest compliance counters"""
    user_id: str
    log_date: str  # YYYY-MM-DD
    core_quests_total: int = 0
    core_quests_completed: int = 0
    bonus_quests_completed: int = 0
    xp_earned: int = 0
    is_perfect_day: bool = False
    had_debuff: bool = False
    closed_at: Optional[datetime] = None

    @property
    def missed_core_quests(self) -> int:
        return max(0, self.core_quests_total - self.core_quests_completed)
