"""Global test fixtures and utilities for progression engine tests"""
import pytest
from datetime import datetime, timedelta, timezone

from src.db.memory_store import InMemoryStore
from src.gamification.debuff import DebuffPolicy
from src.gamification.level_curve import LevelCurve
from src.gamification.quest_lifecycle import QuestLifecycle
from src.gamification.rotating_quests import RotatingQuestSelector
from src.models.player import Player
from src.models.quest import (
    BooleanFlag,
    CompoundRequirement,
    NumericThreshold,
    QuestCategory,
    QuestTemplate,
    QuestType,
    StatType,
)
from src.services.progression_service import ProgressionService


# ============================================================================
# Clock
# ============================================================================

class FixedClock:
    """Deterministic clock; call it like now_utc()"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """Clock fixed at 2025-01-15 12:00 UTC"""
    return FixedClock(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


# ============================================================================
# Catalog Fixtures
# ============================================================================

@pytest.fixture
def core_templates():
    """Three core daily quests"""
    return [
        QuestTemplate(
            id="core_steps",
            name="Walk 10,000 steps",
            category=QuestCategory.MOVEMENT,
            requirement=NumericThreshold(metric="steps", value=10000),
            base_xp=50,
            stat_type=StatType.AGI,
            stat_bonus=1,
            allow_partial=True,
            min_partial_percent=80,
            is_core=True,
        ),
        QuestTemplate(
            id="core_water",
            name="Drink 2L of water",
            category=QuestCategory.NUTRITION,
            requirement=NumericThreshold(metric="water_ml", value=2000),
            base_xp=30,
            stat_type=StatType.VIT,
            is_core=True,
        ),
        QuestTemplate(
            id="core_sleep",
            name="Sleep 7 hours",
            category=QuestCategory.RECOVERY,
            requirement=NumericThreshold(metric="sleep_hours", value=7),
            base_xp=40,
            stat_type=StatType.VIT,
            is_core=True,
        ),
    ]


@pytest.fixture
def bonus_templates():
    """Optional (non-core, non-rotating) quests"""
    return [
        QuestTemplate(
            id="bonus_meditation",
            name="Meditate",
            category=QuestCategory.DISCIPLINE,
            requirement=BooleanFlag(metric="meditated"),
            base_xp=20,
            stat_type=StatType.DISC,
        ),
        QuestTemplate(
            id="bonus_mobility",
            name="Mobility routine",
            category=QuestCategory.RECOVERY,
            requirement=CompoundRequirement(
                operator="and",
                requirements=[
                    NumericThreshold(metric="stretch_minutes", value=10),
                    BooleanFlag(metric="foam_rolled"),
                ],
            ),
            base_xp=25,
            stat_type=StatType.AGI,
        ),
        QuestTemplate(
            id="weekly_long_run",
            name="Long run",
            type=QuestType.WEEKLY,
            requirement=NumericThreshold(metric="distance_km", value=15),
            base_xp=200,
            stat_type=StatType.AGI,
        ),
    ]


@pytest.fixture
def rotating_templates():
    """Rotating bonus pool"""
    return [
        QuestTemplate(
            id=f"rot_{name}",
            name=name.replace("_", " ").title(),
            category=QuestCategory.STRENGTH,
            requirement=NumericThreshold(metric=f"{name}_reps", value=reps),
            base_xp=25,
            stat_type=StatType.STR,
            is_rotating=True,
            min_level=min_level,
        )
        for name, reps, min_level in [
            ("pushups", 50, 1),
            ("plank", 3, 1),
            ("squats", 40, 1),
            ("burpees", 30, 5),
        ]
    ]


# ============================================================================
# Player & Store Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test player (account day 15 at the fixed clock)"""
    return "user-123"


@pytest.fixture
def rookie_user_id():
    """Player on account day 2 at the fixed clock"""
    return "rookie-1"


@pytest.fixture
def store(core_templates, bonus_templates, rotating_templates, test_user_id, rookie_user_id):
    """In-memory store seeded with the catalog and two players"""
    store = InMemoryStore()
    for template in core_templates + bonus_templates + rotating_templates:
        store.add_template(template)

    store.add_player(Player(
        id=test_user_id,
        created_at=datetime(2024, 12, 31, 12, 0, 0, tzinfo=timezone.utc),
    ))
    store.add_player(Player(
        id=rookie_user_id,
        created_at=datetime(2025, 1, 14, 9, 0, 0, tzinfo=timezone.utc),
    ))
    return store


# ============================================================================
# Component Fixtures
# ============================================================================

@pytest.fixture
def curve():
    """Shared level curve (small cache so tests also cover the walk-forward path)"""
    return LevelCurve(base_xp=100, max_cached_level=50)


@pytest.fixture
def debuff_policy(store, clock):
    return DebuffPolicy(store, clock=clock)


@pytest.fixture
def selector():
    return RotatingQuestSelector(unlock_day=8, recency_days=3)


@pytest.fixture
def lifecycle(store, curve, debuff_policy, clock):
    return QuestLifecycle(store, curve, debuff_policy, clock=clock)


@pytest.fixture
def service(store, curve, debuff_policy, selector, lifecycle, clock):
    return ProgressionService(store, curve, debuff_policy, selector, lifecycle, clock=clock)
