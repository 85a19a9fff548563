"""
Progression engine

This module implements the quest-driven progression loop:
- Level curve (XP -> level and progress)
- XP ledger with hash-chained events
- Debuff policy for missed core quests
- Quest lifecycle (assign, progress, complete, reset, remove, expire)
- Deterministic rotating bonus quest selection
"""

from src.gamification.level_curve import (
    LevelCurve,
    compute_level,
    compute_level_threshold,
    get_level_thresholds,
    xp_to_next_level,
)
from src.gamification.xp_system import award_xp, remove_xp, round_half_up, verify_xp_chain
from src.gamification.debuff import DebuffPolicy
from src.gamification.quest_lifecycle import QuestLifecycle
from src.gamification.rotating_quests import RotatingQuestSelector, get_user_day_count, selection_hash
from src.gamification.requirements import evaluate_requirement

__all__ = [
    "LevelCurve",
    "compute_level",
    "compute_level_threshold",
    "get_level_thresholds",
    "xp_to_next_level",
    "award_xp",
    "remove_xp",
    "round_half_up",
    "verify_xp_chain",
    "DebuffPolicy",
    "QuestLifecycle",
    "RotatingQuestSelector",
    "get_user_day_count",
    "selection_hash",
    "evaluate_requirement",
]
