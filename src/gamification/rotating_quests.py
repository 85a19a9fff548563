"""
Rotating Quest Selection

One optional bonus quest per player per day, unlocked from day 8 of account
age.

Selection is a pure function of (date, user_id, eligible pool):
- key = "{date}-{user_id}"
- hash = first 4 bytes of SHA-256(key), big endian
- pick = sorted(set(pool))[hash % len(pool)]

Any process computes the same pick for the same inputs; SHA-256 gives the
avalanche needed so neighbouring dates and user IDs land on different
templates. The pool is sorted before indexing so its input order never
matters.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence
import hashlib
import logging
import math

from src.config import ROTATING_QUEST_UNLOCK_DAY, ROTATING_RECENCY_DAYS
from src.models.quest import QuestTemplate, QuestType
from src.utils.datetime_helpers import to_utc

logger = logging.getLogger(__name__)


def selection_hash(date: str, user_id: str) -> int:
    """Stable 32-bit hash of the (date, user) selection key"""
    digest = hashlib.sha256(f"{date}-{user_id}".encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big")


def get_user_day_count(created_at: datetime, now: datetime) -> int:
    """Days the player has been playing (partial days round up)"""
    elapsed = abs((to_utc(now) - to_utc(created_at)).total_seconds())
    return math.ceil(elapsed / 86400)


class RotatingQuestSelector:
    """Deterministic per-(user, date) pick from the rotating template pool"""

    def __init__(
        self,
        unlock_day: int = ROTATING_QUEST_UNLOCK_DAY,
        recency_days: int = ROTATING_RECENCY_DAYS
    ):
        self.unlock_day = unlock_day
        self.recency_days = recency_days

    def is_unlocked(self, account_day: int) -> bool:
        return account_day >= self.unlock_day

    def select(
        self,
        date: str,
        user_id: str,
        eligible_pool: Iterable[str],
        account_day: Optional[int] = None
    ) -> Optional[str]:
        """
        Pick today's rotating template

        Args:
            date: Quest date (YYYY-MM-DD)
            user_id: Player ID
            eligible_pool: Template IDs the player may receive
            account_day: Account age in days; below the unlock day nothing is offered

        Returns:
            Template ID, or None when locked or the pool is empty
        """
        if account_day is not None and not self.is_unlocked(account_day):
            return None

        pool = sorted(set(eligible_pool))
        if not pool:
            return None

        return pool[selection_hash(date, user_id) % len(pool)]

    def eligible_pool(
        self,
        templates: Sequence[QuestTemplate],
        player_level: int,
        recent_template_ids: Iterable[str] = ()
    ) -> List[str]:
        """
        Rotating templates a player may receive today

        Templates assigned in the recency window are skipped unless that
        would leave nothing to pick from.
        """
        eligible = [
            t.id for t in templates
            if t.is_rotating
            and t.is_active
            and t.type == QuestType.DAILY
            and t.min_level <= player_level
        ]

        recent = set(recent_template_ids)
        fresh = [template_id for template_id in eligible if template_id not in recent]
        return fresh or eligible

    def unlock_status(self, account_day: int) -> Dict[str, Any]:
        """
        Rotating slot unlock progress

        Returns:
            {
                'unlocked': bool,
                'current_day': int,
                'unlock_day': int,
                'days_remaining': int
            }
        """
        return {
            "unlocked": self.is_unlocked(account_day),
            "current_day": account_day,
            "unlock_day": self.unlock_day,
            "days_remaining": max(0, self.unlock_day - account_day),
        }
