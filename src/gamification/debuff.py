"""
Debuff Policy

A debuff is a 24-hour XP penalty (-10%) applied after a day with at least
two missed core quests.

Rules:
- Active while now < debuff_active_until
- Applying while already active keeps the original expiry (no extension)
- Modifier lookups self-check expiry; clear_expired_debuffs() only tidies
  stored state
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional
import logging
import math

from src.config import (
    DEBUFF_DURATION_HOURS,
    DEBUFF_PENALTY_PERCENT,
    MIN_MISSED_CORE_QUESTS,
)
from src.db.store import ProgressionStore
from src.exceptions import PlayerNotFoundError
from src.models.player import Player
from src.models.quest import DailyComplianceRecord
from src.models.xp import ModifierType, XPModifier
from src.utils.datetime_helpers import Clock, now_utc, today_for_timezone

logger = logging.getLogger(__name__)


class DebuffPolicy:
    """Decides, applies and reports the missed-quest XP penalty"""

    def __init__(
        self,
        store: ProgressionStore,
        clock: Clock = now_utc,
        penalty_percent: int = DEBUFF_PENALTY_PERCENT,
        duration_hours: int = DEBUFF_DURATION_HOURS,
        min_missed_core_quests: int = MIN_MISSED_CORE_QUESTS
    ):
        self.store = store
        self.clock = clock
        self.penalty_percent = penalty_percent
        self.duration_hours = duration_hours
        self.min_missed_core_quests = min_missed_core_quests

    @property
    def multiplier(self) -> float:
        return 1 - self.penalty_percent / 100

    def is_debuff_active(self, expires_at: Optional[datetime]) -> bool:
        """True while the stored expiry is in the future"""
        if expires_at is None:
            return False
        return self.clock() < expires_at

    def get_debuff_modifier(self, expires_at: Optional[datetime]) -> Dict[str, Any]:
        """
        Debuff modifier for XP calculations

        Returns:
            {
                'has_debuff': bool,
                'multiplier': float (0.9 while active, else 1.0),
                'description': str
            }
        """
        if not self.is_debuff_active(expires_at):
            return {"has_debuff": False, "multiplier": 1.0, "description": ""}

        return {
            "has_debuff": True,
            "multiplier": self.multiplier,
            "description": f"Debuff penalty (-{self.penalty_percent}% XP)",
        }

    def xp_modifiers(self, expires_at: Optional[datetime]) -> list:
        """Ledger modifiers to apply to an award (empty when no debuff)"""
        modifier = self.get_debuff_modifier(expires_at)
        if not modifier["has_debuff"]:
            return []
        return [
            XPModifier(
                type=ModifierType.DEBUFF_PENALTY,
                multiplier=modifier["multiplier"],
                description=modifier["description"],
            )
        ]

    async def get_debuff_status(self, user_id: str) -> Dict[str, Any]:
        """
        Debuff status for a player

        Returns:
            {
                'is_active': bool,
                'expires_at': datetime | None,
                'hours_remaining': int | None,
                'penalty_percent': int
            }
        """
        player = await self.store.load_player(user_id)
        now = self.clock()

        if not player or not self.is_debuff_active(player.debuff_active_until):
            return {
                "is_active": False,
                "expires_at": None,
                "hours_remaining": None,
                "penalty_percent": 0,
            }

        remaining = player.debuff_active_until - now
        return {
            "is_active": True,
            "expires_at": player.debuff_active_until,
            "hours_remaining": math.ceil(remaining.total_seconds() / 3600),
            "penalty_percent": self.penalty_percent,
        }

    async def _apply(self, player: Player, now: datetime) -> datetime:
        """Apply within an open transaction; returns the effective expiry"""
        if self.is_debuff_active(player.debuff_active_until):
            logger.info(
                f"Debuff already active for user {player.id} until "
                f"{player.debuff_active_until.isoformat()}, not extending"
            )
            return player.debuff_active_until

        expires_at = now + timedelta(hours=self.duration_hours)
        player.debuff_active_until = expires_at
        await self.store.save_player(player)

        # Mark today's daily log
        today = today_for_timezone(now, player.timezone)
        record = await self.store.load_daily_compliance_record(player.id, today)
        if record is None:
            record = DailyComplianceRecord(user_id=player.id, log_date=today)
        record.had_debuff = True
        await self.store.save_daily_compliance_record(record)

        logger.info(f"Applied debuff to user {player.id} until {expires_at.isoformat()}")
        return expires_at

    async def apply_debuff(self, user_id: str) -> datetime:
        """
        Apply a debuff for DEBUFF_DURATION_HOURS

        Returns:
            Expiry of the active debuff (the existing one when already active)
        """
        async with self.store.transaction(user_id, operation="apply_debuff"):
            player = await self.store.load_player(user_id)
            if not player:
                raise PlayerNotFoundError(user_id, operation="apply_debuff")
            return await self._apply(player, self.clock())

    async def check_and_apply_debuff(self, user_id: str, date: str) -> Dict[str, Any]:
        """
        Apply a debuff if the day's compliance record shows enough missed core quests

        Args:
            user_id: Player ID
            date: Log date (YYYY-MM-DD)

        Returns:
            {
                'debuff_applied': bool,
                'reason': str
            }
        """
        async with self.store.transaction(user_id, operation="check_and_apply_debuff"):
            record = await self.store.load_daily_compliance_record(user_id, date)
            if record is None:
                return {"debuff_applied": False, "reason": "No daily log found"}

            player = await self.store.load_player(user_id)
            if not player:
                raise PlayerNotFoundError(user_id, operation="check_and_apply_debuff")

            return await self.check_record(player, record)

    async def check_record(
        self,
        player: Player,
        record: Optional[DailyComplianceRecord]
    ) -> Dict[str, Any]:
        """
        Decide and apply the debuff for a closed day

        Runs inside the caller's open transaction, so closing a day and its
        debuff decision commit or roll back together.
        """
        if record is None:
            return {"debuff_applied": False, "reason": "No daily log found"}

        missed = record.missed_core_quests
        if missed < self.min_missed_core_quests:
            return {
                "debuff_applied": False,
                "reason": f"Only missed {missed} core quests (min: {self.min_missed_core_quests})",
            }

        if self.is_debuff_active(player.debuff_active_until):
            return {"debuff_applied": False, "reason": "Debuff already active"}

        await self._apply(player, self.clock())
        return {"debuff_applied": True, "reason": f"Missed {missed} core quests"}

    async def clear_expired_debuffs(self) -> int:
        """Clear every stored debuff whose expiry has passed"""
        count = await self.store.clear_debuffs_expired_before(self.clock())
        if count:
            logger.info(f"Cleared {count} expired debuffs")
        return count
