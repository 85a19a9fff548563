"""
ProgressionService - Progression Business Logic

Facade over the level curve, debuff policy, quest lifecycle and rotating
quest selection. Returns the API response models from src/api/models.py.

Domain errors (ProgressionError subclasses) propagate to the caller; store
failures on read paths are wrapped into DatabaseUnavailableError.
"""

import logging
from typing import List, Optional, Union

from src.api.models import (
    DebuffStatusResponse,
    LevelProgressResponse,
    LevelThresholdsResponse,
    QuestMutationResponse,
    RotatingUnlockStatusResponse,
    TodayQuestsResponse,
    XPTimelineResponse,
)
from src.db.store import ProgressionStore
from src.exceptions import PlayerNotFoundError, wrap_external_exception
from src.gamification.debuff import DebuffPolicy
from src.gamification.level_curve import LevelCurve
from src.gamification.quest_lifecycle import QuestLifecycle
from src.gamification.rotating_quests import RotatingQuestSelector, get_user_day_count
from src.gamification.xp_system import verify_xp_chain
from src.models.player import Player
from src.models.quest import QuestInstance
from src.utils.datetime_helpers import Clock, now_utc, previous_dates

logger = logging.getLogger(__name__)


class ProgressionService:
    """
    Service for progression features.

    Responsibilities:
    - Level and XP progress lookups
    - Debuff status
    - Daily quest assignment (core + rotating)
    - Quest progress, completion, reset and removal
    - XP timeline
    """

    def __init__(
        self,
        store: ProgressionStore,
        curve: LevelCurve,
        debuff: DebuffPolicy,
        selector: RotatingQuestSelector,
        lifecycle: QuestLifecycle,
        clock: Clock = now_utc
    ):
        """
        Initialize ProgressionService.

        Args:
            store: Progression store
            curve: Shared level curve
            debuff: Debuff policy
            selector: Rotating quest selector
            lifecycle: Quest lifecycle
            clock: Current time source
        """
        self.store = store
        self.curve = curve
        self.debuff = debuff
        self.selector = selector
        self.lifecycle = lifecycle
        self.clock = clock
        logger.debug("ProgressionService initialized")

    async def _load_player(self, user_id: str, operation: str) -> Player:
        try:
            player = await self.store.load_player(user_id)
        except OSError as e:
            raise wrap_external_exception(e, operation=operation, user_id=user_id) from e

        if not player:
            raise PlayerNotFoundError(user_id, operation=operation)
        return player

    # ==========================================
    # Level & debuff
    # ==========================================

    async def get_level_progress(self, user_id: str) -> LevelProgressResponse:
        """XP total and progress towards the next level"""
        player = await self._load_player(user_id, "get_level_progress")
        progress = self.curve.progress(player.total_xp)

        return LevelProgressResponse(
            user_id=user_id,
            total_xp=player.total_xp,
            **progress.model_dump()
        )

    async def get_debuff_status(self, user_id: str) -> DebuffStatusResponse:
        """Whether the player is currently penalized, and for how long"""
        try:
            status = await self.debuff.get_debuff_status(user_id)
        except OSError as e:
            raise wrap_external_exception(e, operation="get_debuff_status", user_id=user_id) from e

        return DebuffStatusResponse(user_id=user_id, **status)

    def get_level_thresholds(self, max_level: int = 20) -> LevelThresholdsResponse:
        """Level table for levels 1..max_level"""
        return LevelThresholdsResponse(thresholds=self.curve.thresholds(max_level))

    async def get_xp_timeline(self, user_id: str, limit: int = 50, offset: int = 0) -> XPTimelineResponse:
        """
        Page of the player's XP ledger, oldest first

        chain_valid covers the returned page, linked to the event before it.
        """
        try:
            events = await self.store.list_xp_events(user_id, limit=limit, offset=offset)
            previous_hash = None
            if offset > 0:
                before = await self.store.list_xp_events(user_id, limit=1, offset=offset - 1)
                previous_hash = before[0].hash if before else None
        except OSError as e:
            raise wrap_external_exception(e, operation="get_xp_timeline", user_id=user_id) from e

        return XPTimelineResponse(
            user_id=user_id,
            events=events,
            chain_valid=verify_xp_chain(events, previous_hash),
            limit=limit,
            offset=offset,
        )

    # ==========================================
    # Daily quests
    # ==========================================

    async def get_rotating_unlock_status(self, user_id: str) -> RotatingUnlockStatusResponse:
        """Days until the rotating bonus quest unlocks"""
        player = await self._load_player(user_id, "get_rotating_unlock_status")
        account_day = get_user_day_count(player.created_at, self.clock())
        return RotatingUnlockStatusResponse(user_id=user_id, **self.selector.unlock_status(account_day))

    async def get_today_rotating_quest(self, user_id: str, quest_date: Optional[str] = None) -> Optional[QuestInstance]:
        """
        The day's rotating quest, assigning the selected template if needed

        Returns:
            QuestInstance, or None while locked or when no template is eligible
        """
        player = await self._load_player(user_id, "get_today_rotating_quest")
        quest_date = quest_date or self.lifecycle.today(player)

        try:
            quests = await self.store.list_quest_instances(user_id, [quest_date])
            existing = [q for q in quests if q.is_rotating]
            if existing:
                return existing[0]

            account_day = get_user_day_count(player.created_at, self.clock())
            if not self.selector.is_unlocked(account_day):
                logger.debug(f"Rotating quest locked for user {user_id} (day {account_day})")
                return None

            recent_quests = await self.store.list_quest_instances(
                user_id, previous_dates(quest_date, self.selector.recency_days)
            )
            templates = await self.store.list_templates()
        except OSError as e:
            raise wrap_external_exception(e, operation="get_today_rotating_quest", user_id=user_id) from e

        recent_ids = {q.template_id for q in recent_quests if q.is_rotating}
        pool = self.selector.eligible_pool(templates, player.level, recent_ids)
        template_id = self.selector.select(quest_date, user_id, pool, account_day)
        if template_id is None:
            return None

        logger.info(f"Selected rotating quest {template_id} for user {user_id} on {quest_date}")
        return await self.lifecycle.assign(user_id, template_id, quest_date)

    async def get_today_quests(self, user_id: str) -> TodayQuestsResponse:
        """
        The player's quests for today

        Assigns missing core quests and the rotating quest on first call of the
        day.
        """
        player = await self._load_player(user_id, "get_today_quests")
        today = self.lifecycle.today(player)

        quests = await self.lifecycle.assign_daily_quests(user_id, today)
        rotating = await self.get_today_rotating_quest(user_id, today)

        return TodayQuestsResponse(
            user_id=user_id,
            date=today,
            core_quests=[q for q in quests if q.is_core],
            rotating_quest=rotating,
            bonus_quests=[q for q in quests if not q.is_core and not q.is_rotating],
        )

    async def activate_quest(self, user_id: str, template_id: str) -> QuestInstance:
        """Add a catalog quest to today's list"""
        return await self.lifecycle.assign(user_id, template_id)

    # ==========================================
    # Quest mutations
    # ==========================================

    async def update_quest_progress(
        self,
        user_id: str,
        quest_id: str,
        value: Union[int, float, bool],
        increment: bool = False
    ) -> QuestMutationResponse:
        """
        Record progress; a quest that reaches 100% is completed automatically
        """
        quest = await self.lifecycle.report_progress(user_id, quest_id, value, increment=increment)

        if self.lifecycle.target_met(quest):
            logger.info(f"Quest {quest_id} reached its target, completing")
            return await self.complete_quest(user_id, quest_id)

        player = await self._load_player(user_id, "update_quest_progress")
        return QuestMutationResponse(quest=quest, new_level=player.level)

    async def complete_quest(
        self,
        user_id: str,
        quest_id: str,
        reported_value: Optional[float] = None
    ) -> QuestMutationResponse:
        """Complete a quest and award XP"""
        result = await self.lifecycle.complete(user_id, quest_id, reported_value)

        message = f"Quest complete! +{result['xp_awarded']} XP"
        if result["debuff_applied"]:
            message += f" (debuff -{self.debuff.penalty_percent}%)"
        if result["leveled_up"]:
            message += f". Level up! You reached level {result['new_level']}"

        return QuestMutationResponse(
            quest=result["quest"],
            xp_awarded=result["xp_awarded"],
            leveled_up=result["leveled_up"],
            new_level=result["new_level"],
            message=message,
        )

    async def reset_quest(self, user_id: str, quest_id: str) -> QuestMutationResponse:
        """Undo today's completion of a quest"""
        result = await self.lifecycle.reset(user_id, quest_id)

        return QuestMutationResponse(
            quest=result["quest"],
            xp_awarded=-result["xp_removed"],
            leveled_up=False,
            new_level=result["new_level"],
            message=f"Quest reset: -{result['xp_removed']} XP",
        )

    async def remove_quest(self, user_id: str, quest_id: str) -> QuestMutationResponse:
        """Remove a non-core quest from today's list"""
        result = await self.lifecycle.remove(user_id, quest_id)
        player = await self._load_player(user_id, "remove_quest")

        return QuestMutationResponse(
            quest=result["quest"],
            new_level=player.level,
            message=result["message"],
        )

    async def list_quests(self, user_id: str, quest_dates: Optional[List[str]] = None) -> List[QuestInstance]:
        """Quest instances for the given dates (all dates when omitted)"""
        try:
            return await self.store.list_quest_instances(user_id, quest_dates)
        except OSError as e:
            raise wrap_external_exception(e, operation="list_quests", user_id=user_id) from e
