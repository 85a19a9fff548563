"""
Quest Lifecycle

State machine for daily quest instances:
- ACTIVE -> COMPLETED (complete, full or partial)
- ACTIVE -> FAILED (core quest still active when its day is expired)
- ACTIVE -> EXPIRED (non-core quest still active when its day is expired)
- COMPLETED -> ACTIVE (reset, same day only)
- ACTIVE -> deleted (remove, non-core only)

Each operation runs in one store transaction scoped to the player, so
concurrent completions and resets for a player are serialized and a failed
operation leaves nothing behind. The day's DailyComplianceRecord is kept in
step with every completion and reset.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
import logging
import math

from src.db.store import ProgressionStore
from src.exceptions import (
    CannotRemoveCoreQuestError,
    InvalidStateError,
    PlayerNotFoundError,
    QuestNotEligibleError,
    QuestNotFoundError,
    TemplateNotFoundError,
    ValidationError,
)
from src.gamification.debuff import DebuffPolicy
from src.gamification.level_curve import LevelCurve
from src.gamification.requirements import MetricData, evaluate_requirement, is_ceiling
from src.gamification.xp_system import award_xp, remove_xp, round_half_up
from src.models.player import Player
from src.models.quest import (
    DailyComplianceRecord,
    QuestInstance,
    QuestStatus,
    QuestTemplate,
    QuestType,
)
from src.models.xp import XPSource
from src.utils.datetime_helpers import Clock, now_utc, today_for_timezone

logger = logging.getLogger(__name__)


class QuestLifecycle:
    """Assignment, progress, completion, reset, removal and day expiry of quests"""

    def __init__(
        self,
        store: ProgressionStore,
        curve: LevelCurve,
        debuff: DebuffPolicy,
        clock: Clock = now_utc
    ):
        self.store = store
        self.curve = curve
        self.debuff = debuff
        self.clock = clock

    # ==========================================
    # Helpers
    # ==========================================

    async def _load_player(self, user_id: str, operation: str) -> Player:
        player = await self.store.load_player(user_id)
        if not player:
            raise PlayerNotFoundError(user_id, operation=operation)
        return player

    async def _load_quest(self, user_id: str, quest_id: str, operation: str) -> QuestInstance:
        quest = await self.store.load_quest_instance(quest_id)
        if not quest or quest.user_id != user_id:
            raise QuestNotFoundError(quest_id, user_id=user_id, operation=operation)
        return quest

    async def _load_record(self, user_id: str, log_date: str) -> DailyComplianceRecord:
        record = await self.store.load_daily_compliance_record(user_id, log_date)
        return record or DailyComplianceRecord(user_id=user_id, log_date=log_date)

    def today(self, player: Player) -> str:
        """Today's date in the player's timezone"""
        return today_for_timezone(self.clock(), player.timezone)

    @staticmethod
    def _check_value(value, user_id: str) -> None:
        if not isinstance(value, (int, float)):
            raise ValidationError("Progress value must be a number", field="value", value=value, user_id=user_id)
        if not math.isfinite(value):
            raise ValidationError("Progress value must be finite", field="value", value=value, user_id=user_id)

    @staticmethod
    def _set_progress(quest: QuestInstance, value: float) -> None:
        if is_ceiling(quest.requirement):
            # Staying under a ceiling has no partial credit
            quest.current_value = max(float(value), 0.0)
            met = evaluate_requirement(quest.requirement, {quest.requirement.metric: quest.current_value}).met
            quest.completion_percent = 100 if met else 0
            return
        quest.current_value = min(max(float(value), 0.0), quest.target_value)
        quest.completion_percent = round_half_up(100 * quest.current_value / quest.target_value)

    @staticmethod
    def target_met(quest: QuestInstance) -> bool:
        """Whether the reported progress satisfies the quest's requirement"""
        if is_ceiling(quest.requirement):
            return quest.completion_percent >= 100
        return quest.current_value >= quest.target_value

    async def _create_instance(self, template: QuestTemplate, user_id: str, quest_date: str) -> QuestInstance:
        quest = QuestInstance.from_template(template, user_id, quest_date)
        await self.store.save_quest_instance(quest)

        if quest.is_core:
            record = await self._load_record(user_id, quest_date)
            record.core_quests_total += 1
            await self.store.save_daily_compliance_record(record)

        logger.info(f"Assigned quest {template.id} to user {user_id} for {quest_date}")
        return quest

    # ==========================================
    # Assignment
    # ==========================================

    async def assign(self, user_id: str, template_id: str, quest_date: Optional[str] = None) -> QuestInstance:
        """
        Create an ACTIVE quest instance from a template

        Args:
            user_id: Player ID
            template_id: Catalog template to assign
            quest_date: Quest date (defaults to today in the player's timezone)

        Raises:
            TemplateNotFoundError: Unknown template
            InvalidStateError: Not a DAILY template, or already assigned for the date
        """
        async with self.store.transaction(user_id, operation="assign_quest"):
            player = await self._load_player(user_id, "assign_quest")
            quest_date = quest_date or self.today(player)

            template = await self.store.load_template(template_id)
            if not template:
                raise TemplateNotFoundError(template_id, user_id=user_id, operation="assign_quest")

            if template.type != QuestType.DAILY:
                raise InvalidStateError(
                    f"Cannot activate {template.type.value} quest as a daily quest",
                    user_id=user_id,
                    operation="assign_quest",
                )

            existing = await self.store.list_quest_instances(user_id, [quest_date])
            if any(q.template_id == template_id for q in existing):
                raise InvalidStateError(
                    "Quest already active",
                    user_id=user_id,
                    operation="assign_quest",
                )

            return await self._create_instance(template, user_id, quest_date)

    async def assign_daily_quests(self, user_id: str, quest_date: Optional[str] = None) -> List[QuestInstance]:
        """
        Ensure every active core template is assigned for the day

        Safe to call repeatedly; only missing core quests are created.

        Returns:
            The day's DAILY quest instances, core quests first
        """
        async with self.store.transaction(user_id, operation="assign_daily_quests"):
            player = await self._load_player(user_id, "assign_daily_quests")
            quest_date = quest_date or self.today(player)

            templates = await self.store.list_templates()
            core_templates = [
                t for t in templates
                if t.is_core and t.is_active and not t.is_rotating and t.type == QuestType.DAILY
            ]

            existing = await self.store.list_quest_instances(user_id, [quest_date])
            existing_ids = {q.template_id for q in existing}

            for template in sorted(core_templates, key=lambda t: t.id):
                if template.id not in existing_ids:
                    existing.append(await self._create_instance(template, user_id, quest_date))
                    existing_ids.add(template.id)

        # Deduplicate by template (first instance wins)
        seen = set()
        quests = []
        for quest in existing:
            if quest.quest_type != QuestType.DAILY or quest.template_id in seen:
                continue
            seen.add(quest.template_id)
            quests.append(quest)

        quests.sort(key=lambda q: (not q.is_core, q.is_rotating, q.name))
        return quests

    # ==========================================
    # Progress
    # ==========================================

    async def report_progress(
        self,
        user_id: str,
        quest_id: str,
        value: Union[int, float, bool],
        increment: bool = False
    ) -> QuestInstance:
        """
        Record progress on an ACTIVE quest without changing its status

        Args:
            user_id: Player ID
            quest_id: Quest instance ID
            value: Absolute value, or delta when increment=True (booleans count as 0/1)
            increment: Add to the current value instead of replacing it
        """
        self._check_value(value, user_id)

        async with self.store.transaction(user_id, operation="report_progress"):
            quest = await self._load_quest(user_id, quest_id, "report_progress")
            if quest.status != QuestStatus.ACTIVE:
                raise InvalidStateError(
                    "Quest is not active",
                    quest_id=quest_id,
                    status=quest.status.value,
                    user_id=user_id,
                    operation="report_progress",
                )

            new_value = quest.current_value + float(value) if increment else float(value)
            self._set_progress(quest, new_value)
            await self.store.save_quest_instance(quest)

            logger.debug(
                f"Progress for quest {quest_id}: {quest.current_value}/{quest.target_value} "
                f"({quest.completion_percent}%)"
            )
            return quest

    async def report_metrics(self, user_id: str, quest_id: str, data: MetricData) -> QuestInstance:
        """
        Record progress from raw metric data (e.g. a health sync snapshot)

        A requirement only reaches 100% once it is met.
        """
        async with self.store.transaction(user_id, operation="report_metrics"):
            quest = await self._load_quest(user_id, quest_id, "report_metrics")
            if quest.status != QuestStatus.ACTIVE:
                raise InvalidStateError(
                    "Quest is not active",
                    quest_id=quest_id,
                    status=quest.status.value,
                    user_id=user_id,
                    operation="report_metrics",
                )

            if is_ceiling(quest.requirement):
                if quest.requirement.metric in data:
                    self._set_progress(quest, data[quest.requirement.metric])
            else:
                result = evaluate_requirement(quest.requirement, data)
                progress = 100.0 if result.met else min(result.progress, 99.0)
                self._set_progress(quest, quest.target_value * progress / 100)
            await self.store.save_quest_instance(quest)
            return quest

    # ==========================================
    # Completion and undo
    # ==========================================

    async def complete(
        self,
        user_id: str,
        quest_id: str,
        reported_value: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Complete an ACTIVE quest and award XP

        Below target, the quest must allow partial completion and have reached
        min_partial_percent. The award is round(base_xp * debuff multiplier).

        Returns:
            {
                'quest': QuestInstance,
                'xp_awarded': int,
                'leveled_up': bool,
                'old_level': int,
                'new_level': int,
                'new_total_xp': int,
                'debuff_applied': bool
            }

        Raises:
            InvalidStateError: Quest is not ACTIVE
            QuestNotEligibleError: Below target and partial completion not allowed or not reached
        """
        if reported_value is not None:
            self._check_value(reported_value, user_id)

        async with self.store.transaction(user_id, operation="complete_quest"):
            player = await self._load_player(user_id, "complete_quest")
            quest = await self._load_quest(user_id, quest_id, "complete_quest")

            if quest.status != QuestStatus.ACTIVE:
                raise InvalidStateError(
                    f"Quest is not active (status: {quest.status.value})",
                    quest_id=quest_id,
                    status=quest.status.value,
                    user_id=user_id,
                    operation="complete_quest",
                )

            if reported_value is not None:
                self._set_progress(quest, reported_value)

            if not self.target_met(quest):
                required = quest.min_partial_percent
                if is_ceiling(quest.requirement) or not quest.allow_partial or required is None:
                    limit = "at most " if is_ceiling(quest.requirement) else ""
                    raise QuestNotEligibleError(
                        f"Quest requires {limit}{quest.target_value:g}, reported {quest.current_value:g}",
                        quest_id=quest_id,
                        completion_percent=quest.completion_percent,
                        user_id=user_id,
                        operation="complete_quest",
                    )
                if quest.completion_percent < required:
                    raise QuestNotEligibleError(
                        f"Partial completion needs {required}%, reached {quest.completion_percent}%",
                        quest_id=quest_id,
                        completion_percent=quest.completion_percent,
                        required_percent=required,
                        user_id=user_id,
                        operation="complete_quest",
                    )

            now = self.clock()
            modifiers = self.debuff.xp_modifiers(player.debuff_active_until)
            xp_result = await award_xp(
                self.store,
                self.curve,
                player,
                quest.base_xp,
                XPSource.QUEST_COMPLETION,
                now,
                source_id=quest.id,
                description=f"Completed quest: {quest.name}",
                modifiers=modifiers,
            )

            quest.status = QuestStatus.COMPLETED
            quest.xp_awarded = xp_result["xp_awarded"]
            quest.completed_at = now
            await self.store.save_quest_instance(quest)

            record = await self._load_record(user_id, quest.quest_date)
            record.xp_earned += quest.xp_awarded
            if quest.is_core:
                record.core_quests_completed += 1
                if record.core_quests_completed >= record.core_quests_total > 0:
                    record.is_perfect_day = True
            else:
                record.bonus_quests_completed += 1
            await self.store.save_daily_compliance_record(record)

            logger.info(
                f"User {user_id} completed quest {quest.template_id} "
                f"({quest.completion_percent}%) for {quest.xp_awarded} XP"
            )

            return {
                "quest": quest,
                "xp_awarded": quest.xp_awarded,
                "leveled_up": xp_result["leveled_up"],
                "old_level": xp_result["old_level"],
                "new_level": xp_result["new_level"],
                "new_total_xp": xp_result["new_total_xp"],
                "debuff_applied": bool(modifiers),
            }

    async def reset(self, user_id: str, quest_id: str) -> Dict[str, Any]:
        """
        Undo a completion made today

        Removes the awarded XP, clears completion data and progress, and
        reverts the day's counters.

        Returns:
            {
                'quest': QuestInstance,
                'xp_removed': int,
                'new_level': int,
                'level_changed': bool,
                'new_total_xp': int
            }

        Raises:
            InvalidStateError: Quest is not COMPLETED, or its day has passed
        """
        async with self.store.transaction(user_id, operation="reset_quest"):
            player = await self._load_player(user_id, "reset_quest")
            quest = await self._load_quest(user_id, quest_id, "reset_quest")

            if quest.status != QuestStatus.COMPLETED:
                raise InvalidStateError(
                    "Quest is not completed - cannot reset",
                    quest_id=quest_id,
                    status=quest.status.value,
                    user_id=user_id,
                    operation="reset_quest",
                )

            if quest.quest_date != self.today(player):
                raise InvalidStateError(
                    f"Quest from {quest.quest_date} can no longer be reset",
                    quest_id=quest_id,
                    status=quest.status.value,
                    user_id=user_id,
                    operation="reset_quest",
                )

            xp_to_remove = quest.xp_awarded or 0
            old_level = player.level
            xp_removed = 0
            if xp_to_remove > 0:
                removal = await remove_xp(
                    self.store,
                    self.curve,
                    player,
                    xp_to_remove,
                    XPSource.QUEST_RESET,
                    self.clock(),
                    source_id=quest.id,
                    description=f"Quest reset: {quest.name}",
                )
                xp_removed = removal["xp_removed"]

            quest.status = QuestStatus.ACTIVE
            quest.xp_awarded = None
            quest.completed_at = None
            quest.current_value = 0.0
            quest.completion_percent = 0
            await self.store.save_quest_instance(quest)

            record = await self._load_record(user_id, quest.quest_date)
            record.xp_earned = max(0, record.xp_earned - xp_to_remove)
            if quest.is_core:
                record.core_quests_completed = max(0, record.core_quests_completed - 1)
                record.is_perfect_day = False
            else:
                record.bonus_quests_completed = max(0, record.bonus_quests_completed - 1)
            await self.store.save_daily_compliance_record(record)

            logger.info(f"User {user_id} reset quest {quest.template_id}, removed {xp_removed} XP")

            return {
                "quest": quest,
                "xp_removed": xp_removed,
                "new_level": player.level,
                "level_changed": player.level != old_level,
                "new_total_xp": player.total_xp,
            }

    async def remove(self, user_id: str, quest_id: str) -> Dict[str, Any]:
        """
        Permanently delete a non-core ACTIVE quest (no XP side effects)

        Raises:
            CannotRemoveCoreQuestError: Core quest
            InvalidStateError: Quest is not ACTIVE (reset a completion first)
        """
        async with self.store.transaction(user_id, operation="remove_quest"):
            quest = await self._load_quest(user_id, quest_id, "remove_quest")

            if quest.is_core:
                raise CannotRemoveCoreQuestError(quest_id=quest_id, user_id=user_id, operation="remove_quest")

            if quest.status != QuestStatus.ACTIVE:
                raise InvalidStateError(
                    f"Cannot remove a {quest.status.value.lower()} quest",
                    quest_id=quest_id,
                    status=quest.status.value,
                    user_id=user_id,
                    operation="remove_quest",
                )

            await self.store.delete_quest_instance(quest_id)
            logger.info(f"User {user_id} removed quest {quest.template_id}")

            return {"quest": quest, "removed": True, "message": f"Quest removed: {quest.name}"}

    # ==========================================
    # Day rollover
    # ==========================================

    async def expire_day(self, user_id: str, quest_date: str) -> Dict[str, Any]:
        """
        Close a finished day

        Still-ACTIVE core quests become FAILED and other still-ACTIVE quests
        become EXPIRED; the day's record is closed and the debuff policy
        decides whether the misses earn a penalty, all in one transaction.

        Returns:
            {
                'date': str,
                'failed': int,
                'expired': int,
                'debuff_applied': bool,
                'reason': str
            }

        Raises:
            InvalidStateError: The day has not ended in the player's timezone
        """
        async with self.store.transaction(user_id, operation="expire_day"):
            player = await self._load_player(user_id, "expire_day")
            if quest_date >= self.today(player):
                raise InvalidStateError(
                    f"Cannot expire {quest_date}: the day is not over",
                    user_id=user_id,
                    operation="expire_day",
                )

            now: datetime = self.clock()
            failed = expired = 0
            for quest in await self.store.list_quest_instances(user_id, [quest_date]):
                if quest.status != QuestStatus.ACTIVE:
                    continue
                if quest.is_core:
                    quest.status = QuestStatus.FAILED
                    failed += 1
                else:
                    quest.status = QuestStatus.EXPIRED
                    expired += 1
                await self.store.save_quest_instance(quest)

            record = await self.store.load_daily_compliance_record(user_id, quest_date)
            if record and record.closed_at is None:
                record.closed_at = now
                await self.store.save_daily_compliance_record(record)

            debuff_result = await self.debuff.check_record(player, record)

        logger.info(f"Expired {quest_date} for user {user_id}: {failed} failed, {expired} expired")
        return {
            "date": quest_date,
            "failed": failed,
            "expired": expired,
            "debuff_applied": debuff_result["debuff_applied"],
            "reason": debuff_result["reason"],
        }
