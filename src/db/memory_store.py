"""
In-memory progression store

Backs tests, local development and single-process deployments. Records are
copied on the way in and out, so callers only change stored state through
the save methods, and a rolled-back transaction restores the player's
snapshot.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from src.db.store import ProgressionStore
from src.models.player import Player
from src.models.quest import DailyComplianceRecord, QuestInstance, QuestTemplate
from src.models.xp import XPEvent

logger = logging.getLogger(__name__)


class InMemoryStore(ProgressionStore):
    """Dict-backed store with one asyncio.Lock per player"""

    def __init__(self):
        self._players: Dict[str, Player] = {}
        self._quests: Dict[str, QuestInstance] = {}
        self._records: Dict[Tuple[str, str], DailyComplianceRecord] = {}
        self._templates: Dict[str, QuestTemplate] = {}
        self._xp_events: Dict[str, List[XPEvent]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._snapshots: Dict[str, dict] = {}

    # ==========================================
    # Seeding (synchronous, for fixtures and bootstrapping)
    # ==========================================

    def add_player(self, player: Player) -> None:
        self._players[player.id] = player.model_copy(deep=True)

    def add_template(self, template: QuestTemplate) -> None:
        self._templates[template.id] = template

    # ==========================================
    # Transaction hooks
    # ==========================================

    def _player_lock(self, user_id: str) -> asyncio.Lock:
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        return self._locks[user_id]

    async def _begin(self, user_id: str) -> None:
        self._snapshots[user_id] = {
            "player": self._players.get(user_id),
            "quests": {qid: q for qid, q in self._quests.items() if q.user_id == user_id},
            "records": {key: r for key, r in self._records.items() if key[0] == user_id},
            "xp_events": list(self._xp_events.get(user_id, [])),
        }

    async def _commit(self, user_id: str) -> None:
        self._snapshots.pop(user_id, None)

    async def _rollback(self, user_id: str) -> None:
        snapshot = self._snapshots.pop(user_id, None)
        if snapshot is None:
            return

        # Stored objects are never mutated in place, so references are enough
        if snapshot["player"] is None:
            self._players.pop(user_id, None)
        else:
            self._players[user_id] = snapshot["player"]

        for qid in [qid for qid, q in self._quests.items() if q.user_id == user_id]:
            del self._quests[qid]
        self._quests.update(snapshot["quests"])

        for key in [key for key in self._records if key[0] == user_id]:
            del self._records[key]
        self._records.update(snapshot["records"])

        self._xp_events[user_id] = snapshot["xp_events"]
        logger.info(f"Restored state for user {user_id} after rollback")

    # ==========================================
    # Players
    # ==========================================

    async def load_player(self, user_id: str) -> Optional[Player]:
        player = self._players.get(user_id)
        return player.model_copy(deep=True) if player else None

    async def save_player(self, player: Player) -> None:
        self._players[player.id] = player.model_copy(deep=True)

    async def list_player_ids(self) -> List[str]:
        return sorted(self._players)

    async def clear_debuffs_expired_before(self, now: datetime) -> int:
        cleared = 0
        for user_id in list(self._players):
            async with self._player_lock(user_id):
                player = self._players[user_id]
                if player.debuff_active_until is not None and player.debuff_active_until < now:
                    self._players[user_id] = player.model_copy(update={"debuff_active_until": None})
                    cleared += 1
        return cleared

    # ==========================================
    # Quests
    # ==========================================

    async def load_quest_instance(self, quest_id: str) -> Optional[QuestInstance]:
        quest = self._quests.get(quest_id)
        return quest.model_copy(deep=True) if quest else None

    async def save_quest_instance(self, quest: QuestInstance) -> None:
        self._quests[quest.id] = quest.model_copy(deep=True)

    async def delete_quest_instance(self, quest_id: str) -> None:
        self._quests.pop(quest_id, None)

    async def list_quest_instances(
        self,
        user_id: str,
        quest_dates: Optional[Sequence[str]] = None
    ) -> List[QuestInstance]:
        return [
            q.model_copy(deep=True)
            for q in self._quests.values()
            if q.user_id == user_id and (quest_dates is None or q.quest_date in quest_dates)
        ]

    async def load_template(self, template_id: str) -> Optional[QuestTemplate]:
        return self._templates.get(template_id)

    async def list_templates(self) -> List[QuestTemplate]:
        return list(self._templates.values())

    # ==========================================
    # Daily compliance
    # ==========================================

    async def load_daily_compliance_record(
        self,
        user_id: str,
        log_date: str
    ) -> Optional[DailyComplianceRecord]:
        record = self._records.get((user_id, log_date))
        return record.model_copy(deep=True) if record else None

    async def save_daily_compliance_record(self, record: DailyComplianceRecord) -> None:
        self._records[(record.user_id, record.log_date)] = record.model_copy(deep=True)

    # ==========================================
    # XP ledger
    # ==========================================

    async def add_xp_event(self, event: XPEvent) -> None:
        self._xp_events.setdefault(event.user_id, []).append(event.model_copy(deep=True))

    async def list_xp_events(self, user_id: str, limit: int = 50, offset: int = 0) -> List[XPEvent]:
        events = self._xp_events.get(user_id, [])
        return [e.model_copy(deep=True) for e in events[offset:offset + limit]]

    async def last_xp_event(self, user_id: str) -> Optional[XPEvent]:
        events = self._xp_events.get(user_id)
        return events[-1].model_copy(deep=True) if events else None
