"""
Persistence interface for the progression engine

Storage itself lives outside the engine; implementations provide the
record operations plus a per-player transaction boundary.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, List, Optional, Sequence

from src.exceptions import wrap_external_exception
from src.models.player import Player
from src.models.quest import DailyComplianceRecord, QuestInstance, QuestTemplate
from src.models.xp import XPEvent

logger = logging.getLogger(__name__)


class ProgressionStore(ABC):
    """
    Record store used by the engine

    Every mutating engine operation runs inside `transaction(user_id)`:
    writes for one player are serialized and either all commit or all roll
    back. Collaborator I/O failures surface as DatabaseUnavailableError.
    """

    # ==========================================
    # Transaction boundary
    # ==========================================

    @asynccontextmanager
    async def transaction(
        self,
        user_id: str,
        operation: str = "transaction"
    ) -> AsyncGenerator["ProgressionStore", None]:
        """Serialize and atomically apply one player's state transition"""
        async with self._player_lock(user_id):
            try:
                await self._begin(user_id)
                yield self
                await self._commit(user_id)
            except Exception as e:
                await self._rollback(user_id)
                logger.debug(f"Rolled back {operation} for user {user_id}: {e}")
                if isinstance(e, OSError):
                    raise wrap_external_exception(e, operation=operation, user_id=user_id) from e
                raise

    @abstractmethod
    def _player_lock(self, user_id: str):
        """Async context manager giving mutual exclusion for one player"""

    @abstractmethod
    async def _begin(self, user_id: str) -> None:
        ...

    @abstractmethod
    async def _commit(self, user_id: str) -> None:
        ...

    @abstractmethod
    async def _rollback(self, user_id: str) -> None:
        ...

    # ==========================================
    # Players
    # ==========================================

    @abstractmethod
    async def load_player(self, user_id: str) -> Optional[Player]:
        ...

    @abstractmethod
    async def save_player(self, player: Player) -> None:
        ...

    @abstractmethod
    async def list_player_ids(self) -> List[str]:
        ...

    @abstractmethod
    async def clear_debuffs_expired_before(self, now: datetime) -> int:
        """Null out every debuff_active_until < now; returns rows changed"""

    # ==========================================
    # Quests
    # ==========================================

    @abstractmethod
    async def load_quest_instance(self, quest_id: str) -> Optional[QuestInstance]:
        ...

    @abstractmethod
    async def save_quest_instance(self, quest: QuestInstance) -> None:
        ...

    @abstractmethod
    async def delete_quest_instance(self, quest_id: str) -> None:
        ...

    @abstractmethod
    async def list_quest_instances(
        self,
        user_id: str,
        quest_dates: Optional[Sequence[str]] = None
    ) -> List[QuestInstance]:
        """Player's quest instances, optionally limited to some dates"""

    @abstractmethod
    async def load_template(self, template_id: str) -> Optional[QuestTemplate]:
        ...

    @abstractmethod
    async def list_templates(self) -> List[QuestTemplate]:
        ...

    # ==========================================
    # Daily compliance
    # ==========================================

    @abstractmethod
    async def load_daily_compliance_record(
        self,
        user_id: str,
        log_date: str
    ) -> Optional[DailyComplianceRecord]:
        ...

    @abstractmethod
    async def save_daily_compliance_record(self, record: DailyComplianceRecord) -> None:
        ...

    # ==========================================
    # XP ledger
    # ==========================================

    @abstractmethod
    async def add_xp_event(self, event: XPEvent) -> None:
        ...

    @abstractmethod
    async def list_xp_events(self, user_id: str, limit: int = 50, offset: int = 0) -> List[XPEvent]:
        """Events oldest first"""

    @abstractmethod
    async def last_xp_event(self, user_id: str) -> Optional[XPEvent]:
        ...
