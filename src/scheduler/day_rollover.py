"""
Day Rollover Job

Closes finished quest days for every player and sweeps expired debuffs.
A day is "finished" once it is in the past in the player's own timezone, so
the job can run hourly and each player rolls over after their local midnight.

Per player:
- Every past date that still has ACTIVE quests is expired (catches missed runs)
- Yesterday's compliance record is closed even if nothing is left ACTIVE
- Expiry consults the debuff policy for each closed day

Running the job again is a no-op for days that are already closed.
"""

import logging
from typing import Any, Dict, List

from src.db.store import ProgressionStore
from src.exceptions import ProgressionError
from src.gamification.debuff import DebuffPolicy
from src.gamification.quest_lifecycle import QuestLifecycle
from src.models.quest import QuestStatus
from src.utils.datetime_helpers import Clock, now_utc, previous_dates, today_for_timezone

logger = logging.getLogger(__name__)


class DayRolloverJob:
    """
    Expires finished quest days and clears expired debuffs.
    """

    def __init__(
        self,
        store: ProgressionStore,
        lifecycle: QuestLifecycle,
        debuff: DebuffPolicy,
        clock: Clock = now_utc
    ):
        self.store = store
        self.lifecycle = lifecycle
        self.debuff = debuff
        self.clock = clock

    async def _dates_to_close(self, user_id: str) -> List[str]:
        player = await self.store.load_player(user_id)
        if not player:
            return []

        today = today_for_timezone(self.clock(), player.timezone)
        dates = {
            q.quest_date
            for q in await self.store.list_quest_instances(user_id)
            if q.status == QuestStatus.ACTIVE and q.quest_date < today
        }

        yesterday = previous_dates(today, 1)[0]
        record = await self.store.load_daily_compliance_record(user_id, yesterday)
        if record and record.closed_at is None:
            dates.add(yesterday)

        return sorted(dates)

    async def rollover_player(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Close every finished day for one player

        Returns:
            expire_day() results, oldest day first
        """
        results = []
        for quest_date in await self._dates_to_close(user_id):
            results.append(await self.lifecycle.expire_day(user_id, quest_date))
        return results

    async def run_once(self) -> Dict[str, Any]:
        """
        Run one rollover pass over all players

        A failure for one player is logged and counted; the pass continues
        with the next player.

        Returns:
            {
                'players_processed': int,
                'days_closed': int,
                'debuffs_applied': int,
                'debuffs_cleared': int,
                'failed_players': list
            }
        """
        logger.info("Starting day rollover")

        summary = {
            "players_processed": 0,
            "days_closed": 0,
            "debuffs_applied": 0,
            "debuffs_cleared": 0,
            "failed_players": [],
        }

        for user_id in await self.store.list_player_ids():
            try:
                results = await self.rollover_player(user_id)
            except (ProgressionError, OSError) as e:
                logger.error(f"Day rollover failed for user {user_id}: {e}", exc_info=True)
                summary["failed_players"].append(user_id)
                continue

            summary["players_processed"] += 1
            summary["days_closed"] += len(results)
            summary["debuffs_applied"] += sum(1 for r in results if r["debuff_applied"])

        summary["debuffs_cleared"] = await self.debuff.clear_expired_debuffs()

        logger.info(
            f"Day rollover complete: {summary['players_processed']} players, "
            f"{summary['days_closed']} days closed, {summary['debuffs_applied']} debuffs applied, "
            f"{summary['debuffs_cleared']} debuffs cleared, {len(summary['failed_players'])} failures"
        )
        return summary
