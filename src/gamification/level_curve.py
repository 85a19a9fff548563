"""
Level Curve

Converts cumulative XP into a level and progress toward the next level.

Leveling Curve:
- Level 1 requires 0 XP
- Going from level k to k+1 costs floor(BASE_XP * k^1.5) XP
- Level 2: 100 XP, Level 3: 382 XP, Level 4: 901 XP, Level 5: 1701 XP

All arithmetic is exact integer math, so totals far beyond 2^53 stay precise.
floor(BASE_XP * k^1.5) == isqrt(BASE_XP^2 * k^3) because both sides are the
floor of the same non-negative real.
"""

from bisect import bisect_right
from typing import List, Tuple
import logging
import math

from src.config import BASE_XP, LEVEL_CACHE_MAX_LEVEL
from src.models.xp import LevelProgress, LevelThresholdEntry

logger = logging.getLogger(__name__)


def level_cost(level: int, base_xp: int = BASE_XP) -> int:
    """XP needed to go from `level` to `level + 1`"""
    if level < 1:
        return 0
    return math.isqrt(base_xp * base_xp * level ** 3)


def compute_level_threshold(level: int, base_xp: int = BASE_XP) -> int:
    """
    Cumulative XP required to reach `level`

    Levels at or below 1 return 0 rather than raising, so stale callers
    never crash.
    """
    if level <= 1:
        return 0
    return _cost_sum(1, level, base_xp)


def _cost_sum(start: int, stop: int, base_xp: int) -> int:
    """XP needed to go from level `start` to level `stop`"""
    base_sq = base_xp * base_xp
    return sum(map(math.isqrt, (base_sq * k ** 3 for k in range(start, stop))))


def _level_lower_bound(xp: int, base_xp: int) -> int:
    """A level whose threshold is known to be <= xp"""
    # threshold(L) < 0.4 * base_xp * L^2.5, the integral bound on the summed costs
    if xp <= 0:
        return 1
    return max(1, int((xp / (0.4 * base_xp)) ** 0.4) - 1)


def _locate_level(xp: int, level: int, threshold: int, base_xp: int) -> Tuple[int, int]:
    """
    Level and threshold for xp, searching upward from (level, threshold)

    Jumps straight to a lower-bound level and sums the skipped costs in one
    pass, then walks the last few levels. Thresholds have no closed form, so
    the cost is still one isqrt per level crossed: around 10^7 for totals near
    2^64, which is why LevelCurve caches the common range.
    """
    start = _level_lower_bound(xp, base_xp)
    if start > level:
        threshold += _cost_sum(level, start, base_xp)
        level = start
    return _walk_to_level(xp, level, threshold, base_xp)


def _walk_to_level(xp: int, level: int, threshold: int, base_xp: int) -> Tuple[int, int]:
    """Advance from (level, threshold) while the next threshold is still <= xp"""
    while True:
        next_threshold = threshold + level_cost(level, base_xp)
        if next_threshold > xp:
            return level, threshold
        level += 1
        threshold = next_threshold


def compute_level(xp: int, base_xp: int = BASE_XP) -> int:
    """Largest level whose threshold is <= xp (negative XP counts as 0)"""
    xp = max(0, int(xp))
    level, _ = _locate_level(xp, 1, 0, base_xp)
    return level


def _progress(xp: int, level: int, current_threshold: int, next_threshold: int) -> LevelProgress:
    xp_progress = xp - current_threshold
    xp_needed = next_threshold - current_threshold
    percent = (100 * xp_progress) // xp_needed if xp_needed > 0 else 0

    return LevelProgress(
        current_level=level,
        xp_for_current_level=current_threshold,
        xp_for_next_level=next_threshold,
        xp_progress=xp_progress,
        xp_needed=xp_needed,
        progress_percent=min(100, max(0, percent)),
    )


def xp_to_next_level(xp: int, base_xp: int = BASE_XP) -> LevelProgress:
    """Level progress for a total XP value"""
    xp = max(0, int(xp))
    level, threshold = _locate_level(xp, 1, 0, base_xp)
    return _progress(xp, level, threshold, threshold + level_cost(level, base_xp))


def get_level_thresholds(max_level: int = 20, base_xp: int = BASE_XP) -> List[LevelThresholdEntry]:
    """Level table for levels 1..max_level"""
    entries = []
    threshold = 0
    for level in range(1, max_level + 1):
        cost = level_cost(level, base_xp)
        entries.append(LevelThresholdEntry(level=level, total_xp=threshold, xp_to_next=cost))
        threshold += cost
    return entries


class LevelCurve:
    """
    Memoized level curve.

    The threshold table is built once at construction and never mutated, so
    one instance can be shared by every service and by parallel tests.
    Lookups above the cached range walk forward from the last cached level.
    """

    def __init__(self, base_xp: int = BASE_XP, max_cached_level: int = LEVEL_CACHE_MAX_LEVEL):
        self.base_xp = base_xp

        # Index == level; index 0 mirrors level 1 so bisect lands correctly
        thresholds = [0, 0]
        for level in range(2, max(2, max_cached_level) + 1):
            thresholds.append(thresholds[-1] + level_cost(level - 1, base_xp))
        self._thresholds: Tuple[int, ...] = tuple(thresholds)

        logger.debug(
            f"LevelCurve built: base_xp={base_xp}, cached levels 1..{self.max_cached_level}"
        )

    @property
    def max_cached_level(self) -> int:
        return len(self._thresholds) - 1

    def threshold(self, level: int) -> int:
        """Cumulative XP required to reach `level`"""
        if level <= 1:
            return 0
        if level <= self.max_cached_level:
            return self._thresholds[level]

        return self._thresholds[-1] + _cost_sum(self.max_cached_level, level, self.base_xp)

    def _locate(self, xp: int) -> Tuple[int, int]:
        if xp >= self._thresholds[-1]:
            return _locate_level(xp, self.max_cached_level, self._thresholds[-1], self.base_xp)
        level = bisect_right(self._thresholds, xp) - 1
        return level, self._thresholds[level]

    def level_for(self, xp: int) -> int:
        """Largest level whose threshold is <= xp"""
        level, _ = self._locate(max(0, int(xp)))
        return level

    def progress(self, xp: int) -> LevelProgress:
        """Level progress for a total XP value"""
        xp = max(0, int(xp))
        level, threshold = self._locate(xp)
        return _progress(xp, level, threshold, threshold + level_cost(level, self.base_xp))

    def thresholds(self, max_level: int = 20) -> List[LevelThresholdEntry]:
        """Level table for levels 1..max_level"""
        return [
            LevelThresholdEntry(
                level=level,
                total_xp=self.threshold(level),
                xp_to_next=level_cost(level, self.base_xp),
            )
            for level in range(1, max_level + 1)
        ]
