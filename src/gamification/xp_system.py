"""
XP Ledger

Applies XP changes to a player and records each one as a hash-chained
XPEvent.

XP Award Rules:
- Final amount = round_half_up(base amount * product of modifier multipliers)
- Bonuses (multiplier >= 1) are ordered before penalties
- Final amounts are never negative
- Removals never take the player's total below 0

Both award_xp() and remove_xp() must run inside the caller's
store.transaction(user_id).
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence, Tuple
import hashlib
import logging

from src.db.store import ProgressionStore
from src.exceptions import ValidationError
from src.gamification.level_curve import LevelCurve
from src.models.player import Player
from src.models.xp import XPEvent, XPModifier, XPSource

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (45.5 -> 46)"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def generate_event_hash(
    user_id: str,
    base_amount: int,
    final_amount: int,
    previous_hash: Optional[str],
    timestamp: datetime
) -> str:
    """SHA-256 over the event's identity and the previous event's hash"""
    data = f"{user_id}:{base_amount}:{final_amount}:{previous_hash or 'genesis'}:{timestamp.isoformat()}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def apply_modifiers(base_amount: int, modifiers: Sequence[XPModifier]) -> Tuple[int, List[XPModifier]]:
    """
    Apply multipliers to a base XP amount

    Returns:
        (final amount, modifiers with their application order set)
    """
    ordered = sorted(modifiers, key=lambda m: 0 if m.multiplier >= 1 else 1)

    amount = float(base_amount)
    applied = []
    for index, modifier in enumerate(ordered):
        amount *= modifier.multiplier
        applied.append(modifier.model_copy(update={"order": index}))

    return max(0, round_half_up(amount)), applied


def verify_xp_chain(events: Sequence[XPEvent], previous_hash: Optional[str] = None) -> bool:
    """
    Check every event hash and link, oldest event first

    Args:
        events: Consecutive ledger events
        previous_hash: Hash of the event just before events[0] (None from genesis)
    """
    for event in events:
        if event.previous_hash != previous_hash:
            return False
        expected = generate_event_hash(
            event.user_id, event.base_amount, event.final_amount, event.previous_hash, event.created_at
        )
        if event.hash != expected:
            return False
        previous_hash = event.hash
    return True


async def _record_event(
    store: ProgressionStore,
    player: Player,
    source: XPSource,
    source_id: Optional[str],
    base_amount: int,
    final_amount: int,
    modifiers: List[XPModifier],
    level_before: int,
    total_before: int,
    description: str,
    now: datetime
) -> XPEvent:
    last_event = await store.last_xp_event(player.id)
    previous_hash = last_event.hash if last_event else None

    event = XPEvent(
        user_id=player.id,
        source=source,
        source_id=source_id,
        base_amount=base_amount,
        final_amount=final_amount,
        modifiers=modifiers,
        level_before=level_before,
        level_after=player.level,
        total_xp_before=total_before,
        total_xp_after=player.total_xp,
        description=description,
        created_at=now,
        hash=generate_event_hash(player.id, base_amount, final_amount, previous_hash, now),
        previous_hash=previous_hash,
    )
    await store.add_xp_event(event)
    return event


async def award_xp(
    store: ProgressionStore,
    curve: LevelCurve,
    player: Player,
    base_amount: int,
    source: XPSource,
    now: datetime,
    source_id: Optional[str] = None,
    description: str = "Quest completed",
    modifiers: Sequence[XPModifier] = ()
) -> Dict[str, Any]:
    """
    Award XP to a player and check for level up

    Args:
        store: Store holding the player's open transaction
        curve: Level curve used for level-up detection
        player: Player loaded inside the transaction (updated in place and saved)
        base_amount: XP before modifiers
        source: What produced the award
        now: Award timestamp
        source_id: ID of the source record (optional)
        description: Human-readable description
        modifiers: Multipliers (e.g. the debuff penalty)

    Returns:
        {
            'xp_awarded': int,
            'old_total_xp': int,
            'new_total_xp': int,
            'old_level': int,
            'new_level': int,
            'leveled_up': bool,
            'event': XPEvent
        }
    """
    if base_amount < 0:
        raise ValidationError("XP amount must not be negative", field="base_amount", value=base_amount)

    final_amount, applied = apply_modifiers(base_amount, modifiers)

    old_total = player.total_xp
    old_level = curve.level_for(old_total)

    player.total_xp = old_total + final_amount
    player.level = curve.level_for(player.total_xp)
    leveled_up = player.level > old_level

    await store.save_player(player)
    event = await _record_event(
        store, player, source, source_id, base_amount, final_amount, applied,
        old_level, old_total, description, now
    )

    logger.info(
        f"Awarded {final_amount} XP to user {player.id} for {source.value}. "
        f"Total: {player.total_xp} XP, Level: {player.level}"
    )

    if leveled_up:
        logger.info(f"User {player.id} leveled up from {old_level} to {player.level}!")

    return {
        "xp_awarded": final_amount,
        "old_total_xp": old_total,
        "new_total_xp": player.total_xp,
        "old_level": old_level,
        "new_level": player.level,
        "leveled_up": leveled_up,
        "event": event,
    }


async def remove_xp(
    store: ProgressionStore,
    curve: LevelCurve,
    player: Player,
    amount: int,
    source: XPSource,
    now: datetime,
    source_id: Optional[str] = None,
    description: str = "XP removed"
) -> Dict[str, Any]:
    """
    Remove XP from a player (quest resets, manual corrections)

    The event stores negative amounts so the timeline reads as a deduction.

    Returns:
        {
            'xp_removed': int,
            'old_total_xp': int,
            'new_total_xp': int,
            'old_level': int,
            'new_level': int,
            'level_changed': bool,
            'event': XPEvent
        }
    """
    if amount <= 0:
        raise ValidationError("Amount must be positive (it will be subtracted)", field="amount", value=amount)

    old_total = player.total_xp
    old_level = curve.level_for(old_total)

    player.total_xp = max(0, old_total - amount)
    player.level = curve.level_for(player.total_xp)
    removed = old_total - player.total_xp

    await store.save_player(player)
    event = await _record_event(
        store, player, source, source_id, -amount, -removed, [],
        old_level, old_total, description, now
    )

    logger.info(
        f"Removed {removed} XP from user {player.id} ({source.value}). "
        f"Total: {player.total_xp} XP, Level: {player.level}"
    )

    return {
        "xp_removed": removed,
        "old_total_xp": old_total,
        "new_total_xp": player.total_xp,
        "old_level": old_level,
        "new_level": player.level,
        "level_changed": player.level != old_level,
        "event": event,
    }
