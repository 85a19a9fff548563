"""Unit tests for the XP ledger (src/gamification/xp_system.py)"""
import pytest
from datetime import datetime, timezone

from src.exceptions import ValidationError
from src.gamification.xp_system import (
    apply_modifiers,
    award_xp,
    generate_event_hash,
    remove_xp,
    round_half_up,
    verify_xp_chain,
)
from src.models.xp import ModifierType, XPModifier, XPSource


NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def _modifier(multiplier: float) -> XPModifier:
    return XPModifier(type=ModifierType.DEBUFF_PENALTY, multiplier=multiplier, description="test")


# ============================================================================
# Pure helpers
# ============================================================================

@pytest.mark.parametrize("value,expected", [
    (45.0, 45),
    (45.5, 46),
    (44.4999, 44),
    (0.5, 1),
    (0.0, 0),
    (2.5, 3),
])
def test_round_half_up(value, expected):
    """Test that halves round up (unlike banker's rounding)"""
    assert round_half_up(value) == expected


def test_apply_modifiers_debuff():
    """Test the 10% debuff on a 50 XP quest"""
    final, applied = apply_modifiers(50, [_modifier(0.9)])

    assert final == 45
    assert applied[0].order == 0


def test_apply_modifiers_none():
    """Test an award with no modifiers"""
    final, applied = apply_modifiers(50, [])

    assert final == 50
    assert applied == []


def test_apply_modifiers_orders_bonuses_first():
    """Test that bonuses are applied before penalties"""
    _, applied = apply_modifiers(100, [_modifier(0.9), _modifier(1.5)])

    assert [m.multiplier for m in applied] == [1.5, 0.9]
    assert [m.order for m in applied] == [0, 1]


def test_event_hash_is_deterministic():
    """Test hash stability and dependence on the previous hash"""
    a = generate_event_hash("user-123", 50, 45, None, NOW)
    b = generate_event_hash("user-123", 50, 45, None, NOW)
    c = generate_event_hash("user-123", 50, 45, a, NOW)

    assert a == b
    assert a != c
    assert len(a) == 64


# ============================================================================
# Award / remove
# ============================================================================

@pytest.mark.asyncio
async def test_award_xp_updates_player_and_ledger(store, curve, test_user_id):
    """Test a plain award"""
    player = await store.load_player(test_user_id)

    result = await award_xp(store, curve, player, 50, XPSource.QUEST_COMPLETION, NOW, source_id="q1")

    assert result["xp_awarded"] == 50
    assert result["old_total_xp"] == 0
    assert result["new_total_xp"] == 50
    assert result["leveled_up"] is False
    assert (await store.load_player(test_user_id)).total_xp == 50

    event = result["event"]
    assert event.previous_hash is None
    assert event.base_amount == 50 and event.final_amount == 50
    assert event.total_xp_before == 0 and event.total_xp_after == 50


@pytest.mark.asyncio
async def test_award_xp_level_up(store, curve, test_user_id):
    """Test crossing the level 2 threshold"""
    player = await store.load_player(test_user_id)
    player.total_xp = 99

    result = await award_xp(store, curve, player, 50, XPSource.QUEST_COMPLETION, NOW)

    assert result["new_total_xp"] == 149
    assert result["leveled_up"] is True
    assert result["old_level"] == 1
    assert result["new_level"] == 2
    assert player.level == 2


@pytest.mark.asyncio
async def test_award_xp_with_debuff(store, curve, test_user_id):
    """Test that modifiers reach the ledger"""
    player = await store.load_player(test_user_id)

    result = await award_xp(
        store, curve, player, 50, XPSource.QUEST_COMPLETION, NOW, modifiers=[_modifier(0.9)]
    )

    assert result["xp_awarded"] == 45
    assert result["event"].base_amount == 50
    assert result["event"].final_amount == 45
    assert len(result["event"].modifiers) == 1


@pytest.mark.asyncio
async def test_award_negative_amount_rejected(store, curve, test_user_id):
    """Test that negative awards are a validation error"""
    player = await store.load_player(test_user_id)

    with pytest.raises(ValidationError):
        await award_xp(store, curve, player, -10, XPSource.QUEST_COMPLETION, NOW)


@pytest.mark.asyncio
async def test_remove_xp_floors_at_zero(store, curve, test_user_id):
    """Test that removals never go below zero"""
    player = await store.load_player(test_user_id)
    player.total_xp = 30

    result = await remove_xp(store, curve, player, 50, XPSource.MANUAL_ADJUSTMENT, NOW)

    assert result["xp_removed"] == 30
    assert result["new_total_xp"] == 0
    assert result["event"].base_amount == -50
    assert result["event"].final_amount == -30


@pytest.mark.asyncio
async def test_remove_xp_level_down(store, curve, test_user_id):
    """Test dropping back below a threshold"""
    player = await store.load_player(test_user_id)
    player.total_xp = 149
    player.level = 2

    result = await remove_xp(store, curve, player, 50, XPSource.QUEST_RESET, NOW)

    assert result["new_level"] == 1
    assert result["level_changed"] is True


@pytest.mark.asyncio
async def test_remove_xp_requires_positive_amount(store, curve, test_user_id):
    """Test that zero removals are rejected"""
    player = await store.load_player(test_user_id)

    with pytest.raises(ValidationError):
        await remove_xp(store, curve, player, 0, XPSource.QUEST_RESET, NOW)


# ============================================================================
# Chain verification
# ============================================================================

@pytest.mark.asyncio
async def test_ledger_chain_verifies(store, curve, test_user_id):
    """Test that a sequence of awards and removals forms a valid chain"""
    player = await store.load_player(test_user_id)
    await award_xp(store, curve, player, 50, XPSource.QUEST_COMPLETION, NOW)
    await award_xp(store, curve, player, 30, XPSource.QUEST_COMPLETION, NOW)
    await remove_xp(store, curve, player, 30, XPSource.QUEST_RESET, NOW)

    events = await store.list_xp_events(test_user_id)

    assert len(events) == 3
    assert events[1].previous_hash == events[0].hash
    assert verify_xp_chain(events) is True
    assert verify_xp_chain(events[1:], previous_hash=events[0].hash) is True


@pytest.mark.asyncio
async def test_tampered_chain_fails(store, curve, test_user_id):
    """Test that editing an amount breaks verification"""
    player = await store.load_player(test_user_id)
    await award_xp(store, curve, player, 50, XPSource.QUEST_COMPLETION, NOW)
    await award_xp(store, curve, player, 30, XPSource.QUEST_COMPLETION, NOW)

    events = await store.list_xp_events(test_user_id)
    events[0] = events[0].model_copy(update={"final_amount": 5000})

    assert verify_xp_chain(events) is False


def test_empty_chain_is_valid():
    """Test an empty ledger"""
    assert verify_xp_chain([]) is True
