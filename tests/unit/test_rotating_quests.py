"""Unit tests for rotating quest selection (src/gamification/rotating_quests.py)"""
import pytest
from collections import Counter
from datetime import datetime, timedelta, timezone

from src.gamification.rotating_quests import (
    RotatingQuestSelector,
    get_user_day_count,
    selection_hash,
)


POOL = ["rot_pushups", "rot_plank", "rot_squats", "rot_lunges", "rot_burpees"]


# ============================================================================
# Selection
# ============================================================================

def test_selection_is_deterministic(selector):
    """Test repeated calls for the same date and user"""
    first = selector.select("2025-01-15", "user-123", POOL)

    assert first in POOL
    assert all(selector.select("2025-01-15", "user-123", POOL) == first for _ in range(10))


def test_selection_ignores_pool_order_and_duplicates(selector):
    """Test that the pool is normalized before indexing"""
    expected = selector.select("2025-01-15", "user-123", POOL)

    assert selector.select("2025-01-15", "user-123", list(reversed(POOL))) == expected
    assert selector.select("2025-01-15", "user-123", POOL + POOL[:2]) == expected


def test_selection_matches_hash(selector):
    """Test the documented index computation"""
    pool = sorted(POOL)
    expected = pool[selection_hash("2025-01-15", "user-123") % len(pool)]

    assert selector.select("2025-01-15", "user-123", POOL) == expected


def test_selection_varies_across_dates(selector):
    """Test that the pick changes across a week"""
    picks = {
        selector.select(f"2025-01-{day:02d}", "user-123", POOL)
        for day in range(15, 23)
    }
    assert len(picks) > 1


def test_selection_distribution(selector):
    """Test that no template dominates 100 (date, user) pairs over a pool of 20"""
    pool = [f"template_{i:02d}" for i in range(20)]
    start = datetime(2025, 1, 1)

    counts = Counter(
        selector.select((start + timedelta(days=i % 25)).date().isoformat(), f"user-{i // 25}", pool)
        for i in range(100)
    )

    # Uniform expectation is 5 per template
    assert max(counts.values()) <= 15


def test_empty_pool_returns_none(selector):
    """Test that an empty pool is not an error"""
    assert selector.select("2025-01-15", "user-123", []) is None


def test_locked_before_day_eight(selector):
    """Test the unlock gate"""
    assert selector.select("2025-01-15", "user-123", POOL, account_day=7) is None
    assert selector.select("2025-01-15", "user-123", POOL, account_day=8) in POOL


def test_selection_hash_is_32_bit():
    """Test the hash range"""
    value = selection_hash("2025-01-15", "user-123")
    assert 0 <= value < 2 ** 32
    assert selection_hash("2025-01-15", "user-123") == value


# ============================================================================
# Eligibility
# ============================================================================

def test_eligible_pool_filters_templates(selector, core_templates, bonus_templates, rotating_templates):
    """Test that only rotating daily templates within the level are eligible"""
    templates = core_templates + bonus_templates + rotating_templates

    pool = selector.eligible_pool(templates, player_level=1)

    assert sorted(pool) == ["rot_plank", "rot_pushups", "rot_squats"]


def test_eligible_pool_includes_level_gated(selector, rotating_templates):
    """Test that min_level opens up at higher levels"""
    assert "rot_burpees" in selector.eligible_pool(rotating_templates, player_level=5)


def test_eligible_pool_excludes_recent(selector, rotating_templates):
    """Test the recency exclusion"""
    pool = selector.eligible_pool(rotating_templates, 1, recent_template_ids={"rot_plank"})

    assert sorted(pool) == ["rot_pushups", "rot_squats"]


def test_eligible_pool_falls_back_when_all_recent(selector, rotating_templates):
    """Test that exclusion never empties the pool"""
    recent = {"rot_plank", "rot_pushups", "rot_squats"}

    pool = selector.eligible_pool(rotating_templates, 1, recent_template_ids=recent)

    assert sorted(pool) == sorted(recent)


# ============================================================================
# Unlock status
# ============================================================================

def test_user_day_count_rounds_up():
    """Test partial days count as a full day"""
    created = datetime(2025, 1, 14, 9, 0, tzinfo=timezone.utc)

    assert get_user_day_count(created, created + timedelta(hours=1)) == 1
    assert get_user_day_count(created, created + timedelta(hours=27)) == 2
    assert get_user_day_count(created, created + timedelta(days=7)) == 7


def test_unlock_status_locked(selector):
    """Test status before unlock"""
    assert selector.unlock_status(3) == {
        "unlocked": False,
        "current_day": 3,
        "unlock_day": 8,
        "days_remaining": 5,
    }


def test_unlock_status_unlocked(selector):
    """Test status after unlock"""
    status = selector.unlock_status(20)

    assert status["unlocked"] is True
    assert status["days_remaining"] == 0


@pytest.mark.parametrize("unlock_day", [1, 8, 14])
def test_custom_unlock_day(unlock_day):
    """Test a configurable unlock day"""
    selector = RotatingQuestSelector(unlock_day=unlock_day)

    assert selector.is_unlocked(unlock_day) is True
    assert selector.is_unlocked(unlock_day - 1) is False
