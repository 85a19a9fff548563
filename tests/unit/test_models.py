"""Unit tests for domain models (src/models/)"""
import pytest
from datetime import datetime, timezone
from pydantic import ValidationError as PydanticValidationError

from src.models.player import Player
from src.models.quest import (
    BooleanFlag,
    CompoundRequirement,
    DailyComplianceRecord,
    NumericThreshold,
    QuestInstance,
    QuestStatus,
    QuestTemplate,
    QuestType,
    target_value_for,
)


class TestRequirementUnion:
    """Test the discriminated requirement union"""

    def test_parse_numeric(self):
        """Test that a numeric payload parses to NumericThreshold"""
        template = QuestTemplate.model_validate({
            "id": "steps",
            "name": "Steps",
            "base_xp": 50,
            "requirement": {"type": "numeric", "metric": "steps", "value": 10000},
        })
        assert isinstance(template.requirement, NumericThreshold)
        assert template.requirement.operator == "gte"

    def test_parse_nested_compound(self):
        """Test parsing a compound with nested variants"""
        template = QuestTemplate.model_validate({
            "id": "mobility",
            "name": "Mobility",
            "base_xp": 25,
            "requirement": {
                "type": "compound",
                "operator": "or",
                "requirements": [
                    {"type": "boolean", "metric": "yoga"},
                    {"type": "numeric", "metric": "stretch_minutes", "value": 10},
                ],
            },
        })
        req = template.requirement
        assert isinstance(req, CompoundRequirement)
        assert isinstance(req.requirements[0], BooleanFlag)
        assert isinstance(req.requirements[1], NumericThreshold)

    def test_unknown_type_rejected(self):
        """Test that an unknown discriminator fails validation"""
        with pytest.raises(PydanticValidationError):
            QuestTemplate.model_validate({
                "id": "x",
                "name": "X",
                "base_xp": 10,
                "requirement": {"type": "vibes", "metric": "mood"},
            })

    def test_numeric_value_must_be_positive(self):
        """Test that a zero target is rejected"""
        with pytest.raises(PydanticValidationError):
            NumericThreshold(metric="steps", value=0)

    def test_empty_compound_rejected(self):
        """Test that a compound needs at least one requirement"""
        with pytest.raises(PydanticValidationError):
            CompoundRequirement(operator="and", requirements=[])

    def test_target_value_for(self):
        """Test target values per variant"""
        assert target_value_for(NumericThreshold(metric="steps", value=8000)) == 8000
        assert target_value_for(BooleanFlag(metric="meditated")) == 1.0
        assert target_value_for(
            CompoundRequirement(requirements=[BooleanFlag(metric="yoga")])
        ) == 100.0


class TestQuestTemplate:
    """Test quest template validation"""

    def test_partial_requires_threshold(self):
        """Test allow_partial without min_partial_percent"""
        with pytest.raises(PydanticValidationError):
            QuestTemplate(
                id="steps",
                name="Steps",
                base_xp=50,
                requirement=NumericThreshold(metric="steps", value=10000),
                allow_partial=True,
            )

    def test_template_is_frozen(self, core_templates):
        """Test that catalog entries are immutable"""
        with pytest.raises(PydanticValidationError):
            core_templates[0].base_xp = 1000

    def test_negative_base_xp_rejected(self):
        """Test base_xp >= 0"""
        with pytest.raises(PydanticValidationError):
            QuestTemplate(
                id="bad",
                name="Bad",
                base_xp=-5,
                requirement=BooleanFlag(metric="x"),
            )


class TestQuestInstance:
    """Test quest instance creation"""

    def test_from_template(self, core_templates):
        """Test instance fields copied from a template"""
        quest = QuestInstance.from_template(core_templates[0], "user-123", "2025-01-15")

        assert quest.template_id == "core_steps"
        assert quest.user_id == "user-123"
        assert quest.quest_date == "2025-01-15"
        assert quest.quest_type == QuestType.DAILY
        assert quest.is_core is True
        assert quest.target_value == 10000
        assert quest.current_value == 0
        assert quest.completion_percent == 0
        assert quest.status == QuestStatus.ACTIVE
        assert quest.xp_awarded is None
        assert quest.completed_at is None
        assert quest.allow_partial is True
        assert quest.min_partial_percent == 80

    def test_ids_are_unique(self, core_templates):
        """Test that every instance gets its own ID"""
        a = QuestInstance.from_template(core_templates[0], "user-123", "2025-01-15")
        b = QuestInstance.from_template(core_templates[0], "user-123", "2025-01-15")
        assert a.id != b.id

    def test_boolean_quest_target_is_one(self, bonus_templates):
        """Test boolean quests track 0/1"""
        quest = QuestInstance.from_template(bonus_templates[0], "user-123", "2025-01-15")
        assert quest.target_value == 1.0


class TestDailyComplianceRecord:
    """Test daily compliance counters"""

    def test_missed_core_quests(self):
        """Test missed = total - completed"""
        record = DailyComplianceRecord(
            user_id="user-123",
            log_date="2025-01-14",
            core_quests_total=4,
            core_quests_completed=2,
        )
        assert record.missed_core_quests == 2

    def test_missed_never_negative(self):
        """Test that over-counted completions do not go negative"""
        record = DailyComplianceRecord(
            user_id="user-123",
            log_date="2025-01-14",
            core_quests_total=1,
            core_quests_completed=3,
        )
        assert record.missed_core_quests == 0


class TestPlayer:
    """Test the player aggregate"""

    def test_defaults(self):
        """Test a new player"""
        player = Player(id="p", created_at=datetime(2025, 1, 1, tzinfo=timezone.utc))

        assert player.total_xp == 0
        assert player.level == 1
        assert player.debuff_active_until is None
        assert player.timezone == "UTC"

    def test_negative_xp_rejected(self):
        """Test total_xp >= 0"""
        with pytest.raises(PydanticValidationError):
            Player(id="p", total_xp=-1, created_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
