"""Tests for field-name pattern rules."""

import random
from datetime import datetime, timezone

import pytest
from pydantic import TypeAdapter, ValidationError

from spit.patterns import (
    CreditCardPattern,
    DateTimePattern,
    EnumPattern,
    NumberPattern,
    PatternRegistry,
    PatternRule,
    format_instant,
    generate_pattern_value,
    luhn_check_digit,
)


RULE_ADAPTER = TypeAdapter(PatternRule)
FIXED_NOW = datetime(2024, 3, 5, 14, 7, 9, 123456, tzinfo=timezone.utc)


def luhn_valid(number: str) -> bool:
    total = 0
    for i, char in enumerate(reversed(number)):
        d = int(char)
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


class TestPatternRuleParsing:
    """Tests for the tagged pattern rule union."""

    def test_rules_are_selected_by_type(self):
        assert isinstance(RULE_ADAPTER.validate_python({"type": "enum", "values": ["a"]}), EnumPattern)
        assert isinstance(RULE_ADAPTER.validate_python({"type": "number"}), NumberPattern)
        assert isinstance(RULE_ADAPTER.validate_python({"type": "card"}), CreditCardPattern)
        assert isinstance(RULE_ADAPTER.validate_python({"type": "date"}), DateTimePattern)

    def test_defaults(self):
        card = RULE_ADAPTER.validate_python({"type": "card"})
        assert card.length == 16
        assert card.luhn is False
        number = RULE_ADAPTER.validate_python({"type": "number"})
        assert (number.min, number.max, number.decimals) == (None, None, None)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            RULE_ADAPTER.validate_python({"type": "regex", "pattern": ".*"})

    def test_empty_enum_rejected(self):
        with pytest.raises(ValidationError):
            EnumPattern(values=[])

    def test_inverted_number_range_rejected(self):
        with pytest.raises(ValidationError):
            NumberPattern(min=10, max=1)


class TestGeneratePatternValue:
    """Tests for generate_pattern_value."""

    def test_enum_values_stay_in_set(self):
        """Test that 1000 draws stay in the set and cover all of it."""
        rule = EnumPattern(values=["pending", "completed", "failed"])
        rng = random.Random(7)
        seen = {generate_pattern_value(rule, rng) for _ in range(1000)}
        assert seen == {"pending", "completed", "failed"}

    def test_number_with_decimals(self):
        rule = NumberPattern(min=10.0, max=1000.0, decimals=2)
        rng = random.Random(1)
        for _ in range(1000):
            value = generate_pattern_value(rule, rng)
            assert 10.0 <= value <= 1000.0
            assert round(value, 2) == value

    def test_number_without_decimals_is_integral(self):
        rule = NumberPattern(min=1, max=5)
        rng = random.Random(2)
        for _ in range(200):
            value = generate_pattern_value(rule, rng)
            assert isinstance(value, int)
            assert 1 <= value <= 5

    def test_number_default_range(self):
        rng = random.Random(3)
        values = [generate_pattern_value(NumberPattern(), rng) for _ in range(200)]
        assert all(0 <= v <= 100 for v in values)

    def test_card_length(self):
        rng = random.Random(4)
        value = generate_pattern_value(CreditCardPattern(length=19), rng)
        assert len(value) == 19
        assert value.isdigit()

    def test_card_luhn(self):
        rng = random.Random(5)
        for _ in range(50):
            assert luhn_valid(generate_pattern_value(CreditCardPattern(luhn=True), rng))

    def test_date_default_format(self):
        value = generate_pattern_value(DateTimePattern(), random.Random(), FIXED_NOW)
        assert value == "2024-03-05T14:07:09.123Z"

    def test_date_custom_format(self):
        value = generate_pattern_value(DateTimePattern(format="%Y-%m-%d"), random.Random(), FIXED_NOW)
        assert value == "2024-03-05"


def test_luhn_check_digit():
    # 7992739871 is the classic example with check digit 3
    assert luhn_check_digit("7992739871") == 3


def test_format_instant_microseconds():
    assert format_instant(FIXED_NOW, "%H:%M:%S%.6f") == "14:07:09.123456"


class TestPatternRegistry:
    """Tests for PatternRegistry."""

    def test_rule_lookup_is_exact(self):
        registry = PatternRegistry({"status": EnumPattern(values=["a"])})
        assert registry.rule_for("status") is not None
        assert registry.rule_for("Status") is None
        assert registry.rule_for(None) is None
        assert len(registry) == 1
        assert list(registry) == ["status"]

    def test_registry_is_immutable(self):
        registry = PatternRegistry({"status": EnumPattern(values=["a"])})
        with pytest.raises(TypeError):
            registry._patterns["other"] = EnumPattern(values=["b"])
