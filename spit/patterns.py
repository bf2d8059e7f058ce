"""
Field-name pattern rules that override schema-driven generation.

Rules are configured per exact (case-sensitive) field name under
`fields.patterns` in the mock configuration, for example:

    fields:
      patterns:
        status: {type: enum, values: [pending, completed, failed]}
        price: {type: number, min: 10.0, max: 1000.0, decimals: 2}
        cardNumber: {type: card, length: 16}
        createdAt: {type: date, format: "%Y-%m-%d"}
"""

from __future__ import annotations

import random
from collections.abc import Iterator, Mapping
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# Default output: ISO-8601 with milliseconds and a literal Z
DEFAULT_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S%.3fZ"


class EnumPattern(BaseModel):
    """Pick uniformly from a fixed list of values."""

    model_config = ConfigDict(frozen=True)

    type: Literal["enum"] = "enum"
    values: list[str] = Field(min_length=1)


class NumberPattern(BaseModel):
    """Pick uniformly within [min, max], rounded to `decimals` places."""

    model_config = ConfigDict(frozen=True)

    type: Literal["number"] = "number"
    min: float | None = None
    max: float | None = None
    decimals: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_range(self) -> NumberPattern:
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")
        return self


class CreditCardPattern(BaseModel):
    """Numeric string of exactly `length` digits."""

    model_config = ConfigDict(frozen=True)

    type: Literal["card"] = "card"
    length: int = Field(default=16, ge=1)
    luhn: bool = False


class DateTimePattern(BaseModel):
    """The current instant rendered with a strftime format."""

    model_config = ConfigDict(frozen=True)

    type: Literal["date"] = "date"
    format: str | None = None


PatternRule = Annotated[
    Union[EnumPattern, NumberPattern, CreditCardPattern, DateTimePattern],
    Field(discriminator="type"),
]


def luhn_check_digit(digits: str) -> int:
    """Compute the Luhn check digit to append to `digits`."""
    total = 0
    for i, char in enumerate(reversed(digits)):
        d = int(char)
        if i % 2 == 0:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return (10 - total % 10) % 10


def format_instant(moment: datetime, fmt: str | None = None) -> str:
    """
    Format a datetime with strftime, also accepting the `%.3f` token
    (fractional seconds as a dot plus milliseconds).
    """
    fmt = fmt or DEFAULT_DATETIME_FORMAT
    fmt = fmt.replace("%.3f", f".{moment.microsecond // 1000:03d}")
    fmt = fmt.replace("%.6f", f".{moment.microsecond:06d}")
    return moment.strftime(fmt)


def generate_pattern_value(
    rule: EnumPattern | NumberPattern | CreditCardPattern | DateTimePattern,
    rng: random.Random,
    now: datetime | None = None,
) -> Any:
    """
    Produce a value for a pattern rule.

    Args:
        rule: The configured rule
        rng: Random source for this request
        now: Reference instant for date rules (defaults to the current UTC time)

    Returns:
        A JSON-compatible value
    """
    match rule:
        case EnumPattern(values=values):
            return rng.choice(values)

        case NumberPattern(min=low, max=high, decimals=decimals):
            low = 0.0 if low is None else low
            high = 100.0 if high is None else high
            if low > high:
                low, high = high, low
            value = low + (high - low) * rng.random()
            if decimals is None:
                whole = round(value)
                return whole if low <= whole <= high else value
            return min(max(round(value, decimals), low), high)

        case CreditCardPattern(length=length, luhn=luhn):
            if luhn:
                body = "".join(str(rng.randint(0, 9)) for _ in range(length - 1))
                return body + str(luhn_check_digit(body))
            return "".join(str(rng.randint(0, 9)) for _ in range(length))

        case DateTimePattern(format=fmt):
            return format_instant(now or datetime.now(timezone.utc), fmt)

    raise TypeError(f"Unsupported pattern rule: {rule!r}")


class PatternRegistry(Mapping[str, Any]):
    """
    Immutable mapping of field name to pattern rule.

    Built once from configuration and shared read-only by all requests.
    """

    def __init__(self, patterns: Mapping[str, Any] | None = None):
        self._patterns = MappingProxyType(dict(patterns or {}))

    def __getitem__(self, field_name: str) -> Any:
        return self._patterns[field_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def rule_for(self, field_name: str | None) -> Any | None:
        """Return the rule bound to `field_name`, if any."""
        if field_name is None:
            return None
        return self._patterns.get(field_name)

    def __repr__(self) -> str:
        return f"PatternRegistry({sorted(self._patterns)})"
