"""
Mock data generation from resolved schema nodes.

This module provides:
1. `SampleFactory`, a seeded random source with realistic sample pools
2. `GenerationContext`, the per-request generation state
3. `MockDataGenerator`, which synthesizes values conforming to a schema,
   consulting field-name pattern rules first
"""

from __future__ import annotations

import hashlib
import logging
import math
import random
import re
import string
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from fractions import Fraction
from typing import Any, Callable
from uuid import UUID

from spit.patterns import PatternRegistry, generate_pattern_value
from spit.resolver import DEFAULT_MAX_DEPTH
from spit.schema import (
    AnySchema,
    ArraySchema,
    BooleanSchema,
    CompositeSchema,
    IntegerSchema,
    NullableSchema,
    NumberSchema,
    ObjectSchema,
    SchemaNode,
    StringSchema,
)


logger = logging.getLogger(__name__)

# Probability that an optional object property is generated
DEFAULT_OPTIONAL_PROBABILITY = 0.7

# Item count cap for arrays without maxItems
DEFAULT_MAX_ITEMS = 3

# Range used for numbers without bounds
DEFAULT_NUMBER_RANGE = (0, 1000)

# Decimal places kept for generated non-integral numbers
DEFAULT_DECIMALS = 2

# Window around "now" for generated dates (days)
DATE_WINDOW_DAYS = 30

# Longest string synthesized from a regex pattern without maxLength
MAX_PATTERN_LENGTH = 255


class SampleFactory:
    """
    Seeded random source producing realistic primitive values.

    Each request owns its own factory, so no state is shared between
    concurrent requests. Passing the same seed reproduces the same values.
    """

    # Sample data pools
    FIRST_NAMES = [
        "Alice",
        "Bob",
        "Charlie",
        "Diana",
        "Eve",
        "Frank",
        "Grace",
        "Henry",
        "Iris",
        "Jack",
        "Kate",
        "Leo",
        "Mia",
        "Noah",
        "Olivia",
        "Paul",
    ]
    LAST_NAMES = [
        "Smith",
        "Johnson",
        "Williams",
        "Brown",
        "Jones",
        "Garcia",
        "Miller",
        "Davis",
        "Rodriguez",
        "Martinez",
        "Wilson",
        "Anderson",
    ]
    DOMAINS = ["example.com", "test.org", "sample.net", "demo.io", "mock.dev"]
    WORDS = [
        "alpha",
        "beta",
        "gamma",
        "delta",
        "epsilon",
        "zeta",
        "theta",
        "kappa",
        "lambda",
        "sigma",
        "omega",
    ]

    def __init__(self, seed: int | str | None = None, now: datetime | None = None):
        """
        Args:
            seed: Seed for reproducibility. Strings are hashed, None is random.
            now: Anchor instant for generated dates (defaults to current UTC time)
        """
        if seed is None:
            self._seed = random.randint(0, 2**32 - 1)
        elif isinstance(seed, str):
            self._seed = int(hashlib.md5(seed.encode()).hexdigest()[:8], 16)
        else:
            self._seed = seed

        self.rng = random.Random(self._seed)
        self.now = now or datetime.now(timezone.utc)
        self._counter = 0

    @property
    def seed(self) -> int:
        return self._seed

    def _next_counter(self) -> int:
        self._counter += 1
        return self._counter

    def chance(self, probability: float) -> bool:
        return self.rng.random() < probability

    def choice(self, values: Any) -> Any:
        return self.rng.choice(list(values))

    def generate_text(self, min_length: int = 1, max_length: int = 20) -> str:
        """Random alphanumeric string with a length in [min_length, max_length]."""
        length = self.rng.randint(min_length, max(min_length, max_length))
        return "".join(self.rng.choices(string.ascii_letters + string.digits, k=length))

    def generate_from_pattern(self, pattern: str, min_length: int, max_length: int) -> str:
        """
        Generate a string for a simplified regex pattern.

        Handles character classes, \\d and \\w, literals and the quantifiers
        {n}, {n,m}, {n,}, +, * and ?. Anchors, groups and alternation are
        ignored.
        """
        result = ""
        i = 0
        while i < len(pattern):
            char = pattern[i]
            atom: Callable[[], str] | None = None
            if char == "[":
                end = pattern.find("]", i)
                if end > i:
                    chars = _expand_class(pattern[i + 1 : end])
                    atom = lambda chars=chars: self.rng.choice(chars)
                    i = end + 1
                else:
                    i += 1
            elif char == "\\" and i + 1 < len(pattern):
                escaped = pattern[i + 1]
                if escaped == "d":
                    atom = lambda: str(self.rng.randint(0, 9))
                elif escaped == "w":
                    atom = lambda: self.rng.choice(string.ascii_letters + string.digits + "_")
                else:
                    atom = lambda escaped=escaped: escaped
                i += 2
            elif char == ".":
                atom = lambda: self.rng.choice(string.ascii_lowercase)
                i += 1
            elif char in "^$()|{}*+?":
                i += 1
            else:
                atom = lambda char=char: char
                i += 1

            if atom is None:
                continue
            count, i = self._quantifier(pattern, i)
            result += "".join(atom() for _ in range(count))

        while len(result) < min_length:
            result += self.rng.choice(string.ascii_lowercase)

        return result[:max_length]

    def _quantifier(self, pattern: str, i: int) -> tuple[int, int]:
        """Repetition count of the quantifier at `i` (1 if none) and the index after it."""
        if i >= len(pattern):
            return 1, i
        char = pattern[i]
        if char == "{":
            end = pattern.find("}", i)
            match = re.fullmatch(r"(\d+)(,(\d*))?", pattern[i + 1 : end]) if end > i else None
            if match is None:
                return 1, i
            low = int(match.group(1))
            if match.group(2) is None:
                high = low
            elif match.group(3):
                high = int(match.group(3))
            else:
                high = low + DEFAULT_MAX_ITEMS
            return self.rng.randint(low, max(low, high)), end + 1
        if char == "+":
            return self.rng.randint(1, DEFAULT_MAX_ITEMS), i + 1
        if char == "*":
            return self.rng.randint(0, DEFAULT_MAX_ITEMS), i + 1
        if char == "?":
            return self.rng.randint(0, 1), i + 1
        return 1, i

    def generate_email(self) -> str:
        first = self.rng.choice(self.FIRST_NAMES).lower()
        last = self.rng.choice(self.LAST_NAMES).lower()
        domain = self.rng.choice(self.DOMAINS)
        return f"{first}.{last}{self.rng.randint(1, 999)}@{domain}"

    def generate_url(self) -> str:
        domain = self.rng.choice(self.DOMAINS)
        path = "/".join(self.rng.choices(self.WORDS, k=self.rng.randint(1, 3)))
        return f"https://{domain}/{path}"

    def generate_name(self) -> str:
        return f"{self.rng.choice(self.FIRST_NAMES)} {self.rng.choice(self.LAST_NAMES)}"

    def generate_uuid(self) -> UUID:
        return UUID(int=self.rng.getrandbits(128), version=4)

    def generate_datetime(self) -> datetime:
        """An instant within DATE_WINDOW_DAYS of `now`, whole seconds."""
        offset = self.rng.randint(-DATE_WINDOW_DAYS * 86400, DATE_WINDOW_DAYS * 86400)
        return (self.now + timedelta(seconds=offset)).replace(microsecond=0)

    def generate_date(self) -> date:
        return self.generate_datetime().date()

    def generate_ipv4(self) -> str:
        return ".".join(str(self.rng.randint(1, 254)) for _ in range(4))

    def generate_ipv6(self) -> str:
        return ":".join(f"{self.rng.randint(0, 65535):04x}" for _ in range(8))

    def generate_password(self) -> str:
        chars = string.ascii_letters + string.digits + "!@#$%^&*"
        return "".join(self.rng.choices(chars, k=16))

    def generate_formatted(self, fmt: str) -> str | None:
        """Generate a string for a known format, or None for unknown formats."""
        format_generators: dict[str, Callable[[], str]] = {
            "date": lambda: self.generate_date().isoformat(),
            "date-time": lambda: self.generate_datetime().isoformat().replace("+00:00", "Z"),
            "time": lambda: self.generate_datetime().time().isoformat(),
            "email": self.generate_email,
            "uri": self.generate_url,
            "url": self.generate_url,
            "uuid": lambda: str(self.generate_uuid()),
            "hostname": lambda: f"host{self._next_counter()}.example.com",
            "ipv4": self.generate_ipv4,
            "ipv6": self.generate_ipv6,
            "byte": lambda: "SGVsbG9Xb3JsZA==",
            "password": self.generate_password,
        }
        generator = format_generators.get(fmt)
        return generator() if generator else None

    def infer_from_field_name(self, field_name: str) -> str | None:
        """Guess a realistic string from common field names."""
        lower_name = field_name.lower()
        if "email" in lower_name:
            return self.generate_email()
        if "name" in lower_name:
            if "first" in lower_name:
                return self.rng.choice(self.FIRST_NAMES)
            if "last" in lower_name:
                return self.rng.choice(self.LAST_NAMES)
            if "user" in lower_name:
                return f"user_{self._next_counter()}"
            return self.generate_name()
        if "url" in lower_name or "uri" in lower_name:
            return self.generate_url()
        return None


def _expand_class(spec: str) -> str:
    """Expand a regex character class body like "a-z0-9_" into its characters."""
    chars = ""
    i = 0
    while i < len(spec):
        if i + 2 < len(spec) and spec[i + 1] == "-":
            start, end = ord(spec[i]), ord(spec[i + 2])
            chars += "".join(chr(c) for c in range(start, end + 1))
            i += 3
        else:
            chars += spec[i]
            i += 1
    return chars or string.ascii_lowercase


@dataclass
class GenerationContext:
    """
    State of one generation call tree. Lives for a single request.

    Attributes:
        patterns: Field-name rules consulted before the schema
        samples: Random source for this request
        max_depth: Object nesting depth after which objects are left empty
        depth: Current object nesting depth
    """

    patterns: PatternRegistry = field(default_factory=PatternRegistry)
    samples: SampleFactory = field(default_factory=SampleFactory)
    max_depth: int = DEFAULT_MAX_DEPTH
    depth: int = 0

    def descend(self) -> GenerationContext:
        return replace(self, depth=self.depth + 1)


class MockDataGenerator:
    """
    Synthesizes values conforming to resolved schema nodes.

    Precedence: a pattern rule bound to the field name wins (as long as its
    value fits the schema's type); otherwise the value is derived from the
    schema variant. Generation never raises: unsatisfiable constraints are
    logged and answered with a best-effort value.

    Example:
        generator = MockDataGenerator(PatternRegistry({"status": EnumPattern(values=["a", "b"])}))
        ctx = generator.new_context()
        body = generator.generate(schema, ctx=ctx)
    """

    def __init__(
        self,
        patterns: PatternRegistry | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        optional_probability: float = DEFAULT_OPTIONAL_PROBABILITY,
    ):
        """
        Args:
            patterns: Field-name pattern rules (shared, read-only)
            max_depth: Maximum object nesting depth
            optional_probability: Chance of including each optional property
        """
        self.patterns = patterns or PatternRegistry()
        self.max_depth = max_depth
        self.optional_probability = optional_probability

    def new_context(self, seed: int | str | None = None) -> GenerationContext:
        """Create a fresh context with its own random source."""
        return GenerationContext(
            patterns=self.patterns,
            samples=SampleFactory(seed),
            max_depth=self.max_depth,
        )

    def generate(
        self,
        schema: SchemaNode,
        field_name: str | None = None,
        ctx: GenerationContext | None = None,
    ) -> Any:
        """
        Generate a value for a resolved schema.

        Args:
            schema: The resolved schema node
            field_name: Name of the property being generated, used for pattern rules
            ctx: Generation context (a fresh one is created when omitted)

        Returns:
            A JSON-compatible value
        """
        if ctx is None:
            ctx = self.new_context()

        # Arrays pass their field name down so rules apply per item
        if not isinstance(schema, ArraySchema):
            rule = ctx.patterns.rule_for(field_name)
            if rule is not None:
                value = generate_pattern_value(rule, ctx.samples.rng, ctx.samples.now)
                fitted = _fit_to_type(value, schema)
                if fitted is not _MISMATCH:
                    return fitted
                logger.warning(
                    "Pattern for field %r does not fit a %s schema, ignoring it",
                    field_name,
                    type(schema).__name__,
                )

        if isinstance(schema, NullableSchema):
            return self.generate(schema.inner, field_name, ctx)
        if isinstance(schema, ObjectSchema):
            return self._generate_object(schema, ctx)
        if isinstance(schema, ArraySchema):
            return self._generate_array(schema, field_name, ctx)
        if isinstance(schema, StringSchema):
            return self._generate_string(schema, field_name, ctx.samples)
        if isinstance(schema, IntegerSchema):
            return self._generate_integer(schema, ctx.samples)
        if isinstance(schema, NumberSchema):
            return self._generate_number(schema, ctx.samples)
        if isinstance(schema, BooleanSchema):
            return ctx.samples.rng.choice([True, False])
        if isinstance(schema, CompositeSchema) and schema.options:
            return self.generate(schema.options[0], field_name, ctx)

        return None

    def _generate_object(self, schema: ObjectSchema, ctx: GenerationContext) -> dict[str, Any]:
        if ctx.depth >= ctx.max_depth:
            logger.debug("Max depth %d reached, leaving object empty", ctx.max_depth)
            return {}

        child_ctx = ctx.descend()
        result: dict[str, Any] = {}
        for prop_name, prop_schema in schema.properties.items():
            # Always generate required fields, optionally generate others
            if prop_name in schema.required or ctx.samples.chance(self.optional_probability):
                result[prop_name] = self.generate(prop_schema, prop_name, child_ctx)

        for prop_name in sorted(schema.required - result.keys()):
            # Required but undeclared: only the additional schema can describe it
            result[prop_name] = self.generate(
                schema.additional_schema or AnySchema(), prop_name, child_ctx
            )

        if not schema.properties and schema.additional_schema is not None:
            for i in range(ctx.samples.rng.randint(1, DEFAULT_MAX_ITEMS)):
                result[f"key{i + 1}"] = self.generate(schema.additional_schema, None, child_ctx)

        return result

    def _generate_array(
        self, schema: ArraySchema, field_name: str | None, ctx: GenerationContext
    ) -> list[Any]:
        if schema.items is None or ctx.depth >= ctx.max_depth:
            return []

        high = max(schema.min_items or 0, DEFAULT_MAX_ITEMS)
        if schema.max_items is not None:
            high = min(high, schema.max_items)
        low = schema.min_items if schema.min_items is not None else min(1, high)
        if low > high:
            logger.warning("minItems %d exceeds maxItems %d, using maxItems", low, high)
            low = high

        count = ctx.samples.rng.randint(max(low, 0), max(high, 0))
        return [self.generate(schema.items, field_name, ctx) for _ in range(count)]

    def _generate_string(
        self, schema: StringSchema, field_name: str | None, samples: SampleFactory
    ) -> str:
        if schema.enum:
            return samples.choice(schema.enum)

        min_length = schema.min_length if schema.min_length is not None else 1
        max_length = schema.max_length
        if max_length is not None and min_length > max_length:
            logger.warning("minLength %d exceeds maxLength %d", min_length, max_length)
            max_length = min_length

        def fits(candidate: str | None) -> bool:
            if candidate is None or len(candidate) < min_length:
                return False
            return max_length is None or len(candidate) <= max_length

        if schema.format:
            value = samples.generate_formatted(schema.format)
            if fits(value):
                return value
            if value is not None:
                logger.warning(
                    "Format %r cannot satisfy length bounds [%s, %s]",
                    schema.format,
                    min_length,
                    max_length,
                )

        if schema.pattern:
            value = samples.generate_from_pattern(
                schema.pattern,
                min_length,
                max_length if max_length is not None else MAX_PATTERN_LENGTH,
            )
            if not _matches(schema.pattern, value):
                logger.warning("Could not synthesize a value for pattern %r", schema.pattern)
            return value

        if field_name and not schema.format:
            value = samples.infer_from_field_name(field_name)
            if fits(value):
                return value

        return samples.generate_text(
            min_length, max_length if max_length is not None else max(min_length, 20)
        )

    def _generate_integer(self, schema: IntegerSchema, samples: SampleFactory) -> int:
        if schema.enum:
            return samples.choice(schema.enum)

        low, high = _default_range(schema.minimum, schema.maximum)
        low_i = math.ceil(low)
        high_i = math.floor(high)
        if schema.exclusive_minimum and low_i == low:
            low_i += 1
        if schema.exclusive_maximum and high_i == high:
            high_i -= 1

        if schema.multiple_of:
            # Whole numbers that are multiples of p/q are the multiples of p
            step = abs(Fraction(str(schema.multiple_of)).numerator) or 1
            k_low, k_high = -(-low_i // step), high_i // step
            if k_low <= k_high:
                return samples.rng.randint(k_low, k_high) * step
            logger.warning("No multiple of %s in [%s, %s]", schema.multiple_of, low, high)

        if low_i > high_i:
            logger.warning("Empty integer range [%s, %s], using lower bound", low, high)
            return low_i
        return samples.rng.randint(low_i, high_i)

    def _generate_number(self, schema: NumberSchema, samples: SampleFactory) -> float:
        if schema.enum:
            return samples.choice(schema.enum)

        low, high = _default_range(schema.minimum, schema.maximum)

        if schema.multiple_of:
            step = schema.multiple_of
            exact = Fraction(step)
            k_low = math.ceil(Fraction(low) / exact)
            k_high = math.floor(Fraction(high) / exact)
            if schema.exclusive_minimum and k_low * exact <= low:
                k_low += 1
            if schema.exclusive_maximum and k_high * exact >= high:
                k_high -= 1
            if k_low <= k_high:
                k = samples.rng.randint(k_low, k_high)
                return _snap(float(k * exact), step)
            logger.warning("No multiple of %s in [%s, %s]", step, low, high)

        # Pick on a grid of DEFAULT_DECIMALS places so values stay short
        scale = 10**DEFAULT_DECIMALS
        low_s, high_s = math.ceil(low * scale), math.floor(high * scale)
        if schema.exclusive_minimum and low_s / scale <= low:
            low_s += 1
        if schema.exclusive_maximum and high_s / scale >= high:
            high_s -= 1
        if low_s <= high_s:
            return samples.rng.randint(low_s, high_s) / scale

        if low < high:
            return low + (high - low) / 2
        logger.warning("Empty number range [%s, %s], using lower bound", low, high)
        return float(low)


_MISMATCH = object()


def _fit_to_type(value: Any, schema: SchemaNode) -> Any:
    """
    Adapt a pattern value to the schema's type, or return _MISMATCH.

    Only the type is honored; other schema constraints are ignored.
    """
    if isinstance(schema, NullableSchema):
        return _fit_to_type(value, schema.inner)
    if isinstance(schema, (AnySchema, CompositeSchema)):
        return value
    if isinstance(schema, StringSchema):
        return value if isinstance(value, str) else str(value)
    if isinstance(schema, IntegerSchema):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return _MISMATCH
        return int(number) if number.is_integer() else _MISMATCH
    if isinstance(schema, NumberSchema):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        try:
            return float(value)
        except (TypeError, ValueError):
            return _MISMATCH
    if isinstance(schema, BooleanSchema):
        if isinstance(value, bool):
            return value
        if str(value).lower() in ("true", "false"):
            return str(value).lower() == "true"
    return _MISMATCH


def _default_range(minimum: float | None, maximum: float | None) -> tuple[float, float]:
    low, high = DEFAULT_NUMBER_RANGE
    if minimum is not None and maximum is not None:
        return minimum, maximum
    if minimum is not None:
        return minimum, high if minimum < high else minimum + (high - low)
    if maximum is not None:
        return low if maximum > low else maximum - (high - low), maximum
    return low, high


def _snap(value: float, step: float) -> float:
    """Round away float noise from k * step (0.1 * 3 -> 0.3)."""
    exponent = Decimal(repr(step)).as_tuple().exponent
    decimals = max(0, -exponent) if isinstance(exponent, int) else DEFAULT_DECIMALS
    return float(round(value, decimals))


def _matches(pattern: str, value: str) -> bool:
    try:
        return re.search(pattern, value) is not None
    except re.error:
        return False
