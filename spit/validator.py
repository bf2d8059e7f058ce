"""
Request validation against resolved schema nodes.

Validation is total: it never stops at the first problem and never raises,
it returns every issue found so callers can report a complete diagnostic.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from fractions import Fraction
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

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

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATE_TIME_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Tolerance for multipleOf checks on floats
_MULTIPLE_TOLERANCE = 1e-9

# Plain ASCII numerals accepted in path, query and header values
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_NUMBER_RE = re.compile(r"[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?")


class IssueKind(str, Enum):
    """Kinds of validation issues."""

    MISSING_REQUIRED = "missing-required"
    TYPE_MISMATCH = "type-mismatch"
    OUT_OF_RANGE = "out-of-range"
    PATTERN_MISMATCH = "pattern-mismatch"
    UNKNOWN_ENUM_VALUE = "unknown-enum-value"
    UNEXPECTED_FIELD = "unexpected-field"


class ValidationIssue(BaseModel):
    """A single violation, addressed by its field path from the root."""

    model_config = ConfigDict(frozen=True)

    path: str
    kind: IssueKind
    message: str
    location: str | None = None


def join_path(base: str, name: str) -> str:
    """Append a property name to a dot-notation path."""
    return f"{base}.{name}" if base else name


def index_path(base: str, index: int) -> str:
    return f"{base}[{index}]"


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


class SchemaValidator:
    """
    Checks JSON-like values against resolved schema nodes.

    Stateless, so a single instance can be shared by concurrent requests.
    """

    def validate(self, value: Any, schema: SchemaNode, path: str = "") -> list[ValidationIssue]:
        """
        Validate a value.

        Args:
            value: The decoded JSON value
            schema: The resolved schema node
            path: Field path of `value` from the root ("" for the root)

        Returns:
            List of issues; empty if the value conforms
        """
        if isinstance(schema, NullableSchema):
            if value is None:
                return []
            return self.validate(value, schema.inner, path)

        if isinstance(schema, AnySchema):
            return []
        if isinstance(schema, CompositeSchema):
            return self._validate_composite(value, schema, path)

        if value is None:
            return [self._mismatch(path, self._expected(schema), value)]

        if isinstance(schema, ObjectSchema):
            return self._validate_object(value, schema, path)
        if isinstance(schema, ArraySchema):
            return self._validate_array(value, schema, path)
        if isinstance(schema, StringSchema):
            return self._validate_string(value, schema, path)
        if isinstance(schema, NumberSchema):
            return self._validate_number(value, schema, path)
        if isinstance(schema, BooleanSchema):
            if not isinstance(value, bool):
                return [self._mismatch(path, "boolean", value)]
            return []

        return []

    def _validate_object(
        self, value: Any, schema: ObjectSchema, path: str
    ) -> list[ValidationIssue]:
        if not isinstance(value, dict):
            return [self._mismatch(path, "object", value)]

        issues: list[ValidationIssue] = []

        for name in sorted(schema.required):
            if name not in value:
                issues.append(
                    ValidationIssue(
                        path=join_path(path, name),
                        kind=IssueKind.MISSING_REQUIRED,
                        message=f"Missing required field '{name}'",
                    )
                )

        for name, item in value.items():
            prop_schema = schema.properties.get(name)
            if prop_schema is not None:
                issues.extend(self.validate(item, prop_schema, join_path(path, name)))
            elif schema.additional_schema is not None:
                issues.extend(
                    self.validate(item, schema.additional_schema, join_path(path, name))
                )
            elif not schema.additional_properties:
                issues.append(
                    ValidationIssue(
                        path=join_path(path, name),
                        kind=IssueKind.UNEXPECTED_FIELD,
                        message=f"Unexpected field '{name}'",
                    )
                )

        return issues

    def _validate_array(self, value: Any, schema: ArraySchema, path: str) -> list[ValidationIssue]:
        if not isinstance(value, list):
            return [self._mismatch(path, "array", value)]

        issues: list[ValidationIssue] = []
        if schema.min_items is not None and len(value) < schema.min_items:
            issues.append(
                ValidationIssue(
                    path=path,
                    kind=IssueKind.OUT_OF_RANGE,
                    message=f"Array has {len(value)} items, expected at least {schema.min_items}",
                )
            )
        if schema.max_items is not None and len(value) > schema.max_items:
            issues.append(
                ValidationIssue(
                    path=path,
                    kind=IssueKind.OUT_OF_RANGE,
                    message=f"Array has {len(value)} items, expected at most {schema.max_items}",
                )
            )

        if schema.items is not None:
            for i, item in enumerate(value):
                issues.extend(self.validate(item, schema.items, index_path(path, i)))

        return issues

    def _validate_string(
        self, value: Any, schema: StringSchema, path: str
    ) -> list[ValidationIssue]:
        if not isinstance(value, str):
            return [self._mismatch(path, "string", value)]

        issues: list[ValidationIssue] = []

        if schema.enum and value not in schema.enum:
            allowed = ", ".join(str(v) for v in schema.enum)
            issues.append(
                ValidationIssue(
                    path=path,
                    kind=IssueKind.PATTERN_MISMATCH,
                    message=f"Value '{value}' is not one of: {allowed}",
                )
            )

        if schema.min_length is not None and len(value) < schema.min_length:
            issues.append(
                ValidationIssue(
                    path=path,
                    kind=IssueKind.OUT_OF_RANGE,
                    message=f"String is shorter than {schema.min_length} characters",
                )
            )
        if schema.max_length is not None and len(value) > schema.max_length:
            issues.append(
                ValidationIssue(
                    path=path,
                    kind=IssueKind.OUT_OF_RANGE,
                    message=f"String is longer than {schema.max_length} characters",
                )
            )

        if schema.pattern:
            try:
                matched = re.search(schema.pattern, value) is not None
            except re.error as e:
                logger.warning("Skipping invalid pattern %r: %s", schema.pattern, e)
                matched = True
            if not matched:
                issues.append(
                    ValidationIssue(
                        path=path,
                        kind=IssueKind.PATTERN_MISMATCH,
                        message=f"Value does not match pattern '{schema.pattern}'",
                    )
                )

        if schema.format and not _matches_format(value, schema.format):
            issues.append(
                ValidationIssue(
                    path=path,
                    kind=IssueKind.TYPE_MISMATCH,
                    message=f"Value is not a valid {schema.format}",
                )
            )

        return issues

    def _validate_number(
        self, value: Any, schema: NumberSchema, path: str
    ) -> list[ValidationIssue]:
        is_integer = isinstance(schema, IntegerSchema)
        expected = "integer" if is_integer else "number"

        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return [self._mismatch(path, expected, value)]
        if is_integer and isinstance(value, float) and not value.is_integer():
            return [self._mismatch(path, expected, value)]
        if isinstance(value, float) and not math.isfinite(value):
            return [self._mismatch(path, expected, value)]

        issues: list[ValidationIssue] = []

        def out_of_range(message: str) -> None:
            issues.append(ValidationIssue(path=path, kind=IssueKind.OUT_OF_RANGE, message=message))

        if schema.enum and value not in schema.enum:
            allowed = ", ".join(str(v) for v in schema.enum)
            issues.append(
                ValidationIssue(
                    path=path,
                    kind=IssueKind.UNKNOWN_ENUM_VALUE,
                    message=f"Value {value} is not one of: {allowed}",
                )
            )

        if schema.minimum is not None:
            if schema.exclusive_minimum and value <= schema.minimum:
                out_of_range(f"Value {value} must be greater than {schema.minimum}")
            elif not schema.exclusive_minimum and value < schema.minimum:
                out_of_range(f"Value {value} is below minimum {schema.minimum}")

        if schema.maximum is not None:
            if schema.exclusive_maximum and value >= schema.maximum:
                out_of_range(f"Value {value} must be less than {schema.maximum}")
            elif not schema.exclusive_maximum and value > schema.maximum:
                out_of_range(f"Value {value} is above maximum {schema.maximum}")

        if schema.multiple_of and not _is_multiple(value, schema.multiple_of):
            out_of_range(f"Value {value} is not a multiple of {schema.multiple_of}")

        return issues

    def _validate_composite(
        self, value: Any, schema: CompositeSchema, path: str
    ) -> list[ValidationIssue]:
        """Conforming to any option is enough; otherwise report the closest one."""
        best: list[ValidationIssue] | None = None
        for option in schema.options:
            issues = self.validate(value, option, path)
            if not issues:
                return []
            if best is None or len(issues) < len(best):
                best = issues
        return best or []

    @staticmethod
    def _expected(schema: SchemaNode) -> str:
        if isinstance(schema, ObjectSchema):
            return "object"
        if isinstance(schema, ArraySchema):
            return "array"
        if isinstance(schema, StringSchema):
            return "string"
        if isinstance(schema, IntegerSchema):
            return "integer"
        if isinstance(schema, NumberSchema):
            return "number"
        if isinstance(schema, BooleanSchema):
            return "boolean"
        return "value"

    @staticmethod
    def _mismatch(path: str, expected: str, value: Any) -> ValidationIssue:
        return ValidationIssue(
            path=path,
            kind=IssueKind.TYPE_MISMATCH,
            message=f"Expected {expected}, got {_type_name(value)}",
        )


def _matches_format(value: str, fmt: str) -> bool:
    """Check the formats with fixed parsing rules; others always pass."""
    if fmt == "date":
        if not _DATE_RE.match(value):
            return False
        try:
            date.fromisoformat(value)
        except ValueError:
            return False
        return True

    if fmt == "date-time":
        if not _DATE_TIME_RE.match(value):
            return False
        normalized = value.replace("Z", "+00:00").replace("z", "+00:00")
        try:
            datetime.fromisoformat(normalized)
        except ValueError:
            return False
        return True

    if fmt == "email":
        return _EMAIL_RE.match(value) is not None

    if fmt == "uuid":
        try:
            UUID(value)
        except ValueError:
            return False
        return True

    return True


def _is_multiple(value: int | float, multiple_of: int | float) -> bool:
    if isinstance(value, int) and isinstance(multiple_of, int):
        return value % multiple_of == 0
    # Exact rationals so huge integers never overflow a float
    quotient = Fraction(value) / Fraction(multiple_of)
    return abs(quotient - round(quotient)) <= _MULTIPLE_TOLERANCE * max(1, abs(quotient))


def coerce_scalar(raw: str, schema: SchemaNode) -> Any:
    """
    Convert a raw path/query/header string into the value its schema expects.

    Unconvertible strings are returned unchanged so that validation reports
    a type mismatch for them.
    """
    if isinstance(schema, NullableSchema):
        return coerce_scalar(raw, schema.inner)

    if isinstance(schema, IntegerSchema):
        if _INTEGER_RE.fullmatch(raw) is None:
            return raw
        try:
            return int(raw)
        except ValueError:
            # Longer than the interpreter allows for int conversion
            return raw

    if isinstance(schema, NumberSchema):
        if _NUMBER_RE.fullmatch(raw) is None:
            return raw
        number = float(raw)
        return number if math.isfinite(number) else raw

    if isinstance(schema, BooleanSchema):
        lowered = raw.lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        return raw

    if isinstance(schema, ArraySchema):
        items = schema.items or AnySchema()
        return [coerce_scalar(part, items) for part in raw.split(",")] if raw else []

    return raw


_default_validator = SchemaValidator()


def validate(value: Any, schema: SchemaNode, path: str = "") -> list[ValidationIssue]:
    """Validate a decoded value with the shared validator."""
    return _default_validator.validate(value, schema, path)


def validate_parameter(raw: str, schema: SchemaNode, path: str) -> list[ValidationIssue]:
    """Validate a raw string parameter by coercing it before validation."""
    return _default_validator.validate(coerce_scalar(raw, schema), schema, path)
