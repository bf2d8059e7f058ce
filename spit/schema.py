"""
Schema node model for OpenAPI/Swagger schemas.

This module provides:
1. A small tagged union of immutable schema nodes (object, array, string,
   number, integer, boolean, reference, nullable wrapper, composite, any)
2. `parse_schema`, which turns a raw OpenAPI schema dict into that union

Parsing never follows `$ref` pointers: references become `RefSchema` nodes
and are replaced later by the resolver.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


logger = logging.getLogger(__name__)

# Type alias for a raw OpenAPI schema dict
OpenAPISchema = dict[str, Any]


class SchemaType(str, Enum):
    """OpenAPI schema types."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


class StringFormat(str, Enum):
    """String formats with dedicated generation or validation rules."""

    DATE = "date"
    DATE_TIME = "date-time"
    TIME = "time"
    EMAIL = "email"
    URI = "uri"
    URL = "url"
    UUID = "uuid"
    HOSTNAME = "hostname"
    IPV4 = "ipv4"
    IPV6 = "ipv6"
    BYTE = "byte"
    BINARY = "binary"
    PASSWORD = "password"


@dataclass(frozen=True, kw_only=True)
class SchemaNode:
    """
    Base class for every schema variant.

    Attributes:
        origin: Name of the component this node was resolved from, if any
        truncated: True for placeholders produced when a reference cycle was cut
    """

    origin: str | None = None
    truncated: bool = False


@dataclass(frozen=True, kw_only=True)
class AnySchema(SchemaNode):
    """Schema without a declared type; every value conforms."""


@dataclass(frozen=True, kw_only=True)
class ObjectSchema(SchemaNode):
    properties: dict[str, SchemaNode] = field(default_factory=dict)
    required: frozenset[str] = frozenset()
    additional_properties: bool = True
    additional_schema: SchemaNode | None = None


@dataclass(frozen=True, kw_only=True)
class ArraySchema(SchemaNode):
    items: SchemaNode | None = None
    min_items: int | None = None
    max_items: int | None = None


@dataclass(frozen=True, kw_only=True)
class StringSchema(SchemaNode):
    format: str | None = None
    enum: tuple[Any, ...] | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None


@dataclass(frozen=True, kw_only=True)
class NumberSchema(SchemaNode):
    minimum: float | None = None
    maximum: float | None = None
    exclusive_minimum: bool = False
    exclusive_maximum: bool = False
    multiple_of: float | None = None
    enum: tuple[Any, ...] | None = None
    format: str | None = None


@dataclass(frozen=True, kw_only=True)
class IntegerSchema(NumberSchema):
    """Number schema restricted to whole values."""


@dataclass(frozen=True, kw_only=True)
class BooleanSchema(SchemaNode):
    pass


@dataclass(frozen=True, kw_only=True)
class RefSchema(SchemaNode):
    """Unresolved `$ref` pointer. Never reaches a generator or validator."""

    ref: str


@dataclass(frozen=True, kw_only=True)
class NullableSchema(SchemaNode):
    inner: SchemaNode


@dataclass(frozen=True, kw_only=True)
class CompositeSchema(SchemaNode):
    """
    Combination of sub-schemas.

    `mode` is "allOf", "oneOf" or "anyOf". The resolver merges "allOf"
    combinations into a single object schema, so only "oneOf"/"anyOf"
    composites survive resolution.
    """

    mode: str
    options: tuple[SchemaNode, ...] = ()


def ref_name(ref: str) -> str:
    """Extract the component name from a $ref string."""
    return ref.rstrip("/").split("/")[-1]


def _number_or_none(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _bounds(schema: OpenAPISchema) -> dict[str, Any]:
    """
    Read numeric bounds, normalizing both exclusive-bound styles.

    OpenAPI 3.0 uses boolean `exclusiveMinimum` flags next to `minimum`;
    OpenAPI 3.1 uses numeric `exclusiveMinimum` values on their own.
    """
    minimum = _number_or_none(schema.get("minimum"))
    maximum = _number_or_none(schema.get("maximum"))
    exclusive_minimum = schema.get("exclusiveMinimum", False)
    exclusive_maximum = schema.get("exclusiveMaximum", False)

    if _number_or_none(exclusive_minimum) is not None:
        minimum, exclusive_minimum = exclusive_minimum, True
    if _number_or_none(exclusive_maximum) is not None:
        maximum, exclusive_maximum = exclusive_maximum, True

    multiple_of = _number_or_none(schema.get("multipleOf"))
    if multiple_of is not None and multiple_of <= 0:
        logger.warning("Ignoring non-positive multipleOf: %s", multiple_of)
        multiple_of = None

    return {
        "minimum": minimum,
        "maximum": maximum,
        "exclusive_minimum": bool(exclusive_minimum),
        "exclusive_maximum": bool(exclusive_maximum),
        "multiple_of": multiple_of,
    }


def _enum(schema: OpenAPISchema) -> tuple[Any, ...] | None:
    values = schema.get("enum")
    if isinstance(values, list) and values:
        return tuple(values)
    return None


def parse_schema(schema: Any) -> SchemaNode:
    """
    Convert a raw OpenAPI schema into a SchemaNode tree.

    Args:
        schema: The raw schema dict (may contain `$ref`, `allOf`, ...)

    Returns:
        The parsed node; unknown or missing schemas become AnySchema
    """
    if not isinstance(schema, dict):
        return AnySchema()

    if "$ref" in schema:
        return RefSchema(ref=str(schema["$ref"]))

    for mode in ("allOf", "oneOf", "anyOf"):
        if isinstance(schema.get(mode), list) and schema[mode]:
            node: SchemaNode = CompositeSchema(
                mode=mode, options=tuple(parse_schema(s) for s in schema[mode])
            )
            return NullableSchema(inner=node) if schema.get("nullable") else node

    schema_type = schema.get("type")
    nullable = bool(schema.get("nullable", False))

    # OpenAPI 3.1: "type": ["string", "null"]
    if isinstance(schema_type, list):
        types = [t for t in schema_type if t != "null"]
        nullable = nullable or len(types) != len(schema_type)
        schema_type = types[0] if types else None

    # Infer the type from type-specific keywords when it is omitted
    if schema_type is None:
        if "properties" in schema or "additionalProperties" in schema:
            schema_type = SchemaType.OBJECT.value
        elif "items" in schema:
            schema_type = SchemaType.ARRAY.value

    node = _parse_typed(schema_type, schema)
    return NullableSchema(inner=node) if nullable else node


def _parse_typed(schema_type: Any, schema: OpenAPISchema) -> SchemaNode:
    if schema_type == SchemaType.OBJECT.value:
        properties = schema.get("properties") or {}
        required = schema.get("required") or []
        additional = schema.get("additionalProperties", True)
        return ObjectSchema(
            properties={
                name: parse_schema(prop) for name, prop in properties.items()
            },
            required=frozenset(r for r in required if isinstance(r, str)),
            additional_properties=additional is not False,
            additional_schema=(
                parse_schema(additional) if isinstance(additional, dict) else None
            ),
        )

    if schema_type == SchemaType.ARRAY.value:
        items = schema.get("items")
        return ArraySchema(
            items=parse_schema(items) if items is not None else AnySchema(),
            min_items=_int_or_none(schema.get("minItems")),
            max_items=_int_or_none(schema.get("maxItems")),
        )

    if schema_type == SchemaType.STRING.value:
        return StringSchema(
            format=schema.get("format"),
            enum=_enum(schema),
            min_length=_int_or_none(schema.get("minLength")),
            max_length=_int_or_none(schema.get("maxLength")),
            pattern=schema.get("pattern"),
        )

    if schema_type == SchemaType.INTEGER.value:
        return IntegerSchema(
            enum=_enum(schema), format=schema.get("format"), **_bounds(schema)
        )

    if schema_type == SchemaType.NUMBER.value:
        return NumberSchema(
            enum=_enum(schema), format=schema.get("format"), **_bounds(schema)
        )

    if schema_type == SchemaType.BOOLEAN.value:
        return BooleanSchema()

    if schema_type is not None:
        logger.warning("Unsupported schema type %r, accepting any value", schema_type)
    return AnySchema()
