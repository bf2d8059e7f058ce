"""
Reference resolution over an OpenAPI document.

`SchemaGraph` is a read-only lookup over the document tree, and `RefResolver`
replaces every `RefSchema` reachable from a schema with the node it points
to. Cycles are broken with an explicit chain of visited pointers: a pointer
met again inside its own resolution chain becomes a shallow placeholder.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any
from urllib.parse import unquote

from spit.schema import (
    AnySchema,
    ArraySchema,
    CompositeSchema,
    NullableSchema,
    ObjectSchema,
    OpenAPISchema,
    RefSchema,
    SchemaNode,
    SchemaType,
    parse_schema,
    ref_name,
)


logger = logging.getLogger(__name__)

# Maximum number of nested references followed along one chain
DEFAULT_MAX_DEPTH = 10


class UnresolvedReference(Exception):
    """Raised when a `$ref` pointer does not exist in the document."""

    def __init__(self, ref: str, reason: str = "pointer not found in document"):
        self.ref = ref
        self.reason = reason
        super().__init__(f"Unresolved reference {ref!r}: {reason}")


@dataclass(frozen=True)
class ResolvedSchema:
    """A resolved node plus the reference chain that produced it."""

    node: SchemaNode
    chain: frozenset[str] = frozenset()

    @property
    def truncated(self) -> bool:
        return self.node.truncated


class SchemaGraph:
    """
    Read-only view of the schemas declared in an OpenAPI/Swagger document.

    Supports both Swagger 2.0 (`definitions`) and OpenAPI 3.x
    (`components/schemas`). Lookups accept any local JSON pointer.
    """

    def __init__(self, document: dict[str, Any]):
        """
        Args:
            document: The parsed OpenAPI/Swagger document
        """
        self.document = document
        self.is_swagger2 = "swagger" in document

        if self.is_swagger2:
            self.definitions: dict[str, OpenAPISchema] = document.get("definitions") or {}
        else:
            components = document.get("components") or {}
            self.definitions = components.get("schemas") or {}

    def __contains__(self, ref: str) -> bool:
        try:
            self.lookup(ref)
        except UnresolvedReference:
            return False
        return True

    def lookup(self, ref: str) -> Any:
        """
        Follow a local JSON pointer (e.g. "#/components/schemas/Pet").

        Args:
            ref: The $ref string

        Returns:
            The raw value the pointer designates

        Raises:
            UnresolvedReference: If the pointer is external or dangling
        """
        if not ref.startswith("#/"):
            raise UnresolvedReference(ref, "only local references are supported")

        current: Any = self.document
        for raw_part in ref[2:].split("/"):
            part = unquote(raw_part).replace("~1", "/").replace("~0", "~")
            if isinstance(current, dict) and part in current:
                current = current[part]
            elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
                current = current[int(part)]
            else:
                raise UnresolvedReference(ref)
        return current

    def lookup_object(self, raw: Any, max_hops: int = DEFAULT_MAX_DEPTH) -> Any:
        """
        Follow `$ref` indirections on a non-schema object (parameter,
        request body, response) until a concrete object is reached.
        """
        hops = 0
        while isinstance(raw, dict) and "$ref" in raw:
            if hops >= max_hops:
                raise UnresolvedReference(raw["$ref"], "too many nested references")
            raw = self.lookup(raw["$ref"])
            hops += 1
        return raw


class RefResolver:
    """
    Resolves `$ref` pointers into schema nodes, cutting reference cycles.

    Each pointer is resolved once and its finished node is reused by every
    later reference, so startup work grows with the number of schemas rather
    than with the number of paths through them. Placeholders depend on the
    chain that produced them and are never cached. All resolution happens
    while the operation index is built; the cache is not written afterwards.
    """

    def __init__(self, graph: SchemaGraph, max_depth: int = DEFAULT_MAX_DEPTH):
        """
        Args:
            graph: The schema graph to resolve against
            max_depth: Maximum number of references followed along one chain
        """
        self.graph = graph
        self.max_depth = max_depth
        self._cache: dict[str, ResolvedSchema] = {}

    def resolve(self, ref: str, chain: frozenset[str] = frozenset()) -> ResolvedSchema:
        """
        Resolve a pointer to a fully resolved node.

        Args:
            ref: The $ref string
            chain: Pointers already being resolved on the current path

        Returns:
            ResolvedSchema whose node contains no RefSchema

        Raises:
            UnresolvedReference: If the pointer (or one it reaches) is dangling
        """
        cached = self._cache.get(ref)
        if cached is not None:
            return cached

        raw = self.graph.lookup(ref)
        name = ref_name(ref)

        if ref in chain or len(chain) >= self.max_depth:
            logger.debug("Truncating reference cycle at %s (chain of %d)", ref, len(chain))
            return ResolvedSchema(node=self._placeholder(raw, name), chain=chain)

        inner_chain = chain | {ref}
        node = self.resolve_node(parse_schema(raw), inner_chain)
        result = ResolvedSchema(node=replace(node, origin=name), chain=inner_chain)
        self._cache[ref] = result
        return result

    def resolve_schema(self, raw: Any, chain: frozenset[str] = frozenset()) -> SchemaNode:
        """Parse and resolve an inline raw schema."""
        return self.resolve_node(parse_schema(raw), chain)

    def resolve_node(self, node: SchemaNode, chain: frozenset[str] = frozenset()) -> SchemaNode:
        """
        Replace every reference inside a parsed node tree.

        Args:
            node: A node as produced by parse_schema
            chain: Pointers already being resolved on the current path

        Returns:
            An equivalent node tree without RefSchema nodes
        """
        if isinstance(node, RefSchema):
            return self.resolve(node.ref, chain).node

        if isinstance(node, ObjectSchema):
            return replace(
                node,
                properties={
                    name: self.resolve_node(prop, chain)
                    for name, prop in node.properties.items()
                },
                additional_schema=(
                    self.resolve_node(node.additional_schema, chain)
                    if node.additional_schema is not None
                    else None
                ),
            )

        if isinstance(node, ArraySchema):
            if node.items is None:
                return node
            return replace(node, items=self.resolve_node(node.items, chain))

        if isinstance(node, NullableSchema):
            return replace(node, inner=self.resolve_node(node.inner, chain))

        if isinstance(node, CompositeSchema):
            options = tuple(self.resolve_node(option, chain) for option in node.options)
            if node.mode == "allOf":
                return self._merge_all_of(options)
            return replace(node, options=options)

        return node

    @staticmethod
    def _placeholder(raw: Any, name: str) -> SchemaNode:
        """Shallow stand-in for a schema cut out of a cycle."""
        if isinstance(raw, dict) and raw.get("type") == SchemaType.ARRAY.value:
            return ArraySchema(items=None, origin=name, truncated=True)
        return ObjectSchema(origin=name, truncated=True)

    @staticmethod
    def _merge_all_of(options: tuple[SchemaNode, ...]) -> SchemaNode:
        """Merge allOf parts into one object schema."""
        objects = [option for option in options if isinstance(option, ObjectSchema)]
        if not objects:
            # Nothing to merge; the first typed part is the best approximation
            for option in options:
                if not isinstance(option, AnySchema):
                    return option
            return AnySchema()

        properties: dict[str, SchemaNode] = {}
        required: set[str] = set()
        for part in objects:
            properties.update(part.properties)
            required |= part.required

        return ObjectSchema(
            properties=properties,
            required=frozenset(required),
            additional_properties=all(part.additional_properties for part in objects),
            additional_schema=next(
                (p.additional_schema for p in objects if p.additional_schema is not None),
                None,
            ),
            origin=objects[0].origin,
            truncated=any(part.truncated for part in objects),
        )
