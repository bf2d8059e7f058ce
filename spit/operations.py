"""
Operation index: every (method, path template) of an OpenAPI document with
its parameters, request body and responses resolved once at startup.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote

from spit.resolver import RefResolver, SchemaGraph, UnresolvedReference
from spit.schema import AnySchema, SchemaNode


logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# Media types tried in order when picking a body schema
PREFERRED_CONTENT_TYPES = ("application/json", "*/*")

_TEMPLATE_PARAM_RE = re.compile(r"\{([^{}]+)\}")


@dataclass(frozen=True)
class Parameter:
    """A path, query or header parameter with its resolved schema."""

    name: str
    schema: SchemaNode
    location: str = "query"
    required: bool = False


@dataclass(frozen=True)
class PathParameter(Parameter):
    location: str = "path"
    required: bool = True


@dataclass(frozen=True)
class RequestBody:
    content_type: str
    schema: SchemaNode
    required: bool = False

    @property
    def is_json(self) -> bool:
        media = self.content_type.split(";")[0].strip().lower()
        return media in ("application/json", "*/*") or media.endswith("+json")


@dataclass(frozen=True)
class ResponseSpec:
    """A declared response. `schema` is None for responses without a body."""

    status: str
    schema: SchemaNode | None = None
    content_type: str = "application/json"
    headers: dict[str, SchemaNode] = field(default_factory=dict)


@dataclass(frozen=True)
class PathTemplate:
    """A path template split into literal and templated segments."""

    template: str
    segments: tuple[str, ...]
    patterns: tuple[re.Pattern[str] | None, ...]

    @classmethod
    def parse(cls, template: str) -> PathTemplate:
        segments = tuple(s for s in template.split("/") if s)
        patterns = []
        for segment in segments:
            if _TEMPLATE_PARAM_RE.search(segment):
                regex = ""
                last = 0
                for match in _TEMPLATE_PARAM_RE.finditer(segment):
                    regex += re.escape(segment[last : match.start()])
                    regex += f"(?P<{_group_name(match.group(1))}>[^/]+?)"
                    last = match.end()
                regex += re.escape(segment[last:])
                patterns.append(re.compile(f"^{regex}$"))
            else:
                patterns.append(None)
        return cls(template=template, segments=segments, patterns=tuple(patterns))

    @property
    def templated_count(self) -> int:
        return sum(1 for p in self.patterns if p is not None)

    def specificity_key(self) -> tuple[int, tuple[bool, ...]]:
        """
        Sort key: fewer templated segments first, then literal segments
        winning position by position from the left.
        """
        return self.templated_count, tuple(p is not None for p in self.patterns)

    def match(self, segments: list[str]) -> dict[str, str] | None:
        """Bind concrete segments; None if they do not fit the template."""
        if len(segments) != len(self.segments):
            return None

        params: dict[str, str] = {}
        for literal, pattern, actual in zip(self.segments, self.patterns, segments):
            if pattern is None:
                if literal != actual:
                    return None
                continue
            found = pattern.match(actual)
            if found is None:
                return None
            for name in _TEMPLATE_PARAM_RE.findall(literal):
                params[name] = found.group(_group_name(name))
        return params


def _group_name(param: str) -> str:
    """Regex-safe group name for a template parameter."""
    return "p_" + re.sub(r"\W", "_", param)


@dataclass(frozen=True)
class Operation:
    method: str
    path: str
    path_parameters: tuple[PathParameter, ...] = ()
    query_parameters: tuple[Parameter, ...] = ()
    header_parameters: tuple[Parameter, ...] = ()
    request_body: RequestBody | None = None
    responses: dict[str, ResponseSpec] = field(default_factory=dict)
    operation_id: str | None = None

    @property
    def key(self) -> str:
        return f"{self.method} {self.path}"


@dataclass(frozen=True)
class RouteMatch:
    """An operation found for a concrete request path."""

    operation: Operation
    path_params: dict[str, str]


@dataclass(frozen=True)
class SpecProblem:
    """A startup-time defect that excluded an operation from the index."""

    method: str
    path: str
    message: str


def split_path(path: str) -> list[str]:
    return [unquote(s) for s in path.split("/") if s]


def base_path_of(document: dict[str, Any]) -> str:
    """
    Path prefix under which the API is served.

    Swagger 2.0 uses `basePath`; OpenAPI 3.x uses the path of the first
    server URL.
    """
    if "swagger" in document:
        base = document.get("basePath") or ""
    else:
        servers = document.get("servers") or []
        url = servers[0].get("url", "") if servers and isinstance(servers[0], dict) else ""
        base = re.sub(r"^[a-zA-Z][a-zA-Z0-9+.-]*://[^/]*", "", url)
        if "{" in base:
            # Server variables cannot be matched statically
            base = ""
    return base.rstrip("/")


class OperationIndex:
    """
    Lookup table from (method, concrete path) to resolved operations.

    Built once from the parsed document; every schema is resolved eagerly so
    request handling never walks references. Operations whose references do
    not resolve are left out and reported in `problems`.

    Example:
        index = OperationIndex.build(document)
        match = index.find("GET", "/pets/7")
        if match:
            print(match.operation.key, match.path_params)
    """

    def __init__(
        self,
        operations: list[Operation],
        problems: list[SpecProblem] | None = None,
        base_path: str = "",
    ):
        self.problems = problems or []
        self.base_path = base_path

        # Most specific templates first; stable sort keeps declaration order for ties
        self._routes: list[tuple[PathTemplate, Operation]] = sorted(
            ((PathTemplate.parse(op.path), op) for op in operations),
            key=lambda route: route[0].specificity_key(),
        )

    @classmethod
    def build(
        cls, document: dict[str, Any], resolver: RefResolver | None = None
    ) -> OperationIndex:
        """
        Build the index from a parsed OpenAPI/Swagger document.

        Args:
            document: The parsed document
            resolver: Resolver to use (one over the document is created if omitted)

        Returns:
            The populated index
        """
        resolver = resolver or RefResolver(SchemaGraph(document))
        builder = _OperationBuilder(resolver)

        operations: list[Operation] = []
        problems: list[SpecProblem] = []

        for path, path_item in (document.get("paths") or {}).items():
            if not isinstance(path_item, dict):
                continue
            try:
                path_item = resolver.graph.lookup_object(path_item)
            except UnresolvedReference as e:
                problems.append(SpecProblem("*", path, str(e)))
                logger.warning("Skipping path %s: %s", path, e)
                continue

            for method in HTTP_METHODS:
                raw_operation = path_item.get(method)
                if not isinstance(raw_operation, dict):
                    continue
                try:
                    operations.append(
                        builder.build(method.upper(), path, path_item, raw_operation)
                    )
                except UnresolvedReference as e:
                    problems.append(SpecProblem(method.upper(), path, str(e)))
                    logger.warning("Skipping %s %s: %s", method.upper(), path, e)

        return cls(operations, problems, base_path_of(document))

    def __len__(self) -> int:
        return len(self._routes)

    @property
    def operations(self) -> list[Operation]:
        return [op for _, op in self._routes]

    def _candidates(self, path: str) -> list[list[str]]:
        segments = split_path(path)
        base = split_path(self.base_path)
        if base and segments[: len(base)] == base:
            return [segments[len(base) :], segments]
        return [segments]

    def find(self, method: str, path: str) -> RouteMatch | None:
        """
        Find the operation for a concrete request.

        Args:
            method: HTTP method (any case)
            path: Concrete request path, e.g. "/pets/7"

        Returns:
            RouteMatch with bound path parameters, or None if nothing matches
        """
        method = method.upper()
        for segments in self._candidates(path):
            for template, operation in self._routes:
                if operation.method != method:
                    continue
                params = template.match(segments)
                if params is not None:
                    return RouteMatch(operation=operation, path_params=params)
        return None

    def allowed_methods(self, path: str) -> list[str]:
        """Methods declared for templates matching `path`."""
        methods: list[str] = []
        for segments in self._candidates(path):
            for template, operation in self._routes:
                if operation.method not in methods and template.match(segments) is not None:
                    methods.append(operation.method)
        return methods


class _OperationBuilder:
    """Turns one raw operation into an Operation, resolving every schema."""

    def __init__(self, resolver: RefResolver):
        self.resolver = resolver
        self.graph = resolver.graph

    def build(
        self,
        method: str,
        path: str,
        path_item: dict[str, Any],
        raw: dict[str, Any],
    ) -> Operation:
        parameters = self._merge_parameters(
            path_item.get("parameters") or [], raw.get("parameters") or []
        )

        path_params: list[PathParameter] = []
        query_params: list[Parameter] = []
        header_params: list[Parameter] = []
        body: RequestBody | None = None

        for param in parameters:
            location = param.get("in")
            name = param.get("name", "")
            if location == "body":
                # Swagger 2.0 body parameter
                body = RequestBody(
                    content_type=self._swagger2_consumes(raw),
                    schema=self.resolver.resolve_schema(param.get("schema")),
                    required=bool(param.get("required", False)),
                )
                continue

            schema = self._parameter_schema(param)
            if location == "path":
                path_params.append(PathParameter(name=name, schema=schema))
            elif location == "query":
                query_params.append(
                    Parameter(
                        name=name,
                        schema=schema,
                        location="query",
                        required=bool(param.get("required", False)),
                    )
                )
            elif location == "header":
                header_params.append(
                    Parameter(
                        name=name,
                        schema=schema,
                        location="header",
                        required=bool(param.get("required", False)),
                    )
                )

        # Template placeholders without a declared parameter accept any string
        declared = {p.name for p in path_params}
        for name in _TEMPLATE_PARAM_RE.findall(path):
            if name not in declared:
                path_params.append(PathParameter(name=name, schema=AnySchema()))

        if "requestBody" in raw:
            body = self._request_body(raw["requestBody"])

        responses = {
            str(status): self._response(str(status), response)
            for status, response in (raw.get("responses") or {}).items()
        }

        return Operation(
            method=method,
            path=path,
            path_parameters=tuple(path_params),
            query_parameters=tuple(query_params),
            header_parameters=tuple(header_params),
            request_body=body,
            responses=responses,
            operation_id=raw.get("operationId"),
        )

    def _merge_parameters(
        self, path_level: list[Any], operation_level: list[Any]
    ) -> list[dict[str, Any]]:
        """Operation-level parameters override path-level ones by (name, in)."""
        merged: dict[tuple[str, str], dict[str, Any]] = {}
        for raw in list(path_level) + list(operation_level):
            param = self.graph.lookup_object(raw)
            if isinstance(param, dict):
                merged[(param.get("name", ""), param.get("in", ""))] = param
        return list(merged.values())

    def _parameter_schema(self, param: dict[str, Any]) -> SchemaNode:
        if "schema" in param:
            return self.resolver.resolve_schema(param["schema"])
        if "content" in param:
            _, media = self._pick_content(param["content"])
            return self.resolver.resolve_schema((media or {}).get("schema"))
        # Swagger 2.0 keeps the schema keywords on the parameter itself
        inline = {
            k: v for k, v in param.items() if k not in ("name", "in", "required", "description")
        }
        return self.resolver.resolve_schema(inline)

    def _request_body(self, raw: Any) -> RequestBody | None:
        request_body = self.graph.lookup_object(raw)
        if not isinstance(request_body, dict):
            return None
        content_type, media = self._pick_content(request_body.get("content") or {})
        if content_type is None:
            return None
        return RequestBody(
            content_type=content_type,
            schema=self.resolver.resolve_schema((media or {}).get("schema")),
            required=bool(request_body.get("required", False)),
        )

    def _response(self, status: str, raw: Any) -> ResponseSpec:
        response = self.graph.lookup_object(raw)
        if not isinstance(response, dict):
            return ResponseSpec(status=status)

        headers = {}
        for name, raw_header in (response.get("headers") or {}).items():
            header = self.graph.lookup_object(raw_header)
            if isinstance(header, dict):
                headers[name] = self._parameter_schema(header)

        if "schema" in response:
            # Swagger 2.0
            return ResponseSpec(
                status=status,
                schema=self.resolver.resolve_schema(response["schema"]),
                headers=headers,
            )

        content_type, media = self._pick_content(response.get("content") or {})
        if content_type is None or not isinstance(media, dict) or "schema" not in media:
            return ResponseSpec(status=status, headers=headers)

        return ResponseSpec(
            status=status,
            schema=self.resolver.resolve_schema(media["schema"]),
            content_type=content_type,
            headers=headers,
        )

    @staticmethod
    def _pick_content(content: dict[str, Any]) -> tuple[str | None, Any]:
        if not content:
            return None, None
        for content_type in PREFERRED_CONTENT_TYPES:
            if content_type in content:
                return content_type, content[content_type]
        for content_type, media in content.items():
            if content_type.split(";")[0].strip().endswith("+json"):
                return content_type, media
        content_type = next(iter(content))
        return content_type, content[content_type]

    @staticmethod
    def _swagger2_consumes(raw: dict[str, Any]) -> str:
        consumes = raw.get("consumes") or ["application/json"]
        return consumes[0]
