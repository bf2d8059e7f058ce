"""
Per-request orchestration: route, validate, pick a status, generate.

MockHandler is the seam between the HTTP layer and the schema engine. It only
reads the structures built at startup (operation index, configuration,
pattern registry), so one instance serves any number of concurrent requests.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from spit.generator import MockDataGenerator
from spit.operations import Operation, OperationIndex, ResponseSpec, RouteMatch
from spit.settings import MockConfig
from spit.validator import IssueKind, ValidationIssue, validate, validate_parameter


logger = logging.getLogger(__name__)

# Status used when no 2xx is declared or the declared key is `default`
FALLBACK_STATUS = 200

SCHEMA_NOT_FOUND_BODY = {"success": False, "message": "Schema not found", "data": None}


@dataclass(frozen=True)
class MockRequest:
    """An incoming request, already decoupled from the HTTP framework."""

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)
    body: bytes | None = None

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


@dataclass
class MockResponse:
    """
    Response record handed back to the HTTP layer.

    `body` is a JSON-compatible value, or None for an empty body.
    """

    status_code: int
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    media_type: str = "application/json"


def status_from_key(key: str) -> int | None:
    """
    Numeric status for a response key.

    "201" -> 201, "2XX" -> 200, "default" (or anything else) -> None.
    """
    if key.isdigit():
        return int(key)
    if len(key) == 3 and key[0].isdigit() and key[1:].upper() == "XX":
        return int(key[0]) * 100
    return None


def _header_value(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _with_location(issues: list[ValidationIssue], location: str) -> list[ValidationIssue]:
    return [issue.model_copy(update={"location": location}) for issue in issues]


class MockHandler:
    """
    Answers requests for the operations of one OpenAPI document.

    Steps per request:
      1. find the operation (404, or 405 when only the method is wrong)
      2. validate path, query and header parameters and the JSON body (400)
      3. choose the status: configured override, first 2xx, `default`, 200
      4. generate the body and declared response headers
      5. add configured headers and wait for the configured delay

    Example:
        handler = MockHandler(OperationIndex.build(document), load_config("mock.yaml"))
        response = await handler.handle(MockRequest("GET", "/pets/7"))
    """

    def __init__(
        self,
        index: OperationIndex,
        config: MockConfig | None = None,
        generator: MockDataGenerator | None = None,
    ):
        """
        Args:
            index: Operation index built at startup
            config: Global mock configuration (immutable)
            generator: Generator to use (one using the config's patterns is created if omitted)
        """
        self.index = index
        self.config = config or MockConfig()
        self.generator = generator or MockDataGenerator(self.config.pattern_registry())

    async def handle(self, request: MockRequest, seed: int | str | None = None) -> MockResponse:
        """
        Produce the mock response for one request.

        Args:
            request: The incoming request
            seed: Optional seed for the random source (fresh randomness when omitted)

        Returns:
            The response record
        """
        match = self.index.find(request.method, request.path)
        if match is None:
            return self._not_routed(request)

        issues = self.validate_request(match, request)
        if issues:
            logger.info(
                "%s %s rejected with %d validation issue(s)",
                request.method,
                request.path,
                len(issues),
            )
            return MockResponse(
                status_code=400,
                body={
                    "error": "Request validation failed",
                    "issues": [issue.model_dump(mode="json") for issue in issues],
                },
            )

        status, spec = self.select_response(match.operation)
        response = self.generate_response(status, spec, seed)

        if self.config.delay:
            # Only this request waits; the event loop keeps serving others
            await asyncio.sleep(self.config.delay_seconds)

        return response

    def _not_routed(self, request: MockRequest) -> MockResponse:
        allowed = self.index.allowed_methods(request.path)
        if allowed:
            return MockResponse(
                status_code=405,
                body={"error": "Method not allowed", "allowed_methods": allowed},
                headers={"Allow": ", ".join(allowed)},
            )
        return MockResponse(
            status_code=404,
            body={"error": "Not found", "method": request.method, "path": request.path},
        )

    def validate_request(self, match: RouteMatch, request: MockRequest) -> list[ValidationIssue]:
        """Collect every issue in the request's parameters and body."""
        operation = match.operation
        issues: list[ValidationIssue] = []

        for param in operation.path_parameters:
            raw = match.path_params.get(param.name)
            if raw is None:
                issues.append(
                    ValidationIssue(
                        path=param.name,
                        kind=IssueKind.MISSING_REQUIRED,
                        message=f"Missing path parameter '{param.name}'",
                        location="path",
                    )
                )
                continue
            issues += _with_location(validate_parameter(raw, param.schema, param.name), "path")

        for param in operation.query_parameters:
            raw = request.query.get(param.name)
            if raw is None:
                if param.required:
                    issues.append(
                        ValidationIssue(
                            path=param.name,
                            kind=IssueKind.MISSING_REQUIRED,
                            message=f"Missing required query parameter '{param.name}'",
                            location="query",
                        )
                    )
                continue
            issues += _with_location(validate_parameter(raw, param.schema, param.name), "query")

        for param in operation.header_parameters:
            raw = request.header(param.name)
            if raw is None:
                if param.required:
                    issues.append(
                        ValidationIssue(
                            path=param.name,
                            kind=IssueKind.MISSING_REQUIRED,
                            message=f"Missing required header '{param.name}'",
                            location="header",
                        )
                    )
                continue
            issues += _with_location(
                validate_parameter(raw, param.schema, param.name), "header"
            )

        issues += self._validate_body(operation, request)
        return issues

    def _validate_body(self, operation: Operation, request: MockRequest) -> list[ValidationIssue]:
        body = operation.request_body
        if body is None:
            return []

        if not request.body or not request.body.strip():
            if body.required:
                return [
                    ValidationIssue(
                        path="",
                        kind=IssueKind.MISSING_REQUIRED,
                        message="Request body is required",
                        location="body",
                    )
                ]
            return []

        if not body.is_json:
            # Only JSON bodies are checked against their schema
            return []

        try:
            value = json.loads(request.body)
        except (ValueError, RecursionError) as e:
            return [
                ValidationIssue(
                    path="",
                    kind=IssueKind.TYPE_MISMATCH,
                    message=f"Request body is not valid JSON: {e}",
                    location="body",
                )
            ]

        return _with_location(validate(value, body.schema), "body")

    def select_response(self, operation: Operation) -> tuple[int, ResponseSpec | None]:
        """
        Choose the status code and the declared response used for the body.

        A configured status override always sets the status; when the
        operation does not declare it, the body comes from the first
        2xx/`default` response instead.
        """
        responses = operation.responses
        override = self.config.status_code

        if override is not None:
            spec = responses.get(str(override))
            if spec is None:
                _, spec = self._success_response(responses)
            return override, spec

        return self._success_response(responses)

    @staticmethod
    def _success_response(
        responses: dict[str, ResponseSpec],
    ) -> tuple[int, ResponseSpec | None]:
        for key, spec in responses.items():
            code = status_from_key(key)
            if code is not None and 200 <= code < 300:
                return code, spec
        if "default" in responses:
            return FALLBACK_STATUS, responses["default"]
        return FALLBACK_STATUS, None

    def generate_response(
        self, status: int, spec: ResponseSpec | None, seed: int | str | None = None
    ) -> MockResponse:
        """Generate body and headers for the chosen response."""
        if spec is None:
            return MockResponse(
                status_code=status,
                body=SCHEMA_NOT_FOUND_BODY,
                headers=dict(self.config.headers),
            )

        ctx = self.generator.new_context(seed)
        body = self.generator.generate(spec.schema, ctx=ctx) if spec.schema is not None else None

        headers: dict[str, str] = {}
        for name, schema in spec.headers.items():
            value = _header_value(self.generator.generate(schema, name, ctx))
            if value is not None:
                headers[name] = value
        headers.update(self.config.headers)

        return MockResponse(
            status_code=status,
            body=body,
            headers=headers,
            media_type=spec.content_type,
        )
