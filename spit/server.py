"""
HTTP surface: a FastAPI application with one catch-all route that forwards
every request to a MockHandler.
"""

import json
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import Response

from spit import __version__
from spit.generator import MockDataGenerator
from spit.handler import MockHandler, MockRequest, MockResponse
from spit.logging_config import get_logger
from spit.operations import OperationIndex
from spit.resolver import RefResolver, SchemaGraph
from spit.settings import MockConfig, Settings


logger = get_logger(__name__)

MOCK_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def build_handler(
    document: dict[str, Any],
    config: MockConfig | None = None,
    settings: Settings | None = None,
) -> MockHandler:
    """
    Build the request handler for a parsed OpenAPI document.

    Resolves every operation up front and reports the ones that had to be
    excluded.

    Args:
        document: The parsed OpenAPI/Swagger document
        config: Mock configuration (defaults if omitted)
        settings: Process settings (defaults if omitted)

    Returns:
        A MockHandler ready to serve requests
    """
    config = config or MockConfig()
    settings = settings or Settings()

    resolver = RefResolver(SchemaGraph(document), max_depth=settings.max_depth)
    index = OperationIndex.build(document, resolver)

    logger.update(
        f"Indexed {len(index)} operation(s)"
        + (f" under base path {index.base_path}" if index.base_path else "")
    )
    for operation in index.operations:
        logger.info(f"  {operation.method:<7} {operation.path}")
    for problem in index.problems:
        logger.warning(f"  Excluded {problem.method} {problem.path}: {problem.message}")

    generator = MockDataGenerator(
        config.pattern_registry(),
        max_depth=settings.max_depth,
        optional_probability=settings.optional_probability,
    )
    return MockHandler(index, config, generator)


def _media_type(response: MockResponse) -> str:
    media = response.media_type.split(";")[0].strip().lower()
    if media in ("*/*", "") or media.endswith("json"):
        return "application/json"
    return response.media_type


def to_http_response(response: MockResponse) -> Response:
    """Render a MockResponse for the HTTP layer."""
    if response.body is None:
        return Response(status_code=response.status_code, headers=response.headers)

    media_type = _media_type(response)
    if media_type == "application/json" or not isinstance(response.body, str):
        content = json.dumps(response.body)
    else:
        content = response.body

    return Response(
        content=content,
        status_code=response.status_code,
        headers=response.headers,
        media_type=media_type,
    )


def create_app(handler: MockHandler) -> FastAPI:
    """
    Create the FastAPI application serving the mocked API.

    FastAPI's documentation routes are disabled so that every path belongs
    to the mocked API.
    """
    app = FastAPI(
        title="spit mock server",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.api_route("/{path:path}", methods=MOCK_METHODS)
    async def mock_request(request: Request, path: str):
        """Handle incoming requests and serve mock responses."""
        incoming = MockRequest(
            method=request.method,
            path=request.url.path,
            headers=dict(request.headers),
            query=dict(request.query_params),
            body=await request.body(),
        )
        response = await handler.handle(incoming)
        logger.update(f"{request.method} {request.url.path} -> {response.status_code}")
        return to_http_response(response)

    return app


async def serve(handler: MockHandler, host: str, port: int) -> None:
    """Run the mock server until interrupted."""
    app = create_app(handler)
    config = uvicorn.Config(app, host=host, port=port, log_config=None, access_log=False)
    server = uvicorn.Server(config)

    logger.update(f"Mock server listening on http://{host}:{port}")
    await server.serve()
