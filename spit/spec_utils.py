"""
Utilities for loading OpenAPI/Swagger documents from URLs or local files.
"""

import json
import logging
from pathlib import Path
from typing import Any

import httpx
import yaml


logger = logging.getLogger(__name__)


class SpecLoadError(Exception):
    """Raised when an OpenAPI document cannot be fetched or parsed."""


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def parse_document_text(text: str, hint: str = "") -> dict[str, Any]:
    """
    Parse an OpenAPI document given as JSON or YAML text.

    Args:
        text: The raw document
        hint: File name or URL, used to prefer YAML for .yaml/.yml sources

    Returns:
        The document as a dictionary

    Raises:
        SpecLoadError: If the text is neither valid JSON nor YAML, or is not a mapping
    """
    prefer_yaml = hint.lower().split("?")[0].endswith((".yaml", ".yml"))

    try:
        if prefer_yaml:
            document = yaml.safe_load(text)
        else:
            try:
                document = json.loads(text)
            except json.JSONDecodeError:
                # YAML is a superset of JSON; many specs are served as YAML without a hint
                document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Cannot parse OpenAPI document {hint or '<text>'}: {e}") from e

    if not isinstance(document, dict):
        raise SpecLoadError(f"OpenAPI document {hint or '<text>'} is not a mapping")
    if "paths" not in document:
        logger.warning("Document %s declares no paths", hint or "<text>")
    return document


async def fetch_document(url: str, http_client: httpx.AsyncClient | None = None) -> dict[str, Any]:
    """
    Fetch an OpenAPI document over HTTP.

    Args:
        url: URL of the document
        http_client: Optional HTTP client (will create one if not provided)

    Returns:
        The parsed document
    """

    async def _fetch(client: httpx.AsyncClient) -> dict[str, Any]:
        try:
            response = await client.get(url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SpecLoadError(f"Failed to fetch OpenAPI document from {url}: {e}") from e

        content_type = response.headers.get("content-type", "")
        hint = url if "yaml" not in content_type else f"{url}.yaml"
        return parse_document_text(response.text, hint)

    if http_client:
        return await _fetch(http_client)
    async with httpx.AsyncClient() as client:
        return await _fetch(client)


def read_document(path: str | Path) -> dict[str, Any]:
    """Read and parse an OpenAPI document from disk."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SpecLoadError(f"Cannot read OpenAPI document {path}: {e}") from e
    return parse_document_text(text, path.name)


async def load_document(
    source: str, http_client: httpx.AsyncClient | None = None
) -> dict[str, Any]:
    """
    Load an OpenAPI document from a URL (http/https) or a local file path.

    Args:
        source: URL or file path
        http_client: Optional HTTP client for URL sources

    Returns:
        The parsed document
    """
    if is_url(source):
        logger.info("Fetching OpenAPI document from %s", source)
        return await fetch_document(source, http_client)

    logger.info("Reading OpenAPI document from %s", source)
    return read_document(source)
