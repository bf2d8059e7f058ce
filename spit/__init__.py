"""spit: mock HTTP server generating schema-conformant responses from OpenAPI documents."""

__version__ = "0.1.0"

from spit.generator import MockDataGenerator
from spit.handler import MockHandler, MockRequest, MockResponse
from spit.operations import OperationIndex
from spit.patterns import PatternRegistry
from spit.resolver import RefResolver, SchemaGraph
from spit.schema import parse_schema
from spit.validator import IssueKind, SchemaValidator, ValidationIssue, validate

__all__ = [
    "IssueKind",
    "MockDataGenerator",
    "MockHandler",
    "MockRequest",
    "MockResponse",
    "OperationIndex",
    "PatternRegistry",
    "RefResolver",
    "SchemaGraph",
    "SchemaValidator",
    "ValidationIssue",
    "parse_schema",
    "validate",
]
