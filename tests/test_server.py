"""Tests for the FastAPI surface."""

import pytest
from fastapi.testclient import TestClient

from spit.handler import MockResponse
from spit.server import build_handler, create_app, to_http_response
from spit.settings import MockConfig, Settings


DOCUMENT = {
    "openapi": "3.0.0",
    "info": {"title": "Users", "version": "2.0.0"},
    "servers": [{"url": "/api"}],
    "paths": {
        "/users/{id}": {
            "get": {
                "parameters": [
                    {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}}
                ],
                "responses": {
                    "200": {
                        "description": "A user",
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "object",
                                    "required": ["id", "email"],
                                    "properties": {
                                        "id": {"type": "integer"},
                                        "email": {"type": "string", "format": "email"},
                                    },
                                }
                            }
                        },
                    }
                },
            },
            "delete": {"responses": {"204": {"description": "Deleted"}}},
        },
        "/docs": {
            "get": {
                "responses": {
                    "200": {
                        "description": "Mocked docs page",
                        "content": {"text/plain": {"schema": {"type": "string", "enum": ["hello"]}}},
                    }
                }
            }
        },
    },
}


@pytest.fixture
def client():
    handler = build_handler(DOCUMENT, MockConfig(headers={"X-Mock": "spit"}), Settings())
    return TestClient(create_app(handler))


class TestMockApp:
    """Tests for the catch-all route."""

    def test_get_user(self, client):
        response = client.get("/users/5")
        assert response.status_code == 200
        body = response.json()
        assert isinstance(body["id"], int)
        assert "@" in body["email"]
        assert response.headers["x-mock"] == "spit"

    def test_base_path_prefix(self, client):
        assert client.get("/api/users/5").status_code == 200

    def test_validation_error(self, client):
        response = client.get("/users/abc")
        assert response.status_code == 400
        issue = response.json()["issues"][0]
        assert issue["path"] == "id"
        assert issue["kind"] == "type-mismatch"

    def test_not_found(self, client):
        assert client.get("/nothing").status_code == 404

    def test_method_not_allowed(self, client):
        response = client.post("/users/5")
        assert response.status_code == 405
        assert response.json()["allowed_methods"] == ["GET", "DELETE"]

    def test_empty_body(self, client):
        response = client.delete("/users/5")
        assert response.status_code == 204
        assert response.content == b""

    def test_framework_docs_routes_are_disabled(self, client):
        """Test that /docs reaches the mocked operation instead of framework docs."""
        response = client.get("/docs")
        assert response.status_code == 200
        assert response.text == "hello"
        assert response.headers["content-type"].startswith("text/plain")


def test_to_http_response_json_for_wildcard_media_type():
    response = to_http_response(MockResponse(status_code=200, body="x", media_type="*/*"))
    assert response.body == b'"x"'
    assert response.media_type == "application/json"


def test_build_handler_uses_settings():
    handler = build_handler(DOCUMENT, settings=Settings(max_depth=3, optional_probability=0.0))
    assert handler.generator.max_depth == 3
    assert handler.generator.optional_probability == 0.0
    assert len(handler.index) == 3
