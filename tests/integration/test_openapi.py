"""
Integration tests for OpenAPI documentation.

Verifies OpenAPI schema is correctly generated for all endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from src.api.main import app

V1_OPERATIONS = [
    ("/v1/auth/register", "post"),
    ("/v1/auth/login", "post"),
    ("/v1/auth/logout", "post"),
    ("/v1/auth/verify", "get"),
    ("/v1/auth/forgot-password", "post"),
    ("/v1/auth/reset-password", "post"),
    ("/v1/users/me", "get"),
    ("/v1/users", "get"),
    ("/v1/users/me/name", "put"),
    ("/v1/users/me/password", "put"),
    ("/v1/users/{account_id}/role", "put"),
]


@pytest.fixture
def client() -> TestClient:
    """Create test client for the application (lifespan not started)."""
    return TestClient(app)


@pytest.fixture
def schema(client: TestClient) -> dict:
    response = client.get("/openapi.json")
    assert response.status_code == 200
    return response.json()


class TestOpenAPISchema:
    """Tests for OpenAPI schema generation."""

    def test_openapi_title_and_description(self, schema: dict) -> None:
        assert schema["info"]["title"] == "accountcore"
        assert "token lifecycle" in schema["info"]["description"]
        assert schema["info"]["version"] == "0.1.0"

    @pytest.mark.parametrize(("path", "method"), V1_OPERATIONS)
    def test_v1_endpoint_documented_and_tagged(self, schema: dict, path: str, method: str) -> None:
        operation = schema["paths"][path][method]
        assert "v1" in operation.get("tags", [])
        assert operation["summary"]

    def test_register_summary(self, schema: dict) -> None:
        register = schema["paths"]["/v1/auth/register"]["post"]
        assert register["summary"] == "Register a new account"

    def test_register_request_schema(self, schema: dict) -> None:
        """RegisterUserDto documents all four registration fields."""
        props = schema["components"]["schemas"]["RegisterUserDto"]["properties"]
        assert set(props) == {"name", "email", "password", "password_confirm"}

    def test_verify_takes_token_query_parameter(self, schema: dict) -> None:
        parameters = schema["paths"]["/v1/auth/verify"]["get"]["parameters"]
        assert [(p["name"], p["in"]) for p in parameters] == [("token", "query")]

    def test_v1_tag_in_schema(self, schema: dict) -> None:
        tag_names = [t["name"] for t in schema.get("tags", [])]
        assert "v1" in tag_names


class TestSwaggerUI:
    """Tests for Swagger UI availability."""

    def test_docs_endpoint_accessible(self, client: TestClient) -> None:
        """Swagger UI is accessible at /docs."""
        response = client.get("/docs")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "swagger" in response.text.lower()

    def test_redoc_endpoint_accessible(self, client: TestClient) -> None:
        """ReDoc is accessible at /redoc."""
        response = client.get("/redoc")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "redoc" in response.text.lower()
