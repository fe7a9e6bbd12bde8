"""Pytest fixtures for test suite."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from ruleengine.core.database import get_session
from ruleengine.main import app
from ruleengine.runtime.cache import reset_rule_cache
from ruleengine.schema_registry.model import SchemaModel
from ruleengine.storage import models  # noqa: F401  (registers tables)


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_rule_cache():
    """Every test starts with an empty compiled-rule cache."""
    reset_rule_cache()
    yield
    reset_rule_cache()


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(engine):
    def get_session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


# =============================================================================
# Schema Fixtures
# =============================================================================


@pytest.fixture
def order_json_schema() -> dict[str, Any]:
    """Order schema used by the end-to-end scenarios."""
    return {
        "type": "object",
        "properties": {
            "status": {"type": "string", "enum": ["PENDING", "SHIPPED", "CANCELLED"]},
            "total": {"type": "number"},
            "discount": {"type": "number"},
            "quantity": {"type": "integer"},
            "express": {"type": "boolean"},
            "orderDate": {"type": "string", "format": "date"},
            "tags": {"type": "array", "items": {"type": "string"}},
            "customer": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "email": {"type": "string"},
                    "tier": {"type": "string"},
                },
                "required": ["name"],
            },
        },
        "required": ["status", "total"],
    }


@pytest.fixture
def order_schema(order_json_schema: dict[str, Any]) -> SchemaModel:
    return SchemaModel.from_json_schema("Order", order_json_schema)


@pytest.fixture
def person_json_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "age": {"type": "integer"},
            "adult": {"type": "boolean"},
        },
        "required": ["age"],
    }


@pytest.fixture
def create_schema(client: TestClient):
    """Create a schema through the JSON Schema import endpoint; returns its id."""

    def _create(name: str, document: dict[str, Any]) -> int:
        response = client.post("/api/schemas/import/json-schema/content", json={"name": name, "content": document})
        assert response.status_code == 201, response.text
        return response.json()["id"]

    return _create


@pytest.fixture
def create_rule(client: TestClient):
    """Create a rule through the API; returns the response body."""

    def _create(**definition: Any) -> dict[str, Any]:
        response = client.post("/api/rules", json=definition)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


# =============================================================================
# Helpers
# =============================================================================


def rule_definition(
    schema_id: int = 1,
    name: str = "Test Rule",
    conditions: list[dict[str, Any]] | None = None,
    actions: list[dict[str, Any]] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a camelCase rule definition payload."""
    return {
        "name": name,
        "schemaId": schema_id,
        "conditions": {"operator": "all", "conditions": conditions or []},
        "actions": actions or [],
        **extra,
    }


@pytest.fixture
def rule_payload():
    """The :func:`rule_definition` builder, for tests that post rules."""
    return rule_definition
