"""Tests for tenant resolution and per-tenant storage."""

import pytest
from fastapi.testclient import TestClient

from ruleengine.core.config import get_settings
from ruleengine.core.database import get_engine, reset_engines
from ruleengine.core.errors import ValidationError
from ruleengine.core.tenancy import DEFAULT_TENANT, resolve_tenant
from ruleengine.main import app


class TestResolveTenant:
    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_default(self, raw):
        """A missing or blank header means the default tenant."""
        assert resolve_tenant(raw) == DEFAULT_TENANT

    def test_trimmed(self):
        """Surrounding whitespace is ignored."""
        assert resolve_tenant("  acme-01 ") == "acme-01"

    def test_invalid(self):
        """Characters outside letters, digits, dash and underscore are refused."""
        with pytest.raises(ValidationError):
            resolve_tenant("acme/../other")


@pytest.fixture
def tenant_client(tmp_path, monkeypatch):
    """A client whose storage is routed by X-Tenant-ID to one SQLite file per tenant."""
    monkeypatch.setenv("MULTI_TENANT_ENABLED", "true")
    monkeypatch.setenv("TENANT_DATABASE_URL", f"sqlite:///{tmp_path}/tenant_{{tenant}}.db")
    get_settings.cache_clear()
    reset_engines()
    app.dependency_overrides.clear()
    yield TestClient(app)
    reset_engines()
    get_settings.cache_clear()


class TestMultiTenantStorage:
    def test_engines_are_per_tenant(self, tenant_client):
        """Each tenant gets its own cached engine."""
        assert get_engine("acme") is get_engine("acme")
        assert get_engine("acme") is not get_engine("globex")

    def test_data_is_isolated(self, tenant_client: TestClient, person_json_schema):
        """A schema created by one tenant is invisible to another."""
        acme = {"X-Tenant-ID": "acme"}
        globex = {"X-Tenant-ID": "globex"}
        response = tenant_client.post(
            "/api/schemas/import/json-schema/content",
            json={"name": "Person", "content": person_json_schema},
            headers=acme,
        )
        assert response.status_code == 201
        schema_id = response.json()["id"]

        assert [s["name"] for s in tenant_client.get("/api/schemas", headers=acme).json()] == ["Person"]
        assert tenant_client.get("/api/schemas", headers=globex).json() == []
        assert tenant_client.get(f"/api/schemas/{schema_id}", headers=globex).status_code == 404

    def test_rules_execute_within_tenant(self, tenant_client: TestClient, person_json_schema, rule_payload):
        """Execution only sees the calling tenant's rules."""
        acme = {"X-Tenant-ID": "acme"}
        schema_id = tenant_client.post(
            "/api/schemas/import/json-schema/content",
            json={"name": "Person", "content": person_json_schema},
            headers=acme,
        ).json()["id"]
        payload = rule_payload(
            schema_id,
            name="Adults",
            conditions=[{"fact": "age", "operator": "greaterThanOrEquals", "value": 18}],
            actions=[{"type": "MODIFY", "targetField": "adult", "value": True}],
        )
        assert tenant_client.post("/api/rules", json=payload, headers=acme).status_code == 201

        body = {"schemaId": schema_id, "facts": [{"age": 30}]}
        data = tenant_client.post("/api/rules/execute", json=body, headers=acme).json()
        assert data["resultFacts"] == [{"age": 30, "adult": True}]
        response = tenant_client.post("/api/rules/execute", json=body, headers={"X-Tenant-ID": "globex"})
        assert response.status_code == 404
