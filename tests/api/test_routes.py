"""Tests for the HTTP API."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from varref.api.dependencies import get_registry, get_translator
from varref.api.v1.routes import variables
from varref.core.identifiers.translator import IdentifierTranslator
from varref.core.registry.cache import VariableRegistry
from varref.main import app


@pytest.fixture
def client(registry):
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_translator] = lambda: IdentifierTranslator(registry)
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestServiceEndpoints:
    """Test root, health and lifespan wiring."""

    def test_health(self, client) -> None:
        """Test the health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_root(self, client) -> None:
        """Test the root endpoint reports the version."""
        assert client.get("/").json()["version"] == "0.1.0"

    def test_lifespan_creates_registry(self) -> None:
        """Test startup stores a registry and translator on app.state."""
        with TestClient(app) as test_client:
            assert test_client.get("/health").status_code == 200
            assert isinstance(app.state.registry, VariableRegistry)
            assert app.state.translator.registry is app.state.registry

    def test_missing_registry_is_503(self) -> None:
        """Test routes fail cleanly before the registry exists."""
        bare = FastAPI()
        bare.include_router(variables.router, prefix="/api/v1")
        response = TestClient(bare).get("/api/v1/variables")
        assert response.status_code == 503


class TestVariableRoutes:
    """Test catalog and identifier endpoints."""

    def test_list_variables(self, client) -> None:
        """Test the registry contents are listed."""
        body = client.get("/api/v1/variables").json()
        assert body["total"] == 5
        assert body["last_error"] is None
        first = body["variables"][0]
        assert (first["id"], first["field"], first["type"]) == ("abc123", "name", "npc")

    def test_clear_cache(self, client, registry) -> None:
        """Test the cache can be invalidated over HTTP."""
        response = client.post("/api/v1/variables/cache/clear")
        assert response.json() == {"entries_dropped": 5, "action": "clear_all"}
        assert not registry.is_loaded

    def test_parse_identifiers(self, client) -> None:
        """Test glued identifiers are separated and both reported."""
        body = client.post(
            "/api/v1/identifiers/parse", json={"text": "@云透.name@gv_abc123_age"}
        ).json()
        assert body["text"] == "@云透.name @gv_abc123_age"
        kinds = [(i["kind"], i["match"]) for i in body["identifiers"]]
        assert kinds == [("display", "@云透.name"), ("system", "@gv_abc123_age")]

    def test_system_form(self, client) -> None:
        """Test display identifiers are rewritten to system form."""
        body = client.post("/api/v1/identifiers/system-form", json={"text": "@npc.name"}).json()
        assert body == {"text": "@gv_abc123_name", "changed": True}

    def test_display_form(self, client) -> None:
        """Test system identifiers are rewritten to display form."""
        body = client.post(
            "/api/v1/identifiers/display-form", json={"text": "@gv_abc123_name"}
        ).json()
        assert body == {"text": "@npc.name#abc1", "changed": True}

    def test_unchanged_text(self, client) -> None:
        """Test changed is false when nothing resolves."""
        body = client.post(
            "/api/v1/identifiers/system-form", json={"text": "@ghost.field"}
        ).json()
        assert body["changed"] is False


class TestContentRoutes:
    """Test content conversion and resolution endpoints."""

    def test_render(self, client) -> None:
        """Test raw text is rendered into a content triple."""
        body = client.post("/api/v1/content/render", json={"raw_text": "hi @gv_abc123_name"}).json()
        assert body["raw_text"] == "hi @gv_abc123_name"
        assert body["plain_text"] == "hi @npc.name#abc1"
        assert 'class="variable-tag"' in body["html"]

    def test_render_markup(self, client) -> None:
        """Test HTML input is parsed when flagged as markup."""
        body = client.post(
            "/api/v1/content/render", json={"raw_text": "<p>hi @npc.name</p>", "markup": True}
        ).json()
        assert body["raw_text"] == "hi @npc.name"
        assert body["html"].count("<p>") == 1

    def test_extract(self, client) -> None:
        """Test HTML is converted back to raw and plain text."""
        html = '<p>a</p><p><span data-variable data-identifier="@npc.name">小明</span></p>'
        body = client.post("/api/v1/content/extract", json={"html": html}).json()
        assert body["raw_text"] == "a\n@npc.name"
        assert body["plain_text"] == "a\n小明"
        assert body["html"] == html

    def test_resolve(self, client) -> None:
        """Test values are substituted and unresolved identifiers reported."""
        body = client.post(
            "/api/v1/content/resolve", json={"text": "@npc.name 和 @ghost.x"}
        ).json()
        assert body == {"text": "小明 和 @ghost.x", "unresolved": ["@ghost.x"]}

    def test_resolve_with_refresh(self, client, catalog) -> None:
        """Test refresh refetches the catalog before resolving."""
        response = client.post(
            "/api/v1/content/resolve", json={"text": "@gv_abc123_age", "refresh": True}
        )
        assert response.json()["text"] == "18"
        assert catalog.fetch_count == 2

    def test_invalid_body(self, client) -> None:
        """Test malformed requests are rejected."""
        response = client.post("/api/v1/content/resolve", json={"text": ["not", "text"]})
        assert response.status_code == 422
