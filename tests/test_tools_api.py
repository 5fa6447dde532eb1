"""Tests for the FastAPI tool surface."""
import pytest
from fastapi.testclient import TestClient

from ecosystems_lookup.core.dependencies import get_resolver
from ecosystems_lookup.core.errors import api_error
from ecosystems_lookup.main import app
from ecosystems_lookup.services.resolver import PackageResolver


@pytest.fixture
def client_for():
    """Build a TestClient whose resolver uses the given store and fake API client."""

    def _build(store, api_client) -> TestClient:
        resolver = PackageResolver(store, api_client)
        app.dependency_overrides[get_resolver] = lambda: resolver
        return TestClient(app)

    yield _build
    app.dependency_overrides.clear()


def test_get_package_local(client_for, store, fake_client):
    response = client_for(store, fake_client).get("/tools/packages/npm/lodash")

    assert response.status_code == 200
    body = response.json()
    assert body["source"] == "local"
    assert body["package"]["name"] == "lodash"
    assert fake_client.calls == []


def test_scoped_name_in_path(client_for, empty_store, make_client):
    api = make_client({"registries/npmjs.org/packages/%40babel%2Fcore": {"name": "@babel/core"}})
    response = client_for(empty_store, api).get("/tools/packages/npm/@babel/core")

    assert response.status_code == 200
    assert response.json()["package"]["name"] == "@babel/core"


@pytest.mark.parametrize("last_segment", ["versions", "advisories", "repository", "dependents"])
def test_scoped_name_ending_in_sub_resource_word(client_for, empty_store, make_client, last_segment):
    name = f"@scope/{last_segment}"
    api = make_client({f"registries/npmjs.org/packages/%40scope%2F{last_segment}": {"name": name}})
    response = client_for(empty_store, api).get(f"/tools/packages/npm/{name}")

    assert response.status_code == 200
    assert response.json()["package"]["name"] == name
    assert api.calls == [(f"registries/npmjs.org/packages/%40scope%2F{last_segment}", None)]


def test_scoped_name_versions(client_for, empty_store, make_client):
    api = make_client({"registries/npmjs.org/packages/%40babel%2Fcore/versions": [{"number": "7.0.0"}]})
    response = client_for(empty_store, api).get("/tools/versions/npm/@babel/core")

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "@babel/core"
    assert [v["number"] for v in body["versions"]] == ["7.0.0"]


def test_unknown_ecosystem_is_400(client_for, store, fake_client):
    response = client_for(store, fake_client).get("/tools/packages/nonsense/thing")

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "INVALID_ECOSYSTEM"
    assert body["error"]["retryable"] is False
    assert body["text"].startswith("[INVALID_ECOSYSTEM] Unknown ecosystem: nonsense")


def test_lookup_requires_an_identifier(client_for, store, fake_client):
    response = client_for(store, fake_client).get("/tools/lookup")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_INPUT"


def test_lookup_by_purl(client_for, store, fake_client):
    response = client_for(store, fake_client).get("/tools/lookup", params={"purl": "pkg:npm/lodash@4.17.21"})

    assert response.status_code == 200
    assert response.json()["source"] == "local"


def test_empty_repository_lookup_is_not_found(client_for, store, make_client):
    api = make_client({"packages/lookup": []})
    response = client_for(store, api).get(
        "/tools/lookup", params={"repository_url": "https://github.com/nobody/nothing"}
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "PACKAGE_NOT_FOUND"


def test_upstream_failure_is_retryable(client_for, store, make_client):
    api = make_client(error=api_error(503, "Service Unavailable", "https://x.test"))
    response = client_for(store, api).get("/tools/packages/npm/left-pad")

    assert response.status_code == 502
    body = response.json()
    assert body["error"]["retryable"] is True
    assert body["text"].endswith("- may retry")


def test_versions(client_for, store, fake_client):
    response = client_for(store, fake_client).get("/tools/versions/npm/lodash")

    assert response.status_code == 200
    body = response.json()
    assert body["source"] == "local"
    assert body["versions"][0]["number"] == "4.17.21"


def test_dependents_pagination_bounds(client_for, store, fake_client):
    response = client_for(store, fake_client).get(
        "/tools/dependents/npm/lodash", params={"per_page": 500}
    )
    assert response.status_code == 422


def test_search(client_for, store, fake_client):
    response = client_for(store, fake_client).get("/tools/search", params={"q": "better-sqlite3"})

    assert response.status_code == 200
    body = response.json()
    assert body["database_loaded"] is True
    assert [r["name"] for r in body["results"]] == ["better-sqlite3"]


def test_search_without_database(client_for, empty_store, fake_client):
    response = client_for(empty_store, fake_client).get("/tools/search", params={"q": "lodash"})

    assert response.status_code == 200
    assert response.json()["database_loaded"] is False


def test_database_info(client_for, store, fake_client):
    body = client_for(store, fake_client).get("/tools/database").json()
    assert body["loaded"] is True
    assert body["total_packages"] == 3


def test_health(client_for, store, fake_client):
    response = client_for(store, fake_client).get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "HEALTHY"
