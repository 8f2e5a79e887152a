"""Tests for the HTTP endpoints exposing the registry cache."""

import pytest
from fastapi.testclient import TestClient

from buildpack_registry.core.dependencies import get_registry_cache
from buildpack_registry.main import app

from conftest import DIGEST, REGISTRY_URL, make_buildpack, write_buildpacks


@pytest.fixture
def client(cache):
    app.dependency_overrides[get_registry_cache] = lambda: cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_resolve_highest_version(client):
    response = client.get("/registry/buildpacks/example/java")

    assert response.status_code == 200
    assert response.json() == {
        "ns": "example",
        "name": "java",
        "version": "2.1.0",
        "yanked": False,
        "addr": f"example.com/example/java@{DIGEST}",
    }


def test_resolve_exact_version(client):
    response = client.get("/registry/buildpacks/example/java", params={"version": "1.9.9"})

    assert response.status_code == 200
    assert response.json()["version"] == "1.9.9"


def test_resolve_unknown_version(client):
    response = client.get("/registry/buildpacks/example/java", params={"version": "9.9.9"})

    assert response.status_code == 404
    assert response.json()["detail"] == {
        "kind": "not_found",
        "message": "could not find version for buildpack: example/java@9.9.9",
    }


def test_resolve_unknown_buildpack(client):
    response = client.get("/registry/buildpacks/example/ruby")

    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "not_found"


def test_resolve_rejects_mutable_address(remote_tree, client):
    tagged = make_buildpack("3.0.0").model_copy(update={"address": "example.com/example/java:3.0.0"})
    write_buildpacks(remote_tree, [make_buildpack("1.0.0"), tagged])

    response = client.get("/registry/buildpacks/example/java")

    assert response.status_code == 422
    assert response.json()["detail"]["kind"] == "validation"


def test_resolve_reports_upstream_failures(client, fake_scm):
    fake_scm.clone_error = RuntimeError("network unreachable")

    response = client.get("/registry/buildpacks/example/java")

    assert response.status_code == 502
    detail = response.json()["detail"]
    assert detail["kind"] == "creation"
    assert detail["message"].startswith("refreshing cache: could not create registry cache")


def test_list_versions_in_index_order(client):
    response = client.get("/registry/buildpacks/example/java/versions")

    assert response.status_code == 200
    assert [bp["version"] for bp in response.json()["Data"]] == ["1.0.0", "2.1.0", "1.9.9"]


def test_list_versions_rejects_invalid_name(client):
    response = client.get("/registry/buildpacks/example/ja@va/versions")

    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == "parse"


def test_refresh(client, cache, fake_scm):
    response = client.post("/registry/refresh")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "root": str(cache.root), "url": REGISTRY_URL}
    assert fake_scm.clone_calls == 1
