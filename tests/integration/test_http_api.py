"""
Integration tests for the HTTP layer (main.create_app) over a SQLite bucket.

Covers:
    - create (generated, secure, custom), conflicts and validation errors
    - redirect with click counting, unknown identifiers
    - list and delete endpoints
    - opaque 500s for storage failures
"""

from fastapi.testclient import TestClient

from main import create_app
from pk_shorts.errors import StorageError
from pk_shorts.manager.link_manager import LinkManager


def _create(client, **body):
    return client.post("/sui/api/create", json=body)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_create_generated(client):
    response = _create(client, url="example.com")
    data = response.json()

    assert response.status_code == 200
    assert len(data["short"]) == 8
    assert data["original"] == "https://example.com"
    assert data["secure"] is False
    assert data["short_url"].endswith(f"/s/{data['short']}")


def test_create_secure(client):
    data = _create(client, url="https://example.com", secure=True).json()
    assert len(data["short"]) == 16
    assert data["secure"] is True


def test_create_custom_then_conflict(client):
    first = _create(client, url="https://one.example", custom_id="my-link")
    assert first.status_code == 200
    assert first.json()["short"] == "my-link"

    second = _create(client, url="https://two.example", custom_id="my-link")
    assert second.status_code == 409
    assert "already exists" in second.json()["detail"]


def test_create_invalid_custom_id(client):
    response = _create(client, url="https://example.com", custom_id="admin")
    assert response.status_code == 400
    assert "reserved" in response.json()["detail"]


def test_create_missing_url(client):
    response = _create(client, url="  ")
    assert response.status_code == 400
    assert response.json()["detail"] == "URL is required"


def test_redirect_counts_clicks(client):
    short = _create(client, url="https://example.com/target").json()["short"]

    for _ in range(3):
        response = client.get(f"/s/{short}", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "https://example.com/target"

    links = client.get("/sui/api/list").json()
    assert [(link["short"], link["clicks"]) for link in links] == [(short, 3)]


def test_redirect_unknown(client):
    assert client.get("/s/nothing-here", follow_redirects=False).status_code == 404


def test_list_payload(client):
    for url in ("https://a.example", "https://b.example", "https://c.example"):
        _create(client, url=url)
    links = client.get("/sui/api/list").json()
    assert len(links) == 3
    assert {link["original"] for link in links} == {"https://a.example", "https://b.example", "https://c.example"}
    assert all(set(link) == {"short", "original", "created_at", "clicks"} for link in links)


def test_delete_then_not_found(client):
    short = _create(client, url="https://example.com").json()["short"]

    response = client.delete(f"/sui/api/delete/{short}")
    assert response.status_code == 200
    assert response.json() == {"status": "deleted", "short": short}

    again = client.delete(f"/sui/api/delete/{short}")
    assert again.status_code == 404
    assert again.json()["detail"] == "Link not found"
    assert client.get(f"/s/{short}", follow_redirects=False).status_code == 404


class _BrokenStore:
    def create(self, destination, requested):
        raise StorageError("disk full at /var/lib/links.db")

    def list_all(self):
        raise StorageError("disk full")

    def get(self, identifier):
        raise StorageError("disk full")

    def close(self):
        pass


def test_storage_failures_are_opaque():
    client = TestClient(create_app(LinkManager(_BrokenStore())))

    created = _create(client, url="https://example.com")
    assert created.status_code == 500
    assert created.json()["detail"] == "Failed to create short link"

    assert client.get("/sui/api/list").status_code == 500
    assert client.get("/s/abc", follow_redirects=False).status_code == 500
