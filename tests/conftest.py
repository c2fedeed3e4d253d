"""
Global pytest fixtures for the pk-shorts test suite.

Responsibilities:
    - Provide isolated storage backends (in-memory and SQLite file in tmp_path)
    - Provide a LinkStore parametrized over both backends
    - Provide a LinkManager and a FastAPI TestClient wired to a fresh store

Why inject the manager into create_app?
    Each test gets its own bucket, eliminating cross-test state and keeping
    links.db out of the working directory.
"""

import pytest
from fastapi.testclient import TestClient

from main import create_app
from pk_shorts.manager.link_manager import LinkManager
from pk_shorts.storage.file_storage import FileStorage
from pk_shorts.storage.link_store import LinkStore
from pk_shorts.storage.storage import MemoryStorage


@pytest.fixture(params=["memory", "file"])
def storage(request, tmp_path):
    """Every backend that can run without external services."""
    if request.param == "memory":
        return MemoryStorage(lock_timeout=10)
    return FileStorage(tmp_path / "links.db", lock_timeout=10)


@pytest.fixture
def store(storage) -> LinkStore:
    return LinkStore(storage)


@pytest.fixture
def manager(store: LinkStore) -> LinkManager:
    return LinkManager(store)


@pytest.fixture
def client(tmp_path) -> TestClient:
    """Fresh app over a file bucket in tmp_path."""
    app = create_app(LinkManager(LinkStore(FileStorage(tmp_path / "links.db"))))
    return TestClient(app)
