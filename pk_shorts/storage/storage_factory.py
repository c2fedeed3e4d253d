"""
Storage factory – switch storage backend from config (lazy env version)
======================================================================

This module centralizes selection of the storage backend so the rest of
the app can stay ignorant of where the bucket lives.

- Reads environment **at call time** to avoid stale values in tests.
- Imports the PostgreSQL backend **only if** "postgres" is selected.

Environment variables
---------------------
- PK_SHORTS_STORAGE_BACKEND: "file" (default), "memory" or "postgres"
- PK_SHORTS_DB_PATH:         bucket file if backend=="file"
- PK_SHORTS_DB_DSN:          DSN string if backend=="postgres"
- PK_SHORTS_BUCKET:          bucket name (all backends)
- PK_SHORTS_LOCK_TIMEOUT:    write-lock wait in seconds (all backends)
"""

import logging
import os
from typing import Optional

from ..config import DEFAULT_BACKEND, DEFAULT_BUCKET, DEFAULT_DB_PATH, DEFAULT_LOCK_TIMEOUT, env_float
from .base import BaseStorage
from .file_storage import FileStorage
from .link_store import LinkStore
from .storage import MemoryStorage

log = logging.getLogger(__name__)


def get_storage(backend: Optional[str] = None, **kwargs) -> BaseStorage:
    """
    Return a BaseStorage backend based on configuration.

    Parameters
    ----------
    backend : str, optional
        "file", "memory" or "postgres". If omitted, reads PK_SHORTS_STORAGE_BACKEND.
    kwargs : dict
        Overrides for path=..., dsn=..., bucket=..., lock_timeout=...

    Raises
    ------
    ValueError
        Unknown backend, missing DSN, or invalid bucket name.
    StorageError
        The backend could not be opened.
    """
    be = (backend or os.getenv("PK_SHORTS_STORAGE_BACKEND", DEFAULT_BACKEND)).strip().lower()
    bucket = kwargs.get("bucket") or os.getenv("PK_SHORTS_BUCKET", DEFAULT_BUCKET)
    lock_timeout = kwargs.get("lock_timeout") or env_float("PK_SHORTS_LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT)

    log.info("Selected storage backend: %r", be)

    if be == "memory":
        return MemoryStorage(bucket=bucket, lock_timeout=lock_timeout)

    if be == "file":
        path = kwargs.get("path") or os.getenv("PK_SHORTS_DB_PATH", DEFAULT_DB_PATH)
        return FileStorage(path, bucket=bucket, lock_timeout=lock_timeout)

    if be == "postgres":
        dsn = kwargs.get("dsn") or os.getenv("PK_SHORTS_DB_DSN", "")
        if not dsn:
            raise ValueError("DB_DSN is required for postgres backend (env PK_SHORTS_DB_DSN)")
        # Local import to avoid hard dependency when not using postgres
        from .db_storage import DBStorage
        return DBStorage(dsn=dsn, bucket=bucket, lock_timeout=lock_timeout)

    raise ValueError(f"Unknown storage backend: {be!r}")


def open_link_store(backend: Optional[str] = None, **kwargs) -> LinkStore:
    """Build a LinkStore over the configured backend."""
    return LinkStore(get_storage(backend, **kwargs))
