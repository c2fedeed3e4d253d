"""
Base storage interface for pk-shorts.

Purpose:
    Define the transactional single-bucket contract that every backend
    (in-memory, SQLite file, PostgreSQL) implements, so LinkStore can hold
    its read-check-write sequences without knowing where bytes live.

Contract:
    - `update()` opens a write transaction. Backends serialize write
      transactions (one writer at a time), wait at most `lock_timeout`
      seconds for their turn, and raise StorageTimeoutError otherwise.
      Leaving the block normally commits; an exception rolls back and
      propagates.
    - `view()` opens a read-only transaction over a consistent snapshot.
      Readers never wait for a writer to finish.
    - Keys are identifier strings; values are opaque bytes.

Testing & Coverage:
    These are abstract methods and are not executed directly in tests.
    We annotate them with `# pragma: no cover` so coverage tools don't
    penalize the project for un-runnable abstract declarations.
"""

import re
from abc import ABC, abstractmethod
from typing import ContextManager, List, Optional, Tuple

from ..config import DEFAULT_BUCKET, DEFAULT_LOCK_TIMEOUT
from ..errors import StorageError

_BUCKET_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def validate_bucket_name(bucket: str) -> str:
    """
    Bucket names become table names in the SQL backends.

    Raises:
        ValueError: If the name is not a plain identifier.
    """
    if not _BUCKET_PATTERN.fullmatch(bucket or ""):
        raise ValueError(f"Invalid bucket name: {bucket!r}")
    return bucket


class BucketTransaction(ABC):
    """Operations available inside a view() or update() block."""

    writable: bool = False

    @abstractmethod  # pragma: no cover
    def get(self, key: str) -> Optional[bytes]:
        """Return the value stored under `key`, or None."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def put(self, key: str, value: bytes) -> None:
        """Insert or replace the value under `key`."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def delete(self, key: str) -> None:
        """Remove `key` if present."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def items(self) -> List[Tuple[str, bytes]]:
        """Return every (key, value) pair in ascending key order."""
        raise NotImplementedError

    def _check_writable(self) -> None:
        if not self.writable:
            raise StorageError("transaction is read-only")


class BaseStorage(ABC):
    """Abstract base class for single-bucket transactional backends."""

    def __init__(self, bucket: str = DEFAULT_BUCKET, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.bucket = validate_bucket_name(bucket)
        self.lock_timeout = lock_timeout

    @abstractmethod  # pragma: no cover
    def view(self) -> ContextManager[BucketTransaction]:
        """Open a read-only snapshot transaction."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def update(self) -> ContextManager[BucketTransaction]:
        """Open an exclusive write transaction."""
        raise NotImplementedError

    def close(self) -> None:
        """Release backend resources. Default: nothing to release."""
