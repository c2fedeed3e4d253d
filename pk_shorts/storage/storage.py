"""
Storage module for pk-shorts (in-memory implementation).

Responsibilities:
    - Hold one bucket of identifier -> bytes in process memory
    - Serialize write transactions behind a single writer lock
    - Serve readers from a snapshot copy so they never wait on a writer

Design:
    - Writes go to a pending overlay and only touch the shared dict on
      commit, so an exception inside update() leaves the bucket untouched.
    - It is intentionally simple to keep unit tests fast and deterministic.
      The default backend is the SQLite file store (`file_storage.py`).
"""

import contextlib
import threading
from typing import Dict, Iterator, List, Optional, Tuple

from ..config import DEFAULT_BUCKET, DEFAULT_LOCK_TIMEOUT
from ..errors import StorageTimeoutError
from .base import BaseStorage, BucketTransaction

_DELETED = object()


class _SnapshotTransaction(BucketTransaction):
    writable = False

    def __init__(self, snapshot: Dict[str, bytes]):
        self._snapshot = snapshot

    def get(self, key: str) -> Optional[bytes]:
        return self._snapshot.get(key)

    def put(self, key: str, value: bytes) -> None:
        self._check_writable()

    def delete(self, key: str) -> None:
        self._check_writable()

    def items(self) -> List[Tuple[str, bytes]]:
        return sorted(self._snapshot.items())


class _WriteTransaction(BucketTransaction):
    writable = True

    def __init__(self, data: Dict[str, bytes]):
        self._data = data
        self.pending: Dict[str, object] = {}

    def get(self, key: str) -> Optional[bytes]:
        if key in self.pending:
            value = self.pending[key]
            return None if value is _DELETED else value  # type: ignore[return-value]
        return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        self.pending[key] = bytes(value)

    def delete(self, key: str) -> None:
        self.pending[key] = _DELETED

    def items(self) -> List[Tuple[str, bytes]]:
        merged = dict(self._data)
        for key, value in self.pending.items():
            if value is _DELETED:
                merged.pop(key, None)
            else:
                merged[key] = value  # type: ignore[assignment]
        return sorted(merged.items())


class MemoryStorage(BaseStorage):
    def __init__(self, bucket: str = DEFAULT_BUCKET, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        """
        Initialize an empty bucket.

        Internal schema:
            self._data = {identifier: serialized_record_bytes}
        """
        super().__init__(bucket=bucket, lock_timeout=lock_timeout)
        self._data: Dict[str, bytes] = {}
        self._write_lock = threading.Lock()
        # guards _data while a commit is applied or a snapshot is taken
        self._state_lock = threading.Lock()

    @contextlib.contextmanager
    def view(self) -> Iterator[BucketTransaction]:
        with self._state_lock:
            snapshot = dict(self._data)
        yield _SnapshotTransaction(snapshot)

    @contextlib.contextmanager
    def update(self) -> Iterator[BucketTransaction]:
        if not self._write_lock.acquire(timeout=self.lock_timeout):
            raise StorageTimeoutError(
                f"timed out after {self.lock_timeout}s waiting for the write lock on {self.bucket!r}"
            )
        try:
            tx = _WriteTransaction(self._data)
            yield tx
            with self._state_lock:
                for key, value in tx.pending.items():
                    if value is _DELETED:
                        self._data.pop(key, None)
                    else:
                        self._data[key] = value  # type: ignore[assignment]
        finally:
            self._write_lock.release()
