"""
FileStorage – SQLite-backed bucket for pk-shorts
================================================

One database file holds one bucket: a two-column table keyed by identifier.
This is the default backend; it needs nothing beyond the file path.

Concurrency
-----------
- Write transactions start with `BEGIN IMMEDIATE`, which takes SQLite's
  reserved lock up front. Only one connection can hold it, so every
  read-check-write sequence in LinkStore runs alone.
- The database runs in WAL mode. A read transaction (`BEGIN` + SELECTs)
  sees the last committed state as of its first read and never waits
  for, or blocks, the writer.
- The connection's busy timeout is `lock_timeout`. A writer that cannot
  get the lock in time raises StorageTimeoutError.
- Each transaction opens and closes its own connection, so the store is
  safe to share across threads.

Example
-------
>>> storage = FileStorage("links.db")
>>> with storage.update() as tx:
...     tx.put("abc", b"{}")
>>> with storage.view() as tx:
...     tx.get("abc")
b'{}'
"""

import contextlib
import logging
import os
import sqlite3
from typing import Iterator, List, Optional, Tuple, Union

from ..config import DEFAULT_BUCKET, DEFAULT_DB_PATH, DEFAULT_LOCK_TIMEOUT
from ..errors import StorageError, StorageTimeoutError
from .base import BaseStorage, BucketTransaction

log = logging.getLogger(__name__)


def _is_lock_error(exc: sqlite3.Error) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


class _SQLiteTransaction(BucketTransaction):
    def __init__(self, con: sqlite3.Connection, table: str, writable: bool):
        self._con = con
        self._table = table
        self.writable = writable

    def get(self, key: str) -> Optional[bytes]:
        row = self._con.execute(f"SELECT value FROM {self._table} WHERE key = ?", (key,)).fetchone()
        return bytes(row[0]) if row else None

    def put(self, key: str, value: bytes) -> None:
        self._check_writable()
        self._con.execute(
            f"INSERT INTO {self._table} (key, value) VALUES (?, ?) "
            "ON CONFLICT (key) DO UPDATE SET value = excluded.value",
            (key, sqlite3.Binary(value)),
        )

    def delete(self, key: str) -> None:
        self._check_writable()
        self._con.execute(f"DELETE FROM {self._table} WHERE key = ?", (key,))

    def items(self) -> List[Tuple[str, bytes]]:
        rows = self._con.execute(f"SELECT key, value FROM {self._table} ORDER BY key").fetchall()
        return [(key, bytes(value)) for key, value in rows]


class FileStorage(BaseStorage):
    """SQLite file implementation of the single-bucket contract.

    Parameters
    ----------
    path : str or PathLike
        Database file; created if missing.
    bucket : str
        Table name holding the bucket.
    lock_timeout : float
        Seconds to wait for the write lock.

    Raises
    ------
    StorageError
        If the file cannot be opened or the bucket cannot be created.
    """

    def __init__(
        self,
        path: Union[str, "os.PathLike[str]"] = DEFAULT_DB_PATH,
        bucket: str = DEFAULT_BUCKET,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        super().__init__(bucket=bucket, lock_timeout=lock_timeout)
        self.path = os.fspath(path)
        self._table = f'"{self.bucket}"'
        self._initialize()

    # ---- Internal helpers -------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        try:
            # isolation_level=None: transactions are driven by explicit BEGIN/COMMIT below
            return sqlite3.connect(self.path, timeout=self.lock_timeout, isolation_level=None)
        except sqlite3.Error as exc:
            raise StorageError(f"cannot open bucket file {self.path!r}: {exc}") from exc

    def _initialize(self) -> None:
        con = self._connect()
        try:
            con.execute("PRAGMA journal_mode=WAL")
            con.execute(
                f"CREATE TABLE IF NOT EXISTS {self._table} "
                "(key TEXT PRIMARY KEY, value BLOB NOT NULL) WITHOUT ROWID"
            )
        except sqlite3.Error as exc:
            raise StorageError(f"cannot initialize bucket {self.bucket!r} in {self.path!r}: {exc}") from exc
        finally:
            con.close()
        log.info("Opened bucket %r in %s", self.bucket, self.path)

    @staticmethod
    def _rollback(con: sqlite3.Connection) -> None:
        if con.in_transaction:
            con.execute("ROLLBACK")

    @contextlib.contextmanager
    def _transaction(self, begin: str, writable: bool) -> Iterator[BucketTransaction]:
        con = self._connect()
        try:
            try:
                con.execute(begin)
            except sqlite3.Error as exc:
                if _is_lock_error(exc):
                    raise StorageTimeoutError(
                        f"timed out after {self.lock_timeout}s waiting for the write lock on {self.bucket!r}"
                    ) from exc
                raise StorageError(f"cannot begin transaction on {self.bucket!r}: {exc}") from exc

            try:
                yield _SQLiteTransaction(con, self._table, writable)
            except sqlite3.Error as exc:
                self._rollback(con)
                raise StorageError(f"bucket {self.bucket!r} operation failed: {exc}") from exc
            except BaseException:
                self._rollback(con)
                raise

            try:
                con.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback(con)
                if _is_lock_error(exc):
                    raise StorageTimeoutError(f"timed out committing to {self.bucket!r}") from exc
                raise StorageError(f"cannot commit to {self.bucket!r}: {exc}") from exc
        finally:
            con.close()

    # ---- Contract methods -------------------------------------------------

    def view(self) -> "contextlib.AbstractContextManager[BucketTransaction]":
        """Read-only snapshot transaction."""
        return self._transaction("BEGIN", writable=False)

    def update(self) -> "contextlib.AbstractContextManager[BucketTransaction]":
        """Exclusive write transaction; commits on clean exit."""
        return self._transaction("BEGIN IMMEDIATE", writable=True)
