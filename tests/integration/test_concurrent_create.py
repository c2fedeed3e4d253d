"""
Concurrent creation against a shared bucket.

Many threads hammer one LinkStore (and, for the file backend, several
LinkStore instances over the same file, as separate workers would). Every
create must land under a distinct identifier and nothing may be lost.
"""

import random
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from pk_shorts.errors import AlreadyExistsError
from pk_shorts.manager.identifiers import BaseStrategy, Custom, Generated, IdentifierGenerator, Strength
from pk_shorts.storage.file_storage import FileStorage
from pk_shorts.storage.link_store import LinkStore

WORKERS = 8
PER_WORKER = 25


class SmallSpaceStrategy(BaseStrategy):
    """Draws from only a few hundred identifiers so collisions are frequent."""

    def __init__(self):
        self._rng = random.Random()
        self._lock = threading.Lock()

    def generate(self) -> str:
        with self._lock:
            return f"id{self._rng.randrange(400):03d}"


def _run_creates(stores, strength):
    def work(worker):
        store = stores[worker % len(stores)]
        return [store.create(f"https://example.com/{worker}/{i}", Generated(strength)) for i in range(PER_WORKER)]

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(work, range(WORKERS)))
    return [short for batch in results for short in batch]


@pytest.mark.parametrize("strength", [Strength.STANDARD, Strength.SECURE])
def test_concurrent_generated_ids_are_distinct(store, strength):
    ids = _run_creates([store], strength)
    assert len(ids) == WORKERS * PER_WORKER
    assert len(set(ids)) == len(ids)
    assert len(store.list_all()) == len(ids)


def test_concurrent_creates_with_forced_collisions(storage):
    store = LinkStore(storage, generator=IdentifierGenerator({Strength.STANDARD: SmallSpaceStrategy()}))
    ids = _run_creates([store], Strength.STANDARD)
    assert len(set(ids)) == len(ids) == WORKERS * PER_WORKER
    stored = {link.identifier: link.destination for link in store.list_all()}
    assert set(stored) == set(ids)


def test_separate_handles_on_one_file(tmp_path):
    path = tmp_path / "links.db"
    generator = IdentifierGenerator({Strength.STANDARD: SmallSpaceStrategy()})
    stores = [LinkStore(FileStorage(path, lock_timeout=10), generator=generator) for _ in range(3)]

    ids = _run_creates(stores, Strength.STANDARD)
    assert len(set(ids)) == len(ids) == WORKERS * PER_WORKER
    assert len(stores[0].list_all()) == len(ids)


def test_concurrent_same_custom_id_single_winner(store):
    barrier = threading.Barrier(WORKERS)

    def attempt(worker):
        barrier.wait()
        try:
            store.create(f"https://example.com/{worker}", Custom("contested"))
            return "won"
        except AlreadyExistsError:
            return "lost"

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        outcomes = list(pool.map(attempt, range(WORKERS)))

    assert outcomes.count("won") == 1
    assert outcomes.count("lost") == WORKERS - 1


def test_concurrent_clicks_are_not_lost(store):
    short = store.create("https://example.com", Generated())

    def click(_):
        for _ in range(PER_WORKER):
            store.increment_clicks(short)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        list(pool.map(click, range(WORKERS)))

    assert store.get_link(short).click_count == WORKERS * PER_WORKER
