"""
Tests for snapshot save/load through the persistence gateway.
"""

import asyncio
import pytest
import numpy as np

from leafknn.core import codec
from leafknn.core.config import DATASET_KEY, PREVIEWS_KEY, COUNTS_KEY
from leafknn.core.db import InMemoryKeyValueStorage, SQLiteKeyValueStorage
from leafknn.core.errors import StorageUnavailable
from leafknn.core.persistence import PersistenceGateway


class FailingStorage(InMemoryKeyValueStorage):
    """Raises on put for selected keys."""

    def __init__(self, fail_keys=()):
        super().__init__()
        self.fail_keys = set(fail_keys)

    async def put(self, key, value):
        if key in self.fail_keys:
            raise StorageUnavailable(f"disk full while writing {key}", key=key)
        await super().put(key, value)


class RecordingStorage(InMemoryKeyValueStorage):
    """Yields to the event loop on every put and records write order."""

    def __init__(self):
        super().__init__()
        self.writes = []

    async def put(self, key, value):
        self.writes.append((key, value))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        await super().put(key, value)


def _state(seed=0, counts=(2, 1, 0), dim=10):
    rng = np.random.default_rng(seed)
    dataset = {label: [rng.normal(size=dim).astype(np.float32) for _ in range(n)]
               for label, n in enumerate(counts) if n}
    previews = {label: [f"data:image/png;base64,{label}-{i}" for i in range(n)]
                for label, n in enumerate(counts)}
    return dataset, previews, dict(enumerate(counts))


def test_save_then_load_round_trip():
    dataset, previews, counts = _state()

    async def scenario():
        gateway = PersistenceGateway(InMemoryKeyValueStorage())
        await gateway.open()
        await gateway.save_all(dataset, previews, counts)
        return await gateway.load_all()

    loaded = asyncio.run(scenario())

    assert loaded.counts == counts
    assert loaded.previews == previews
    assert list(loaded.dataset) == [0, 1]
    for label in dataset:
        for got, want in zip(loaded.dataset[label], dataset[label]):
            assert got.tobytes() == want.tobytes()


def test_save_then_load_sqlite(tmp_path):
    dataset, previews, counts = _state(seed=5)
    db_path = str(tmp_path / "gateway.db")

    async def save():
        gateway = PersistenceGateway(SQLiteKeyValueStorage(db_path))
        await gateway.open()
        await gateway.save_all(dataset, previews, counts)

    async def load():
        gateway = PersistenceGateway(SQLiteKeyValueStorage(db_path))
        await gateway.open()
        return await gateway.load_all()

    asyncio.run(save())
    loaded = asyncio.run(load())

    assert loaded.counts == counts
    assert len(loaded.dataset[0]) == 2


def test_load_first_run_all_absent():
    async def scenario():
        gateway = PersistenceGateway(InMemoryKeyValueStorage())
        await gateway.open()
        return await gateway.load_all()

    loaded = asyncio.run(scenario())

    assert loaded.dataset is None
    assert loaded.previews is None
    assert loaded.counts is None
    assert loaded.is_empty()


def test_clear_then_load_all_absent():
    dataset, previews, counts = _state()

    async def scenario():
        gateway = PersistenceGateway(InMemoryKeyValueStorage())
        await gateway.open()
        await gateway.save_all(dataset, previews, counts)
        await gateway.clear_all()
        await gateway.clear_all()
        return await gateway.load_all()

    assert asyncio.run(scenario()).is_empty()


def test_corrupt_dataset_degrades_to_absent():
    """A bad buffer length drops only the dataset field."""
    dataset, previews, counts = _state()
    storage = InMemoryKeyValueStorage()

    async def scenario():
        gateway = PersistenceGateway(storage)
        await gateway.open()
        await gateway.save_all(dataset, previews, counts)

        encoded = codec.encode(dataset)
        encoded["0"]["shape"] = [3, 10]
        await storage.put(DATASET_KEY, codec.dumps(encoded))
        return await gateway.load_all()

    loaded = asyncio.run(scenario())

    assert loaded.dataset is None
    assert loaded.previews == previews
    assert loaded.counts == counts


def test_invalid_json_degrades_each_field():
    storage = InMemoryKeyValueStorage()

    async def scenario():
        gateway = PersistenceGateway(storage)
        await gateway.open()
        await storage.put(DATASET_KEY, "{broken")
        await storage.put(PREVIEWS_KEY, "[1, 2]")
        await storage.put(COUNTS_KEY, '{"0": 4}')
        return await gateway.load_all()

    loaded = asyncio.run(scenario())

    assert loaded.dataset is None
    assert loaded.previews is None
    assert loaded.counts == {0: 4}


def test_infinite_shape_degrades_dataset_to_absent():
    dataset, previews, counts = _state()
    storage = InMemoryKeyValueStorage()

    async def scenario():
        gateway = PersistenceGateway(storage)
        await gateway.open()
        await gateway.save_all(dataset, previews, counts)
        await storage.put(DATASET_KEY, '{"0": {"shape": [Infinity, 2], "dtype": "<f4", "data": ""}}')
        return await gateway.load_all()

    loaded = asyncio.run(scenario())

    assert loaded.dataset is None
    assert loaded.previews == previews
    assert loaded.counts == counts


def test_save_failure_reports_key_and_leaves_earlier_writes():
    dataset, previews, counts = _state()
    storage = FailingStorage(fail_keys={PREVIEWS_KEY})

    async def scenario():
        gateway = PersistenceGateway(storage)
        await gateway.open()
        with pytest.raises(StorageUnavailable) as exc_info:
            await gateway.save_all(dataset, previews, counts)
        assert not gateway.save_in_progress
        return exc_info.value

    error = asyncio.run(scenario())

    assert error.key == PREVIEWS_KEY
    # No cross-key atomicity: the dataset written before the failure remains
    assert storage.keys() == [DATASET_KEY]


def test_load_storage_failure_propagates():
    async def scenario():
        gateway = PersistenceGateway(InMemoryKeyValueStorage())
        # Never opened
        await gateway.load_all()

    with pytest.raises(StorageUnavailable):
        asyncio.run(scenario())


def test_overlapping_saves_do_not_interleave():
    first = _state(seed=1)
    second = _state(seed=2, counts=(1, 1, 1))
    storage = RecordingStorage()

    async def scenario():
        gateway = PersistenceGateway(storage)
        await gateway.open()
        await asyncio.gather(gateway.save_all(*first), gateway.save_all(*second))
        return await gateway.load_all()

    loaded = asyncio.run(scenario())

    keys = [key for key, _ in storage.writes]
    assert keys == [DATASET_KEY, PREVIEWS_KEY, COUNTS_KEY] * 2
    expected_first = codec.dumps(codec.encode_counts(first[2]))
    expected_second = codec.dumps(codec.encode_counts(second[2]))
    assert storage.writes[2][1] == expected_first
    assert storage.writes[5][1] == expected_second
    # The later save wins
    assert loaded.counts == second[2]


def test_clear_waits_for_in_flight_save():
    dataset, previews, counts = _state()
    storage = RecordingStorage()

    async def scenario():
        gateway = PersistenceGateway(storage)
        await gateway.open()
        await asyncio.gather(gateway.save_all(dataset, previews, counts), gateway.clear_all())
        return await gateway.load_all()

    assert asyncio.run(scenario()).is_empty()
