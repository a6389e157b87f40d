"""
Load-at-startup and save-after-mutation of training state.

The snapshot lives under three independent keys. Writes are sequential and
not atomic across keys: a failure on a later key can leave earlier keys
written. Storing a single combined snapshot under one key would restore
all-or-nothing saves.
"""

import asyncio
from typing import Any, Callable

from . import codec
from .config import DATASET_KEY, PREVIEWS_KEY, COUNTS_KEY
from .db import IKeyValueStorage
from .errors import CorruptData, StorageUnavailable
from ..vector.types import ClassifierState, Counts, LoadedSnapshot, PreviewRecord
from ..util.logging import logger


class PersistenceGateway:
    """Orchestrates snapshot reads and writes against the key-value storage."""

    def __init__(self, storage: IKeyValueStorage):
        self.storage = storage
        # Serializes saves and clears issued from this process
        self._write_lock = asyncio.Lock()

    @property
    def save_in_progress(self) -> bool:
        return self._write_lock.locked()

    async def open(self) -> None:
        await self.storage.open()
        logger.log_storage_operation("open", status="success", details={
            "store": self.storage.store_name,
            "schema_version": self.storage.schema_version
        })

    async def save_all(self, dataset: ClassifierState, previews: PreviewRecord, counts: Counts) -> None:
        """
        Encode and write the dataset, previews and counts, in that order.

        An overlapping call waits for the in-flight one to finish first.

        Raises:
            StorageUnavailable: writing any of the keys failed
        """
        entries = [
            (DATASET_KEY, codec.dumps(codec.encode(dataset))),
            (PREVIEWS_KEY, codec.dumps(codec.encode_previews(previews))),
            (COUNTS_KEY, codec.dumps(codec.encode_counts(counts))),
        ]

        async with self._write_lock:
            for key, value in entries:
                try:
                    await self.storage.put(key, value)
                except StorageUnavailable as e:
                    logger.log_storage_operation("put", key, "failed", {"error": str(e)[:100]})
                    raise StorageUnavailable(f"Saving '{key}' failed: {e}", key=key) from e
            logger.log_storage_operation("save_all", status="success", details={
                "labels": sorted(dataset),
                "examples": sum(len(v) for v in dataset.values())
            })

    async def _load_field(self, key: str, decoder: Callable[[Any], Any]):
        raw = await self.storage.get(key)
        if raw is None:
            return None
        try:
            return decoder(codec.loads(raw))
        except CorruptData as e:
            logger.log_codec_failure(key, e)
            return None

    async def load_all(self) -> LoadedSnapshot:
        """
        Read and decode all three keys.

        Absent keys and keys that fail to decode come back as None.

        Raises:
            StorageUnavailable: the storage itself could not be read
        """
        snapshot = LoadedSnapshot(
            dataset=await self._load_field(DATASET_KEY, codec.decode),
            previews=await self._load_field(PREVIEWS_KEY, codec.decode_previews),
            counts=await self._load_field(COUNTS_KEY, codec.decode_counts),
        )
        logger.log_storage_operation("load_all", status="success", details={
            "dataset": snapshot.dataset is not None,
            "previews": snapshot.previews is not None,
            "counts": snapshot.counts is not None
        })
        return snapshot

    async def clear_all(self) -> None:
        """Delete all persisted keys. Safe to call repeatedly."""
        async with self._write_lock:
            await self.storage.clear()
        logger.log_storage_operation("clear_all", status="success")
