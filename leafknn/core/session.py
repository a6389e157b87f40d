"""
Training session: ties image decoding, feature extraction, the example store,
the classifier and persistence into the upload / predict / clear flow.
"""

import asyncio
from typing import Dict, Iterable, List, Optional

from .config import CLASS_NAMES, TRAIN_LAYER, QUERY_LAYER, KNN_K
from .errors import DimensionMismatch, NotTrained, StorageUnavailable
from .persistence import PersistenceGateway
from ..vector.classifier import KNNClassifier
from ..vector.embeddings import IFeatureExtractor
from ..vector.example_store import ExampleStore
from ..vector.images import read_image, to_data_url
from ..vector.types import Counts, LoadedSnapshot, Prediction, PreviewRecord, TrainingReport
from ..util.logging import logger

STATUS_LOADING = "Loading Model..."
STATUS_READY = "Model Loaded. Ready to train."
STATUS_RESTORED = "Restored saved training data. Ready to train or predict."
STATUS_NEW_SESSION = "Storage unavailable. Starting a new session."
STATUS_PROCESSING = "Processing images..."
STATUS_UPDATED = "Model Updated!"
STATUS_NOT_SAVED = "Model Updated, but data not saved."
STATUS_NOTHING_ADDED = "No images could be added."
STATUS_CLEARED = "All training data cleared."
STATUS_CLEAR_FAILED = "Training data cleared in this session, but stored data could not be removed."


class TrainingSession:
    """
    One user's training session.

    The counts shown to the UI are always derived from the example store.
    Preview references are kept index-aligned with the store's examples.
    """

    def __init__(self, extractor: IFeatureExtractor, gateway: PersistenceGateway,
                 class_names: List[str] = None, k: int = KNN_K):
        self.class_names = list(class_names or CLASS_NAMES)
        self.extractor = extractor
        self.gateway = gateway
        self.store = ExampleStore(range(len(self.class_names)))
        self.classifier = KNNClassifier(self.store, k=k)
        self._previews: PreviewRecord = {label: [] for label in self.store.class_ids}
        self._mutation_lock = asyncio.Lock()
        self.status = STATUS_LOADING
        self.storage_available = False

    def _embed(self, data: bytes, layer: Optional[str]):
        image = read_image(data)
        return image, self.extractor.infer(image, layer)

    @property
    def counts(self) -> Counts:
        return self.store.counts()

    @property
    def previews(self) -> PreviewRecord:
        return {label: list(refs) for label, refs in self._previews.items()}

    def snapshot(self) -> Dict[str, object]:
        """State handed to the UI for rendering."""
        return {"counts": self.counts, "previews": self.previews}

    async def start(self) -> LoadedSnapshot:
        """Open storage and restore any saved training data."""
        try:
            await self.gateway.open()
            loaded = await self.gateway.load_all()
        except StorageUnavailable as e:
            logger.warning(f"Could not load saved training data: {e}")
            self.storage_available = False
            self.status = STATUS_NEW_SESSION
            return LoadedSnapshot()

        self.storage_available = True
        self._restore(loaded)
        self.status = STATUS_RESTORED if self.store.num_examples() else STATUS_READY
        return loaded

    def _restore(self, loaded: LoadedSnapshot) -> None:
        if loaded.dataset is not None:
            try:
                self.store.set_dataset(loaded.dataset)
            except (DimensionMismatch, ValueError) as e:
                logger.log_codec_failure("classifier_dataset", e)
                self.store.clear_all()

        counts = self.counts
        if loaded.counts is not None and {label: loaded.counts.get(label, 0) for label in counts} != counts:
            logger.warning(f"Stored counts {loaded.counts} disagree with dataset {counts}; using dataset")

        previews = loaded.previews or {}
        for label in self.store.class_ids:
            refs = list(previews.get(label, []))[:counts[label]]
            if len(refs) != counts[label]:
                logger.warning(f"Preview list for label {label} has {len(refs)} entries, expected {counts[label]}")
                refs += [""] * (counts[label] - len(refs))
            self._previews[label] = refs

    def _check_label(self, label: int) -> None:
        if label not in self.store.class_ids:
            raise ValueError(f"Unknown label {label}; expected one of {list(self.store.class_ids)}")

    async def train(self, label: int, uploads: Iterable[bytes]) -> TrainingReport:
        """
        Add a batch of uploaded images to one class.

        Files are processed strictly one after another, each extracted in a
        worker thread. A file that cannot be decoded, that the extractor
        rejects, or whose embedding has the wrong dimensionality is skipped.
        The whole batch is saved once at the end.
        """
        self._check_label(label)
        report = TrainingReport(label=label)

        async with self._mutation_lock:
            self.status = STATUS_PROCESSING
            for index, data in enumerate(uploads):
                try:
                    image, embedding = await asyncio.to_thread(self._embed, data, TRAIN_LAYER)
                    self.store.add_example(label, embedding)
                except ValueError as e:
                    report.skipped += 1
                    report.errors.append(f"file {index}: {e}")
                    logger.log_operation("training.add_example", "skipped", {"label": label, "file": index, "error": str(e)[:100]})
                    continue
                self._previews[label].append(to_data_url(data, image))
                report.added += 1

            if report.added == 0:
                self.status = STATUS_NOTHING_ADDED
            else:
                report.saved = await self._save()
                self.status = STATUS_UPDATED if report.saved else STATUS_NOT_SAVED

        report.status = self.status
        logger.log_training_batch(label, report.added, report.skipped, report.saved)
        return report

    async def _save(self) -> bool:
        try:
            await self.gateway.save_all(self.store.get_dataset(), self.previews, self.counts)
        except StorageUnavailable as e:
            logger.error(f"Training data not saved: {e}")
            return False
        return True

    def predict(self, data: bytes, k: Optional[int] = None) -> Prediction:
        """
        Classify an uploaded image.

        Raises:
            NotTrained: no class has examples yet
            ImageDecodeError: the upload is not an image
        """
        if self.store.num_classes() == 0:
            raise NotTrained()

        _, embedding = self._embed(data, QUERY_LAYER)
        prediction = self.classifier.predict(embedding, k=k)
        prediction.class_name = self.class_names[prediction.label]
        return prediction

    async def clear(self) -> bool:
        """Remove all examples, previews and persisted data."""
        async with self._mutation_lock:
            self.store.clear_all()
            self._previews = {label: [] for label in self.store.class_ids}
            try:
                await self.gateway.clear_all()
            except StorageUnavailable as e:
                logger.error(f"Stored training data not cleared: {e}")
                self.status = STATUS_CLEAR_FAILED
                return False
            self.status = STATUS_CLEARED
            return True
