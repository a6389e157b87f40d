"""
k-nearest-neighbor classifier over an ExampleStore using cosine similarity.
"""

from typing import Dict, Optional
import numpy as np

from .buffers import BufferScope
from .example_store import ExampleStore
from .types import Prediction
from ..core.config import KNN_K, CLASS_NAMES, get_class_name
from ..core.errors import DimensionMismatch, NotTrained
from ..util.logging import logger


def _normalize_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    # Zero vectors stay zero and score 0 against everything
    norms[norms == 0] = 1.0
    return matrix / norms


class KNNClassifier:
    """Answers "which class does this embedding belong to" for an ExampleStore."""

    def __init__(self, store: ExampleStore, k: int = KNN_K):
        if k < 1:
            raise ValueError("k must be >= 1")
        self.store = store
        self.k = k

    def num_classes(self) -> int:
        return self.store.num_classes()

    def predict(self, query_embedding, k: Optional[int] = None) -> Prediction:
        """
        Score a query embedding against every stored example.

        The min(k, total examples) most similar examples vote. Each label with
        at least one example gets votes / effective k, so confidences sum to 1.
        The predicted label is the argmax, lowest label id on ties.

        Raises:
            NotTrained: no class has examples yet
            DimensionMismatch: query length differs from the stored embeddings
        """
        if self.store.num_classes() == 0:
            raise NotTrained()

        k = self.k if k is None else k
        if k < 1:
            raise ValueError("k must be >= 1")

        with BufferScope("predict") as scope:
            query = scope.keep(np.asarray(query_embedding, dtype=np.float64).reshape(-1))
            if query.shape[0] != self.store.dimension:
                raise DimensionMismatch(self.store.dimension, query.shape[0])

            examples = self.store.examples()
            labels = scope.keep(np.array([label for label, _ in examples], dtype=np.int64))
            matrix = scope.keep(np.vstack([vector for _, vector in examples]).astype(np.float64))
            normalized = scope.keep(_normalize_rows(matrix))

            norm = np.linalg.norm(query)
            normalized_query = scope.keep(query / norm if norm > 0 else query)
            similarities = scope.keep(normalized @ normalized_query)

            # Stable sort keeps label/insertion order among equal similarities
            order = scope.keep(np.argsort(-similarities, kind="stable"))
            top_k = min(k, len(examples))
            neighbor_labels = labels[order[:top_k]]

            votes: Dict[int, int] = {label: 0 for label in self.store.labels()}
            for label in neighbor_labels:
                votes[int(label)] += 1

        confidences = {label: count / top_k for label, count in votes.items()}
        best_label = min(confidences, key=lambda label: (-confidences[label], label))

        logger.log_prediction(best_label, confidences[best_label], top_k, len(examples))

        class_name = get_class_name(best_label) if best_label < len(CLASS_NAMES) else str(best_label)
        return Prediction(label=best_label, confidences=confidences, class_name=class_name)
