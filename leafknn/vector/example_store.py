"""
In-memory accumulator of labelled training embeddings.
"""

from typing import Dict, Iterable, List, Optional, Tuple
import numpy as np

from .types import ClassifierState, Counts
from ..core.config import CLASS_IDS
from ..core.errors import DimensionMismatch


class ExampleStore:
    """Maps class label -> ordered list of embeddings.

    All embeddings held by one store share a single dimensionality,
    regardless of label. Insertion order is kept per label.
    """

    def __init__(self, class_ids: Iterable[int] = CLASS_IDS):
        self.class_ids = tuple(class_ids)
        self._examples: Dict[int, List[np.ndarray]] = {}
        self._dimension: Optional[int] = None

    @property
    def dimension(self) -> Optional[int]:
        """Store-wide embedding dimensionality, None while empty."""
        return self._dimension

    def _check_label(self, label: int) -> int:
        if isinstance(label, bool) or not isinstance(label, (int, np.integer)):
            raise ValueError(f"Label must be an int, got {type(label).__name__}")
        label = int(label)
        if label not in self.class_ids:
            raise ValueError(f"Unknown label {label}; expected one of {list(self.class_ids)}")
        return label

    @staticmethod
    def _as_embedding(embedding) -> np.ndarray:
        vector = np.array(embedding, copy=True)
        if vector.ndim != 1 or vector.shape[0] == 0:
            raise ValueError(f"Embedding must be a non-empty 1-D vector, got shape {vector.shape}")
        if not np.issubdtype(vector.dtype, np.floating):
            vector = vector.astype(np.float32)
        vector.flags.writeable = False
        return vector

    def add_example(self, label: int, embedding) -> None:
        """Append an embedding to a label's sequence."""
        label = self._check_label(label)
        vector = self._as_embedding(embedding)

        if self._dimension is not None and vector.shape[0] != self._dimension:
            raise DimensionMismatch(self._dimension, vector.shape[0])

        self._examples.setdefault(label, []).append(vector)
        self._dimension = vector.shape[0]

    def num_classes(self) -> int:
        """Count of labels with at least one example."""
        return sum(1 for vectors in self._examples.values() if vectors)

    def num_examples(self) -> int:
        return sum(len(vectors) for vectors in self._examples.values())

    def counts(self) -> Counts:
        """Per-label example counts for every known class id."""
        return {label: len(self._examples.get(label, [])) for label in self.class_ids}

    def labels(self) -> List[int]:
        """Labels with at least one example, ascending."""
        return sorted(label for label, vectors in self._examples.items() if vectors)

    def examples(self) -> List[Tuple[int, np.ndarray]]:
        """All (label, embedding) pairs, ascending label then insertion order."""
        return [(label, vector) for label in self.labels() for vector in self._examples[label]]

    def clear_all(self) -> None:
        """Remove all examples for all labels."""
        self._examples.clear()
        self._dimension = None

    def get_dataset(self) -> ClassifierState:
        """Export the full state. Lists are copies; embeddings are read-only."""
        return {label: list(vectors) for label, vectors in self._examples.items() if vectors}

    def set_dataset(self, state: ClassifierState) -> None:
        """Replace the current state with the given one (no merge)."""
        examples: Dict[int, List[np.ndarray]] = {}
        dimension = None

        for label in sorted(state):
            checked = self._check_label(label)
            vectors = [self._as_embedding(v) for v in state[label]]
            for vector in vectors:
                if dimension is None:
                    dimension = vector.shape[0]
                elif vector.shape[0] != dimension:
                    raise DimensionMismatch(dimension, vector.shape[0])
            if vectors:
                examples[checked] = vectors

        self._examples = examples
        self._dimension = dimension

    def __len__(self) -> int:
        return self.num_examples()
