"""
Value types shared by the example store, classifier and persistence layer.
"""

from typing import Dict, List, Optional
import numpy as np
from dataclasses import dataclass, field


# label -> ordered list of embeddings
ClassifierState = Dict[int, List[np.ndarray]]

# label -> ordered list of image source references
PreviewRecord = Dict[int, List[str]]

# label -> number of examples
Counts = Dict[int, int]


@dataclass
class Prediction:
    """Result of scoring one query embedding."""

    label: int
    """Predicted class id (argmax confidence, lowest id on ties)"""

    confidences: Dict[int, float]
    """Per-label confidence over labels with at least one example"""

    class_name: str = ""
    """Human readable name of the predicted class"""

    @property
    def confidence(self) -> float:
        return self.confidences[self.label]


@dataclass
class LoadedSnapshot:
    """Persisted training state; a field is None when absent or undecodable."""

    dataset: Optional[ClassifierState] = None
    previews: Optional[PreviewRecord] = None
    counts: Optional[Counts] = None

    def is_empty(self) -> bool:
        return self.dataset is None and self.previews is None and self.counts is None


@dataclass
class TrainingReport:
    """Outcome of one training upload batch."""

    label: int
    added: int = 0
    skipped: int = 0
    saved: bool = False
    status: str = ""
    errors: List[str] = field(default_factory=list)
