"""
Error taxonomy for training-set management, classification and persistence.
"""


class LeafKNNError(Exception):
    """Base exception for leafknn operations."""
    pass


class DimensionMismatch(LeafKNNError, ValueError):
    """Embedding length differs from the dimensionality already in the store."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Embedding dimension {actual} does not match expected dimension {expected}")


class NotTrained(LeafKNNError):
    """Prediction requested before any class has examples."""

    def __init__(self, message: str = "Please train the classifier with at least one class first"):
        super().__init__(message)


class CorruptData(LeafKNNError):
    """Persisted data could not be decoded."""
    pass


class StorageUnavailable(LeafKNNError):
    """The key-value storage could not be opened, read or written."""

    def __init__(self, message: str, key: str = None):
        self.key = key
        super().__init__(message)
