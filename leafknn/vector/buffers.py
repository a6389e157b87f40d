"""
Scoped ownership of transient numeric buffers.

Feature extraction and scoring allocate large intermediate arrays. Every such
array is acquired through a BufferScope, which drops its references when the
scope exits, whether the computation succeeded or raised. The memory itself
is freed by reference counting once no local name still points at the array,
so callers keep transient arrays out of longer-lived objects.
"""

from typing import List
import numpy as np


class BufferScope:
    """Context manager that owns the transient arrays created inside it."""

    # Number of scopes currently open, process wide
    active_scopes = 0

    def __init__(self, name: str = "scope"):
        self.name = name
        self._buffers: List[np.ndarray] = []
        self.closed = False

    def __enter__(self) -> "BufferScope":
        BufferScope.active_scopes += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        BufferScope.active_scopes -= 1
        return False

    def keep(self, array: np.ndarray) -> np.ndarray:
        """Register an array so the scope drops it on exit."""
        if self.closed:
            raise RuntimeError(f"BufferScope '{self.name}' is already closed")
        self._buffers.append(array)
        return array

    @property
    def live_buffers(self) -> int:
        return len(self._buffers)

    @property
    def live_bytes(self) -> int:
        return sum(b.nbytes for b in self._buffers)

    def release(self) -> None:
        """Drop the scope's references; arrays nobody else holds are freed."""
        self._buffers.clear()
        self.closed = True
