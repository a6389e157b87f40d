"""
Serialization of training state to storage values and back.

Embeddings are flattened per label into one contiguous little-endian buffer
with a [count, dimension] shape descriptor, so values round-trip bit-exact
and in insertion order.
"""

import base64
import binascii
import json
from typing import Any, Dict
import numpy as np

from .errors import CorruptData
from ..vector.types import ClassifierState, Counts, PreviewRecord


def _label_key(label: Any) -> int:
    if isinstance(label, bool):
        raise CorruptData(f"Invalid label key: {label!r}")
    try:
        return int(label)
    except (TypeError, ValueError):
        raise CorruptData(f"Invalid label key: {label!r}")


def _require_mapping(form: Any, what: str) -> Dict[str, Any]:
    if not isinstance(form, dict):
        raise CorruptData(f"{what} must be a mapping, got {type(form).__name__}")
    return form


def encode(state: ClassifierState) -> Dict[str, Dict[str, Any]]:
    """Encode a classifier state into JSON-compatible per-label entries."""
    encoded = {}
    for label in sorted(state):
        vectors = state[label]
        if not vectors:
            continue
        matrix = np.stack([np.asarray(v) for v in vectors])
        dtype = matrix.dtype.newbyteorder("<")
        encoded[str(label)] = {
            "shape": [int(matrix.shape[0]), int(matrix.shape[1])],
            "dtype": dtype.str,
            "data": base64.b64encode(matrix.astype(dtype).tobytes()).decode("ascii"),
        }
    return encoded


def decode(form: Any) -> ClassifierState:
    """
    Rebuild a classifier state from its encoded form.

    Raises:
        CorruptData: malformed entry, or buffer length != count * dimension
    """
    form = _require_mapping(form, "classifier dataset")
    state: ClassifierState = {}

    for key, entry in form.items():
        label = _label_key(key)
        entry = _require_mapping(entry, f"dataset entry for label {label}")

        try:
            count, dimension = entry["shape"]
            count, dimension = int(count), int(dimension)
            dtype = np.dtype(entry["dtype"])
            raw = base64.b64decode(entry["data"], validate=True)
        except (KeyError, TypeError, ValueError, OverflowError, binascii.Error) as e:
            raise CorruptData(f"Malformed dataset entry for label {label}: {e}")

        if count < 0 or dimension < 1:
            raise CorruptData(f"Invalid shape [{count}, {dimension}] for label {label}")
        if dtype.kind != "f":
            raise CorruptData(f"Unsupported dtype {dtype.str} for label {label}")
        if len(raw) % dtype.itemsize != 0:
            raise CorruptData(f"Buffer for label {label} is not a whole number of {dtype.str} values")

        buffer = np.frombuffer(raw, dtype=dtype)
        if buffer.size != count * dimension:
            raise CorruptData(
                f"Buffer for label {label} holds {buffer.size} values, expected {count} x {dimension}"
            )

        matrix = buffer.reshape(count, dimension).astype(dtype.newbyteorder("="))
        if count:
            state[label] = [row.copy() for row in matrix]

    return dict(sorted(state.items()))


def encode_previews(previews: PreviewRecord) -> Dict[str, list]:
    return {str(label): list(refs) for label, refs in sorted(previews.items())}


def decode_previews(form: Any) -> PreviewRecord:
    form = _require_mapping(form, "preview record")
    previews: PreviewRecord = {}
    for key, refs in form.items():
        label = _label_key(key)
        if not isinstance(refs, list) or not all(isinstance(r, str) for r in refs):
            raise CorruptData(f"Previews for label {label} must be a list of strings")
        previews[label] = list(refs)
    return dict(sorted(previews.items()))


def encode_counts(counts: Counts) -> Dict[str, int]:
    return {str(label): int(count) for label, count in sorted(counts.items())}


def decode_counts(form: Any) -> Counts:
    form = _require_mapping(form, "counts")
    counts: Counts = {}
    for key, count in form.items():
        label = _label_key(key)
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise CorruptData(f"Count for label {label} must be a non-negative int, got {count!r}")
        counts[label] = count
    return dict(sorted(counts.items()))


def dumps(form: Any) -> str:
    """Serialize an encoded form to JSON text for text-valued storage."""
    return json.dumps(form, separators=(",", ":"))


def loads(text: str) -> Any:
    """Parse JSON text read from storage."""
    try:
        return json.loads(text)
    except (TypeError, ValueError, RecursionError) as e:
        raise CorruptData(f"Stored value is not valid JSON: {e}")
