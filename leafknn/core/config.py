"""
Configuration for the local training store, the k-NN classifier and the
feature extractor. Everything is read from environment variables.
"""

import os
from pathlib import Path

# Storage configuration
DB_PATH = os.getenv("DB_PATH", "./data/leafknn.db")
STORE_NAME = os.getenv("STORE_NAME", "training_data")
STORAGE_PROVIDER = os.getenv("STORAGE_PROVIDER", "sqlite")  # sqlite|memory
SCHEMA_VERSION = 1

# Persisted snapshot keys
DATASET_KEY = "classifier_dataset"
PREVIEWS_KEY = "preview_images"
COUNTS_KEY = "counts"

# Debug flag
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Classifier configuration
KNN_K = int(os.getenv("KNN_K", "3"))
CLASS_NAMES = ["Healthy Plant", "Yellow Leaf Disease", "Brown Spot Disease"]
CLASS_IDS = tuple(range(len(CLASS_NAMES)))

# Feature extractor configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "histogram")  # histogram|hash|clip
HISTOGRAM_BINS = int(os.getenv("HISTOGRAM_BINS", "16"))
HASH_EMBED_DIM = int(os.getenv("HASH_EMBED_DIM", "384"))
CLIP_MODEL_NAME = os.getenv("CLIP_MODEL_NAME", "clip-ViT-B-32")

# Layer names requested from the extractor; None means the default embedding
TRAIN_LAYER = os.getenv("TRAIN_LAYER") or None
QUERY_LAYER = os.getenv("QUERY_LAYER") or None

# Version string
VERSION = "1.0.0"


def get_storage():
    """Get configured key-value storage implementation."""
    if STORAGE_PROVIDER == "memory":
        from .db import InMemoryKeyValueStorage
        return InMemoryKeyValueStorage(STORE_NAME)

    from .db import SQLiteKeyValueStorage
    ensure_db_directory()
    return SQLiteKeyValueStorage(DB_PATH, STORE_NAME)


def get_feature_extractor():
    """Get configured feature extractor implementation."""
    if EMBED_PROVIDER == "hash":
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=HASH_EMBED_DIM)
    elif EMBED_PROVIDER == "clip":
        from ..vector.embeddings import ClipImageEmbedding
        return ClipImageEmbedding(CLIP_MODEL_NAME)
    else:
        from ..vector.embeddings import ColorHistogramEmbedding
        return ColorHistogramEmbedding(bins=HISTOGRAM_BINS)


def get_class_name(label: int) -> str:
    """Human readable name for a class id."""
    return CLASS_NAMES[label]


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory():
    """Ensure the database directory exists."""
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if STORAGE_PROVIDER not in ["sqlite", "memory"]:
        issues.append(f"Invalid STORAGE_PROVIDER: {STORAGE_PROVIDER}")

    if EMBED_PROVIDER not in ["histogram", "hash", "clip"]:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    if KNN_K < 1:
        issues.append("KNN_K must be >= 1")

    if HISTOGRAM_BINS < 2:
        issues.append("HISTOGRAM_BINS must be >= 2")

    if not STORE_NAME.isidentifier():
        issues.append(f"STORE_NAME must be a valid identifier: {STORE_NAME}")

    return issues
