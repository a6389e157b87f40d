"""
Feature extractors: decoded image -> fixed-length embedding vector.
"""

from abc import ABC, abstractmethod
from typing import Optional
import hashlib
import numpy as np
from PIL import Image
from sentence_transformers import SentenceTransformer

from .buffers import BufferScope


class IFeatureExtractor(ABC):
    """Abstract interface for image feature extractors."""

    @abstractmethod
    def infer(self, image: Image.Image, layer: Optional[str] = None) -> np.ndarray:
        """Generate embedding vector for given image."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    def _check_layer(self, layer: Optional[str]) -> None:
        if layer is not None:
            raise ValueError(f"{self.__class__.__name__} does not expose layer '{layer}'")


class DeterministicHashEmbedding(IFeatureExtractor):
    """Deterministic hash-based embedding provider for testing purposes.

    Identical pixels always give identical vectors; any pixel change gives an
    unrelated vector. Useful for tests without requiring model dependencies.
    """

    def __init__(self, dimension: int = 384):
        self.dimension = dimension

    def infer(self, image: Image.Image, layer: Optional[str] = None) -> np.ndarray:
        """Generate deterministic embedding vector from the image pixels."""
        self._check_layer(layer)
        with BufferScope("hash_embedding") as scope:
            pixels = scope.keep(np.asarray(image.convert("RGB")))
            seed = hashlib.sha256(pixels.tobytes() + repr(pixels.shape).encode()).digest()

        vector = []
        block = 0
        while len(vector) < self.dimension:
            digest = hashlib.sha256(seed + block.to_bytes(4, "little")).hexdigest()
            for i in range(0, len(digest), 8):
                value = int(digest[i:i + 8], 16)
                # Map to [-1, 1] for cosine similarity
                vector.append((value / (2**32)) * 2 - 1)
            block += 1

        return np.array(vector[:self.dimension], dtype=np.float32)

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class ColorHistogramEmbedding(IFeatureExtractor):
    """Per-channel RGB histogram embedding.

    Leaf health classes differ mostly in colour (green, yellow, brown), so a
    normalized colour histogram is a usable offline feature.
    """

    def __init__(self, bins: int = 16, size: int = 128):
        self.bins = bins
        self.size = size

    def infer(self, image: Image.Image, layer: Optional[str] = None) -> np.ndarray:
        """Generate concatenated normalized R, G, B histograms."""
        self._check_layer(layer)
        with BufferScope("histogram_embedding") as scope:
            resized = image.convert("RGB").resize((self.size, self.size))
            pixels = scope.keep(np.asarray(resized).reshape(-1, 3))
            histograms = []
            for channel in range(3):
                counts, _ = np.histogram(pixels[:, channel], bins=self.bins, range=(0, 256))
                histograms.append(counts)
            stacked = scope.keep(np.concatenate(histograms).astype(np.float32))
            embedding = stacked / pixels.shape[0]

        return embedding

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return 3 * self.bins


class ClipImageEmbedding(IFeatureExtractor):
    """Image embeddings from a CLIP model served by sentence-transformers.

    Uses clip-ViT-B-32 by default. Training and query images go through the
    same image tower so their embeddings are directly comparable.
    """

    def __init__(self, model_name: str = "clip-ViT-B-32"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def infer(self, image: Image.Image, layer: Optional[str] = None) -> np.ndarray:
        """Generate embedding vector using the CLIP image encoder."""
        self._check_layer(layer)
        embedding = self.model.encode(image.convert("RGB"), convert_to_tensor=False)
        return np.asarray(embedding, dtype=np.float32)

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            # Get dimension by encoding a blank image
            dummy = Image.new("RGB", (224, 224))
            self._dimension = len(self.model.encode(dummy, convert_to_tensor=False))
        return self._dimension
