"""
Embeddings, the labelled example store and the nearest-neighbor classifier.
"""

# Package initialization for vector module
from .example_store import ExampleStore
from .classifier import KNNClassifier
from .buffers import BufferScope
from .types import ClassifierState, PreviewRecord, Counts, Prediction, LoadedSnapshot, TrainingReport
from .embeddings import IFeatureExtractor, DeterministicHashEmbedding, ColorHistogramEmbedding, ClipImageEmbedding

__all__ = [
    'ExampleStore',
    'KNNClassifier',
    'BufferScope',
    'ClassifierState',
    'PreviewRecord',
    'Counts',
    'Prediction',
    'LoadedSnapshot',
    'TrainingReport',
    'IFeatureExtractor',
    'DeterministicHashEmbedding',
    'ColorHistogramEmbedding',
    'ClipImageEmbedding'
]
