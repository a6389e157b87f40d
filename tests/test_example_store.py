"""
Tests for the labelled example store.
"""

import pytest
import numpy as np
from leafknn.vector.example_store import ExampleStore
from leafknn.core.errors import DimensionMismatch


def test_empty_store():
    """A new store has no classes and no dimensionality."""
    store = ExampleStore()

    assert store.num_classes() == 0
    assert store.num_examples() == 0
    assert store.dimension is None
    assert store.get_dataset() == {}
    assert store.counts() == {0: 0, 1: 0, 2: 0}


def test_add_single_example():
    """Test adding a single example."""
    store = ExampleStore()

    store.add_example(0, np.array([1.0, 0.0, 0.0]))

    assert store.num_classes() == 1
    assert store.dimension == 3
    dataset = store.get_dataset()
    assert list(dataset) == [0]
    assert np.array_equal(dataset[0][0], [1.0, 0.0, 0.0])


def test_insertion_order_preserved():
    """Examples come back in the order they were added."""
    store = ExampleStore()
    vectors = [np.array([float(i), 1.0]) for i in range(5)]

    for vector in vectors:
        store.add_example(1, vector)

    stored = store.get_dataset()[1]
    assert [v[0] for v in stored] == [0.0, 1.0, 2.0, 3.0, 4.0]


def test_num_classes_counts_labels_with_examples():
    store = ExampleStore()
    store.add_example(0, [1.0, 2.0])
    store.add_example(0, [2.0, 1.0])
    store.add_example(2, [0.5, 0.5])

    assert store.num_classes() == 2
    assert store.labels() == [0, 2]
    assert store.counts() == {0: 2, 1: 0, 2: 1}


def test_dimension_mismatch_within_label():
    store = ExampleStore()
    store.add_example(0, np.zeros(4))

    with pytest.raises(DimensionMismatch) as exc_info:
        store.add_example(0, np.zeros(5))

    assert exc_info.value.expected == 4
    assert exc_info.value.actual == 5
    assert store.num_examples() == 1


def test_dimension_mismatch_across_labels():
    """Dimensionality is uniform across the whole store, not per label."""
    store = ExampleStore()
    store.add_example(0, np.ones(10))

    with pytest.raises(DimensionMismatch):
        store.add_example(1, np.ones(8))

    assert store.counts()[1] == 0


def test_unknown_label_rejected():
    store = ExampleStore()

    with pytest.raises(ValueError):
        store.add_example(3, np.ones(4))
    with pytest.raises(ValueError):
        store.add_example("0", np.ones(4))


def test_non_vector_embedding_rejected():
    store = ExampleStore()

    with pytest.raises(ValueError):
        store.add_example(0, np.ones((2, 2)))
    with pytest.raises(ValueError):
        store.add_example(0, np.array([]))


def test_stored_embeddings_are_immutable_copies():
    """Mutating the caller's array after insertion does not change the store."""
    store = ExampleStore()
    vector = np.array([1.0, 2.0, 3.0])
    store.add_example(0, vector)

    vector[0] = 99.0
    stored = store.get_dataset()[0][0]

    assert stored[0] == 1.0
    with pytest.raises(ValueError):
        stored[0] = 5.0


def test_get_dataset_returns_copy_of_lists():
    store = ExampleStore()
    store.add_example(0, [1.0, 0.0])

    dataset = store.get_dataset()
    dataset[0].append(np.array([0.0, 1.0]))
    dataset[1] = [np.array([1.0, 1.0])]

    assert store.counts() == {0: 1, 1: 0, 2: 0}


def test_clear_all():
    """Test clearing all examples from the store."""
    store = ExampleStore()
    store.add_example(0, [1.0, 0.0])
    store.add_example(1, [0.0, 1.0])

    store.clear_all()

    assert store.num_classes() == 0
    assert store.dimension is None
    # A new dimensionality is accepted after clearing
    store.add_example(2, np.ones(7))
    assert store.dimension == 7


def test_set_dataset_replaces_state():
    store = ExampleStore()
    store.add_example(0, [1.0, 0.0])
    store.add_example(1, [0.0, 1.0])

    store.set_dataset({2: [np.array([3.0, 4.0, 5.0])]})

    assert store.labels() == [2]
    assert store.dimension == 3
    assert store.counts() == {0: 0, 1: 0, 2: 1}


def test_set_dataset_rejects_mixed_dimensions():
    store = ExampleStore()
    store.add_example(0, [1.0, 0.0])

    with pytest.raises(DimensionMismatch):
        store.set_dataset({0: [np.ones(3)], 1: [np.ones(4)]})

    # Failed import leaves the previous state untouched
    assert store.counts() == {0: 1, 1: 0, 2: 0}


def test_set_dataset_empty_is_untrained():
    store = ExampleStore()
    store.add_example(0, [1.0, 0.0])

    store.set_dataset({0: [], 1: []})

    assert store.num_classes() == 0
    assert store.get_dataset() == {}


def test_counts_track_dataset_lengths():
    """Counts always equal the dataset list lengths."""
    rng = np.random.default_rng(7)
    store = ExampleStore()

    for label in rng.integers(0, 3, size=25):
        store.add_example(int(label), rng.normal(size=6))
        dataset = store.get_dataset()
        for lbl, count in store.counts().items():
            assert count == len(dataset.get(lbl, []))
