"""Tests for embedding similarity and running averages."""

import numpy as np
import pytest

from offline_gallery.exceptions import EmbeddingDimensionError
from offline_gallery.recognition.similarity import (
    cosine_similarity,
    embeddings_compatible,
    running_average,
)


def test_cosine_identical_and_opposite():
    v = np.array([1.0, 2.0, 3.0])
    assert cosine_similarity(v, v) == pytest.approx(1.0)
    assert cosine_similarity(v, -v) == pytest.approx(-1.0)


def test_cosine_orthogonal():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_cosine_ignores_magnitude():
    assert cosine_similarity([1.0, 1.0], [10.0, 10.0]) == pytest.approx(1.0)


def test_cosine_is_symmetric():
    rng = np.random.default_rng(42)
    a, b = rng.standard_normal(512), rng.standard_normal(512)
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


@pytest.mark.parametrize(
    "a, b",
    [
        (None, [1.0, 2.0]),
        ([], [1.0, 2.0]),
        ([1.0, 2.0], [1.0, 2.0, 3.0]),
        ([0.0, 0.0], [1.0, 2.0]),
    ],
)
def test_cosine_degenerate_inputs_are_zero(a, b):
    assert cosine_similarity(a, b) == 0.0


def test_embeddings_compatible():
    assert embeddings_compatible([1.0, 2.0], [3.0, 4.0])
    assert not embeddings_compatible([1.0, 2.0], [3.0])
    assert not embeddings_compatible(None, [3.0])


def test_running_average_is_pairwise():
    avg = running_average([1.0, 0.0], [0.0, 1.0])
    np.testing.assert_allclose(avg, [0.5, 0.5])
    # A third face weighs as much as everything before it.
    avg = running_average(avg, [1.0, 1.0])
    np.testing.assert_allclose(avg, [0.75, 0.75])
    assert avg.dtype == np.float32


def test_running_average_without_current():
    np.testing.assert_allclose(running_average(None, [0.2, 0.4]), [0.2, 0.4])


def test_running_average_dimension_mismatch():
    with pytest.raises(EmbeddingDimensionError) as exc_info:
        running_average([1.0, 2.0], [1.0, 2.0, 3.0])
    assert exc_info.value.details == {"expected": 2, "actual": 3}


def test_running_average_rejects_empty_new():
    with pytest.raises(EmbeddingDimensionError):
        running_average([1.0, 2.0], [])
