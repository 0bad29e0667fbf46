"""Embedding similarity and running-average helpers."""

import numpy as np

from offline_gallery.exceptions import EmbeddingDimensionError


def _as_vector(embedding: np.ndarray | list[float] | None) -> np.ndarray | None:
    if embedding is None:
        return None
    vec = np.asarray(embedding, dtype=np.float64).flatten()
    if vec.size == 0:
        return None
    return vec


def embeddings_compatible(a, b) -> bool:
    """True when both embeddings are present and have the same length."""
    va, vb = _as_vector(a), _as_vector(b)
    return va is not None and vb is not None and va.size == vb.size


def cosine_similarity(a, b) -> float:
    """Cosine similarity in [-1, 1].

    Returns 0.0 for a missing or zero-magnitude vector and for vectors of
    different lengths; a 0.0 result means "no match", never an error.
    Inputs need not be normalized.
    """
    va, vb = _as_vector(a), _as_vector(b)
    if va is None or vb is None or va.size != vb.size:
        return 0.0
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    sim = float(np.dot(va, vb) / (norm_a * norm_b))
    return max(-1.0, min(1.0, sim))


def running_average(current, new) -> np.ndarray:
    """Pairwise running average ``(current + new) / 2``; ``new`` when there is no current.

    Raises:
        EmbeddingDimensionError: both vectors are present but differ in length.
    """
    vn = _as_vector(new)
    if vn is None:
        raise EmbeddingDimensionError("Cannot average an empty embedding")
    vc = _as_vector(current)
    if vc is None:
        return vn.astype(np.float32)
    if vc.size != vn.size:
        raise EmbeddingDimensionError(
            f"Embedding length {vn.size} does not match average length {vc.size}",
            {"expected": int(vc.size), "actual": int(vn.size)},
        )
    return ((vc + vn) / 2.0).astype(np.float32)
