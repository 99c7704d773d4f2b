"""
Feature template codec and similarity.

A template is a JSON array of floats (an InsightFace normed embedding).
Similarity is cosine similarity clamped to [0, 1].
"""

import json
from typing import Sequence, Union

import numpy as np

from ..errors import FeatureDecodeError


def encode_template(embedding: Union[np.ndarray, Sequence[float]]) -> str:
    """Serialize an embedding vector to its stored form."""
    values = np.asarray(embedding, dtype=np.float64).ravel()
    return json.dumps([float(v) for v in values])


def decode_template(template: str) -> np.ndarray:
    """
    Parse a stored template.

    Raises:
        FeatureDecodeError: If the template is not a non-empty array of finite numbers
    """
    try:
        values = json.loads(template)
        vector = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise FeatureDecodeError(f'Cannot decode feature template: {e}') from e

    if vector.ndim != 1 or vector.size == 0:
        raise FeatureDecodeError(f'Feature template must be a flat array, got shape {vector.shape}')
    if not np.all(np.isfinite(vector)):
        raise FeatureDecodeError('Feature template contains non-finite values')
    return vector


def template_similarity(template_a: str, template_b: str) -> float:
    """
    Cosine similarity of two templates.

    Returns:
        Similarity in [0, 1]; 1.0 for identical templates, 0.0 for
        orthogonal or opposite ones
    """
    a = decode_template(template_a)
    b = decode_template(template_b)
    if a.shape != b.shape:
        raise FeatureDecodeError(f'Template size mismatch: {a.size} vs {b.size}')

    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0

    cosine = float(np.dot(a, b)) / norm
    # rounding absorbs float noise so identical templates score exactly 1.0
    return round(min(max(cosine, 0.0), 1.0), 6)
