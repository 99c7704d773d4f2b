"""
Recognition algorithms package.

Contains modules for:
- Face quality assessment
- Image preprocessing
- First-match template matching
"""

from .quality import compute_blur_score, crop_face, is_face_acceptable
from .preprocessing import preprocess_face_for_insightface
from .matching import MATCH_THRESHOLD, MatchEngine

__all__ = [
    'compute_blur_score',
    'crop_face',
    'is_face_acceptable',
    'preprocess_face_for_insightface',
    'MATCH_THRESHOLD',
    'MatchEngine',
]
