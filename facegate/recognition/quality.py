"""
Face quality assessment module.

Gates enrollment images on:
- Size (face height in pixels)
- Sharpness (Laplacian variance of the face crop)
"""

import cv2
import numpy as np
from typing import Dict, Tuple
from ..config import Config


def compute_blur_score(gray_face: np.ndarray) -> float:
    """
    Compute blur score using Laplacian variance.
    
    Higher values indicate sharper images.
    """
    return float(cv2.Laplacian(gray_face, cv2.CV_64F).var())


def crop_face(image_bgr: np.ndarray, bbox: np.ndarray) -> np.ndarray:
    """Crop bbox [x1, y1, x2, y2] from the image, clipped to its bounds."""
    height, width = image_bgr.shape[:2]
    x1, y1, x2, y2 = np.asarray(bbox).astype(int)
    x1, x2 = max(0, x1), min(width, x2)
    y1, y2 = max(0, y1), min(height, y2)
    return image_bgr[y1:y2, x1:x2]


def is_face_acceptable(
    image_bgr: np.ndarray,
    bbox: np.ndarray,
    config: Config
) -> Tuple[bool, Dict[str, float]]:
    """
    Check if a detected face is good enough to enroll.
    
    Criteria:
    - Face height >= min_face_height_pixels
    - Blur score of the face crop >= min_blur_variance
    
    Args:
        image_bgr: Full image in BGR format
        bbox: Face bounding box [x1, y1, x2, y2]
        config: Service configuration
    
    Returns:
        Tuple of (acceptable, metrics) where metrics holds
        height, width and blur_score
    """
    face = crop_face(image_bgr, bbox)
    if face.size == 0:
        return False, {'height': 0.0, 'width': 0.0, 'blur_score': 0.0}
    
    gray_face = cv2.cvtColor(face, cv2.COLOR_BGR2GRAY)
    metrics = {
        'height': float(face.shape[0]),
        'width': float(face.shape[1]),
        'blur_score': compute_blur_score(gray_face),
    }
    
    if metrics['height'] < config.min_face_height_pixels:
        return False, metrics
    if metrics['blur_score'] < config.min_blur_variance:
        return False, metrics
    return True, metrics
