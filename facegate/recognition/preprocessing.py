"""
Image preprocessing module.

Enhancement applied before InsightFace detection:
1. Denoising (fastNlMeansDenoisingColored)
2. CLAHE on luminance channel (contrast enhancement)
3. Unsharp mask (sharpening)
"""

import cv2
import numpy as np
from ..config import Config


def preprocess_face_for_insightface(image_bgr: np.ndarray, config: Config) -> np.ndarray:
    """
    Enhance a BGR image for detection and embedding.
    
    Returns the input unchanged when preprocessing is disabled.
    """
    if not config.enable_preprocessing:
        return image_bgr
    
    denoised = cv2.fastNlMeansDenoisingColored(
        image_bgr,
        None,
        h=config.denoise_strength,
        hColor=config.denoise_strength,
        templateWindowSize=7,
        searchWindowSize=21
    )
    
    # CLAHE on Y only so colours are kept
    y, cr, cb = cv2.split(cv2.cvtColor(denoised, cv2.COLOR_BGR2YCrCb))
    clahe = cv2.createCLAHE(clipLimit=config.clahe_clip_limit, tileGridSize=(8, 8))
    enhanced = cv2.cvtColor(cv2.merge([clahe.apply(y), cr, cb]), cv2.COLOR_YCrCb2BGR)
    
    gaussian = cv2.GaussianBlur(enhanced, (0, 0), 2.0)
    return cv2.addWeighted(enhanced, 1.5, gaussian, -0.5, 0)
