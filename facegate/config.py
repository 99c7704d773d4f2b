"""
Configuration module for Facegate.

Loads configuration from environment variables with sensible defaults.
All settings are immutable after initialization.
"""

import os
from dataclasses import dataclass
from typing import Tuple


SENSOR_KINDS = ('local', 'stream')


@dataclass(frozen=True)
class Config:
    """
    Immutable configuration for Facegate.

    Service Identity:
        service_name: Name of this service instance (log context)
        host: Interface the HTTP API binds to
        port: Port for the Flask HTTP server
        debug_mode: Enable debug logging

    Storage:
        database_url: SQLAlchemy URL of the persistent store
            (e.g., sqlite:///data/facegate.db)

    Sensor:
        sensor_kind: Provider variant selected at startup:
            - 'local': desktop webcam, camera_source is an index (0, 1, 2)
            - 'stream': mobile / IP camera, camera_source is an
              rtsp:// or http(s):// MJPEG URL
        camera_source: Camera index or stream URL
        insightface_det_size: Detection size for InsightFace (width, height)

    Enrollment Quality:
        min_face_height_pixels: Minimum face height in pixels to enroll
        min_blur_variance: Minimum Laplacian variance (higher = sharper required)

    Preprocessing:
        enable_preprocessing: Enable image enhancement pipeline
        clahe_clip_limit: CLAHE contrast limiting (higher = more contrast)
        denoise_strength: Denoising strength (0-10, higher = more smoothing)

    Tenants:
        default_cache_expire_seconds: cache_expire_seconds stored for
            tenants that do not send one (stored only, never enforced)
    """

    # Service
    service_name: str
    host: str
    port: int
    debug_mode: bool

    # Storage
    database_url: str

    # Sensor
    sensor_kind: str
    camera_source: str
    insightface_det_size: Tuple[int, int]

    # Quality
    min_face_height_pixels: int
    min_blur_variance: float

    # Preprocessing
    enable_preprocessing: bool
    clahe_clip_limit: float
    denoise_strength: int

    # Tenants
    default_cache_expire_seconds: int


def load_config() -> Config:
    """
    Load configuration from environment variables.

    Returns:
        Config: Immutable configuration object

    Raises:
        ValueError: If SENSOR_KIND is not a known provider variant
    """
    sensor_kind = os.getenv('SENSOR_KIND', 'local').lower()
    if sensor_kind not in SENSOR_KINDS:
        raise ValueError(
            f"SENSOR_KIND must be one of {', '.join(SENSOR_KINDS)}, got '{sensor_kind}'"
        )

    return Config(
        # Service
        service_name=os.getenv('SERVICE_NAME', 'facegate'),
        host=os.getenv('HOST', '0.0.0.0'),
        port=int(os.getenv('PORT', '8080')),
        debug_mode=os.getenv('DEBUG', 'false').lower() == 'true',

        # Storage
        database_url=os.getenv('DATABASE_URL', 'sqlite:///data/facegate.db'),

        # Sensor
        sensor_kind=sensor_kind,
        camera_source=os.getenv('CAMERA_SOURCE', '0'),
        insightface_det_size=(640, 640),

        # Quality
        min_face_height_pixels=int(os.getenv('MIN_FACE_HEIGHT', '40')),
        min_blur_variance=float(os.getenv('MIN_BLUR_VAR', '50.0')),

        # Preprocessing
        enable_preprocessing=os.getenv('ENABLE_PREPROCESSING', 'true').lower() == 'true',
        clahe_clip_limit=float(os.getenv('CLAHE_CLIP', '2.0')),
        denoise_strength=int(os.getenv('DENOISE_STRENGTH', '5')),

        # Tenants
        default_cache_expire_seconds=int(os.getenv('DEFAULT_CACHE_EXPIRE', '3600')),
    )
