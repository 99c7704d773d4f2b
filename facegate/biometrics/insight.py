"""
InsightFace sensor providers.

Two variants share detection and embedding and differ only in where
live frames come from:
- LocalCameraProvider: desktop webcam by index
- StreamCameraProvider: mobile or IP camera over RTSP / HTTP MJPEG
"""

from abc import abstractmethod
from typing import Any

import numpy as np
from insightface.app import FaceAnalysis

from ..config import Config
from ..errors import CaptureFailed, NoFaceDetected, ProviderInitFailed
from ..logging_config import get_logger
from ..recognition.preprocessing import preprocess_face_for_insightface
from ..recognition.quality import is_face_acceptable
from . import BiometricProvider
from .camera import (
    LIVE_FLUSH_FRAMES, open_local_camera, open_stream_camera, read_frame, sanitize_url,
)
from .templates import encode_template

logger = get_logger(__name__)


def initialize_face_app(config: Config) -> FaceAnalysis:
    """
    Initialize InsightFace FaceAnalysis.

    Args:
        config: Service configuration

    Returns:
        Initialized FaceAnalysis instance
    """
    logger.info('Initializing InsightFace AI...')

    face_app = FaceAnalysis(providers=['CPUExecutionProvider'])
    face_app.prepare(ctx_id=0, det_size=config.insightface_det_size)

    logger.info(f'✅ InsightFace initialized (det_size={config.insightface_det_size})')
    return face_app


def _face_area(face: Any) -> float:
    x1, y1, x2, y2 = face.bbox
    return float((x2 - x1) * (y2 - y1))


class InsightFaceProvider(BiometricProvider):
    """Detection and embedding shared by both sensor variants."""

    def __init__(self, config: Config):
        self.config = config
        self.face_app = None
        self.capture = None

    def init(self) -> None:
        try:
            self.face_app = initialize_face_app(self.config)
        except Exception as e:
            raise ProviderInitFailed(f'InsightFace initialization failed: {e}') from e

        try:
            self.capture = self._open_capture()
        except CaptureFailed as e:
            raise ProviderInitFailed(str(e)) from e

    @abstractmethod
    def _open_capture(self):
        """Open the frame source; raises CaptureFailed."""

    def _read_live_frame(self) -> np.ndarray:
        return read_frame(self.capture, flush=LIVE_FLUSH_FRAMES)

    def _detect_largest_face(self, image_bgr: np.ndarray) -> Any:
        prepared = preprocess_face_for_insightface(image_bgr, self.config)
        faces = self.face_app.get(prepared)
        if not faces:
            raise NoFaceDetected()
        # several people in view: the closest one is the one at the gate
        return max(faces, key=_face_area)

    def extract_feature(self, image: Any) -> str:
        if image is None or not isinstance(image, np.ndarray) or image.size == 0:
            raise CaptureFailed('Image is empty or could not be decoded')

        face = self._detect_largest_face(image)

        acceptable, quality = is_face_acceptable(image, face.bbox, self.config)
        if not acceptable:
            raise CaptureFailed(
                f"Face quality too low: height={quality.get('height', 0):.0f}px, "
                f"blur={quality.get('blur_score', 0):.1f}"
            )

        logger.debug(
            f"Feature extracted (h={quality['height']:.0f}px, blur={quality['blur_score']:.1f})"
        )
        return encode_template(face.normed_embedding)

    def capture_live_sample(self) -> str:
        if self.capture is None:
            raise CaptureFailed('Sensor is not initialized')

        frame = self._read_live_frame()
        face = self._detect_largest_face(frame)
        return encode_template(face.normed_embedding)

    def close(self) -> None:
        if self.capture is not None:
            self.capture.release()
            self.capture = None


class LocalCameraProvider(InsightFaceProvider):
    kind = 'local'

    def _open_capture(self):
        return open_local_camera(self.config.camera_source)


class StreamCameraProvider(InsightFaceProvider):
    kind = 'stream'

    def _open_capture(self):
        return open_stream_camera(self.config.camera_source)

    def _read_live_frame(self) -> np.ndarray:
        try:
            return super()._read_live_frame()
        except CaptureFailed:
            # streams drop; reopen once and try again
            logger.warning(f'Stream read failed, reconnecting to {sanitize_url(self.config.camera_source)}')
            self.capture.release()
            self.capture = self._open_capture()
            return read_frame(self.capture)
