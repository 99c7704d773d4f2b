"""
Biometric provider capability.

The service consumes a provider through this interface only. Concrete
variants (desktop webcam, mobile/IP camera stream) live in
biometrics.insight and are selected once at startup by create_provider.
"""

from abc import ABC, abstractmethod
from typing import Any

from ..errors import ProviderInitFailed
from .templates import decode_template, encode_template, template_similarity


class BiometricProvider(ABC):
    """
    Capture, feature extraction and similarity scoring.

    Templates are opaque strings to the rest of the service. A provider
    instance is not thread-safe; the SensorWorker is its only caller.
    """

    kind = 'abstract'

    def init(self) -> None:
        """
        Prepare models and the sensor.

        Raises:
            ProviderInitFailed: If the provider cannot be used
        """

    @abstractmethod
    def extract_feature(self, image: Any) -> str:
        """
        Extract a template from a decoded BGR image.

        Raises:
            NoFaceDetected: No face in the image
            CaptureFailed: Unusable image or face
        """

    @abstractmethod
    def capture_live_sample(self) -> str:
        """
        Capture a frame from the sensor and extract its template.

        Raises:
            NoFaceDetected: No face in front of the sensor
            CaptureFailed: Sensor read failure
        """

    def similarity(self, template_a: str, template_b: str) -> float:
        """
        Score two templates in [0, 1].

        Raises:
            FeatureDecodeError: If either template is corrupt
        """
        return template_similarity(template_a, template_b)

    def close(self) -> None:
        """Release the sensor."""


def create_provider(config) -> BiometricProvider:
    """
    Build the provider variant named by config.sensor_kind.

    Args:
        config: Service configuration

    Returns:
        Uninitialized provider; call init() before use
    """
    # InsightFace is heavy, import it only when a real sensor is wanted
    try:
        from .insight import LocalCameraProvider, StreamCameraProvider
    except ImportError as e:
        raise ProviderInitFailed(f'Sensor dependencies are not installed: {e}') from e

    variants = {
        LocalCameraProvider.kind: LocalCameraProvider,
        StreamCameraProvider.kind: StreamCameraProvider,
    }
    try:
        provider_cls = variants[config.sensor_kind]
    except KeyError:
        raise ValueError(f'Unknown sensor kind: {config.sensor_kind}') from None
    return provider_cls(config)


__all__ = [
    'BiometricProvider',
    'create_provider',
    'decode_template',
    'encode_template',
    'template_similarity',
]
