"""
Error taxonomy for Facegate.

Every business failure is a FacegateError subclass carrying a numeric
code and the HTTP status the API answers with. None of them is fatal
to the process.
"""

from typing import Any, Dict, Optional


class FacegateError(Exception):
    """Base class for all structured Facegate errors."""

    code = 1000
    http_status = 500
    default_message = 'Internal error'

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON body returned by the API."""
        return {
            'ok': False,
            'error': type(self).__name__,
            'code': self.code,
            'message': self.message,
        }


class InvalidRequest(FacegateError):
    code = 1000
    http_status = 400
    default_message = 'Invalid request'


class NotConfigured(FacegateError):
    """Tenant has no webhook configuration."""

    code = 1001
    http_status = 404

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f'Tenant {tenant_id} is not configured')


class CaptureFailed(FacegateError):
    """Sensor capture, image decode or feature extraction failed."""

    code = 1002
    http_status = 422
    default_message = 'Face capture failed'


class NoFaceDetected(CaptureFailed):
    code = 1003
    default_message = 'No face detected'


class FeatureDecodeError(FacegateError):
    """A stored feature template could not be decoded."""

    code = 1004
    http_status = 500
    default_message = 'Stored feature template is corrupt'


class AlreadyEnrolled(FacegateError):
    code = 1005
    http_status = 409

    def __init__(self, tenant_id: str, external_id: str):
        self.tenant_id = tenant_id
        self.external_id = external_id
        super().__init__(f'Person {external_id} is already enrolled for tenant {tenant_id}')


class RemoteTimeout(FacegateError):
    """
    Webhook did not answer within the deadline.

    The gate decision is unknown; callers must not read this as a denial.
    """

    code = 1101
    http_status = 504
    default_message = 'Webhook did not answer in time, decision unknown'


class RemoteTransport(FacegateError):
    code = 1102
    http_status = 502
    default_message = 'Webhook unreachable'


class RemoteError(FacegateError):
    """Webhook answered with a non-success HTTP status."""

    code = 1103
    http_status = 502

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        super().__init__(message or f'Webhook returned HTTP {status}')

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body['remote_status'] = self.status
        return body


class RemoteDecodeError(FacegateError):
    code = 1104
    http_status = 502
    default_message = 'Webhook response is not a valid gate decision'


class StorageError(FacegateError):
    code = 1201
    http_status = 500
    default_message = 'Storage failure'


class ProviderInitFailed(FacegateError):
    code = 1301
    http_status = 500
    default_message = 'Biometric provider could not be initialized'
