"""
Data model for Facegate.

TenantConfig and PersonRecord are persisted; MatchOutcome and
GateDecision live only for the duration of one verification.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import RemoteDecodeError

# Gate status sent back by tenant webhooks meaning "open"
ALLOW_STATUS = 9
# Status of the local decision returned when nobody matched
DENY_STATUS = 1


def new_request_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class TenantConfig:
    """Webhook configuration of one tenant (company)."""
    tenant_id: str
    webhook_url: str
    cache_expire_seconds: int = 3600
    created_at: Optional[int] = None  # epoch ms, assigned on first put

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tenant_id': self.tenant_id,
            'webhook_url': self.webhook_url,
            'cache_expire_seconds': self.cache_expire_seconds,
            'created_at': self.created_at,
        }


@dataclass(frozen=True)
class PersonRecord:
    """
    Enrolled whitelist entry.

    feature_template is the provider's serialized signature and is
    never updated after enrollment.
    """
    local_id: str
    tenant_id: str
    display_name: str
    external_id: str
    feature_template: str
    enrolled_at: int  # epoch ms
    image_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'local_id': self.local_id,
            'tenant_id': self.tenant_id,
            'name': self.display_name,
            'external_id': self.external_id,
            'feature_template': self.feature_template,
            'enrolled_at': self.enrolled_at,
            'image_path': self.image_path,
        }


@dataclass(frozen=True)
class MatchOutcome:
    tenant_id: str
    matched: bool
    similarity: float
    request_id: str
    timestamp_ms: int
    person: Optional[PersonRecord] = None

    def webhook_payload(self) -> Dict[str, Any]:
        """
        Build the JSON body pushed to the tenant webhook.

        Only positive matches are ever pushed.
        """
        if not self.matched or self.person is None:
            raise ValueError('Only matched outcomes are pushed to webhooks')
        return {
            'tenant_id': self.tenant_id,
            'local_id': self.person.local_id,
            'external_id': self.person.external_id,
            'name': self.person.display_name,
            'success': True,
            'timestamp_ms': self.timestamp_ms,
            'request_id': self.request_id,
        }


@dataclass(frozen=True)
class GateDecision:
    status: int
    message: str
    request_id: str

    @property
    def allowed(self) -> bool:
        return self.status == ALLOW_STATUS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'message': self.message,
            'request_id': self.request_id,
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'GateDecision':
        """
        Parse a webhook response body.

        Raises:
            RemoteDecodeError: If the body is not {status:int, message:str, request_id:str}
        """
        if not isinstance(data, dict):
            raise RemoteDecodeError(f'Expected a JSON object, got {type(data).__name__}')

        status = data.get('status')
        message = data.get('message')
        request_id = data.get('request_id')

        # bool is an int subclass, reject it explicitly
        if not isinstance(status, int) or isinstance(status, bool):
            raise RemoteDecodeError(f'Invalid status field: {status!r}')
        if not isinstance(message, str):
            raise RemoteDecodeError(f'Invalid message field: {message!r}')
        if not isinstance(request_id, str):
            raise RemoteDecodeError(f'Invalid request_id field: {request_id!r}')

        return cls(status=status, message=message, request_id=request_id)

    @classmethod
    def unrecognized(cls, request_id: str) -> 'GateDecision':
        """Local deny returned when no whitelisted person matched."""
        return cls(
            status=DENY_STATUS,
            message='No whitelisted person matched',
            request_id=request_id,
        )
