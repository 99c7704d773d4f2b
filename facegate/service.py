"""
Verification service.

Wires tenants, persons, matching and notifications together and runs
one verification:

    resolve config -> capture + match (sensor worker) -> deny locally
    or push to the tenant webhook
"""

import time
from typing import Optional, Tuple

import requests

from .biometrics import BiometricProvider, create_provider
from .config import Config
from .logging_config import get_logger
from .models import GateDecision, MatchOutcome, TenantConfig, new_request_id
from .notifications import NotificationClient
from .persons import PersonCache, PersonRegistry
from .recognition.matching import MatchEngine
from .sensor import SensorWorker
from .storage import Storage
from .tenants import TenantConfigStore
from .utils import now_ms

logger = get_logger(__name__)


class VerificationService:
    """
    Façade used by the HTTP layer.

    Only a matched verification performs network I/O. The sensor stage
    is finished before the webhook call starts.
    """

    def __init__(
        self,
        tenants: TenantConfigStore,
        registry: PersonRegistry,
        engine: MatchEngine,
        notifier: NotificationClient,
        sensor: SensorWorker
    ):
        self.tenants = tenants
        self.registry = registry
        self.engine = engine
        self.notifier = notifier
        self.sensor = sensor
        self.started_at = time.time()

    def configure_tenant(
        self,
        tenant_id: str,
        webhook_url: str,
        cache_expire_seconds: int = 3600
    ) -> TenantConfig:
        return self.tenants.put(TenantConfig(
            tenant_id=tenant_id,
            webhook_url=webhook_url,
            cache_expire_seconds=cache_expire_seconds,
        ))

    def verify(self, tenant_id: str) -> GateDecision:
        """
        Verify whoever stands in front of the sensor for a tenant.

        Returns:
            Local deny when nobody matched, otherwise the webhook's decision

        Raises:
            NotConfigured, CaptureFailed, NoFaceDetected, FeatureDecodeError,
            StorageError, RemoteTimeout, RemoteTransport, RemoteError,
            RemoteDecodeError
        """
        _, decision = self.verify_with_outcome(tenant_id)
        return decision

    def verify_with_outcome(self, tenant_id: str) -> Tuple[MatchOutcome, GateDecision]:
        """Same as verify, also returning the match outcome."""
        config = self.tenants.get(tenant_id)
        request_id = new_request_id()

        person, similarity = self.engine.capture_and_match(tenant_id)

        outcome = MatchOutcome(
            tenant_id=tenant_id,
            matched=person is not None,
            similarity=similarity,
            request_id=request_id,
            timestamp_ms=now_ms(),
            person=person,
        )

        if not outcome.matched:
            logger.info(
                f'Tenant {tenant_id}: no match (best similarity={similarity:.3f}, '
                f'request_id={request_id})'
            )
            return outcome, GateDecision.unrecognized(request_id)

        logger.info(
            f'Tenant {tenant_id}: matched {person.display_name} ({person.local_id}) '
            f'similarity={similarity:.3f}'
        )
        return outcome, self.notifier.push(config, outcome)

    def health(self) -> dict:
        return {
            'sensor': self.sensor.is_alive(),
            'cached_persons': self.registry.cache.count(),
            'uptime_seconds': time.time() - self.started_at,
        }

    def shutdown(self) -> None:
        self.sensor.stop()
        self.sensor.provider.close()
        self.notifier.close()


def build_service(
    config: Config,
    storage: Optional[Storage] = None,
    provider: Optional[BiometricProvider] = None,
    session: Optional[requests.Session] = None,
    webhook_timeout: Optional[float] = None
) -> VerificationService:
    """
    Assemble the service.

    Args:
        config: Service configuration
        storage: Store to use instead of opening config.database_url
        provider: Provider to use instead of the configured sensor variant
        session: HTTP session for webhook calls
        webhook_timeout: Deadline override, seconds

    Raises:
        StorageError: The store cannot be opened
        ProviderInitFailed: The provider cannot be initialized
    """
    if storage is None:
        storage = Storage(config.database_url)

    if provider is None:
        provider = create_provider(config)
    logger.info(f'Initializing {provider.kind} biometric provider...')
    provider.init()

    sensor = SensorWorker(provider)
    sensor.start()

    tenants = TenantConfigStore(storage)
    cache = PersonCache()
    notifier_kwargs = {} if webhook_timeout is None else {'timeout': webhook_timeout}

    return VerificationService(
        tenants=tenants,
        registry=PersonRegistry(tenants, storage, cache, sensor),
        engine=MatchEngine(cache, storage, sensor),
        notifier=NotificationClient(session=session, **notifier_kwargs),
        sensor=sensor,
    )
