"""
Match engine.

First-match-over-threshold search of a live template against a
tenant's whitelist: memory cache first, then the persistent store.
"""

from typing import Iterable, Optional, Tuple

from ..biometrics import BiometricProvider
from ..logging_config import get_logger
from ..models import PersonRecord
from ..persons import PersonCache
from ..sensor import SensorWorker
from ..storage import Storage

logger = get_logger(__name__)

# Global for every tenant
MATCH_THRESHOLD = 0.6


def first_match(
    provider: BiometricProvider,
    live_template: str,
    candidates: Iterable[PersonRecord]
) -> Tuple[Optional[PersonRecord], float]:
    """
    Score candidates in order, stopping at the first one over the threshold.

    Must run on the sensor worker thread.

    Returns:
        Tuple of (person, similarity) or (None, best similarity seen)
    """
    best = 0.0
    for person in candidates:
        similarity = provider.similarity(live_template, person.feature_template)
        if similarity >= MATCH_THRESHOLD:
            return person, similarity
        best = max(best, similarity)
    return None, best


class MatchEngine:
    """
    Scans candidates in order and stops at the first score >= MATCH_THRESHOLD.

    This is not best-match: an earlier candidate over the threshold wins
    over a later, higher-scoring one. Cost is linear in the tenant's
    whitelist size.

    Only similarity calls run on the sensor worker. The store is read and
    the cache filled between sensor jobs, so a slow store never holds up
    another request's capture.
    """

    def __init__(self, cache: PersonCache, storage: Storage, sensor: SensorWorker):
        self.cache = cache
        self.storage = storage
        self.sensor = sensor

    def match(self, tenant_id: str, live_template: str) -> Tuple[Optional[PersonRecord], float]:
        """
        Match a live template against the tenant's whitelist.

        Returns:
            Tuple of (person, similarity) or (None, best similarity seen)
        """
        person, similarity = self.sensor.run(
            lambda provider: first_match(provider, live_template, self.cache.snapshot(tenant_id))
        )
        if person is not None:
            logger.debug(f'Cache hit {person.local_id} (similarity={similarity:.3f})')
            return person, similarity
        return self._match_stored(tenant_id, live_template, similarity)

    def capture_and_match(self, tenant_id: str) -> Tuple[Optional[PersonRecord], float]:
        """
        Capture a live sample and match it.

        Capture and the cache tier form one sensor job.

        Raises:
            CaptureFailed, NoFaceDetected, FeatureDecodeError, StorageError
        """
        def capture_and_scan(provider):
            live_template = provider.capture_live_sample()
            return live_template, first_match(provider, live_template, self.cache.snapshot(tenant_id))

        live_template, (person, similarity) = self.sensor.run(capture_and_scan)
        if person is not None:
            logger.debug(f'Cache hit {person.local_id} (similarity={similarity:.3f})')
            return person, similarity
        return self._match_stored(tenant_id, live_template, similarity)

    def _match_stored(
        self,
        tenant_id: str,
        live_template: str,
        best: float
    ) -> Tuple[Optional[PersonRecord], float]:
        candidates = self.storage.list_persons_by_tenant(tenant_id)
        if not candidates:
            return None, best

        person, similarity = self.sensor.run(
            lambda provider: first_match(provider, live_template, candidates)
        )
        if person is None:
            return None, max(best, similarity)

        self.cache.put(person)
        logger.debug(f'Store hit {person.local_id} (similarity={similarity:.3f}), cached')
        return person, similarity
