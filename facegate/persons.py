"""
Person management module.

Enrollment of whitelisted persons and the in-memory person cache that
sits in front of the persistent store.
"""

import random
from typing import Dict, List, Optional

import cv2
import numpy as np

from .errors import CaptureFailed
from .logging_config import get_logger
from .models import PersonRecord
from .sensor import SensorWorker
from .storage import Storage
from .tenants import TenantConfigStore
from .utils import ReadWriteLock, now_ms

logger = get_logger(__name__)


def generate_local_id(tenant_id: str) -> str:
    """
    Build a local id: tenant id, epoch milliseconds and a 4-digit random suffix.

    Two enrollments for one tenant in the same millisecond can collide;
    the store rejects the second with a StorageError.
    """
    return f'{tenant_id}_{now_ms()}_{random.randint(1000, 9999)}'


def load_image(image_path: str) -> np.ndarray:
    """
    Decode an image file to BGR.

    Raises:
        CaptureFailed: If the file is missing or not an image
    """
    image = cv2.imread(image_path, cv2.IMREAD_COLOR)
    if image is None:
        raise CaptureFailed(f'Failed to load image {image_path}')
    return image


class PersonCache:
    """
    Memory mirror of enrolled persons, sharded by tenant.

    Entries of a tenant iterate in insertion order. Reads run
    concurrently, inserts are exclusive.
    """

    def __init__(self):
        self._shards: Dict[str, Dict[str, PersonRecord]] = {}
        self._lock = ReadWriteLock()

    def put(self, person: PersonRecord) -> None:
        with self._lock.write_locked():
            self._shards.setdefault(person.tenant_id, {})[person.local_id] = person

    def get(self, tenant_id: str, local_id: str) -> Optional[PersonRecord]:
        with self._lock.read_locked():
            return self._shards.get(tenant_id, {}).get(local_id)

    def snapshot(self, tenant_id: str) -> List[PersonRecord]:
        """Copy of a tenant's cached persons in cache order."""
        with self._lock.read_locked():
            return list(self._shards.get(tenant_id, {}).values())

    def count(self, tenant_id: Optional[str] = None) -> int:
        with self._lock.read_locked():
            if tenant_id is not None:
                return len(self._shards.get(tenant_id, {}))
            return sum(len(shard) for shard in self._shards.values())


class PersonRegistry:
    """Enrolls persons into a tenant's whitelist."""

    def __init__(
        self,
        tenants: TenantConfigStore,
        storage: Storage,
        cache: PersonCache,
        sensor: SensorWorker
    ):
        self.tenants = tenants
        self.storage = storage
        self.cache = cache
        self.sensor = sensor

    def register(
        self,
        tenant_id: str,
        name: str,
        external_id: str,
        raw_image: np.ndarray,
        image_path: Optional[str] = None
    ) -> PersonRecord:
        """
        Enroll a person from a decoded image.

        Args:
            tenant_id: Tenant owning the whitelist
            name: Display name
            external_id: Tenant's own id for the person, unique per tenant
            raw_image: Decoded BGR image
            image_path: Where the image came from, kept for reference

        Returns:
            The stored record. It includes the feature template.

        Raises:
            NotConfigured: Unknown tenant
            CaptureFailed / NoFaceDetected: Extraction failed
            AlreadyEnrolled: external_id already enrolled for the tenant
            StorageError: Persisting failed
        """
        self.tenants.get(tenant_id)

        template = self.sensor.run(lambda provider: provider.extract_feature(raw_image))

        person = PersonRecord(
            local_id=generate_local_id(tenant_id),
            tenant_id=tenant_id,
            display_name=name,
            external_id=external_id,
            feature_template=template,
            enrolled_at=now_ms(),
            image_path=image_path,
        )

        self.storage.save_person(person)
        self.cache.put(person)

        logger.info(f'✅ Enrolled {name} (external_id={external_id}) as {person.local_id}')
        return person

    def register_from_path(
        self,
        tenant_id: str,
        name: str,
        external_id: str,
        image_path: str
    ) -> PersonRecord:
        """Enroll a person from an image file readable by this process."""
        self.tenants.get(tenant_id)
        image = load_image(image_path)
        return self.register(tenant_id, name, external_id, image, image_path=image_path)
