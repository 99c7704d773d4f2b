"""
Tenant configuration store.

Read-through memory cache over the persistent store. Writes go to the
store first, then replace the memory entry, so a get after a
successful put on the same process sees the new value.
"""

from dataclasses import replace
from typing import Dict

from .errors import NotConfigured
from .logging_config import get_logger
from .models import TenantConfig
from .storage import Storage
from .utils import ReadWriteLock, now_ms

logger = get_logger(__name__)


class TenantConfigStore:
    """
    Per-tenant webhook configuration.

    cache_expire_seconds is stored with each config but nothing here
    expires entries.
    """

    def __init__(self, storage: Storage):
        self.storage = storage
        self._configs: Dict[str, TenantConfig] = {}
        self._lock = ReadWriteLock()

    def get(self, tenant_id: str) -> TenantConfig:
        """
        Get a tenant's configuration.

        Raises:
            NotConfigured: If neither memory nor the store knows the tenant
        """
        with self._lock.read_locked():
            config = self._configs.get(tenant_id)
        if config is not None:
            return config

        config = self.storage.get_tenant_config(tenant_id)
        if config is None:
            raise NotConfigured(tenant_id)

        with self._lock.write_locked():
            # a concurrent put may have landed while we were reading the store
            config = self._configs.setdefault(tenant_id, config)
        logger.debug(f'Loaded config for tenant {tenant_id} from store')
        return config

    def put(self, config: TenantConfig) -> TenantConfig:
        """
        Replace a tenant's configuration.

        Args:
            config: New configuration; created_at is filled in when missing

        Returns:
            The configuration as stored
        """
        if config.created_at is None:
            config = replace(config, created_at=now_ms())

        # store write and memory replace form one critical section
        with self._lock.write_locked():
            stored = self.storage.save_tenant_config(config)
            self._configs[stored.tenant_id] = stored

        logger.info(f'✅ Tenant {stored.tenant_id} configured (webhook={stored.webhook_url})')
        return stored
