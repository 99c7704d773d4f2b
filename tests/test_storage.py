"""
Tests for the SQLAlchemy store.
"""

import pytest

from facegate.errors import AlreadyEnrolled, StorageError
from facegate.models import PersonRecord, TenantConfig
from facegate.storage import Storage


def person(local_id, tenant_id='acme', external_id=None, template='[1.0, 0.0]'):
    return PersonRecord(
        local_id=local_id,
        tenant_id=tenant_id,
        display_name=f'Person {local_id}',
        external_id=external_id or f'ext-{local_id}',
        feature_template=template,
        enrolled_at=1700000000000,
    )


class TestTenantConfigs:
    """Test tenant config persistence"""
    
    def test_missing_config_is_none(self, storage):
        assert storage.get_tenant_config('nobody') is None
    
    def test_save_and_get(self, storage):
        storage.save_tenant_config(TenantConfig('acme', 'http://a/hook', 60, created_at=1000))
        
        config = storage.get_tenant_config('acme')
        assert config == TenantConfig('acme', 'http://a/hook', 60, created_at=1000)
    
    def test_replace_keeps_created_at(self, storage):
        storage.save_tenant_config(TenantConfig('acme', 'http://a/hook', 60, created_at=1000))
        stored = storage.save_tenant_config(TenantConfig('acme', 'http://b/hook', 120, created_at=2000))
        
        assert stored.webhook_url == 'http://b/hook'
        assert stored.cache_expire_seconds == 120
        assert stored.created_at == 1000
        assert storage.get_tenant_config('acme') == stored
    
    def test_survives_reopen(self, tmp_path):
        url = f'sqlite:///{tmp_path / "data" / "store.db"}'
        first = Storage(url)
        first.save_tenant_config(TenantConfig('acme', 'http://a/hook', created_at=1))
        first.close()
        
        second = Storage(url)
        assert second.get_tenant_config('acme').webhook_url == 'http://a/hook'
        second.close()


class TestPersons:
    """Test person persistence"""
    
    def test_list_in_insertion_order(self, storage):
        for local_id in ['c', 'a', 'b']:
            storage.save_person(person(local_id))
        
        assert [p.local_id for p in storage.list_persons_by_tenant('acme')] == ['c', 'a', 'b']
    
    def test_tenants_are_isolated(self, storage):
        storage.save_person(person('a1', tenant_id='acme'))
        storage.save_person(person('b1', tenant_id='globex'))
        
        assert [p.local_id for p in storage.list_persons_by_tenant('acme')] == ['a1']
        assert [p.local_id for p in storage.list_persons_by_tenant('globex')] == ['b1']
        assert storage.list_persons_by_tenant('initech') == []
    
    def test_round_trip_fields(self, storage):
        record = person('a1', template='[0.1, 0.2, 0.3]')
        storage.save_person(record)
        
        assert storage.list_persons_by_tenant('acme') == [record]
    
    def test_external_id_unique_per_tenant(self, storage):
        storage.save_person(person('a1', external_id='E-1'))
        
        with pytest.raises(AlreadyEnrolled):
            storage.save_person(person('a2', external_id='E-1'))
        
        # same external id under another tenant is fine
        storage.save_person(person('b1', tenant_id='globex', external_id='E-1'))
        assert len(storage.list_persons_by_tenant('acme')) == 1
    
    def test_local_id_collision_is_storage_error(self, storage):
        storage.save_person(person('dup', external_id='E-1'))
        
        with pytest.raises(StorageError):
            storage.save_person(person('dup', external_id='E-2'))

    def test_concurrent_duplicate_is_already_enrolled(self, storage, monkeypatch):
        storage.save_person(person('a1', external_id='E-1'))
        # the other enrollment commits between this one's check and insert
        monkeypatch.setattr(storage, '_external_id_taken', lambda db, tenant_id, external_id: False)

        with pytest.raises(AlreadyEnrolled):
            storage.save_person(person('a2', external_id='E-1'))
        assert [p.local_id for p in storage.list_persons_by_tenant('acme')] == ['a1']


class TestOpen:
    """Test store opening failures"""
    
    def test_unopenable_path_raises_storage_error(self, tmp_path):
        blocker = tmp_path / 'not-a-dir'
        blocker.write_text('x')
        
        with pytest.raises(StorageError):
            Storage(f'sqlite:///{blocker / "store.db"}')
    
    def test_in_memory_store_shared_across_threads(self):
        import threading
        
        store = Storage('sqlite://')
        store.save_tenant_config(TenantConfig('acme', 'http://a/hook', created_at=1))
        
        seen = []
        thread = threading.Thread(target=lambda: seen.append(store.get_tenant_config('acme')))
        thread.start()
        thread.join()
        
        assert seen[0].webhook_url == 'http://a/hook'
        store.close()
