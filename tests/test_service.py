"""
End-to-end tests of one verification through the service.
"""

import threading
import time

import pytest

from conftest import vec
from facegate.biometrics import encode_template
from facegate.errors import NoFaceDetected, NotConfigured, RemoteError, RemoteTimeout
from facegate.models import ALLOW_STATUS, DENY_STATUS, PersonRecord


class TestVerify:
    """Test the verification pipeline"""
    
    def test_unconfigured_tenant(self, service, provider, webhook):
        provider.show(1, 0)
        
        with pytest.raises(NotConfigured):
            service.verify('nobody')
        
        assert provider.capture_calls == 0
        assert webhook.calls == []
    
    def test_exact_template_matches_with_score_one(self, service, tenant, provider):
        person = service.registry.register(tenant, 'Ada', 'E-1', vec(0.3, 0.4, 0.5))
        provider.live_template = person.feature_template
        
        outcome, decision = service.verify_with_outcome(tenant)
        
        assert outcome.matched
        assert outcome.similarity == 1.0
        assert outcome.person == person
        assert decision.status == ALLOW_STATUS
    
    def test_match_pushes_once_and_returns_remote_decision(self, service, tenant, provider, webhook):
        person = service.registry.register(tenant, 'Ada', 'E-1', vec(1, 0))
        provider.show(1, 0)
        webhook.body = {'status': 4, 'message': 'outside hours', 'request_id': 'remote-1'}
        
        decision = service.verify(tenant)
        
        assert (decision.status, decision.message, decision.request_id) == (4, 'outside hours', 'remote-1')
        assert len(webhook.calls) == 1
        payload = webhook.calls[0]['json']
        assert webhook.calls[0]['url'] == 'http://gate.acme.test/hook'
        assert payload['tenant_id'] == tenant
        assert payload['local_id'] == person.local_id
        assert payload['external_id'] == 'E-1'
        assert payload['name'] == 'Ada'
        assert payload['success'] is True
        assert isinstance(payload['timestamp_ms'], int)
        assert payload['request_id']
    
    def test_no_match_denies_locally(self, service, tenant, provider, webhook):
        service.registry.register(tenant, 'Ada', 'E-1', vec(1, 0))
        provider.show(0, 1)
        
        outcome, decision = service.verify_with_outcome(tenant)
        
        assert not outcome.matched
        assert decision.status == DENY_STATUS
        assert decision.request_id == outcome.request_id
        assert webhook.calls == []
    
    def test_capture_failure_stops_before_network(self, service, tenant, provider, webhook):
        provider.live_template = None
        
        with pytest.raises(NoFaceDetected):
            service.verify(tenant)
        assert webhook.calls == []
    
    def test_store_hit_is_cached_for_next_verification(self, service, tenant, provider, storage):
        person = PersonRecord(f'{tenant}_1_1000', tenant, 'Ada', 'E-1', encode_template([1, 0]), 0)
        storage.save_person(person)
        provider.show(1, 0)
        
        first, _ = service.verify_with_outcome(tenant)
        scans_after_first = storage.list_calls
        second, _ = service.verify_with_outcome(tenant)
        
        assert first.person == second.person == person
        assert scans_after_first == 1
        assert storage.list_calls == 1

    def test_store_is_read_off_the_sensor_worker(self, service, tenant, provider, storage):
        storage.save_person(PersonRecord(f'{tenant}_1_1000', tenant, 'Ada', 'E-1', encode_template([1, 0]), 0))
        provider.show(1, 0)

        outcome, _ = service.verify_with_outcome(tenant)

        assert outcome.matched
        assert storage.list_threads
        assert 'sensor-worker' not in storage.list_threads

    def test_slow_store_does_not_block_sensor(self, service, tenant, provider, storage):
        storage.list_delay = 0.5
        provider.show(1, 0)
        verifier = threading.Thread(target=service.verify_with_outcome, args=(tenant,))
        verifier.start()
        assert storage.listing.wait(timeout=2.0)

        start = time.monotonic()
        assert service.sensor.run(lambda p: 'free', timeout=2.0) == 'free'
        elapsed = time.monotonic() - start

        verifier.join(timeout=2.0)
        assert elapsed < 0.3

    def test_slow_webhook_times_out_after_one_attempt(self, service, tenant, provider, webhook):
        # fixture deadline is 0.5s, webhook answers after 0.6s
        service.registry.register(tenant, 'Ada', 'E-1', vec(1, 0))
        provider.show(1, 0)
        webhook.delay = 0.6
        
        with pytest.raises(RemoteTimeout):
            service.verify(tenant)
        
        time.sleep(0.3)
        assert len(webhook.calls) == 1
    
    def test_remote_error_passes_through(self, service, tenant, provider, webhook):
        service.registry.register(tenant, 'Ada', 'E-1', vec(1, 0))
        provider.show(1, 0)
        webhook.status_code = 500
        
        with pytest.raises(RemoteError):
            service.verify(tenant)
    
    def test_webhook_call_does_not_block_sensor(self, service, tenant, provider, webhook):
        service.registry.register(tenant, 'Ada', 'E-1', vec(1, 0))
        provider.show(1, 0)
        webhook.delay = 0.3
        
        verifier = threading.Thread(target=service.verify, args=(tenant,))
        verifier.start()
        while not webhook.calls:
            time.sleep(0.01)
        
        # while the webhook is pending the sensor is free for other work
        started = time.monotonic()
        service.sensor.run(lambda p: p.capture_live_sample(), timeout=1.0)
        assert time.monotonic() - started < 0.2
        verifier.join()
    
    def test_sensor_operations_run_on_worker_only(self, service, tenant, provider):
        service.registry.register(tenant, 'Ada', 'E-1', vec(1, 0))
        provider.show(1, 0)
        
        threads = [threading.Thread(target=service.verify, args=(tenant,)) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        
        assert provider.capture_calls == 4
        assert provider.threads == {'sensor-worker'}
