"""
Shared fixtures: a scripted biometric provider, a fake webhook session
and a store that counts its scans.
"""

import json
import threading
import time

import numpy as np
import pytest

from facegate.biometrics import BiometricProvider, encode_template
from facegate.config import Config
from facegate.errors import NoFaceDetected
from facegate.service import build_service
from facegate.storage import Storage


def make_config(**overrides) -> Config:
    values = dict(
        service_name='facegate-test',
        host='127.0.0.1',
        port=8080,
        debug_mode=False,
        database_url='sqlite://',
        sensor_kind='local',
        camera_source='0',
        insightface_det_size=(640, 640),
        min_face_height_pixels=40,
        min_blur_variance=50.0,
        enable_preprocessing=False,
        clahe_clip_limit=2.0,
        denoise_strength=5,
        default_cache_expire_seconds=3600,
    )
    values.update(overrides)
    return Config(**values)


def vec(*values) -> np.ndarray:
    """Build a fake 'image' whose template is exactly these values."""
    return np.array(values, dtype=np.float64)


class FakeProvider(BiometricProvider):
    """
    Provider whose template is the flattened input image and whose live
    sample is whatever the test sets.
    """

    kind = 'fake'

    def __init__(self):
        self.live_template = None
        self.extract_calls = 0
        self.capture_calls = 0
        self.similarity_calls = 0
        self.threads = set()
        self.closed = False

    def extract_feature(self, image):
        self.extract_calls += 1
        self.threads.add(threading.current_thread().name)
        if image is None or image.size == 0:
            raise NoFaceDetected()
        return encode_template(np.asarray(image, dtype=np.float64).ravel())

    def capture_live_sample(self):
        self.capture_calls += 1
        self.threads.add(threading.current_thread().name)
        if self.live_template is None:
            raise NoFaceDetected()
        return self.live_template

    def show(self, *values) -> None:
        """Put a face with this template in front of the sensor."""
        self.live_template = encode_template(values)

    def similarity(self, template_a, template_b):
        self.similarity_calls += 1
        self.threads.add(threading.current_thread().name)
        return super().similarity(template_a, template_b)

    def close(self):
        self.closed = True


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if isinstance(self._body, str):
            return json.loads(self._body)
        return self._body


class FakeWebhook:
    """
    Stands in for requests.Session. Records every post; answers with a
    configurable status/body after an optional delay, or raises.
    """

    def __init__(self):
        self.calls = []
        self.delay = 0.0
        self.status_code = 200
        self.body = None
        self.error = None
        self._lock = threading.Lock()

    def post(self, url, json=None, headers=None, timeout=None, allow_redirects=True):
        with self._lock:
            self.calls.append({
                'url': url, 'json': json, 'headers': headers,
                'timeout': timeout, 'allow_redirects': allow_redirects,
            })
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        body = self.body
        if body is None:
            body = {'status': 9, 'message': 'open', 'request_id': json['request_id']}
        return FakeResponse(self.status_code, body)

    def close(self):
        pass


class SpyStorage(Storage):
    """Storage counting full tenant scans, optionally slow to answer them."""

    def __init__(self, database_url):
        super().__init__(database_url)
        self.list_calls = 0
        self.list_threads = set()
        self.list_delay = 0.0
        self.listing = threading.Event()

    def list_persons_by_tenant(self, tenant_id):
        self.list_calls += 1
        self.list_threads.add(threading.current_thread().name)
        self.listing.set()
        if self.list_delay:
            time.sleep(self.list_delay)
        return super().list_persons_by_tenant(tenant_id)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def storage(tmp_path):
    store = SpyStorage(f'sqlite:///{tmp_path / "facegate.db"}')
    yield store
    store.close()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def webhook():
    return FakeWebhook()


@pytest.fixture
def service(config, storage, provider, webhook):
    svc = build_service(config, storage=storage, provider=provider, session=webhook, webhook_timeout=0.5)
    yield svc
    svc.shutdown()


@pytest.fixture
def tenant(service):
    """A configured tenant id."""
    service.configure_tenant('acme', 'http://gate.acme.test/hook')
    return 'acme'
