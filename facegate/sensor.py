"""
Sensor worker.

One dedicated thread owns the biometric provider. Callers submit jobs
(callables taking the provider) over a queue and get a Future back, so
capture, extraction and similarity calls never run concurrently and no
caller holds a lock across sensor I/O.
"""

import queue
import threading
from concurrent.futures import Future
from typing import Callable, Optional, TypeVar

from .biometrics import BiometricProvider
from .logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

_STOP = object()


class SensorWorker:
    """Serializes all provider access on a single thread."""

    def __init__(self, provider: BiometricProvider, name: str = 'sensor-worker'):
        self.provider = provider
        self.name = name
        self._jobs: queue.Queue = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()

    def start(self) -> None:
        """Start the worker thread."""
        with self._start_lock:
            if self._thread and self._thread.is_alive():
                logger.debug(f'{self.name} already running')
                return

            self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
            self._thread.start()
        logger.info(f'{self.name} started ({type(self.provider).__name__})')

    def submit(self, job: Callable[[BiometricProvider], T]) -> 'Future[T]':
        """
        Queue a job for the sensor thread.

        Args:
            job: Callable receiving the provider

        Returns:
            Future resolved with the job's result or exception

        Raises:
            RuntimeError: If the worker is not running
        """
        if not self.is_alive():
            raise RuntimeError(f'{self.name} is not running')
        if threading.current_thread() is self._thread:
            raise RuntimeError('Sensor jobs cannot be submitted from the sensor thread')

        future: Future = Future()
        self._jobs.put((future, job))
        return future

    def run(self, job: Callable[[BiometricProvider], T], timeout: Optional[float] = None) -> T:
        """Submit a job and block until it finishes, re-raising its exception."""
        return self.submit(job).result(timeout=timeout)

    def _run(self) -> None:
        while True:
            item = self._jobs.get()
            if item is _STOP:
                break

            future, job = item
            if not future.set_running_or_notify_cancel():
                continue

            try:
                result = job(self.provider)
            except Exception as e:
                future.set_exception(e)
            else:
                future.set_result(result)

        logger.info(f'{self.name} stopped')

    def stop(self, timeout: float = 5.0) -> None:
        """Finish queued jobs, then stop the worker thread."""
        if not self.is_alive():
            return
        self._jobs.put(_STOP)
        self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
