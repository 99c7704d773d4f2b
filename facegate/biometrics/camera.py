"""
Camera access for sensor providers.

Opens either a local webcam (by index) or a network stream (RTSP, or
HTTP MJPEG served by a phone / IP camera) and reads single frames on
demand.
"""

from typing import Optional, Tuple

import cv2
import numpy as np
import requests

from ..errors import CaptureFailed
from ..logging_config import get_logger

logger = get_logger(__name__)

# Frames dropped before a live read so the sample is current, not buffered
LIVE_FLUSH_FRAMES = 5


def sanitize_url(url: str) -> str:
    """
    Remove password from URL for logging.

    Args:
        url: URL with potential password

    Returns:
        URL with credentials reduced to the username
    """
    if '://' not in url:
        return url

    protocol, rest = url.split('://', 1)
    if '@' not in rest:
        return url

    creds, host = rest.rsplit('@', 1)
    username = creds.split(':', 1)[0]
    return f'{protocol}://{username}@{host}'


def open_local_camera(source: str):
    """
    Open a local webcam.

    Args:
        source: Camera index as a string ('0', '1', ...)

    Raises:
        CaptureFailed: If the index is invalid or the camera does not open
    """
    try:
        index = int(source)
    except ValueError:
        raise CaptureFailed(f'Local camera source must be an index, got {source!r}') from None

    logger.info(f'Opening local camera {index}...')
    capture = cv2.VideoCapture(index)
    if capture is None or not capture.isOpened():
        raise CaptureFailed(f'Cannot open local camera {index}')

    logger.info(f'✅ Local camera {index} opened')
    return capture


def open_stream_camera(source: str):
    """
    Open a network camera stream.

    HTTP MJPEG streams are read with requests; RTSP and anything else go
    through the OpenCV backends in order of preference.

    Raises:
        CaptureFailed: If no backend can open the stream
    """
    logger.info(f'Opening stream camera {sanitize_url(source)}...')

    if source.startswith(('http://', 'https://')) and 'mjp' in source.lower():
        capture = MJPEGStreamCapture(source)
        if capture.isOpened():
            logger.info('✅ MJPEG stream opened')
            return capture
        raise CaptureFailed(f'Cannot open MJPEG stream {sanitize_url(source)}')

    backends = []
    if hasattr(cv2, 'CAP_FFMPEG'):
        backends.append(('CAP_FFMPEG', cv2.CAP_FFMPEG))
    backends.append(('DEFAULT', None))

    for backend_name, backend_flag in backends:
        capture = cv2.VideoCapture(source) if backend_flag is None else cv2.VideoCapture(source, backend_flag)
        if capture is not None and capture.isOpened():
            if source.startswith('rtsp://'):
                capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)
            logger.info(f'✅ Stream opened with backend {backend_name}')
            return capture
        if capture is not None:
            capture.release()
        logger.debug(f'Backend {backend_name} could not open the stream')

    raise CaptureFailed(f'Cannot open stream {sanitize_url(source)}')


def read_frame(capture, flush: int = 0) -> np.ndarray:
    """
    Read one frame.

    Args:
        capture: Opened capture object
        flush: Number of buffered frames to drop first

    Raises:
        CaptureFailed: If no frame could be read
    """
    grabbed = False
    for _ in range(flush):
        if not capture.grab():
            break
        grabbed = True

    ret, frame = capture.read()
    if (not ret or frame is None) and grabbed:
        # nothing newer arrived: use the last frame grabbed
        ret, frame = capture.retrieve()
    if not ret or frame is None:
        raise CaptureFailed('Failed to read frame from camera')
    return frame


class MJPEGStreamCapture:
    """
    Minimal VideoCapture look-alike for HTTP MJPEG streams.

    Reads the multipart body with requests and decodes the JPEG between
    the SOI and EOI markers. grab() pulls the next frame off the stream,
    retrieve() returns the last one grabbed.
    """

    MAX_BUFFER_BYTES = 10 * 1024 * 1024

    def __init__(self, url: str, timeout: int = 10):
        self.url = url
        self._buffer = b''
        self._response = None
        self._chunks = None
        self._grabbed = None

        try:
            self._response = requests.get(url, stream=True, timeout=timeout)
        except requests.exceptions.RequestException as e:
            logger.warning(f'Failed to open MJPEG stream: {e}')
            return

        if self._response.status_code != 200:
            logger.warning(f'MJPEG stream returned status {self._response.status_code}')
            self._response.close()
            self._response = None
            return

        self._chunks = self._response.iter_content(chunk_size=4096)

    def isOpened(self) -> bool:
        return self._chunks is not None

    def set(self, prop_id: int, value: float) -> bool:
        return True

    def _pop_buffered_frame(self) -> Optional[np.ndarray]:
        while True:
            start = self._buffer.find(b'\xff\xd8')
            end = self._buffer.find(b'\xff\xd9', start + 2) if start != -1 else -1
            if start == -1 or end == -1:
                return None
            jpg = self._buffer[start:end + 2]
            self._buffer = self._buffer[end + 2:]
            frame = cv2.imdecode(np.frombuffer(jpg, dtype=np.uint8), cv2.IMREAD_COLOR)
            if frame is not None:
                return frame

    def grab(self) -> bool:
        if self._chunks is None:
            return False

        frame = self._pop_buffered_frame()
        try:
            while frame is None:
                chunk = next(self._chunks, None)
                if chunk is None:
                    return False
                self._buffer += chunk
                if len(self._buffer) > self.MAX_BUFFER_BYTES:
                    logger.warning('MJPEG buffer overflow, resetting')
                    self._buffer = b''
                    continue
                frame = self._pop_buffered_frame()
        except requests.exceptions.RequestException as e:
            logger.warning(f'Error reading MJPEG frame: {e}')
            return False

        self._grabbed = frame
        return True

    def retrieve(self) -> Tuple[bool, Optional[np.ndarray]]:
        if self._grabbed is None:
            return False, None
        return True, self._grabbed

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        if not self.grab():
            return False, None
        return self.retrieve()

    def release(self) -> None:
        if self._response is not None:
            self._response.close()
        self._response = None
        self._chunks = None
        self._buffer = b''
        self._grabbed = None
