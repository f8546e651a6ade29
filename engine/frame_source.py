"""
Frame sources for the session scheduler.

A frame source is acquired once per session (open) and released on every exit
path (close). Detection must not be attempted before the source is ready.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

import cv2
import numpy as np

from .exceptions import ResourceUnavailableError

logger = logging.getLogger(__name__)


def decode_frame_data(
    frame_data: bytes,
    target_width: Optional[int] = None,
    target_height: Optional[int] = None
) -> Optional[np.ndarray]:
    """
    Decode binary frame data (JPEG/PNG) received from a client.

    Args:
        frame_data: Encoded image bytes
        target_width: Width to resize to (no resize if None)
        target_height: Height to resize to (no resize if None)

    Returns:
        BGR frame, or None if the data could not be decoded
    """
    if not frame_data:
        return None

    nparr = np.frombuffer(frame_data, np.uint8)
    frame = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

    if frame is not None and target_width and target_height:
        frame = cv2.resize(frame, (target_width, target_height))

    return frame


class FrameSource(ABC):
    """Live video or image surface with a readiness signal."""

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the underlying resource.

        Raises:
            ResourceUnavailableError: if the resource cannot be acquired
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying resource. Must be safe to call twice."""
        pass

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        pass

    @property
    @abstractmethod
    def width(self) -> int:
        pass

    @property
    @abstractmethod
    def height(self) -> int:
        pass

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Current frame (BGR), or None when unavailable."""
        pass


class CameraFrameSource(FrameSource):
    """Local camera read through OpenCV."""

    def __init__(self, device_index: int = 0, width: Optional[int] = None, height: Optional[int] = None):
        self.device_index = device_index
        self._requested_width = width
        self._requested_height = height
        self._capture: Optional[cv2.VideoCapture] = None
        self._lock = threading.Lock()

    def open(self) -> None:
        if self._capture is not None:
            return

        capture = cv2.VideoCapture(self.device_index)
        if not capture.isOpened():
            capture.release()
            raise ResourceUnavailableError(f"Camera {self.device_index} could not be opened")

        if self._requested_width and self._requested_height:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._requested_width)
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._requested_height)

        self._capture = capture
        logger.info(f"Camera {self.device_index} opened: {self.width}x{self.height}")

    def close(self) -> None:
        with self._lock:
            if self._capture is not None:
                self._capture.release()
                self._capture = None
                logger.info(f"Camera {self.device_index} released")

    @property
    def is_ready(self) -> bool:
        return self._capture is not None and self._capture.isOpened()

    @property
    def width(self) -> int:
        if self._capture is None:
            return 0
        return int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))

    @property
    def height(self) -> int:
        if self._capture is None:
            return 0
        return int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))

    def read(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._capture is None:
                return None
            ok, frame = self._capture.read()
        return frame if ok else None


class PushFrameSource(FrameSource):
    """
    Holds the latest frame pushed by a client (e.g. over a WebSocket).

    Ready once open and at least one frame has been received.
    """

    def __init__(self, width: Optional[int] = None, height: Optional[int] = None):
        self._target_width = width
        self._target_height = height
        self._frame: Optional[np.ndarray] = None
        self._open = False
        self._lock = threading.Lock()
        self.frames_received = 0

    def open(self) -> None:
        self._open = True

    def close(self) -> None:
        with self._lock:
            self._open = False
            self._frame = None

    def push(self, frame: np.ndarray) -> None:
        with self._lock:
            self._frame = frame
            self.frames_received += 1

    def push_encoded(self, frame_data: bytes) -> bool:
        """
        Decode and store an encoded frame.

        Returns:
            True if the frame was decoded
        """
        frame = decode_frame_data(frame_data, self._target_width, self._target_height)
        if frame is None:
            logger.warning("Failed to decode frame data")
            return False
        self.push(frame)
        return True

    @property
    def is_ready(self) -> bool:
        return self._open and self._frame is not None

    @property
    def width(self) -> int:
        frame = self._frame
        return 0 if frame is None else int(frame.shape[1])

    @property
    def height(self) -> int:
        frame = self._frame
        return 0 if frame is None else int(frame.shape[0])

    def read(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._frame if self._open else None
