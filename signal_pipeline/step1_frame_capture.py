"""
Step 1: Frame Capture
Captures frames from webcam, video file, a still image, or a display loop.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional, Tuple, Union

import cv2
import numpy as np

import config

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Abstract base class for frame capture."""

    @abstractmethod
    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        """Read a single frame."""
        pass

    @abstractmethod
    def release(self) -> None:
        """Release resources."""
        pass

    @abstractmethod
    def is_opened(self) -> bool:
        """Check if capture is opened."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class WebcamCapture(FrameSource):
    """Capture frames from webcam."""

    def __init__(
        self,
        camera_id: int = config.CAMERA_ID,
        width: int = config.CAMERA_WIDTH,
        height: int = config.CAMERA_HEIGHT
    ):
        self.camera_id = camera_id
        self.width = width
        self.height = height
        self.cap = cv2.VideoCapture(camera_id)
        if not self.cap.isOpened():
            raise RuntimeError(f"Cannot open camera {camera_id}")
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        logger.info("Camera %s opened (%dx%d requested)", camera_id, width, height)

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        return self.cap.read()

    def release(self) -> None:
        self.cap.release()

    def is_opened(self) -> bool:
        return self.cap.isOpened()


class VideoFileCapture(FrameSource):
    """Capture frames from video file."""

    def __init__(self, video_path: str, loop: bool = False):
        """
        Args:
            video_path: Path to the video file
            loop: Rewind to the first frame instead of ending
        """
        self.video_path = video_path
        self.loop = loop
        self.cap = cv2.VideoCapture(video_path)
        if not self.cap.isOpened():
            raise RuntimeError(f"Cannot open video: {video_path}")
        self.current_frame = 0

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        ret, frame = self.cap.read()
        if not ret and self.loop and self.current_frame > 0:
            self.seek(0)
            ret, frame = self.cap.read()
        if ret:
            self.current_frame += 1
        return ret, frame

    def release(self) -> None:
        self.cap.release()

    def is_opened(self) -> bool:
        return self.cap.isOpened()

    def seek(self, frame_number: int) -> None:
        """Seek to specific frame."""
        self.cap.set(cv2.CAP_PROP_POS_FRAMES, frame_number)
        self.current_frame = frame_number


class ImageCapture(FrameSource):
    """Serve one still image over and over (single-image checks, tests)."""

    def __init__(self, image: Union[str, np.ndarray]):
        if isinstance(image, str):
            self.image_path = image
            self.image = cv2.imread(image)
            if self.image is None:
                raise RuntimeError(f"Cannot read image: {image}")
        else:
            self.image_path = None
            self.image = image
        self.read_count = 0

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        if self.image is None:
            return False, None
        self.read_count += 1
        return True, self.image.copy()

    def release(self) -> None:
        self.image = None

    def is_opened(self) -> bool:
        return self.image is not None


class LatestFrameSource(FrameSource):
    """
    Single-slot frame buffer shared between a display loop and the poller.

    The display loop put()s every camera frame; read() hands out the most
    recent one. Older frames are overwritten, never queued.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._frame_id = 0
        self._closed = False

    def put(self, frame: np.ndarray) -> None:
        with self._lock:
            self._frame = frame
            self._frame_id += 1

    @property
    def frame_id(self) -> int:
        """Number of frames put so far."""
        with self._lock:
            return self._frame_id

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        with self._lock:
            if self._closed or self._frame is None:
                return False, None
            return True, self._frame.copy()

    def release(self) -> None:
        with self._lock:
            self._closed = True
            self._frame = None

    def is_opened(self) -> bool:
        with self._lock:
            return not self._closed
