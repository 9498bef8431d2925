"""
Step 2: Pose Estimation
Turns a camera image into a 33-landmark PoseFrame (or None when nobody is visible).

The pose model itself is an external collaborator; this module only defines the
frame data model every other step consumes and thin adapters around
MediaPipe Tasks PoseLandmarker and YOLOv8-Pose.
"""

import logging
import shutil
import threading
import urllib.request
from abc import ABC, abstractmethod
from enum import IntEnum
from pathlib import Path
from typing import Iterable, Iterator, NamedTuple, Optional, Tuple, Union

import cv2
import numpy as np

import config

logger = logging.getLogger(__name__)


class PoseModelError(RuntimeError):
    """The external pose model could not be initialized or is not ready."""


class Landmark(NamedTuple):
    """Single pose landmark."""
    x: float  # Normalized [0, 1]
    y: float  # Normalized [0, 1]
    z: float = 0.0  # Depth, carried but unused by decisions
    visibility: float = 0.0  # Confidence that the point is visible


class BodyPart(IntEnum):
    """BlazePose landmark slots. Slot identity is positional."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


NUM_LANDMARKS = len(BodyPart)

# COCO keypoint index -> BlazePose slot (YOLOv8-Pose output order)
COCO_TO_BODY_PART = {
    0: BodyPart.NOSE,
    1: BodyPart.LEFT_EYE,
    2: BodyPart.RIGHT_EYE,
    3: BodyPart.LEFT_EAR,
    4: BodyPart.RIGHT_EAR,
    5: BodyPart.LEFT_SHOULDER,
    6: BodyPart.RIGHT_SHOULDER,
    7: BodyPart.LEFT_ELBOW,
    8: BodyPart.RIGHT_ELBOW,
    9: BodyPart.LEFT_WRIST,
    10: BodyPart.RIGHT_WRIST,
    11: BodyPart.LEFT_HIP,
    12: BodyPart.RIGHT_HIP,
    13: BodyPart.LEFT_KNEE,
    14: BodyPart.RIGHT_KNEE,
    15: BodyPart.LEFT_ANKLE,
    16: BodyPart.RIGHT_ANKLE,
}


class PoseFrame:
    """
    Immutable set of the 33 landmarks of one person at one instant.

    Index it with BodyPart (or the plain slot number). A missing person is
    represented by None at the call site, never by a frame of invisible points.
    """

    __slots__ = ('_landmarks',)

    def __init__(self, landmarks: Iterable[Landmark]):
        landmarks = tuple(landmarks)
        if len(landmarks) != NUM_LANDMARKS:
            raise ValueError(
                f"PoseFrame needs exactly {NUM_LANDMARKS} landmarks, got {len(landmarks)}"
            )
        self._landmarks: Tuple[Landmark, ...] = landmarks

    @classmethod
    def from_landmarks(cls, landmarks: Iterable[object]) -> 'PoseFrame':
        """
        Build a frame from any objects exposing x, y, z and visibility.

        MediaPipe may report visibility as None; that reads as 0.
        """
        converted = []
        for lm in landmarks:
            visibility = getattr(lm, 'visibility', None)
            converted.append(Landmark(
                x=float(lm.x),
                y=float(lm.y),
                z=float(getattr(lm, 'z', 0.0) or 0.0),
                visibility=float(visibility) if visibility is not None else 0.0,
            ))
        return cls(converted)

    @classmethod
    def from_coco_keypoints(cls, keypoints: np.ndarray, width: int, height: int) -> 'PoseFrame':
        """
        Build a frame from 17 COCO keypoints in pixel coordinates.

        Args:
            keypoints: Array of shape (17, 3) with columns [x_px, y_px, confidence]
            width: Image width in pixels
            height: Image height in pixels

        Slots COCO does not cover are filled with zero-visibility landmarks.
        """
        slots = [Landmark(0.0, 0.0, 0.0, 0.0)] * NUM_LANDMARKS
        for coco_idx, part in COCO_TO_BODY_PART.items():
            x_px, y_px, conf = (float(v) for v in keypoints[coco_idx][:3])
            slots[part] = Landmark(x=x_px / width, y=y_px / height, z=0.0, visibility=conf)
        return cls(slots)

    def part(self, part: Union[BodyPart, str, int]) -> Landmark:
        """Get a landmark by BodyPart, slot number or name (e.g. 'LEFT_WRIST')."""
        if isinstance(part, str):
            part = BodyPart[part.upper()]
        return self._landmarks[int(part)]

    def __getitem__(self, part: Union[BodyPart, int]) -> Landmark:
        return self._landmarks[int(part)]

    def __len__(self) -> int:
        return len(self._landmarks)

    def __iter__(self) -> Iterator[Landmark]:
        return iter(self._landmarks)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PoseFrame):
            return NotImplemented
        return self._landmarks == other._landmarks

    def __hash__(self) -> int:
        return hash(self._landmarks)

    def __repr__(self) -> str:
        visible = sum(1 for lm in self._landmarks if lm.visibility >= config.MIN_VISIBILITY)
        return f"PoseFrame(visible={visible}/{NUM_LANDMARKS})"

    @property
    def landmarks(self) -> Tuple[Landmark, ...]:
        return self._landmarks

    def to_numpy(self) -> np.ndarray:
        """Convert landmarks to numpy array (33, 4)."""
        return np.array([
            [lm.x, lm.y, lm.z, lm.visibility]
            for lm in self._landmarks
        ])


class PoseModel(ABC):
    """
    Interface of the external pose-estimation model.

    initialize() must be idempotent: concurrent or repeated calls end up with
    exactly one loaded model.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Load the model. Raises PoseModelError on failure."""

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """True once initialize() has succeeded."""

    @abstractmethod
    def detect(self, image: np.ndarray, timestamp_ms: int) -> Optional[PoseFrame]:
        """
        Estimate the pose of the single person in a BGR image.

        Args:
            image: BGR image (OpenCV format)
            timestamp_ms: Monotonically increasing timestamp in milliseconds

        Returns:
            PoseFrame, or None if no person detected
        """

    def close(self) -> None:
        """Release resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class MediaPipePoseModel(PoseModel):
    """Estimate pose with the MediaPipe Tasks PoseLandmarker in VIDEO mode."""

    def __init__(
        self,
        model_path: str = config.POSE_MODEL_PATH,
        model_url: str = config.POSE_MODEL_URL,
        min_detection_confidence: float = config.MIN_DETECTION_CONFIDENCE,
        min_tracking_confidence: float = config.MIN_TRACKING_CONFIDENCE
    ):
        """
        Args:
            model_path: Local .task file (downloaded from model_url when missing)
            model_url: Official MediaPipe model URL
            min_detection_confidence: Minimum pose detection confidence
            min_tracking_confidence: Minimum tracking confidence
        """
        self.model_path = Path(model_path)
        self.model_url = model_url
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence

        self._landmarker = None
        self._mp = None
        self._init_lock = threading.Lock()
        self._last_timestamp_ms = -1

    @property
    def is_ready(self) -> bool:
        return self._landmarker is not None

    def initialize(self) -> None:
        # Callers arriving while another thread is loading wait here and then
        # find the landmarker already created.
        with self._init_lock:
            if self._landmarker is not None:
                return

            try:
                import mediapipe as mp
                from mediapipe.tasks import python as mp_tasks
                from mediapipe.tasks.python import vision as mp_vision
            except ImportError as exc:
                raise PoseModelError(
                    "mediapipe is not installed. Run: pip install mediapipe"
                ) from exc

            model_path = self._ensure_model_file()
            options = mp_vision.PoseLandmarkerOptions(
                base_options=mp_tasks.BaseOptions(model_asset_path=str(model_path)),
                running_mode=mp_vision.RunningMode.VIDEO,
                num_poses=1,
                min_pose_detection_confidence=self.min_detection_confidence,
                min_tracking_confidence=self.min_tracking_confidence,
                output_segmentation_masks=False,
            )
            try:
                self._landmarker = mp_vision.PoseLandmarker.create_from_options(options)
            except Exception as exc:
                raise PoseModelError(f"Failed to create PoseLandmarker: {exc}") from exc

            self._mp = mp
            self._last_timestamp_ms = -1
            logger.info("MediaPipe PoseLandmarker ready (%s)", model_path)

    def _ensure_model_file(self) -> Path:
        """Download the .task model once if it is not on disk yet."""
        if self.model_path.exists() and self.model_path.stat().st_size > 0:
            return self.model_path

        self.model_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.model_path.with_suffix(self.model_path.suffix + '.tmp')
        logger.info("Downloading pose model to %s", self.model_path)
        try:
            with urllib.request.urlopen(self.model_url) as response, tmp_path.open('wb') as handle:
                shutil.copyfileobj(response, handle)
            tmp_path.replace(self.model_path)
        except (OSError, ValueError) as exc:
            # ValueError: malformed model_url
            tmp_path.unlink(missing_ok=True)
            raise PoseModelError(
                f"Pose model download failed ({self.model_url}): {exc}. "
                f"Place a PoseLandmarker .task file at {self.model_path}"
            ) from exc

        return self.model_path

    def detect(self, image: np.ndarray, timestamp_ms: int) -> Optional[PoseFrame]:
        if self._landmarker is None:
            return None

        # VIDEO mode rejects timestamps that do not strictly increase
        timestamp_ms = max(int(timestamp_ms), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms

        try:
            rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
            mp_image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb)
            result = self._landmarker.detect_for_video(mp_image, timestamp_ms)
        except (RuntimeError, ValueError, cv2.error) as exc:
            logger.warning("Pose detection error: %s", exc)
            return None

        if not result.pose_landmarks:
            return None

        return PoseFrame.from_landmarks(result.pose_landmarks[0])

    def close(self) -> None:
        with self._init_lock:
            if self._landmarker is not None:
                self._landmarker.close()
                self._landmarker = None
                logger.info("MediaPipe PoseLandmarker closed")


class YoloPoseModel(PoseModel):
    """Estimate pose using YOLOv8-Pose (17 COCO keypoints)."""

    def __init__(
        self,
        model_path: str = config.YOLOV8_POSE_MODEL,
        confidence_threshold: float = config.YOLOV8_CONFIDENCE,
        device: Optional[str] = config.YOLOV8_DEVICE
    ):
        """
        Args:
            model_path: Path to YOLOv8-Pose model (nano/small/medium)
            confidence_threshold: Minimum person detection confidence
            device: 'cuda' or 'cpu' (auto-detect if None)
        """
        self.model_path = model_path
        self.confidence_threshold = confidence_threshold
        self.device = device
        self.model = None
        self._init_lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self.model is not None

    def initialize(self) -> None:
        with self._init_lock:
            if self.model is not None:
                return

            try:
                import torch
                from ultralytics import YOLO
            except ImportError as exc:
                raise PoseModelError(
                    "ultralytics not installed. Run: pip install ultralytics"
                ) from exc

            if self.device is None:
                self.device = 'cuda' if torch.cuda.is_available() else 'cpu'

            try:
                self.model = YOLO(self.model_path)
            except Exception as exc:
                raise PoseModelError(f"Failed to load YOLOv8-Pose model: {exc}") from exc

            logger.info("YOLOv8-Pose (%s) ready on %s", self.model_path, self.device.upper())

    def detect(self, image: np.ndarray, timestamp_ms: int) -> Optional[PoseFrame]:
        if self.model is None:
            return None

        results = self.model(image, verbose=False, device=self.device)

        # Highest-confidence person above threshold
        best_keypoints = None
        best_conf = 0.0
        for result in results:
            if result.keypoints is None or len(result.keypoints) == 0:
                continue
            if result.boxes is None or len(result.boxes) == 0:
                continue

            conf = float(result.boxes[0].conf[0])
            if conf >= self.confidence_threshold and conf > best_conf:
                best_conf = conf
                best_keypoints = result.keypoints.data[0]

        if best_keypoints is None:
            return None

        h, w = image.shape[:2]
        return PoseFrame.from_coco_keypoints(np.asarray(best_keypoints.cpu()), w, h)


def create_pose_model(backend: str = config.POSE_BACKEND, model_path: Optional[str] = None) -> PoseModel:
    """
    Create an (uninitialized) pose model adapter.

    Args:
        backend: "mediapipe" or "yolo"
        model_path: Optional override of the backend's default model file
    """
    if backend == "mediapipe":
        return MediaPipePoseModel(model_path=model_path or config.POSE_MODEL_PATH)
    if backend == "yolo":
        return YoloPoseModel(model_path=model_path or config.YOLOV8_POSE_MODEL)
    raise ValueError(f"Unknown pose backend: {backend!r} (expected 'mediapipe' or 'yolo')")
