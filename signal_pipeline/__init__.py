"""
Lifesaving Signal Detection Pipeline

6-Step Pipeline:
1. Frame Capture - Capture frames from webcam/video/image
2. Pose Estimation - 33 landmarks per frame using MediaPipe (or YOLOv8-Pose)
3. Arm Classification - Classify each arm's position geometrically
4. Signal Catalog - Alternative pose definitions per signal name
5. Signal Matching - Score a frame against a signal's definitions
6. Temporal Confirmation - Confirm a match over consecutive polls
"""

from .step1_frame_capture import FrameSource, ImageCapture, LatestFrameSource, VideoFileCapture, WebcamCapture
from .step2_pose_estimation import (
    BodyPart,
    Landmark,
    MediaPipePoseModel,
    PoseFrame,
    PoseModel,
    PoseModelError,
    YoloPoseModel,
    create_pose_model,
)
from .step3_arm_classifier import ArmPosition, Side, classify_arm_position
from .step4_signal_catalog import (
    DEFAULT_CATALOG,
    DETECTABLE_SIGNAL_NAMES,
    CatalogError,
    SignalCatalog,
    SignalDefinition,
)
from .step5_signal_matcher import ConfidenceLevel, MatchResult, SignalMatcher, confidence_level, match_signal
from .step6_confirmation import ConfirmationController, ConfirmationState, DetectionSnapshot, DetectionState

__all__ = [
    'FrameSource',
    'WebcamCapture',
    'VideoFileCapture',
    'ImageCapture',
    'LatestFrameSource',
    'Landmark',
    'BodyPart',
    'PoseFrame',
    'PoseModel',
    'PoseModelError',
    'MediaPipePoseModel',
    'YoloPoseModel',
    'create_pose_model',
    'ArmPosition',
    'Side',
    'classify_arm_position',
    'SignalDefinition',
    'SignalCatalog',
    'CatalogError',
    'DEFAULT_CATALOG',
    'DETECTABLE_SIGNAL_NAMES',
    'MatchResult',
    'ConfidenceLevel',
    'SignalMatcher',
    'match_signal',
    'confidence_level',
    'ConfirmationState',
    'ConfirmationController',
    'DetectionSnapshot',
    'DetectionState',
]
