"""
Signal Pose AI Configuration
============================

Central configuration file for all pipeline parameters.
Classifier, matcher and confirmation thresholds are hand-tuned constants
shared by the whole system; they are not meant to be varied per call.
"""

# =============================================================================
# Camera Settings
# =============================================================================
CAMERA_ID = 0
CAMERA_WIDTH = 640
CAMERA_HEIGHT = 480

# =============================================================================
# Pose Model Settings
# =============================================================================
POSE_BACKEND = "mediapipe"  # Options: "mediapipe", "yolo"

# MediaPipe Tasks PoseLandmarker (33 BlazePose landmarks)
POSE_MODEL_PATH = "models/pose_landmarker_lite.task"
POSE_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/pose_landmarker/"
    "pose_landmarker_lite/float16/1/pose_landmarker_lite.task"
)
MIN_DETECTION_CONFIDENCE = 0.5
MIN_TRACKING_CONFIDENCE = 0.5

# YOLOv8-Pose (17 COCO keypoints, mapped onto the BlazePose slots)
YOLOV8_POSE_MODEL = "yolov8s-pose.pt"  # Options: yolov8n-pose.pt, yolov8s-pose.pt, yolov8m-pose.pt
YOLOV8_CONFIDENCE = 0.5
YOLOV8_DEVICE = None  # None=auto-detect, "cuda" or "cpu"

# =============================================================================
# Arm Classifier Thresholds (normalized image coordinates / degrees)
# =============================================================================
ABOVE_HEAD_Y_DIFF = 0.15           # Wrist must be this much above the shoulder
HORIZONTAL_ANGLE_TOLERANCE = 30.0  # Degrees away from horizontal still counted as horizontal
AT_SIDE_Y_DIFF = 0.05              # Wrist must be this much below the shoulder
MIN_VISIBILITY = 0.5               # Minimum landmark visibility
HANDS_TOUCHING_DISTANCE = 0.12     # Max wrist-to-wrist distance for touching hands
HORIZONTAL_EXTENSION_MIN = 0.15    # Min horizontal shoulder-to-wrist distance for an extended arm
AT_SIDE_FULL_CONFIDENCE_DROP = 0.3 # Wrist drop below shoulder that earns full "at side" confidence

# =============================================================================
# Signal Matcher Settings
# =============================================================================
MATCH_CONFIDENCE_THRESHOLD = 0.75

# Partial credit for unmet criteria (fraction of the graded confidence)
ARM_PARTIAL_CREDIT = 0.5
HANDS_TOUCHING_PARTIAL_CREDIT = 0.3
ADDITIONAL_CHECK_PARTIAL_CREDIT = 0.2

# Confidence gauge buckets
CONFIDENCE_LEVEL_HIGH = 0.75
CONFIDENCE_LEVEL_MEDIUM = 0.5

# Custom catalog YAML (None = built-in lifesaving signals)
CATALOG_PATH = None

# =============================================================================
# Confirmation Settings
# =============================================================================
DETECTION_INTERVAL_MS = 66      # ~15 polls per second
MATCH_CONFIRMATION_FRAMES = 5   # Consecutive qualifying polls before a match fires

# =============================================================================
# Logging Settings
# =============================================================================
LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
LOG_FILE = None

# =============================================================================
# Display Settings
# =============================================================================
WINDOW_NAME = "Signal Pose AI - Real-time Signal Practice"
FONT_SCALE = 0.7

# Colors (BGR format)
COLOR_GREEN = (0, 255, 0)
COLOR_LIGHT_GREEN = (120, 230, 120)
COLOR_YELLOW = (0, 220, 255)
COLOR_ORANGE = (0, 165, 255)
COLOR_RED = (80, 80, 240)
COLOR_WHITE = (255, 255, 255)
COLOR_BLACK = (0, 0, 0)
