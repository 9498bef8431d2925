"""
Step 3: Arm Classification
Rule-based geometric classification of each arm from one PoseFrame.

Every function here is pure: same frame in, same answer out. Thresholds are
the hand-tuned constants in config.py; they cannot be varied per call.
Landmarks below MIN_VISIBILITY never raise, they make the arm "unknown".
"""

from enum import Enum
from typing import Optional, Tuple, Union

import config
from utils.angle_calculator import AngleCalculator

from .step2_pose_estimation import BodyPart, Landmark, PoseFrame


class Side(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class ArmPosition(str, Enum):
    """Discrete classification of one arm."""
    RAISED_ABOVE_HEAD = "raised_above_head"
    EXTENDED_HORIZONTAL = "extended_horizontal"
    AT_SIDE = "at_side"
    BENT = "bent"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


SideLike = Union[Side, str]

# (shoulder, elbow, wrist) per side
ARM_JOINTS = {
    Side.LEFT: (BodyPart.LEFT_SHOULDER, BodyPart.LEFT_ELBOW, BodyPart.LEFT_WRIST),
    Side.RIGHT: (BodyPart.RIGHT_SHOULDER, BodyPart.RIGHT_ELBOW, BodyPart.RIGHT_WRIST),
}


def elbow_angle(shoulder: Landmark, elbow: Landmark, wrist: Landmark) -> float:
    """Angle at the elbow in degrees [0, 180]; exactly 0 for coincident points."""
    return AngleCalculator.calculate_angle(shoulder, elbow, wrist)


def arm_angle_from_horizontal(shoulder: Landmark, wrist: Landmark) -> float:
    """Shoulder->wrist angle: 0 = right, 90 = up, -90 = down, +/-180 = left."""
    return AngleCalculator.angle_from_horizontal(shoulder, wrist)


def is_landmark_visible(landmark: Landmark) -> bool:
    return landmark.visibility >= config.MIN_VISIBILITY


def arm_landmarks(frame: PoseFrame, side: SideLike) -> Optional[Tuple[Landmark, Landmark, Landmark]]:
    """
    Get (shoulder, elbow, wrist) of one arm.

    Returns:
        The triple, or None if any of the three is not visible enough
    """
    joints = tuple(frame[part] for part in ARM_JOINTS[Side(side)])
    if not all(is_landmark_visible(lm) for lm in joints):
        return None
    return joints


def _horizontal_extension(shoulder: Landmark, wrist: Landmark) -> float:
    return abs(wrist.x - shoulder.x)


def _degrees_off_horizontal(angle: float) -> float:
    return min(abs(angle), abs(abs(angle) - 180))


def is_arm_above_head(frame: PoseFrame, side: SideLike) -> bool:
    arm = arm_landmarks(frame, side)
    if arm is None:
        return False

    shoulder, _, wrist = arm
    # Lower y is higher in the image
    return shoulder.y - wrist.y > config.ABOVE_HEAD_Y_DIFF


def is_arm_extended_horizontal(frame: PoseFrame, side: SideLike) -> bool:
    arm = arm_landmarks(frame, side)
    if arm is None:
        return False

    shoulder, _, wrist = arm
    angle = arm_angle_from_horizontal(shoulder, wrist)
    is_horizontal = (
        abs(angle) < config.HORIZONTAL_ANGLE_TOLERANCE
        or abs(abs(angle) - 180) < config.HORIZONTAL_ANGLE_TOLERANCE
    )
    is_extended = _horizontal_extension(shoulder, wrist) > config.HORIZONTAL_EXTENSION_MIN
    return is_horizontal and is_extended


def is_arm_at_side(frame: PoseFrame, side: SideLike) -> bool:
    """Relaxed arm: wrist below the shoulder and close to the body."""
    arm = arm_landmarks(frame, side)
    if arm is None:
        return False

    shoulder, _, wrist = arm
    wrist_below_shoulder = wrist.y > shoulder.y + config.AT_SIDE_Y_DIFF
    close_to_body = _horizontal_extension(shoulder, wrist) < config.HORIZONTAL_EXTENSION_MIN
    return wrist_below_shoulder and close_to_body


def classify_arm_position(frame: PoseFrame, side: SideLike) -> ArmPosition:
    """
    Classify one arm.

    Priority: raised_above_head, extended_horizontal, at_side. A visible arm
    matching none of them is "bent"; an arm with an invisible joint is "unknown".
    """
    if is_arm_above_head(frame, side):
        return ArmPosition.RAISED_ABOVE_HEAD
    if is_arm_extended_horizontal(frame, side):
        return ArmPosition.EXTENDED_HORIZONTAL
    if is_arm_at_side(frame, side):
        return ArmPosition.AT_SIDE
    if arm_landmarks(frame, side) is not None:
        return ArmPosition.BENT
    return ArmPosition.UNKNOWN


def arm_position_confidence(frame: PoseFrame, side: SideLike, target: ArmPosition) -> float:
    """
    Graded score in [0, 1] of how close the arm is to the target position.

    Args:
        frame: Pose frame
        side: "left" or "right"
        target: Position to grade against

    Returns:
        0 when the arm is not visible, or for "bent"/"unknown" targets
    """
    arm = arm_landmarks(frame, side)
    if arm is None:
        return 0.0

    shoulder, _, wrist = arm
    target = ArmPosition(target)
    extension = _horizontal_extension(shoulder, wrist)

    if target is ArmPosition.RAISED_ABOVE_HEAD:
        # Full marks at twice the detection margin
        y_diff = shoulder.y - wrist.y
        return min(1.0, max(0.0, y_diff / (config.ABOVE_HEAD_Y_DIFF * 2)))

    if target is ArmPosition.EXTENDED_HORIZONTAL:
        off_horizontal = _degrees_off_horizontal(arm_angle_from_horizontal(shoulder, wrist))
        angle_confidence = 1 - off_horizontal / 90
        extension_confidence = min(1.0, extension / config.HORIZONTAL_EXTENSION_MIN)
        return (angle_confidence + extension_confidence) / 2

    if target is ArmPosition.AT_SIDE:
        below = wrist.y - shoulder.y
        below_confidence = min(1.0, below / config.AT_SIDE_FULL_CONFIDENCE_DROP) if below > 0 else 0.0
        close_confidence = 1 - min(1.0, extension / config.HORIZONTAL_EXTENSION_MIN)
        return (below_confidence + close_confidence) / 2

    return 0.0


def arm_position_feedback(frame: PoseFrame, side: SideLike, target: ArmPosition) -> Optional[str]:
    """Short correction hint, or None if the arm is already in the target position."""
    current = classify_arm_position(frame, side)
    target = ArmPosition(target)
    if current is target:
        return None

    label = Side(side).value

    if target is ArmPosition.RAISED_ABOVE_HEAD:
        if current is ArmPosition.EXTENDED_HORIZONTAL:
            return f"Raise your {label} arm above your head"
        if current in (ArmPosition.AT_SIDE, ArmPosition.BENT):
            return f"Lift your {label} arm straight up above your head"
        return f"Raise your {label} arm higher"

    if target is ArmPosition.EXTENDED_HORIZONTAL:
        if current is ArmPosition.RAISED_ABOVE_HEAD:
            return f"Lower your {label} arm to shoulder height"
        if current in (ArmPosition.AT_SIDE, ArmPosition.BENT):
            return f"Extend your {label} arm out to the side"
        return f"Straighten your {label} arm horizontally"

    if target is ArmPosition.AT_SIDE:
        return f"Lower your {label} arm to your side"

    return None


def are_hands_touching(frame: PoseFrame) -> bool:
    left_wrist = frame[BodyPart.LEFT_WRIST]
    right_wrist = frame[BodyPart.RIGHT_WRIST]
    if not (is_landmark_visible(left_wrist) and is_landmark_visible(right_wrist)):
        return False

    distance = ((left_wrist.x - right_wrist.x) ** 2 + (left_wrist.y - right_wrist.y) ** 2) ** 0.5
    return distance < config.HANDS_TOUCHING_DISTANCE


def are_both_arms_horizontal(frame: PoseFrame) -> bool:
    return is_arm_extended_horizontal(frame, Side.LEFT) and is_arm_extended_horizontal(frame, Side.RIGHT)


def are_both_arms_raised(frame: PoseFrame) -> bool:
    return is_arm_above_head(frame, Side.LEFT) and is_arm_above_head(frame, Side.RIGHT)
