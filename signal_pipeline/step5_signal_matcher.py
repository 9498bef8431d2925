"""
Step 5: Signal Matching
Scores one PoseFrame against every alternative definition of a signal.

Unmet criteria still earn partial credit so the confidence gauge rises as
the user approaches the pose instead of flipping between 0 and 1.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import config

from .step2_pose_estimation import PoseFrame
from .step3_arm_classifier import (
    ArmPosition,
    Side,
    are_hands_touching,
    arm_position_confidence,
    arm_position_feedback,
    classify_arm_position,
)
from .step4_signal_catalog import DEFAULT_CATALOG, SignalCatalog, SignalDefinition

logger = logging.getLogger(__name__)

UNSUPPORTED_FEEDBACK = "This signal does not have pose detection support"
VISIBILITY_HINT = "Make sure your whole upper body is visible in the camera"
HANDS_TOGETHER_HINT = "Bring your hands together above your head"


class ConfidenceLevel(str, Enum):
    """UI gauge bucket."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    MATCHED = "matched"


@dataclass
class MatchResult:
    """Result of matching one frame against one signal."""
    is_match: bool
    confidence: float  # [0, 1]
    feedback: List[str] = field(default_factory=list)
    matched_criteria: List[str] = field(default_factory=list)
    unmatched_criteria: List[str] = field(default_factory=list)

    @property
    def level(self) -> ConfidenceLevel:
        return confidence_level(self.confidence, self.is_match)


def confidence_level(confidence: float, is_match: bool = False) -> ConfidenceLevel:
    if is_match:
        return ConfidenceLevel.MATCHED
    if confidence >= config.CONFIDENCE_LEVEL_HIGH:
        return ConfidenceLevel.HIGH
    if confidence >= config.CONFIDENCE_LEVEL_MEDIUM:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


class SignalMatcher:
    """
    Rule-based signal matcher.

    Tries each definition of the target signal in registration order, keeps
    the best-scoring one and stops at the first clean match.
    """

    def __init__(self, catalog: SignalCatalog = DEFAULT_CATALOG):
        self.catalog = catalog

    def match(self, frame: PoseFrame, signal_name: str) -> MatchResult:
        """
        Match a frame against a signal by name.

        Args:
            frame: Pose frame of the single visible person
            signal_name: Display name of the target signal

        Returns:
            Best MatchResult over the signal's definitions
        """
        definitions = self.catalog.definitions_for(signal_name)
        if not definitions:
            return MatchResult(
                is_match=False,
                confidence=0.0,
                feedback=[UNSUPPORTED_FEEDBACK],
                unmatched_criteria=["No definition found"],
            )

        best: Optional[MatchResult] = None
        for definition in definitions:
            result = self.match_definition(frame, definition)
            if best is None or result.confidence > best.confidence:
                best = result
            if result.is_match:
                break

        if best is None:
            return MatchResult(is_match=False, confidence=0.0, feedback=["Unable to analyze pose"])

        logger.debug("%s: confidence=%.2f match=%s", signal_name, best.confidence, best.is_match)
        return best

    def match_definition(self, frame: PoseFrame, definition: SignalDefinition) -> MatchResult:
        """Score a frame against one definition."""
        matched: List[str] = []
        unmatched: List[str] = []
        feedback: List[str] = []
        total = 0.0
        saw_unknown_arm = False

        for side, target in ((Side.LEFT, definition.left_arm), (Side.RIGHT, definition.right_arm)):
            if target is None:
                continue

            label = side.value.capitalize()
            position = classify_arm_position(frame, side)
            confidence = arm_position_confidence(frame, side, target)

            if position is target:
                matched.append(f"{label} arm: {target.value}")
                total += confidence
            else:
                unmatched.append(f"{label} arm: expected {target.value}, got {position.value}")
                hint = arm_position_feedback(frame, side, target)
                if hint:
                    feedback.append(hint)
                total += confidence * config.ARM_PARTIAL_CREDIT
                saw_unknown_arm = saw_unknown_arm or position is ArmPosition.UNKNOWN

        if definition.hands_touching:
            if are_hands_touching(frame):
                matched.append("Hands touching")
                total += 1.0
            else:
                unmatched.append("Hands not touching")
                feedback.append(HANDS_TOGETHER_HINT)
                total += config.HANDS_TOUCHING_PARTIAL_CREDIT

        if definition.additional_check is not None:
            if definition.additional_check(frame):
                matched.append("Additional criteria met")
                total += 1.0
            else:
                unmatched.append("Additional criteria not met")
                total += config.ADDITIONAL_CHECK_PARTIAL_CREDIT

        if saw_unknown_arm:
            feedback.append(VISIBILITY_HINT)

        confidence = total / definition.criteria_count
        confidence = min(1.0, max(0.0, confidence))

        return MatchResult(
            is_match=not unmatched and confidence >= config.MATCH_CONFIDENCE_THRESHOLD,
            confidence=confidence,
            feedback=feedback,
            matched_criteria=matched,
            unmatched_criteria=unmatched,
        )


_default_matcher = SignalMatcher()


def match_signal(frame: PoseFrame, signal_name: str) -> MatchResult:
    """Match against the built-in catalog."""
    return _default_matcher.match(frame, signal_name)
