"""
Utils: Visualization
Drawing helpers for the live signal-practice overlay.
"""

import cv2
import numpy as np
from typing import Optional, Sequence

import config
from utils.angle_calculator import AngleCalculator

# Upper body, torso and legs (BlazePose slot indices)
CONNECTIONS = [
    (11, 13), (13, 15), (12, 14), (14, 16), (11, 12),
    (23, 25), (25, 27), (24, 26), (26, 28), (23, 24),
    (11, 23), (12, 24), (0, 11), (0, 12),
]

LEVEL_COLORS = {
    'matched': config.COLOR_GREEN,
    'high': config.COLOR_LIGHT_GREEN,
    'medium': config.COLOR_YELLOW,
    'low': config.COLOR_RED,
}


def draw_skeleton(
    frame: np.ndarray,
    pose_frame,
    color=config.COLOR_GREEN,
    min_visibility: float = config.MIN_VISIBILITY
) -> np.ndarray:
    """
    Draw the pose skeleton.

    Args:
        frame: BGR image
        pose_frame: PoseFrame (None draws nothing)
        color: Line color
        min_visibility: Joints below this visibility are skipped
    """
    frame_copy = frame.copy()
    if pose_frame is None:
        return frame_copy

    h, w = frame_copy.shape[:2]
    landmarks = pose_frame.landmarks

    def to_px(lm):
        return int(lm.x * w), int(lm.y * h)

    for a, b in CONNECTIONS:
        if landmarks[a].visibility < min_visibility or landmarks[b].visibility < min_visibility:
            continue
        cv2.line(frame_copy, to_px(landmarks[a]), to_px(landmarks[b]), color, 2)

    for idx in {i for pair in CONNECTIONS for i in pair}:
        if landmarks[idx].visibility >= min_visibility:
            cv2.circle(frame_copy, to_px(landmarks[idx]), 4, config.COLOR_WHITE, -1)

    return frame_copy


def draw_angle_indicators(frame: np.ndarray, pose_frame) -> np.ndarray:
    """Elbow angle next to each visible elbow."""
    frame_copy = frame.copy()
    if pose_frame is None:
        return frame_copy

    h, w = frame_copy.shape[:2]
    angles = AngleCalculator.calculate_arm_angles(pose_frame, config.MIN_VISIBILITY)

    for side, value in (('LEFT', angles.left_elbow), ('RIGHT', angles.right_elbow)):
        if value is None:
            continue
        elbow = pose_frame.part(f'{side}_ELBOW')
        position = (int(elbow.x * w) + 8, int(elbow.y * h))
        cv2.putText(frame_copy, f"{value:.0f}", position,
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, config.COLOR_WHITE, 1)

    return frame_copy


def draw_confidence_bar(
    frame: np.ndarray,
    confidence: float,
    level: str = 'low'
) -> np.ndarray:
    """
    Horizontal confidence gauge along the bottom edge.

    Args:
        frame: BGR image
        confidence: Match confidence (0-1)
        level: Gauge bucket ("low", "medium", "high", "matched")
    """
    frame_copy = frame.copy()
    h, w = frame_copy.shape[:2]

    confidence = min(1.0, max(0.0, confidence))
    x0, x1 = 10, w - 10
    y0, y1 = h - 30, h - 10
    fill = x0 + int((x1 - x0) * confidence)

    cv2.rectangle(frame_copy, (x0, y0), (x1, y1), config.COLOR_BLACK, -1)
    if fill > x0:
        cv2.rectangle(frame_copy, (x0, y0), (fill, y1), LEVEL_COLORS.get(level, config.COLOR_RED), -1)
    cv2.rectangle(frame_copy, (x0, y0), (x1, y1), config.COLOR_WHITE, 1)
    cv2.putText(frame_copy, f"{confidence * 100:.0f}%", (x0 + 5, y1 - 5),
                cv2.FONT_HERSHEY_SIMPLEX, 0.5, config.COLOR_WHITE, 1)

    return frame_copy


def draw_feedback(frame: np.ndarray, feedback: Sequence[str], max_lines: int = 3) -> np.ndarray:
    """Corrective hints, one per line, above the confidence bar."""
    frame_copy = frame.copy()
    if not feedback:
        return frame_copy

    h = frame_copy.shape[0]
    lines = list(feedback)[:max_lines]
    for i, line in enumerate(reversed(lines)):
        y = h - 45 - i * 25
        cv2.putText(frame_copy, line, (12, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.55, config.COLOR_BLACK, 3)
        cv2.putText(frame_copy, line, (12, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.55, config.COLOR_YELLOW, 1)

    return frame_copy


def draw_status_overlay(
    frame: np.ndarray,
    state: str,
    signal_name: Optional[str],
    match_count: int = 0,
    confirmation_frames: int = config.MATCH_CONFIRMATION_FRAMES,
    fps: Optional[float] = None
) -> np.ndarray:
    """
    Draw target signal, detection state and confirmation progress.

    Args:
        frame: BGR image
        state: Detection state value ("detecting", "no_pose", "matched", ...)
        signal_name: Target signal
        match_count: Current consecutive-match counter
        confirmation_frames: Counter value that confirms the match
        fps: Display FPS (hidden if None)
    """
    frame_copy = frame.copy()
    w = frame_copy.shape[1]

    if signal_name:
        cv2.putText(frame_copy, signal_name, (10, 30),
                    cv2.FONT_HERSHEY_SIMPLEX, config.FONT_SCALE, config.COLOR_WHITE, 2)

    if state == 'matched':
        color = config.COLOR_GREEN
    elif state in ('no_pose', 'error'):
        color = config.COLOR_RED
    else:
        color = config.COLOR_ORANGE
    cv2.putText(frame_copy, f"State: {state} [{match_count}/{confirmation_frames}]", (10, 60),
                cv2.FONT_HERSHEY_SIMPLEX, config.FONT_SCALE, color, 2)

    if fps is not None:
        cv2.putText(frame_copy, f"FPS: {fps:.0f}", (w - 100, 30),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, config.COLOR_WHITE, 1)

    return frame_copy


def draw_detection(
    frame: np.ndarray,
    snapshot,
    confirmation_frames: int = config.MATCH_CONFIRMATION_FRAMES,
    fps: Optional[float] = None
) -> np.ndarray:
    """Full overlay for one DetectionSnapshot (None draws only the FPS)."""
    if snapshot is None:
        return draw_status_overlay(frame, 'idle', None, fps=fps)

    level = 'low'
    if snapshot.match_result is not None:
        level = snapshot.match_result.level.value

    skeleton_color = config.COLOR_GREEN if snapshot.is_match else config.COLOR_ORANGE
    output = draw_skeleton(frame, snapshot.frame, color=skeleton_color)
    output = draw_angle_indicators(output, snapshot.frame)
    output = draw_status_overlay(
        output, snapshot.state.value, snapshot.signal_name,
        snapshot.match_count, confirmation_frames, fps
    )
    output = draw_feedback(output, snapshot.feedback)
    output = draw_confidence_bar(output, snapshot.confidence, level)
    return output
