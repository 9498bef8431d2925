"""
Tests for overlay drawing on blank images.
"""

import numpy as np

from signal_pipeline.step5_signal_matcher import match_signal
from signal_pipeline.step6_confirmation import DetectionSnapshot, DetectionState
from utils.visualization import (
    draw_angle_indicators,
    draw_confidence_bar,
    draw_detection,
    draw_feedback,
    draw_skeleton,
    draw_status_overlay,
)


def blank():
    return np.zeros((480, 640, 3), dtype=np.uint8)


class TestDrawing:
    """Every helper returns a new image of the same shape."""

    def test_skeleton(self, remain_stationary_pose):
        image = blank()
        output = draw_skeleton(image, remain_stationary_pose)

        assert output.shape == image.shape
        assert output.any()
        assert not image.any()

    def test_skeleton_without_pose(self):
        output = draw_skeleton(blank(), None)
        assert not output.any()

    def test_skeleton_skips_invisible_joints(self, make_pose):
        # Everything invisible: nothing to draw
        frame = make_pose(**{
            name: (0.5, 0.5, 0.0)
            for name in ('nose', 'left_shoulder', 'right_shoulder', 'left_elbow', 'right_elbow',
                         'left_wrist', 'right_wrist', 'left_hip', 'right_hip', 'left_knee',
                         'right_knee', 'left_ankle', 'right_ankle')
        })
        assert not draw_skeleton(blank(), frame).any()

    def test_angle_indicators(self, base_pose):
        assert draw_angle_indicators(blank(), base_pose).any()
        assert not draw_angle_indicators(blank(), None).any()

    def test_confidence_bar(self):
        empty = draw_confidence_bar(blank(), 0.0)
        full = draw_confidence_bar(blank(), 1.0, 'matched')

        assert empty.shape == (480, 640, 3)
        assert full.sum() > empty.sum()

    def test_confidence_bar_clamps(self):
        np.testing.assert_array_equal(
            draw_confidence_bar(blank(), 1.7, 'high'),
            draw_confidence_bar(blank(), 1.0, 'high'),
        )

    def test_feedback(self):
        assert not draw_feedback(blank(), []).any()
        assert draw_feedback(blank(), ["Raise your left arm higher"]).any()

    def test_status_overlay(self):
        output = draw_status_overlay(blank(), 'detecting', 'Remain Stationary', 2, 5, fps=30.0)
        assert output.any()


class TestDrawDetection:
    """Full overlay from a snapshot."""

    def test_with_snapshot(self, go_right_pose):
        result = match_signal(go_right_pose, "Go to the Right or Left")
        snapshot = DetectionSnapshot(
            state=DetectionState.DETECTING,
            signal_name="Go to the Right or Left",
            frame=go_right_pose,
            match_result=result,
            confidence=result.confidence,
            feedback=tuple(result.feedback),
            is_match=result.is_match,
            match_count=3,
            timestamp_ms=1000,
        )
        output = draw_detection(blank(), snapshot, fps=25.0)
        assert output.shape == (480, 640, 3)
        assert output.any()

    def test_no_pose_snapshot(self):
        snapshot = DetectionSnapshot(
            state=DetectionState.NO_POSE,
            signal_name="Remain Stationary",
            frame=None,
            match_result=None,
            confidence=0.0,
            feedback=("No pose detected - make sure you're visible in the camera",),
            is_match=False,
            match_count=0,
            timestamp_ms=1000,
        )
        assert draw_detection(blank(), snapshot).any()

    def test_without_snapshot(self):
        assert draw_detection(blank(), None, fps=30.0).any()
