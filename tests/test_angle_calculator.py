"""
Tests for the 2D angle maths.
"""

import pytest

from signal_pipeline.step2_pose_estimation import Landmark
from utils.angle_calculator import AngleCalculator, ArmAngles


def point(x, y):
    return Landmark(x, y, 0.0, 1.0)


class TestCalculateAngle:
    """Angle at a vertex."""

    def test_straight_line_is_180(self):
        angle = AngleCalculator.calculate_angle(point(0.3, 0.5), point(0.5, 0.5), point(0.7, 0.5))
        assert angle == pytest.approx(180.0)

    def test_perpendicular_is_90(self):
        angle = AngleCalculator.calculate_angle(point(0.5, 0.3), point(0.5, 0.5), point(0.7, 0.5))
        assert angle == pytest.approx(90.0)

    def test_coincident_points_are_exactly_zero(self):
        p = point(0.4, 0.4)
        assert AngleCalculator.calculate_angle(p, p, p) == 0.0

    def test_one_zero_length_vector_is_zero(self):
        assert AngleCalculator.calculate_angle(point(0.5, 0.5), point(0.5, 0.5), point(0.9, 0.1)) == 0.0

    def test_depth_is_ignored(self):
        a = Landmark(0.3, 0.5, -5.0, 1.0)
        b = Landmark(0.5, 0.5, 3.0, 1.0)
        c = Landmark(0.7, 0.5, 0.0, 1.0)
        assert AngleCalculator.calculate_angle(a, b, c) == pytest.approx(180.0)


class TestAngleFromHorizontal:
    """Shoulder->wrist direction, image Y pointing down."""

    def setup_method(self):
        self.shoulder = point(0.3, 0.5)

    def test_right_is_zero(self):
        assert AngleCalculator.angle_from_horizontal(self.shoulder, point(0.7, 0.5)) == pytest.approx(0.0)

    def test_up_is_plus_90(self):
        assert AngleCalculator.angle_from_horizontal(self.shoulder, point(0.3, 0.1)) == pytest.approx(90.0)

    def test_down_is_minus_90(self):
        assert AngleCalculator.angle_from_horizontal(self.shoulder, point(0.3, 0.9)) == pytest.approx(-90.0)

    def test_left_is_180(self):
        angle = AngleCalculator.angle_from_horizontal(self.shoulder, point(0.1, 0.5))
        assert angle == pytest.approx(180.0)


class TestArmAngles:
    """Per-frame arm angles used by the overlay."""

    def test_horizontal_arms(self, remain_stationary_pose):
        angles = AngleCalculator.calculate_arm_angles(remain_stationary_pose)

        assert angles.left_elbow == pytest.approx(180.0)
        assert angles.right_elbow == pytest.approx(180.0)
        assert abs(angles.left_from_horizontal) == pytest.approx(180.0)
        assert angles.right_from_horizontal == pytest.approx(0.0)

    def test_invisible_arm_is_skipped(self, make_pose):
        frame = make_pose(left_elbow=(0.35, 0.5, 0.2))
        angles = AngleCalculator.calculate_arm_angles(frame)

        assert angles.left_elbow is None
        assert angles.left_from_horizontal is None
        assert angles.right_elbow is not None
        assert set(angles.as_dict()) == {'right_elbow', 'right_from_horizontal'}

    def test_no_frame(self):
        assert AngleCalculator.calculate_arm_angles(None) == ArmAngles()
