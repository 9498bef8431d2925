"""
Shared fixtures: synthetic 33-landmark frames for the lifesaving signals.
"""

import pytest

from signal_pipeline.step2_pose_estimation import NUM_LANDMARKS, BodyPart, Landmark, PoseFrame


BASE_POSITIONS = {
    BodyPart.NOSE: (0.5, 0.2),
    BodyPart.LEFT_SHOULDER: (0.4, 0.35),
    BodyPart.RIGHT_SHOULDER: (0.6, 0.35),
    # Arms relaxed at the sides
    BodyPart.LEFT_ELBOW: (0.35, 0.5),
    BodyPart.RIGHT_ELBOW: (0.65, 0.5),
    BodyPart.LEFT_WRIST: (0.35, 0.6),
    BodyPart.RIGHT_WRIST: (0.65, 0.6),
    BodyPart.LEFT_HIP: (0.45, 0.6),
    BodyPart.RIGHT_HIP: (0.55, 0.6),
}


def build_pose(**overrides) -> PoseFrame:
    """
    Standing pose with arms at the sides, with some landmarks moved.

    Keyword names are BodyPart names in lower case; values are (x, y) or
    (x, y, visibility).
    """
    landmarks = [Landmark(0.5, 0.5, 0.0, 1.0)] * NUM_LANDMARKS
    for part, (x, y) in BASE_POSITIONS.items():
        landmarks[part] = Landmark(x, y, 0.0, 1.0)

    for name, value in overrides.items():
        x, y, *rest = value
        visibility = rest[0] if rest else 1.0
        landmarks[BodyPart[name.upper()]] = Landmark(x, y, 0.0, visibility)

    return PoseFrame(landmarks)


@pytest.fixture
def make_pose():
    return build_pose


@pytest.fixture
def base_pose():
    return build_pose()


@pytest.fixture
def remain_stationary_pose():
    """Both arms horizontal."""
    return build_pose(
        left_elbow=(0.25, 0.35), left_wrist=(0.1, 0.35),
        right_elbow=(0.75, 0.35), right_wrist=(0.9, 0.35),
    )


@pytest.fixture
def return_to_shore_pose():
    """Right arm raised, left at side."""
    return build_pose(right_elbow=(0.6, 0.25), right_wrist=(0.6, 0.1))


@pytest.fixture
def go_right_pose():
    """Right arm horizontal, left at side."""
    return build_pose(right_elbow=(0.75, 0.35), right_wrist=(0.9, 0.35))


@pytest.fixture
def emergency_pose():
    """Both arms raised, hands apart."""
    return build_pose(
        left_elbow=(0.4, 0.25), left_wrist=(0.4, 0.1),
        right_elbow=(0.6, 0.25), right_wrist=(0.6, 0.1),
    )


@pytest.fixture
def submerged_pose():
    """Both arms raised, hands touching above the head."""
    return build_pose(
        left_elbow=(0.4, 0.25), left_wrist=(0.48, 0.08),
        right_elbow=(0.6, 0.25), right_wrist=(0.52, 0.08),
    )
