"""
Angle Calculator Utility
Calculates joint angles from pose landmarks.
"""

import numpy as np
from typing import Dict, Optional
from dataclasses import dataclass


@dataclass
class ArmAngles:
    """Per-side arm angles of one frame (None when the arm is not visible)."""
    left_elbow: Optional[float] = None
    right_elbow: Optional[float] = None
    left_from_horizontal: Optional[float] = None
    right_from_horizontal: Optional[float] = None

    def as_dict(self) -> Dict[str, float]:
        """Only the angles that could be computed."""
        return {
            name: value
            for name, value in self.__dict__.items()
            if value is not None
        }


class AngleCalculator:
    """
    Calculate 2D arm angles from pose landmarks.

    Only x and y are used; the depth value reported by the pose model
    plays no part in signal decisions.
    """

    # Angle definitions: (point_a, vertex, point_b)
    ANGLE_DEFINITIONS = {
        'left_elbow': ('LEFT_SHOULDER', 'LEFT_ELBOW', 'LEFT_WRIST'),
        'right_elbow': ('RIGHT_SHOULDER', 'RIGHT_ELBOW', 'RIGHT_WRIST'),
    }

    @staticmethod
    def calculate_angle(point_a, vertex, point_b) -> float:
        """
        Calculate angle at vertex between point_a and point_b.

        Args:
            point_a: First point (anything with .x and .y)
            vertex: Vertex point where angle is measured
            point_b: Second point

        Returns:
            Angle in degrees [0, 180]; exactly 0 when either vector has zero length
        """
        va = np.array([point_a.x - vertex.x, point_a.y - vertex.y], dtype=float)
        vb = np.array([point_b.x - vertex.x, point_b.y - vertex.y], dtype=float)

        norm_a = np.linalg.norm(va)
        norm_b = np.linalg.norm(vb)
        if norm_a == 0 or norm_b == 0:
            return 0.0

        cos_angle = np.clip(np.dot(va, vb) / (norm_a * norm_b), -1.0, 1.0)
        return float(np.degrees(np.arccos(cos_angle)))

    @staticmethod
    def angle_from_horizontal(origin, target) -> float:
        """
        Angle of the origin->target vector measured from the horizontal.

        0 = pointing right, 90 = straight up, -90 = straight down,
        +/-180 = pointing left. Image Y grows downward, so dy is negated.
        """
        dx = target.x - origin.x
        dy = target.y - origin.y
        angle = float(np.degrees(np.arctan2(-dy, dx)))
        # atan2(-0.0, negative) gives -180; keep the range (-180, 180]
        return 180.0 if angle == -180.0 else angle

    @classmethod
    def calculate_arm_angles(cls, frame, min_visibility: float = 0.5) -> ArmAngles:
        """
        Calculate elbow and shoulder->wrist angles for both arms of a frame.

        Args:
            frame: PoseFrame (indexable by BodyPart name via .part())
            min_visibility: Visibility required on shoulder, elbow and wrist

        Returns:
            ArmAngles for overlay/diagnostic display
        """
        angles = ArmAngles()
        if frame is None:
            return angles

        for angle_name, (a_name, vertex_name, b_name) in cls.ANGLE_DEFINITIONS.items():
            a = frame.part(a_name)
            vertex = frame.part(vertex_name)
            b = frame.part(b_name)
            if min(a.visibility, vertex.visibility, b.visibility) < min_visibility:
                continue

            side = angle_name.split('_')[0]
            setattr(angles, f'{side}_elbow', cls.calculate_angle(a, vertex, b))
            setattr(angles, f'{side}_from_horizontal', cls.angle_from_horizontal(a, b))

        return angles
