"""
Angle Calculator Service

Vector math over landmark points used in plank analysis.
All joint angles are calculated in degrees (0-180) in the image plane.

This is pure mathematics - no external dependencies except numpy.
"""

import math

import numpy as np

from ..domain.pose import PoseLandmark


class AngleCalculator:
    """
    Calculates body angles and offsets from pose landmarks.

    Plank-specific measurements include:
    - Joint angle at a vertex (hip, knee, elbow)
    - Directed body-alignment angle (sag vs pike)
    - Shoulder stack offset and angle

    All methods are static - no state needed.
    """

    # -------------------------------------------------------------------------
    # Core Angle Calculations
    # -------------------------------------------------------------------------

    @staticmethod
    def calculate_angle(
        p1: PoseLandmark,
        p2: PoseLandmark,  # Vertex point
        p3: PoseLandmark
    ) -> float:
        """
        Calculate angle at p2 formed by p1-p2-p3.

        Uses the dot product of the two rays leaving the vertex. The
        cosine is clamped to [-1, 1] so floating point drift never leaves
        the arccos domain.

        Args:
            p1: First point
            p2: Vertex point (where angle is measured)
            p3: Third point

        Returns:
            Angle in degrees (0-180)

        Note:
            p1 and p3 must not coincide with p2.

        Example:
            For knee angle: hip -> knee -> ankle
            angle = calculate_angle(hip, knee, ankle)
        """
        # Vector from p2 to p1
        v1 = np.array([p1.x - p2.x, p1.y - p2.y])

        # Vector from p2 to p3
        v2 = np.array([p3.x - p2.x, p3.y - p2.y])

        cos_angle = np.dot(v1, v2) / (np.linalg.norm(v1) * np.linalg.norm(v2))
        cos_angle = np.clip(cos_angle, -1.0, 1.0)

        return float(np.degrees(np.arccos(cos_angle)))

    @staticmethod
    def calculate_body_alignment_angle(
        shoulder: PoseLandmark,
        hip: PoseLandmark,
        ankle: PoseLandmark
    ) -> float:
        """
        Calculate the directed shoulder-hip-ankle angle.

        The plain hip angle cannot tell a sagging plank from a piked one.
        When the hip sits above the shoulder-ankle line (smaller y in image
        coordinates) the reflex angle is returned instead, so:

        - < 180: hips sagging
        - = 180: straight line
        - > 180: hips piked

        Returns:
            Angle in degrees (0-360)
        """
        angle = AngleCalculator.calculate_angle(shoulder, hip, ankle)

        dx = ankle.x - shoulder.x
        if dx == 0:
            return angle

        t = (hip.x - shoulder.x) / dx
        line_y = shoulder.y + t * (ankle.y - shoulder.y)
        if hip.y < line_y:
            return 360.0 - angle
        return angle

    # -------------------------------------------------------------------------
    # Shoulder Stack
    # -------------------------------------------------------------------------

    @staticmethod
    def calculate_horizontal_offset(p1: PoseLandmark, p2: PoseLandmark) -> float:
        """Absolute horizontal distance between two landmarks."""
        return abs(p1.x - p2.x)

    @staticmethod
    def calculate_stack_angle(shoulder: PoseLandmark, joint: PoseLandmark) -> float:
        """
        Angle of the shoulder-to-joint segment above the horizontal.

        90 means the shoulder is stacked directly over the joint.

        Returns:
            Angle in degrees (0-90)
        """
        horizontal = abs(shoulder.x - joint.x)
        vertical = abs(shoulder.y - joint.y)
        return math.degrees(math.atan2(vertical, horizontal))
