"""Tests for landmark geometry.

Covers:
  - Vertex angle (right angle, straight line, range, symmetry)
  - Directed body-alignment angle (sag vs pike)
  - Shoulder stack offset and angle
"""

import pytest

from plankcoach.domain import PoseLandmark
from plankcoach.services import AngleCalculator


def _lm(x: float, y: float) -> PoseLandmark:
    return PoseLandmark(x=x, y=y, visibility=1.0)


# ============================================================================
# Test: Vertex angle
# ============================================================================

class TestCalculateAngle:

    def test_right_angle(self):
        angle = AngleCalculator.calculate_angle(_lm(0.0, 0.0), _lm(1.0, 0.0), _lm(1.0, 1.0))
        assert angle == pytest.approx(90.0)

    def test_straight_line(self):
        angle = AngleCalculator.calculate_angle(_lm(0.0, 0.0), _lm(0.5, 0.5), _lm(1.0, 1.0))
        assert angle == pytest.approx(180.0)

    def test_folded_back(self):
        angle = AngleCalculator.calculate_angle(_lm(1.0, 0.0), _lm(0.0, 0.0), _lm(2.0, 0.0))
        assert angle == pytest.approx(0.0, abs=1e-6)

    def test_ignores_visibility(self):
        hidden = PoseLandmark(x=0.0, y=0.0, visibility=0.0)
        angle = AngleCalculator.calculate_angle(hidden, _lm(1.0, 0.0), _lm(1.0, 1.0))
        assert angle == pytest.approx(90.0)

    @pytest.mark.parametrize("p3", [(0.3, 0.9), (0.9, 0.1), (0.0, 1.0), (0.51, 0.49)])
    def test_stays_in_range(self, p3):
        angle = AngleCalculator.calculate_angle(_lm(0.1, 0.2), _lm(0.5, 0.5), _lm(*p3))
        assert 0.0 <= angle <= 180.0

    @pytest.mark.parametrize("p1, p3", [
        ((0.1, 0.2), (0.3, 0.9)),
        ((0.0, 0.0), (1.0, 1.0)),
        ((0.9, 0.1), (0.2, 0.4)),
        ((0.5, 0.0), (0.51, 0.49)),
    ])
    def test_symmetric_in_outer_points(self, p1, p3):
        vertex = _lm(0.5, 0.5)
        forward = AngleCalculator.calculate_angle(_lm(*p1), vertex, _lm(*p3))
        backward = AngleCalculator.calculate_angle(_lm(*p3), vertex, _lm(*p1))
        assert forward == pytest.approx(backward)


# ============================================================================
# Test: Body alignment angle
# ============================================================================

class TestBodyAlignmentAngle:

    def test_straight_body_is_180(self):
        angle = AngleCalculator.calculate_body_alignment_angle(
            _lm(0.3, 0.5), _lm(0.55, 0.55), _lm(0.8, 0.6)
        )
        assert angle == pytest.approx(180.0, abs=1e-3)

    def test_sagging_hips_below_180(self):
        angle = AngleCalculator.calculate_body_alignment_angle(
            _lm(0.3, 0.5), _lm(0.55, 0.65), _lm(0.8, 0.6)
        )
        assert angle < 180.0

    def test_piked_hips_above_180(self):
        angle = AngleCalculator.calculate_body_alignment_angle(
            _lm(0.3, 0.5), _lm(0.55, 0.40), _lm(0.8, 0.6)
        )
        assert angle > 180.0

    def test_sag_and_pike_mirror_each_other(self):
        shoulder, ankle = _lm(0.2, 0.5), _lm(0.8, 0.5)
        sag = AngleCalculator.calculate_body_alignment_angle(shoulder, _lm(0.5, 0.6), ankle)
        pike = AngleCalculator.calculate_body_alignment_angle(shoulder, _lm(0.5, 0.4), ankle)
        assert 180.0 - sag == pytest.approx(pike - 180.0)

    def test_vertical_body_falls_back_to_unsigned(self):
        angle = AngleCalculator.calculate_body_alignment_angle(
            _lm(0.5, 0.2), _lm(0.6, 0.5), _lm(0.5, 0.8)
        )
        assert 0.0 <= angle <= 180.0


# ============================================================================
# Test: Shoulder stack
# ============================================================================

class TestShoulderStack:

    def test_horizontal_offset(self):
        assert AngleCalculator.calculate_horizontal_offset(_lm(0.3, 0.5), _lm(0.45, 0.9)) == pytest.approx(0.15)

    def test_stacked_joint_is_90(self):
        assert AngleCalculator.calculate_stack_angle(_lm(0.3, 0.5), _lm(0.3, 0.7)) == pytest.approx(90.0)

    def test_diagonal_joint_is_45(self):
        assert AngleCalculator.calculate_stack_angle(_lm(0.3, 0.5), _lm(0.5, 0.7)) == pytest.approx(45.0)

    def test_joint_above_shoulder_still_positive(self):
        angle = AngleCalculator.calculate_stack_angle(_lm(0.3, 0.5), _lm(0.4, 0.3))
        assert 0.0 <= angle <= 90.0
