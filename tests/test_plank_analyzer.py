"""Tests for the plank scoring engine.

Covers:
  - Perfect high and elbow planks
  - Sagging and piked hips, bent knees
  - Occlusion fallbacks and low-visibility feedback
  - Score properties (range, rounding of the overall score, idempotence)
  - Wire format of analysis results
"""

import pytest

from plankcoach.domain import AnalysisResult, BodyPart, FeedbackMessage, PlankVariant, round_score
from plankcoach.services import PlankAnalyzer

from pose_builders import (
    PIKE_HIP,
    PIKE_KNEE,
    collapsed_plank,
    elbow_plank,
    hidden,
    high_plank,
    make_frame,
)


@pytest.fixture
def analyzer():
    return PlankAnalyzer()


# ============================================================================
# Test: Good form
# ============================================================================

class TestGoodForm:

    def test_perfect_high_plank(self, analyzer):
        result = analyzer.analyze(high_plank())

        assert result.plank_variant is PlankVariant.HIGH
        assert result.sub_scores == (100, 100, 100)
        assert result.overall_score == 100
        assert result.feedback == ()
        assert result.body_alignment_angle == pytest.approx(180.0, abs=1e-3)
        assert result.shoulder_stack_angle == pytest.approx(90.0)

    def test_perfect_elbow_plank(self, analyzer):
        result = analyzer.analyze(elbow_plank())

        assert result.plank_variant is PlankVariant.ELBOW
        assert result.overall_score == 100
        assert result.feedback == ()

    def test_small_deviation_within_tolerance(self, analyzer):
        # Hip a little below the line, well inside the 15 degree tolerance
        result = analyzer.analyze(make_frame(hip=(0.55, 0.57), knee=(0.675, 0.585)))
        assert result.body_alignment_score == 100
        assert FeedbackMessage.RAISE_HIPS not in result.feedback


# ============================================================================
# Test: Form faults
# ============================================================================

class TestFormFaults:

    def test_collapsed_plank(self, analyzer):
        result = analyzer.analyze(collapsed_plank())

        assert result.body_alignment_score == 0
        assert result.knee_position_score == 0
        assert result.shoulder_stack_score == 100
        assert result.overall_score == 33
        assert result.feedback == (FeedbackMessage.RAISE_HIPS, FeedbackMessage.STRAIGHTEN_LEGS)

    def test_piked_hips_ask_to_lower(self, analyzer):
        result = analyzer.analyze(make_frame(hip=PIKE_HIP, knee=PIKE_KNEE))

        assert result.body_alignment_angle > 190.0
        assert result.body_alignment_score == 0
        assert result.top_feedback == FeedbackMessage.LOWER_HIPS

    def test_hands_forward_of_shoulders(self, analyzer):
        # Straight arm angled forward: still a high plank, wrist 0.25 ahead
        result = analyzer.analyze(make_frame(elbow=(0.175, 0.60), wrist=(0.05, 0.70)))

        assert result.plank_variant is PlankVariant.HIGH
        assert result.shoulder_stack_score == 80
        assert FeedbackMessage.HANDS_UNDER_SHOULDERS in result.feedback

    def test_elbows_far_from_shoulders(self, analyzer):
        result = analyzer.analyze(make_frame(elbow=(-0.02, 0.70), wrist=(-0.02, 0.95)))
        assert result.shoulder_stack_score == 60


# ============================================================================
# Test: Occlusion
# ============================================================================

class TestOcclusion:

    def test_hidden_legs_fall_back(self, analyzer):
        frame = make_frame(overrides=hidden(BodyPart.LEFT_KNEE, BodyPart.LEFT_ANKLE))
        result = analyzer.analyze(frame)

        assert result.body_alignment_score == 50
        assert result.knee_position_score == 50
        assert result.body_alignment_angle == 0.0
        assert result.knee_angle == 0.0
        assert result.feedback == FeedbackMessage.LOW_VISIBILITY
        assert result.overall_score == 67

    def test_hidden_arms_fall_back_silently(self, analyzer):
        frame = make_frame(overrides=hidden(BodyPart.LEFT_ELBOW, BodyPart.LEFT_WRIST))
        result = analyzer.analyze(frame)

        assert result.plank_variant is PlankVariant.UNKNOWN
        assert result.shoulder_stack_score == 50
        assert result.feedback == ()
        assert result.overall_score == 83

    def test_everything_hidden(self, analyzer):
        result = analyzer.analyze(make_frame(visibility=0.1))
        assert result.sub_scores == (50, 50, 50)
        assert result.overall_score == 50

    def test_empty_frame_does_not_raise(self, analyzer):
        result = analyzer.analyze(make_frame(visibility=0.0))
        assert 0 <= result.overall_score <= 100


# ============================================================================
# Test: Properties
# ============================================================================

class TestScoreProperties:

    @pytest.mark.parametrize("hip_y", [0.35, 0.45, 0.50, 0.55, 0.60, 0.65, 0.75, 0.90])
    def test_scores_in_range_and_overall_is_rounded_mean(self, analyzer, hip_y):
        knee = ((0.55 + 0.80) / 2, (hip_y + 0.60) / 2)
        result = analyzer.analyze(make_frame(hip=(0.55, hip_y), knee=knee))

        for score in result.sub_scores + (result.overall_score,):
            assert 0 <= score <= 100
        assert result.overall_score == round_score(sum(result.sub_scores) / 3)

    @pytest.mark.parametrize("build", [high_plank, elbow_plank, collapsed_plank])
    def test_repeated_analysis_is_identical(self, analyzer, build):
        frame = build()
        first = analyzer.analyze(frame)

        for _ in range(5):
            assert analyzer.analyze(frame) == first

    def test_round_score_is_half_up(self):
        assert round_score(84.5) == 85
        assert round_score(66.666) == 67
        assert round_score(33.333) == 33


# ============================================================================
# Test: Wire format
# ============================================================================

class TestWireFormat:

    def test_to_dict_uses_camel_case(self, analyzer):
        data = analyzer.analyze(collapsed_plank()).to_dict()

        assert data["overallScore"] == 33
        assert data["plankType"] == "high"
        assert data["feedback"] == ["Raise your hips", "Straighten your legs"]

    def test_from_dict_accepts_joined_feedback(self):
        result = AnalysisResult.from_dict({
            "bodyAlignmentScore": 80,
            "overallScore": 70,
            "feedback": "Raise your hips, Straighten your legs",
            "plankType": "elbow",
        })
        assert result.feedback == ("Raise your hips", "Straighten your legs")
        assert result.plank_variant is PlankVariant.ELBOW
