"""Tests for the end-of-session report.

Covers:
  - Per-criterion averaging over valid (nonzero) samples
  - Defaults for an empty buffer
  - Grades and improvement tips
"""

from plankcoach.domain import AnalysisResult, PlankVariant, SessionReport
from plankcoach.services import ReportAggregator


def _sample(alignment: int, knee: int = 100, stack: int = 100, overall: int = 90,
            variant: PlankVariant = PlankVariant.HIGH) -> AnalysisResult:
    return AnalysisResult(
        body_alignment_score=alignment,
        knee_position_score=knee,
        shoulder_stack_score=stack,
        overall_score=overall,
        plank_variant=variant,
    )


def _report(average: int, alignment: int = 90, knee: int = 90, stack: int = 90) -> SessionReport:
    return SessionReport(
        body_alignment_score=alignment,
        knee_position_score=knee,
        shoulder_stack_score=stack,
        average_score=average,
        plank_variant=PlankVariant.HIGH,
    )


class TestAggregate:

    def test_zero_samples_are_skipped_per_criterion(self):
        report = ReportAggregator().aggregate([_sample(80), _sample(0), _sample(90)])

        assert report.body_alignment_score == 85
        assert report.knee_position_score == 100
        assert report.average_score == 90
        assert report.sample_count == 3

    def test_rounds_half_up(self):
        report = ReportAggregator().aggregate([_sample(84), _sample(85)])
        assert report.body_alignment_score == 85

    def test_variant_from_last_sample(self):
        samples = [_sample(90), _sample(90, variant=PlankVariant.ELBOW)]
        assert ReportAggregator().aggregate(samples).plank_variant is PlankVariant.ELBOW

    def test_empty_buffer_defaults(self):
        report = ReportAggregator().aggregate([])

        assert report.body_alignment_score == 0
        assert report.knee_position_score == 0
        assert report.shoulder_stack_score == 50
        assert report.average_score == 17
        assert report.plank_variant is PlankVariant.UNKNOWN

    def test_overall_falls_back_to_criteria_mean(self):
        report = ReportAggregator().aggregate([_sample(90, knee=60, stack=60, overall=0)])
        assert report.average_score == 70


class TestGrades:

    def test_grade_bands(self):
        assert [_report(score).grade for score in (95, 90, 85, 70, 60, 59)] == [
            "A+", "A", "B+", "B", "C", "D",
        ]

    def test_grade_description(self):
        assert _report(96).grade_description == "Perfect Form"
        assert _report(10).grade_description == "Needs Work"

    def test_tips_for_weak_criteria(self):
        tips = _report(65, alignment=70, knee=95, stack=79).improvement_tips

        assert len(tips) == 3
        assert any("straight line" in tip for tip in tips)
        assert any("shoulders" in tip for tip in tips)

    def test_no_tips_for_strong_session(self):
        assert _report(92).improvement_tips == []

    def test_to_dict(self):
        data = _report(88).to_dict()
        assert data["averageScore"] == 88
        assert data["grade"] == "B+"
        assert data["plankType"] == "high"
