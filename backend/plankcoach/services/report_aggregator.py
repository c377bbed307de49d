"""
Report Aggregator Service

Reduces the analysis samples buffered during a session into the final
per-criterion and overall scores.
"""

from typing import Callable, Optional, Sequence

from ..domain.analysis import AnalysisResult, PlankVariant, round_score
from ..domain.session import SessionReport
from ..domain.thresholds import CoachingThresholds, DEFAULT_THRESHOLDS


class ReportAggregator:
    """
    Averages each criterion over its own valid samples.

    A sample counts toward a criterion only if that criterion's score is
    nonzero, so one occluded measurement never drags down the others.

    Usage:
        report = ReportAggregator().aggregate(samples)
    """

    def __init__(self, thresholds: CoachingThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds

    @staticmethod
    def _average(
        samples: Sequence[AnalysisResult],
        score_of: Callable[[AnalysisResult], int],
    ) -> Optional[int]:
        valid = [score_of(s) for s in samples if score_of(s) > 0]
        if not valid:
            return None
        return round_score(sum(valid) / len(valid))

    def aggregate(self, samples: Sequence[AnalysisResult]) -> SessionReport:
        """
        Build the final report.

        Criteria without valid samples fall back to 0 for alignment and
        knee, and to the neutral fallback score for shoulder stack. The
        overall score falls back to the mean of the three criteria.
        """
        alignment = self._average(samples, lambda s: s.body_alignment_score)
        knee = self._average(samples, lambda s: s.knee_position_score)
        stack = self._average(samples, lambda s: s.shoulder_stack_score)

        alignment = alignment if alignment is not None else 0
        knee = knee if knee is not None else 0
        stack = stack if stack is not None else self.thresholds.fallback_score

        overall = self._average(samples, lambda s: s.overall_score)
        if overall is None:
            overall = round_score((alignment + knee + stack) / 3)

        variant = samples[-1].plank_variant if samples else PlankVariant.UNKNOWN

        return SessionReport(
            body_alignment_score=alignment,
            knee_position_score=knee,
            shoulder_stack_score=stack,
            average_score=overall,
            plank_variant=variant,
            sample_count=len(samples),
        )
