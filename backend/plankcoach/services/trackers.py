"""
Session Trackers

Wall-clock trackers owned by a coaching session. Every duration is derived
from `now_ms` snapshots compared against stored epochs, never from counted
ticks, so they stay correct across pauses and uneven frame rates.
"""

import logging
from typing import Optional

from ..domain.analysis import AnalysisResult, PlankVariant
from ..domain.thresholds import CoachingThresholds, DEFAULT_THRESHOLDS

logger = logging.getLogger(__name__)


class StabilityTracker:
    """
    Tracks how long one plank variant has been held with acceptable form.

    Resets whenever the classification changes or the alignment/knee
    scores drop below the quality floor, so a single noisy frame can never
    identify a plank.
    """

    def __init__(self, thresholds: CoachingThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds
        self.variant = PlankVariant.UNKNOWN
        self.since_ms: Optional[int] = None

    def qualifies(self, result: AnalysisResult) -> bool:
        """Whether a result is good enough to count toward stability."""
        floor = self.thresholds.quality_floor
        return (
            result.plank_variant is not PlankVariant.UNKNOWN
            and result.body_alignment_score >= floor
            and result.knee_position_score >= floor
        )

    def update(self, result: AnalysisResult, now_ms: int) -> bool:
        """
        Feed one analysis tick.

        Returns:
            True if the result qualified
        """
        if not self.qualifies(result):
            self.reset()
            return False

        if result.plank_variant is not self.variant:
            self.variant = result.plank_variant
            self.since_ms = now_ms
        return True

    def stable_for_ms(self, now_ms: int) -> int:
        if self.since_ms is None:
            return 0
        return now_ms - self.since_ms

    def is_stable(self, now_ms: int) -> bool:
        """Same variant held for at least the stability window."""
        return (
            self.variant is not PlankVariant.UNKNOWN
            and self.stable_for_ms(now_ms) >= self.thresholds.stability_window_ms
        )

    def reset(self) -> None:
        self.variant = PlankVariant.UNKNOWN
        self.since_ms = None


class FailureTracker:
    """
    Detects sustained form collapse.

    Form has failed when at least `red_zone_count` sub-scores are below the
    good threshold. Once that has held continuously for the failure window
    the tracker reports it; any tick with fewer red scores resets it.
    """

    def __init__(self, thresholds: CoachingThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds
        self.started_ms: Optional[int] = None

    def is_failing(self, result: AnalysisResult) -> bool:
        red = result.count_below(self.thresholds.good_score)
        return red >= self.thresholds.red_zone_count

    def update(self, result: AnalysisResult, now_ms: int) -> bool:
        """
        Feed one analysis tick.

        Returns:
            True once the failure has been sustained for the window
        """
        if not self.is_failing(result):
            if self.started_ms is not None:
                logger.debug("Form recovered, failure timer reset")
            self.reset()
            return False

        if self.started_ms is None:
            self.started_ms = now_ms
            logger.info("Form failure detected - starting failure timer")

        return now_ms - self.started_ms >= self.thresholds.failure_window_ms

    def reset(self) -> None:
        self.started_ms = None


class SessionTimer:
    """
    Elapsed active time, pausable without losing accumulated time.

    Resuming re-anchors the epoch to `now - elapsed_so_far`.
    """

    def __init__(self):
        self.epoch_ms: Optional[int] = None
        self.paused_elapsed_ms: Optional[int] = None

    @property
    def has_started(self) -> bool:
        return self.epoch_ms is not None

    @property
    def is_running(self) -> bool:
        return self.epoch_ms is not None and self.paused_elapsed_ms is None

    def start(self, now_ms: int) -> None:
        self.epoch_ms = now_ms
        self.paused_elapsed_ms = None

    def pause(self, now_ms: int) -> None:
        if self.is_running:
            self.paused_elapsed_ms = self.elapsed_ms(now_ms)

    def resume(self, now_ms: int) -> None:
        if self.paused_elapsed_ms is not None:
            self.epoch_ms = now_ms - self.paused_elapsed_ms
            self.paused_elapsed_ms = None

    def elapsed_ms(self, now_ms: int) -> int:
        if self.epoch_ms is None:
            return 0
        if self.paused_elapsed_ms is not None:
            return self.paused_elapsed_ms
        return max(0, now_ms - self.epoch_ms)

    def elapsed_seconds(self, now_ms: int) -> int:
        """Whole seconds of active time."""
        return self.elapsed_ms(now_ms) // 1000
