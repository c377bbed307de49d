"""
Coaching Thresholds

Every tunable number used by scoring, classification and the session
timers lives here, so variant-specific tuning is a data change.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class CoachingThresholds:
    """
    Scoring bands and timer windows.

    Angles are in degrees, offsets in normalized image units and all
    durations in milliseconds unless the name says otherwise.
    """
    # Landmark confidence
    visibility_threshold: float = 0.3
    fallback_score: int = 50

    # Body alignment (shoulder-hip-ankle)
    alignment_target: float = 180.0
    alignment_tolerance: float = 15.0
    alignment_penalty_per_degree: float = 3.0
    hips_low_angle: float = 170.0
    hips_high_angle: float = 190.0

    # Knee position (hip-knee-ankle)
    knee_target: float = 170.0
    knee_penalty_per_degree: float = 2.0

    # Shoulder stack
    stack_excellent_offset: float = 0.2
    stack_good_offset: float = 0.3
    stack_excellent_score: int = 100
    stack_good_score: int = 80
    stack_poor_score: int = 60
    stack_angle_target: float = 90.0
    stack_angle_tolerance: float = 10.0

    # Variant bands on the shoulder-elbow-wrist angle
    high_plank_band: tuple[float, float] = (170.0, 190.0)
    elbow_plank_band: tuple[float, float] = (75.0, 105.0)

    # Score bands
    quality_floor: int = 40
    good_score: int = 70
    excellent_score: int = 90
    red_zone_count: int = 2

    # Timing
    analysis_interval_ms: int = 100
    stability_window_ms: int = 800
    identification_grace_ms: int = 1500
    stop_hint_delay_ms: int = 2000
    failure_window_ms: int = 2000
    auto_stop_delay_ms: int = 1000
    callout_interval_s: int = 10
    callout_suppression_ms: int = 5000
    critical_feedback_interval_ms: int = 5000

    # Voice commands
    stop_words: tuple[str, ...] = ("stop", "end", "finish", "done")
    stop_word_aliases: tuple[str, ...] = ("top",)
    stop_exact_transcripts: tuple[str, ...] = ("op", "st")
    voice_start_failure_limit: int = 3

    def __post_init__(self):
        high_low, high_high = self.high_plank_band
        elbow_low, elbow_high = self.elbow_plank_band
        if high_low > high_high or elbow_low > elbow_high:
            raise ValueError("Variant bands must be (low, high) pairs")
        if not (elbow_high < high_low or high_high < elbow_low):
            raise ValueError(
                f"Variant bands overlap: high={self.high_plank_band} "
                f"elbow={self.elbow_plank_band}"
            )
        if self.stack_excellent_offset >= self.stack_good_offset:
            raise ValueError("Shoulder stack offsets must be increasing")


DEFAULT_THRESHOLDS = CoachingThresholds()
