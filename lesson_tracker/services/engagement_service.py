"""
Engagement scoring for reading sessions
Pure computations: reading speed, completion score and engagement level
"""
import logging

from lesson_tracker.config import settings

logger = logging.getLogger(__name__)


class EngagementScorer:
    """
    Scores a finished reading session

    Algorithm: Weighted scoring across three dimensions
    - Active time (40%): relative to the expected time at an average pace
    - Scroll depth (40%): direct percentage of content viewed
    - Engagement points (20%): scroll milestones reached during the session

    Override: 5+ minutes of active reading with 80%+ scroll counts as at least 0.8
    """

    # Weights for each factor (must sum to 1.0)
    WEIGHT_TIME = 0.4
    WEIGHT_SCROLL = 0.4
    WEIGHT_ENGAGEMENT = 0.2

    # Completion override thresholds
    OVERRIDE_TIME_MS = 5 * 60 * 1000
    OVERRIDE_SCROLL = 80
    OVERRIDE_SCORE = 0.8

    # Engagement level boundaries
    HIGH_THRESHOLD = 0.7
    MEDIUM_THRESHOLD = 0.4

    def __init__(self, average_wpm: int = None):
        if average_wpm is None:
            average_wpm = settings.AVERAGE_WPM
        if average_wpm <= 0:
            raise ValueError("average_wpm must be positive")
        self.average_wpm = average_wpm

    def reading_speed(self, word_count: int, active_time_ms: int) -> float:
        """Words per minute; 0 when no active time was recorded"""
        if active_time_ms <= 0:
            return 0.0
        return word_count / (active_time_ms / 60000.0)

    def completion_score(
        self,
        active_time_ms: int,
        scroll_pct: int,
        engagement_points: int,
        word_count: int
    ) -> float:
        """
        Calculate completion score in [0, 1]

        Args:
            active_time_ms: Active reading time in milliseconds
            scroll_pct: Maximum scroll percentage (0-100)
            engagement_points: Milestone points (0-100)
            word_count: Lesson word count

        Returns:
            Completion score capped at 1.0
        """
        time_score = self._calculate_time_score(active_time_ms, word_count) * self.WEIGHT_TIME
        scroll_score = (scroll_pct / 100.0) * self.WEIGHT_SCROLL
        engagement_score = (engagement_points / 100.0) * self.WEIGHT_ENGAGEMENT

        score = time_score + scroll_score + engagement_score

        if active_time_ms >= self.OVERRIDE_TIME_MS and scroll_pct >= self.OVERRIDE_SCROLL:
            score = max(score, self.OVERRIDE_SCORE)

        score = min(score, 1.0)

        logger.debug(
            f"Completion calculation: active={active_time_ms}ms, scroll={scroll_pct}%, "
            f"points={engagement_points}, words={word_count}, score={score:.2f}"
        )

        return score

    def engagement_level(self, score: float) -> str:
        """Per-session engagement label"""
        if score >= self.HIGH_THRESHOLD:
            return "high"
        if score >= self.MEDIUM_THRESHOLD:
            return "medium"
        return "low"

    def _calculate_time_score(self, active_time_ms: int, word_count: int) -> float:
        """
        Ratio of active time to the expected reading time, capped at 1.0

        An empty lesson has no expected time; any active time then counts fully.
        """
        expected_time_ms = (word_count / float(self.average_wpm)) * 60000
        if expected_time_ms <= 0:
            return 1.0 if active_time_ms > 0 else 0.0
        return min(active_time_ms / expected_time_ms, 1.0)


# Global instance
engagement_scorer = EngagementScorer()
