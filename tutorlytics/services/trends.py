"""Three-way classification of a chronological score sequence."""
from decimal import Decimal
from typing import Sequence

from tutorlytics.domain.reports import Trend

# Minimum first-to-last change, in score points, that counts as movement
TREND_THRESHOLD = Decimal("0.5")


def _change(scores: Sequence[float]) -> Decimal:
    # Decimal of the shortest repr, so 8.3 - 7.8 is exactly 0.5
    if len(scores) < 2:
        return Decimal(0)
    return Decimal(str(scores[-1])) - Decimal(str(scores[0]))


def score_change(scores: Sequence[float]) -> float:
    """Last score minus first score; 0.0 with fewer than two scores."""
    return float(_change(scores))


def classify_trend(scores: Sequence[float]) -> Trend:
    """Classify an ordered score sequence.

    Examples:
        >>> classify_trend([5, 8])
        <Trend.IMPROVING: 'improving'>
        >>> classify_trend([7.8, 8.3])
        <Trend.STEADY: 'steady'>
    """
    diff = _change(scores)
    if diff > TREND_THRESHOLD:
        return Trend.IMPROVING
    if diff < -TREND_THRESHOLD:
        return Trend.DECLINING
    return Trend.STEADY
