"""Visibility scoring for evaluated answers.

Score range: 0-100 (clamped). Fixed weights:
  visibility 40, sentiment 20, citation 20, ranking 10, recommendation 10.
"""

from src.core.schemas import Metrics

VISIBILITY_WEIGHT = 40.0
SENTIMENT_WEIGHT = 10.0  # applied to (sentiment + 1), i.e. 0-20
CITATION_WEIGHT = 20.0
RANKING_CAP = 10.0
RECOMMENDATION_WEIGHT = 0.1


def score_metrics(metrics: Metrics) -> float:
    """Score one evaluated answer on a 0-100 scale.

    Pure function of the metrics: the same input always yields the same score.
    """
    score = 0.0

    if metrics.is_visible:
        score += VISIBILITY_WEIGHT

    score += SENTIMENT_WEIGHT * (metrics.sentiment_score + 1.0)

    if metrics.citation_found:
        score += CITATION_WEIGHT

    # 1st place = 10 points, 10th place = 1 point
    if metrics.ranking_position is not None:
        score += min(RANKING_CAP, max(0.0, 11.0 - metrics.ranking_position))

    score += RECOMMENDATION_WEIGHT * metrics.recommendation_strength

    return max(0.0, min(100.0, score))


def aggregate_score(scores: list[float]) -> int:
    """Mean of per-result scores rounded to the nearest integer; 0 if empty."""
    if not scores:
        return 0
    # round-half-up so 72.5 -> 73 rather than banker's rounding
    return int(sum(scores) / len(scores) + 0.5)
