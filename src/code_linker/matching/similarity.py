"""Set similarity and weighted scoring."""

from collections.abc import Mapping, Set

from code_linker.models.matching import Confidence, MatchingConfig, MatchingWeights
from code_linker.models.tags import TagDimension


def jaccard(left: Set[str], right: Set[str]) -> float:
    """|A ∩ B| / |A ∪ B|, defined as 0 when both sets are empty."""
    union = len(left | right)
    if union == 0:
        return 0.0
    return len(left & right) / union


def weighted_score(
    query: Mapping[TagDimension, Set[str]],
    entry: Mapping[TagDimension, Set[str]],
    weights: MatchingWeights,
) -> float:
    """Sum of per-dimension Jaccard similarities times their weights, clamped to [0, 1]."""
    total = 0.0
    for dimension in TagDimension:
        similarity = jaccard(query.get(dimension, frozenset()), entry.get(dimension, frozenset()))
        total += similarity * weights.for_dimension(dimension)
    return min(1.0, max(0.0, total))


def confidence_band(score: float, config: MatchingConfig) -> Confidence:
    """Map a score to low / medium / high using the configured thresholds."""
    if score >= config.high_threshold:
        return Confidence.HIGH
    if score >= config.medium_threshold:
        return Confidence.MEDIUM
    return Confidence.LOW
