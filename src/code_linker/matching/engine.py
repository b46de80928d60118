"""Feature-based matching of code against the knowledge index."""

import logging

from code_linker.index.knowledge_index import KnowledgeIndex, index_keys
from code_linker.matching.similarity import confidence_band, weighted_score
from code_linker.models.features import CodeFeatures, SourceLanguage
from code_linker.models.knowledge import CatalogLanguage, KnowledgeEntry
from code_linker.models.matching import Confidence, MatchedTags, MatchingConfig, MatchResult
from code_linker.models.tags import TagDimension, api_index_key

logger = logging.getLogger(__name__)

PREREQUISITE_EXPLANATION = "Prerequisite"
RELATED_EXPLANATION = "Related topic"

# Order in which dimensions appear in explanations
_EXPLANATION_ORDER = (
    TagDimension.PATTERNS,
    TagDimension.APIS,
    TagDimension.SYNTAX,
    TagDimension.CONCEPTS,
)


def catalog_language(language: str) -> CatalogLanguage | None:
    """Catalog language a source language is matched against (TypeScript reads as JavaScript)."""
    normalized = language.strip().lower()
    if normalized == SourceLanguage.TYPESCRIPT:
        return CatalogLanguage.JAVASCRIPT
    try:
        return CatalogLanguage(normalized)
    except ValueError:
        return None


def feature_sets(features: CodeFeatures) -> dict[TagDimension, frozenset[str]]:
    """Per-dimension tag sets of a feature record."""
    return {
        TagDimension.SYNTAX: frozenset(features.syntax),
        TagDimension.PATTERNS: frozenset(features.patterns),
        TagDimension.APIS: frozenset(features.apis),
        TagDimension.CONCEPTS: frozenset(features.concepts),
    }


class MatchingEngine:
    """Scores every same-language catalog entry against a feature record."""

    def __init__(self, index: KnowledgeIndex) -> None:
        """Match against ``index``."""
        self.index = index

    def match(
        self,
        features: CodeFeatures | dict[TagDimension, frozenset[str]],
        language: str,
        config: MatchingConfig | None = None,
    ) -> list[MatchResult]:
        """Rank entries by weighted per-dimension Jaccard similarity.

        Language is a hard filter. Results below ``min_score`` are dropped,
        the rest are stably sorted by descending score and cut to
        ``max_results``. Prerequisites (and optionally related entries) of
        the kept results are appended with score 0.
        """
        config = config or MatchingConfig()
        target = catalog_language(language)
        if target is None:
            logger.debug("No catalog for language %s", language)
            return []
        raw_sets = features if isinstance(features, dict) else feature_sets(features)
        query = {dimension: index_keys(dimension, tags) for dimension, tags in raw_sets.items()}

        scored: list[MatchResult] = []
        for entry in self.index.by_language(target):
            entry_sets = {d: self.index.entry_keys(entry.id, d) for d in TagDimension}
            score = weighted_score(query, entry_sets, config.weights)
            if score < config.min_score:
                continue
            matched = self._matched_tags(raw_sets, entry, entry_sets)
            scored.append(
                MatchResult(
                    entry=entry,
                    score=score,
                    matched_tags=matched,
                    confidence=confidence_band(score, config),
                    explanation=explain(matched, entry),
                )
            )

        # sorted() is stable, so equal scores keep catalog order
        results = sorted(scored, key=lambda r: r.score, reverse=True)[: config.max_results]

        if results and config.include_dependencies:
            results.extend(self._attached(results, "dependencies", PREREQUISITE_EXPLANATION))
        if results and config.include_related:
            results.extend(self._attached(results, "related", RELATED_EXPLANATION))
        logger.debug("Matched %d entries for %s", len(results), language)
        return results

    @staticmethod
    def _matched_tags(
        query: dict[TagDimension, frozenset[str]],
        entry: KnowledgeEntry,
        entry_sets: dict[TagDimension, frozenset[str]],
    ) -> MatchedTags:
        matched: dict[str, list[str]] = {}
        for dimension in TagDimension:
            if dimension == TagDimension.APIS:
                # Report the catalog's spelling of each matched signature
                query_keys = index_keys(dimension, query.get(dimension, frozenset()))
                shared = [
                    tag
                    for tag in entry.tags.apis
                    if api_index_key(tag) in query_keys
                ]
            else:
                shared = list(entry_sets[dimension] & query.get(dimension, frozenset()))
            matched[dimension.value] = sorted(set(shared))
        return MatchedTags(**matched)

    def _attached(
        self, results: list[MatchResult], field: str, explanation: str
    ) -> list[MatchResult]:
        present = {result.entry.id for result in results}
        attached: list[MatchResult] = []
        for result in list(results):
            for ref in getattr(result.entry, field):
                entry = self.index.get(ref)
                if entry is None or ref in present:
                    continue
                present.add(ref)
                attached.append(
                    MatchResult(
                        entry=entry,
                        score=0.0,
                        confidence=Confidence.LOW,
                        explanation=explanation,
                        prerequisite=field == "dependencies",
                    )
                )
        return attached


def explain(matched: MatchedTags, entry: KnowledgeEntry) -> str:
    """Deterministic summary of the shared tags.

    ``"patterns: a, b; apis: c; syntax: d (match: 60%)"`` where the
    percentage is the share of the entry's tags the code exhibits.
    """
    parts = [
        f"{dimension}: {', '.join(matched.for_dimension(dimension))}"
        for dimension in _EXPLANATION_ORDER
        if matched.for_dimension(dimension)
    ]
    if not parts:
        return RELATED_EXPLANATION
    total_matched = sum(len(matched.for_dimension(d)) for d in TagDimension)
    percentage = round(total_matched / entry.tags.total * 100) if entry.tags.total else 0
    return f"{'; '.join(parts)} (match: {percentage}%)"
