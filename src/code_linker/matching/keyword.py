"""Keyword matching: the degraded strategy used when feature matching is unavailable."""

import logging
import re

from code_linker.index.knowledge_index import KnowledgeIndex
from code_linker.matching.engine import catalog_language
from code_linker.matching.similarity import confidence_band
from code_linker.models.knowledge import KnowledgeEntry
from code_linker.models.matching import MatchingConfig, MatchResult

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def tokenize(text: str) -> set[str]:
    """Lower-cased identifier tokens, with camelCase and snake_case parts added."""
    tokens: set[str] = set()
    for word in _WORD.findall(text):
        tokens.add(word.lower())
        for part in _CAMEL_BOUNDARY.sub("_", word).split("_"):
            if len(part) > 1:
                tokens.add(part.lower())
    return tokens


def entry_vocabulary(entry: KnowledgeEntry) -> set[str]:
    """Words that identify an entry: keywords, tag words and title words."""
    vocabulary = {keyword.lower() for keyword in entry.keywords if keyword.strip()}
    for tag in (*entry.tags.syntax, *entry.tags.patterns, *entry.tags.concepts):
        vocabulary.update(part for part in str(tag).split("-") if len(part) > 2)
    for api in entry.tags.apis:
        vocabulary.add(api.rsplit(".", 1)[-1].lower())
    vocabulary.update(word.lower() for word in _WORD.findall(entry.title) if len(word) > 2)
    return vocabulary


class KeywordMatcher:
    """Scores entries by the share of their vocabulary that appears in the code."""

    def __init__(self, index: KnowledgeIndex) -> None:
        """Match against ``index``."""
        self.index = index

    def match(self, code: str, language: str, top_k: int = 5) -> list[MatchResult]:
        """Entries sharing at least one keyword with the code, best first."""
        target = catalog_language(language)
        if target is None or not code.strip():
            return []
        tokens = tokenize(code)
        config = MatchingConfig()

        results: list[MatchResult] = []
        for entry in self.index.by_language(target):
            vocabulary = entry_vocabulary(entry)
            if not vocabulary:
                continue
            matched = sorted(vocabulary & tokens)
            if not matched:
                continue
            score = len(matched) / len(vocabulary)
            results.append(
                MatchResult(
                    entry=entry,
                    score=score,
                    confidence=confidence_band(score, config),
                    explanation=f"keywords: {', '.join(matched)}",
                    matched_keywords=matched,
                )
            )

        results.sort(key=lambda r: r.score, reverse=True)
        logger.debug("Keyword matching found %d entries for %s", len(results), language)
        return results[:top_k]
