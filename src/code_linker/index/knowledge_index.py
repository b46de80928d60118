"""In-memory inverted indexes over the knowledge catalog."""

import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Any

from code_linker.errors import CatalogValidationError
from code_linker.index.catalog import parse_entry
from code_linker.models.knowledge import (
    BuildError,
    BuildReport,
    CatalogLanguage,
    Difficulty,
    KnowledgeEntry,
    TagStatistics,
)
from code_linker.models.tags import TagDimension, api_index_key

logger = logging.getLogger(__name__)


def index_keys(dimension: TagDimension, tags: Iterable[str]) -> frozenset[str]:
    """Keys a dimension's tags are indexed under. APIs reduce to their final segment."""
    if dimension == TagDimension.APIS:
        return frozenset(api_index_key(tag) for tag in tags if tag.strip())
    return frozenset(str(tag) for tag in tags)


class KnowledgeIndex:
    """Validated catalog entries plus per-dimension inverted indexes.

    Read-only once built; ``build`` replaces all state wholesale.
    """

    def __init__(self) -> None:
        """Create an empty index."""
        self._by_id: dict[str, KnowledgeEntry] = {}
        self._by_tag: dict[TagDimension, dict[str, set[str]]] = {}
        self._by_language: dict[CatalogLanguage, set[str]] = {}
        self._by_difficulty: dict[Difficulty, set[str]] = {}
        self._entry_keys: dict[str, dict[TagDimension, frozenset[str]]] = {}
        self._clear()

    def _clear(self) -> None:
        self._by_id = {}
        self._by_tag = {dimension: defaultdict(set) for dimension in TagDimension}
        self._by_language = defaultdict(set)
        self._by_difficulty = defaultdict(set)
        self._entry_keys = {}

    def build(self, records: Iterable[Any]) -> BuildReport:
        """Validate and index entries, replacing any previous contents.

        Accepts raw catalog records or already-built KnowledgeEntry objects.
        Invalid entries are skipped and reported; nothing here raises.
        """
        self._clear()
        report = BuildReport()
        candidates: dict[str, KnowledgeEntry] = {}

        for position, record in enumerate(records):
            try:
                entry = record if isinstance(record, KnowledgeEntry) else parse_entry(
                    record, report.warnings
                )
            except CatalogValidationError as exc:
                entry_id = exc.entry_id if exc.entry_id != "unknown" else f"<entry {position}>"
                report.errors.append(BuildError(entry_id=entry_id, error=exc.message))
                continue
            if entry.id in candidates:
                report.errors.append(BuildError(entry_id=entry.id, error="duplicate id"))
                continue
            candidates[entry.id] = entry

        # Dropping an entry can orphan entries that reference it, so repeat until stable.
        changed = True
        while changed:
            changed = False
            for entry_id, entry in list(candidates.items()):
                references = (*entry.dependencies, *entry.related)
                dangling = sorted({ref for ref in references if ref not in candidates})
                if dangling:
                    del candidates[entry_id]
                    report.errors.append(
                        BuildError(
                            entry_id=entry_id,
                            error=f"unknown referenced entries: {', '.join(dangling)}",
                        )
                    )
                    changed = True

        for entry in candidates.values():
            self._add(entry)

        report.indexed = len(self._by_id)
        report.skipped = len(report.errors)
        for error in report.errors:
            logger.warning("Skipped catalog entry %s: %s", error.entry_id, error.error)
        for warning in report.warnings:
            logger.warning("Catalog: %s", warning)
        logger.info(
            "Knowledge index built: %d indexed, %d skipped, %d warnings",
            report.indexed,
            report.skipped,
            len(report.warnings),
        )
        return report

    def _add(self, entry: KnowledgeEntry) -> None:
        self._by_id[entry.id] = entry
        self._by_language[entry.language].add(entry.id)
        self._by_difficulty[entry.difficulty].add(entry.id)
        keys: dict[TagDimension, frozenset[str]] = {}
        for dimension in TagDimension:
            keys[dimension] = index_keys(dimension, entry.tags.for_dimension(dimension))
            for key in keys[dimension]:
                self._by_tag[dimension][key].add(entry.id)
        self._entry_keys[entry.id] = keys

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._by_id

    def get(self, entry_id: str) -> KnowledgeEntry | None:
        """Return an entry by id, or None."""
        return self._by_id.get(entry_id)

    def entries(self) -> list[KnowledgeEntry]:
        """All indexed entries, in catalog order."""
        return list(self._by_id.values())

    def by_language(self, language: CatalogLanguage | str) -> list[KnowledgeEntry]:
        """Entries for a catalog language, in catalog order."""
        try:
            ids = self._by_language.get(CatalogLanguage(language), set())
        except ValueError:
            return []
        return [entry for entry in self._by_id.values() if entry.id in ids]

    def by_difficulty(self, difficulty: Difficulty | str) -> list[KnowledgeEntry]:
        """Entries at a difficulty level, in catalog order."""
        try:
            ids = self._by_difficulty.get(Difficulty(difficulty), set())
        except ValueError:
            return []
        return [entry for entry in self._by_id.values() if entry.id in ids]

    def candidates(self, dimension: TagDimension, tags: Iterable[str]) -> set[str]:
        """Ids of entries sharing at least one tag with ``tags`` in a dimension."""
        found: set[str] = set()
        index = self._by_tag[dimension]
        for key in index_keys(dimension, tags):
            found |= index.get(key, set())
        return found

    def entry_keys(self, entry_id: str, dimension: TagDimension) -> frozenset[str]:
        """Index keys of one entry in a dimension (API keys are normalized)."""
        return self._entry_keys.get(entry_id, {}).get(dimension, frozenset())

    def tag_statistics(self) -> TagStatistics:
        """Usage count per tag, averages, and coverage by difficulty and language."""
        total_tags = sum(entry.tags.total for entry in self._by_id.values())
        return TagStatistics(
            total_entries=len(self._by_id),
            tag_counts={
                dimension.value: {
                    tag: len(ids) for tag, ids in sorted(self._by_tag[dimension].items())
                }
                for dimension in TagDimension
            },
            average_tags_per_entry=total_tags / len(self._by_id) if self._by_id else 0.0,
            by_difficulty={d.value: len(self._by_difficulty.get(d, ())) for d in Difficulty},
            by_language={
                lang.value: len(self._by_language.get(lang, ())) for lang in CatalogLanguage
            },
        )
