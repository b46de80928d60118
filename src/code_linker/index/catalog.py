"""Catalog loading and per-entry validation.

A catalog is JSON: either a list of entry records or ``{"entries": [...]}``.
Each record keeps its tags under ``metadata``::

    {"id": "js-sec-3-5", "title": "async/await", "chapterId": "js-ch-3",
     "chapterTitle": "Async programming", "language": "javascript",
     "metadata": {"syntax": [...], "patterns": [...], "apis": [...],
                  "concepts": [...], "difficulty": "intermediate",
                  "dependencies": [...], "related": [...], "keywords": [...]}}
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from code_linker.errors import CatalogValidationError
from code_linker.models.knowledge import KnowledgeEntry, KnowledgeTags
from code_linker.models.tags import TagDimension, normalize_tags

logger = logging.getLogger(__name__)

DEFAULT_CATALOG = Path(__file__).resolve().parent.parent / "data" / "catalog.json"

_REQUIRED_FIELDS = ("id", "title", "language", "metadata")


def load_catalog(path: Path | None = None) -> list[dict[str, Any]]:
    """Read raw catalog records from a JSON file, a directory, or the bundled catalog.

    Records are returned unvalidated; KnowledgeIndex.build validates them.
    A malformed file inside a directory is logged and skipped; a malformed
    single file raises CatalogValidationError.
    """
    source = path if path is not None else DEFAULT_CATALOG
    if not source.exists():
        raise FileNotFoundError(f"Catalog not found: {source}")

    if not source.is_dir():
        entries = _read_catalog_file(source)
        logger.info("Loaded %d catalog records from %s", len(entries), source)
        return entries

    records: list[dict[str, Any]] = []
    for file in sorted(source.glob("*.json")):
        try:
            records.extend(_read_catalog_file(file))
        except CatalogValidationError:
            logger.warning("Skipping unreadable catalog file %s", file, exc_info=True)
    logger.info("Loaded %d catalog records from directory %s", len(records), source)
    return records


def _read_catalog_file(file: Path) -> list[dict[str, Any]]:
    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CatalogValidationError(str(file), f"invalid JSON: {exc}") from exc

    if isinstance(data, dict):
        data = data["entries"] if "entries" in data else [data]
    if not isinstance(data, list):
        raise CatalogValidationError(str(file), "expected a list of entries")
    return data


def parse_entry(record: Any, warnings: list[str]) -> KnowledgeEntry:
    """Validate one raw record and build a KnowledgeEntry.

    Unknown tags are dropped and reported through ``warnings``; structural
    problems raise CatalogValidationError.
    """
    if not isinstance(record, dict):
        raise CatalogValidationError("unknown", "entry must be an object")
    entry_id = str(record.get("id") or "unknown")

    missing = [name for name in _REQUIRED_FIELDS if not record.get(name)]
    if missing:
        raise CatalogValidationError(entry_id, f"missing required field: {', '.join(missing)}")

    meta = record["metadata"]
    if not isinstance(meta, dict):
        raise CatalogValidationError(entry_id, "metadata must be an object")

    tags: dict[str, tuple[str, ...]] = {}
    for dimension in TagDimension:
        raw_tags = meta.get(dimension.value, [])
        if not isinstance(raw_tags, list):
            raise CatalogValidationError(entry_id, f"metadata.{dimension} must be a list")
        known, unknown = normalize_tags(dimension, raw_tags)
        for tag in unknown:
            warnings.append(f"{entry_id}: unknown {dimension} tag '{tag}' dropped")
        tags[dimension.value] = tuple(sorted(known))

    for field in ("dependencies", "related", "keywords"):
        if not isinstance(meta.get(field, []), list):
            raise CatalogValidationError(entry_id, f"metadata.{field} must be a list")
    if "difficulty" not in meta:
        warnings.append(f"{entry_id}: missing difficulty, defaulting to basic")

    try:
        return KnowledgeEntry(
            id=entry_id,
            title=record["title"],
            chapter_id=record.get("chapterId", ""),
            chapter_title=record.get("chapterTitle", ""),
            language=str(record["language"]).lower(),
            tags=KnowledgeTags(**tags),
            difficulty=meta.get("difficulty", "basic"),
            dependencies=tuple(meta.get("dependencies", [])),
            related=tuple(meta.get("related", [])),
            keywords=tuple(meta.get("keywords", [])),
        )
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise CatalogValidationError(entry_id, problems) from exc
