"""Knowledge catalog entry models."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from code_linker.models.tags import TagDimension


class Difficulty(StrEnum):
    """Curriculum difficulty of a knowledge entry."""

    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class CatalogLanguage(StrEnum):
    """Languages the curriculum is written for. TypeScript code matches JavaScript."""

    JAVASCRIPT = "javascript"
    PYTHON = "python"


class KnowledgeTags(BaseModel):
    """Tags describing an entry across all four dimensions."""

    model_config = ConfigDict(frozen=True)

    syntax: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    apis: tuple[str, ...] = ()
    concepts: tuple[str, ...] = ()

    def for_dimension(self, dimension: TagDimension) -> tuple[str, ...]:
        """Return the tags of one dimension."""
        result: tuple[str, ...] = getattr(self, dimension.value)
        return result

    @property
    def total(self) -> int:
        """Number of tags across all dimensions."""
        return len(self.syntax) + len(self.patterns) + len(self.apis) + len(self.concepts)


class KnowledgeEntry(BaseModel):
    """One indexed unit of the curriculum. Read-only after load."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    chapter_id: str
    chapter_title: str
    language: CatalogLanguage
    tags: KnowledgeTags
    difficulty: Difficulty = Difficulty.BASIC
    dependencies: tuple[str, ...] = ()
    related: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()


class BuildError(BaseModel):
    """Why one catalog entry was skipped."""

    entry_id: str
    error: str


class BuildReport(BaseModel):
    """Outcome of KnowledgeIndex.build."""

    indexed: int = 0
    skipped: int = 0
    errors: list[BuildError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class TagStatistics(BaseModel):
    """Tag usage across the indexed catalog."""

    total_entries: int = 0
    tag_counts: dict[str, dict[str, int]] = Field(default_factory=dict)
    average_tags_per_entry: float = 0.0
    by_difficulty: dict[str, int] = Field(default_factory=dict)
    by_language: dict[str, int] = Field(default_factory=dict)
