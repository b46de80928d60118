"""Matching configuration and result models."""

from enum import StrEnum

from pydantic import BaseModel, Field

from code_linker.models.knowledge import KnowledgeEntry
from code_linker.models.tags import TagDimension


class Confidence(StrEnum):
    """Coarse confidence band derived from a continuous score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Ordinal used for minimum-confidence filtering."""
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}


class MatchingWeights(BaseModel):
    """Per-dimension weights. Empirical defaults, not derived constants."""

    syntax: float = Field(default=0.25, ge=0.0)
    patterns: float = Field(default=0.35, ge=0.0)
    apis: float = Field(default=0.30, ge=0.0)
    concepts: float = Field(default=0.10, ge=0.0)

    def for_dimension(self, dimension: TagDimension) -> float:
        """Return the weight of one dimension."""
        weight: float = getattr(self, dimension.value)
        return weight


class MatchingConfig(BaseModel):
    """Knobs for MatchingEngine.match."""

    weights: MatchingWeights = Field(default_factory=MatchingWeights)
    min_score: float = Field(default=0.3, ge=0.0, le=1.0)
    max_results: int = Field(default=5, ge=1, le=50)
    high_threshold: float = 0.7
    medium_threshold: float = 0.4
    include_dependencies: bool = True
    include_related: bool = False


class MatchedTags(BaseModel):
    """Tags shared by the query and an entry, per dimension (sorted)."""

    syntax: list[str] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)
    apis: list[str] = Field(default_factory=list)
    concepts: list[str] = Field(default_factory=list)

    def for_dimension(self, dimension: TagDimension) -> list[str]:
        """Return the matched tags of one dimension."""
        result: list[str] = getattr(self, dimension.value)
        return result

    @property
    def is_empty(self) -> bool:
        """True when nothing matched in any dimension."""
        return not (self.syntax or self.patterns or self.apis or self.concepts)


class MatchResult(BaseModel):
    """A scored candidate entry."""

    entry: KnowledgeEntry
    score: float = Field(ge=0.0, le=1.0)
    matched_tags: MatchedTags = Field(default_factory=MatchedTags)
    confidence: Confidence
    explanation: str = ""
    prerequisite: bool = False
    matched_keywords: list[str] = Field(default_factory=list)
