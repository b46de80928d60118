"""Wire models for the knowledge-links request/response exchange."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from code_linker.models.matching import Confidence

MatchType = Literal["keyword", "semantic", "hybrid", "feature-based"]
MatchingMethod = Literal["feature-based", "keyword-based", "none"]


class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, object]:
        """Serialize with camelCase keys, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class WireFeatures(_WireModel):
    """Digest of CodeFeatures sent in place of (or alongside) raw code."""

    syntax_flags: list[str] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)
    api_signatures: list[str] = Field(default_factory=list)
    concepts: list[str] = Field(default_factory=list)
    complexity: Literal["low", "medium", "high"] = "low"
    context_hints: dict[str, bool] | None = None

    @property
    def has_signal(self) -> bool:
        """True when the discriminating dimensions (patterns, APIs) carry tags."""
        return bool(self.patterns or self.api_signatures)


class LinkRequest(_WireModel):
    """Request for knowledge links.

    ``language`` is optional at the model level so that a missing language can
    be rejected as a client error by the backend rather than by parsing.
    """

    code: str | None = None
    language: str | None = None
    features: WireFeatures | None = None
    file_path: str | None = None
    top_k: int = Field(default=5, ge=1, le=50)


class SectionLink(_WireModel):
    """A knowledge entry reference returned to the caller."""

    section_id: str
    title: str
    chapter_id: str
    chapter_title: str
    language: str
    relevance_score: float = 0.0
    fused_score: float = 0.0
    match_type: MatchType = "feature-based"
    confidence: Confidence = Confidence.LOW
    matched_keywords: list[str] | None = None
    explanation: str | None = None


class LinkResponse(_WireModel):
    """Outcome of a knowledge-links request. Never raised, always returned."""

    success: bool
    data: list[SectionLink] = Field(default_factory=list)
    matching_method: MatchingMethod = "none"
    error: str | None = None
    details: str | None = None

    @classmethod
    def failure(cls, error: str, details: str | None = None) -> "LinkResponse":
        """Empty, unsuccessful response."""
        return cls(success=False, data=[], matching_method="none", error=error, details=details)
