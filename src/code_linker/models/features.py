"""Code feature models produced by the analyzers."""

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from code_linker.models.links import WireFeatures
from code_linker.models.tags import ConceptTag, PatternTag, SyntaxTag


class SourceLanguage(StrEnum):
    """Languages the analyzers understand."""

    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    PYTHON = "python"


class ComplexityMetrics(BaseModel):
    """Structural complexity of a snippet."""

    model_config = ConfigDict(frozen=True)

    cyclomatic_complexity: int = Field(default=1, ge=1)
    cognitive_complexity: int = Field(default=0, ge=0)
    line_count: int = Field(default=0, ge=0)
    max_depth: int = Field(default=0, ge=0)

    @property
    def level(self) -> Literal["low", "medium", "high"]:
        """Coarse complexity bucket used on the wire."""
        if self.cyclomatic_complexity > 10 or self.cognitive_complexity > 20:
            return "high"
        if self.cyclomatic_complexity > 5 or self.cognitive_complexity > 10:
            return "medium"
        return "low"


class ImportInfo(BaseModel):
    """One import statement."""

    model_config = ConfigDict(frozen=True)

    source: str
    specifiers: tuple[str, ...] = ()
    type: Literal["named", "default", "namespace"] = "named"


class ExportInfo(BaseModel):
    """One exported (or top-level public) binding."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: Literal["named", "default"] = "named"
    kind: Literal["function", "class", "variable", "type"] = "variable"


class CodeContext(BaseModel):
    """Module-level context surrounding the analyzed code."""

    model_config = ConfigDict(frozen=True)

    language: SourceLanguage | None
    file_name: str | None = None
    file_type: str | None = None
    imports: tuple[ImportInfo, ...] = ()
    exports: tuple[ExportInfo, ...] = ()
    global_variables: tuple[str, ...] = ()


class CodeFeatures(BaseModel):
    """Normalized feature record for one snippet. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    syntax: frozenset[SyntaxTag] = frozenset()
    patterns: frozenset[PatternTag] = frozenset()
    apis: frozenset[str] = frozenset()
    concepts: frozenset[ConceptTag] = frozenset()
    complexity: ComplexityMetrics = Field(default_factory=ComplexityMetrics)
    context: CodeContext

    @classmethod
    def empty(cls, language: SourceLanguage | None) -> "CodeFeatures":
        """Features for input that could not be analyzed."""
        return cls(context=CodeContext(language=language))

    @property
    def is_empty(self) -> bool:
        """True when no tag in any dimension was extracted."""
        return not (self.syntax or self.patterns or self.apis or self.concepts)


class ContextHints(BaseModel):
    """Boolean hints about the environment the code targets."""

    has_async: bool = False
    has_error_handling: bool = False
    uses_dom: bool = False
    uses_node: bool = False
    uses_react: bool = False


class AnalysisDiagnostic(BaseModel):
    """A recorded, non-fatal analysis problem."""

    kind: Literal["parse", "analysis", "timeout"]
    message: str


class AnalysisResult(BaseModel):
    """Output of CodeAnalyzer.analyze. ``language`` is None when it could not be resolved."""

    language: SourceLanguage | None
    features: CodeFeatures
    matching_features: WireFeatures = Field(default_factory=WireFeatures)
    diagnostics: list[AnalysisDiagnostic] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def degraded(self) -> bool:
        """True when analysis failed and features are the empty fallback."""
        return bool(self.diagnostics)
