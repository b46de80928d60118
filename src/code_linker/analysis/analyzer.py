"""Async analysis facade: language detection, timeout and graceful degradation."""

import asyncio
import logging
import re
import time
from pathlib import PurePath

from code_linker.analysis.deadline import Deadline
from code_linker.analysis.javascript import JavaScriptExtractor
from code_linker.analysis.python import PythonExtractor
from code_linker.errors import ExtractionTimeout, ParseError
from code_linker.models.features import (
    AnalysisDiagnostic,
    AnalysisResult,
    CodeContext,
    CodeFeatures,
    ContextHints,
    SourceLanguage,
)
from code_linker.models.links import WireFeatures
from code_linker.models.tags import PatternTag, SyntaxTag

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5000

LANGUAGE_ALIASES: dict[str, SourceLanguage] = {
    "javascript": SourceLanguage.JAVASCRIPT,
    "js": SourceLanguage.JAVASCRIPT,
    "jsx": SourceLanguage.JAVASCRIPT,
    "mjs": SourceLanguage.JAVASCRIPT,
    "cjs": SourceLanguage.JAVASCRIPT,
    "typescript": SourceLanguage.TYPESCRIPT,
    "ts": SourceLanguage.TYPESCRIPT,
    "tsx": SourceLanguage.TYPESCRIPT,
    "python": SourceLanguage.PYTHON,
    "py": SourceLanguage.PYTHON,
    "python3": SourceLanguage.PYTHON,
}

_JSX_MARKERS = frozenset({"jsx", "tsx"})

# ES module imports: "import x from 'y'", "import 'y'", "import {", "import React, {"
_ES_IMPORT = re.compile(r"""^\s*import\s*(?:['"{*]|[\w$]+\s*,\s*[{*]|.*\bfrom\s*['"])""")

_NODE_MODULES = frozenset(
    {"fs", "path", "http", "https", "os", "events", "child_process", "crypto", "stream", "util"}
)
_DOM_PREFIXES = ("document.", "window.", "Element.", "HTMLElement.")
_DOM_CALLS = frozenset({"addEventListener", "querySelector", "querySelectorAll", "getElementById"})
_NODE_PREFIXES = ("process.", "fs.", "path.", "Buffer.")
_REACT_HOOKS = frozenset(
    {"useState", "useEffect", "useMemo", "useCallback", "useRef", "useContext"}
)


def normalize_language(raw: str | None) -> SourceLanguage | None:
    """Map a language name or file extension to a supported language, else None."""
    if not raw:
        return None
    return LANGUAGE_ALIASES.get(raw.strip().lower().lstrip("."))


def _has_python_import(code: str) -> bool:
    return any("import " in line and not _ES_IMPORT.match(line) for line in code.splitlines())


def detect_language(code: str) -> SourceLanguage:
    """Guess the language from content. Ordered heuristics, first match wins."""
    if "def " in code or "print(" in code or _has_python_import(code):
        return SourceLanguage.PYTHON
    if "interface " in code or ": string" in code or ": number" in code:
        return SourceLanguage.TYPESCRIPT
    return SourceLanguage.JAVASCRIPT


def to_wire_features(features: CodeFeatures) -> WireFeatures:
    """Digest CodeFeatures into the wire shape used for matching requests."""
    return WireFeatures(
        syntax_flags=sorted(features.syntax),
        patterns=sorted(features.patterns),
        api_signatures=sorted(features.apis),
        concepts=sorted(features.concepts),
        complexity=features.complexity.level,
        context_hints=context_hints(features).model_dump(),
    )


def context_hints(features: CodeFeatures) -> ContextHints:
    """Environment hints derived from syntax, patterns, APIs and imports."""
    sources = {imp.source for imp in features.context.imports}
    apis = features.apis
    return ContextHints(
        has_async=bool(
            features.syntax & {SyntaxTag.ASYNC, SyntaxTag.AWAIT}
            or features.patterns & {PatternTag.ASYNC_AWAIT, PatternTag.PROMISE_CHAIN}
        ),
        has_error_handling=PatternTag.ERROR_HANDLING in features.patterns,
        uses_dom=any(api.startswith(_DOM_PREFIXES) for api in apis)
        or any(api.rsplit(".", 1)[-1] in _DOM_CALLS for api in apis),
        uses_node="require" in apis
        or any(api.startswith(_NODE_PREFIXES) for api in apis)
        or any(src.startswith("node:") or src in _NODE_MODULES for src in sources),
        uses_react="react" in sources
        or any(api.startswith("React.") or api in _REACT_HOOKS for api in apis),
    )


class CodeAnalyzer:
    """Extracts CodeFeatures from source text. ``analyze`` never raises.

    Parsing and traversal are CPU-bound, so they run in a worker thread under
    a cooperative deadline; any failure yields empty features plus a
    diagnostic describing what went wrong.
    """

    def __init__(self, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        """Create the per-language extractors."""
        self.timeout_ms = timeout_ms
        self._javascript = JavaScriptExtractor()
        self._python = PythonExtractor()

    async def analyze(
        self,
        code: str,
        language: str | None = None,
        *,
        file_path: str | None = None,
        include_context: bool = False,
        timeout_ms: int | None = None,
    ) -> AnalysisResult:
        """Analyze a snippet.

        Args:
            code: Source text.
            language: Language name or extension; detected from content when omitted.
            file_path: Optional path, recorded in the context and used to pick
                the JSX-capable grammar for ``.tsx`` / ``.jsx``.
            include_context: Keep imports, exports and globals in the result.
            timeout_ms: Budget for parse + traversal; defaults to the analyzer's.
        """
        started = time.monotonic()
        warnings: list[str] = []
        budget = timeout_ms if timeout_ms is not None else self.timeout_ms
        suffix = PurePath(file_path).suffix.lstrip(".").lower() if file_path else ""

        if language:
            resolved = normalize_language(language)
            if resolved is None:
                logger.warning("Unsupported language: %s", language)
                return self._result(
                    None,
                    CodeFeatures.empty(None),
                    started,
                    warnings,
                    AnalysisDiagnostic(
                        kind="analysis", message=f"Unsupported language: {language}"
                    ),
                )
        else:
            resolved = normalize_language(suffix) or detect_language(code)
            warnings.append(f"Language auto-detected as {resolved}")

        jsx = suffix in _JSX_MARKERS or (language or "").strip().lower() in _JSX_MARKERS

        if not code.strip():
            return self._result(resolved, CodeFeatures.empty(resolved), started, warnings)

        diagnostic = None
        try:
            features = await asyncio.to_thread(self._extract, code, resolved, budget, jsx)
        except ParseError as exc:
            logger.warning("Parse failed for %s snippet: %s", resolved, exc)
            diagnostic = AnalysisDiagnostic(kind="parse", message=str(exc))
        except ExtractionTimeout as exc:
            logger.warning("Analysis of %s snippet timed out: %s", resolved, exc)
            diagnostic = AnalysisDiagnostic(kind="timeout", message=str(exc))
        except Exception as exc:
            logger.warning("Analysis failed for %s snippet", resolved, exc_info=True)
            diagnostic = AnalysisDiagnostic(kind="analysis", message=f"Analysis failed: {exc}")

        if diagnostic is not None:
            empty = CodeFeatures.empty(resolved)
            return self._result(resolved, empty, started, warnings, diagnostic)

        wire = to_wire_features(features)
        context = features.context
        if not include_context:
            context = CodeContext(language=resolved)
        if file_path:
            context = context.model_copy(
                update={"file_name": PurePath(file_path).name, "file_type": suffix or None}
            )
        features = features.model_copy(update={"context": context})
        return self._result(resolved, features, started, warnings, wire=wire)

    def _extract(
        self, code: str, language: SourceLanguage, budget_ms: int, jsx: bool
    ) -> CodeFeatures:
        deadline = Deadline(budget_ms)
        if language == SourceLanguage.PYTHON:
            return self._python.extract(code, deadline)
        return self._javascript.extract(
            code,
            deadline,
            typescript=language == SourceLanguage.TYPESCRIPT,
            jsx=jsx,
        )

    @staticmethod
    def _result(
        language: SourceLanguage | None,
        features: CodeFeatures,
        started: float,
        warnings: list[str],
        diagnostic: AnalysisDiagnostic | None = None,
        *,
        wire: WireFeatures | None = None,
    ) -> AnalysisResult:
        return AnalysisResult(
            language=language,
            features=features,
            matching_features=wire or to_wire_features(features),
            diagnostics=[diagnostic] if diagnostic else [],
            warnings=warnings,
            elapsed_ms=(time.monotonic() - started) * 1000,
        )
