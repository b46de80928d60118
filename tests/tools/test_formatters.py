"""Tests for compact output formatters."""

from code_linker.models.features import (
    AnalysisDiagnostic,
    AnalysisResult,
    CodeContext,
    CodeFeatures,
    ComplexityMetrics,
    ImportInfo,
    SourceLanguage,
)
from code_linker.models.knowledge import KnowledgeEntry, KnowledgeTags
from code_linker.models.links import LinkResponse, SectionLink
from code_linker.models.matching import Confidence
from code_linker.models.tags import PatternTag, SyntaxTag
from code_linker.tools.formatters import (
    format_analysis,
    format_entry_full,
    format_entry_header,
    format_link,
    format_link_header,
    format_links_response,
    format_result_list,
)


def _make_link(**kwargs) -> SectionLink:
    defaults = {
        "section_id": "js-sec-3-5",
        "title": "async/await",
        "chapter_id": "js-ch-3",
        "chapter_title": "Asynchronous JavaScript",
        "language": "javascript",
        "relevance_score": 0.85,
        "confidence": Confidence.HIGH,
        "explanation": "patterns: async-await (match: 40%)",
    }
    defaults.update(kwargs)
    return SectionLink(**defaults)


def _make_entry(**kwargs) -> KnowledgeEntry:
    defaults = {
        "id": "js-sec-3-5",
        "title": "async/await",
        "chapter_id": "js-ch-3",
        "chapter_title": "Asynchronous JavaScript",
        "language": "javascript",
        "tags": KnowledgeTags(syntax=("async", "await"), apis=("fetch",)),
        "difficulty": "intermediate",
        "keywords": ("async", "await"),
    }
    defaults.update(kwargs)
    return KnowledgeEntry(**defaults)


# --- links ---


def test_link_header():
    assert format_link_header(_make_link()) == "[js-sec-3-5] async/await (85%, high)"


def test_link_includes_chapter_and_explanation():
    result = format_link(_make_link())
    assert "Asynchronous JavaScript | feature-based" in result
    assert "patterns: async-await (match: 40%)" in result


def test_link_without_explanation():
    result = format_link(_make_link(explanation=None))
    assert len(result.splitlines()) == 2


def test_links_response_success():
    response = LinkResponse(
        success=True, data=[_make_link(), _make_link(section_id="js-sec-3-3")],
        matching_method="feature-based",
    )
    result = format_links_response(response, note="Language auto-detected as javascript")
    assert result.startswith("Matching: feature-based")
    assert "2 result(s)" in result
    assert "Note: Language auto-detected as javascript" in result
    assert "[js-sec-3-3]" in result


def test_links_response_empty():
    response = LinkResponse(success=True, data=[], matching_method="feature-based")
    assert format_links_response(response) == "No results found."


def test_links_response_rejected_request_is_an_error():
    response = LinkResponse.failure("Language is required", details="status 400")
    assert format_links_response(response) == "Error: Language is required (status 400)"


def test_links_response_failure_reads_as_no_results():
    response = LinkResponse.failure("Failed to retrieve knowledge links", "backend down")
    result = format_links_response(response, note="Source has syntax errors")
    assert result.splitlines() == [
        "No related knowledge found.",
        "Note: Failed to retrieve knowledge links (backend down)",
        "Note: Source has syntax errors",
    ]


def test_links_response_disabled():
    response = LinkResponse.failure("Knowledge linking is disabled")
    result = format_links_response(response)
    assert result == "No related knowledge found.\nNote: Knowledge linking is disabled"


# --- entries ---


def test_entry_header():
    assert format_entry_header(_make_entry()) == "[js-sec-3-5] async/await | intermediate"


def test_entry_full():
    prerequisite = _make_entry(id="js-sec-3-3", title="Promises")
    related = _make_entry(id="js-sec-3-4", title="Promise combinators")
    result = format_entry_full(_make_entry(), [prerequisite], [related])
    assert "  syntax: async, await" in result
    assert "  apis: fetch" in result
    assert "patterns" not in result
    assert "keywords: async, await" in result
    assert "Prerequisites:\n    [js-sec-3-3] Promises" in result
    assert "Related:\n    [js-sec-3-4] Promise combinators" in result


def test_entry_full_without_links():
    result = format_entry_full(_make_entry())
    assert "Prerequisites" not in result
    assert "Related" not in result


# --- analysis ---


def test_analysis():
    features = CodeFeatures(
        syntax=frozenset({SyntaxTag.AWAIT, SyntaxTag.ASYNC}),
        patterns=frozenset({PatternTag.ASYNC_AWAIT}),
        complexity=ComplexityMetrics(cyclomatic_complexity=2, line_count=3, max_depth=1),
        context=CodeContext(
            language=SourceLanguage.JAVASCRIPT, imports=(ImportInfo(source="react"),)
        ),
    )
    result = format_analysis(
        AnalysisResult(
            language=SourceLanguage.JAVASCRIPT,
            features=features,
            warnings=["Language auto-detected as javascript"],
        )
    )
    lines = result.splitlines()
    assert lines[0] == "language: javascript"
    assert "syntax: async, await" in lines
    assert "apis: -" in lines
    assert "complexity: low (cyclomatic 2, cognitive 0, lines 3, depth 1)" in lines
    assert "imports: react" in lines
    assert lines[-1] == "Note: Language auto-detected as javascript"


def test_analysis_reports_diagnostics():
    result = format_analysis(
        AnalysisResult(
            language=SourceLanguage.PYTHON,
            features=CodeFeatures.empty(SourceLanguage.PYTHON),
            diagnostics=[AnalysisDiagnostic(kind="parse", message="Source has syntax errors")],
        )
    )
    assert "[parse] Source has syntax errors" in result


# --- result list ---


def test_result_list_empty():
    assert format_result_list([]) == "No results found."


def test_result_list_joins_entries():
    result = format_result_list(["one", "two"])
    assert result == "2 result(s)\n\none\n\ntwo"
