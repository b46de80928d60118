"""Tests for the kb_links, kb_analyze and kb_entry MCP tools."""

from types import SimpleNamespace

import pytest
from conftest import ASYNC_FETCH_CODE

from code_linker.analysis.analyzer import CodeAnalyzer
from code_linker.errors import TransientError
from code_linker.models.matching import Confidence
from code_linker.retrieval.backend import LocalLinksBackend
from code_linker.retrieval.client import RetrievalClient, RetrievalSettings
from code_linker.tools.kb_analyze import register_kb_analyze
from code_linker.tools.kb_entry import register_kb_entry
from code_linker.tools.kb_links import register_kb_links


class CapturingMCP:
    """Stands in for FastMCP; keeps registered tool functions by name."""

    def __init__(self):
        self.tools = {}

    def tool(self):
        def decorator(fn):
            self.tools[fn.__name__] = fn
            return fn

        return decorator


@pytest.fixture
def tools():
    mcp = CapturingMCP()
    register_kb_links(mcp)
    register_kb_analyze(mcp)
    register_kb_entry(mcp)
    return mcp.tools


@pytest.fixture
def ctx(index):
    settings = RetrievalSettings(backoff_base=0, debounce_ms=0)
    client = RetrievalClient(LocalLinksBackend(index), settings)
    lifespan = {"index": index, "analyzer": CodeAnalyzer(), "client": client}
    return SimpleNamespace(lifespan_context=lifespan)


# --- kb_links ---


@pytest.mark.asyncio
async def test_links_for_async_fetch(tools, ctx):
    result = await tools["kb_links"](ASYNC_FETCH_CODE, "javascript", ctx=ctx)
    assert result.startswith("Matching: feature-based")
    assert "[js-async] async/await" in result
    assert "Note:" not in result


@pytest.mark.asyncio
async def test_links_auto_detects_language(tools, ctx):
    result = await tools["kb_links"](ASYNC_FETCH_CODE, ctx=ctx)
    assert "[js-async]" in result


@pytest.mark.asyncio
async def test_links_min_confidence_filters(tools, ctx):
    result = await tools["kb_links"](
        ASYNC_FETCH_CODE, "javascript", min_confidence=Confidence.HIGH, ctx=ctx
    )
    assert "[js-async]" in result
    assert ", low)" not in result


@pytest.mark.asyncio
async def test_links_debounced(tools, ctx):
    result = await tools["kb_links"](ASYNC_FETCH_CODE, "javascript", debounce=True, ctx=ctx)
    assert "[js-async]" in result


@pytest.mark.asyncio
async def test_links_unsupported_language(tools, ctx):
    result = await tools["kb_links"]("PERFORM PARA-1.", "cobol", ctx=ctx)
    assert result == "No results found."


@pytest.mark.asyncio
async def test_links_requires_context(tools):
    with pytest.raises(RuntimeError, match="Context not injected"):
        await tools["kb_links"](ASYNC_FETCH_CODE, "javascript")


# --- kb_analyze ---


@pytest.mark.asyncio
async def test_analyze(tools, ctx):
    result = await tools["kb_analyze"](ASYNC_FETCH_CODE, "javascript", ctx=ctx)
    lines = result.splitlines()
    assert lines[0] == "language: javascript"
    assert any(line.startswith("patterns:") and "async-await" in line for line in lines)
    assert "imports" not in result


@pytest.mark.asyncio
async def test_analyze_reports_parse_errors(tools, ctx):
    result = await tools["kb_analyze"]("def broken(:\n", "python", ctx=ctx)
    assert "[parse]" in result


# --- kb_entry ---


@pytest.mark.asyncio
async def test_entry_single(tools, ctx):
    result = await tools["kb_entry"]("js-async", ctx=ctx)
    assert result.startswith("1 result(s)")
    assert "[js-async]" in result
    assert "Prerequisites:\n    [js-promises]" in result
    assert "Related:\n    [js-arrays]" in result


@pytest.mark.asyncio
async def test_entry_multiple_with_missing(tools, ctx):
    result = await tools["kb_entry"](["js-basics", "nope"], ctx=ctx)
    assert "2 result(s)" in result
    assert "[js-basics]" in result
    assert "[nope] not found" in result


@pytest.mark.asyncio
async def test_entry_rejects_too_many_ids(tools, ctx):
    result = await tools["kb_entry"]([f"id-{i}" for i in range(21)], ctx=ctx)
    assert result == "Error: Maximum 20 IDs per request (got 21)."


@pytest.mark.asyncio
async def test_analyze_unsupported_language(tools, ctx):
    result = await tools["kb_analyze"]("PERFORM PARA-1.", "cobol", ctx=ctx)
    lines = result.splitlines()
    assert lines[0] == "language: unsupported"
    assert "[analysis] Unsupported language: cobol" in lines


class DownBackend:
    """Backend whose every call fails with a server error."""

    async def links(self, request):
        raise TransientError("503")

    async def close(self):
        pass


@pytest.mark.asyncio
async def test_links_with_backend_down_reads_as_no_results(tools, ctx):
    settings = RetrievalSettings(backoff_base=0, max_retries=2)
    ctx.lifespan_context["client"] = RetrievalClient(DownBackend(), settings)
    result = await tools["kb_links"](ASYNC_FETCH_CODE, "javascript", ctx=ctx)
    lines = result.splitlines()
    assert lines[0] == "No related knowledge found."
    assert lines[1].startswith("Note: Failed to retrieve knowledge links")
    assert not result.startswith("Error:")


@pytest.mark.asyncio
async def test_links_rejected_request_is_an_error(tools, ctx):
    result = await tools["kb_links"]("", "javascript", ctx=ctx)
    assert result.startswith("Error: Either code or features")
    assert "(status 400)" in result
