"""kb_links MCP tool: knowledge links for a code snippet."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from code_linker.analysis.analyzer import CodeAnalyzer, normalize_language
from code_linker.models.links import LinkRequest
from code_linker.models.matching import Confidence
from code_linker.retrieval.client import RetrievalClient
from code_linker.tools.formatters import format_links_response

logger = logging.getLogger(__name__)


def register_kb_links(mcp: FastMCP) -> None:
    """Register the kb_links tool with the MCP server."""

    @mcp.tool()
    async def kb_links(
        code: Annotated[str, Field(description="Source code snippet to find material for")],
        language: Annotated[
            str | None,
            Field(description="javascript, typescript or python (auto-detected when omitted)"),
        ] = None,
        file_path: Annotated[
            str | None, Field(description="Path of the file the snippet came from")
        ] = None,
        top_k: Annotated[int, Field(description="Max links to return", ge=1, le=20)] = 5,
        min_confidence: Annotated[
            Confidence | None, Field(description="Drop links below this confidence")
        ] = None,
        debounce: Annotated[
            bool, Field(description="Coalesce rapid repeated calls; only the last one runs")
        ] = False,
        ctx: Context | None = None,
    ) -> str:
        """Find curriculum sections that explain the constructs used in a snippet.

        The snippet is parsed into syntax, pattern, API and concept tags which
        are matched against the knowledge catalog. When feature matching is
        unavailable the result falls back to keyword matching and says so.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        lifespan = ctx.lifespan_context
        analyzer: CodeAnalyzer = lifespan["analyzer"]
        client: RetrievalClient = lifespan["client"]

        analysis = await analyzer.analyze(code, language, file_path=file_path)
        # Unsupported languages are passed through for the backend to answer
        resolved = normalize_language(language) if language else analysis.language
        request = LinkRequest(
            code=code,
            language=str(resolved) if resolved else language,
            features=analysis.matching_features,
            file_path=file_path,
            top_k=top_k,
        )
        if debounce:
            response = await client.fetch_debounced(request)
        else:
            response = await client.fetch(request)

        if min_confidence is not None and response.success:
            kept = [link for link in response.data if link.confidence.rank >= min_confidence.rank]
            response = response.model_copy(update={"data": kept})

        note = None
        if analysis.degraded:
            note = "; ".join(d.message for d in analysis.diagnostics)
        elif response.matching_method == "keyword-based":
            note = "feature matching unavailable, results are keyword-based"
        return format_links_response(response, note=note)
