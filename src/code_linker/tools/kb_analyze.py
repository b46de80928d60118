"""kb_analyze MCP tool: feature extraction only."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from code_linker.tools.formatters import format_analysis

logger = logging.getLogger(__name__)


def register_kb_analyze(mcp: FastMCP) -> None:
    """Register the kb_analyze tool with the MCP server."""

    @mcp.tool()
    async def kb_analyze(
        code: Annotated[str, Field(description="Source code snippet to analyze")],
        language: Annotated[
            str | None,
            Field(description="javascript, typescript or python (auto-detected when omitted)"),
        ] = None,
        file_path: Annotated[
            str | None, Field(description="Path of the file the snippet came from")
        ] = None,
        include_context: Annotated[
            bool, Field(description="Also list imports and exports")
        ] = False,
        ctx: Context | None = None,
    ) -> str:
        """Show the syntax, pattern, API and concept tags extracted from a snippet.

        Useful to see why kb_links matched (or missed) a section.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        analyzer = ctx.lifespan_context["analyzer"]
        result = await analyzer.analyze(
            code, language, file_path=file_path, include_context=include_context
        )
        return format_analysis(result)
