"""kb_entry MCP tool: catalog entry lookup by ID."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from code_linker.index.knowledge_index import KnowledgeIndex
from code_linker.tools.formatters import format_entry_full, format_result_list

logger = logging.getLogger(__name__)

_MAX_IDS = 20


def register_kb_entry(mcp: FastMCP) -> None:
    """Register the kb_entry tool with the MCP server."""

    @mcp.tool()
    async def kb_entry(
        entry_id: Annotated[
            str | list[str],
            Field(description="Single section ID or list of IDs (max 20)"),
        ],
        ctx: Context | None = None,
    ) -> str:
        """Show catalog sections by ID, with their tags, prerequisites and related sections.

        Use after kb_links to see what a linked section covers and what to
        learn first.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        index: KnowledgeIndex = ctx.lifespan_context["index"]
        ids = [entry_id] if isinstance(entry_id, str) else list(entry_id)
        if len(ids) > _MAX_IDS:
            return f"Error: Maximum {_MAX_IDS} IDs per request (got {len(ids)})."

        formatted: list[str] = []
        for eid in ids:
            entry = index.get(eid)
            if entry is None:
                formatted.append(f"[{eid}] not found")
                continue
            prerequisites = [e for e in map(index.get, entry.dependencies) if e is not None]
            related = [e for e in map(index.get, entry.related) if e is not None]
            formatted.append(format_entry_full(entry, prerequisites, related))
        return format_result_list(formatted)
