"""FastMCP server with lifespan management and tool registration."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from code_linker.analysis.analyzer import CodeAnalyzer
from code_linker.config import (
    get_analysis_timeout_ms,
    get_backend_timeout,
    get_backend_url,
    get_catalog_path,
    get_log_level,
)
from code_linker.index.catalog import load_catalog
from code_linker.index.knowledge_index import KnowledgeIndex
from code_linker.retrieval.backend import HttpLinksBackend, LinksBackend, LocalLinksBackend
from code_linker.retrieval.client import RetrievalClient, RetrievalSettings
from code_linker.tools.kb_analyze import register_kb_analyze
from code_linker.tools.kb_entry import register_kb_entry
from code_linker.tools.kb_links import register_kb_links


def _create_backend(index: KnowledgeIndex) -> LinksBackend:
    """Remote backend when LINKER_BACKEND_URL is set, otherwise in-process matching."""
    url = get_backend_url()
    if url:
        return HttpLinksBackend(url, timeout=get_backend_timeout())
    return LocalLinksBackend(index)


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Load the catalog and manage the retrieval client lifecycle."""
    # Configure logging to stderr (stdout is MCP stdio transport)
    logging.basicConfig(
        level=getattr(logging, get_log_level()),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    index = KnowledgeIndex()
    report = index.build(load_catalog(get_catalog_path()))
    if not report.indexed:
        logger.warning("Knowledge catalog is empty, kb_links will return no sections")

    analyzer = CodeAnalyzer(timeout_ms=get_analysis_timeout_ms())
    backend = _create_backend(index)
    if isinstance(backend, HttpLinksBackend):
        logger.info("Links backend: %s", backend.url)
    else:
        logger.info("Links backend: in-process (%d entries)", len(index))

    client = RetrievalClient(backend, RetrievalSettings.from_env())
    client.start()

    try:
        yield {
            "index": index,
            "analyzer": analyzer,
            "client": client,
        }
    finally:
        await client.close()
        logger.info("Retrieval client closed")


_INSTRUCTIONS = """\
This server links source code to the curriculum sections that teach the \
constructs it uses. Sections cover JavaScript/TypeScript and Python.

TOOLS:
- kb_links: Pass a code snippet (and its language or file path if known). \
Returns ranked sections with a confidence band and an explanation of which \
syntax, patterns, APIs and concepts matched. Prerequisite sections are listed \
after the main matches.
- kb_analyze: Show the tags extracted from a snippet. Use it to understand \
why kb_links matched or missed a section.
- kb_entry: Look up sections by ID to see their tags, prerequisites and \
related sections.

Results marked keyword-based come from a fallback that matched words in the \
code rather than its structure; treat them as weaker suggestions.
"""


def create_server() -> FastMCP:
    """Create and configure the MCP server with all tools."""
    mcp = FastMCP(
        "code-linker",
        instructions=_INSTRUCTIONS,
        lifespan=lifespan,
    )

    register_kb_links(mcp)
    register_kb_analyze(mcp)
    register_kb_entry(mcp)

    return mcp
