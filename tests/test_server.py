"""Tests for server-level functions."""

from unittest.mock import patch

import pytest

from code_linker.analysis.analyzer import CodeAnalyzer
from code_linker.retrieval.backend import HttpLinksBackend, LocalLinksBackend
from code_linker.retrieval.client import RetrievalClient
from code_linker.server import _create_backend, create_server, lifespan


def test_create_backend_local_by_default(index):
    """Without a backend URL, matching runs in-process."""
    with patch.dict("os.environ", {}, clear=True):
        backend = _create_backend(index)
    assert isinstance(backend, LocalLinksBackend)


@pytest.mark.asyncio
async def test_create_backend_http_when_url_set(index):
    """LINKER_BACKEND_URL selects the HTTP backend."""
    env = {"LINKER_BACKEND_URL": "http://kb.test/", "LINKER_BACKEND_TIMEOUT": "2.5"}
    with patch.dict("os.environ", env, clear=True):
        backend = _create_backend(index)
    assert isinstance(backend, HttpLinksBackend)
    assert backend.url == "http://kb.test/api/links"
    assert backend.timeout == 2.5
    await backend.close()


@pytest.mark.asyncio
async def test_lifespan_loads_bundled_catalog():
    """Lifespan yields the index, analyzer and client and closes the client."""
    with patch.dict("os.environ", {}, clear=True):
        async with lifespan(create_server()) as context:
            assert len(context["index"]) == 33
            assert isinstance(context["analyzer"], CodeAnalyzer)
            client = context["client"]
            assert isinstance(client, RetrievalClient)
            assert isinstance(client.backend, LocalLinksBackend)


@pytest.mark.asyncio
async def test_lifespan_with_empty_catalog(tmp_path):
    """An empty catalog still starts the server."""
    catalog = tmp_path / "catalog.json"
    catalog.write_text("[]")
    with patch.dict("os.environ", {"LINKER_CATALOG_PATH": str(catalog)}, clear=True):
        async with lifespan(create_server()) as context:
            assert len(context["index"]) == 0
