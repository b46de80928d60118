"""Tests for the in-process and HTTP links backends."""

import json

import httpx
import pytest
from conftest import ASYNC_FETCH_FEATURES

from code_linker.errors import ClientError, TransientError
from code_linker.models.links import LinkRequest, WireFeatures
from code_linker.retrieval.backend import (
    HttpLinksBackend,
    LinksBackend,
    LocalLinksBackend,
    wire_feature_sets,
)


def _features(**overrides) -> WireFeatures:
    values = {
        "syntax_flags": ASYNC_FETCH_FEATURES["syntax"],
        "patterns": ASYNC_FETCH_FEATURES["patterns"],
        "api_signatures": ASYNC_FETCH_FEATURES["apis"],
        "concepts": ASYNC_FETCH_FEATURES["concepts"],
    }
    values.update(overrides)
    return WireFeatures(**values)


# --- local backend ---


def test_backends_satisfy_protocol(index):
    assert isinstance(LocalLinksBackend(index), LinksBackend)
    assert isinstance(HttpLinksBackend("http://kb.test"), LinksBackend)


def test_wire_feature_sets_drop_unknown_tags():
    sets = wire_feature_sets(WireFeatures(syntax_flags=["CONST", "goto"], api_signatures=["x.y"]))
    assert sets["syntax"] == frozenset({"const"})
    assert sets["apis"] == frozenset({"x.y"})


@pytest.mark.asyncio
async def test_local_feature_based(index):
    backend = LocalLinksBackend(index)
    response = await backend.links(
        LinkRequest(code="...", language="javascript", features=_features())
    )
    assert response.success
    assert response.matching_method == "feature-based"
    top = response.data[0]
    assert top.section_id == "js-async"
    assert top.match_type == "feature-based"
    assert top.confidence == "high"
    assert "patterns:async-await" in top.matched_keywords
    assert top.explanation.endswith("(match: 100%)")


@pytest.mark.asyncio
async def test_local_keyword_based_without_feature_signal(index):
    backend = LocalLinksBackend(index)
    request = LinkRequest(
        code="numbers.map(double).filter(Boolean)",
        language="javascript",
        features=WireFeatures(syntax_flags=["const"]),
    )
    response = await backend.links(request)
    assert response.matching_method == "keyword-based"
    assert response.data[0].section_id == "js-arrays"
    assert response.data[0].match_type == "keyword"
    assert "map" in response.data[0].matched_keywords


@pytest.mark.asyncio
async def test_local_respects_top_k(index):
    features = _features(concepts=[], syntax_flags=["const", "arrow-function"])
    response = await LocalLinksBackend(index).links(
        LinkRequest(language="javascript", features=features, top_k=1)
    )
    assert len([link for link in response.data if link.explanation != "Prerequisite"]) == 1


@pytest.mark.asyncio
async def test_local_typescript_uses_javascript_catalog(index):
    response = await LocalLinksBackend(index).links(
        LinkRequest(language="typescript", features=_features())
    )
    assert response.data[0].section_id == "js-async"


@pytest.mark.asyncio
async def test_local_unsupported_language_returns_no_links(index):
    response = await LocalLinksBackend(index).links(
        LinkRequest(language="cobol", features=_features())
    )
    assert response.success
    assert response.data == []


@pytest.mark.asyncio
async def test_local_requires_language(index):
    with pytest.raises(ClientError, match="Language is required"):
        await LocalLinksBackend(index).links(LinkRequest(code="x"))


@pytest.mark.asyncio
async def test_local_requires_code_or_features(index):
    backend = LocalLinksBackend(index)
    with pytest.raises(ClientError, match="Either code or features"):
        await backend.links(LinkRequest(language="javascript"))
    with pytest.raises(ClientError, match="Either code or features"):
        await backend.links(LinkRequest(language="javascript", features=WireFeatures()))


# --- HTTP backend ---


_SUCCESS_BODY = {
    "success": True,
    "data": [
        {
            "sectionId": "js-sec-3-5",
            "title": "async/await",
            "chapterId": "js-ch-3",
            "chapterTitle": "Asynchronous JavaScript",
            "language": "javascript",
            "relevanceScore": 0.85,
            "fusedScore": 0.85,
            "matchType": "feature-based",
            "confidence": "high",
        }
    ],
    "matchingMethod": "feature-based",
}


def _http_backend(handler) -> HttpLinksBackend:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpLinksBackend("http://kb.test/", timeout=1.0, http_client=client)


@pytest.mark.asyncio
async def test_http_posts_camel_case_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_SUCCESS_BODY)

    backend = _http_backend(handler)
    response = await backend.links(
        LinkRequest(code="x", language="javascript", features=_features(), top_k=3)
    )

    assert seen["url"] == "http://kb.test/api/links"
    assert seen["body"]["topK"] == 3
    assert seen["body"]["features"]["syntaxFlags"] == ASYNC_FETCH_FEATURES["syntax"]
    assert "filePath" not in seen["body"]
    assert response.success
    assert response.data[0].section_id == "js-sec-3-5"
    assert response.data[0].relevance_score == 0.85
    await backend.close()


@pytest.mark.asyncio
async def test_http_server_error_is_transient():
    backend = _http_backend(lambda request: httpx.Response(503, json={"error": "overloaded"}))
    with pytest.raises(TransientError, match="overloaded"):
        await backend.links(LinkRequest(code="x", language="javascript"))


@pytest.mark.asyncio
async def test_http_client_error_carries_status():
    body = {"success": False, "error": "Language is required"}
    backend = _http_backend(lambda request: httpx.Response(400, json=body))
    with pytest.raises(ClientError) as excinfo:
        await backend.links(LinkRequest(code="x"))
    assert excinfo.value.status == 400
    assert str(excinfo.value) == "Language is required"


@pytest.mark.asyncio
async def test_http_timeout_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TransientError, match="timed out"):
        await _http_backend(handler).links(LinkRequest(code="x", language="javascript"))


@pytest.mark.asyncio
async def test_http_connection_error_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransientError):
        await _http_backend(handler).links(LinkRequest(code="x", language="javascript"))


@pytest.mark.asyncio
async def test_http_malformed_body_is_transient():
    backend = _http_backend(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(TransientError, match="Malformed"):
        await backend.links(LinkRequest(code="x", language="javascript"))


@pytest.mark.asyncio
async def test_http_close_is_idempotent():
    backend = _http_backend(lambda request: httpx.Response(200, json=_SUCCESS_BODY))
    await backend.close()
    await backend.close()
