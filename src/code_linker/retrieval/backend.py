"""Knowledge-links backends: in-process matching or a remote HTTP endpoint."""

import logging
from typing import Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from code_linker.errors import ClientError, LinkerError, TransientError
from code_linker.index.knowledge_index import KnowledgeIndex
from code_linker.matching.engine import MatchingEngine, catalog_language
from code_linker.matching.keyword import KeywordMatcher
from code_linker.models.links import LinkRequest, LinkResponse, SectionLink, WireFeatures
from code_linker.models.matching import MatchingConfig, MatchResult
from code_linker.models.tags import TagDimension, normalize_tags

logger = logging.getLogger(__name__)

LINKS_PATH = "/api/links"


@runtime_checkable
class LinksBackend(Protocol):
    """Answers knowledge-links requests.

    Implementations raise ClientError for invalid requests and TransientError
    for failures worth retrying.
    """

    async def links(self, request: LinkRequest) -> LinkResponse:
        """Return ranked section links for a request."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        ...


def wire_feature_sets(features: WireFeatures) -> dict[TagDimension, frozenset[str]]:
    """Normalize wire features into per-dimension tag sets, dropping unknown tags."""
    raw = {
        TagDimension.SYNTAX: features.syntax_flags,
        TagDimension.PATTERNS: features.patterns,
        TagDimension.APIS: features.api_signatures,
        TagDimension.CONCEPTS: features.concepts,
    }
    sets: dict[TagDimension, frozenset[str]] = {}
    for dimension, tags in raw.items():
        known, unknown = normalize_tags(dimension, tags)
        if unknown:
            logger.debug("Ignoring unknown %s tags: %s", dimension, unknown)
        sets[dimension] = frozenset(known)
    return sets


def to_section_link(result: MatchResult, match_type: str) -> SectionLink:
    """Convert a match result into its wire form."""
    if result.matched_keywords:
        keywords = list(result.matched_keywords)
    else:
        keywords = [
            f"{dimension}:{tag}"
            for dimension in TagDimension
            for tag in result.matched_tags.for_dimension(dimension)
        ]
    return SectionLink(
        section_id=result.entry.id,
        title=result.entry.title,
        chapter_id=result.entry.chapter_id,
        chapter_title=result.entry.chapter_title,
        language=result.entry.language,
        relevance_score=result.score,
        fused_score=result.score,
        match_type=match_type,  # type: ignore[arg-type]
        confidence=result.confidence,
        matched_keywords=keywords or None,
        explanation=result.explanation or None,
    )


class LocalLinksBackend:
    """In-process links endpoint over a KnowledgeIndex.

    Feature-based matching is used when the request's features carry patterns
    or API signatures; otherwise the raw code is keyword-matched.
    """

    def __init__(self, index: KnowledgeIndex, config: MatchingConfig | None = None) -> None:
        """Serve requests from ``index``."""
        self.config = config or MatchingConfig()
        self.engine = MatchingEngine(index)
        self.keywords = KeywordMatcher(index)

    async def links(self, request: LinkRequest) -> LinkResponse:
        """Validate and answer a request. Raises ClientError for invalid ones."""
        if not request.language:
            raise ClientError("Language is required")
        if not request.code and request.features is None:
            raise ClientError("Either code or features must be provided")

        try:
            return self._answer(request)
        except LinkerError:
            raise
        except Exception as exc:
            logger.exception("Failed to identify knowledge links")
            raise TransientError(f"Failed to identify knowledge links: {exc}") from exc

    def _answer(self, request: LinkRequest) -> LinkResponse:
        language = request.language or ""
        if catalog_language(language) is None:
            logger.warning("No catalog for language %s, returning no links", language)

        if request.features is not None and request.features.has_signal:
            config = self.config.model_copy(update={"max_results": request.top_k})
            results = self.engine.match(wire_feature_sets(request.features), language, config)
            links = [to_section_link(r, "feature-based") for r in results]
            method = "feature-based"
        elif request.code:
            results = self.keywords.match(request.code, language, request.top_k)
            links = [to_section_link(r, "keyword") for r in results]
            method = "keyword-based"
        else:
            raise ClientError("Either code or features must be provided")

        logger.info("Found %d knowledge links for %s code (%s)", len(links), language, method)
        return LinkResponse(
            success=True, data=links, matching_method=method  # type: ignore[arg-type]
        )

    async def close(self) -> None:
        """Nothing to release."""


class HttpLinksBackend:
    """Remote links endpoint reached over HTTP.

    4xx responses raise ClientError; 5xx responses, timeouts and transport
    failures raise TransientError.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Target ``{base_url}/api/links`` with a per-request timeout in seconds."""
        self.url = base_url.rstrip("/") + LINKS_PATH
        self.timeout = timeout
        self._http = http_client

    async def links(self, request: LinkRequest) -> LinkResponse:
        """POST the request and parse the response."""
        client = self._get_client()
        try:
            resp = await client.post(self.url, json=request.to_wire(), timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise TransientError(f"Request to {self.url} timed out") from exc
        except httpx.TransportError as exc:
            raise TransientError(f"Request to {self.url} failed: {exc}") from exc

        if resp.status_code >= 500:
            raise TransientError(f"Server error {resp.status_code}: {_error_message(resp)}")
        if resp.status_code >= 400:
            raise ClientError(_error_message(resp), status=resp.status_code)

        try:
            return LinkResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise TransientError(f"Malformed response from {self.url}") from exc

    def _get_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def close(self) -> None:
        """Close the HTTP client if open."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return resp.reason_phrase
