"""Resilient retrieval: cache, debounce, retry with backoff, keyword fallback."""

import asyncio
import contextlib
import json
import logging
import time
from collections.abc import Callable

from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from code_linker.config import (
    get_cache_size,
    get_cache_ttl,
    get_debounce_ms,
    get_max_results,
    get_max_retries,
    get_min_confidence,
    is_cache_enabled,
    is_enabled,
)
from code_linker.errors import ClientError, LinkerError, RetrievalExhausted, TransientError
from code_linker.models.links import LinkRequest, LinkResponse
from code_linker.models.matching import Confidence
from code_linker.retrieval.backend import LinksBackend
from code_linker.retrieval.cache import CacheStats, TTLCache
from code_linker.retrieval.debounce import Debouncer

logger = logging.getLogger(__name__)

CODE_KEY_PREFIX = 100


class RetrievalSettings(BaseModel):
    """Knobs for RetrievalClient."""

    enabled: bool = True
    max_results: int = Field(default=5, ge=1)
    min_confidence: Confidence = Confidence.LOW
    cache_enabled: bool = True
    cache_ttl: float = 300.0
    cache_size: int = Field(default=100, ge=1)
    max_retries: int = Field(default=3, ge=1)
    backoff_base: float = Field(default=1.0, ge=0.0)
    debounce_ms: int = Field(default=300, ge=0)
    sweep_interval: float = Field(default=60.0, gt=0.0)

    @classmethod
    def from_env(cls) -> "RetrievalSettings":
        """Assemble settings from LINKER_* environment variables."""
        return cls(
            enabled=is_enabled(),
            max_results=get_max_results(),
            min_confidence=Confidence(get_min_confidence()),
            cache_enabled=is_cache_enabled(),
            cache_ttl=get_cache_ttl(),
            cache_size=get_cache_size(),
            max_retries=get_max_retries(),
            debounce_ms=get_debounce_ms(),
        )


def cache_key(request: LinkRequest) -> str:
    """Key derived from the code prefix, language, feature set and top_k."""
    features = request.features.to_wire() if request.features is not None else None
    return json.dumps(
        {
            "code": (request.code or "")[:CODE_KEY_PREFIX],
            "language": request.language,
            "features": features,
            "topK": request.top_k,
        },
        sort_keys=True,
    )


class RetrievalClient:
    """Fetches knowledge links from a backend without ever raising.

    A request is answered from the cache when possible. Otherwise the backend
    is tried up to ``max_retries`` times, retrying only transient failures
    with exponential backoff. When those attempts are exhausted and raw code
    is available, one keyword-only request is made and its response is
    marked ``keyword-based``. Client errors are never retried.
    """

    def __init__(
        self,
        backend: LinksBackend,
        settings: RetrievalSettings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Wrap ``backend``; ``clock`` drives cache expiry."""
        self.backend = backend
        self.settings = settings or RetrievalSettings()
        self.cache: TTLCache[LinkResponse] = TTLCache(
            max_size=self.settings.cache_size,
            ttl=self.settings.cache_ttl,
            clock=clock,
        )
        self._debouncer: Debouncer[LinkResponse] = Debouncer(self.settings.debounce_ms / 1000)
        self._sweeper: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start the background task that purges expired cache entries."""
        if self._sweeper is None and self.settings.cache_enabled:
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep())

    async def _sweep(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval)
            purged = self.cache.purge_expired()
            if purged:
                logger.debug("Purged %d expired cache entries", purged)

    async def close(self) -> None:
        """Stop the sweep task, drop pending debounced calls and close the backend."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        self._debouncer.cancel()
        await self.backend.close()

    def stats(self) -> CacheStats:
        """Cache statistics."""
        return self.cache.stats()

    def clear_cache(self) -> None:
        """Empty the cache."""
        self.cache.clear()

    async def fetch(self, request: LinkRequest) -> LinkResponse:
        """Retrieve links for a request. Failures come back as ``success=False``."""
        if not self.settings.enabled:
            return LinkResponse.failure("Knowledge linking is disabled")

        request = request.model_copy(
            update={"top_k": min(request.top_k, self.settings.max_results)}
        )
        key = cache_key(request)
        if self.settings.cache_enabled:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s request", request.language)
                return cached

        try:
            response = await self._fetch_primary(request)
        except ClientError as exc:
            logger.warning("Links request rejected (%d): %s", exc.status, exc)
            return LinkResponse.failure(str(exc), details=f"status {exc.status}")
        except TransientError as exc:
            logger.warning(
                "Primary retrieval failed after %d attempts: %s", self.settings.max_retries, exc
            )
            try:
                return self._filter(await self._fallback(request, exc))
            except RetrievalExhausted as final:
                logger.warning("Retrieval exhausted: %s", final)
                return LinkResponse.failure("Failed to retrieve knowledge links", str(final))
        except Exception as exc:
            logger.warning("Unexpected retrieval failure", exc_info=True)
            return LinkResponse.failure("Failed to retrieve knowledge links", str(exc))

        response = self._filter(response)
        if self.settings.cache_enabled and response.success:
            self.cache.set(key, response)
        return response

    async def fetch_debounced(
        self, request: LinkRequest, delay: float | None = None
    ) -> LinkResponse:
        """Like fetch, but only the last call in a burst within the window runs.

        Superseded callers receive the response of the call that ran.
        """
        return await self._debouncer.call(lambda: self.fetch(request), delay)

    async def _fetch_primary(self, request: LinkRequest) -> LinkResponse:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.max_retries),
            wait=wait_exponential(multiplier=self.settings.backoff_base, min=0),
            retry=retry_if_exception_type(TransientError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self.backend.links(request)
        raise RetrievalExhausted("retry loop ended without a result")

    async def _fallback(self, request: LinkRequest, cause: Exception) -> LinkResponse:
        if not request.code:
            raise RetrievalExhausted(f"no code available for keyword fallback ({cause})")
        keyword_request = LinkRequest(
            code=request.code,
            language=request.language,
            file_path=request.file_path,
            top_k=request.top_k,
        )
        logger.info("Falling back to keyword matching")
        try:
            response = await self.backend.links(keyword_request)
        except LinkerError as exc:
            raise RetrievalExhausted(f"keyword fallback failed: {exc}") from exc
        return response.model_copy(update={"matching_method": "keyword-based"})

    def _filter(self, response: LinkResponse) -> LinkResponse:
        floor = self.settings.min_confidence.rank
        kept = [link for link in response.data if link.confidence.rank >= floor]
        if len(kept) == len(response.data):
            return response
        return response.model_copy(update={"data": kept})
