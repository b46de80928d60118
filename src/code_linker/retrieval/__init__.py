"""Knowledge-link retrieval with caching, retry and fallback."""

from code_linker.retrieval.backend import HttpLinksBackend, LinksBackend, LocalLinksBackend
from code_linker.retrieval.client import RetrievalClient, RetrievalSettings

__all__ = [
    "HttpLinksBackend",
    "LinksBackend",
    "LocalLinksBackend",
    "RetrievalClient",
    "RetrievalSettings",
]
