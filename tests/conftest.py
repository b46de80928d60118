"""Shared test fixtures."""

import copy

import pytest

from code_linker.index.catalog import load_catalog
from code_linker.index.knowledge_index import KnowledgeIndex


def make_record(
    entry_id: str,
    *,
    language: str = "javascript",
    title: str | None = None,
    syntax: list[str] | None = None,
    patterns: list[str] | None = None,
    apis: list[str] | None = None,
    concepts: list[str] | None = None,
    difficulty: str = "basic",
    dependencies: list[str] | None = None,
    related: list[str] | None = None,
    keywords: list[str] | None = None,
) -> dict:
    """Raw catalog record in the on-disk JSON shape."""
    return {
        "id": entry_id,
        "title": title or f"Section {entry_id}",
        "chapterId": f"{language}-ch-1",
        "chapterTitle": "Chapter one",
        "language": language,
        "metadata": {
            "syntax": syntax or [],
            "patterns": patterns or [],
            "apis": apis or [],
            "concepts": concepts or [],
            "difficulty": difficulty,
            "dependencies": dependencies or [],
            "related": related or [],
            "keywords": keywords or [],
        },
    }


SMALL_CATALOG = [
    make_record(
        "js-basics",
        title="Variables",
        syntax=["var", "let", "const"],
        concepts=["scope", "hoisting"],
        keywords=["variable", "declaration"],
    ),
    make_record(
        "js-promises",
        title="Promises",
        syntax=["arrow-function"],
        patterns=["promise-chain", "callback"],
        apis=["Promise.then", "Promise.catch"],
        concepts=["async-control-flow", "event-loop"],
        difficulty="intermediate",
        dependencies=["js-basics"],
        keywords=["promise", "then"],
    ),
    make_record(
        "js-async",
        title="async/await",
        syntax=["async", "await", "function", "const", "try-catch"],
        patterns=["async-await", "error-handling", "try-catch"],
        apis=["fetch", "Response.json"],
        concepts=["async-control-flow", "event-loop"],
        difficulty="intermediate",
        dependencies=["js-promises"],
        related=["js-arrays"],
        keywords=["async", "await", "fetch"],
    ),
    make_record(
        "js-arrays",
        title="Array methods",
        syntax=["arrow-function", "const"],
        patterns=["array-methods", "higher-order-function", "callback"],
        apis=["Array.map", "Array.filter", "Array.reduce"],
        dependencies=["js-basics"],
        keywords=["map", "filter", "reduce"],
    ),
    make_record(
        "py-async",
        language="python",
        title="asyncio basics",
        syntax=["async", "await", "function"],
        patterns=["async-await"],
        apis=["asyncio.run", "asyncio.gather"],
        concepts=["async-control-flow", "event-loop"],
        difficulty="advanced",
        keywords=["asyncio", "coroutine"],
    ),
]

# Tag sets of a typical async fetch handler, as the analyzer reports them
ASYNC_FETCH_FEATURES = {
    "syntax": ["async", "function", "await", "const", "try-catch", "template-literal"],
    "patterns": ["async-await", "error-handling", "try-catch"],
    "apis": ["fetch", "response.json", "console.error"],
    "concepts": ["hoisting", "async-control-flow", "event-loop", "scope"],
}

ASYNC_FETCH_CODE = """\
async function loadUser(id) {
  try {
    const response = await fetch(`/api/users/${id}`);
    const user = await response.json();
    return user;
  } catch (error) {
    console.error(error);
    return null;
  }
}
"""


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def records():
    """Fresh copy of the small catalog records."""
    return copy.deepcopy(SMALL_CATALOG)


@pytest.fixture
def index(records):
    """Knowledge index over the small catalog."""
    kb = KnowledgeIndex()
    kb.build(records)
    return kb


@pytest.fixture(scope="session")
def bundled_index():
    """Knowledge index over the bundled curriculum catalog."""
    kb = KnowledgeIndex()
    kb.build(load_catalog())
    return kb


@pytest.fixture
def clock():
    """Fake clock starting at t=1000."""
    return FakeClock()
