"""Cooperative time budget for parse + traversal."""

import time

from code_linker.errors import ExtractionTimeout


class Deadline:
    """Raises ExtractionTimeout from check() once the budget is spent.

    Traversals call check() on every node, which bounds the CPU time spent on
    pathological input without needing to preempt a thread.
    """

    def __init__(self, budget_ms: float) -> None:
        """Start the clock with a budget in milliseconds."""
        self.budget_ms = budget_ms
        self._expires = time.monotonic() + budget_ms / 1000.0

    @property
    def expired(self) -> bool:
        """True once the budget has elapsed."""
        return time.monotonic() >= self._expires

    def check(self) -> None:
        """Raise if the budget has elapsed."""
        if self.expired:
            raise ExtractionTimeout(f"Analysis timeout after {self.budget_ms:.0f}ms")
