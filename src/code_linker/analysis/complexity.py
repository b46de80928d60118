"""Complexity accumulator shared by the language analyzers.

Cyclomatic complexity starts at 1 and gains one per decision point. The
cognitive score is an internal heuristic: conditionals cost ``1 + depth`` and
loops ``2 + depth``, so nesting is penalised more than flat branching.
"""

from dataclasses import dataclass

from code_linker.models.features import ComplexityMetrics


@dataclass
class ComplexityCounter:
    """Accumulates complexity while a traversal walks the tree."""

    cyclomatic: int = 1
    cognitive: int = 0
    depth: int = 0
    max_depth: int = 0

    def conditional(self, *, nested: bool = True) -> None:
        """An if / elif / ternary. ``nested=False`` skips the depth penalty (else-if chains)."""
        self.cyclomatic += 1
        self.cognitive += 1 + (self.depth if nested else 0)

    def case(self) -> None:
        """A switch case or match arm."""
        self.cyclomatic += 1

    def loop(self) -> None:
        """Any loop form."""
        self.cyclomatic += 1
        self.cognitive += 2 + self.depth

    def logical(self, count: int = 1) -> None:
        """``&&`` / ``||`` (or ``and`` / ``or``) operators."""
        self.cyclomatic += count
        self.cognitive += count

    def catch(self) -> None:
        """A catch / except clause."""
        self.cyclomatic += 1
        self.cognitive += 1

    def enter(self) -> None:
        """Enter a block scope."""
        self.depth += 1
        self.max_depth = max(self.max_depth, self.depth)

    def exit(self) -> None:
        """Leave a block scope."""
        self.depth -= 1

    def metrics(self, line_count: int) -> ComplexityMetrics:
        """Freeze the accumulated counts."""
        return ComplexityMetrics(
            cyclomatic_complexity=self.cyclomatic,
            cognitive_complexity=self.cognitive,
            line_count=line_count,
            max_depth=self.max_depth,
        )


def count_lines(code: str) -> int:
    """Number of lines in the snippet; 0 for blank input."""
    if not code.strip():
        return 0
    return len(code.strip("\n").splitlines())
