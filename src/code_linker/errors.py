"""Exception taxonomy.

Only ClientError reaches a caller as an actionable message; every other error
is recovered where it occurs and turned into degraded data.
"""


class LinkerError(Exception):
    """Base class for code-linker errors."""


class ParseError(LinkerError):
    """Source text could not be parsed, even after wrapping it in a function."""


class ExtractionTimeout(LinkerError):
    """Parse and traversal exceeded the analysis time budget."""


class CatalogValidationError(LinkerError):
    """A catalog entry is malformed or references unknown entries."""

    def __init__(self, entry_id: str, message: str) -> None:
        """Record which entry failed and why."""
        super().__init__(f"{entry_id}: {message}")
        self.entry_id = entry_id
        self.message = message


class ClientError(LinkerError):
    """The request itself is invalid (4xx). Never retried."""

    def __init__(self, message: str, status: int = 400) -> None:
        """Record the status code alongside the message."""
        super().__init__(message)
        self.status = status


class TransientError(LinkerError):
    """Server or network failure (5xx, timeout, connection). Retried with backoff."""


class RetrievalExhausted(LinkerError):
    """Every primary attempt and the keyword fallback failed."""
