"""Environment-variable-based configuration."""

import os
from pathlib import Path


def get_catalog_path() -> Path | None:
    """Return the catalog file or directory from LINKER_CATALOG_PATH (None = bundled)."""
    raw = os.environ.get("LINKER_CATALOG_PATH")
    if not raw:
        return None
    return Path(raw).expanduser()


def get_backend_url() -> str | None:
    """Return the remote links endpoint base URL from LINKER_BACKEND_URL (None = in-process)."""
    raw = os.environ.get("LINKER_BACKEND_URL", "").strip()
    return raw.rstrip("/") or None


def get_backend_timeout() -> float:
    """Return the per-attempt network timeout in seconds from LINKER_BACKEND_TIMEOUT."""
    return float(os.environ.get("LINKER_BACKEND_TIMEOUT", "10.0"))


def is_enabled() -> bool:
    """Return False only if LINKER_ENABLED is set to FALSE."""
    return os.environ.get("LINKER_ENABLED", "TRUE").upper() != "FALSE"


def get_max_results() -> int:
    """Return the cap on links per request from LINKER_MAX_RESULTS."""
    return int(os.environ.get("LINKER_MAX_RESULTS", "5"))


def get_min_confidence() -> str:
    """Return the minimum confidence band kept client-side from LINKER_MIN_CONFIDENCE."""
    return os.environ.get("LINKER_MIN_CONFIDENCE", "low").lower()


def is_cache_enabled() -> bool:
    """Return False only if LINKER_CACHE_ENABLED is set to FALSE."""
    return os.environ.get("LINKER_CACHE_ENABLED", "TRUE").upper() != "FALSE"


def get_cache_ttl() -> float:
    """Return the cache time-to-live in seconds from LINKER_CACHE_TTL."""
    return float(os.environ.get("LINKER_CACHE_TTL", "300"))


def get_cache_size() -> int:
    """Return the cache capacity from LINKER_CACHE_SIZE."""
    return int(os.environ.get("LINKER_CACHE_SIZE", "100"))


def get_max_retries() -> int:
    """Return the number of primary attempts from LINKER_MAX_RETRIES."""
    return int(os.environ.get("LINKER_MAX_RETRIES", "3"))


def get_debounce_ms() -> int:
    """Return the debounce window in milliseconds from LINKER_DEBOUNCE_MS."""
    return int(os.environ.get("LINKER_DEBOUNCE_MS", "300"))


def get_analysis_timeout_ms() -> int:
    """Return the parse + traversal budget in milliseconds from LINKER_ANALYSIS_TIMEOUT_MS."""
    return int(os.environ.get("LINKER_ANALYSIS_TIMEOUT_MS", "5000"))


def get_log_level() -> str:
    """Return the logging level from LINKER_LOG_LEVEL."""
    return os.environ.get("LINKER_LOG_LEVEL", "WARNING").upper()
