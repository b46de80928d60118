"""Tests for environment-variable configuration."""

from pathlib import Path
from unittest.mock import patch

from code_linker.config import (
    get_analysis_timeout_ms,
    get_backend_timeout,
    get_backend_url,
    get_cache_size,
    get_cache_ttl,
    get_catalog_path,
    get_debounce_ms,
    get_log_level,
    get_max_results,
    get_max_retries,
    get_min_confidence,
    is_cache_enabled,
    is_enabled,
)


def test_defaults():
    with patch.dict("os.environ", {}, clear=True):
        assert get_catalog_path() is None
        assert get_backend_url() is None
        assert get_backend_timeout() == 10.0
        assert is_enabled() is True
        assert get_max_results() == 5
        assert get_min_confidence() == "low"
        assert is_cache_enabled() is True
        assert get_cache_ttl() == 300.0
        assert get_cache_size() == 100
        assert get_max_retries() == 3
        assert get_debounce_ms() == 300
        assert get_analysis_timeout_ms() == 5000
        assert get_log_level() == "WARNING"


def test_env_overrides():
    env = {
        "LINKER_CATALOG_PATH": "/data/catalog",
        "LINKER_BACKEND_URL": " http://kb.test/ ",
        "LINKER_BACKEND_TIMEOUT": "3",
        "LINKER_ENABLED": "false",
        "LINKER_CACHE_ENABLED": "FALSE",
        "LINKER_CACHE_SIZE": "10",
        "LINKER_ANALYSIS_TIMEOUT_MS": "250",
        "LINKER_LOG_LEVEL": "debug",
    }
    with patch.dict("os.environ", env, clear=True):
        assert get_catalog_path() == Path("/data/catalog")
        assert get_backend_url() == "http://kb.test"
        assert get_backend_timeout() == 3.0
        assert is_enabled() is False
        assert is_cache_enabled() is False
        assert get_cache_size() == 10
        assert get_analysis_timeout_ms() == 250
        assert get_log_level() == "DEBUG"


def test_blank_backend_url_means_in_process():
    with patch.dict("os.environ", {"LINKER_BACKEND_URL": "   "}, clear=True):
        assert get_backend_url() is None


def test_only_false_disables():
    with patch.dict("os.environ", {"LINKER_ENABLED": "no"}, clear=True):
        assert is_enabled() is True
