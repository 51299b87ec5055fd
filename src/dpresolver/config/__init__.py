"""Application configuration helpers."""

from __future__ import annotations

from .engine import (
    MIN_POLL_INTERVAL_SECONDS,
    EngineConfig,
    MatchingConfig,
    ReconciliationConfig,
    ResolutionConfig,
    get_engine_config,
    validate_poll_interval,
)
from .errors import ConfigurationError
from .logging import configure_logging
from .storage import DatabaseConfig, get_database_config, get_database_uri, get_ledger_database_uri

__all__ = [
    "MIN_POLL_INTERVAL_SECONDS",
    "ConfigurationError",
    "DatabaseConfig",
    "EngineConfig",
    "MatchingConfig",
    "ReconciliationConfig",
    "ResolutionConfig",
    "configure_logging",
    "get_database_config",
    "get_database_uri",
    "get_engine_config",
    "get_ledger_database_uri",
    "validate_poll_interval",
]
