"""Tuning values for the document resolution engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from .env import env_bool, env_float, env_int, env_list, optional_env_var
from .errors import ConfigurationError

DEFAULT_CHECK_INTERVAL_SECONDS: Final[float] = 30.0
DEFAULT_RETRY_DELAY_SECONDS: Final[float] = 5 * 60.0
DEFAULT_MAX_ATTEMPTS: Final[int] = 10
DEFAULT_POLL_INTERVAL_SECONDS: Final[float] = 30.0
MIN_POLL_INTERVAL_SECONDS: Final[float] = 10.0
DEFAULT_POLL_PAGE_SIZE: Final[int] = 100
DEFAULT_CLOSED_SITUATION: Final[str] = "fechado"

MATCH_MODES: Final[frozenset[str]] = frozenset({"standard", "date_validated"})


@dataclass(frozen=True, slots=True)
class ResolutionConfig:
    check_interval_seconds: float = DEFAULT_CHECK_INTERVAL_SECONDS
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    recover_on_start: bool = True


@dataclass(frozen=True, slots=True)
class MatchingConfig:
    mode: str = "standard"
    strategies: tuple[str, ...] | None = None
    allow_ambiguous_matches: bool = True


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    page_size: int = DEFAULT_POLL_PAGE_SIZE
    closed_situation: str = DEFAULT_CLOSED_SITUATION


@dataclass(frozen=True, slots=True)
class EngineConfig:
    resolution: ResolutionConfig = field(default_factory=ResolutionConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)


def validate_poll_interval(seconds: float) -> float:
    """Return ``seconds`` if it respects the poll interval floor."""

    if seconds < MIN_POLL_INTERVAL_SECONDS:
        raise ConfigurationError(
            f"Poll interval must be at least {MIN_POLL_INTERVAL_SECONDS:g} seconds, got {seconds:g}"
        )
    return seconds


def _positive(name: str, value: float) -> float:
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value:g}")
    return value


def get_engine_config() -> EngineConfig:
    """Build the engine configuration from ``DP_*`` environment variables."""

    resolution = ResolutionConfig(
        check_interval_seconds=_positive(
            "DP_RESOLUTION_CHECK_INTERVAL_SECONDS",
            env_float("DP_RESOLUTION_CHECK_INTERVAL_SECONDS", DEFAULT_CHECK_INTERVAL_SECONDS),
        ),
        retry_delay_seconds=_positive(
            "DP_RESOLUTION_RETRY_DELAY_SECONDS",
            env_float("DP_RESOLUTION_RETRY_DELAY_SECONDS", DEFAULT_RETRY_DELAY_SECONDS),
        ),
        max_attempts=int(
            _positive(
                "DP_RESOLUTION_MAX_ATTEMPTS",
                env_int("DP_RESOLUTION_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
            )
        ),
        recover_on_start=env_bool("DP_RECOVER_ON_START", default=True),
    )

    mode = (optional_env_var("DP_MATCH_MODE") or "standard").lower()
    if mode not in MATCH_MODES:
        allowed = ", ".join(sorted(MATCH_MODES))
        raise ConfigurationError(f"DP_MATCH_MODE must be one of: {allowed}")
    matching = MatchingConfig(
        mode=mode,
        strategies=env_list("DP_MATCH_STRATEGIES"),
        allow_ambiguous_matches=env_bool("DP_ALLOW_AMBIGUOUS_MATCHES", default=True),
    )

    reconciliation = ReconciliationConfig(
        poll_interval_seconds=validate_poll_interval(
            env_float("DP_STATUS_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS)
        ),
        page_size=int(
            _positive(
                "DP_STATUS_POLL_PAGE_SIZE",
                env_int("DP_STATUS_POLL_PAGE_SIZE", DEFAULT_POLL_PAGE_SIZE),
            )
        ),
        closed_situation=(
            optional_env_var("DP_CLOSED_SITUATION") or DEFAULT_CLOSED_SITUATION
        ).lower(),
    )

    return EngineConfig(resolution=resolution, matching=matching, reconciliation=reconciliation)
