"""Ledger matching: strategy chain and matcher."""

from __future__ import annotations

from .matcher import LedgerMatcher, MatcherStatistics, describe_discrepancy
from .strategies import (
    DATE_VALIDATED_CHAIN,
    STANDARD_CHAIN,
    STRATEGIES_BY_NAME,
    MatchStrategy,
    build_strategy_chain,
)

__all__ = [
    "DATE_VALIDATED_CHAIN",
    "STANDARD_CHAIN",
    "STRATEGIES_BY_NAME",
    "LedgerMatcher",
    "MatchStrategy",
    "MatcherStatistics",
    "build_strategy_chain",
    "describe_discrepancy",
]
