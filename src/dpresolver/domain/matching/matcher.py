"""Ledger matcher running an ordered strategy chain."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from dpresolver.domain.model import LedgerMatch

from .strategies import STANDARD_CHAIN, MatchStrategy

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from dpresolver.domain.model import LedgerEntry, SearchContext
    from dpresolver.domain.ports.ledger import LedgerReader

log = getLogger(__name__)


@dataclass(slots=True)
class MatcherStatistics:
    searches: int = 0
    misses: int = 0
    refusals: int = 0
    hits_by_strategy: Counter[str] = field(default_factory=Counter[str])

    @property
    def hits(self) -> int:
        return sum(self.hits_by_strategy.values())

    def as_dict(self) -> dict[str, object]:
        return {
            "searches": self.searches,
            "hits": self.hits,
            "misses": self.misses,
            "refusals": self.refusals,
            "hits_by_strategy": dict(self.hits_by_strategy),
        }


def _newest_first(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    def sort_key(entry: LedgerEntry) -> tuple[bool, float, str]:
        stamp = entry.inclusion_date
        return (stamp is None, -stamp.timestamp() if stamp else 0.0, entry.document_number)

    return sorted(entries, key=sort_key)


def describe_discrepancy(match: LedgerMatch, context: SearchContext) -> str:
    """Human readable comparison of expected and found client identity."""

    entry = match.entry
    return (
        f"expected tax id={context.client_tax_id or '-'} "
        f"client={context.client_sequence_number or '-'}, "
        f"found tax id={entry.client_tax_id or '-'} client={entry.client_sequence_number or '-'}"
    )


class LedgerMatcher:
    """Find the ledger entry for a search context; the first strategy with a hit wins.

    Strategies never compete on score: priority order alone decides. When the
    chain contains date-validated strategies and the context carries no target
    date, the search is refused outright instead of falling back to looser
    strategies.
    """

    def __init__(
        self,
        ledger: LedgerReader,
        strategies: Sequence[MatchStrategy] = STANDARD_CHAIN,
    ) -> None:
        if not strategies:
            raise ValueError("LedgerMatcher needs at least one strategy")
        self.ledger = ledger
        self.strategies: tuple[MatchStrategy, ...] = tuple(strategies)
        self.statistics = MatcherStatistics()

    @property
    def requires_target_date(self) -> bool:
        return any(strategy.date_validated for strategy in self.strategies)

    async def match(self, context: SearchContext) -> LedgerMatch | None:
        """Return the best match for ``context`` or ``None``.

        Ledger failures propagate to the caller, which decides how to retry.
        """

        self.statistics.searches += 1
        if not context.is_searchable:
            log.warning("Refusing ledger search without an invoice number")
            self.statistics.refusals += 1
            return None
        if self.requires_target_date and context.target_date is None:
            log.warning(
                "Refusing date-validated search for invoice %s: confirmation date unknown",
                context.invoice_number,
            )
            self.statistics.refusals += 1
            return None

        for strategy in self.strategies:
            query = strategy.build_query(context)
            if query is None:
                log.debug(
                    "Strategy %s not applicable to invoice %s",
                    strategy.name,
                    context.invoice_number,
                )
                continue
            candidates = await self.ledger.find_candidates(query)
            accepted = [entry for entry in candidates if strategy.accepts(entry, context)]
            if not accepted:
                continue
            best = _newest_first(accepted)[0]
            if len(accepted) > 1:
                log.info(
                    "Strategy %s found %s entries for invoice %s, using newest %s",
                    strategy.name,
                    len(accepted),
                    context.invoice_number,
                    best.document_number,
                )
            self.statistics.hits_by_strategy[strategy.name] += 1
            return LedgerMatch(
                entry=best,
                strategy=strategy.name,
                priority=strategy.priority,
                low_confidence=strategy.low_confidence,
            )

        self.statistics.misses += 1
        return None


__all__ = ["LedgerMatcher", "MatcherStatistics", "describe_discrepancy"]
