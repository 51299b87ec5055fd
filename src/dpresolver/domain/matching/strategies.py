"""Matching strategies expressed as data.

A strategy names the ledger column that confirms the client (tax id, client
sequence number or nothing), how the invoice column is compared (equality or
whole-element membership in a comma-joined list) and whether the inclusion
date must equal the schedule's confirmation date. Chains are plain tuples in
priority order so deployments can reorder or trim them through configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from dpresolver.domain.errors import UnknownStrategyError
from dpresolver.domain.formatting import (
    client_sequence_matches,
    has_document_number,
    invoice_equals,
    invoice_in_list,
    tax_id_variants,
    tax_ids_match,
)
from dpresolver.domain.model import ClientKey, InvoiceMatch, MatchMode
from dpresolver.domain.ports.ledger import LedgerQuery

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dpresolver.domain.model import LedgerEntry, SearchContext


@dataclass(frozen=True, slots=True)
class MatchStrategy:
    name: str
    priority: int
    client_key: ClientKey
    invoice_match: InvoiceMatch
    date_validated: bool = False
    low_confidence: bool = False

    def build_query(self, context: SearchContext) -> LedgerQuery | None:
        """Return the ledger pre-filter, or ``None`` when the context lacks a key."""

        if not context.is_searchable:
            return None
        if self.date_validated and context.target_date is None:
            return None
        query = LedgerQuery(
            invoice_number=context.invoice_number.strip(),
            invoice_match=self.invoice_match,
            client_key=self.client_key,
            inclusion_date=context.target_date if self.date_validated else None,
        )
        if self.client_key is ClientKey.TAX_ID:
            variants = tax_id_variants(context.client_tax_id)
            if not variants:
                return None
            return replace(query, tax_ids=variants)
        if self.client_key is ClientKey.CLIENT_SEQUENCE:
            if not context.client_sequence_number or not context.client_sequence_number.strip():
                return None
            return replace(query, client_sequence_number=context.client_sequence_number.strip())
        return query

    def accepts(self, entry: LedgerEntry, context: SearchContext) -> bool:
        if not has_document_number(entry.document_number):
            return False
        if not self._invoice_matches(entry, context):
            return False
        if not self._client_matches(entry, context):
            return False
        if self.date_validated:
            if context.target_date is None or entry.inclusion_date is None:
                return False
            return entry.inclusion_date.date() == context.target_date
        return True

    def _invoice_matches(self, entry: LedgerEntry, context: SearchContext) -> bool:
        if self.invoice_match is InvoiceMatch.EXACT:
            return invoice_equals(entry.invoice_numbers, context.invoice_number)
        return invoice_in_list(entry.invoice_numbers, context.invoice_number)

    def _client_matches(self, entry: LedgerEntry, context: SearchContext) -> bool:
        if self.client_key is ClientKey.TAX_ID:
            return tax_ids_match(entry.client_tax_id, context.client_tax_id)
        if self.client_key is ClientKey.CLIENT_SEQUENCE:
            return client_sequence_matches(
                entry.client_sequence_number, context.client_sequence_number
            )
        return True


EXACT_TAX_ID = MatchStrategy(
    name="exact_tax_id",
    priority=1,
    client_key=ClientKey.TAX_ID,
    invoice_match=InvoiceMatch.EXACT,
)
FLEXIBLE_TAX_ID = MatchStrategy(
    name="flexible_tax_id",
    priority=2,
    client_key=ClientKey.TAX_ID,
    invoice_match=InvoiceMatch.MEMBER,
)
EXACT_CLIENT_SEQUENCE = MatchStrategy(
    name="exact_client_sequence",
    priority=3,
    client_key=ClientKey.CLIENT_SEQUENCE,
    invoice_match=InvoiceMatch.EXACT,
)
FLEXIBLE_CLIENT_SEQUENCE = MatchStrategy(
    name="flexible_client_sequence",
    priority=4,
    client_key=ClientKey.CLIENT_SEQUENCE,
    invoice_match=InvoiceMatch.MEMBER,
)
INVOICE_ONLY = MatchStrategy(
    name="invoice_only",
    priority=5,
    client_key=ClientKey.NONE,
    invoice_match=InvoiceMatch.EXACT,
    low_confidence=True,
)
EXACT_TAX_ID_DATED = MatchStrategy(
    name="exact_tax_id_dated",
    priority=6,
    client_key=ClientKey.TAX_ID,
    invoice_match=InvoiceMatch.EXACT,
    date_validated=True,
)
FLEXIBLE_TAX_ID_DATED = MatchStrategy(
    name="flexible_tax_id_dated",
    priority=7,
    client_key=ClientKey.TAX_ID,
    invoice_match=InvoiceMatch.MEMBER,
    date_validated=True,
)

STANDARD_CHAIN: tuple[MatchStrategy, ...] = (
    EXACT_TAX_ID,
    FLEXIBLE_TAX_ID,
    EXACT_CLIENT_SEQUENCE,
    FLEXIBLE_CLIENT_SEQUENCE,
    INVOICE_ONLY,
)
DATE_VALIDATED_CHAIN: tuple[MatchStrategy, ...] = (EXACT_TAX_ID_DATED, FLEXIBLE_TAX_ID_DATED)

STRATEGIES_BY_NAME: dict[str, MatchStrategy] = {
    strategy.name: strategy for strategy in (*STANDARD_CHAIN, *DATE_VALIDATED_CHAIN)
}


def build_strategy_chain(
    *,
    mode: MatchMode | str = MatchMode.STANDARD,
    names: Iterable[str] | None = None,
    allow_ambiguous: bool = True,
) -> tuple[MatchStrategy, ...]:
    """Resolve the chain for a deployment.

    ``names`` overrides the mode's default chain and keeps the given order.
    Strict deployments (``allow_ambiguous=False``) drop low-confidence strategies.
    """

    if names is None:
        dated = MatchMode(mode) is MatchMode.DATE_VALIDATED
        chain = DATE_VALIDATED_CHAIN if dated else STANDARD_CHAIN
    else:
        resolved: list[MatchStrategy] = []
        for name in names:
            strategy = STRATEGIES_BY_NAME.get(name)
            if strategy is None:
                known = ", ".join(sorted(STRATEGIES_BY_NAME))
                raise UnknownStrategyError(f"Unknown match strategy {name!r} (known: {known})")
            if strategy not in resolved:
                resolved.append(strategy)
        chain = tuple(resolved)

    if not allow_ambiguous:
        chain = tuple(strategy for strategy in chain if not strategy.low_confidence)
    if not chain:
        raise UnknownStrategyError("Match strategy chain is empty")
    return chain
