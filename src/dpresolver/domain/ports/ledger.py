"""Port for read-only access to the external warehouse ledger."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from dpresolver.domain.model import ClientKey, InvoiceMatch

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date

    from dpresolver.domain.model import LedgerEntry

DEFAULT_CANDIDATE_LIMIT = 50


@dataclass(frozen=True, slots=True)
class LedgerQuery:
    """Pre-filter for ledger candidates of one matching strategy.

    Readers may return a superset of the rows the strategy accepts; the matcher
    applies the exact predicate afterwards. ``limit`` counts rows that already
    pass the invoice and client filters, so a rejected row must never push an
    accepted one out of the newest ``limit`` rows.
    """

    invoice_number: str
    invoice_match: InvoiceMatch = InvoiceMatch.EXACT
    client_key: ClientKey = ClientKey.NONE
    tax_ids: tuple[str, ...] = ()
    client_sequence_number: str | None = None
    inclusion_date: date | None = None
    limit: int = DEFAULT_CANDIDATE_LIMIT


@runtime_checkable
class LedgerReader(Protocol):
    """Read-only ledger queries; every call may raise ``LedgerUnavailableError``."""

    async def find_candidates(self, query: LedgerQuery) -> Sequence[LedgerEntry]: ...

    async def get_by_document_number(self, document_number: str) -> LedgerEntry | None: ...


__all__ = ["DEFAULT_CANDIDATE_LIMIT", "LedgerQuery", "LedgerReader"]
