"""Read-only view of the external warehouse ledger."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """One ledger row, keyed by the document number the warehouse assigned."""

    document_number: str
    invoice_numbers: str
    client_sequence_number: str
    client_tax_id: str | None = None
    inclusion_date: datetime | None = None
    situation: str | None = None


@dataclass(frozen=True, slots=True)
class LedgerMatch:
    """Ledger entry found for a search, tagged with the strategy that found it."""

    entry: LedgerEntry
    strategy: str
    priority: int
    low_confidence: bool = False

    @property
    def document_number(self) -> str:
        return self.entry.document_number
