from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

import pytest

from dpresolver.domain.errors import LedgerUnavailableError
from dpresolver.domain.matching import DATE_VALIDATED_CHAIN, LedgerMatcher, build_strategy_chain
from dpresolver.domain.model import SearchContext
from tests.helpers.fakes import FakeLedger, make_entry

TAX_ID = "11222333000144"


def test_first_strategy_with_a_hit_wins() -> None:
    ledger = FakeLedger(
        [
            make_entry("DP-MEMBER", "7700,7788", client_tax_id=TAX_ID),
            make_entry("DP-EXACT", "7788", client_tax_id=TAX_ID),
        ]
    )
    matcher = LedgerMatcher(ledger)

    match = asyncio.run(matcher.match(SearchContext("7788", client_tax_id=TAX_ID)))

    assert match is not None
    assert match.document_number == "DP-EXACT"
    assert match.strategy == "exact_tax_id"
    assert match.priority == 1
    assert matcher.statistics.hits_by_strategy["exact_tax_id"] == 1


def test_falls_through_to_client_sequence() -> None:
    ledger = FakeLedger(
        [make_entry("DP-7", "7788", client_tax_id=None, client_sequence_number="42")]
    )
    matcher = LedgerMatcher(ledger)

    match = asyncio.run(
        matcher.match(SearchContext("7788", client_tax_id=TAX_ID, client_sequence_number="42"))
    )

    assert match is not None
    assert match.strategy == "exact_client_sequence"
    assert not match.low_confidence


def test_invoice_only_match_is_low_confidence() -> None:
    ledger = FakeLedger([make_entry("DP-X", "7788", client_tax_id="99888777000166")])
    matcher = LedgerMatcher(ledger)

    match = asyncio.run(matcher.match(SearchContext("7788", client_tax_id=TAX_ID)))

    assert match is not None
    assert match.strategy == "invoice_only"
    assert match.low_confidence


def test_strict_chain_refuses_client_mismatch() -> None:
    ledger = FakeLedger([make_entry("DP-X", "7788", client_tax_id="99888777000166")])
    matcher = LedgerMatcher(ledger, build_strategy_chain(allow_ambiguous=False))

    assert asyncio.run(matcher.match(SearchContext("7788", client_tax_id=TAX_ID))) is None
    assert matcher.statistics.misses == 1


def test_newest_inclusion_wins_within_a_strategy() -> None:
    ledger = FakeLedger(
        [
            make_entry("DP-OLD", inclusion_date=datetime(2024, 5, 1, tzinfo=UTC)),
            make_entry("DP-UNDATED", inclusion_date=None),
            make_entry("DP-NEW", inclusion_date=datetime(2024, 5, 5, tzinfo=UTC)),
        ]
    )

    match = asyncio.run(LedgerMatcher(ledger).match(SearchContext("7788", client_tax_id=TAX_ID)))

    assert match is not None
    assert match.document_number == "DP-NEW"


def test_substring_only_rows_are_not_matches() -> None:
    ledger = FakeLedger([make_entry("DP-1", "100,200,300")])

    match = asyncio.run(LedgerMatcher(ledger).match(SearchContext("20", client_tax_id=TAX_ID)))

    assert match is None


def test_blank_invoice_is_refused_without_querying() -> None:
    ledger = FakeLedger([make_entry()])
    matcher = LedgerMatcher(ledger)

    assert asyncio.run(matcher.match(SearchContext(" ", client_tax_id=TAX_ID))) is None
    assert ledger.queries == []
    assert matcher.statistics.refusals == 1


def test_date_validated_mode_refuses_without_target_date() -> None:
    ledger = FakeLedger([make_entry()])
    matcher = LedgerMatcher(ledger, DATE_VALIDATED_CHAIN)

    assert matcher.requires_target_date
    assert asyncio.run(matcher.match(SearchContext("7788", client_tax_id=TAX_ID))) is None
    assert ledger.queries == []


def test_date_validated_mode_matches_on_confirmation_day() -> None:
    ledger = FakeLedger(
        [
            make_entry("DP-WRONG-DAY", inclusion_date=datetime(2024, 5, 5, 10, tzinfo=UTC)),
            make_entry("DP-RIGHT-DAY", inclusion_date=datetime(2024, 5, 6, 8, tzinfo=UTC)),
        ]
    )
    matcher = LedgerMatcher(ledger, DATE_VALIDATED_CHAIN)
    context = SearchContext("7788", client_tax_id=TAX_ID, target_date=date(2024, 5, 6))

    match = asyncio.run(matcher.match(context))

    assert match is not None
    assert match.document_number == "DP-RIGHT-DAY"
    assert match.strategy == "exact_tax_id_dated"
    assert ledger.queries[0].inclusion_date == date(2024, 5, 6)


def test_ledger_errors_propagate() -> None:
    ledger = FakeLedger()
    ledger.error = LedgerUnavailableError("down")

    with pytest.raises(LedgerUnavailableError):
        asyncio.run(LedgerMatcher(ledger).match(SearchContext("7788", client_tax_id=TAX_ID)))


def test_matcher_requires_strategies() -> None:
    with pytest.raises(ValueError, match="at least one strategy"):
        LedgerMatcher(FakeLedger(), ())
