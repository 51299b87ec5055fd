"""Repository implementations backed by SQLAlchemy asyncio sessions and connections."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import UTC, datetime, time, timedelta
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import ColumnElement, String, and_, func, literal, or_, select, update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from dpresolver.adapters.sqlalchemy.mappings import ledger_table, schedule_table
from dpresolver.adapters.sqlalchemy.schema import (
    append_history,
    extract_client_sequence_number,
    parse_history,
)
from dpresolver.domain.errors import LedgerUnavailableError, ScheduleStoreUnavailableError
from dpresolver.domain.formatting import INVOICE_SEPARATOR, clean, digits_only
from dpresolver.domain.model import ClientKey, InvoiceMatch, LedgerEntry, ScheduleRecord

if TYPE_CHECKING:
    from collections.abc import Collection, Iterator, Sequence

    from sqlalchemy import CursorResult, Row
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from dpresolver.domain.errors import TransientStoreError
    from dpresolver.domain.model import AuditEntry
    from dpresolver.domain.ports.ledger import LedgerQuery

UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, OSError)

_TAX_ID_SEPARATORS = (".", "/", "-", " ")


@contextmanager
def translate_errors(error_cls: type[TransientStoreError], action: str) -> Iterator[None]:
    """Re-raise connectivity failures as the domain's transient store errors."""

    try:
        yield
    except UNAVAILABLE_ERRORS as exc:
        raise error_cls(f"{action} failed: {exc}") from exc


def _without_separators(column: ColumnElement[Any]) -> ColumnElement[Any]:
    expression = column
    for separator in _TAX_ID_SEPARATORS:
        expression = func.replace(expression, separator, "")
    return expression


class SqlAlchemyScheduleRepository:
    """Reads and conditionally updates ``schedule_list`` rows."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, schedule_id: int) -> ScheduleRecord | None:
        stmt = select(schedule_table).where(schedule_table.c.id == schedule_id)
        with translate_errors(ScheduleStoreUnavailableError, f"Loading schedule {schedule_id}"):
            row = (await self.session.execute(stmt)).first()
        return _to_schedule(row) if row is not None else None

    async def list_with_document(
        self,
        *,
        excluded_statuses: Collection[str],
        limit: int,
    ) -> Sequence[ScheduleRecord]:
        stmt = (
            select(schedule_table)
            .where(_schedule_has_document())
            .where(schedule_table.c.status.not_in([str(status) for status in excluded_statuses]))
            .order_by(schedule_table.c.id.desc())
            .limit(limit)
        )
        with translate_errors(ScheduleStoreUnavailableError, "Listing schedules with documents"):
            rows = (await self.session.execute(stmt)).all()
        return [_to_schedule(row) for row in rows]

    async def list_unresolved(
        self,
        *,
        statuses: Collection[str],
        limit: int | None = None,
    ) -> Sequence[ScheduleRecord]:
        stmt = (
            select(schedule_table)
            .where(~_schedule_has_document())
            .where(schedule_table.c.status.in_([str(status) for status in statuses]))
            .order_by(schedule_table.c.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with translate_errors(ScheduleStoreUnavailableError, "Listing unresolved schedules"):
            rows = (await self.session.execute(stmt)).all()
        return [_to_schedule(row) for row in rows]

    async def assign_document_number(
        self,
        schedule_id: int,
        document_number: str,
        entry: AuditEntry,
    ) -> bool:
        action = f"Assigning document to schedule {schedule_id}"
        with translate_errors(ScheduleStoreUnavailableError, action):
            historic = await self._load_history(schedule_id)
            if historic is None:
                return False
            stmt = (
                update(schedule_table)
                .where(schedule_table.c.id == schedule_id)
                .where(~_schedule_has_document())
                .values(
                    no_dp=document_number,
                    dp_found_at=entry.timestamp,
                    historic=append_history(historic, entry),
                )
            )
            result = cast("CursorResult[Any]", await self.session.execute(stmt))
        return result.rowcount == 1

    async def update_status(
        self,
        schedule_id: int,
        *,
        expected_status: str,
        new_status: str,
        entry: AuditEntry,
    ) -> bool:
        action = f"Updating status of schedule {schedule_id}"
        with translate_errors(ScheduleStoreUnavailableError, action):
            historic = await self._load_history(schedule_id)
            if historic is None:
                return False
            stmt = (
                update(schedule_table)
                .where(schedule_table.c.id == schedule_id)
                .where(schedule_table.c.status == str(expected_status))
                .values(status=str(new_status), historic=append_history(historic, entry))
            )
            result = cast("CursorResult[Any]", await self.session.execute(stmt))
        return result.rowcount == 1

    async def _load_history(self, schedule_id: int) -> dict[str, Any] | None:
        stmt = select(schedule_table.c.historic).where(schedule_table.c.id == schedule_id)
        row = (await self.session.execute(stmt)).first()
        if row is None:
            return None
        return row.historic or {}


class SqlAlchemyLedgerReader:
    """Read-only queries against the ``wtr`` ledger table."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    async def find_candidates(self, query: LedgerQuery) -> Sequence[LedgerEntry]:
        stmt = (
            select(ledger_table)
            .where(_ledger_has_document())
            .where(_invoice_clause(query))
            .order_by(ledger_table.c.dt_inclusao.desc())
            .limit(query.limit)
        )
        client_clause = _client_clause(query)
        if client_clause is not None:
            stmt = stmt.where(client_clause)
        if query.inclusion_date is not None:
            day_start = datetime.combine(query.inclusion_date, time.min, tzinfo=UTC)
            stmt = stmt.where(
                ledger_table.c.dt_inclusao >= day_start,
                ledger_table.c.dt_inclusao < day_start + timedelta(days=1),
            )
        with translate_errors(LedgerUnavailableError, f"Ledger search for {query.invoice_number}"):
            async with self.engine.connect() as connection:
                rows = (await connection.execute(stmt)).all()
        return [_to_ledger_entry(row) for row in rows]

    async def get_by_document_number(self, document_number: str) -> LedgerEntry | None:
        stmt = (
            select(ledger_table)
            .where(ledger_table.c.no_dp == document_number.strip())
            .order_by(ledger_table.c.dt_inclusao.desc())
            .limit(1)
        )
        with translate_errors(LedgerUnavailableError, f"Ledger lookup of {document_number}"):
            async with self.engine.connect() as connection:
                row = (await connection.execute(stmt)).first()
        return _to_ledger_entry(row) if row is not None else None


def _schedule_has_document() -> ColumnElement[bool]:
    return and_(schedule_table.c.no_dp.is_not(None), func.trim(schedule_table.c.no_dp) != "")


def _ledger_has_document() -> ColumnElement[bool]:
    return and_(
        ledger_table.c.no_dp.is_not(None),
        func.trim(ledger_table.c.no_dp).not_in(["", "0"]),
    )


def _invoice_clause(query: LedgerQuery) -> ColumnElement[bool]:
    invoice = query.invoice_number.strip()
    if query.invoice_match is InvoiceMatch.EXACT:
        return func.trim(ledger_table.c.no_nf) == invoice
    # ",a,b," contains ",b," exactly when b is a whole element of the list.
    compact = func.replace(ledger_table.c.no_nf, " ", "", type_=String)
    wrapped = literal(INVOICE_SEPARATOR) + compact + INVOICE_SEPARATOR
    element = invoice.replace(" ", "")
    return wrapped.contains(f"{INVOICE_SEPARATOR}{element}{INVOICE_SEPARATOR}", autoescape=True)


def _client_clause(query: LedgerQuery) -> ColumnElement[bool] | None:
    if query.client_key is ClientKey.TAX_ID:
        conditions: list[ColumnElement[bool]] = [ledger_table.c.cnpj.in_(query.tax_ids)]
        digits = digits_only(query.tax_ids[0]) if query.tax_ids else ""
        if digits:
            conditions.append(_without_separators(ledger_table.c.cnpj) == digits)
        return or_(*conditions)
    if query.client_key is ClientKey.CLIENT_SEQUENCE:
        return func.trim(ledger_table.c.no_cli) == (query.client_sequence_number or "").strip()
    return None


def _to_schedule(row: Row[Any]) -> ScheduleRecord:
    historic: dict[str, Any] = row.historic or {}
    return ScheduleRecord(
        id=row.id,
        invoice_number=clean(row.number),
        client_tax_id=clean(row.client),
        status=row.status,
        document_number=clean(row.no_dp),
        client_sequence_number=extract_client_sequence_number(row.info, historic),
        audit_history=parse_history(historic),
    )


def _to_ledger_entry(row: Row[Any]) -> LedgerEntry:
    return LedgerEntry(
        document_number=clean(row.no_dp) or "",
        invoice_numbers=row.no_nf or "",
        client_sequence_number=clean(row.no_cli) or "",
        client_tax_id=clean(row.cnpj),
        inclusion_date=row.dt_inclusao,
        situation=row.situacao,
    )


__all__ = [
    "SqlAlchemyLedgerReader",
    "SqlAlchemyScheduleRepository",
    "translate_errors",
]
