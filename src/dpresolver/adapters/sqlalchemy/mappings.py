"""SQLAlchemy Core tables for the schedule store and the warehouse ledger."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any, cast

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
)

log = logging.getLogger(__name__)

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class JSONObjectText(TypeDecorator[dict[str, Any]]):
    """JSON object stored as text; unreadable content loads as an empty object."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: dict[str, Any] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(value, ensure_ascii=False)

    def process_result_value(self, value: object, dialect: Dialect) -> dict[str, Any]:
        _ = dialect
        if value is None or value == "":
            return {}
        if isinstance(value, dict):
            return cast(dict[str, Any], value)
        try:
            loaded = json.loads(cast(str, value))
        except (TypeError, ValueError):
            log.warning("Unreadable JSON column content, treating it as empty")
            return {}
        if not isinstance(loaded, dict):
            log.warning("JSON column holds %s instead of an object", type(loaded).__name__)
            return {}
        return cast(dict[str, Any], loaded)


# Schedule store ---------------------------------------------------------------

schedule_metadata = MetaData(naming_convention=NAMING_CONVENTION)

schedule_table = Table(
    "schedule_list",
    schedule_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("number", String(255), nullable=True),
    Column("client", String(32), nullable=True),
    Column("status", String(32), nullable=False),
    Column("historic", JSONObjectText, nullable=True),
    Column("info", JSONObjectText, nullable=True),
    Column("no_dp", String(50), nullable=True),
    Column("dp_found_at", UTCDateTime, nullable=True),
)

Index("ix_schedule_list_status", schedule_table.c.status)
Index("ix_schedule_list_no_dp", schedule_table.c.no_dp)

# Warehouse ledger (read-only) -------------------------------------------------

ledger_metadata = MetaData(naming_convention=NAMING_CONVENTION)

ledger_table = Table(
    "wtr",
    ledger_metadata,
    Column("no_dp", String(50), nullable=True),
    Column("no_nf", String(255), nullable=True),
    Column("cnpj", String(32), nullable=True),
    Column("no_cli", String(32), nullable=True),
    Column("dt_inclusao", UTCDateTime, nullable=True),
    Column("situacao", String(64), nullable=True),
)

Index("ix_wtr_no_dp", ledger_table.c.no_dp)
Index("ix_wtr_no_nf", ledger_table.c.no_nf)


__all__ = [
    "JSONObjectText",
    "UTCDateTime",
    "ledger_metadata",
    "ledger_table",
    "schedule_metadata",
    "schedule_table",
]
