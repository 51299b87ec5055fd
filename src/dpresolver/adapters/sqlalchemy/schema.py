"""Schemas for the JSON columns of the schedule store (history and NF-e info)."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dpresolver.domain.formatting import clean
from dpresolver.domain.model import AuditEntry

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

DOCUMENT_KEY_PREFIX = "dp"
STATUS_KEY_PREFIX = "status"


class StoreBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class HistoricEntry(StoreBaseModel):
    """One value of the ``historic`` JSON object, as written by every writer of the table."""

    timestamp: datetime
    user: str = ""
    action: str = ""
    comment: str | None = None
    previous_status: str | None = None
    new_status: str | None = None
    document_number: str | None = Field(default=None, alias="dp_number")
    strategy: str | None = Field(default=None, alias="strategy_used")
    automated: bool = False

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=UTC)

    @field_validator("document_number", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        return clean(value) if value is not None else None

    def to_domain(self) -> AuditEntry:
        return AuditEntry(
            timestamp=self.timestamp,
            user=self.user,
            action=self.action,
            comment=self.comment,
            previous_status=self.previous_status,
            new_status=self.new_status,
            document_number=self.document_number,
            strategy=self.strategy,
            automated=self.automated,
        )

    @classmethod
    def from_domain(cls, entry: AuditEntry) -> HistoricEntry:
        return cls(
            timestamp=entry.timestamp,
            user=entry.user,
            action=entry.action,
            comment=entry.comment,
            previous_status=entry.previous_status,
            new_status=entry.new_status,
            document_number=entry.document_number,
            strategy=entry.strategy,
            automated=entry.automated,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NfeParty(StoreBaseModel):
    client_number: str | None = Field(default=None, alias="numeroCliente")

    @field_validator("client_number", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        return clean(value) if value is not None else None


class NfeInfo(StoreBaseModel):
    """Subset of the parsed NF-e stored in ``schedule_list.info``."""

    dest: NfeParty | None = None
    ide: NfeParty | None = None


def parse_history(historic: Mapping[str, Any] | None) -> tuple[AuditEntry, ...]:
    """Return the audit entries of a ``historic`` object, oldest first.

    Values that are not entries (scalars, malformed objects) are skipped.
    """

    if not historic:
        return ()
    entries: list[AuditEntry] = []
    for key, value in historic.items():
        if not isinstance(value, dict):
            continue
        try:
            entries.append(HistoricEntry.model_validate(value).to_domain())
        except ValidationError as exc:
            log.debug("Skipping malformed history entry %s: %s", key, exc.error_count())
    entries.sort(key=lambda entry: entry.timestamp)
    return tuple(entries)


def history_key(entry: AuditEntry, existing: Mapping[str, Any]) -> str:
    """Key for a new history entry, unique within ``existing``."""

    prefix = STATUS_KEY_PREFIX if entry.new_status is not None else DOCUMENT_KEY_PREFIX
    millis = int(entry.timestamp.timestamp() * 1000)
    key = f"{prefix}_{millis}"
    while key in existing:
        millis += 1
        key = f"{prefix}_{millis}"
    return key


def append_history(historic: Mapping[str, Any] | None, entry: AuditEntry) -> dict[str, Any]:
    """Copy of ``historic`` with ``entry`` added; existing keys are never touched."""

    updated: dict[str, Any] = dict(historic or {})
    updated[history_key(entry, updated)] = HistoricEntry.from_domain(entry).to_payload()
    return updated


def extract_client_sequence_number(
    info: Mapping[str, Any] | None,
    historic: Mapping[str, Any] | None,
) -> str | None:
    """Client sequence number from the NF-e info, falling back to the history object."""

    if info:
        try:
            nfe = NfeInfo.model_validate(info)
        except ValidationError as exc:
            log.debug("Ignoring unparsable NF-e info: %s", exc.error_count())
        else:
            for party in (nfe.dest, nfe.ide):
                if party is not None and party.client_number:
                    return party.client_number
    if historic:
        return clean(historic.get("clientNumber"))
    return None


__all__ = [
    "HistoricEntry",
    "NfeInfo",
    "NfeParty",
    "append_history",
    "extract_client_sequence_number",
    "history_key",
    "parse_history",
]
