"""Error taxonomy of the resolution engine."""

from __future__ import annotations


class ResolutionError(RuntimeError):
    """Base class for engine errors."""


class TransientStoreError(ResolutionError):
    """I/O failure that a later attempt may not hit again."""


class LedgerUnavailableError(TransientStoreError):
    """Raised when the external ledger cannot be queried."""


class ScheduleStoreUnavailableError(TransientStoreError):
    """Raised when the schedule store cannot be read or written."""


class DataQualityError(ResolutionError, ValueError):
    """Raised when a schedule lacks a key required to search the ledger."""


class ScheduleNotFoundError(ResolutionError, LookupError):
    """Raised when a schedule id does not exist in the schedule store."""

    def __init__(self, schedule_id: int) -> None:
        super().__init__(f"Schedule {schedule_id} not found")
        self.schedule_id = schedule_id


class UnknownStrategyError(ResolutionError, LookupError):
    """Raised when a configured strategy name is not registered."""
