from __future__ import annotations

import asyncio
from datetime import UTC, datetime

from dpresolver.adapters.sqlalchemy.unit_of_work import SqlAlchemyScheduleUnitOfWork
from dpresolver.domain.model import (
    UNRESOLVED_STATUSES,
    ScheduleStatus,
    document_assigned_entry,
    status_promoted_entry,
)
from tests.helpers.database import fetch_schedule_row, insert_schedule, started_adapter

MOMENT = datetime(2024, 5, 6, 12, 0, tzinfo=UTC)


def test_get_maps_row_to_record(database_uri: str) -> None:
    async def scenario() -> None:
        async with started_adapter(database_uri) as engine:
            schedule_id = await insert_schedule(
                engine,
                number=" 7788 ",
                client="11.222.333/0001-44",
                info={"dest": {"numeroCliente": "42"}},
                historic={
                    "status_1": {
                        "timestamp": "2024-05-06T09:00:00Z",
                        "user": "ana",
                        "action": "Status alterado",
                        "new_status": "Agendado",
                    }
                },
            )
            async with SqlAlchemyScheduleUnitOfWork() as uow:
                record = await uow.repositories.schedules.get(schedule_id)
                missing = await uow.repositories.schedules.get(schedule_id + 1)

        assert missing is None
        assert record is not None
        assert record.invoice_number == "7788"
        assert record.client_tax_id == "11.222.333/0001-44"
        assert record.client_sequence_number == "42"
        assert record.document_number is None
        assert record.confirmed_on() == MOMENT.date()

    asyncio.run(scenario())


def test_assign_document_number_only_once(database_uri: str) -> None:
    async def scenario() -> None:
        async with started_adapter(database_uri) as engine:
            schedule_id = await insert_schedule(engine, number="7788", historic={"keep": {"x": 1}})
            first = document_assigned_entry(
                document_number="DP-1", strategy="exact_tax_id", now=MOMENT
            )
            second = document_assigned_entry(
                document_number="DP-2", strategy="invoice_only", now=MOMENT
            )
            async with SqlAlchemyScheduleUnitOfWork() as uow:
                assigned = await uow.repositories.schedules.assign_document_number(
                    schedule_id, "DP-1", first
                )
                await uow.commit()
            async with SqlAlchemyScheduleUnitOfWork() as uow:
                again = await uow.repositories.schedules.assign_document_number(
                    schedule_id, "DP-2", second
                )
                await uow.commit()
            row = await fetch_schedule_row(engine, schedule_id)

        assert assigned is True
        assert again is False
        assert row.no_dp == "DP-1"
        assert row.dp_found_at == MOMENT
        assert row.historic["keep"] == {"x": 1}
        written = [value for key, value in row.historic.items() if key.startswith("dp_")]
        assert len(written) == 1
        assert written[0]["dp_number"] == "DP-1"
        assert written[0]["strategy_used"] == "exact_tax_id"

    asyncio.run(scenario())


def test_blank_document_counts_as_missing(database_uri: str) -> None:
    async def scenario() -> None:
        async with started_adapter(database_uri) as engine:
            schedule_id = await insert_schedule(engine, number="7788", no_dp="  ")
            entry = document_assigned_entry(document_number="DP-1", strategy="exact_tax_id")
            async with SqlAlchemyScheduleUnitOfWork() as uow:
                assert await uow.repositories.schedules.assign_document_number(
                    schedule_id, "DP-1", entry
                )
                await uow.commit()
            row = await fetch_schedule_row(engine, schedule_id)

        assert row.no_dp == "DP-1"

    asyncio.run(scenario())


def test_update_status_requires_expected_status(database_uri: str) -> None:
    async def scenario() -> None:
        async with started_adapter(database_uri) as engine:
            schedule_id = await insert_schedule(
                engine, number="7788", no_dp="DP-1", status=ScheduleStatus.AWAITING_RECEIPT.value
            )
            entry = status_promoted_entry(
                document_number="DP-1",
                previous_status=ScheduleStatus.AWAITING_RECEIPT,
                now=MOMENT,
            )
            async with SqlAlchemyScheduleUnitOfWork() as uow:
                stale = await uow.repositories.schedules.update_status(
                    schedule_id,
                    expected_status=ScheduleStatus.CONFIRMED,
                    new_status=ScheduleStatus.IN_STOCK,
                    entry=entry,
                )
                promoted = await uow.repositories.schedules.update_status(
                    schedule_id,
                    expected_status=ScheduleStatus.AWAITING_RECEIPT,
                    new_status=ScheduleStatus.IN_STOCK,
                    entry=entry,
                )
                await uow.commit()
            row = await fetch_schedule_row(engine, schedule_id)

        assert stale is False
        assert promoted is True
        assert row.status == "Em estoque"
        keys = [key for key in row.historic if key.startswith("status_")]
        assert len(keys) == 1
        assert row.historic[keys[0]]["previous_status"] == "Conferência"

    asyncio.run(scenario())


def test_rollback_on_error_discards_writes(database_uri: str) -> None:
    class Boom(Exception):
        pass

    async def scenario() -> None:
        async with started_adapter(database_uri) as engine:
            schedule_id = await insert_schedule(engine, number="7788")
            entry = document_assigned_entry(document_number="DP-1", strategy="exact_tax_id")
            try:
                async with SqlAlchemyScheduleUnitOfWork() as uow:
                    await uow.repositories.schedules.assign_document_number(
                        schedule_id, "DP-1", entry
                    )
                    raise Boom
            except Boom:
                pass
            row = await fetch_schedule_row(engine, schedule_id)

        assert row.no_dp is None

    asyncio.run(scenario())


def test_listing_queries(database_uri: str) -> None:
    async def scenario() -> None:
        async with started_adapter(database_uri) as engine:
            confirmed = await insert_schedule(engine, number="1")
            awaiting = await insert_schedule(
                engine, number="2", status=ScheduleStatus.AWAITING_RECEIPT.value
            )
            await insert_schedule(engine, number="3", status=ScheduleStatus.REQUESTED.value)
            with_doc = await insert_schedule(engine, number="4", no_dp="DP-4")
            await insert_schedule(
                engine, number="5", no_dp="DP-5", status=ScheduleStatus.CANCELLED.value
            )
            newest_doc = await insert_schedule(
                engine, number="6", no_dp="DP-6", status=ScheduleStatus.IN_STOCK.value
            )
            async with SqlAlchemyScheduleUnitOfWork() as uow:
                unresolved = await uow.repositories.schedules.list_unresolved(
                    statuses=UNRESOLVED_STATUSES
                )
                documented = await uow.repositories.schedules.list_with_document(
                    excluded_statuses={ScheduleStatus.CANCELLED}, limit=10
                )
                first_page = await uow.repositories.schedules.list_with_document(
                    excluded_statuses={ScheduleStatus.CANCELLED}, limit=1
                )

        assert [record.id for record in unresolved] == [confirmed, awaiting]
        assert [record.id for record in documented] == [newest_doc, with_doc]
        assert [record.id for record in first_page] == [newest_doc]

    asyncio.run(scenario())
