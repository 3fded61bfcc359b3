"""Tests for the Supabase sync log (client mocked)."""

import asyncio
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from byd_sync.services.supabase_service import SupabaseService, SyncLogError

STARTED = datetime(2020, 9, 15, 15, 45, 55, tzinfo=timezone.utc)
FINISHED = datetime(2020, 9, 15, 15, 45, 57, tzinfo=timezone.utc)


class TestInsertSyncLog:
    @pytest.mark.asyncio
    async def test_row_shape(self):
        client = MagicMock()
        client.table.return_value.insert.return_value.execute.return_value = MagicMock(
            data=[{"id": 7, "status": "success"}]
        )
        service = SupabaseService(client=client)

        out = await service.insert_sync_log(
            source="byd",
            action="delta_sync",
            status="success",
            started_at=STARTED,
            finished_at=FINISHED,
            duration_ms=2000,
            metadata={"run_id": "abc"},
        )

        client.table.assert_called_with("sync_log")
        row = client.table.return_value.insert.call_args[0][0]
        assert row["started_at"] == "2020-09-15T15:45:55Z"
        assert row["finished_at"] == "2020-09-15T15:45:57Z"
        assert row["metadata"] == {"run_id": "abc"}
        assert out["id"] == "7"

    @pytest.mark.asyncio
    async def test_failure_raises_sync_log_error(self):
        client = MagicMock()
        client.table.return_value.insert.return_value.execute.side_effect = RuntimeError("down")

        with pytest.raises(SyncLogError):
            await SupabaseService(client=client).insert_sync_log(
                source="byd",
                action="delta_sync",
                status="error",
                started_at=STARTED,
                finished_at=FINISHED,
                duration_ms=2000,
            )


class TestListSyncLogs:
    @pytest.mark.asyncio
    async def test_filters_and_range(self):
        client = MagicMock()
        ordered = client.table.return_value.select.return_value.order.return_value
        filtered = ordered.eq.return_value.eq.return_value
        filtered.range.return_value.execute.return_value = MagicMock(data=[{"id": 1}], count=5)

        rows, total = await SupabaseService(client=client).list_sync_logs(
            status_filter="error", source_filter="byd", limit=10, offset=20
        )

        assert rows == [{"id": "1"}]
        assert total == 5
        ordered.eq.assert_called_with("status", "error")
        ordered.eq.return_value.eq.assert_called_with("source", "byd")
        filtered.range.assert_called_with(20, 29)

    @pytest.mark.asyncio
    async def test_backend_error_raises(self):
        client = MagicMock()
        client.table.side_effect = RuntimeError("down")

        with pytest.raises(SyncLogError):
            await SupabaseService(client=client).list_sync_logs()

    @pytest.mark.asyncio
    async def test_list_does_not_block_event_loop(self):
        client = MagicMock()
        chain = client.table.return_value.select.return_value.order.return_value.range.return_value

        def slow_execute():
            time.sleep(0.3)
            return MagicMock(data=[], count=0)

        chain.execute.side_effect = slow_execute
        ticks = 0

        async def ticker():
            nonlocal ticks
            while True:
                await asyncio.sleep(0.02)
                ticks += 1

        ticker_task = asyncio.create_task(ticker())
        try:
            assert await SupabaseService(client=client).list_sync_logs() == ([], 0)
        finally:
            ticker_task.cancel()

        assert ticks >= 3
