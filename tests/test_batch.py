"""Tests for the chunked batch runner."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from dispatch.services.batch import BatchRunner, chunked
from dispatch.services.events import StatsObserver


class TestChunked:
    """Tests for chunked()."""

    def test_splits_into_fixed_size_chunks(self) -> None:
        """Test that the last chunk holds the remainder."""
        assert chunked([1, 2, 3, 4, 5, 6, 7], 5) == [[1, 2, 3, 4, 5], [6, 7]]

    def test_empty_input(self) -> None:
        """Test that empty input yields no chunks."""
        assert chunked([], 5) == []

    def test_rejects_zero_size(self) -> None:
        """Test that chunk size must be positive."""
        with pytest.raises(ValueError, match="at least 1"):
            chunked([1], 0)


class TestBatchRunner:
    """Tests for BatchRunner.run()."""

    async def test_preserves_input_order_regardless_of_latency(self) -> None:
        """Test that slower items do not reorder results."""
        delays = {"11111": 0.03, "22222": 0.0, "33333": 0.01}

        async def worker(item: str) -> str:
            await asyncio.sleep(delays[item])
            return f"resolved-{item}"

        runner = BatchRunner(chunk_size=5, delay_seconds=0)
        results = await runner.run(["11111", "22222", "33333"], worker)

        assert results == ["resolved-11111", "resolved-22222", "resolved-33333"]

    async def test_limits_concurrency_to_chunk_size(self) -> None:
        """Test that no more than chunk_size workers are in flight."""
        in_flight = 0
        peak = 0

        async def worker(item: int) -> int:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return item

        runner = BatchRunner(chunk_size=5, delay_seconds=0)
        results = await runner.run(list(range(12)), worker)

        assert results == list(range(12))
        assert peak <= 5

    async def test_sleeps_between_chunks_only(self) -> None:
        """Test that the delay is applied between chunks but not after the last."""

        async def worker(item: int) -> int:
            return item

        runner = BatchRunner(chunk_size=5, delay_seconds=0.2)
        with patch("dispatch.services.batch.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await runner.run(list(range(11)), worker)

        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(0.2)

    async def test_single_chunk_does_not_sleep(self) -> None:
        """Test that a batch that fits one chunk never waits."""

        async def worker(item: int) -> int:
            return item

        runner = BatchRunner(chunk_size=5, delay_seconds=0.2)
        with patch("dispatch.services.batch.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await runner.run([1, 2, 3], worker)

        mock_sleep.assert_not_awaited()

    async def test_emits_batch_completed_event(self) -> None:
        """Test that batch size and chunk count are reported."""

        async def worker(item: int) -> int:
            return item

        stats = StatsObserver()
        runner = BatchRunner(chunk_size=2, delay_seconds=0, observer=stats, name="geocode")
        await runner.run([1, 2, 3], worker)

        event = stats.events[-1]
        assert event.name == "batch_completed"
        assert event.fields == {"batch": "geocode", "items": 3, "chunks": 2}

    async def test_worker_errors_propagate(self) -> None:
        """Test that exceptions from workers are not swallowed."""

        async def worker(item: int) -> int:
            raise RuntimeError("boom")

        runner = BatchRunner(chunk_size=5, delay_seconds=0)
        with pytest.raises(RuntimeError, match="boom"):
            await runner.run([1], worker)

    def test_defaults_from_settings(self) -> None:
        """Test that chunk size and delay default to settings."""
        runner = BatchRunner()
        assert runner.chunk_size == 5
        assert runner.delay_seconds == 0.2

    def test_rejects_invalid_chunk_size(self) -> None:
        """Test that a zero chunk size is rejected."""
        with pytest.raises(ValueError):
            BatchRunner(chunk_size=0)
