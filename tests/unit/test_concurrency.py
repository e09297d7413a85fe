"""Unit tests for gather_settled, run_with_timeout and KeyedLock."""

from __future__ import annotations

import asyncio

import pytest

from src.utils.concurrency import KeyedLock, gather_settled, run_with_timeout
from src.utils.errors import ProviderTimeoutError


async def _value(value: str, delay: float = 0.0) -> str:
    await asyncio.sleep(delay)
    return value


async def _boom(message: str) -> str:
    raise RuntimeError(message)


# ======================================================================
# run_with_timeout
# ======================================================================


class TestRunWithTimeout:
    """Tests for run_with_timeout."""

    @pytest.mark.asyncio()
    async def test_returns_value_within_budget(self) -> None:
        assert await run_with_timeout(_value("ok"), 1.0, "anthropic") == "ok"

    @pytest.mark.asyncio()
    async def test_timeout_becomes_provider_timeout(self) -> None:
        with pytest.raises(ProviderTimeoutError) as excinfo:
            await run_with_timeout(_value("late", delay=0.5), 0.01, "openai")
        assert excinfo.value.provider_name == "openai"

    @pytest.mark.asyncio()
    async def test_none_disables_budget(self) -> None:
        assert await run_with_timeout(_value("ok", delay=0.01), None, "anthropic") == "ok"


# ======================================================================
# gather_settled
# ======================================================================


class TestGatherSettled:
    """Tests for gather_settled."""

    @pytest.mark.asyncio()
    async def test_outcomes_keep_input_order(self) -> None:
        outcomes = await gather_settled(
            [("slow", _value("a", delay=0.02)), ("fast", _value("b"))]
        )
        assert [o.label for o in outcomes] == ["slow", "fast"]
        assert [o.value for o in outcomes] == ["a", "b"]

    @pytest.mark.asyncio()
    async def test_failure_does_not_cancel_siblings(self) -> None:
        outcomes = await gather_settled([("bad", _boom("nope")), ("good", _value("fine"))])
        assert outcomes[0].ok is False
        assert str(outcomes[0].error) == "nope"
        assert outcomes[1].ok is True
        assert outcomes[1].value == "fine"

    @pytest.mark.asyncio()
    async def test_timeout_is_a_failed_outcome(self) -> None:
        outcomes = await gather_settled(
            [("slow", _value("late", delay=0.5)), ("fast", _value("ok"))],
            timeout_s=0.05,
        )
        assert isinstance(outcomes[0].error, ProviderTimeoutError)
        assert outcomes[1].value == "ok"

    @pytest.mark.asyncio()
    async def test_sequential_mode_runs_in_order(self) -> None:
        started: list[str] = []

        async def _track(label: str) -> str:
            started.append(label)
            await asyncio.sleep(0)
            return label

        outcomes = await gather_settled(
            [("one", _track("one")), ("two", _track("two"))], parallel=False
        )
        assert started == ["one", "two"]
        assert all(o.ok for o in outcomes)


# ======================================================================
# KeyedLock
# ======================================================================


class TestKeyedLock:
    """Tests for per-key serialisation."""

    @pytest.mark.asyncio()
    async def test_same_key_is_serialised(self) -> None:
        locks = KeyedLock()
        events: list[str] = []

        async def _hold(name: str) -> None:
            async with locks.hold("poster_1"):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(_hold("a"), _hold("b"))
        assert events in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    @pytest.mark.asyncio()
    async def test_different_keys_overlap(self) -> None:
        locks = KeyedLock()
        inside = 0
        peak = 0

        async def _hold(key: str) -> None:
            nonlocal inside, peak
            async with locks.hold(key):
                inside += 1
                peak = max(peak, inside)
                await asyncio.sleep(0.01)
                inside -= 1

        await asyncio.gather(_hold("poster_1"), _hold("poster_2"))
        assert peak == 2

    @pytest.mark.asyncio()
    async def test_locks_are_forgotten_when_released(self) -> None:
        locks = KeyedLock()
        async with locks.hold("poster_1"):
            assert locks.is_held("poster_1") is True
            assert len(locks) == 1
        assert locks.is_held("poster_1") is False
        assert len(locks) == 0
