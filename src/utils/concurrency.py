"""Shared concurrency primitives for the extraction pipeline.

Three patterns are exposed:

1. **run_with_timeout** -- await one provider call under its own time
   budget, converting ``asyncio.TimeoutError`` into the domain's
   :class:`ProviderTimeoutError` so callers only catch one hierarchy.

2. **gather_settled** -- fan out a set of labelled coroutines, wait for
   every one of them to resolve or fail, and return the outcomes in input
   order.  A failure never cancels its siblings.  Used by the consensus
   processor.

3. **KeyedLock** -- a registry of ``asyncio.Lock`` objects keyed by an
   arbitrary string.  The orchestrator holds the lock for a poster id for
   the duration of a run, so two concurrent runs over the same image
   cannot interleave their existence-check-then-create graph writes.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Generic, TypeVar

import structlog

from src.utils.errors import ProviderTimeoutError
from src.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


@dataclass(frozen=True)
class SettledOutcome(Generic[_T]):
    """Result of one labelled coroutine run by :func:`gather_settled`."""

    label: str
    value: _T | None = None
    error: BaseException | None = None
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_with_timeout(
    coro: Awaitable[_T],
    timeout_s: float | None,
    label: str,
) -> _T:
    """Await *coro*, raising :class:`ProviderTimeoutError` after *timeout_s* seconds.

    ``None`` or a non-positive timeout disables the budget.
    """
    if timeout_s is None or timeout_s <= 0:
        return await coro
    try:
        return await asyncio.wait_for(coro, timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        raise ProviderTimeoutError(
            message=f"no response within {timeout_s:.1f}s",
            provider_name=label,
        ) from exc


async def gather_settled(
    labelled: list[tuple[str, Awaitable[_T]]],
    timeout_s: float | None = None,
    parallel: bool = True,
) -> list[SettledOutcome[_T]]:
    """Run labelled awaitables and collect every outcome.

    Parameters
    ----------
    labelled:
        ``(label, awaitable)`` pairs; the label identifies the outcome.
    timeout_s:
        Per-awaitable time budget in seconds.
    parallel:
        When ``False`` the awaitables run one after another in input order.

    Returns
    -------
    list[SettledOutcome]
        One outcome per input, in input order.
    """
    loop = asyncio.get_running_loop()

    async def _settle(label: str, aw: Awaitable[_T]) -> SettledOutcome[_T]:
        started = loop.time()
        try:
            value = await run_with_timeout(aw, timeout_s, label)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            elapsed = int((loop.time() - started) * 1000)
            _logger.warning("settled_call_failed", label=label, error=str(exc), elapsed_ms=elapsed)
            return SettledOutcome(label=label, error=exc, elapsed_ms=elapsed)
        return SettledOutcome(
            label=label, value=value, elapsed_ms=int((loop.time() - started) * 1000)
        )

    if parallel:
        return list(await asyncio.gather(*(_settle(label, aw) for label, aw in labelled)))

    outcomes: list[SettledOutcome[_T]] = []
    for label, aw in labelled:
        outcomes.append(await _settle(label, aw))
    return outcomes


class KeyedLock:
    """Hand out one ``asyncio.Lock`` per key and forget it once unused."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)

    def is_held(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    def __repr__(self) -> str:
        keys: list[Any] = sorted(self._locks)
        return f"KeyedLock(keys={keys!r})"
