"""Cooperative cancellation shared between a caller and a running solve."""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field

__all__ = ["CancellationToken"]


@dataclass(slots=True)
class _TokenState:
    created_at: float
    lock: threading.Lock = field(default_factory=threading.Lock)
    cancelled: bool = False
    elapsed_seconds: float = 0.0
    poll_count: int = 0
    waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future[None]]] = field(
        default_factory=list
    )


def _wake(future: asyncio.Future[None]) -> None:
    if not future.done():
        future.set_result(None)


class CancellationToken:
    """One-shot cancellation flag with progress metadata.

    Every handle produced by :meth:`clone` observes the same state, so a
    caller may keep one handle and pass another into
    :meth:`CaptchaSolverService.solve_cancellable`. :meth:`cancel` may be
    called from any thread or event loop.
    """

    __slots__ = ("_state",)

    def __init__(self, *, _state: _TokenState | None = None) -> None:
        self._state = _state or _TokenState(created_at=time.monotonic())

    def __repr__(self) -> str:
        return (
            f"CancellationToken(cancelled={self.is_cancelled()},"
            f" poll_count={self.poll_count})"
        )

    def clone(self) -> "CancellationToken":
        return CancellationToken(_state=self._state)

    def cancel(self) -> bool:
        """Request cancellation; return ``True`` only for the first call."""

        state = self._state
        with state.lock:
            if state.cancelled:
                return False
            state.cancelled = True
            waiters, state.waiters = state.waiters, []
        for loop, future in waiters:
            if not loop.is_closed():
                loop.call_soon_threadsafe(_wake, future)
        return True

    def is_cancelled(self) -> bool:
        with self._state.lock:
            return self._state.cancelled

    @property
    def cancelled(self) -> bool:
        return self.is_cancelled()

    @property
    def created_at(self) -> float:
        """Monotonic timestamp taken when the token was created."""

        return self._state.created_at

    @property
    def elapsed_seconds(self) -> float:
        """Time spent polling by the last service run that used this token."""

        with self._state.lock:
            return self._state.elapsed_seconds

    @property
    def poll_count(self) -> int:
        with self._state.lock:
            return self._state.poll_count

    def record_progress(self, *, elapsed_seconds: float, poll_count: int) -> None:
        state = self._state
        with state.lock:
            state.elapsed_seconds = max(0.0, elapsed_seconds)
            state.poll_count = max(state.poll_count, poll_count)

    async def wait(self) -> None:
        """Suspend the current coroutine until the token is cancelled."""

        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()
        entry = (loop, future)
        state = self._state
        with state.lock:
            if state.cancelled:
                return
            state.waiters.append(entry)
        try:
            await future
        finally:
            with state.lock:
                if entry in state.waiters:
                    state.waiters.remove(entry)

    async def wait_for(self, seconds: float) -> bool:
        """Wait up to ``seconds``; return ``True`` if cancelled meanwhile."""

        if self.is_cancelled():
            return True
        try:
            await asyncio.wait_for(self.wait(), timeout=max(0.0, seconds))
        except asyncio.TimeoutError:
            return self.is_cancelled()
        return True
