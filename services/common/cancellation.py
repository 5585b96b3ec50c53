"""
Broadcast cancellation for in-flight work.

A CancellationToken is level-triggered: once cancelled it stays cancelled and
every waiter, present or future, observes it. Child tokens are cancelled with
their parent but can also be cancelled on their own, which gives each
request a scope linked to the process shutdown token.

Usage:
    shutdown = CancellationToken()
    request_token = shutdown.child_token()

    finished, result = await request_token.race(do_work())
    if not finished:
        ...  # cancelled before do_work() completed; do_work() was cancelled
"""

from __future__ import annotations

import asyncio
import logging
import signal
import weakref
from typing import Any, Awaitable, Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._children: weakref.WeakSet[CancellationToken] = weakref.WeakSet()
        # Strong link upward keeps intermediate tokens alive while any descendant is.
        self._parent: CancellationToken | None = None

    def cancel(self) -> None:
        """Cancel this token and all of its children. Idempotent."""
        if self._event.is_set():
            return
        self._event.set()
        for child in list(self._children):
            child.cancel()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        await self._event.wait()

    def child_token(self) -> CancellationToken:
        child = CancellationToken()
        child._parent = self
        if self.is_cancelled():
            child.cancel()
        else:
            self._children.add(child)
        return child

    async def race(self, aw: Awaitable[T]) -> tuple[bool, T | None]:
        """
        Run aw until it finishes or the token is cancelled, whichever is first.

        Returns (True, result) if aw finished, (False, None) if the token won.
        When the token wins, aw is cancelled and awaited before returning.
        Exceptions raised by aw propagate.
        """
        if self.is_cancelled():
            _close_unstarted(aw)
            return False, None

        work = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            waiter.cancel()
            raise

        if work.done():
            waiter.cancel()
            return True, work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        return False, None


def _close_unstarted(aw: Awaitable[Any]) -> None:
    """Avoid 'coroutine was never awaited' warnings for work we skip."""
    close = getattr(aw, "close", None)
    if asyncio.iscoroutine(aw) and close is not None:
        close()


def link_to_signals(
    token: CancellationToken,
    signals: Iterable[signal.Signals] = SHUTDOWN_SIGNALS,
) -> Callable[[], None]:
    """
    Cancel token when any of signals arrives, then defer to the previous handler.

    The ASGI server installs its own SIGINT/SIGTERM handlers to stop accepting
    connections; chaining keeps that behaviour while in-flight work observes
    the token straight away. Must be called from the event loop thread.
    Returns a function restoring the previous handlers.
    """
    loop = asyncio.get_running_loop()
    previous: dict[int, Any] = {}

    def _handler(signum: int, frame: Any) -> None:
        logger.warning("Received %s, cancelling in-flight requests", signal.Signals(signum).name)
        loop.call_soon_threadsafe(token.cancel)
        prior = previous.get(signum)
        if callable(prior):
            prior(signum, frame)

    for sig in signals:
        try:
            previous[sig] = signal.getsignal(sig)
            signal.signal(sig, _handler)
        except ValueError:
            # signal.signal only works in the main thread (not under some test runners).
            previous.pop(sig, None)
            logger.debug("Cannot install handler for %s outside the main thread", sig)

    def restore() -> None:
        for sig, prior in previous.items():
            signal.signal(sig, prior)

    return restore
