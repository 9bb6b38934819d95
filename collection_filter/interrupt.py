"""Host interruption signal.

The host may announce at any moment that the process is about to be
suspended or restarted (a platform migration, SIGTERM from a scheduler).
Subscribers are async callables; :meth:`InterruptSignal.trigger` schedules
each of them once as a task so the main pipeline does not have to reach a
checkpoint first.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)

InterruptHandler = Callable[[], Awaitable[None]]


class InterruptSignal:
    def __init__(self) -> None:
        self._handlers: list[InterruptHandler] = []
        self._tasks: list[asyncio.Task[None]] = []
        self.reason: str | None = None

    @property
    def triggered(self) -> bool:
        return self.reason is not None

    def subscribe(self, handler: InterruptHandler) -> None:
        self._handlers.append(handler)

    def unsubscribe(self, handler: InterruptHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def trigger(self, reason: str = "interrupted") -> None:
        """Schedule every subscribed handler.  Later calls are ignored."""
        if self.triggered:
            return
        self.reason = reason
        logger.warning("Interruption received: %s", reason)
        for handler in list(self._handlers):
            self._tasks.append(asyncio.ensure_future(handler()))

    async def wait_handled(self) -> None:
        """Wait for all handlers scheduled by :meth:`trigger`.

        Handler failures are re-raised (the first one).
        """
        if not self._tasks:
            return
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

    def install(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        signals: Iterable[signal.Signals] = (signal.SIGTERM,),
    ) -> None:
        """Trigger on POSIX *signals* delivered to the event loop."""
        loop = loop or asyncio.get_running_loop()
        for sig in signals:
            loop.add_signal_handler(sig, self.trigger, sig.name)

    def uninstall(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        signals: Iterable[signal.Signals] = (signal.SIGTERM,),
    ) -> None:
        loop = loop or asyncio.get_running_loop()
        for sig in signals:
            loop.remove_signal_handler(sig)
