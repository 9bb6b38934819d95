from __future__ import annotations

import asyncio


class CancellationToken:
    """Cooperative stop flag shared by the loader and the pipeline.

    Setting the token is not an error: it means "stop scheduling new work".
    In-flight fetches are allowed to finish; their pages are discarded.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
