"""Cooperative cancellation for in-flight chat streams."""

import asyncio


class CancellationToken:
    """One-shot cancellation signal shared by every step of a request.

    Cancelling is idempotent. Suspending code checks ``is_cancelled``
    before each read or write, or awaits ``wait``.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "client abort") -> None:
        """Signal cancellation; only the first reason is kept."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        await self._event.wait()
