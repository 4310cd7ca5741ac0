"""Push-based progress reporting for import runs."""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable

from stockroom.schemas.csv_import import ImportProgress

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]


class ProgressBroadcaster:
    """Fan out progress snapshots to callbacks and async streams.

    Callbacks run inline on publish and must not block. Each ``stream()``
    consumer gets its own queue and stops after a terminal snapshot
    (complete or error) or when ``close()`` is called.
    """

    def __init__(self) -> None:
        self._callbacks: list[ProgressCallback] = []
        self._queues: set[asyncio.Queue[ImportProgress | None]] = set()
        self._latest: ImportProgress | None = None

    @property
    def latest(self) -> ImportProgress | None:
        return self._latest

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def publish(self, progress: ImportProgress) -> None:
        self._latest = progress
        for callback in list(self._callbacks):
            try:
                callback(progress.model_copy())
            except Exception:
                logger.exception("Progress callback %r failed", callback)
        for queue in self._queues:
            queue.put_nowait(progress.model_copy())

    def close(self) -> None:
        """End every active stream."""
        for queue in self._queues:
            queue.put_nowait(None)

    async def stream(self) -> AsyncIterator[ImportProgress]:
        """Yield snapshots as they are published."""
        queue: asyncio.Queue[ImportProgress | None] = asyncio.Queue()
        self._queues.add(queue)
        try:
            while True:
                progress = await queue.get()
                if progress is None:
                    return
                yield progress
                if progress.is_complete or progress.is_error:
                    return
        finally:
            self._queues.discard(queue)
