"""Background refresh timer for RSS Reader."""

import asyncio
import logging

from rss_reader.reader import ReaderState, RssReader

logger = logging.getLogger(__name__)


async def refresh_loop(reader: RssReader, interval_minutes: int) -> None:
    """Refresh all feeds every ``interval_minutes`` indefinitely."""
    interval = interval_minutes * 60
    while True:
        await asyncio.sleep(interval)
        try:
            await reader.refresh()
        except Exception as e:
            logger.error("Refresh cycle failed: %s", e)


class RefreshScheduler:
    """Keeps one refresh loop running at the reader's configured interval.

    The loop is cancelled and rescheduled whenever the interval setting
    changes; an interval of 0 leaves it stopped.
    """

    def __init__(self, reader: RssReader):
        self.reader = reader
        self.interval: int | None = None
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._unsubscribe = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop and follow interval changes. Call from within the event loop."""
        self._loop = asyncio.get_running_loop()
        self._unsubscribe = self.reader.subscribe(self._on_change)
        self.reconfigure(self.reader.settings.update_time)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cancel()
        self.interval = None

    def reconfigure(self, interval_minutes: int) -> None:
        """Clear the current timer and start a new one unless the interval is 0."""
        self._cancel()
        self.interval = interval_minutes
        if interval_minutes <= 0:
            logger.info("Automatic refresh disabled")
            return
        self._task = asyncio.create_task(refresh_loop(self.reader, interval_minutes))
        logger.info("Refresh scheduled every %d minutes", interval_minutes)

    def _cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def _on_change(self, state: ReaderState) -> None:
        interval = state.settings.update_time
        if interval == self.interval or self._loop is None:
            return
        # Settings may change on a worker thread (agent tools)
        self._loop.call_soon_threadsafe(self._reconfigure_if_changed, interval)

    def _reconfigure_if_changed(self, interval: int) -> None:
        if interval != self.interval:
            self.reconfigure(interval)
