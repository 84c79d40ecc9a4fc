"""Notification listening loop: a producer thread feeding a sequential dispatcher."""
from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional, Sequence

from .events import ChangeEvent, NotificationBatch
from .filters import matching_prefix
from .remote import NotificationSource
from .reporting import EventReporter
from .routing import ActionRouter

logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.2


@dataclass
class ListenerStats:
    """Counters emitted by the listener for observability."""

    batches: int = 0
    events: int = 0
    ignored: int = 0
    dispatched: int = 0
    sink_failures: int = 0


class NotificationListener:
    """Pulls notification batches from the remote store and routes every event."""

    def __init__(
        self,
        source: NotificationSource,
        router: ActionRouter,
        *,
        ignore: Sequence[str] = (),
        queue_size: int = 16,
        reporter: Optional[EventReporter] = None,
    ):
        self._source = source
        self._router = router
        self._ignore = tuple(ignore)
        self._queue: "queue.Queue[Optional[NotificationBatch]]" = queue.Queue(maxsize=queue_size)
        self._reporter = reporter
        self._stop_event = threading.Event()
        self._stats = ListenerStats()

    @property
    def stats(self) -> ListenerStats:
        return self._stats

    def run(self) -> ListenerStats:
        """Run until the stream ends or :meth:`stop` is called."""

        producer = threading.Thread(target=self._produce, name="sdfs-notifications", daemon=True)
        producer.start()
        logger.info("Listening for notifications")
        try:
            while not self._stop_event.is_set():
                try:
                    batch = self._queue.get(timeout=_POLL_SECONDS)
                except queue.Empty:
                    continue
                if batch is None:
                    logger.info("done")
                    break
                self._process_batch(batch)
        except KeyboardInterrupt:
            logger.info("Listener interrupted by user")
        finally:
            self._stop_event.set()
            producer.join(timeout=_POLL_SECONDS * 5)
            logger.info(
                "Listener stopped after %s batches, %s events (%s ignored, %s dispatched, %s sink failures)",
                self._stats.batches,
                self._stats.events,
                self._stats.ignored,
                self._stats.dispatched,
                self._stats.sink_failures,
            )
        return self._stats

    def stop(self) -> None:
        """Signal the listener to stop at the next opportunity."""

        self._stop_event.set()

    def _produce(self) -> None:
        try:
            while not self._stop_event.is_set():
                batch = self._source.next_batch(self._stop_event)
                if not self._publish(batch) or batch is None:
                    return
        except Exception:
            logger.exception("Notification stream failed")
        self._publish(None)

    def _publish(self, batch: Optional[NotificationBatch]) -> bool:
        while not self._stop_event.is_set():
            try:
                self._queue.put(batch, timeout=_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def _process_batch(self, batch: NotificationBatch) -> None:
        self._stats.batches += 1
        for index, event in enumerate(batch):
            if self._stop_event.is_set():
                logger.info(
                    "Stop requested; abandoning %s remaining events of %s batch",
                    len(batch) - index,
                    batch.action.value,
                )
                return
            self._process_event(event)

    def _process_event(self, event: ChangeEvent) -> None:
        self._stats.events += 1
        if self._reporter is not None:
            try:
                self._reporter.report(event)
            except Exception:
                logger.exception("Unable to report event %s", event.file_path)

        prefix = matching_prefix(event.file_path, self._ignore)
        if prefix is not None:
            self._stats.ignored += 1
            logger.debug("Ignoring %s (matches %r)", event.file_path, prefix)
            return

        result = self._router.dispatch(event)
        if result.invoked:
            self._stats.dispatched += 1
        self._stats.sink_failures += result.failed
