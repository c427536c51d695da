"""
Status sink interfaces

The link core reports everything it learns through a StatusSink:
- on_status: a parsed STATUS snapshot
- on_event: any other classified message
- on_connectivity_changed: liveness transitions
- on_fatal: a feature that cannot run (e.g. telemetry socket bind failure)

Short operator notices go through a separate best-effort NoticeChannel
that drops messages under backpressure instead of blocking the caller.

QueuedStatusSink moves delivery off the caller's thread, so the receive
loop never waits on a slow consumer.
"""

import json
import logging
import queue
import threading
from typing import Callable, List, Optional

from common.protocol import MessageKind, StatusSnapshot

logger = logging.getLogger(__name__)


class StatusSink:
    """Base status sink. Subclasses override the callbacks they need."""

    def on_status(self, snapshot: StatusSnapshot):
        pass

    def on_event(self, kind: MessageKind, content: str):
        pass

    def on_connectivity_changed(self, connected: bool):
        pass

    def on_fatal(self, message: str):
        pass


class NoticeSink:
    """Consumer of operator notices."""

    def on_notice(self, text: str):
        pass


class NoticeChannel:
    """
    Bounded fire-and-forget notice queue.

    post() never blocks and never raises; when the queue is full the
    notice is dropped and counted.
    """

    def __init__(self, maxsize: int = 100):
        self._queue: "queue.Queue[str]" = queue.Queue(maxsize=maxsize)
        self._consumers: List[NoticeSink] = []
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.posted = 0
        self.dropped = 0

    def subscribe(self, consumer: NoticeSink):
        self._consumers.append(consumer)

    def post(self, text: str) -> bool:
        """
        Queue a notice for delivery.

        Returns:
            True if queued, False if dropped
        """
        try:
            self._queue.put_nowait(text)
            self.posted += 1
            return True
        except queue.Full:
            self.dropped += 1
            logger.debug(f"Notice dropped (queue full): {text}")
            return False

    def drain(self) -> int:
        """Deliver all queued notices on the calling thread. Returns count delivered."""
        delivered = 0
        while True:
            try:
                text = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            self._deliver(text)
            delivered += 1

    def _deliver(self, text: str):
        for consumer in list(self._consumers):
            try:
                consumer.on_notice(text)
            except Exception as e:
                logger.error(f"Notice consumer error: {e}")

    def _run(self):
        while not self._stop_event.is_set():
            try:
                text = self._queue.get(timeout=0.2)
            except queue.Empty:
                continue
            self._deliver(text)

    def start(self):
        """Start background delivery."""
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="notice-channel", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None

    def get_stats(self) -> dict:
        return {
            'notices_posted': self.posted,
            'notices_dropped': self.dropped,
            'notices_pending': self._queue.qsize(),
        }


class CompositeStatusSink(StatusSink):
    """Fans every callback out to several sinks; one failing sink does not affect others."""

    def __init__(self, sinks: Optional[List[StatusSink]] = None):
        self.sinks: List[StatusSink] = list(sinks or [])

    def add(self, sink: StatusSink):
        self.sinks.append(sink)

    def _each(self, name: str, call: Callable[[StatusSink], None]):
        for sink in list(self.sinks):
            try:
                call(sink)
            except Exception as e:
                logger.error(f"Status sink {type(sink).__name__}.{name} error: {e}")

    def on_status(self, snapshot: StatusSnapshot):
        self._each("on_status", lambda s: s.on_status(snapshot))

    def on_event(self, kind: MessageKind, content: str):
        self._each("on_event", lambda s: s.on_event(kind, content))

    def on_connectivity_changed(self, connected: bool):
        self._each("on_connectivity_changed", lambda s: s.on_connectivity_changed(connected))

    def on_fatal(self, message: str):
        self._each("on_fatal", lambda s: s.on_fatal(message))


class QueuedStatusSink(StatusSink):
    """
    Delivers callbacks to a wrapped sink from its own thread.

    Callbacks are queued in arrival order; the producer returns immediately.
    Only STATUS updates are bounded: at most max_pending_status may wait,
    further ones are dropped since the next snapshot supersedes them.
    Events, connectivity edges and fatal reports are always queued.
    """

    def __init__(self, target: StatusSink, max_pending_status: int = 1000):
        self.target = target
        self.max_pending_status = max_pending_status
        self._queue: "queue.Queue[Callable[[], None]]" = queue.Queue()
        self._pending_lock = threading.Lock()
        self._pending_status = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.dropped = 0

    def _put(self, call: Callable[[], None]):
        self._queue.put_nowait(call)

    def _status_done(self):
        with self._pending_lock:
            self._pending_status -= 1

    def on_status(self, snapshot: StatusSnapshot):
        with self._pending_lock:
            if self._pending_status >= self.max_pending_status:
                self.dropped += 1
                logger.warning("Status sink backlog full, dropping STATUS update")
                return
            self._pending_status += 1

        def deliver():
            try:
                self.target.on_status(snapshot)
            finally:
                self._status_done()

        self._put(deliver)

    def on_event(self, kind: MessageKind, content: str):
        self._put(lambda: self.target.on_event(kind, content))

    def on_connectivity_changed(self, connected: bool):
        self._put(lambda: self.target.on_connectivity_changed(connected))

    def on_fatal(self, message: str):
        self._put(lambda: self.target.on_fatal(message))

    def _run(self):
        while not self._stop_event.is_set():
            try:
                call = self._queue.get(timeout=0.2)
            except queue.Empty:
                continue
            try:
                call()
            except Exception as e:
                logger.error(f"Status sink delivery error: {e}")

    def start(self):
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="status-sink", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None


class LoggingStatusSink(StatusSink, NoticeSink):
    """Writes link activity to the log."""

    def __init__(self):
        self._last_snapshot: Optional[StatusSnapshot] = None

    def on_status(self, snapshot: StatusSnapshot):
        # Only log STATUS when something changed; the unit reports every second
        if snapshot != self._last_snapshot:
            logger.info("STATUS " + json.dumps(snapshot.as_dict()))
        self._last_snapshot = snapshot

    def on_event(self, kind: MessageKind, content: str):
        if kind is MessageKind.UNCLASSIFIED:
            logger.warning(f"Unclassified message: {content!r}")
        elif kind in (MessageKind.ERROR, MessageKind.EMERGENCY_STOP):
            logger.error(f"{kind.value}: {content}")
        elif kind is MessageKind.WARNING:
            logger.warning(f"{kind.value}: {content}")
        else:
            logger.info(f"{kind.value}: {content}")

    def on_connectivity_changed(self, connected: bool):
        if connected:
            logger.info("Connection to remote unit restored")
        else:
            logger.warning("Connection to remote unit lost")

    def on_fatal(self, message: str):
        logger.critical(message)

    def on_notice(self, text: str):
        logger.debug(f"Notice: {text}")
