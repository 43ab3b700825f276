"""
stockline_services.notifier -- ChangeNotifier implementations.

Responsibility:
    Concrete transports for the kernel's ``ChangeNotifier`` port.  The
    kernel calls ``publish(StockChanged)`` once per variant after a
    transaction commits; what happens next is decided here.

    InMemoryNotifier   -- synchronous fan-out to subscriber callbacks.
    LoggingNotifier    -- writes a ``stock_changed`` log line.
    QueuedNotifier     -- hands events to a background worker thread that
                          delivers them to a downstream notifier with
                          at-least-once retry.

Architecture position:
    Services layer.  Imports kernel domain types, logging and the
    notifier section of the config schema.

Failure modes:
    - A failing subscriber never affects other subscribers or the caller;
      failures are logged with the subscriber name.
    - QueuedNotifier drops an event after ``max_attempts`` failed deliveries
      and logs ``stock_change_delivery_abandoned``.
    - QueuedNotifier drops events published while its queue is full and logs
      ``stock_change_queue_full``.
"""

from __future__ import annotations

import queue
import threading
from typing import Callable

from stockline_config.schema import NotifierConfig
from stockline_kernel.domain.dtos import StockChanged
from stockline_kernel.domain.notifier import ChangeNotifier, NullNotifier
from stockline_kernel.logging_config import get_logger

logger = get_logger("services.notifier")

Subscriber = Callable[[StockChanged], None]


class InMemoryNotifier:
    """Synchronous fan-out to registered callbacks.

    Also keeps every published event in ``published`` so in-process
    consumers and tests can inspect what was sent.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()
        self.published: list[StockChanged] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, event: StockChanged) -> None:
        with self._lock:
            self.published.append(event)
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "stock_change_subscriber_failed",
                    extra={
                        "variant_id": str(event.variant_id),
                        "subscriber": getattr(callback, "__name__", repr(callback)),
                    },
                )

    def clear(self) -> None:
        with self._lock:
            self.published.clear()


class LoggingNotifier:
    """Emits one structured log line per event."""

    def publish(self, event: StockChanged) -> None:
        logger.info(
            "stock_changed",
            extra={
                "variant_id": str(event.variant_id),
                "new_stock": event.new_stock,
            },
        )


_STOP = object()


class QueuedNotifier:
    """Delivers events to ``downstream`` from a background worker thread.

    Contract:
        - ``publish()`` never blocks on delivery; it only enqueues.
        - Each event is attempted up to ``max_attempts`` times, waiting
          ``retry_delay_seconds`` between attempts.
        - ``flush()`` waits until every queued event has been handled.
        - ``stop()`` drains the queue and joins the worker.
    """

    def __init__(
        self,
        downstream: ChangeNotifier,
        max_attempts: int = 3,
        retry_delay_seconds: float = 0.5,
        queue_size: int = 1000,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._downstream = downstream
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay_seconds
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        # Held while the worker thread is created or joined
        self._lifecycle_lock = threading.Lock()
        self.delivered_count = 0
        self.abandoned_count = 0

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        with self._lifecycle_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run_loop,
                name="stock-change-notifier",
                daemon=True,
            )
            self._thread.start()
        logger.info("queued_notifier_started", extra={"max_attempts": self._max_attempts})

    def stop(self, timeout: float = 30.0) -> None:
        """Drain pending events, then stop the worker."""
        with self._lifecycle_lock:
            if self._thread is None:
                return
            self._stop_event.set()
            self._queue.put(_STOP)
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info(
            "queued_notifier_stopped",
            extra={
                "delivered": self.delivered_count,
                "abandoned": self.abandoned_count,
            },
        )

    def flush(self) -> None:
        """Block until every event enqueued so far has been handled."""
        self._queue.join()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # ChangeNotifier
    # -------------------------------------------------------------------------

    def publish(self, event: StockChanged) -> None:
        if not self.is_running:
            self.start()
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.error(
                "stock_change_queue_full",
                extra={"variant_id": str(event.variant_id), "new_stock": event.new_stock},
            )

    # -------------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._deliver(item)
            finally:
                self._queue.task_done()

    def _deliver(self, event: StockChanged) -> None:
        for attempt in range(1, self._max_attempts + 1):
            try:
                self._downstream.publish(event)
                self.delivered_count += 1
                return
            except Exception:
                logger.warning(
                    "stock_change_delivery_failed",
                    exc_info=True,
                    extra={
                        "variant_id": str(event.variant_id),
                        "attempt": attempt,
                        "max_attempts": self._max_attempts,
                    },
                )
                if attempt < self._max_attempts and self._retry_delay > 0:
                    # stop() interrupts the back-off but not the remaining attempts
                    self._stop_event.wait(timeout=self._retry_delay)
        self.abandoned_count += 1
        logger.error(
            "stock_change_delivery_abandoned",
            extra={
                "variant_id": str(event.variant_id),
                "new_stock": event.new_stock,
                "attempts": self._max_attempts,
            },
        )


def build_notifier(config: NotifierConfig) -> ChangeNotifier:
    """Construct the notifier named by ``config.kind``."""
    if config.kind == "null":
        return NullNotifier()
    if config.kind == "memory":
        return InMemoryNotifier()
    if config.kind == "logging":
        return LoggingNotifier()
    if config.kind == "queued":
        return QueuedNotifier(
            downstream=LoggingNotifier(),
            max_attempts=config.max_attempts,
            retry_delay_seconds=config.retry_delay_seconds,
            queue_size=config.queue_size,
        )
    raise ValueError(f"Unknown notifier kind: {config.kind!r}")
