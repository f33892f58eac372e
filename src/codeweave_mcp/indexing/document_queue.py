"""
Document queue: debounced, coalescing, single-flight change batching.

File change notifications arrive in bursts (save-all, branch switches,
formatters). The queue collects paths until the workspace has been quiet
for ``quiet_interval_seconds`` and then hands one deduplicated batch to
the indexer.

States:
    EMPTY     nothing pending
    PENDING   paths waiting for the quiet interval to elapse
    FLUSHING  a batch is being processed; new paths go to the next batch
    DISPOSED  terminal; enqueue is ignored

Only one batch is processed at a time. A path enqueued twice before a
flush is processed once, and because files are read at flush time the
latest content is what gets indexed.

Usage:
    queue = DocumentQueue(indexer.process_documents, quiet_interval_seconds=0.5)
    queue.enqueue("src/app.py")
    queue.wait_for_idle(timeout=10)
    queue.dispose()
"""

import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class QueueState(Enum):
    EMPTY = "empty"
    PENDING = "pending"
    FLUSHING = "flushing"
    DISPOSED = "disposed"


class DocumentQueue:
    """Debounced batching in front of ``Indexer.process_documents``."""

    def __init__(
        self,
        process: Callable[[List[str]], Any],
        quiet_interval_seconds: float = 0.5,
    ):
        """
        Args:
            process: Called with each batch of paths; its return value is
                kept as ``last_result``
            quiet_interval_seconds: Debounce delay, reset on every enqueue
        """
        self._process = process
        self.quiet_interval_seconds = quiet_interval_seconds

        self._pending: Dict[str, None] = {}  # insertion-ordered set
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)
        self._flight_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._state = QueueState.EMPTY
        self._in_flight = False

        self.last_result: Any = None
        self.batches_processed = 0

    @property
    def state(self) -> QueueState:
        with self._lock:
            return self._state

    @property
    def pending(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    def enqueue(self, path: str) -> None:
        """
        Add a path to the next batch and restart the quiet interval.

        After ``dispose`` this is a logged no-op.
        """
        with self._lock:
            if self._state is QueueState.DISPOSED:
                logger.debug(f"Ignoring enqueue of {path}: queue disposed")
                return
            self._pending[path] = None
            if not self._in_flight:
                self._state = QueueState.PENDING
            self._restart_timer()
        logger.debug(f"Enqueued {path}")

    def flush(self) -> Any:
        """
        Process everything pending now, waiting for an in-flight batch first.

        Returns:
            The processor's result, or None if there was nothing to do
        """
        with self._flight_lock:
            with self._lock:
                if self._state is QueueState.DISPOSED or not self._pending:
                    return None
                self._cancel_timer()
                batch = list(self._pending)
                self._pending.clear()
                self._state = QueueState.FLUSHING
                self._in_flight = True

            logger.debug(f"Flushing {len(batch)} paths")
            result = None
            try:
                result = self._process(batch)
                self.last_result = result
                self.batches_processed += 1
            except Exception:
                logger.exception(f"Batch of {len(batch)} paths failed")
            finally:
                with self._lock:
                    self._in_flight = False
                    if self._state is not QueueState.DISPOSED:
                        if self._pending:
                            self._state = QueueState.PENDING
                            if self._timer is None:
                                self._restart_timer()
                        else:
                            self._state = QueueState.EMPTY
                    self._changed.notify_all()
            return result

    def dispose(self) -> None:
        """
        Stop accepting work. Pending paths are dropped; a batch already in
        flight runs to completion.
        """
        with self._lock:
            self._cancel_timer()
            dropped = len(self._pending)
            self._pending.clear()
            self._state = QueueState.DISPOSED
            self._changed.notify_all()
        logger.debug(f"Queue disposed ({dropped} pending paths dropped)")

    def wait_for_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until nothing is pending or in flight.

        Returns:
            False if the timeout elapsed first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            while self._pending or self._in_flight:
                if self._state is QueueState.DISPOSED and not self._in_flight:
                    break
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._changed.wait(remaining)
        return True

    # =========================================================================
    # Private Helper Methods (caller holds the lock)
    # =========================================================================

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._timer = threading.Timer(self.quiet_interval_seconds, self._on_quiet)
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_quiet(self) -> None:
        with self._lock:
            if self._timer is not threading.current_thread():
                return  # superseded by a later enqueue
            self._timer = None
        self.flush()
