"""Unit tests for DocumentQueue debouncing and single-flight batching."""
import threading
import time

import pytest

from codeweave_mcp.indexing.document_queue import DocumentQueue, QueueState


class RecordingProcessor:
    """Collects batches; can block inside a batch until released."""

    def __init__(self, block=False):
        self.batches = []
        self.active = 0
        self.max_active = 0
        self.entered = threading.Event()
        self.release = threading.Event()
        if not block:
            self.release.set()
        self._lock = threading.Lock()

    def __call__(self, paths):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.entered.set()
        self.release.wait(5)
        with self._lock:
            self.batches.append(list(paths))
            self.active -= 1
        return len(paths)


@pytest.fixture
def processor():
    return RecordingProcessor()


class TestDebounce:

    def test_burst_becomes_one_batch(self, processor):
        queue = DocumentQueue(processor, quiet_interval_seconds=0.05)
        for path in ["a.py", "b.py", "a.py", "c.py"]:
            queue.enqueue(path)

        assert queue.state is QueueState.PENDING
        assert queue.wait_for_idle(timeout=5)

        assert processor.batches == [["a.py", "b.py", "c.py"]]
        assert queue.state is QueueState.EMPTY
        assert queue.last_result == 3
        assert queue.batches_processed == 1
        queue.dispose()

    def test_enqueue_restarts_quiet_interval(self, processor):
        queue = DocumentQueue(processor, quiet_interval_seconds=0.4)
        queue.enqueue("a.py")
        time.sleep(0.25)
        queue.enqueue("b.py")
        time.sleep(0.25)

        # 0.5s since the first enqueue, but only 0.25s of quiet
        assert processor.batches == []
        assert queue.wait_for_idle(timeout=5)
        assert processor.batches == [["a.py", "b.py"]]
        queue.dispose()

    def test_flush_processes_immediately(self, processor):
        queue = DocumentQueue(processor, quiet_interval_seconds=60)
        queue.enqueue("a.py")

        assert queue.flush() == 1
        assert processor.batches == [["a.py"]]
        assert queue.pending == []
        assert queue.flush() is None
        queue.dispose()


class TestSingleFlight:

    def test_paths_arriving_during_flush_form_next_batch(self):
        processor = RecordingProcessor(block=True)
        queue = DocumentQueue(processor, quiet_interval_seconds=0.01)

        queue.enqueue("a.py")
        assert processor.entered.wait(5)
        assert queue.state is QueueState.FLUSHING

        queue.enqueue("b.py")
        queue.enqueue("a.py")
        assert queue.state is QueueState.FLUSHING
        assert queue.pending == ["b.py", "a.py"]

        processor.release.set()
        assert queue.wait_for_idle(timeout=5)

        assert processor.batches == [["a.py"], ["b.py", "a.py"]]
        assert processor.max_active == 1
        queue.dispose()

    def test_concurrent_flushes_never_overlap(self):
        processor = RecordingProcessor()
        queue = DocumentQueue(processor, quiet_interval_seconds=60)

        def worker(i):
            queue.enqueue(f"f{i}.py")
            queue.flush()

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert processor.max_active == 1
        assert sorted(p for batch in processor.batches for p in batch) == sorted(f"f{i}.py" for i in range(10))
        queue.dispose()

    def test_processor_error_is_contained(self):
        calls = []

        def failing(paths):
            calls.append(paths)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return "ok"

        queue = DocumentQueue(failing, quiet_interval_seconds=60)
        queue.enqueue("a.py")
        assert queue.flush() is None
        assert queue.state is QueueState.EMPTY

        queue.enqueue("b.py")
        assert queue.flush() == "ok"
        queue.dispose()


class TestDispose:

    def test_dispose_drops_pending_and_ignores_enqueue(self, processor):
        queue = DocumentQueue(processor, quiet_interval_seconds=0.05)
        queue.enqueue("a.py")
        queue.dispose()

        queue.enqueue("b.py")
        time.sleep(0.15)

        assert processor.batches == []
        assert queue.state is QueueState.DISPOSED
        assert queue.pending == []
        assert queue.flush() is None
        assert queue.wait_for_idle(timeout=1)

    def test_in_flight_batch_completes_after_dispose(self):
        processor = RecordingProcessor(block=True)
        queue = DocumentQueue(processor, quiet_interval_seconds=0.01)
        queue.enqueue("a.py")
        assert processor.entered.wait(5)

        queue.enqueue("b.py")
        queue.dispose()
        processor.release.set()

        assert queue.wait_for_idle(timeout=5)
        assert processor.batches == [["a.py"]]
        assert queue.state is QueueState.DISPOSED
