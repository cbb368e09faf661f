"""Tests for the serial task queue."""

import asyncio
import threading
import time

import pytest

from evolving_app.core.task_queue import SerialTaskQueue
from evolving_app.recognizer.service import RecognizerService

BLANK = [0.0] * 784


class RecordingModel:
    """Trainable model double that records the labels it was trained on."""

    def __init__(self, fail_on=None):
        self.trained = []
        self.samples_seen = 0
        self.last_loss = None
        self.fail_on = fail_on

    def train(self, sample, label):
        if label == self.fail_on:
            raise RuntimeError(f"cannot train {label}")
        self.trained.append(label)
        self.samples_seen += 1
        self.last_loss = 0.5
        return 0.5

    def predict(self, sample):
        raise NotImplementedError


class SlowModel(RecordingModel):
    """Model double whose training blocks its thread and tracks overlap."""

    def __init__(self, duration):
        super().__init__()
        self.duration = duration
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def train(self, sample, label):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.duration)
            return super().train(sample, label)
        finally:
            with self._lock:
                self.active -= 1


class TestSerialTaskQueue:
    """Test cases for SerialTaskQueue."""

    @pytest.mark.asyncio
    async def test_units_complete_in_order_without_overlap(self):
        queue = SerialTaskQueue()
        loop = asyncio.get_running_loop()
        intervals = []

        def make_unit(index, duration):
            async def unit():
                start = loop.time()
                await asyncio.sleep(duration)
                intervals.append((index, start, loop.time()))
                return index

            return unit

        # Earlier units sleep longer, so overlap would reorder completions.
        futures = [queue.enqueue(make_unit(i, 0.05 - i * 0.01)) for i in range(5)]
        results = await asyncio.gather(*futures)

        assert results == [0, 1, 2, 3, 4]
        assert [i for i, _, _ in intervals] == [0, 1, 2, 3, 4]
        for (_, _, prev_end), (_, next_start, _) in zip(intervals, intervals[1:]):
            assert prev_end <= next_start

    @pytest.mark.asyncio
    async def test_failure_is_isolated_to_its_caller(self):
        queue = SerialTaskQueue()
        ran = []

        def make_unit(index):
            async def unit():
                ran.append(index)
                if index == 1:
                    raise ValueError("unit 1 failed")
                return index

            return unit

        futures = [queue.enqueue(make_unit(i)) for i in range(4)]
        results = await asyncio.gather(*futures, return_exceptions=True)

        assert ran == [0, 1, 2, 3]
        assert results[0] == 0
        assert isinstance(results[1], ValueError)
        assert results[2:] == [2, 3]
        assert queue.completed == 3
        assert queue.failed == 1

    @pytest.mark.asyncio
    async def test_synchronous_work_and_synchronous_failure(self):
        queue = SerialTaskQueue()

        def explode():
            raise KeyError("boom")

        ok = queue.enqueue(lambda: 42)
        bad = queue.enqueue(explode)

        assert await ok == 42
        with pytest.raises(KeyError):
            await bad

    @pytest.mark.asyncio
    async def test_busy_only_while_a_unit_runs(self):
        queue = SerialTaskQueue()
        observed = []

        async def unit():
            observed.append(queue.busy)

        assert not queue.busy
        await queue.enqueue(unit)
        await queue.join()

        assert observed == [True]
        assert not queue.busy
        assert queue.pending_count == 0
        assert queue.idle

    @pytest.mark.asyncio
    async def test_detached_failure_reaches_error_sink(self):
        reported = []
        queue = SerialTaskQueue(error_sink=lambda label, error: reported.append((label, error)))

        async def failing():
            raise RuntimeError("lost?")

        queue.enqueue_detached(failing, label="train:7")
        queue.enqueue_detached(lambda: "fine", label="train:8")
        await queue.join()
        await asyncio.sleep(0)  # let done callbacks run

        assert len(reported) == 1
        label, error = reported[0]
        assert label == "train:7"
        assert isinstance(error, RuntimeError)

    @pytest.mark.asyncio
    async def test_timeout_fails_unit_and_queue_continues(self):
        queue = SerialTaskQueue(task_timeout=0.05)

        slow = queue.enqueue(lambda: asyncio.sleep(0.2))
        fast = queue.enqueue(lambda: asyncio.sleep(0, result="done"))

        with pytest.raises(asyncio.TimeoutError):
            await slow
        assert await fast == "done"

    @pytest.mark.asyncio
    async def test_cancelled_pending_unit_is_skipped(self):
        queue = SerialTaskQueue()
        ran = []

        async def unit(index):
            ran.append(index)

        first = queue.enqueue(lambda: unit(0))
        second = queue.enqueue(lambda: unit(1))
        third = queue.enqueue(lambda: unit(2))
        second.cancel()

        await first
        await third
        assert ran == [0, 2]

    @pytest.mark.asyncio
    async def test_queue_restarts_after_going_idle(self):
        queue = SerialTaskQueue()

        assert await queue.enqueue(lambda: 1) == 1
        await queue.join()
        assert await queue.enqueue(lambda: 2) == 2

    @pytest.mark.asyncio
    async def test_timed_out_thread_keeps_queue_busy_until_it_finishes(self):
        queue = SerialTaskQueue(task_timeout=0.05)
        finished = threading.Event()

        def blocking():
            time.sleep(0.2)
            finished.set()

        slow = queue.enqueue(lambda: asyncio.to_thread(blocking))
        after = queue.enqueue(lambda: finished.is_set())

        with pytest.raises(asyncio.TimeoutError):
            await slow
        assert queue.busy
        assert not finished.is_set()

        # The next unit only starts once the worker thread is done.
        assert await after is True
        await queue.join()
        assert not queue.busy
        assert queue.failed == 1
        assert queue.completed == 1

    @pytest.mark.asyncio
    async def test_unit_raising_cancelled_error_does_not_stall_queue(self):
        queue = SerialTaskQueue()

        async def cancelled_inside():
            raise asyncio.CancelledError()

        bad = queue.enqueue(cancelled_inside)
        good = queue.enqueue(lambda: "still runs")

        assert await good == "still runs"
        assert bad.cancelled()
        await asyncio.wait_for(queue.join(), 1.0)
        assert queue.idle
        assert queue.failed == 1

    @pytest.mark.asyncio
    async def test_unit_awaiting_cancelled_future_does_not_stall_queue(self):
        queue = SerialTaskQueue()

        async def waits_on_cancelled():
            inner = asyncio.get_running_loop().create_future()
            inner.cancel()
            await inner

        bad = queue.enqueue_detached(waits_on_cancelled, label="doomed")
        good = queue.enqueue(lambda: 7)

        assert await good == 7
        assert bad.cancelled()
        await asyncio.wait_for(queue.join(), 1.0)
        assert queue.pending_count == 0


class TestTrainingThroughQueue:
    """End-to-end training scenarios over the queue."""

    @pytest.mark.asyncio
    async def test_three_training_units_run_in_order(self):
        queue = SerialTaskQueue()
        model = RecordingModel()
        service = RecognizerService(model, queue)

        for digit in [1, 2, 3]:
            service.submit_training(digit, BLANK)
        await queue.join()

        assert model.trained == [1, 2, 3]
        assert not queue.busy
        assert queue.pending_count == 0
        assert service.get_status()["samples_seen"] == 3

    @pytest.mark.asyncio
    async def test_failed_training_unit_does_not_stop_later_units(self):
        reported = []
        queue = SerialTaskQueue(error_sink=lambda label, error: reported.append(label))
        model = RecordingModel(fail_on=2)
        service = RecognizerService(model, queue)

        for digit in [1, 2, 3]:
            service.submit_training(digit, BLANK)
        await queue.join()
        await asyncio.sleep(0)

        assert model.trained == [1, 3]
        assert reported == ["train:2"]
        assert queue.failed == 1

    @pytest.mark.asyncio
    async def test_train_batch_reports_counts(self):
        queue = SerialTaskQueue()
        model = RecordingModel(fail_on=5)
        service = RecognizerService(model, queue)

        result = await service.train_batch([(4, BLANK), (5, BLANK), (6, BLANK)])

        assert model.trained == [4, 6]
        assert result["trained"] == 2
        assert result["failed"] == 1
        assert result["success"] is False

    @pytest.mark.asyncio
    async def test_malformed_sample_is_rejected_before_queueing(self):
        queue = SerialTaskQueue()
        service = RecognizerService(RecordingModel(), queue)

        with pytest.raises(ValueError):
            service.submit_training(1, [0.0] * 10)
        assert queue.pending_count == 0
        assert queue.completed == 0

    @pytest.mark.asyncio
    async def test_timed_out_training_never_overlaps_the_next(self):
        queue = SerialTaskQueue(task_timeout=0.05)
        model = SlowModel(duration=0.15)
        service = RecognizerService(model, queue)

        result = await service.train_batch([(1, BLANK), (2, BLANK)])
        await queue.join()

        assert result["failed"] == 2
        assert model.max_active == 1
        assert model.trained == [1, 2]
