"""Tests for the batch orchestrator and evaluation session."""

import asyncio
import time

import pytest

from chatlog_grader.errors import (
    AllItemsFailedError,
    InvalidResponseError,
    NoInputItemsError,
    RequestRejectedError,
    ThrottledError,
    TransportError,
)
from chatlog_grader.models.enums import ErrorKind, RunState
from chatlog_grader.orchestration.control import RunController
from chatlog_grader.orchestration.orchestrator import BatchOrchestrator
from chatlog_grader.orchestration.rate_limiter import RateLimiter
from chatlog_grader.orchestration.retry import RetryCoordinator
from chatlog_grader.orchestration.session import EvaluationSession


def assert_counter_invariants(snapshots):
    for snap in snapshots:
        assert snap.processed_count == snap.succeeded_count + snap.failed_count
        assert snap.processed_count <= snap.total_count


class TestBatchOrchestrator:
    """Tests for BatchOrchestrator.run."""

    @pytest.mark.asyncio
    async def test_all_items_succeed(self, make_items, scripted_client, fast_config):
        client = scripted_client()
        orchestrator = BatchOrchestrator(client, config=fast_config)
        snapshots = []
        orchestrator.add_listener(snapshots.append)

        job = await orchestrator.run(make_items(3))

        assert job.state == RunState.COMPLETED
        assert (job.succeeded, job.failed, job.processed) == (3, 0, 3)
        assert [r.item_index for r in job.results] == [0, 1, 2]
        assert job.results[0].scenario == "scenario-0"
        assert job.completed_at is not None

        final = snapshots[-1]
        assert final.state == RunState.COMPLETED
        assert final.percent == 100
        assert final.eta_text is None
        assert_counter_invariants(snapshots)

    @pytest.mark.asyncio
    async def test_empty_input_raises(self, scripted_client, fast_config):
        orchestrator = BatchOrchestrator(scripted_client(), config=fast_config)
        with pytest.raises(NoInputItemsError):
            await orchestrator.run([])

    @pytest.mark.asyncio
    async def test_throttled_item_is_retried_in_place(
        self, make_items, scripted_client, good_scores, fast_config
    ):
        """Item 2 is throttled once with a 2s hint; all three succeed."""
        items = make_items(3)
        throttle = ThrottledError('429 Too Many Requests: {"retryDelay": "2s"}')
        client = scripted_client([good_scores, throttle, good_scores, good_scores])
        orchestrator = BatchOrchestrator(client, config=fast_config)
        snapshots = []
        orchestrator.add_listener(snapshots.append)

        started = time.monotonic()
        job = await orchestrator.run(items)
        elapsed = time.monotonic() - started

        assert (job.succeeded, job.failed) == (3, 0)
        assert elapsed >= 2.0
        assert client.calls == [
            items[0].transcript,
            items[1].transcript,
            items[1].transcript,
            items[2].transcript,
        ]

        waiting = [s for s in snapshots if s.wait_seconds is not None]
        assert waiting
        assert waiting[0].wait_seconds == pytest.approx(2.1)
        assert (waiting[0].processed_count, waiting[0].failed_count) == (1, 0)
        assert "API quota exceeded" in waiting[0].status_message

        assert snapshots[-1].eta_text is None
        assert_counter_invariants(snapshots)

    @pytest.mark.asyncio
    async def test_terminal_failures_are_counted(self, make_items, scripted_client, good_scores, fast_config):
        """Non-throttling failures are tallied and the batch continues."""
        client = scripted_client([
            InvalidResponseError("no JSON", raw_response="Looks fine to me"),
            TransportError("timed out"),
            good_scores,
            RequestRejectedError("bad request", status=400),
        ])
        orchestrator = BatchOrchestrator(client, config=fast_config)

        job = await orchestrator.run(make_items(4))

        assert job.state == RunState.COMPLETED
        assert (job.succeeded, job.failed, job.processed) == (1, 3, 4)
        kinds = [r.error.kind for r in job.failed_results]
        assert kinds == [ErrorKind.INVALID_RESPONSE, ErrorKind.TRANSPORT, ErrorKind.VALIDATION]
        assert job.failed_results[0].error.raw_response == "Looks fine to me"
        assert len(client.calls) == 4

    @pytest.mark.asyncio
    async def test_failure_cool_down(self, make_items, scripted_client, good_scores, fast_config):
        """A short pause follows a failure unless it was the last item."""
        fast_config.retry.failure_cooldown_seconds = 0.2
        client = scripted_client([TransportError("reset"), good_scores, TransportError("reset")])
        orchestrator = BatchOrchestrator(client, config=fast_config)

        started = time.monotonic()
        job = await orchestrator.run(make_items(3))
        elapsed = time.monotonic() - started

        assert (job.succeeded, job.failed) == (1, 2)
        assert 0.2 <= elapsed < 0.4

    @pytest.mark.asyncio
    async def test_all_items_failed(self, make_items, scripted_client, fast_config):
        client = scripted_client([TransportError("down"), InvalidResponseError("junk")])
        orchestrator = BatchOrchestrator(client, config=fast_config)

        with pytest.raises(AllItemsFailedError) as exc_info:
            await orchestrator.run(make_items(2))

        job = exc_info.value.job
        assert job.state == RunState.COMPLETED
        assert (job.succeeded, job.failed) == (0, 2)

    @pytest.mark.asyncio
    async def test_cancel_while_paused(self, make_items, scripted_client, fast_config):
        """Cancelling a paused job stops it within one poll interval."""
        client = scripted_client()
        orchestrator = BatchOrchestrator(client, config=fast_config)
        controller = RunController(poll_interval=fast_config.run.pause_poll_interval_seconds)
        controller.pause()

        task = asyncio.create_task(orchestrator.run(make_items(3), controller=controller))
        await asyncio.sleep(0.1)
        assert orchestrator.job.state == RunState.PAUSED

        cancelled_at = time.monotonic()
        controller.cancel()
        job = await asyncio.wait_for(task, timeout=1.0)

        assert time.monotonic() - cancelled_at <= controller.poll_interval + 0.05
        assert job.state == RunState.CANCELLED
        assert job.processed == 0
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_cancel_lets_in_flight_call_finish(self, make_items, scripted_client, fast_config):
        """A cancel during a call keeps that result and stops before the next item."""
        items = make_items(4)
        client = scripted_client()
        controller = RunController(poll_interval=0.05)
        client.on_call = lambda n, transcript: controller.cancel() if n == 2 else None
        orchestrator = BatchOrchestrator(client, config=fast_config)

        job = await orchestrator.run(items, controller=controller)

        assert job.state == RunState.CANCELLED
        assert (job.succeeded, job.processed) == (2, 2)
        assert client.calls == [items[0].transcript, items[1].transcript]

    @pytest.mark.asyncio
    async def test_cancel_during_throttle_wait(self, make_items, scripted_client, fast_config):
        """A cancel during a long throttling wait ends the job without counting the item."""
        client = scripted_client([ThrottledError("429", retry_after=30.0)])
        controller = RunController(poll_interval=0.05)
        orchestrator = BatchOrchestrator(client, config=fast_config)

        asyncio.get_running_loop().call_later(0.2, controller.cancel)
        job = await asyncio.wait_for(orchestrator.run(make_items(2), controller=controller), timeout=2.0)

        assert job.state == RunState.CANCELLED
        assert job.processed == 0
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_pause_and_resume(self, make_items, scripted_client, fast_config):
        """A pause between items holds the job until resumed."""
        client = scripted_client()
        controller = RunController(poll_interval=0.05)
        loop = asyncio.get_running_loop()

        def pause_after_first(n, transcript):
            if n == 1:
                controller.pause()
                loop.call_later(0.2, controller.resume)

        client.on_call = pause_after_first
        orchestrator = BatchOrchestrator(client, config=fast_config)
        states = []
        orchestrator.add_listener(lambda s: states.append(s.state))

        started = time.monotonic()
        job = await orchestrator.run(make_items(3), controller=controller)

        assert job.state == RunState.COMPLETED
        assert job.succeeded == 3
        assert RunState.PAUSED in states
        assert time.monotonic() - started >= 0.15

    @pytest.mark.asyncio
    async def test_rate_limit_delays_admission(self, make_items, scripted_client, fast_config):
        client = scripted_client()
        limiter = RateLimiter(capacity=2, window_seconds=0.3, buffer_seconds=0.0)
        orchestrator = BatchOrchestrator(client, rate_limiter=limiter, config=fast_config)
        messages = []
        orchestrator.add_listener(lambda s: messages.append(s.status_message))

        started = time.monotonic()
        job = await orchestrator.run(make_items(3))

        assert job.succeeded == 3
        assert time.monotonic() - started >= 0.25
        assert any(m.startswith("Rate limit reached") for m in messages)

    @pytest.mark.asyncio
    async def test_injected_limiter_is_reset_after_throttle(self, make_items, scripted_client, good_scores):
        """The injected limiter and coordinator share one window, cleared on throttling."""
        limiter = RateLimiter(capacity=1, window_seconds=0.2, buffer_seconds=0.0)
        coordinator = RetryCoordinator(
            limiter, default_wait_seconds=0.1, buffer_seconds=0.0, failure_cooldown_seconds=0.0
        )
        client = scripted_client([good_scores, ThrottledError("429 Too Many Requests"), good_scores])
        orchestrator = BatchOrchestrator(client, rate_limiter=limiter, retry_coordinator=coordinator)
        messages = []
        orchestrator.add_listener(lambda s: messages.append(s.status_message))

        job = await orchestrator.run(make_items(3))

        assert job.succeeded == 3
        assert len(client.calls) == 4
        assert len(limiter) == 1
        # Items 2 and 3 wait on the window; the retry of item 2 follows the reset
        assert sum(m.startswith("Rate limit reached") for m in messages) == 2

    @pytest.mark.asyncio
    async def test_pause_during_rate_limit_wait_holds_call(self, make_items, scripted_client, fast_config):
        """A pause that lands inside an admission wait is honoured before scoring."""
        client = scripted_client()
        controller = RunController(poll_interval=0.05)
        limiter = RateLimiter(capacity=1, window_seconds=0.5, buffer_seconds=0.0)
        orchestrator = BatchOrchestrator(client, rate_limiter=limiter, config=fast_config)
        loop = asyncio.get_running_loop()
        started = time.monotonic()
        calls = []
        client.on_call = lambda n, transcript: calls.append((n, controller.state, time.monotonic() - started))

        loop.call_later(0.2, controller.pause)
        loop.call_later(1.0, controller.resume)
        job = await orchestrator.run(make_items(2), controller=controller)

        assert job.succeeded == 2
        assert [state for _, state, _ in calls] == [RunState.RUNNING, RunState.RUNNING]
        assert calls[1][2] >= 0.95
        assert len(limiter) == 1

    @pytest.mark.asyncio
    async def test_items_are_not_mutated(self, make_items, scripted_client, fast_config):
        items = make_items(2)
        before = [item.model_dump() for item in items]
        orchestrator = BatchOrchestrator(scripted_client(), config=fast_config)

        await orchestrator.run(items)

        assert [item.model_dump() for item in items] == before

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_job(self, make_items, scripted_client, fast_config):
        orchestrator = BatchOrchestrator(scripted_client(), config=fast_config)

        def broken(snapshot):
            raise RuntimeError("display gone")

        orchestrator.add_listener(broken)
        job = await orchestrator.run(make_items(2))
        assert job.succeeded == 2


class TestEvaluationSession:
    """Tests for the caller-facing session API."""

    @pytest.mark.asyncio
    async def test_start_with_no_items_raises(self, scripted_client, fast_config):
        session = EvaluationSession(BatchOrchestrator(scripted_client(), config=fast_config))
        with pytest.raises(NoInputItemsError):
            session.start([])

    @pytest.mark.asyncio
    async def test_subscribe_until_done(self, make_items, scripted_client, fast_config):
        session = EvaluationSession(
            BatchOrchestrator(scripted_client(), config=fast_config),
            poll_interval=0.05,
        )
        session.start(make_items(3))

        snapshots = [snap async for snap in session.subscribe()]
        job = await session.wait()

        assert job.succeeded == 3
        assert snapshots[-1].state == RunState.COMPLETED
        assert snapshots[-1].processed_count == 3
        assert session.snapshot() == snapshots[-1]
        assert_counter_invariants(snapshots)

    @pytest.mark.asyncio
    async def test_pause_resume_cancel(self, make_items, scripted_client, fast_config):
        session = EvaluationSession(
            BatchOrchestrator(scripted_client(), config=fast_config),
            poll_interval=0.05,
        )
        assert session.pause() is True

        session.start(make_items(3))
        await asyncio.sleep(0.1)
        assert session.snapshot().state == RunState.PAUSED

        assert session.resume() is True
        assert session.cancel() is True
        job = await asyncio.wait_for(session.wait(), timeout=1.0)

        assert job.state == RunState.CANCELLED
        assert job.processed <= 1

    @pytest.mark.asyncio
    async def test_subscribe_after_done(self, make_items, scripted_client, fast_config):
        session = EvaluationSession(BatchOrchestrator(scripted_client(), config=fast_config))
        session.start(make_items(1))
        await session.wait()
        await asyncio.sleep(0)

        snapshots = [snap async for snap in session.subscribe()]
        assert len(snapshots) == 1
        assert snapshots[0].state == RunState.COMPLETED

    @pytest.mark.asyncio
    async def test_start_twice(self, make_items, scripted_client, fast_config):
        session = EvaluationSession(BatchOrchestrator(scripted_client(), config=fast_config))
        session.start(make_items(1))
        with pytest.raises(RuntimeError):
            session.start(make_items(1))
        await session.wait()

    @pytest.mark.asyncio
    async def test_wait_propagates_all_failed(self, make_items, scripted_client, fast_config):
        session = EvaluationSession(
            BatchOrchestrator(scripted_client([TransportError("down")]), config=fast_config)
        )
        session.start(make_items(1))

        snapshots = [snap async for snap in session.subscribe()]
        with pytest.raises(AllItemsFailedError):
            await session.wait()
        assert snapshots[-1].failed_count == 1
