"""
Tests for operation generators.

Tests cover:
- Combinators (Seq, Cycle, Concat, TimeLimit, Stoppable)
- The health poller and the cancelling sequence
- The client generator registry
"""

import pytest

from jobchaos.errors import ConfigurationError, UnknownClientGenerator
from jobchaos.services.generators.base import (
    Concat,
    Cycle,
    GeneratorContext,
    Once,
    Seq,
    Sleep,
    Stoppable,
    TimeLimit,
)
from jobchaos.services.generators.client import (
    CLIENT_GENERATORS,
    CancellingSequence,
    HealthPoller,
    get_client_generator,
)
from jobchaos.services.history.models import CANCEL_JOB, JOB_RUNNING, Operation
from jobchaos.services.nemesis.stop_signal import StopReason, StopSignal


class TestCombinators:
    """Tests for the generator combinators."""

    def test_seq_is_finite_and_restartable(self, drain):
        """Test that Seq emits its steps once and restart starts over."""
        seq = Seq([Operation(f="a"), Operation(f="b")])
        assert [f for f, _ in drain(seq)] == ["a", "b"]
        assert seq.closed
        assert [f for f, _ in drain(seq.restart())] == ["a", "b"]

    def test_cycle_requires_steps(self):
        with pytest.raises(ValueError):
            Cycle([])

    def test_concat_runs_generators_in_order(self, drain):
        gen = Concat(Once(Operation(f="a")), Seq([Operation(f="b"), Operation(f="c")]))
        assert [f for f, _ in drain(gen)] == ["a", "b", "c"]

    def test_concat_close_closes_remaining(self, manual_time):
        """Test that closing a Concat closes the generators it has not reached."""
        first, second = Once(Operation(f="a")), Once(Operation(f="b"))
        gen = Concat(first, second)
        gen.close()
        assert first.closed and second.closed
        assert gen.next(GeneratorContext(manual_time.now)) is None

    def test_time_limit_stops_at_deadline(self, drain):
        gen = TimeLimit(12, Cycle([Operation(f="a"), Sleep(seconds=5)]))
        assert drain(gen) == [("a", 0), ("a", 5), ("a", 10)]

    def test_time_limit_truncates_sleeps(self, manual_time):
        """Test that a sleep never extends past the deadline."""
        gen = TimeLimit(3, Cycle([Operation(f="a"), Sleep(seconds=5)]))
        ctx = GeneratorContext(manual_time.now)

        assert gen.next(ctx).f == "a"
        step = gen.next(ctx)
        assert isinstance(step, Sleep)
        assert step.seconds == 3

    def test_time_limit_clock_starts_on_first_step(self, drain, manual_time):
        manual_time.t = 100
        gen = TimeLimit(6, Cycle([Operation(f="a"), Sleep(seconds=5)]))
        assert drain(gen) == [("a", 100), ("a", 105)]

    def test_zero_time_limit_emits_nothing(self, drain):
        assert drain(TimeLimit(0, Cycle([Operation(f="a")]))) == []

    def test_negative_time_limit_rejected(self):
        with pytest.raises(ValueError):
            TimeLimit(-1, Cycle([Operation(f="a")]))

    def test_stoppable_ends_once_signal_set(self, manual_time):
        stop = StopSignal()
        gen = Stoppable(stop, Cycle([Operation(f="a")]))
        ctx = GeneratorContext(manual_time.now)

        assert gen.next(ctx).f == "a"
        stop.set_if_unset(StopReason.JOB_RECOVERED)
        assert gen.next(ctx) is None
        assert gen.generator.closed


class TestHealthPoller:
    """Tests for HealthPoller."""

    def test_polls_with_fixed_delay(self, drain):
        ops = drain(HealthPoller(), limit=4)
        assert ops == [(JOB_RUNNING, 0), (JOB_RUNNING, 5), (JOB_RUNNING, 10), (JOB_RUNNING, 15)]

    def test_is_logically_infinite(self, drain):
        assert len(drain(HealthPoller(1), limit=500)) == 500

    def test_custom_interval(self, drain):
        assert [t for _, t in drain(HealthPoller(2), limit=3)] == [0, 2, 4]

    def test_restart_returns_fresh_poller(self, drain):
        poller = HealthPoller(3)
        drain(poller, limit=2)
        restarted = poller.restart()
        assert isinstance(restarted, HealthPoller)
        assert restarted.interval == 3
        assert not restarted.closed

    def test_emits_fresh_invocations(self, manual_time):
        """Test that every poll is an invoke of job-running?."""
        step = HealthPoller().next(GeneratorContext(manual_time.now))
        assert step.is_invoke
        assert step.f == JOB_RUNNING


class TestCancellingSequence:
    """Tests for CancellingSequence."""

    def test_polls_then_cancels_then_polls(self, drain):
        ops = drain(CancellingSequence(HealthPoller(5), 15), limit=6)
        assert ops == [
            (JOB_RUNNING, 0),
            (JOB_RUNNING, 5),
            (JOB_RUNNING, 10),
            (CANCEL_JOB, 15),
            (JOB_RUNNING, 15),
            (JOB_RUNNING, 20),
        ]

    def test_zero_limit_cancels_immediately(self, drain):
        ops = drain(CancellingSequence(HealthPoller(5), 0), limit=3)
        assert ops[0] == (CANCEL_JOB, 0)
        assert [f for f, _ in ops[1:]] == [JOB_RUNNING, JOB_RUNNING]

    @pytest.mark.parametrize("limit", [0, 1, 4.5, 15, 33])
    def test_cancel_is_never_duplicated(self, drain, limit):
        ops = drain(CancellingSequence(HealthPoller(5), limit), limit=200)
        fs = [f for f, _ in ops]
        assert fs.count(CANCEL_JOB) == 1
        cancel_index = fs.index(CANCEL_JOB)
        assert all(f == JOB_RUNNING for f in fs[:cancel_index])
        assert all(f == JOB_RUNNING for f in fs[cancel_index + 1:])
        assert ops[cancel_index][1] == pytest.approx(limit)

    def test_restart(self, drain):
        sequence = CancellingSequence(HealthPoller(5), 10)
        drain(sequence, limit=10)
        restarted = sequence.restart()
        assert restarted.cancel_after == 10
        assert [f for f, _ in drain(restarted, limit=4)].count(CANCEL_JOB) == 1


class TestClientGeneratorRegistry:
    """Tests for the client generator registry."""

    def test_registered_names(self):
        assert set(CLIENT_GENERATORS) == {"poll-job-running", "cancel-jobs"}

    def test_factories_build_generators(self):
        assert isinstance(get_client_generator("poll-job-running")(poll_interval=2), HealthPoller)
        cancelling = get_client_generator("cancel-jobs")(poll_interval=2, cancel_after=7)
        assert isinstance(cancelling, CancellingSequence)
        assert cancelling.cancel_after == 7

    def test_unknown_name_fails_fast(self):
        with pytest.raises(UnknownClientGenerator) as exc_info:
            get_client_generator("poll-everything")
        assert isinstance(exc_info.value, ConfigurationError)
        assert "Must be one of: cancel-jobs, poll-job-running" in str(exc_info.value)
