"""Unit tests for the dramatiq middleware stack and retry policy."""

import dramatiq
import pytest
from dramatiq.brokers.stub import StubBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from sqlalchemy.exc import OperationalError

from jobs.middleware import build_middleware, transient_retries


@pytest.fixture
def stub_broker():
    broker = StubBroker(middleware=build_middleware(min_backoff=1, max_backoff=10))
    broker.emit_after("process_boot")
    yield broker
    broker.flush_all()
    broker.close()


def run_until_idle(broker, actor):
    worker = dramatiq.Worker(broker, worker_timeout=100)
    worker.start()
    try:
        actor.send()
        broker.join(actor.queue_name, fail_fast=False)
        worker.join()
    finally:
        worker.stop()


def failing_actor(broker, error, **options):
    calls = []

    def fail():
        calls.append(1)
        raise error

    actor = dramatiq.actor(fail, actor_name="fail", broker=broker, **options)
    return actor, calls


class TestMiddlewareStack:
    """Test the broker middleware list."""

    def test_single_retries_instance(self):
        middleware = build_middleware()

        assert sum(isinstance(m, Retries) for m in middleware) == 1
        assert sum(isinstance(m, ShutdownNotifications) for m in middleware) == 1
        assert any(isinstance(m, CurrentMessage) for m in middleware)


class TestRetryPolicy:
    """Test redelivery of failed messages."""

    def test_transient_failure_bounded_by_max_retries(self, stub_broker):
        actor, calls = failing_actor(
            stub_broker,
            OperationalError("SELECT 1", {}, Exception("connection lost")),
            retry_when=transient_retries(2),
        )

        run_until_idle(stub_broker, actor)

        assert len(calls) == 3

    def test_non_transient_failure_runs_once(self, stub_broker):
        actor, calls = failing_actor(
            stub_broker, ValueError("bad payload"), retry_when=transient_retries(2)
        )

        run_until_idle(stub_broker, actor)

        assert len(calls) == 1

    def test_actor_without_policy_not_redelivered(self, stub_broker):
        actor, calls = failing_actor(
            stub_broker, OperationalError("SELECT 1", {}, Exception("down"))
        )

        run_until_idle(stub_broker, actor)

        assert len(calls) == 1

    def test_policy_counts_failures_from_one(self):
        retry_when = transient_retries(2)
        error = OperationalError("SELECT 1", {}, Exception("down"))

        assert retry_when(1, error) is True
        assert retry_when(2, error) is True
        assert retry_when(3, error) is False
        assert retry_when(1, ValueError("bad")) is False
