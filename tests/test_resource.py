import pytest

from conftest import delayed
from resource_cache.resource import (
    PENDING,
    Rejected,
    Resolved,
    Resource,
    ResourceState,
)


def test_operation_starts_eagerly_and_runs_once(env):
    calls = []

    def operation():
        calls.append(env.now)
        return delayed(env, 100, "pikachu")

    resource = Resource(env, operation, name="pikachu")
    assert calls == [0]

    env.run(until=500)
    assert resource.read() == "pikachu"
    assert resource.read() == "pikachu"
    assert calls == [0]


def test_read_signals_pending_then_memoizes_value(env):
    value = {"id": 25}
    resource = Resource(env, lambda: delayed(env, 100, value))

    assert resource.read() is PENDING
    assert resource.read() is PENDING
    assert resource.state is ResourceState.PENDING
    assert not resource.is_settled

    env.run(until=150)
    assert resource.state is ResourceState.RESOLVED
    assert resource.read() is value
    assert resource.read() is value
    assert resource.settled_at == 100


def test_rejected_resource_replays_the_same_error(env):
    error = RuntimeError("boom")
    resource = Resource(env, lambda: delayed(env, 100, error=error))

    env.run(until=50)
    assert resource.read() is PENDING

    env.run(until=150)
    with pytest.raises(RuntimeError) as first:
        resource.read()

    env.run(until=9999)
    with pytest.raises(RuntimeError) as second:
        resource.read()

    assert first.value is error
    assert second.value is error
    assert resource.state is ResourceState.REJECTED


def test_operation_raising_on_start_is_rejected(env):
    error = ValueError("bad request")

    def operation():
        raise error

    resource = Resource(env, operation)
    assert resource.is_settled
    assert isinstance(resource.poll(), Rejected)
    with pytest.raises(ValueError) as exc:
        resource.read()
    assert exc.value is error


def test_poll_returns_tri_state_result(env):
    ok = Resource(env, lambda: delayed(env, 10, "ok"))
    bad = Resource(env, lambda: delayed(env, 10, error=KeyError("x")))

    assert ok.poll() is PENDING
    env.run(until=20)

    result = ok.poll()
    assert isinstance(result, Resolved)
    assert result.value == "ok"

    failure = bad.poll()
    assert isinstance(failure, Rejected)
    assert isinstance(failure.error, KeyError)


def test_on_settle_callbacks(env):
    resource = Resource(env, lambda: delayed(env, 100, "mew"))
    seen = []
    resource.on_settle(lambda result: seen.append(("early", env.now, result.value)))

    env.run(until=200)
    resource.on_settle(lambda result: seen.append(("late", env.now, result.value)))

    assert seen == [("early", 100, "mew"), ("late", 200, "mew")]


def test_caller_suspends_on_settled_event(env):
    resource = Resource(env, lambda: delayed(env, 100, "squirtle"))
    observed = []

    def caller():
        result = yield resource.settled
        observed.append((env.now, result.value))

    env.process(caller())
    env.run()
    assert observed == [(100, "squirtle")]


def test_failed_operation_does_not_stop_event_loop(env):
    resource = Resource(env, lambda: delayed(env, 10, error=RuntimeError("down")))
    other = Resource(env, lambda: delayed(env, 50, "alive"))

    env.run(until=100)
    assert resource.state is ResourceState.REJECTED
    assert other.read() == "alive"


class CodedError(Exception):
    """Исключение с двумя обязательными аргументами конструктора."""

    def __init__(self, name, code):
        super().__init__(f"{name} failed with {code}")
        self.name = name
        self.code = code


def test_error_with_required_args_is_kept_intact(env):
    error = CodedError("eevee", 503)
    resource = Resource(env, lambda: delayed(env, 10, error=error))

    env.run(until=100)
    assert resource.poll().error is error
    with pytest.raises(CodedError) as exc:
        resource.read()
    assert exc.value is error
    assert exc.value.code == 503


def test_already_processed_event_settles_immediately(env):
    event = env.event()
    event.succeed("ditto")
    env.run(until=1)

    resource = Resource(env, lambda: event)
    assert resource.read() == "ditto"
    assert resource.settled_at == 1


def test_already_failed_event_is_rejected_without_crashing(env):
    error = CodedError("onix", 500)
    event = env.event()
    event.fail(error)
    event.defused = True
    env.run(until=1)

    resource = Resource(env, lambda: event)
    env.run(until=10)
    assert resource.poll().error is error
