import pytest

from resource_cache.cache import ResourceCache
from resource_cache.config import TransitionConfig
from resource_cache.metrics import MetricsCollector
from resource_cache.resource import Resource
from resource_cache.session import LookupSession, ViewState
from resource_cache.source import DataSource, LookupFailed
from resource_cache.transition import TransitionScheduler

CATALOG = {
    "pikachu": {"id": 25},
    "pik": {"id": 0},
    "pi": {"id": -1},
    "p": {"id": -2},
}


def build(env, latency=100.0, ttl=5000.0):
    metrics = MetricsCollector()
    source = DataSource(env, CATALOG, min_latency=latency, max_latency=latency, metrics=metrics)
    cache = ResourceCache(
        env,
        ttl=ttl,
        factory=lambda key: Resource(env, lambda: source.fetch(key), name=key),
        metrics=metrics,
    )
    scheduler = TransitionScheduler(env, TransitionConfig(), metrics)
    session = LookupSession(env, cache, scheduler, metrics)
    return session, cache, source, metrics


def test_empty_query_holds_no_resource(env):
    session, cache, source, _ = build(env)

    session.submit("")
    env.run(until=100)

    assert session.resource is None
    assert session.view is ViewState.IDLE
    assert len(cache) == 0
    assert source.calls == 0


def test_submit_shows_data(env):
    session, cache, source, metrics = build(env)

    session.submit("Pikachu")
    env.run(until=200)

    assert session.view is ViewState.DATA
    assert session.resource.read()["id"] == 25
    assert "pikachu" in cache
    assert metrics.view_changes == [{"time": 100, "state": "data", "query": "Pikachu"}]


def test_failed_lookup_stays_failed_until_reset(env):
    session, cache, source, _ = build(env)

    session.submit("MissingNo")
    env.run(until=200)
    assert session.view is ViewState.ERROR
    with pytest.raises(LookupFailed):
        session.resource.read()

    session.reset()
    assert session.view is ViewState.IDLE
    assert session.resource is None
    assert session.query == ""

    # в пределах TTL тот же ключ возвращает тот же упавший ресурс
    session.submit("missingno")
    env.run(until=300)
    assert session.view is ViewState.ERROR
    assert source.calls == 1


def test_slow_lookup_shows_fallback_then_data(env):
    session, _, _, metrics = build(env, latency=5000)

    session.submit("pikachu")
    env.run(until=4500)
    assert session.view is ViewState.FALLBACK

    env.run(until=6000)
    assert session.view is ViewState.DATA
    assert [v["state"] for v in metrics.view_changes] == ["fallback", "data"]


def test_fast_typing_commits_only_latest_query(env):
    session, cache, source, metrics = build(env)

    def typing():
        for prefix in ("p", "pi", "pik"):
            session.submit(prefix)
            yield env.timeout(50)

    env.process(typing())
    env.run(until=1000)

    assert session.resource.name == "pik"
    assert session.view is ViewState.DATA
    assert [v["state"] for v in metrics.view_changes] == ["data"]
    assert sorted(cache.keys()) == ["p", "pi", "pik"]
    assert source.calls == 3
    assert metrics.busy_changes == []


def test_unknown_source_name_raises_lookup_failed(env):
    source = DataSource(env, CATALOG, min_latency=10, max_latency=10)
    failed = []

    def caller():
        try:
            yield source.fetch("agumon")
        except LookupFailed as exc:
            failed.append(exc.name)

    env.process(caller())
    env.run()
    assert failed == ["agumon"]


def test_lookup_failed_survives_reconstruction_from_args():
    error = LookupFailed("agumon")
    rebuilt = type(error)(*error.args)

    assert rebuilt.name == "agumon"
    assert str(rebuilt) == "Unable to find 'agumon'"
    assert str(error) == str(rebuilt)


def test_resource_over_source_keeps_lookup_failure(env):
    source = DataSource(env, CATALOG, min_latency=10, max_latency=10)
    resource = Resource(env, lambda: source.fetch("agumon"), name="agumon")

    env.run()
    with pytest.raises(LookupFailed) as exc:
        resource.read()
    assert exc.value.name == "agumon"
    assert str(exc.value) == "Unable to find 'agumon'"
