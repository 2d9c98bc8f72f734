import pytest
import simpy

from resource_cache.resource import Resource


@pytest.fixture
def env():
    return simpy.Environment()


def delayed(env, delay, value=None, error=None):
    """Процесс SimPy: ждёт delay и возвращает value или падает с error."""

    def proc():
        yield env.timeout(delay)
        if error is not None:
            raise error
        return value

    return env.process(proc())


class CountingFactory:
    """Фабрика Resource, которая запоминает, для каких ключей её вызывали."""

    def __init__(self, env, delay=100.0, error=None):
        self.env = env
        self.delay = delay
        self.error = error
        self.created = []

    def __call__(self, key):
        self.created.append(key)
        value = f"data:{key}:{len(self.created)}"
        return Resource(self.env, lambda: delayed(self.env, self.delay, value, self.error), name=key)


@pytest.fixture
def factory(env):
    return CountingFactory(env)
