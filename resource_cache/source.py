# resource_cache/source.py

import random
from typing import Any, Dict, Optional

import simpy

from resource_cache.logger import get_logger
from resource_cache.metrics import MetricsCollector

logger = get_logger(__name__)


class LookupFailed(LookupError):
    """Источник не знает запрошенного имени."""

    def __init__(self, name: str):
        # args == (name,): SimPy копирует исключение как type(e)(*e.args)
        super().__init__(name)
        self.name = name

    def __str__(self):
        return f"Unable to find {self.name!r}"


class DataSource:
    """
    «Чёрный ящик» с данными: обслуживает запросы через общую очередь
    с равномерно распределённой задержкой.

    Кеш к источнику напрямую не обращается — только через фабрику Resource.
    """

    def __init__(
            self,
            env: simpy.Environment,
            catalog: Dict[str, Any],
            *,
            min_latency: float,
            max_latency: float,
            capacity: int = 1,
            metrics: Optional[MetricsCollector] = None,
    ):
        if min_latency < 0 or max_latency < min_latency:
            raise ValueError("latency must satisfy 0 <= min_latency <= max_latency")
        self.env = env
        self.catalog = {name.casefold(): record for name, record in catalog.items()}
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.metrics = metrics
        self.server = simpy.Resource(env, capacity=capacity)
        self.calls = 0

    def fetch(self, name: str) -> simpy.Process:
        """
        Запрос записи по имени. Возвращает процесс SimPy, который
        завершится записью каталога или ошибкой LookupFailed.
        """
        self.calls += 1
        return self.env.process(self._fetch_proc(name))

    def _fetch_proc(self, name: str):
        arr = self.env.now
        # общая очередь
        with self.server.request() as req:
            yield req
            yield self.env.timeout(random.uniform(self.min_latency, self.max_latency))

        finish = self.env.now
        record = self.catalog.get(name.casefold())
        if self.metrics:
            self.metrics.record_source_call(name, arr, finish, record is not None)

        if record is None:
            logger.info(f"t={finish:.2f}: Source miss {name}, wait={finish - arr:.2f}")
            raise LookupFailed(name)

        logger.info(f"t={finish:.2f}: Served {name}, wait={finish - arr:.2f}")
        return {"name": name, **record}
