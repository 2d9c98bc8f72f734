# resource_cache/simulator.py

import json
import random
from datetime import datetime
from pathlib import Path

import simpy

from resource_cache.cache import ResourceCache
from resource_cache.client import SubmitClient, TypingClient
from resource_cache.config import Settings
from resource_cache.logger import get_logger
from resource_cache.metrics import MetricsCollector
from resource_cache.resource import Resource
from resource_cache.session import LookupSession
from resource_cache.source import DataSource
from resource_cache.transition import TransitionScheduler

logger = get_logger(__name__)


class Simulator:
    """
    Фасад симулятора: строит окружение, источник данных, кеш ресурсов,
    планировщик переходов, сессию и клиента, затем запускает DES.
    """

    def __init__(self, settings: Settings):
        self.cfg = settings
        self.env = simpy.Environment()
        self.metrics = MetricsCollector()
        self.exported_to = None

        # фиксируем seed для воспроизводимости
        random.seed(self.cfg.simulator.random_seed)

        # 1) Источник данных
        src = self.cfg.source
        self.source = DataSource(
            env=self.env,
            catalog=src.catalog,
            min_latency=src.min_latency,
            max_latency=src.max_latency,
            capacity=src.capacity,
            metrics=self.metrics,
        )

        # 2) Кеш: к источнику ходит только фабрика ресурсов
        self.cache = ResourceCache(
            env=self.env,
            ttl=self.cfg.cache.ttl_ms,
            factory=self.create_resource,
            sweep_interval=self.cfg.cache.sweep_interval_ms,
            metrics=self.metrics,
        )

        # 3) Переходы и сессия
        self.scheduler = TransitionScheduler(self.env, self.cfg.transition, self.metrics)
        self.session = LookupSession(self.env, self.cache, self.scheduler, self.metrics)

        # 4) Клиентский генератор
        self.client = self._init_client()

    def create_resource(self, key: str) -> Resource:
        resource = Resource(self.env, lambda: self.source.fetch(key), name=key)
        resource.on_settle(
            lambda result: self.metrics.record_settlement(
                key, resource.started_at, self.env.now, result.state.value
            )
        )
        return resource

    def _init_client(self):
        scfg = self.cfg.simulator
        names = list(self.cfg.source.catalog)
        common = dict(
            unknown_names=self.cfg.source.unknown_names,
            unknown_probability=scfg.unknown_name_probability,
            start_time=scfg.start_time,
            name_prefix=scfg.client_prefix,
        )

        if scfg.client_pattern == "submit":
            return SubmitClient(
                self.env,
                self.session,
                names,
                submit_rate=scfg.submit_rate,
                reset_probability=scfg.reset_probability,
                **common,
            )
        if scfg.client_pattern == "typing":
            return TypingClient(
                self.env,
                self.session,
                names,
                keystroke_interval=scfg.keystroke_interval,
                think_time=scfg.think_time,
                **common,
            )
        raise ValueError(f"Unknown simulator.client_pattern «{scfg.client_pattern}»")

    def run(self) -> dict:
        t_end = self.cfg.simulator.sim_time
        logger.info(f"=== Simulation start until t={t_end} ===")

        self.cache.start()
        try:
            self.env.run(until=t_end)
        finally:
            self.cache.stop()

        # Собираем итоговые метрики
        self.metrics.collect_from(self)
        summary = self.metrics.summary()

        # Экспортим результаты
        payload = {
            "settings": self.cfg.model_dump(),
            "metrics": summary,
        }
        if self.cfg.output and self.cfg.output.path:
            fn = Path(self.cfg.output.path).with_suffix("")
            fn = fn.with_name(f"{fn.stem}_{datetime.now():%Y%m%d_%H%M%S}.json")
            fn.parent.mkdir(parents=True, exist_ok=True)
            with open(fn, "w", encoding="utf-8") as out:
                json.dump(payload, out, indent=2, ensure_ascii=False)
            logger.info(f"[Simulator] Metrics exported to {fn}")
            self.exported_to = fn
        return summary
