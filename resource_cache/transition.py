"""
Планировщик отложенных переходов.

Переход запрашивает Resource и «фиксирует» его на экране не сразу:

* ресурс готов до busy_delay_ms          → фиксация без индикатора загрузки;
* ресурс всё ещё ждёт через busy_delay_ms → показываем индикатор (is_pending);
* индикатор, раз показанный, держится не меньше busy_min_duration_ms;
* ресурс не готов к timeout_ms           → принудительная фиксация
                                             (экран покажет заглушку).

Таймаут ограничивает только ожидание перехода, операцию он не отменяет.
Новый переход вытесняет предыдущий: тот уже никогда не фиксируется.
Параметры передаются планировщику как есть, кеш о них не знает.
"""

from __future__ import annotations

from typing import Callable, Optional

import simpy

from resource_cache.config import TransitionConfig
from resource_cache.logger import get_logger
from resource_cache.metrics import MetricsCollector
from resource_cache.resource import Resource

logger = get_logger(__name__)


class TransitionScheduler:

    def __init__(
            self,
            env: simpy.Environment,
            config: Optional[TransitionConfig] = None,
            metrics: Optional[MetricsCollector] = None,
    ):
        self.env = env
        self.config = config or TransitionConfig()
        self.metrics = metrics

        self._generation = 0
        self._busy_since: Optional[float] = None

        logger.info(
            f"[Transition] timeout={self.config.timeout_ms}, busy_delay={self.config.busy_delay_ms}, "
            f"busy_min={self.config.busy_min_duration_ms}"
        )

    @property
    def is_pending(self) -> bool:
        """Виден ли сейчас индикатор загрузки."""
        return self._busy_since is not None

    # ------------------------------------------------------------------ #
    def start_transition(
            self,
            request_fn: Callable[[], Optional[Resource]],
            on_commit: Callable[[Optional[Resource]], None],
    ) -> simpy.Process:
        """
        Выполнить request_fn сразу, а on_commit вызвать по правилам перехода.
        """
        self._generation += 1
        resource = request_fn()
        return self.env.process(self._run(self._generation, resource, on_commit))

    def cancel(self) -> None:
        """Бросить текущий переход и сразу спрятать индикатор."""
        self._generation += 1
        if self._busy_since is not None:
            self._set_busy(False)

    # ------------------------------------------------------------------ #
    def _run(self, generation: int, resource: Optional[Resource], on_commit):
        start = self.env.now
        cfg = self.config
        outcome = "committed"

        if resource is not None and not resource.is_settled:
            deadline = start + cfg.timeout_ms

            # индикатор уже виден после вытесненного перехода — задержку не ждём
            if not self.is_pending and cfg.busy_delay_ms < cfg.timeout_ms:
                yield self.env.any_of([resource.settled, self.env.timeout(cfg.busy_delay_ms)])
                if generation != self._generation:
                    self._record(start, "superseded", False)
                    return
                if not resource.is_settled:
                    self._set_busy(True)

            if not resource.is_settled:
                remaining = deadline - self.env.now
                if remaining > 0:
                    yield self.env.any_of([resource.settled, self.env.timeout(remaining)])
                    if generation != self._generation:
                        self._record(start, "superseded", self.is_pending)
                        return
                if not resource.is_settled:
                    outcome = "timed_out"
                    logger.info(f"t={self.env.now:.2f}: [Transition] timed out waiting for {resource}")

        busy_shown = self.is_pending
        on_commit(resource)
        self._record(start, outcome, busy_shown)
        yield from self._release_busy(generation)

    def _release_busy(self, generation: int):
        if self._busy_since is None:
            return
        remaining = self._busy_since + self.config.busy_min_duration_ms - self.env.now
        if remaining > 0:
            yield self.env.timeout(remaining)
            # индикатор теперь принадлежит более новому переходу
            if generation != self._generation or self._busy_since is None:
                return
        self._set_busy(False)

    def _set_busy(self, busy: bool) -> None:
        self._busy_since = self.env.now if busy else None
        logger.debug(f"t={self.env.now:.2f}: [Transition] busy={busy}")
        if self.metrics:
            self.metrics.record_busy(self.env.now, busy)

    def _record(self, start: float, outcome: str, busy_shown: bool) -> None:
        logger.debug(f"t={self.env.now:.2f}: [Transition] {outcome} (started t={start:.2f})")
        if self.metrics:
            self.metrics.record_transition(start, self.env.now, outcome, busy_shown)
