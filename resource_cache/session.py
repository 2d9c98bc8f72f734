# resource_cache/session.py

from enum import Enum
from typing import Optional

import simpy

from resource_cache.cache import ResourceCache
from resource_cache.logger import get_logger
from resource_cache.metrics import MetricsCollector
from resource_cache.resource import Resource, ResourceState
from resource_cache.transition import TransitionScheduler

logger = get_logger(__name__)


class ViewState(Enum):
    IDLE = "idle"          # запрос не задан
    FALLBACK = "fallback"  # ресурс зафиксирован, но ещё не готов
    DATA = "data"
    ERROR = "error"


class LookupSession:
    """
    Сессия поиска: текущий запрос, удерживаемый Resource и то, что видно на экране.

    Запрос к кешу делается внутри перехода, поэтому быстрые повторные
    запросы не показывают заглушку на каждое нажатие.
    Пустой запрос освобождает Resource и ничего не запрашивает.
    """

    def __init__(
            self,
            env: simpy.Environment,
            cache: ResourceCache,
            scheduler: TransitionScheduler,
            metrics: Optional[MetricsCollector] = None,
    ):
        self.env = env
        self.cache = cache
        self.scheduler = scheduler
        self.metrics = metrics

        self.query: str = ""
        self.resource: Optional[Resource] = None
        self.view: ViewState = ViewState.IDLE
        self._shown: Optional[Resource] = None

    @property
    def is_pending(self) -> bool:
        return self.scheduler.is_pending

    def submit(self, name: str) -> None:
        self.query = name
        if not name:
            self.scheduler.cancel()
            self._commit(None)
            return

        self.scheduler.start_transition(
            lambda: self.cache.get_or_create(name),
            self._commit,
        )

    def reset(self) -> None:
        """Сброс после ошибки: то же, что пустой запрос."""
        logger.debug(f"t={self.env.now:.2f}: session reset")
        self.submit("")

    # ------------------------------------------------------------------ #
    def _commit(self, resource: Optional[Resource]) -> None:
        self.resource = resource
        if resource is not None and not resource.is_settled:
            resource.on_settle(lambda _: self._on_settle(resource))
        self._refresh()

    def _on_settle(self, resource: Resource) -> None:
        # за время ожидания на экране мог появиться другой ресурс
        if resource is self.resource:
            self._refresh()

    def _refresh(self) -> None:
        resource = self.resource
        if resource is None:
            view = ViewState.IDLE
        elif resource.state is ResourceState.RESOLVED:
            view = ViewState.DATA
        elif resource.state is ResourceState.REJECTED:
            view = ViewState.ERROR
        else:
            view = ViewState.FALLBACK

        if view is self.view and resource is self._shown:
            return
        self.view = view
        self._shown = resource
        logger.debug(f"t={self.env.now:.2f}: view -> {view.value} (query={self.query!r})")
        if self.metrics:
            self.metrics.record_view(self.env.now, view.value, self.query)
