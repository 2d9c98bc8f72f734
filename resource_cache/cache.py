# resource_cache/cache.py

import threading
from typing import Any, Callable, Dict, List, Optional

import simpy

from resource_cache.logger import get_logger
from resource_cache.metrics import MetricsCollector
from resource_cache.resource import Resource

logger = get_logger(__name__)

ResourceFactory = Callable[[str], Resource]


def normalize_key(raw_key: str) -> str:
    """
    Нормализация имени ресурса: casefold без учёта локали.
    Пустой ключ запрещён — для него ресурс не создаётся никогда.
    """
    if not isinstance(raw_key, str):
        raise TypeError(f"key must be a string, got {type(raw_key).__name__}")
    if not raw_key:
        raise ValueError("key must be a non-empty string")
    return raw_key.casefold()


class CacheEntry:
    """
    Снимок записи кеша для диагностики.
    Attributes:
        key: нормализованное имя ресурса.
        resource: живой Resource для этого ключа.
        expires_at: момент (env.now), после которого запись можно вытеснить.
    """
    __slots__ = ("key", "resource", "expires_at")

    def __init__(self, key: str, resource: Resource, expires_at: float):
        self.key = key
        self.resource = resource
        self.expires_at = expires_at

    def __repr__(self):
        return f"CacheEntry({self.key}, expires_at={self.expires_at:.2f})"


class ResourceCache:
    """
    Кеш ресурсов со скользящим TTL и дедупликацией запросов.

    - get_or_create возвращает существующий Resource или создаёт новый;
      в обоих случаях срок жизни ключа продлевается до now + ttl.
    - Фоновая очистка (sweep) раз в sweep_interval удаляет записи,
      срок жизни которых истёк строго раньше текущего момента.
    - Изменения словарей выполняются под блокировкой, поэтому на один ключ
      в окне TTL запускается не более одной операции.
    """

    def __init__(
            self,
            env: simpy.Environment,
            ttl: float,
            *,
            factory: Optional[ResourceFactory] = None,
            sweep_interval: float = 5000.0,
            metrics: Optional[MetricsCollector] = None,
    ):
        if ttl < 0:
            raise ValueError("TTL must be non-negative")
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")

        self.env = env
        self._ttl = ttl
        self._sweep_interval = sweep_interval
        self._factory = factory
        self._metrics = metrics

        self._resources: Dict[str, Resource] = {}
        self._expirations: Dict[str, float] = {}
        self._lock = threading.RLock()
        self._sweeper: Optional[simpy.Process] = None

        logger.info(f"ResourceCache initialized with ttl={ttl}, sweep_interval={sweep_interval}")

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def sweep_interval(self) -> float:
        return self._sweep_interval

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, raw_key: Any) -> bool:
        try:
            key = normalize_key(raw_key)
        except (TypeError, ValueError):
            return False
        return key in self._resources

    # ------------------------------------------------------------------------- #
    #                               Основной поиск                               #
    # ------------------------------------------------------------------------- #
    def get_or_create(self, raw_key: str, create_fn: Optional[ResourceFactory] = None) -> Resource:
        """
        Вернуть Resource для ключа, создав его при отсутствии.

        :param raw_key: имя ресурса в произвольном регистре
        :param create_fn: фабрика Resource по нормализованному ключу;
                          по умолчанию используется factory из конструктора
        """
        key = normalize_key(raw_key)
        build = create_fn or self._factory
        now = self.env.now

        with self._lock:
            resource = self._resources.get(key)
            if resource is None:
                if build is None:
                    raise ValueError("no create_fn given and the cache has no default factory")
                resource = build(key)
                self._resources[key] = resource
                event = "create"
                logger.debug(f"t={now:.2f}: CACHE CREATE key={key}")
            else:
                event = "hit"
                logger.debug(f"t={now:.2f}: CACHE HIT key={key} state={resource.state.value}")

            # скользящий TTL: продлеваем при каждом обращении, в том числе для упавших ресурсов
            self._expirations[key] = now + self._ttl
            cache_size = len(self._resources)

        if self._metrics:
            self._metrics.record_lookup(now, raw_key, key, event, cache_size)
        return resource

    # ------------------------------------------------------------------------- #
    #                                  Очистка                                   #
    # ------------------------------------------------------------------------- #
    def sweep(self) -> List[str]:
        """
        Удаляет записи с expires_at < now. Незавершённые операции не отменяются.
        Возвращает список вытесненных ключей.
        """
        now = self.env.now
        with self._lock:
            expired = [key for key, expires_at in self._expirations.items() if expires_at < now]
            for key in expired:
                del self._expirations[key]
                self._resources.pop(key, None)
            cache_size = len(self._resources)

        for key in expired:
            logger.info(f"t={now:.2f}: CACHE EVICT key={key}")
        if self._metrics:
            for key in expired:
                self._metrics.record_event(now, "evict", key, cache_size)
            self._metrics.record_sweep(now, len(expired), cache_size)
        return expired

    def _sweep_loop(self):
        try:
            while True:
                yield self.env.timeout(self._sweep_interval)
                self.sweep()
        except simpy.Interrupt:
            logger.debug(f"t={self.env.now:.2f}: sweep loop stopped")

    # ------------------------------------------------------------------------- #
    #                              Жизненный цикл                                #
    # ------------------------------------------------------------------------- #
    @property
    def running(self) -> bool:
        return self._sweeper is not None

    def start(self) -> None:
        """Запускает фоновую очистку. Повторный вызов ничего не делает."""
        if self._sweeper is not None:
            return
        self._sweeper = self.env.process(self._sweep_loop())
        logger.info(f"t={self.env.now:.2f}: sweep started, interval={self._sweep_interval}")

    def stop(self) -> None:
        """Останавливает фоновую очистку. Записи кеша не трогает."""
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is None:
            return
        if sweeper.is_alive:
            sweeper.interrupt("cache stopped")
        logger.info(f"t={self.env.now:.2f}: sweep stopped")

    # ------------------------------------------------------------------------- #
    #                               Диагностика                                  #
    # ------------------------------------------------------------------------- #
    def keys(self) -> List[str]:
        with self._lock:
            return list(self._resources)

    def expiration_of(self, raw_key: str) -> Optional[float]:
        with self._lock:
            return self._expirations.get(normalize_key(raw_key))

    def snapshot(self) -> List[CacheEntry]:
        with self._lock:
            return [
                CacheEntry(key, resource, self._expirations[key])
                for key, resource in self._resources.items()
            ]
