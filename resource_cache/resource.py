# resource_cache/resource.py

from enum import Enum
from typing import Any, Callable, List, Optional, Union

import simpy

from resource_cache.logger import get_logger

logger = get_logger(__name__)


class ResourceState(Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class Pending:
    """
    Сигнал «данных ещё нет». Это не значение и не ошибка:
    read() возвращает единственный экземпляр PENDING.
    """
    __slots__ = ()
    state = ResourceState.PENDING

    def __repr__(self):
        return "PENDING"

    def __bool__(self):
        return False


PENDING = Pending()


class Resolved:
    __slots__ = ("value",)
    state = ResourceState.RESOLVED

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self):
        return f"Resolved({self.value!r})"


class Rejected:
    """
    Операция завершилась ошибкой. error — исходное исключение,
    оно повторно выбрасывается без изменений.
    """
    __slots__ = ("error",)
    state = ResourceState.REJECTED

    def __init__(self, error: BaseException):
        self.error = error

    def __repr__(self):
        return f"Rejected({self.error!r})"


Result = Union[Pending, Resolved, Rejected]


class Resource:
    """
    Обёртка над одной асинхронной операцией с синхронным чтением.

    Операция запускается сразу в конструкторе и выполняется ровно один раз.
    Состояние меняется только PENDING → RESOLVED или PENDING → REJECTED.

    :param env: окружение SimPy
    :param operation: фабрика, возвращающая событие SimPy (обычно процесс)
    :param name: имя для логов и метрик
    """

    def __init__(
            self,
            env: simpy.Environment,
            operation: Callable[[], simpy.Event],
            *,
            name: Optional[str] = None,
    ):
        self.env = env
        self.name = name
        self.started_at: float = env.now
        self.settled_at: Optional[float] = None
        self.settled: simpy.Event = env.event()

        self._result: Result = PENDING
        self._callbacks: List[Callable[[Result], None]] = []

        try:
            target = operation()
        except Exception as exc:
            # операция упала ещё до старта — это тоже единственная попытка
            self._settle(Rejected(exc))
        else:
            if target.callbacks is None:
                # событие уже обработано окружением
                self._on_target(target)
            else:
                target.callbacks.append(self._on_target)

    def __repr__(self):
        return f"Resource({self.name}, {self.state.value})"

    # ------------------------------------------------------------------ #
    def _on_target(self, event: simpy.Event) -> None:
        # через callback, а не yield: SimPy бросает в процесс копию исключения,
        # а нам нужно сохранить исходный объект
        if event.ok:
            self._settle(Resolved(event.value))
        else:
            event.defused = True
            self._settle(Rejected(event.value))

    def _settle(self, result: Result) -> None:
        self._result = result
        self.settled_at = self.env.now
        logger.debug(f"t={self.env.now:.2f}: RESOURCE {self.name} -> {result!r}")

        self.settled.succeed(result)
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(result)

    # ------------------------------------------------------------------ #
    @property
    def state(self) -> ResourceState:
        return self._result.state

    @property
    def is_settled(self) -> bool:
        return self._result is not PENDING

    def poll(self) -> Result:
        """Текущий результат без выбрасывания исключений."""
        return self._result

    def read(self) -> Any:
        """
        Синхронное чтение:
        - PENDING, пока операция не завершилась;
        - одно и то же значение после успеха;
        - то же самое исключение при каждом вызове после ошибки.
        """
        result = self._result
        if isinstance(result, Rejected):
            raise result.error
        if isinstance(result, Resolved):
            return result.value
        return PENDING

    def on_settle(self, callback: Callable[[Result], None]) -> None:
        """
        Подписка на завершение. Если ресурс уже завершён,
        callback вызывается сразу.
        """
        if self.is_settled:
            callback(self._result)
        else:
            self._callbacks.append(callback)
