"""
Генераторы пользовательских запросов.

* SubmitClient – отправка формы целиком с пуассоновской интенсивностью,
                 имена в случайном регистре, сброс после ошибки;
* TypingClient – «быстрый набор»: каждое нажатие клавиши отправляет
                 очередной префикс имени.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import simpy

from resource_cache.logger import get_logger
from resource_cache.session import LookupSession, ViewState

logger = get_logger(__name__)


def random_case(name: str) -> str:
    """То же имя в случайном регистре — для проверки нормализации ключей."""
    return "".join(ch.upper() if random.random() < 0.5 else ch.lower() for ch in name)


class _BaseClient(ABC):

    def __init__(
            self,
            env: simpy.Environment,
            session: LookupSession,
            names: Sequence[str],
            *,
            unknown_names: Sequence[str] = (),
            unknown_probability: float = 0.0,
            start_time: float = 0.0,
            name_prefix: str = "Client",
    ):
        if not names:
            raise ValueError("names must not be empty")
        if not (0.0 <= unknown_probability <= 1.0):
            raise ValueError("unknown_probability must be within [0, 1]")

        self.env = env
        self.session = session
        self.names = list(names)
        self.unknown_names = list(unknown_names)
        self.unknown_probability = unknown_probability
        self.start_time = start_time
        self.name_prefix = name_prefix
        self.submissions = 0

        env.process(self._generate())

    def _pick_name(self) -> str:
        if self.unknown_names and random.random() < self.unknown_probability:
            return random.choice(self.unknown_names)
        return random.choice(self.names)

    def _submit(self, name: str) -> None:
        self.submissions += 1
        logger.debug(f"t={self.env.now:.2f}: {self.name_prefix}-{self.submissions} → {name!r}")
        self.session.submit(name)

    @abstractmethod
    def _generate(self):
        """Процесс SimPy, порождающий запросы к сессии."""
        ...


class SubmitClient(_BaseClient):
    """
    Отправка формы с постоянной интенсивностью submit_rate (заявок в мс).
    Если на экране ошибка, с вероятностью reset_probability пользователь
    нажимает «Try again» вместо нового запроса.
    """

    def __init__(
            self,
            env: simpy.Environment,
            session: LookupSession,
            names: Sequence[str],
            *,
            submit_rate: float,
            reset_probability: float = 0.0,
            **kwargs,
    ):
        if submit_rate <= 0:
            raise ValueError("submit_rate must be positive")
        self.submit_rate = submit_rate
        self.reset_probability = reset_probability
        self.resets = 0
        super().__init__(env, session, names, **kwargs)
        logger.info(f"[SubmitClient] started: λ={submit_rate}, start={self.start_time}")

    def _generate(self):
        yield self.env.timeout(self.start_time)
        logger.info(f"[SubmitClient] generation begins at t={self.env.now:.2f}")
        while True:
            if self.session.view is ViewState.ERROR and random.random() < self.reset_probability:
                self.resets += 1
                self.session.reset()
            else:
                self._submit(random_case(self._pick_name()))
            yield self.env.timeout(random.expovariate(self.submit_rate))


class TypingClient(_BaseClient):
    """
    Пользователь печатает имя по букве каждые keystroke_interval мс,
    затем думает think_time мс и начинает следующее.
    """

    def __init__(
            self,
            env: simpy.Environment,
            session: LookupSession,
            names: Sequence[str],
            *,
            keystroke_interval: float,
            think_time: float,
            **kwargs,
    ):
        if keystroke_interval <= 0 or think_time < 0:
            raise ValueError("keystroke_interval must be positive and think_time non-negative")
        self.keystroke_interval = keystroke_interval
        self.think_time = think_time
        self.last_word: Optional[str] = None
        super().__init__(env, session, names, **kwargs)
        logger.info(f"[TypingClient] keystroke={keystroke_interval}, think={think_time}")

    def _generate(self):
        yield self.env.timeout(self.start_time)
        while True:
            word = self._pick_name()
            self.last_word = word
            for i in range(1, len(word) + 1):
                self._submit(word[:i])
                yield self.env.timeout(self.keystroke_interval)

            yield self.env.timeout(self.think_time)
            if self.session.view is ViewState.ERROR:
                self.session.reset()
