"""
Pydantic-конфиг проекта.

Все длительности задаются в миллисекундах симуляционного времени (env.now).
"""

import os
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator


# ---------- логирование ----------
class FileLogConfig(BaseModel):
    path: str
    max_bytes: int = Field(..., alias="max_bytes")
    backup_count: int
    level: str
    fmt: str = Field(..., alias="format")


class ConsoleLogConfig(BaseModel):
    level: str = "INFO"
    fmt: str = Field("%(asctime)s %(levelname)s %(name)s: %(message)s", alias="format")


class LoggingConfig(BaseModel):
    file: Optional[FileLogConfig] = None
    console: ConsoleLogConfig = ConsoleLogConfig()
    date_format: str = "%H:%M:%S"


# ---------- симулятор ----------
class SimulatorConfig(BaseModel):
    random_seed: int = 42
    sim_time: float = 60_000.0
    client_pattern: Literal["submit", "typing"] = "submit"
    # submit-клиент: средняя частота отправки формы (в 1/мс)
    submit_rate: float = 1 / 1500
    reset_probability: float = Field(0.5, ge=0.0, le=1.0)
    unknown_name_probability: float = Field(0.1, ge=0.0, le=1.0)
    # typing-клиент: интервал между нажатиями и пауза между словами
    keystroke_interval: float = 120.0
    think_time: float = 3000.0
    start_time: float = 0.0
    client_prefix: str = "Client"


# ---------- источник данных ----------
class SourceConfig(BaseModel):
    min_latency: float = 200.0
    max_latency: float = 1500.0
    capacity: int = Field(1, ge=1)
    catalog: Dict[str, Dict] = Field(default_factory=lambda: {
        "pikachu": {"id": 25, "number": "025", "type": "electric"},
        "charizard": {"id": 6, "number": "006", "type": "fire"},
        "bulbasaur": {"id": 1, "number": "001", "type": "grass"},
        "squirtle": {"id": 7, "number": "007", "type": "water"},
        "mew": {"id": 151, "number": "151", "type": "psychic"},
    })
    unknown_names: List[str] = Field(default_factory=lambda: ["missingno", "agumon"])

    @model_validator(mode="after")
    def _check_latency(self) -> "SourceConfig":
        if self.min_latency < 0 or self.max_latency < self.min_latency:
            raise ValueError("source latency must satisfy 0 <= min_latency <= max_latency")
        return self


# ---------- кеш ----------
class CacheConfig(BaseModel):
    ttl_ms: float = Field(5000.0, ge=0.0)
    sweep_interval_ms: float = Field(5000.0, gt=0.0)


# ---------- отложенные переходы ----------
class TransitionConfig(BaseModel):
    """
    Параметры планировщика переходов. Кеш и Resource их не интерпретируют.
    """
    timeout_ms: float = Field(4000.0, ge=0.0)
    busy_delay_ms: float = Field(300.0, ge=0.0)
    busy_min_duration_ms: float = Field(700.0, ge=0.0)


# ---------- вывод ----------
class OutputConfig(BaseModel):
    path: str


class Settings(BaseModel):
    logging: LoggingConfig = LoggingConfig()
    simulator: SimulatorConfig = SimulatorConfig()
    source: SourceConfig = SourceConfig()
    cache: CacheConfig = CacheConfig()
    transition: TransitionConfig = TransitionConfig()
    output: Optional[OutputConfig] = None

    # загрузка из YAML
    @classmethod
    def load(cls, path: str | None = None) -> "Settings":
        yaml_path = path or os.getenv("CONFIG_PATH", "config/default.yaml")
        with open(yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.model_validate(data)
