import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from resource_cache.config import Settings
from resource_cache import logger as rc_logger
from resource_cache.logger import setup_logging

DEFAULT_CONFIG = Path(__file__).resolve().parents[1] / "config" / "default.yaml"


def test_defaults():
    settings = Settings()
    assert settings.cache.ttl_ms == 5000
    assert settings.cache.sweep_interval_ms == 5000
    assert settings.transition.timeout_ms == 4000
    assert settings.transition.busy_delay_ms == 300
    assert settings.transition.busy_min_duration_ms == 700
    assert settings.output is None


def test_load_default_yaml():
    settings = Settings.load(str(DEFAULT_CONFIG))
    assert settings.cache.ttl_ms == 5000
    assert settings.logging.console.fmt.startswith("%(asctime)s")
    assert settings.logging.file.max_bytes == 1048576
    assert "pikachu" in settings.source.catalog


def test_load_from_env_path(tmp_path, monkeypatch):
    path = tmp_path / "cfg.yaml"
    path.write_text("cache:\n  ttl_ms: 250\n  sweep_interval_ms: 100\n", encoding="utf-8")
    monkeypatch.setenv("CONFIG_PATH", str(path))

    settings = Settings.load()
    assert settings.cache.ttl_ms == 250
    assert settings.cache.sweep_interval_ms == 100
    assert settings.transition.timeout_ms == 4000


@pytest.mark.parametrize("text", [
    "cache:\n  sweep_interval_ms: 0\n",
    "cache:\n  ttl_ms: -5\n",
    "source:\n  min_latency: 10\n  max_latency: 5\n",
    "simulator:\n  client_pattern: burst\n",
])
def test_invalid_settings_rejected(tmp_path, text):
    path = tmp_path / "bad.yaml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ValidationError):
        Settings.load(str(path))


def test_setup_logging_does_not_duplicate_handlers(tmp_path):
    settings = Settings.model_validate({
        "logging": {
            "console": {"level": "warning", "format": "%(message)s"},
            "file": {
                "path": str(tmp_path / "run.log"),
                "max_bytes": 1024,
                "backup_count": 1,
                "level": "debug",
                "format": "%(levelname)s %(message)s",
            },
        }
    })
    root = logging.getLogger()
    setup_logging(settings)
    setup_logging(settings)
    try:
        ours = rc_logger._installed_handlers
        assert len(ours) == 2
        assert all(h in root.handlers for h in ours)
        assert sum(1 for h in root.handlers if h in ours) == 2
        assert root.level == logging.DEBUG
        logging.getLogger("resource_cache.test").debug("hello")
        for handler in root.handlers:
            handler.flush()
        assert "DEBUG hello" in (tmp_path / "run.log").read_text(encoding="utf-8")
    finally:
        while rc_logger._installed_handlers:
            handler = rc_logger._installed_handlers.pop()
            root.removeHandler(handler)
            handler.close()
