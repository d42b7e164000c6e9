import json
import logging
from logging.handlers import TimedRotatingFileHandler

import pytest
from starlette.testclient import TestClient

from conftest import ScriptedProvider
from solara_control.agents.orchestrator import OrchestratorEngine
from solara_control.agents.providers import ProviderError
from solara_control.agents.schemas import OrchestratorInput
from solara_control.app_logging import APP_LOGGER_NAME, LoggingConfig, init_logging


@pytest.fixture(autouse=True)
def fresh_loggers():
    for name in (APP_LOGGER_NAME, "uvicorn.access"):
        logging.getLogger(name).handlers.clear()
    yield
    for name in (APP_LOGGER_NAME, "uvicorn.access"):
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()


def _flush():
    for name in (APP_LOGGER_NAME, "uvicorn.access"):
        for handler in logging.getLogger(name).handlers:
            handler.flush()


def test_config_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_RETENTION_DAYS", "5")
    monkeypatch.setenv("LOG_ROTATE_UTC", "true")

    config = LoggingConfig.from_env()

    assert config == LoggingConfig(
        log_dir=str(tmp_path), level=logging.DEBUG, retention_days=5, rotate_utc=True
    )


def test_unknown_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "chatty")

    assert LoggingConfig.from_env().level == logging.INFO


def test_rotation_settings_reach_both_handlers(monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_RETENTION_DAYS", "5")

    init_logging()

    for name in (APP_LOGGER_NAME, "uvicorn.access"):
        handler = next(
            h for h in logging.getLogger(name).handlers if isinstance(h, TimedRotatingFileHandler)
        )
        assert handler.when == "MIDNIGHT"
        assert handler.backupCount == 5


def test_engine_fallback_is_written_to_app_log(tmp_path, app_factory, registry):
    app = app_factory(tmp_path)
    engine = OrchestratorEngine(ScriptedProvider(ProviderError("timeout")), registry)

    engine.decide(OrchestratorInput(message="Oi", conversation_id="telegram:42"))
    with TestClient(app) as client:
        assert client.post("/hook", json={"update_id": 1}).status_code == 200
    _flush()

    app_log = (tmp_path / "app.log").read_text()
    assert "Orchestrator completion failed for conversation telegram:42" in app_log
    access_line = (tmp_path / "access.log").read_text().splitlines()[-1]
    assert json.loads(access_line.split(": ", 1)[1])["path"] == "/hook"


def test_json_lines_carry_conversation_id(tmp_path, app_factory, registry):
    app_factory(tmp_path, json_lines=True)
    engine = OrchestratorEngine(ScriptedProvider("not json"), registry)

    engine.decide(OrchestratorInput(message="Oi", conversation_id="telegram:7"))
    _flush()

    entry = json.loads((tmp_path / "app.log").read_text().splitlines()[-1])
    assert entry["level"] == "WARNING"
    assert entry["logger"] == "solara_control.agents.orchestrator"
    assert entry["conversation_id"] == "telegram:7"
    assert "agent" not in entry
