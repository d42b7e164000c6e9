"""Application and access logging for the mission control API.

``app.log`` receives the ``solara_control`` logger tree (engine fallbacks,
routing decisions, telemetry failures) and ``access.log`` receives one JSON
line per HTTP request from ``uvicorn.access``. Both rotate at midnight.

Environment variables: LOG_DIR, LOG_LEVEL, LOG_JSON, LOG_RETENTION_DAYS,
LOG_ROTATE_UTC.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import time
from logging.handlers import TimedRotatingFileHandler
from typing import Any, Mapping, cast
from uuid import uuid4

from fastapi import FastAPI, Request

APP_LOGGER_NAME = "solara_control"
ACCESS_LOGGER_NAME = "uvicorn.access"
REQUEST_ID_HEADER = "X-Request-Id"

# Liveness and metrics probes are not access-logged.
UNLOGGED_PATHS = frozenset({"/api/health", "/api/metrics"})

SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "x-api-key",
        "x-telegram-bot-api-secret-token",
    }
)

# Extra attributes that modules attach with ``logger.info(..., extra={...})``.
_CONTEXT_FIELDS = ("conversation_id", "agent")


@dataclasses.dataclass(frozen=True)
class LoggingConfig:
    log_dir: str = "logs"
    level: int = logging.INFO
    json_lines: bool = False
    retention_days: int = 7
    rotate_utc: bool = False

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        level_name = os.getenv("LOG_LEVEL", "INFO").upper()
        return cls(
            log_dir=os.getenv("LOG_DIR", "logs"),
            level=getattr(logging, level_name, logging.INFO),
            json_lines=os.getenv("LOG_JSON", "false").lower() == "true",
            retention_days=int(os.getenv("LOG_RETENTION_DAYS", "7")),
            rotate_utc=os.getenv("LOG_ROTATE_UTC", "false").lower() == "true",
        )


class JsonFormatter(logging.Formatter):
    """One JSON object per record, used when LOG_JSON=true."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "level": record.levelname,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def scrub_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return ``headers`` with credentials and webhook secrets masked."""

    return {
        name: "***" if name.lower() in SENSITIVE_HEADERS else value
        for name, value in headers.items()
    }


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _install_access_logging(app: FastAPI) -> None:
    """Log each request as JSON and echo its correlation id back."""

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        if request.url.path in UNLOGGED_PATHS:
            return await call_next(request)

        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        access_logger.info(
            json.dumps(
                {
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                    "client_ip": _client_ip(request),
                    "headers": scrub_headers(request.headers),
                },
                ensure_ascii=False,
            )
        )
        return response


def _file_handler(
    config: LoggingConfig, filename: str, formatter: logging.Formatter
) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        os.path.join(config.log_dir, filename),
        when="midnight",
        backupCount=config.retention_days,
        utc=config.rotate_utc,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def init_logging(app: FastAPI | None = None) -> None:
    """Attach file handlers and, when ``app`` is given, the access middleware.

    Existing application handlers are kept; access handlers are replaced.
    """

    config = LoggingConfig.from_env()
    os.makedirs(config.log_dir, exist_ok=True)
    if config.json_lines:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s in %(name)s: %(message)s")

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    if not app_logger.handlers:
        app_logger.addHandler(_file_handler(config, "app.log", formatter))
    app_logger.setLevel(config.level)

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.handlers.clear()
    access_logger.addHandler(_file_handler(config, "access.log", formatter))
    access_logger.setLevel(config.level)

    if app is not None:
        cast(Any, app).logger = app_logger
        _install_access_logging(app)
