"""Logging setup plus structured context for session and tool-call fields."""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator

from sidekick.paths import log_dir

DEFAULT_LOG_MAX_BYTES = 5_000_000
DEFAULT_LOG_BACKUPS = 3
TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_CONTEXT_FIELDS: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "sidekick_log_context", default={}
)


@dataclass(frozen=True)
class LogConfig:
    """Resolved logging settings for the CLI entrypoint."""

    log_file: Path
    level: int = logging.INFO
    stderr: bool = False
    json: bool = False
    max_bytes: int = DEFAULT_LOG_MAX_BYTES
    backup_count: int = DEFAULT_LOG_BACKUPS
    logger_levels: Dict[str, int] = field(default_factory=dict)


def _env_level(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    if value.isdigit():
        return int(value)
    return logging._nameToLevel.get(value.upper(), default)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    with contextlib.suppress(ValueError):
        return int(value)
    return default


def _env_logger_levels(name: str) -> Dict[str, int]:
    """Parse `logger=LEVEL` pairs, e.g. `httpx=WARNING,pydantic_ai=DEBUG`."""

    levels: Dict[str, int] = {}
    for item in (os.getenv(name) or "").split(","):
        logger_name, sep, value = item.partition("=")
        if not sep or not logger_name.strip():
            continue
        value = value.strip()
        if value.isdigit():
            levels[logger_name.strip()] = int(value)
        elif value.upper() in logging._nameToLevel:
            levels[logger_name.strip()] = logging._nameToLevel[value.upper()]
    return levels


def build_log_config(*, log_file_name: str, default_level: int = logging.INFO) -> LogConfig:
    """Build a LogConfig from SIDEKICK_LOG_* environment variables."""

    directory = Path(os.getenv("SIDEKICK_LOG_DIR") or log_dir())
    directory.mkdir(parents=True, exist_ok=True)
    return LogConfig(
        log_file=directory / log_file_name,
        level=_env_level("SIDEKICK_LOG_LEVEL", default_level),
        stderr=_env_flag("SIDEKICK_LOG_STDERR", False),
        json=_env_flag("SIDEKICK_LOG_JSON", False),
        max_bytes=_env_int("SIDEKICK_LOG_MAX_BYTES", DEFAULT_LOG_MAX_BYTES),
        backup_count=_env_int("SIDEKICK_LOG_BACKUPS", DEFAULT_LOG_BACKUPS),
        logger_levels=_env_logger_levels("SIDEKICK_LOG_LEVELS"),
    )


def configure_logging(config: LogConfig) -> None:
    """Replace root handlers with a rotating file handler (and optional stderr)."""

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(config.level)

    formatter: logging.Formatter = JsonFormatter() if config.json else ContextFormatter(TEXT_FORMAT)
    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
    ]
    if config.stderr:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(ContextFilter())
        root.addHandler(handler)

    for name, level in config.logger_levels.items():
        logging.getLogger(name).setLevel(level)


@contextlib.contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Attach fields to every log record emitted inside the block.

    Nested blocks merge with the outer fields; None values are dropped.
    """

    merged = {**_CONTEXT_FIELDS.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _CONTEXT_FIELDS.set(merged)
    try:
        yield
    finally:
        _CONTEXT_FIELDS.reset(token)


def current_log_context() -> Dict[str, Any]:
    return dict(_CONTEXT_FIELDS.get())


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log a short, stable event name with structured fields."""

    logger.log(level, event, extra={"event_fields": fields})


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        if value == "":
            return '""'
        if any(ch.isspace() for ch in value) or "=" in value or '"' in value:
            return json.dumps(value)
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=True, separators=(",", ":"), default=str)
    return str(value)


def _render_fields(fields: Dict[str, Any]) -> str:
    return " ".join(f"{key}={_render_value(fields[key])}" for key in sorted(fields) if fields[key] is not None)


class ContextFilter(logging.Filter):
    """Copy the active log context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 - logging API name
        record.context_fields = current_log_context()
        record.event_fields = getattr(record, "event_fields", {})
        return True


class ContextFormatter(logging.Formatter):
    """Plain-text formatter that appends key=value context and event fields."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        suffix = " ".join(
            part
            for part in (
                _render_fields(getattr(record, "context_fields", {})),
                _render_fields(getattr(record, "event_fields", {})),
            )
            if part
        )
        return f"{base} {suffix}" if suffix else base


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for jq or log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context_fields", {})
        fields = getattr(record, "event_fields", {})
        if context:
            payload["context"] = context
        if fields:
            payload["fields"] = fields
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)
