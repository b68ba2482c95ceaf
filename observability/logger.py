"""Structured event logging for interview turns and reports."""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import time
import uuid
from typing import Any

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENABLE_FILE_LOGS = os.getenv("ENABLE_FILE_LOGS", "0") in ("1", "true", "True")
LOG_FILE = os.getenv("LOG_FILE", "logs/interview.log")
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "5242880"))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

HUMAN_FORMAT = "[%(asctime)s] %(levelname)s %(name)s :: %(message)s"
HUMAN_DATEFMT = "%Y-%m-%d %H:%M:%S"

_TAGGED_KEYS = ("reason", "source", "outcome")

_logger = logging.getLogger("interview.events")
_logger.setLevel(LOG_LEVEL)
_logger.propagate = False


def _is_json(record: logging.LogRecord) -> bool:
    return getattr(record, "is_json", False) is True


def _human_formatter() -> logging.Formatter:
    return logging.Formatter(HUMAN_FORMAT, datefmt=HUMAN_DATEFMT)


def _rotating(path: str, *, json_lines: bool) -> logging.Handler:  # File handler taking only one record flavour
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
    handler.setLevel(LOG_LEVEL)
    if json_lines:
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler.addFilter(_is_json)
    else:
        handler.setFormatter(_human_formatter())
        handler.addFilter(lambda record: not _is_json(record))
    return handler


def human_log_path(path: str = LOG_FILE) -> str:
    stem = path[: -len(".log")] if path.endswith(".log") else path
    return f"{stem}-human.log"


def _ensure_handlers() -> None:
    if _logger.handlers:
        return

    console = logging.StreamHandler(stream=sys.stdout)
    console.setLevel(LOG_LEVEL)
    console.setFormatter(_human_formatter())
    console.addFilter(lambda record: not _is_json(record))
    _logger.addHandler(console)

    if not ENABLE_FILE_LOGS:
        return

    log_dir = os.path.dirname(LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    _logger.addHandler(_rotating(LOG_FILE, json_lines=True))
    _logger.addHandler(_rotating(human_log_path(), json_lines=False))


def format_human(evt: dict[str, Any]) -> str:
    """Render an event as ``kind session=... turn=N scored final v4 12ms reason=...``."""

    parts = [f"{evt.get('kind')} session={evt.get('session_id')}"]
    if "turn" in evt:
        turn = f"turn={evt['turn']}"
        if "scored" in evt:
            turn += " scored" if evt["scored"] else " unscored"
        if evt.get("is_final"):
            turn += " final"
        parts.append(turn)
    if "version" in evt:
        parts.append(f"v{evt['version']}")
    if "ms" in evt:
        parts.append(f"{evt['ms']}ms")
    parts.extend(f"{key}={evt[key]}" for key in _TAGGED_KEYS if key in evt)
    return " ".join(parts)


def _emit(level: int, message: str, *, is_json: bool) -> None:
    record = _logger.makeRecord(_logger.name, level, "", 0, message, (), None)
    record.is_json = is_json  # type: ignore[attr-defined]
    _logger.handle(record)


def log_event(kind: str, session_id: str, *, level: int = logging.INFO, **fields: Any) -> dict[str, Any]:
    """Emit one event: a human line everywhere, plus a JSON line when file logs are on.

    Returns the event payload so callers can attach it to responses or tests.
    """

    _ensure_handlers()
    payload: dict[str, Any] = {"ts": time.time(), "trace": str(uuid.uuid4()), "kind": kind, "session_id": session_id}
    payload.update(fields)

    _emit(level, format_human(payload), is_json=False)
    if ENABLE_FILE_LOGS:
        _emit(level, json.dumps(payload, ensure_ascii=False, default=str), is_json=True)
    return payload


__all__ = ["format_human", "human_log_path", "log_event"]
