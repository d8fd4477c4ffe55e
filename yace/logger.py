"""Structured logger writing logfmt or JSON lines to standard error."""

from __future__ import annotations

import json
import os
import sys
import threading
from datetime import datetime, timezone
from typing import Any

_LEVEL_ORDER = {"debug": 0, "info": 1, "warn": 2, "error": 3}
_MISSING = "(MISSING)"
_write_lock = threading.Lock()


def _value_to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _logfmt_value(value: Any) -> str:
    text = _value_to_text(value)
    if text is None:
        return "null"
    if text == "":
        return ""
    if any(ch <= " " or ch in '="' for ch in text):
        return json.dumps(text, ensure_ascii=False)
    return text


def _logfmt_key(key: Any) -> str:
    text = _value_to_text(key) or "null"
    return "".join("_" if ch <= " " or ch in '="' else ch for ch in text)


def _json_value(value: Any) -> Any:
    if isinstance(value, BaseException):
        return str(value)
    if value is None or isinstance(value, (bool, int, float, str, list, dict)):
        return value
    return str(value)


def _pairs(keyvals: tuple) -> list[tuple[Any, Any]]:
    items = list(keyvals)
    if len(items) % 2:
        items.append(_MISSING)
    return list(zip(items[0::2], items[1::2]))


class Logger:
    """Leveled logger with contextual key/value pairs."""

    def __init__(self, fmt: str | None, debug_enabled: bool, context: tuple = ()):
        self._format = fmt
        self._debug_enabled = debug_enabled
        self._context = tuple(context)

    def debug(self, message: str, *args: Any) -> None:
        if self._debug_enabled:
            self._log("debug", ("msg", message, *args))

    def info(self, message: str, *args: Any) -> None:
        self._log("info", ("msg", message, *args))

    def warn(self, message: str, *args: Any) -> None:
        self._log("warn", ("msg", message, *args))

    def error(self, err: Any, message: str, *args: Any) -> None:
        self._log("error", ("msg", message, "err", err, *args))

    def with_values(self, *args: Any) -> Logger:
        """Return a logger that adds the given key/value pairs to every line."""
        return Logger(self._format, self._debug_enabled, self._context + args)

    def is_debug_enabled(self) -> bool:
        return self._debug_enabled

    def _log(self, level: str, keyvals: tuple) -> None:
        if self._format is None:
            return
        minimum = "debug" if self._debug_enabled else "info"
        if _LEVEL_ORDER[level] < _LEVEL_ORDER[minimum]:
            return
        frame = sys._getframe(2)
        caller = f"{os.path.basename(frame.f_code.co_filename)}:{frame.f_lineno}"
        timestamp = datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")
        pairs = [("ts", timestamp), ("caller", caller)]
        pairs += _pairs(self._context)
        pairs.append(("level", level))
        pairs += _pairs(keyvals)
        line = self._render(pairs)
        with _write_lock:
            stream = sys.stderr
            stream.write(line + "\n")
            stream.flush()

    def _render(self, pairs: list[tuple[Any, Any]]) -> str:
        if self._format == "json":
            record = {_value_to_text(k) or "null": _json_value(v) for k, v in pairs}
            return json.dumps(record, sort_keys=True, ensure_ascii=False)
        return " ".join(f"{_logfmt_key(k)}={_logfmt_value(v)}" for k, v in pairs)


def new_logger(format: str, debug_enabled: bool, *args: Any) -> Logger:
    """Create a logger; format "json" gives JSON lines, anything else logfmt."""
    fmt = "json" if format == "json" else "logfmt"
    return Logger(fmt, debug_enabled, args)


def new_nop_logger() -> Logger:
    """Create a logger that discards everything."""
    return Logger(None, False)