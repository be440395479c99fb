"""Structured logger that renders console lines and sends them to the proxy host."""

from __future__ import annotations

import dataclasses
import enum
import inspect
import json
import os
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Protocol


class LogType(enum.IntEnum):
    """Log levels understood by the proxy host."""

    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    CRITICAL = 5


class LogSink(Protocol):
    def log(self, level: LogType, msg: str) -> None: ...


_PLAIN_TYPES = (str, bytes, bytearray, int, float, bool, type(None), list, tuple, dict)


def default_render(keys_and_values: Iterable[Any]) -> list[Any]:
    """Render values of key/value pairs through ``marshal_log`` or ``__str__``.

    Values with a ``marshal_log`` method are replaced by its result; values
    of other types that define their own string form become that string.
    """
    rendered = list(keys_and_values)
    for i in range(1, len(rendered), 2):
        value = rendered[i]
        marshal = getattr(value, "marshal_log", None)
        if callable(marshal):
            rendered[i] = marshal()
        elif not isinstance(value, _PLAIN_TYPES) and type(value).__str__ is not object.__str__:
            rendered[i] = str(value)
    return rendered


def level_to_log_type(level: int) -> LogType:
    """Map a verbosity level to a host log type: 0 is info, above is debug."""
    return LogType.INFO if level == 0 else LogType.DEBUG


def _pairs(keys_and_values: list[Any]) -> Iterator[tuple[str, Any]]:
    for key, value in zip(keys_and_values[::2], keys_and_values[1::2]):
        if isinstance(key, str):
            yield key, value


def _needs_quote(s: str) -> bool:
    return any(ord(c) < 0x20 or ord(c) > 0x7E or c in ' \\"=' for c in s)


def _format_value(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False) if _needs_quote(value) else value
    if isinstance(value, enum.Enum):
        value = value.value
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), sort_keys=True)
    except (TypeError, ValueError):
        return _format_value(str(value))


def _format_fields(fields: dict[str, Any]) -> list[str]:
    keys = sorted(fields)
    if "error" in fields:
        keys.remove("error")
        keys.insert(0, "error")
    return [f"{key}={_format_value(fields[key])}" for key in keys]


def _relative(path: str) -> str:
    try:
        return os.path.relpath(path)
    except ValueError:
        return path


def _caller(skip: int) -> str | None:
    frame = inspect.currentframe()
    try:
        for _ in range(skip + 1):
            if frame is None:
                return None
            frame = frame.f_back
        if frame is None:
            return None
        return f"{_relative(frame.f_code.co_filename)}:{frame.f_lineno}"
    finally:
        del frame


@dataclass(frozen=True)
class Logger:
    """Leveled, named logger with key/value context.

    Each entry becomes one console-style line: the caller, the message and
    the fields sorted by key, with any error field first.
    """

    sink: LogSink
    name: str = ""
    depth: int = 0
    level: int = 0
    context: tuple[tuple[str, Any], ...] = ()

    def info(self, msg: str, *args: Any) -> None:
        """Log a message at this logger's verbosity level."""
        self._emit(level_to_log_type(self.level), msg, {"v": self.level}, args)

    def error(self, err: BaseException | None, msg: str, *args: Any) -> None:
        """Log an error together with a message."""
        fields = {} if err is None else {"error": str(err)}
        self._emit(LogType.ERROR, msg, fields, args)

    def v(self, level: int) -> Logger:
        """Return a logger whose info entries are ``level`` steps more verbose."""
        return dataclasses.replace(self, level=self.level + max(level, 0))

    def with_name(self, name: str) -> Logger:
        """Return a logger with ``name`` appended to its name, joined by '/'."""
        full = f"{self.name}/{name}" if self.name else name
        return dataclasses.replace(self, name=full)

    def with_values(self, *args: Any) -> Logger:
        """Return a logger that adds the given key/value pairs to every entry."""
        extra = tuple(_pairs(default_render(args)))
        return dataclasses.replace(self, context=self.context + extra)

    def with_call_depth(self, depth: int) -> Logger:
        """Return a logger that reports a caller ``depth`` frames further up."""
        return dataclasses.replace(self, depth=self.depth + depth)

    def _emit(
        self,
        log_type: LogType,
        msg: str,
        event_fields: dict[str, Any],
        args: tuple[Any, ...],
    ) -> None:
        # Frames up from _caller: _emit, info/error, the user's call site.
        caller = _caller(2 + self.depth)

        fields: dict[str, Any] = dict(self.context)
        fields.update(event_fields)
        if self.name:
            fields["logger"] = self.name
        fields.update(_pairs(default_render(args)))

        parts = []
        if caller:
            parts.append(f"{caller} >")
        message = msg.removesuffix("\n")
        if message:
            parts.append(message)
        parts.extend(_format_fields(fields))

        self.sink.log(log_type, " ".join(parts))