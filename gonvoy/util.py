"""Small general-purpose helpers shared across the package."""

from __future__ import annotations

import dataclasses
import inspect
import os
from typing import Any, TypeVar

T = TypeVar("T")

_EMPTY_SPACE_TABLE = str.maketrans({c: "_" for c in " \t\n\v\r\f"})
_ZERO_FACTORIES = (str, int, float, bool, bytes, list, dict, set, tuple, frozenset)
_ZERO_FACTORIES_BY_NAME = {cls.__name__: cls for cls in _ZERO_FACTORIES}


def cast_to(target_type: type[T], source: Any) -> T:
    """Return ``source`` itself when it can be used as ``target_type``.

    Raises TypeError when the source is not an instance of the target type.
    """
    if not isinstance(source, target_type):
        raise TypeError(
            f"cannot cast {type(source).__name__} to {target_type.__name__}"
        )
    return source


def replace_all_empty_space(s: str) -> str:
    """Replace spaces and whitespace escape characters with underscores."""
    return s.translate(_EMPTY_SPACE_TABLE)


def _resolve_annotation(hint: Any) -> Any:
    """Map a field annotation, possibly written as a string, to a factory."""
    if isinstance(hint, str):
        base = hint.split("[", 1)[0].strip()
        return _ZERO_FACTORIES_BY_NAME.get(base)
    return hint


def _zero_value(hint: Any) -> Any:
    hint = _resolve_annotation(hint)
    if hint in _ZERO_FACTORIES:
        return hint()
    if isinstance(hint, type) and dataclasses.is_dataclass(hint):
        return new_from(hint)
    return None


def new_from(value: Any) -> Any:
    """Create a fresh, zero-valued instance of a dataclass type or instance."""
    if isinstance(value, type) and dataclasses.is_dataclass(value):
        cls = value
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        cls = type(value)
    else:
        raise TypeError(
            "data type must be either a dataclass or a dataclass instance. "
            f"Got {type(value).__name__} instead"
        )

    kwargs = {}
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        if f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING:
            continue
        kwargs[f.name] = _zero_value(f.type)
    return cls(**kwargs)


def is_nil(value: Any) -> bool:
    """Report whether a value is absent."""
    return value is None


def is_in(value: Any, *args: Any) -> bool:
    """Return True if ``value`` equals one of the given items."""
    return value in args


def get_abs_path_from_caller(skip: int) -> str:
    """Return the directory of the source file ``skip`` frames up the stack.

    With ``skip`` of 0 this is the directory of this module itself.
    """
    skip = max(skip, 0)
    frame = inspect.currentframe()
    try:
        for _ in range(skip):
            if frame is None:
                break
            frame = frame.f_back
        if frame is None:
            raise FileNotFoundError(f"no caller found at depth {skip}")
        return os.path.dirname(os.path.abspath(frame.f_code.co_filename))
    finally:
        del frame


def string_starts_with(s: str, *args: str) -> bool:
    """Return True if ``s`` starts with any of the given prefixes."""
    return bool(args) and s.startswith(args)