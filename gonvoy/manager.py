"""Management of HTTP filter handlers and the outcome of each filter phase."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Optional

from gonvoy.helpers import new_minimal_json_response
from gonvoy.processor import HttpFilterProcessor
from gonvoy.replies import (
    DEFAULT_RESPONSE_CODE_DETAIL_ERROR,
    StatusType,
    local_reply_with_rc_details,
)


class HttpFilterAction(enum.IntEnum):
    """Action a filter phase asks for."""

    SKIP = 0
    CONTINUE = 1
    PAUSE = 2
    WAIT = 3


class FilterRuntimeError(Exception):
    """An unexpected failure raised while a filter phase was running."""


class ClientClosedRequestError(Exception):
    """The request finished before the filter phase was done with it."""


ErrorHandler = Callable[[Any, BaseException], StatusType]
PhaseFunc = Callable[[Any, HttpFilterProcessor], HttpFilterAction]

_REQUEST_FINISHED = "request has been finished"

# Exceptions that signal a programming fault rather than a reported error.
_FAULT_TYPES = (
    ArithmeticError,
    AttributeError,
    LookupError,
    TypeError,
    AssertionError,
    NameError,
    RecursionError,
)


def _classify(exc: BaseException) -> BaseException:
    if str(exc) == _REQUEST_FINISHED:
        err: BaseException = ClientClosedRequestError(str(exc))
    elif isinstance(exc, _FAULT_TYPES):
        err = FilterRuntimeError(str(exc))
    else:
        return exc
    err.__cause__ = exc
    return err


def _default_error_handler(ctx: Any, err: BaseException) -> StatusType:
    body = new_minimal_json_response("RUNTIME_ERROR", "Runtime Error", err)
    ctx.json(
        500,
        body,
        local_reply_with_rc_details(DEFAULT_RESPONSE_CODE_DETAIL_ERROR.wrap(str(err))),
    )
    return StatusType.LOCAL_REPLY


@dataclass
class HttpFilterResult:
    """Outcome of serving one filter phase."""

    action: HttpFilterAction = HttpFilterAction.SKIP
    err: Optional[BaseException] = None
    status: StatusType = StatusType.CONTINUE

    def finalize(
        self,
        ctx: Any,
        error_handler: ErrorHandler,
        exc: Optional[BaseException] = None,
    ) -> None:
        """Settle the final status from the action, or from the error if any."""
        if exc is not None:
            self.err = _classify(exc)

        if self.err is not None:
            self.status = error_handler(ctx, self.err)
            return

        if self.action == HttpFilterAction.CONTINUE:
            self.status = ctx.status_type()
        elif self.action == HttpFilterAction.PAUSE:
            self.status = StatusType.STOP_AND_BUFFER
        elif self.action == HttpFilterAction.WAIT:
            self.status = StatusType.STOP_NO_BUFFER
        else:
            self.status = StatusType.CONTINUE


class HttpFilterManager:
    """Holds the handler chain of one HTTP stream and serves its phases.

    Request phases start at the first added handler; response phases start
    at the last one.
    """

    def __init__(self, ctx: Any, error_handler: ErrorHandler = _default_error_handler):
        self.ctx = ctx
        self.error_handler = error_handler
        self.first: HttpFilterProcessor | None = None
        self.last: HttpFilterProcessor | None = None
        self.completer: Callable[[], None] | None = None

    def set_error_handler(self, handler: ErrorHandler | None) -> None:
        """Use ``handler`` for errors; None leaves the current handler in place."""
        if handler is None:
            return
        self.error_handler = handler

    def add_handler(self, handler: Any) -> None:
        """Append a handler to the chain unless it is None or disabled."""
        if handler is None or handler.disable():
            return

        proc = HttpFilterProcessor(handler)
        if self.first is None or self.last is None:
            self.first = proc
            self.last = proc
            return

        proc.prev = self.last
        self.last.next = proc
        self.last = proc

    def _serve(self, fn: PhaseFunc, entry: HttpFilterProcessor | None) -> HttpFilterResult:
        result = HttpFilterResult()
        caught: BaseException | None = None
        if entry is not None:
            try:
                result.action = fn(self.ctx, entry)
            except Exception as exc:
                caught = exc
        result.finalize(self.ctx, self.error_handler, caught)
        return result

    def serve_decode_filter(self, fn: PhaseFunc) -> HttpFilterResult:
        """Serve a request phase, starting from the first handler."""
        return self._serve(fn, self.first)

    def serve_encode_filter(self, fn: PhaseFunc) -> HttpFilterResult:
        """Serve a response phase, starting from the last handler."""
        return self._serve(fn, self.last)

    def complete(self) -> None:
        """Run the completion callback, if one is set."""
        if self.completer is not None:
            self.completer()