"""Chaining of user HTTP filter handlers across the filter phases."""

from __future__ import annotations

from typing import Any, Protocol


class FilterContext(Protocol):
    def committed(self) -> bool: ...


class FilterHandler(Protocol):
    def on_request_header(self, ctx: Any) -> None: ...

    def on_request_body(self, ctx: Any) -> None: ...

    def on_response_header(self, ctx: Any) -> None: ...

    def on_response_body(self, ctx: Any) -> None: ...


class HttpFilterProcessor:
    """Wraps one handler and links it to its neighbours in the chain.

    Request phases walk forward through ``next``; response phases walk
    backward through ``prev``. A walk stops once the context reports that
    a response has been committed, and any exception raised by a handler
    propagates to the caller.
    """

    def __init__(self, handler: FilterHandler):
        self.handler = handler
        self.prev: HttpFilterProcessor | None = None
        self.next: HttpFilterProcessor | None = None

    def _walk(self, ctx: FilterContext, phase: str, forward: bool) -> None:
        node: HttpFilterProcessor | None = self
        while node is not None:
            getattr(node.handler, phase)(ctx)
            if ctx.committed():
                return
            node = node.next if forward else node.prev

    def handle_on_request_header(self, ctx: FilterContext) -> None:
        """Run the request header phase from this handler onwards."""
        self._walk(ctx, "on_request_header", forward=True)

    def handle_on_request_body(self, ctx: FilterContext) -> None:
        """Run the request body phase from this handler onwards."""
        self._walk(ctx, "on_request_body", forward=True)

    def handle_on_response_header(self, ctx: FilterContext) -> None:
        """Run the response header phase from this handler backwards."""
        self._walk(ctx, "on_response_header", forward=False)

    def handle_on_response_body(self, ctx: FilterContext) -> None:
        """Run the response body phase from this handler backwards."""
        self._walk(ctx, "on_response_body", forward=False)

    def __repr__(self) -> str:
        return f"HttpFilterProcessor({self.handler!r})"