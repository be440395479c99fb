"""Local reply options and response code detail helpers."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable

from gonvoy.types import Headers
from gonvoy.util import replace_all_empty_space


class StatusType(enum.IntEnum):
    """Filter status reported back to the proxy host."""

    RUNNING = 0
    LOCAL_REPLY = 1
    CONTINUE = 2
    STOP_AND_BUFFER = 3
    STOP_AND_BUFFER_WATERMARK = 4
    STOP_NO_BUFFER = 5


class ResponseCodeDetailPrefix(str):
    """A prefix for response code details."""

    def wrap(self, message: str) -> str:
        """Wrap ``message`` with this prefix unless it already carries it."""
        if message.startswith(str(self)):
            return message
        return f"{self}{{{replace_all_empty_space(message)}}}"


DEFAULT_RESPONSE_CODE_DETAIL_INFO = ResponseCodeDetailPrefix("goext_info")
DEFAULT_RESPONSE_CODE_DETAIL_UNAUTHORIZED = ResponseCodeDetailPrefix("goext_unauthorized")
DEFAULT_RESPONSE_CODE_DETAIL_ACCESS_DENIED = ResponseCodeDetailPrefix("goext_access_denied")
DEFAULT_RESPONSE_CODE_DETAIL_ERROR = ResponseCodeDetailPrefix("goext_error")

DEFAULT_RESPONSE_CODE_DETAILS = DEFAULT_RESPONSE_CODE_DETAIL_INFO.wrap("via_Go_extension")


@dataclass
class LocalReplyOptions:
    headers: Headers | None = None
    status_type: StatusType = StatusType.LOCAL_REPLY
    response_code_details: str = DEFAULT_RESPONSE_CODE_DETAILS
    grpc_status_code: int = -1


LocalReplyOption = Callable[[LocalReplyOptions], None]


def new_local_reply_options(*args: LocalReplyOption) -> LocalReplyOptions:
    """Create local reply options with defaults, then apply each option."""
    options = LocalReplyOptions()
    for opt in args:
        opt(options)
    return options


def local_reply_with_rc_details(detail: str) -> LocalReplyOption:
    """Set the response code details of the local reply."""

    def apply(options: LocalReplyOptions) -> None:
        options.response_code_details = detail

    return apply


def local_reply_with_grpc_status(status: int) -> LocalReplyOption:
    """Set the gRPC status code of the local reply."""

    def apply(options: LocalReplyOptions) -> None:
        options.grpc_status_code = status

    return apply


def local_reply_with_status_type(status: StatusType) -> LocalReplyOption:
    """Set the status type of the local reply."""

    def apply(options: LocalReplyOptions) -> None:
        options.status_type = status

    return apply


def local_reply_with_http_headers(headers: Headers) -> LocalReplyOption:
    """Set the HTTP headers of the local reply."""

    def apply(options: LocalReplyOptions) -> None:
        options.headers = headers

    return apply