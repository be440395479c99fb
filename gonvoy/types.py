"""HTTP request and response values built from header sources."""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Mapping, Protocol, Union
from urllib.parse import SplitResult, urlsplit

_TOKEN_CHARS = frozenset(string.ascii_letters + string.digits + "!#$%&'*+-.^_`|~")


def canonical_header_key(key: str) -> str:
    """Return the canonical form of an HTTP header key.

    Keys holding characters outside the HTTP token set are returned unchanged.
    """
    if any(c not in _TOKEN_CHARS for c in key):
        return key
    out = []
    upper = True
    for c in key:
        out.append(c.upper() if upper else c.lower())
        upper = c == "-"
    return "".join(out)


class Headers:
    """Multi-valued HTTP headers keyed by canonical header name."""

    def __init__(self, initial: Mapping[str, Iterable[str]] | None = None):
        self._data: dict[str, list[str]] = {}
        for key, values in (initial or {}).items():
            self[key] = values

    def add(self, key: str, value: str) -> None:
        self._data.setdefault(canonical_header_key(key), []).append(value)

    def get(self, key: str) -> str:
        values = self._data.get(canonical_header_key(key))
        return values[0] if values else ""

    def set(self, key: str, value: str) -> None:
        self._data[canonical_header_key(key)] = [value]

    def values(self, key: str) -> list[str]:
        return list(self._data.get(canonical_header_key(key), []))

    def items(self) -> Iterator[tuple[str, list[str]]]:
        for key, values in self._data.items():
            yield key, list(values)

    def __setitem__(self, key: str, values: Iterable[str]) -> None:
        self._data[canonical_header_key(key)] = list(values)

    def __getitem__(self, key: str) -> list[str]:
        return self._data[canonical_header_key(key)]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and canonical_header_key(key) in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"Headers({self._data!r})"


class SupportsRange(Protocol):
    def range(self, fn: Callable[[str, str], bool]) -> None: ...


class HeaderRange:
    """Iterates over header key/value pairs held in a mapping.

    Values may be a single string or a sequence of strings; a key with
    several values is visited once per value.
    """

    def __init__(self, headers: Mapping[str, Union[str, Iterable[str]]]):
        self._headers = headers

    def range(self, fn: Callable[[str, str], bool]) -> None:
        """Call ``fn`` for each key and value, stopping when it returns False."""
        for key, values in self._headers.items():
            if isinstance(values, str):
                values = [values]
            for value in values:
                if not fn(key, value):
                    return


@dataclass
class Request:
    method: str
    host: str
    headers: Headers = field(default_factory=Headers)
    url: SplitResult | None = None


@dataclass
class Response:
    status_code: int
    headers: Headers = field(default_factory=Headers)


RequestOption = Callable[[Request], None]
ResponseOption = Callable[[Response], None]


def _fill_from_range(headers: Headers, header_range: SupportsRange) -> None:
    def collect(key: str, value: str) -> bool:
        headers.add(key, value)
        return True

    header_range.range(collect)


def new_request(method: str, host: str, *args: RequestOption) -> Request:
    """Build a request and apply each option to it in turn."""
    req = Request(method=method, host=host)
    for opt in args:
        opt(req)
    return req


def with_request_header_range_setter(header_range: SupportsRange) -> RequestOption:
    """Add every header produced by ``header_range`` to the request."""

    def apply(req: Request) -> None:
        _fill_from_range(req.headers, header_range)

    return apply


def with_request_header(headers: Mapping[str, Iterable[str]]) -> RequestOption:
    """Set the request headers from a mapping of key to values."""

    def apply(req: Request) -> None:
        for key, values in headers.items():
            req.headers[key] = values

    return apply


def _parse_request_uri(raw_uri: str) -> SplitResult:
    if raw_uri == "":
        raise ValueError("empty url")
    if raw_uri == "*":
        return SplitResult("", "", "*", "", "")
    parsed = urlsplit(raw_uri)
    if not raw_uri.startswith("/") and not parsed.scheme:
        raise ValueError(f"invalid URI for request: {raw_uri!r}")
    return parsed


def with_request_uri(raw_uri: str) -> RequestOption:
    """Parse ``raw_uri`` as a request URI and set it on the request.

    Raises ValueError when the URI is empty or neither absolute nor a path.
    """

    def apply(req: Request) -> None:
        try:
            req.url = _parse_request_uri(raw_uri)
        except ValueError as exc:
            raise ValueError(f"failed to parse URL, {exc}") from exc

    return apply


def new_response(status: int, *args: ResponseOption) -> Response:
    """Build a response and apply each option to it in turn."""
    res = Response(status_code=status)
    for opt in args:
        opt(res)
    return res


def with_response_header_range_setter(header_range: SupportsRange) -> ResponseOption:
    """Add every header produced by ``header_range`` to the response."""

    def apply(res: Response) -> None:
        _fill_from_range(res.headers, header_range)

    return apply