# gonvoy

Building blocks for writing HTTP filters that run inside the Envoy proxy,
plus a small harness for end-to-end tests against a real Envoy instance
running in Docker. The package has no runtime dependencies.

## What is inside

| Module             | Purpose                                                                     |
|--------------------|-----------------------------------------------------------------------------|
| `gonvoy.manager`   | `HttpFilterManager` chains handlers and maps each phase to a `StatusType`   |
| `gonvoy.processor` | `HttpFilterProcessor`, the link that walks handlers forward or backward     |
| `gonvoy.replies`   | `StatusType`, `ResponseCodeDetailPrefix` and local-reply options             |
| `gonvoy.metrics`   | `Metrics` cache of counters and gauges, and `create_stats_name`              |
| `gonvoy.logger`    | `Logger` that renders key/value lines and hands them to a sink               |
| `gonvoy.helpers`   | `must_get_property` and `new_minimal_json_response`                          |
| `gonvoy.types`     | `Headers`, `HeaderRange`, `Request`, `Response` and their option builders    |
| `gonvoy.util`      | Small helpers such as `replace_all_empty_space` and `string_starts_with`     |
| `gonvoy.suite`     | `Suite`, `SuiteCase` and `SuiteKit` for end-to-end tests with Docker         |

## Handler order

Handlers registered on an `HttpFilterManager` with `add_handler` run in
registration order while the request is decoded (`serve_decode_filter`), and
in reverse order while the response is encoded (`serve_encode_filter`):

```
request:  handlerA -> handlerB -> handlerC
response: handlerC -> handlerB -> handlerA
```

A handler is an object with `disable()`, `on_request_header(ctx)`,
`on_request_body(ctx)`, `on_response_header(ctx)` and `on_response_body(ctx)`.
A handler that is `None` or whose `disable()` returns true is not registered.
After each handler the chain checks `ctx.committed()` and stops once it is
true.

Each phase function receives the context and the entry processor and returns
an `HttpFilterAction`. `HttpFilterResult.finalize` turns it into a
`StatusType`: `CONTINUE` asks the context for `ctx.status_type()`, `PAUSE`
gives `STOP_AND_BUFFER`, `WAIT` gives `STOP_NO_BUFFER`, and `SKIP` (or no
handlers at all) gives `CONTINUE`.

An exception raised inside a phase is caught. If its message is
`request has been finished` it becomes a `ClientClosedRequestError`; a
programming fault (such as `TypeError`, `LookupError` or `AttributeError`)
becomes a `FilterRuntimeError`; other exceptions are kept as they are. The
error handler then decides the status. The default error handler calls
`ctx.json(500, body, ...)` with a `RUNTIME_ERROR` JSON body and returns
`StatusType.LOCAL_REPLY`; `set_error_handler` replaces it (passing `None`
keeps the current one). `complete()` runs the manager's `completer`, if set.

## Stats names

```python
from gonvoy.metrics import create_stats_name

create_stats_name("foo", "key", "value", "key1", "value2")
# 'foo_key=value_key1=value2'
```

Dashes in label keys become underscores. An odd number of label arguments
yields `<name>_bad_labels`. `Metrics(counter_func=..., gauge_func=...)`
builds the same name in `counter` and `gauge` and calls the define function
only once per name; calling one whose function is not set raises
`RuntimeError`.

## Response code details and local replies

```python
from gonvoy.replies import (
    ResponseCodeDetailPrefix,
    new_local_reply_options,
    local_reply_with_grpc_status,
    local_reply_with_rc_details,
)

prefix = ResponseCodeDetailPrefix("goext_test")
prefix.wrap("any message appears")      # 'goext_test{any_message_appears}'
prefix.wrap(prefix.wrap("foo bar"))     # 'goext_test{foo_bar}' (already wrapped)

options = new_local_reply_options(
    local_reply_with_rc_details(prefix.wrap("denied")),
    local_reply_with_grpc_status(10),
)
```

Without options, `LocalReplyOptions` has status type `StatusType.LOCAL_REPLY`,
a gRPC status of `-1`, no headers and the detail
`goext_info{via_Go_extension}`.

## JSON error bodies

```python
from gonvoy.helpers import new_minimal_json_response

body = new_minimal_json_response("UNAUTHORIZED", "UNAUTHORIZED")
```

The body is compact JSON bytes with sorted keys holding `code`, `message`,
`errors` (the string form of any exceptions passed), an empty `data` object
and `serverTime` in milliseconds. `must_get_property(ctx, name, default)`
returns `ctx.get_property(name, default)` and lets its errors propagate.

## Logging

```python
from gonvoy.logger import Logger

logger = Logger(sink).with_name("app1").with_values("foo", "bar")
logger.info("hello")                 # sent to sink.log(LogType.INFO, ...)
logger.v(1).info("details")          # sent at LogType.DEBUG
logger.error(ValueError("boom"), "failed")
```

`sink` is any object with a `log(level, msg)` method. Each entry is one line:
the caller's file and line, the message, then `key=value` fields sorted by key
with any `error` field first; a named logger adds `logger=<name>`, with nested
names joined by `/`. Values with a `marshal_log()` method are rendered through
it.

## Headers, requests and responses

```python
from gonvoy.types import new_request, with_request_header, with_request_uri

req = new_request(
    "GET",
    "example.com",
    with_request_header({"accept-language": ["ID"]}),
    with_request_uri("/foobar?token=token"),
)
req.headers.get("Accept-Language")   # 'ID'
```

Header keys are canonicalised, so lookups are case-insensitive; `get` returns
an empty string for a missing key. `HeaderRange` wraps a mapping and feeds it
to `with_request_header_range_setter` or `with_response_header_range_setter`.
An empty or non-path request URI makes `new_request` raise `ValueError`.

## End-to-end suites

`gonvoy.suite` drives filters running in an Envoy container:

```python
from gonvoy.suite import SuiteCase, new_test_suite, parse_flags

def check(kit):
    with kit.start_envoy():
        ...  # send requests to kit.envoy_host(), inspect kit.show_envoy_log()

suite = new_test_suite(parse_flags())
outcomes = suite.run([SuiteCase(name="HelloWorldTest", filter_name="helloworld", test=check)])
```

`Suite.run` pulls the Envoy image with `docker pull`, then runs each case and
returns a mapping from case name to `None` (passed), a `CaseSkipped`, or the
exception the case failed with. Serial cases run first, then parallel ones
together. Each case's `envoy.yaml` and `filter.so` are located through a
pattern that defaults to `<cwd>/filters/{filter}/{filename}`; a missing file
fails the case with `SuiteError`. Each case gets Envoy and admin ports offset
by its position from the suite's base ports (10000 and 8000 by default).

`SuiteKit.start_envoy()` is a context manager that runs Envoy with
`docker run`, waits for the admin interface and listener, and stops the
container when the block exits. `check_envoy_log(...)` reports whether any of
the given strings appears in Envoy's log. `parse_flags` reads `-skip-tests`
(comma-separated names) and `-run-test` (a single name).

## What this package does not do

It does not load filters into Envoy and provides no filter context object.
The context passed to the manager, processors and helpers is supplied by the
caller and must offer `committed()`, `status_type()`, `json(...)` and
`get_property(...)` as needed. There is no command-line program; the suite is
used from Python code.