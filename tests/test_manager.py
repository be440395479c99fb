import json

import pytest

from gonvoy.manager import (
    ClientClosedRequestError,
    FilterRuntimeError,
    HttpFilterAction,
    HttpFilterManager,
    HttpFilterResult,
)
from gonvoy.replies import StatusType


class FakeContext:
    def __init__(self, status=StatusType.CONTINUE):
        self.status = status
        self.is_committed = False
        self.replies = []

    def committed(self):
        return self.is_committed

    def status_type(self):
        return self.status

    def json(self, code, body, *opts):
        self.replies.append((code, body, opts))


class RecordingHandler:
    def __init__(self, name, calls, disabled=False):
        self.name = name
        self.calls = calls
        self.disabled = disabled

    def disable(self):
        return self.disabled

    def on_request_header(self, ctx):
        self.calls.append(self.name)

    def on_request_body(self, ctx):
        self.calls.append(self.name)

    def on_response_header(self, ctx):
        self.calls.append(self.name)

    def on_response_body(self, ctx):
        self.calls.append(self.name)


class RecordingErrorHandler:
    def __init__(self, status=StatusType.LOCAL_REPLY):
        self.status = status
        self.errors = []

    def __call__(self, ctx, err):
        self.errors.append(err)
        return self.status


def decode_headers(ctx, proc):
    proc.handle_on_request_header(ctx)
    return HttpFilterAction.CONTINUE


def decode_data(ctx, proc):
    proc.handle_on_request_body(ctx)
    return HttpFilterAction.PAUSE


def encode_headers(ctx, proc):
    proc.handle_on_response_header(ctx)
    return HttpFilterAction.CONTINUE


def encode_data(ctx, proc):
    proc.handle_on_response_body(ctx)
    return HttpFilterAction.PAUSE


def skip_phase(ctx, proc):
    return HttpFilterAction.SKIP


def make_manager(ctx, calls):
    mgr = HttpFilterManager(ctx)
    for name in ("first", "second", "third"):
        mgr.add_handler(RecordingHandler(name, calls))
    return mgr


def test_nil_error_handler_is_ignored():
    handler = RecordingErrorHandler()
    mgr = HttpFilterManager(FakeContext(), error_handler=handler)
    mgr.set_error_handler(None)
    assert mgr.error_handler is handler


def test_custom_error_handler_is_used():
    handler = RecordingErrorHandler(status=StatusType.STOP_NO_BUFFER)
    mgr = HttpFilterManager(FakeContext())
    mgr.set_error_handler(handler)
    assert mgr.error_handler is handler

    mgr.add_handler(RecordingHandler("only", []))
    res = mgr.serve_decode_filter(lambda ctx, proc: 1 // 0)
    assert res.status == StatusType.STOP_NO_BUFFER
    assert len(handler.errors) == 1


def test_on_request_header_is_fifo():
    calls = []
    mgr = make_manager(FakeContext(), calls)
    res = mgr.serve_decode_filter(decode_headers)
    assert calls == ["first", "second", "third"]
    assert res.status == StatusType.CONTINUE


def test_on_request_body_is_fifo():
    calls = []
    mgr = make_manager(FakeContext(), calls)
    res = mgr.serve_decode_filter(decode_data)
    assert calls == ["first", "second", "third"]
    assert res.status == StatusType.STOP_AND_BUFFER


def test_on_response_header_is_lifo():
    calls = []
    mgr = make_manager(FakeContext(), calls)
    res = mgr.serve_encode_filter(encode_headers)
    assert calls == ["third", "second", "first"]
    assert res.status == StatusType.CONTINUE


def test_on_response_body_is_lifo():
    calls = []
    mgr = make_manager(FakeContext(), calls)
    res = mgr.serve_encode_filter(encode_data)
    assert calls == ["third", "second", "first"]
    assert res.status == StatusType.STOP_AND_BUFFER


def test_continue_action_takes_status_from_context():
    mgr = make_manager(FakeContext(status=StatusType.LOCAL_REPLY), [])
    assert mgr.serve_decode_filter(decode_headers).status == StatusType.LOCAL_REPLY


def test_wait_action_maps_to_stop_no_buffer():
    mgr = make_manager(FakeContext(), [])
    res = mgr.serve_decode_filter(lambda ctx, proc: HttpFilterAction.WAIT)
    assert res.status == StatusType.STOP_NO_BUFFER
    assert res.action == HttpFilterAction.WAIT


def test_nil_handler_is_not_registered():
    mgr = HttpFilterManager(FakeContext())
    mgr.add_handler(None)
    assert mgr.first is None
    assert mgr.last is None


def test_disabled_handler_is_not_registered():
    mgr = HttpFilterManager(FakeContext())
    mgr.add_handler(RecordingHandler("off", [], disabled=True))
    assert mgr.first is None
    assert mgr.last is None


def test_serve_catches_a_fault_with_default_handler():
    ctx = FakeContext()
    mgr = HttpFilterManager(ctx)
    mgr.add_handler(RecordingHandler("only", []))

    def faulty(ctx, proc):
        raise KeyError("phase on panic")

    decode = mgr.serve_decode_filter(faulty)
    encode = mgr.serve_encode_filter(faulty)

    assert decode.status == StatusType.LOCAL_REPLY
    assert encode.status == StatusType.LOCAL_REPLY
    assert isinstance(decode.err, FilterRuntimeError)
    assert [code for code, _, _ in ctx.replies] == [500, 500]
    body = json.loads(ctx.replies[0][1])
    assert body["code"] == "RUNTIME_ERROR"
    assert body["message"] == "Runtime Error"


def test_request_finished_becomes_client_closed_error():
    handler = RecordingErrorHandler()
    mgr = HttpFilterManager(FakeContext(), error_handler=handler)
    mgr.add_handler(RecordingHandler("only", []))

    def finished(ctx, proc):
        raise RuntimeError("request has been finished")

    res = mgr.serve_decode_filter(finished)
    assert isinstance(res.err, ClientClosedRequestError)
    assert isinstance(res.err.__cause__, RuntimeError)
    assert handler.errors == [res.err]


def test_reported_error_reaches_handler_unchanged():
    class Rejected(Exception):
        pass

    handler = RecordingErrorHandler()
    mgr = HttpFilterManager(FakeContext(), error_handler=handler)
    mgr.add_handler(RecordingHandler("only", []))
    problem = Rejected("bad request")

    def reject(ctx, proc):
        raise problem

    res = mgr.serve_encode_filter(reject)
    assert res.err is problem
    assert handler.errors == [problem]
    assert res.status == StatusType.LOCAL_REPLY


def test_serve_with_skip_action():
    mgr = make_manager(FakeContext(), [])
    assert mgr.serve_decode_filter(skip_phase).status == StatusType.CONTINUE
    assert mgr.serve_encode_filter(skip_phase).status == StatusType.CONTINUE


def test_serve_with_no_handler_registered():
    called = []

    def phase(ctx, proc):
        called.append(proc)
        return HttpFilterAction.PAUSE

    mgr = HttpFilterManager(FakeContext())
    assert mgr.serve_decode_filter(phase).status == StatusType.CONTINUE
    assert mgr.serve_encode_filter(phase).status == StatusType.CONTINUE
    assert called == []


def test_committed_context_stops_chain():
    calls = []
    ctx = FakeContext()

    class Committer(RecordingHandler):
        def on_request_header(self, ctx):
            super().on_request_header(ctx)
            ctx.is_committed = True

    mgr = HttpFilterManager(ctx)
    mgr.add_handler(RecordingHandler("first", calls))
    mgr.add_handler(Committer("second", calls))
    mgr.add_handler(RecordingHandler("third", calls))
    mgr.serve_decode_filter(decode_headers)
    assert calls == ["first", "second"]


def test_trigger_filter_completion():
    completed = []
    mgr = HttpFilterManager(FakeContext())
    mgr.completer = lambda: completed.append(True)
    mgr.complete()
    assert completed == [True]


def test_complete_without_completer_does_nothing():
    mgr = HttpFilterManager(FakeContext())
    mgr.complete()
    assert mgr.completer is None


def test_result_finalize_with_error_uses_handler():
    handler = RecordingErrorHandler(status=StatusType.STOP_AND_BUFFER)
    res = HttpFilterResult(action=HttpFilterAction.CONTINUE)
    err = ValueError("boom")
    res.finalize(FakeContext(), handler, err)
    assert res.err is err
    assert res.status == StatusType.STOP_AND_BUFFER


@pytest.mark.parametrize(
    "action, expected",
    [
        (HttpFilterAction.SKIP, StatusType.CONTINUE),
        (HttpFilterAction.PAUSE, StatusType.STOP_AND_BUFFER),
        (HttpFilterAction.WAIT, StatusType.STOP_NO_BUFFER),
    ],
)
def test_result_finalize_maps_actions(action, expected):
    res = HttpFilterResult(action=action)
    res.finalize(FakeContext(), RecordingErrorHandler())
    assert res.status == expected