from gonvoy.replies import (
    DEFAULT_RESPONSE_CODE_DETAIL_INFO,
    DEFAULT_RESPONSE_CODE_DETAILS,
    ResponseCodeDetailPrefix,
    StatusType,
    local_reply_with_grpc_status,
    local_reply_with_http_headers,
    local_reply_with_rc_details,
    local_reply_with_status_type,
    new_local_reply_options,
)
from gonvoy.types import Headers


def test_response_code_detail_prefix():
    prefix = ResponseCodeDetailPrefix("goext_test")
    assert prefix.wrap("any message appears") == "goext_test{any_message_appears}"

    msg = ResponseCodeDetailPrefix("goext_test").wrap("foo bar")
    assert prefix.wrap(msg) == "goext_test{foo_bar}"


def test_default_response_code_details():
    wrapped = ResponseCodeDetailPrefix("goext_info").wrap("via Go extension")
    assert wrapped == "goext_info{via_Go_extension}"
    assert new_local_reply_options().response_code_details == "goext_info{via_Go_extension}"


def test_local_reply_options_default():
    ro = new_local_reply_options()
    assert ro.status_type is StatusType.LOCAL_REPLY
    assert ro.grpc_status_code == -1
    assert ro.response_code_details == DEFAULT_RESPONSE_CODE_DETAILS
    assert ro.headers is None


def test_local_reply_options_custom():
    headers = Headers()
    headers.add("reporter", "golib")

    ro = new_local_reply_options(
        local_reply_with_rc_details(DEFAULT_RESPONSE_CODE_DETAIL_INFO.wrap("any message")),
        local_reply_with_grpc_status(10),
        local_reply_with_status_type(StatusType.STOP_AND_BUFFER),
        local_reply_with_http_headers(headers),
    )

    assert ro.status_type is StatusType.STOP_AND_BUFFER
    assert ro.grpc_status_code == 10
    assert ro.response_code_details == "goext_info{any_message}"
    assert ro.headers.get("reporter") == "golib"