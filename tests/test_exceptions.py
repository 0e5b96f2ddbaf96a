import asyncio

import pytest

from tapo.exceptions import (
    AuthenticationError,
    ErrorResponseError,
    ProtocolError,
    TapoErrorCode,
    TapoException,
    TimeoutError,
)


@pytest.mark.parametrize(
    ("code", "info"),
    [
        (-1301, "Device may be busy."),
        (-1501, "Credentials may be invalid."),
        (-1008, "error in the request parameters"),
        (9999, ""),
    ],
    ids=["busy", "login", "params", "session-timeout"],
)
def test_error_response_error_message(code, info):
    error = ErrorResponseError("get_device_info", code, endpoint="http://host/app")

    assert str(error).startswith(
        f"Request 'get_device_info' failed with error code {code}."
    )
    assert info in str(error)
    assert str(error).endswith("(Request URI: http://host/app)")
    assert error.endpoint == "http://host/app"
    assert error.raw_error_code == code
    assert error.error_code == TapoErrorCode(code)
    assert repr(error) == f"ErrorResponseError('get_device_info', {code})"


def test_error_response_error_unknown_code():
    error = ErrorResponseError("get_device_info", 31337)

    assert error.error_code is None
    assert isinstance(error, ProtocolError)


def test_error_code_from_int():
    assert TapoErrorCode.from_int(1003) is TapoErrorCode.UNSUPPORTED_PROTOCOL_ERROR
    assert TapoErrorCode.from_int(42) is None
    assert str(TapoErrorCode.LOGIN_ERROR) == "LOGIN_ERROR(-1501)"


def test_hierarchy():
    assert issubclass(AuthenticationError, ProtocolError)
    assert issubclass(ProtocolError, TapoException)
    assert isinstance(TimeoutError("timed out"), asyncio.TimeoutError)
    assert str(TimeoutError("timed out")) == "timed out"
