"""python-tapo exceptions."""

from __future__ import annotations

from asyncio import TimeoutError as _asyncioTimeoutError
from enum import IntEnum
from functools import cache
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .endpoint import DeviceEndPoint


class TapoException(Exception):
    """Base exception for library errors."""


class TimeoutError(TapoException, _asyncioTimeoutError):
    """Timeout exception for device errors."""

    def __repr__(self) -> str:
        return TapoException.__repr__(self)

    def __str__(self) -> str:
        return TapoException.__str__(self)


class _ConnectionError(TapoException):
    """Connection exception for device errors."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        #: OS error number of the failed socket operation, if known
        self.errno: int | None = kwargs.get("errno")
        super().__init__(*args)


class InvalidPaddingError(TapoException):
    """Decrypted data did not carry valid PKCS7 padding.

    Seen intermittently when the device and the client have gone out of
    sync, so the session should be thrown away rather than the data.
    """


class DeviceEndPointResolutionError(TapoException):
    """The device endpoint could not be resolved to a host."""

    def __init__(self, device_endpoint: DeviceEndPoint, *args: Any) -> None:
        self.device_endpoint = device_endpoint
        super().__init__(*(args or ("Could not get or resolve the device endpoint.",)))


class ProtocolError(TapoException):
    """Base exception for errors in the device protocol."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        #: URL of the request that failed
        self.endpoint = kwargs.get("endpoint")
        super().__init__(*args)


class AuthenticationError(ProtocolError):
    """Handshake or login with the device failed."""


class TapoErrorCode(IntEnum):
    """Enum for error codes returned by Tapo devices."""

    def __str__(self) -> str:
        return f"{self.name}({self.value})"

    @staticmethod
    @cache
    def from_int(value: int) -> TapoErrorCode | None:
        """Convert an integer to a TapoErrorCode, None for unknown codes."""
        try:
            return TapoErrorCode(value)
        except ValueError:
            return None

    SUCCESS = 0

    # Transport Errors
    SESSION_TIMEOUT_ERROR = 9999
    LOGIN_FAILED_ERROR = 1111
    HAND_SHAKE_FAILED_ERROR = 1100
    #: Returned to the handshake method by devices that only speak KLAP
    UNSUPPORTED_PROTOCOL_ERROR = 1003
    TRANSPORT_NOT_AVAILABLE_ERROR = 1002

    # Common Method Errors
    COMMON_FAILED_ERROR = -1
    UNSPECIFIC_ERROR = -1001
    INVALID_REQUEST_ERROR = -1002
    JSON_DECODE_FAIL_ERROR = -1003
    JSON_ENCODE_FAIL_ERROR = -1004
    AES_DECODE_FAIL_ERROR = -1005
    REQUEST_LEN_ERROR_ERROR = -1006
    CLOUD_FAILED_ERROR = -1007
    PARAMS_ERROR = -1008
    SESSION_PARAM_ERROR = -1101

    # Method Specific Errors
    DEVICE_BUSY_ERROR = -1301
    LOGIN_ERROR = -1501


def _error_code_info(raw_error_code: int) -> str:
    match raw_error_code:
        case TapoErrorCode.DEVICE_BUSY_ERROR:
            return " Device may be busy. Retry after a few moments."
        case TapoErrorCode.LOGIN_ERROR:
            return " Credentials may be invalid. Check your username and password."
        case TapoErrorCode.PARAMS_ERROR:
            return (
                " It may be an error in the request parameters."
                " It is possible that the value may be out of range, etc."
            )
    return ""


class ErrorResponseError(ProtocolError):
    """The device responded to a request with a non-zero error code."""

    def __init__(
        self,
        request_method: str,
        raw_error_code: int,
        *,
        endpoint: Any = None,
    ) -> None:
        self.request_method = request_method
        self.raw_error_code = raw_error_code
        self.error_code = TapoErrorCode.from_int(raw_error_code)
        super().__init__(
            f"Request '{request_method}' failed with error code {raw_error_code}."
            + _error_code_info(raw_error_code)
            + f" (Request URI: {endpoint})",
            endpoint=endpoint,
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}"
            f"({self.request_method!r}, {self.raw_error_code})"
        )
