"""Classification of request failures into retry decisions.

A retry policy is any callable taking the failure and the zero based attempt
number and returning a :class:`RetryDecision`. :func:`default_retry_policy`
is used unless the device is given another one.
"""

from __future__ import annotations

import errno
import logging
from collections.abc import Callable
from dataclasses import dataclass

from .exceptions import (
    ErrorResponseError,
    InvalidPaddingError,
    TapoErrorCode,
    TimeoutError,
    _ConnectionError,
)

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryDecision:
    """How the dispatcher should continue after a failed attempt."""

    should_retry: bool
    #: Delay in seconds before the next attempt
    retry_after: float = 0.0
    should_reestablish_session: bool = False
    should_invalidate_endpoint: bool = False
    should_wrap_as_protocol_error: bool = False

    @classmethod
    def create_retry(
        cls, retry_after: float, should_reestablish_session: bool = False
    ) -> RetryDecision:
        """Return a decision to retry after a delay."""
        if retry_after < 0:
            raise ValueError("retry_after must not be negative")
        return cls(
            should_retry=True,
            retry_after=retry_after,
            should_reestablish_session=should_reestablish_session,
        )


THROW = RetryDecision(should_retry=False)
THROW_AS_PROTOCOL_ERROR = RetryDecision(
    should_retry=False, should_wrap_as_protocol_error=True
)
INVALIDATE_ENDPOINT_AND_THROW = RetryDecision(
    should_retry=False, should_invalidate_endpoint=True
)
RETRY = RetryDecision(should_retry=True)
RETRY_AFTER_REESTABLISH_SESSION = RetryDecision(
    should_retry=True, should_reestablish_session=True
)
INVALIDATE_ENDPOINT_AND_RETRY = RetryDecision(
    should_retry=True, should_invalidate_endpoint=True
)

RetryPolicy = Callable[[BaseException, int], RetryDecision]

DEVICE_BUSY_RETRY_AFTER = 2.0

ENDPOINT_UNREACHABLE_ERRNOS = frozenset(
    {errno.ECONNREFUSED, errno.EHOSTUNREACH, errno.ENETUNREACH}
)


def _connection_error_decision(ex: _ConnectionError, attempt: int) -> RetryDecision:
    if ex.errno in ENDPOINT_UNREACHABLE_ERRNOS:
        if attempt == 0:
            # The endpoint may have changed.
            _LOGGER.info(
                "Endpoint may have changed (errno: %s %s)",
                ex.errno,
                errno.errorcode.get(ex.errno, ""),
            )
            return INVALIDATE_ENDPOINT_AND_RETRY
        _LOGGER.error(
            "Endpoint unreachable (errno: %s %s)",
            ex.errno,
            errno.errorcode.get(ex.errno, ""),
        )
        return INVALIDATE_ENDPOINT_AND_THROW

    if attempt == 0:
        _LOGGER.warning("Request IO error; %s", ex)
        return RETRY
    _LOGGER.error("Unexpected connection error (errno: %s); %s", ex.errno, ex)
    return THROW


def _error_response_decision(ex: ErrorResponseError, attempt: int) -> RetryDecision:
    if attempt > 0:
        return THROW

    match ex.raw_error_code:
        case TapoErrorCode.DEVICE_BUSY_ERROR:
            _LOGGER.warning("%s", ex)
            return RetryDecision.create_retry(
                DEVICE_BUSY_RETRY_AFTER, should_reestablish_session=True
            )
        case TapoErrorCode.INVALID_REQUEST_ERROR | TapoErrorCode.PARAMS_ERROR:
            _LOGGER.warning("%s", ex)
            return THROW

    _LOGGER.warning("Unexpected error (raw error code: %s)", ex.raw_error_code)
    return RETRY_AFTER_REESTABLISH_SESSION


def default_retry_policy(error: BaseException, attempt: int) -> RetryDecision:
    """Classify a failed request attempt."""
    if isinstance(error, _ConnectionError):
        return _connection_error_decision(error, attempt)

    if isinstance(error, InvalidPaddingError):
        if attempt == 0:
            _LOGGER.warning("%s", error)
            return RETRY_AFTER_REESTABLISH_SESSION
        return THROW_AS_PROTOCOL_ERROR

    if isinstance(error, ErrorResponseError):
        return _error_response_decision(error, attempt)

    if isinstance(error, TimeoutError):
        if attempt < 2:
            _LOGGER.warning("Request timed out; %s", error)
            return RETRY
        _LOGGER.error("Request timed out; %s", error)
        return THROW_AS_PROTOCOL_ERROR

    _LOGGER.error(
        "Unhandled exception (%s.%s)",
        error.__class__.__module__,
        error.__class__.__qualname__,
    )
    return THROW
