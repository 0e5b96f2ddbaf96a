"""Session state shared by the Tapo protocol transports.

A session only exists after a successful handshake. It carries the session id
advertised through the ``TP_SESSIONID`` cookie, the expiry derived from the
``TIMEOUT`` cookie attribute and, once logged in, the access token. The
encryption state lives in the protocol specific subclasses.
"""

from __future__ import annotations

import datetime
import logging
import re
from collections.abc import Iterable
from enum import Enum

_LOGGER = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "TP_SESSIONID"
TIMEOUT_COOKIE_NAME = "TIMEOUT"

_INT32_MAX = 2**31 - 1
_TIMEOUT_VALUE = re.compile(r"[0-9]+\s*")


class SessionProtocol(Enum):
    """Protocols a session can be established with."""

    SecurePassThrough = "SECURE_PASSTHROUGH"
    Klap = "KLAP"


def try_parse_cookie(
    cookie: str | None,
) -> tuple[bool, str | None, int | None]:
    """Parse a ``TP_SESSIONID=<id>;TIMEOUT=<minutes>`` cookie value.

    Returns a tuple of (parsed, session id, timeout in minutes). The device
    writes a non standard attribute so the value can't go through a cookie jar.
    A malformed or negative timeout is ignored while the id is still accepted.
    """
    if not cookie:
        return False, None, None

    prefix = SESSION_COOKIE_NAME + "="
    if (start := cookie.find(prefix)) < 0:
        return False, None, None
    rest = cookie[start + len(prefix) :]

    end = rest.find(";")
    if end < 0:
        session_id = rest.rstrip()
        if not session_id:
            return False, None, None
        return True, session_id, None

    session_id = rest[:end].rstrip()
    if not session_id:
        return False, None, None

    timeout = None
    attributes = rest[end + 1 :]
    timeout_prefix = TIMEOUT_COOKIE_NAME + "="
    if (timeout_start := attributes.find(timeout_prefix)) >= 0:
        value = attributes[timeout_start + len(timeout_prefix) :]
        if (value_end := value.find(";")) >= 0:
            value = value[:value_end]
        else:
            value = value.rstrip()
        if _TIMEOUT_VALUE.fullmatch(value) and int(value) <= _INT32_MAX:
            timeout = int(value)

    return True, session_id, timeout


def get_session_cookie(set_cookie_values: Iterable[str]) -> str | None:
    """Return the first Set-Cookie value carrying the session id."""
    for value in set_cookie_values:
        if value.startswith(SESSION_COOKIE_NAME + "="):
            return value
    return None


def _zero(buffer: bytearray) -> None:
    buffer[:] = bytes(len(buffer))


class TapoSession:
    """Base class for an established session."""

    def __init__(
        self,
        session_id: str | None,
        expires_on: datetime.datetime,
    ) -> None:
        self.session_id = session_id
        self.expires_on = expires_on
        self.token: str | None = None
        self._disposed = False

    @property
    def protocol(self) -> SessionProtocol:
        """Protocol the session was established with."""
        raise NotImplementedError

    @property
    def request_path(self) -> str:
        """Path of the url authenticated requests are posted to."""
        raise NotImplementedError

    @property
    def has_expired(self) -> bool:
        """Return true if the session can no longer be used."""
        return datetime.datetime.now() >= self.expires_on

    @property
    def disposed(self) -> bool:
        """Return true if the secrets have been erased."""
        return self._disposed

    def _check_disposed(self) -> None:
        if self._disposed:
            raise RuntimeError(f"{self.__class__.__name__} has been disposed")

    def cookies(self) -> dict[str, str] | None:
        """Return the cookies to send with requests."""
        if self.session_id is None:
            return None
        return {SESSION_COOKIE_NAME: self.session_id}

    def dispose(self) -> None:
        """Erase the session secrets."""
        self.token = None
        self._disposed = True

    @staticmethod
    def calculate_expiry(
        started_at: datetime.datetime, timeout_minutes: int | None
    ) -> datetime.datetime:
        """Return the expiry of a session started at the given time."""
        if timeout_minutes is None:
            return datetime.datetime.max
        try:
            return started_at + datetime.timedelta(minutes=timeout_minutes)
        except OverflowError:
            return datetime.datetime.max

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} id={self.session_id!r} "
            f"expires_on={self.expires_on.isoformat()}>"
        )
