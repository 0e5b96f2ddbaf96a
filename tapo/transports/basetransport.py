"""Base class for all transport implementations.

A transport knows how to establish a session with one of the handshake
protocols and how to carry requests over a session it established. It never
retries, every failure surfaces as a typed exception.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from yarl import URL

from ..exceptions import ErrorResponseError, ProtocolError, TapoErrorCode
from ..session import SessionProtocol, TapoSession

if TYPE_CHECKING:
    from ..credentials import TapoCredentialProvider
    from ..httpclient import HttpClient

_LOGGER = logging.getLogger(__name__)


class BaseTransport(ABC):
    """Base class for the Tapo session protocols."""

    PROTOCOL: SessionProtocol

    def __init__(self, *, http_client: HttpClient, base_url: URL) -> None:
        self._http_client = http_client
        self._base_url = base_url
        self._app_url = base_url / "app"

    @property
    def base_url(self) -> URL:
        """Url of the device http server."""
        return self._base_url

    @abstractmethod
    async def perform_handshake(
        self,
        credential_provider: TapoCredentialProvider,
        identity: Any = None,
    ) -> TapoSession:
        """Authenticate with the device and return the established session."""

    @abstractmethod
    async def send(self, session: TapoSession, request: dict[str, Any]) -> dict:
        """Send a request over the session and return the response."""

    @staticmethod
    def _handle_response_error_code(
        resp_dict: dict[str, Any], method: str, url: URL
    ) -> None:
        if not isinstance(resp_dict, dict):
            raise ProtocolError(
                f"Unexpected response to '{method}': {resp_dict!r}", endpoint=url
            )
        error_code = resp_dict.get("error_code", TapoErrorCode.SUCCESS)
        if error_code != TapoErrorCode.SUCCESS:
            raise ErrorResponseError(method, error_code, endpoint=url)

    def _raise_for_status(self, status_code: int, method: str, url: URL) -> None:
        if status_code != 200:
            raise ProtocolError(
                f"{self._base_url.host} responded with an unexpected "
                + f"status code {status_code} to {method}",
                endpoint=url,
            )
