"""Client for a single Tapo device http endpoint.

The client owns the http connection to one device endpoint and at most one
live session. :meth:`TapoClient.authenticate` establishes the session with the
requested protocol, or selects the protocol when none is given, and
:meth:`TapoClient.send_request` carries requests over it.
"""

from __future__ import annotations

import logging
from typing import Any

from yarl import URL

from .credentials import TapoCredentialProvider
from .deviceconfig import DeviceConfig
from .endpoint import EndPoint, get_endpoint_url
from .exceptions import AuthenticationError, ErrorResponseError, TapoErrorCode
from .httpclient import HttpClient
from .session import SessionProtocol, TapoSession
from .transports import BaseTransport, KlapTransport, SecurePassThroughTransport

_LOGGER = logging.getLogger(__name__)

TRANSPORTS: dict[SessionProtocol, type[BaseTransport]] = {
    transport.PROTOCOL: transport
    for transport in (SecurePassThroughTransport, KlapTransport)
}


def _is_unsupported_protocol_error(ex: BaseException) -> bool:
    return (
        isinstance(ex, ErrorResponseError)
        and ex.request_method == "handshake"
        and ex.raw_error_code == TapoErrorCode.UNSUPPORTED_PROTOCOL_ERROR
    )


def should_fall_back_to_klap(ex: BaseException) -> bool:
    """Return true if a secure pass-through failure means the device needs KLAP.

    Devices that only speak KLAP answer the ``handshake`` method with error
    code 1003, either directly or as the cause of an AuthenticationError.
    """
    if _is_unsupported_protocol_error(ex):
        return True
    return isinstance(ex, AuthenticationError) and _is_unsupported_protocol_error(
        ex.__cause__  # type: ignore[arg-type]
    )


class TapoClient:
    """Http client and session for one device endpoint."""

    def __init__(self, endpoint: EndPoint, *, config: DeviceConfig) -> None:
        self._endpoint = endpoint
        self._config = config
        self._base_url = get_endpoint_url(endpoint)
        self._http_client = HttpClient(config)
        self._session: TapoSession | None = None
        self._closed = False

    @property
    def endpoint(self) -> EndPoint:
        """Endpoint the client talks to."""
        return self._endpoint

    @property
    def base_url(self) -> URL:
        return self._base_url

    @property
    def session(self) -> TapoSession | None:
        """The established session, if any."""
        return self._session

    def _check_closed(self) -> None:
        if self._closed:
            raise RuntimeError("TapoClient has been closed")

    def _transport(self, protocol: SessionProtocol) -> BaseTransport:
        try:
            transport_class = TRANSPORTS[protocol]
        except KeyError as ex:
            raise ValueError(f"Unsupported session protocol {protocol!r}") from ex
        return transport_class(http_client=self._http_client, base_url=self._base_url)

    def _replace_session(self, session: TapoSession | None) -> None:
        if self._session is not None:
            self._session.dispose()
        self._session = session

    async def authenticate(
        self,
        credential_provider: TapoCredentialProvider,
        identity: Any = None,
        protocol: SessionProtocol | None = None,
    ) -> TapoSession:
        """Establish a new session replacing the current one.

        Without an explicit protocol secure pass-through is tried first and
        KLAP is used when the device reports it does not support it.
        """
        self._check_closed()
        self._replace_session(None)

        if protocol is not None:
            session = await self._transport(protocol).perform_handshake(
                credential_provider, identity
            )
        else:
            try:
                session = await self._transport(
                    SessionProtocol.SecurePassThrough
                ).perform_handshake(credential_provider, identity)
            except (AuthenticationError, ErrorResponseError) as ex:
                if not should_fall_back_to_klap(ex):
                    raise
                _LOGGER.debug(
                    "%s does not support secure pass-through, trying KLAP",
                    self._base_url.host,
                )
                session = await self._transport(SessionProtocol.Klap).perform_handshake(
                    credential_provider, identity
                )

        self._session = session
        _LOGGER.info(
            "Session established with %s using %s, id %s, expires on %s",
            self._base_url.host,
            session.protocol.name,
            session.session_id,
            session.expires_on,
        )
        return session

    async def send_request(self, request: dict[str, Any]) -> dict[str, Any]:
        """Send a request over the established session."""
        self._check_closed()
        if self._session is None:
            raise RuntimeError("Session is not established")
        return await self._transport(self._session.protocol).send(
            self._session, request
        )

    async def close(self) -> None:
        """Dispose the session and close the http client."""
        self._replace_session(None)
        self._closed = True
        await self._http_client.close()
