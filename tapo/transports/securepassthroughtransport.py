"""Implementation of the secure pass-through session protocol.

The client sends a freshly generated RSA public key with the ``handshake``
method and the device answers with an AES key and IV encrypted for that key.
Every following request is AES encrypted, base64 encoded and nested inside a
plaintext ``securePassthrough`` envelope. The first request through the new
channel is ``login_device`` which issues the token appended to all further
request urls.

Based on the work of https://github.com/petretiandrea/plugp100
under compatible GNU GPL3 license.
"""

from __future__ import annotations

import base64
import binascii
import datetime
import logging
from pprint import pformat as pf
from typing import Any, cast

from cryptography.hazmat.primitives import padding, serialization
from cryptography.hazmat.primitives.asymmetric import padding as asymmetric_padding
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from yarl import URL

from ..credentials import TapoCredentialProvider
from ..exceptions import (
    AuthenticationError,
    ErrorResponseError,
    InvalidPaddingError,
    ProtocolError,
    TapoErrorCode,
    TimeoutError,
)
from ..json import dumps as json_dumps
from ..json import loads as json_loads
from ..messages import handshake, login_device, mask_credentials, secure_passthrough
from ..session import (
    SessionProtocol,
    TapoSession,
    _zero,
    get_session_cookie,
    try_parse_cookie,
)
from .basetransport import BaseTransport

_LOGGER = logging.getLogger(__name__)


class AesEncryptionSession:
    """Class for an AES encryption session."""

    @staticmethod
    def create_from_keypair(
        handshake_key: str, keypair: KeyPair
    ) -> AesEncryptionSession:
        """Create the encryption session."""
        key_and_iv = bytearray(
            keypair.decrypt_handshake_key(base64.b64decode(handshake_key.encode()))
        )
        try:
            return AesEncryptionSession(
                bytes(key_and_iv[:16]), bytes(key_and_iv[16:32])
            )
        finally:
            _zero(key_and_iv)

    def __init__(self, key: bytes, iv: bytes) -> None:
        self._key = bytearray(key)
        self._iv = bytearray(iv)
        self.padding_strategy = padding.PKCS7(algorithms.AES.block_size)

    @property
    def key(self) -> bytes:
        return bytes(self._key)

    @property
    def iv(self) -> bytes:
        return bytes(self._iv)

    def _cipher(self) -> Cipher:
        if not self._key:
            raise RuntimeError("AesEncryptionSession has been disposed")
        return Cipher(algorithms.AES(bytes(self._key)), modes.CBC(bytes(self._iv)))

    def encrypt(self, data: bytes) -> bytes:
        """Encrypt the message and return it base64 encoded."""
        encryptor = self._cipher().encryptor()
        padder = self.padding_strategy.padder()
        padded_data = padder.update(data) + padder.finalize()
        encrypted = encryptor.update(padded_data) + encryptor.finalize()
        return base64.b64encode(encrypted)

    def decrypt(self, data: str | bytes) -> str:
        """Decrypt the base64 encoded message."""
        decryptor = self._cipher().decryptor()
        unpadder = self.padding_strategy.unpadder()
        decrypted = decryptor.update(base64.b64decode(data)) + decryptor.finalize()
        try:
            unpadded_data = unpadder.update(decrypted) + unpadder.finalize()
        except ValueError as ex:
            raise InvalidPaddingError(
                "Invalid padding in the secure pass-through response"
            ) from ex
        return unpadded_data.decode()

    def dispose(self) -> None:
        """Erase the key and IV."""
        _zero(self._key)
        _zero(self._iv)
        self._key = bytearray()


class KeyPair:
    """Class for generating key pairs."""

    @staticmethod
    def create_key_pair(key_size: int = 1024) -> KeyPair:
        """Create a key pair."""
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        return KeyPair(private_key, private_key.public_key())

    def __init__(
        self, private_key: rsa.RSAPrivateKey, public_key: rsa.RSAPublicKey
    ) -> None:
        self.private_key = private_key
        self.public_key = public_key
        self.public_key_der_bytes = self.public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        self.public_key_der_b64 = base64.b64encode(self.public_key_der_bytes).decode()

    def get_public_pem(self) -> str:
        """Get the public key in the PEM layout the device accepts."""
        return (
            "-----BEGIN PUBLIC KEY-----\n"
            + self.public_key_der_b64
            + "\n-----END PUBLIC KEY-----\n"
        )

    def decrypt_handshake_key(self, encrypted_key: bytes) -> bytes:
        """Decrypt an aes handshake key."""
        return self.private_key.decrypt(encrypted_key, asymmetric_padding.PKCS1v15())


class SecurePassThroughSession(TapoSession):
    """Session established with the secure pass-through protocol."""

    def __init__(
        self,
        session_id: str | None,
        expires_on: datetime.datetime,
        encryption_session: AesEncryptionSession,
    ) -> None:
        super().__init__(session_id, expires_on)
        self._encryption_session = encryption_session

    @property
    def protocol(self) -> SessionProtocol:
        return SessionProtocol.SecurePassThrough

    @property
    def request_path(self) -> str:
        """Return /app, with the token as query once logged in."""
        if self.token is None:
            return "/app"
        return str(URL.build(path="/app", query={"token": self.token}))

    @property
    def encryption_session(self) -> AesEncryptionSession:
        """Return the live encryption state."""
        self._check_disposed()
        return self._encryption_session

    def set_token(self, token: str) -> None:
        """Store the access token issued by login."""
        self._check_disposed()
        self.token = token

    def dispose(self) -> None:
        if not self._disposed:
            self._encryption_session.dispose()
        super().dispose()


class SecurePassThroughTransport(BaseTransport):
    """Implementation of the secure pass-through protocol.

    The older Tapo protocol, using an RSA key exchange for a per
    session AES key.
    """

    PROTOCOL = SessionProtocol.SecurePassThrough
    COMMON_HEADERS = {
        "Content-Type": "application/json",
        "requestByApp": "true",
        "Accept": "application/json",
    }
    EXCHANGED_KEY_LENGTH = 128

    async def _exchange_key(self, key_pair: KeyPair) -> tuple[str, list[str]]:
        request_body = handshake(key_pair.get_public_pem())
        _LOGGER.debug("Handshake request: %s", request_body)

        try:
            status_code, resp_dict, cookies = await self._http_client.post(
                self._app_url,
                json=request_body,
                headers=self.COMMON_HEADERS,
            )
            _LOGGER.debug("Device responded with: %s", resp_dict)

            self._raise_for_status(status_code, "handshake", self._app_url)
            resp_dict = cast(dict[str, Any], resp_dict)
            self._handle_response_error_code(resp_dict, "handshake", self._app_url)
        except ErrorResponseError as ex:
            raise AuthenticationError(
                f"Failed to handshake with the device at '{self._base_url}' "
                + f"with error code {ex.raw_error_code}.",
                endpoint=self._app_url,
            ) from ex
        except TimeoutError as ex:
            raise AuthenticationError(
                f"Failed to handshake with the device at '{self._base_url}' "
                + f"due to timeout. ({ex})",
                endpoint=self._app_url,
            ) from ex

        handshake_key = (resp_dict.get("result") or {}).get("key")
        if not handshake_key:
            raise AuthenticationError(
                "Could not exchange the key during handshaking with the device "
                + f"at '{self._base_url}'.",
                endpoint=self._app_url,
            )
        try:
            key_length = len(base64.b64decode(handshake_key, validate=True))
        except binascii.Error:
            key_length = -1
        if key_length != self.EXCHANGED_KEY_LENGTH:
            raise AuthenticationError(
                "Exchanged an unexpected length of key from the device "
                + f"at '{self._base_url}'.",
                endpoint=self._app_url,
            )
        return handshake_key, cookies

    async def perform_login(
        self,
        session: SecurePassThroughSession,
        credential_provider: TapoCredentialProvider,
        identity: Any = None,
    ) -> None:
        """Login through the session and store the issued token."""
        with credential_provider.get_credential(identity) as credential:
            login_request = login_device(credential)

        try:
            resp_dict = await self.send(session, login_request)
        except ErrorResponseError as ex:
            if ex.raw_error_code == TapoErrorCode.LOGIN_ERROR:
                msg = (
                    "Failed to initiate authorized session with the device at "
                    + f"'{self._base_url}'. Credentials may be invalid, "
                    + "check your username and password."
                )
            else:
                msg = (
                    "Denied to initiate authorized session with the device at "
                    + f"'{self._base_url}'. (error code: {ex.raw_error_code})"
                )
            raise AuthenticationError(msg, endpoint=ex.endpoint) from ex

        if not (token := (resp_dict.get("result") or {}).get("token")):
            raise AuthenticationError(
                "An access token was not issued from the device "
                + f"at '{self._base_url}'.",
                endpoint=self._app_url,
            )
        session.set_token(token)
        _LOGGER.debug("%s: logged in", self._base_url.host)

    async def perform_handshake(
        self,
        credential_provider: TapoCredentialProvider,
        identity: Any = None,
    ) -> SecurePassThroughSession:
        """Exchange the key, login and return the new session."""
        _LOGGER.debug("Will perform handshaking with %s", self._base_url.host)
        started_at = datetime.datetime.now()

        _LOGGER.debug("Generating keypair")
        key_pair = KeyPair.create_key_pair()
        handshake_key, cookies = await self._exchange_key(key_pair)
        _, session_id, timeout = try_parse_cookie(get_session_cookie(cookies))

        session = SecurePassThroughSession(
            session_id,
            TapoSession.calculate_expiry(started_at, timeout),
            AesEncryptionSession.create_from_keypair(handshake_key, key_pair),
        )
        try:
            await self.perform_login(session, credential_provider, identity)
        except BaseException:
            session.dispose()
            raise

        _LOGGER.debug("Handshake with %s complete: %r", self._base_url.host, session)
        return session

    async def send(self, session: TapoSession, request: dict[str, Any]) -> dict:
        """Send the request wrapped in a secure pass-through envelope."""
        session = cast(SecurePassThroughSession, session)
        method = request.get("method", "")
        url = self._base_url.join(URL(session.request_path))
        encryption_session = session.encryption_session

        if _LOGGER.isEnabledFor(logging.DEBUG):
            _LOGGER.debug(
                "%s >> %s", self._base_url.host, pf(mask_credentials(request))
            )

        encrypted_payload = encryption_session.encrypt(json_dumps(request).encode())
        status_code, resp_dict, _ = await self._http_client.post(
            url,
            json=secure_passthrough(encrypted_payload.decode()),
            headers=self.COMMON_HEADERS,
            cookies_dict=session.cookies(),
        )

        self._raise_for_status(status_code, "securePassthrough", url)
        resp_dict = cast(dict[str, Any], resp_dict)
        self._handle_response_error_code(resp_dict, "securePassthrough", url)

        try:
            raw_response: str = resp_dict["result"]["response"]
        except (KeyError, TypeError) as ex:
            raise ProtocolError(
                f"Unexpected secure pass-through response from {self._base_url.host}:"
                + f" {resp_dict!r}",
                endpoint=url,
            ) from ex

        ret_val = json_loads(encryption_session.decrypt(raw_response.encode()))

        _LOGGER.debug(
            "%s << %s",
            self._base_url.host,
            _LOGGER.isEnabledFor(logging.DEBUG) and pf(ret_val),
        )

        self._handle_response_error_code(ret_val, method, url)
        return ret_val
