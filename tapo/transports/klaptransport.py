"""Implementation of the KLAP session protocol.

The protocol works by doing a two stage handshake to obtain
an encryption key and session id cookie.

Authentication uses a local auth_hash which is
sha256(sha1(username) + sha1(password))

handshake1: client sends a random 16 byte local_seed to the
device and receives a random 16 bytes remote_seed, followed
by sha256(local_seed + remote_seed + auth_hash). It also returns
a TP_SESSIONID in the Set-Cookie header. The returned hash is
checked against the local auth_hash and the handshake fails
with an AuthenticationError if they do not match.

handshake2: client sends sha256(remote_seed + local_seed + auth_hash)
to the device along with the TP_SESSIONID. Device responds with
200 if successful.

encryption: local_seed, remote_seed and auth_hash are now used
for encryption. The last 4 bytes of the initialization vector
are used as a sequence number that increments every time the
client calls encrypt and this sequence number is sent as a
url parameter to the device along with the encrypted payload.
"""

from __future__ import annotations

import datetime
import hashlib
import logging
import secrets
import struct
from pprint import pformat as pf
from typing import Any, cast

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..credentials import TapoCredentialProvider
from ..exceptions import AuthenticationError, InvalidPaddingError, ProtocolError
from ..json import dumps as json_dumps
from ..json import loads as json_loads
from ..session import (
    SessionProtocol,
    TapoSession,
    _zero,
    get_session_cookie,
    try_parse_cookie,
)
from .basetransport import BaseTransport

_LOGGER = logging.getLogger(__name__)

PACK_SIGNED_LONG = struct.Struct(">l").pack

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


def _sha256(payload: bytes) -> bytes:
    return hashlib.sha256(payload).digest()


class KlapEncryptionSession:
    """Class to represent an encryption session and it's internal state.

    i.e. sequence number which the device expects to increment.
    """

    def __init__(self, local_seed: bytes, remote_seed: bytes, user_hash: bytes):
        self._key = bytearray(self._key_derive(local_seed, remote_seed, user_hash))
        iv, self._seq = self._iv_derive(local_seed, remote_seed, user_hash)
        self._iv = bytearray(iv)
        self._sig = bytearray(self._sig_derive(local_seed, remote_seed, user_hash))

    @property
    def key(self) -> bytes:
        """Derived AES key."""
        return bytes(self._key)

    @property
    def iv(self) -> bytes:
        """Derived IV prefix, the sequence number completes it."""
        return bytes(self._iv)

    @property
    def signature(self) -> bytes:
        """Derived signature prefix for payload hashes."""
        return bytes(self._sig)

    @property
    def sequence_number(self) -> int:
        """Sequence number of the last encrypted payload."""
        return self._seq

    def _key_derive(self, local_seed, remote_seed, user_hash):
        payload = b"lsk" + local_seed + remote_seed + user_hash
        return hashlib.sha256(payload).digest()[:16]

    def _iv_derive(self, local_seed, remote_seed, user_hash):
        # iv is first 12 bytes of sha256, where the last 4 bytes forms the
        # sequence number used in requests and is incremented on each request
        payload = b"iv" + local_seed + remote_seed + user_hash
        fulliv = hashlib.sha256(payload).digest()
        seq = int.from_bytes(fulliv[-4:], "big", signed=True)
        return (fulliv[:12], seq)

    def _sig_derive(self, local_seed, remote_seed, user_hash):
        # used to create a hash with which to prefix each request
        payload = b"ldk" + local_seed + remote_seed + user_hash
        return hashlib.sha256(payload).digest()[:28]

    def _generate_cipher(self, seq: int) -> Cipher:
        if not self._key:
            raise RuntimeError("KlapEncryptionSession has been disposed")
        iv_seq = bytes(self._iv) + PACK_SIGNED_LONG(seq)
        return Cipher(algorithms.AES(bytes(self._key)), modes.CBC(iv_seq))

    def encrypt(self, msg: bytes | str, seq: int | None = None) -> tuple[bytes, int]:
        """Encrypt the data with the sequence number.

        Without an explicit sequence number the internal one is incremented
        first and used.
        """
        if seq is None:
            self._seq = _INT32_MIN if self._seq == _INT32_MAX else self._seq + 1
            seq = self._seq

        if isinstance(msg, str):
            msg = msg.encode("utf-8")

        encryptor = self._generate_cipher(seq).encryptor()
        padder = padding.PKCS7(128).padder()
        padded_data = padder.update(msg) + padder.finalize()
        ciphertext = encryptor.update(padded_data) + encryptor.finalize()
        signature = hashlib.sha256(
            bytes(self._sig) + PACK_SIGNED_LONG(seq) + ciphertext
        ).digest()
        return (signature + ciphertext, seq)

    def decrypt(self, msg: bytes, seq: int) -> bytes:
        """Decrypt the data encrypted with the sequence number.

        The leading signature is skipped and not verified.
        """
        decryptor = self._generate_cipher(seq).decryptor()
        dp = decryptor.update(msg[32:]) + decryptor.finalize()
        unpadder = padding.PKCS7(128).unpadder()
        try:
            return unpadder.update(dp) + unpadder.finalize()
        except ValueError as ex:
            raise InvalidPaddingError(
                f"Invalid padding in the payload with sequence number {seq}"
            ) from ex

    def dispose(self) -> None:
        """Erase the derived secrets."""
        for secret in (self._key, self._iv, self._sig):
            _zero(secret)
        self._key = bytearray()


class KlapSession(TapoSession):
    """Session established with the KLAP protocol."""

    REQUEST_PATH = "/app/request"

    def __init__(
        self,
        session_id: str | None,
        expires_on: datetime.datetime,
        local_seed: bytes,
        remote_seed: bytes,
        local_auth_hash: bytes,
    ) -> None:
        super().__init__(session_id, expires_on)
        self._encryption_session = KlapEncryptionSession(
            local_seed, remote_seed, local_auth_hash
        )

    @property
    def protocol(self) -> SessionProtocol:
        return SessionProtocol.Klap

    @property
    def request_path(self) -> str:
        return self.REQUEST_PATH

    @property
    def encryption_session(self) -> KlapEncryptionSession:
        """Return the live encryption state."""
        self._check_disposed()
        return self._encryption_session

    def dispose(self) -> None:
        if not self._disposed:
            self._encryption_session.dispose()
        super().dispose()


class KlapTransport(BaseTransport):
    """Implementation of the KLAP encryption protocol.

    KLAP is TP-Link's symmetric key protocol, used by newer firmware
    versions in place of the secure pass-through protocol.
    """

    PROTOCOL = SessionProtocol.Klap

    @staticmethod
    def handshake1_seed_auth_hash(
        local_seed: bytes, remote_seed: bytes, auth_hash: bytes
    ) -> bytes:
        """Return the hash the device is expected to answer handshake1 with."""
        return _sha256(local_seed + remote_seed + auth_hash)

    @staticmethod
    def handshake2_seed_auth_hash(
        local_seed: bytes, remote_seed: bytes, auth_hash: bytes
    ) -> bytes:
        """Return the hash to send with handshake2."""
        return _sha256(remote_seed + local_seed + auth_hash)

    async def perform_handshake1(
        self, local_seed: bytes, local_auth_hash: bytes
    ) -> tuple[bytes, list[str]]:
        """Perform handshake1 and return the remote seed and the cookies."""
        # Handshake 1 has a payload of local_seed
        # and a response of 16 bytes, followed by
        # sha256(local_seed | remote_seed | auth_hash)
        url = self._app_url / "handshake1"

        response_status, response_data, cookies = await self._http_client.post(
            url, data=local_seed
        )

        if _LOGGER.isEnabledFor(logging.DEBUG):
            _LOGGER.debug(
                "Handshake1 posted at %s. Host is %s, Response "
                + "status is %s, Request was %s",
                datetime.datetime.now(),
                self._base_url.host,
                response_status,
                local_seed.hex(),
            )

        self._raise_for_status(response_status, "handshake1", url)

        response_data = cast(bytes, response_data)
        remote_seed: bytes = response_data[0:16]
        server_hash = response_data[16:]

        if len(remote_seed) != 16 or len(server_hash) != 32:
            raise ProtocolError(
                f"Device {self._base_url.host} responded with unexpected klap "
                + f"response {response_data!r} to handshake1",
                endpoint=url,
            )

        if _LOGGER.isEnabledFor(logging.DEBUG):
            _LOGGER.debug(
                "Handshake1 success at %s. Host is %s, "
                + "Server remote_seed is: %s, server hash is: %s",
                datetime.datetime.now(),
                self._base_url.host,
                remote_seed.hex(),
                server_hash.hex(),
            )

        local_seed_auth_hash = self.handshake1_seed_auth_hash(
            local_seed, remote_seed, local_auth_hash
        )
        if not secrets.compare_digest(local_seed_auth_hash, server_hash):
            raise AuthenticationError(
                "The hash of the client credential does not match the hash "
                + f"responded from the device at '{self._base_url}'.",
                endpoint=url,
            )

        _LOGGER.debug("handshake1 hashes match with expected credentials")
        return remote_seed, cookies

    async def perform_handshake2(
        self,
        local_seed: bytes,
        remote_seed: bytes,
        local_auth_hash: bytes,
        session_id: str | None,
    ) -> None:
        """Perform handshake2."""
        # Handshake 2 has the following payload:
        #    sha256(remote_seed | local_seed | auth_hash)
        url = self._app_url / "handshake2"

        payload = self.handshake2_seed_auth_hash(
            local_seed, remote_seed, local_auth_hash
        )

        response_status, _, _ = await self._http_client.post(
            url,
            data=payload,
            cookies_dict={"TP_SESSIONID": session_id} if session_id else None,
        )

        if _LOGGER.isEnabledFor(logging.DEBUG):
            _LOGGER.debug(
                "Handshake2 posted %s. Host is %s, Response status is %s, "
                + "Request was %s",
                datetime.datetime.now(),
                self._base_url.host,
                response_status,
                payload.hex(),
            )

        if response_status != 200:
            raise AuthenticationError(
                f"Handshake with the device at '{self._base_url}' failed "
                + f"by status code {response_status:03d}.",
                endpoint=url,
            )

    async def perform_handshake(
        self,
        credential_provider: TapoCredentialProvider,
        identity: Any = None,
    ) -> KlapSession:
        """Perform handshake1 and handshake2 and return the new session."""
        _LOGGER.debug("Starting handshake with %s", self._base_url.host)
        started_at = datetime.datetime.now()
        local_seed = secrets.token_bytes(16)

        with credential_provider.get_credential(identity) as credential:
            local_auth_hash = bytearray(credential.local_auth_hash())

        try:
            remote_seed, cookies = await self.perform_handshake1(
                local_seed, bytes(local_auth_hash)
            )
            _, session_id, timeout = try_parse_cookie(get_session_cookie(cookies))

            await self.perform_handshake2(
                local_seed, remote_seed, bytes(local_auth_hash), session_id
            )

            session = KlapSession(
                session_id,
                TapoSession.calculate_expiry(started_at, timeout),
                local_seed,
                remote_seed,
                bytes(local_auth_hash),
            )
        finally:
            _zero(local_auth_hash)

        _LOGGER.debug("Handshake with %s complete: %r", self._base_url.host, session)
        return session

    async def send(self, session: TapoSession, request: dict[str, Any]) -> dict:
        """Encrypt and send the request and return the decrypted response."""
        session = cast(KlapSession, session)
        method = request.get("method", "")
        url = self._base_url.with_path(session.request_path)
        encryption_session = session.encryption_session

        payload, seq = encryption_session.encrypt(json_dumps(request).encode())

        response_status, response_data, _ = await self._http_client.post(
            url,
            params={"seq": seq},
            data=payload,
            cookies_dict=session.cookies(),
        )

        if _LOGGER.isEnabledFor(logging.DEBUG):
            _LOGGER.debug(
                "Query posted. Host is %s, Sequence is %s, "
                + "Response status is %s, Request was %s",
                self._base_url.host,
                seq,
                response_status,
                pf(request),
            )

        self._raise_for_status(response_status, method, url)

        decrypted_response = encryption_session.decrypt(
            cast(bytes, response_data), seq
        )
        json_payload = json_loads(decrypted_response)

        _LOGGER.debug(
            "%s << %s",
            self._base_url.host,
            _LOGGER.isEnabledFor(logging.DEBUG) and pf(json_payload),
        )

        self._handle_response_error_code(json_payload, method, url)
        return json_payload
