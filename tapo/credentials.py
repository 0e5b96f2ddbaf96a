"""Credentials used to authenticate with Tapo devices.

The protocol layer never reads usernames or passwords directly. It asks a
:class:`TapoCredentialProvider` for a :class:`TapoCredential` and lets the
credential produce the exact values written to the wire:

* ``username_value()`` and ``password_value()`` for the ``login_device``
  request of the secure pass-through protocol,
* ``local_auth_hash()`` for the KLAP handshake.

Credentials are disposed as soon as they have been consumed, and can be
used as context managers to make that explicit.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


def _sha1(payload: bytes) -> bytes:
    return hashlib.sha1(payload).digest()  # noqa: S324


def _sha256(payload: bytes) -> bytes:
    return hashlib.sha256(payload).digest()


def to_base64(text: str) -> str:
    """Return the base64 form of a text as the device expects passwords."""
    return base64.b64encode(text.encode()).decode()


def to_base64_sha1_digest(text: str) -> str:
    """Return the base64 of the hex sha1 digest as the device expects usernames."""
    return to_base64(_sha1(text.encode()).hex())


def compute_klap_auth_hash(username: str, password: str) -> bytes:
    """Return the KLAP local auth hash, sha256(sha1(username) + sha1(password))."""
    return _sha256(_sha1(username.encode()) + _sha1(password.encode()))


class TapoCredential(ABC):
    """A single-use credential handed out by a provider."""

    @abstractmethod
    def username_value(self) -> str:
        """Return the username as written into the login request."""

    @abstractmethod
    def password_value(self) -> str:
        """Return the password as written into the login request."""

    @abstractmethod
    def local_auth_hash(self) -> bytes:
        """Return the 32 byte digest used by the KLAP handshake."""

    def dispose(self) -> None:
        """Release any material held by this credential."""

    def __enter__(self) -> TapoCredential:
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        self.dispose()


class TapoCredentialProvider(ABC):
    """Supplies credentials for a device identity."""

    @abstractmethod
    def get_credential(self, identity: Any = None) -> TapoCredential:
        """Return a credential for the given identity."""


@dataclass
class Credentials(TapoCredentialProvider, TapoCredential):
    """Plain text credentials for authentication."""

    #: Username (email address) of the cloud account
    username: str = field(default="", repr=False)
    #: Password of the cloud account
    password: str = field(default="", repr=False)

    def get_credential(self, identity: Any = None) -> TapoCredential:
        """Return itself, plain credentials are not identity specific."""
        return self

    def username_value(self) -> str:
        """Return base64 of the sha1 hex digest of the username."""
        return to_base64_sha1_digest(self.username)

    def password_value(self) -> str:
        """Return base64 of the password."""
        return to_base64(self.password)

    def local_auth_hash(self) -> bytes:
        """Return the KLAP auth hash of username and password."""
        return compute_klap_auth_hash(self.username, self.password)


@dataclass
class Base64Credentials(TapoCredentialProvider, TapoCredential):
    """Credentials already encoded the way the login request carries them.

    Use :func:`to_base64_sha1_digest` and :func:`to_base64` to produce the
    values. The plain text cannot be recovered, so KLAP is not supported.
    """

    base64_username_sha1: str = field(repr=False)
    base64_password: str = field(repr=False)

    def get_credential(self, identity: Any = None) -> TapoCredential:
        return self

    def username_value(self) -> str:
        return self.base64_username_sha1

    def password_value(self) -> str:
        return self.base64_password

    def local_auth_hash(self) -> bytes:
        raise NotImplementedError(
            "Base64 encoded credentials cannot be used for KLAP authentication"
        )


def _read_env(name: str) -> str:
    if not (value := os.environ.get(name)):
        raise RuntimeError(f"Environment variable {name} is not set")
    return value


class _EnvironmentCredential(TapoCredential):
    def __init__(self, username: str, password: str) -> None:
        self._username: str | None = username
        self._password: str | None = password

    def _plain(self) -> tuple[str, str]:
        if self._username is None or self._password is None:
            raise RuntimeError("Credential has already been disposed")
        return self._username, self._password

    def username_value(self) -> str:
        return to_base64_sha1_digest(self._plain()[0])

    def password_value(self) -> str:
        return to_base64(self._plain()[1])

    def local_auth_hash(self) -> bytes:
        return compute_klap_auth_hash(*self._plain())

    def dispose(self) -> None:
        self._username = None
        self._password = None


@dataclass
class EnvironmentCredentials(TapoCredentialProvider):
    """Credentials read from environment variables at the moment of use."""

    username_variable: str = "TAPO_USERNAME"
    password_variable: str = "TAPO_PASSWORD"  # noqa: S105

    def get_credential(self, identity: Any = None) -> TapoCredential:
        return _EnvironmentCredential(
            _read_env(self.username_variable), _read_env(self.password_variable)
        )


class _AuthHashCredential(TapoCredential):
    def __init__(self, auth_hash: bytes) -> None:
        self._auth_hash = bytearray(auth_hash)

    def username_value(self) -> str:
        raise NotImplementedError("Only KLAP authentication is supported")

    def password_value(self) -> str:
        raise NotImplementedError("Only KLAP authentication is supported")

    def local_auth_hash(self) -> bytes:
        if not self._auth_hash:
            raise RuntimeError("Credential has already been disposed")
        return bytes(self._auth_hash)

    def dispose(self) -> None:
        self._auth_hash[:] = bytes(len(self._auth_hash))
        self._auth_hash = bytearray()


def _decode_auth_hash(value: str, source: str) -> bytes:
    try:
        auth_hash = base64.b64decode(value, validate=True)
    except binascii.Error as ex:
        raise RuntimeError(f"{source} is not valid base64") from ex
    if len(auth_hash) != 32:
        raise RuntimeError(f"{source} must decode to 32 bytes, got {len(auth_hash)}")
    return auth_hash


@dataclass
class KlapAuthHashCredentials(TapoCredentialProvider):
    """KLAP credentials given as base64 of the local auth hash.

    The hash can be produced with :func:`compute_klap_auth_hash`, so the
    plain password never has to be stored.
    """

    base64_auth_hash: str = field(repr=False)

    def get_credential(self, identity: Any = None) -> TapoCredential:
        return _AuthHashCredential(
            _decode_auth_hash(self.base64_auth_hash, "Credentials hash")
        )


@dataclass
class KlapAuthHashEnvironmentCredentials(TapoCredentialProvider):
    """KLAP credentials read as base64 auth hash from an environment variable."""

    auth_hash_variable: str = "TAPO_CREDENTIALS_HASH"

    def get_credential(self, identity: Any = None) -> TapoCredential:
        return _AuthHashCredential(
            _decode_auth_hash(
                _read_env(self.auth_hash_variable),
                f"Environment variable {self.auth_hash_variable}",
            )
        )
