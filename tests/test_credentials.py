import base64
import hashlib

import pytest

from tapo.credentials import (
    Base64Credentials,
    Credentials,
    EnvironmentCredentials,
    KlapAuthHashCredentials,
    KlapAuthHashEnvironmentCredentials,
    compute_klap_auth_hash,
    to_base64,
    to_base64_sha1_digest,
)

USER = "user@example.com"
PWD = "password"  # noqa: S105


def test_credentials_values():
    credentials = Credentials(USER, PWD)

    assert credentials.get_credential() is credentials
    assert credentials.password_value() == base64.b64encode(PWD.encode()).decode()
    assert (
        base64.b64decode(credentials.username_value()).decode()
        == hashlib.sha1(USER.encode()).hexdigest()  # noqa: S324
    )
    assert credentials.local_auth_hash() == hashlib.sha256(
        hashlib.sha1(USER.encode()).digest()  # noqa: S324
        + hashlib.sha1(PWD.encode()).digest()  # noqa: S324
    ).digest()


def test_credentials_repr():
    assert USER not in repr(Credentials(USER, PWD))
    assert PWD not in repr(Credentials(USER, PWD))


def test_base64_credentials():
    credentials = Base64Credentials(to_base64_sha1_digest(USER), to_base64(PWD))

    with credentials.get_credential() as credential:
        assert credential.username_value() == Credentials(USER, PWD).username_value()
        assert credential.password_value() == Credentials(USER, PWD).password_value()
        with pytest.raises(NotImplementedError):
            credential.local_auth_hash()


def test_environment_credentials(monkeypatch):
    monkeypatch.setenv("TAPO_USERNAME", USER)
    monkeypatch.setenv("TAPO_PASSWORD", PWD)
    provider = EnvironmentCredentials()

    credential = provider.get_credential()
    assert credential.username_value() == to_base64_sha1_digest(USER)
    assert credential.password_value() == to_base64(PWD)
    assert credential.local_auth_hash() == compute_klap_auth_hash(USER, PWD)

    credential.dispose()
    with pytest.raises(RuntimeError, match="disposed"):
        credential.password_value()


def test_environment_credentials_missing(monkeypatch):
    monkeypatch.delenv("TAPO_USERNAME", raising=False)
    monkeypatch.setenv("TAPO_PASSWORD", PWD)

    with pytest.raises(RuntimeError, match="TAPO_USERNAME is not set"):
        EnvironmentCredentials().get_credential()


def test_klap_auth_hash_credentials():
    auth_hash = compute_klap_auth_hash(USER, PWD)
    provider = KlapAuthHashCredentials(base64.b64encode(auth_hash).decode())

    with provider.get_credential() as credential:
        assert credential.local_auth_hash() == auth_hash
        with pytest.raises(NotImplementedError):
            credential.username_value()

    with pytest.raises(RuntimeError, match="disposed"):
        credential.local_auth_hash()


@pytest.mark.parametrize(
    ("value", "match"),
    [
        ("not base64!", "not valid base64"),
        (base64.b64encode(bytes(16)).decode(), "must decode to 32 bytes"),
    ],
    ids=["invalid", "short"],
)
def test_klap_auth_hash_credentials_invalid(value, match):
    with pytest.raises(RuntimeError, match=match):
        KlapAuthHashCredentials(value).get_credential()


def test_klap_auth_hash_environment_credentials(monkeypatch):
    auth_hash = compute_klap_auth_hash(USER, PWD)
    monkeypatch.setenv("MY_HASH", base64.b64encode(auth_hash).decode())

    provider = KlapAuthHashEnvironmentCredentials("MY_HASH")

    with provider.get_credential() as credential:
        assert credential.local_auth_hash() == auth_hash


def test_klap_auth_hash_environment_credentials_missing(monkeypatch):
    monkeypatch.delenv("TAPO_CREDENTIALS_HASH", raising=False)

    with pytest.raises(RuntimeError, match="TAPO_CREDENTIALS_HASH is not set"):
        KlapAuthHashEnvironmentCredentials().get_credential()
