"""Builders for the json messages exchanged with Tapo devices.

Every message follows the ``{"method": ..., "params": ...}`` shape and every
response carries ``error_code`` next to ``result``.
"""

from __future__ import annotations

from typing import Any

from .credentials import TapoCredential

MASK = "****"


def _passthrough(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    request: dict[str, Any] = {"method": method}
    if params is not None:
        request["params"] = params
    request["requestTimeMils"] = 0
    return request


def get_device_info() -> dict[str, Any]:
    """Return a request for the device information."""
    return _passthrough("get_device_info")


def set_device_info(terminal_uuid: str, params: dict[str, Any]) -> dict[str, Any]:
    """Return a request to change the device state."""
    request = _passthrough("set_device_info", params)
    request["terminalUUID"] = terminal_uuid
    return request


def get_device_usage() -> dict[str, Any]:
    """Return a request for the operating time and energy usage totals."""
    return _passthrough("get_device_usage")


def get_energy_usage() -> dict[str, Any]:
    """Return a request for the plug monitoring data."""
    return _passthrough("get_energy_usage")


def get_current_power() -> dict[str, Any]:
    """Return a request for the current power consumption."""
    return _passthrough("get_current_power")


def login_device(credential: TapoCredential) -> dict[str, Any]:
    """Return a login request with the credential written in."""
    return _passthrough(
        "login_device",
        {
            "password": credential.password_value(),
            "username": credential.username_value(),
        },
    )


def handshake(public_key_pem: str) -> dict[str, Any]:
    """Return the secure pass-through handshake request."""
    return {"method": "handshake", "params": {"key": public_key_pem}}


def secure_passthrough(encrypted_request: str) -> dict[str, Any]:
    """Return the outer envelope carrying an encrypted request."""
    return {"method": "securePassthrough", "params": {"request": encrypted_request}}


def mask_credentials(request: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of the request safe for logging.

    Only the copy is masked, the request sent to the device is never touched.
    """
    params = request.get("params")
    if request.get("method") != "login_device" or not isinstance(params, dict):
        return request
    masked = {
        key: MASK if key in ("username", "password") else value
        for key, value in params.items()
    }
    return {**request, "params": masked}
