"""Tapo device.

:class:`TapoDevice` is the entry point of the library. It resolves the device
endpoint, keeps a session established and drives every request through a
bounded retry loop classified by a retry policy::

>>> from tapo import TapoDevice
>>> async with TapoDevice.connect("192.168.0.2", "user@example.com", "pass") as dev:
>>>     info = await dev.get_device_info()
>>>     print(info.model)
P105
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import replace
from typing import Any, TypeVar

from .client import TapoClient
from .credentials import Credentials, TapoCredentialProvider
from .deviceconfig import DeviceConfig
from .deviceinfo import (
    TapoDeviceEnergyUsage,
    TapoDeviceInfo,
    TapoDeviceOperatingTime,
    TapoDeviceUsage,
    TapoPlugMonitoringData,
)
from .endpoint import (
    DeviceEndPoint,
    DynamicDeviceEndPoint,
    EndPoint,
    StaticDeviceEndPoint,
    resolve_endpoint,
)
from .exceptions import ProtocolError, TimeoutError
from .json import dumps as json_dumps
from .messages import (
    get_current_power,
    get_device_info,
    get_device_usage,
    get_energy_usage,
    mask_credentials,
    set_device_info,
)
from .retrypolicy import RetryDecision, RetryPolicy, default_retry_policy
from .session import SessionProtocol, TapoSession

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")


class TapoDevice:
    """A Tapo device reachable over the local network."""

    MAX_ATTEMPTS = 5

    def __init__(
        self,
        device_endpoint: DeviceEndPoint,
        credential_provider: TapoCredentialProvider,
        *,
        config: DeviceConfig | None = None,
        retry_policy: RetryPolicy = default_retry_policy,
    ) -> None:
        if config is None:
            config = DeviceConfig(host=str(device_endpoint))
        self._device_endpoint: DeviceEndPoint | None = device_endpoint
        self._credential_provider = credential_provider
        self._config = config
        self._retry_policy = retry_policy
        self._client: TapoClient | None = None
        #: Identifies this client to the device in state changing requests
        self.terminal_uuid = str(uuid.uuid4())

    @classmethod
    def connect(
        cls,
        host: str,
        username: str,
        password: str,
        *,
        port: int | None = None,
        protocol: SessionProtocol | None = None,
        timeout: int | None = DeviceConfig.DEFAULT_TIMEOUT,
        retry_policy: RetryPolicy = default_retry_policy,
    ) -> TapoDevice:
        """Return a device for a host and plain credentials."""
        return cls.from_config(
            DeviceConfig(
                host,
                timeout=timeout,
                port_override=port,
                credentials=Credentials(username, password),
                protocol=protocol,
            ),
            retry_policy=retry_policy,
        )

    @classmethod
    def from_config(
        cls,
        config: DeviceConfig,
        *,
        credential_provider: TapoCredentialProvider | None = None,
        retry_policy: RetryPolicy = default_retry_policy,
    ) -> TapoDevice:
        """Return a device for a stored configuration."""
        credential_provider = credential_provider or config.credentials
        if credential_provider is None:
            raise ValueError("Credentials are required to connect to a Tapo device")
        return cls(
            StaticDeviceEndPoint(config.host, config.port_override),
            credential_provider,
            config=config,
            retry_policy=retry_policy,
        )

    @property
    def config(self) -> DeviceConfig:
        """Return the connection configuration."""
        return self._config

    @property
    def device_endpoint(self) -> DeviceEndPoint:
        """Return the source of the device endpoint."""
        self._check_closed()
        return self._device_endpoint  # type: ignore[return-value]

    @property
    def session(self) -> TapoSession | None:
        """Return the established session, if any."""
        return self._client.session if self._client else None

    @property
    def timeout(self) -> int | None:
        """Timeout in seconds applied to each http request."""
        return self._config.timeout

    @timeout.setter
    def timeout(self, value: int | None) -> None:
        if value is not None and value <= 0:
            raise ValueError("Timeout must be positive")
        self._config.timeout = value

    def _check_closed(self) -> None:
        if self._device_endpoint is None:
            raise RuntimeError("TapoDevice has been closed")

    async def resolve_endpoint(self) -> EndPoint:
        """Resolve the current endpoint of the device."""
        return await resolve_endpoint(
            self.device_endpoint, default_port=DeviceConfig.DEFAULT_PORT
        )

    async def _close_client(self) -> None:
        client = self._client
        self._client = None
        if client:
            await client.close()

    async def _ensure_session(self) -> TapoClient:
        endpoint = await self.resolve_endpoint()

        if self._client is not None and self._client.endpoint != endpoint:
            _LOGGER.info(
                "Endpoint has changed: %s -> %s", self._client.endpoint, endpoint
            )
            await self._close_client()

        if self._client is None:
            self._client = TapoClient(endpoint, config=self._config)

        client = self._client
        session = client.session
        if session is not None and not session.has_expired:
            return client

        _LOGGER.debug(
            "Initiate authentication with %s using protocol %s",
            endpoint,
            self._config.protocol.name if self._config.protocol else "auto",
        )
        try:
            await client.authenticate(
                self._credential_provider,
                identity=self,
                protocol=self._config.protocol,
            )
        except BaseException:
            await self._close_client()
            raise
        return client

    async def send_request(
        self,
        request: dict[str, Any],
        compose_result: Callable[[dict[str, Any]], _T],
    ) -> _T:
        """Send a request and return the composed result.

        Failures are classified by the retry policy which decides whether
        the request is retried, the session reestablished or the endpoint
        invalidated. At most :attr:`MAX_ATTEMPTS` attempts are made.
        """
        self._check_closed()
        method = request.get("method", "")
        delay = 0.0
        last_error: Exception | None = None

        for attempt in range(self.MAX_ATTEMPTS):
            if delay > 0:
                await asyncio.sleep(delay)

            client = await self._ensure_session()

            try:
                response = await client.send_request(request)
                return compose_result(response)
            except Exception as ex:
                last_error = ex
                decision = self._retry_policy(ex, attempt)
                _LOGGER.debug(
                    "Retry decision for %s on attempt %s: %s",
                    ex.__class__.__name__,
                    attempt,
                    decision,
                )

                if not decision.should_retry:
                    _LOGGER.error("%s", json_dumps(mask_credentials(request)))

                decision = self._invalidate_endpoint(decision)

                if decision.should_retry:
                    delay = decision.retry_after
                    if decision.should_reestablish_session:
                        _LOGGER.info(
                            "Closing the session with %s before retrying",
                            client.endpoint,
                        )
                        await self._close_client()
                    continue

                await self._close_client()
                if decision.should_wrap_as_protocol_error:
                    msg = (
                        f"Request timed out; {ex}"
                        if isinstance(ex, TimeoutError)
                        else "Unhandled exception"
                    )
                    raise ProtocolError(msg, endpoint=client.base_url) from ex
                raise

        raise ProtocolError(
            f"Request '{method}' did not succeed within {self.MAX_ATTEMPTS} attempts",
            endpoint=self._client.base_url if self._client else None,
        ) from last_error

    def _invalidate_endpoint(self, decision: RetryDecision) -> RetryDecision:
        if not decision.should_invalidate_endpoint:
            return decision
        if isinstance(self._device_endpoint, DynamicDeviceEndPoint):
            self._device_endpoint.invalidate()
            _LOGGER.info("Marked end point %r as invalid.", self._device_endpoint)
            return decision
        return replace(decision, should_retry=False)

    async def get_device_info(self) -> TapoDeviceInfo:
        """Return the device information."""
        return await self.send_request(
            get_device_info(),
            lambda resp: TapoDeviceInfo.from_dict(resp["result"]),
        )

    async def get_on_off_state(self) -> bool:
        """Return true if the device is turned on."""
        return await self.send_request(
            get_device_info(),
            lambda resp: bool(resp["result"]["device_on"]),
        )

    async def set_device_info(self, params: dict[str, Any]) -> None:
        """Change the device state with the given parameters."""
        await self.send_request(
            set_device_info(self.terminal_uuid, params), lambda _: None
        )

    async def set_on_off_state(self, on: bool) -> None:
        """Turn the device on or off."""
        await self.set_device_info({"device_on": on})

    async def turn_on(self) -> None:
        """Turn the device on."""
        await self.set_on_off_state(True)

    async def turn_off(self) -> None:
        """Turn the device off."""
        await self.set_on_off_state(False)

    async def get_device_usage(
        self,
    ) -> tuple[TapoDeviceOperatingTime | None, TapoDeviceEnergyUsage | None]:
        """Return the cumulative operating time and energy usage.

        Either value is None if the device does not report it.
        """
        usage = await self.send_request(
            get_device_usage(),
            lambda resp: TapoDeviceUsage.from_dict(resp.get("result") or {}),
        )
        return usage.time_usage, usage.power_usage

    async def get_energy_usage(self) -> TapoPlugMonitoringData:
        """Return the monitoring data of plugs with energy monitoring."""
        return await self.send_request(
            get_energy_usage(),
            lambda resp: TapoPlugMonitoringData.from_dict(resp["result"]),
        )

    async def get_current_power(self) -> float | None:
        """Return the current power consumption in watts."""
        return await self.send_request(
            get_current_power(),
            lambda resp: (resp.get("result") or {}).get("current_power"),
        )

    async def close(self) -> None:
        """Dispose the session and close the connection."""
        await self._close_client()
        self._device_endpoint = None

    async def __aenter__(self) -> TapoDevice:
        return self

    async def __aexit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self._device_endpoint!r}>"
