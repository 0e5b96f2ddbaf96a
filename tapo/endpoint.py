"""Device endpoints.

An endpoint tells the client where to find a device. Static endpoints always
resolve to the same host, dynamic endpoints may re-resolve (for example after
a DHCP lease changed the address) once they have been invalidated.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import NamedTuple

from yarl import URL

from .exceptions import DeviceEndPointResolutionError

_LOGGER = logging.getLogger(__name__)


class EndPoint(NamedTuple):
    """Resolved host and port of a device."""

    host: str
    port: int | None = None

    def __str__(self) -> str:
        if self.port is None:
            return self.host
        return f"{self.host}:{self.port}"


class DeviceEndPoint(ABC):
    """Source of the endpoint of a device."""

    @abstractmethod
    async def resolve(self) -> EndPoint | None:
        """Resolve the endpoint, None if it can't be resolved."""


class DynamicDeviceEndPoint(DeviceEndPoint):
    """Endpoint which can be invalidated to force re-resolution."""

    @abstractmethod
    def invalidate(self) -> None:
        """Mark the last resolved endpoint as stale."""


class StaticDeviceEndPoint(DeviceEndPoint):
    """Endpoint with a fixed host and port."""

    def __init__(self, host: str, port: int | None = None) -> None:
        self._endpoint = EndPoint(host, port)

    async def resolve(self) -> EndPoint | None:
        return self._endpoint

    def __str__(self) -> str:
        return str(self._endpoint)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self._endpoint}>"


async def resolve_endpoint(
    device_endpoint: DeviceEndPoint, default_port: int
) -> EndPoint:
    """Resolve the device endpoint filling in the default port if missing."""
    if default_port < 0:
        raise ValueError(f"Invalid default port {default_port}")

    endpoint = await device_endpoint.resolve()
    if endpoint is None:
        if isinstance(device_endpoint, DynamicDeviceEndPoint):
            device_endpoint.invalidate()
        raise DeviceEndPointResolutionError(device_endpoint)

    if endpoint.port is None:
        endpoint = endpoint._replace(port=default_port)

    _LOGGER.debug("Resolved %r to %s", device_endpoint, endpoint)
    return endpoint


def get_endpoint_url(endpoint: EndPoint) -> URL:
    """Return the base url of the device http server."""
    return URL(f"http://{endpoint.host}:{endpoint.port}/")
