"""Configuration for connecting to a device.

The configuration can be stored and restored with :meth:`DeviceConfig.to_dict`
and :meth:`DeviceConfig.from_dict`::

>>> from tapo import DeviceConfig, SessionProtocol
>>> config = DeviceConfig("127.0.0.3", protocol=SessionProtocol.Klap)
>>> print(config.to_dict())
{'host': '127.0.0.3', 'timeout': 5, 'protocol': 'KLAP'}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Self

from aiohttp import ClientSession
from mashumaro import field_options
from mashumaro.config import BaseConfig
from mashumaro.types import SerializationStrategy

from .credentials import Credentials
from .json import DataClassJSONMixin
from .session import SessionProtocol

_LOGGER = logging.getLogger(__name__)


class _DeviceConfigBaseMixin(DataClassJSONMixin):
    """Base class for serialization mixin."""

    class Config(BaseConfig):
        """Serialization config."""

        omit_none = True


class _DoNotSerialize(SerializationStrategy):
    def serialize(self, value: Any) -> None:
        return None

    def deserialize(self, value: Any) -> None:
        return None


@dataclass
class DeviceConfig(_DeviceConfigBaseMixin):
    """Class to represent parameters that determine how to connect to devices."""

    DEFAULT_TIMEOUT = 5
    DEFAULT_PORT = 80
    #: IP address or hostname
    host: str
    #: Timeout in seconds for each http request to the device
    timeout: int | None = DEFAULT_TIMEOUT
    #: Override the default port 80 to support port forwarding
    port_override: int | None = None
    #: Credentials for devices requiring authentication
    credentials: Credentials | None = None
    #: Protocol to establish sessions with, None tries secure pass-through
    #: first and falls back to KLAP
    protocol: SessionProtocol | None = None

    # compare=False will be excluded from object comparison.
    #: Set a custom http_client for the device to use.
    http_client: ClientSession | None = field(
        default=None,
        compare=False,
        metadata=field_options(serialization_strategy=_DoNotSerialize()),
    )

    @property
    def port(self) -> int:
        """Port the device http server listens on."""
        return self.port_override or self.DEFAULT_PORT

    def __pre_serialize__(self) -> Self:
        return replace(self, http_client=None)
