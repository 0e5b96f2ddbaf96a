"""Python interface for TP-Link's Tapo devices on the local network.

All device functionalities are available through the `TapoDevice` class::

>>> from tapo import TapoDevice
>>> dev = TapoDevice.connect("192.168.1.1", "user@example.com", "password")
>>> info = await dev.get_device_info()
>>> print(info.model)

Errors are raised as `TapoException` and are expected to be handled by the
user of the library.
"""

from tapo.client import TapoClient
from tapo.credentials import (
    Base64Credentials,
    Credentials,
    EnvironmentCredentials,
    KlapAuthHashCredentials,
    KlapAuthHashEnvironmentCredentials,
    TapoCredential,
    TapoCredentialProvider,
)
from tapo.device import TapoDevice
from tapo.deviceconfig import DeviceConfig
from tapo.deviceinfo import (
    TapoDeviceEnergyUsage,
    TapoDeviceInfo,
    TapoDeviceOperatingTime,
    TapoPlugMonitoringData,
)
from tapo.endpoint import (
    DeviceEndPoint,
    DynamicDeviceEndPoint,
    EndPoint,
    StaticDeviceEndPoint,
)
from tapo.exceptions import (
    AuthenticationError,
    DeviceEndPointResolutionError,
    ErrorResponseError,
    InvalidPaddingError,
    ProtocolError,
    TapoErrorCode,
    TapoException,
    TimeoutError,
)
from tapo.retrypolicy import RetryDecision, default_retry_policy
from tapo.session import SessionProtocol, TapoSession
from tapo.version import __version__

__all__ = [
    "__version__",
    "TapoDevice",
    "TapoClient",
    "TapoSession",
    "SessionProtocol",
    "DeviceConfig",
    "Credentials",
    "Base64Credentials",
    "EnvironmentCredentials",
    "KlapAuthHashCredentials",
    "KlapAuthHashEnvironmentCredentials",
    "TapoCredential",
    "TapoCredentialProvider",
    "TapoDeviceInfo",
    "TapoDeviceOperatingTime",
    "TapoDeviceEnergyUsage",
    "TapoPlugMonitoringData",
    "DeviceEndPoint",
    "DynamicDeviceEndPoint",
    "StaticDeviceEndPoint",
    "EndPoint",
    "RetryDecision",
    "default_retry_policy",
    "TapoException",
    "TimeoutError",
    "ProtocolError",
    "AuthenticationError",
    "ErrorResponseError",
    "InvalidPaddingError",
    "DeviceEndPointResolutionError",
    "TapoErrorCode",
]
