"""Models of the information reported by Tapo devices."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Annotated, Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.types import Alias

_LOGGER = logging.getLogger(__name__)

LOCAL_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _minutes(value: int | None) -> timedelta | None:
    return None if value is None else timedelta(minutes=value)


def _seconds(value: int | None) -> timedelta | None:
    return None if value is None else timedelta(seconds=value)


def _base64_text(value: str | None) -> str | None:
    """Decode the base64 text the device uses for user supplied names."""
    if value is None:
        return None
    try:
        return base64.b64decode(value, validate=True).decode()
    except (binascii.Error, UnicodeDecodeError):
        _LOGGER.debug("Value %r is not base64 encoded text", value)
        return value


def _decimal_degrees(value: int | None) -> float | None:
    return None if value is None else value / 10000


def _milliwatts(value: int | None) -> float | None:
    return None if value is None else value / 1000


def _local_time(value: str | None) -> datetime | None:
    return None if value is None else datetime.strptime(value, LOCAL_TIME_FORMAT)


def _opt(deserialize: Any) -> dict[str, Any]:
    return field_options(deserialize=deserialize)


@dataclass
class TapoDeviceInfo(DataClassDictMixin):
    """Result of get_device_info."""

    device_id: str | None = None
    type: str | None = None
    model: str | None = None
    firmware_id: Annotated[str | None, Alias("fw_id")] = None
    firmware_version: Annotated[str | None, Alias("fw_ver")] = None
    hardware_id: Annotated[str | None, Alias("hw_id")] = None
    hardware_version: Annotated[str | None, Alias("hw_ver")] = None
    oem_id: str | None = None
    mac: str | None = None
    specs: str | None = None
    lang: str | None = None
    #: True if the relay or light is on
    device_on: bool = False
    #: Time since the device was last turned on
    on_time: timedelta | None = field(default=None, metadata=_opt(_seconds))
    overheated: bool = False
    nickname: str | None = field(default=None, metadata=_opt(_base64_text))
    avatar: str | None = None
    #: Offset of the device time zone from UTC
    time_diff: timedelta | None = field(default=None, metadata=_opt(_minutes))
    region: str | None = None
    longitude: float | None = field(default=None, metadata=_opt(_decimal_degrees))
    latitude: float | None = field(default=None, metadata=_opt(_decimal_degrees))
    has_set_location_info: bool = False
    ip: str | None = None
    ssid: str | None = field(default=None, metadata=_opt(_base64_text))
    signal_level: int | None = None
    rssi: int | None = None


@dataclass
class TapoDeviceOperatingTime(DataClassDictMixin):
    """Cumulative operating time."""

    today: timedelta | None = field(default=None, metadata=_opt(_minutes))
    past7: timedelta | None = field(default=None, metadata=_opt(_minutes))
    past30: timedelta | None = field(default=None, metadata=_opt(_minutes))


@dataclass
class TapoDeviceEnergyUsage(DataClassDictMixin):
    """Cumulative energy usage in watt-hours."""

    today: int | None = None
    past7: int | None = None
    past30: int | None = None


@dataclass
class TapoDeviceUsage(DataClassDictMixin):
    """Result of get_device_usage."""

    time_usage: TapoDeviceOperatingTime | None = None
    power_usage: TapoDeviceEnergyUsage | None = None


@dataclass
class TapoPlugMonitoringData(DataClassDictMixin):
    """Result of get_energy_usage of plugs with energy monitoring."""

    today_runtime: timedelta | None = field(default=None, metadata=_opt(_minutes))
    month_runtime: timedelta | None = field(default=None, metadata=_opt(_minutes))
    #: Energy used today in watt-hours
    today_energy: int | None = None
    #: Energy used this month in watt-hours
    month_energy: int | None = None
    #: Local time of the device when the data was measured
    local_time: datetime | None = field(default=None, metadata=_opt(_local_time))
    #: Current power consumption in watts
    current_power: float | None = field(default=None, metadata=_opt(_milliwatts))
