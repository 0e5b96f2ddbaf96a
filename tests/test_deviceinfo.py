import base64
from datetime import datetime, timedelta

from tapo.deviceinfo import (
    TapoDeviceInfo,
    TapoDeviceUsage,
    TapoPlugMonitoringData,
)


def _b64(text):
    return base64.b64encode(text.encode()).decode()


DEVICE_INFO = {
    "device_id": "80223A1B2C3D4E5F",
    "fw_ver": "1.1.3 Build 230905 Rel.152200",
    "hw_ver": "1.0",
    "type": "SMART.TAPOPLUG",
    "model": "P110",
    "mac": "AA-BB-CC-DD-EE-FF",
    "hw_id": "HWID",
    "fw_id": "FWID",
    "oem_id": "OEMID",
    "ip": "192.168.0.2",
    "time_diff": 540,
    "ssid": _b64("my network"),
    "rssi": -50,
    "signal_level": 3,
    "latitude": 356812,
    "longitude": 1397671,
    "lang": "ja_JP",
    "avatar": "plug",
    "region": "Asia/Tokyo",
    "specs": "",
    "nickname": _b64("Living room"),
    "has_set_location_info": True,
    "device_on": True,
    "on_time": 3600,
    "overheated": False,
    "default_states": {"type": "last_states"},
}


def test_device_info():
    info = TapoDeviceInfo.from_dict(DEVICE_INFO)

    assert info.device_id == "80223A1B2C3D4E5F"
    assert info.model == "P110"
    assert info.firmware_version == "1.1.3 Build 230905 Rel.152200"
    assert info.hardware_version == "1.0"
    assert info.firmware_id == "FWID"
    assert info.hardware_id == "HWID"
    assert info.nickname == "Living room"
    assert info.ssid == "my network"
    assert info.device_on is True
    assert info.on_time == timedelta(hours=1)
    assert info.time_diff == timedelta(hours=9)
    assert info.latitude == 35.6812
    assert info.longitude == 139.7671
    assert info.rssi == -50


def test_device_info_minimal():
    info = TapoDeviceInfo.from_dict({"device_on": False, "nickname": "plain"})

    assert info.device_on is False
    assert info.nickname == "plain"
    assert info.on_time is None
    assert info.model is None


def test_device_usage():
    usage = TapoDeviceUsage.from_dict(
        {
            "time_usage": {"today": 60, "past7": 420, "past30": 1800},
            "power_usage": {"today": 12, "past7": 84, "past30": 360},
            "saved_power": {"today": 0, "past7": 0, "past30": 0},
        }
    )

    assert usage.time_usage.today == timedelta(hours=1)
    assert usage.time_usage.past7 == timedelta(hours=7)
    assert usage.time_usage.past30 == timedelta(hours=30)
    assert usage.power_usage.today == 12
    assert usage.power_usage.past30 == 360


def test_device_usage_without_power_usage():
    usage = TapoDeviceUsage.from_dict({"time_usage": {"today": 1}})

    assert usage.time_usage.today == timedelta(minutes=1)
    assert usage.power_usage is None


def test_monitoring_data():
    data = TapoPlugMonitoringData.from_dict(
        {
            "today_runtime": 120,
            "month_runtime": 6000,
            "today_energy": 50,
            "month_energy": 2500,
            "local_time": "2024-01-02 03:04:05",
            "electricity_charge": [0, 0, 0],
            "current_power": 12345,
        }
    )

    assert data.today_runtime == timedelta(hours=2)
    assert data.month_runtime == timedelta(hours=100)
    assert data.today_energy == 50
    assert data.month_energy == 2500
    assert data.local_time == datetime(2024, 1, 2, 3, 4, 5)
    assert data.current_power == 12.345
