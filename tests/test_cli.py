import base64
import json
from datetime import timedelta

import pytest
from asyncclick.testing import CliRunner

from tapo import TapoDevice
from tapo.cli import cli
from tapo.credentials import (
    Credentials,
    KlapAuthHashCredentials,
    compute_klap_auth_hash,
)
from tapo.deviceinfo import (
    TapoDeviceEnergyUsage,
    TapoDeviceInfo,
    TapoDeviceOperatingTime,
    TapoPlugMonitoringData,
)
from tapo.exceptions import AuthenticationError
from tapo.session import SessionProtocol

from .conftest import MOCK_HOST, MOCK_PWD, MOCK_USER

CREDENTIAL_ARGS = [
    "--host",
    MOCK_HOST,
    "--username",
    MOCK_USER,
    "--password",
    MOCK_PWD,
]

DEVICE_INFO = TapoDeviceInfo(
    device_id="0000",
    model="P110",
    nickname="Living room",
    device_on=True,
    on_time=timedelta(minutes=5),
    firmware_version="1.1.3",
    hardware_version="1.0",
    mac="AA-BB-CC-DD-EE-FF",
    rssi=-50,
    ssid="my network",
)


@pytest.fixture()
def runner():
    """Runner fixture that unsets the TAPO_ environment variables for tests."""
    return CliRunner(
        env={
            "TAPO_HOST": None,
            "TAPO_PORT": None,
            "TAPO_USERNAME": None,
            "TAPO_PASSWORD": None,
            "TAPO_CREDENTIALS_HASH": None,
            "TAPO_PROTOCOL": None,
            "TAPO_TIMEOUT": None,
            "TAPO_DEBUG": None,
            "TAPO_JSON": None,
        }
    )


@pytest.mark.asyncio
async def test_state(mocker, runner):
    get_device_info = mocker.patch.object(
        TapoDevice, "get_device_info", return_value=DEVICE_INFO
    )
    close = mocker.spy(TapoDevice, "close")

    res = await runner.invoke(cli, CREDENTIAL_ARGS, catch_exceptions=False)

    assert res.exit_code == 0
    assert "== Living room - P110 ==" in res.output
    assert "Device state: True" in res.output
    assert "MAC (rssi):   AA-BB-CC-DD-EE-FF (-50)" in res.output
    get_device_info.assert_awaited_once()
    close.assert_called_once()


@pytest.mark.asyncio
async def test_state_json(mocker, runner):
    mocker.patch.object(TapoDevice, "get_device_info", return_value=DEVICE_INFO)

    res = await runner.invoke(
        cli, [*CREDENTIAL_ARGS, "--json", "state"], catch_exceptions=False
    )

    assert res.exit_code == 0
    output = json.loads(res.stdout)
    assert output["model"] == "P110"
    assert output["on_time"] == 300


@pytest.mark.parametrize(
    ("command", "method", "message"),
    [("on", "turn_on", "Turning on"), ("off", "turn_off", "Turning off")],
)
@pytest.mark.asyncio
async def test_on_off(mocker, runner, command, method, message):
    mock = mocker.patch.object(TapoDevice, method)

    res = await runner.invoke(cli, [*CREDENTIAL_ARGS, command], catch_exceptions=False)

    assert res.exit_code == 0
    assert message in res.output
    mock.assert_awaited_once()


@pytest.mark.asyncio
async def test_usage(mocker, runner):
    mocker.patch.object(
        TapoDevice,
        "get_device_usage",
        return_value=(
            TapoDeviceOperatingTime(today=timedelta(minutes=30)),
            TapoDeviceEnergyUsage(today=12, past7=84, past30=360),
        ),
    )

    res = await runner.invoke(cli, [*CREDENTIAL_ARGS, "usage"], catch_exceptions=False)

    assert res.exit_code == 0
    assert "== Operating time ==" in res.output
    assert "0:30:00" in res.output
    assert "== Energy usage (Wh) ==" in res.output
    assert "360" in res.output


@pytest.mark.asyncio
async def test_energy(mocker, runner):
    mocker.patch.object(
        TapoDevice,
        "get_energy_usage",
        return_value=TapoPlugMonitoringData(current_power=12.5, today_energy=50),
    )

    res = await runner.invoke(cli, [*CREDENTIAL_ARGS, "energy"], catch_exceptions=False)

    assert res.exit_code == 0
    assert "Current power:  12.5 W" in res.output
    assert "Today energy:   50 Wh" in res.output


@pytest.mark.asyncio
async def test_power(mocker, runner):
    mocker.patch.object(TapoDevice, "get_current_power", return_value=3.2)

    res = await runner.invoke(cli, [*CREDENTIAL_ARGS, "power"], catch_exceptions=False)

    assert res.exit_code == 0
    assert "Current power: 3.2 W" in res.output


@pytest.mark.asyncio
async def test_options_passed_to_config(mocker, runner):
    get_device_info = mocker.patch.object(
        TapoDevice, "get_device_info", autospec=True, return_value=DEVICE_INFO
    )

    res = await runner.invoke(
        cli,
        [
            *CREDENTIAL_ARGS,
            "--port",
            "8080",
            "--timeout",
            "10",
            "--protocol",
            "klap",
        ],
        catch_exceptions=False,
    )

    assert res.exit_code == 0
    dev = get_device_info.call_args.args[0]
    config = dev.config
    assert config.host == MOCK_HOST
    assert config.port == 8080
    assert config.timeout == 10
    assert config.protocol is SessionProtocol.Klap
    assert dev._credential_provider == Credentials(MOCK_USER, MOCK_PWD)


@pytest.mark.asyncio
async def test_credentials_hash(mocker, runner):
    get_device_info = mocker.patch.object(
        TapoDevice, "get_device_info", autospec=True, return_value=DEVICE_INFO
    )
    auth_hash = base64.b64encode(compute_klap_auth_hash(MOCK_USER, MOCK_PWD)).decode()

    res = await runner.invoke(
        cli,
        ["--host", MOCK_HOST, "--credentials-hash", auth_hash],
        catch_exceptions=False,
    )

    assert res.exit_code == 0
    dev = get_device_info.call_args.args[0]
    assert dev.config.protocol is SessionProtocol.Klap
    assert isinstance(dev._credential_provider, KlapAuthHashCredentials)


@pytest.mark.parametrize(
    ("args", "message"),
    [
        (["--host", MOCK_HOST], "Either --username and --password"),
        (
            ["--host", MOCK_HOST, "--username", MOCK_USER],
            "requires both --username and --password",
        ),
    ],
    ids=["no-credentials", "no-password"],
)
@pytest.mark.asyncio
async def test_missing_credentials(runner, args, message):
    res = await runner.invoke(cli, args)

    assert res.exit_code == 2
    assert message in res.output


@pytest.mark.asyncio
async def test_error_output(mocker, runner):
    mocker.patch.object(
        TapoDevice,
        "get_device_info",
        side_effect=AuthenticationError("Credentials may be invalid"),
    )

    res = await runner.invoke(cli, CREDENTIAL_ARGS)

    assert res.exit_code == 1
    assert "Raised error: Credentials may be invalid" in res.output
    assert "Run with --debug enabled to see stacktrace" in res.output
