"""python-tapo cli tool."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from functools import singledispatch
from typing import Any

import asyncclick as click
from mashumaro import DataClassDictMixin

from tapo import (
    Credentials,
    DeviceConfig,
    KlapAuthHashCredentials,
    SessionProtocol,
    TapoCredentialProvider,
    TapoDevice,
)
from tapo.json import dumps as json_dumps

echo = click.echo

PROTOCOLS = [protocol.value for protocol in SessionProtocol]

click.anyio_backend = "asyncio"

pass_dev = click.make_pass_decorator(TapoDevice)


def CatchAllExceptions(cls):
    """Capture all exceptions and prints them nicely.

    Idea from https://stackoverflow.com/a/44347763 and
    https://stackoverflow.com/questions/52213375
    """

    def _handle_exception(debug, exc):
        if isinstance(exc, click.ClickException):
            raise
        echo(f"Raised error: {exc}")
        if debug:
            raise
        echo("Run with --debug enabled to see stacktrace")
        sys.exit(1)

    class _CommandCls(cls):
        _debug = False

        async def make_context(self, info_name, args, parent=None, **extra):
            self._debug = any([arg for arg in args if arg in ["--debug", "-d"]])
            try:
                return await super().make_context(
                    info_name, args, parent=parent, **extra
                )
            except Exception as exc:
                _handle_exception(self._debug, exc)

        async def invoke(self, ctx):
            try:
                return await super().invoke(ctx)
            except Exception as exc:
                _handle_exception(self._debug, exc)

    return _CommandCls


def json_formatter_cb(result, **kwargs):
    """Format and output the result as JSON, if requested."""
    if not kwargs.get("json"):
        return

    @singledispatch
    def to_serializable(val):
        """Regular obj-to-string for json serialization."""
        return str(val)

    @to_serializable.register(DataClassDictMixin)
    def _model_to_serializable(val: DataClassDictMixin):
        return val.to_dict()

    @to_serializable.register(timedelta)
    def _timedelta_to_serializable(val: timedelta):
        return val.total_seconds()

    @to_serializable.register(datetime)
    def _datetime_to_serializable(val: datetime):
        return val.isoformat()

    print(json_dumps(result, indent=True, default=to_serializable))


def _credential_provider(
    username: str | None, password: str | None, credentials_hash: str | None
) -> TapoCredentialProvider:
    if bool(password) != bool(username):
        raise click.BadOptionUsage(
            "username", "Using authentication requires both --username and --password"
        )
    if username:
        return Credentials(username=username, password=password)
    if credentials_hash:
        return KlapAuthHashCredentials(credentials_hash)
    raise click.BadOptionUsage(
        "username", "Either --username and --password or --credentials-hash is required"
    )


@click.group(
    invoke_without_command=True,
    cls=CatchAllExceptions(click.Group),
    result_callback=json_formatter_cb,
)
@click.option(
    "--host",
    envvar="TAPO_HOST",
    required=True,
    help="The host name or IP address of the device to connect to.",
)
@click.option(
    "--port",
    envvar="TAPO_PORT",
    required=False,
    type=int,
    help="The port of the device to connect to.",
)
@click.option(
    "-d",
    "--debug",
    envvar="TAPO_DEBUG",
    default=False,
    is_flag=True,
    help="Print debug output",
)
@click.option(
    "--json/--no-json",
    envvar="TAPO_JSON",
    default=False,
    is_flag=True,
    help="Output device response as JSON.",
)
@click.option(
    "--protocol",
    envvar="TAPO_PROTOCOL",
    default=None,
    type=click.Choice(PROTOCOLS, case_sensitive=False),
    help="Session protocol, tried automatically if not given.",
)
@click.option(
    "--timeout",
    envvar="TAPO_TIMEOUT",
    default=DeviceConfig.DEFAULT_TIMEOUT,
    required=False,
    show_default=True,
    type=int,
    help="Timeout for device communications.",
)
@click.option(
    "--username",
    default=None,
    required=False,
    envvar="TAPO_USERNAME",
    help="Username/email address to authenticate to device.",
)
@click.option(
    "--password",
    default=None,
    required=False,
    envvar="TAPO_PASSWORD",
    help="Password to use to authenticate to device.",
)
@click.option(
    "--credentials-hash",
    default=None,
    required=False,
    envvar="TAPO_CREDENTIALS_HASH",
    help="Base64 KLAP auth hash used to authenticate to the device.",
)
@click.version_option(package_name="python-tapo")
@click.pass_context
async def cli(
    ctx,
    host,
    port,
    debug,
    json,
    protocol,
    timeout,
    username,
    password,
    credentials_hash,
):
    """A tool for controlling TP-Link Tapo devices."""  # noqa
    # no need to perform any checks if we are just displaying the help
    if "--help" in sys.argv:
        # Context object is required to avoid crashing on sub-groups
        ctx.obj = object()
        return

    global echo
    if json:

        def _nop_echo(*args, **kwargs):
            pass

        echo = _nop_echo
    else:
        # Set back to default is required if running tests with CliRunner
        echo = click.echo

    logging_config: dict[str, Any] = {
        "level": logging.DEBUG if debug else logging.INFO
    }
    logging.basicConfig(**logging_config)

    credential_provider = _credential_provider(username, password, credentials_hash)
    if protocol is None and isinstance(credential_provider, KlapAuthHashCredentials):
        protocol = SessionProtocol.Klap.value

    config = DeviceConfig(
        host=host,
        port_override=port,
        timeout=timeout,
        protocol=SessionProtocol(protocol.upper()) if protocol else None,
    )
    dev = TapoDevice.from_config(config, credential_provider=credential_provider)

    @asynccontextmanager
    async def async_wrapped_device(device: TapoDevice):
        try:
            yield device
        finally:
            await device.close()

    ctx.obj = await ctx.with_async_resource(async_wrapped_device(dev))

    if ctx.invoked_subcommand is None:
        return await ctx.invoke(state)


@cli.command()
@pass_dev
async def state(dev: TapoDevice):
    """Print out device state and versions."""
    info = await dev.get_device_info()

    echo(f"== {info.nickname} - {info.model} ==")
    echo(f"\tHost: {dev.config.host}")
    echo(f"\tPort: {dev.config.port}")
    echo(f"\tDevice state: {info.device_on}")
    echo(f"\tOn since:     {info.on_time}")
    echo(f"\tHardware:     {info.hardware_version}")
    echo(f"\tSoftware:     {info.firmware_version}")
    echo(f"\tMAC (rssi):   {info.mac} ({info.rssi})")
    echo(f"\tSSID:         {info.ssid}")
    if dev.session:
        echo(f"\tProtocol:     {dev.session.protocol.name}")
    return info


@cli.command()
@pass_dev
async def on(dev: TapoDevice):
    """Turn the device on."""
    echo("Turning on")
    return await dev.turn_on()


@cli.command()
@pass_dev
async def off(dev: TapoDevice):
    """Turn the device off."""
    echo("Turning off")
    return await dev.turn_off()


@cli.command()
@pass_dev
async def usage(dev: TapoDevice):
    """Print out the cumulative operating time and energy usage."""
    time_usage, power_usage = await dev.get_device_usage()
    if time_usage:
        echo("== Operating time ==")
        echo(f"\tToday:        {time_usage.today}")
        echo(f"\tPast 7 days:  {time_usage.past7}")
        echo(f"\tPast 30 days: {time_usage.past30}")
    if power_usage:
        echo("== Energy usage (Wh) ==")
        echo(f"\tToday:        {power_usage.today}")
        echo(f"\tPast 7 days:  {power_usage.past7}")
        echo(f"\tPast 30 days: {power_usage.past30}")
    return {"time_usage": time_usage, "power_usage": power_usage}


@cli.command()
@pass_dev
async def energy(dev: TapoDevice):
    """Print out the monitoring data of plugs with energy monitoring."""
    data = await dev.get_energy_usage()
    echo(f"== Monitoring data at {data.local_time} ==")
    echo(f"\tCurrent power:  {data.current_power} W")
    echo(f"\tToday runtime:  {data.today_runtime}")
    echo(f"\tMonth runtime:  {data.month_runtime}")
    echo(f"\tToday energy:   {data.today_energy} Wh")
    echo(f"\tMonth energy:   {data.month_energy} Wh")
    return data


@cli.command()
@pass_dev
async def power(dev: TapoDevice):
    """Print out the current power consumption."""
    current_power = await dev.get_current_power()
    echo(f"Current power: {current_power} W")
    return current_power


if __name__ == "__main__":
    cli()
