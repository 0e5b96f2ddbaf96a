import pytest

from tapo.endpoint import (
    DynamicDeviceEndPoint,
    EndPoint,
    StaticDeviceEndPoint,
    get_endpoint_url,
    resolve_endpoint,
)
from tapo.exceptions import DeviceEndPointResolutionError


class UnresolvableDeviceEndPoint(DynamicDeviceEndPoint):
    def __init__(self):
        self.invalidated = 0

    async def resolve(self):
        return None

    def invalidate(self):
        self.invalidated += 1


@pytest.mark.parametrize(
    ("port", "expected"),
    [(None, EndPoint("127.0.0.1", 80)), (8080, EndPoint("127.0.0.1", 8080))],
    ids=["default-port", "explicit-port"],
)
@pytest.mark.asyncio
async def test_resolve_static_endpoint(port, expected):
    device_endpoint = StaticDeviceEndPoint("127.0.0.1", port)

    assert await resolve_endpoint(device_endpoint, default_port=80) == expected


@pytest.mark.asyncio
async def test_resolve_unresolvable_endpoint():
    device_endpoint = UnresolvableDeviceEndPoint()

    with pytest.raises(DeviceEndPointResolutionError) as exc_info:
        await resolve_endpoint(device_endpoint, default_port=80)

    assert exc_info.value.device_endpoint is device_endpoint
    assert device_endpoint.invalidated == 1
    assert "Could not get or resolve the device endpoint." in str(exc_info.value)


@pytest.mark.asyncio
async def test_resolve_invalid_default_port():
    with pytest.raises(ValueError, match="Invalid default port"):
        await resolve_endpoint(StaticDeviceEndPoint("127.0.0.1"), default_port=-1)


def test_endpoint_str():
    assert str(EndPoint("127.0.0.1")) == "127.0.0.1"
    assert str(EndPoint("127.0.0.1", 80)) == "127.0.0.1:80"
    assert str(StaticDeviceEndPoint("tapo.local", 8080)) == "tapo.local:8080"
    assert "tapo.local" in repr(StaticDeviceEndPoint("tapo.local"))


def test_get_endpoint_url():
    url = get_endpoint_url(EndPoint("192.0.2.1", 8080))

    assert url.scheme == "http"
    assert url.host == "192.0.2.1"
    assert url.port == 8080
    assert url.path == "/"
    assert (url / "app").path == "/app"
