from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from tapo import Credentials, DeviceConfig

MOCK_HOST = "127.0.0.123"
MOCK_USER = "user@example.com"
MOCK_PWD = "correct_pwd"  # noqa: S105


@pytest.fixture(autouse=True, scope="session")
def asyncio_sleep_fixture():  # noqa: PT004
    """Patch sleep to prevent tests actually waiting."""
    orig_asyncio_sleep = asyncio.sleep

    async def _asyncio_sleep(*_, **__):
        await orig_asyncio_sleep(0)

    with patch("asyncio.sleep", side_effect=_asyncio_sleep):
        yield


@pytest.fixture()
def credentials():
    """Return the credentials the mock devices accept."""
    return Credentials(MOCK_USER, MOCK_PWD)


@pytest.fixture()
def device_config():
    """Return a config pointing at the mock host."""
    return DeviceConfig(MOCK_HOST)
