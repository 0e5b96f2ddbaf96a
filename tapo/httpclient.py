"""Module for the HttpClient class."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp
from yarl import URL

from .deviceconfig import DeviceConfig
from .exceptions import (
    TapoException,
    TimeoutError,
    _ConnectionError,
)
from .json import loads as json_loads

_LOGGER = logging.getLogger(__name__)


class HttpClient:
    """HttpClient Class.

    Traffic to a single device is serialized over one connection and cookies
    are never stored, the session cookie is handled by the transports.
    """

    def __init__(self, config: DeviceConfig) -> None:
        self._config = config
        self._client_session: aiohttp.ClientSession | None = None

    @property
    def client(self) -> aiohttp.ClientSession:
        """Return the underlying http client."""
        if self._config.http_client and issubclass(
            self._config.http_client.__class__, aiohttp.ClientSession
        ):
            return self._config.http_client

        if not self._client_session:
            self._client_session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit_per_host=1),
                cookie_jar=aiohttp.DummyCookieJar(),
            )
        return self._client_session

    async def post(
        self,
        url: URL,
        *,
        params: dict[str, Any] | None = None,
        data: bytes | None = None,
        json: dict | None = None,
        headers: dict[str, str] | None = None,
        cookies_dict: dict[str, str] | None = None,
    ) -> tuple[int, dict | bytes | None, list[str]]:
        """Send an http post request to the device.

        Returns the status code, the response body and the values of any
        Set-Cookie headers. If the request is provided via the json parameter
        the body is decoded as json.
        """
        _LOGGER.debug("Posting to %s", url)
        response_data = None
        return_json = json is not None
        if self._config.timeout is None:
            _LOGGER.warning("Request timeout is set to None.")
        client_timeout = aiohttp.ClientTimeout(total=self._config.timeout)

        try:
            resp = await self.client.post(
                url,
                params=params,
                data=data,
                json=json,
                timeout=client_timeout,
                cookies=cookies_dict,
                headers=headers,
                allow_redirects=False,
            )
            async with resp:
                response_data = await resp.read()
                set_cookie_values = list(resp.headers.getall("Set-Cookie", []))

            if resp.status == 200:
                if return_json:
                    response_data = json_loads(response_data.decode())
            else:
                _LOGGER.debug(
                    "Device %s received status code %s with response %s",
                    self._config.host,
                    resp.status,
                    str(response_data),
                )
                if response_data and return_json:
                    try:
                        response_data = json_loads(response_data.decode())
                    except ValueError:
                        _LOGGER.debug(
                            "Device %s response could not be parsed as json",
                            self._config.host,
                        )

        except (aiohttp.ServerTimeoutError, asyncio.TimeoutError) as ex:
            raise TimeoutError(
                "Unable to query the device, "
                + f"timed out: {self._config.host}: {ex}",
                ex,
            ) from ex
        except (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError) as ex:
            raise _ConnectionError(
                f"Device connection error: {self._config.host}: {ex}",
                ex,
                errno=getattr(ex, "errno", None),
            ) from ex
        except Exception as ex:
            raise TapoException(
                f"Unable to query the device: {self._config.host}: {ex}", ex
            ) from ex

        return resp.status, response_data, set_cookie_values

    async def close(self) -> None:
        """Close the ClientSession."""
        client = self._client_session
        self._client_session = None
        if client:
            await client.close()
