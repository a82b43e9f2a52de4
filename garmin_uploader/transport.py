"""HTTP transport used by the auth flow and the uploader.

``Transport`` is the narrow interface the rest of the package depends on;
``AiohttpTransport`` implements it on a single ``aiohttp.ClientSession`` so
SSO cookies survive between the steps of a login.
"""
from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiohttp

from .errors import TransportError

logger = logging.getLogger(__name__)

FormFields = Mapping[str, str] | str


@dataclass(frozen=True)
class HttpResponse:
    status: int
    url: str
    text: str
    headers: Mapping[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        return json.loads(self.text)


class Transport(ABC):
    """Minimal async HTTP client interface.

    Both methods raise ``TransportError`` on network failures and on any
    status outside ``allow_status`` (default: 2xx).
    """

    @abstractmethod
    async def get(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        allow_status: Collection[int] | None = None,
    ) -> HttpResponse:
        pass

    @abstractmethod
    async def post(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        data: FormFields | None = None,
        files: Mapping[str, Path] | None = None,
        allow_status: Collection[int] | None = None,
    ) -> HttpResponse:
        """POST form fields, a pre-encoded body, or multipart ``files``."""
        pass

    async def close(self) -> None:
        pass


def status_allowed(status: int, allow_status: Collection[int] | None) -> bool:
    """2xx is always accepted; anything else only when listed in ``allow_status``."""
    if 200 <= status < 300:
        return True
    return bool(allow_status) and status in allow_status


class AiohttpTransport(Transport):
    """``Transport`` backed by ``aiohttp`` with a persistent cookie jar."""

    def __init__(self, timeout: float = 60.0, session: aiohttp.ClientSession | None = None) -> None:
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def _send(self, method: str, url: str, allow_status: Collection[int] | None, **kwargs: Any) -> HttpResponse:
        session = self._get_session()
        try:
            async with session.request(method, url, **kwargs) as resp:
                text = await resp.text(errors="replace")
                response = HttpResponse(status=resp.status, url=str(resp.url), text=text, headers=dict(resp.headers))
        except asyncio.TimeoutError as e:
            raise TransportError(f"{method} {url} timed out") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        logger.debug("%s %s -> HTTP %s", method, url, response.status)
        if not status_allowed(response.status, allow_status):
            raise TransportError(
                f"{method} {url} returned HTTP {response.status}", status=response.status, body=response.text
            )
        return response

    async def get(self, url, *, params=None, headers=None, allow_status=None) -> HttpResponse:
        return await self._send("GET", url, allow_status, params=params, headers=headers)

    async def post(self, url, *, params=None, headers=None, data=None, files=None, allow_status=None) -> HttpResponse:
        if files:
            form = aiohttp.FormData()
            if isinstance(data, Mapping):
                for key, value in data.items():
                    form.add_field(key, value)
            for name, path in files.items():
                # Read content into memory and close the handle immediately
                try:
                    content = path.read_bytes()
                except OSError as e:
                    raise TransportError(f"Could not read {path}: {e}") from e
                form.add_field(name, content, filename=path.name, content_type="application/octet-stream")
            data = form
        return await self._send("POST", url, allow_status, params=params, headers=headers, data=data)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
