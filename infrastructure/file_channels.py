# infrastructure/file_channels.py
"""Companion file channels: direct disk access or the HTTP file endpoints."""
import asyncio
import logging
from typing import Any, Optional

import httpx

from config import settings
from core.exceptions import FormatError, SyncUnavailable
from core.interfaces import IFileChannel
from infrastructure.file_storage import JsonFileStorage

logger = logging.getLogger(settings.LOGGER_NAME)


class LocalFileChannel(IFileChannel):
    """Reads and writes the companion JSON file directly on this machine."""

    def __init__(self, storage: JsonFileStorage, empty: Any = None):
        self.storage = storage
        self.empty = empty

    async def read(self) -> Any:
        try:
            payload = await asyncio.to_thread(self.storage.read)
        except OSError as e:
            raise SyncUnavailable(f"Cannot read {self.storage.path}: {e}")
        if payload is JsonFileStorage.MISSING:
            return self.empty
        return payload

    async def write(self, payload: Any) -> None:
        try:
            await asyncio.to_thread(self.storage.write, payload)
        except OSError as e:
            raise SyncUnavailable(f"Cannot write {self.storage.path}: {e}")


class HttpFileChannel(IFileChannel):
    """
    Talks to a companion process exposing GET/POST on one resource path.

    GET returns the file as JSON (a sentinel when absent); POST replaces it.
    """

    def __init__(
        self,
        base_url: str,
        resource: str,
        timeout: float = settings.SYNC_TIMEOUT_SEC,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = f"{base_url.rstrip('/')}/{resource.lstrip('/')}"
        self.timeout = timeout
        self._client = client

    async def _request(self, method: str, **kwargs) -> httpx.Response:
        try:
            if self._client is not None:
                response = await self._client.request(method, self.url, timeout=self.timeout, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, self.url, **kwargs)
            response.raise_for_status()
            return response
        except httpx.TimeoutException:
            raise SyncUnavailable(f"{method} {self.url} timed out after {self.timeout}s")
        except httpx.HTTPStatusError as e:
            raise SyncUnavailable(f"{method} {self.url} returned {e.response.status_code}")
        except httpx.HTTPError as e:
            raise SyncUnavailable(f"Cannot reach {self.url}: {e}")

    async def read(self) -> Any:
        response = await self._request("GET")
        try:
            return response.json()
        except ValueError as e:
            raise FormatError(f"{self.url} did not return JSON: {e}")

    async def write(self, payload: Any) -> None:
        response = await self._request("POST", json=payload)
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict) or not body.get("success"):
            raise SyncUnavailable(f"{self.url} rejected the write: {body!r}")
