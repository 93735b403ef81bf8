"""
HTTP JSON Client
================

Thin aiohttp wrapper shared by every network-backed capability (embedders,
LLM digests, rerankers, remote storage).

The session is created lazily and must be released with ``close()``.
Transport failures, non-2xx statuses and undecodable bodies are raised as
the capability-specific ``error_cls`` passed at construction.
"""

import asyncio
import json
from typing import Any, Dict, Optional, Type

import aiohttp
import structlog

from a3s_context.errors import A3SError

log = structlog.get_logger()


class HTTPStatusError(A3SError):
    """Non-2xx response; carries the status so callers can map it."""

    label = "HTTP error"

    def __init__(self, status: int, detail: str):
        self.status = status
        self.body = detail
        super().__init__(f"{status} {detail}")

    def server_detail(self) -> str:
        """The ``detail`` field of a JSON error body, or the raw body."""
        try:
            return str(json.loads(self.body)["detail"])
        except (ValueError, KeyError, TypeError):
            return self.body


class JSONHTTPClient:
    """
    Lazily-connected aiohttp client that speaks JSON.

    Example:
        >>> client = JSONHTTPClient("https://api.example.com/v1", api_key="k")
        >>> data = await client.post("/embeddings", {"input": ["hi"]})
        >>> await client.close()
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        error_cls: Type[A3SError] = A3SError,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.error_cls = error_cls
        self.session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def close(self):
        """Close the aiohttp session."""
        if self.session and not self.session.closed:
            await self.session.close()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        raise_status: bool = False,
    ) -> Any:
        """
        Send a request and decode the JSON response.

        Args:
            method: HTTP method
            path: Path appended to ``base_url``
            payload: JSON body
            params: Query string parameters
            raise_status: Raise ``HTTPStatusError`` on non-2xx instead of
                ``error_cls`` so the caller can inspect the status code

        Returns:
            Decoded JSON body (None for empty bodies)
        """
        url = f"{self.base_url}{path}"
        session = await self._get_session()

        try:
            async with session.request(
                method, url, json=payload, params=params, headers=self._headers()
            ) as response:
                if response.status >= 400:
                    body = await response.text()
                    log.warning(f"{method} {url} returned {response.status}")
                    if raise_status:
                        raise HTTPStatusError(response.status, body)
                    raise self.error_cls(f"API error {response.status}: {body}")
                text = await response.text()
        except aiohttp.ClientError as e:
            raise self.error_cls(f"request to {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise self.error_cls(f"request to {url} timed out after {self.timeout}s") from e

        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise self.error_cls(f"invalid JSON from {url}: {e}") from e

    async def post(self, path: str, payload: Dict[str, Any]) -> Any:
        return await self.request("POST", path, payload=payload)
