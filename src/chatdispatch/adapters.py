import asyncio
import contextlib
from dataclasses import dataclass, field

from .errors import RequestTimedOut, TransportFailed
from .types import RetryConfig

DEFAULT_TIMEOUT = RetryConfig().timeout


@dataclass
class TransportResponse:
    status_code: int
    # lower-cased header names
    headers: dict[str, str] = field(default_factory=dict)
    text: str = ""


def _lower_headers(headers) -> dict[str, str]:
    return {str(k).lower(): str(v) for k, v in headers.items()}


# ---------- requests (sync) ----------
class RequestsTransport:
    def __init__(self, session=None, timeout: float = DEFAULT_TIMEOUT):
        self.session = session
        self.timeout = timeout
        self._own_session = False

    def send(self, url: str, headers: dict[str, str], payload) -> TransportResponse:
        import requests  # noqa: PLC0415

        if self.session is None:
            self.session = requests.Session()
            self._own_session = True
        try:
            resp = self.session.post(url, headers=headers, json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            raise RequestTimedOut(f"Request timed out: {e}") from e
        except requests.RequestException as e:
            raise TransportFailed(f"Request failed: {e}") from e
        return TransportResponse(resp.status_code, _lower_headers(resp.headers), resp.text)

    def close(self):
        if self._own_session and self.session is not None:
            with contextlib.suppress(Exception):
                self.session.close()
            self.session = None
            self._own_session = False


# ---------- httpx (async) ----------
class HttpxTransport:
    def __init__(self, client=None, timeout: float = DEFAULT_TIMEOUT):
        self.client = client
        self.timeout = timeout
        self._internal_client = None

    async def send(self, url: str, headers: dict[str, str], payload) -> TransportResponse:
        import httpx  # noqa: PLC0415

        client = self.client or self._internal_client
        if client is None:
            self._internal_client = client = httpx.AsyncClient(timeout=self.timeout)
        try:
            # post() reads the whole body, so the connection is back in the pool
            # before this returns or is cancelled
            resp = await client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            raise RequestTimedOut(f"Request timed out: {e!r}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportFailed(f"Request failed: {e!r}") from e
        return TransportResponse(resp.status_code, _lower_headers(resp.headers), resp.text)

    async def aclose(self):
        if self._internal_client is not None:
            with contextlib.suppress(Exception):
                await self._internal_client.aclose()
            self._internal_client = None


# ---------- aiohttp (async) ----------
class AiohttpTransport:
    def __init__(self, session=None, timeout: float = DEFAULT_TIMEOUT):
        self.session = session
        self.timeout = timeout
        self._own_session = False

    async def send(self, url: str, headers: dict[str, str], payload) -> TransportResponse:
        import aiohttp  # noqa: PLC0415

        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._own_session = True
        try:
            # the response is released on exit, including on cancellation
            async with self.session.post(url, headers=headers, json=payload) as resp:
                text = await resp.text(errors="replace")
                return TransportResponse(resp.status, _lower_headers(resp.headers), text)
        except asyncio.TimeoutError as e:
            raise RequestTimedOut(f"Request timed out: {e!r}") from e
        except aiohttp.ClientError as e:
            raise TransportFailed(f"Request failed: {e!r}") from e

    async def aclose(self):
        if self._own_session and self.session is not None:
            await self.session.close()
            self.session = None
            self._own_session = False
