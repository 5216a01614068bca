from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from gitlog_reporter.core.errors import (
    BackendRejected,
    ConfigError,
    TransportNetworkError,
    TransportTimeout,
)

_logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 90.0

_KEY_PARAM = re.compile(r"([?&]key=)[^&]*")


def redact_url(url: str) -> str:
    """Hide a `key=` query parameter so URLs are safe to log."""
    return _KEY_PARAM.sub(r"\1***", url)


@dataclass(frozen=True)
class HttpRequest:
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    json: Optional[Dict[str, Any]] = None
    method: str = "POST"

    def __repr__(self) -> str:
        return f"HttpRequest({self.method} {redact_url(self.url)})"


@dataclass(frozen=True)
class ProxyConfig:
    enabled: bool = False
    http_proxy: str = ""
    https_proxy: str = ""

    @property
    def url(self) -> Optional[str]:
        if not self.enabled:
            return None
        return (self.https_proxy or self.http_proxy or "").strip() or None


def _proxy_transport(url: str) -> httpx.AsyncHTTPTransport:
    try:
        return httpx.AsyncHTTPTransport(proxy=httpx.Proxy(url))
    except (ValueError, TypeError, ImportError, httpx.InvalidURL) as exc:
        # ImportError: socks5 proxies need the optional socksio extra
        raise ConfigError(f"Invalid proxy URL {url!r}: {exc}") from exc


class TransportClient:
    """
    Shared async HTTP client. Safe to reuse across concurrent requests; it
    holds no per-call state.

    timeout     -- upper bound per network operation; the engine applies the
                   same value as an overall deadline around a whole request
    proxy       -- forward proxy, mounted for https:// URLs only
    transport   -- optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        proxy: Optional[ProxyConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = float(timeout)
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")

        # proxying is explicit config only; *_PROXY env vars are ignored
        client_kwargs: Dict[str, Any] = {"timeout": httpx.Timeout(self.timeout), "trust_env": False}
        if transport is not None:
            client_kwargs["transport"] = transport

        if proxy is not None and proxy.enabled:
            proxy_url = proxy.url
            if proxy_url:
                client_kwargs["mounts"] = {
                    "https://": _proxy_transport(proxy_url),
                }
                _logger.info("Using proxy for https:// requests")
            else:
                _logger.warning("Proxy enabled but no proxy URL configured; connecting directly")

        self._client = httpx.AsyncClient(**client_kwargs)

    async def __aenter__(self) -> "TransportClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def stream(self, request: HttpRequest) -> AsyncIterator[bytes]:
        """
        Yield response body chunks in arrival order. A non-2xx status is
        drained in full and raised as BackendRejected before any chunk is
        yielded.
        """
        try:
            async with self._client.stream(
                request.method, request.url, headers=request.headers, json=request.json
            ) as response:
                if not response.is_success:
                    await response.aread()
                    _logger.warning("Backend rejected request: HTTP %d", response.status_code)
                    raise BackendRejected(response.status_code, response.text)
                async for chunk in response.aiter_bytes():
                    if chunk:
                        yield chunk
        except httpx.TimeoutException as exc:
            raise TransportTimeout(self.timeout) from exc
        except httpx.HTTPError as exc:
            raise TransportNetworkError(exc) from exc
        except httpx.InvalidURL as exc:
            raise ConfigError(f"Invalid request URL: {exc}") from exc

    async def send(self, request: HttpRequest) -> int:
        """Issue a request, discard the body, return the status code."""
        try:
            response = await self._client.request(
                request.method, request.url, headers=request.headers, json=request.json
            )
        except httpx.TimeoutException as exc:
            raise TransportTimeout(self.timeout) from exc
        except httpx.HTTPError as exc:
            raise TransportNetworkError(exc) from exc
        except httpx.InvalidURL as exc:
            raise ConfigError(f"Invalid request URL: {exc}") from exc
        return response.status_code
