"""
Outbound HTTP client, exposed to handlers as ``ctx.curl``.

    res = ctx.curl.get("https://api.example.com/users", params={"page": 2})
    users = res.parse()

    res = ctx.curl.post("https://api.example.com/users", data={"name": "alice"})

Configured headers are sent with every request; per-call headers win.
POST bodies are sent as JSON.
"""

import logging
import time
from typing import Any, Mapping, Optional

import httpx

from ..config import HttpClientConfig

logger = logging.getLogger(__name__)


class CurlResult:
    def __init__(self, response: httpx.Response, elapsed: float):
        self.response = response
        self.elapsed = elapsed

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.response.headers

    @property
    def body(self) -> bytes:
        return self.response.content

    def text(self) -> str:
        return self.response.text

    def parse(self) -> Any:
        return self.response.json()


class Curl:
    def __init__(self, config: HttpClientConfig, transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self._client = httpx.Client(
            timeout=config.timeout,
            headers=dict(config.headers),
            transport=transport,
            trust_env=False,
        )

    @property
    def client(self) -> httpx.Client:
        return self._client

    def _send(self, method: str, url: str, **kwargs: Any) -> CurlResult:
        logger.debug(f"curl request start, method: {method}, url: {url}")
        start = time.perf_counter()
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"curl request end, error: {e}")
            raise
        elapsed = time.perf_counter() - start
        logger.debug(
            f"curl request end, status: {response.status_code}, cost: {elapsed * 1000:.2f}ms, "
            f"body: {response.text[:512]}"
        )
        return CurlResult(response, elapsed)

    def get(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> CurlResult:
        return self._send("GET", url, params=params, headers=headers)

    def post(
        self,
        url: str,
        data: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> CurlResult:
        return self._send("POST", url, json=data, headers=headers)

    def close(self) -> None:
        self._client.close()
