"""
=============================================================================
REQUEST VIEW
=============================================================================

Read-only accessors over the raw HTTPRequest, shaped for handler code.

    ┌──────────────────┬─────────────────────────────────────────────────┐
    │  Accessor        │  Source                                         │
    ├──────────────────┼─────────────────────────────────────────────────┤
    │  get_host()      │  X-Forwarded-Host (proxy mode) → Host           │
    │  get_hostname()  │  host without port, IPv6 brackets removed       │
    │  get_protocol()  │  https on TLS, http unless proxied,             │
    │                  │  else X-Forwarded-Proto                         │
    │  get_origin()    │  "<protocol>://<host>"                          │
    │  get_href()      │  origin + request target                        │
    │  get_client_ip() │  X-Forwarded-For[0] → X-Real-Ip → peer address  │
    └──────────────────┴─────────────────────────────────────────────────┘

Proxy headers are only trusted when ServerConfig.proxy is set.

=============================================================================
FRESHNESS
=============================================================================

is_fresh(response) decides whether the client's cached copy is still good
and the response can become a 304:

    1. only GET and HEAD
    2. response status 2xx or 304
    3. at least one of If-None-Match / If-Modified-Since is present
    4. no "Cache-Control: no-cache" on the request
    5. If-None-Match (unless "*") must list the response ETag
    6. If-Modified-Since: the response Last-Modified must parse and must
       not be later than it (equal timestamps are fresh)

=============================================================================
"""

import re
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Dict, List, Protocol
from urllib.parse import urlsplit

from .http.request import HTTPRequest

NO_CACHE_PATTERN = re.compile(r"(?:^|,)\s*?no-cache\s*?(?:,|$)")


class ResponseState(Protocol):
    def get_status_code(self) -> int: ...

    def get_header(self, key: str) -> str: ...


def _parse_http_date(value: str):
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _normalize_etag(tag: str) -> str:
    tag = tag.strip()
    if tag.startswith("W/"):
        tag = tag[2:]
    return tag.strip('"')


class Request:
    def __init__(self, raw: HTTPRequest, proxy: bool = False):
        self.raw = raw
        self.proxy = proxy

    def get_headers(self) -> Dict[str, List[str]]:
        return self.raw.headers.to_dict()

    def get_header(self, key: str) -> str:
        return self.raw.headers.get(key)

    def get_uri(self) -> str:
        return self.raw.path

    def get_method(self) -> str:
        return self.raw.method.upper()

    def get_query(self) -> Dict[str, List[str]]:
        return {k: list(v) for k, v in self.raw.query_params.items()}

    def get_querystring(self) -> str:
        return self.raw.raw_query

    def get_host(self) -> str:
        host = ""
        if self.proxy:
            host = self.get_header("X-Forwarded-Host")
        if not host:
            host = self.get_header("Host")
        return host

    def get_hostname(self) -> str:
        host = self.get_host()
        if not host:
            return ""
        if host.startswith("["):
            return urlsplit("//" + host).hostname or ""
        return host.split(":")[0]

    def get_protocol(self) -> str:
        if self.raw.tls:
            return "https"
        if not self.proxy:
            return "http"
        return self.get_header("X-Forwarded-Proto") or "http"

    def is_secure(self) -> bool:
        return self.get_protocol() == "https"

    def get_origin(self) -> str:
        return f"{self.get_protocol()}://{self.get_host()}"

    def get_href(self) -> str:
        return f"{self.get_origin()}{self.raw.target}"

    def get_length(self) -> int:
        try:
            return int(self.get_header("Content-Length") or 0)
        except ValueError:
            return 0

    def get_user_agent(self) -> str:
        return self.get_header("User-Agent")

    def get_client_ip(self) -> str:
        ip = self.get_header("X-Forwarded-For").split(",")[0].strip()
        if ip:
            return ip
        ip = self.get_header("X-Real-Ip").strip()
        if ip:
            return ip
        return self.raw.client_address[0]

    def is_fresh(self, response: ResponseState) -> bool:
        if self.get_method() not in ("GET", "HEAD"):
            return False

        status = response.get_status_code()
        if not (200 <= status < 300 or status == 304):
            return False

        modified_since = self.get_header("If-Modified-Since")
        none_match = self.get_header("If-None-Match")
        if not modified_since and not none_match:
            return False

        cache_control = self.get_header("Cache-Control")
        if cache_control and NO_CACHE_PATTERN.search(cache_control):
            return False

        # If-None-Match, when sent, decides on its own.
        if none_match:
            if none_match.strip() == "*":
                return True
            etag = response.get_header("ETag")
            if not etag:
                return False
            wanted = _normalize_etag(etag)
            return any(_normalize_etag(tag) == wanted for tag in none_match.split(","))

        last_modified = _parse_http_date(response.get_header("Last-Modified"))
        since = _parse_http_date(modified_since)
        if last_modified is None or since is None:
            return False
        return last_modified <= since
