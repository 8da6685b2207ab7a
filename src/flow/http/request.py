"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into HTTPRequest objects (RFC 7230).
This is the "raw request" the pipeline wraps: the Request view, the
parameter merger and the Context all read from it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /api/users?page=1 HTTP/1.1\r\n          ← request line         │
    │  Host: example.com\r\n                       ← headers              │
    │  Content-Length: 42\r\n                                              │
    │  \r\n                                        ← separator            │
    │  {"username": "alice"}                       ← body                 │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SHORT BODIES
=============================================================================

When the peer disconnects before Content-Length bytes arrived, parsing
still succeeds: the request keeps the bytes it got and records a
BodyReadError in ``body_error``. read_body() raises it, and the Context
stores it so handlers see it through ctx.get_raw_body(). Routing and the
rest of the pipeline run as usual.

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import parse_qs, unquote, urlsplit

from ..errors import BodyReadError
from .headers import Headers


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code to answer with:

        400 Bad Request                - Malformed request syntax
        405 Method Not Allowed         - Unknown method
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         Uppercase HTTP method.
        target:         Request target as sent ("/users?page=1").
        path:           URL-decoded path without the query string.
        raw_query:      Query string without the leading "?".
        version:        "HTTP/1.1" or "HTTP/1.0".
        headers:        Case-insensitive multi-map.
        query_params:   {"page": ["1"]}
        body:           Body bytes (possibly short, see body_error).
        body_error:     Set when the body was cut short.
        client_address: (ip, port) of the peer.
        tls:            True when the request arrived over TLS.
    """

    method: str
    path: str
    target: str = ""
    raw_query: str = ""
    version: str = "HTTP/1.1"

    headers: Headers = field(default_factory=Headers)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""
    body_error: Optional[BodyReadError] = None

    client_address: tuple[str, int] = ("", 0)
    tls: bool = False
    raw: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        if not self.target:
            self.target = self.path + (f"?{self.raw_query}" if self.raw_query else "")
        if self.raw_query and not self.query_params:
            self.query_params = parse_qs(self.raw_query, keep_blank_values=True)

    @property
    def content_type(self) -> str:
        """Media type without parameters, lowercased ("" when absent)."""
        return self.headers.get("content-type").split(";")[0].strip().lower()

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", "0"))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent")

    @property
    def remote_addr(self) -> str:
        ip, port = self.client_address
        return f"{ip}:{port}" if ip else ""

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps alive unless "Connection: close";
        HTTP/1.0 closes unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        return self.headers.get(name, default)

    def read_body(self) -> bytes:
        """Return the body, raising BodyReadError if it was cut short."""
        if self.body_error is not None:
            raise self.body_error
        return self.body


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        1. Size check                 too large?   → 413
        2. Find \r\n\r\n              missing?     → 400
        3. Request line               invalid?     → 400 / 405 / 505
        4. Headers                    multi-valued, case-insensitive
        5. Body                       Content-Length bytes; short → body_error
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH",
        "HEAD", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 64 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple[str, int] = ("", 0)) -> HTTPRequest:
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Header bytes are ISO-8859-1 per RFC 7230; latin-1 never fails.
        lines = data[:header_end].decode("latin-1").split("\r\n")
        body = data[header_end + 4:]

        method, target, path, raw_query, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", "0"))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")

        body_error = None
        if len(body) < content_length:
            body_error = BodyReadError(
                f"unexpected EOF: expected {content_length} body bytes, got {len(body)}"
            )
        body = body[:content_length]

        return HTTPRequest(
            method=method,
            path=path,
            target=target,
            raw_query=raw_query,
            version=version,
            headers=headers,
            query_params=parse_qs(raw_query, keep_blank_values=True),
            body=body,
            body_error=body_error,
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str, str, str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        parts = urlsplit(target)
        path = unquote(parts.path) or "/"

        # "GET /../../etc/passwd" must never reach a file-serving handler.
        if ".." in path.split("/"):
            raise HTTPParseError("Invalid path: contains ..", status_code=400)

        return method, target, path, parts.query, version

    def _parse_headers(self, lines: list[str]) -> Headers:
        headers = Headers()
        last: Optional[tuple[str, str]] = None

        for line in lines:
            if not line:
                continue

            # Obsolete line folding: continuation of the previous header.
            if line[0] in (" ", "\t"):
                if last is not None:
                    name, value = last
                    values = headers.get_all(name)
                    last = (name, value + " " + line.strip())
                    headers.remove(name)
                    for v in values[:-1]:
                        headers.add(name, v)
                    headers.add(name, last[1])
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip malformed header lines

            name, value = match.groups()
            last = (name.strip(), value.strip())
            headers.add(*last)

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 64 * 1024 * 1024,
) -> HTTPRequest:
    return RequestParser(max_request_size=max_size).parse(data, client_address)
