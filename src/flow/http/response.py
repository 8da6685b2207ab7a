"""
=============================================================================
RESPONSE WRITER
=============================================================================

The raw, buffered response a handler writes into. One ResponseWriter is
created per request by the server; the Response view wraps it for
handler code, and the server serializes it with to_bytes() when the
pipeline returns.

    ┌──────────────────────────────────────────────────────────────────┐
    │                     WRITER LIFECYCLE                             │
    ├──────────────────────────────────────────────────────────────────┤
    │                                                                   │
    │   headers.set(...)      mutable until the status is committed    │
    │   set_status(404)       pending status, may change again         │
    │        │                                                          │
    │   write(b"...")  ──►  write_header()  commits status + headers   │
    │        │              (200 if nothing pending)                   │
    │        ▼                                                          │
    │   write(b"...")         appends to the buffered body             │
    │        │                                                          │
    │   to_bytes()     ──►  "HTTP/1.1 404 Not Found\r\n..."            │
    │                                                                   │
    └──────────────────────────────────────────────────────────────────┘

Once committed the status is fixed: later set_status()/write_header()
calls are ignored with a warning, and header changes no longer reach the
wire. This mirrors what a streaming server can actually do.

=============================================================================
"""

import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Iterable, Optional, Tuple, Union

from .headers import Headers

logger = logging.getLogger(__name__)

# Status codes that never carry a body (RFC 7230 section 3.3.3).
BODYLESS_STATUSES = frozenset({204, 304})


def reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    dt = dt.astimezone(timezone.utc)
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


class ResponseWriter:
    """Buffered HTTP response with a write-once status."""

    def __init__(self, version: str = "HTTP/1.1"):
        self.version = version
        self.headers = Headers()

        self._pending_status: Optional[int] = None
        self._status: Optional[int] = None
        self._sent_headers: Optional[Headers] = None
        self._body = bytearray()

    @property
    def committed(self) -> bool:
        return self._status is not None

    @property
    def status(self) -> int:
        """Committed status, else the pending one, else 200."""
        if self._status is not None:
            return self._status
        return self._pending_status or 200

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    def set_status(self, status: int) -> None:
        if self.committed:
            logger.warning(f"Ignoring status {status}: response already committed with {self._status}")
            return
        self._pending_status = int(status)

    def write_header(self, status: Optional[int] = None) -> None:
        if self.committed:
            if status is not None and status != self._status:
                logger.warning(f"Superfluous write_header({status}), status is {self._status}")
            return
        self._status = int(status) if status is not None else (self._pending_status or 200)
        self._sent_headers = self.headers.copy()

    def write(self, data: Union[bytes, bytearray, memoryview, str]) -> int:
        if isinstance(data, str):
            data = data.encode("utf-8")
        if not self.committed:
            self.write_header()
        self._body += data
        return len(data)

    def reset(self) -> None:
        """Discard everything written so far, headers included."""
        self.headers = Headers()
        self._pending_status = None
        self._status = None
        self._sent_headers = None
        self._body = bytearray()

    def to_bytes(
        self,
        server_name: str = "flow",
        head: bool = False,
        transport: Iterable[Tuple[str, str]] = (),
    ) -> bytes:
        """
        Serialize the response for socket.sendall().

        Adds Content-Length (except on 204/304), Date and Server when the
        handler did not set them. ``transport`` headers (Connection,
        Keep-Alive) are owned by the server and replace the handler's.
        ``head`` drops the body but keeps the headers, as a HEAD response
        must.
        """
        self.write_header()
        headers = self._sent_headers.copy()
        for name, value in transport:
            headers.set(name, value)
        status = self._status
        body = b"" if status in BODYLESS_STATUSES else bytes(self._body)

        if status not in BODYLESS_STATUSES and status >= 200 and "Content-Length" not in headers:
            headers.set("Content-Length", str(len(body)))
        if "Date" not in headers:
            headers.set("Date", format_http_date(datetime.now(timezone.utc)))
        if "Server" not in headers:
            headers.set("Server", server_name)

        lines = [f"{self.version} {status} {reason_phrase(status)}"]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        lines.append("")

        head_bytes = "\r\n".join(lines).encode("latin-1", errors="replace") + b"\r\n"
        return head_bytes if head else head_bytes + body


def error_response(status: int, message: str) -> ResponseWriter:
    """Plain-text error response for failures outside the pipeline."""
    writer = ResponseWriter()
    writer.headers.set("Content-Type", "text/plain; charset=utf-8")
    writer.headers.set("Connection", "close")
    writer.set_status(status)
    writer.write(message)
    return writer
