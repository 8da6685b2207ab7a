"""
=============================================================================
CLIENT CONNECTION
=============================================================================

One accepted socket plus a byte buffer. A recv() can hand back half a
request or a request and a half, so bytes are buffered and cut at request
boundaries; whatever follows a request stays buffered for the next one on
a kept-alive connection.

    buffer:  [ head \r\n\r\n | body (Content-Length) | next request ... ]
               └──────── read_request() ───────────┘   └─ kept ──────┘

A peer that hangs up mid-body still yields its partial request. The
parser notices the short body and ctx.get_raw_body() reports it.

Timeouts:
    first request      ServerConfig.timeout            → TimeoutError (408)
    later requests     ServerConfig.keep_alive_timeout → None (quiet close)
=============================================================================
"""

import logging
import re
import socket
from typing import Optional

from ..config import ServerConfig
from ..http.request import HTTPParseError
from .request_id import RequestIdSource

logger = logging.getLogger(__name__)

HEAD_END = b"\r\n\r\n"

_CONTENT_LENGTH = re.compile(rb"^content-length[ \t]*:[ \t]*(\d+)[ \t]*$", re.IGNORECASE | re.MULTILINE)

_connection_ids = RequestIdSource()


class Connection:
    """A client socket read one request at a time."""

    def __init__(self, sock: socket.socket, address: tuple, config: ServerConfig):
        self.socket = sock
        self.address = address
        self.config = config
        self.id = f"c{_connection_ids.next_id()}"
        self.requests = 0
        self._pending = bytearray()
        self._closed = False

        sock.setblocking(True)
        sock.settimeout(config.timeout)

    def read_request(self) -> Optional[bytes]:
        """
        Return the bytes of the next request.

        None means the peer closed, or went quiet on a kept-alive connection,
        before a request began. Raises TimeoutError when the first request
        does not arrive in time and HTTPParseError (413) for oversize input.
        """
        idle_timeout = self.config.keep_alive_timeout if self.requests else self.config.timeout
        self.socket.settimeout(idle_timeout)
        try:
            if not self._fill(lambda: HEAD_END in self._pending):
                return None

            body_start = self._pending.index(HEAD_END) + len(HEAD_END)
            total = body_start + self._declared_length(bytes(self._pending[:body_start]))
            self._check_size(total)

            if not self._fill(lambda: len(self._pending) >= total):
                logger.debug(f"[{self.id}] peer closed mid-body")

            data = bytes(self._pending[:total])
            del self._pending[:total]
            self.requests += 1
            return data
        except socket.timeout:
            if self.requests:
                logger.debug(f"[{self.id}] idle timeout after {self.requests} requests")
                return None
            raise TimeoutError("request read timeout")
        finally:
            self.socket.settimeout(self.config.timeout)

    def _fill(self, done) -> bool:
        """recv() until done() holds; False if the peer closed first."""
        while not done():
            try:
                chunk = self.socket.recv(self.config.buffer_size)
            except (ConnectionResetError, BrokenPipeError):
                chunk = b""
            if not chunk:
                return False
            self._pending += chunk
            self._check_size(len(self._pending))
        return True

    def _check_size(self, size: int) -> None:
        if size > self.config.max_request_size:
            raise HTTPParseError(f"Request too large: {size} bytes", status_code=413)

    @staticmethod
    def _declared_length(head: bytes) -> int:
        # Malformed values are left for the parser to reject.
        match = _CONTENT_LENGTH.search(head)
        return int(match.group(1)) if match else 0

    def send(self, data: bytes) -> bool:
        """Write a serialized response; False if the peer is gone."""
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] send failed: {e}")
            return False
        return True

    def close(self) -> None:
        """Shut down our side, drain briefly, then close the socket."""
        if self._closed:
            return
        self._closed = True
        try:
            self.socket.shutdown(socket.SHUT_WR)
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError as e:
            logger.debug(f"[{self.id}] drain stopped: {e}")
        finally:
            self.socket.close()
        logger.debug(f"[{self.id}] closed after {self.requests} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
