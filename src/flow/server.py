"""
=============================================================================
HTTP/1.1 SERVER
=============================================================================

Transport underneath an Application: accepts TCP connections, parses
requests and writes back whatever the dispatch function left in the
ResponseWriter.

    ┌──────────────┐   Connection   ┌──────────────┐
    │ SocketServer │ ─────────────► │  ThreadPool  │  (503 when full)
    └──────────────┘                └──────┬───────┘
                                           │ worker thread
                                           ▼
                        ┌──────────────────────────────────────┐
                        │  keep-alive loop                     │
                        │    read_request()                    │
                        │    RequestParser.parse()  (400/413)  │
                        │    dispatch(writer, request)         │
                        │    writer.to_bytes(head=HEAD)        │
                        │    send, repeat if keep-alive        │
                        └──────────────────────────────────────┘

``dispatch`` is normally Router.serve, which never raises: failures are
turned into responses there. A failure that still escapes is logged and
answered with a bare 500.
=============================================================================
"""

import logging
import threading
from typing import Callable, Optional

from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool
from .http.request import HTTPParseError, HTTPRequest, RequestParser
from .http.response import ResponseWriter, error_response

logger = logging.getLogger(__name__)

Dispatch = Callable[[ResponseWriter, HTTPRequest], None]


class HTTPServer:
    def __init__(self, config: ServerConfig, dispatch: Dispatch):
        self.config = config
        self.dispatch = dispatch

        self._socket_server = SocketServer(config)
        self._thread_pool = ThreadPool(
            min_workers=config.min_workers,
            max_workers=config.max_workers,
        )
        self._parser = RequestParser(max_request_size=config.max_request_size)
        self._running = threading.Event()

    @property
    def port(self) -> Optional[int]:
        return self._socket_server.bound_port

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def serve_forever(self) -> None:
        """Accept connections until shutdown() (blocking)."""
        self._running.set()
        self._thread_pool.start()
        logger.info(
            f"{self.config.app_name} starting on {self.config.host}:{self.config.port} "
            f"({self.config.min_workers}-{self.config.max_workers} workers)"
        )
        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._stop_workers()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def shutdown(self) -> None:
        self._running.clear()
        self._socket_server.shutdown()

    def _stop_workers(self) -> None:
        logger.info("Shutting down server...")
        self._running.clear()
        self._thread_pool.shutdown(timeout=self.config.timeout)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTIONS
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        submitted = self._thread_pool.submit(self._process_connection, conn, timeout=self.config.timeout)
        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, 503, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection) -> None:
        with conn:
            while self._running.is_set():
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        self._send_error(conn, e.status_code, str(e))
                        break

                    writer = ResponseWriter(request.version)
                    try:
                        self.dispatch(writer, request)
                    except Exception as e:
                        logger.exception(f"[{conn.id}] Unhandled dispatch error: {e}")
                        writer = error_response(500, "Internal Server Error")

                    keep_alive = request.is_keep_alive and self.config.keep_alive
                    if keep_alive:
                        transport = [
                            ("Connection", "keep-alive"),
                            ("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"),
                        ]
                    else:
                        transport = [("Connection", "close")]

                    data = writer.to_bytes(
                        self.config.server_name,
                        head=request.method == "HEAD",
                        transport=transport,
                    )
                    if not conn.send(data):
                        break
                    if not keep_alive:
                        break

                except HTTPParseError as e:
                    self._send_error(conn, e.status_code, str(e))
                    break
                except TimeoutError:
                    self._send_error(conn, 408, "Request timeout")
                    break
                except OSError as e:
                    logger.debug(f"[{conn.id}] Connection error: {e}")
                    break

    def _send_error(self, conn: Connection, status: int, message: str) -> None:
        writer = error_response(status, message)
        conn.send(writer.to_bytes(self.config.server_name))
