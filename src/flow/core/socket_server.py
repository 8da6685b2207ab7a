"""
=============================================================================
TCP LISTENER
=============================================================================

Binds the listening socket and runs the accept loop. Each accepted client
becomes a Connection and goes to a callback; HTTPServer's callback queues
it on the worker pool.

    start(on_connection)
        ├──► _bind()                   reuse address, no Nagle, 1s accept poll
        ├──► _shutdown_on_signals()    SIGINT / SIGTERM → shutdown()
        └──► accept loop               returns after shutdown()

Signal handlers can only be installed from the main thread. Elsewhere
(tests, embedding) the listener runs without them and the caller stops it
with shutdown().
=============================================================================
"""

import contextlib
import logging
import signal
import socket
import threading
from typing import Callable, Optional

from ..config import ServerConfig
from .connection import Connection

logger = logging.getLogger(__name__)

ACCEPT_POLL = 1.0


class SocketServer:
    """Accepts TCP clients for one ServerConfig."""

    def __init__(self, config: ServerConfig):
        self.config = config
        self.bound_port: Optional[int] = None
        self._listener: Optional[socket.socket] = None
        self._accepting = threading.Event()
        self._ready = threading.Event()

    def _bind(self) -> socket.socket:
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        listener.settimeout(ACCEPT_POLL)
        try:
            listener.bind((self.config.host, self.config.port))
            listener.listen(self.config.backlog)
        except OSError as e:
            listener.close()
            logger.error(f"Cannot listen on {self.config.host}:{self.config.port}: {e}")
            raise
        return listener

    @contextlib.contextmanager
    def _shutdown_on_signals(self):
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        def on_signal(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down")
            self.shutdown()

        previous = {sig: signal.signal(sig, on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
        try:
            yield
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

    def start(self, on_connection: Callable[[Connection], None]) -> None:
        """Listen and hand accepted clients to on_connection until shutdown()."""
        self._listener = self._bind()
        self.bound_port = self._listener.getsockname()[1]
        self._accepting.set()

        with self._shutdown_on_signals():
            logger.info(f"Listening on {self.config.host}:{self.bound_port}")
            self._ready.set()
            try:
                while self._accepting.is_set():
                    try:
                        client, address = self._listener.accept()
                    except socket.timeout:
                        continue
                    except OSError as e:
                        if self._accepting.is_set():
                            logger.error(f"Accept failed: {e}")
                        break
                    logger.debug(f"Accepted {address[0]}:{address[1]}")
                    on_connection(Connection(client, address, self.config))
            finally:
                self._listener.close()
                self._listener = None
                self._ready.clear()
                logger.info("Listener closed")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    def shutdown(self) -> None:
        """Stop accepting; the loop notices within ACCEPT_POLL seconds."""
        self._accepting.clear()
