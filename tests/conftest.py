"""
pytest configuration and fixtures.
"""

import logging
import threading
from typing import Callable, Generator, Optional

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from flow import Application, Configuration, LoggerConfig, ServerConfig
from flow.core.request_id import RequestIdSource
from flow.http.request import HTTPRequest, parse_request


def build_raw(
    method: str = "GET",
    target: str = "/",
    headers: Optional[dict] = None,
    body: bytes = b"",
    version: str = "HTTP/1.1",
) -> bytes:
    lines = [f"{method} {target} {version}", "Host: localhost:9505"]
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    if body and not any(k.lower() == "content-length" for k in (headers or {})):
        lines.append(f"Content-Length: {len(body)}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + body


@pytest.fixture
def raw_request() -> Callable[..., bytes]:
    """Factory for raw request bytes."""
    return build_raw


@pytest.fixture
def make_request() -> Callable[..., HTTPRequest]:
    """Factory for parsed requests."""

    def factory(method="GET", target="/", headers=None, body=b"", client_address=("10.0.0.9", 51234)):
        return parse_request(build_raw(method, target, headers, body), client_address)

    return factory


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:9505\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "John", "email": "john@example.com"}'
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:9505\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def app(tmp_path) -> Generator[Application, None, None]:
    """An application with its own id source and paths under tmp_path."""
    views = tmp_path / "views"
    statics = tmp_path / "statics"
    views.mkdir()
    statics.mkdir()

    application = Application(Configuration(), id_source=RequestIdSource())
    application.set_server_config(ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        static_path=str(statics),
        view_path=str(views),
    ))
    application.set_logger_config(LoggerConfig(level="debug", path=str(tmp_path / "logs")))
    yield application
    application.scheduler.stop_all()


class LiveServer:
    """Runs an Application in a background thread."""

    def __init__(self, app: Application):
        self.app = app
        self._thread: Optional[threading.Thread] = None

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.app.port}"

    def start(self):
        """Start the server and wait until it accepts connections."""
        self.app.start()
        self._thread = threading.Thread(target=self.app.run, daemon=True)
        self._thread.start()
        if not self.app.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.app.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def live_server(app: Application) -> Generator[LiveServer, None, None]:
    """Start ``app`` after the test registered its routes."""
    server = LiveServer(app)
    yield server
    server.stop()


@pytest.fixture(autouse=True)
def _detach_flow_handlers():
    """Keep log handlers from leaking between tests."""
    root = logging.getLogger("flow")
    before = list(root.handlers)
    yield
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
