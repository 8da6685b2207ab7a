"""
Unit tests for Application wiring, hooks and the command-line entry point.
"""

import pytest

import flow
from flow import Application
from flow.__main__ import build_demo_app, build_parser, configure
from flow.errors import CollaboratorUnavailableError


class TestHooks:
    """Tests for panic and not-found hooks."""

    def test_custom_panic_handler(self, app, raw_request, caplog):
        """Test a user panic hook answers and the stack is still logged."""

        def on_panic(writer, request, exc):
            writer.set_status(503)
            writer.write(f"sorry: {exc}")

        app.set_panic_handler(on_panic)
        app.new_router_group().get("/", lambda ctx: 1 / 0)

        writer = app.inject(raw_request())

        assert writer.status == 503
        assert writer.body == b"sorry: division by zero"
        assert "ZeroDivisionError" in caplog.text

    def test_reset_panic_handler(self, app, raw_request):
        """Test None restores the default hook."""
        app.set_panic_handler(lambda w, r, e: w.write("custom"))
        app.set_panic_handler(None)
        app.new_router_group().get("/", lambda ctx: 1 / 0)

        writer = app.inject(raw_request())

        assert writer.status == 500
        assert writer.body == b"division by zero"

    def test_custom_not_found(self, app, raw_request):
        """Test a user not-found hook."""

        def not_found(writer, request):
            writer.set_status(404)
            writer.headers.set("Content-Type", "application/json")
            writer.write('{"error": "not found"}')

        app.set_not_found_handler(not_found)

        writer = app.inject(raw_request("GET", "/missing"))

        assert writer.status == 404
        assert writer.body == b'{"error": "not found"}'

    def test_panic_after_set_length(self, app, raw_request):
        """Test a declared length is dropped so the 500 stays well framed."""

        def handler(ctx):
            ctx.set_length(100)
            raise RuntimeError("boom")

        app.new_router_group().get("/len", handler)

        writer = app.inject(raw_request("GET", "/len"))
        data = writer.to_bytes(head=False, transport=[("Connection", "keep-alive")])

        assert writer.status == 500
        assert b"Content-Length: 4\r\n" in data
        assert data.endswith(b"\r\n\r\nboom")
        assert writer.headers.get("X-Powered-By") == "flow"

    def test_handler_sees_collaborator_error(self, app, raw_request):
        """Test using a disabled collaborator fails the request with 500."""
        app.new_router_group().get("/cache", lambda ctx: ctx.redis.get("k"))

        writer = app.inject(raw_request("GET", "/cache"))

        assert writer.status == 500
        assert writer.body == str(CollaboratorUnavailableError("redis")).encode()


class TestLifecycle:
    """Tests for start() and close()."""

    def test_start_builds_collaborators(self, app):
        """Test curl and jwt are built, redis and orm only when enabled."""
        app.start()
        try:
            assert app.curl is not None
            assert app.jwt is not None
            assert app.redis is None
            assert app.orm is None
            assert app.config.frozen
        finally:
            app.close()

    def test_start_is_idempotent(self, app):
        """Test a second start() returns the same server."""
        try:
            assert app.start() is app.start()
        finally:
            app.close()

    def test_port_before_start(self, app):
        """Test the port is unknown until the server is built."""
        assert app.port is None
        assert app.wait_until_ready(timeout=0) is False


class TestFacade:
    """Tests for the module-level functions."""

    def test_default_app_shared(self):
        """Test the façade forwards to one default application."""
        assert flow.get_default_app() is flow.get_default_app()

    def test_new_router_group(self):
        """Test new_router_group() uses the default application."""
        group = flow.new_router_group()

        assert group.app is flow.get_default_app()


class TestCommandLine:
    """Tests for the flow command."""

    def test_parser_defaults(self):
        """Test unset options stay None so the environment applies."""
        args = build_parser().parse_args([])

        assert args.port is None
        assert args.host is None

    def test_configure_overrides(self, monkeypatch):
        """Test command-line values win over the environment."""
        monkeypatch.setenv("FLOW_PORT", "4000")
        monkeypatch.setenv("FLOW_LOG_LEVEL", "info")

        server, log = configure(build_parser().parse_args(["--host", "0.0.0.0", "--log-level", "error"]))

        assert server.port == 4000
        assert server.host == "0.0.0.0"
        assert log.level == "error"

    def test_invalid_level_rejected(self):
        """Test argparse rejects unknown log levels."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--log-level", "loud"])

    def test_demo_app(self, tmp_path, raw_request):
        """Test the demo routes."""
        server, log = configure(build_parser().parse_args([
            "--static-path", str(tmp_path / "none"),
            "--view-path", str(tmp_path),
            "--log-path", str(tmp_path / "logs"),
        ]))
        app = build_demo_app(server, log)
        assert isinstance(app, Application)

        hello = app.inject(raw_request("GET", "/hello/ann"))
        root = app.inject(raw_request("GET", "/"))

        assert hello.body == b"hello ann"
        assert root.body == b"hello world"
