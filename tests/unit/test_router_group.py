"""
Unit tests for router groups, CORS, access logging and static files.
"""

import logging

import pytest

from flow.config import CorsConfig
from flow.middleware import CORSMiddleware, MiddlewareChain


class TestRegistration:
    """Tests for the group shortcuts."""

    def test_verb_registers_options(self, app):
        """Test get() also registers OPTIONS for the path."""
        app.new_router_group().get("/users", lambda ctx: ctx.text("users"))

        assert app.router.has_route("GET", "/users")
        assert app.router.has_route("OPTIONS", "/users")

    def test_options_registered_once(self, app):
        """Test a second verb on the same path keeps the first OPTIONS."""
        group = app.new_router_group()
        group.get("/users", lambda ctx: ctx.text("list"))
        group.post("/users", lambda ctx: ctx.text("create"))

        options = [r for r in app.router.routes() if r.method == "OPTIONS"]
        assert len(options) == 1

    def test_all_methods(self, app):
        """Test all() registers every verb."""
        app.new_router_group().all("/any", lambda ctx: ctx.text(ctx.get_method()))

        methods = sorted(r.method for r in app.router.routes())
        assert methods == ["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"]

    def test_duplicate_route(self, app):
        """Test registering the same verb and path twice fails."""
        group = app.new_router_group()
        group.get("/dup", lambda ctx: None)

        with pytest.raises(ValueError):
            group.get("/dup", lambda ctx: None)

    def test_use_is_chainable(self, app):
        """Test use() returns the group."""
        group = app.new_router_group()

        assert group.use(lambda ctx, next: next()) is group
        assert len(group.middleware) == 3


class TestCors:
    """Tests for the standard headers and preflights."""

    def test_preflight(self, app, raw_request):
        """Test OPTIONS is answered without running the handler."""
        calls = []
        app.new_router_group().post("/orders", lambda ctx: calls.append(ctx))

        writer = app.inject(raw_request("OPTIONS", "/orders"))

        assert calls == []
        assert writer.status == 200
        assert writer.body == b"true"
        assert writer.headers.get("Access-Control-Allow-Methods") == (
            "GET, POST, HEAD, OPTIONS, PUT, PATCH, DELETE, TRACE"
        )
        assert writer.headers.get("Access-Control-Max-Age") == "172800"

    def test_configured_values(self, app, raw_request):
        """Test the application's CorsConfig is used."""
        app.set_cors_config(CorsConfig(allow_origin="https://shop.example", allowed_headers="Authorization"))
        app.new_router_group().get("/x", lambda ctx: ctx.text("x"))

        writer = app.inject(raw_request("GET", "/x"))

        assert writer.headers.get("Access-Control-Allow-Origin") == "https://shop.example"
        assert writer.headers.get("Access-Control-Allow-Headers") == "Authorization"
        assert writer.headers.get("X-Powered-By") == "flow"

    def test_explicit_config(self, app, raw_request):
        """Test a middleware built with its own config ignores the app's."""
        chain = MiddlewareChain([CORSMiddleware(CorsConfig(allow_origin="https://a.example"))])
        app.handle("GET", "/", lambda ctx: ctx.text("ok"), chain)

        writer = app.inject(raw_request())

        assert writer.headers.get("Access-Control-Allow-Origin") == "https://a.example"


class TestAccessLog:
    """Tests for the access log lines."""

    def test_request_lines(self, app, raw_request, caplog):
        """Test incoming and completed lines are written."""
        app.new_router_group().get("/users/:id", lambda ctx: ctx.set_status(201).text("ok"))

        with caplog.at_level(logging.INFO, logger="flow"):
            app.inject(raw_request("GET", "/users/3"))

        messages = [r.getMessage() for r in caplog.records if r.name == "flow.app"]
        assert messages[0] == (
            "request incoming, method: GET, uri: /users/3, host: localhost:9505, protocol: http"
        )
        assert messages[1].startswith("request completed, cost: ")
        assert messages[1].endswith("ms, statusCode: 201")

    def test_fields_on_records(self, app, raw_request, caplog):
        """Test access log records carry the request fields."""
        app.new_router_group().get("/", lambda ctx: ctx.text("ok"))

        with caplog.at_level(logging.INFO, logger="flow"):
            app.inject(raw_request(headers={"User-Agent": "curl/8"}))

        record = next(r for r in caplog.records if r.name == "flow.app")
        assert record.fields["ua"] == "curl/8"
        assert isinstance(record.fields["requestId"], int)

    def test_failed_request_logged_as_500(self, app, raw_request, caplog):
        """Test the completed line is written when the handler raises."""

        def boom(ctx):
            raise RuntimeError("boom")

        app.new_router_group().get("/boom", boom)

        with caplog.at_level(logging.INFO, logger="flow"):
            writer = app.inject(raw_request("GET", "/boom"))

        assert writer.status == 500
        completed = [r.getMessage() for r in caplog.records if "request completed" in r.getMessage()]
        assert completed[0].endswith("statusCode: 500")


class TestStaticFiles:
    """Tests for static_files()."""

    @pytest.fixture
    def site(self, app, tmp_path):
        root = tmp_path / "site"
        (root / "css").mkdir(parents=True)
        (root / "css" / "app.css").write_text("body { color: red; }")
        (root / "docs").mkdir()
        (root / "docs" / "index.html").write_text("<h1>docs</h1>")
        (root / "empty").mkdir()
        (tmp_path / "secret.txt").write_text("secret")
        app.new_router_group().static_files("/assets", str(root))
        return root

    def test_serves_file(self, app, site, raw_request):
        """Test a file is served with caching headers."""
        writer = app.inject(raw_request("GET", "/assets/css/app.css"))

        assert writer.status == 200
        assert writer.body == b"body { color: red; }"
        assert writer.headers.get("Content-Type").startswith("text/css")
        assert writer.headers.get("Cache-Control") == "public, max-age=3600"
        assert writer.headers.get("ETag").startswith('"')
        assert writer.headers.get("Last-Modified").endswith("GMT")

    def test_conditional_get(self, app, site, raw_request):
        """Test a matching ETag yields 304."""
        first = app.inject(raw_request("GET", "/assets/css/app.css"))
        etag = first.headers.get("ETag")

        second = app.inject(raw_request("GET", "/assets/css/app.css", headers={"If-None-Match": etag}))

        assert second.status == 304
        assert second.body == b""

    def test_head(self, app, site, raw_request):
        """Test HEAD sends headers only."""
        writer = app.inject(raw_request("HEAD", "/assets/css/app.css"))

        assert writer.status == 200
        assert writer.body == b""
        assert writer.headers.get("Content-Length") == "20"

    def test_directory_index(self, app, site, raw_request):
        """Test a directory serves its index.html."""
        writer = app.inject(raw_request("GET", "/assets/docs"))

        assert writer.body == b"<h1>docs</h1>"

    def test_directory_without_index(self, app, site, raw_request):
        """Test a directory without index.html is forbidden."""
        assert app.inject(raw_request("GET", "/assets/empty")).status == 403

    def test_missing_file(self, app, site, raw_request):
        """Test a missing file is a 404."""
        writer = app.inject(raw_request("GET", "/assets/nope.css"))

        assert writer.status == 404
        assert writer.body == b"404 page not found"

    def test_query_cannot_choose_file(self, app, site, raw_request):
        """Test the served file comes from the URL path, not a filepath query value."""
        (site / "other.txt").write_text("other")

        swapped = app.inject(raw_request("GET", "/assets/css/app.css?filepath=other.txt"))
        escaped = app.inject(raw_request("GET", "/assets/css/app.css?filepath=../../secret.txt"))

        assert swapped.status == 200
        assert swapped.body == b"body { color: red; }"
        assert escaped.body == b"body { color: red; }"
