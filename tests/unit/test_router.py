"""
Unit tests for the route table and the recovery boundary.
"""

import logging

import pytest

from flow.http.request import parse_request
from flow.http.response import ResponseWriter
from flow.http.router import Router


def ok(writer, request, params):
    writer.write(b"ok")


def serve(router, raw):
    writer = ResponseWriter()
    router.serve(writer, parse_request(raw))
    return writer


class TestRouter:
    """Tests for Router."""

    def test_static_route(self):
        """Test matching a static route."""
        router = Router()
        router.handle("GET", "/users", ok)

        match = router.match("GET", "/users")
        assert match is not None
        assert match.route.path == "/users"
        assert match.params == []

    def test_trailing_slash(self):
        """Test trailing slashes are ignored when matching."""
        router = Router()
        router.handle("GET", "/users", ok)

        assert router.match("GET", "/users/") is not None

    def test_root_route(self):
        """Test the root pattern."""
        router = Router()
        router.handle("GET", "/", ok)

        assert router.match("GET", "/") is not None
        assert router.match("GET", "/other") is None

    def test_path_params_in_order(self):
        """Test named segments come back in pattern order."""
        router = Router()
        router.handle("GET", "/users/:user_id/posts/:post_id", ok)

        match = router.match("GET", "/users/42/posts/7")
        assert match.params == [("user_id", "42"), ("post_id", "7")]
        assert match.param("post_id") == "7"
        assert match.param("missing", "none") == "none"

    def test_catch_all(self):
        """Test a catch-all takes the rest of the path."""
        router = Router()
        router.handle("GET", "/static/*filepath", ok)

        match = router.match("GET", "/static/css/site.css")
        assert match.params == [("filepath", "css/site.css")]

    def test_method_matters(self):
        """Test a route only matches its own method."""
        router = Router()
        router.handle("get", "/users", ok)

        assert router.match("GET", "/users") is not None
        assert router.match("POST", "/users") is None

    def test_first_registered_wins(self):
        """Test earlier routes take precedence."""
        router = Router()
        router.handle("GET", "/users/me", ok)
        router.handle("GET", "/users/:id", ok)

        assert router.match("GET", "/users/me").route.path == "/users/me"
        assert router.match("GET", "/users/9").route.path == "/users/:id"

    def test_duplicate_registration(self):
        """Test the same method and pattern cannot be registered twice."""
        router = Router()
        router.handle("GET", "/users", ok)

        with pytest.raises(ValueError):
            router.handle("GET", "/users", ok)
        assert router.has_route("get", "/users")
        assert len(router.routes()) == 1

    def test_allowed_methods(self):
        """Test the methods registered for a path."""
        router = Router()
        router.handle("GET", "/items", ok)
        router.handle("POST", "/items", ok)

        assert router.get_allowed_methods("/items") == ["GET", "POST"]


class TestServe:
    """Tests for Router.serve."""

    def test_dispatch(self, raw_request):
        """Test a matched route writes the response."""
        router = Router()
        router.handle("GET", "/hello", ok)

        writer = serve(router, raw_request("GET", "/hello"))

        assert writer.status == 200
        assert writer.body == b"ok"

    def test_handle_receives_params(self, raw_request):
        """Test path params reach the handle."""
        seen = []
        router = Router()
        router.handle("GET", "/users/:id", lambda w, r, p: seen.append(p))

        serve(router, raw_request("GET", "/users/5"))

        assert seen == [[("id", "5")]]

    def test_default_not_found(self, raw_request):
        """Test the plain-text 404."""
        writer = serve(Router(), raw_request("GET", "/missing"))

        assert writer.status == 404
        assert writer.body == b"404 page not found"
        assert writer.headers.get("X-Content-Type-Options") == "nosniff"

    def test_custom_not_found(self, raw_request):
        """Test a replacement not-found hook."""

        def not_found(writer, request):
            writer.set_status(404)
            writer.write(f"no {request.path}")

        writer = serve(Router(not_found=not_found), raw_request("GET", "/x"))

        assert writer.body == b"no /x"

    def test_method_not_allowed(self, raw_request):
        """Test 405 with an Allow header."""
        router = Router()
        router.handle("GET", "/items", ok)
        router.handle("PUT", "/items", ok)

        writer = serve(router, raw_request("DELETE", "/items"))

        assert writer.status == 405
        assert writer.headers.get("Allow") == "GET, PUT"

    def test_panic_becomes_500(self, raw_request, caplog):
        """Test an exception escaping the handle is answered with 500."""

        def boom(writer, request, params):
            raise RuntimeError("boom")

        router = Router()
        router.handle("GET", "/boom", boom)

        with caplog.at_level(logging.ERROR, logger="flow"):
            writer = serve(router, raw_request("GET", "/boom"))

        assert writer.status == 500
        assert writer.body == b"boom"
        assert "panic recovered on GET /boom: boom" in caplog.text
        assert "RuntimeError" in caplog.text

    def test_panic_discards_partial_output(self, raw_request):
        """Test output written before the failure does not leak."""

        def half(writer, request, params):
            writer.headers.set("X-Partial", "1")
            writer.write(b"partial")
            raise ValueError("")

        router = Router()
        router.handle("GET", "/half", half)

        writer = serve(router, raw_request("GET", "/half"))

        assert writer.status == 500
        assert writer.body == b"unknown server error"
        assert "X-Partial" not in writer.headers

    def test_panic_drops_uncommitted_body_headers(self, raw_request):
        """Test body headers set before the failure do not frame the 500."""

        def declared(writer, request, params):
            writer.headers.set("Access-Control-Allow-Origin", "*")
            writer.headers.set("Content-Length", "100")
            writer.headers.set("ETag", "abc")
            writer.headers.set("Content-Type", "application/json")
            raise RuntimeError("boom")

        router = Router()
        router.handle("GET", "/declared", declared)

        writer = serve(router, raw_request("GET", "/declared"))
        data = writer.to_bytes()

        assert data.endswith(b"\r\n\r\nboom")
        assert b"Content-Length: 4\r\n" in data
        assert b"Content-Length: 100" not in data
        assert b"ETag" not in data
        assert writer.headers.get("Content-Type") == "text/plain; charset=utf-8"
        assert writer.headers.get("Access-Control-Allow-Origin") == "*"

    def test_custom_panic_handler(self, raw_request):
        """Test a replacement panic hook."""

        def handler(writer, request, exc):
            writer.set_status(503)
            writer.write(f"down: {exc}")

        def boom(writer, request, params):
            raise RuntimeError("db")

        router = Router(panic_handler=handler)
        router.handle("GET", "/", boom)

        writer = serve(router, raw_request("GET", "/"))

        assert writer.status == 503
        assert writer.body == b"down: db"
