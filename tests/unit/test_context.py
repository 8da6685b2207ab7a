"""
Unit tests for the per-request Context.
"""

import threading

import pytest

from flow.context import Context
from flow.errors import BodyReadError, CollaboratorUnavailableError
from flow.http.response import ResponseWriter


@pytest.fixture
def make_context(app, make_request):
    """Factory for a Context over the test application."""

    def factory(*args, params=(), **kwargs):
        return Context(app, ResponseWriter(), make_request(*args, **kwargs), params)

    return factory


class TestContext:
    """Tests for Context."""

    def test_request_ids_increase(self, make_context):
        """Test each context draws the next id."""
        first = make_context()
        second = make_context()

        assert second.request_id == first.request_id + 1

    def test_explicit_request_id(self, app, make_request):
        """Test a caller-supplied id is kept."""
        ctx = Context(app, ResponseWriter(), make_request(), request_id=99)

        assert ctx.request_id == 99

    def test_request_accessors(self, make_context):
        """Test request methods are reachable on the context."""
        ctx = make_context("GET", "/users/7?page=2", headers={"User-Agent": "pytest-ua"})

        assert ctx.get_method() == "GET"
        assert ctx.get_uri() == "/users/7"
        assert ctx.get_querystring() == "page=2"
        assert ctx.get_host() == "localhost:9505"
        assert ctx.get_user_agent() == "pytest-ua"
        assert ctx.get_client_ip() == "10.0.0.9"

    def test_params(self, make_context):
        """Test path and query parameters."""
        ctx = make_context("GET", "/users/7?page=2", params=[("id", "7")])

        assert ctx.get_int_param("id") == 7
        assert ctx.get_int_param("page") == 2
        assert ctx.get_string_param_default("sort", "name") == "name"

    def test_response_helpers(self, make_context):
        """Test response methods write to the request's writer."""
        ctx = make_context()
        ctx.set_header("X-Trace", "t1").set_status(202)
        ctx.json({"ok": True})

        assert ctx.get_status_code() == 202
        assert ctx.res.writer.headers.get("X-Trace") == "t1"
        assert ctx.res.writer.body == b'{"ok": true}'

    def test_is_fresh(self, make_context):
        """Test freshness is judged against the response built so far."""
        ctx = make_context("GET", "/", headers={"If-None-Match": '"v1"'})

        assert ctx.is_fresh() is False
        ctx.set_header("ETag", '"v1"')
        assert ctx.is_fresh() is True

    def test_raw_body(self, make_context):
        """Test the raw body is available."""
        ctx = make_context("POST", "/", body=b"payload")

        assert ctx.get_raw_body() == b"payload"

    def test_raw_body_cut_short(self, make_context):
        """Test a truncated body raises on read."""
        ctx = make_context("POST", "/", headers={"Content-Length": "50"}, body=b"short")

        with pytest.raises(BodyReadError):
            ctx.get_raw_body()

    def test_data_store(self, make_context):
        """Test the per-request data map."""
        ctx = make_context()
        ctx.set_data("user", {"id": 1})

        assert ctx.get_data("user") == {"id": 1}
        assert ctx.get_data("missing") is None
        assert ctx.get_data("missing", "fallback") == "fallback"

    def test_data_store_concurrent(self, make_context):
        """Test concurrent writers all land."""
        ctx = make_context()

        def writer(n):
            for i in range(50):
                ctx.set_data(f"{n}-{i}", i)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(ctx.get_data(f"{n}-49") == 49 for n in range(4))

    def test_disabled_collaborators(self, make_context):
        """Test orm and redis raise when not enabled."""
        ctx = make_context()

        with pytest.raises(CollaboratorUnavailableError) as exc_info:
            ctx.redis
        assert exc_info.value.name == "redis"

        with pytest.raises(CollaboratorUnavailableError):
            ctx.orm

    def test_collaborator_available(self, app, make_context):
        """Test collaborators set on the application are returned."""
        marker = object()
        app.curl = marker

        assert make_context().curl is marker

    def test_logger_fields(self, make_context):
        """Test the request logger carries requestId and ua."""
        ctx = make_context(headers={"User-Agent": "agent/1"})

        assert ctx.logger.fields == {"requestId": ctx.request_id, "ua": "agent/1"}

    def test_render(self, app, make_context):
        """Test templates load from the view path."""
        views = app.config.server.view_path
        with open(f"{views}/hello.html", "w", encoding="utf-8") as f:
            f.write("<p>Hello {{ name }}</p>")

        ctx = make_context()
        ctx.render("hello.html", {"name": "<b>ann</b>"})

        assert ctx.res.writer.headers.get("Content-Type") == "text/html; charset=utf-8"
        assert ctx.res.writer.body == b"<p>Hello &lt;b&gt;ann&lt;/b&gt;</p>"
