"""
=============================================================================
ROUTER GROUPS
=============================================================================

A group is a middleware list plus shortcuts that register handlers on the
application's route table.

    api = app.new_router_group()
    api.use(require_token)
    api.get("/users/:id", show_user)
    api.post("/users", create_user)

Every group starts with two middleware in front of whatever is added with
use():

    [AccessLogMiddleware, CORSMiddleware, require_token, ...]  ──►  handler

=============================================================================
REGISTRATION
=============================================================================

    get / head / post / put / patch / delete   the verb, plus OPTIONS for
                                               the same path (a preflight
                                               is answered by CORS)
    all                                        all seven verbs
    static_files(prefix, directory)            GET + HEAD <prefix>/*filepath

A route keeps the middleware list as it was when the route was
registered; use() afterwards only affects routes added later.
=============================================================================
"""

import logging
from typing import TYPE_CHECKING, Callable, List

from .handlers.static import FILEPATH_PARAM, StaticFileHandler
from .middleware.access_log import AccessLogMiddleware
from .middleware.base import MiddlewareChain, MiddlewareFunc
from .middleware.cors import CORSMiddleware

if TYPE_CHECKING:
    from .application import Application
    from .context import Context

logger = logging.getLogger(__name__)

Handler = Callable[["Context"], None]

ALL_METHODS = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")


class RouterGroup:
    def __init__(self, app: "Application"):
        self.app = app
        self.middleware: List[MiddlewareFunc] = [AccessLogMiddleware(), CORSMiddleware()]

    def use(self, m: MiddlewareFunc) -> "RouterGroup":
        self.middleware.append(m)
        return self

    def _register(self, method: str, path: str, handler: Handler) -> None:
        chain = MiddlewareChain(self.middleware)
        self.app.handle(method, path, handler, chain)

    def _register_with_options(self, method: str, path: str, handler: Handler) -> "RouterGroup":
        self._register(method, path, handler)
        if not self.app.router.has_route("OPTIONS", path):
            self._register("OPTIONS", path, handler)
        return self

    def get(self, path: str, handler: Handler) -> "RouterGroup":
        return self._register_with_options("GET", path, handler)

    def head(self, path: str, handler: Handler) -> "RouterGroup":
        return self._register_with_options("HEAD", path, handler)

    def post(self, path: str, handler: Handler) -> "RouterGroup":
        return self._register_with_options("POST", path, handler)

    def put(self, path: str, handler: Handler) -> "RouterGroup":
        return self._register_with_options("PUT", path, handler)

    def patch(self, path: str, handler: Handler) -> "RouterGroup":
        return self._register_with_options("PATCH", path, handler)

    def delete(self, path: str, handler: Handler) -> "RouterGroup":
        return self._register_with_options("DELETE", path, handler)

    def all(self, path: str, handler: Handler) -> "RouterGroup":
        for method in ALL_METHODS:
            if method == "OPTIONS" and self.app.router.has_route("OPTIONS", path):
                continue
            self._register(method, path, handler)
        return self

    def static_files(self, prefix: str, directory: str) -> "RouterGroup":
        """Serve ``directory`` under ``prefix`` for GET and HEAD."""
        handler = StaticFileHandler(directory)
        path = "/" + prefix.strip("/") + f"/*{FILEPATH_PARAM}"
        if path.startswith("//"):
            path = path[1:]
        self._register("GET", path, handler)
        self._register("HEAD", path, handler)
        logger.info(f"Serving static files from {handler.root_dir} at {prefix}")
        return self
