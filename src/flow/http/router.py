"""
=============================================================================
ROUTE TABLE
=============================================================================

Maps (method, path pattern) to a handle and is the single recovery
boundary of the request pipeline.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Router.serve()                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   match(method, path)                                               │
    │      │                                                               │
    │      ├── found        → handle(writer, request, params)             │
    │      ├── other verbs  → 405 + Allow                                 │
    │      └── nothing      → not_found(writer, request)                  │
    │                                                                      │
    │   any Exception escaping the above → panic_handler(writer,          │
    │                                       request, exc)                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Patterns:
    /users              static segment, exact match
    /users/:id          one path segment      → ("id", "123")
    /static/*filepath   rest of the path      → ("filepath", "css/a.css")

Matching is first-registered, first-matched. Registering the same
method and pattern twice is an error.
=============================================================================
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from ..recovery import default_not_found, default_panic_handler
from .request import HTTPRequest
from .response import ResponseWriter

logger = logging.getLogger(__name__)

Params = List[Tuple[str, str]]

# A handle receives the writer, the raw request and the path parameters
# in pattern order.
Handle = Callable[[ResponseWriter, HTTPRequest, Params], None]
PanicHandler = Callable[[ResponseWriter, HTTPRequest, BaseException], None]
NotFoundHandler = Callable[[ResponseWriter, HTTPRequest], None]


@dataclass
class Route:
    path: str
    method: str
    handle: Handle

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    route: Route
    params: Params

    def param(self, name: str, default: str = "") -> str:
        for key, value in self.params:
            if key == name:
                return value
        return default


def method_not_allowed(writer: ResponseWriter, allowed: List[str]) -> None:
    writer.headers.set("Allow", ", ".join(allowed))
    writer.headers.set("Content-Type", "text/plain; charset=utf-8")
    writer.headers.set("X-Content-Type-Options", "nosniff")
    writer.set_status(405)
    writer.write("Method Not Allowed\n")


class Router:
    def __init__(
        self,
        panic_handler: Optional[PanicHandler] = None,
        not_found: Optional[NotFoundHandler] = None,
    ):
        self.panic_handler: PanicHandler = panic_handler or default_panic_handler
        self.not_found: NotFoundHandler = not_found or default_not_found
        self._routes: List[Route] = []

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def handle(self, method: str, path: str, handle: Handle) -> Route:
        method = method.upper()
        if self.has_route(method, path):
            raise ValueError(f"a handle is already registered for {method} {path}")

        pattern, param_names = self._compile_pattern(path)
        route = Route(path, method, handle, pattern, param_names)
        self._routes.append(route)
        logger.debug(f"Registered route {method} {path}")
        return route

    def has_route(self, method: str, path: str) -> bool:
        method = method.upper()
        return any(r.method == method and r.path == path for r in self._routes)

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        "/users/:id/posts/*rest" → ^/users/(?P<id>[^/]+)/posts/(?P<rest>.*)$
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                name = segment[1:]
                param_names.append(name)
                regex_parts.append(f"(?P<{name}>[^/]+)")
            elif segment.startswith("*"):
                name = segment[1:] or "wildcard"
                param_names.append(name)
                regex_parts.append(f"(?P<{name}>.*)")
                break  # catch-all consumes the rest
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")
        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    # =========================================================================
    # MATCHING
    # =========================================================================

    @staticmethod
    def _normalize(path: str) -> str:
        return "/" + path.strip("/") if path != "/" else "/"

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        path = self._normalize(path)
        method = method.upper()

        for route in self._routes:
            if route.method != method:
                continue
            m = route._pattern.match(path)
            if m:
                return RouteMatch(route, [(name, m.group(name)) for name in route._param_names])
        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        path = self._normalize(path)
        return sorted({r.method for r in self._routes if r._pattern.match(path)})

    def routes(self) -> List[Route]:
        return list(self._routes)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def serve(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        try:
            match = self.match(request.method, request.path)
            if match:
                match.route.handle(writer, request, match.params)
                return

            allowed = self.get_allowed_methods(request.path)
            if allowed:
                method_not_allowed(writer, allowed)
                return

            self.not_found(writer, request)
        except Exception as exc:
            self.panic_handler(writer, request, exc)
