"""
Panic recovery and not-found hooks.

Router.serve() is the only place that catches exceptions escaping a
handler. It calls the panic hook, which must leave a complete response in
the writer. The defaults:

    panic      text/plain, 500, body = str(exc) or "unknown server error"
    not found  text/plain, 404, "404 page not found", X-Content-Type-Options: nosniff

User hooks installed with Application.set_panic_handler() are wrapped so
the traceback is always logged before the hook runs.
"""

import logging
import traceback
from typing import Callable

from .http.request import HTTPRequest
from .http.response import ResponseWriter

logger = logging.getLogger(__name__)

PanicHook = Callable[[ResponseWriter, HTTPRequest, BaseException], None]


def describe(exc: BaseException) -> str:
    return str(exc) or "unknown server error"


def log_panic(request: HTTPRequest, exc: BaseException) -> None:
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(f"panic recovered on {request.method} {request.target}: {describe(exc)}\n{stack}")


# Headers describing the body the handler meant to send.
ENTITY_HEADERS = (
    "Content-Length",
    "Content-Type",
    "Content-Encoding",
    "Content-Disposition",
    "Transfer-Encoding",
    "ETag",
    "Last-Modified",
)


def _discard_partial(writer: ResponseWriter) -> None:
    # Whatever the handler wrote before failing must not leak out under a 500.
    if writer.committed:
        writer.reset()
        return
    for name in ENTITY_HEADERS:
        writer.headers.remove(name)


def default_panic_handler(writer: ResponseWriter, request: HTTPRequest, exc: BaseException) -> None:
    log_panic(request, exc)
    _discard_partial(writer)
    writer.headers.set("Content-Type", "text/plain; charset=utf-8")
    writer.set_status(500)
    writer.write(describe(exc))


def default_not_found(writer: ResponseWriter, request: HTTPRequest) -> None:
    writer.headers.set("Content-Type", "text/plain; charset=utf-8")
    writer.headers.set("X-Content-Type-Options", "nosniff")
    writer.set_status(404)
    writer.write("404 page not found")


def logging_panic_handler(hook: PanicHook) -> PanicHook:
    """Wrap a user panic hook so the stack is logged first."""

    def handler(writer: ResponseWriter, request: HTTPRequest, exc: BaseException) -> None:
        log_panic(request, exc)
        _discard_partial(writer)
        hook(writer, request, exc)

    return handler
