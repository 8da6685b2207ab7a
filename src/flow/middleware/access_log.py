"""
Access log middleware.

Writes one line when a request comes in and one when it is done, both
through the request's bound logger so they carry requestId and ua:

    request incoming, method: GET, uri: /users/7, host: api.local, protocol: http
    request completed, cost: 3.21ms, statusCode: 200

The completed line is written even when the handler raises. The status
then reads 500, which is what the recovery boundary will send.
"""

import time
from typing import TYPE_CHECKING

from .base import Middleware, Next

if TYPE_CHECKING:
    from ..context import Context


class AccessLogMiddleware(Middleware):
    def __call__(self, ctx: "Context", next: Next) -> None:
        start = time.perf_counter()
        ctx.logger.info(
            f"request incoming, method: {ctx.get_method()}, uri: {ctx.get_uri()}, "
            f"host: {ctx.get_host()}, protocol: {ctx.get_protocol()}"
        )

        failed = False
        try:
            next()
        except Exception:
            failed = True
            raise
        finally:
            cost = (time.perf_counter() - start) * 1000
            status = 500 if failed else ctx.get_status_code()
            ctx.logger.info(f"request completed, cost: {cost:.2f}ms, statusCode: {status}")
