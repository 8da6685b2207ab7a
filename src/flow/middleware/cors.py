"""
=============================================================================
STANDARD HEADERS + CORS
=============================================================================

Applied to every route of a router group:

    X-Powered-By:                   flow
    Access-Control-Allow-Origin:    CorsConfig.allow_origin
    Access-Control-Allow-Methods:   CorsConfig.allowed_methods
    Access-Control-Allow-Headers:   CorsConfig.allowed_headers
    Access-Control-Max-Age:         CorsConfig.max_age

A preflight never reaches the handler:

    OPTIONS /users  ──►  200 "true"   (next() is not called)

Router groups register OPTIONS for every path they add, so preflights
always match a route and end up here.
=============================================================================
"""

from typing import TYPE_CHECKING, Optional

from ..config import CorsConfig
from .base import Middleware, Next

if TYPE_CHECKING:
    from ..context import Context

POWERED_BY = "flow"


class CORSMiddleware(Middleware):
    """
    Without an explicit config the application's CorsConfig is read on
    each request, so groups created before run() see the final values.
    """

    def __init__(self, config: Optional[CorsConfig] = None):
        self.config = config

    def __call__(self, ctx: "Context", next: Next) -> None:
        cors = self.config or ctx.app.config.cors
        ctx.set_header("X-Powered-By", POWERED_BY)
        ctx.set_header("Access-Control-Allow-Origin", cors.allow_origin)
        ctx.set_header("Access-Control-Allow-Methods", cors.allowed_methods)
        ctx.set_header("Access-Control-Allow-Headers", cors.allowed_headers)
        ctx.set_header("Access-Control-Max-Age", str(cors.max_age))

        if ctx.get_method() == "OPTIONS":
            ctx.raw(b"true")
            return

        next()
