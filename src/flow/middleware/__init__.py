from .access_log import AccessLogMiddleware
from .base import (
    FunctionMiddleware,
    Middleware,
    MiddlewareChain,
    MiddlewareFunc,
    Next,
    function_middleware,
    middleware_name,
)
from .cors import CORSMiddleware

__all__ = [
    "AccessLogMiddleware",
    "CORSMiddleware",
    "FunctionMiddleware",
    "Middleware",
    "MiddlewareChain",
    "MiddlewareFunc",
    "Next",
    "function_middleware",
    "middleware_name",
]
