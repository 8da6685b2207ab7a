"""
=============================================================================
MIDDLEWARE CHAIN
=============================================================================

Middleware wrap the route handler Koa-style: each one receives the Context
and a zero-argument ``next``. Work before ``next()`` runs on the way in,
work after it on the way out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   m1(ctx, next) ──► m2(ctx, next) ──► ... ──► mN(ctx, next) ──► h(ctx)
    │      pre               pre                       pre              │
    │      post  ◄────────── post  ◄───────── ... ◄─── post ◄───────────┘
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    chain.run(ctx, h)  ==  m1(ctx, lambda: m2(ctx, lambda: ... h(ctx)))

Rules:
    - not calling next() short-circuits; nothing downstream runs, but the
      middleware's own code after that point still does
    - calling next() twice runs the downstream part twice
    - a chain is a tuple, captured when the route is registered

=============================================================================
WRITING MIDDLEWARE
=============================================================================

Any callable ``(ctx, next) -> None`` works:

    def timing(ctx, next):
        start = time.perf_counter()
        next()
        ctx.logger.info(f"took {time.perf_counter() - start:.3f}s")

For a readable name in logs, wrap it:

    @function_middleware
    def require_token(ctx, next):
        if not ctx.get_header("Authorization"):
            ctx.set_status(401)
            ctx.text("unauthorized")
            return
        next()

Or subclass Middleware when it holds configuration.
=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Optional, Tuple

if TYPE_CHECKING:
    from ..context import Context

logger = logging.getLogger(__name__)

Next = Callable[[], None]
Handler = Callable[["Context"], None]
MiddlewareFunc = Callable[["Context", Next], None]


class Middleware(ABC):
    @abstractmethod
    def __call__(self, ctx: "Context", next: Next) -> None:
        """Run around ``next``; skip calling it to short-circuit."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class FunctionMiddleware(Middleware):
    def __init__(self, func: MiddlewareFunc, name: Optional[str] = None):
        self._func = func
        self._name = name or getattr(func, "__name__", "middleware")

    def __call__(self, ctx: "Context", next: Next) -> None:
        self._func(ctx, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(func: MiddlewareFunc) -> FunctionMiddleware:
    return FunctionMiddleware(func)


def middleware_name(m: MiddlewareFunc) -> str:
    if isinstance(m, Middleware):
        return m.name
    return getattr(m, "__name__", type(m).__name__)


class MiddlewareChain:
    def __init__(self, middleware: Iterable[MiddlewareFunc] = ()):
        self._middleware: Tuple[MiddlewareFunc, ...] = tuple(middleware)

    def run(self, ctx: "Context", handler: Handler) -> None:
        """
        Build the continuation closures from the inside out, then call
        the outermost one.
        """
        current: Next = lambda: handler(ctx)
        for m in reversed(self._middleware):
            current = self._link(m, ctx, current)
        current()

    @staticmethod
    def _link(m: MiddlewareFunc, ctx: "Context", downstream: Next) -> Next:
        def step() -> None:
            m(ctx, downstream)

        return step

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(middleware_name(m) for m in self._middleware)

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[MiddlewareFunc]:
        return iter(self._middleware)
