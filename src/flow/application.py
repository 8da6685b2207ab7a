"""
=============================================================================
APPLICATION
=============================================================================

The handle that ties the framework together. Everything process-wide
hangs off it: configuration, route table, scheduler, log sink and the
shared collaborators.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          Application                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │  config        Configuration registry, frozen by run()              │
    │  router        route table + recovery boundary                      │
    │  scheduler     tasks and timers                                     │
    │  templates     jinja2 renderer over ServerConfig.view_path          │
    │  curl jwt      always built by run()                                │
    │  redis orm     built by run() when enabled                          │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST DISPATCH
=============================================================================

    HTTPServer ──► Router.serve(writer, request)
                      │  match
                      ▼
                   adapter(writer, request, params)
                      │
                      ▼
                   Application.dispatch()
                      ├── Context(app, writer, request, params, next id)
                      └── chain.run(ctx, handler)

=============================================================================
USAGE
=============================================================================

    app = Application()
    app.set_server_config(ServerConfig(port=8080))

    api = app.new_router_group()
    api.get("/hello/:name", lambda ctx: ctx.json({"hello": ctx.get_string_param("name")}))

    app.run()

=============================================================================
"""

import logging
import threading
from typing import Callable, Optional, Sequence, Tuple

from .clients.curl import Curl
from .clients.jwt import Jwt
from .clients.orm import Orm
from .clients.redis import RedisClient
from .config import (
    Configuration,
    CorsConfig,
    HttpClientConfig,
    JwtConfig,
    LoggerConfig,
    OrmConfig,
    RedisConfig,
    ServerConfig,
)
from .context import Context
from .core.request_id import RequestIdSource, default_source
from .http.request import HTTPRequest, RequestParser
from .http.response import ResponseWriter
from .http.router import NotFoundHandler, PanicHandler, Route, Router
from .logger import APP_LOGGER, BoundLogger, LoggerFactory
from .middleware.base import MiddlewareChain
from .recovery import default_not_found, default_panic_handler, logging_panic_handler
from .router_group import Handler, RouterGroup
from .server import HTTPServer
from .tasks.scheduler import Scheduler
from .tasks.task import AsyncTask, Task
from .tasks.timer import Timer
from .views import TemplateRenderer

logger = logging.getLogger(__name__)


class Application:
    def __init__(self, config: Optional[Configuration] = None, id_source: RequestIdSource = default_source):
        self.config = config or Configuration()
        self.router = Router()
        self.scheduler = Scheduler(self)
        self.id_source = id_source

        self.logger_factory: Optional[LoggerFactory] = None
        self.logger = BoundLogger(logging.getLogger(APP_LOGGER))

        self.curl: Optional[Curl] = None
        self.jwt: Optional[Jwt] = None
        self.redis: Optional[RedisClient] = None
        self.orm: Optional[Orm] = None

        self._templates: Optional[TemplateRenderer] = None
        self._server: Optional[HTTPServer] = None
        self._started = False
        self._lock = threading.Lock()

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def set_server_config(self, cfg: Optional[ServerConfig]) -> "Application":
        self.config.set_server_config(cfg)
        return self

    def set_logger_config(self, cfg: Optional[LoggerConfig]) -> "Application":
        self.config.set_logger_config(cfg)
        return self

    def set_cors_config(self, cfg: Optional[CorsConfig]) -> "Application":
        self.config.set_cors_config(cfg)
        return self

    def set_jwt_config(self, cfg: Optional[JwtConfig]) -> "Application":
        self.config.set_jwt_config(cfg)
        return self

    def set_curl_config(self, cfg: Optional[HttpClientConfig]) -> "Application":
        self.config.set_curl_config(cfg)
        return self

    def set_redis_config(self, cfg: Optional[RedisConfig]) -> "Application":
        self.config.set_redis_config(cfg)
        return self

    def set_orm_config(self, cfg: Optional[OrmConfig]) -> "Application":
        self.config.set_orm_config(cfg)
        return self

    # =========================================================================
    # ROUTING
    # =========================================================================

    def new_router_group(self) -> RouterGroup:
        return RouterGroup(self)

    def handle(self, method: str, path: str, handler: Handler, chain: Optional[MiddlewareChain] = None) -> Route:
        """Register ``handler`` behind ``chain`` on the route table."""
        chain = chain or MiddlewareChain()

        def adapter(writer: ResponseWriter, request: HTTPRequest, params: Sequence[Tuple[str, str]]) -> None:
            self.dispatch(writer, request, params, handler, chain)

        return self.router.handle(method, path, adapter)

    def dispatch(
        self,
        writer: ResponseWriter,
        request: HTTPRequest,
        params: Sequence[Tuple[str, str]],
        handler: Handler,
        chain: MiddlewareChain,
    ) -> Context:
        ctx = Context(self, writer, request, params)
        chain.run(ctx, handler)
        return ctx

    def set_panic_handler(self, hook: Optional[PanicHandler]) -> None:
        self.router.panic_handler = logging_panic_handler(hook) if hook else default_panic_handler

    def set_not_found_handler(self, hook: Optional[NotFoundHandler]) -> None:
        self.router.not_found = hook or default_not_found

    def inject(self, raw: bytes, client_address: Tuple[str, int] = ("127.0.0.1", 0)) -> ResponseWriter:
        """Run raw request bytes through the pipeline without a socket."""
        request = RequestParser(self.config.server.max_request_size).parse(raw, client_address)
        writer = ResponseWriter(request.version)
        self.router.serve(writer, request)
        return writer

    # =========================================================================
    # PER-REQUEST SERVICES
    # =========================================================================

    def next_request_id(self) -> int:
        return self.id_source.next_id()

    def create_logger(self, fields=None) -> BoundLogger:
        if self.logger_factory is not None:
            return self.logger_factory.create(fields)
        return BoundLogger(logging.getLogger(APP_LOGGER), fields)

    @property
    def templates(self) -> TemplateRenderer:
        with self._lock:
            if self._templates is None:
                self._templates = TemplateRenderer(self.config.server.view_path)
            return self._templates

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> HTTPServer:
        """
        Freeze the configuration, build the collaborators and the server.

        Idempotent; run() calls it.
        """
        with self._lock:
            if self._started:
                return self._server

            self.config.freeze()
            self.config.validate()

            self.logger_factory = LoggerFactory(self.config.logger, self.config.server.app_name)
            self.logger = self.logger_factory.create()

            self.curl = Curl(self.config.curl)
            self.jwt = Jwt(self.config.jwt)
            if self.config.redis.enable:
                self.redis = RedisClient(self.config.redis)
            if self.config.orm.enable:
                self.orm = Orm(self.config.orm)

            self._server = HTTPServer(self.config.server, self.router.serve)
            self._started = True

        logger.info(f"{len(self.router.routes())} routes registered")
        return self._server

    def run(self) -> None:
        """Serve until shutdown() or SIGINT/SIGTERM (blocking)."""
        server = self.start()
        try:
            server.serve_forever()
        finally:
            self.close()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        if self._server is None:
            return False
        return self._server.wait_until_ready(timeout)

    @property
    def port(self) -> Optional[int]:
        return self._server.port if self._server else None

    def shutdown(self) -> None:
        self.scheduler.stop_all()
        if self._server is not None:
            self._server.shutdown()

    def close(self) -> None:
        self.scheduler.stop_all()
        if self.curl is not None:
            self.curl.close()
        if self.redis is not None:
            self.redis.close()
        if self.orm is not None:
            self.orm.close()
        if self.logger_factory is not None:
            self.logger_factory.close()

    # =========================================================================
    # TASKS AND TIMERS
    # =========================================================================

    def execute_task(self, task: Task) -> threading.Thread:
        return self.scheduler.execute_task(task)

    def execute_async_task(self, task: AsyncTask) -> bool:
        return self.scheduler.execute_async_task(task)

    def start_timer(self, timer: Timer) -> None:
        self.scheduler.start_timer(timer)

    def stop_timer(self, name: str) -> None:
        self.scheduler.stop_timer(name)


# =============================================================================
# MODULE-LEVEL FAÇADE
# =============================================================================

_default_app: Optional[Application] = None
_default_lock = threading.Lock()


def get_default_app() -> Application:
    global _default_app
    with _default_lock:
        if _default_app is None:
            _default_app = Application()
        return _default_app


def _forward(name: str) -> Callable:
    def forwarder(*args, **kwargs):
        return getattr(get_default_app(), name)(*args, **kwargs)

    forwarder.__name__ = name
    forwarder.__doc__ = f"Application.{name} on the default application."
    return forwarder


set_server_config = _forward("set_server_config")
set_logger_config = _forward("set_logger_config")
set_cors_config = _forward("set_cors_config")
set_jwt_config = _forward("set_jwt_config")
set_curl_config = _forward("set_curl_config")
set_redis_config = _forward("set_redis_config")
set_orm_config = _forward("set_orm_config")
new_router_group = _forward("new_router_group")
set_panic_handler = _forward("set_panic_handler")
set_not_found_handler = _forward("set_not_found_handler")
execute_task = _forward("execute_task")
execute_async_task = _forward("execute_async_task")
start_timer = _forward("start_timer")
stop_timer = _forward("stop_timer")
run = _forward("run")
shutdown = _forward("shutdown")
