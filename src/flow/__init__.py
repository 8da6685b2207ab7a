"""
=============================================================================
flow
=============================================================================

A small HTTP application framework: route groups with Koa-style
middleware, a per-request Context with merged parameters and a
request/response API, a task/timer scheduler, and thin adapters for
SQLAlchemy, redis, httpx, PyJWT and jinja2.

    import flow

    def timing(ctx, next):
        next()
        ctx.logger.info("done")

    api = flow.new_router_group().use(timing)
    api.get("/users/:id", lambda ctx: ctx.json({"id": ctx.get_int_param("id")}))

    flow.set_server_config(flow.ServerConfig(port=8080))
    flow.run()

The module-level functions forward to one default Application; create
Application objects directly when more than one is needed.
=============================================================================
"""

__version__ = "1.0.0"

from .application import (
    Application,
    execute_async_task,
    execute_task,
    get_default_app,
    new_router_group,
    run,
    set_cors_config,
    set_curl_config,
    set_jwt_config,
    set_logger_config,
    set_not_found_handler,
    set_orm_config,
    set_panic_handler,
    set_redis_config,
    set_server_config,
    shutdown,
    start_timer,
    stop_timer,
)
from .config import (
    Configuration,
    CorsConfig,
    HttpClientConfig,
    JwtConfig,
    LoggerConfig,
    OrmConfig,
    OrmPool,
    RedisConfig,
    ServerConfig,
)
from .context import Context
from .errors import (
    BodyReadError,
    CollaboratorUnavailableError,
    ConfigurationError,
    FlowError,
    RecordTypeError,
    RedisKeyNotExistError,
    RequiredMissingError,
    ResponseAlreadySentError,
)
from .middleware import FunctionMiddleware, Middleware, MiddlewareChain, function_middleware
from .router_group import RouterGroup
from .tasks import AsyncTask, CancelToken, FunctionTimer, Task, TaskResult, Timer

__all__ = [
    "Application",
    "AsyncTask",
    "BodyReadError",
    "CancelToken",
    "CollaboratorUnavailableError",
    "Configuration",
    "ConfigurationError",
    "Context",
    "CorsConfig",
    "FlowError",
    "FunctionMiddleware",
    "FunctionTimer",
    "HttpClientConfig",
    "JwtConfig",
    "LoggerConfig",
    "Middleware",
    "MiddlewareChain",
    "OrmConfig",
    "OrmPool",
    "RecordTypeError",
    "RedisConfig",
    "RedisKeyNotExistError",
    "RequiredMissingError",
    "ResponseAlreadySentError",
    "RouterGroup",
    "ServerConfig",
    "Task",
    "TaskResult",
    "Timer",
    "execute_async_task",
    "execute_task",
    "function_middleware",
    "get_default_app",
    "new_router_group",
    "run",
    "set_cors_config",
    "set_curl_config",
    "set_jwt_config",
    "set_logger_config",
    "set_not_found_handler",
    "set_orm_config",
    "set_panic_handler",
    "set_redis_config",
    "set_server_config",
    "shutdown",
    "start_timer",
    "stop_timer",
]
