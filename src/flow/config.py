"""
=============================================================================
APPLICATION CONFIGURATION
=============================================================================

One frozen dataclass per concern, collected in a Configuration registry
owned by the Application.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      CONFIGURATION REGISTRY                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   set_server_config(cfg)   ──►  ServerConfig     host, port, paths  │
    │   set_logger_config(cfg)   ──►  LoggerConfig     level, rotation    │
    │   set_cors_config(cfg)     ──►  CorsConfig       allow-* headers    │
    │   set_jwt_config(cfg)      ──►  JwtConfig        secret, lifetime   │
    │   set_curl_config(cfg)     ──►  HttpClientConfig timeout, headers   │
    │   set_redis_config(cfg)    ──►  RedisConfig      enable, prefix     │
    │   set_orm_config(cfg)      ──►  OrmConfig        enable, pool       │
    │                                                                      │
    │   Passing None installs the defaults.  After the first run() the    │
    │   registry is frozen and every setter raises ConfigurationError.    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Blocks are immutable: use dataclasses.replace() to derive a variant.

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

ServerConfig.from_env() and LoggerConfig.from_env() read FLOW_* variables
so the same code runs unchanged in dev, staging and production:

    FLOW_APP_NAME  FLOW_HOST  FLOW_PORT  FLOW_PROXY  FLOW_STATIC_PATH
    FLOW_VIEW_PATH  FLOW_WORKERS  FLOW_TIMEOUT
    FLOW_LOG_PATH  FLOW_LOG_LEVEL  FLOW_LOG_MAX_AGE  FLOW_LOG_JSON

=============================================================================
"""

import os
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from .errors import ConfigurationError


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the HTTP listener and the request pipeline.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    APPLICATION
    - app_name, proxy, static_path, view_path

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    HTTP SETTINGS
    - keep_alive, keep_alive_timeout, max_request_size

    THREADING SETTINGS
    - min_workers, max_workers

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION
    # ─────────────────────────────────────────────────────────────────────

    app_name: str = "flow"
    """Name used for the log file and the startup log line."""

    proxy: bool = False
    """
    Trust X-Forwarded-Host / X-Forwarded-Proto.
    Only enable behind a reverse proxy that overwrites these headers.
    """

    static_path: str = "./statics"
    """Base directory for relative paths given to ctx.download()."""

    view_path: str = "./views"
    """Directory the template loader reads from for ctx.render()."""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces (production)
    """

    port: int = 9505
    """The port number to listen on. 0 lets the OS pick a free port."""

    backlog: int = 128
    """Maximum number of queued connections."""

    buffer_size: int = 8192
    """Size of one socket recv() in bytes."""

    timeout: Optional[float] = 30.0
    """Socket timeout in seconds for the first request on a connection."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Allow several requests on one TCP connection."""

    keep_alive_timeout: float = 5.0
    """Idle seconds before a kept-alive connection is closed."""

    max_request_size: int = 64 * 1024 * 1024  # 64 MB
    """
    Maximum size of a whole request (headers + body).
    Must stay above the 32 MB multipart memory cap so uploads reach the
    form parser.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads created at startup."""

    max_workers: int = 32
    """Upper bound on worker threads; one connection occupies one worker."""

    server_name: str = "flow"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        Usage:
            FLOW_PORT=3000 FLOW_PROXY=1 python -m flow
        """
        return cls(
            app_name=os.getenv("FLOW_APP_NAME", "flow"),
            host=os.getenv("FLOW_HOST", "127.0.0.1"),
            port=int(os.getenv("FLOW_PORT", "9505")),
            proxy=_env_flag("FLOW_PROXY"),
            static_path=os.getenv("FLOW_STATIC_PATH", "./statics"),
            view_path=os.getenv("FLOW_VIEW_PATH", "./views"),
            max_workers=int(os.getenv("FLOW_WORKERS", "32")),
            timeout=float(os.getenv("FLOW_TIMEOUT", "30")),
        )

    def validate(self) -> None:
        """Fail fast on values the server cannot run with."""
        if not 0 <= self.port < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ConfigurationError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ConfigurationError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ConfigurationError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be > 0")


LOG_LEVELS = ("debug", "info", "warn", "warning", "error")


@dataclass(frozen=True)
class LoggerConfig:
    """Framework log sink: level, directory and rotation."""

    level: str = "debug"
    """One of debug, info, warn, error."""

    path: str = "./logs"
    """Directory holding <app_name>.log and its rotated siblings."""

    max_age: int = 30
    """Days of rotated log files to keep."""

    format_json: bool = False
    """Write one JSON object per line instead of the text layout."""

    @classmethod
    def from_env(cls) -> "LoggerConfig":
        return cls(
            level=os.getenv("FLOW_LOG_LEVEL", "debug"),
            path=os.getenv("FLOW_LOG_PATH", "./logs"),
            max_age=int(os.getenv("FLOW_LOG_MAX_AGE", "30")),
            format_json=_env_flag("FLOW_LOG_JSON"),
        )

    def validate(self) -> None:
        if self.level.lower() not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.level}")
        if self.max_age < 1:
            raise ConfigurationError("max_age must be >= 1 day")


@dataclass(frozen=True)
class CorsConfig:
    """Values written by the standard-headers middleware on every response."""

    allow_origin: str = "*"
    allowed_methods: str = "GET, POST, HEAD, OPTIONS, PUT, PATCH, DELETE, TRACE"
    allowed_headers: str = ""
    max_age: int = 172800


@dataclass(frozen=True)
class JwtConfig:
    timeout: float = 24 * 60 * 60
    """Token lifetime in seconds."""

    secret_key: str = ""
    issuer: str = "flow"
    algorithm: str = "HS256"


@dataclass(frozen=True)
class HttpClientConfig:
    timeout: float = 10.0
    """Outbound request timeout in seconds."""

    headers: Dict[str, str] = field(default_factory=dict)
    """Headers sent with every outbound request."""


@dataclass(frozen=True)
class RedisConfig:
    enable: bool = False
    password: str = ""
    db_num: int = 0
    host: str = "127.0.0.1"
    port: int = 6379
    prefix: str = "flow"
    """Keys are stored as "<prefix>-<key>"."""


@dataclass(frozen=True)
class OrmPool:
    max_idle: int = 5
    max_open: int = 10
    conn_max_lifetime: int = 30000
    """Milliseconds before a pooled connection is recycled."""

    conn_max_idle_time: int = 10000
    """Milliseconds a connection may sit idle in the pool."""


@dataclass(frozen=True)
class OrmConfig:
    enable: bool = False
    user_name: str = "root"
    password: str = "root"
    db_name: str = ""
    host: str = "127.0.0.1"
    port: int = 3306
    dialect: str = "mysql+pymysql"
    """SQLAlchemy dialect+driver used to build the URL."""

    url: Optional[str] = None
    """Full database URL; overrides the parts above when set."""

    pool: Optional[OrmPool] = field(default_factory=OrmPool)


class Configuration:
    """
    Registry holding the active configuration blocks.

    Setters replace a block wholesale. Reads are plain attribute access;
    blocks never change in place, so readers need no lock once the
    application is running.
    """

    def __init__(self):
        self.server = ServerConfig()
        self.logger = LoggerConfig()
        self.cors = CorsConfig()
        self.jwt = JwtConfig()
        self.curl = HttpClientConfig()
        self.redis = RedisConfig()
        self.orm = OrmConfig()

        self._lock = threading.Lock()
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    def _assign(self, name: str, value) -> None:
        with self._lock:
            if self._frozen:
                raise ConfigurationError(
                    f"cannot change {name} config after the application has started"
                )
            setattr(self, name, value)

    def set_server_config(self, cfg: Optional[ServerConfig]) -> None:
        self._assign("server", cfg or ServerConfig())

    def set_logger_config(self, cfg: Optional[LoggerConfig]) -> None:
        self._assign("logger", cfg or LoggerConfig())

    def set_cors_config(self, cfg: Optional[CorsConfig]) -> None:
        self._assign("cors", cfg or CorsConfig())

    def set_jwt_config(self, cfg: Optional[JwtConfig]) -> None:
        self._assign("jwt", cfg or JwtConfig())

    def set_curl_config(self, cfg: Optional[HttpClientConfig]) -> None:
        self._assign("curl", cfg or HttpClientConfig())

    def set_redis_config(self, cfg: Optional[RedisConfig]) -> None:
        self._assign("redis", cfg or RedisConfig())

    def set_orm_config(self, cfg: Optional[OrmConfig]) -> None:
        if cfg is None:
            cfg = OrmConfig()
        elif cfg.pool is None:
            cfg = replace(cfg, pool=OrmPool())
        self._assign("orm", cfg)

    def validate(self) -> None:
        self.server.validate()
        self.logger.validate()
