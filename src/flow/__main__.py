"""
Command-line entry point: ``python -m flow`` or the ``flow`` script.

Starts a small demo application so a fresh checkout can be poked with
curl:

    flow --port 9505
    curl http://127.0.0.1:9505/hello/alice
    curl -X POST -H 'Content-Type: application/json' -d '{"name":"bob"}' \\
         http://127.0.0.1:9505/echo/alice

Options not given on the command line fall back to FLOW_* environment
variables, then to the defaults.
"""

import argparse
import os
from dataclasses import replace
from typing import List, Optional

from . import __version__
from .application import Application
from .config import LOG_LEVELS, LoggerConfig, ServerConfig
from .context import Context


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flow",
        description="Run the flow demo application",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  flow                               # Run with defaults (127.0.0.1:9505)
  flow --port 3000                   # Custom port
  flow --host 0.0.0.0 --proxy        # Behind a reverse proxy
  flow --static-path ./public        # Serve ./public under /static
  flow --log-level info --log-path /var/log/flow
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", default=None, help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=None, help="Port to listen on (default: 9505)")
    parser.add_argument(
        "--proxy",
        action="store_true",
        default=None,
        help="Trust X-Forwarded-Host / X-Forwarded-Proto",
    )

    # ─────────────────────────────────────────────────────────────────────
    # PATHS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--static-path", default=None, help="Static files directory (default: ./statics)")
    parser.add_argument("--view-path", default=None, help="Template directory (default: ./views)")

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--log-path", default=None, help="Log directory (default: ./logs)")
    parser.add_argument("--log-level", "-l", choices=LOG_LEVELS, default=None, help="Log level (default: debug)")

    parser.add_argument("--version", "-v", action="version", version=f"flow {__version__}")
    return parser


def configure(args: argparse.Namespace) -> tuple[ServerConfig, LoggerConfig]:
    server = ServerConfig.from_env()
    overrides = {
        "host": args.host,
        "port": args.port,
        "proxy": args.proxy,
        "static_path": args.static_path,
        "view_path": args.view_path,
    }
    server = replace(server, **{k: v for k, v in overrides.items() if v is not None})

    log = LoggerConfig.from_env()
    log_overrides = {"path": args.log_path, "level": args.log_level}
    log = replace(log, **{k: v for k, v in log_overrides.items() if v is not None})
    return server, log


def build_demo_app(server: ServerConfig, log: LoggerConfig) -> Application:
    app = Application()
    app.set_server_config(server)
    app.set_logger_config(log)

    def hello(ctx: Context) -> None:
        ctx.text(f"hello {ctx.get_string_param_default('name', 'world')}")

    def echo(ctx: Context) -> None:
        ctx.json({"name": ctx.get_string_param("name"), "requestId": ctx.request_id})

    group = app.new_router_group()
    group.get("/", hello)
    group.get("/hello/:name", hello)
    group.all("/echo/:name", echo)
    if os.path.isdir(server.static_path):
        group.static_files("/static", server.static_path)
    return app


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    server, log = configure(args)
    build_demo_app(server, log).run()


if __name__ == "__main__":
    main()
