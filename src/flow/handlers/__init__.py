"""
Built-in handlers.

    from flow.handlers import serve_static

    group.get("/assets/*filepath", serve_static("./statics"))

RouterGroup.static_files() does the same registration for GET and HEAD.
"""

from .static import FILEPATH_PARAM, StaticFileHandler, serve_static

__all__ = ["FILEPATH_PARAM", "StaticFileHandler", "serve_static"]
