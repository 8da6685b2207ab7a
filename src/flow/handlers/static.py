"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves files below a root directory for a router group:

    group.static_files("/assets", "./statics")

    GET /assets/css/site.css  ──►  ./statics/css/site.css

Flow:

    1. take the *filepath route parameter
    2. resolve it under root_dir; anything escaping the root is a 403
    3. a directory serves its index.html, otherwise 403
    4. a missing file is the plain 404
    5. a file is sent through ctx.raw() with Content-Type, ETag,
       Last-Modified and Cache-Control, so conditional requests get a 304
       and HEAD gets headers only

ETag is "<mtime>-<size>", cheap to compute without reading the file.
=============================================================================
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from ..http.mime_types import get_content_type
from ..http.response import format_http_date

if TYPE_CHECKING:
    from ..context import Context

logger = logging.getLogger(__name__)

FILEPATH_PARAM = "filepath"


class StaticFileHandler:
    def __init__(self, root_dir: str, index_file: str = "index.html", cache_max_age: int = 3600):
        self.root_dir = Path(root_dir).resolve()
        self.index_file = index_file
        self.cache_max_age = cache_max_age

        if not self.root_dir.is_dir():
            raise ValueError(f"Static root directory does not exist: {root_dir}")

    def __call__(self, ctx: "Context") -> None:
        self.handle(ctx)

    def handle(self, ctx: "Context") -> None:
        file_path = ctx.get_path_param(FILEPATH_PARAM).lstrip("/")
        full_path = (self.root_dir / file_path).resolve()

        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {file_path}")
            self._plain(ctx, 403, "403 forbidden")
            return

        if full_path.is_dir():
            index_path = full_path / self.index_file
            if not index_path.is_file():
                self._plain(ctx, 403, "403 forbidden")
                return
            full_path = index_path

        if not full_path.is_file():
            self._plain(ctx, 404, "404 page not found")
            return

        self._serve_file(ctx, full_path)

    def _serve_file(self, ctx: "Context", path: Path) -> None:
        stat = path.stat()
        mtime = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)

        ctx.set_header("Content-Type", get_content_type(path))
        ctx.set_header("ETag", f'"{int(stat.st_mtime)}-{stat.st_size}"')
        ctx.set_header("Last-Modified", format_http_date(mtime))
        ctx.set_header("Cache-Control", f"public, max-age={self.cache_max_age}")
        ctx.raw(path.read_bytes())

    @staticmethod
    def _plain(ctx: "Context", status: int, message: str) -> None:
        ctx.set_header("X-Content-Type-Options", "nosniff")
        ctx.set_status(status)
        ctx.text(message)


def serve_static(root_dir: str, **kwargs) -> StaticFileHandler:
    return StaticFileHandler(root_dir, **kwargs)
