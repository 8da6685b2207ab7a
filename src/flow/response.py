"""
=============================================================================
RESPONSE VIEW
=============================================================================

Mutators and terminal writers over the per-request ResponseWriter.

    non-terminal                     terminal (at most one per request)
    ────────────                     ──────────────────────────────────
    set_header(k, v)                 redirect(url, code=302)
    set_status(code)                 download(path)
    set_length(n)                    json(data)
    get_status_code()                text(s)
                                     render(template, data)
                                     raw(bytes)

A second terminal write raises ResponseAlreadySentError.

=============================================================================
raw(): THE COMMON EXIT
=============================================================================

json, text and render all end in raw():

    1. ETag = sha1(body) unless the handler already set one
    2. request.is_fresh(self)           → status 304
    3. status 204 / 304                 → drop Content-Type, Content-Length,
                                          Transfer-Encoding and the body
    4. HEAD                             → headers only
    5. otherwise write the body

=============================================================================
"""

import dataclasses
import hashlib
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import ResponseAlreadySentError
from .http.response import BODYLESS_STATUSES, ResponseWriter, format_http_date
from .recovery import default_not_found
from .request import Request
from .views import TemplateRenderer

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class Response:
    def __init__(
        self,
        writer: ResponseWriter,
        request: Request,
        static_path: str = "./statics",
        templates: Optional[TemplateRenderer] = None,
    ):
        self.writer = writer
        self.request = request
        self.static_path = static_path
        self.templates = templates
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def _ensure_open(self) -> None:
        if self._finished:
            raise ResponseAlreadySentError("response has already been written")

    def _finish(self) -> None:
        self._ensure_open()
        self._finished = True

    # =========================================================================
    # HEADERS AND STATUS
    # =========================================================================

    def get_headers(self) -> Dict[str, List[str]]:
        return self.writer.headers.to_dict()

    def get_header(self, key: str) -> str:
        return self.writer.headers.get(key)

    def set_header(self, key: str, value: str) -> "Response":
        self.writer.headers.set(key, value)
        return self

    def set_status(self, code: int) -> "Response":
        self.writer.set_status(code)
        return self

    def set_length(self, length: int) -> "Response":
        return self.set_header("Content-Length", str(length))

    def get_status_code(self) -> int:
        return self.writer.status

    # =========================================================================
    # TERMINAL WRITERS
    # =========================================================================

    def redirect(self, url: str, code: int = 302) -> None:
        self._finish()
        self.writer.headers.set("Location", url)
        self.writer.write_header(code)

    def download(self, file_path: str) -> None:
        """
        Send a file as an attachment.

        Relative paths resolve against static_path. A missing file is
        answered with the plain-text 404.
        """
        self._finish()

        path = file_path if os.path.isabs(file_path) else os.path.join(self.static_path, file_path)
        if not os.path.isfile(path):
            logger.debug(f"download target not found: {path}")
            default_not_found(self.writer, self.request.raw)
            return

        stat = os.stat(path)
        filename = os.path.basename(path)
        headers = self.writer.headers
        headers.set("Content-Disposition", f'attachment; filename="{filename}"')
        headers.set("Content-Type", "application/octet-stream")
        headers.set("Content-Transfer-Encoding", "binary")
        headers.set("Expires", "0")
        headers.set("Cache-Control", "must-revalidate")
        headers.set("Content-Length", str(stat.st_size))
        headers.set("Last-Modified", format_http_date(datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)))

        self.writer.write_header()
        if self.request.get_method() == "HEAD":
            return

        with open(path, "rb") as f:
            while chunk := f.read(DOWNLOAD_CHUNK_SIZE):
                self.writer.write(chunk)

    def json(self, data: Any) -> None:
        self._ensure_open()
        body = json.dumps(data, ensure_ascii=False, default=_json_default).encode("utf-8")
        self.set_header("Content-Type", "application/json; charset=utf-8")
        self.raw(body)

    def text(self, data: str) -> None:
        self._ensure_open()
        self.set_header("Content-Type", "text/plain; charset=utf-8")
        self.raw(data.encode("utf-8"))

    def render(self, template: str, data: Optional[Dict[str, Any]] = None) -> None:
        self._ensure_open()
        if self.templates is None:
            raise RuntimeError("no template renderer configured for this response")
        html = self.templates.render(template, data)
        self.set_header("Content-Type", "text/html; charset=utf-8")
        self.raw(html.encode("utf-8"))

    def raw(self, data: bytes) -> None:
        self._finish()

        if "ETag" not in self.writer.headers:
            self.writer.headers.set("ETag", hashlib.sha1(data).hexdigest())

        if self.request.is_fresh(self):
            self.writer.set_status(304)

        if self.writer.status in BODYLESS_STATUSES:
            for name in ("Content-Type", "Content-Length", "Transfer-Encoding"):
                self.writer.headers.remove(name)
            data = b""
        elif "Content-Length" not in self.writer.headers:
            self.writer.headers.set("Content-Length", str(len(data)))

        if self.request.get_method() == "HEAD":
            self.writer.write_header()
            return

        self.writer.write(data)
