"""
Content-Type detection for files served from disk.

Only the static file handler needs this; ctx.download() always answers
application/octet-stream so browsers save instead of display.
"""

import mimetypes
from pathlib import Path

# Pinned so answers do not depend on the host's mime database.
WEB_TYPES = {
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".map": "application/json",
    ".md": "text/markdown",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".woff2": "font/woff2",
    ".wasm": "application/wasm",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

_CHARSET_TYPES = ("application/json", "application/xml", "image/svg+xml")


def get_content_type(path: str | Path, charset: str = "utf-8") -> str:
    """
    >>> get_content_type("page.html")
    'text/html; charset=utf-8'
    >>> get_content_type("image.png")
    'image/png'
    """
    suffix = Path(path).suffix.lower()
    mime_type = WEB_TYPES.get(suffix) or mimetypes.guess_type(f"file{suffix}")[0] or DEFAULT_MIME_TYPE
    if mime_type.startswith("text/") or mime_type in _CHARSET_TYPES:
        return f"{mime_type}; charset={charset}"
    return mime_type
