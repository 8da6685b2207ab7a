"""
=============================================================================
FORM DECODING
=============================================================================

Builds the form view of a request: query-string values plus the values of
an ``application/x-www-form-urlencoded`` or ``multipart/form-data`` body.
Body values come before query values for the same key, so the first value
of a key is the body's when both are present.

=============================================================================
MULTIPART LAYOUT
=============================================================================

    Content-Type: multipart/form-data; boundary=XyZ

    --XyZ\r\n
    Content-Disposition: form-data; name="title"\r\n
    \r\n
    hello\r\n
    --XyZ\r\n
    Content-Disposition: form-data; name="upload"; filename="a.txt"\r\n
    Content-Type: text/plain\r\n
    \r\n
    <file bytes>\r\n
    --XyZ--\r\n

File parts are held in memory until ``max_memory`` bytes (32 MiB by
default) have been used; later files spill to anonymous temporary files.
=============================================================================
"""

import io
import tempfile
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Mapping, Optional
from urllib.parse import parse_qs

from .headers import Headers

DEFAULT_MAX_MEMORY = 32 << 20  # 32 MiB


class FormParseError(ValueError):
    pass


@dataclass
class FileHeader:
    """An uploaded file part."""

    filename: str
    headers: Headers
    size: int
    _data: Optional[bytes] = field(default=None, repr=False)
    _file: Optional[BinaryIO] = field(default=None, repr=False)

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "application/octet-stream")

    @property
    def in_memory(self) -> bool:
        return self._data is not None

    def open(self) -> BinaryIO:
        """A readable file object positioned at the start of the upload."""
        if self._data is not None:
            return io.BytesIO(self._data)
        self._file.seek(0)
        return self._file

    def read(self) -> bytes:
        return self.open().read()


@dataclass
class FormData:
    values: Dict[str, List[str]] = field(default_factory=dict)
    files: Dict[str, List[FileHeader]] = field(default_factory=dict)

    def get(self, key: str, default: str = "") -> str:
        values = self.values.get(key)
        return values[0] if values else default

    def file(self, key: str) -> Optional[FileHeader]:
        files = self.files.get(key)
        return files[0] if files else None


def _parse_header_params(line: str) -> tuple[str, Dict[str, str]]:
    """'form-data; name="a"; filename="b"' -> ("form-data", {"name": "a", ...})"""
    parts = [p.strip() for p in line.split(";") if p.strip()]
    value = parts[0].lower() if parts else ""
    params: Dict[str, str] = {}
    for item in parts[1:]:
        if "=" in item:
            k, v = item.split("=", 1)
            params[k.strip().lower()] = v.strip().strip('"')
    return value, params


def _parse_part_headers(block: bytes) -> Headers:
    headers = Headers()
    for line in block.decode("utf-8", errors="replace").split("\r\n"):
        if ":" in line:
            name, value = line.split(":", 1)
            headers.add(name.strip(), value.strip())
    return headers


def parse_multipart(body: bytes, boundary: str, max_memory: int = DEFAULT_MAX_MEMORY) -> FormData:
    if not boundary:
        raise FormParseError("multipart body without boundary")

    delimiter = b"--" + boundary.encode("latin-1")
    if not body.startswith(delimiter):
        raise FormParseError("multipart body does not start with the boundary")

    form = FormData()
    memory_left = max_memory

    # Parts sit between "--boundary" markers; the last marker ends in "--".
    for chunk in body.split(delimiter)[1:]:
        if chunk.startswith(b"--"):
            break
        if not chunk.startswith(b"\r\n"):
            raise FormParseError("malformed multipart delimiter")
        chunk = chunk[2:]
        if chunk.endswith(b"\r\n"):
            chunk = chunk[:-2]

        header_block, sep, content = chunk.partition(b"\r\n\r\n")
        if not sep:
            raise FormParseError("multipart part without header terminator")

        headers = _parse_part_headers(header_block)
        _, params = _parse_header_params(headers.get("content-disposition"))
        name = params.get("name")
        if name is None:
            continue

        filename = params.get("filename")
        if filename is None:
            form.values.setdefault(name, []).append(content.decode("utf-8", errors="replace"))
            continue

        if len(content) <= memory_left:
            memory_left -= len(content)
            upload = FileHeader(filename, headers, len(content), _data=content)
        else:
            spool = tempfile.TemporaryFile()
            spool.write(content)
            upload = FileHeader(filename, headers, len(content), _file=spool)
        form.files.setdefault(name, []).append(upload)

    return form


def parse_form(
    content_type: str,
    body: bytes,
    query_params: Mapping[str, List[str]],
    max_memory: int = DEFAULT_MAX_MEMORY,
) -> FormData:
    """
    Decode the form view of a request.

    Raises:
        FormParseError: The multipart body is malformed.
    """
    media_type, params = _parse_header_params(content_type)

    if media_type == "multipart/form-data":
        form = parse_multipart(body, params.get("boundary", ""), max_memory)
    elif media_type == "application/x-www-form-urlencoded":
        form = FormData(values=parse_qs(body.decode("utf-8", errors="replace"), keep_blank_values=True))
    else:
        form = FormData()

    for key, values in query_params.items():
        form.values.setdefault(key, []).extend(values)

    return form
