"""
HTTP protocol layer: header map, request parsing, response writing and
form decoding. The route table lives in ``flow.http.router``.
"""

from .forms import FileHeader, FormData, parse_form
from .headers import Headers
from .request import HTTPParseError, HTTPRequest, RequestParser, parse_request
from .response import ResponseWriter, format_http_date, reason_phrase

__all__ = [
    "FileHeader",
    "FormData",
    "parse_form",
    "Headers",
    "HTTPParseError",
    "HTTPRequest",
    "RequestParser",
    "parse_request",
    "ResponseWriter",
    "format_http_date",
    "reason_phrase",
]
