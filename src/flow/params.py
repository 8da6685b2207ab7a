"""
=============================================================================
PARAMETER MERGER
=============================================================================

Collapses every source of request input into one string-keyed mapping,
built once when the Context is constructed:

    ┌──────────────────────────────────────────────────────────────────┐
    │   1. path params        /users/:id            {"id": "7"}        │
    │   2. form params        ?page=2, url-encoded  {"page": "2"}      │
    │                         or multipart body                        │
    │   3. JSON body keys     {"id": 9}             {"id": 9}          │
    │                                                                  │
    │   later steps overwrite earlier ones:  JSON > form > path        │
    └──────────────────────────────────────────────────────────────────┘

Form values keep the first value of each key. JSON values keep their
decoded type, so ``get_param`` converts between kinds on read:

    numeric → str     canonical decimal ("3", "2.5")
    bool    → str     "1" / ""
    str     → number  base-10 parse, 0 on failure
    bool    → number  1 / 0
    any     → bool    numeric value > 0

=============================================================================
BINDING INTO RECORDS
=============================================================================

``parse(record)`` fills a dataclass instance from the merged mapping:

    @dataclass
    class Login:
        user: str = field(default="", metadata={"json": "username", "flow": "required:true"})
        remember: bool = False

    params.parse(login)      # RequiredMissingError("username") if absent

The mapping is JSON round-tripped first, so values reach the record in the
shape a JSON client would have sent them.
=============================================================================
"""

import dataclasses
import json
import logging
import typing
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence, Tuple, Type

from .errors import RecordTypeError, RequiredMissingError
from .http.forms import DEFAULT_MAX_MEMORY, FileHeader, FormData, FormParseError, parse_form
from .http.request import HTTPRequest

logger = logging.getLogger(__name__)

ParamKind = Type[Any]


# =============================================================================
# CONVERSIONS
# =============================================================================

def _format_number(value: Any) -> str:
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return str(value)
        if value.is_integer():
            return str(int(value))
        return format(Decimal(repr(value)), "f")
    return str(value)


def _parse_number(text: str, kind: ParamKind) -> Any:
    text = text.strip()
    try:
        if kind is float:
            return float(text)
        return int(text, 10)
    except ValueError:
        return kind(0)


def to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, (int, float)):
        return _format_number(value)
    return ""


def to_number(value: Any, kind: ParamKind) -> Any:
    if isinstance(value, bool):
        return kind(1 if value else 0)
    if isinstance(value, (int, float)):
        try:
            return kind(value)
        except (OverflowError, ValueError):
            # JSON decodes 1e400 to inf; NaN is accepted too.
            return kind(0)
    if isinstance(value, str):
        return _parse_number(value, kind)
    return kind(0)


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value > 0
    if isinstance(value, str):
        return _parse_number(value, float) > 0
    return False


def convert(value: Any, kind: ParamKind) -> Any:
    if kind is str:
        return to_string(value)
    if kind is bool:
        return to_bool(value)
    if kind in (int, float):
        return to_number(value, kind)
    raise TypeError(f"unsupported parameter kind: {kind!r}")


# =============================================================================
# MERGED PARAMETERS
# =============================================================================

class Params:
    def __init__(
        self,
        request: HTTPRequest,
        path_params: Sequence[Tuple[str, str]] = (),
        max_memory: int = DEFAULT_MAX_MEMORY,
    ):
        self.values: Dict[str, Any] = {}
        self.path: Dict[str, str] = dict(path_params)
        self.form = FormData()

        self.values.update(self.path)

        body = request.body if request.body_error is None else b""
        content_type = request.get_header("Content-Type")

        try:
            self.form = parse_form(content_type, body, request.query_params, max_memory)
        except FormParseError as e:
            logger.warning(f"Form parse failed for {request.path}: {e}")
            self.form = parse_form("", b"", request.query_params)
        for key, values in self.form.values.items():
            if values:
                self.values[key] = values[0]

        if content_type.lower().startswith("application/json") and body:
            self._merge_json(request, body)

    def _merge_json(self, request: HTTPRequest, body: bytes) -> None:
        try:
            decoded = json.loads(body)
        except ValueError as e:
            logger.warning(f"JSON body decode failed for {request.path}: {e}")
            return
        if isinstance(decoded, dict):
            self.values.update(decoded)

    def __contains__(self, key: str) -> bool:
        return key in self.values

    def get_path_param(self, name: str) -> str:
        """The route's own value for ``name``, untouched by query, form or JSON."""
        return self.path.get(name, "")

    def get_param(self, key: str, kind: ParamKind = str, default: Optional[Any] = None) -> Any:
        """
        Read ``key`` converted to ``kind`` (str, int, float or bool).

        With a default, an absent key or a zero/empty converted value
        yields the default instead.
        """
        value = convert(self.values.get(key), kind)
        if default is not None and not value:
            return default
        return value

    def get_string_param(self, key: str) -> str:
        return self.get_param(key, str)

    def get_string_param_default(self, key: str, default: str) -> str:
        return self.get_param(key, str, default)

    def get_int_param(self, key: str) -> int:
        return self.get_param(key, int)

    def get_int_param_default(self, key: str, default: int) -> int:
        return self.get_param(key, int, default)

    # Python ints are unbounded; the int64 accessors share the int path.
    get_int64_param = get_int_param
    get_int64_param_default = get_int_param_default

    def get_float64_param(self, key: str) -> float:
        return self.get_param(key, float)

    def get_float64_param_default(self, key: str, default: float) -> float:
        return self.get_param(key, float, default)

    def get_bool_param(self, key: str) -> bool:
        return self.get_param(key, bool)

    def get_bool_param_default(self, key: str, default: bool) -> bool:
        return self.get_param(key, bool, default)

    def form_file(self, name: str) -> Optional[FileHeader]:
        return self.form.file(name)

    def parse(self, record: Any) -> Any:
        if not dataclasses.is_dataclass(record) or isinstance(record, type):
            raise TypeError("parse() expects a dataclass instance")

        bindings = []
        for f in dataclasses.fields(record):
            display = display_name(f)
            if display is None:
                continue
            if is_required(f) and display not in self.values:
                raise RequiredMissingError(display)
            bindings.append((f, display))

        data = json.loads(json.dumps(self.values, default=str))
        hints = typing.get_type_hints(type(record))

        for f, display in bindings:
            if display not in data:
                continue
            setattr(record, f.name, _check_type(display, hints.get(f.name), data[display]))
        return record


def display_name(f: dataclasses.Field) -> Optional[str]:
    tag = f.metadata.get("json", "")
    name = tag.split(",")[0]
    if name == "-":
        return None
    return name or f.name


def is_required(f: dataclasses.Field) -> bool:
    options = [opt.strip() for opt in f.metadata.get("flow", "").split(",")]
    return "required:true" in options


def _check_type(display: str, hint: Any, value: Any) -> Any:
    if value is None or hint not in (str, int, float, bool):
        return value
    if hint is bool:
        ok = isinstance(value, bool)
    elif hint is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif hint is float:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        value = float(value) if ok else value
    else:
        ok = isinstance(value, str)
    if not ok:
        raise RecordTypeError(display, hint, value)
    return value
