"""
=============================================================================
REQUEST CONTEXT
=============================================================================

One Context per dispatched request. It is what middleware and handlers
receive:

    ┌─────────────────────────────────────────────────────────────────┐
    │  Context                                                        │
    ├─────────────────────────────────────────────────────────────────┤
    │  request_id      monotonic, from the process-wide source        │
    │  req             Request view    (get_header, get_host, ...)    │
    │  res             Response view   (set_header, json, raw, ...)   │
    │  params          merged path / form / JSON parameters           │
    │  logger          bound with requestId and ua                    │
    │  orm redis       shared collaborators; raise when not enabled   │
    │  curl jwt                                                       │
    │  set_data /      per-request scratch map, rw-locked             │
    │  get_data                                                       │
    └─────────────────────────────────────────────────────────────────┘

The request and response accessors are also available directly on the
Context, so handlers read like:

    def show_user(ctx):
        user_id = ctx.get_int_param("id")
        ctx.json({"id": user_id, "host": ctx.get_host()})
=============================================================================
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from .core.rwlock import RWLock
from .errors import CollaboratorUnavailableError
from .http.forms import FileHeader
from .http.request import HTTPRequest
from .http.response import ResponseWriter
from .logger import BoundLogger
from .params import ParamKind, Params
from .request import Request
from .response import Response

if TYPE_CHECKING:
    from .application import Application


class Context:
    def __init__(
        self,
        app: "Application",
        writer: ResponseWriter,
        raw_request: HTTPRequest,
        params: Sequence[Tuple[str, str]] = (),
        request_id: Optional[int] = None,
    ):
        server = app.config.server

        self.app = app
        self.request_id = request_id if request_id is not None else app.next_request_id()
        self.req = Request(raw_request, proxy=server.proxy)
        self.res = Response(writer, self.req, static_path=server.static_path, templates=app.templates)
        self.params = Params(raw_request, params)
        self.logger: BoundLogger = app.create_logger(
            {"requestId": self.request_id, "ua": self.req.get_user_agent()}
        )

        self._data: Dict[str, Any] = {}
        self._data_lock = RWLock()

    # =========================================================================
    # REQUEST
    # =========================================================================

    @property
    def raw_request(self) -> HTTPRequest:
        return self.req.raw

    def get_headers(self) -> Dict[str, List[str]]:
        return self.req.get_headers()

    def get_header(self, key: str) -> str:
        return self.req.get_header(key)

    def get_uri(self) -> str:
        return self.req.get_uri()

    def get_method(self) -> str:
        return self.req.get_method()

    def get_query(self) -> Dict[str, List[str]]:
        return self.req.get_query()

    def get_querystring(self) -> str:
        return self.req.get_querystring()

    def get_host(self) -> str:
        return self.req.get_host()

    def get_hostname(self) -> str:
        return self.req.get_hostname()

    def get_protocol(self) -> str:
        return self.req.get_protocol()

    def is_secure(self) -> bool:
        return self.req.is_secure()

    def get_origin(self) -> str:
        return self.req.get_origin()

    def get_href(self) -> str:
        return self.req.get_href()

    def get_length(self) -> int:
        return self.req.get_length()

    def get_user_agent(self) -> str:
        return self.req.get_user_agent()

    def get_client_ip(self) -> str:
        return self.req.get_client_ip()

    def is_fresh(self) -> bool:
        """Whether the client's cached copy still matches the response so far."""
        return self.req.is_fresh(self.res)

    def get_raw_body(self) -> bytes:
        """The request body; raises BodyReadError if it was cut short."""
        return self.req.raw.read_body()

    # =========================================================================
    # PARAMETERS
    # =========================================================================

    def get_param(self, key: str, kind: ParamKind = str, default: Optional[Any] = None) -> Any:
        return self.params.get_param(key, kind, default)

    def get_path_param(self, name: str) -> str:
        return self.params.get_path_param(name)

    def get_string_param(self, key: str) -> str:
        return self.params.get_string_param(key)

    def get_string_param_default(self, key: str, default: str) -> str:
        return self.params.get_string_param_default(key, default)

    def get_int_param(self, key: str) -> int:
        return self.params.get_int_param(key)

    def get_int_param_default(self, key: str, default: int) -> int:
        return self.params.get_int_param_default(key, default)

    def get_int64_param(self, key: str) -> int:
        return self.params.get_int64_param(key)

    def get_int64_param_default(self, key: str, default: int) -> int:
        return self.params.get_int64_param_default(key, default)

    def get_float64_param(self, key: str) -> float:
        return self.params.get_float64_param(key)

    def get_float64_param_default(self, key: str, default: float) -> float:
        return self.params.get_float64_param_default(key, default)

    def get_bool_param(self, key: str) -> bool:
        return self.params.get_bool_param(key)

    def get_bool_param_default(self, key: str, default: bool) -> bool:
        return self.params.get_bool_param_default(key, default)

    def form_file(self, name: str) -> Optional[FileHeader]:
        return self.params.form_file(name)

    def parse(self, record: Any) -> Any:
        return self.params.parse(record)

    # =========================================================================
    # RESPONSE
    # =========================================================================

    def set_header(self, key: str, value: str) -> "Context":
        self.res.set_header(key, value)
        return self

    def set_status(self, code: int) -> "Context":
        self.res.set_status(code)
        return self

    def set_length(self, length: int) -> "Context":
        self.res.set_length(length)
        return self

    def get_status_code(self) -> int:
        return self.res.get_status_code()

    def redirect(self, url: str, code: int = 302) -> None:
        self.res.redirect(url, code)

    def download(self, file_path: str) -> None:
        self.res.download(file_path)

    def json(self, data: Any) -> None:
        self.res.json(data)

    def text(self, data: str) -> None:
        self.res.text(data)

    def render(self, template: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.res.render(template, data)

    def raw(self, data: bytes) -> None:
        self.res.raw(data)

    # =========================================================================
    # USER DATA
    # =========================================================================

    def set_data(self, key: str, value: Any) -> None:
        with self._data_lock.write():
            self._data[key] = value

    def get_data(self, key: str, default: Any = None) -> Any:
        with self._data_lock.read():
            return self._data.get(key, default)

    # =========================================================================
    # COLLABORATORS
    # =========================================================================

    def _collaborator(self, name: str) -> Any:
        client = getattr(self.app, name, None)
        if client is None:
            raise CollaboratorUnavailableError(name)
        return client

    @property
    def orm(self):
        return self._collaborator("orm")

    @property
    def redis(self):
        return self._collaborator("redis")

    @property
    def curl(self):
        return self._collaborator("curl")

    @property
    def jwt(self):
        return self._collaborator("jwt")
