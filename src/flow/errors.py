"""
=============================================================================
FRAMEWORK ERRORS
=============================================================================

Every error the framework raises on purpose derives from FlowError and
carries a short machine-readable ``kind``:

    ┌──────────────────────────────┬────────────────────────────────────────┐
    │  Exception                   │  Raised when                           │
    ├──────────────────────────────┼────────────────────────────────────────┤
    │  ConfigurationError          │  config changed after run, bad values  │
    │  RequiredMissingError        │  ctx.parse() misses a required field   │
    │  RecordTypeError             │  ctx.parse() value has the wrong type  │
    │  BodyReadError               │  the request body was cut short        │
    │  CollaboratorUnavailableError│  ctx.orm / ctx.redis not enabled       │
    │  ResponseAlreadySentError    │  a second terminal write on a response │
    │  RedisKeyNotExistError       │  redis GET on a missing key            │
    └──────────────────────────────┴────────────────────────────────────────┘

Handler code lets these propagate. The recovery boundary in the router
turns anything that escapes a handler into a 500 response.
=============================================================================
"""


class FlowError(Exception):
    """Base class for framework errors."""

    kind = "flow"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(FlowError):
    kind = "configuration"


class RequiredMissingError(FlowError):
    """
    A field marked ``required:true`` was absent from the merged parameters.

    ``field`` is the display name (the json name when one is declared).
    """

    kind = "required-missing"

    def __init__(self, field: str):
        super().__init__(f"{field} is required")
        self.field = field


class RecordTypeError(FlowError):
    kind = "record-type"

    def __init__(self, field: str, expected: type, value: object):
        super().__init__(
            f"cannot assign {type(value).__name__} to field {field} of type {expected.__name__}"
        )
        self.field = field


class BodyReadError(FlowError):
    kind = "body-read"


class CollaboratorUnavailableError(FlowError):
    kind = "collaborator-unavailable"

    def __init__(self, name: str):
        super().__init__(f"{name} is not enabled, check the {name} config")
        self.name = name


class ResponseAlreadySentError(FlowError):
    kind = "response-sent"


class RedisKeyNotExistError(FlowError):
    kind = "not-exist"

    def __init__(self, key: str):
        super().__init__(f"key: {key} not exist")
        self.key = key
