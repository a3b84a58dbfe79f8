"""Common enumerations used across request, workspace and response models."""

from enum import Enum


class HttpMethod(str, Enum):
    """HTTP methods a request definition can use."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class BodyType(str, Enum):
    """Request body modes."""

    NONE = "none"
    JSON = "json"
    TEXT = "text"
    XML = "xml"
    HTML = "html"
    FORM_DATA = "form-data"
    URL_ENCODED = "x-www-form-urlencoded"
    BINARY = "binary"


RAW_BODY_TYPES = (BodyType.JSON, BodyType.TEXT, BodyType.XML, BodyType.HTML, BodyType.BINARY)


class AuthType(str, Enum):
    """Authentication types."""

    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"
    APIKEY = "apikey"
    OAUTH2 = "oauth2"


class ApiKeyLocation(str, Enum):
    """Where an API key credential is attached."""

    HEADER = "header"
    QUERY = "query"


class NodeType(str, Enum):
    """Kinds of node in the workspace tree."""

    WORKSPACE = "workspace"
    COLLECTION = "collection"
    REQUEST = "request"
    WEBSOCKET = "websocket"


class TestStatus(str, Enum):
    """Outcome of a single script test."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"


class WebSocketMode(str, Enum):
    """WebSocket connection flavours."""

    RAW = "raw"
    SOCKET_IO = "socket.io"


class MessageType(str, Enum):
    """Direction/kind of a WebSocket log entry."""

    SENT = "sent"
    RECEIVED = "received"
    SYSTEM = "system"
    ERROR = "error"


class ExecutionPhase(str, Enum):
    """States of a single send, in the order they are visited."""

    IDLE = "idle"
    PRE_SCRIPT = "pre_script"
    MATERIALIZING = "materializing"
    DISPATCHING = "dispatching"
    TEST_SCRIPT = "test_script"
    RECONCILING = "reconciling"
    DONE = "done"
    ERRORED = "errored"


class ErrorKind(str, Enum):
    """Classification of an error surfaced by a send."""

    SCRIPT = "script"
    TRANSPORT = "transport"
    VALIDATION = "validation"
    INTERNAL = "internal"
