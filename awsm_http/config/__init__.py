"""Data models for the request engine.

This package re-exports all commonly used classes for convenient importing.
"""

# Common enumerations
from awsm_http.config.common import (
    ApiKeyLocation,
    AuthType,
    BodyType,
    ErrorKind,
    ExecutionPhase,
    HttpMethod,
    MessageType,
    NodeType,
    TestStatus,
    WebSocketMode,
)

# Request definitions
from awsm_http.config.request import (
    ApiKeyAuth,
    AuthConfig,
    BasicAuth,
    BearerAuth,
    FormDataItem,
    KeyValueItem,
    NoAuth,
    OAuth2Auth,
    RequestBody,
    RequestDefinition,
    WebSocketDefinition,
)

# Send products
from awsm_http.config.response import (
    ConcreteRequest,
    HistoryEntry,
    ResponseEnvelope,
    TestResult,
    WebSocketMessage,
    WireResponse,
    parse_body,
)

# Workspace and settings
from awsm_http.config.settings import EngineSettings
from awsm_http.config.workspace import Environment, TreeNode, WorkspaceSnapshot

__all__ = [
    # Enums
    "ApiKeyLocation",
    "AuthType",
    "BodyType",
    "ErrorKind",
    "ExecutionPhase",
    "HttpMethod",
    "MessageType",
    "NodeType",
    "TestStatus",
    "WebSocketMode",
    # Request
    "ApiKeyAuth",
    "AuthConfig",
    "BasicAuth",
    "BearerAuth",
    "FormDataItem",
    "KeyValueItem",
    "NoAuth",
    "OAuth2Auth",
    "RequestBody",
    "RequestDefinition",
    "WebSocketDefinition",
    # Response
    "ConcreteRequest",
    "HistoryEntry",
    "ResponseEnvelope",
    "TestResult",
    "WebSocketMessage",
    "WireResponse",
    "parse_body",
    # Workspace
    "EngineSettings",
    "Environment",
    "TreeNode",
    "WorkspaceSnapshot",
]
