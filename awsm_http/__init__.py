"""awsm-http - Scriptable HTTP request engine.

Runs stored request definitions the way an API client does:
- Variable and dynamic-data templating (``{{var}}``, ``{{faker.person.fullName()}}``)
- Sandboxed pre-request and test scripts
- Response, history and variable reconciliation into a workspace
"""

__version__ = "0.1.0"

# Models
from awsm_http.config import (
    AuthType,
    BodyType,
    ConcreteRequest,
    EngineSettings,
    Environment,
    HistoryEntry,
    HttpMethod,
    KeyValueItem,
    NodeType,
    RequestBody,
    RequestDefinition,
    ResponseEnvelope,
    TestResult,
    TreeNode,
    WorkspaceSnapshot,
)

# Templating
from awsm_http.dynamic_data import DataGenerator, get_generator
from awsm_http.variables import VariableScope, resolve

# Execution
from awsm_http.engine import RequestEngine, RunReport, SendOutcome
from awsm_http.materializer import materialize
from awsm_http.scripting import ScriptContext, ScriptResult, ScriptSandbox
from awsm_http.transport import HttpDispatcher, WebSocketManager
from awsm_http.workspace import Workspace

# Import
from awsm_http.importers import import_postman_collection, request_from_postman

__all__ = [
    # Version
    "__version__",
    # Models
    "AuthType",
    "BodyType",
    "ConcreteRequest",
    "EngineSettings",
    "Environment",
    "HistoryEntry",
    "HttpMethod",
    "KeyValueItem",
    "NodeType",
    "RequestBody",
    "RequestDefinition",
    "ResponseEnvelope",
    "TestResult",
    "TreeNode",
    "WorkspaceSnapshot",
    # Templating
    "DataGenerator",
    "VariableScope",
    "get_generator",
    "resolve",
    # Execution
    "HttpDispatcher",
    "RequestEngine",
    "RunReport",
    "ScriptContext",
    "ScriptResult",
    "ScriptSandbox",
    "SendOutcome",
    "WebSocketManager",
    "Workspace",
    "materialize",
    # Import
    "import_postman_collection",
    "request_from_postman",
]
