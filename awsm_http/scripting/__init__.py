"""User script execution."""

from awsm_http.scripting.api import (
    RequestView,
    ResponseView,
    ScriptApi,
    ScriptVariables,
)
from awsm_http.scripting.sandbox import (
    SCRIPT_FILENAME,
    ScriptContext,
    ScriptResult,
    ScriptSandbox,
    compile_script,
)

__all__ = [
    # Capability object
    "ScriptApi",
    "ScriptVariables",
    "RequestView",
    "ResponseView",
    # Execution
    "ScriptSandbox",
    "ScriptContext",
    "ScriptResult",
    "SCRIPT_FILENAME",
    "compile_script",
]
