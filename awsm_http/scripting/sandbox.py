"""Restricted execution of pre-request and test scripts.

Scripts are Python compiled with RestrictedPython. They cannot import
modules, touch private attributes or reach the filesystem; the only
capability they get is the ``awsm`` object (see :mod:`awsm_http.scripting.api`).
``print`` output is routed to the script log.
"""

import operator
import sys
import time
import warnings
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import lru_cache
from types import CodeType
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from RestrictedPython import compile_restricted, limited_builtins, safe_builtins
from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safer_getattr,
)

from awsm_http.config import ConcreteRequest, RequestDefinition, ResponseEnvelope, TestResult
from awsm_http.dynamic_data import DEFAULT_LOCALE, DataGenerator, get_generator
from awsm_http.errors import ScriptTimeout
from awsm_http.scripting.api import (
    RequestView,
    ResponseView,
    ScriptApi,
    view_request,
    view_response,
)
from awsm_http.utils import logger


SCRIPT_FILENAME = "<awsm-script>"

_EXTRA_BUILTINS = {
    "dict": dict,
    "list": list,
    "set": set,
    "enumerate": enumerate,
    "min": min,
    "max": max,
    "sum": sum,
    "any": any,
    "all": all,
    "map": map,
    "filter": filter,
    "reversed": reversed,
}

# Raising these would get past the sandbox boundary
_BLOCKED_BUILTINS = ("BaseException", "BaseExceptionGroup", "SystemExit", "KeyboardInterrupt", "GeneratorExit")

_INPLACE_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "+=": operator.iadd,
    "-=": operator.isub,
    "*=": operator.imul,
    "/=": operator.itruediv,
    "//=": operator.ifloordiv,
    "%=": operator.imod,
    "**=": operator.ipow,
    "|=": operator.ior,
    "&=": operator.iand,
}


def _inplacevar(op: str, target: Any, value: Any) -> Any:
    try:
        return _INPLACE_OPERATORS[op](target, value)
    except KeyError:
        raise SyntaxError(f"unsupported augmented assignment '{op}'") from None


def _apply(func: Callable, *args: Any, **kwargs: Any) -> Any:
    return func(*args, **kwargs)


@dataclass
class ScriptContext:
    """Inputs to one script execution."""

    variables: Mapping[str, str] = field(default_factory=dict)
    request: Union[RequestDefinition, ConcreteRequest, RequestView, None] = None
    response: Union[ResponseEnvelope, ResponseView, None] = None
    locale: str = DEFAULT_LOCALE
    generator: Optional[DataGenerator] = None


@dataclass
class ScriptResult:
    """Outcome of one script execution.

    ``variables`` is the full scope after the script ran. ``error`` is set
    when the script raised at top level (or failed to compile); tests that
    ran before the error are still reported.
    """

    variables: Dict[str, str]
    logs: List[str] = field(default_factory=list)
    test_results: List[TestResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@lru_cache(maxsize=256)
def compile_script(source: str) -> CodeType:
    """Compile a script under the restricted policy (cached by source)."""
    with warnings.catch_warnings():
        # "Prints, but never reads 'printed' variable"
        warnings.simplefilter("ignore", SyntaxWarning)
        return compile_restricted(source, SCRIPT_FILENAME, "exec")


def _syntax_message(error: SyntaxError) -> str:
    if error.args and isinstance(error.args[0], (list, tuple)):
        return "SyntaxError: " + "; ".join(str(line) for line in error.args[0])
    return f"SyntaxError: {error}"


@contextmanager
def time_budget(seconds: Optional[float]):
    """Abort script frames that run longer than ``seconds``.

    Only frames compiled from user scripts are traced, so library calls made
    by the script run at full speed.
    """
    if not seconds or seconds <= 0:
        yield
        return

    deadline = time.monotonic() + seconds

    def trace_lines(frame, event, arg):
        if time.monotonic() > deadline:
            raise ScriptTimeout(f"Script timed out after {seconds:g}s")
        return trace_lines

    def trace_calls(frame, event, arg):
        if frame.f_code.co_filename != SCRIPT_FILENAME:
            return None
        return trace_lines

    previous = sys.gettrace()
    sys.settrace(trace_calls)
    try:
        yield
    finally:
        sys.settrace(previous)


def _printer_for(api: ScriptApi) -> type:
    class ScriptPrinter:
        """Receives ``print(...)`` calls from restricted code."""

        def __init__(self, _getattr_=None):
            pass

        def _call_print(self, *objects: Any, **kwargs: Any) -> None:
            api.log(*objects)

        def __call__(self) -> str:
            return "\n".join(api.logs)

    return ScriptPrinter


def build_globals(api: ScriptApi) -> Dict[str, Any]:
    builtins = dict(safe_builtins)
    builtins.update(limited_builtins)
    builtins.update(_EXTRA_BUILTINS)
    for name in _BLOCKED_BUILTINS:
        builtins.pop(name, None)
    return {
        "__builtins__": builtins,
        "__name__": "awsm_script",
        "__metaclass__": type,
        "_getattr_": safer_getattr,
        "_getitem_": default_guarded_getitem,
        "_getiter_": default_guarded_getiter,
        "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
        "_unpack_sequence_": guarded_unpack_sequence,
        "_write_": full_write_guard,
        "_inplacevar_": _inplacevar,
        "_apply_": _apply,
        "_print_": _printer_for(api),
        "awsm": api,
    }


class ScriptSandbox:
    """Runs user scripts in isolation.

    Every execution gets a fresh ``awsm`` object and a copy of the variable
    scope; nothing leaks between executions.

    Args:
        timeout: Wall-clock budget per script in seconds (``None`` disables)
    """

    def __init__(self, timeout: Optional[float] = 5.0):
        self.timeout = timeout

    def execute(self, source: Optional[str], context: ScriptContext) -> ScriptResult:
        """Execute ``source`` against ``context``. Never raises."""
        if not source or not source.strip():
            return ScriptResult(variables=dict(context.variables))

        generator = context.generator or get_generator(context.locale)
        api = ScriptApi(
            context.variables,
            generator,
            request=view_request(context.request),
            response=view_response(context.response),
        )

        try:
            code = compile_script(source)
        except SyntaxError as e:
            logger.debug(f"Script failed to compile: {e}")
            return ScriptResult(variables=api.variables.to_dict(), error=_syntax_message(e))

        error = None
        try:
            with time_budget(self.timeout):
                exec(code, build_globals(api))
        except ScriptTimeout as e:
            error = str(e)
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.debug(f"Script raised {type(e).__name__}: {error}")
        except BaseException as e:
            error = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
            logger.warning(f"Script raised {error}")

        return ScriptResult(
            variables=api.variables.to_dict(),
            logs=api.logs,
            test_results=api.test_results,
            error=error,
        )
