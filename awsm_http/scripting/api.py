"""The ``awsm`` object injected into user scripts.

This is the only capability a script receives::

    awsm.variables.get("token")
    awsm.variables.set("userId", awsm.response.json()["id"])
    awsm.log("status", awsm.response.status)

    def status_is_ok(describe):
        describe("got " + str(awsm.response.status))
        assert awsm.response.status == 200

    awsm.test("Status code is 200", status_is_ok)

Method names are a stable contract with saved user scripts.
"""

import copy
import inspect
import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qsl, urlsplit

from awsm_http.config import (
    ConcreteRequest,
    RequestDefinition,
    ResponseEnvelope,
    TestResult,
    TestStatus,
)
from awsm_http.dynamic_data import DataGenerator, to_text
from awsm_http.errors import ScriptTimeout


class ScriptVariables:
    """Copy-on-write view of the variable scope for one script run."""

    def __init__(self, values: Mapping[str, str]):
        self._values: Dict[str, str] = dict(values)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[str(key)] = to_text(value)

    def has(self, key: str) -> bool:
        return key in self._values

    def unset(self, key: str) -> None:
        self._values.pop(key, None)

    def to_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def __repr__(self) -> str:
        return f"<awsm.variables {len(self._values)} entries>"


def _frozen(mapping: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class RequestView:
    """Read-only request as seen by scripts."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    params: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    body: Optional[str] = None

    @classmethod
    def from_definition(cls, definition: RequestDefinition) -> "RequestView":
        """Pre-substitution view of a stored definition."""
        return cls(
            method=definition.method.value,
            url=definition.url,
            headers=_frozen(definition.enabled_headers()),
            params=_frozen({p.key: p.value for p in definition.params if p.enabled and p.key}),
            body=definition.body.content or None,
        )

    @classmethod
    def from_concrete(cls, request: ConcreteRequest) -> "RequestView":
        return cls(
            method=request.method.value,
            url=request.url,
            headers=_frozen(request.headers),
            params=_frozen(dict(parse_qsl(urlsplit(request.url).query, keep_blank_values=True))),
            body=request.body,
        )

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return _find_header(self.headers, name, default)


@dataclass(frozen=True)
class ResponseView:
    """Read-only response as seen by test scripts."""

    status: int
    status_text: str
    time: int
    size: int
    headers: Mapping[str, str]
    body: Any
    raw_body: str

    @classmethod
    def from_envelope(cls, envelope: ResponseEnvelope) -> "ResponseView":
        return cls(
            status=envelope.status,
            status_text=envelope.status_text,
            time=envelope.time,
            size=envelope.size,
            headers=_frozen(envelope.headers),
            body=copy.deepcopy(envelope.body),
            raw_body=envelope.raw_body,
        )

    @property
    def text(self) -> str:
        return self.raw_body

    def json(self) -> Any:
        """Parse the raw payload as JSON (raises ValueError when it is not)."""
        return json.loads(self.raw_body)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return _find_header(self.headers, name, default)


def _find_header(headers: Mapping[str, str], name: str, default: Optional[str]) -> Optional[str]:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return default


def _takes_argument(callback: Callable) -> bool:
    try:
        signature = inspect.signature(callback)
    except (TypeError, ValueError):
        return True
    return any(
        p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD, p.VAR_POSITIONAL)
        for p in signature.parameters.values()
    )


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


class ScriptApi:
    """Capability object bound to one script execution."""

    def __init__(
        self,
        variables: Mapping[str, str],
        faker: DataGenerator,
        request: Optional[RequestView] = None,
        response: Optional[ResponseView] = None,
    ):
        self.variables = ScriptVariables(variables)
        self.faker = faker
        self.request = request
        self.response = response
        self._logs: List[str] = []
        self._tests: List[TestResult] = []

    def log(self, *values: Any) -> None:
        """Append the space-joined values to the script log."""
        parts = []
        for value in values:
            try:
                parts.append(to_text(value))
            except Exception:
                parts.append(f"<{type(value).__name__}>")
        self._logs.append(" ".join(parts))

    def test(self, name: str, callback: Optional[Callable] = None) -> Any:
        """Run ``callback`` as a named test; usable as a decorator.

        The callback receives ``describe(text)`` when it accepts an argument.
        Any exception it raises marks the test failed; later tests still run.
        """
        if callback is None:
            def decorator(fn: Callable) -> Callable:
                self._run_test(name, fn)
                return fn

            return decorator
        self._run_test(name, callback)
        return None

    def _run_test(self, name: Any, callback: Callable) -> None:
        description: List[str] = []

        def describe(text: Any) -> None:
            description[:] = [to_text(text)]

        try:
            if _takes_argument(callback):
                callback(describe)
            else:
                callback()
        except ScriptTimeout:
            raise
        except BaseException as e:
            self._tests.append(TestResult(
                name=to_text(name),
                status=TestStatus.FAILED,
                error=_error_message(e),
                description=description[0] if description else None,
            ))
            return
        self._tests.append(TestResult(
            name=to_text(name),
            status=TestStatus.PASSED,
            description=description[0] if description else None,
        ))

    @property
    def logs(self) -> List[str]:
        return list(self._logs)

    @property
    def test_results(self) -> List[TestResult]:
        return list(self._tests)

    def __repr__(self) -> str:
        return "<awsm>"


def view_request(request: Union[RequestDefinition, ConcreteRequest, RequestView, None]) -> Optional[RequestView]:
    if request is None or isinstance(request, RequestView):
        return request
    if isinstance(request, ConcreteRequest):
        return RequestView.from_concrete(request)
    return RequestView.from_definition(request)


def view_response(response: Union[ResponseEnvelope, ResponseView, None]) -> Optional[ResponseView]:
    if response is None or isinstance(response, ResponseView):
        return response
    return ResponseView.from_envelope(response)
