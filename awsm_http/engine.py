"""Request execution: scripts, materialization, dispatch and reconciliation."""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from awsm_http.config import (
    ConcreteRequest,
    EngineSettings,
    ErrorKind,
    ExecutionPhase,
    HistoryEntry,
    NodeType,
    RequestDefinition,
    ResponseEnvelope,
    TestResult,
    WebSocketMessage,
)
from awsm_http.dynamic_data import get_generator
from awsm_http.errors import AwsmError
from awsm_http.materializer import materialize
from awsm_http.scripting import ScriptContext, ScriptResult, ScriptSandbox
from awsm_http.transport import HttpDispatcher, WebSocketManager
from awsm_http.utils import logger, sanitize_url, validate_url
from awsm_http.variables import VariableScope, resolve
from awsm_http.workspace import Workspace


@dataclass
class SendOutcome:
    """Everything one send produced.

    ``error`` carries the first problem encountered (script, transport,
    validation or internal); ``stale`` is set when a newer send of the same
    request reached dispatch before this one completed, in which case the
    response slot was left to the newer send.
    """

    request_id: Optional[str] = None
    phase: ExecutionPhase = ExecutionPhase.IDLE
    request: Optional[ConcreteRequest] = None
    response: Optional[ResponseEnvelope] = None
    history_entry: Optional[HistoryEntry] = None
    pre_script: Optional[ScriptResult] = None
    test_script: Optional[ScriptResult] = None
    variables: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def dispatched(self) -> bool:
        return self.response is not None

    @property
    def test_results(self) -> List[TestResult]:
        return list(self.response.test_results) if self.response else []

    @property
    def logs(self) -> List[str]:
        logs: List[str] = []
        for result in (self.pre_script, self.test_script):
            if result is not None:
                logs.extend(result.logs)
        return logs

    @property
    def passed(self) -> bool:
        return self.ok and all(t.passed for t in self.test_results)

    def fail(self, message: str, kind: ErrorKind) -> None:
        if self.error is None:
            self.error = message
            self.error_kind = kind


@dataclass
class RunReport:
    """Result of running every request under a node."""

    node_id: Optional[str]
    outcomes: List[SendOutcome] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    duration: float = 0.0

    @property
    def tests_passed(self) -> int:
        return sum(1 for o in self.outcomes for t in o.test_results if t.passed)

    @property
    def tests_failed(self) -> int:
        return sum(1 for o in self.outcomes for t in o.test_results if not t.passed)

    @property
    def errors(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def ok(self) -> bool:
        return self.errors == 0 and self.tests_failed == 0


class RequestEngine:
    """Runs sends against a workspace.

    Sends never raise; every failure is reported on the returned
    ``SendOutcome``.

    Args:
        workspace: State to read definitions and variables from and to
            write responses, history and script variables back to
        dispatcher: HTTP dispatcher (defaults to one built from ``settings``)
        settings: Engine settings
        sandbox: Script sandbox (defaults to one built from ``settings``)
    """

    def __init__(
        self,
        workspace: Workspace,
        dispatcher: Optional[HttpDispatcher] = None,
        settings: Optional[EngineSettings] = None,
        sandbox: Optional[ScriptSandbox] = None,
    ):
        self.workspace = workspace
        self.settings = settings or EngineSettings()
        self.dispatcher = dispatcher or HttpDispatcher.from_settings(self.settings)
        self.sandbox = sandbox or ScriptSandbox(timeout=self.settings.script_timeout)
        self.generator = get_generator(self.settings.faker_locale, self.settings.seed)
        self.websockets = WebSocketManager()

    @property
    def locale(self) -> str:
        return self.generator.locale

    async def close(self) -> None:
        await self.websockets.close_all()
        close = getattr(self.dispatcher, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "RequestEngine":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def send(self, request_id: str) -> SendOutcome:
        """Send the request stored under ``request_id``."""
        try:
            definition = self.workspace.get_request(request_id)
        except AwsmError as e:
            outcome = SendOutcome(request_id=request_id, phase=ExecutionPhase.ERRORED)
            outcome.fail(str(e), ErrorKind.VALIDATION)
            return outcome
        return await self.send_definition(definition, request_id)

    async def send_definition(
        self,
        definition: RequestDefinition,
        request_id: Optional[str] = None,
    ) -> SendOutcome:
        """Send ``definition``; results are stored under ``request_id`` when given."""
        outcome = SendOutcome(request_id=request_id)
        try:
            await self._execute(definition, outcome)
        except Exception as e:
            logger.exception(f"Unexpected failure while sending {request_id or 'ad-hoc request'}")
            outcome.phase = ExecutionPhase.ERRORED
            outcome.fail(str(e) or type(e).__name__, ErrorKind.INTERNAL)
        return outcome

    def _enter(self, outcome: SendOutcome, phase: ExecutionPhase) -> None:
        logger.debug(f"[{outcome.request_id or 'ad-hoc'}] {outcome.phase.value} -> {phase.value}")
        outcome.phase = phase

    def _persist_variables(self, before: VariableScope, result: ScriptResult) -> None:
        if not self.settings.persist_script_variables or result.error:
            return
        after = VariableScope(result.variables)
        removed = [key for key in before if key not in after]
        self.workspace.apply_variable_changes(after.changes_from(before), removed)

    def _script_context(self, scope: VariableScope, request, response=None) -> ScriptContext:
        return ScriptContext(
            variables=scope,
            request=request,
            response=response,
            locale=self.locale,
            generator=self.generator,
        )

    async def _execute(self, definition: RequestDefinition, outcome: SendOutcome) -> None:
        request_id = outcome.request_id

        if not definition.url.strip():
            self._enter(outcome, ExecutionPhase.ERRORED)
            outcome.fail("URL is required", ErrorKind.VALIDATION)
            return

        initial = self.workspace.variable_scope()

        # Pre-request script
        self._enter(outcome, ExecutionPhase.PRE_SCRIPT)
        pre = self.sandbox.execute(definition.pre_request_script, self._script_context(initial, definition))
        outcome.pre_script = pre
        if pre.error:
            logger.warning(f"Pre-request script failed: {pre.error}")
            self._enter(outcome, ExecutionPhase.ERRORED)
            outcome.fail(f"Pre-request script error: {pre.error}", ErrorKind.SCRIPT)
            outcome.variables = initial.to_dict()
            return
        scope = VariableScope(pre.variables)
        self._persist_variables(initial, pre)

        # Materialize
        self._enter(outcome, ExecutionPhase.MATERIALIZING)
        request = materialize(definition, scope, self.locale, self.generator)
        outcome.request = request
        valid, message = validate_url(request.url)
        if not valid:
            self._enter(outcome, ExecutionPhase.ERRORED)
            outcome.fail(f"{message}: {request.url}", ErrorKind.VALIDATION)
            outcome.variables = scope.to_dict()
            return

        # Dispatch
        self._enter(outcome, ExecutionPhase.DISPATCHING)
        token = self.workspace.begin_send(request_id) if request_id else None
        logger.debug(f"{request.method.value} {sanitize_url(request.url)}")
        wire = await self.dispatcher.dispatch(request)
        envelope = ResponseEnvelope.from_wire(wire)
        if wire.error is not None:
            outcome.fail(wire.error, ErrorKind.TRANSPORT)

        outcome.stale = token is not None and not self.workspace.is_latest(request_id, token)
        if outcome.stale:
            logger.debug(f"[{request_id}] a newer send started; response slot left untouched")
        elif request_id:
            self.workspace.set_response(request_id, envelope)

        # Test script
        self._enter(outcome, ExecutionPhase.TEST_SCRIPT)
        test = self.sandbox.execute(definition.test_script, self._script_context(scope, request, envelope))
        outcome.test_script = test
        if test.error:
            logger.warning(f"Test script failed: {test.error}")
            outcome.fail(f"Test script error: {test.error}", ErrorKind.SCRIPT)
        else:
            self._persist_variables(scope, test)

        # Reconcile
        self._enter(outcome, ExecutionPhase.RECONCILING)
        envelope = envelope.model_copy(update={"test_results": list(test.test_results)})
        if request_id and not outcome.stale:
            self.workspace.set_response(request_id, envelope)
        entry = HistoryEntry(
            request_id=request_id,
            method=request.method.value,
            url=request.url,
            status=envelope.status,
            status_text=envelope.status_text,
            duration=envelope.time,
            size=envelope.size,
            response=envelope,
        )
        self.workspace.add_history(entry)

        outcome.response = envelope
        outcome.history_entry = entry
        outcome.variables = dict(test.variables)
        self._enter(outcome, ExecutionPhase.DONE)

    async def run_collection(self, node_id: Optional[str] = None) -> RunReport:
        """Send every request under ``node_id`` (or the whole tree) in order."""
        report = RunReport(node_id=node_id)
        start = time.perf_counter()
        for node in list(self.workspace.iter_requests(node_id)):
            logger.info(f"Running {self.workspace.path_of(node.id)}")
            report.outcomes.append(await self.send(node.id))
        report.duration = time.perf_counter() - start
        logger.info(f"Ran {len(report.outcomes)} request(s): {report.tests_passed} test(s) passed, "
                    f"{report.tests_failed} failed, {report.errors} error(s)")
        return report

    # ------------------------------------------------------------------
    # WebSocket
    # ------------------------------------------------------------------

    async def connect_websocket(self, node_id: str, on_message=None, on_status=None) -> bool:
        """Connect the WebSocket node ``node_id`` using its resolved URL."""
        node = self.workspace.get_node(node_id)
        if node.type != NodeType.WEBSOCKET or node.ws_data is None:
            raise AwsmError(f"Node '{node.name}' is a {node.type.value}, not a websocket")
        url = resolve(node.ws_data.url, self.workspace.variable_scope(), self.locale, self.generator)
        return await self.websockets.connect(node_id, url, node.ws_data.mode, on_message, on_status)

    async def send_websocket(self, node_id: str, text: Optional[str] = None) -> WebSocketMessage:
        """Send ``text`` (default: the node's saved message) after resolving templates."""
        if text is None:
            ws_data = self.workspace.get_node(node_id).ws_data
            text = ws_data.message if ws_data else ""
        text = resolve(text, self.workspace.variable_scope(), self.locale, self.generator)
        return await self.websockets.send(node_id, text)

    async def disconnect_websocket(self, node_id: str) -> None:
        await self.websockets.disconnect(node_id)
