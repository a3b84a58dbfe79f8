import asyncio

import pytest

from awsm_http.config import (
    EngineSettings,
    ErrorKind,
    ExecutionPhase,
    NodeType,
    RequestDefinition,
    TestStatus,
    WireResponse,
)
from awsm_http.engine import RequestEngine
from awsm_http.workspace import Workspace

from tests.conftest import GatedDispatcher, StubDispatcher


STATUS_TEST = (
    "def status_ok():\n"
    "    assert awsm.response.status == 200\n"
    "    assert awsm.response.body == []\n"
    "awsm.test('ok', status_ok)\n"
)


class TestSend:
    async def test_full_send(self, workspace, request_id, stub_dispatcher, settings):
        workspace.update_request(
            request_id,
            pre_request_script="awsm.variables.set('greeting', 'hi')",
            test_script=STATUS_TEST,
        )
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        outcome = await engine.send(request_id)

        assert outcome.ok
        assert outcome.passed
        assert outcome.phase == ExecutionPhase.DONE
        assert outcome.response.status == 200
        assert outcome.response.body == []
        assert [(t.name, t.status) for t in outcome.test_results] == [("ok", TestStatus.PASSED)]

        stored = workspace.get_response(request_id)
        assert stored.test_results == outcome.test_results
        assert len(workspace.history) == 1
        entry = workspace.history[0]
        assert entry.request_id == request_id
        assert entry.duration == 12
        assert entry.url == "https://api.example/users"
        assert [(v.key, v.value) for v in workspace.globals] == [("greeting", "hi")]

    async def test_pre_script_error_stops_the_send(self, workspace, request_id, stub_dispatcher, settings):
        workspace.update_request(
            request_id,
            pre_request_script="awsm.variables.set('a', '1')\nraise Exception('nope')",
        )
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        outcome = await engine.send(request_id)

        assert outcome.phase == ExecutionPhase.ERRORED
        assert outcome.error == "Pre-request script error: nope"
        assert outcome.error_kind == ErrorKind.SCRIPT
        assert not outcome.dispatched
        assert stub_dispatcher.requests == []
        assert workspace.history == []
        assert workspace.get_response(request_id) is None
        assert workspace.globals == []

    async def test_test_script_error_keeps_earlier_tests(self, workspace, request_id, stub_dispatcher, settings):
        workspace.update_request(
            request_id,
            test_script=STATUS_TEST + "awsm.variables.set('lost', '1')\nraise Exception('late')\n",
        )
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        outcome = await engine.send(request_id)

        assert outcome.error == "Test script error: late"
        assert outcome.error_kind == ErrorKind.SCRIPT
        assert outcome.phase == ExecutionPhase.DONE
        assert [t.name for t in outcome.test_results] == ["ok"]
        assert len(workspace.history) == 1
        assert workspace.globals == []

    async def test_failed_test_does_not_error_the_send(self, workspace, request_id, settings):
        dispatcher = StubDispatcher(WireResponse(status=404, status_text="Not Found", raw_body="{}"))
        workspace.update_request(request_id, test_script=STATUS_TEST)
        engine = RequestEngine(workspace, dispatcher=dispatcher, settings=settings)

        outcome = await engine.send(request_id)

        assert outcome.ok
        assert not outcome.passed
        assert outcome.test_results[0].status == TestStatus.FAILED

    async def test_pre_script_variables_reach_the_request(self, workspace, request_id, stub_dispatcher, settings):
        workspace.set_globals({"base": "https://api.example"})
        workspace.update_request(
            request_id,
            url="{{base}}/users",
            headers=[{"key": "Authorization", "value": "Bearer {{token}}"}],
            pre_request_script="awsm.variables.set('token', 'abc')",
        )
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        await engine.send(request_id)

        sent = stub_dispatcher.requests[0]
        assert sent.url == "https://api.example/users"
        assert sent.headers == {"Authorization": "Bearer abc"}

    async def test_variables_go_to_the_active_environment(self, workspace, request_id, stub_dispatcher, settings):
        workspace.add_environment("Staging", {"token": "old"})
        workspace.set_active_environment("Staging")
        workspace.update_request(request_id, test_script="awsm.variables.set('token', awsm.response.status)")
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        outcome = await engine.send(request_id)

        assert outcome.variables["token"] == "200"
        assert [(v.key, v.value) for v in workspace.active_environment.variables] == [("token", "200")]
        assert workspace.globals == []

    async def test_script_variables_can_stay_local(self, workspace, request_id, stub_dispatcher):
        settings = EngineSettings(persist_script_variables=False)
        workspace.update_request(request_id, pre_request_script="awsm.variables.set('a', '1')")
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        outcome = await engine.send(request_id)

        assert outcome.variables == {"a": "1"}
        assert workspace.globals == []

    async def test_history_is_capped(self, workspace, request_id, stub_dispatcher, settings):
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)
        for _ in range(51):
            await engine.send(request_id)
        assert len(workspace.history) == 50

    async def test_logs_from_both_scripts(self, workspace, request_id, stub_dispatcher, settings):
        workspace.update_request(
            request_id,
            pre_request_script="awsm.log('before')",
            test_script="print('after', awsm.response.status)",
        )
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        outcome = await engine.send(request_id)

        assert outcome.logs == ["before", "after 200"]

    async def test_unset_in_pre_script_reaches_the_request(self, workspace, request_id, stub_dispatcher, settings):
        workspace.set_globals({"token": "abc", "keep": "1"})
        workspace.update_request(
            request_id,
            headers=[{"key": "X-Token", "value": "{{token}}"}],
            pre_request_script="awsm.variables.unset('token')",
            test_script="awsm.log(awsm.variables.has('token'), awsm.variables.get('keep'))",
        )
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        outcome = await engine.send(request_id)

        assert stub_dispatcher.requests[0].headers == {"X-Token": "{{token}}"}
        assert outcome.logs == ["false 1"]
        assert outcome.variables == {"keep": "1"}
        assert [(v.key, v.value) for v in workspace.globals] == [("keep", "1")]

    async def test_system_exit_in_a_script_is_a_script_error(self, workspace, request_id, stub_dispatcher, settings):
        workspace.update_request(request_id, test_script="raise SystemExit(3)")
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        outcome = await engine.send(request_id)

        assert outcome.error_kind == ErrorKind.SCRIPT
        assert "SystemExit" in outcome.error
        assert outcome.phase == ExecutionPhase.DONE
        assert len(workspace.history) == 1


class TestValidation:
    async def test_empty_url(self, workspace, stub_dispatcher, settings):
        root = workspace.add_node(None, NodeType.WORKSPACE, "Root")
        request_id = workspace.add_node(root, NodeType.REQUEST, "Blank")
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        outcome = await engine.send(request_id)

        assert outcome.error == "URL is required"
        assert outcome.error_kind == ErrorKind.VALIDATION
        assert stub_dispatcher.requests == []
        assert workspace.history == []

    async def test_unresolved_host(self, workspace, request_id, stub_dispatcher, settings):
        workspace.update_request(request_id, url="{{host}}/x")
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        outcome = await engine.send(request_id)

        assert outcome.error_kind == ErrorKind.VALIDATION
        assert "{{host}}/x" in outcome.error
        assert stub_dispatcher.requests == []
        assert workspace.history == []

    async def test_unknown_request(self, workspace, stub_dispatcher, settings):
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        outcome = await engine.send("missing")

        assert outcome.error_kind == ErrorKind.VALIDATION
        assert outcome.phase == ExecutionPhase.ERRORED

    async def test_ad_hoc_definition(self, workspace, stub_dispatcher, settings):
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        outcome = await engine.send_definition(RequestDefinition(url="https://api.example/ping"))

        assert outcome.ok
        assert workspace.responses == {}
        assert workspace.history[0].request_id is None


class TestTransportFailure:
    async def test_failure_still_runs_tests_and_records_history(self, workspace, request_id, settings):
        dispatcher = StubDispatcher(WireResponse.failure("connection refused"))
        workspace.update_request(
            request_id,
            test_script=(
                "def saw_error():\n"
                "    assert awsm.response.body['error'] == 'connection refused'\n"
                "awsm.test('saw error', saw_error)\n"
            ),
        )
        engine = RequestEngine(workspace, dispatcher=dispatcher, settings=settings)

        outcome = await engine.send(request_id)

        assert outcome.error == "connection refused"
        assert outcome.error_kind == ErrorKind.TRANSPORT
        assert outcome.response.status == 0
        assert outcome.response.status_text == "Error"
        assert outcome.response.body == {"error": "connection refused"}
        assert outcome.test_results[0].status == TestStatus.PASSED
        assert workspace.history[0].status == 0
        assert workspace.get_response(request_id).status == 0


class TestConcurrentSends:
    async def test_stale_completion_leaves_the_response_slot(self, workspace, request_id, settings):
        dispatcher = GatedDispatcher()
        engine = RequestEngine(workspace, dispatcher=dispatcher, settings=settings)

        first = asyncio.create_task(engine.send(request_id))
        await dispatcher.started.wait()
        second = await engine.send(request_id)
        dispatcher.gate.set()
        first = await first

        assert not second.stale
        assert first.stale
        assert first.response.raw_body == "first"
        assert workspace.get_response(request_id).raw_body == "second"
        assert [e.status for e in workspace.history] == [200, 201]

    @pytest.mark.parametrize("changes", [
        {"pre_request_script": "raise Exception('nope')"},
        {"url": "{{host}}/users"},
    ])
    async def test_aborted_send_leaves_the_slot_to_the_earlier_send(self, workspace, request_id, settings, changes):
        dispatcher = GatedDispatcher()
        engine = RequestEngine(workspace, dispatcher=dispatcher, settings=settings)

        first = asyncio.create_task(engine.send(request_id))
        await dispatcher.started.wait()
        workspace.update_request(request_id, **changes)
        aborted = await engine.send(request_id)
        dispatcher.gate.set()
        first = await first

        assert aborted.phase == ExecutionPhase.ERRORED
        assert not aborted.dispatched
        assert not first.stale
        assert workspace.get_response(request_id).raw_body == "first"
        assert [e.status for e in workspace.history] == [200]


class TestRunCollection:
    async def test_runs_every_request_in_order(self, workspace, request_id, stub_dispatcher, settings):
        folder_id = workspace.get_node(request_id).parent_id
        workspace.update_request(request_id, test_script=STATUS_TEST)
        failing = workspace.add_node(
            folder_id,
            NodeType.REQUEST,
            "Broken",
            data=RequestDefinition(url="https://api.example/broken", pre_request_script="raise Exception('x')"),
        )
        engine = RequestEngine(workspace, dispatcher=stub_dispatcher, settings=settings)

        report = await engine.run_collection(folder_id)

        assert [o.request_id for o in report.outcomes] == [request_id, failing]
        assert report.tests_passed == 1
        assert report.tests_failed == 0
        assert report.errors == 1
        assert not report.ok
        assert report.duration >= 0


class TestDynamicData:
    async def test_seeded_engines_generate_the_same_data(self, settings):
        sent = []
        for _ in range(2):
            workspace = Workspace()
            root = workspace.add_node(None, NodeType.WORKSPACE, "Root")
            request_id = workspace.add_node(
                root,
                NodeType.REQUEST,
                "Create",
                data=RequestDefinition.model_validate({
                    "url": "https://api.example/users",
                    "headers": [{"key": "X-Request-Id", "value": "{{faker.string.uuid()}}"}],
                }),
            )
            dispatcher = StubDispatcher()
            engine = RequestEngine(
                workspace,
                dispatcher=dispatcher,
                settings=EngineSettings(seed=42, faker_locale="de"),
            )
            await engine.send(request_id)
            sent.append(dispatcher.requests[0].headers["X-Request-Id"])

        assert sent[0] == sent[1]
        assert len(sent[0]) == 36
