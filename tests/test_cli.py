import json

import pytest
from typer.testing import CliRunner

from awsm_http.cli import app
from awsm_http.config import NodeType, RequestDefinition
from awsm_http.workspace import Workspace

from tests.test_postman import COLLECTION


runner = CliRunner()


@pytest.fixture
def workspace_file(tmp_path):
    workspace = Workspace()
    root = workspace.add_node(None, NodeType.WORKSPACE, "Root")
    workspace.add_node(
        root,
        NodeType.REQUEST,
        "Broken",
        data=RequestDefinition(url="https://api.example/x", pre_request_script="raise Exception('boom')"),
    )
    workspace.set_globals({"host": "https://api.example"})
    path = tmp_path / "workspace.json"
    workspace.save(path)
    return path


class TestResolve:
    def test_variables(self):
        result = runner.invoke(app, ["resolve", "{{host}}/users/{{id}}", "--var", "host=https://a.com", "--var", "id=7"])
        assert result.exit_code == 0
        assert result.stdout.strip() == "https://a.com/users/7"

    def test_unknown_variables_are_kept(self):
        result = runner.invoke(app, ["resolve", "{{missing}}"])
        assert result.exit_code == 0
        assert result.stdout.strip() == "{{missing}}"

    def test_variables_from_workspace(self, workspace_file):
        result = runner.invoke(app, ["resolve", "{{host}}/ping", "-w", str(workspace_file)])
        assert result.exit_code == 0
        assert result.stdout.strip() == "https://api.example/ping"

    def test_invalid_var(self):
        result = runner.invoke(app, ["resolve", "x", "--var", "novalue"])
        assert result.exit_code == 2


class TestSend:
    def test_script_error_exits_non_zero(self, workspace_file, tmp_path):
        output = tmp_path / "outcome.json"
        result = runner.invoke(app, ["send", str(workspace_file), "Broken", "-o", str(output)])
        assert result.exit_code == 1
        assert "Pre-request script error: boom" in result.stdout
        saved = json.loads(output.read_text())
        assert saved["errorKind"] == "script"
        assert saved["response"] is None

    def test_unknown_request(self, workspace_file):
        result = runner.invoke(app, ["send", str(workspace_file), "Nope"])
        assert result.exit_code == 2

    def test_unknown_environment(self, workspace_file):
        result = runner.invoke(app, ["send", str(workspace_file), "Broken", "-e", "Prod"])
        assert result.exit_code == 2

    def test_missing_workspace(self, tmp_path):
        result = runner.invoke(app, ["send", str(tmp_path / "nope.json"), "Broken"])
        assert result.exit_code == 2


class TestRun:
    def test_report_and_exit_code(self, workspace_file):
        result = runner.invoke(app, ["run", str(workspace_file)])
        assert result.exit_code == 1
        assert "Collection Run" in result.stdout
        assert "1 error(s)" in result.stdout

    def test_unknown_folder(self, workspace_file):
        result = runner.invoke(app, ["run", str(workspace_file), "Nope"])
        assert result.exit_code == 2


class TestImportPostman:
    def test_import(self, tmp_path):
        collection = tmp_path / "collection.json"
        collection.write_text(json.dumps(COLLECTION))
        output = tmp_path / "workspace.json"

        result = runner.invoke(app, ["import-postman", str(collection), str(output)])

        assert result.exit_code == 0
        assert "Imported 'Pet Store' (3 requests)" in result.stdout
        workspace = Workspace.load(output)
        assert workspace.find_node("Pets/Create Pet").data.method.value == "POST"

    def test_merge_keeps_existing_nodes(self, tmp_path, workspace_file):
        collection = tmp_path / "collection.json"
        collection.write_text(json.dumps(COLLECTION))

        result = runner.invoke(app, ["import-postman", str(collection), str(workspace_file), "--merge"])

        assert result.exit_code == 0
        workspace = Workspace.load(workspace_file)
        assert [workspace.get_node(r).name for r in workspace.root_ids] == ["Root", "Pet Store"]

    def test_unsupported_requests_are_skipped(self, tmp_path):
        collection = tmp_path / "collection.json"
        collection.write_text(json.dumps({
            "info": {"name": "Mixed"},
            "item": [
                {"name": "Head", "request": {"method": "HEAD", "url": "https://api.example"}},
                {"name": "Ping", "request": "https://api.example/ping"},
            ],
        }))
        output = tmp_path / "workspace.json"

        result = runner.invoke(app, ["import-postman", str(collection), str(output)])

        assert result.exit_code == 0
        assert "Imported 'Mixed' (1 requests)" in result.stdout

    def test_collection_that_is_not_an_object(self, tmp_path):
        collection = tmp_path / "collection.json"
        collection.write_text("[]")
        output = tmp_path / "workspace.json"

        result = runner.invoke(app, ["import-postman", str(collection), str(output)])

        assert result.exit_code == 1
        assert "Failed to import collection" in result.stdout
        assert not output.exists()

    def test_missing_collection(self, tmp_path):
        result = runner.invoke(app, ["import-postman", str(tmp_path / "nope.json"), str(tmp_path / "out.json")])
        assert result.exit_code == 1


def test_no_command_prints_usage():
    result = runner.invoke(app, [])
    assert result.exit_code == 0
    assert "awsm-http send" in result.stdout
