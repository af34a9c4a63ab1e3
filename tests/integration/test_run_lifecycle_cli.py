"""
Integration Tests for the CLI.

Drives the Typer app end to end with CliRunner. The only substitution is
the HTTP transport: build_api_client is patched to talk to the scripted
fake service instead of the network.
"""

import json
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from classification_client.api.client import ClassificationClient
from classification_client.api.contracts import RunStatus
from cli import app

pytestmark = pytest.mark.integration

runner = CliRunner()

API_URL = "https://api.example.com/designelementclassification"
RUN_ARGS = ["run", "-p", "proj-1", "-i", "dataset-1", "-c", "changeset-1", "--poll-interval", "0"]


@pytest.fixture
def cli_service(service):
    """Route every client the CLI builds to the fake service."""

    def build(state, token_provider):
        return ClassificationClient(token_provider, state.api_url, transport=service.transport())

    with patch("classification_client.cli.context.build_api_client", side_effect=build):
        yield service


def invoke(*args: str):
    return runner.invoke(app, ["--access-token", "cli-token", "--api-url", API_URL, *args])


class TestRunLifecycle:

    def test_successful_run(self, cli_service, tmp_path) -> None:
        cli_service.statuses = [RunStatus.IN_PROGRESS, RunStatus.FINISHED]
        cli_service.results = ["out.json"]
        cli_service.result_text = '[{"id": "e1"}, {"id": "e2"}]'

        result = invoke(*RUN_ARGS, "--result-name", "out.json", "-o", str(tmp_path))

        assert result.exit_code == 0, result.output
        assert "Run created. Run id - 'run-1'." in result.stdout
        assert "Current run status - 'Finished'." in result.stdout
        assert "Found result! Name: 'out.json'" in result.stdout
        assert "Run deleted." in result.stdout
        assert "Run completed successfully" in result.stdout
        assert json.loads((tmp_path / "out.json").read_text()) == [{"id": "e1"}, {"id": "e2"}]

        assert cli_service.created == [
            {"datasetId": "dataset-1", "changeSetId": "changeset-1", "modelVersion": "1.0"},
        ]
        assert cli_service.calls("GET", "/runs/run-1/status") == 2
        assert cli_service.calls("DELETE", "/runs/run-1") == 1
        assert all(
            r.headers["Authorization"] == "Bearer cli-token" for r in cli_service.requests
        )

    def test_timeout_cancels_and_deletes(self, cli_service) -> None:
        cli_service.statuses = [RunStatus.IN_PROGRESS]

        result = invoke(*RUN_ARGS, "--wait-for", "0")

        assert result.exit_code == 0, result.output
        assert "Run did not finish in time" in result.stdout
        assert "Run canceled." in result.stdout
        assert cli_service.calls("POST", "/runs/run-1/cancel") == 1
        assert cli_service.calls("DELETE", "/runs/run-1") == 1
        assert cli_service.calls("GET", "/runs/run-1/results") == 0

    def test_output_directory_is_created(self, cli_service, tmp_path) -> None:
        cli_service.results = ["out.json"]

        result = invoke(*RUN_ARGS, "--result-name", "out.json", "-o", f"{tmp_path / 'out'}/")

        assert result.exit_code == 0, result.output
        assert (tmp_path / "out" / "out.json").read_text() == cli_service.result_text

    def test_keep_run(self, cli_service) -> None:
        result = invoke(*RUN_ARGS, "--keep-run")

        assert result.exit_code == 0, result.output
        assert cli_service.calls("DELETE", "/runs/run-1") == 0

    def test_history_only(self, cli_service) -> None:
        cli_service.runs = [("run-9", RunStatus.FINISHED)]

        result = invoke(*RUN_ARGS, "--hist")

        assert result.exit_code == 0, result.output
        assert "Found run in project. Run id - 'run-9'. Status - 'Finished'" in result.stdout
        assert cli_service.calls("POST", "/runs/") == 0

    def test_service_error_sets_exit_code(self, cli_service) -> None:
        cli_service.failures[("POST", "/runs/")] = (403, "Forbidden")

        result = invoke(*RUN_ARGS)

        assert result.exit_code == 403
        assert "Error: ApiResponseError: Forbidden" in result.output

    def test_malformed_status_reports_contract_error(self, cli_service) -> None:
        scripted = cli_service.handle

        def handle(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/status"):
                return httpx.Response(200, json={"status": "Queued"})
            return scripted(request)

        cli_service.handle = handle

        result = invoke(*RUN_ARGS)

        assert result.exit_code == -1
        assert "Error: InvalidResponseError: Unexpected response body (status 200): status:" in result.output

    def test_failed_run_is_deleted_without_cancel(self, cli_service) -> None:
        cli_service.statuses = [RunStatus.IN_PROGRESS, RunStatus.FAILED]
        cli_service.failures[("POST", "/runs/run-1/cancel")] = (409, "Run already completed")

        result = invoke(*RUN_ARGS)

        assert result.exit_code == 0, result.output
        assert "Run ended with status 'Failed'. Deleting run." in result.stdout
        assert cli_service.calls("POST", "/runs/run-1/cancel") == 0
        assert cli_service.calls("DELETE", "/runs/run-1") == 1

    def test_no_models_fails(self, cli_service) -> None:
        cli_service.models = []

        result = invoke(*RUN_ARGS)

        assert result.exit_code == -1
        assert "NoModelsAvailableError" in result.output
        assert cli_service.calls("POST", "/runs/") == 0


class TestRunCommands:

    def test_models(self, cli_service) -> None:
        cli_service.models = ["10.0", "9.0"]

        result = invoke("models")

        assert result.exit_code == 0, result.output
        assert "10.0" in result.stdout
        assert "default" in result.stdout

    def test_list(self, cli_service) -> None:
        cli_service.runs = [("run-a", RunStatus.FAILED)]

        result = invoke("runs", "list", "-p", "proj-1")

        assert result.exit_code == 0, result.output
        assert "run-a" in result.stdout
        assert str(cli_service.requests[0].url) == f"{API_URL}/runs?projectId=proj-1"

    def test_status(self, cli_service) -> None:
        cli_service.statuses = [RunStatus.IN_PROGRESS]

        result = invoke("runs", "status", "run-1")

        assert result.exit_code == 0, result.output
        assert "InProgress" in result.stdout

    def test_show_missing_run(self, cli_service) -> None:
        cli_service.failures[("GET", "/runs/nope")] = (404, "Run not found")

        result = invoke("runs", "show", "nope")

        assert result.exit_code == 404
        assert "NotFoundError" in result.output

    def test_download_to_file(self, cli_service, tmp_path) -> None:
        cli_service.result_text = "result body"
        target = tmp_path / "r.json"

        result = invoke("runs", "download", "run-1", "r.json", "-o", str(target))

        assert result.exit_code == 0, result.output
        assert target.read_text() == "result body"
        assert cli_service.calls("GET", "/runs/run-1/results/r.json") == 1

    def test_cancel_and_delete(self, cli_service) -> None:
        assert invoke("runs", "cancel", "run-1").exit_code == 0
        assert invoke("runs", "delete", "run-1").exit_code == 0
        assert cli_service.calls("POST", "/runs/run-1/cancel") == 1
        assert cli_service.calls("DELETE", "/runs/run-1") == 1
