"""
Root Pytest Fixtures.

Shared fixtures available to all test types.

The classification service is replaced by FakeClassificationService, an
in-memory stand-in served through httpx.MockTransport. Tests script its
models, status sequence, results and failures, then inspect the requests
it received.
"""

import json
import re
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import pytest

from classification_client.api.client import ClassificationClient
from classification_client.api.contracts import RunStatus
from classification_client.auth.tokens import StaticTokenProvider

BASE_URL = "https://api.example.com/designelementclassification"
BASE_PATH = "/designelementclassification"
TOKEN = "test-token"


def run_payload(
    run_id: str,
    status: RunStatus,
    model_version: str = "1.0",
) -> dict[str, Any]:
    """Wire representation of a run."""
    return {
        "id": run_id,
        "modelVersion": model_version,
        "metadata": {"countOfIssues": 2, "countOfProcessed": 10, "countOfElements": 12},
        "status": status.value,
        "lastModifiedDateTime": "2024-03-01T12:00:00Z",
        "_links": {
            "project": {"href": "https://api.example.com/projects/p-1"},
            "imodel": {"href": "https://api.example.com/imodels/d-1"},
            "changeSet": {"href": "https://api.example.com/changesets/c-1"},
        },
    }


class FakeClassificationService:
    """
    Scripted classification service.

    statuses is consumed one entry per status fetch; the last entry
    repeats once the list is exhausted.
    """

    def __init__(self) -> None:
        self.models: list[str] = ["1.0"]
        self.runs: list[tuple[str, RunStatus]] = []
        self.statuses: list[RunStatus] = [RunStatus.FINISHED]
        self.results: list[str] = ["out.json"]
        self.result_text = '{"classifications": [{"id": "e1", "class": "Wall"}]}'
        self.created_run_id = "run-1"
        self.failures: dict[tuple[str, str], tuple[int, str]] = {}
        self.requests: list[httpx.Request] = []
        self.created: list[dict[str, Any]] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str, path: str) -> int:
        """Number of requests received for method and service-relative path."""
        return sum(
            1 for r in self.requests
            if r.method == method and self._path(r) == path
        )

    @staticmethod
    def _path(request: httpx.Request) -> str:
        return request.url.path.removeprefix(BASE_PATH)

    def _next_status(self) -> RunStatus:
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = request.method
        path = self._path(request)

        if (method, path) in self.failures:
            status_code, text = self.failures[(method, path)]
            return httpx.Response(status_code, text=text)

        if method == "GET" and path == "/models":
            return httpx.Response(200, json={"models": [
                {"version": v, "lastModifiedDateTime": "2024-01-01T00:00:00Z"}
                for v in self.models
            ]})

        if method == "GET" and path == "/runs":
            return httpx.Response(200, json={"runs": [
                run_payload(run_id, status) for run_id, status in self.runs
            ]})

        if method == "POST" and path == "/runs/":
            body = json.loads(request.content)
            self.created.append(body)
            return httpx.Response(201, json={"run": run_payload(
                self.created_run_id, RunStatus.NOT_STARTED, body["modelVersion"],
            )})

        match = re.fullmatch(r"/runs/([^/]+)(/.*)?", path)
        if match is None:
            return httpx.Response(404, text="Unknown endpoint")

        run_id, rest = match.group(1), match.group(2)

        if method == "GET" and rest is None:
            return httpx.Response(200, json={"run": run_payload(run_id, self.statuses[0])})
        if method == "GET" and rest == "/status":
            return httpx.Response(200, json={"status": self._next_status().value})
        if method == "GET" and rest == "/results":
            return httpx.Response(200, json={"results": [{"name": n} for n in self.results]})
        if method == "GET" and rest.startswith("/results/"):
            return httpx.Response(200, text=self.result_text)
        if method == "POST" and rest == "/cancel":
            return httpx.Response(200, json={"run": run_payload(run_id, RunStatus.CANCELED)})
        if method == "DELETE" and rest is None:
            return httpx.Response(204)

        return httpx.Response(404, text="Unknown endpoint")


class FakeClock:
    """Monotonic clock that only moves when sleep() is awaited."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# =============================================================================
# Service and Client Fixtures
# =============================================================================


@pytest.fixture
def service() -> FakeClassificationService:
    """Fresh scripted service for each test."""
    return FakeClassificationService()


@pytest.fixture
def token_provider() -> StaticTokenProvider:
    return StaticTokenProvider(TOKEN)


@pytest.fixture
async def api_client(
    service: FakeClassificationService,
    token_provider: StaticTokenProvider,
) -> AsyncGenerator[ClassificationClient, None]:
    """Client wired to the fake service."""
    client = ClassificationClient(token_provider, BASE_URL, transport=service.transport())
    yield client
    await client.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
