"""
Run Lifecycle Service.

Drives one classification run end to end against a ClassificationClient:

    history-only:  list runs in the project and stop
    create:        pick a model version and submit the run
    poll:          fetch status every poll_interval seconds while the run is
                   active, until it is terminal or the wait budget is spent
    timed out:     cancel, then delete
    ended early:   delete (Failed and Canceled runs are not canceled again)
    finished:      list results, download the configured result, hand its
                   text to the result handler, then delete

Every remote call is awaited before the next one starts. Failures are not
retried or caught here; they propagate to the caller.

Usage:
    lifecycle = RunLifecycle(client, result_handler=save_result)
    outcome = await lifecycle.execute(project_id, dataset_id, change_set_id)
"""

import asyncio
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import structlog

from classification_client.api.client import ClassificationClient
from classification_client.api.contracts import Model, Run, RunCreate, RunStatus
from classification_client.core.exceptions import NoModelsAvailableError
from classification_client.core.logging import get_logger, log_with_source

logger = get_logger(__name__)

ResultHandler = Callable[[str], Awaitable[None]]
Notify = Callable[[str], None]

DEFAULT_RESULT_NAME = "DesignElementClassifications.json"

_VERSION_SEGMENT = re.compile(r"[.\-+_]")


def version_sort_key(version: str) -> tuple[tuple[int, int | str], ...]:
    """
    Ordering key for model versions.

    Numeric segments compare as integers and sort before text segments,
    so "9.0" < "10.0" and "1.5" < "1.5-beta".
    """
    key: list[tuple[int, int | str]] = []
    for segment in _VERSION_SEGMENT.split(version):
        if segment.isdigit():
            key.append((0, int(segment)))
        else:
            key.append((1, segment))
    return tuple(key)


def select_model_version(models: list[Model]) -> str:
    """
    Choose the model version a new run is created with: the lowest
    version by version_sort_key.

    Raises:
        NoModelsAvailableError: If the service lists no models
    """
    if not models:
        raise NoModelsAvailableError()
    return min((model.version for model in models), key=version_sort_key)


def _ignore(message: str) -> None:
    pass


@dataclass
class LifecycleOutcome:
    """What happened to the run."""

    run_id: str | None = None
    status: RunStatus | None = None
    model_version: str | None = None
    timed_out: bool = False
    canceled: bool = False
    deleted: bool = False
    result_names: list[str] = field(default_factory=list)
    result_handled: bool = False
    history: list[Run] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.status is RunStatus.FINISHED


class RunLifecycle:
    """
    Orchestrates a run over a configured client.

    The poll loop checks the deadline once per iteration, after the
    status fetch, so it can overrun the wait budget by one interval.
    """

    def __init__(
        self,
        client: ClassificationClient,
        *,
        poll_interval: float = 5.0,
        wait_for_ms: int = 60 * 60 * 1000,
        result_name: str = DEFAULT_RESULT_NAME,
        delete_on_exit: bool = True,
        result_handler: ResultHandler | None = None,
        notify: Notify | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.poll_interval = poll_interval
        self.wait_for_ms = wait_for_ms
        self.result_name = result_name
        self.delete_on_exit = delete_on_exit
        self.result_handler = result_handler
        self._notify = notify or _ignore
        self._sleep = sleep
        self._clock = clock

    async def list_history(self, project_id: str) -> list[Run]:
        """List the project's existing runs."""
        runs = (await self.client.get_runs(project_id)).unwrap()
        for run in runs:
            self._notify(
                f"Found run in project. Run id - '{run.id}'. Status - '{run.status.value}'"
            )
        return runs

    async def choose_model_version(self) -> str:
        models = (await self.client.get_models()).unwrap()
        version = select_model_version(models)
        self._notify(f"Selecting '{version}' model version to run classification on.")
        return version

    async def create_run(self, dataset_id: str, change_set_id: str, model_version: str) -> Run:
        run = (await self.client.create_run(RunCreate(
            dataset_id=dataset_id,
            change_set_id=change_set_id,
            model_version=model_version,
        ))).unwrap()

        structlog.contextvars.bind_contextvars(run_id=run.id)
        log_with_source(logger, "lifecycle", "info", "Run created", model_version=model_version)
        self._notify(f"Run created. Run id - '{run.id}'.")
        return run

    async def wait_for_completion(self, run: Run) -> tuple[RunStatus, bool]:
        """
        Poll the run's status until it leaves the active states or the
        wait budget runs out.

        Returns:
            (last observed status, whether the wait budget was exceeded)
        """
        deadline = self._clock() + self.wait_for_ms / 1000
        status = run.status
        timed_out = False

        while status.is_active:
            await self._sleep(self.poll_interval)

            previous = status
            status = (await self.client.get_run_status(run.id)).unwrap()
            if status is not previous:
                log_with_source(
                    logger, "lifecycle", "info", "Run status changed",
                    previous=previous.value, status=status.value,
                )
            self._notify(f"Current run status - '{status.value}'.")

            if self._clock() > deadline:
                timed_out = status.is_active
                break

        return status, timed_out

    async def cancel_and_delete(self, run_id: str) -> None:
        (await self.client.cancel_run(run_id)).unwrap()
        log_with_source(logger, "lifecycle", "info", "Run canceled")
        self._notify("Run canceled.")
        await self.delete(run_id)

    async def delete(self, run_id: str) -> None:
        (await self.client.delete_run(run_id)).unwrap()
        log_with_source(logger, "lifecycle", "info", "Run deleted")
        self._notify("Run deleted.")

    async def collect_results(self, run_id: str) -> tuple[list[str], bool]:
        """
        List a finished run's results and pass the configured result to
        the handler.

        Returns:
            (result names, whether the handler received a payload)
        """
        results = (await self.client.get_run_results(run_id)).unwrap()
        names = [result.name for result in results]
        for name in names:
            self._notify(f"Found result! Name: '{name}'")

        text = (await self.client.download_run_result(run_id, self.result_name)).unwrap()
        if text is None:
            log_with_source(logger, "lifecycle", "warning", "Result is empty", result_name=self.result_name)
            self._notify(f"Result '{self.result_name}' has no content.")
            return names, False

        if self.result_handler is not None:
            log_with_source(
                logger, "lifecycle", "info", "Handling result",
                result_name=self.result_name, size=len(text),
            )
            await self.result_handler(text)
        return names, True

    async def execute(
        self,
        project_id: str,
        dataset_id: str,
        change_set_id: str,
        *,
        history_only: bool = False,
        model_version: str | None = None,
    ) -> LifecycleOutcome:
        """Run the whole lifecycle and report what happened."""
        if history_only:
            return LifecycleOutcome(history=await self.list_history(project_id))

        version = model_version or await self.choose_model_version()
        run = await self.create_run(dataset_id, change_set_id, version)
        outcome = LifecycleOutcome(run_id=run.id, status=run.status, model_version=version)

        try:
            outcome.status, outcome.timed_out = await self.wait_for_completion(run)

            if outcome.status is not RunStatus.FINISHED:
                if outcome.status.is_active:
                    self._notify("Run did not finish in time. Cancelling and deleting run.")
                    await self.cancel_and_delete(run.id)
                    outcome.canceled = True
                else:
                    # Terminal runs are never canceled
                    self._notify(f"Run ended with status '{outcome.status.value}'. Deleting run.")
                    await self.delete(run.id)
                outcome.deleted = True
                return outcome

            outcome.result_names, outcome.result_handled = await self.collect_results(run.id)

            if self.delete_on_exit:
                await self.delete(run.id)
                outcome.deleted = True
            return outcome
        finally:
            structlog.contextvars.unbind_contextvars("run_id")
