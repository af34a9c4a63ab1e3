"""
Contract Types.

Pydantic models for the payloads exchanged with the classification
service. Wire names are camelCase; attributes are snake_case. Unknown
fields sent by the service are ignored.
"""

from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Contract(BaseModel):
    """Base for all wire payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class RunStatus(str, Enum):
    """Processing state of a run."""

    NONE = "None"
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    FAILED = "Failed"
    FINISHED = "Finished"
    CANCELED = "Canceled"

    @property
    def is_active(self) -> bool:
        """Whether the service is still going to work on the run."""
        return self in (RunStatus.NOT_STARTED, RunStatus.IN_PROGRESS)

    @property
    def is_terminal(self) -> bool:
        """Whether the run has stopped progressing."""
        return self in (RunStatus.FAILED, RunStatus.FINISHED, RunStatus.CANCELED)


class RunMetadata(_Contract):
    count_of_issues: int = 0
    count_of_processed: int = 0
    count_of_elements: int = 0


class Link(_Contract):
    href: str


class RunLinks(_Contract):
    """Hyperlinks to the project, dataset and change set owning a run."""

    project: Link | None = None
    dataset: Link | None = Field(
        default=None,
        validation_alias=AliasChoices("imodel", "dataset"),
    )
    change_set: Link | None = None


class Run(_Contract):
    id: str
    model_version: str | None = None
    metadata: RunMetadata = Field(default_factory=RunMetadata)
    status: RunStatus = RunStatus.NONE
    last_modified_date_time: datetime | None = None
    links: RunLinks = Field(default_factory=RunLinks, alias="_links")


class Model(_Contract):
    version: str
    last_modified_date_time: datetime | None = None


class Result(_Contract):
    name: str


class RunCreate(_Contract):
    """Body of the create-run request."""

    dataset_id: str
    change_set_id: str
    model_version: str


# =============================================================================
# Response envelopes
# =============================================================================


class ModelsResponse(_Contract):
    models: list[Model] = Field(default_factory=list)


class RunsResponse(_Contract):
    runs: list[Run] = Field(default_factory=list)


class RunResponse(_Contract):
    run: Run


class StatusResponse(_Contract):
    status: RunStatus


class ResultsResponse(_Contract):
    results: list[Result] = Field(default_factory=list)
