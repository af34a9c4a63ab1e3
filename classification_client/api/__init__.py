"""Classification service contracts and REST client."""

from classification_client.api.client import ClassificationClient, ErrorPolicy
from classification_client.api.contracts import (
    Model,
    Result,
    Run,
    RunCreate,
    RunLinks,
    RunMetadata,
    RunStatus,
)
from classification_client.api.results import ApiError, ApiResult

__all__ = [
    "ApiError",
    "ApiResult",
    "ClassificationClient",
    "ErrorPolicy",
    "Model",
    "Result",
    "Run",
    "RunCreate",
    "RunLinks",
    "RunMetadata",
    "RunStatus",
]
