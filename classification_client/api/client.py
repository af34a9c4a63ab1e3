"""
Classification REST Client.

Async facade over the classification service. One method per remote
operation; each builds the URL from the configured base, attaches a
fresh bearer token and the versioned Accept header, issues exactly one
request, and maps the response to an ApiResult.

Status handling is selected once per client through ErrorPolicy:
    VALIDATE      - statuses outside [200, 300) become error results
    PASS_THROUGH  - the body is parsed whatever the status

Usage:
    async with ClassificationClient(tokens, base_url="https://host/api") as client:
        models = (await client.get_models()).unwrap()
        run = (await client.create_run(RunCreate(...))).unwrap()
"""

from collections.abc import Callable
from enum import Enum
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from classification_client.api.contracts import (
    Model,
    ModelsResponse,
    Result,
    ResultsResponse,
    Run,
    RunCreate,
    RunResponse,
    RunsResponse,
    RunStatus,
    StatusResponse,
)
from classification_client.api.results import ApiResult
from classification_client.auth.tokens import TokenProvider
from classification_client.core.exceptions import ConfigurationError
from classification_client.core.logging import get_logger, log_with_source

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_ACCEPT = "application/vnd.bentley.itwin-platform.v1+json"


class ErrorPolicy(str, Enum):
    """How non-success HTTP statuses are treated."""

    VALIDATE = "validate"
    PASS_THROUGH = "pass_through"


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def _segment(value: str) -> str:
    """Percent-encode a single path segment."""
    return quote(value, safe="")


def _describe_validation_error(error: ValidationError) -> str:
    """Condense a pydantic error into "<field>: <message>" parts."""
    return "; ".join(
        f"{'.'.join(str(part) for part in detail['loc']) or 'body'}: {detail['msg']}"
        for detail in error.errors()
    )


class ClassificationClient:
    """
    HTTP client for the classification service.

    Features:
    - Explicit base URL, no process-wide state
    - Fresh token from the token provider before every call
    - One configurable status policy for every operation
    - Structured logging of requests/responses
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: str | None = None,
        *,
        accept: str = DEFAULT_ACCEPT,
        error_policy: ErrorPolicy = ErrorPolicy.VALIDATE,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            token_provider: Source of bearer tokens
            base_url: Service base URL. If None, call initialize() before use.
            accept: Versioned media type sent in the Accept header
            error_policy: Status handling for every operation
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.token_provider = token_provider
        self.base_url: str | None = None
        self.accept = accept
        self.error_policy = ErrorPolicy(error_policy)
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        if base_url is not None:
            self.initialize(base_url)

    def initialize(self, base_url: str) -> None:
        """Configure the service base URL."""
        self.base_url = base_url.rstrip("/")

    def _require_base_url(self) -> str:
        if not self.base_url:
            raise ConfigurationError(
                "Call initialize() before using ClassificationClient"
            )
        return self.base_url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "ClassificationClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """
        Issue one authorized request.

        Raises:
            ConfigurationError: If no base URL is configured
            httpx.HTTPError: On transport failure
        """
        base_url = self._require_base_url()
        token = await self.token_provider.get_access_token()

        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": self.accept,
        }
        if json is not None:
            headers["Content-Type"] = "application/json"

        client = self._get_client()
        log_with_source(logger, "api", "debug", "API request", method=method, path=path)

        try:
            response = await client.request(
                method,
                f"{base_url}{path}",
                headers=headers,
                params=params,
                json=json,
            )
        except httpx.HTTPError as e:
            log_with_source(
                logger,
                "api",
                "error",
                "API request failed",
                method=method,
                path=path,
                error=str(e),
            )
            raise

        log_with_source(
            logger,
            "api",
            "debug",
            "API response",
            method=method,
            path=path,
            status_code=response.status_code,
        )
        return response

    def _to_result(
        self,
        response: httpx.Response,
        parse: Callable[[httpx.Response], T],
    ) -> ApiResult[T]:
        status_code = response.status_code
        if self.error_policy is ErrorPolicy.VALIDATE and not _is_success(status_code):
            return ApiResult.failure(status_code, response.text)

        try:
            return ApiResult.success(parse(response), status_code)
        except ValidationError as e:
            reason = _describe_validation_error(e)
        except ValueError as e:
            reason = str(e)

        log_with_source(
            logger,
            "api",
            "warning",
            "Unreadable response body",
            url=str(response.request.url),
            status_code=status_code,
            error=reason,
        )
        # Error statuses still surface as ApiResponseError
        if not _is_success(status_code):
            return ApiResult.failure(status_code, response.text)
        return ApiResult.failure(status_code, response.text, reason)

    async def get_models(self) -> ApiResult[list[Model]]:
        """List the classification models runs can use."""
        response = await self._request("GET", "/models")
        return self._to_result(
            response, lambda r: ModelsResponse.model_validate(r.json()).models
        )

    async def get_runs(self, project_id: str) -> ApiResult[list[Run]]:
        """List runs in a project."""
        response = await self._request("GET", "/runs", params={"projectId": project_id})
        return self._to_result(
            response, lambda r: RunsResponse.model_validate(r.json()).runs
        )

    async def get_run(self, run_id: str) -> ApiResult[Run]:
        response = await self._request("GET", f"/runs/{_segment(run_id)}")
        return self._to_result(
            response, lambda r: RunResponse.model_validate(r.json()).run
        )

    async def get_run_status(self, run_id: str) -> ApiResult[RunStatus]:
        """Fetch only the status of a run."""
        response = await self._request("GET", f"/runs/{_segment(run_id)}/status")
        return self._to_result(
            response, lambda r: StatusResponse.model_validate(r.json()).status
        )

    async def get_run_results(self, run_id: str) -> ApiResult[list[Result]]:
        """List result artifacts of a finished run."""
        response = await self._request("GET", f"/runs/{_segment(run_id)}/results")
        return self._to_result(
            response, lambda r: ResultsResponse.model_validate(r.json()).results
        )

    async def download_run_result(self, run_id: str, result_name: str) -> ApiResult[str | None]:
        """Download a result artifact as text. Resolves to None for an empty body."""
        response = await self._request(
            "GET", f"/runs/{_segment(run_id)}/results/{_segment(result_name)}"
        )
        return self._to_result(response, lambda r: r.text or None)

    async def create_run(self, run_config: RunCreate) -> ApiResult[Run]:
        response = await self._request(
            "POST", "/runs/", json=run_config.model_dump(by_alias=True)
        )
        return self._to_result(
            response, lambda r: RunResponse.model_validate(r.json()).run
        )

    async def cancel_run(self, run_id: str) -> ApiResult[Run]:
        response = await self._request("POST", f"/runs/{_segment(run_id)}/cancel")
        return self._to_result(
            response, lambda r: RunResponse.model_validate(r.json()).run
        )

    async def delete_run(self, run_id: str) -> ApiResult[None]:
        response = await self._request("DELETE", f"/runs/{_segment(run_id)}")
        return self._to_result(response, lambda r: None)
