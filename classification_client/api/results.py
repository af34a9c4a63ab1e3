"""
Call Results.

Every client operation resolves to an ApiResult: either the parsed
payload or the status code and body text of a failed response. Callers
branch on `ok` or call `unwrap()` to turn a failure into an exception.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from classification_client.core.exceptions import (
    ApiResponseError,
    ApplicationError,
    InvalidResponseError,
    NotFoundError,
)

T = TypeVar("T")


@dataclass(frozen=True)
class ApiError:
    """
    Failed response: HTTP status code plus the raw response text.

    reason is set when a successful response carried a body that could
    not be read as the expected contract.
    """

    status_code: int
    text: str
    reason: str | None = None

    def to_exception(self) -> ApplicationError:
        if self.reason is not None:
            return InvalidResponseError(self.reason, self.status_code, self.text)
        if self.status_code == 404:
            return NotFoundError(self.status_code, self.text)
        return ApiResponseError(self.status_code, self.text)


@dataclass(frozen=True)
class ApiResult(Generic[T]):
    value: T | None = None
    error: ApiError | None = None
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """
        Return the payload.

        Raises:
            ApiResponseError: If the service answered with an error status
                (NotFoundError for 404)
            InvalidResponseError: If a successful body did not match its contract
        """
        if self.error is not None:
            raise self.error.to_exception()
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T, status_code: int | None = None) -> "ApiResult[T]":
        return cls(value=value, status_code=status_code)

    @classmethod
    def failure(
        cls,
        status_code: int,
        text: str,
        reason: str | None = None,
    ) -> "ApiResult[T]":
        return cls(error=ApiError(status_code, text, reason), status_code=status_code)
