"""
Custom Exceptions.

Application-specific exception classes for consistent error handling.
Each error carries a string code for logs and an optional numeric
error_number that the CLI surfaces as the process exit status.
"""


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        code: str = "SYS_INTERNAL_ERROR",
        error_number: int | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.error_number = error_number
        super().__init__(self.message)


class ConfigurationError(ApplicationError):
    """Raised when the client is used before it has been configured."""

    def __init__(self, message: str = "Client is not initialized") -> None:
        super().__init__(message, code="CFG_NOT_INITIALIZED")


class AuthenticationError(ApplicationError):
    """Raised when sign-in or token acquisition fails."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, code="AUTH_UNAUTHORIZED")


class ApiResponseError(ApplicationError):
    """Raised when the service answers with a non-success status."""

    def __init__(self, status_code: int, text: str) -> None:
        self.status_code = status_code
        self.text = text
        message = text or f"Request failed with status {status_code}"
        super().__init__(message, code="API_RESPONSE_ERROR", error_number=status_code)


class NotFoundError(ApiResponseError):
    """Raised when the requested run or result does not exist."""


class NoModelsAvailableError(ApplicationError):
    """Raised when the service offers no model to run against."""

    def __init__(self, message: str = "No classification models available") -> None:
        super().__init__(message, code="RUN_NO_MODELS")


class InvalidResponseError(ApplicationError):
    """Raised when a successful response body does not match its contract."""

    def __init__(self, reason: str, status_code: int, text: str) -> None:
        self.reason = reason
        self.status_code = status_code
        self.text = text
        super().__init__(
            f"Unexpected response body (status {status_code}): {reason}",
            code="API_INVALID_RESPONSE",
        )
