"""Unit tests for the exception taxonomy."""

from classification_client.core.exceptions import (
    ApiResponseError,
    ApplicationError,
    AuthenticationError,
    InvalidResponseError,
    ConfigurationError,
    NoModelsAvailableError,
    NotFoundError,
)


class TestApplicationErrors:

    def test_codes(self):
        assert ConfigurationError().code == "CFG_NOT_INITIALIZED"
        assert AuthenticationError().code == "AUTH_UNAUTHORIZED"
        assert NoModelsAvailableError().code == "RUN_NO_MODELS"

    def test_errors_without_numbers(self):
        assert ConfigurationError().error_number is None
        assert ApplicationError("x").error_number is None

    def test_api_response_error_carries_status_and_text(self):
        error = ApiResponseError(409, "Run already exists")
        assert error.status_code == 409
        assert error.text == "Run already exists"
        assert error.error_number == 409
        assert error.message == "Run already exists"
        assert str(error) == "Run already exists"

    def test_not_found_is_api_response_error(self):
        error = NotFoundError(404, "missing")
        assert isinstance(error, ApiResponseError)
        assert isinstance(error, ApplicationError)

    def test_invalid_response_error_has_no_exit_number(self):
        error = InvalidResponseError("status: Input should be 'Finished'", 200, '{"status":"Queued"}')
        assert error.code == "API_INVALID_RESPONSE"
        assert error.error_number is None
        assert error.status_code == 200
        assert error.message == "Unexpected response body (status 200): status: Input should be 'Finished'"
