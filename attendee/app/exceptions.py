"""Custom exceptions for the attendee application.

The admission core reports rejections as data; these exceptions exist for
construction-time configuration errors and for the HTTP layer, which turns
a rejected decision into a response.
"""

from typing import Sequence


class AttendeeException(Exception):
    """Base class for application exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Application error"):
        self.message = message
        super().__init__(message)


class ConfigurationError(AttendeeException, ValueError):
    """Raised when a limiter or registry is constructed with invalid settings.

    This signals a programming error, never bad user input.
    """
    status_code = 500

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(message)


class RateLimitExceededError(AttendeeException):
    """Raised when an identity exceeded its quota for an action class.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(
        self,
        action_class: str,
        retry_after: int | None = None,
        detail: str | None = None,
    ):
        self.action_class = action_class
        self.retry_after = retry_after
        message = detail or f"Rate limit exceeded for {action_class}. Please try again later."
        super().__init__(message)


class SubmissionValidationError(AttendeeException):
    """Raised when a submission failed validation.

    Carries every violation found, in order. Maps to HTTP 422.
    """
    status_code = 422

    def __init__(self, errors: Sequence[str], message: str = "Submission failed validation"):
        self.errors = list(errors)
        super().__init__(message)
