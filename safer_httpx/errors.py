"""Exception hierarchy for validation and rule configuration failures.

Transport failures (``httpx.HTTPError`` and friends) are never wrapped; they
reach the caller exactly as httpx raised them.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from safer_httpx.models import ValidationOutcome


class SaferHttpxError(Exception):
    """Base class for every error raised by this package."""


class UnsupportedBodyType(SaferHttpxError, TypeError):
    """Request body is neither a JSON string nor an already structured value."""

    def __init__(self, message: str = "Unsupported body type. Validation only supports JSON encoded 'body'."):
        super().__init__(message)


class InvalidResponseBody(SaferHttpxError, TypeError):
    """A predicate-style response validator returned None or False."""


class ValidationFailure(SaferHttpxError):
    """A validator rejected a payload and errors are not being ignored.

    Attributes:
        outcome: The ValidationOutcome that was sent to the callback
        error: The underlying error (validator exception, parse error, ...)
    """

    def __init__(self, outcome: "ValidationOutcome"):
        self.outcome = outcome
        self.error = outcome.error
        super().__init__(f"{outcome.mode} validation failed for {outcome.url}: {outcome.error}")


class RequestValidationError(ValidationFailure):
    """Request body failed validation; the request was never sent."""


class ResponseValidationError(ValidationFailure):
    """Response body failed validation."""


class RuleConfigurationError(SaferHttpxError, ValueError):
    """The validator argument has a shape that cannot be turned into rules."""


class RouteSyntaxError(SaferHttpxError, ValueError):
    """A route key holds a malformed path template."""

    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"Invalid route '{key}': {reason}")
