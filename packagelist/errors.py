"""Validation error taxonomy.

Every error carries the URL it concerns so a failure can be reported without
extra bookkeeping. ``reason`` is the human-readable part used in reports.
"""

from __future__ import annotations


class ValidatorError(Exception):
    """Base exception for all package validation errors."""

    reason: str = "Validation failed"

    def __init__(self, url: str | None = None, reason: str | None = None) -> None:
        self.url = url
        if reason is not None:
            self.reason = reason
        super().__init__(self.reason if url is None else f"{url}: {self.reason}")


class RetryableError(ValidatorError):
    """Marker base for errors the concurrency controller may retry."""


class ConfigurationError(ValidatorError):
    """Raised for a setting that is missing a usable value; *url* names the setting."""

    reason = "Invalid setting"


class InvalidURLError(ValidatorError):
    reason = "Invalid URL"


class URLSyntaxError(ValidatorError):
    """Raised for command-line input that is not a usable URL."""

    reason = "Not a valid URL"


class RequestTimeoutError(RetryableError):
    reason = "Request Timed Out"


class NoDataError(ValidatorError):
    reason = "No Data Received"


class NetworkError(ValidatorError):
    reason = "Network Error"


class DecodingError(ValidatorError):
    reason = "Could not decode response"


class UnknownHostError(ValidatorError):
    """Raised when a URL points to a host other than the supported one."""

    def __init__(self, url: str | None = None, host: str | None = None) -> None:
        self.host = host
        super().__init__(url, f"Unknown URL host: {host or 'nil'}")


class FileSystemError(ValidatorError):
    reason = "File system error"


class BadManifestDumpError(ValidatorError):
    """Raised when the dump tool exits non-zero."""

    def __init__(self, url: str | None = None, output: str | None = None) -> None:
        self.output = output
        super().__init__(url, f"Bad Package Dump -- {output.strip() if output else 'No Output'}")


class MissingProductsError(ValidatorError):
    reason = "Missing Products"


class RateLimitExceededError(RetryableError):
    """Raised when the host reports its rate limit as exhausted."""

    def __init__(
        self,
        url: str | None = None,
        limit: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.limit = limit
        self.retry_after = retry_after
        label = limit if limit is not None else "unknown"
        super().__init__(url, f"Rate Limit of {label} Exceeded")


class NotFoundError(ValidatorError):
    reason = "Package Does Not Exist"


class DumpTimeoutError(ValidatorError):
    reason = "Dump Timed Out"


class IsForkError(ValidatorError):
    reason = "Repository is a fork"


class OutdatedToolchainError(ValidatorError):
    reason = "Package uses an unsupported legacy tools version"


class RetryExhaustedError(ValidatorError):
    """Raised when a retryable error persisted past the retry ceiling."""

    def __init__(self, url: str | None, last_error: ValidatorError, attempts: int) -> None:
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(url, f"Unresolved after {attempts} attempts ({last_error.reason})")
