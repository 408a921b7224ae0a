"""SproutSync — Error Taxonomy.

Transient errors are retried by the retry policy; authentication errors are
fatal for the whole run; everything else fails only the unit it happened in.
"""


class SyncError(Exception):
    """Base class for every error raised by SproutSync."""

    retryable: bool = False


class TransientError(SyncError):
    """A network-level failure worth retrying."""

    retryable = True


class AuthenticationError(SyncError):
    """Credentials are missing, invalid, or lack access. Fatal for the run."""


class RetryExhaustedError(SyncError):
    """Raised by with_retry when every attempt failed with a retryable error."""

    def __init__(self, description: str, attempts: int, last_error: BaseException):
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{description} failed after {attempts} attempts: {last_error}"
        )
