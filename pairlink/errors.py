"""Errors raised while linking an account."""

from __future__ import annotations


class LinkError(Exception):
    """Base class for linking failures."""

    user_message = "Linking failed. Please try again."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)

    @property
    def reason(self) -> str:
        """Human-readable reason, suitable for showing to the user."""
        return str(self) or self.user_message


class NetworkError(LinkError):
    """Transport-level failure talking to the link service. Retryable."""

    user_message = "Could not reach the link service. Check your connection."


class ServiceError(LinkError):
    """
    The link service rejected a request.

    Terminal unless `transient` is set (rate limiting, server errors).
    `denied` marks an explicit refusal of the pairing.
    """

    user_message = "The link service rejected the request."

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        denied: bool = False,
        transient: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.denied = denied
        self.transient = transient


class ExpiredError(LinkError):
    """The pairing code expired before it was authorized."""

    user_message = "The pairing code has expired. Please try again."


class CancelledError(LinkError):
    """Linking was cancelled by the user."""

    user_message = "Linking was cancelled."


def is_transient(exc: BaseException) -> bool:
    """Whether a failure should be retried by the poll loop."""
    if isinstance(exc, NetworkError):
        return True
    return isinstance(exc, ServiceError) and exc.transient and not exc.denied
