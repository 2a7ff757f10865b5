"""Tagged delivery errors.

Every failure that leaves the delivery layer is either a DeliveryError
carrying an explicit ErrorKind, or an untagged exception (network errors,
unexpected platform responses) that the retry policy treats as transient.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Retry classification of a delivery failure."""

    PERMANENT = "permanent"
    TRANSIENT = "transient"


class DeliveryError(Exception):
    """A classified failure to deliver a reminder.

    Attributes:
        message: Human readable reason
        kind: PERMANENT (skip retries) or TRANSIENT (retry with backoff)
        status_code: HTTP status from the platform, if any
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.TRANSIENT,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code

    @property
    def is_permanent(self) -> bool:
        return self.kind == ErrorKind.PERMANENT

    def __str__(self) -> str:
        label = "PERMANENT" if self.is_permanent else "TEMPORARY"
        return f"{label}: {self.message}"


class CircuitOpenError(DeliveryError):
    """The circuit breaker for a service is open."""

    def __init__(self, service: str) -> None:
        super().__init__(f"{service} circuit breaker is open", kind=ErrorKind.PERMANENT)
        self.service = service


class MissingIntegrationError(DeliveryError):
    """Integration credentials are missing; an operator must reconfigure."""

    def __init__(self, message: str) -> None:
        super().__init__(message, kind=ErrorKind.PERMANENT)


class InactiveRepositoryError(DeliveryError):
    """The target repository is inactive or gone. Dead-letters immediately."""

    terminal = True

    def __init__(self, repo_id: str) -> None:
        super().__init__("Repository is inactive or deleted", kind=ErrorKind.PERMANENT)
        self.repo_id = repo_id


class RateLimitExhaustedError(DeliveryError):
    """Platform quota is below the safety buffer and resets too late to wait."""

    def __init__(self, platform: str) -> None:
        super().__init__(f"{platform} rate limit exhausted", kind=ErrorKind.TRANSIENT)


def classify_error(error: BaseException) -> ErrorKind:
    """Map any exception onto the two-valued retry taxonomy."""
    if isinstance(error, DeliveryError):
        return error.kind
    return ErrorKind.TRANSIENT


def is_terminal(error: BaseException) -> bool:
    """True when the error dead-letters a reminder regardless of retry count."""
    return bool(getattr(error, "terminal", False))
