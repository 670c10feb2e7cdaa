"""Exception types and helpers for mailsbe."""

from typing import Optional


class MailsbeError(Exception):
    """Base exception for all mailsbe errors."""

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context = context or {}


class ConfigurationError(MailsbeError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(MailsbeError):
    """Raised when user supplied input is rejected."""
    pass


class OwnerRequiredError(MailsbeError):
    """Raised when a dashboard operation arrives without a user identity."""
    pass


class RecordNotFoundError(MailsbeError):
    """Raised when a tracked email does not exist or belongs to someone else."""
    pass


class StoreError(MailsbeError):
    """Raised when the data store rejects or fails an operation."""
    pass


class BackendUnavailableError(StoreError):
    """Raised when the data store cannot be reached in time."""
    pass


class DuplicateTokenError(StoreError):
    """Raised when a tracking token is already taken."""
    pass


def format_exception_chain(exception: BaseException) -> str:
    """
    Format an exception chain for logging or display.

    Args:
        exception: The exception to format

    Returns:
        Formatted exception chain as a string
    """
    lines = []
    current = exception

    while current is not None:
        if isinstance(current, MailsbeError):
            lines.append(f"{type(current).__name__}: {current.message}")
            if current.context:
                lines.append(f"  Context: {current.context}")
            if current.cause is not None:
                lines.append("  Caused by:")
                current = current.cause
                continue
            break
        lines.append(f"{type(current).__name__}: {current}")
        break

    return "\n".join(lines)
