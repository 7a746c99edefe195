"""Exception types raised by the toolkit."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from azure_ops.execution.retry import FailureClass


class AzureOpsError(RuntimeError):
    pass


class ValidationError(AzureOpsError, ValueError):
    """A required argument is missing or invalid. Raised before any external call."""


class ExternalCommandError(AzureOpsError):
    def __init__(
        self,
        message: str,
        *,
        exit_status: int,
        output: str = "",
        failure: FailureClass | None = None,
    ) -> None:
        super().__init__(message)
        self.exit_status = exit_status
        self.output = output
        self.failure = failure


class TransientExternalError(ExternalCommandError):
    """Retryable failure that persisted until the attempt budget ran out."""


class PermanentExternalError(ExternalCommandError):
    """Failure that must never be retried (authorization, invalid name, scope lock)."""


class DegradedReadError(AzureOpsError):
    """A read-only query failed. Callers convert this into an empty result."""


def require(**values: object) -> None:
    """Raise ``ValidationError`` naming every empty argument."""
    missing = [name.replace("_", "-") for name, value in values.items() if not value]
    if not missing:
        return
    if len(missing) == 1:
        raise ValidationError(f"{missing[0]} is required")
    raise ValidationError(f"{', '.join(missing[:-1])} and {missing[-1]} are required")
