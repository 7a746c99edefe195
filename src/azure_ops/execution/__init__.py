"""External command execution and retry helpers."""

from .az_cli import CommandResult, run_az_json, run_az_text, run_command
from .retry import FailureClass, RetryResult, classify_failure, retry_operation

__all__ = [
    "CommandResult",
    "FailureClass",
    "RetryResult",
    "classify_failure",
    "retry_operation",
    "run_az_json",
    "run_az_text",
    "run_command",
]
