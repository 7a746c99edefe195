"""Retry external commands with failure classification and exponential backoff.

The Azure CLI exits with status 1 for nearly every error, so whether a failure
is worth retrying is decided from the captured text, not the exit status.
"""

from __future__ import annotations

import logging
import re
import sys
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TextIO

from azure_ops.errors import PermanentExternalError, TransientExternalError, ValidationError
from azure_ops.execution.az_cli import CommandResult, CommandRunner, run_command
from azure_ops.utils.console import FAILURE, WARNING, emit

_logger = logging.getLogger(__name__)

DEFAULT_BASE_DELAY_SECONDS = 2


class FailureClass(Enum):
    PERMANENT = "Permanent failure"
    SCOPE_LOCKED = "Scope locked"
    RATE_LIMITED = "Rate limit (429)"
    SERVICE_UNAVAILABLE = "Service unavailable (503)"
    GATEWAY_TIMEOUT = "Gateway timeout (504)"
    INTERNAL_ERROR = "Internal server error (500)"
    CONFLICT = "Conflict (409)"
    UNKNOWN = "Unknown error"

    @property
    def label(self) -> str:
        return self.value

    @property
    def terminal(self) -> bool:
        return self in (FailureClass.PERMANENT, FailureClass.SCOPE_LOCKED)


@dataclass(frozen=True)
class ClassificationRule:
    pattern: re.Pattern[str]
    failure: FailureClass

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


# Evaluated in order, first match wins.
CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        re.compile(
            r"AuthorizationFailed|InvalidAuthenticationToken|Forbidden|InvalidResourceGroupName"
        ),
        FailureClass.PERMANENT,
    ),
    ClassificationRule(re.compile(r"ScopeLocked"), FailureClass.SCOPE_LOCKED),
    ClassificationRule(re.compile(r"TooManyRequests|429"), FailureClass.RATE_LIMITED),
    ClassificationRule(re.compile(r"ServiceUnavailable|503"), FailureClass.SERVICE_UNAVAILABLE),
    ClassificationRule(re.compile(r"GatewayTimeout|504"), FailureClass.GATEWAY_TIMEOUT),
    ClassificationRule(re.compile(r"InternalServerError|500"), FailureClass.INTERNAL_ERROR),
    ClassificationRule(re.compile(r"Conflict|409"), FailureClass.CONFLICT),
)


def classify_failure(
    text: str,
    rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES,
) -> FailureClass:
    for rule in rules:
        if rule.matches(text):
            return rule.failure
    return FailureClass.UNKNOWN


@dataclass
class RetryAttempt:
    number: int
    delay_before: int
    output: str
    exit_status: int
    failure: FailureClass | None = None


@dataclass
class RetryResult:
    description: str
    succeeded: bool
    output: str
    exit_status: int
    attempts: int
    failure: FailureClass | None = None
    history: list[RetryAttempt] = field(default_factory=list)

    def raise_for_failure(self) -> None:
        if self.succeeded:
            return
        if self.failure is not None and self.failure.terminal:
            raise PermanentExternalError(
                f"{self.failure.label}: {self.description}",
                exit_status=self.exit_status,
                output=self.output,
                failure=self.failure,
            )
        raise TransientExternalError(
            f"Failed after {self.attempts} attempts: {self.description}",
            exit_status=self.exit_status,
            output=self.output,
            failure=self.failure,
        )


def retry_operation(
    max_attempts: int,
    description: str,
    command: Sequence[str],
    base_delay_seconds: int = DEFAULT_BASE_DELAY_SECONDS,
    *,
    runner: CommandRunner = run_command,
    sleep: Callable[[float], None] = time.sleep,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> RetryResult:
    """Run ``command`` until it succeeds, fails permanently or runs out of attempts.

    The command's output is written to ``out`` only on success. Progress and
    failure diagnostics go to ``err`` so callers can capture ``out`` as the
    command's real payload. The delay doubles after every retryable failure,
    without jitter or cap; ``max_attempts`` is the only bound on total time.
    """
    if max_attempts < 1:
        raise ValidationError(f"max-attempts must be a positive integer, got {max_attempts}")
    if not command:
        raise ValidationError("command is required")
    if base_delay_seconds < 1:
        raise ValidationError(
            f"base-delay-seconds must be a positive integer, got {base_delay_seconds}"
        )

    out = out if out is not None else sys.stdout
    err = err if err is not None else sys.stderr

    history: list[RetryAttempt] = []
    delay = base_delay_seconds
    delay_before = 0
    attempt = 1
    result = CommandResult(output="", exit_status=1)

    while attempt <= max_attempts:
        emit(f"Attempt {attempt}/{max_attempts}: {description}", err)
        result = runner(command)
        record = RetryAttempt(
            number=attempt,
            delay_before=delay_before,
            output=result.output,
            exit_status=result.exit_status,
        )
        history.append(record)

        if result.ok:
            _logger.info("%s succeeded on attempt %d", description, attempt)
            if result.output:
                emit(result.output, out)
            return RetryResult(
                description=description,
                succeeded=True,
                output=result.output,
                exit_status=0,
                attempts=attempt,
                history=history,
            )

        failure = classify_failure(result.output)
        record.failure = failure

        if failure.terminal:
            if failure is FailureClass.SCOPE_LOCKED:
                emit(f"{FAILURE} Resource is locked. Cannot delete while lock is in place.", err)
            else:
                emit(f"{FAILURE} Permanent failure detected: {description}", err)
            emit(result.output, err)
            _logger.warning(
                "%s failed permanently (%s, exit %d)",
                description,
                failure.label,
                result.exit_status,
            )
            return _failed(description, result, attempt, failure, history)

        if attempt == max_attempts:
            emit(f"{FAILURE} Failed after {max_attempts} attempts: {description}", err)
            emit(result.output, err)
            _logger.warning(
                "%s exhausted %d attempts (last: %s)", description, max_attempts, failure.label
            )
            return _failed(description, result, attempt, failure, history)

        emit(f"{WARNING} {failure.label} - Retrying in {delay}s...", err)
        if failure is FailureClass.UNKNOWN:
            emit("Error details:", err)
            emit(result.output, err)
        sleep(delay)

        delay_before = delay
        delay *= 2
        attempt += 1

    # Unreachable while max_attempts >= 1.
    return _failed(description, result, max_attempts, None, history)


def _failed(
    description: str,
    result: CommandResult,
    attempts: int,
    failure: FailureClass | None,
    history: list[RetryAttempt],
) -> RetryResult:
    return RetryResult(
        description=description,
        succeeded=False,
        output=result.output,
        exit_status=result.exit_status,
        attempts=attempts,
        failure=failure,
        history=history,
    )
