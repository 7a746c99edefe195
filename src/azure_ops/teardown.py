"""Destruction of tagged resource groups with classified retries."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TextIO

from azure_ops.errors import DegradedReadError, ValidationError, require
from azure_ops.execution.az_cli import CommandRunner, run_az_json, run_command
from azure_ops.execution.retry import DEFAULT_BASE_DELAY_SECONDS, RetryResult, retry_operation
from azure_ops.utils.console import INFO, emit

_logger = logging.getLogger(__name__)


def parse_tag(tag: str) -> tuple[str, str]:
    """Split ``key=value``. Both parts are required."""
    key, sep, value = tag.partition("=")
    key, value = key.strip(), value.strip()
    if not sep or not key or not value:
        raise ValidationError(f"tag must be in key=value form, got {tag!r}")
    return key, value


class ResourceGroupTeardown:
    def __init__(
        self,
        *,
        cli_path: str = "az",
        runner: CommandRunner = run_command,
        sleep: Callable[[float], None] = time.sleep,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self._cli_path = cli_path
        self._runner = runner
        self._sleep = sleep
        self._out = out
        self._err = err

    def list_resource_groups_by_tag(self, tag_key: str, tag_value: str) -> list[str]:
        """Names of resource groups carrying ``tag_key=tag_value``; ``[]`` on failure."""
        require(tag_key=tag_key, tag_value=tag_value)
        try:
            payload = run_az_json(
                ["group", "list", "--tag", f"{tag_key}={tag_value}", "--query", "[].name"],
                cli_path=self._cli_path,
                runner=self._runner,
            )
        except DegradedReadError as exc:
            _logger.warning("Resource group lookup degraded to empty result: %s", exc)
            return []
        if not isinstance(payload, list):
            return []
        return [name for name in payload if isinstance(name, str) and name]

    def delete_resource_group(
        self,
        name: str,
        *,
        max_attempts: int,
        base_delay_seconds: int = DEFAULT_BASE_DELAY_SECONDS,
    ) -> RetryResult:
        require(resource_group=name)
        return retry_operation(
            max_attempts,
            f"Delete resource group {name}",
            [self._cli_path, "group", "delete", "--name", name, "--yes"],
            base_delay_seconds,
            runner=self._runner,
            sleep=self._sleep,
            out=self._out,
            err=self._err,
        )

    def destroy_tagged_resource_groups(
        self,
        tag: str,
        *,
        max_attempts: int,
        base_delay_seconds: int = DEFAULT_BASE_DELAY_SECONDS,
    ) -> dict[str, RetryResult]:
        """Delete every resource group matching ``tag`` in listing order.

        A failure on one group does not stop the others.
        """
        tag_key, tag_value = parse_tag(tag)
        names = self.list_resource_groups_by_tag(tag_key, tag_value)
        if not names:
            emit(f"{INFO} No resource groups tagged {tag_key}={tag_value}", self._err)
            return {}

        results: dict[str, RetryResult] = {}
        for name in names:
            results[name] = self.delete_resource_group(
                name, max_attempts=max_attempts, base_delay_seconds=base_delay_seconds
            )
        return results
