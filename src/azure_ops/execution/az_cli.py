"""Azure CLI invocation helpers."""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from azure_ops.errors import DegradedReadError
from azure_ops.utils.masking import redact_command

_logger = logging.getLogger(__name__)

# Exit status a shell reports when the executable cannot be found.
_COMMAND_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    output: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class CommandRunner(Protocol):
    def __call__(
        self, command: Sequence[str], *, merge_stderr: bool = True
    ) -> CommandResult: ...


def run_command(command: Sequence[str], *, merge_stderr: bool = True) -> CommandResult:
    """Run ``command`` to completion and capture its output.

    With ``merge_stderr`` the output is stdout and stderr combined, which is
    what failure classification inspects. Without it stderr is only logged,
    so JSON on stdout is not polluted by CLI warnings.

    A non-zero exit is returned, never raised. There is no timeout: Azure CLI
    calls may block on the underlying transport.
    """
    cmd = list(command)
    _logger.debug("Running command: %r", redact_command(cmd))
    try:
        result = subprocess.run(
            cmd,
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
            text=True,
        )
    except OSError as exc:
        _logger.debug("Command could not be started: %s", exc)
        return CommandResult(output=str(exc), exit_status=_COMMAND_NOT_FOUND)

    if not merge_stderr and result.stderr:
        _logger.debug("Command stderr: %s", result.stderr.strip())

    output = (result.stdout or "").rstrip("\n")
    if result.returncode == 0:
        _logger.debug("Command succeeded (returncode=0)")
    else:
        _logger.debug("Command completed with non-zero exit (returncode=%d)", result.returncode)
    return CommandResult(output=output, exit_status=result.returncode)


def run_az_text(
    args: Sequence[str],
    *,
    cli_path: str = "az",
    runner: CommandRunner = run_command,
    merge_stderr: bool = True,
) -> CommandResult:
    return runner([cli_path, *args, "--output", "tsv"], merge_stderr=merge_stderr)


def run_az_json(
    args: Sequence[str],
    *,
    cli_path: str = "az",
    runner: CommandRunner = run_command,
) -> object:
    """Run an ``az`` query and decode its JSON output.

    Raises ``DegradedReadError`` when the command fails or prints something
    that is not JSON. Empty output decodes to ``None``.
    """
    cmd = [cli_path, *args, "--output", "json"]
    result = runner(cmd, merge_stderr=False)
    subcommand = " ".join(args[:3])
    if not result.ok:
        raise DegradedReadError(f"az {subcommand} failed (exit {result.exit_status})")
    raw = result.output.strip()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DegradedReadError(f"az {subcommand} returned invalid JSON: {exc}") from exc
