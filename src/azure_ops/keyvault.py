"""Key Vault secret management and URL reachability checks."""

from __future__ import annotations

import logging
from typing import TextIO

import httpx

from azure_ops.errors import ExternalCommandError, ValidationError, require
from azure_ops.execution.az_cli import CommandRunner, run_az_text, run_command
from azure_ops.utils.console import FAILURE, SUCCESS, emit
from azure_ops.utils.http import is_reachable_status, probe_status, validate_probe_url

_logger = logging.getLogger(__name__)


def mask_secret(value: str) -> str:
    """Show only the length of a secret."""
    return f"<{len(value)} characters>"


class KeyVaultSecrets:
    def __init__(
        self,
        *,
        cli_path: str = "az",
        runner: CommandRunner = run_command,
        err: TextIO | None = None,
    ) -> None:
        self._cli_path = cli_path
        self._runner = runner
        self._err = err

    def set_secret(self, vault_name: str, secret_name: str, secret_value: str) -> bool:
        require(vault_name=vault_name, secret_name=secret_name, secret_value=secret_value)
        result = self._runner(
            [
                self._cli_path,
                "keyvault",
                "secret",
                "set",
                "--vault-name",
                vault_name,
                "--name",
                secret_name,
                "--value",
                secret_value,
                "--output",
                "none",
            ]
        )
        if not result.ok:
            emit(result.output, self._err)
            _logger.warning(
                "Setting secret %s in %s failed (exit %d)",
                secret_name,
                vault_name,
                result.exit_status,
            )
        return result.ok

    def get_secret(self, vault_name: str, secret_name: str) -> str:
        """Return the secret value.

        Raises ``ExternalCommandError`` carrying the CLI output on failure.
        """
        require(vault_name=vault_name, secret_name=secret_name)
        result = run_az_text(
            [
                "keyvault",
                "secret",
                "show",
                "--vault-name",
                vault_name,
                "--name",
                secret_name,
                "--query",
                "value",
            ],
            cli_path=self._cli_path,
            runner=self._runner,
            merge_stderr=False,
        )
        if not result.ok:
            raise ExternalCommandError(
                f"Failed to read secret {secret_name} from {vault_name}",
                exit_status=result.exit_status,
                output=result.output,
            )
        return result.output.strip()

    def verify_secret(self, vault_name: str, secret_name: str, expected_value: str) -> bool:
        require(vault_name=vault_name, secret_name=secret_name, expected_value=expected_value)
        try:
            actual_value = self.get_secret(vault_name, secret_name)
        except ExternalCommandError as exc:
            emit(f"Error: Failed to retrieve secret: {exc}", self._err)
            return False

        if actual_value == expected_value:
            return True
        emit("Error: Secret value mismatch", self._err)
        emit(f"Expected: {mask_secret(expected_value)}", self._err)
        emit(f"Actual: {mask_secret(actual_value)}", self._err)
        return False

    def update_and_verify_secret(
        self, vault_name: str, secret_name: str, secret_value: str
    ) -> bool:
        require(vault_name=vault_name, secret_name=secret_name, secret_value=secret_value)

        emit(f"Updating Key Vault secret: {secret_name}", self._err)
        emit(f"Key Vault: {vault_name}", self._err)

        if not self.set_secret(vault_name, secret_name, secret_value):
            emit("Error: Failed to set secret in Key Vault", self._err)
            return False
        emit(f"{SUCCESS} Secret updated successfully", self._err)

        emit("Verifying secret value...", self._err)
        if not self.verify_secret(vault_name, secret_name, secret_value):
            emit(f"{FAILURE} Secret verification failed", self._err)
            return False

        emit(f"{SUCCESS} Secret verified successfully", self._err)
        return True


def check_url_accessible(
    url: str,
    *,
    timeout_seconds: float = 10.0,
    max_redirects: int = 10,
    client: httpx.Client | None = None,
    err: TextIO | None = None,
) -> bool:
    """Return ``True`` when ``url`` answers 2xx/3xx after following redirects."""
    require(url=url)
    try:
        url = validate_probe_url(url)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    status = probe_status(
        url,
        timeout_seconds=timeout_seconds,
        max_redirects=max_redirects,
        client=client,
    )
    if is_reachable_status(status):
        return True
    shown = status if status is not None else "000"
    emit(f"Error: URL not accessible (HTTP {shown}): {url}", err)
    return False
