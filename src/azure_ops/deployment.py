"""Post-deployment verification of a Function App and its dependencies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TextIO

import httpx

from azure_ops.errors import require
from azure_ops.execution.az_cli import CommandResult, CommandRunner, run_az_text, run_command
from azure_ops.utils.console import FAILURE, SUCCESS, WARNING, emit
from azure_ops.utils.http import is_reachable_status, probe_status

_logger = logging.getLogger(__name__)

HEALTH_CHECK_PATH = "/api/HealthCheck"


@dataclass(frozen=True)
class DeploymentTarget:
    function_app_name: str
    storage_account_name: str
    app_insights_name: str
    resource_group: str
    function_url: str

    def validate(self) -> None:
        require(
            function_app_name=self.function_app_name,
            storage_account_name=self.storage_account_name,
            app_insights_name=self.app_insights_name,
            resource_group=self.resource_group,
            function_url=self.function_url,
        )


class DeploymentVerifier:
    def __init__(
        self,
        *,
        cli_path: str = "az",
        runner: CommandRunner = run_command,
        health_timeout_seconds: float = 30.0,
        max_redirects: int = 10,
        http_client: httpx.Client | None = None,
        err: TextIO | None = None,
    ) -> None:
        self._cli_path = cli_path
        self._runner = runner
        self._health_timeout_seconds = health_timeout_seconds
        self._max_redirects = max_redirects
        self._http_client = http_client
        self._err = err

    def _az(self, args: list[str], *, merge_stderr: bool = True) -> CommandResult:
        return run_az_text(
            args, cli_path=self._cli_path, runner=self._runner, merge_stderr=merge_stderr
        )

    def check_function_app_running(self, function_app_name: str, resource_group: str) -> bool:
        require(function_app_name=function_app_name, resource_group=resource_group)
        result = self._az(
            [
                "functionapp",
                "show",
                "--name",
                function_app_name,
                "--resource-group",
                resource_group,
                "--query",
                "state",
            ]
        )
        if not result.ok:
            emit(f"Error: Failed to get Function App state: {result.output}", self._err)
            return False

        state = result.output.strip()
        if state == "Running":
            emit(f"{SUCCESS} Function App is running", self._err)
            return True
        emit(f"{FAILURE} Function App state: {state}", self._err)
        return False

    def check_function_app_health(self, function_app_url: str) -> bool:
        """Probe the HealthCheck endpoint.

        Always returns ``True`` once the URL is given: the endpoint may sit
        behind authentication, so a non-2xx/3xx answer is only a warning.
        """
        require(function_app_url=function_app_url)
        health_url = f"{function_app_url.rstrip('/')}{HEALTH_CHECK_PATH}"
        emit(f"Testing health endpoint: {health_url}", self._err)

        status = probe_status(
            health_url,
            timeout_seconds=self._health_timeout_seconds,
            max_redirects=self._max_redirects,
            client=self._http_client,
        )
        if is_reachable_status(status):
            emit(f"{SUCCESS} Health check passed (HTTP {status})", self._err)
        else:
            shown = status if status is not None else "000"
            emit(
                f"{WARNING} Health check returned HTTP {shown} (may need authentication)",
                self._err,
            )
        return True

    def verify_storage_account(self, storage_account_name: str, resource_group: str) -> bool:
        require(storage_account_name=storage_account_name, resource_group=resource_group)
        key_result = self._az(
            [
                "storage",
                "account",
                "keys",
                "list",
                "--account-name",
                storage_account_name,
                "--resource-group",
                resource_group,
                "--query",
                "[0].value",
            ],
            merge_stderr=False,
        )
        if not key_result.ok:
            emit(f"Error: Failed to get storage account key: {key_result.output}", self._err)
            return False

        list_result = self._runner(
            [
                self._cli_path,
                "storage",
                "container",
                "list",
                "--account-name",
                storage_account_name,
                "--account-key",
                key_result.output.strip(),
                "--output",
                "none",
            ]
        )
        if list_result.ok:
            emit(f"{SUCCESS} Storage account accessible", self._err)
            return True
        _logger.info("Container listing failed for %s", storage_account_name)
        emit(f"{FAILURE} Storage account not accessible", self._err)
        return False

    def verify_app_insights(self, app_insights_name: str, resource_group: str) -> bool:
        require(app_insights_name=app_insights_name, resource_group=resource_group)
        result = self._az(
            [
                "monitor",
                "app-insights",
                "component",
                "show",
                "--app",
                app_insights_name,
                "--resource-group",
                resource_group,
                "--query",
                "connectionString",
            ]
        )
        if not result.ok:
            emit(
                f"Error: Failed to get Application Insights connection string: {result.output}",
                self._err,
            )
            return False

        connection_string = result.output.strip()
        if connection_string and connection_string != "null":
            emit(f"{SUCCESS} Application Insights configured", self._err)
            return True
        emit(f"{FAILURE} Application Insights not properly configured", self._err)
        return False

    def verify_deployment(self, target: DeploymentTarget) -> bool:
        """Run every check in order; the health probe never fails the run."""
        target.validate()

        emit("🔍 Running post-deployment verification...", self._err)
        emit("", self._err)

        all_checks_passed = True

        emit("1. Checking Function App state...", self._err)
        if not self.check_function_app_running(target.function_app_name, target.resource_group):
            all_checks_passed = False
        emit("", self._err)

        emit("2. Verifying storage account connectivity...", self._err)
        if not self.verify_storage_account(target.storage_account_name, target.resource_group):
            all_checks_passed = False
        emit("", self._err)

        emit("3. Verifying Application Insights connection...", self._err)
        if not self.verify_app_insights(target.app_insights_name, target.resource_group):
            all_checks_passed = False
        emit("", self._err)

        emit("4. Testing Function App health endpoint...", self._err)
        self.check_function_app_health(target.function_url)
        emit("", self._err)

        if all_checks_passed:
            emit(f"{SUCCESS} All deployment verification checks passed!", self._err)
        else:
            emit(f"{FAILURE} Some deployment verification checks failed", self._err)
        return all_checks_passed
