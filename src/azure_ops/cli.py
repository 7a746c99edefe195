"""Command-line entrypoint used by CI workflow steps."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from azure_ops import __version__
from azure_ops.config import Settings, load_settings
from azure_ops.deployment import DeploymentTarget, DeploymentVerifier
from azure_ops.errors import ValidationError
from azure_ops.execution.retry import retry_operation
from azure_ops.keyvault import KeyVaultSecrets, check_url_accessible
from azure_ops.logging_utils import configure_logging
from azure_ops.policy.query import PolicyQueryClient
from azure_ops.policy.report import generate_policy_report
from azure_ops.teardown import ResourceGroupTeardown
from azure_ops.utils.console import FAILURE, emit

_logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CHECK_FAILED = 1
EXIT_VALIDATION = 2

SUMMARY_ENV = "GITHUB_STEP_SUMMARY"


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="azure-ops",
        description="Azure operations utilities for CI workflows.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    retry = subparsers.add_parser(
        "retry", help="Run a command with classified retries and exponential backoff."
    )
    retry.add_argument("--max-attempts", type=int, default=settings.retry.max_attempts)
    retry.add_argument(
        "--base-delay",
        type=int,
        default=settings.retry.base_delay_seconds,
        help="Initial delay in seconds (default: RETRY_BASE_DELAY or 2).",
    )
    retry.add_argument("description", help="Human-readable description of the operation.")
    retry.add_argument("argv", nargs=argparse.REMAINDER, help="Command to run, after '--'.")

    report = subparsers.add_parser(
        "policy-report", help="Render Azure Policy status for a resource group as Markdown."
    )
    report.add_argument("resource_group")
    report.add_argument(
        "--summary-file",
        help=f"Also append the report to this file (default: ${SUMMARY_ENV} when set).",
    )

    verify = subparsers.add_parser("verify-deployment", help="Run post-deployment checks.")
    verify.add_argument("--function-app", required=True)
    verify.add_argument("--storage-account", required=True)
    verify.add_argument("--app-insights", required=True)
    verify.add_argument("--resource-group", required=True)
    verify.add_argument("--function-url", required=True)

    keyvault = subparsers.add_parser(
        "keyvault-update", help="Set a Key Vault secret and read it back."
    )
    keyvault.add_argument("--vault-name", required=True)
    keyvault.add_argument("--secret-name", required=True)
    keyvault.add_argument(
        "--value-env",
        default="SECRET_VALUE",
        help="Environment variable holding the secret value (default: SECRET_VALUE).",
    )

    check_url = subparsers.add_parser("check-url", help="Check that a URL answers 2xx/3xx.")
    check_url.add_argument("url")

    destroy = subparsers.add_parser(
        "destroy", help="Delete every resource group carrying a tag."
    )
    destroy.add_argument("--tag", required=True, help="Tag in key=value form.")
    destroy.add_argument("--max-attempts", type=int, default=settings.retry.max_attempts)
    destroy.add_argument("--base-delay", type=int, default=settings.retry.base_delay_seconds)

    return parser


def _command_argv(raw: Sequence[str]) -> list[str]:
    argv = list(raw)
    if argv and argv[0] == "--":
        argv = argv[1:]
    return argv


def _summary_path(explicit: str | None) -> Path | None:
    value = explicit or os.getenv(SUMMARY_ENV, "").strip()
    return Path(value) if value else None


def _run_retry(args: argparse.Namespace, settings: Settings) -> int:
    result = retry_operation(
        args.max_attempts,
        args.description,
        _command_argv(args.argv),
        args.base_delay,
    )
    return EXIT_OK if result.succeeded else (result.exit_status or EXIT_CHECK_FAILED)


def _run_policy_report(args: argparse.Namespace, settings: Settings) -> int:
    client = PolicyQueryClient(cli_path=settings.azure.cli_path)
    report = generate_policy_report(args.resource_group, client)
    sys.stdout.write(report)
    summary = _summary_path(args.summary_file)
    if summary is not None:
        try:
            with summary.open("a", encoding="utf-8") as handle:
                handle.write(report)
        except OSError as exc:
            _logger.warning("Failed to append policy report to %s: %s", summary, exc)
    return EXIT_OK


def _run_verify(args: argparse.Namespace, settings: Settings) -> int:
    verifier = DeploymentVerifier(
        cli_path=settings.azure.cli_path,
        health_timeout_seconds=settings.probe.health_timeout_seconds,
        max_redirects=settings.probe.max_redirects,
    )
    target = DeploymentTarget(
        function_app_name=args.function_app,
        storage_account_name=args.storage_account,
        app_insights_name=args.app_insights,
        resource_group=args.resource_group,
        function_url=args.function_url,
    )
    return EXIT_OK if verifier.verify_deployment(target) else EXIT_CHECK_FAILED


def _run_keyvault(args: argparse.Namespace, settings: Settings) -> int:
    secret_value = os.getenv(args.value_env, "")
    if not secret_value:
        raise ValidationError(f"environment variable {args.value_env} is empty or unset")
    secrets = KeyVaultSecrets(cli_path=settings.azure.cli_path)
    ok = secrets.update_and_verify_secret(args.vault_name, args.secret_name, secret_value)
    return EXIT_OK if ok else EXIT_CHECK_FAILED


def _run_check_url(args: argparse.Namespace, settings: Settings) -> int:
    ok = check_url_accessible(
        args.url,
        timeout_seconds=settings.probe.url_timeout_seconds,
        max_redirects=settings.probe.max_redirects,
    )
    return EXIT_OK if ok else EXIT_CHECK_FAILED


def _run_destroy(args: argparse.Namespace, settings: Settings) -> int:
    teardown = ResourceGroupTeardown(cli_path=settings.azure.cli_path)
    results = teardown.destroy_tagged_resource_groups(
        args.tag,
        max_attempts=args.max_attempts,
        base_delay_seconds=args.base_delay,
    )
    failed = [name for name, result in results.items() if not result.succeeded]
    if failed:
        emit(f"{FAILURE} Failed to delete: {', '.join(failed)}")
        return EXIT_CHECK_FAILED
    return EXIT_OK


_HANDLERS = {
    "retry": _run_retry,
    "policy-report": _run_policy_report,
    "verify-deployment": _run_verify,
    "keyvault-update": _run_keyvault,
    "check-url": _run_check_url,
    "destroy": _run_destroy,
}


def main(argv: Sequence[str] | None = None) -> int:
    settings = load_settings()
    configure_logging()
    parser = build_parser(settings)
    args = parser.parse_args(argv)
    _logger.debug("azure-ops %s: %s", __version__, args.command)

    try:
        return _HANDLERS[args.command](args, settings)
    except ValidationError as exc:
        emit(f"Error: {exc}")
        return EXIT_VALIDATION


def run_entrypoint() -> None:
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
