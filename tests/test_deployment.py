from __future__ import annotations

import io
from collections.abc import Sequence

import httpx
import pytest

from azure_ops.deployment import DeploymentTarget, DeploymentVerifier
from azure_ops.errors import ValidationError
from azure_ops.execution.az_cli import CommandResult


class _AzFake:
    def __init__(self, responses: dict[str, CommandResult]) -> None:
        self._responses = responses
        self.calls: list[list[str]] = []

    def __call__(self, command: Sequence[str], *, merge_stderr: bool = True) -> CommandResult:
        self.calls.append(list(command))
        for prefix, result in self._responses.items():
            if " ".join(command[1:]).startswith(prefix):
                return result
        return CommandResult(output="ERROR: unexpected command", exit_status=1)


def _http_client(status_code: int) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code)

    return httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)


def _healthy_az() -> _AzFake:
    return _AzFake(
        {
            "functionapp show": CommandResult("Running", 0),
            "storage account keys list": CommandResult("c2VjcmV0a2V5", 0),
            "storage container list": CommandResult("", 0),
            "monitor app-insights component show": CommandResult(
                "InstrumentationKey=abc;IngestionEndpoint=https://example", 0
            ),
        }
    )


def _target() -> DeploymentTarget:
    return DeploymentTarget(
        function_app_name="func-demo",
        storage_account_name="stdemo",
        app_insights_name="appi-demo",
        resource_group="rg-demo",
        function_url="https://func-demo.azurewebsites.net/",
    )


def test_check_function_app_running() -> None:
    err = io.StringIO()
    verifier = DeploymentVerifier(runner=_healthy_az(), err=err)

    assert verifier.check_function_app_running("func-demo", "rg-demo")
    assert "✅ Function App is running" in err.getvalue()


def test_check_function_app_stopped() -> None:
    err = io.StringIO()
    az = _AzFake({"functionapp show": CommandResult("Stopped", 0)})

    assert not DeploymentVerifier(runner=az, err=err).check_function_app_running("f", "rg")
    assert "❌ Function App state: Stopped" in err.getvalue()


def test_check_function_app_cli_error() -> None:
    err = io.StringIO()
    az = _AzFake({"functionapp show": CommandResult("ERROR: ResourceNotFound", 3)})

    assert not DeploymentVerifier(runner=az, err=err).check_function_app_running("f", "rg")
    assert "Failed to get Function App state: ERROR: ResourceNotFound" in err.getvalue()


def test_health_probe_success() -> None:
    err = io.StringIO()
    verifier = DeploymentVerifier(runner=_AzFake({}), http_client=_http_client(200), err=err)

    assert verifier.check_function_app_health("https://func-demo.azurewebsites.net/")
    assert "Testing health endpoint: https://func-demo.azurewebsites.net/api/HealthCheck" in err.getvalue()
    assert "✅ Health check passed (HTTP 200)" in err.getvalue()


@pytest.mark.parametrize("status", [401, 500])
def test_health_probe_never_fails(status: int) -> None:
    err = io.StringIO()
    verifier = DeploymentVerifier(runner=_AzFake({}), http_client=_http_client(status), err=err)

    assert verifier.check_function_app_health("https://func-demo.azurewebsites.net")
    assert f"Health check returned HTTP {status} (may need authentication)" in err.getvalue()


def test_health_probe_transport_error_is_a_warning() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    err = io.StringIO()
    verifier = DeploymentVerifier(runner=_AzFake({}), http_client=client, err=err)

    assert verifier.check_function_app_health("https://func-demo.azurewebsites.net")
    assert "HTTP 000" in err.getvalue()


def test_verify_storage_account_uses_key() -> None:
    az = _healthy_az()
    verifier = DeploymentVerifier(runner=az, err=io.StringIO())

    assert verifier.verify_storage_account("stdemo", "rg-demo")
    container_call = az.calls[1]
    assert container_call[container_call.index("--account-key") + 1] == "c2VjcmV0a2V5"


def test_verify_storage_account_key_failure() -> None:
    az = _AzFake({"storage account keys list": CommandResult("ERROR: AuthorizationFailed", 1)})
    err = io.StringIO()

    assert not DeploymentVerifier(runner=az, err=err).verify_storage_account("st", "rg")
    assert len(az.calls) == 1
    assert "Failed to get storage account key" in err.getvalue()


def test_verify_storage_account_unreachable() -> None:
    az = _AzFake(
        {
            "storage account keys list": CommandResult("key", 0),
            "storage container list": CommandResult("ERROR: network", 1),
        }
    )
    err = io.StringIO()

    assert not DeploymentVerifier(runner=az, err=err).verify_storage_account("st", "rg")
    assert "❌ Storage account not accessible" in err.getvalue()


@pytest.mark.parametrize("value", ["", "null"])
def test_verify_app_insights_missing_connection_string(value: str) -> None:
    az = _AzFake({"monitor app-insights component show": CommandResult(value, 0)})
    err = io.StringIO()

    assert not DeploymentVerifier(runner=az, err=err).verify_app_insights("appi", "rg")
    assert "❌ Application Insights not properly configured" in err.getvalue()


def test_verify_deployment_all_pass_even_when_health_unauthorized() -> None:
    err = io.StringIO()
    verifier = DeploymentVerifier(runner=_healthy_az(), http_client=_http_client(401), err=err)

    assert verifier.verify_deployment(_target())
    output = err.getvalue()
    assert output.index("1. Checking Function App state...") < output.index(
        "4. Testing Function App health endpoint..."
    )
    assert "✅ All deployment verification checks passed!" in output


def test_verify_deployment_reports_failure() -> None:
    az = _healthy_az()
    az._responses["functionapp show"] = CommandResult("Stopped", 0)
    err = io.StringIO()
    verifier = DeploymentVerifier(runner=az, http_client=_http_client(200), err=err)

    assert not verifier.verify_deployment(_target())
    assert "❌ Some deployment verification checks failed" in err.getvalue()


def test_verify_deployment_requires_all_parameters() -> None:
    target = DeploymentTarget("func", "", "appi", "rg", "")
    az = _AzFake({})

    with pytest.raises(ValidationError, match="storage-account-name and function-url are required"):
        DeploymentVerifier(runner=az).verify_deployment(target)
    assert az.calls == []
