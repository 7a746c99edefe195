"""Azure Policy queries and compliance aggregation.

Every fetch is best-effort: a failed or unparsable query becomes an empty
result so a policy report can always be produced.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from azure_ops.errors import DegradedReadError, require
from azure_ops.execution.az_cli import CommandRunner, run_az_json, run_az_text, run_command
from azure_ops.policy.models import (
    ComplianceState,
    NonCompliantResource,
    PolicyAssignment,
    PolicyComplianceRecord,
    PolicyExemption,
    last_path_segment,
)

_logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

_ASSIGNMENT_QUERY = (
    "[].{name:name, displayName:displayName, enforcementMode:enforcementMode, "
    "policyDefinitionId:policyDefinitionId}"
)
_EXEMPTION_QUERY = (
    "[].{name:name, displayName:displayName, policyAssignmentId:policyAssignmentId, "
    "exemptionCategory:exemptionCategory, expiresOn:expiresOn, description:description}"
)


def reduce_compliance_state(states: Iterable[str | None]) -> str:
    """Reduce per-resource states to one worst-case state.

    Any NonCompliant wins over any Compliant, which wins over Unknown.
    """
    seen = set(states)
    if ComplianceState.NON_COMPLIANT in seen:
        return ComplianceState.NON_COMPLIANT
    if ComplianceState.COMPLIANT in seen:
        return ComplianceState.COMPLIANT
    return ComplianceState.UNKNOWN


def attach_compliance(
    assignments: Sequence[PolicyAssignment],
    records: Sequence[PolicyComplianceRecord],
) -> list[PolicyAssignment]:
    states_by_assignment: dict[str, list[str | None]] = {}
    for record in records:
        states_by_assignment.setdefault(record.policy_assignment_name, []).append(
            record.compliance_state
        )
    return [
        assignment.model_copy(
            update={
                "compliance_state": reduce_compliance_state(
                    states_by_assignment.get(assignment.name, [])
                )
            }
        )
        for assignment in assignments
    ]


def select_noncompliant_resources(
    records: Iterable[PolicyComplianceRecord],
    assignment_name: str,
) -> list[NonCompliantResource]:
    return [
        NonCompliantResource.from_record(record)
        for record in records
        if record.policy_assignment_name == assignment_name
        and record.compliance_state == ComplianceState.NON_COMPLIANT
    ]


def parse_records(payload: object, model: type[RecordT]) -> list[RecordT]:
    """Validate a decoded JSON array into ``model`` instances.

    Anything that is not a list yields ``[]``; items that fail validation
    are skipped one by one.
    """
    if not isinstance(payload, list):
        if payload is not None:
            _logger.warning(
                "Expected a JSON array for %s, got %s", model.__name__, type(payload).__name__
            )
        return []
    records: list[RecordT] = []
    for item in payload:
        try:
            records.append(model.model_validate(item))
        except PydanticValidationError as exc:
            _logger.warning("Skipping malformed %s record: %s", model.__name__, exc)
    return records


class PolicyQueryClient:
    """Reads policy assignments, compliance states and exemptions through the Azure CLI."""

    def __init__(self, cli_path: str = "az", runner: CommandRunner = run_command) -> None:
        self._cli_path = cli_path
        self._runner = runner

    def _query(self, args: list[str], model: type[RecordT]) -> list[RecordT]:
        try:
            payload = run_az_json(args, cli_path=self._cli_path, runner=self._runner)
        except DegradedReadError as exc:
            _logger.warning("Policy query degraded to empty result: %s", exc)
            return []
        return parse_records(payload, model)

    def list_assignments(self, resource_group: str) -> list[PolicyAssignment]:
        require(resource_group=resource_group)
        return self._query(
            [
                "policy",
                "assignment",
                "list",
                "--resource-group",
                resource_group,
                "--query",
                _ASSIGNMENT_QUERY,
            ],
            PolicyAssignment,
        )

    def list_compliance_records(self, resource_group: str) -> list[PolicyComplianceRecord]:
        require(resource_group=resource_group)
        return self._query(
            ["policy", "state", "list", "--resource-group", resource_group],
            PolicyComplianceRecord,
        )

    def get_assignments_with_compliance(self, resource_group: str) -> list[PolicyAssignment]:
        assignments = self.list_assignments(resource_group)
        if not assignments:
            return []
        records = self.list_compliance_records(resource_group)
        return attach_compliance(assignments, records)

    def get_exemptions(self, resource_group: str) -> list[PolicyExemption]:
        require(resource_group=resource_group)
        return self._query(
            [
                "policy",
                "exemption",
                "list",
                "--resource-group",
                resource_group,
                "--query",
                _EXEMPTION_QUERY,
            ],
            PolicyExemption,
        )

    def get_noncompliant_resources(
        self, resource_group: str, assignment_name: str
    ) -> list[NonCompliantResource]:
        require(resource_group=resource_group, assignment_name=assignment_name)
        return select_noncompliant_resources(
            self.list_compliance_records(resource_group), assignment_name
        )

    def get_policy_description(self, policy_definition_id: str | None) -> str:
        if not policy_definition_id:
            return ""
        result = run_az_text(
            [
                "policy",
                "definition",
                "show",
                "--name",
                last_path_segment(policy_definition_id),
                "--query",
                "description",
            ],
            cli_path=self._cli_path,
            runner=self._runner,
            merge_stderr=False,
        )
        if not result.ok:
            _logger.info(
                "No description for policy definition %s (exit %d)",
                policy_definition_id,
                result.exit_status,
            )
            return ""
        return result.output.strip()
