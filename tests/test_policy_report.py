from __future__ import annotations

import json
from collections.abc import Sequence
from unittest.mock import MagicMock

from azure_ops.execution.az_cli import CommandResult
from azure_ops.policy.models import NonCompliantResource, PolicyAssignment, PolicyExemption
from azure_ops.policy.query import PolicyQueryClient
from azure_ops.policy.report import (
    NO_ASSIGNMENTS_LINE,
    NO_EXEMPTIONS_LINE,
    format_policy_assignments,
    format_policy_exemptions,
    generate_policy_report,
    sort_assignments,
)

RG = "rg-demo"
SUB = "/subscriptions/0000/resourceGroups/rg-demo"


def _assignment(name: str, state: str, **extra: object) -> PolicyAssignment:
    return PolicyAssignment(name=name, display_name=name.upper(), compliance_state=state, **extra)


def test_empty_assignments_render_single_line() -> None:
    assert format_policy_assignments([], RG) == NO_ASSIGNMENTS_LINE
    assert NO_ASSIGNMENTS_LINE == "- ℹ️ No policy assignments found for this resource group"


def test_assignments_sorted_worst_first() -> None:
    assignments = [
        _assignment("a-noncompliant", "NonCompliant"),
        _assignment("a-unknown", "Unknown"),
        _assignment("a-compliant", "Compliant"),
    ]

    ordered = sort_assignments(assignments)
    rendered = format_policy_assignments(assignments, RG)

    assert [a.name for a in ordered] == ["a-noncompliant", "a-compliant", "a-unknown"]
    positions = [rendered.index(f"**{name.upper()}**") for name in ("a-noncompliant", "a-compliant", "a-unknown")]
    assert positions == sorted(positions)


def test_sort_is_stable_and_groups_unrecognized_states_last() -> None:
    assignments = [
        _assignment("first-unknown", "Unknown"),
        _assignment("exempt", "Exempt"),
        _assignment("c1", "Compliant"),
        _assignment("c2", "Compliant"),
    ]

    assert [a.name for a in sort_assignments(assignments)] == [
        "c1",
        "c2",
        "first-unknown",
        "exempt",
    ]


def test_assignment_headline_glyphs_and_suffixes() -> None:
    rendered = format_policy_assignments(
        [
            _assignment("ok", "Compliant"),
            _assignment("bad", "NonCompliant", enforcement_mode="DoNotEnforce"),
            _assignment("unk", "Unknown"),
        ],
        RG,
    )

    lines = rendered.splitlines()
    assert lines[0] == "**Policy Assignments (3):**"
    assert lines[1] == ""
    assert "  - ❌ **BAD** (DoNotEnforce) - _NonCompliant_" in lines
    assert "  - ✅ **OK** - _Compliant_" in lines
    assert "  - ⚪ **UNK**" in lines


def test_display_name_falls_back_to_name() -> None:
    rendered = format_policy_assignments([PolicyAssignment(name="raw-name")], RG)
    assert "  - ⚪ **raw-name**" in rendered.splitlines()


def test_description_rendered_in_details_block() -> None:
    describe = MagicMock(return_value="Requires an owner tag.")
    assignment = _assignment("a1", "Compliant", policy_definition_id="/defs/def1")

    rendered = format_policy_assignments([assignment], RG, describe=describe)

    describe.assert_called_once_with("/defs/def1")
    assert (
        "    <details>\n"
        "    <summary><em>Description</em></summary>\n"
        "\n"
        "    Requires an owner tag.\n"
        "    </details>"
    ) in rendered


def test_empty_description_and_missing_definition_skip_block() -> None:
    describe = MagicMock(return_value="")
    rendered = format_policy_assignments(
        [
            _assignment("a1", "Compliant", policy_definition_id="/defs/def1"),
            _assignment("a2", "Compliant"),
        ],
        RG,
        describe=describe,
    )

    assert "<details>" not in rendered
    describe.assert_called_once_with("/defs/def1")


def test_noncompliant_resources_listed_only_for_noncompliant() -> None:
    noncompliant = MagicMock(
        return_value=[
            NonCompliantResource(
                resource_name="vm1",
                resource_type="Microsoft.Compute/virtualMachines",
                location="westeurope",
            ),
            NonCompliantResource(resource_name="vm2", resource_type="Microsoft.Compute/virtualMachines"),
        ]
    )

    rendered = format_policy_assignments(
        [_assignment("bad", "NonCompliant"), _assignment("good", "Compliant")],
        RG,
        noncompliant=noncompliant,
    )

    noncompliant.assert_called_once_with(RG, "bad")
    assert "    **Non-compliant resources (2):**" in rendered
    assert "    - **vm1** (Microsoft.Compute/virtualMachines) - Location: `westeurope`" in rendered
    assert "    - **vm2** (Microsoft.Compute/virtualMachines)\n" in rendered


def test_exemptions_empty() -> None:
    assert format_policy_exemptions([]) == NO_EXEMPTIONS_LINE


def test_exemption_optional_lines() -> None:
    with_all = PolicyExemption(
        name="ex1",
        display_name="Legacy VM",
        exemption_category="Waiver",
        expires_on="2025-12-31",
        description="Migration pending",
        policy_assignment_id=f"{SUB}/providers/Microsoft.Authorization/policyAssignments/tag-policy",
    )
    bare = PolicyExemption(name="ex2", exemption_category="Mitigated")

    rendered = format_policy_exemptions([with_all, bare])

    assert rendered.splitlines() == [
        "**Policy Exemptions (2):**",
        "",
        "- 🛡️ **Legacy VM** - _Waiver_",
        "  - **Expires:** 2025-12-31",
        "  - **Reason:** Migration pending",
        "  - **Policy:** `tag-policy`",
        "- 🛡️ **ex2** - _Mitigated_",
    ]


def test_exemption_without_expiry_has_no_expires_line() -> None:
    rendered = format_policy_exemptions([PolicyExemption(name="ex", exemption_category="Waiver")])
    assert "Expires" not in rendered


class _AzFake:
    def __init__(self, responses: dict[str, CommandResult]) -> None:
        self._responses = responses

    def __call__(self, command: Sequence[str], *, merge_stderr: bool = True) -> CommandResult:
        key = " ".join(command[1:4])
        return self._responses.get(key, CommandResult(output="ERROR: not found", exit_status=1))


def _json(payload: object) -> CommandResult:
    return CommandResult(output=json.dumps(payload), exit_status=0)


def test_generate_policy_report_end_to_end() -> None:
    vm_id = f"{SUB}/providers/Microsoft.Compute/virtualMachines"
    fake = _AzFake(
        {
            "policy assignment list": _json(
                [
                    {
                        "name": "require-tags",
                        "displayName": "Require tags",
                        "enforcementMode": "Default",
                        "policyDefinitionId": "/providers/Microsoft.Authorization/policyDefinitions/tagdef",
                    }
                ]
            ),
            "policy state list": _json(
                [
                    {
                        "policyAssignmentName": "require-tags",
                        "complianceState": "NonCompliant",
                        "resourceId": f"{vm_id}/vm-untagged",
                        "resourceType": "Microsoft.Compute/virtualMachines",
                        "resourceLocation": "eastus",
                    },
                    {
                        "policyAssignmentName": "require-tags",
                        "complianceState": "Compliant",
                        "resourceId": f"{vm_id}/vm-tagged",
                        "resourceType": "Microsoft.Compute/virtualMachines",
                        "resourceLocation": "eastus",
                    },
                ]
            ),
            "policy definition show": CommandResult("All resources need tags.", 0),
            "policy exemption list": _json([]),
        }
    )

    report = generate_policy_report(RG, PolicyQueryClient(runner=fake))

    assert report.startswith("#### Azure Policy Status\n\n**Policy Assignments (1):**")
    assert "  - ❌ **Require tags** - _NonCompliant_" in report
    assert "    All resources need tags." in report
    assert "    **Non-compliant resources (1):**" in report
    assert "vm-untagged" in report
    assert "vm-tagged" not in report
    assert report.rstrip().endswith(NO_EXEMPTIONS_LINE)


def test_generate_policy_report_when_everything_fails() -> None:
    report = generate_policy_report(RG, PolicyQueryClient(runner=_AzFake({})))

    assert report == (
        "#### Azure Policy Status\n\n"
        f"{NO_ASSIGNMENTS_LINE}\n\n"
        f"{NO_EXEMPTIONS_LINE}\n"
    )
