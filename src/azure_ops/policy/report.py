"""Markdown rendering of policy assignments and exemptions for CI summaries."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from azure_ops.errors import require
from azure_ops.policy.models import (
    DEFAULT_ENFORCEMENT_MODE,
    ComplianceState,
    NonCompliantResource,
    PolicyAssignment,
    PolicyExemption,
)
from azure_ops.policy.query import PolicyQueryClient

NO_ASSIGNMENTS_LINE = "- ℹ️ No policy assignments found for this resource group"
NO_EXEMPTIONS_LINE = "- ℹ️ No policy exemptions found for this resource group"
REPORT_HEADING = "#### Azure Policy Status"

_STATE_ORDER = {
    ComplianceState.NON_COMPLIANT: 0,
    ComplianceState.COMPLIANT: 1,
}
_STATE_GLYPHS = {
    ComplianceState.COMPLIANT: "✅",
    ComplianceState.NON_COMPLIANT: "❌",
}
_DEFAULT_GLYPH = "⚪"
_NESTED_INDENT = "    "

DescriptionLookup = Callable[[str | None], str]
NonCompliantLookup = Callable[[str, str], Sequence[NonCompliantResource]]


def sort_assignments(assignments: Sequence[PolicyAssignment]) -> list[PolicyAssignment]:
    """Order NonCompliant first, then Compliant, then everything else (stable)."""
    return sorted(assignments, key=lambda a: _STATE_ORDER.get(a.compliance_state, 2))


def _assignment_headline(assignment: PolicyAssignment) -> str:
    state = assignment.compliance_state
    glyph = _STATE_GLYPHS.get(state, _DEFAULT_GLYPH)
    line = f"  - {glyph} **{assignment.label}**"
    if assignment.enforcement_mode != DEFAULT_ENFORCEMENT_MODE:
        line += f" ({assignment.enforcement_mode})"
    if state and state != ComplianceState.UNKNOWN:
        line += f" - _{state}_"
    return line


def _description_block(description: str) -> list[str]:
    return [
        "",
        f"{_NESTED_INDENT}<details>",
        f"{_NESTED_INDENT}<summary><em>Description</em></summary>",
        "",
        f"{_NESTED_INDENT}{description}",
        f"{_NESTED_INDENT}</details>",
    ]


def _resource_line(resource: NonCompliantResource) -> str:
    line = f"{_NESTED_INDENT}- **{resource.resource_name}**"
    if resource.resource_type:
        line += f" ({resource.resource_type})"
    if resource.location:
        line += f" - Location: `{resource.location}`"
    return line


def _noncompliant_block(resources: Sequence[NonCompliantResource]) -> list[str]:
    lines = ["", f"{_NESTED_INDENT}**Non-compliant resources ({len(resources)}):**"]
    lines.extend(_resource_line(resource) for resource in resources)
    return lines


def format_policy_assignments(
    assignments: Sequence[PolicyAssignment],
    resource_group: str | None = None,
    *,
    describe: DescriptionLookup | None = None,
    noncompliant: NonCompliantLookup | None = None,
) -> str:
    """Render assignments as a Markdown list, worst compliance first.

    ``describe`` resolves a policy definition id to its description and
    ``noncompliant`` lists the failing resources of one assignment. Either may
    be omitted, in which case that detail is not rendered.
    """
    if not assignments:
        return NO_ASSIGNMENTS_LINE

    lines = [f"**Policy Assignments ({len(assignments)}):**", ""]
    for assignment in sort_assignments(assignments):
        lines.append(_assignment_headline(assignment))

        if describe is not None and assignment.policy_definition_id:
            description = describe(assignment.policy_definition_id)
            if description:
                lines.extend(_description_block(description))

        if (
            noncompliant is not None
            and resource_group
            and assignment.compliance_state == ComplianceState.NON_COMPLIANT
        ):
            resources = noncompliant(resource_group, assignment.name)
            if resources:
                lines.extend(_noncompliant_block(resources))

        lines.append("")
    return "\n".join(lines)


def _exemption_lines(exemption: PolicyExemption) -> list[str]:
    headline = f"- 🛡️ **{exemption.label}**"
    if exemption.exemption_category:
        headline += f" - _{exemption.exemption_category}_"
    lines = [headline]
    if exemption.expires_on:
        lines.append(f"  - **Expires:** {exemption.expires_on}")
    if exemption.description:
        lines.append(f"  - **Reason:** {exemption.description}")
    if exemption.policy_assignment_name:
        lines.append(f"  - **Policy:** `{exemption.policy_assignment_name}`")
    return lines


def format_policy_exemptions(exemptions: Sequence[PolicyExemption]) -> str:
    if not exemptions:
        return NO_EXEMPTIONS_LINE

    lines = [f"**Policy Exemptions ({len(exemptions)}):**", ""]
    for exemption in exemptions:
        lines.extend(_exemption_lines(exemption))
    return "\n".join(lines)


def generate_policy_report(resource_group: str, client: PolicyQueryClient) -> str:
    """Build the full policy status section for one resource group."""
    require(resource_group=resource_group)

    assignments = client.get_assignments_with_compliance(resource_group)
    exemptions = client.get_exemptions(resource_group)
    sections = [
        REPORT_HEADING,
        "",
        format_policy_assignments(
            assignments,
            resource_group,
            describe=client.get_policy_description,
            noncompliant=client.get_noncompliant_resources,
        ),
        "",
        format_policy_exemptions(exemptions),
    ]
    return "\n".join(sections) + "\n"
