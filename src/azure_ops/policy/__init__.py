"""Azure Policy compliance queries and Markdown reporting."""

from .models import (
    ComplianceState,
    NonCompliantResource,
    PolicyAssignment,
    PolicyComplianceRecord,
    PolicyExemption,
)
from .query import PolicyQueryClient, reduce_compliance_state
from .report import format_policy_assignments, format_policy_exemptions, generate_policy_report

__all__ = [
    "ComplianceState",
    "NonCompliantResource",
    "PolicyAssignment",
    "PolicyComplianceRecord",
    "PolicyExemption",
    "PolicyQueryClient",
    "format_policy_assignments",
    "format_policy_exemptions",
    "generate_policy_report",
    "reduce_compliance_state",
]
