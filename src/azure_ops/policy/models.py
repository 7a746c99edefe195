"""Typed records for Azure Policy query results."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ComplianceState:
    COMPLIANT = "Compliant"
    NON_COMPLIANT = "NonCompliant"
    UNKNOWN = "Unknown"


DEFAULT_ENFORCEMENT_MODE = "Default"


def last_path_segment(value: str) -> str:
    """Return the trailing segment of an ARM resource id."""
    return value.rstrip("/").rsplit("/", 1)[-1]


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class _AzureRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PolicyAssignment(_AzureRecord):
    name: str
    display_name: str | None = Field(default=None, alias="displayName")
    enforcement_mode: str = Field(default=DEFAULT_ENFORCEMENT_MODE, alias="enforcementMode")
    policy_definition_id: str | None = Field(default=None, alias="policyDefinitionId")
    compliance_state: str = Field(default=ComplianceState.UNKNOWN, alias="complianceState")

    @field_validator("display_name", "policy_definition_id", mode="before")
    @classmethod
    def _validate_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("enforcement_mode", mode="before")
    @classmethod
    def _validate_enforcement_mode(cls, v: Any) -> Any:
        return v or DEFAULT_ENFORCEMENT_MODE

    @field_validator("compliance_state", mode="before")
    @classmethod
    def _validate_compliance_state(cls, v: Any) -> Any:
        return v or ComplianceState.UNKNOWN

    @property
    def label(self) -> str:
        return self.display_name or self.name


class PolicyComplianceRecord(_AzureRecord):
    policy_assignment_name: str = Field(alias="policyAssignmentName")
    compliance_state: str | None = Field(default=None, alias="complianceState")
    resource_id: str | None = Field(default=None, alias="resourceId")
    resource_type: str | None = Field(default=None, alias="resourceType")
    resource_location: str | None = Field(default=None, alias="resourceLocation")

    @field_validator("resource_location", mode="before")
    @classmethod
    def _validate_location(cls, v: Any) -> Any:
        return _blank_to_none(v)


class PolicyExemption(_AzureRecord):
    name: str
    display_name: str | None = Field(default=None, alias="displayName")
    exemption_category: str | None = Field(default=None, alias="exemptionCategory")
    expires_on: str | None = Field(default=None, alias="expiresOn")
    description: str | None = None
    policy_assignment_id: str | None = Field(default=None, alias="policyAssignmentId")

    @field_validator(
        "display_name", "expires_on", "description", "policy_assignment_id", mode="before"
    )
    @classmethod
    def _validate_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @property
    def label(self) -> str:
        return self.display_name or self.name

    @property
    def policy_assignment_name(self) -> str | None:
        if not self.policy_assignment_id:
            return None
        return last_path_segment(self.policy_assignment_id)


class NonCompliantResource(_AzureRecord):
    resource_name: str
    resource_type: str | None = None
    location: str | None = None

    @classmethod
    def from_record(cls, record: PolicyComplianceRecord) -> "NonCompliantResource":
        return cls(
            resource_name=last_path_segment(record.resource_id or ""),
            resource_type=record.resource_type,
            location=record.resource_location,
        )
