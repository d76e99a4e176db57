"""Pydantic v2 data models for resources, rules, findings, domain results, and assessments.

All core data structures used throughout the auditor live here. Snapshot,
catalogue, and finding models are frozen: checkers reference them and never
mutate them.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Severity = Literal["Critical", "High", "Medium", "Low", "Informational"]
ComplianceStatus = Literal[
    "Compliant",
    "NonCompliant",
    "PartiallyCompliant",
    "NotApplicable",
    "ManualReviewRequired",
]
RiskClass = Literal["elevated", "standard"]
RuleClass = Literal["hard", "graded"]
RiskLevel = Literal["Critical", "High", "Medium", "Low"]
DomainStatus = Literal["Compliant", "NonCompliant", "PartiallyCompliant", "NotApplicable"]
AssessmentStatus = Literal["completed", "partial"]
RemediationItemStatus = Literal["pending", "in_progress", "done", "skipped"]
RemediationPlanStatus = Literal["active", "empty", "completed"]

SEVERITIES: tuple[Severity, ...] = ("Critical", "High", "Medium", "Low", "Informational")
FAILING_STATUSES: frozenset[str] = frozenset({"NonCompliant", "PartiallyCompliant"})

_FINDING_NAMESPACE = uuid.UUID("6f1c9a52-3d4e-4b7a-9c2e-8a0d5e7f1b33")


def normalize_id(identifier: str) -> str:
    """Normalize a rule, control, or family identifier for lookups."""
    return identifier.strip().upper()


def finding_id(rule_id: str, resource_id: str, title: str) -> str:
    """Deterministic finding id so identical inputs yield identical finding sets."""
    return str(uuid.uuid5(_FINDING_NAMESPACE, f"{normalize_id(rule_id)}|{resource_id}|{title}"))


class Scope(BaseModel):
    """Boundary of resources under evaluation."""

    model_config = ConfigDict(frozen=True)

    account_id: str = Field(min_length=1)
    group: str | None = None

    @property
    def label(self) -> str:
        if self.group:
            return f"group '{self.group}' in account '{self.account_id}'"
        return f"account '{self.account_id}'"

    @property
    def resource_id(self) -> str:
        """ARM-style identifier used for scope-level findings."""
        base = f"/subscriptions/{self.account_id}"
        return f"{base}/resourceGroups/{self.group}" if self.group else base


class Resource(BaseModel):
    """Immutable snapshot of one cloud resource and its configuration tree."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    name: str
    location: str = ""
    properties: dict[str, Any] = Field(default_factory=dict)
    tags: dict[str, str] = Field(default_factory=dict)


class Thresholds(BaseModel):
    """Severity band cut lines and graded-rule targets, as fractions and percentages."""

    model_config = ConfigDict(frozen=True)

    lower_cut: float = Field(0.2, ge=0, le=1)
    upper_cut: float = Field(0.5, ge=0, le=1)
    target_pct: float = Field(100.0, ge=0, le=100)
    partial_floor_pct: float = Field(80.0, ge=0, le=100)

    @model_validator(mode="after")
    def _check_order(self) -> Thresholds:
        if self.lower_cut >= self.upper_cut:
            raise ValueError("lower_cut must be below upper_cut")
        if self.partial_floor_pct > self.target_pct:
            raise ValueError("partial_floor_pct must not exceed target_pct")
        return self


class Rule(BaseModel):
    """A catalogued compliance requirement with its evaluation metadata."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    family: str = Field(min_length=1)
    also_in: list[str] = Field(default_factory=list)
    title: str = Field(min_length=1)
    description: str = ""
    severity: Severity = "Medium"
    category: str = "General"
    remediation_text: str = ""
    mapped_controls: list[str] = Field(default_factory=list)
    mapped_frameworks: list[str] = Field(default_factory=list)
    risk_class: RiskClass = "standard"
    rule_class: RuleClass = "hard"
    thresholds: Thresholds = Field(default_factory=Thresholds)
    resource_types: list[str] = Field(default_factory=list)
    parameters: dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return normalize_id(self.id)

    @property
    def families(self) -> list[str]:
        """Primary family followed by every additional family group."""
        seen = [normalize_id(self.family)]
        for extra in self.also_in:
            norm = normalize_id(extra)
            if norm not in seen:
                seen.append(norm)
        return seen


class Finding(BaseModel):
    """A single reported observation against a resource or scope for one rule."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    resource_id: str
    resource_type: str
    resource_name: str
    rule_id: str
    family: str = ""
    category: str = "General"
    title: str
    description: str = ""
    severity: Severity
    compliance_status: ComplianceStatus
    evidence: str = ""
    remediation: str = ""
    mapped_controls: list[str] = Field(default_factory=list)
    mapped_frameworks: list[str] = Field(default_factory=list)
    auto_remediable: bool | None = None
    detected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_failing(self) -> bool:
        return self.compliance_status in FAILING_STATUSES


class RuleResult(BaseModel):
    """Outcome of evaluating one rule over one scope."""

    rule_id: str
    findings: list[Finding] = Field(default_factory=list)
    total_checks: int = Field(0, ge=0)
    partial: bool = False
    error: str | None = None

    @property
    def passed_checks(self) -> int:
        failing = sum(1 for f in self.findings if f.is_failing)
        return max(0, self.total_checks - failing)


class DomainResult(BaseModel):
    """Findings and score for one domain (control family or scan phase)."""

    domain: str
    name: str = ""
    score: float = Field(ge=0, le=100)
    findings: list[Finding] = Field(default_factory=list)
    passed_checks: int = 0
    total_checks: int = 0
    status: DomainStatus = "NotApplicable"
    scored: bool = True
    partial: bool = False


class RiskProfile(BaseModel):
    """Overall risk picture derived from an assessment's findings and domains."""

    risk_level: RiskLevel = "Low"
    risk_score: float = 0.0
    top_risks: list[str] = Field(default_factory=list)
    domain_risk_scores: dict[str, float] = Field(default_factory=dict)
    mitigation_recommendations: list[str] = Field(default_factory=list)


class Assessment(BaseModel):
    """Complete result of one scan invocation."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    scope: Scope
    start_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    domains: dict[str, DomainResult] = Field(default_factory=dict)
    all_findings: list[Finding] = Field(default_factory=list)
    total_findings: int = 0
    findings_by_severity: dict[str, int] = Field(default_factory=dict)
    overall_score: float = Field(100.0, ge=0, le=100)
    risk_profile: RiskProfile = Field(default_factory=RiskProfile)
    executive_summary: str = ""
    status: AssessmentStatus = "completed"
    errors: list[str] = Field(default_factory=list)


class RemediationItem(BaseModel):
    """One remediation task for a failing finding."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    rule_id: str
    finding_id: str
    resource_id: str
    resource_name: str = ""
    title: str = ""
    severity: Severity
    action: str
    auto_remediable: bool | None = None
    status: RemediationItemStatus = "pending"
    notes: str = ""


class RemediationPlan(BaseModel):
    """Ordered remediation tasks built from one assessment's failing findings."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    assessment_id: str
    scope: Scope
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    items: list[RemediationItem] = Field(default_factory=list)
    highest_severity: Severity = "Informational"
    status: RemediationPlanStatus = "active"
    progress_pct: float = 0.0
