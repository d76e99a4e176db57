"""Compliance scoring for domains and assessments.

A domain's score is the share of passed checks; the overall score is the
arithmetic mean of the domains that had at least one applicable check.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from cloud_compliance_auditor.models import (
    SEVERITIES,
    Assessment,
    AssessmentStatus,
    DomainResult,
    Finding,
    RuleResult,
    Scope,
)
from cloud_compliance_auditor.risk import build_risk_profile, executive_summary


class ComplianceScorer:
    """Aggregates rule results into domain results and an overall score."""

    def aggregate_domain(
        self,
        domain: str,
        findings: list[Finding],
        total_checks: int,
        name: str = "",
        partial: bool = False,
    ) -> DomainResult:
        """Build a DomainResult from a domain's findings.

        ``passed_checks`` is ``total_checks`` minus the NonCompliant and
        PartiallyCompliant findings. A domain with no applicable checks
        scores 100 but is flagged ``scored=False`` so callers can leave it
        out of the overall mean.

        Args:
            domain: Domain identifier (control family code or scan phase).
            findings: Every finding produced for the domain.
            total_checks: Number of checks evaluated in the domain.
            name: Human-readable domain name.
            partial: True when cancellation cut the domain short.

        Returns:
            DomainResult with score, counts and status.
        """
        failing = sum(1 for f in findings if f.is_failing)
        total = max(total_checks, failing)
        passed = total - failing

        if total == 0:
            return DomainResult(
                domain=domain,
                name=name,
                score=100.0,
                findings=findings,
                passed_checks=0,
                total_checks=0,
                status="NotApplicable",
                scored=False,
                partial=partial,
            )

        if failing == 0:
            status = "Compliant"
        elif passed == 0:
            status = "NonCompliant"
        else:
            status = "PartiallyCompliant"

        return DomainResult(
            domain=domain,
            name=name,
            score=round(passed / total * 100.0, 2),
            findings=findings,
            passed_checks=passed,
            total_checks=total,
            status=status,
            partial=partial,
        )

    def aggregate_rule_results(self, domain: str, results: Iterable[RuleResult], name: str = "") -> DomainResult:
        results = list(results)
        findings = [f for r in results for f in r.findings]
        total = sum(r.total_checks for r in results)
        return self.aggregate_domain(domain, findings, total, name=name, partial=any(r.partial for r in results))

    def overall_score(self, domains: Iterable[DomainResult]) -> float:
        """Mean of scored domain scores; 100.0 when no domain was scored."""
        scores = [d.score for d in domains if d.scored]
        if not scores:
            return 100.0
        return round(sum(scores) / len(scores), 2)

    def count_by_severity(self, findings: Iterable[Finding]) -> dict[str, int]:
        counts = dict.fromkeys(SEVERITIES, 0)
        for finding in findings:
            counts[finding.severity] += 1
        return counts


def aggregate_assessment(
    scope: Scope,
    domains: dict[str, DomainResult],
    family_info: Callable[[str], dict[str, Any]],
    start_time: datetime | None = None,
    status: AssessmentStatus = "completed",
    errors: list[str] | None = None,
    scorer: ComplianceScorer | None = None,
) -> Assessment:
    """Merge domain results into a finalized Assessment.

    ``all_findings`` keeps domain order and drops repeats of the same
    finding id, which occur when a rule belongs to several families.
    """
    scorer = scorer or ComplianceScorer()
    seen: set[str] = set()
    all_findings: list[Finding] = []
    for domain in domains.values():
        for finding in domain.findings:
            if finding.id not in seen:
                seen.add(finding.id)
                all_findings.append(finding)

    by_severity = scorer.count_by_severity(all_findings)
    failing_by_severity = scorer.count_by_severity(f for f in all_findings if f.is_failing)
    overall = scorer.overall_score(domains.values())
    profile = build_risk_profile(domains, all_findings, family_info)
    return Assessment(
        scope=scope,
        start_time=start_time or datetime.now(UTC),
        end_time=datetime.now(UTC),
        domains=domains,
        all_findings=all_findings,
        total_findings=len(all_findings),
        findings_by_severity=by_severity,
        overall_score=overall,
        risk_profile=profile,
        executive_summary=executive_summary(scope.label, overall, failing_by_severity, profile, len(all_findings)),
        status=status,
        errors=list(errors or []),
    )
