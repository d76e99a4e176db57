"""Risk profile and executive summary derived from an assessment's findings."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from cloud_compliance_auditor.classifier import SEVERITY_RANK
from cloud_compliance_auditor.models import DomainResult, Finding, RiskLevel, RiskProfile

RISK_WEIGHTS: dict[str, float] = {
    "Critical": 10.0,
    "High": 7.5,
    "Medium": 5.0,
    "Low": 2.5,
}

HIGH_FINDINGS_THRESHOLD = 5
MEDIUM_FINDINGS_THRESHOLD = 10
TOP_RISKS_LIMIT = 5

CRITICAL_RECOMMENDATION = "Address critical findings immediately"


def risk_level(findings: Iterable[Finding]) -> RiskLevel:
    """Risk level from the severity mix of failing findings."""
    counts = {"Critical": 0, "High": 0, "Medium": 0}
    for finding in findings:
        if finding.is_failing and finding.severity in counts:
            counts[finding.severity] += 1
    if counts["Critical"] > 0:
        return "Critical"
    if counts["High"] > HIGH_FINDINGS_THRESHOLD:
        return "High"
    if counts["Medium"] > MEDIUM_FINDINGS_THRESHOLD:
        return "Medium"
    return "Low"


def risk_score(findings: Iterable[Finding]) -> float:
    """Severity-weighted sum over failing findings."""
    return round(sum(RISK_WEIGHTS.get(f.severity, 0.0) for f in findings if f.is_failing), 2)


def top_risks(findings: Iterable[Finding], limit: int = TOP_RISKS_LIMIT) -> list[str]:
    """Distinct categories of failing High and Critical findings, in first-seen order."""
    categories: list[str] = []
    for finding in findings:
        if not finding.is_failing or SEVERITY_RANK[finding.severity] < SEVERITY_RANK["High"]:
            continue
        if finding.category not in categories:
            categories.append(finding.category)
            if len(categories) >= limit:
                break
    return categories


def mitigation_recommendations(
    domains: dict[str, DomainResult],
    findings: Iterable[Finding],
    family_info: Callable[[str], dict[str, Any]],
) -> list[str]:
    """Recommendations for every scored domain below its family's threshold.

    Domains are visited in sorted order so the list is deterministic.
    """
    recommendations: list[str] = []
    if any(f.is_failing and f.severity == "Critical" for f in findings):
        recommendations.append(CRITICAL_RECOMMENDATION)
    for code in sorted(domains):
        domain = domains[code]
        if not domain.scored:
            continue
        info = family_info(code)
        if domain.score < float(info.get("score_threshold", 80.0)):
            text = info.get("recommendation") or f"Improve {info.get('name', code)} controls"
            if text not in recommendations:
                recommendations.append(text)
    return recommendations


def build_risk_profile(
    domains: dict[str, DomainResult],
    findings: list[Finding],
    family_info: Callable[[str], dict[str, Any]],
) -> RiskProfile:
    return RiskProfile(
        risk_level=risk_level(findings),
        risk_score=risk_score(findings),
        top_risks=top_risks(findings),
        domain_risk_scores={code: risk_score(d.findings) for code, d in domains.items()},
        mitigation_recommendations=mitigation_recommendations(domains, findings, family_info),
    )


def score_rating(score: float) -> str:
    if score >= 90:
        return "Excellent"
    if score >= 80:
        return "Good"
    if score >= 70:
        return "Fair"
    return "Needs Improvement"


def with_article(word: str) -> str:
    return f"{'an' if word[:1].lower() in 'aeiou' else 'a'} {word}"


def executive_summary(
    scope_label: str,
    overall_score: float,
    failing_by_severity: dict[str, int],
    profile: RiskProfile,
    total_findings: int,
) -> str:
    """One-paragraph summary; severity counts cover failing findings only."""
    focus = ", ".join(profile.top_risks[:3]) or "none"
    failing = sum(failing_by_severity.values())
    return (
        f"Compliance assessment of {scope_label} completed with {with_article(score_rating(overall_score))} "
        f"overall score of {overall_score:.1f}%. Identified {total_findings} findings, {failing} failing, "
        f"including {failing_by_severity.get('Critical', 0)} critical and {failing_by_severity.get('High', 0)} "
        f"high-severity failures. Overall risk level is {profile.risk_level}. Key focus areas: {focus}."
    )
