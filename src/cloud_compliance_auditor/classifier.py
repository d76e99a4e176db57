"""Severity and compliance-status classification shared by every checker.

Turns a raw observation ("N of M resources fail the predicate") into a
(severity, status) pair. Band cut lines, risk tiers, and graded targets come
from the rule's catalogue metadata, so one function serves the whole
catalogue.
"""

from __future__ import annotations

from cloud_compliance_auditor.models import ComplianceStatus, RiskClass, Rule, Severity

# (top, middle, low) band severities per risk class
SEVERITY_TIERS: dict[RiskClass, tuple[Severity, Severity, Severity]] = {
    "elevated": ("Critical", "High", "Medium"),
    "standard": ("High", "Medium", "Low"),
}

SEVERITY_RANK: dict[str, int] = {
    "Informational": 0,
    "Low": 1,
    "Medium": 2,
    "High": 3,
    "Critical": 4,
}


def band_severity(pct_failing: float, rule: Rule) -> Severity:
    """Severity band for a failing fraction; boundary values fall into the lower band."""
    top, middle, low = SEVERITY_TIERS[rule.risk_class]
    if pct_failing > rule.thresholds.upper_cut:
        return top
    if pct_failing > rule.thresholds.lower_cut:
        return middle
    return low


def classify(failing: int, total: int, rule: Rule) -> tuple[Severity, ComplianceStatus]:
    """Classify ``failing`` of ``total`` applicable resources for ``rule``.

    Args:
        failing: Number of resources failing the rule's predicate.
        total: Number of applicable resources that were evaluated.
        rule: The rule, supplying risk class, rule class, and thresholds.

    Returns:
        A ``(severity, compliance_status)`` tuple. Deterministic and monotonic
        in ``failing`` for a fixed ``total``.
    """
    if total <= 0:
        return "Informational", "NotApplicable"
    failing = min(max(failing, 0), total)
    if failing == 0:
        return "Informational", "Compliant"

    pct_failing = failing / total
    severity = band_severity(pct_failing, rule)

    if rule.rule_class == "hard":
        return severity, "NonCompliant"

    compliance_pct = (total - failing) * 100.0 / total
    if compliance_pct >= rule.thresholds.target_pct:
        return "Informational", "Compliant"
    if compliance_pct >= rule.thresholds.partial_floor_pct:
        return severity, "PartiallyCompliant"
    return severity, "NonCompliant"


def max_severity(severities: list[Severity]) -> Severity:
    if not severities:
        return "Informational"
    return max(severities, key=lambda s: SEVERITY_RANK[s])
