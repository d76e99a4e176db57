"""Cross-cutting finding metadata: mapped controls, frameworks, auto-remediation.

``enrich`` is idempotent: enriching an already-enriched finding returns an
equal finding.
"""

from __future__ import annotations

from cloud_compliance_auditor.models import Finding, Rule, normalize_id

AUTO_REMEDIABLE_CATEGORIES = frozenset({
    "encryption",
    "network security",
    "data protection",
    "logging",
    "configuration",
    "transmission security",
    "asset inventory",
})

MANUAL_CATEGORIES = frozenset({"identity", "access control"})

# Grouped findings about these subjects need a human decision per assignment
MANUAL_SUBJECTS = ("role assignment", "access assignment", "data classification")


def _merge(existing: list[str], extra: list[str], upper: bool = False) -> list[str]:
    merged: list[str] = []
    for item in [*existing, *extra]:
        value = item.strip().upper() if upper else item.strip()
        if value and value not in merged:
            merged.append(value)
    return merged


def is_auto_remediable(finding: Finding) -> bool:
    """Whether the finding's fix can be applied automatically.

    Only failing findings qualify. Grouped findings (resource type
    ``Multiple``) qualify unless they concern access assignments or data
    classification; otherwise the category decides.
    """
    if not finding.is_failing:
        return False
    text = f"{finding.title} {finding.description}".lower()
    if finding.resource_type == "Multiple":
        return not any(subject in text for subject in MANUAL_SUBJECTS)
    category = finding.category.lower()
    if category in MANUAL_CATEGORIES:
        return False
    return category in AUTO_REMEDIABLE_CATEGORIES


def enrich(finding: Finding, rule: Rule | None = None) -> Finding:
    """Fill in mapped controls/frameworks and auto-remediation eligibility."""
    controls = _merge(finding.mapped_controls, list(rule.mapped_controls) if rule else [], upper=True)
    if not controls:
        controls = [normalize_id(rule.id if rule else finding.rule_id)]
    frameworks = _merge(finding.mapped_frameworks, list(rule.mapped_frameworks) if rule else [])
    return finding.model_copy(update={
        "mapped_controls": controls,
        "mapped_frameworks": frameworks,
        "auto_remediable": is_auto_remediable(finding),
    })
