"""Family-level handlers for catalogued rules without a specific checker."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cloud_compliance_auditor.checkers.base import CheckContext, Checker, manual_review
from cloud_compliance_auditor.models import Rule, RuleResult

if TYPE_CHECKING:
    from cloud_compliance_auditor.registry import CheckerRegistry

FAMILY_NAMES: dict[str, str] = {
    "AC": "Access Control",
    "AU": "Audit and Accountability",
    "CM": "Configuration Management",
    "CP": "Contingency Planning",
    "IA": "Identification and Authentication",
    "SC": "System and Communications Protection",
    "SI": "System and Information Integrity",
}


def family_handler(family: str) -> Checker:
    name = FAMILY_NAMES.get(family, family)

    def check(ctx: CheckContext, rule: Rule) -> RuleResult:
        verify = (
            f"{rule.id.upper()} ({rule.title}) is a {name} control with no automated check for this "
            f"inventory. Review the implementation evidence for {ctx.scope.label} manually."
        )
        return manual_review(ctx, rule, verify, severity="Informational")

    check.__name__ = f"check_{family.lower()}_family"
    return check


def register(registry: CheckerRegistry) -> None:
    for family in FAMILY_NAMES:
        registry.register_family(family, family_handler(family))
