"""Rule catalogue listing MCP tool."""

from __future__ import annotations

from cloud_compliance_auditor.catalogue import JsonRuleCatalogue
from cloud_compliance_auditor.exceptions import CatalogueUnavailableError
from cloud_compliance_auditor.registry import CheckerRegistry


def list_rules(catalogue: JsonRuleCatalogue, registry: CheckerRegistry, family: str | None = None) -> dict:
    """List catalogued rules, optionally for one control family.

    Each entry says whether a dedicated checker exists or the rule falls
    back to a family-level manual review.
    """
    try:
        rules = catalogue.get_rules_for_family(family) if family else catalogue.rules()
    except CatalogueUnavailableError as exc:
        return {"status": "error", "message": str(exc), "families": catalogue.families()}
    entries = [
        {
            "id": rule.id,
            "family": rule.family,
            "families": rule.families,
            "title": rule.title,
            "severity": rule.severity,
            "category": rule.category,
            "rule_class": rule.rule_class,
            "automated": registry.has_checker(rule.id),
        }
        for rule in rules
    ]
    return {
        "rules": entries,
        "total": len(entries),
        "filter": family,
        "families": catalogue.families(),
    }
