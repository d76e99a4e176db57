"""Scan MCP tools: single control, single family, and full assessment.

Each tool builds a Scope, runs the engine, and returns a JSON-mode dict.
Full assessments are saved to storage for history and comparison.
"""

from __future__ import annotations

from cloud_compliance_auditor.engine import AuditEngine
from cloud_compliance_auditor.models import Scope
from cloud_compliance_auditor.storage import AuditStorage


def run_control_scan(engine: AuditEngine, account_id: str, rule_id: str, group: str | None = None) -> dict:
    """Evaluate one rule over a subscription or resource group.

    Args:
        engine: Configured audit engine.
        account_id: Subscription id.
        rule_id: Catalogue rule id, in any case.
        group: Optional resource group name.

    Returns:
        Dict with the rule result and its pass/fail counts.
    """
    scope = Scope(account_id=account_id, group=group)
    result = engine.scan_control(scope, rule_id)
    data = result.model_dump(mode="json")
    data["passed_checks"] = result.passed_checks
    data["scope"] = scope.model_dump(mode="json")
    return data


def run_family_scan(engine: AuditEngine, account_id: str, family: str, group: str | None = None) -> dict:
    """Evaluate every catalogued rule of one control family and return its DomainResult."""
    scope = Scope(account_id=account_id, group=group)
    domain = engine.scan_family(scope, family)
    return domain.model_dump(mode="json")


def run_full_assessment(
    engine: AuditEngine,
    storage: AuditStorage,
    account_id: str,
    group: str | None = None,
    families: list[str] | None = None,
) -> dict:
    """Run an assessment across control families and save it to storage.

    Args:
        engine: Configured audit engine.
        storage: Audit storage for persisting the assessment.
        account_id: Subscription id.
        group: Optional resource group name.
        families: Control families to evaluate; all catalogued families when omitted.

    Returns:
        Dict representation of the Assessment.
    """
    scope = Scope(account_id=account_id, group=group)
    assessment = engine.run_assessment(scope, families=families)
    storage.save_assessment(assessment)
    return assessment.model_dump(mode="json")
