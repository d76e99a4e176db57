"""Remediation plan creation, tracking, and validation MCP tools.

Builds an ordered remediation plan from an assessment's failing findings,
reports progress on it, and validates a fix by re-evaluating the finding's
rule over the assessment's scope.
"""

from __future__ import annotations

import logging

from cloud_compliance_auditor.classifier import SEVERITY_RANK, max_severity
from cloud_compliance_auditor.engine import AuditEngine
from cloud_compliance_auditor.models import Finding, RemediationItem, RemediationPlan, RuleResult
from cloud_compliance_auditor.storage import AuditStorage

logger = logging.getLogger(__name__)


def _item_for(finding: Finding) -> RemediationItem:
    return RemediationItem(
        rule_id=finding.rule_id,
        finding_id=finding.id,
        resource_id=finding.resource_id,
        resource_name=finding.resource_name,
        title=finding.title,
        severity=finding.severity,
        action=finding.remediation or f"Remediate: {finding.title}",
        auto_remediable=finding.auto_remediable,
    )


def _priority(item: RemediationItem) -> tuple[int, int, str, str]:
    # Most severe first; within a severity, auto-remediable items first
    return (-SEVERITY_RANK[item.severity], 0 if item.auto_remediable else 1, item.rule_id, item.resource_id)


def _refresh_progress(plan: RemediationPlan) -> dict[str, int]:
    counts = {status: 0 for status in ("done", "in_progress", "pending", "skipped")}
    for item in plan.items:
        counts[item.status] += 1
    total = len(plan.items)
    plan.progress_pct = round(counts["done"] / total * 100, 2) if total else 0.0
    if total and counts["done"] + counts["skipped"] == total:
        plan.status = "completed"
    elif total:
        plan.status = "active"
    return counts


def create_remediation_plan(storage: AuditStorage, assessment_id: str) -> dict:
    """Create a remediation plan from the failing findings of a stored assessment.

    Args:
        storage: Audit storage instance.
        assessment_id: The assessment to build a plan from.

    Returns:
        Dict representation of the RemediationPlan.
    """
    assessment = storage.load_assessment(assessment_id)
    items = sorted((_item_for(f) for f in assessment.all_findings if f.is_failing), key=_priority)
    plan = RemediationPlan(
        assessment_id=assessment_id,
        scope=assessment.scope,
        items=items,
        highest_severity=max_severity([i.severity for i in items]),
        status="active" if items else "empty",
    )
    storage.save_remediation_plan(plan)
    logger.info("Remediation plan %s created with %d items from assessment %s", plan.id, len(items), assessment_id)
    return plan.model_dump(mode="json")


def track_remediation_progress(storage: AuditStorage, plan_id: str) -> dict:
    """Return the current status and progress of a remediation plan.

    Args:
        storage: Audit storage instance.
        plan_id: The remediation plan ID.

    Returns:
        Dict with plan status, progress percentage, and item breakdown.
    """
    plan = storage.load_remediation_plan(plan_id)
    counts = _refresh_progress(plan)
    storage.save_remediation_plan(plan)
    return {
        "plan_id": plan.id,
        "assessment_id": plan.assessment_id,
        "status": plan.status,
        "progress_pct": plan.progress_pct,
        "highest_severity": plan.highest_severity,
        "total_items": len(plan.items),
        **counts,
        "items": [i.model_dump(mode="json") for i in plan.items],
    }


def _unverified(item: RemediationItem, result: RuleResult, scope_id: str) -> str | None:
    """Reason the re-evaluation cannot confirm a fix, if any."""
    if result.error:
        return f"rule aborted: {result.error}"
    if result.partial:
        return "re-evaluation was cut short"
    for finding in result.findings:
        if finding.compliance_status != "ManualReviewRequired":
            continue
        if finding.resource_id == item.resource_id or item.resource_id == scope_id:
            return finding.evidence or finding.title
    return None


def validate_remediation(engine: AuditEngine, storage: AuditStorage, plan_id: str, item_id: str) -> dict:
    """Re-run the rule behind a remediation item to verify the fix.

    The item is fixed when its finding no longer fails and nothing about
    the affected resource was left unevaluated.

    Args:
        engine: Configured audit engine.
        storage: Audit storage instance.
        plan_id: The remediation plan ID.
        item_id: The remediation item ID to validate.

    Returns:
        Dict with validation result (before/after status).
    """
    plan = storage.load_remediation_plan(plan_id)
    item = next((i for i in plan.items if i.id == item_id), None)
    if item is None:
        return {"status": "error", "message": f"Item {item_id} not found in plan {plan_id}"}

    result = engine.scan_control(plan.scope, item.rule_id)
    still_failing = [f for f in result.findings if f.id == item.finding_id and f.is_failing]
    reason = None if still_failing else _unverified(item, result, plan.scope.resource_id)

    is_fixed = not still_failing and reason is None
    if still_failing:
        new_status = still_failing[0].compliance_status
        if item.status == "done":
            item.status = "pending"
        item.notes = f"Validation failed: {still_failing[0].evidence or still_failing[0].title}"
    elif reason:
        new_status = "ManualReviewRequired"
        item.notes = f"Could not validate: {reason}"
    else:
        new_status = "Compliant"
        item.status = "done"
        item.notes = "Validated: rule now passes"

    _refresh_progress(plan)
    storage.save_remediation_plan(plan)
    logger.info("Remediation item %s (%s) validated: fixed=%s", item_id, item.rule_id, is_fixed)
    return {
        "plan_id": plan_id,
        "item_id": item_id,
        "rule_id": item.rule_id,
        "resource_id": item.resource_id,
        "previous_status": "failing",
        "new_status": new_status,
        "is_fixed": is_fixed,
        "details": item.notes,
        "plan_progress_pct": plan.progress_pct,
    }
