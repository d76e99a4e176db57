"""Assessment history retrieval and comparison MCP tools.

Provides tools to browse past assessments and compare two of them for
trend analysis (score deltas, new/resolved findings).
"""

from __future__ import annotations

from cloud_compliance_auditor.storage import AuditStorage


def get_assessment_history(storage: AuditStorage, account_id: str | None = None, limit: int = 10) -> dict:
    """Retrieve a list of past assessments.

    Args:
        storage: Audit storage instance.
        account_id: Optional filter by subscription id.
        limit: Maximum number of results to return.

    Returns:
        Dict with list of assessment summaries.
    """
    results = storage.list_assessments(account_id=account_id, limit=limit)
    return {
        "assessments": results,
        "total_returned": len(results),
        "filter": account_id,
    }


def compare_assessments(storage: AuditStorage, assessment_id_1: str, assessment_id_2: str) -> dict:
    """Compare two assessments for trend analysis.

    Failing findings are matched by their deterministic id, so the same
    violation on the same resource is recognized across runs.

    Args:
        storage: Audit storage instance.
        assessment_id_1: The older assessment ID.
        assessment_id_2: The newer assessment ID.

    Returns:
        Dict with comparison data.
    """
    older = storage.load_assessment(assessment_id_1)
    newer = storage.load_assessment(assessment_id_2)

    score_delta = round(newer.overall_score - older.overall_score, 2)

    failing_1 = {f.id: f for f in older.all_findings if f.is_failing}
    failing_2 = {f.id: f for f in newer.all_findings if f.is_failing}

    def describe(ids: set[str], source: dict) -> list[dict]:
        items = [
            {"rule_id": source[i].rule_id, "resource_id": source[i].resource_id, "title": source[i].title}
            for i in ids
        ]
        return sorted(items, key=lambda item: (item["rule_id"], item["resource_id"]))

    trend = "improving" if score_delta > 0 else "declining" if score_delta < 0 else "stable"

    return {
        "assessment_id_1": assessment_id_1,
        "assessment_id_2": assessment_id_2,
        "score_1": older.overall_score,
        "score_2": newer.overall_score,
        "score_delta": score_delta,
        "trend": trend,
        "risk_level_1": older.risk_profile.risk_level,
        "risk_level_2": newer.risk_profile.risk_level,
        "new_findings": describe(set(failing_2) - set(failing_1), failing_2),
        "resolved_findings": describe(set(failing_1) - set(failing_2), failing_1),
        "persistent_findings": describe(set(failing_1) & set(failing_2), failing_2),
        "findings_count_1": older.total_findings,
        "findings_count_2": newer.total_findings,
    }
