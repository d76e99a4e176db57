"""Tests for assessment history and comparison tools."""

from __future__ import annotations

import pytest

from cloud_compliance_auditor.models import Assessment, Finding, RiskProfile, Scope
from cloud_compliance_auditor.storage import AuditStorage
from cloud_compliance_auditor.tools.history import compare_assessments, get_assessment_history


def _finding(resource_name: str, status: str = "NonCompliant") -> Finding:
    return Finding(
        id=f"id-{resource_name}",
        resource_id=f"/r/{resource_name}",
        resource_type="t",
        resource_name=resource_name,
        rule_id="sc-7",
        title="Boundary Protection",
        severity="High",
        compliance_status=status,
    )


class TestGetAssessmentHistory:
    def test_empty_history(self, audit_storage: AuditStorage) -> None:
        result = get_assessment_history(audit_storage)
        assert result["total_returned"] == 0
        assert result["assessments"] == []

    def test_returns_assessments(self, audit_storage: AuditStorage) -> None:
        for _ in range(3):
            audit_storage.save_assessment(Assessment(scope=Scope(account_id="sub")))
        assert get_assessment_history(audit_storage)["total_returned"] == 3

    def test_default_limit_is_ten(self, audit_storage: AuditStorage) -> None:
        for _ in range(12):
            audit_storage.save_assessment(Assessment(scope=Scope(account_id="sub")))
        assert get_assessment_history(audit_storage)["total_returned"] == 10

    def test_filter_by_account(self, audit_storage: AuditStorage) -> None:
        audit_storage.save_assessment(Assessment(scope=Scope(account_id="sub-a")))
        audit_storage.save_assessment(Assessment(scope=Scope(account_id="sub-b")))
        result = get_assessment_history(audit_storage, account_id="sub-a")
        assert result["total_returned"] == 1
        assert result["filter"] == "sub-a"


class TestCompareAssessments:
    def _save(self, audit_storage: AuditStorage, score: float, failing: list[str], risk: str = "Low") -> str:
        findings = [_finding(name) for name in failing] + [_finding("ok", "Compliant")]
        assessment = Assessment(
            scope=Scope(account_id="sub"),
            overall_score=score,
            all_findings=findings,
            total_findings=len(findings),
            risk_profile=RiskProfile(risk_level=risk),
        )
        return audit_storage.save_assessment(assessment)

    def test_improving_trend(self, audit_storage: AuditStorage) -> None:
        id1 = self._save(audit_storage, 50.0, ["nsg-a", "nsg-b"], risk="High")
        id2 = self._save(audit_storage, 80.0, ["nsg-a"])
        comp = compare_assessments(audit_storage, id1, id2)
        assert comp["trend"] == "improving"
        assert comp["score_delta"] == 30.0
        assert [f["resource_id"] for f in comp["resolved_findings"]] == ["/r/nsg-b"]
        assert [f["resource_id"] for f in comp["persistent_findings"]] == ["/r/nsg-a"]
        assert (comp["risk_level_1"], comp["risk_level_2"]) == ("High", "Low")

    def test_declining_trend(self, audit_storage: AuditStorage) -> None:
        id1 = self._save(audit_storage, 80.0, [])
        id2 = self._save(audit_storage, 60.0, ["nsg-c"])
        comp = compare_assessments(audit_storage, id1, id2)
        assert comp["trend"] == "declining"
        assert comp["score_delta"] == -20.0
        assert comp["new_findings"] == [{"rule_id": "sc-7", "resource_id": "/r/nsg-c", "title": "Boundary Protection"}]

    def test_stable_trend(self, audit_storage: AuditStorage) -> None:
        id1 = self._save(audit_storage, 75.0, ["nsg-a"])
        id2 = self._save(audit_storage, 75.0, ["nsg-a"])
        comp = compare_assessments(audit_storage, id1, id2)
        assert comp["trend"] == "stable"
        assert comp["new_findings"] == []
        assert comp["resolved_findings"] == []

    def test_finding_counts(self, audit_storage: AuditStorage) -> None:
        id1 = self._save(audit_storage, 90.0, [])
        id2 = self._save(audit_storage, 80.0, ["nsg-a", "nsg-b"])
        comp = compare_assessments(audit_storage, id1, id2)
        assert comp["findings_count_1"] == 1
        assert comp["findings_count_2"] == 3

    def test_nonexistent_assessment_raises(self, audit_storage: AuditStorage) -> None:
        id1 = self._save(audit_storage, 50.0, [])
        with pytest.raises(FileNotFoundError):
            compare_assessments(audit_storage, id1, "nonexistent")
