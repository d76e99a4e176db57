"""JSON-based file storage for assessments, remediation plans and evidence.

Persists assessment history and remediation plans under the configured
audit_storage_path, enabling history queries and trend comparison, and implements the
``EvidenceSink`` protocol for raw evidence payloads.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from cloud_compliance_auditor.models import Assessment, RemediationPlan

logger = logging.getLogger(__name__)


class AuditStorage:
    """Manages persistence of assessments, remediation plans and evidence payloads."""

    def __init__(self, base_path: str) -> None:
        self.base_path = Path(base_path)
        self.history_path = self.base_path / "history"
        self.remediation_path = self.base_path / "remediation"
        self.evidence_path = self.base_path / "evidence"
        self.history_path.mkdir(parents=True, exist_ok=True)
        self.remediation_path.mkdir(parents=True, exist_ok=True)
        self.evidence_path.mkdir(parents=True, exist_ok=True)

    def save_assessment(self, assessment: Assessment) -> str:
        """Persist an assessment to disk.

        Args:
            assessment: The Assessment to save.

        Returns:
            The assessment ID.
        """
        file_path = self.history_path / f"{assessment.id}.json"
        file_path.write_text(assessment.model_dump_json(indent=2))
        logger.info("Saved assessment %s to %s", assessment.id, file_path)
        return assessment.id

    def load_assessment(self, assessment_id: str) -> Assessment:
        """Load an assessment by ID.

        Raises:
            FileNotFoundError: If the assessment file does not exist.
        """
        file_path = self.history_path / f"{assessment_id}.json"
        if not file_path.exists():
            raise FileNotFoundError(f"Assessment not found: {assessment_id}")
        return Assessment.model_validate_json(file_path.read_text())

    def list_assessments(self, account_id: str | None = None, limit: int = 50) -> list[dict]:
        """List stored assessments, newest first, optionally for one account.

        Args:
            account_id: Only return assessments of this subscription/account.
            limit: Maximum number of results to return.

        Returns:
            List of summary dicts with id, scope, times, status, score and risk level.
        """
        results: list[dict] = []
        files = sorted(self.history_path.glob("*.json"), key=lambda p: p.stat().st_mtime, reverse=True)

        for file_path in files:
            if len(results) >= limit:
                break
            try:
                data = json.loads(file_path.read_text())
                scope = data["scope"]
                if account_id and scope.get("account_id", "").lower() != account_id.lower():
                    continue
                results.append({
                    "id": data["id"],
                    "account_id": scope.get("account_id"),
                    "group": scope.get("group"),
                    "start_time": data.get("start_time"),
                    "end_time": data.get("end_time"),
                    "status": data.get("status"),
                    "overall_score": data.get("overall_score"),
                    "total_findings": data.get("total_findings"),
                    "risk_level": (data.get("risk_profile") or {}).get("risk_level"),
                })
            except (json.JSONDecodeError, KeyError, AttributeError) as exc:
                logger.warning("Skipping corrupt assessment file %s: %s", file_path, exc)
                continue

        return results

    def save_remediation_plan(self, plan: RemediationPlan) -> str:
        """Persist a remediation plan to disk.

        Returns:
            The plan ID.
        """
        file_path = self.remediation_path / f"{plan.id}.json"
        file_path.write_text(plan.model_dump_json(indent=2))
        logger.info("Saved remediation plan %s to %s", plan.id, file_path)
        return plan.id

    def load_remediation_plan(self, plan_id: str) -> RemediationPlan:
        """Load a remediation plan by ID.

        Raises:
            FileNotFoundError: If the plan file does not exist.
        """
        file_path = self.remediation_path / f"{plan_id}.json"
        if not file_path.exists():
            raise FileNotFoundError(f"Remediation plan not found: {plan_id}")
        return RemediationPlan.model_validate_json(file_path.read_text())

    def store(self, kind: str, payload: dict[str, Any], scope_context: dict[str, Any]) -> str:
        """Write an evidence payload to ``evidence/<kind>/<uuid>.json`` and return its path."""
        kind_path = self.evidence_path / kind
        kind_path.mkdir(parents=True, exist_ok=True)
        file_path = kind_path / f"{uuid.uuid4()}.json"
        document = {
            "kind": kind,
            "stored_at": datetime.now(UTC).isoformat(),
            "scope": scope_context,
            "payload": payload,
        }
        file_path.write_text(json.dumps(document, indent=2, default=str))
        logger.debug("Stored %s evidence at %s", kind, file_path)
        return str(file_path)
