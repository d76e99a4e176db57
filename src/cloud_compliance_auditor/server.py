"""FastMCP server entry point for the Cloud Compliance Auditor.

Registers all MCP tools and starts the server. The server reads resources
from Azure Resource Manager and evaluates them against the bundled (or
configured) NIST 800-53 / STIG rule catalogue.
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP
from pydantic import ValidationError

from cloud_compliance_auditor.catalogue import JsonRuleCatalogue
from cloud_compliance_auditor.client import ArmInventoryClient
from cloud_compliance_auditor.config import AuditConfig, get_config
from cloud_compliance_auditor.engine import AuditEngine
from cloud_compliance_auditor.registry import CheckerRegistry, build_default_registry
from cloud_compliance_auditor.storage import AuditStorage
from cloud_compliance_auditor.tools.history import compare_assessments, get_assessment_history
from cloud_compliance_auditor.tools.remediation import (
    create_remediation_plan,
    track_remediation_progress,
    validate_remediation,
)
from cloud_compliance_auditor.tools.rules import list_rules
from cloud_compliance_auditor.tools.scan import run_control_scan, run_family_scan, run_full_assessment

logger = logging.getLogger(__name__)

mcp = FastMCP("cloud-compliance-auditor")

# Module-level singletons initialized on first tool call
_config: AuditConfig | None = None
_client: ArmInventoryClient | None = None
_catalogue: JsonRuleCatalogue | None = None
_registry: CheckerRegistry | None = None
_storage: AuditStorage | None = None
_engine: AuditEngine | None = None


def _get_dependencies() -> tuple[AuditConfig, AuditEngine, AuditStorage]:
    """Lazily initialize and return the shared config, engine, and storage."""
    global _config, _client, _catalogue, _registry, _storage, _engine  # noqa: PLW0603
    if _engine is None:
        _config = get_config()
        _client = ArmInventoryClient(_config)
        _catalogue = JsonRuleCatalogue.from_config(_config.catalogue_path)
        _registry = build_default_registry()
        _storage = AuditStorage(_config.audit_storage_path)
        _engine = AuditEngine(_config, _client, _catalogue, _registry, evidence_sink=_storage)
    return _config, _engine, _storage  # type: ignore[return-value]


@mcp.tool()
def scan_control(account_id: str = "", rule_id: str = "", resource_group: str | None = None) -> dict:
    """Evaluate a single NIST control or STIG rule against a subscription or resource group."""
    if not account_id or not rule_id:
        return {"status": "error", "message": "Both account_id and rule_id are required"}
    _, engine, _ = _get_dependencies()
    return run_control_scan(engine, account_id, rule_id, group=resource_group)


@mcp.tool()
def scan_family(account_id: str = "", family: str = "", resource_group: str | None = None) -> dict:
    """Evaluate every catalogued rule of one control family (e.g. AC, SC, CM)."""
    if not account_id or not family:
        return {"status": "error", "message": "Both account_id and family are required"}
    _, engine, _ = _get_dependencies()
    return run_family_scan(engine, account_id, family, group=resource_group)


@mcp.tool()
def run_assessment(
    account_id: str = "",
    resource_group: str | None = None,
    families: list[str] | None = None,
) -> dict:
    """Run a full compliance assessment and save it to history."""
    if not account_id:
        return {"status": "error", "message": "account_id is required"}
    _, engine, storage = _get_dependencies()
    return run_full_assessment(engine, storage, account_id, group=resource_group, families=families)


@mcp.tool()
def compliance_rules(family: str | None = None) -> dict:
    """List catalogued compliance rules with an optional control family filter."""
    _, engine, _ = _get_dependencies()
    return list_rules(engine.catalogue, engine.registry, family=family)


@mcp.tool()
def assessment_history(account_id: str | None = None, limit: int = 10) -> dict:
    """Retrieve past assessments for trend analysis."""
    _, _, storage = _get_dependencies()
    return get_assessment_history(storage, account_id=account_id, limit=limit)


@mcp.tool()
def assessment_compare(assessment_id_1: str = "", assessment_id_2: str = "") -> dict:
    """Compare two assessments showing score deltas and finding changes."""
    if not assessment_id_1 or not assessment_id_2:
        return {"status": "error", "message": "Both assessment_id_1 and assessment_id_2 are required"}
    _, _, storage = _get_dependencies()
    return compare_assessments(storage, assessment_id_1, assessment_id_2)


@mcp.tool()
def remediation_create(assessment_id: str = "") -> dict:
    """Create an ordered remediation plan from a saved assessment's failing findings."""
    if not assessment_id:
        return {"status": "error", "message": "assessment_id is required"}
    _, _, storage = _get_dependencies()
    return create_remediation_plan(storage, assessment_id)


@mcp.tool()
def remediation_progress(plan_id: str = "") -> dict:
    """Track progress of a remediation plan."""
    if not plan_id:
        return {"status": "error", "message": "plan_id is required"}
    _, _, storage = _get_dependencies()
    return track_remediation_progress(storage, plan_id)


@mcp.tool()
def remediation_validate(plan_id: str = "", item_id: str = "") -> dict:
    """Re-evaluate the rule behind a remediation item to confirm the fix."""
    if not plan_id or not item_id:
        return {"status": "error", "message": "Both plan_id and item_id are required"}
    _, engine, storage = _get_dependencies()
    return validate_remediation(engine, storage, plan_id, item_id)


@mcp.tool()
def health_check() -> dict:
    """Verify the auditor server is running and the rule catalogue is loaded."""
    try:
        config, engine, _ = _get_dependencies()
        return {
            "status": "healthy",
            "endpoint": config.arm_endpoint,
            "families": engine.catalogue.families(),
            "automated_rules": len(engine.registry.supported_rules()),
        }
    except Exception as exc:
        return {"status": "unhealthy", "error": str(exc)}


def main() -> None:
    """Entry point for the cloud-compliance-auditor MCP server."""
    level = logging.INFO
    try:
        level = getattr(logging, get_config().log_level.upper(), logging.INFO)
    except ValidationError:
        # Invalid settings are reported again by the first tool call
        pass
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    logger.info("Starting cloud-compliance-auditor MCP server")
    mcp.run()
