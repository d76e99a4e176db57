"""Audit log retention and threat-protection checkers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cloud_compliance_auditor.checkers.base import (
    CheckContext,
    evaluate_per_resource,
    manual_review,
    require_parameter,
)
from cloud_compliance_auditor.exceptions import RuleContractError
from cloud_compliance_auditor.models import Resource, Rule, RuleResult
from cloud_compliance_auditor.values import get_path

if TYPE_CHECKING:
    from cloud_compliance_auditor.registry import CheckerRegistry

WORKSPACE = "Microsoft.OperationalInsights/workspaces"


def check_log_retention(ctx: CheckContext, rule: Rule) -> RuleResult:
    try:
        minimum = int(require_parameter(rule, "min_retention_days"))
    except (TypeError, ValueError) as exc:
        raise RuleContractError(f"Rule {rule.id} has a non-numeric min_retention_days", rule_id=rule.id) from exc

    def inspect(_: CheckContext, workspace: Resource) -> list[str]:
        days = get_path(workspace.properties, "retentionInDays")
        if days is None:
            return [f"retention is not configured (minimum {minimum} days)"]
        if int(days) < minimum:
            return [f"retention is {int(days)} days (minimum {minimum})"]
        return []

    return evaluate_per_resource(ctx, rule, [WORKSPACE], inspect)


def check_defender_plans(ctx: CheckContext, rule: Rule) -> RuleResult:
    verify = rule.parameters.get("verify") or "Verify Defender for Cloud plans cover every resource type in scope."
    return manual_review(ctx, rule, str(verify))


def register(registry: CheckerRegistry) -> None:
    registry.register("au-11", check_log_retention, families=("AU",))
    registry.register("V-219260", check_log_retention, families=("AU",))
    registry.register("V-219280", check_defender_plans, families=("SI",))
