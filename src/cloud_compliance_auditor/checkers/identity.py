"""Identification and authentication checkers.

Tenant-wide identity settings (Conditional Access, PIM) are not visible
through the resource inventory, so those rules end in a manual review that
states exactly what to verify.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cloud_compliance_auditor.checkers.base import CheckContext, evaluate_per_resource, manual_review
from cloud_compliance_auditor.models import Resource, Rule, RuleResult
from cloud_compliance_auditor.values import get_path

if TYPE_CHECKING:
    from cloud_compliance_auditor.registry import CheckerRegistry

WEB_APP = "Microsoft.Web/sites"


def check_managed_identity(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, site: Resource) -> list[str]:
        identity_type = str(get_path(site.properties, "identity.type", "None"))
        if identity_type.lower() != "none":
            return []
        return ["no managed identity is assigned"]

    return evaluate_per_resource(ctx, rule, [WEB_APP], inspect)


def check_tenant_policy(ctx: CheckContext, rule: Rule) -> RuleResult:
    verify = rule.parameters.get("verify") or f"Verify {rule.title.lower()} in the identity tenant."
    return manual_review(ctx, rule, str(verify))


def register(registry: CheckerRegistry) -> None:
    registry.register("V-219275", check_managed_identity, families=("IA",))
    registry.register("V-219153", check_tenant_policy, families=("IA",))
    registry.register("V-219250", check_tenant_policy, families=("IA",))
