"""SQL server and Cosmos DB checkers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cloud_compliance_auditor.checkers.base import (
    CheckContext,
    evaluate_per_resource,
    manual_review,
    not_applicable,
)
from cloud_compliance_auditor.checkers.storage import has_private_endpoint
from cloud_compliance_auditor.models import Resource, Rule, RuleResult
from cloud_compliance_auditor.values import get_path, tls_at_least

if TYPE_CHECKING:
    from cloud_compliance_auditor.registry import CheckerRegistry

SQL_SERVER = "Microsoft.Sql/servers"
COSMOS_ACCOUNT = "Microsoft.DocumentDB/databaseAccounts"


def check_sql_tls(ctx: CheckContext, rule: Rule) -> RuleResult:
    minimum = str(rule.parameters.get("minimum_tls", "1.2"))

    def inspect(_: CheckContext, server: Resource) -> list[str]:
        version = get_path(server.properties, "minimalTlsVersion")
        if tls_at_least(version, minimum):
            return []
        return [f"minimal TLS version is '{version or 'not set'}'"]

    return evaluate_per_resource(ctx, rule, [SQL_SERVER], inspect)


def check_sql_tde(ctx: CheckContext, rule: Rule) -> RuleResult:
    servers = ctx.of_type(SQL_SERVER)
    if not servers:
        return not_applicable(ctx, rule, [SQL_SERVER])
    names = ", ".join(s.name for s in servers)
    return manual_review(
        ctx,
        rule,
        f"Transparent data encryption is configured per database. Verify TDE is enabled on every "
        f"user database of: {names}.",
    )


def check_cosmos_network(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, account: Resource) -> list[str]:
        access = str(get_path(account.properties, "publicNetworkAccess", "Enabled"))
        if access.lower() == "disabled" or has_private_endpoint(account):
            return []
        return [f"public network access is '{access}' and no private endpoint exists"]

    return evaluate_per_resource(ctx, rule, [COSMOS_ACCOUNT], inspect)


def check_cosmos_cmk(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, account: Resource) -> list[str]:
        if get_path(account.properties, "keyVaultKeyUri"):
            return []
        return ["data is encrypted with service-managed keys only"]

    return evaluate_per_resource(ctx, rule, [COSMOS_ACCOUNT], inspect)


def register(registry: CheckerRegistry) -> None:
    registry.register("V-219201", check_sql_tls, families=("SC",))
    registry.register("V-219225", check_sql_tde, families=("SC",))
    registry.register("V-219305", check_cosmos_network, families=("SC",))
    registry.register("V-219310", check_cosmos_cmk, families=("SC",))
