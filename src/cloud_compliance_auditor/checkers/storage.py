"""Storage account and key vault checkers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cloud_compliance_auditor.checkers.base import CheckContext, evaluate_per_resource
from cloud_compliance_auditor.models import Resource, Rule, RuleResult
from cloud_compliance_auditor.values import as_bool, as_list, get_path

if TYPE_CHECKING:
    from cloud_compliance_auditor.registry import CheckerRegistry

STORAGE_ACCOUNT = "Microsoft.Storage/storageAccounts"
KEY_VAULT = "Microsoft.KeyVault/vaults"


def has_private_endpoint(resource: Resource) -> bool:
    return bool(as_list(get_path(resource.properties, "privateEndpointConnections")))


def check_blob_encryption(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, account: Resource) -> list[str]:
        if as_bool(get_path(account.properties, "encryption.services.blob.enabled")):
            return []
        return ["blob service encryption is not enabled"]

    return evaluate_per_resource(ctx, rule, [STORAGE_ACCOUNT], inspect)


def check_public_blob_access(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, account: Resource) -> list[str]:
        # Accounts created before the property existed allow public access
        if as_bool(get_path(account.properties, "allowBlobPublicAccess"), default=True):
            return ["public blob access is allowed"]
        return []

    return evaluate_per_resource(ctx, rule, [STORAGE_ACCOUNT], inspect)


def check_storage_private_access(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, account: Resource) -> list[str]:
        if has_private_endpoint(account):
            return []
        action = str(get_path(account.properties, "networkAcls.defaultAction", "Allow"))
        if action.lower() == "deny":
            return []
        return [f"no private endpoint and network default action is '{action}'"]

    return evaluate_per_resource(ctx, rule, [STORAGE_ACCOUNT], inspect)


def check_key_vault_recovery(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, vault: Resource) -> list[str]:
        failures = []
        if not as_bool(get_path(vault.properties, "enableSoftDelete")):
            failures.append("soft delete is disabled")
        if not as_bool(get_path(vault.properties, "enablePurgeProtection")):
            failures.append("purge protection is disabled")
        return failures

    return evaluate_per_resource(ctx, rule, [KEY_VAULT], inspect)


def register(registry: CheckerRegistry) -> None:
    registry.register("V-219165", check_blob_encryption, families=("SC",))
    registry.register("V-219215", check_public_blob_access, families=("AC",))
    registry.register("V-219245", check_storage_private_access, families=("SC", "AC"))
    registry.register("V-219178", check_key_vault_recovery, families=("SC",))
