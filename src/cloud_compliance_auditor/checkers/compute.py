"""Virtual machine and managed Kubernetes checkers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cloud_compliance_auditor.checkers.base import CheckContext, evaluate_per_resource
from cloud_compliance_auditor.models import Resource, Rule, RuleResult
from cloud_compliance_auditor.values import as_bool, get_path

if TYPE_CHECKING:
    from cloud_compliance_auditor.registry import CheckerRegistry

VIRTUAL_MACHINE = "Microsoft.Compute/virtualMachines"
MANAGED_CLUSTER = "Microsoft.ContainerService/managedClusters"


def check_vm_disk_encryption(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, vm: Resource) -> list[str]:
        props = vm.properties
        if as_bool(get_path(props, "securityProfile.encryptionAtHost")):
            return []
        if get_path(props, "storageProfile.osDisk.managedDisk.diskEncryptionSet.id"):
            return []
        return ["OS disk has neither encryption at host nor a disk encryption set"]

    return evaluate_per_resource(ctx, rule, [VIRTUAL_MACHINE], inspect)


def check_aks_rbac(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, cluster: Resource) -> list[str]:
        if as_bool(get_path(cluster.properties, "enableRBAC")):
            return []
        return ["Kubernetes RBAC is disabled"]

    return evaluate_per_resource(ctx, rule, [MANAGED_CLUSTER], inspect)


def check_aks_private_api(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, cluster: Resource) -> list[str]:
        if as_bool(get_path(cluster.properties, "apiServerAccessProfile.enablePrivateCluster")):
            return []
        return ["API server is exposed on a public endpoint"]

    return evaluate_per_resource(ctx, rule, [MANAGED_CLUSTER], inspect)


def register(registry: CheckerRegistry) -> None:
    registry.register("V-219265", check_vm_disk_encryption, families=("SC",))
    registry.register("V-219230", check_aks_rbac, families=("AC",))
    registry.register("V-219235", check_aks_private_api, families=("SC", "AC"))
