"""Network boundary checkers: NSG rules, VM public exposure, firewall threat intel."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from cloud_compliance_auditor.checkers.base import (
    CheckContext,
    evaluate_per_resource,
    require_parameter,
)
from cloud_compliance_auditor.models import Resource, Rule, RuleResult
from cloud_compliance_auditor.values import as_list, get_path

if TYPE_CHECKING:
    from cloud_compliance_auditor.registry import CheckerRegistry

NSG = "Microsoft.Network/networkSecurityGroups"
VIRTUAL_MACHINE = "Microsoft.Compute/virtualMachines"
FIREWALL = "Microsoft.Network/azureFirewalls"

INTERNET_SOURCES = {"*", "internet", "0.0.0.0/0", "any"}


def security_rules(nsg: Resource) -> Iterator[dict[str, Any]]:
    """Yield the custom security rules of an NSG with their properties flattened."""
    for entry in as_list(get_path(nsg.properties, "securityRules")):
        if not isinstance(entry, dict):
            continue
        props = entry.get("properties") if isinstance(entry.get("properties"), dict) else entry
        yield {"name": entry.get("name", props.get("name", "")), **props}


def _values(props: dict[str, Any], single: str, plural: str) -> list[str]:
    found = [str(v) for v in as_list(get_path(props, plural))]
    one = get_path(props, single)
    if one is not None:
        found.append(str(one))
    return found


def _is_inbound(props: dict[str, Any], access: str) -> bool:
    return (
        str(get_path(props, "direction", "")).lower() == "inbound"
        and str(get_path(props, "access", "")).lower() == access
    )


def _from_internet(props: dict[str, Any]) -> bool:
    sources = _values(props, "sourceAddressPrefix", "sourceAddressPrefixes")
    return any(s.strip().lower() in INTERNET_SOURCES for s in sources)


def _port_ranges(props: dict[str, Any]) -> list[str]:
    return _values(props, "destinationPortRange", "destinationPortRanges")


def port_matches(port_range: str, port: int) -> bool:
    """True when ``port`` falls inside an NSG port expression (``*``, ``22`` or ``20-25``)."""
    text = port_range.strip()
    if text == "*":
        return True
    if "-" in text:
        low, _, high = text.partition("-")
        if low.strip().isdigit() and high.strip().isdigit():
            return int(low) <= port <= int(high)
        return False
    return text.isdigit() and int(text) == port


def check_deny_all_inbound(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, nsg: Resource) -> list[str]:
        for props in security_rules(nsg):
            if _is_inbound(props, "deny") and _from_internet(props):
                return []
        return ["no inbound Deny rule with source '*' or 'Internet'"]

    return evaluate_per_resource(ctx, rule, [NSG], inspect)


def check_management_ports(ctx: CheckContext, rule: Rule) -> RuleResult:
    ports = [int(p) for p in as_list(require_parameter(rule, "management_ports"))]

    def inspect(_: CheckContext, nsg: Resource) -> list[str]:
        failures = []
        for props in security_rules(nsg):
            if not (_is_inbound(props, "allow") and _from_internet(props)):
                continue
            exposed = sorted({p for p in ports for r in _port_ranges(props) if port_matches(r, p)})
            if exposed:
                failures.append(
                    f"rule '{props['name']}' allows internet traffic to port(s) {', '.join(map(str, exposed))}"
                )
        return failures

    return evaluate_per_resource(ctx, rule, [NSG], inspect)


def check_any_port_inbound(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, nsg: Resource) -> list[str]:
        return [
            f"rule '{props['name']}' allows inbound traffic on all ports"
            for props in security_rules(nsg)
            if _is_inbound(props, "allow") and any(r.strip() == "*" for r in _port_ranges(props))
        ]

    return evaluate_per_resource(ctx, rule, [NSG], inspect)


def check_vm_public_ip(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(context: CheckContext, vm: Resource) -> list[str]:
        failures = []
        for nic_ref in as_list(get_path(vm.properties, "networkProfile.networkInterfaces")):
            nic_id = get_path(nic_ref, "id")
            if not nic_id:
                continue
            nic = context.inventory.get_resource_detail(nic_id)
            for ip_config in as_list(get_path(nic.properties, "ipConfigurations")):
                if get_path(ip_config, "properties.publicIPAddress") or get_path(ip_config, "publicIPAddress"):
                    failures.append(f"NIC {nic.name} has a public IP address attached")
        return failures

    return evaluate_per_resource(ctx, rule, [VIRTUAL_MACHINE], inspect)


def check_firewall_threat_intel(ctx: CheckContext, rule: Rule) -> RuleResult:
    def inspect(_: CheckContext, firewall: Resource) -> list[str]:
        mode = str(get_path(firewall.properties, "threatIntelMode", "Off"))
        if mode.lower() in {"alert", "deny"}:
            return []
        return [f"threat intelligence mode is '{mode}'"]

    return evaluate_per_resource(ctx, rule, [FIREWALL], inspect)


def register(registry: CheckerRegistry) -> None:
    registry.register("V-219187", check_vm_public_ip, families=("AC", "SC"))
    registry.register("V-219210", check_deny_all_inbound, families=("SC",))
    registry.register("sc-7", check_management_ports, families=("SC",))
    registry.register("V-219240", check_firewall_threat_intel, families=("SC",))
    registry.register("cm-7", check_any_port_inbound, families=("CM",))
