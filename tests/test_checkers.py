"""Tests for the built-in rule checkers and the shared checker helpers."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from conftest import FULL_TAGS, allow_rule, deny_all_rule, make_resource

from cloud_compliance_auditor.catalogue import JsonRuleCatalogue
from cloud_compliance_auditor.checkers.base import CheckContext, inspect_resources, require_parameter
from cloud_compliance_auditor.checkers.network import port_matches
from cloud_compliance_auditor.exceptions import AuditTimeoutError, RuleContractError
from cloud_compliance_auditor.inventory import SnapshotInventory
from cloud_compliance_auditor.models import Resource, Rule, RuleResult
from cloud_compliance_auditor.registry import CheckerRegistry

ContextFactory = Callable[..., CheckContext]


class FlakyInventory(SnapshotInventory):
    """Snapshot whose detail lookup times out for selected resource ids."""

    def __init__(self, resources: list[Resource], failing_ids: set[str]) -> None:
        super().__init__(resources)
        self.failing_ids = failing_ids

    def get_resource_detail(self, resource_id: str) -> Resource:
        if resource_id in self.failing_ids:
            raise AuditTimeoutError("Request timed out", details={"resource_id": resource_id})
        return super().get_resource_detail(resource_id)


@pytest.fixture
def run_rule(
    catalogue: JsonRuleCatalogue,
    registry: CheckerRegistry,
    make_context: ContextFactory,
) -> Callable[..., RuleResult]:
    def runner(rule_id: str, resources: list[Resource], inventory: SnapshotInventory | None = None) -> RuleResult:
        rule = catalogue.get_rule_by_id(rule_id)
        assert rule is not None
        return registry.dispatch(make_context(resources, inventory=inventory), rule)

    return runner


def _nsg(name: str, *rules: dict) -> Resource:
    return make_resource("nsg", name, {"securityRules": list(rules)})


def _statuses(result: RuleResult) -> list[str]:
    return [f.compliance_status for f in result.findings]


class TestHelpers:
    @pytest.mark.parametrize(
        ("expr", "port", "expected"),
        [("*", 22, True), ("22", 22, True), ("3389", 22, False), ("20-25", 22, True), ("1000-2000", 22, False)],
    )
    def test_port_matches(self, expr: str, port: int, expected: bool) -> None:
        assert port_matches(expr, port) is expected

    def test_require_parameter_missing(self) -> None:
        with pytest.raises(RuleContractError) as exc_info:
            require_parameter(Rule(id="sc-7", family="SC", title="t"), "management_ports")
        assert exc_info.value.rule_id == "sc-7"

    def test_inspect_resources_keeps_input_order(self, make_context: ContextFactory) -> None:
        resources = [_nsg(f"nsg-{i}") for i in range(12)]
        outcomes = inspect_resources(make_context(resources), resources, lambda ctx, r: [])
        assert [o.resource.name for o in outcomes] == [r.name for r in resources]

    def test_inspect_resources_skips_after_cancel(self, make_context: ContextFactory) -> None:
        resources = [_nsg("nsg-1"), _nsg("nsg-2")]
        ctx = make_context(resources)
        ctx.cancel_event.set()
        outcomes = inspect_resources(ctx, resources, lambda c, r: ["fail"])
        assert all(o.skipped for o in outcomes)

    def test_cancelled_rule_yields_scope_manual_review(
        self, catalogue: JsonRuleCatalogue, registry: CheckerRegistry, make_context: ContextFactory
    ) -> None:
        ctx = make_context([_nsg("nsg-1", allow_rule("ssh", "22")), _nsg("nsg-2")])
        ctx.cancel_event.set()
        result = registry.dispatch(ctx, catalogue.get_rule_by_id("sc-7"))
        assert result.partial is True
        assert result.total_checks == 0
        assert _statuses(result) == ["ManualReviewRequired"]
        assert result.findings[0].resource_type == "Scope"
        assert result.findings[0].evidence == "2 of 2 resources skipped"

    def test_contract_error_propagates_from_worker(self, make_context: ContextFactory) -> None:
        resources = [_nsg("nsg-1")]

        def broken(ctx: CheckContext, resource: Resource) -> list[str]:
            raise RuleContractError("broken rule", rule_id="x")

        with pytest.raises(RuleContractError):
            inspect_resources(make_context(resources), resources, broken)


class TestScenarios:
    def test_storage_without_https_is_high_noncompliant(self, run_rule: Callable[..., RuleResult]) -> None:
        account = make_resource("storage", "stlegacy", {"supportsHttpsTrafficOnly": False})
        result = run_rule("sc-8", [account])
        assert len(result.findings) == 1
        finding = result.findings[0]
        assert finding.severity == "High"
        assert finding.compliance_status == "NonCompliant"
        assert "stlegacy" in finding.evidence
        assert finding.remediation

    def test_no_vms_is_not_applicable(self, run_rule: Callable[..., RuleResult]) -> None:
        result = run_rule("V-219265", [make_resource("storage", "st1")])
        assert _statuses(result) == ["NotApplicable"]
        assert result.total_checks == 0

    def test_three_of_ten_nsgs_without_deny_all(self, run_rule: Callable[..., RuleResult]) -> None:
        nsgs = [_nsg(f"nsg-{i}", deny_all_rule()) for i in range(7)]
        nsgs += [_nsg(f"open-{i}", allow_rule("web", "443")) for i in range(3)]
        result = run_rule("V-219210", nsgs)
        assert result.total_checks == 10
        assert len(result.findings) == 3
        assert {f.severity for f in result.findings} == {"High"}
        assert {f.compliance_status for f in result.findings} == {"NonCompliant"}
        assert {f.resource_name for f in result.findings} == {"open-0", "open-1", "open-2"}

    def test_timeout_on_one_resource_is_confined(self, run_rule: Callable[..., RuleResult]) -> None:
        nsgs = [_nsg(f"nsg-{i}", deny_all_rule()) for i in range(10)]
        inventory = FlakyInventory(nsgs, {nsgs[4].id})
        result = run_rule("V-219210", nsgs, inventory=inventory)
        assert result.total_checks == 9
        manual = [f for f in result.findings if f.compliance_status == "ManualReviewRequired"]
        assert len(manual) == 1
        assert manual[0].resource_name == "nsg-4"
        assert "AuditTimeoutError" in manual[0].evidence
        assert "Compliant" in _statuses(result)


class TestNetworkCheckers:
    def test_management_port_exposed(self, run_rule: Callable[..., RuleResult]) -> None:
        nsg = _nsg("nsg-jump", allow_rule("ssh", "22"), allow_rule("rdp", "3380-3390", source="0.0.0.0/0"))
        result = run_rule("sc-7", [nsg])
        assert len(result.findings) == 1
        evidence = result.findings[0].evidence
        assert "port(s) 22" in evidence
        assert "3389" in evidence

    def test_management_port_from_private_source_passes(self, run_rule: Callable[..., RuleResult]) -> None:
        result = run_rule("sc-7", [_nsg("nsg-int", allow_rule("ssh", "22", source="10.0.0.0/8"))])
        assert _statuses(result) == ["Compliant"]

    def test_missing_port_parameter_is_contract_error(
        self, registry: CheckerRegistry, make_context: ContextFactory
    ) -> None:
        rule = Rule(id="sc-7", family="SC", title="Boundary Protection")
        with pytest.raises(RuleContractError):
            registry.dispatch(make_context([_nsg("nsg-1")]), rule)

    def test_any_port_inbound(self, run_rule: Callable[..., RuleResult]) -> None:
        result = run_rule("cm-7", [_nsg("nsg-any", allow_rule("all", "*", source="10.0.0.0/8"))])
        assert _statuses(result) == ["NonCompliant"]
        assert "all ports" in result.findings[0].evidence

    def test_vm_public_ip_via_nic(self, run_rule: Callable[..., RuleResult]) -> None:
        nic = make_resource(
            "nic",
            "vm1-nic",
            {"ipConfigurations": [{"name": "ipconfig1", "properties": {"publicIPAddress": {"id": "/pip/1"}}}]},
        )
        vm = make_resource("vm", "vm1", {"networkProfile": {"networkInterfaces": [{"id": nic.id}]}})
        result = run_rule("V-219187", [vm, nic])
        assert _statuses(result) == ["NonCompliant"]
        assert result.findings[0].severity == "Critical"
        assert "vm1-nic" in result.findings[0].evidence

    def test_firewall_threat_intel(self, run_rule: Callable[..., RuleResult]) -> None:
        ok = make_resource("firewall", "fw-ok", {"threatIntelMode": "Deny"})
        off = make_resource("firewall", "fw-off", {"threatIntelMode": "Off"})
        result = run_rule("V-219240", [ok, off])
        assert [f.resource_name for f in result.findings] == ["fw-off"]
        assert result.passed_checks == 1


class TestStorageCheckers:
    def test_missing_public_access_flag_fails(self, run_rule: Callable[..., RuleResult]) -> None:
        result = run_rule("V-219215", [make_resource("storage", "stold")])
        assert _statuses(result) == ["NonCompliant"]

    def test_private_endpoint_passes(self, run_rule: Callable[..., RuleResult]) -> None:
        account = make_resource("storage", "stpriv", {"privateEndpointConnections": [{"id": "/pe/1"}]})
        assert _statuses(run_rule("V-219245", [account])) == ["Compliant"]

    def test_key_vault_lists_each_failure(self, run_rule: Callable[..., RuleResult]) -> None:
        vault = make_resource("vault", "kv1", {"enableSoftDelete": True})
        result = run_rule("V-219178", [vault])
        assert result.findings[0].evidence == "purge protection is disabled"

    def test_blob_encryption(self, run_rule: Callable[..., RuleResult]) -> None:
        enc = make_resource("storage", "st1", {"encryption": {"services": {"blob": {"enabled": True}}}})
        assert _statuses(run_rule("V-219165", [enc])) == ["Compliant"]


class TestComputeAndDatabaseCheckers:
    def test_vm_encryption_at_host(self, run_rule: Callable[..., RuleResult]) -> None:
        vm = make_resource("vm", "vm1", {"securityProfile": {"encryptionAtHost": True}})
        assert _statuses(run_rule("V-219265", [vm])) == ["Compliant"]

    def test_aks_rbac_disabled(self, run_rule: Callable[..., RuleResult]) -> None:
        cluster = make_resource("aks", "aks1", {"enableRBAC": False})
        assert _statuses(run_rule("V-219230", [cluster])) == ["NonCompliant"]

    def test_sql_tls(self, run_rule: Callable[..., RuleResult]) -> None:
        old = make_resource("sql", "sql-old", {"minimalTlsVersion": "1.0"})
        new = make_resource("sql", "sql-new", {"minimalTlsVersion": "1.2"})
        result = run_rule("V-219201", [old, new])
        assert [f.resource_name for f in result.findings] == ["sql-old"]

    def test_sql_tde_is_manual_review(self, run_rule: Callable[..., RuleResult]) -> None:
        result = run_rule("V-219225", [make_resource("sql", "sql1")])
        assert _statuses(result) == ["ManualReviewRequired"]
        assert result.findings[0].severity == "High"
        assert "sql1" in result.findings[0].evidence

    def test_sql_tde_without_servers(self, run_rule: Callable[..., RuleResult]) -> None:
        assert _statuses(run_rule("V-219225", [])) == ["NotApplicable"]

    def test_cosmos_public_access(self, run_rule: Callable[..., RuleResult]) -> None:
        account = make_resource("cosmos", "cosmos1", {"publicNetworkAccess": "Enabled"})
        assert _statuses(run_rule("V-219305", [account])) == ["NonCompliant"]


class TestIdentityAndMonitoringCheckers:
    def test_managed_identity(self, run_rule: Callable[..., RuleResult]) -> None:
        site = make_resource("site", "app1", {"identity": {"type": "SystemAssigned"}})
        bare = make_resource("site", "app2")
        result = run_rule("V-219275", [site, bare])
        assert [f.resource_name for f in result.findings] == ["app2"]

    def test_mfa_states_what_to_verify(self, run_rule: Callable[..., RuleResult]) -> None:
        result = run_rule("V-219153", [])
        finding = result.findings[0]
        assert finding.compliance_status == "ManualReviewRequired"
        assert "Conditional Access" in finding.evidence

    @pytest.mark.parametrize(("days", "failing"), [(30, True), (90, False), (None, True)])
    def test_log_retention(self, run_rule: Callable[..., RuleResult], days: int | None, failing: bool) -> None:
        properties = {} if days is None else {"retentionInDays": days}
        result = run_rule("au-11", [make_resource("workspace", "law1", properties)])
        assert (_statuses(result) == ["NonCompliant"]) is failing

    def test_non_numeric_retention_parameter(self, registry: CheckerRegistry, make_context: ContextFactory) -> None:
        rule = Rule(id="au-11", family="AU", title="t", parameters={"min_retention_days": "a year"})
        with pytest.raises(RuleContractError):
            registry.dispatch(make_context([]), rule)


class TestAggregateCheckers:
    def test_transmission_mixes_resource_types(self, run_rule: Callable[..., RuleResult]) -> None:
        resources = [
            make_resource("storage", "st1", {"supportsHttpsTrafficOnly": True, "minimumTlsVersion": "TLS1_2"}),
            make_resource("site", "app1", {"httpsOnly": False, "siteConfig": {"minTlsVersion": "1.0"}}),
            make_resource("redis", "cache1", {"enableNonSslPort": True}),
            make_resource("sql", "sql1", {"minimalTlsVersion": "1.2"}),
        ]
        result = run_rule("sc-8", resources)
        assert result.total_checks == 1
        assert len(result.findings) == 1
        evidence = result.findings[0].evidence
        assert "app1: HTTPS only is disabled" in evidence
        assert "app1: minimum TLS version is 1.0" in evidence
        assert "cache1: non-TLS port 6379 is enabled" in evidence
        assert "st1" not in evidence
        assert result.findings[0].resource_type == "Multiple"

    def test_web_app_baseline_compliant(self, run_rule: Callable[..., RuleResult]) -> None:
        site = make_resource(
            "site",
            "app1",
            {"siteConfig": {"remoteDebuggingEnabled": False, "ftpsState": "FtpsOnly", "http20Enabled": True}},
        )
        result = run_rule("cm-6", [site])
        assert _statuses(result) == ["Compliant"]
        assert result.findings[0].title.endswith("(compliant)")


class TestTagInventory:
    def _resources(self, untagged: int, total: int = 10) -> list[Resource]:
        tagged = [make_resource("storage", f"st{i}") for i in range(total - untagged)]
        bare = [make_resource("vm", f"vm{i}", tags={"Owner": "x"}) for i in range(untagged)]
        return tagged + bare

    def test_all_tagged(self, run_rule: Callable[..., RuleResult]) -> None:
        result = run_rule("cm-8", self._resources(0))
        assert _statuses(result) == ["Compliant"]
        assert "10 of 10" in result.findings[0].evidence

    def test_ten_percent_untagged_is_partial(self, run_rule: Callable[..., RuleResult]) -> None:
        finding = run_rule("cm-8", self._resources(1)).findings[0]
        assert finding.compliance_status == "PartiallyCompliant"
        assert finding.severity == "Medium"
        assert "missing tag(s) Environment, Application" in finding.evidence

    def test_thirty_percent_untagged_is_noncompliant(self, run_rule: Callable[..., RuleResult]) -> None:
        finding = run_rule("cm-8", self._resources(3)).findings[0]
        assert finding.compliance_status == "NonCompliant"
        assert finding.severity == "High"

    def test_alternate_tag_spelling(self, run_rule: Callable[..., RuleResult]) -> None:
        tags = {**{k: v for k, v in FULL_TAGS.items() if k != "Application"}, "app": "billing"}
        result = run_rule("cm-8", [make_resource("storage", "st1", tags=tags)])
        assert _statuses(result) == ["Compliant"]

    def test_no_resources(self, run_rule: Callable[..., RuleResult]) -> None:
        assert _statuses(run_rule("cm-8", [])) == ["NotApplicable"]


class TestCheckAccounting:
    @pytest.mark.parametrize(("failing", "total"), [(0, 4), (1, 4), (4, 4), (3, 10)])
    def test_passed_plus_failing_is_total(
        self, run_rule: Callable[..., RuleResult], failing: int, total: int
    ) -> None:
        nsgs = [_nsg(f"bad-{i}") for i in range(failing)]
        nsgs += [_nsg(f"good-{i}", deny_all_rule()) for i in range(total - failing)]
        result = run_rule("V-219210", nsgs)
        failing_findings = sum(1 for f in result.findings if f.is_failing)
        assert result.total_checks == total
        assert failing_findings == failing
        assert result.passed_checks + failing_findings == result.total_checks
