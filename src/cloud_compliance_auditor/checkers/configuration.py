"""Configuration management checkers: secure web app baseline and tag inventory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cloud_compliance_auditor.checkers.base import (
    CheckContext,
    aggregate_result,
    evaluate_aggregate,
    inspect_resources,
    not_applicable,
    require_parameter,
)
from cloud_compliance_auditor.exceptions import RuleContractError
from cloud_compliance_auditor.models import Resource, Rule, RuleResult
from cloud_compliance_auditor.values import as_bool, as_list, get_path, tls_at_least

if TYPE_CHECKING:
    from cloud_compliance_auditor.registry import CheckerRegistry

WEB_APP = "Microsoft.Web/sites"


def check_web_app_baseline(ctx: CheckContext, rule: Rule) -> RuleResult:
    minimum = str(rule.parameters.get("minimum_tls", "1.2"))

    def inspect(_: CheckContext, site: Resource) -> list[str]:
        config = get_path(site.properties, "siteConfig", {})
        failures = []
        if as_bool(get_path(config, "remoteDebuggingEnabled")):
            failures.append("remote debugging is enabled")
        ftps = str(get_path(config, "ftpsState", ""))
        if ftps.lower() == "allallowed":
            failures.append("FTP is allowed without TLS")
        tls = get_path(config, "minTlsVersion")
        if tls is not None and not tls_at_least(tls, minimum):
            failures.append(f"minimum TLS version is {tls}")
        if not as_bool(get_path(config, "http20Enabled")):
            failures.append("HTTP/2 is disabled")
        return failures

    return evaluate_aggregate(ctx, rule, [WEB_APP], inspect)


def _required_tags(rule: Rule) -> list[list[str]]:
    """Each required tag as a list of accepted key spellings."""
    groups = []
    for entry in as_list(require_parameter(rule, "required_tags")):
        names = [str(n) for n in as_list(entry) if str(n).strip()]
        if not names:
            raise RuleContractError(f"Rule {rule.id} has an empty required_tags entry", rule_id=rule.id)
        groups.append(names)
    return groups


def check_tag_inventory(ctx: CheckContext, rule: Rule) -> RuleResult:
    required = _required_tags(rule)
    resources = list(ctx.resources)
    if not resources:
        return not_applicable(ctx, rule, ["all resource types"])

    def inspect(_: CheckContext, resource: Resource) -> list[str]:
        present = {key.lower() for key in resource.tags}
        missing = [names[0] for names in required if not any(n.lower() in present for n in names)]
        return [f"missing tag(s) {', '.join(missing)}"] if missing else []

    outcomes = inspect_resources(ctx, resources, inspect, rehydrate=False)
    evaluated = [o for o in outcomes if o.evaluated]
    tagged = sum(1 for o in evaluated if not o.failures)
    pct = tagged * 100.0 / len(evaluated) if evaluated else 0.0
    summary = f"{tagged} of {len(evaluated)} resources carry every required tag ({pct:.1f}%)"
    return aggregate_result(ctx, rule, outcomes, summary=summary)


def register(registry: CheckerRegistry) -> None:
    registry.register("cm-6", check_web_app_baseline, families=("CM",))
    registry.register("cm-8", check_tag_inventory, families=("CM",))
