"""Shared building blocks for rule checkers.

A checker is a callable ``(ctx, rule) -> RuleResult``. It filters the scan
snapshot to the resource types it understands, inspects each resource
(rehydrated through the inventory adapter), and turns the outcome into
Findings with the helpers below. Severity and status always come from
``classifier.classify`` so bands are consistent across the catalogue.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any

from cloud_compliance_auditor.classifier import classify
from cloud_compliance_auditor.exceptions import RuleContractError
from cloud_compliance_auditor.inventory import ResourceInventory
from cloud_compliance_auditor.models import (
    ComplianceStatus,
    Finding,
    Resource,
    Rule,
    RuleResult,
    Scope,
    Severity,
    finding_id,
    normalize_id,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckContext:
    """Everything a checker may read during one scan."""

    scope: Scope
    resources: tuple[Resource, ...]
    inventory: ResourceInventory
    max_workers: int = 8
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def of_type(self, *types: str) -> list[Resource]:
        """Snapshot resources whose type matches any of ``types`` (case-insensitive)."""
        wanted = {t.lower() for t in types}
        return [r for r in self.resources if r.type.lower() in wanted]


@dataclass
class Inspection:
    """Outcome of inspecting one resource."""

    resource: Resource
    failures: list[str] = field(default_factory=list)
    error: str | None = None
    skipped: bool = False

    @property
    def evaluated(self) -> bool:
        return not self.skipped and self.error is None

    @property
    def failed(self) -> bool:
        return self.evaluated and bool(self.failures)


Inspector = Callable[[CheckContext, Resource], Iterable[str]]
Checker = Callable[[CheckContext, Rule], RuleResult]


def require_parameter(rule: Rule, name: str) -> Any:
    """Return a rule parameter, raising ``RuleContractError`` when it is absent."""
    value = rule.parameters.get(name)
    if value is None:
        raise RuleContractError(
            f"Rule {rule.id} is missing required parameter '{name}'",
            rule_id=rule.id,
        )
    return value


def inspect_resources(
    ctx: CheckContext,
    resources: Sequence[Resource],
    inspect: Inspector,
    rehydrate: bool = True,
) -> list[Inspection]:
    """Inspect every resource on a bounded worker pool.

    Each resource is fetched with ``get_resource_detail`` (unless
    ``rehydrate`` is False) and passed to ``inspect``, which yields one
    failure reason per violated condition. Any exception other than a
    ``RuleContractError`` is confined to that resource. Once the scan is
    cancelled, tasks that have not started yet are skipped.

    Returns:
        One Inspection per input resource, in input order.
    """
    if not resources:
        return []

    def run(resource: Resource) -> Inspection:
        if ctx.cancelled:
            return Inspection(resource, skipped=True)
        try:
            detail = ctx.inventory.get_resource_detail(resource.id) if rehydrate else resource
            failures = [reason for reason in inspect(ctx, detail) if reason]
        except RuleContractError:
            raise
        except Exception as exc:
            logger.warning("Could not inspect %s: %s", resource.id, exc)
            return Inspection(resource, error=f"{type(exc).__name__}: {exc}")
        return Inspection(resource, failures=failures)

    outcomes: list[Inspection | None] = [None] * len(resources)
    workers = max(1, min(ctx.max_workers, len(resources)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_index = {executor.submit(run, resource): index for index, resource in enumerate(resources)}
        for future in as_completed(future_to_index):
            outcomes[future_to_index[future]] = future.result()
    return [o for o in outcomes if o is not None]


def build_finding(
    rule: Rule,
    *,
    resource_id: str,
    resource_type: str,
    resource_name: str,
    title: str,
    severity: Severity,
    status: ComplianceStatus,
    description: str = "",
    evidence: str = "",
) -> Finding:
    needs_action = status in ("NonCompliant", "PartiallyCompliant", "ManualReviewRequired")
    return Finding(
        id=finding_id(rule.id, resource_id, title),
        resource_id=resource_id,
        resource_type=resource_type,
        resource_name=resource_name,
        rule_id=rule.id,
        family=normalize_id(rule.family),
        category=rule.category,
        title=title,
        description=description or rule.description,
        severity=severity,
        compliance_status=status,
        evidence=evidence,
        remediation=rule.remediation_text if needs_action else "",
        mapped_controls=list(rule.mapped_controls),
        mapped_frameworks=list(rule.mapped_frameworks),
    )


def scope_finding(
    ctx: CheckContext,
    rule: Rule,
    *,
    title: str,
    severity: Severity,
    status: ComplianceStatus,
    description: str = "",
    evidence: str = "",
    resource_type: str = "Multiple",
) -> Finding:
    """Finding attached to the scope rather than to a single resource."""
    return build_finding(
        rule,
        resource_id=ctx.scope.resource_id,
        resource_type=resource_type,
        resource_name=ctx.scope.group or ctx.scope.account_id,
        title=title,
        severity=severity,
        status=status,
        description=description,
        evidence=evidence,
    )


def not_applicable(ctx: CheckContext, rule: Rule, types: Sequence[str]) -> RuleResult:
    kinds = ", ".join(t.split("/")[-1] for t in types) or "applicable resources"
    finding = scope_finding(
        ctx,
        rule,
        title=f"{rule.title}: no applicable resources",
        severity="Informational",
        status="NotApplicable",
        description=f"No {kinds} found in {ctx.scope.label}.",
        evidence=f"0 resources of type {', '.join(types)}",
    )
    return RuleResult(rule_id=rule.id, findings=[finding], total_checks=0)


def manual_review(
    ctx: CheckContext,
    rule: Rule,
    what_to_verify: str,
    severity: Severity | None = None,
) -> RuleResult:
    """Terminal outcome for rules this data source cannot evaluate."""
    finding = scope_finding(
        ctx,
        rule,
        title=f"{rule.title}: manual review required",
        severity=severity or rule.severity,
        status="ManualReviewRequired",
        description=f"Rule {rule.id} cannot be evaluated automatically for {ctx.scope.label}.",
        evidence=what_to_verify,
        resource_type="Scope",
    )
    return RuleResult(rule_id=rule.id, findings=[finding], total_checks=0)


def _error_findings(rule: Rule, outcomes: Sequence[Inspection]) -> list[Finding]:
    return [
        build_finding(
            rule,
            resource_id=o.resource.id,
            resource_type=o.resource.type,
            resource_name=o.resource.name,
            title=f"{rule.title}: resource could not be evaluated",
            severity="Informational",
            status="ManualReviewRequired",
            description=f"Configuration of {o.resource.name} could not be retrieved or parsed; verify it manually.",
            evidence=o.error or "",
        )
        for o in outcomes
        if o.error is not None
    ]


def _cancelled_finding(ctx: CheckContext, rule: Rule, outcomes: Sequence[Inspection]) -> Finding:
    skipped = sum(1 for o in outcomes if o.skipped)
    return scope_finding(
        ctx,
        rule,
        title=f"{rule.title}: evaluation cancelled",
        severity="Informational",
        status="ManualReviewRequired",
        description=f"The scan was cancelled before rule {rule.id} evaluated any resource in {ctx.scope.label}.",
        evidence=f"{skipped} of {len(outcomes)} resources skipped",
        resource_type="Scope",
    )


def per_resource_result(
    ctx: CheckContext,
    rule: Rule,
    types: Sequence[str],
    outcomes: Sequence[Inspection],
) -> RuleResult:
    """One finding per failing resource, plus a scope-level pass when nothing fails."""
    evaluated = [o for o in outcomes if o.evaluated]
    failing = [o for o in evaluated if o.failures]
    severity, status = classify(len(failing), len(evaluated), rule)

    findings = [
        build_finding(
            rule,
            resource_id=o.resource.id,
            resource_type=o.resource.type,
            resource_name=o.resource.name,
            title=rule.title,
            severity=severity,
            status=status,
            evidence="; ".join(o.failures),
        )
        for o in failing
    ]
    findings.extend(_error_findings(rule, outcomes))
    if evaluated and not failing:
        findings.append(scope_finding(
            ctx,
            rule,
            title=f"{rule.title} (compliant)",
            severity="Informational",
            status="Compliant",
            description=f"All {len(evaluated)} evaluated resources satisfy the rule.",
            evidence=f"{len(evaluated)} of {len(evaluated)} {'/'.join(t.split('/')[-1] for t in types)} pass",
            resource_type=types[0] if len(types) == 1 else "Multiple",
        ))
    skipped = any(o.skipped for o in outcomes)
    if skipped and not findings:
        findings.append(_cancelled_finding(ctx, rule, outcomes))
    return RuleResult(
        rule_id=rule.id,
        findings=findings,
        total_checks=len(evaluated),
        partial=skipped,
    )


def aggregate_result(
    ctx: CheckContext,
    rule: Rule,
    outcomes: Sequence[Inspection],
    summary: str = "",
) -> RuleResult:
    """Merge every failing resource into one scope-level finding with itemized evidence."""
    evaluated = [o for o in outcomes if o.evaluated]
    failing = [o for o in evaluated if o.failures]
    severity, status = classify(len(failing), len(evaluated), rule)

    findings: list[Finding] = []
    if evaluated:
        if failing:
            lines = [f"{o.resource.name}: {reason}" for o in failing for reason in o.failures]
            evidence = "\n".join(([summary] if summary else []) + lines)
            description = f"{len(failing)} of {len(evaluated)} resources fail one or more checks."
        else:
            evidence = summary or f"{len(evaluated)} of {len(evaluated)} resources pass every check"
            description = f"All {len(evaluated)} evaluated resources satisfy the rule."
        title = rule.title if status != "Compliant" else f"{rule.title} (compliant)"
        findings.append(scope_finding(
            ctx,
            rule,
            title=title,
            severity=severity,
            status=status,
            description=description,
            evidence=evidence,
        ))
    findings.extend(_error_findings(rule, outcomes))
    skipped = any(o.skipped for o in outcomes)
    if skipped and not findings:
        findings.append(_cancelled_finding(ctx, rule, outcomes))
    return RuleResult(
        rule_id=rule.id,
        findings=findings,
        total_checks=1 if evaluated else 0,
        partial=skipped,
    )


def evaluate_per_resource(ctx: CheckContext, rule: Rule, types: Sequence[str], inspect: Inspector) -> RuleResult:
    """Filter, inspect, and report a hard per-resource rule."""
    resources = ctx.of_type(*types)
    if not resources:
        return not_applicable(ctx, rule, types)
    return per_resource_result(ctx, rule, types, inspect_resources(ctx, resources, inspect))


def evaluate_aggregate(ctx: CheckContext, rule: Rule, types: Sequence[str], inspect: Inspector) -> RuleResult:
    """Filter, inspect, and report a rule whose failures merge into one finding."""
    resources = ctx.of_type(*types)
    if not resources:
        return not_applicable(ctx, rule, types)
    return aggregate_result(ctx, rule, inspect_resources(ctx, resources, inspect))
