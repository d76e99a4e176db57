"""Core audit engine that orchestrates rule evaluation and result aggregation.

The AuditEngine loads the resource snapshot for a scope, dispatches every
catalogued rule of each requested control family to its checker, enriches
the findings, and folds rule results into domain results and an Assessment.
Failures are contained at the narrowest level that can absorb them: the
resource, the rule, or the family. Only a total inventory outage fails a
scan.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import UTC, datetime

from cloud_compliance_auditor.checkers.base import CheckContext, scope_finding
from cloud_compliance_auditor.config import AuditConfig
from cloud_compliance_auditor.enrichment import enrich
from cloud_compliance_auditor.exceptions import CatalogueUnavailableError, InventoryUnavailableError
from cloud_compliance_auditor.inventory import EvidenceSink, ResourceInventory, RuleCatalogue
from cloud_compliance_auditor.models import (
    Assessment,
    DomainResult,
    Finding,
    Resource,
    Rule,
    RuleResult,
    Scope,
    normalize_id,
)
from cloud_compliance_auditor.registry import CheckerRegistry, build_default_registry
from cloud_compliance_auditor.scoring import ComplianceScorer, aggregate_assessment

logger = logging.getLogger(__name__)


def placeholder_rule(rule_id: str) -> Rule:
    """Stand-in metadata for a rule id the catalogue does not know."""
    key = normalize_id(rule_id)
    family = key.split("-", 1)[0] if "-" in key else key
    return Rule(
        id=key,
        family=family or key,
        title=f"Uncatalogued rule {key}",
        description=f"Rule {key} is not present in the rule catalogue.",
        severity="Informational",
        mapped_controls=[key],
    )


class AuditEngine:
    """Evaluates catalogued rules against a scope's resource snapshot."""

    def __init__(
        self,
        config: AuditConfig,
        inventory: ResourceInventory,
        catalogue: RuleCatalogue,
        registry: CheckerRegistry | None = None,
        evidence_sink: EvidenceSink | None = None,
    ) -> None:
        self.config = config
        self.inventory = inventory
        self.catalogue = catalogue
        self.registry = registry or build_default_registry()
        self.evidence_sink = evidence_sink
        self.scorer = ComplianceScorer()

    def load_snapshot(self, scope: Scope) -> tuple[Resource, ...]:
        """List every resource in ``scope``.

        Raises:
            InventoryUnavailableError: If the inventory cannot be listed at all.
        """
        try:
            resources = self.inventory.list_resources(scope)
        except Exception as exc:
            logger.error("Inventory unavailable for %s: %s", scope.label, exc)
            raise InventoryUnavailableError(
                f"Cannot list resources for {scope.label}: {exc}",
                details={"account_id": scope.account_id, "group": scope.group},
            ) from exc
        logger.info("Loaded %d resources for %s", len(resources), scope.label)
        return tuple(resources)

    def context(
        self,
        scope: Scope,
        resources: tuple[Resource, ...] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> CheckContext:
        if resources is None:
            resources = self.load_snapshot(scope)
        return CheckContext(
            scope=scope,
            resources=resources,
            inventory=self.inventory,
            max_workers=self.config.scan_max_workers,
            cancel_event=cancel_event or threading.Event(),
        )

    def resolve_rule(self, rule: Rule | str) -> Rule:
        if isinstance(rule, Rule):
            return rule
        found = self.catalogue.get_rule_by_id(rule)
        if found is None:
            logger.info("Rule %s is not catalogued; using placeholder metadata", rule)
            return placeholder_rule(rule)
        return found

    def evaluate_rule(self, ctx: CheckContext, rule: Rule) -> RuleResult:
        """Dispatch one rule and enrich its findings.

        Any exception escaping the checker is a contract violation: it is
        logged and the rule is reported with ``error`` set and no findings.
        """
        try:
            result = self.registry.dispatch(ctx, rule)
        except Exception as exc:
            logger.exception("Rule %s aborted", rule.id)
            return RuleResult(rule_id=rule.id, error=f"{type(exc).__name__}: {exc}")
        return result.model_copy(update={"findings": [enrich(f, rule) for f in result.findings]})

    def scan_control(
        self,
        scope: Scope,
        rule: Rule | str,
        resources: tuple[Resource, ...] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RuleResult:
        """Evaluate a single rule (or rule id, in any case) over ``scope``."""
        ctx = self.context(scope, resources, cancel_event)
        return self.evaluate_rule(ctx, self.resolve_rule(rule))

    def dispatch(self, scope: Scope, rule: Rule | str, resources: tuple[Resource, ...] | None = None) -> list[Finding]:
        return self.scan_control(scope, rule, resources).findings

    def _catalogue_unavailable(self, ctx: CheckContext, family: str, name: str, exc: Exception) -> DomainResult:
        rule = Rule(id=family, family=family, title=f"{name} control family", mapped_controls=[family])
        finding = scope_finding(
            ctx,
            rule,
            title=f"{family}: rule catalogue unavailable",
            severity="Informational",
            status="ManualReviewRequired",
            description=f"Rules for control family {family} could not be loaded; the family was not evaluated.",
            evidence=str(exc),
            resource_type="Scope",
        )
        return self.scorer.aggregate_domain(family, [enrich(finding, rule)], 0, name=name)

    def _rejected_rule(self, ctx: CheckContext, family: str, rule_id: str) -> RuleResult:
        rule = Rule(id=rule_id, family=family, title=f"Catalogue rule {rule_id}",
                    mapped_controls=[normalize_id(rule_id)])
        finding = scope_finding(
            ctx,
            rule,
            title=f"{rule_id}: rule rejected by catalogue validation",
            severity="Informational",
            status="ManualReviewRequired",
            description=f"Catalogue entry {rule_id} is invalid and was not evaluated; fix the entry or "
                        f"verify the control manually.",
            evidence=f"family {family}",
            resource_type="Scope",
        )
        return RuleResult(rule_id=rule_id, findings=[enrich(finding, rule)], total_checks=0)

    def _scan_family(self, ctx: CheckContext, family: str) -> tuple[DomainResult, list[str]]:
        code = normalize_id(family)
        name = self.catalogue.family_info(code).get("name", code)
        try:
            rules = self.catalogue.get_rules_for_family(code)
        except CatalogueUnavailableError as exc:
            logger.warning("Catalogue unavailable for family %s: %s", code, exc)
            return self._catalogue_unavailable(ctx, code, name, exc), [f"{code}: {exc}"]

        logger.info("Scanning family %s (%d rules) in %s", code, len(rules), ctx.scope.label)
        results: list[RuleResult] = []
        errors: list[str] = []
        for rule_id in self.catalogue.rejected_for_family(code):
            logger.warning("Family %s: catalogue rule %s was rejected and is reported for manual review",
                           code, rule_id)
            errors.append(f"{rule_id}: rejected by catalogue validation")
            results.append(self._rejected_rule(ctx, code, rule_id))
        interrupted = False
        for rule in rules:
            if ctx.cancelled:
                interrupted = True
                break
            result = self.evaluate_rule(ctx, rule)
            if result.error:
                errors.append(f"{rule.id}: {result.error}")
            results.append(result)

        domain = self.scorer.aggregate_rule_results(code, results, name=name)
        if interrupted and not domain.partial:
            domain = domain.model_copy(update={"partial": True})
        return domain, errors

    def scan_family(
        self,
        scope: Scope,
        family: str,
        resources: tuple[Resource, ...] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> DomainResult:
        """Evaluate every catalogued rule of one control family."""
        ctx = self.context(scope, resources, cancel_event)
        domain, _ = self._scan_family(ctx, family)
        return domain

    def run_assessment(
        self,
        scope: Scope,
        families: list[str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Assessment:
        """Run a full assessment over ``families`` (all catalogued families by default).

        Families run concurrently on a bounded pool. Setting ``cancel_event``
        stops new families and queued resource inspections; the Assessment
        is still returned, with status ``partial``.

        Raises:
            InventoryUnavailableError: If the scope's resources cannot be listed.
        """
        started = datetime.now(UTC)
        ctx = self.context(scope, cancel_event=cancel_event)
        codes = list(dict.fromkeys(normalize_id(f) for f in (families or self.catalogue.families())))

        def run_family(code: str) -> tuple[DomainResult, list[str]] | None:
            if ctx.cancelled:
                logger.info("Skipping family %s: scan cancelled", code)
                return None
            return self._scan_family(ctx, code)

        outcomes: dict[str, tuple[DomainResult, list[str]] | None] = {}
        with ThreadPoolExecutor(max_workers=self.config.scan_family_workers) as executor:
            future_to_family = {executor.submit(run_family, code): code for code in codes}
            for future in as_completed(future_to_family):
                outcomes[future_to_family[future]] = future.result()

        domains: dict[str, DomainResult] = {}
        errors: list[str] = []
        skipped = False
        for code in codes:
            outcome = outcomes.get(code)
            if outcome is None:
                skipped = True
                continue
            domain, family_errors = outcome
            domains[code] = domain
            errors.extend(family_errors)

        partial = skipped or any(d.partial for d in domains.values())
        assessment = aggregate_assessment(
            scope,
            domains,
            self.catalogue.family_info,
            start_time=started,
            status="partial" if partial else "completed",
            errors=errors,
            scorer=self.scorer,
        )
        logger.info(
            "Assessment %s for %s finished: score %.2f, %d findings, status %s",
            assessment.id,
            scope.label,
            assessment.overall_score,
            assessment.total_findings,
            assessment.status,
        )
        self.store_evidence("assessment", assessment)
        return assessment

    def store_evidence(self, kind: str, assessment: Assessment) -> str | None:
        """Hand the assessment to the evidence sink; failures only log a warning."""
        if self.evidence_sink is None:
            return None
        context = {
            "assessment_id": assessment.id,
            "account_id": assessment.scope.account_id,
            "group": assessment.scope.group,
        }
        try:
            return self.evidence_sink.store(kind, assessment.model_dump(mode="json"), context)
        except Exception as exc:
            logger.warning("Evidence sink failed for assessment %s: %s", assessment.id, exc)
            return None
