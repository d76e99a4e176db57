"""Checker registry: maps normalized rule ids to checker callables.

Lookup order for a rule is the exact rule id, then the generic handler of
the rule's primary family, then ``manual_review_fallback``. The result
depends on the rule id alone, never on which family scan asked for it.
The registry is populated once and frozen before any scan runs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from types import MappingProxyType

from cloud_compliance_auditor.checkers.base import CheckContext, Checker, scope_finding
from cloud_compliance_auditor.exceptions import RegistryFrozenError
from cloud_compliance_auditor.models import Rule, RuleResult, normalize_id

logger = logging.getLogger(__name__)


def manual_review_fallback(ctx: CheckContext, rule: Rule) -> RuleResult:
    """Terminal handler: one ManualReviewRequired finding naming the rule."""
    finding = scope_finding(
        ctx,
        rule,
        title=f"{rule.id}: manual review required",
        severity="Informational",
        status="ManualReviewRequired",
        description=f"No automated check exists for rule {rule.id} ({rule.title}).",
        evidence=f"Rule {rule.id} must be verified by a reviewer for {ctx.scope.label}.",
        resource_type="Scope",
    )
    return RuleResult(rule_id=rule.id, findings=[finding], total_checks=0)


class CheckerRegistry:
    """Lookup table from rule id to checker, with family-level fallbacks."""

    def __init__(self) -> None:
        self._checkers: dict[str, Checker] = {}
        self._families: dict[str, set[str]] = {}
        self._family_handlers: dict[str, Checker] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _ensure_mutable(self) -> None:
        if self._frozen:
            raise RegistryFrozenError("Checker registry is frozen; register checkers before the first scan")

    def register(self, rule_id: str, checker: Checker, families: Iterable[str] = ()) -> None:
        """Register ``checker`` for ``rule_id``.

        Args:
            rule_id: Catalogue rule id, in any case.
            checker: Callable ``(ctx, rule) -> RuleResult``.
            families: Family groups the rule belongs to, for introspection only.

        Raises:
            RegistryFrozenError: If the registry has been frozen.
            ValueError: If the rule id is already registered.
        """
        self._ensure_mutable()
        key = normalize_id(rule_id)
        if key in self._checkers:
            raise ValueError(f"Checker already registered for {key}")
        self._checkers[key] = checker
        for family in families:
            self._families.setdefault(normalize_id(family), set()).add(key)

    def register_family(self, family: str, checker: Checker) -> None:
        self._ensure_mutable()
        self._family_handlers[normalize_id(family)] = checker

    def freeze(self) -> CheckerRegistry:
        if not self._frozen:
            self._checkers = MappingProxyType(self._checkers)
            self._family_handlers = MappingProxyType(self._family_handlers)
            self._families = MappingProxyType({k: frozenset(v) for k, v in self._families.items()})
            self._frozen = True
            logger.debug(
                "Registry frozen with %d rule checkers and %d family handlers",
                len(self._checkers),
                len(self._family_handlers),
            )
        return self

    def resolve(self, rule: Rule) -> Checker:
        """Return the checker that handles ``rule``; never fails."""
        checker = self._checkers.get(rule.key)
        if checker is not None:
            return checker
        handler = self._family_handlers.get(normalize_id(rule.family))
        if handler is not None:
            return handler
        return manual_review_fallback

    def dispatch(self, ctx: CheckContext, rule: Rule) -> RuleResult:
        checker = self.resolve(rule)
        logger.debug("Dispatching %s to %s", rule.id, getattr(checker, "__name__", repr(checker)))
        return checker(ctx, rule)

    def has_checker(self, rule_id: str) -> bool:
        return normalize_id(rule_id) in self._checkers

    def supported_rules(self, family: str | None = None) -> list[str]:
        if family is None:
            return sorted(self._checkers)
        return sorted(self._families.get(normalize_id(family), ()))


def build_default_registry() -> CheckerRegistry:
    """Registry with every built-in checker, frozen."""
    from cloud_compliance_auditor.checkers import CHECKER_MODULES

    registry = CheckerRegistry()
    for module in CHECKER_MODULES:
        module.register(registry)
    return registry.freeze()
