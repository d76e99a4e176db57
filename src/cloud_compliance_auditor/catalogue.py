"""JSON-backed rule catalogue.

The catalogue holds every rule's metadata (title, severity, thresholds,
remediation prose, mapped controls) plus per-family scoring metadata. It is
loaded once, validated entry by entry, and then only read.
"""

from __future__ import annotations

import json
import logging
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from cloud_compliance_auditor.exceptions import CatalogueUnavailableError
from cloud_compliance_auditor.models import Rule, normalize_id

logger = logging.getLogger(__name__)

DEFAULT_SCORE_THRESHOLD = 80.0


def load_bundled_catalogue() -> dict[str, Any]:
    """Read the catalogue shipped inside the package."""
    text = resources.files("cloud_compliance_auditor").joinpath("data/catalogue.json").read_text(encoding="utf-8")
    return json.loads(text)


def _declared_families(entry: Any) -> list[str]:
    """Families named by a raw rule entry, even one that failed validation."""
    if not isinstance(entry, dict):
        return []
    also_in = entry.get("also_in")
    names = [entry.get("family"), *(also_in if isinstance(also_in, list) else [])]
    return list(dict.fromkeys(normalize_id(n) for n in names if isinstance(n, str) and n.strip()))


class JsonRuleCatalogue:
    """Read-only rule catalogue built from a JSON document.

    Invalid rule entries are logged and skipped; their ids are kept in
    ``rejected`` (and per family, for ``rejected_for_family``) so scans can
    report them. Lookups are case-insensitive.
    """

    def __init__(self, data: dict[str, Any]) -> None:
        self.version = str(data.get("version", ""))
        self.rejected: list[str] = []
        self._rejected_by_family: dict[str, list[str]] = {}

        families: dict[str, dict[str, Any]] = {}
        for code, info in (data.get("families") or {}).items():
            families[normalize_id(code)] = {
                "name": info.get("name", code),
                "score_threshold": float(info.get("score_threshold", DEFAULT_SCORE_THRESHOLD)),
                "recommendation": info.get("recommendation", ""),
            }

        rules: dict[str, Rule] = {}
        for entry in data.get("rules") or []:
            try:
                rule = Rule.model_validate(entry)
            except ValidationError as exc:
                rule_id = str(entry.get("id") or "<missing id>") if isinstance(entry, dict) else "<malformed>"
                logger.warning("Skipping invalid catalogue rule %s: %s", rule_id, exc.errors()[0]["msg"])
                self.rejected.append(rule_id)
                for family in _declared_families(entry):
                    self._rejected_by_family.setdefault(family, []).append(rule_id)
                    families.setdefault(family, {
                        "name": family,
                        "score_threshold": DEFAULT_SCORE_THRESHOLD,
                        "recommendation": "",
                    })
                continue
            if rule.key in rules:
                logger.warning("Duplicate catalogue rule %s; keeping the first entry", rule.id)
                continue
            rules[rule.key] = rule
            for family in rule.families:
                families.setdefault(family, {
                    "name": family,
                    "score_threshold": DEFAULT_SCORE_THRESHOLD,
                    "recommendation": "",
                })

        self._rules = MappingProxyType(rules)
        self._families = MappingProxyType(families)
        logger.info("Catalogue %s loaded: %d rules across %d families", self.version or "(unversioned)",
                    len(rules), len(families))

    @classmethod
    def from_path(cls, path: str | Path) -> JsonRuleCatalogue:
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CatalogueUnavailableError(
                f"Cannot read rule catalogue from {path}: {exc}",
                details={"path": str(path)},
            ) from exc
        return cls(data)

    @classmethod
    def bundled(cls) -> JsonRuleCatalogue:
        return cls(load_bundled_catalogue())

    @classmethod
    def from_config(cls, catalogue_path: str | None) -> JsonRuleCatalogue:
        return cls.from_path(catalogue_path) if catalogue_path else cls.bundled()

    def get_rule_by_id(self, rule_id: str) -> Rule | None:
        return self._rules.get(normalize_id(rule_id))

    def get_rules_for_family(self, family: str) -> list[Rule]:
        """All rules whose primary family or ``also_in`` groups include ``family``.

        Raises:
            CatalogueUnavailableError: If the family is not catalogued.
        """
        key = normalize_id(family)
        if key not in self._families:
            raise CatalogueUnavailableError(f"Control family {family!r} is not catalogued", family=key)
        return [rule for rule in self._rules.values() if key in rule.families]

    def families(self) -> list[str]:
        return sorted(self._families)

    def family_info(self, family: str) -> dict[str, Any]:
        key = normalize_id(family)
        info = self._families.get(key)
        if info is None:
            return {"name": key, "score_threshold": DEFAULT_SCORE_THRESHOLD, "recommendation": ""}
        return dict(info)

    def rules(self) -> list[Rule]:
        return list(self._rules.values())

    def rejected_for_family(self, family: str) -> list[str]:
        """Ids of invalid rule entries that declared ``family``."""
        return list(self._rejected_by_family.get(normalize_id(family), []))
