"""Tests for the JSON rule catalogue."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cloud_compliance_auditor.catalogue import JsonRuleCatalogue
from cloud_compliance_auditor.exceptions import CatalogueUnavailableError
from cloud_compliance_auditor.registry import CheckerRegistry


class TestBundledCatalogue:
    def test_families(self, catalogue: JsonRuleCatalogue) -> None:
        assert catalogue.families() == ["AC", "AU", "CM", "CP", "IA", "SC", "SI"]

    def test_nothing_rejected(self, catalogue: JsonRuleCatalogue) -> None:
        assert catalogue.rejected == []

    def test_lookup_is_case_insensitive(self, catalogue: JsonRuleCatalogue) -> None:
        lower = catalogue.get_rule_by_id("sc-8")
        upper = catalogue.get_rule_by_id("SC-8")
        assert lower is not None
        assert lower is upper

    def test_unknown_rule(self, catalogue: JsonRuleCatalogue) -> None:
        assert catalogue.get_rule_by_id("zz-99") is None

    def test_rules_in_multiple_families(self, catalogue: JsonRuleCatalogue) -> None:
        ac_ids = {r.key for r in catalogue.get_rules_for_family("ac")}
        sc_ids = {r.key for r in catalogue.get_rules_for_family("SC")}
        for shared in ("V-219187", "V-219235", "V-219245"):
            assert shared in ac_ids
            assert shared in sc_ids

    def test_unknown_family_raises(self, catalogue: JsonRuleCatalogue) -> None:
        with pytest.raises(CatalogueUnavailableError) as exc_info:
            catalogue.get_rules_for_family("ZZ")
        assert exc_info.value.family == "ZZ"

    def test_family_info(self, catalogue: JsonRuleCatalogue) -> None:
        info = catalogue.family_info("sc")
        assert info["name"] == "System and Communications Protection"
        assert info["score_threshold"] == 80.0
        assert info["recommendation"]

    def test_family_info_unknown_defaults(self, catalogue: JsonRuleCatalogue) -> None:
        info = catalogue.family_info("ZZ")
        assert info["score_threshold"] == 80.0

    def test_every_rule_has_remediation_and_controls(self, catalogue: JsonRuleCatalogue) -> None:
        for rule in catalogue.rules():
            assert rule.remediation_text, rule.id
            assert rule.mapped_controls, rule.id

    def test_graded_tagging_rule(self, catalogue: JsonRuleCatalogue) -> None:
        rule = catalogue.get_rule_by_id("cm-8")
        assert rule is not None
        assert rule.rule_class == "graded"
        assert rule.thresholds.target_pct == 95.0
        assert rule.thresholds.partial_floor_pct == 80.0

    def test_every_automated_rule_is_catalogued(
        self, catalogue: JsonRuleCatalogue, registry: CheckerRegistry
    ) -> None:
        for rule_id in registry.supported_rules():
            assert catalogue.get_rule_by_id(rule_id) is not None, rule_id


class TestCatalogueLoading:
    def test_invalid_rule_skipped(self) -> None:
        data = {
            "families": {"SC": {"name": "SC"}},
            "rules": [
                {"id": "sc-1", "family": "SC", "title": "ok"},
                {"id": "sc-2", "family": "SC"},
                {"id": "sc-3", "family": "SC", "title": "bad severity", "severity": "Severe"},
            ],
        }
        catalogue = JsonRuleCatalogue(data)
        assert [r.id for r in catalogue.rules()] == ["sc-1"]
        assert catalogue.rejected == ["sc-2", "sc-3"]
        assert catalogue.rejected_for_family("sc") == ["sc-2", "sc-3"]
        assert catalogue.rejected_for_family("AU") == []

    def test_rejected_rule_registers_its_families(self) -> None:
        data = {"rules": [{"id": "cp-9", "family": "CP", "also_in": ["si"], "severity": "Severe", "title": "t"}]}
        catalogue = JsonRuleCatalogue(data)
        assert catalogue.families() == ["CP", "SI"]
        assert catalogue.rejected_for_family("SI") == ["cp-9"]
        assert catalogue.get_rules_for_family("CP") == []

    def test_duplicate_rule_keeps_first(self) -> None:
        data = {
            "rules": [
                {"id": "sc-1", "family": "SC", "title": "first"},
                {"id": "SC-1", "family": "SC", "title": "second"},
            ]
        }
        catalogue = JsonRuleCatalogue(data)
        rule = catalogue.get_rule_by_id("sc-1")
        assert rule is not None
        assert rule.title == "first"

    def test_family_created_from_rules(self) -> None:
        catalogue = JsonRuleCatalogue({"rules": [{"id": "x-1", "family": "xx", "title": "t"}]})
        assert catalogue.families() == ["XX"]

    def test_from_path(self, tmp_path: Path) -> None:
        path = tmp_path / "catalogue.json"
        path.write_text(json.dumps({"rules": [{"id": "au-2", "family": "AU", "title": "Event Logging"}]}))
        catalogue = JsonRuleCatalogue.from_path(path)
        assert catalogue.get_rule_by_id("AU-2") is not None

    def test_from_missing_path_raises(self, tmp_path: Path) -> None:
        with pytest.raises(CatalogueUnavailableError):
            JsonRuleCatalogue.from_path(tmp_path / "missing.json")

    def test_from_corrupt_path_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "catalogue.json"
        path.write_text("{not json")
        with pytest.raises(CatalogueUnavailableError):
            JsonRuleCatalogue.from_path(path)

    def test_from_config_without_path_uses_bundle(self) -> None:
        catalogue = JsonRuleCatalogue.from_config(None)
        assert catalogue.get_rule_by_id("cm-8") is not None
