"""Tests for structured-value navigation helpers."""

from __future__ import annotations

import pytest

from cloud_compliance_auditor.values import as_bool, as_list, get_path, tls_at_least, tls_version

PAYLOAD = {
    "siteConfig": {"minTlsVersion": "1.2", "ipSecurityRestrictions": [{"action": "Allow"}]},
    "encryption": {"services": {"blob": {"enabled": True}}},
    "nullable": None,
}


class TestGetPath:
    def test_nested_key(self) -> None:
        assert get_path(PAYLOAD, "encryption.services.blob.enabled") is True

    def test_list_index(self) -> None:
        assert get_path(PAYLOAD, "siteConfig.ipSecurityRestrictions.0.action") == "Allow"

    def test_case_insensitive_fallback(self) -> None:
        assert get_path(PAYLOAD, "SiteConfig.MinTlsVersion") == "1.2"

    def test_missing_returns_default(self) -> None:
        assert get_path(PAYLOAD, "encryption.services.file.enabled", "absent") == "absent"

    def test_null_returns_default(self) -> None:
        assert get_path(PAYLOAD, "nullable", 5) == 5

    def test_index_out_of_range(self) -> None:
        assert get_path(PAYLOAD, "siteConfig.ipSecurityRestrictions.3.action") is None

    def test_scalar_midway(self) -> None:
        assert get_path(PAYLOAD, "siteConfig.minTlsVersion.major") is None


class TestCoercion:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(True, True), ("Enabled", True), ("false", False), ("Disabled", False), (1, True), (0, False)],
    )
    def test_as_bool(self, value: object, expected: bool) -> None:
        assert as_bool(value) is expected

    def test_as_bool_default_for_unknown(self) -> None:
        assert as_bool("maybe", default=True) is True
        assert as_bool(None) is False

    def test_as_list(self) -> None:
        assert as_list(None) == []
        assert as_list("x") == ["x"]
        assert as_list(("a", "b")) == ["a", "b"]


class TestTls:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("1.2", (1, 2)), ("TLS1_2", (1, 2)), ("Tls12", (1, 2)), ("1.0", (1, 0)), ("None", None), (None, None)],
    )
    def test_tls_version(self, value: object, expected: tuple[int, ...] | None) -> None:
        assert tls_version(value) == expected

    def test_tls_at_least(self) -> None:
        assert tls_at_least("TLS1_2", "1.2")
        assert tls_at_least("1.3", "1.2")
        assert not tls_at_least("1.1", "1.2")
        assert not tls_at_least(None, "1.2")
