"""Shared test fixtures for the Cloud Compliance Auditor test suite.

Unit tests evaluate in-memory resource snapshots and use MagicMock to
simulate HTTP responses from requests. Integration tests
(tests/integration/) require a real Azure subscription.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from cloud_compliance_auditor.catalogue import JsonRuleCatalogue
from cloud_compliance_auditor.checkers.base import CheckContext
from cloud_compliance_auditor.client import ArmInventoryClient
from cloud_compliance_auditor.config import AuditConfig
from cloud_compliance_auditor.engine import AuditEngine
from cloud_compliance_auditor.inventory import SnapshotInventory
from cloud_compliance_auditor.models import Resource, Scope
from cloud_compliance_auditor.registry import CheckerRegistry, build_default_registry
from cloud_compliance_auditor.storage import AuditStorage

SUBSCRIPTION = "00000000-0000-0000-0000-000000000001"
RESOURCE_GROUP = "rg-prod"

PROVIDER_TYPES = {
    "vm": "Microsoft.Compute/virtualMachines",
    "nic": "Microsoft.Network/networkInterfaces",
    "nsg": "Microsoft.Network/networkSecurityGroups",
    "firewall": "Microsoft.Network/azureFirewalls",
    "storage": "Microsoft.Storage/storageAccounts",
    "site": "Microsoft.Web/sites",
    "sql": "Microsoft.Sql/servers",
    "redis": "Microsoft.Cache/redis",
    "aks": "Microsoft.ContainerService/managedClusters",
    "cosmos": "Microsoft.DocumentDB/databaseAccounts",
    "vault": "Microsoft.KeyVault/vaults",
    "workspace": "Microsoft.OperationalInsights/workspaces",
}

FULL_TAGS = {"Owner": "platform", "Environment": "prod", "Application": "billing"}


def make_resource(
    kind: str,
    name: str,
    properties: dict[str, Any] | None = None,
    tags: dict[str, str] | None = None,
    group: str = RESOURCE_GROUP,
    subscription: str = SUBSCRIPTION,
) -> Resource:
    resource_type = PROVIDER_TYPES[kind]
    return Resource(
        id=f"/subscriptions/{subscription}/resourceGroups/{group}/providers/{resource_type}/{name}",
        type=resource_type,
        name=name,
        location="eastus",
        properties=properties or {},
        tags=FULL_TAGS if tags is None else tags,
    )


def deny_all_rule() -> dict[str, Any]:
    return {
        "name": "DenyAllInbound",
        "properties": {
            "access": "Deny",
            "direction": "Inbound",
            "priority": 4096,
            "sourceAddressPrefix": "*",
            "destinationPortRange": "*",
        },
    }


def allow_rule(name: str, port: str, source: str = "Internet") -> dict[str, Any]:
    return {
        "name": name,
        "properties": {
            "access": "Allow",
            "direction": "Inbound",
            "priority": 100,
            "sourceAddressPrefix": source,
            "destinationPortRange": port,
        },
    }


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def audit_config(tmp_path: Path) -> AuditConfig:
    """Return an AuditConfig with test values."""
    return AuditConfig(
        ARM_ENDPOINT="https://management.test.azure.com",
        ARM_ACCESS_TOKEN="test-token",
        ARM_TIMEOUT=10,
        ARM_MAX_RETRIES=1,
        SCAN_MAX_WORKERS=4,
        SCAN_FAMILY_WORKERS=2,
        AUDIT_STORAGE_PATH=str(tmp_path / "cloud-audit"),
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def mock_session() -> MagicMock:
    """Return a MagicMock that simulates a requests.Session."""
    session = MagicMock()
    response = MagicMock()
    response.ok = True
    response.status_code = 200
    response.json.return_value = {"value": []}
    session.request.return_value = response
    return session


@pytest.fixture
def arm_client(audit_config: AuditConfig, mock_session: MagicMock) -> ArmInventoryClient:
    """Return an ArmInventoryClient with a mocked HTTP session."""
    client = ArmInventoryClient(audit_config)
    client.session = mock_session
    return client


@pytest.fixture
def audit_storage(tmp_path: Path) -> AuditStorage:
    """Return an AuditStorage using a temp directory."""
    return AuditStorage(str(tmp_path / "audit-storage"))


@pytest.fixture(scope="session")
def catalogue() -> JsonRuleCatalogue:
    return JsonRuleCatalogue.bundled()


@pytest.fixture(scope="session")
def registry() -> CheckerRegistry:
    return build_default_registry()


@pytest.fixture
def scope() -> Scope:
    return Scope(account_id=SUBSCRIPTION)


@pytest.fixture
def make_context(scope: Scope) -> Callable[..., CheckContext]:
    """Factory for a CheckContext over a list of resources."""

    def factory(resources: list[Resource], inventory: Any = None, max_workers: int = 4) -> CheckContext:
        return CheckContext(
            scope=scope,
            resources=tuple(resources),
            inventory=inventory or SnapshotInventory(resources),
            max_workers=max_workers,
        )

    return factory


@pytest.fixture
def make_engine(
    audit_config: AuditConfig,
    catalogue: JsonRuleCatalogue,
    registry: CheckerRegistry,
) -> Callable[..., AuditEngine]:
    """Factory for an AuditEngine over an in-memory snapshot."""

    def factory(resources: list[Resource], inventory: Any = None, **kwargs: Any) -> AuditEngine:
        return AuditEngine(
            audit_config,
            inventory or SnapshotInventory(resources),
            kwargs.pop("catalogue", catalogue),
            kwargs.pop("registry", registry),
            **kwargs,
        )

    return factory
