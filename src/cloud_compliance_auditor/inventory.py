"""Collaborator interfaces and the in-memory snapshot inventory.

The engine talks to three external collaborators through the protocols
below: the resource inventory, the rule catalogue, and an optional evidence
sink. ``SnapshotInventory`` serves a fixed, already-exported resource list,
which is how offline evaluations and the test suite feed the engine.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from cloud_compliance_auditor.exceptions import AuditNotFoundError
from cloud_compliance_auditor.models import Resource, Rule, Scope

logger = logging.getLogger(__name__)


class ResourceInventory(Protocol):
    def list_resources(self, scope: Scope) -> list[Resource]: ...

    def get_resource_detail(self, resource_id: str) -> Resource: ...


class RuleCatalogue(Protocol):
    def get_rules_for_family(self, family: str) -> list[Rule]: ...

    def get_rule_by_id(self, rule_id: str) -> Rule | None: ...

    def families(self) -> list[str]: ...

    def family_info(self, family: str) -> dict[str, Any]: ...

    def rejected_for_family(self, family: str) -> list[str]: ...


class EvidenceSink(Protocol):
    def store(self, kind: str, payload: dict[str, Any], scope_context: dict[str, Any]) -> str: ...


def resource_group_of(resource_id: str) -> str | None:
    """Extract the resource group segment from an ARM resource id."""
    parts = [p for p in resource_id.split("/") if p]
    for index, part in enumerate(parts[:-1]):
        if part.lower() == "resourcegroups":
            return parts[index + 1]
    return None


def subscription_of(resource_id: str) -> str | None:
    parts = [p for p in resource_id.split("/") if p]
    for index, part in enumerate(parts[:-1]):
        if part.lower() == "subscriptions":
            return parts[index + 1]
    return None


class SnapshotInventory:
    """Inventory adapter over a fixed list of resources.

    ``list_resources`` narrows the snapshot to the scope's account and,
    when set, its resource group (matched case-insensitively). Detail
    lookups return the stored resource; a separate ``details`` mapping can
    hold richer rehydrated payloads keyed by resource id.
    """

    def __init__(
        self,
        resources: Iterable[Resource],
        details: dict[str, Resource] | None = None,
    ) -> None:
        self._resources = tuple(resources)
        self._by_id = {r.id.lower(): r for r in self._resources}
        self._details = {k.lower(): v for k, v in (details or {}).items()}

    @classmethod
    def from_json_file(cls, path: str | Path) -> SnapshotInventory:
        """Load a snapshot exported as ``{"resources": [...], "details": [...]}`` or a bare list."""
        data = json.loads(Path(path).read_text())
        if isinstance(data, list):
            data = {"resources": data}
        resources = [Resource.model_validate(r) for r in data.get("resources", [])]
        details = {d["id"]: Resource.model_validate(d) for d in data.get("details", [])}
        logger.info("Loaded snapshot of %d resources from %s", len(resources), path)
        return cls(resources, details)

    def list_resources(self, scope: Scope) -> list[Resource]:
        selected: list[Resource] = []
        for resource in self._resources:
            sub = subscription_of(resource.id)
            if sub is not None and sub.lower() != scope.account_id.lower():
                continue
            if scope.group:
                group = resource_group_of(resource.id)
                if group is None or group.lower() != scope.group.lower():
                    continue
            selected.append(resource)
        return selected

    def get_resource_detail(self, resource_id: str) -> Resource:
        key = resource_id.lower()
        if key in self._details:
            return self._details[key]
        if key in self._by_id:
            return self._by_id[key]
        raise AuditNotFoundError("Resource not found", details={"resource_id": resource_id})
