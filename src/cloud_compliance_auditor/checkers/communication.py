"""Transmission confidentiality checker (SC-8).

HTTPS enforcement and minimum TLS are spread over four resource types. Each
type has its own predicates; every failure lands in one scope-level finding
because fixing them is a single remediation action.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from cloud_compliance_auditor.checkers.base import CheckContext, evaluate_aggregate
from cloud_compliance_auditor.models import Resource, Rule, RuleResult
from cloud_compliance_auditor.values import as_bool, get_path, tls_at_least

if TYPE_CHECKING:
    from cloud_compliance_auditor.registry import CheckerRegistry

STORAGE_ACCOUNT = "Microsoft.Storage/storageAccounts"
WEB_APP = "Microsoft.Web/sites"
SQL_SERVER = "Microsoft.Sql/servers"
REDIS = "Microsoft.Cache/redis"

TRANSIT_TYPES = (STORAGE_ACCOUNT, WEB_APP, SQL_SERVER, REDIS)


def _storage(resource: Resource, minimum: str) -> list[str]:
    failures = []
    if not as_bool(get_path(resource.properties, "supportsHttpsTrafficOnly"), default=True):
        failures.append("secure transfer (HTTPS only) is not required")
    tls = get_path(resource.properties, "minimumTlsVersion")
    if tls is not None and not tls_at_least(tls, minimum):
        failures.append(f"minimum TLS version is {tls}")
    return failures


def _web_app(resource: Resource, minimum: str) -> list[str]:
    failures = []
    if not as_bool(get_path(resource.properties, "httpsOnly")):
        failures.append("HTTPS only is disabled")
    tls = get_path(resource.properties, "siteConfig.minTlsVersion")
    if tls is not None and not tls_at_least(tls, minimum):
        failures.append(f"minimum TLS version is {tls}")
    return failures


def _sql_server(resource: Resource, minimum: str) -> list[str]:
    tls = get_path(resource.properties, "minimalTlsVersion")
    if tls_at_least(tls, minimum):
        return []
    return [f"minimal TLS version is {tls or 'not set'}"]


def _redis(resource: Resource, minimum: str) -> list[str]:
    failures = []
    if as_bool(get_path(resource.properties, "enableNonSslPort")):
        failures.append("non-TLS port 6379 is enabled")
    tls = get_path(resource.properties, "minimumTlsVersion")
    if tls is not None and not tls_at_least(tls, minimum):
        failures.append(f"minimum TLS version is {tls}")
    return failures


PREDICATES: dict[str, Callable[[Resource, str], list[str]]] = {
    STORAGE_ACCOUNT.lower(): _storage,
    WEB_APP.lower(): _web_app,
    SQL_SERVER.lower(): _sql_server,
    REDIS.lower(): _redis,
}


def check_transmission_security(ctx: CheckContext, rule: Rule) -> RuleResult:
    minimum = str(rule.parameters.get("minimum_tls", "1.2"))

    def inspect(_: CheckContext, resource: Resource) -> list[str]:
        return PREDICATES[resource.type.lower()](resource, minimum)

    return evaluate_aggregate(ctx, rule, TRANSIT_TYPES, inspect)


def register(registry: CheckerRegistry) -> None:
    registry.register("sc-8", check_transmission_security, families=("SC",))
