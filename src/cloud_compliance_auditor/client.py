"""Azure Resource Manager REST client with authentication, retry logic, and error mapping.

Implements the ``ResourceInventory`` protocol over the ARM REST API: listing
the resources of a subscription or resource group (following ``nextLink``
pages) and fetching full resource payloads with a type-appropriate
api-version. Transient failures back off exponentially; timeouts surface as
``AuditTimeoutError``.

Bearer tokens come from an azure-identity credential (``DefaultAzureCredential``
unless one is injected) and are refreshed before they expire or when ARM
answers 401. ``ARM_ACCESS_TOKEN`` is an explicit static override.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

import requests
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential

from cloud_compliance_auditor.config import AuditConfig
from cloud_compliance_auditor.exceptions import (
    AuditAPIError,
    AuditAuthError,
    AuditConnectionError,
    AuditNotFoundError,
    AuditPermissionError,
    AuditRateLimitError,
    AuditTimeoutError,
)
from cloud_compliance_auditor.models import Resource, Scope

logger = logging.getLogger(__name__)

LIST_API_VERSION = "2021-04-01"

API_VERSIONS: dict[str, str] = {
    "microsoft.compute/virtualmachines": "2023-09-01",
    "microsoft.network/networksecuritygroups": "2023-09-01",
    "microsoft.network/networkinterfaces": "2023-09-01",
    "microsoft.network/azurefirewalls": "2023-09-01",
    "microsoft.storage/storageaccounts": "2023-01-01",
    "microsoft.web/sites": "2023-01-01",
    "microsoft.sql/servers": "2021-11-01",
    "microsoft.cache/redis": "2023-08-01",
    "microsoft.containerservice/managedclusters": "2024-01-01",
    "microsoft.documentdb/databaseaccounts": "2023-11-15",
    "microsoft.keyvault/vaults": "2023-07-01",
    "microsoft.operationalinsights/workspaces": "2022-10-01",
}

# Top-level payload sections checkers read as part of properties
FOLDED_SECTIONS = ("identity", "sku", "kind")

# Seconds before expiry at which a cached token is replaced
TOKEN_REFRESH_MARGIN = 300


def resource_type_of(resource_id: str) -> str | None:
    """Provider type (``Namespace/type``) of an ARM resource id."""
    parts = [p for p in resource_id.split("/") if p]
    for index, part in enumerate(parts):
        if part.lower() == "providers" and index + 2 < len(parts):
            return f"{parts[index + 1]}/{parts[index + 2]}"
    return None


def to_resource(payload: dict[str, Any]) -> Resource:
    """Convert an ARM resource payload into a Resource snapshot."""
    properties = dict(payload.get("properties") or {})
    for section in FOLDED_SECTIONS:
        if section in payload and section not in properties:
            properties[section] = payload[section]
    return Resource(
        id=payload["id"],
        type=payload.get("type") or resource_type_of(payload["id"]) or "",
        name=payload.get("name", payload["id"].rsplit("/", 1)[-1]),
        location=payload.get("location", ""),
        properties=properties,
        tags=payload.get("tags") or {},
    )


class ArmInventoryClient:
    """REST client for the Azure Resource Manager API."""

    def __init__(self, config: AuditConfig, credential: Any | None = None) -> None:
        self.config = config
        self.base_url = config.arm_endpoint.rstrip("/")
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        self.timeout = config.arm_timeout
        self.max_retries = config.arm_max_retries
        self.default_api_version = config.arm_default_api_version
        self.token_scope = config.arm_token_scope
        self._static_token = config.arm_access_token
        self._credential = credential
        if self._credential is None and not self._static_token:
            self._credential = DefaultAzureCredential()
        self._token: str | None = None
        self._token_expires_on = 0
        self._token_lock = threading.Lock()

    def _bearer_token(self, force_refresh: bool = False) -> str:
        """Return a bearer token, fetching a new one when the cached one is stale."""
        if self._credential is None:
            return self._static_token or ""
        with self._token_lock:
            stale = self._token is None or self._token_expires_on - TOKEN_REFRESH_MARGIN <= time.time()
            if force_refresh or stale:
                try:
                    access_token = self._credential.get_token(self.token_scope)
                except ClientAuthenticationError as exc:
                    raise AuditAuthError(f"Could not acquire an ARM access token: {exc}",
                                         details={"scope": self.token_scope}) from exc
                self._token = access_token.token
                self._token_expires_on = access_token.expires_on
                logger.debug("Acquired ARM access token expiring at %d", access_token.expires_on)
            return self._token

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """Send one request, refreshing the credential token once on 401."""
        headers = {"Authorization": f"Bearer {self._bearer_token()}"}
        response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        if response.status_code == 401 and self._credential is not None:
            logger.info("ARM rejected the access token, refreshing")
            headers = {"Authorization": f"Bearer {self._bearer_token(force_refresh=True)}"}
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        self._raise_for_status(response)
        return response

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """Execute an HTTP request with retry logic and error mapping.

        The initial attempt plus up to ``max_retries`` retries are made,
        giving a total of ``max_retries + 1`` attempts.
        """
        last_exception: Exception | None = None
        for attempt in range(1, self.max_retries + 2):
            try:
                return self._send(method, url, **kwargs)
            except AuditRateLimitError as exc:
                last_exception = exc
                wait = exc.retry_after or (2 ** (attempt - 1))
                logger.warning("Rate limited, retrying in %ds (attempt %d/%d)", wait, attempt, self.max_retries + 1)
            except requests.Timeout as exc:
                last_exception = AuditTimeoutError(
                    f"Request timed out after {self.timeout}s: {exc}",
                    details={"url": url, "attempt": attempt},
                )
                wait = 2 ** (attempt - 1)
                logger.warning("Timeout, retrying in %ds (attempt %d/%d)", wait, attempt, self.max_retries + 1)
            except requests.ConnectionError as exc:
                last_exception = AuditConnectionError(
                    f"Connection failed: {exc}",
                    details={"url": url, "attempt": attempt},
                )
                wait = 2 ** (attempt - 1)
                logger.warning("Connection error, retrying in %ds (attempt %d/%d)", wait, attempt, self.max_retries + 1)
            if attempt <= self.max_retries:
                time.sleep(wait)
        raise last_exception  # type: ignore[misc]

    def _raise_for_status(self, response: requests.Response) -> None:
        """Map HTTP status codes to typed audit exceptions."""
        if response.ok:
            return
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text[:500]}

        if status == 401:
            raise AuditAuthError("Authentication failed", details=body)
        if status == 403:
            raise AuditPermissionError("Permission denied", details=body)
        if status == 404:
            raise AuditNotFoundError("Resource not found", details=body)
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise AuditRateLimitError(
                "Rate limit exceeded",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                details=body,
            )
        raise AuditAPIError(
            f"API error: HTTP {status}",
            status_code=status,
            details=body,
        )

    def api_version_for(self, resource_type: str | None) -> str:
        if not resource_type:
            return self.default_api_version
        return API_VERSIONS.get(resource_type.lower(), self.default_api_version)

    def get_json(self, path: str, api_version: str) -> dict[str, Any]:
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        response = self._request("GET", url, params={"api-version": api_version})
        try:
            return response.json()
        except ValueError as exc:
            raise AuditAPIError("Malformed JSON response", status_code=response.status_code,
                                details={"url": url}) from exc

    def list_resources(self, scope: Scope) -> list[Resource]:
        """List every resource in the scope, following ``nextLink`` pages.

        Args:
            scope: Subscription and optional resource group to list.

        Returns:
            List of Resource summaries (properties may be partial).
        """
        url: str | None = f"{self.base_url}{scope.resource_id}/resources"
        params: dict[str, str] | None = {"api-version": LIST_API_VERSION}
        resources: list[Resource] = []
        while url:
            response = self._request("GET", url, params=params)
            data = response.json()
            resources.extend(to_resource(item) for item in data.get("value", []))
            url = data.get("nextLink")
            # nextLink already carries the api-version and skip token
            params = None
        logger.debug("Listed %d resources for %s", len(resources), scope.label)
        return resources

    def get_resource_detail(self, resource_id: str) -> Resource:
        """Fetch the full payload of one resource.

        Web apps keep most of their settings under ``config/web``; that
        document is merged into ``properties.siteConfig``.

        Raises:
            AuditNotFoundError: If the resource does not exist.
            AuditTimeoutError: If the request times out on every attempt.
        """
        resource_type = resource_type_of(resource_id)
        api_version = self.api_version_for(resource_type)
        resource = to_resource(self.get_json(resource_id, api_version))
        if resource_type and resource_type.lower() == "microsoft.web/sites":
            site_config = self.get_json(f"{resource_id}/config/web", api_version).get("properties") or {}
            merged = {**resource.properties, "siteConfig": {**(resource.properties.get("siteConfig") or {}),
                                                            **site_config}}
            resource = resource.model_copy(update={"properties": merged})
        return resource
