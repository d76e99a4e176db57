"""Custom exception hierarchy for the Cloud Compliance Auditor.

Maps inventory (ARM REST) errors, catalogue failures, and rule contract
violations to typed exceptions so the engine can decide which failures are
recovered per resource, per rule, per family, or not at all.
"""

from __future__ import annotations


class AuditError(Exception):
    """Base exception for all audit-related errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class AuditConnectionError(AuditError):
    """Raised when the inventory endpoint is unreachable."""


class AuditTimeoutError(AuditConnectionError):
    """Raised when an inventory query exceeds its timeout."""


class AuditAuthError(AuditError):
    """Raised when authentication to the inventory API fails (401)."""


class AuditNotFoundError(AuditError):
    """Raised when a requested resource does not exist (404)."""


class AuditPermissionError(AuditError):
    """Raised when the caller lacks permission for the requested operation (403)."""


class AuditRateLimitError(AuditError):
    """Raised when the inventory API returns a rate-limit response (429)."""

    def __init__(self, message: str, retry_after: int | None = None, details: dict | None = None) -> None:
        super().__init__(message, details)
        self.retry_after = retry_after


class AuditAPIError(AuditError):
    """Raised for unexpected inventory API errors (5xx, malformed response, etc)."""

    def __init__(self, message: str, status_code: int | None = None, details: dict | None = None) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class InventoryUnavailableError(AuditError):
    """Raised when the resource inventory cannot be listed at all for a scope."""


class CatalogueUnavailableError(AuditError):
    """Raised when the rule catalogue cannot serve a control family."""

    def __init__(self, message: str, family: str | None = None, details: dict | None = None) -> None:
        super().__init__(message, details)
        self.family = family


class RuleContractError(AuditError):
    """Raised when rule metadata does not satisfy what its checker requires."""

    def __init__(self, message: str, rule_id: str | None = None, details: dict | None = None) -> None:
        super().__init__(message, details)
        self.rule_id = rule_id


class RegistryFrozenError(AuditError):
    """Raised when registering a checker after the registry has been frozen."""
