"""Cloud Compliance Auditor - MCP Server for NIST 800-53 and STIG evaluation of Azure resources."""

__version__ = "0.1.0"

from cloud_compliance_auditor.config import AuditConfig, get_config
from cloud_compliance_auditor.exceptions import (
    AuditAPIError,
    AuditAuthError,
    AuditConnectionError,
    AuditError,
    AuditNotFoundError,
    AuditPermissionError,
    AuditRateLimitError,
    AuditTimeoutError,
    CatalogueUnavailableError,
    InventoryUnavailableError,
    RegistryFrozenError,
    RuleContractError,
)
from cloud_compliance_auditor.models import (
    Assessment,
    ComplianceStatus,
    DomainResult,
    Finding,
    Resource,
    RiskProfile,
    Rule,
    RuleResult,
    Scope,
    Severity,
    Thresholds,
)

__all__ = [
    "__version__",
    "AuditConfig",
    "get_config",
    "AuditError",
    "AuditConnectionError",
    "AuditTimeoutError",
    "AuditAuthError",
    "AuditNotFoundError",
    "AuditPermissionError",
    "AuditRateLimitError",
    "AuditAPIError",
    "InventoryUnavailableError",
    "CatalogueUnavailableError",
    "RuleContractError",
    "RegistryFrozenError",
    "Severity",
    "ComplianceStatus",
    "Scope",
    "Resource",
    "Thresholds",
    "Rule",
    "Finding",
    "RuleResult",
    "DomainResult",
    "RiskProfile",
    "Assessment",
]
