"""Rule checkers, grouped by the resource concern they inspect."""

from cloud_compliance_auditor.checkers import (
    communication,
    compute,
    configuration,
    database,
    generic,
    identity,
    monitoring,
    network,
    storage,
)
from cloud_compliance_auditor.checkers.base import CheckContext, Checker

CHECKER_MODULES = (
    network,
    storage,
    compute,
    database,
    identity,
    monitoring,
    configuration,
    communication,
    generic,
)

__all__ = ["CHECKER_MODULES", "CheckContext", "Checker"]
