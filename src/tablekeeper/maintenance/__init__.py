"""TableKeeper maintenance core.

Decides which of COMPRESS, ANALYZE, CHECK, HISTOGRAM, OPTIMIZE and REPAIR
each table of a schema needs, and runs them with the right session and
global settings around them.

Example:
    >>> from tablekeeper.maintenance import TableMaintainer
    >>> maintainer = TableMaintainer(connector, policy)
    >>> await maintainer.analyze("shop")
"""

from .actions import Action
from .capabilities import FeatureDetector, resolve_capabilities
from .engine import DecisionEngine, check_age, check_change
from .ledger import LedgerStore, RunLedger, RunLog, compute_statistics
from .maintainer import TableMaintainer
from .metadata import MetadataReader
from .models import ActionDecision, CapabilitySet, TableEvaluation, TableSnapshot
from .orchestrator import RunOrchestrator, RunPhase, RunResult
from .policy import MaintenanceFlag, Policy, PolicyBuilder

__all__ = [
    "Action",
    "ActionDecision",
    "CapabilitySet",
    "DecisionEngine",
    "FeatureDetector",
    "LedgerStore",
    "MaintenanceFlag",
    "MetadataReader",
    "Policy",
    "PolicyBuilder",
    "RunLedger",
    "RunLog",
    "RunOrchestrator",
    "RunPhase",
    "RunResult",
    "TableEvaluation",
    "TableMaintainer",
    "TableSnapshot",
    "check_age",
    "check_change",
    "compute_statistics",
    "resolve_capabilities",
]
