"""
Consent Ledger Governance Layer
===============================
Principal verification, approval relations, consent, the append-only
record log, access decisions, change notifications and their journals.
"""

from .principals import PrincipalRegistry
from .authorization import ApprovalRelation, AuthorizationGraph
from .consent_store import ConsentStore
from .record_log import RecordLog
from .access import AccessEvaluator
from .notifications import (
    ChangeNotifier,
    JsonlJournal,
    notification_from_dict,
    open_journal,
)
from .persistence import LedgerDB
from .registry import DataRegistry, replay

__all__ = [
    # Principal Registry
    "PrincipalRegistry",
    # Authorization Graph
    "ApprovalRelation",
    "AuthorizationGraph",
    # Consent Store
    "ConsentStore",
    # Record Log
    "RecordLog",
    # Access Evaluator
    "AccessEvaluator",
    # Change Notifier
    "ChangeNotifier",
    "JsonlJournal",
    "notification_from_dict",
    "open_journal",
    # Persistence
    "LedgerDB",
    # Service
    "DataRegistry",
    "replay",
]
