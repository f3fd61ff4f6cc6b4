"""
Consent Ledger
==============
Append-only, consent-gated registry of data fingerprints with multi-party
access control.
"""

from .core import (
    ApprovalKind,
    Consent,
    ConsentLedgerError,
    ConsentRequiredError,
    DataCategory,
    DataRecord,
    IndexOutOfBoundsError,
    ManualClock,
    SystemClock,
    UnauthorizedError,
)
from .governance import ChangeNotifier, DataRegistry, replay

__version__ = "1.0.0"

__all__ = [
    "ApprovalKind",
    "ChangeNotifier",
    "Consent",
    "ConsentLedgerError",
    "ConsentRequiredError",
    "DataCategory",
    "DataRecord",
    "DataRegistry",
    "IndexOutOfBoundsError",
    "ManualClock",
    "SystemClock",
    "UnauthorizedError",
    "replay",
]
