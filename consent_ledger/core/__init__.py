"""
Consent Ledger Core Module
==========================
Data models, exceptions, and utilities shared by every ledger component.
"""

from .models import (
    Principal,
    DataCategory,
    ApprovalKind,
    NotificationKind,
    Consent,
    DataRecord,
    Notification,
    VerificationChanged,
    ApprovalChanged,
    ConsentChanged,
    RecordAdded,
    RecordRedacted,
    LedgerConfig,
    JournalConfig,
    LoggingConfig,
)
from .exceptions import (
    ConsentLedgerError,
    AccessError,
    UnauthorizedError,
    ConsentRequiredError,
    IndexOutOfBoundsError,
    JournalError,
    ConfigurationError,
)
from .utils import (
    ManualClock,
    SystemClock,
    fingerprint,
    setup_logging,
    to_bytes32,
    verify_fingerprint,
)

__all__ = [
    # Models
    "Principal",
    "DataCategory",
    "ApprovalKind",
    "NotificationKind",
    "Consent",
    "DataRecord",
    "Notification",
    "VerificationChanged",
    "ApprovalChanged",
    "ConsentChanged",
    "RecordAdded",
    "RecordRedacted",
    "LedgerConfig",
    "JournalConfig",
    "LoggingConfig",
    # Exceptions
    "ConsentLedgerError",
    "AccessError",
    "UnauthorizedError",
    "ConsentRequiredError",
    "IndexOutOfBoundsError",
    "JournalError",
    "ConfigurationError",
    # Utilities
    "ManualClock",
    "SystemClock",
    "fingerprint",
    "setup_logging",
    "to_bytes32",
    "verify_fingerprint",
]
