"""
Consent Ledger Custom Exceptions
================================
Custom exception classes for the consent ledger.

Every rejected operation raises one of these before any state is touched,
so a caught exception always means the registry is unchanged.
"""

from typing import Optional


class ConsentLedgerError(Exception):
    """Base exception for all consent ledger errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


# =============================================================================
# Access Control Exceptions
# =============================================================================


class AccessError(ConsentLedgerError):
    """Base exception for access control failures."""

    pass


class UnauthorizedError(AccessError):
    """Exception raised when the caller lacks the required relation or role."""

    def __init__(
        self,
        caller: str,
        subject: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        target = f" on behalf of {subject}" if subject is not None else ""
        action = f" to {operation}" if operation else ""
        super().__init__(
            f"Principal {caller} is not authorized{action}{target}",
            error_code="UNAUTHORIZED",
            details={"caller": caller, "subject": subject, "operation": operation},
        )
        self.caller = caller
        self.subject = subject
        self.operation = operation


# =============================================================================
# Consent & Record Exceptions
# =============================================================================


class ConsentRequiredError(ConsentLedgerError):
    """Exception raised when a write is attempted without active consent."""

    def __init__(self, subject: str, category: str):
        super().__init__(
            f"No active consent from {subject} for category '{category}'",
            error_code="CONSENT_REQUIRED",
            details={"subject": subject, "category": category},
        )
        self.subject = subject
        self.category = category


class IndexOutOfBoundsError(ConsentLedgerError, IndexError):
    """Exception raised when a record index does not exist."""

    def __init__(self, subject: str, index: int, length: int):
        super().__init__(
            f"Record index {index} out of bounds for {subject} "
            f"({length} record(s))",
            error_code="INDEX_OUT_OF_BOUNDS",
            details={"subject": subject, "index": index, "length": length},
        )
        self.subject = subject
        self.index = index
        self.length = length


# =============================================================================
# Journal Exceptions
# =============================================================================


class JournalError(ConsentLedgerError):
    """Exception raised when a notification journal cannot be written or read."""

    def __init__(self, message: str, notification: Optional[dict] = None):
        super().__init__(
            message,
            error_code="JOURNAL_ERROR",
            details={"notification": notification},
        )


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationError(ConsentLedgerError):
    """Exception raised for configuration errors."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(
            message,
            error_code="CONFIGURATION_ERROR",
            details={"config_key": config_key},
        )
        self.config_key = config_key
