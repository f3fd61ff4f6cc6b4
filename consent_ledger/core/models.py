"""
Consent Ledger Data Models
==========================
Pydantic models for data structures used throughout the consent ledger.
"""

from enum import Enum
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import ZERO_BYTES32, to_bytes32


# Principals are opaque handles resolved by the caller's authentication layer.
Principal = str


# =============================================================================
# Enums
# =============================================================================


class DataCategory(str, Enum):
    """Categories of third-party data a subject can register."""

    DRIVING = "driving"
    HEALTH = "health"
    OTHER = "other"


class ApprovalKind(str, Enum):
    """The two subject-scoped approval relations."""

    INSURER = "insurer"  # read access for a verified organization
    AGENT = "agent"  # write access on the subject's behalf


class NotificationKind(str, Enum):
    """Kinds of change notification emitted by the registry."""

    VERIFICATION_CHANGED = "verification_changed"
    APPROVAL_CHANGED = "approval_changed"
    CONSENT_CHANGED = "consent_changed"
    RECORD_ADDED = "record_added"
    RECORD_REDACTED = "record_redacted"


# =============================================================================
# Consent & Records
# =============================================================================


class Consent(BaseModel):
    """
    Consent given by a subject for one data category.

    An entry that was never set reads as this model's defaults, which is an
    inactive consent.
    """

    active: bool = Field(default=False)
    expires_at: int = Field(
        default=0, ge=0, description="Unix seconds; 0 means never expires"
    )
    terms_uri: str = Field(default="", description="Human-readable terms")
    terms_hash: str = Field(
        default=ZERO_BYTES32, description="Fingerprint of the terms document"
    )

    @field_validator("terms_hash", mode="before")
    @classmethod
    def normalise_terms_hash(cls, v: Any) -> str:
        return to_bytes32(v)

    def is_active_at(self, now: int) -> bool:
        """Check whether the consent is in force at ``now``."""
        return self.active and (self.expires_at == 0 or now <= self.expires_at)


class DataRecord(BaseModel):
    """
    Fingerprint of one piece of encrypted third-party data.

    The payload itself lives at ``location_uri``; the ledger only keeps its
    hash and a hint of which key encrypts it. Records are immutable values.
    """

    model_config = ConfigDict(frozen=True)

    category: DataCategory = Field(..., description="Data category")
    data_hash: str = Field(..., description="Hash of the encrypted payload")
    location_uri: str = Field(..., description="External storage reference")
    encryption_key_hint: str = Field(
        ..., description="Identifies the key material for the payload"
    )
    collected_at: int = Field(..., ge=0, description="Supplied by the writer")
    stored_at: int = Field(..., ge=0, description="Assigned by the registry")
    redacted: bool = Field(default=False)

    @field_validator("data_hash", "encryption_key_hint", mode="before")
    @classmethod
    def normalise_fingerprint(cls, v: Any) -> str:
        return to_bytes32(v)


# =============================================================================
# Change Notifications
# =============================================================================


class Notification(BaseModel):
    """
    Envelope shared by all change notifications.

    ``sequence`` is assigned by the notifier when the notification is
    published; unpublished notifications carry ``None``.
    """

    model_config = ConfigDict(frozen=True)

    kind: NotificationKind
    sequence: Optional[int] = Field(default=None, ge=0)
    emitted_at: int = Field(..., ge=0)
    actor: Principal = Field(..., description="Principal that made the change")

    def to_log_entry(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dict."""
        return self.model_dump(mode="json")


class VerificationChanged(Notification):
    kind: NotificationKind = NotificationKind.VERIFICATION_CHANGED
    organization: Principal
    verified: bool


class ApprovalChanged(Notification):
    kind: NotificationKind = NotificationKind.APPROVAL_CHANGED
    approval: ApprovalKind
    subject: Principal
    grantee: Principal
    approved: bool


class ConsentChanged(Notification):
    kind: NotificationKind = NotificationKind.CONSENT_CHANGED
    subject: Principal
    category: DataCategory
    active: bool
    expires_at: int = Field(..., ge=0)
    terms_uri: str
    terms_hash: str

    @field_validator("terms_hash", mode="before")
    @classmethod
    def normalise_terms_hash(cls, v: Any) -> str:
        return to_bytes32(v)

    def to_consent(self) -> Consent:
        return Consent(
            active=self.active,
            expires_at=self.expires_at,
            terms_uri=self.terms_uri,
            terms_hash=self.terms_hash,
        )


class RecordAdded(Notification):
    kind: NotificationKind = NotificationKind.RECORD_ADDED
    subject: Principal
    index: int = Field(..., ge=0)
    category: DataCategory
    data_hash: str
    location_uri: str
    encryption_key_hint: str
    collected_at: int = Field(..., ge=0)
    stored_at: int = Field(..., ge=0)

    @field_validator("data_hash", "encryption_key_hint", mode="before")
    @classmethod
    def normalise_fingerprint(cls, v: Any) -> str:
        return to_bytes32(v)

    def to_record(self) -> DataRecord:
        return DataRecord(
            category=self.category,
            data_hash=self.data_hash,
            location_uri=self.location_uri,
            encryption_key_hint=self.encryption_key_hint,
            collected_at=self.collected_at,
            stored_at=self.stored_at,
        )


class RecordRedacted(Notification):
    kind: NotificationKind = NotificationKind.RECORD_REDACTED
    subject: Principal
    index: int = Field(..., ge=0)


NOTIFICATION_TYPES = {
    NotificationKind.VERIFICATION_CHANGED: VerificationChanged,
    NotificationKind.APPROVAL_CHANGED: ApprovalChanged,
    NotificationKind.CONSENT_CHANGED: ConsentChanged,
    NotificationKind.RECORD_ADDED: RecordAdded,
    NotificationKind.RECORD_REDACTED: RecordRedacted,
}


# =============================================================================
# Configuration Models
# =============================================================================


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: str = Field(default="INFO")
    format: Literal["json", "console"] = Field(default="json")
    file: Optional[str] = Field(default=None)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v


class JournalConfig(BaseModel):
    """Configuration for the notification journal sink."""

    backend: Literal["memory", "jsonl", "sqlite"] = Field(default="memory")
    path: Optional[str] = Field(default=None)
    buffer_size: int = Field(default=1, ge=1)


class LedgerConfig(BaseModel):
    """Top-level ledger configuration."""

    administrator: Optional[Principal] = Field(
        default=None, description="Principal allowed to verify organizations"
    )
    journal: JournalConfig = Field(default_factory=JournalConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
