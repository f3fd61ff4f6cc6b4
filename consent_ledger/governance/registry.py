"""
Data Registry Service
=====================
The consent-gated data registry exposed to external callers.

Composes the principal registry, authorization graph, consent store,
record log and access evaluator behind one service object. Every call
takes the already-authenticated calling principal explicitly. Mutations
are serialized under a single lock together with their change
notification, and every check runs before any state is touched, so a
rejected call leaves both state and journal unchanged.
"""

import threading
from typing import Any, Callable, Iterable, Optional, Union
import structlog

from consent_ledger.core.models import (
    ApprovalChanged,
    ApprovalKind,
    Consent,
    ConsentChanged,
    DataCategory,
    DataRecord,
    LedgerConfig,
    Notification,
    Principal,
    RecordAdded,
    RecordRedacted,
    VerificationChanged,
)
from consent_ledger.core.exceptions import (
    ConfigurationError,
    ConsentRequiredError,
    IndexOutOfBoundsError,
    JournalError,
)
from consent_ledger.core.utils import ManualClock, SystemClock, short_id
from .access import AccessEvaluator
from .authorization import AuthorizationGraph
from .consent_store import ConsentStore
from .notifications import ChangeNotifier, open_journal
from .principals import PrincipalRegistry
from .record_log import RecordLog

logger = structlog.get_logger(__name__)

Clock = Callable[[], int]


class DataRegistry:
    """
    Append-only, consent-gated registry of data fingerprints.

    Example:
        >>> registry = DataRegistry(administrator="admin", clock=ManualClock(10))
        >>> registry.set_consent("alice", DataCategory.HEALTH, True)
        >>> registry.add_data_record(
        ...     "alice", "alice", DataCategory.HEALTH, "0xaa", "cid1", "0x01", 5
        ... )
        0
    """

    def __init__(
        self,
        administrator: Principal,
        clock: Optional[Clock] = None,
        notifier: Optional[ChangeNotifier] = None,
    ):
        """
        Initialize the registry.

        Args:
            administrator: Principal allowed to verify organizations. Fixed
                for the lifetime of the registry.
            clock: Source of the current time in Unix seconds.
            notifier: Notification journal; a fresh one is created if None.
        """
        self.principals = PrincipalRegistry(administrator)
        self.authorizations = AuthorizationGraph()
        self.consents = ConsentStore()
        self.records = RecordLog()
        self.evaluator = AccessEvaluator(self.principals, self.authorizations)
        self.notifier = notifier or ChangeNotifier()
        self.clock: Clock = clock or SystemClock()
        self._lock = threading.RLock()

    @classmethod
    def from_config(
        cls, config: LedgerConfig, clock: Optional[Clock] = None
    ) -> "DataRegistry":
        """
        Build a registry from configuration, attaching the journal sink.

        Raises:
            ConfigurationError: If no administrator is configured.
        """
        if not config.administrator:
            raise ConfigurationError(
                "No administrator configured", config_key="registry.administrator"
            )
        registry = cls(config.administrator, clock=clock)
        sink = open_journal(
            config.journal.backend,
            path=config.journal.path,
            buffer_size=config.journal.buffer_size,
        )
        if sink is not None:
            registry.notifier.subscribe(sink)

        logger.info(
            "Registry created from config",
            administrator=short_id(config.administrator),
            journal=config.journal.backend,
        )
        return registry

    @property
    def administrator(self) -> Principal:
        return self.principals.administrator

    def close(self) -> None:
        """Flush and close every attached journal sink."""
        with self._lock:
            self.notifier.close()

    def __enter__(self) -> "DataRegistry":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Principal Registry
    # -------------------------------------------------------------------------

    def set_verified(
        self, caller: Principal, organization: Principal, verified: bool
    ) -> None:
        """
        Set platform verification of an organization. Administrator only.

        Raises:
            UnauthorizedError: If caller is not the administrator.
        """
        with self._lock:
            self.principals.check_administrator(caller)
            notification = VerificationChanged(
                emitted_at=self.clock(),
                actor=caller,
                organization=organization,
                verified=verified,
            )
            self.principals.set_verified(
                caller, notification.organization, notification.verified
            )
            self.notifier.publish(notification)

    def is_verified(self, organization: Principal) -> bool:
        with self._lock:
            return self.principals.is_verified(organization)

    # -------------------------------------------------------------------------
    # Authorization Graph
    # -------------------------------------------------------------------------

    def _set_approval(
        self, kind: ApprovalKind, caller: Principal, grantee: Principal, approved: bool
    ) -> None:
        with self._lock:
            notification = ApprovalChanged(
                emitted_at=self.clock(),
                actor=caller,
                approval=kind,
                subject=caller,
                grantee=grantee,
                approved=approved,
            )
            self.authorizations.set_approval(
                kind, notification.subject, notification.grantee, notification.approved
            )
            self.notifier.publish(notification)

    def set_insurer_approval(
        self, caller: Principal, organization: Principal, approved: bool
    ) -> None:
        """Approve or withdraw an organization's read access to the caller's data."""
        self._set_approval(ApprovalKind.INSURER, caller, organization, approved)

    def set_agent_approval(
        self, caller: Principal, agent: Principal, approved: bool
    ) -> None:
        """Delegate or withdraw write authority for the caller's records."""
        self._set_approval(ApprovalKind.AGENT, caller, agent, approved)

    def is_insurer_approved(self, subject: Principal, organization: Principal) -> bool:
        with self._lock:
            return self.authorizations.is_insurer_approved(subject, organization)

    def is_agent_approved(self, subject: Principal, agent: Principal) -> bool:
        with self._lock:
            return self.authorizations.is_agent_approved(subject, agent)

    # -------------------------------------------------------------------------
    # Consent Store
    # -------------------------------------------------------------------------

    def set_consent(
        self,
        caller: Principal,
        category: Union[DataCategory, str],
        active: bool,
        expires_at: int = 0,
        terms_uri: str = "",
        terms_hash: Any = 0,
    ) -> None:
        """
        Replace the caller's consent for one category.

        Raises:
            ValueError: If category, expiry or terms hash is malformed.
        """
        category = DataCategory(category)
        consent = Consent(
            active=active,
            expires_at=expires_at,
            terms_uri=terms_uri,
            terms_hash=terms_hash,
        )
        with self._lock:
            notification = ConsentChanged(
                emitted_at=self.clock(),
                actor=caller,
                subject=caller,
                category=category,
                active=consent.active,
                expires_at=consent.expires_at,
                terms_uri=consent.terms_uri,
                terms_hash=consent.terms_hash,
            )
            self.consents.set_consent(
                notification.subject,
                category,
                consent.active,
                consent.expires_at,
                consent.terms_uri,
                consent.terms_hash,
            )
            self.notifier.publish(notification)

    def is_consent_active(
        self,
        subject: Principal,
        category: Union[DataCategory, str],
        now: Optional[int] = None,
    ) -> bool:
        """Public check of whether ``subject`` consents to ``category`` at ``now``."""
        with self._lock:
            return self.consents.is_consent_active(
                subject, category, self.clock() if now is None else now
            )

    def get_consent(
        self,
        subject: Principal,
        caller: Principal,
        category: Union[DataCategory, str],
    ) -> Consent:
        """
        Full consent entry of ``subject`` for ``category``.

        Raises:
            UnauthorizedError: If caller has no read access to subject.
        """
        category = DataCategory(category)
        with self._lock:
            self.evaluator.require_access(subject, caller, operation="read consent")
            return self.consents.get(subject, category)

    # -------------------------------------------------------------------------
    # Record Log
    # -------------------------------------------------------------------------

    def add_data_record(
        self,
        caller: Principal,
        subject: Principal,
        category: Union[DataCategory, str],
        data_hash: Any,
        location_uri: str,
        encryption_key_hint: Any,
        collected_at: int,
    ) -> int:
        """
        Append a record for ``subject``.

        Args:
            caller: The subject itself or an agent it approved.
            subject: Owner of the new record.
            category: Data category; the subject must consent to it now.
            data_hash: Fingerprint of the encrypted payload.
            location_uri: Where the payload is stored.
            encryption_key_hint: Identifies the key material.
            collected_at: When the source data was captured.

        Returns:
            Zero-based index of the new record.

        Raises:
            UnauthorizedError: If caller may not write for subject.
            ConsentRequiredError: If subject has no active consent for category.
            ValueError: If any field is malformed.
        """
        category = DataCategory(category)
        with self._lock:
            now = self.clock()
            self.evaluator.require_write(subject, caller)
            if not self.consents.is_consent_active(subject, category, now):
                logger.warning(
                    "Record rejected",
                    subject=short_id(subject),
                    category=category.value,
                    reason="consent_required",
                )
                raise ConsentRequiredError(subject, category.value)

            record = DataRecord(
                category=category,
                data_hash=data_hash,
                location_uri=location_uri,
                encryption_key_hint=encryption_key_hint,
                collected_at=collected_at,
                stored_at=now,
            )
            notification = RecordAdded(
                emitted_at=now,
                actor=caller,
                subject=subject,
                index=self.records.count(subject),
                category=record.category,
                data_hash=record.data_hash,
                location_uri=record.location_uri,
                encryption_key_hint=record.encryption_key_hint,
                collected_at=record.collected_at,
                stored_at=record.stored_at,
            )
            index = self.records.append(notification.subject, record)
            self.notifier.publish(notification)
            return index

    def redact_data(self, caller: Principal, index: int) -> None:
        """
        Flag one of the caller's own records as redacted.

        Raises:
            IndexOutOfBoundsError: If the caller has no record at index.
        """
        with self._lock:
            self.records.check_index(caller, index)
            notification = RecordRedacted(
                emitted_at=self.clock(),
                actor=caller,
                subject=caller,
                index=index,
            )
            self.records.redact(notification.subject, index)
            self.notifier.publish(notification)

    # -------------------------------------------------------------------------
    # Access Evaluator
    # -------------------------------------------------------------------------

    def can_access(self, subject: Principal, caller: Principal) -> bool:
        with self._lock:
            return self.evaluator.can_access(subject, caller)

    def get_record_count(self, subject: Principal, caller: Principal) -> int:
        """
        Number of records of ``subject``, redacted ones included.

        Raises:
            UnauthorizedError: If caller has no read access to subject.
        """
        with self._lock:
            self.evaluator.require_access(subject, caller, operation="count records")
            return self.records.count(subject)

    def get_record_at(
        self, subject: Principal, caller: Principal, index: int
    ) -> DataRecord:
        """
        Record ``index`` of ``subject``, with its redaction flag.

        Redacted records are returned like any other.

        Raises:
            UnauthorizedError: If caller has no read access to subject.
            IndexOutOfBoundsError: If no such record exists.
        """
        with self._lock:
            self.evaluator.require_access(subject, caller, operation="read records")
            record = self.records.get(subject, index)
            logger.debug(
                "Record read",
                subject=short_id(subject),
                caller=short_id(caller),
                index=index,
            )
            return record


# =============================================================================
# Replay
# =============================================================================


def replay(
    notifications: Iterable[Notification],
    administrator: Principal,
    clock: Optional[Clock] = None,
) -> DataRegistry:
    """
    Rebuild a registry from a notification journal.

    Notifications are applied directly to the stores without re-running
    authorization, since a journal only holds accepted mutations. They must
    form a gap-free sequence starting at 0.

    Args:
        notifications: Journal in sequence order.
        administrator: Administrator of the original registry.
        clock: Clock for the rebuilt registry.

    Returns:
        A registry whose state and journal match the original.

    Raises:
        JournalError: If the journal is out of order, gapped or inconsistent.
    """
    registry = DataRegistry(administrator, clock=clock or ManualClock())
    applied = 0

    for notification in notifications:
        expected = registry.notifier.next_sequence
        if notification.sequence != expected:
            raise JournalError(
                f"Expected sequence {expected}, got {notification.sequence}",
                notification=notification.to_log_entry(),
            )

        if isinstance(notification, VerificationChanged):
            registry.principals.set_verified(
                administrator, notification.organization, notification.verified
            )
        elif isinstance(notification, ApprovalChanged):
            registry.authorizations.set_approval(
                notification.approval,
                notification.subject,
                notification.grantee,
                notification.approved,
            )
        elif isinstance(notification, ConsentChanged):
            consent = notification.to_consent()
            registry.consents.set_consent(
                notification.subject,
                notification.category,
                consent.active,
                consent.expires_at,
                consent.terms_uri,
                consent.terms_hash,
            )
        elif isinstance(notification, RecordAdded):
            index = registry.records.append(
                notification.subject, notification.to_record()
            )
            if index != notification.index:
                raise JournalError(
                    f"Record index mismatch for {notification.subject}: "
                    f"journal has {notification.index}, replay produced {index}",
                    notification=notification.to_log_entry(),
                )
        elif isinstance(notification, RecordRedacted):
            try:
                registry.records.redact(notification.subject, notification.index)
            except IndexOutOfBoundsError as e:
                raise JournalError(
                    f"Redaction of a record that was never added: {e.message}",
                    notification=notification.to_log_entry(),
                )
        else:
            raise JournalError(
                f"Cannot replay notification kind {notification.kind.value}",
                notification=notification.to_log_entry(),
            )

        registry.notifier.publish(notification)
        applied += 1

    logger.info("Journal replayed", notifications=applied)
    return registry
