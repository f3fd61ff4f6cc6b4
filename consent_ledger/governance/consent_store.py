"""
Consent Store Module
====================
Per-subject, per-category consent with optional expiry.

Each ``set_consent`` fully replaces the previous entry for the pair. The
store keeps no history; past states can only be reconstructed from the
change notifications.
"""

from typing import Any, Dict, List, Tuple, Union
import structlog

from consent_ledger.core.models import Consent, DataCategory, Principal
from consent_ledger.core.utils import short_id

logger = structlog.get_logger(__name__)


class ConsentStore:
    """Current consent state of every (subject, category) pair."""

    def __init__(self):
        self._consents: Dict[Tuple[Principal, DataCategory], Consent] = {}

    def set_consent(
        self,
        subject: Principal,
        category: Union[DataCategory, str],
        active: bool,
        expires_at: int = 0,
        terms_uri: str = "",
        terms_hash: Any = 0,
    ) -> Consent:
        """
        Overwrite the consent of ``subject`` for ``category``.

        No check is made that ``expires_at`` lies in the future; an
        already-expired consent is stored and is simply never active.

        Args:
            subject: The calling principal.
            category: Data category the consent covers.
            active: Whether consent is granted.
            expires_at: Unix seconds after which consent lapses (0 = never).
            terms_uri: Reference to human-readable terms.
            terms_hash: Fingerprint of the terms document.

        Returns:
            The stored consent.

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
        self._consents[(subject, category)] = consent

        logger.info(
            "Consent set",
            subject=short_id(subject),
            category=category.value,
            active=consent.active,
            expires_at=consent.expires_at,
        )
        return consent.model_copy()

    def get(self, subject: Principal, category: Union[DataCategory, str]) -> Consent:
        """Current consent; a never-set pair reads as inactive."""
        consent = self._consents.get((subject, DataCategory(category)))
        return consent.model_copy() if consent is not None else Consent()

    def is_consent_active(
        self, subject: Principal, category: Union[DataCategory, str], now: int
    ) -> bool:
        """Check whether consent is in force at ``now``."""
        consent = self._consents.get((subject, DataCategory(category)))
        return consent is not None and consent.is_active_at(now)

    def categories(self, subject: Principal) -> List[DataCategory]:
        """Categories ``subject`` has ever set consent for."""
        return [category for (owner, category) in self._consents if owner == subject]
