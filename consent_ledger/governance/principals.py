"""
Principal Registry Module
=========================
Tracks which external organizations the platform has verified.

Only the administrator fixed at construction may change verification
status. There is no way to hand the role to another principal.
"""

from typing import Dict, List
import structlog

from consent_ledger.core.models import Principal
from consent_ledger.core.exceptions import UnauthorizedError
from consent_ledger.core.utils import as_bool, short_id

logger = structlog.get_logger(__name__)


class PrincipalRegistry:
    """Platform verification status of organizations."""

    def __init__(self, administrator: Principal):
        """
        Initialize principal registry.

        Args:
            administrator: Sole principal allowed to verify organizations.
        """
        if not administrator:
            raise ValueError("An administrator principal is required")
        self._administrator = administrator
        self._verified: Dict[Principal, bool] = {}

    @property
    def administrator(self) -> Principal:
        return self._administrator

    def check_administrator(self, caller: Principal) -> None:
        """
        Raise unless ``caller`` is the administrator.

        Raises:
            UnauthorizedError: If caller is any other principal.
        """
        if caller != self._administrator:
            logger.warning(
                "Verification change rejected",
                caller=short_id(caller),
                reason="not_administrator",
            )
            raise UnauthorizedError(caller, operation="set verification status")

    def set_verified(
        self, caller: Principal, organization: Principal, verified: bool
    ) -> bool:
        """
        Mark an organization as verified or unverified.

        Args:
            caller: Calling principal; must be the administrator.
            organization: Organization whose status changes.
            verified: New status.

        Returns:
            The stored status.

        Raises:
            UnauthorizedError: If caller is not the administrator.
            ValueError: If verified is not a boolean flag.
        """
        self.check_administrator(caller)
        self._verified[organization] = as_bool(verified)

        logger.info(
            "Organization verification set",
            organization=short_id(organization),
            verified=self._verified[organization],
        )
        return self._verified[organization]

    def is_verified(self, organization: Principal) -> bool:
        """Absent organizations are unverified."""
        return self._verified.get(organization, False)

    def verified_organizations(self) -> List[Principal]:
        """Organizations currently verified."""
        return [org for org, verified in self._verified.items() if verified]
