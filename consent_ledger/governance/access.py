"""
Access Evaluator Module
=======================
Pure decision functions over the principal registry and authorization
graph.

Read access: the subject itself, or an organization that is both approved
by the subject and verified by the platform. Neither condition suffices
alone. Write access: the subject itself, or an agent it has approved.
Redaction never affects either decision.
"""

import structlog

from consent_ledger.core.models import Principal
from consent_ledger.core.exceptions import UnauthorizedError
from consent_ledger.core.utils import short_id
from .authorization import AuthorizationGraph
from .principals import PrincipalRegistry

logger = structlog.get_logger(__name__)


class AccessEvaluator:
    """Side-effect free access decisions."""

    def __init__(
        self,
        principals: PrincipalRegistry,
        authorizations: AuthorizationGraph,
    ):
        self.principals = principals
        self.authorizations = authorizations

    def can_access(self, subject: Principal, caller: Principal) -> bool:
        """Check whether ``caller`` may read ``subject``'s records and consent."""
        if caller == subject:
            return True
        return self.authorizations.is_insurer_approved(
            subject, caller
        ) and self.principals.is_verified(caller)

    def can_write(self, subject: Principal, caller: Principal) -> bool:
        """Check whether ``caller`` may add records for ``subject``."""
        return caller == subject or self.authorizations.is_agent_approved(
            subject, caller
        )

    def require_access(
        self, subject: Principal, caller: Principal, operation: str = "read records"
    ) -> None:
        """
        Raise unless ``caller`` has read access to ``subject``.

        Raises:
            UnauthorizedError: If access is denied.
        """
        if not self.can_access(subject, caller):
            logger.warning(
                "Read access denied",
                subject=short_id(subject),
                caller=short_id(caller),
                operation=operation,
            )
            raise UnauthorizedError(caller, subject=subject, operation=operation)

    def require_write(self, subject: Principal, caller: Principal) -> None:
        """
        Raise unless ``caller`` may write records for ``subject``.

        Raises:
            UnauthorizedError: If caller is neither the subject nor an approved agent.
        """
        if not self.can_write(subject, caller):
            logger.warning(
                "Write access denied",
                subject=short_id(subject),
                caller=short_id(caller),
            )
            raise UnauthorizedError(caller, subject=subject, operation="add records")
