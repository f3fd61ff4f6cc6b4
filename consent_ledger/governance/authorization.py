"""
Authorization Graph Module
==========================
Per-subject approval relations.

A subject approves organizations to read its records (insurer approval)
and delegates write authority to agents (agent approval). Both relations
are directional: approving X for S says nothing about S for X. Every
mutation is keyed by the calling principal as subject, so no principal
can alter another's approvals.
"""

from typing import Dict, List, Tuple
import structlog

from consent_ledger.core.models import ApprovalKind, Principal
from consent_ledger.core.utils import as_bool, short_id

logger = structlog.get_logger(__name__)


class ApprovalRelation:
    """Directional (subject, grantee) -> bool map. Absence reads as False."""

    def __init__(self, kind: ApprovalKind):
        self.kind = kind
        self._edges: Dict[Tuple[Principal, Principal], bool] = {}

    def set(self, subject: Principal, grantee: Principal, approved: bool) -> bool:
        self._edges[(subject, grantee)] = as_bool(approved)
        return self._edges[(subject, grantee)]

    def get(self, subject: Principal, grantee: Principal) -> bool:
        return self._edges.get((subject, grantee), False)

    def grantees(self, subject: Principal) -> List[Principal]:
        """Principals currently approved by ``subject``."""
        return [
            grantee
            for (owner, grantee), approved in self._edges.items()
            if owner == subject and approved
        ]


class AuthorizationGraph:
    """
    Owns the insurer and agent approval relations of every subject.

    Setters always succeed and are idempotent.
    """

    def __init__(self):
        self.insurers = ApprovalRelation(ApprovalKind.INSURER)
        self.agents = ApprovalRelation(ApprovalKind.AGENT)

    def relation(self, kind: ApprovalKind) -> ApprovalRelation:
        kind = ApprovalKind(kind)
        return self.insurers if kind == ApprovalKind.INSURER else self.agents

    def set_approval(
        self,
        kind: ApprovalKind,
        subject: Principal,
        grantee: Principal,
        approved: bool,
    ) -> bool:
        """
        Set one approval edge for ``subject``.

        Args:
            kind: Which relation to update.
            subject: The calling principal.
            grantee: Organization or agent being approved.
            approved: New approval value.

        Returns:
            The stored value.
        """
        relation = self.relation(kind)
        stored = relation.set(subject, grantee, approved)

        logger.info(
            "Approval set",
            kind=relation.kind.value,
            subject=short_id(subject),
            grantee=short_id(grantee),
            approved=stored,
        )
        return stored

    def set_insurer_approval(
        self, subject: Principal, organization: Principal, approved: bool
    ) -> bool:
        return self.set_approval(ApprovalKind.INSURER, subject, organization, approved)

    def set_agent_approval(
        self, subject: Principal, agent: Principal, approved: bool
    ) -> bool:
        return self.set_approval(ApprovalKind.AGENT, subject, agent, approved)

    def is_insurer_approved(self, subject: Principal, organization: Principal) -> bool:
        return self.insurers.get(subject, organization)

    def is_agent_approved(self, subject: Principal, agent: Principal) -> bool:
        return self.agents.get(subject, agent)
