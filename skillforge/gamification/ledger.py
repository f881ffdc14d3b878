"""
Credential Ledger Integration

The credential ledger is the external system of record that durably mints a
verified badge. The engine only talks to it through ``CredentialLedger``.
"""

import abc
import uuid
import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from skillforge.common.exceptions import ExternalIntegrationError
from skillforge.common.logger import app_logger
from skillforge.gamification.models import BadgeAward, VerificationStatus

# Module logger
logger = app_logger.getChild("gamification.ledger")


@dataclass
class LedgerReceipt:
    """Outcome of a verification request."""
    status: VerificationStatus
    transaction_ref: Optional[str] = None
    recorded_at: datetime.datetime = field(default_factory=datetime.datetime.now)


class CredentialLedger(abc.ABC):
    """Abstract client for the credential ledger."""

    @abc.abstractmethod
    async def verify(self, user_id: str, award: BadgeAward, quality_score: float) -> LedgerReceipt:
        """
        Submit an award for verification.

        Args:
            user_id: Learner the badge was awarded to
            award: The badge award
            quality_score: 0-100 quality evidence for the award

        Returns:
            Receipt with the verification status and transaction reference

        Raises:
            ExternalIntegrationError: If the ledger cannot be reached or rejects the award
        """
        pass


class MemoryCredentialLedger(CredentialLedger):
    """
    In-memory ledger for development and testing.

    Issues a random transaction reference per award. Badge names listed in
    ``failing_badges`` are rejected with ``ExternalIntegrationError``.
    """

    def __init__(self, failing_badges: Optional[Set[str]] = None):
        self.failing_badges = set(failing_badges or ())
        self.records: Dict[str, Dict[str, object]] = {}

    async def verify(self, user_id: str, award: BadgeAward, quality_score: float) -> LedgerReceipt:
        if award.badge_name in self.failing_badges:
            raise ExternalIntegrationError(f"ledger rejected badge {award.badge_name}")

        transaction_ref = f"tx_{uuid.uuid4().hex}"
        self.records[transaction_ref] = {
            "user_id": user_id,
            "badge_id": award.badge_id,
            "badge_name": award.badge_name,
            "quality_score": quality_score
        }
        logger.debug(f"Recorded {award.badge_name} for user {user_id} as {transaction_ref}")
        return LedgerReceipt(status=VerificationStatus.VERIFIED, transaction_ref=transaction_ref)

    def badges_for(self, user_id: str) -> List[str]:
        """Names of the badges recorded for a learner."""
        return [
            str(record["badge_name"]) for record in self.records.values()
            if record["user_id"] == user_id
        ]
