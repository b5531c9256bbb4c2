"""Milestone Processor - Milestone creation and one-time valuation updates."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlmodel import Session
from sqlalchemy.exc import SQLAlchemyError

from crowdledger.core.exceptions import (
    MilestoneAccessDeniedError,
    MilestoneNotFoundError,
    PersistenceError,
    ValidationError,
)
from crowdledger.domain import (
    ChainTransactionOperations,
    CompanyOperations,
    MilestoneOperations,
    ValuationLedger,
    to_amount,
)
from crowdledger.models import ChainTxKind, Milestone
from crowdledger.services import MILESTONE_VERIFIED, BlockchainMirror, EventBus
from .chain_writes import ChainWriteOutcome, run_chain_write

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 10


@dataclass
class MilestoneVerification:
    milestone: Milestone
    applied: bool                 # False when the milestone was already verified
    valuation: Decimal


class MilestoneProcessor:
    """Creates milestones and applies their valuation impact on verification."""

    def __init__(
        self,
        session: Session,
        mirror: Optional[BlockchainMirror] = None,
        events: Optional[EventBus] = None,
    ):
        self.session = session
        self.mirror = mirror
        self.events = events or EventBus()

    def create_milestone(
        self,
        company_id: UUID,
        owner_id: UUID,
        milestone_type: str,
        description: str,
        valuation_impact: Decimal = Decimal("0"),
        owner_wallet: Optional[str] = None,
    ) -> Milestone:
        """Record an unverified milestone for a company.

        The on-chain completeMilestone call is best effort: a failed or
        pending write never blocks the milestone record.

        Raises:
            ValidationError: Empty type or description shorter than 10 characters
            CompanyNotFoundError: Unknown company
            MilestoneAccessDeniedError: Caller does not own the company
            PersistenceError: Ledger write failed
        """
        milestone_type = (milestone_type or "").strip()
        description = (description or "").strip()
        if not milestone_type:
            raise ValidationError("Milestone type is required")
        if len(description) < MIN_DESCRIPTION_LENGTH:
            raise ValidationError(f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters")
        impact = to_amount(valuation_impact, "valuation_impact")

        company = CompanyOperations.get_or_raise(self.session, company_id)
        if company.owner_id != owner_id:
            raise MilestoneAccessDeniedError(company_id)

        chain: Optional[ChainWriteOutcome] = None
        if self.mirror is not None and company.blockchain_token_id and owner_wallet:
            chain = run_chain_write(
                self.session,
                self.mirror,
                lambda: self.mirror.complete_milestone(
                    company.blockchain_token_id, milestone_type, description, impact
                ),
                ChainTxKind.MILESTONE,
                company.id,
            )

        milestone = Milestone(
            company_id=company.id,
            milestone_type=milestone_type,
            description=description,
            valuation_impact=impact,
            blockchain_tx_hash=chain.tx_hash if chain else None,
            is_blockchain_verified=chain is not None and chain.confirmed,
        )

        try:
            MilestoneOperations.create(self.session, milestone, commit=False)
            ValuationLedger.increment_milestone_count(self.session, company.id)
            if chain is not None and chain.tx_hash:
                ChainTransactionOperations.attach_subject(self.session, chain.tx_hash, milestone.id)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to record milestone for {company.id}: {e}")
            raise PersistenceError(f"Failed to record milestone: {e}") from e

        logger.info(f"Milestone {milestone.id} ({milestone_type}) created for company {company.id}")
        return milestone

    def verify_milestone(
        self,
        milestone_id: UUID,
        verifier_id: UUID,
        notes: Optional[str] = None,
    ) -> MilestoneVerification:
        """Verify a milestone and apply its valuation impact exactly once.

        A second verification of the same milestone is a successful no-op.

        Raises:
            MilestoneNotFoundError: Unknown milestone
            ValidationError: Impact would make the valuation non-positive
                (the milestone stays unverified)
            PersistenceError: Ledger write failed
        """
        milestone = MilestoneOperations.get_by_id(self.session, milestone_id)
        if milestone is None:
            raise MilestoneNotFoundError(milestone_id)

        try:
            applied = MilestoneOperations.mark_verified(self.session, milestone_id, verifier_id, notes)
            if applied:
                ValuationLedger.apply_milestone_valuation_delta(
                    self.session, milestone.company_id, milestone.valuation_impact
                )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to verify milestone {milestone_id}: {e}")
            raise PersistenceError(f"Failed to verify milestone: {e}") from e
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(milestone)
        company = CompanyOperations.get_or_raise(self.session, milestone.company_id, refresh=True)

        if applied:
            logger.info(
                f"Milestone {milestone_id} verified; valuation of {company.id} "
                f"moved by {milestone.valuation_impact} to {company.valuation}"
            )
            self.events.publish(
                MILESTONE_VERIFIED,
                {
                    "company_id": str(company.id),
                    "milestone_id": str(milestone_id),
                    "valuation_impact": str(milestone.valuation_impact),
                    "valuation": str(company.valuation),
                },
            )
        else:
            logger.info(f"Milestone {milestone_id} already verified; no valuation change")

        return MilestoneVerification(milestone=milestone, applied=applied, valuation=company.valuation)
