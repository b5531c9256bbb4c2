"""Domain operations for Milestone model - Shared CRUD operations."""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from sqlmodel import Session, select
from sqlalchemy import update
from crowdledger.models import Milestone


class MilestoneOperations:
    """Core CRUD operations for Milestone model."""

    @staticmethod
    def get_by_id(session: Session, milestone_id: UUID) -> Optional[Milestone]:
        return session.get(Milestone, milestone_id)

    @staticmethod
    def get_by_company(session: Session, company_id: UUID, verified_only: bool = False) -> List[Milestone]:
        """Get milestones of a company, newest first.

        Args:
            session: Database session
            company_id: Company UUID
            verified_only: If True, only return verified milestones

        Returns:
            List of milestones
        """
        stmt = (
            select(Milestone)
            .where(Milestone.company_id == company_id)
            .order_by(Milestone.created_at.desc())
        )

        if verified_only:
            stmt = stmt.where(Milestone.verified == True)  # noqa: E712

        return list(session.exec(stmt).all())

    @staticmethod
    def create(session: Session, milestone: Milestone, commit: bool = True) -> Milestone:
        session.add(milestone)

        if commit:
            session.commit()
            session.refresh(milestone)
        else:
            session.flush()

        return milestone

    @staticmethod
    def mark_verified(
        session: Session,
        milestone_id: UUID,
        verified_by: UUID,
        notes: Optional[str] = None,
    ) -> bool:
        """Transition a milestone from unverified to verified.

        The ``verified = false`` predicate makes the transition happen at most
        once even when two verifiers race.

        Returns:
            True if this call performed the transition, False otherwise
        """
        stmt = (
            update(Milestone)
            .where(Milestone.id == milestone_id, Milestone.verified == False)  # noqa: E712
            .values(
                verified=True,
                verified_at=datetime.utcnow(),
                verified_by=verified_by,
                verification_notes=notes,
            )
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    @staticmethod
    def mark_blockchain_confirmed(session: Session, milestone_id: UUID, tx_hash: str) -> bool:
        stmt = (
            update(Milestone)
            .where(Milestone.id == milestone_id, Milestone.is_blockchain_verified == False)  # noqa: E712
            .values(blockchain_tx_hash=tx_hash, is_blockchain_verified=True)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1
