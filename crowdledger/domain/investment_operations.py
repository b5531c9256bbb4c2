"""Domain operations for Investment model - Shared CRUD operations."""

from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from sqlmodel import Session, select
from sqlalchemy import distinct, func, update
from crowdledger.models import Investment, InvestmentType


class InvestmentOperations:
    """Core CRUD operations for Investment model.

    Keep this class focused on data access only - aggregates are maintained
    by ValuationLedger and business rules live in InvestmentRecorder.
    """

    @staticmethod
    def get_by_id(session: Session, investment_id: UUID) -> Optional[Investment]:
        return session.get(Investment, investment_id)

    @staticmethod
    def get_by_tx_hash(session: Session, tx_hash: str) -> Optional[Investment]:
        stmt = select(Investment).where(Investment.blockchain_tx_hash == tx_hash)
        return session.exec(stmt).first()

    @staticmethod
    def get_by_company(session: Session, company_id: UUID, limit: Optional[int] = None) -> List[Investment]:
        """Get investments into a company, newest first.

        Args:
            session: Database session
            company_id: Company UUID
            limit: Optional limit on number of results

        Returns:
            List of investments
        """
        stmt = (
            select(Investment)
            .where(Investment.company_id == company_id)
            .order_by(Investment.created_at.desc())
        )

        if limit:
            stmt = stmt.limit(limit)

        return list(session.exec(stmt).all())

    @staticmethod
    def get_by_investor(session: Session, investor_id: UUID) -> List[Investment]:
        stmt = (
            select(Investment)
            .where(Investment.investor_id == investor_id)
            .order_by(Investment.created_at.desc())
        )
        return list(session.exec(stmt).all())

    @staticmethod
    def count_by_company(session: Session, company_id: UUID) -> int:
        stmt = select(func.count(Investment.id)).where(Investment.company_id == company_id)
        return session.exec(stmt).one()

    @staticmethod
    def sum_by_company(session: Session, company_id: UUID) -> Decimal:
        """Sum of all investment amounts for a company (Decimal('0') if none)."""
        stmt = select(func.sum(Investment.amount)).where(Investment.company_id == company_id)
        total = session.exec(stmt).one()
        return Decimal(str(total)) if total is not None else Decimal("0")

    @staticmethod
    def count_distinct_investors(session: Session, company_id: UUID) -> int:
        stmt = select(func.count(distinct(Investment.investor_id))).where(
            Investment.company_id == company_id
        )
        return session.exec(stmt).one()

    @staticmethod
    def create(session: Session, investment: Investment, commit: bool = True) -> Investment:
        """Create a new investment record.

        Args:
            session: Database session
            investment: Investment model to create
            commit: If True, commit immediately. If False, the row is flushed
                and the caller must commit.

        Returns:
            Created investment with populated ID
        """
        session.add(investment)

        if commit:
            session.commit()
            session.refresh(investment)
        else:
            session.flush()

        return investment

    @staticmethod
    def mark_blockchain_confirmed(session: Session, investment_id: UUID, tx_hash: str) -> bool:
        """Flag an investment as chain-verified after a deferred confirmation.

        Returns:
            True if the investment changed, False if it was already verified or missing
        """
        stmt = (
            update(Investment)
            .where(Investment.id == investment_id, Investment.is_blockchain_verified == False)  # noqa: E712
            .values(
                blockchain_tx_hash=tx_hash,
                is_blockchain_verified=True,
                investment_type=InvestmentType.BLOCKCHAIN.value,
            )
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    @staticmethod
    def demote_to_traditional(session: Session, investment_id: UUID) -> bool:
        """Record that the mirrored write reverted: keep the investment off-chain only.

        The transaction hash is kept for audit.

        Returns:
            True if the investment changed
        """
        stmt = (
            update(Investment)
            .where(
                Investment.id == investment_id,
                Investment.investment_type != InvestmentType.TRADITIONAL.value,
            )
            .values(
                is_blockchain_verified=False,
                investment_type=InvestmentType.TRADITIONAL.value,
            )
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1
