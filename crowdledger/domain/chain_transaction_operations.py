"""Domain operations for ChainTransaction model - Submitted mirror writes."""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from sqlmodel import Session, select
from crowdledger.models import ChainTransaction, ChainTxKind, ChainTxStatus


class ChainTransactionOperations:
    """Track submitted contract writes through to confirmation."""

    @staticmethod
    def get_by_hash(session: Session, tx_hash: str) -> Optional[ChainTransaction]:
        stmt = select(ChainTransaction).where(ChainTransaction.tx_hash == tx_hash)
        return session.exec(stmt).first()

    @staticmethod
    def record_submission(
        session: Session,
        tx_hash: str,
        kind: ChainTxKind,
        company_id: UUID,
        subject_id: Optional[UUID] = None,
        investor_id: Optional[UUID] = None,
        amount: Optional[Decimal] = None,
        ownership_percentage: Optional[Decimal] = None,
        commit: bool = True,
    ) -> ChainTransaction:
        """Persist a freshly submitted transaction hash.

        Commits by default: the hash must be durable before the caller starts
        waiting for the receipt.

        Args:
            session: Database session
            tx_hash: Transaction hash returned by the gateway
            kind: What the write mirrors (mint, invest, milestone)
            company_id: Company the write belongs to
            subject_id: Investment or milestone UUID, when already known
            investor_id: Investor behind an investment write
            amount: Ledger amount of an investment write
            ownership_percentage: Priced share of an investment write
            commit: If True, commit immediately

        Returns:
            The tracking row
        """
        tx = ChainTransaction(
            tx_hash=tx_hash,
            kind=kind.value,
            company_id=company_id,
            subject_id=subject_id,
            investor_id=investor_id,
            amount=amount,
            ownership_percentage=ownership_percentage,
        )
        session.add(tx)

        if commit:
            session.commit()
            session.refresh(tx)
        else:
            session.flush()

        return tx

    @staticmethod
    def attach_subject(session: Session, tx_hash: str, subject_id: UUID) -> None:
        tx = ChainTransactionOperations.get_by_hash(session, tx_hash)
        if tx is not None:
            tx.subject_id = subject_id

    @staticmethod
    def mark_confirmed(
        session: Session,
        tx_hash: str,
        block_number: Optional[int] = None,
        gas_used: Optional[int] = None,
    ) -> None:
        tx = ChainTransactionOperations.get_by_hash(session, tx_hash)
        if tx is None:
            return
        tx.status = ChainTxStatus.CONFIRMED.value
        tx.block_number = block_number
        tx.gas_used = gas_used
        tx.confirmed_at = datetime.utcnow()
        tx.error = None

    @staticmethod
    def mark_reverted(session: Session, tx_hash: str, error: Optional[str] = None) -> None:
        tx = ChainTransactionOperations.get_by_hash(session, tx_hash)
        if tx is None:
            return
        tx.status = ChainTxStatus.REVERTED.value
        tx.error = error

    @staticmethod
    def mark_timed_out(session: Session, tx_hash: str) -> None:
        tx = ChainTransactionOperations.get_by_hash(session, tx_hash)
        if tx is not None and tx.status == ChainTxStatus.SUBMITTED.value:
            tx.status = ChainTxStatus.TIMED_OUT.value

    @staticmethod
    def get_pending(session: Session, limit: Optional[int] = None) -> List[ChainTransaction]:
        """Transactions whose confirmation was never observed, oldest first."""
        stmt = (
            select(ChainTransaction)
            .where(
                ChainTransaction.status.in_(
                    [ChainTxStatus.SUBMITTED.value, ChainTxStatus.TIMED_OUT.value]
                )
            )
            .order_by(ChainTransaction.submitted_at)
        )

        if limit:
            stmt = stmt.limit(limit)

        return list(session.exec(stmt).all())
