"""Submit-then-confirm helper shared by the ledger workflows.

Every mirrored write goes through ``run_chain_write``:
1. submit through the mirror
2. commit a ChainTransaction row holding the hash
3. wait for the receipt under the mirror's bound
4. record the outcome on the ChainTransaction row

The hash is committed before the wait starts, so a timeout or a crash during
the wait leaves a row that ``ChainReconciler.sweep_pending`` can resolve.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID

from sqlmodel import Session
from sqlalchemy.exc import SQLAlchemyError

from crowdledger.core.exceptions import (
    BlockchainWriteFailed,
    ConfirmationTimeoutError,
    PersistenceError,
)
from crowdledger.domain import ChainTransactionOperations
from crowdledger.models import ChainTxKind
from crowdledger.services import BlockchainMirror, ChainReceipt, ChainSubmission

logger = logging.getLogger(__name__)


class ChainWriteStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"      # submitted, receipt not seen within the bound
    FAILED = "failed"        # rejected, unreachable, or reverted


@dataclass
class ChainWriteOutcome:
    """Result of one mirrored write."""

    status: ChainWriteStatus
    tx_hash: Optional[str] = None
    receipt: Optional[ChainReceipt] = None
    error: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.status == ChainWriteStatus.CONFIRMED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "tx_hash": self.tx_hash,
            "block_number": self.receipt.block_number if self.receipt else None,
            "gas_used": self.receipt.gas_used if self.receipt else None,
            "error": self.error,
        }


def run_chain_write(
    session: Session,
    mirror: BlockchainMirror,
    submit: Callable[[], ChainSubmission],
    kind: ChainTxKind,
    company_id: UUID,
    subject_id: Optional[UUID] = None,
    timeout_seconds: Optional[float] = None,
    details: Optional[dict[str, Any]] = None,
) -> ChainWriteOutcome:
    """Submit a mirrored write, persist its hash, then wait for confirmation.

    Mirror failures are returned as outcomes, never raised; the caller
    decides whether a failed or pending write is fatal.

    Args:
        session: Database session (commits the tracking row)
        mirror: Blockchain mirror
        submit: Zero-argument callable performing the mirror submission
        kind: What the write mirrors
        company_id: Company the write belongs to
        subject_id: Investment/milestone UUID if already known
        timeout_seconds: Override of the mirror's confirmation bound
        details: Extra tracking fields stored with the hash (see record_submission)

    Returns:
        ChainWriteOutcome

    Raises:
        PersistenceError: If the transaction hash could not be recorded
    """
    try:
        submission = submit()
    except BlockchainWriteFailed as e:
        logger.warning(f"{kind.value} write for company {company_id} not submitted: {e}")
        return ChainWriteOutcome(status=ChainWriteStatus.FAILED, error=str(e))

    tx_hash = submission.tx_hash
    try:
        ChainTransactionOperations.record_submission(
            session, tx_hash, kind, company_id, subject_id=subject_id, commit=True, **(details or {}),
        )
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to record submitted transaction {tx_hash}: {e}")
        raise PersistenceError(f"Submitted transaction {tx_hash} could not be recorded: {e}") from e

    try:
        receipt = mirror.wait_for_receipt(tx_hash, timeout_seconds)
    except ConfirmationTimeoutError as e:
        ChainTransactionOperations.mark_timed_out(session, tx_hash)
        session.commit()
        return ChainWriteOutcome(status=ChainWriteStatus.PENDING, tx_hash=tx_hash, error=str(e))

    if receipt.succeeded:
        ChainTransactionOperations.mark_confirmed(
            session, tx_hash, block_number=receipt.block_number, gas_used=receipt.gas_used
        )
        session.commit()
        return ChainWriteOutcome(status=ChainWriteStatus.CONFIRMED, tx_hash=tx_hash, receipt=receipt)

    ChainTransactionOperations.mark_reverted(session, tx_hash, error="reverted")
    session.commit()
    logger.warning(f"{kind.value} transaction {tx_hash} reverted")
    return ChainWriteOutcome(
        status=ChainWriteStatus.FAILED,
        tx_hash=tx_hash,
        receipt=receipt,
        error=f"Transaction {tx_hash} reverted",
    )
