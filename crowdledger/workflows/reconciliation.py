"""Chain Reconciler - On-demand verification of ledger linkage against the contract.

Per-company states (``Company.verification_state``):

    UNLINKED --mint confirmed--> LINKED_UNVERIFIED --getCompany ok--> LINKED_VERIFIED

LINKED_VERIFIED is terminal for a token; verifying again is a no-op. A failed
chain read never clears an existing flag.

Also resolves submitted transactions whose confirmation was never observed
(``sweep_pending``). Nothing here runs on a timer; callers trigger it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional
from uuid import UUID

from sqlmodel import Session
from sqlalchemy.exc import SQLAlchemyError

from crowdledger.core.config import settings
from crowdledger.core.exceptions import (
    BlockchainReadFailed,
    BlockchainWriteFailed,
    ChainRecordNotFoundError,
    ConfirmationTimeoutError,
)
from crowdledger.domain import (
    ChainTransactionOperations,
    CompanyOperations,
    InvestmentOperations,
    MilestoneOperations,
    ValuationLedger,
)
from crowdledger.models import (
    ChainTransaction,
    ChainTxKind,
    Company,
    Investment,
    InvestmentType,
    VerificationState,
)
from crowdledger.services import (
    COMPANY_UPDATED,
    INVESTMENT_CREATED,
    BlockchainMirror,
    ChainReceipt,
    CompanySnapshot,
    EventBus,
)
from .chain_writes import ChainWriteStatus, run_chain_write

logger = logging.getLogger(__name__)


def token_uri_for(name: str, base: Optional[str] = None) -> str:
    """Token metadata URI for a company name ("Acme Robotics" -> .../acme-robotics)."""
    base = (base or settings.TOKEN_URI_BASE).rstrip("/")
    return f"{base}/{'-'.join(name.split()).lower()}"


@dataclass
class ReconciliationResult:
    """Outcome of one verification request."""

    company_id: UUID
    state: VerificationState
    changed: bool = False
    token_id: Optional[str] = None
    snapshot: Optional[CompanySnapshot] = None
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "company_id": str(self.company_id),
            "state": self.state.value,
            "changed": self.changed,
            "token_id": self.token_id,
            "message": self.message,
        }


@dataclass
class SweepResult:
    """Metrics of a pending-transaction sweep."""

    total: int = 0
    confirmed: int = 0
    reverted: int = 0
    booked: int = 0
    still_pending: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "confirmed": self.confirmed,
            "reverted": self.reverted,
            "booked": self.booked,
            "still_pending": self.still_pending,
            "failed": self.failed,
            "errors": self.errors[:10],  # Limit to first 10 errors
        }


class ChainReconciler:
    """Compares ledger linkage with live contract state.

    Usage:
        with get_session_context() as session:
            reconciler = ChainReconciler(session, mirror)
            result = reconciler.verify_company(company_id)
    """

    def __init__(self, session: Session, mirror: BlockchainMirror, events: Optional[EventBus] = None):
        self.session = session
        self.mirror = mirror
        self.events = events or EventBus()

    def _publish_company(self, company: Company) -> None:
        self.events.publish(
            COMPANY_UPDATED,
            {
                "company_id": str(company.id),
                "token_id": company.blockchain_token_id,
                "is_blockchain_verified": company.is_blockchain_verified,
            },
        )

    def _publish_investment(self, investment: Investment) -> None:
        company = CompanyOperations.get_or_raise(self.session, investment.company_id, refresh=True)
        self.events.publish(
            INVESTMENT_CREATED,
            {
                "company_id": str(company.id),
                "investment_id": str(investment.id),
                "amount": str(investment.amount),
                "total_investment": str(company.total_investment),
                "investor_count": company.investor_count,
                "is_blockchain_verified": True,
            },
        )

    def verify_company(self, company_id: UUID) -> ReconciliationResult:
        """Confirm the company's linked token exists on chain.

        Returns:
            ReconciliationResult with the resulting state

        Raises:
            CompanyNotFoundError: Unknown company
            BlockchainReadFailed: The chain could not be read (state unchanged)
        """
        company = CompanyOperations.get_or_raise(self.session, company_id, refresh=True)
        state = company.verification_state

        if state == VerificationState.LINKED_VERIFIED:
            return ReconciliationResult(
                company_id=company.id,
                state=state,
                token_id=company.blockchain_token_id,
                message="Already verified",
            )

        if state == VerificationState.UNLINKED:
            return ReconciliationResult(
                company_id=company.id,
                state=state,
                message="No blockchain token linked",
            )

        try:
            snapshot = self.mirror.get_company(company.blockchain_token_id)
        except ChainRecordNotFoundError:
            logger.warning(f"Token {company.blockchain_token_id} of company {company.id} not found on chain")
            return ReconciliationResult(
                company_id=company.id,
                state=state,
                token_id=company.blockchain_token_id,
                message="Token not found on chain",
            )
        except BlockchainReadFailed as e:
            logger.error(f"Could not verify company {company.id}: {e}")
            raise

        changed = ValuationLedger.set_verified(self.session, company.id, True)
        self.session.commit()
        company = CompanyOperations.get_or_raise(self.session, company.id, refresh=True)

        if changed:
            logger.info(f"Company {company.id} verified against token {company.blockchain_token_id}")
            self._publish_company(company)

        return ReconciliationResult(
            company_id=company.id,
            state=company.verification_state,
            changed=changed,
            token_id=company.blockchain_token_id,
            snapshot=snapshot,
            message="Verification updated from existing token",
        )

    def link_company(self, company_id: UUID, token_uri: Optional[str] = None) -> ReconciliationResult:
        """Mint a token for an unlinked company, then verify it.

        Already linked companies are only verified.

        Raises:
            CompanyNotFoundError: Unknown company
            BlockchainWriteFailed: The mint failed or reverted
            ConfirmationTimeoutError: The mint is still pending (hash recorded
                for ``sweep_pending``)
        """
        company = CompanyOperations.get_or_raise(self.session, company_id, refresh=True)
        if company.verification_state != VerificationState.UNLINKED:
            return self.verify_company(company_id)

        outcome = run_chain_write(
            self.session,
            self.mirror,
            lambda: self.mirror.mint_company(
                company.name,
                company.description or "",
                company.industry or "",
                company.valuation,
                token_uri or token_uri_for(company.name),
            ),
            ChainTxKind.MINT,
            company.id,
        )

        if outcome.status == ChainWriteStatus.PENDING:
            raise ConfirmationTimeoutError(outcome.tx_hash, self.mirror.config.confirmation_timeout_seconds)
        if outcome.status == ChainWriteStatus.FAILED:
            raise BlockchainWriteFailed(f"Mint failed: {outcome.error}", tx_hash=outcome.tx_hash)

        self._link_from_receipt(company.id, outcome.receipt)
        self.session.commit()

        try:
            return self.verify_company(company.id)
        except BlockchainReadFailed as e:
            logger.warning(f"Company {company.id} linked but verification read failed: {e}")
            return ReconciliationResult(
                company_id=company.id,
                state=VerificationState.LINKED_UNVERIFIED,
                changed=True,
                token_id=outcome.receipt.token_id,
                message="Linked; verification pending",
            )

    def _link_from_receipt(self, company_id: UUID, receipt: ChainReceipt) -> None:
        if not receipt.token_id:
            raise BlockchainWriteFailed(
                f"Mint receipt {receipt.tx_hash} carries no CompanyCreated event", tx_hash=receipt.tx_hash
            )
        ValuationLedger.set_blockchain_link(self.session, company_id, receipt.token_id, receipt.tx_hash)

    def _apply_receipt(self, tx: ChainTransaction, receipt: ChainReceipt) -> Optional[Investment]:
        """Propagate a late receipt to the record the transaction mirrors.

        Returns the investment booked from the transaction, if any.
        """
        if not receipt.succeeded:
            ChainTransactionOperations.mark_reverted(self.session, tx.tx_hash, error="reverted")
            if tx.kind == ChainTxKind.INVEST.value and tx.subject_id:
                InvestmentOperations.demote_to_traditional(self.session, tx.subject_id)
            return None

        ChainTransactionOperations.mark_confirmed(
            self.session, tx.tx_hash, block_number=receipt.block_number, gas_used=receipt.gas_used
        )
        if tx.kind == ChainTxKind.INVEST.value:
            if tx.subject_id:
                InvestmentOperations.mark_blockchain_confirmed(self.session, tx.subject_id, tx.tx_hash)
            else:
                return self._book_confirmed_investment(tx)
        elif tx.kind == ChainTxKind.MILESTONE.value and tx.subject_id:
            MilestoneOperations.mark_blockchain_confirmed(self.session, tx.subject_id, tx.tx_hash)
        elif tx.kind == ChainTxKind.MINT.value:
            company = CompanyOperations.get_or_raise(self.session, tx.company_id, refresh=True)
            if company.verification_state == VerificationState.UNLINKED:
                self._link_from_receipt(tx.company_id, receipt)
        return None

    def _book_confirmed_investment(self, tx: ChainTransaction) -> Optional[Investment]:
        """Book an on-chain investment whose submitter gave up waiting.

        Joins the sweep's transaction: the insert, both aggregate updates and
        the subject link commit together.
        """
        existing = InvestmentOperations.get_by_tx_hash(self.session, tx.tx_hash)
        if existing is not None:
            ChainTransactionOperations.attach_subject(self.session, tx.tx_hash, existing.id)
            InvestmentOperations.mark_blockchain_confirmed(self.session, existing.id, tx.tx_hash)
            return None

        if tx.investor_id is None or tx.amount is None or tx.ownership_percentage is None:
            logger.warning(f"Confirmed investment {tx.tx_hash} has no ledger record and no booking details")
            return None

        investment = Investment(
            company_id=tx.company_id,
            investor_id=tx.investor_id,
            amount=tx.amount,
            ownership_percentage=tx.ownership_percentage,
            blockchain_tx_hash=tx.tx_hash,
            is_blockchain_verified=True,
            investment_type=InvestmentType.BLOCKCHAIN.value,
        )
        InvestmentOperations.create(self.session, investment, commit=False)
        ValuationLedger.increase_total_investment(self.session, tx.company_id, tx.amount)
        ValuationLedger.recompute_investor_count(self.session, tx.company_id)
        ChainTransactionOperations.attach_subject(self.session, tx.tx_hash, investment.id)

        logger.info(f"Booked late-confirmed investment {investment.id}: {tx.amount} into {tx.company_id}")
        return investment

    def sweep_pending(self, limit: Optional[int] = None) -> SweepResult:
        """Resolve submitted transactions that were never seen confirmed.

        Each receipt lookup is a single poll (no waiting). One failing
        transaction does not stop the sweep.

        Args:
            limit: Max transactions to inspect (oldest first)

        Returns:
            SweepResult with metrics
        """
        pending = ChainTransactionOperations.get_pending(self.session, limit=limit)
        result = SweepResult(total=len(pending))
        logger.info(f"Sweeping {len(pending)} pending chain transactions")

        for tx in pending:
            try:
                receipt = self.mirror.get_receipt(tx.tx_hash)
                if receipt is None:
                    result.still_pending += 1
                    continue

                booked = self._apply_receipt(tx, receipt)
                self.session.commit()

                if receipt.succeeded:
                    result.confirmed += 1
                else:
                    result.reverted += 1
                if booked is not None:
                    result.booked += 1
                    self._publish_investment(booked)
            except (BlockchainReadFailed, BlockchainWriteFailed, SQLAlchemyError) as e:
                self.session.rollback()
                result.failed += 1
                result.errors.append(f"{tx.tx_hash}: {str(e)[:100]}")
                logger.error(f"Failed to reconcile transaction {tx.tx_hash}: {e}")

        return result
