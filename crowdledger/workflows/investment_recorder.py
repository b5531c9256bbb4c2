"""Investment Recorder - Records investments and maintains ledger aggregates.

Flow for one investment:
1. Validate the amount and the target company (active, not owned by investor)
2. Price ownership against the company valuation
3. Optionally mirror the investment on chain (submit, record hash, bounded wait)
4. Insert the investment and update aggregates in one transaction
5. Publish ``investment.created`` for observers

Does NOT contain:
- Contract encoding (delegates to BlockchainMirror)
- Aggregate SQL (delegates to ValuationLedger)
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Any, Optional
from uuid import UUID

from sqlmodel import Session
from sqlalchemy.exc import SQLAlchemyError

from crowdledger.core.exceptions import (
    BlockchainWriteFailed,
    CompanyInactiveError,
    ConfirmationTimeoutError,
    PersistenceError,
    SelfInvestmentForbiddenError,
    ValidationError,
)
from crowdledger.domain import (
    ChainTransactionOperations,
    CompanyOperations,
    InvestmentOperations,
    ValuationLedger,
    require_positive,
)
from crowdledger.models import ChainTxKind, Company, Investment, InvestmentType
from crowdledger.models.base import PERCENT_PLACES
from crowdledger.services import INVESTMENT_CREATED, BlockchainMirror, EventBus
from .chain_writes import ChainWriteOutcome, ChainWriteStatus, run_chain_write

logger = logging.getLogger(__name__)

PERCENT_QUANTUM = Decimal(1).scaleb(-PERCENT_PLACES)


def compute_ownership_percentage(valuation: Decimal, amount: Decimal) -> Decimal:
    """Ownership share bought by ``amount`` at the current ``valuation``.

    ``amount / (valuation + amount) * 100``. Priced against enterprise
    valuation, not against capital raised so far, and never re-normalized
    for earlier investors.
    """
    valuation = Decimal(valuation)
    amount = Decimal(amount)
    return amount / (valuation + amount) * Decimal(100)


@dataclass
class RecorderConfig:
    """Configuration for the investment recorder."""

    # Fail the whole investment when the chain write fails
    blockchain_mandatory: bool = False

    # Override of the mirror's confirmation bound (None: use the mirror's)
    confirmation_timeout_seconds: Optional[float] = None


@dataclass
class InvestmentResult:
    """Persisted investment plus post-write aggregates."""

    investment: Investment
    total_investment: Decimal
    investor_count: int
    blockchain: Optional[ChainWriteOutcome] = None
    blockchain_requested: bool = False

    @property
    def blockchain_verified(self) -> bool:
        return self.investment.is_blockchain_verified

    @property
    def degraded(self) -> bool:
        """Blockchain was requested but the investment is off-chain only."""
        return self.blockchain_requested and self.investment.investment_type == InvestmentType.TRADITIONAL.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "investment_id": str(self.investment.id),
            "company_id": str(self.investment.company_id),
            "amount": str(self.investment.amount),
            "ownership_percentage": str(self.investment.ownership_percentage),
            "investment_type": self.investment.investment_type,
            "is_blockchain_verified": self.blockchain_verified,
            "degraded": self.degraded,
            "total_investment": str(self.total_investment),
            "investor_count": self.investor_count,
            "blockchain": self.blockchain.to_dict() if self.blockchain else None,
        }


class InvestmentRecorder:
    """Records investments against the valuation ledger.

    Usage:
        from crowdledger.db import get_session_context
        from crowdledger.services import BlockchainMirror, EventBus
        from crowdledger.core.config import settings

        mirror = BlockchainMirror.from_settings(settings)

        with get_session_context() as session:
            recorder = InvestmentRecorder(session, mirror=mirror, events=EventBus())
            result = recorder.record_investment(
                company_id, investor_id, Decimal("100000"),
                use_blockchain=True, investor_wallet="0xabc...",
            )
    """

    def __init__(
        self,
        session: Session,
        mirror: Optional[BlockchainMirror] = None,
        events: Optional[EventBus] = None,
        config: Optional[RecorderConfig] = None,
    ):
        """Initialize recorder.

        Args:
            session: Database session (the recorder commits its own transactions)
            mirror: Blockchain mirror (None disables on-chain investments)
            events: Event bus for investment notifications
            config: Recorder configuration
        """
        self.session = session
        self.mirror = mirror
        self.events = events or EventBus()
        self.config = config or RecorderConfig()

    def _validate_target(self, company: Company, investor_id: UUID) -> None:
        if not company.is_active:
            raise CompanyInactiveError(company.id)
        if company.owner_id == investor_id:
            raise SelfInvestmentForbiddenError(company.id)

    def _mirror_investment(
        self,
        company: Company,
        investor_id: UUID,
        amount: Decimal,
        ownership: Decimal,
        investor_wallet: Optional[str],
        mandatory: bool,
    ) -> Optional[ChainWriteOutcome]:
        """Run the on-chain leg, or explain why it was skipped.

        The priced investment is stored with the submitted hash. A mandatory
        write that times out is booked by ``ChainReconciler.sweep_pending``
        once its confirmation is observed.
        """
        missing = None
        if self.mirror is None:
            missing = "blockchain mirror not configured"
        elif not company.blockchain_token_id:
            missing = "company has no blockchain token"
        elif not investor_wallet:
            missing = "investor has no linked wallet"

        if missing:
            if mandatory:
                raise BlockchainWriteFailed(f"On-chain investment required but {missing}")
            logger.info(f"Recording traditional investment into {company.id}: {missing}")
            return None

        outcome = run_chain_write(
            self.session,
            self.mirror,
            lambda: self.mirror.invest(company.blockchain_token_id, amount),
            ChainTxKind.INVEST,
            company.id,
            timeout_seconds=self.config.confirmation_timeout_seconds,
            details={"investor_id": investor_id, "amount": amount, "ownership_percentage": ownership},
        )

        if mandatory and outcome.status == ChainWriteStatus.FAILED:
            raise BlockchainWriteFailed(
                f"On-chain investment failed: {outcome.error}", tx_hash=outcome.tx_hash
            )
        if mandatory and outcome.status == ChainWriteStatus.PENDING:
            timeout = self.config.confirmation_timeout_seconds
            if timeout is None:
                timeout = self.mirror.config.confirmation_timeout_seconds
            raise ConfirmationTimeoutError(outcome.tx_hash, timeout)

        return outcome

    def record_investment(
        self,
        company_id: UUID,
        investor_id: UUID,
        amount: Decimal,
        use_blockchain: bool = False,
        investor_wallet: Optional[str] = None,
        blockchain_mandatory: Optional[bool] = None,
    ) -> InvestmentResult:
        """Record one investment.

        Args:
            company_id: Target company
            investor_id: Investor identity
            amount: Strictly positive amount with at most 8 decimal places
            use_blockchain: Mirror the investment on chain when possible
            investor_wallet: Investor's linked wallet address
            blockchain_mandatory: Override of the configured mandatory flag

        Returns:
            InvestmentResult. A failed non-mandatory chain write still
            returns successfully with ``degraded`` set.

        The ownership share is stored to 10 decimal places. An amount so small
        against the valuation that its share rounds to 0%, or so large that it
        rounds to 100%, is rejected with ValidationError even though the raw
        inputs are positive.

        Raises:
            ValidationError: Non-positive amount, more than 8 decimal places,
                or a share that rounds to 0% or 100%
            CompanyNotFoundError: Unknown company
            CompanyInactiveError: Company not accepting investments
            SelfInvestmentForbiddenError: Owner investing in own company
            BlockchainWriteFailed: Chain write failed and was mandatory
            ConfirmationTimeoutError: Chain confirmation timed out and was mandatory.
                Nothing is booked yet; the sweep books it once confirmed.
            PersistenceError: Ledger write failed (nothing committed)
        """
        amount = require_positive(amount)
        mandatory = self.config.blockchain_mandatory if blockchain_mandatory is None else blockchain_mandatory

        company = CompanyOperations.get_or_raise(self.session, company_id, refresh=True)
        self._validate_target(company, investor_id)

        ownership = compute_ownership_percentage(company.valuation, amount).quantize(
            PERCENT_QUANTUM, rounding=ROUND_HALF_EVEN
        )
        if not Decimal(0) < ownership < Decimal(100):
            raise ValidationError(
                f"Investment of {amount} against valuation {company.valuation} "
                f"yields an unrepresentable ownership share ({ownership}%)"
            )

        chain = None
        if use_blockchain:
            chain = self._mirror_investment(company, investor_id, amount, ownership, investor_wallet, mandatory)

        on_chain = chain is not None and chain.status != ChainWriteStatus.FAILED
        investment = Investment(
            company_id=company.id,
            investor_id=investor_id,
            amount=amount,
            ownership_percentage=ownership,
            blockchain_tx_hash=chain.tx_hash if chain else None,
            is_blockchain_verified=chain is not None and chain.confirmed,
            investment_type=(InvestmentType.BLOCKCHAIN if on_chain else InvestmentType.TRADITIONAL).value,
        )

        try:
            InvestmentOperations.create(self.session, investment, commit=False)
            ValuationLedger.increase_total_investment(self.session, company.id, amount)
            ValuationLedger.recompute_investor_count(self.session, company.id)
            if chain is not None and chain.tx_hash:
                ChainTransactionOperations.attach_subject(self.session, chain.tx_hash, investment.id)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to record investment into {company.id}: {e}")
            raise PersistenceError(f"Failed to record investment: {e}") from e
        except Exception:
            self.session.rollback()
            raise

        company = CompanyOperations.get_or_raise(self.session, company.id, refresh=True)
        result = InvestmentResult(
            investment=investment,
            total_investment=company.total_investment,
            investor_count=company.investor_count,
            blockchain=chain,
            blockchain_requested=use_blockchain,
        )

        logger.info(
            f"Investment {investment.id}: {amount} into {company.id} "
            f"({ownership}%, type={investment.investment_type}, "
            f"total={company.total_investment}, investors={company.investor_count})"
        )

        self.events.publish(
            INVESTMENT_CREATED,
            {
                "company_id": str(company.id),
                "investment_id": str(investment.id),
                "amount": str(amount),
                "total_investment": str(company.total_investment),
                "investor_count": company.investor_count,
                "is_blockchain_verified": investment.is_blockchain_verified,
            },
        )
        return result
