"""Valuation ledger - Atomic aggregate primitives for the companies table.

Every primitive is a single UPDATE whose new value is computed by the
database (``total_investment = total_investment + :amount``), never a
read-modify-write from Python. Two concurrent investments therefore cannot
lose each other's increment regardless of what either transaction read
beforehand.

None of the primitives commit; they join the caller's transaction so the
investment insert and both aggregate updates commit or roll back together.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union
from uuid import UUID
from sqlmodel import Session, select
from sqlalchemy import case, distinct, func, update
from crowdledger.core.exceptions import CompanyNotFoundError, ValidationError
from crowdledger.models import Company, Investment, Milestone
from crowdledger.models.base import MONEY_PLACES

Amount = Union[Decimal, int, float, str]


def exceeds_ledger_places(amount: Decimal, places: int = MONEY_PLACES) -> bool:
    """True when ``amount`` has significant digits below ``places`` decimals.

    Exact for any magnitude; trailing zeros do not count.
    """
    _, digits, exponent = amount.as_tuple()
    if not any(digits):
        return False
    text = "".join(str(d) for d in digits)
    trailing_zeros = len(text) - len(text.rstrip("0"))
    return exponent + trailing_zeros < -places


def to_amount(value: Amount, field_name: str = "amount") -> Decimal:
    """Coerce a monetary input to Decimal without float artefacts.

    Amounts finer than the ledger scale are rejected rather than rounded, so
    the stored value is always the exact value mirrored on chain.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be numeric")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be numeric, got {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    if exceeds_ledger_places(amount):
        raise ValidationError(
            f"{field_name} has more than {MONEY_PLACES} decimal places, got {value!r}"
        )
    return amount


def require_positive(value: Amount, field_name: str = "amount") -> Decimal:
    amount = to_amount(value, field_name)
    if amount <= 0:
        raise ValidationError(f"{field_name} must be greater than 0, got {amount}")
    return amount


class ValuationLedger:
    """Atomic update primitives for per-company aggregates.

    Usage:
        with get_session_context() as session:
            session.add(investment)
            session.flush()
            ValuationLedger.increase_total_investment(session, company.id, investment.amount)
            ValuationLedger.recompute_investor_count(session, company.id)
            session.commit()
    """

    @staticmethod
    def _exists(session: Session, company_id: UUID) -> bool:
        stmt = select(Company.id).where(Company.id == company_id)
        return session.exec(stmt).first() is not None

    @staticmethod
    def increase_total_investment(session: Session, company_id: UUID, amount: Amount) -> None:
        """Add ``amount`` to the company's cumulative investment.

        Args:
            session: Database session (transaction owned by caller)
            company_id: Company UUID
            amount: Strictly positive amount

        Raises:
            ValidationError: If amount is zero or negative
            CompanyNotFoundError: If the company does not exist
        """
        amount = require_positive(amount)
        stmt = (
            update(Company)
            .where(Company.id == company_id)
            .values(
                total_investment=Company.total_investment + amount,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        if result.rowcount == 0:
            raise CompanyNotFoundError(company_id)

    @staticmethod
    def recompute_investor_count(session: Session, company_id: UUID) -> None:
        """Set investor_count to the distinct investor count of the company.

        Pending investment inserts are flushed first so the count includes
        them. Runs inside the caller's transaction.

        Raises:
            CompanyNotFoundError: If the company does not exist
        """
        session.flush()
        distinct_investors = (
            select(func.count(distinct(Investment.investor_id)))
            .where(Investment.company_id == company_id)
            .scalar_subquery()
        )
        stmt = (
            update(Company)
            .where(Company.id == company_id)
            .values(investor_count=distinct_investors)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        if result.rowcount == 0:
            raise CompanyNotFoundError(company_id)

    @staticmethod
    def increment_milestone_count(session: Session, company_id: UUID) -> None:
        """Add one to the company's milestone count.

        Raises:
            CompanyNotFoundError: If the company does not exist
        """
        stmt = (
            update(Company)
            .where(Company.id == company_id)
            .values(milestone_count=Company.milestone_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        if result.rowcount == 0:
            raise CompanyNotFoundError(company_id)

    @staticmethod
    def apply_milestone_valuation_delta(session: Session, company_id: UUID, delta: Amount) -> None:
        """Shift the company valuation by a signed milestone impact.

        The valuation must stay strictly positive; the guard is part of the
        UPDATE's WHERE clause so it holds under concurrency too.

        Raises:
            ValidationError: If the delta would make the valuation non-positive
            CompanyNotFoundError: If the company does not exist
        """
        delta = to_amount(delta, "valuation_impact")
        if delta == 0:
            if not ValuationLedger._exists(session, company_id):
                raise CompanyNotFoundError(company_id)
            return

        stmt = (
            update(Company)
            .where(Company.id == company_id, Company.valuation + delta > 0)
            .values(valuation=Company.valuation + delta, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        if result.rowcount == 0:
            if not ValuationLedger._exists(session, company_id):
                raise CompanyNotFoundError(company_id)
            raise ValidationError(
                f"Valuation impact {delta} would make the valuation of {company_id} non-positive"
            )

    @staticmethod
    def set_blockchain_link(
        session: Session,
        company_id: UUID,
        token_id: Union[str, int],
        tx_hash: Optional[str],
    ) -> None:
        """Link the company to its on-chain token.

        Relinking to the token already stored keeps the verified flag;
        linking a different token resets the company to linked-unverified.

        Raises:
            CompanyNotFoundError: If the company does not exist
        """
        token_id = str(token_id)
        stmt = (
            update(Company)
            .where(Company.id == company_id)
            .values(
                blockchain_token_id=token_id,
                blockchain_tx_hash=tx_hash,
                is_blockchain_verified=case(
                    (Company.blockchain_token_id == token_id, Company.is_blockchain_verified),
                    else_=False,
                ),
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        if result.rowcount == 0:
            raise CompanyNotFoundError(company_id)

    @staticmethod
    def set_verified(session: Session, company_id: UUID, verified: bool) -> bool:
        """Set the company's blockchain verification flag.

        Args:
            session: Database session
            company_id: Company UUID
            verified: New flag value

        Returns:
            True if the flag changed, False if it already had that value

        Raises:
            ValidationError: If verifying a company that has no token linked
            CompanyNotFoundError: If the company does not exist
        """
        stmt = update(Company).where(
            Company.id == company_id,
            Company.is_blockchain_verified != verified,
        )
        if verified:
            stmt = stmt.where(Company.blockchain_token_id.isnot(None))
        stmt = stmt.values(is_blockchain_verified=verified, updated_at=datetime.utcnow())

        result = session.execute(stmt.execution_options(synchronize_session=False))
        if result.rowcount == 1:
            return True

        company = session.get(Company, company_id, populate_existing=True)
        if company is None:
            raise CompanyNotFoundError(company_id)
        if verified and not company.blockchain_token_id:
            raise ValidationError(f"Company {company_id} has no blockchain token to verify")
        return False

    @staticmethod
    def rebuild_aggregates(session: Session, company_id: Optional[UUID] = None) -> int:
        """Recompute total_investment, investor_count and milestone_count from detail rows.

        Repair tool for rows written before aggregates were maintained
        atomically. Does not touch valuation.

        Args:
            session: Database session
            company_id: Limit to one company (all companies if None)

        Returns:
            Number of company rows updated
        """
        invested = (
            select(func.coalesce(func.sum(Investment.amount), 0))
            .where(Investment.company_id == Company.id)
            .scalar_subquery()
        )
        investors = (
            select(func.count(distinct(Investment.investor_id)))
            .where(Investment.company_id == Company.id)
            .scalar_subquery()
        )
        milestones = (
            select(func.count(Milestone.id))
            .where(Milestone.company_id == Company.id)
            .scalar_subquery()
        )
        stmt = update(Company).values(
            total_investment=invested, investor_count=investors, milestone_count=milestones
        )
        if company_id is not None:
            stmt = stmt.where(Company.id == company_id)

        result = session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount
